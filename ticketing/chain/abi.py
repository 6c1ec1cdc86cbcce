"""ABI of the deployed `DynamicTicketNFT` contract (the subset the service calls)."""

from __future__ import annotations

from typing import Any


def _function(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[str],
    *,
    mutability: str = "nonpayable",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": arg, "type": kind, "internalType": kind} for arg, kind in inputs],
        "outputs": [{"name": "", "type": kind, "internalType": kind} for kind in outputs],
    }


def _event(name: str, inputs: list[tuple[str, str, bool]]) -> dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [
            {"name": arg, "type": kind, "internalType": kind, "indexed": indexed} for arg, kind, indexed in inputs
        ],
    }


TICKET_CONTRACT_ABI: list[dict[str, Any]] = [
    _function("mint", [("recipient", "address"), ("preEventMetadataURI", "string")], ["uint256"]),
    _function("updateMetadataURI", [("tokenId", "uint256"), ("postEventMetadataURI", "string")], []),
    _function("burn", [("tokenId", "uint256")], []),
    _function("tokenURI", [("tokenId", "uint256")], ["string"], mutability="view"),
    _function("isTicketUsed", [("tokenId", "uint256")], ["bool"], mutability="view"),
    _function("totalSupply", [], ["uint256"], mutability="view"),
    _function("ownerOf", [("tokenId", "uint256")], ["address"], mutability="view"),
    _event(
        "TicketMinted",
        [("tokenId", "uint256", True), ("recipient", "address", True), ("metadataURI", "string", False)],
    ),
    _event("MetadataUpdated", [("tokenId", "uint256", True), ("newMetadataURI", "string", False)]),
    _event("TicketBurned", [("tokenId", "uint256", True)]),
]
