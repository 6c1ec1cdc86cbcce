"""Gateways to the ticket contract on the external ledger."""
from .gateway import (
    ChainGateway,
    ChainReceipt,
    ChainTokenInfo,
    MintReceipt,
    is_valid_address,
    normalize_address,
)
from .memory import InMemoryChainGateway
from .web3_gateway import Web3ChainGateway

__all__ = [
    "ChainGateway",
    "ChainReceipt",
    "ChainTokenInfo",
    "InMemoryChainGateway",
    "MintReceipt",
    "Web3ChainGateway",
    "is_valid_address",
    "normalize_address",
]
