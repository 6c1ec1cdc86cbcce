"""Contract-facing types shared by the chain gateway implementations."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from ticketing.errors import InvalidAddressError

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_address(value: str | None) -> bool:
    return bool(value) and ADDRESS_PATTERN.fullmatch(value) is not None


def normalize_address(value: str) -> str:
    """Return the lower-cased address, raising when it is malformed."""

    candidate = (value or "").strip()
    if not is_valid_address(candidate):
        raise InvalidAddressError("Invalid Ethereum address format")
    return candidate.lower()


@dataclass(slots=True)
class ChainReceipt:
    """Confirmation of a transaction included in a block."""

    transaction_hash: str
    block_number: int | None
    gas_used: int | None


@dataclass(slots=True)
class MintReceipt:
    """Confirmation of a mint, with the token id read from the `TicketMinted` event."""

    token_id: int
    transaction_hash: str
    block_number: int | None
    gas_used: int | None


@dataclass(slots=True)
class ChainTokenInfo:
    token_id: int
    uri: str
    is_used: bool
    owner: str


class ChainGateway(Protocol):
    """Operations the lifecycle manager issues against the ticket contract."""

    def is_ready(self) -> bool:
        ...

    def is_contract_ready(self) -> bool:
        ...

    async def mint(self, recipient: str, metadata_uri: str) -> MintReceipt:
        ...

    async def update_metadata(self, token_id: int, metadata_uri: str) -> ChainReceipt:
        ...

    async def burn(self, token_id: int) -> ChainReceipt:
        ...

    async def get_info(self, token_id: int) -> ChainTokenInfo:
        ...

    async def total_supply(self) -> int:
        ...

    async def close(self) -> None:
        ...
