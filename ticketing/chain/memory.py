from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from ticketing.errors import ChainTokenNotFoundError, ServiceUnavailableError

from .gateway import ChainReceipt, ChainTokenInfo, MintReceipt, normalize_address

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _LocalToken:
    token_id: int
    owner: str
    uri: str
    is_used: bool
    minted_at: datetime


class InMemoryChainGateway:
    """Process-local stand-in for the ticket contract, used in demo mode and tests.

    Token ids are assigned sequentially from 1 and burned tokens are removed, which
    mirrors how the deployed contract answers `ownerOf` for burned ids.
    """

    _MINT_GAS = 50_000
    _UPDATE_GAS = 30_000
    _BURN_GAS = 25_000

    def __init__(self, *, ready: bool = True, contract_ready: bool = True, start_block: int = 12_345_678) -> None:
        self._ready = ready
        self._contract_ready = contract_ready
        self._block_number = start_block
        self._next_token_id = 1
        self._tokens: dict[int, _LocalToken] = {}

    def is_ready(self) -> bool:
        return self._ready

    def is_contract_ready(self) -> bool:
        return self._ready and self._contract_ready

    async def mint(self, recipient: str, metadata_uri: str) -> MintReceipt:
        owner = normalize_address(recipient)
        self._ensure_contract()
        token_id = self._next_token_id
        self._next_token_id += 1
        self._tokens[token_id] = _LocalToken(
            token_id=token_id,
            owner=owner,
            uri=metadata_uri,
            is_used=False,
            minted_at=datetime.now(timezone.utc),
        )
        receipt = self._receipt(self._MINT_GAS)
        logger.info("Minted local token %s for %s", token_id, owner)
        return MintReceipt(
            token_id=token_id,
            transaction_hash=receipt.transaction_hash,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
        )

    async def update_metadata(self, token_id: int, metadata_uri: str) -> ChainReceipt:
        self._ensure_contract()
        token = self._get_token(token_id)
        token.uri = metadata_uri
        token.is_used = True
        return self._receipt(self._UPDATE_GAS)

    async def burn(self, token_id: int) -> ChainReceipt:
        self._ensure_contract()
        self._get_token(token_id)
        del self._tokens[token_id]
        return self._receipt(self._BURN_GAS)

    async def get_info(self, token_id: int) -> ChainTokenInfo:
        token = self._get_token(token_id)
        return ChainTokenInfo(token_id=token.token_id, uri=token.uri, is_used=token.is_used, owner=token.owner)

    async def total_supply(self) -> int:
        # minted count; burned ids are not reused
        return self._next_token_id - 1

    async def close(self) -> None:
        return None

    def _ensure_contract(self) -> None:
        if not self.is_contract_ready():
            raise ServiceUnavailableError("Smart contract not deployed")

    def _get_token(self, token_id: int) -> _LocalToken:
        token = self._tokens.get(int(token_id))
        if token is None:
            raise ChainTokenNotFoundError(f"Token {token_id} does not exist on chain")
        return token

    def _receipt(self, gas_used: int) -> ChainReceipt:
        self._block_number += 1
        return ChainReceipt(
            transaction_hash="0x" + secrets.token_hex(32),
            block_number=self._block_number,
            gas_used=gas_used,
        )
