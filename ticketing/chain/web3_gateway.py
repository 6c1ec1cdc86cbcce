from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, TypeVar

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from ticketing.errors import (
    ChainRejectedError,
    ChainTokenNotFoundError,
    ChainUnavailableError,
    ServiceUnavailableError,
    TicketingError,
)

from .abi import TICKET_CONTRACT_ABI
from .gateway import ChainReceipt, ChainTokenInfo, MintReceipt, is_valid_address, normalize_address

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Web3ChainGateway:
    """Ticket contract client signing transactions with the organizer key."""

    def __init__(
        self,
        *,
        rpc_url: str | None,
        contract_address: str | None,
        private_key: str | None,
        chain_id: int | None = None,
        receipt_timeout: float = 120.0,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self._receipt_timeout = receipt_timeout
        self._chain_id = chain_id
        self._send_lock = asyncio.Lock()
        self._w3: AsyncWeb3 | None = w3
        if self._w3 is None and rpc_url:
            self._w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))

        self._account: Any | None = None
        self._contract: Any | None = None
        if self._w3 is None:
            logger.warning("No RPC endpoint configured; chain gateway disabled")
            return
        if private_key:
            self._account = self._w3.eth.account.from_key(private_key)
        else:
            logger.warning("Organizer private key missing; transactions cannot be signed")
        if is_valid_address(contract_address):
            self._contract = self._w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(contract_address),
                abi=TICKET_CONTRACT_ABI,
            )
            logger.info("Ticket contract initialised at %s", contract_address)
        else:
            logger.warning("Contract not deployed yet; deploy it to enable minting")

    @property
    def organizer_address(self) -> str | None:
        return None if self._account is None else self._account.address

    def is_ready(self) -> bool:
        return self._w3 is not None and self._account is not None

    def is_contract_ready(self) -> bool:
        return self.is_ready() and self._contract is not None

    async def mint(self, recipient: str, metadata_uri: str) -> MintReceipt:
        normalize_address(recipient)
        contract = self._require_contract()
        function = contract.functions.mint(AsyncWeb3.to_checksum_address(recipient), metadata_uri)
        tx_hash, receipt = await self._transact("mint", function)
        confirmed = self._to_receipt("mint", tx_hash, receipt)

        try:
            events = contract.events.TicketMinted().process_receipt(receipt, errors=DISCARD)
            token_ids = [int(event["args"]["tokenId"]) for event in events]
        except (Web3Exception, KeyError, TypeError, ValueError) as exc:
            raise ChainRejectedError(f"Mint transaction {tx_hash} has an unreadable TicketMinted event") from exc
        if not token_ids:
            raise ChainRejectedError(f"Mint transaction {tx_hash} emitted no TicketMinted event")
        logger.info("Minted token %s in block %s", token_ids[0], confirmed.block_number)
        return MintReceipt(
            token_id=token_ids[0],
            transaction_hash=tx_hash,
            block_number=confirmed.block_number,
            gas_used=confirmed.gas_used,
        )

    async def update_metadata(self, token_id: int, metadata_uri: str) -> ChainReceipt:
        contract = self._require_contract()
        await self._owner_of(token_id)
        tx_hash, receipt = await self._transact(
            "updateMetadataURI", contract.functions.updateMetadataURI(int(token_id), metadata_uri)
        )
        return self._to_receipt("updateMetadataURI", tx_hash, receipt)

    async def burn(self, token_id: int) -> ChainReceipt:
        contract = self._require_contract()
        await self._owner_of(token_id)
        tx_hash, receipt = await self._transact("burn", contract.functions.burn(int(token_id)))
        return self._to_receipt("burn", tx_hash, receipt)

    async def get_info(self, token_id: int) -> ChainTokenInfo:
        contract = self._require_contract()
        functions = contract.functions
        try:
            uri, is_used, owner = await self._guard(
                "getInfo",
                asyncio.gather(
                    functions.tokenURI(int(token_id)).call(),
                    functions.isTicketUsed(int(token_id)).call(),
                    functions.ownerOf(int(token_id)).call(),
                ),
            )
        except ChainRejectedError as exc:
            raise ChainTokenNotFoundError(f"Token {token_id} does not exist on chain") from exc
        return ChainTokenInfo(token_id=int(token_id), uri=str(uri), is_used=bool(is_used), owner=str(owner))

    async def total_supply(self) -> int:
        contract = self._require_contract()
        supply = await self._guard("totalSupply", contract.functions.totalSupply().call())
        return int(supply)

    async def close(self) -> None:
        if self._w3 is not None:
            await self._w3.provider.disconnect()

    def _require_contract(self) -> Any:
        if not self.is_ready():
            raise ServiceUnavailableError("Web3 service not ready")
        if self._contract is None:
            raise ServiceUnavailableError("Smart contract not deployed")
        return self._contract

    async def _owner_of(self, token_id: int) -> str:
        try:
            return await self._guard("ownerOf", self._contract.functions.ownerOf(int(token_id)).call())
        except ChainRejectedError as exc:
            raise ChainTokenNotFoundError(f"Token {token_id} does not exist on chain") from exc

    async def _transact(self, operation: str, function: Any) -> tuple[str, Any]:
        w3 = self._w3
        address = self._account.address
        # nonce allocation and submission are serialised; receipts are awaited concurrently
        async with self._send_lock:
            params: dict[str, Any] = {"from": address}
            params["nonce"] = await self._guard(operation, w3.eth.get_transaction_count(address, "pending"))
            if self._chain_id is not None:
                params["chainId"] = self._chain_id
            transaction = await self._guard(operation, function.build_transaction(params))
            signed = self._account.sign_transaction(transaction)
            raw_hash = await self._guard(operation, w3.eth.send_raw_transaction(signed.raw_transaction))
        tx_hash = AsyncWeb3.to_hex(raw_hash)
        logger.info("Submitted %s transaction %s", operation, tx_hash)

        receipt = await self._guard(
            operation, w3.eth.wait_for_transaction_receipt(raw_hash, timeout=self._receipt_timeout)
        )
        if receipt["status"] != 1:
            raise ChainRejectedError(f"{operation} transaction {tx_hash} reverted")
        return tx_hash, receipt

    @staticmethod
    def _to_receipt(operation: str, tx_hash: str, receipt: Any) -> ChainReceipt:
        try:
            return ChainReceipt(
                transaction_hash=tx_hash,
                block_number=int(receipt["blockNumber"]),
                gas_used=int(receipt["gasUsed"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ChainRejectedError(f"{operation} transaction {tx_hash} returned a malformed receipt") from exc

    @staticmethod
    async def _guard(operation: str, awaitable: Awaitable[T]) -> T:
        """Await a web3 call, translating library errors into chain errors."""

        try:
            return await awaitable
        except TicketingError:
            raise
        except ContractLogicError as exc:
            raise ChainRejectedError(f"{operation} reverted: {exc}") from exc
        except TimeExhausted as exc:
            raise ChainUnavailableError(f"{operation} was not confirmed in time") from exc
        except (Web3Exception, aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise ChainUnavailableError(f"{operation} failed: {exc}") from exc
