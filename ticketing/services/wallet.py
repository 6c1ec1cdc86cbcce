"""Server-side wallet session against the configured RPC node."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from ticketing.errors import ChainUnavailableError

logger = logging.getLogger(__name__)

NETWORK_NAMES = {
    1: "Ethereum Mainnet",
    11155111: "Sepolia Testnet",
}

_TRANSPORT_ERRORS = (Web3Exception, aiohttp.ClientError, OSError, asyncio.TimeoutError, ValueError)


@dataclass(slots=True)
class WalletConnection:
    success: bool
    address: str | None = None
    network: str | None = None
    error: str | None = None


class WalletService:
    """Track which account the backend acts for and query it through web3.

    `connect` asks the node for its unlocked accounts and falls back to the
    organizer key's account when the node exposes none.
    """

    def __init__(
        self,
        *,
        rpc_url: str | None,
        chain_id: int,
        private_key: str | None = None,
        timeout: float = 30.0,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self._chain_id = chain_id
        self._timeout = timeout
        self._w3: AsyncWeb3 | None = w3
        if self._w3 is None and rpc_url:
            self._w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self._fallback_account: Any | None = None
        if self._w3 is not None and private_key:
            self._fallback_account = self._w3.eth.account.from_key(private_key)
        self._address: str | None = None

    @property
    def network_name(self) -> str:
        return NETWORK_NAMES.get(self._chain_id, f"Chain {self._chain_id}")

    @property
    def initialized(self) -> bool:
        return self._w3 is not None

    @property
    def connected(self) -> bool:
        return self._w3 is not None and self._address is not None

    async def connect(self) -> WalletConnection:
        if self._w3 is None:
            return WalletConnection(success=False, error="Wallet provider not configured")
        try:
            accounts = list(await asyncio.wait_for(self._w3.eth.accounts, timeout=self._timeout))
        except _TRANSPORT_ERRORS as exc:
            logger.warning("Failed to request wallet accounts: %s", exc)
            return WalletConnection(success=False, error=str(exc) or type(exc).__name__)
        if not accounts and self._fallback_account is not None:
            accounts = [self._fallback_account.address]
        if not accounts:
            return WalletConnection(success=False, error="No accounts found")

        self._address = str(accounts[0])
        logger.info("Wallet connected: %s", self._address)
        return WalletConnection(success=True, address=self._address, network=self.network_name)

    def disconnect(self) -> None:
        if self._address is not None:
            logger.info("Wallet disconnected: %s", self._address)
        self._address = None

    def status(self) -> dict[str, bool]:
        return {
            "initialized": self.initialized,
            "connected": self.connected,
            "provider": self._w3 is not None,
            "signer": self._address is not None,
        }

    def address(self) -> str | None:
        return self._address if self.connected else None

    async def balance(self) -> str | None:
        """Return the connected account's balance in ether, or None when disconnected."""

        w3 = self._w3
        if w3 is None or self._address is None:
            return None
        try:
            wei = await asyncio.wait_for(w3.eth.get_balance(self._address), timeout=self._timeout)
        except _TRANSPORT_ERRORS as exc:
            raise ChainUnavailableError(f"Failed to get wallet balance: {exc}") from exc
        return str(w3.from_wei(wei, "ether"))

    async def switch_network(self) -> bool:
        if self._w3 is None:
            return False
        try:
            current = await asyncio.wait_for(self._w3.eth.chain_id, timeout=self._timeout)
            if current == self._chain_id:
                return True
            response = await asyncio.wait_for(
                self._w3.provider.make_request(
                    "wallet_switchEthereumChain", [{"chainId": hex(self._chain_id)}]
                ),
                timeout=self._timeout,
            )
        except _TRANSPORT_ERRORS as exc:
            raise ChainUnavailableError(f"Failed to switch network: {exc}") from exc
        if response.get("error"):
            logger.warning("Node refused network switch to %s: %s", self._chain_id, response["error"])
            return False
        return True

    async def close(self) -> None:
        if self._w3 is not None:
            await self._w3.provider.disconnect()
