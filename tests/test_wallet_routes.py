from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from ticketing.core.config import Settings
from ticketing.dependencies import get_wallet_service
from ticketing.main import create_app
from ticketing.services.wallet import WalletConnection

ACCOUNT = "0x" + "d" * 40


@pytest.fixture
def wallet_client():
    settings = Settings(_env_file=None, database_url=None, chain_mode="memory", rate_limit_requests=0)
    app = create_app(settings)
    wallet = MagicMock()
    wallet.network_name = "Sepolia Testnet"

    async def override_wallet():
        return wallet

    app.dependency_overrides[get_wallet_service] = override_wallet
    client = TestClient(app)
    try:
        yield client, wallet
    finally:
        app.dependency_overrides.clear()


def test_connect_success(wallet_client):
    client, wallet = wallet_client
    wallet.connect = AsyncMock(
        return_value=WalletConnection(success=True, address=ACCOUNT, network="Sepolia Testnet")
    )

    response = client.post("/api/wallet/connect")

    assert response.status_code == 200
    assert response.json()["data"] == {"address": ACCOUNT, "network": "Sepolia Testnet"}


def test_connect_failure(wallet_client):
    client, wallet = wallet_client
    wallet.connect = AsyncMock(return_value=WalletConnection(success=False, error="No accounts found"))

    response = client.post("/api/wallet/connect")

    assert response.status_code == 400
    assert response.json()["error"] == "No accounts found"


def test_address_and_balance_require_connection(wallet_client):
    client, wallet = wallet_client
    wallet.address.return_value = None
    wallet.balance = AsyncMock(return_value=None)

    assert client.get("/api/wallet/address").status_code == 404
    assert client.get("/api/wallet/balance").status_code == 404


def test_balance_and_status(wallet_client):
    client, wallet = wallet_client
    wallet.balance = AsyncMock(return_value="1.5")
    wallet.status.return_value = {"initialized": True, "connected": True, "provider": True, "signer": True}

    balance = client.get("/api/wallet/balance").json()["data"]
    status = client.get("/api/wallet/status").json()["data"]

    assert balance == {"balance": "1.5", "currency": "ETH", "network": "Sepolia Testnet"}
    assert status["connected"] is True


def test_disconnect_and_switch_network(wallet_client):
    client, wallet = wallet_client
    wallet.switch_network = AsyncMock(side_effect=[True, False])

    assert client.post("/api/wallet/disconnect").status_code == 200
    wallet.disconnect.assert_called_once()
    assert client.post("/api/wallet/switch-network").status_code == 200
    assert client.post("/api/wallet/switch-network").status_code == 400


def test_wallet_routes_without_rpc_node():
    settings = Settings(
        _env_file=None,
        database_url=None,
        chain_mode="memory",
        rpc_url=None,
        alchemy_api_key=None,
        organizer_private_key=None,
        rate_limit_requests=0,
    )
    with TestClient(create_app(settings)) as client:
        assert client.post("/api/wallet/connect").status_code == 400
        assert client.get("/api/wallet/status").json()["data"]["initialized"] is False
        assert client.get("/api/wallet/address").status_code == 404
