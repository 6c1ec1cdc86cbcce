from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ticketing.api.errors import error_response
from ticketing.api.schemas import (
    ApiResponse,
    WalletAddressData,
    WalletBalanceData,
    WalletConnectionData,
    WalletStatusData,
)
from ticketing.dependencies import WalletServiceDep

router = APIRouter(prefix="/api/wallet", tags=["wallet"])


@router.post("/connect", response_model=ApiResponse[WalletConnectionData])
async def connect_wallet(wallet: WalletServiceDep) -> ApiResponse[WalletConnectionData] | JSONResponse:
    result = await wallet.connect()
    if not result.success or result.address is None:
        return error_response(400, "Failed to connect wallet", error=result.error)
    data = WalletConnectionData(address=result.address, network=result.network or wallet.network_name)
    return ApiResponse(message="Wallet connected successfully", data=data)


@router.post("/disconnect", response_model=ApiResponse[None])
async def disconnect_wallet(wallet: WalletServiceDep) -> ApiResponse[None]:
    wallet.disconnect()
    return ApiResponse(message="Wallet disconnected successfully")


@router.get("/status", response_model=ApiResponse[WalletStatusData])
async def wallet_status(wallet: WalletServiceDep) -> ApiResponse[WalletStatusData]:
    return ApiResponse(message="Wallet status retrieved", data=WalletStatusData(**wallet.status()))


@router.get("/address", response_model=ApiResponse[WalletAddressData])
async def wallet_address(wallet: WalletServiceDep) -> ApiResponse[WalletAddressData] | JSONResponse:
    address = wallet.address()
    if address is None:
        return error_response(404, "No wallet connected")
    return ApiResponse(message="Wallet address retrieved", data=WalletAddressData(address=address))


@router.get("/balance", response_model=ApiResponse[WalletBalanceData])
async def wallet_balance(wallet: WalletServiceDep) -> ApiResponse[WalletBalanceData] | JSONResponse:
    balance = await wallet.balance()
    if balance is None:
        return error_response(404, "No wallet connected")
    data = WalletBalanceData(balance=balance, network=wallet.network_name)
    return ApiResponse(message="Wallet balance retrieved", data=data)


@router.post("/switch-network", response_model=ApiResponse[None])
async def switch_network(wallet: WalletServiceDep) -> ApiResponse[None] | JSONResponse:
    if not await wallet.switch_network():
        return error_response(400, "Failed to switch network")
    return ApiResponse(message=f"Switched to {wallet.network_name} successfully")
