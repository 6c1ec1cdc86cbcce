from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from ticketing.services.wallet import WalletService
from ticketing.tickets.service import TicketLifecycleManager


async def get_lifecycle_manager(request: Request) -> TicketLifecycleManager:
    manager = getattr(request.app.state, "lifecycle_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return manager


async def get_wallet_service(request: Request) -> WalletService:
    wallet = getattr(request.app.state, "wallet_service", None)
    if wallet is None:
        raise HTTPException(status_code=503, detail="Wallet service is not configured")
    return wallet


LifecycleManagerDep = Annotated[TicketLifecycleManager, Depends(get_lifecycle_manager)]
WalletServiceDep = Annotated[WalletService, Depends(get_wallet_service)]
