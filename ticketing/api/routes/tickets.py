from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from ticketing.api.errors import error_response
from ticketing.api.schemas import (
    ApiResponse,
    AuditEntryResponse,
    BurnTicketRequest,
    ChainInfoResponse,
    MintTicketRequest,
    OwnerTicketsData,
    PurchaseData,
    PurchaseRequest,
    StatsData,
    TicketDetailsData,
    TicketResponse,
    TicketTransactionData,
    TokenCheckInRequest,
    TransactionInfo,
    UserTicketResponse,
    WalletCheckInData,
    WalletCheckInRequest,
)
from ticketing.dependencies import LifecycleManagerDep
from ticketing.errors import TicketingError
from ticketing.tickets.models import BurnedTicket, CheckedInTicket, MintedTicket

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


def _transaction_data(result: MintedTicket | CheckedInTicket | BurnedTicket) -> TicketTransactionData:
    return TicketTransactionData(
        token=TicketResponse.from_ticket(result.ticket),
        blockchain=TransactionInfo(
            transaction_hash=result.transaction_hash,
            block_number=result.block_number,
            gas_used=result.gas_used,
        ),
    )


@router.post(
    "/mint",
    response_model=ApiResponse[TicketTransactionData],
    status_code=status.HTTP_201_CREATED,
)
async def mint_ticket(
    payload: MintTicketRequest, manager: LifecycleManagerDep
) -> ApiResponse[TicketTransactionData]:
    minted = await manager.mint_ticket(
        recipient_address=payload.recipient_address,
        event_name=payload.event_name,
        event_date=payload.event_date,
        event_location=payload.event_location,
        pre_metadata_uri=payload.pre_metadata_uri,
        original_price=payload.original_price,
    )
    return ApiResponse(message="Ticket minted successfully", data=_transaction_data(minted))


@router.post("/checkIn", response_model=ApiResponse[TicketTransactionData])
async def check_in_ticket(
    payload: TokenCheckInRequest, manager: LifecycleManagerDep
) -> ApiResponse[TicketTransactionData]:
    checked_in = await manager.check_in_by_token(payload.token_id, payload.post_metadata_uri)
    return ApiResponse(message="Ticket checked in successfully", data=_transaction_data(checked_in))


@router.post("/burn", response_model=ApiResponse[TicketTransactionData])
async def burn_ticket(
    payload: BurnTicketRequest, manager: LifecycleManagerDep
) -> ApiResponse[TicketTransactionData]:
    burned = await manager.burn_ticket(payload.token_id)
    return ApiResponse(message="Ticket burned successfully", data=_transaction_data(burned))


@router.get("/stats", response_model=ApiResponse[StatsData])
async def get_stats(manager: LifecycleManagerDep) -> ApiResponse[StatsData]:
    stats = await manager.stats()
    return ApiResponse(message="Statistics retrieved", data=StatsData.from_stats(stats))


@router.get("/owner/{address}", response_model=ApiResponse[OwnerTicketsData])
async def get_tickets_by_owner(address: str, manager: LifecycleManagerDep) -> ApiResponse[OwnerTicketsData]:
    tickets = await manager.tickets_by_owner(address)
    data = OwnerTicketsData(
        owner=address,
        tickets=[TicketResponse.from_ticket(ticket) for ticket in tickets],
        count=len(tickets),
    )
    return ApiResponse(message="Tickets retrieved", data=data)


@router.get("/user/{wallet_address}", response_model=ApiResponse[list[UserTicketResponse]])
async def get_user_tickets(
    wallet_address: str, manager: LifecycleManagerDep
) -> ApiResponse[list[UserTicketResponse]]:
    records = await manager.user_tickets(wallet_address)
    return ApiResponse(
        message="Tickets retrieved",
        data=[UserTicketResponse.from_record(record) for record in records],
    )


@router.post("/purchase", response_model=ApiResponse[PurchaseData])
async def purchase_ticket(
    payload: PurchaseRequest, manager: LifecycleManagerDep
) -> ApiResponse[PurchaseData] | JSONResponse:
    try:
        result = await manager.purchase(
            None if payload.event_id is None else str(payload.event_id),
            payload.user_wallet_address,
        )
    except TicketingError as exc:
        if exc.status_code >= 500:
            raise
        return error_response(400, exc.message, details=exc.details)
    return ApiResponse(message="Ticket purchased successfully", data=PurchaseData.from_result(result))


@router.post("/check-in", response_model=ApiResponse[WalletCheckInData])
async def check_in_wallet(
    payload: WalletCheckInRequest, manager: LifecycleManagerDep
) -> ApiResponse[WalletCheckInData] | JSONResponse:
    try:
        result = await manager.check_in(
            payload.user_wallet_address,
            None if payload.event_id is None else str(payload.event_id),
        )
    except TicketingError as exc:
        if exc.status_code >= 500:
            raise
        return error_response(400, exc.message, details=exc.details)
    data = WalletCheckInData(
        status=result.status,
        token_id=result.token_id,
        checked_in_at=result.checked_in_at,
        metadata_updated=result.metadata_updated,
    )
    return ApiResponse(message="Check-in successful! Welcome to the event.", data=data)


@router.get("/{token_id}", response_model=ApiResponse[TicketDetailsData])
async def get_ticket(token_id: str, manager: LifecycleManagerDep) -> ApiResponse[TicketDetailsData]:
    details = await manager.get_ticket(token_id)
    data = TicketDetailsData(
        token=TicketResponse.from_ticket(details.ticket),
        blockchain=None if details.chain_info is None else ChainInfoResponse.from_info(details.chain_info),
    )
    return ApiResponse(message="Ticket retrieved", data=data)


@router.get("/{token_id}/audit", response_model=ApiResponse[list[AuditEntryResponse]])
async def get_ticket_audit(
    token_id: str, manager: LifecycleManagerDep
) -> ApiResponse[list[AuditEntryResponse]]:
    entries = await manager.audit_log(token_id)
    return ApiResponse(
        message="Audit log retrieved",
        data=[AuditEntryResponse.from_entry(entry) for entry in entries],
    )
