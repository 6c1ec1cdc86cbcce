from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from ticketing.metrics import PrometheusExporter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    manager = getattr(request.app.state, "lifecycle_manager", None)
    gateway = None if manager is None else manager.gateway
    return {
        "success": True,
        "message": "OK",
        "data": {
            "status": "ok" if manager is not None else "degraded",
            "storage": getattr(request.app.state, "storage_backend", None),
            "chainMode": getattr(request.app.state, "chain_mode", None),
            "web3Ready": gateway is not None and gateway.is_ready(),
            "contractReady": gateway is not None and gateway.is_contract_ready(),
        },
    }


@router.get("/metrics", response_class=PlainTextResponse)
async def metrics(request: Request) -> str:
    exporter: PrometheusExporter = request.app.state.metrics_exporter
    return exporter.build_payload()
