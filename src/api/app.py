from __future__ import annotations

import logging
import os
import traceback
from typing import Any, TYPE_CHECKING

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.catalog.products import ProductCatalog
from src.domain.models import OrderStatus
from src.ledger.errors import ConfigurationError, ProgramRejection, ValidationError
from src.utils.config_loader import load_config

if TYPE_CHECKING:
    from src.api.bridge_service import BridgeService

logger = logging.getLogger(__name__)

_bridge_service: BridgeService | None = None
_catalog = ProductCatalog()

# The HTTP surface only lets the admin move orders into these states.
ADMIN_SETTABLE_STATUSES = (OrderStatus.Shipped, OrderStatus.Signed)

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def _require_bridge_service() -> BridgeService:
    if _bridge_service is None or not _bridge_service.is_ready():
        raise HTTPException(status_code=503, detail="Ledger service not ready")
    return _bridge_service


def _ledger_disabled() -> bool:
    return str(os.environ.get("ORDERBRIDGE_DISABLE_LEDGER_SERVICE", "")).strip() in {"1", "true", "TRUE", "yes", "YES"}


def _cors_origins() -> list[str]:
    if _ledger_disabled():
        return DEFAULT_CORS_ORIGINS
    try:
        cfg = load_config()
    except (FileNotFoundError, ValueError) as e:
        logger.warning("Using default CORS origins (config unavailable: %s)", e)
        return DEFAULT_CORS_ORIGINS
    origins = (cfg.get("api") or {}).get("cors_origins")
    return [str(o) for o in origins] if origins else DEFAULT_CORS_ORIGINS


app = FastAPI(
    title="Order Bridge API",
    version="0.1.0",
)


@app.on_event("startup")
async def startup_event():
    global _bridge_service
    if _ledger_disabled():
        logger.info("Ledger service startup skipped (ORDERBRIDGE_DISABLE_LEDGER_SERVICE set).")
        _bridge_service = None
        return

    from src.api.bridge_service import BridgeService

    cfg = load_config()
    try:
        _bridge_service = BridgeService.from_config(cfg)
    except ConfigurationError as e:
        # A missing or broken admin keypair must stop the process from serving.
        logger.error("Ledger service configuration invalid: %s", e)
        raise
    logger.info("Ledger service started (program=%s)", _bridge_service.ledger.program_id)


@app.on_event("shutdown")
async def shutdown_event():
    global _bridge_service
    if _bridge_service:
        await _bridge_service.stop()
        _bridge_service = None


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to catch unhandled errors and return a clean JSON response.
    """
    logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}")
    logger.debug(traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {type(exc).__name__}",
            "message": str(exc)[:200],
        },
    )


@app.get("/api/health")
async def health() -> dict[str, Any]:
    ready = _bridge_service is not None and _bridge_service.is_ready()
    out: dict[str, Any] = {"status": "ok", "ledger_ready": ready, "program_id": None, "admin": None}
    if ready:
        out.update(_bridge_service.describe())
    return out


@app.get("/products")
async def list_products() -> list[dict[str, Any]]:
    logger.info("GET /products request received")
    return [p.to_dict() for p in _catalog.list()]


@app.post("/products", status_code=201)
async def create_product(payload: dict[str, Any] | None = None) -> dict[str, Any]:
    body = payload or {}
    logger.info("POST /products request received: %s", body)
    try:
        product = _catalog.add(
            name=body.get("name"),
            price_lamports=body.get("priceLamports"),
            seller=body.get("seller"),
            image_url=body.get("imageUrl"),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return product.to_dict()


@app.get("/orders/all")
async def list_all_orders() -> list[dict[str, Any]]:
    logger.info("GET /orders/all request received")
    svc = _require_bridge_service()
    orders = await svc.reader.list_all_orders()
    return [o.to_dict() for o in orders]


@app.post("/admin/orders/{trade_id}/set-state")
async def admin_set_order_state(trade_id: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
    status = (payload or {}).get("status")
    logger.info("POST /admin/orders/%s/set-state request received with status: %s", trade_id, status)

    if not trade_id or not status:
        raise HTTPException(status_code=400, detail="Missing tradeId or status")

    allowed = {s.name: s for s in ADMIN_SETTABLE_STATUSES}
    target = allowed.get(str(status))
    if target is None:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status value. Use {' or '.join(repr(n) for n in allowed)}.",
        )

    svc = _require_bridge_service()
    result = await svc.transitioner.transition(trade_id, target)
    if result.ok:
        return {"success": True, "signature": result.signature}

    error = result.error
    if isinstance(error, ValidationError):
        raise HTTPException(status_code=400, detail=str(error))

    content: dict[str, Any] = {
        "detail": "Failed to set order state via blockchain service.",
        "error_type": type(error).__name__,
    }
    if isinstance(error, ProgramRejection):
        content["error_code"] = error.code
        content["error_name"] = error.error_name
        content["logs"] = error.logs
    return JSONResponse(status_code=500, content=content)
