"""PickHouse HTTP API.

Serves the picking floor: orders, boxes, labels, shortages and the batch
ledger. Commands are processed synchronously inside the request; PROTEAN_ENV
picks the configuration overlay (in-memory and synchronous by default,
PostgreSQL with asynchronous projections under ``production``).

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from picking.domain import picking
from picking.utils.logging import bind_request_context, clear_request_context
from protean.integrations.fastapi import register_exception_handlers

picking.init()

from picking.api.routes import batch_router, missing_items_router, order_router  # noqa: E402

logger = structlog.get_logger(__name__)

# Paths that need the picking domain context
_DOMAIN_PREFIXES = ("/orders", "/missing-items", "/batches")

app = FastAPI(
    title="PickHouse API",
    description="Order picking, box packing and batch traceability",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)


@app.middleware("http")
async def picking_context(request: Request, call_next):
    """Run domain requests inside the picking domain context, with request-scoped log context."""
    path = request.url.path
    if not path.startswith(_DOMAIN_PREFIXES):
        return await call_next(request)

    bind_request_context(method=request.method, path=path)
    try:
        with picking.domain_context():
            return await call_next(request)
    finally:
        clear_request_context()


app.include_router(order_router)
app.include_router(missing_items_router)
app.include_router(batch_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "domain": picking.name}
