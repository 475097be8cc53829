import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from lexdesk.api.routes.auth import router as auth_router
from lexdesk.api.routes.cases import router as cases_router
from lexdesk.api.routes.crud import build_crud_router
from lexdesk.api.routes.metrics import router as metrics_router
from lexdesk.core.config import get_settings
from lexdesk.core.errors import register_exception_handlers
from lexdesk.core.log import configure_logging
from lexdesk.db.session import init_db
from lexdesk.metrics.prometheus import api_request_latency_seconds
from lexdesk.models.practice import Client, Contract, Evidence, Invoice, Matter
from lexdesk.schemas.practice import (
    ClientCreate,
    ClientUpdate,
    ContractCreate,
    ContractUpdate,
    EvidenceCreate,
    EvidenceUpdate,
    InvoiceCreate,
    InvoiceUpdate,
    MatterCreate,
    MatterUpdate,
)

RESOURCES = (
    ("/clients", Client, ClientCreate, ClientUpdate),
    ("/contracts", Contract, ContractCreate, ContractUpdate),
    ("/evidence", Evidence, EvidenceCreate, EvidenceUpdate),
    ("/invoices", Invoice, InvoiceCreate, InvoiceUpdate),
    ("/matters", Matter, MatterCreate, MatterUpdate),
)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Lexdesk API",
        version=settings.version,
        description="Practice-management backend: cases, clients, matters and firm users",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.on_event("startup")
    def on_startup():
        init_db()

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = time.perf_counter()
        status = "500"
        try:
            response: Response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            dt = time.perf_counter() - start
            # route template keeps label cardinality bounded
            route = request.scope.get("route")
            path = getattr(route, "path", request.url.path)
            api_request_latency_seconds.labels(route=path, method=request.method, status=status).observe(dt)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(auth_router)
    app.include_router(cases_router)
    for prefix, model, create_schema, update_schema in RESOURCES:
        app.include_router(build_crud_router(prefix, model, create_schema, update_schema))
    app.include_router(metrics_router)

    return app


app = create_app()
