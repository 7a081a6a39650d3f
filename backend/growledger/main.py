from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from growledger.config import settings
from growledger.middleware.exceptions import register_exception_handlers
from growledger.routers import (
    associations,
    audit,
    distributions,
    environments,
    extracts,
    harvests,
    health,
    patients,
    plants,
)

app = FastAPI(
    title="growledger",
    description="Cultivation-to-distribution resource ledger",
    version="0.1.0",
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)

# Scopes
app.include_router(associations.router, prefix="/api/associations", tags=["associations"])
app.include_router(environments.router, prefix="/api/environments", tags=["environments"])

# Regulated entities
app.include_router(plants.router, prefix="/api/plants", tags=["plants"])
app.include_router(harvests.router, prefix="/api/harvests", tags=["harvests"])
app.include_router(distributions.router, prefix="/api/distributions", tags=["distributions"])
app.include_router(extracts.router, prefix="/api/extracts", tags=["extracts"])
app.include_router(patients.router, prefix="/api/patients", tags=["patients"])

# Audit trail
app.include_router(audit.router, prefix="/api/audit-log", tags=["audit"])
