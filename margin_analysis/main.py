import logging
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from margin_analysis.core.config import settings
from margin_analysis.database import engine, Base
from margin_analysis import models  # noqa: F401  (register tables)

from margin_analysis.routers import auth, users, clients, projects, admin_rates

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(users.router)
app.include_router(clients.router, prefix="/clients", tags=["Clients"])
app.include_router(projects.router, prefix="/projects", tags=["Projects"])
app.include_router(admin_rates.router, prefix="/admin", tags=["Admin"])


@app.on_event("startup")
def create_tables():
    logger.info("Creating database tables if not exist...")
    Base.metadata.create_all(bind=engine)

    from margin_analysis.migrations.add_baseline_final_columns import ensure_margin_columns
    from margin_analysis.seed.seed_margin import seed_margin_reference_data
    from margin_analysis.utils.currency import get_currency_service

    ensure_margin_columns()
    seed_margin_reference_data()
    logger.info("Reference data seeded.")

    try:
        get_currency_service().initialize_cache()
    except Exception:
        # conversions fall back to the store, then to a refresh
        logger.exception("Could not initialize currency cache")

    logger.info("Database ready.")


@app.get("/health")
def health():
    return {"status": "OK", "timestamp": datetime.utcnow().isoformat()}


@app.get("/")
def root():
    return {
        "message": settings.app_name,
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "auth": "/auth",
            "clients": "/clients",
            "projects": "/projects",
            "admin": "/admin",
        },
    }
