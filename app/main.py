import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core import config
from app.core.logging_config import sanitize_log_data, setup_logging
from app.api.routes import billing, billing_webhook, system

setup_logging(config.LOG_LEVEL, config.LOG_DIR)
logger = logging.getLogger(__name__)


def startup_settings() -> dict:
    return {
        "database_url": config.DATABASE_URL,
        "stripe_secret_key": config.STRIPE_SECRET_KEY,
        "stripe_webhook_secret": config.STRIPE_WEBHOOK_SECRET,
        "stripe_api_version": config.STRIPE_API_VERSION,
        "frontend_url": config.FRONTEND_URL,
        "cors_origins": config.CORS_ORIGINS,
        "run_migrations": config.RUN_MIGRATIONS,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.RUN_MIGRATIONS:
        from app.db.migrate import run_migrations
        run_migrations()
    logger.info(f"Starting Billing API: {sanitize_log_data(startup_settings())}")
    if not config.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY not configured - billing endpoints will return 500")
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Billing API", lifespan=lifespan)

# ✅ CORS: only the configured frontend origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(billing.router)
app.include_router(billing_webhook.router)
app.include_router(system.router)


# ============================================
# ✅ HEALTH CHECK ROOT ENDPOINT
# ============================================

@app.get("/")
def root():
    return {"status": "Billing API running"}
