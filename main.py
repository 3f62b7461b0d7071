# =====================================================================
# SECTION START: IMPORTS
# =====================================================================

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import ALERTS_ENABLED, FLIGHT_PROVIDER, OPENAI_API_KEY, smtp_configured
from db import Base, engine
import models  # noqa: F401  registers tables on Base.metadata
from routers.alerts import router as alerts_router

# =====================================================================
# SECTION END: IMPORTS
# =====================================================================

# =====================================================================
# SECTION START: FastAPI APP AND CORS
# =====================================================================

app = FastAPI(title="Flight Alerts")


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    logger.info(
        f"[startup] alerts_enabled={ALERTS_ENABLED} provider={FLIGHT_PROVIDER} "
        f"smtp_configured={smtp_configured()} ai_enabled={bool(OPENAI_API_KEY)}"
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(alerts_router)

# =====================================================================
# SECTION END: FastAPI APP AND CORS
# =====================================================================

# =====================================================================
# SECTION START: ROOT, HEALTH AND ROUTES
# =====================================================================

@app.get("/")
def home():
    return {"message": "Flight alerts backend is running"}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/routes")
def list_routes():
    return [route.path for route in app.routes]

# =====================================================================
# SECTION END: ROOT, HEALTH AND ROUTES
# =====================================================================
