from contextlib import asynccontextmanager
import logging

from dotenv import load_dotenv

# Load .env before settings are read
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from awb_gateway.api.v1.router import api_router
from awb_gateway.core.config import settings
from awb_gateway.core.database import Base, engine
from awb_gateway.models import transmission  # noqa: F401  registers the audit table
from awb_gateway.services.transmitter import CargoImpTransmitter

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    Base.metadata.create_all(bind=engine)
    if not CargoImpTransmitter().is_configured():
        logger.warning("Transmission endpoint not configured, sends will fail until TRANSMIT_* is set")
    yield
    logger.info(f"{settings.PROJECT_NAME} stopped")


app = FastAPI(title="awb gateway", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/test")
def test_endpoint():
    return {
        "service": "awb-gateway",
        "status": "ok",
        "message": "hello from awb gateway",
    }


@app.get("/health")
def health():
    return {
        "status": "healthy",
        "service": "awb-gateway",
        "transmissionConfigured": CargoImpTransmitter().is_configured(),
    }
