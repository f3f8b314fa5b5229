import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from core.config import settings
from core.database import create_db_and_tables, engine
from core.errors import MarketplaceError, marketplace_error_handler
from core.payment_utils import configure_stripe
from routes.auth import router as auth_router
from routes.bids import router as bids_router
from routes.messages import router as messages_router
from routes.notifications import router as notifications_router
from routes.payment import router as payment_router
from routes.projects import router as project_router
from routes.services import router as services_router
from routes.tokens import router as tokens_router
from services.entitlement_service import expire_lapsed_entitlements

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# =========================================
# 🔄 Hourly entitlement expiry
# =========================================
def run_entitlement_expiry() -> int:
    with Session(engine) as session:
        return expire_lapsed_entitlements(session)


async def entitlement_expiry_loop(interval_seconds: int):
    while True:
        try:
            expired = await asyncio.to_thread(run_entitlement_expiry)
            if expired:
                logger.info(f"🔄 Expired {expired} lapsed entitlements")
        except Exception as e:
            logger.error(f"❌ Entitlement expiry task failed: {e}")
        await asyncio.sleep(interval_seconds)


# =========================================
# 🏁 Lifespan (DB initialization)
# =========================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    print("✅ Database tables created on startup.")
    configure_stripe()

    expiry_task = asyncio.create_task(
        entitlement_expiry_loop(settings.ENTITLEMENT_EXPIRY_INTERVAL_SECONDS)
    )
    yield
    expiry_task.cancel()
    try:
        await expiry_task
    except asyncio.CancelledError:
        pass
    print("✅ Application shutting down.")


# =========================================
#  ✅ FastAPI App
# =========================================
app = FastAPI(lifespan=lifespan, title="CareBid Marketplace Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(MarketplaceError, marketplace_error_handler)


# =========================================
# 📦 Routers
# =========================================
app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
app.include_router(project_router, prefix="/projects", tags=["Projects"])
app.include_router(bids_router, prefix="/bids", tags=["Bids"])
app.include_router(tokens_router, prefix="/tokens", tags=["Tokens"])
app.include_router(services_router, prefix="/services", tags=["Services"])
app.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])
app.include_router(messages_router, prefix="/messages", tags=["Messages"])
app.include_router(payment_router)  # ✅ Stripe checkout + webhook


# =========================================
# 🩺 Health Check
# =========================================
@app.get("/health")
def health_check():
    return {"status": "ok", "message": "Backend is running"}


@app.get("/")
def read_root():
    return {"message": "Welcome to CareBid Backend!"}
