from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatrelay.config import settings
from chatrelay.database import Base, engine
from chatrelay.logging_config import get_logger, setup_logging
from chatrelay.routers import admin, auth, webhook

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="chatrelay",
    description="WhatsApp to AI relay with a two-factor protected admin API",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(webhook.router)
app.include_router(auth.router)
app.include_router(admin.router)


@app.on_event("startup")
def create_tables() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("Database ready", extra={"context": {"admins": len(settings.admin_principals())}})


@app.get("/health")
async def health():
    return {"status": "ok"}
