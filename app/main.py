import sys, asyncio, logging
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from app.core.config import settings
from app.db.base import Base
from app.db.session import engine, AsyncSessionLocal
from app.db.models import chatbot, chunk, document, intent, website  # noqa: F401  (register tables)

from app.routers import documents as documents_router
from app.routers import search as search_router
from app.routers import website as website_router
from app.services.pipeline import IngestionPipeline

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="[%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("app")

if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

app = FastAPI(title="Knowledge Base Ingestion API")

# CORS (restrict origins in prod)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(documents_router.router)
app.include_router(website_router.router)
app.include_router(search_router.router)

@app.get("/")
async def root():
    return {"ok": True, "service": "kb-ingest", "routers": ["documents", "website", "search"]}

# Tables are created if missing (MVP). Use migrations in prod.
@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        await conn.exec_driver_sql("create extension if not exists vector")
        await conn.run_sync(Base.metadata.create_all)
    app.state.pipeline = IngestionPipeline.from_settings(settings, AsyncSessionLocal)
    log.info(f"[BOOT] pipeline ready (env={settings.env}, embed_model={settings.embed_model})")

@app.on_event("shutdown")
async def on_shutdown():
    pipeline = getattr(app.state, "pipeline", None)
    if pipeline is not None:
        await pipeline.aclose()
    await engine.dispose()
