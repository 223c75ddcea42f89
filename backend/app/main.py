import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import router
from app.config import get_settings
from app.database import async_session, engine, Base
from app.services.argumentation import build_pipeline
from app.services.summary_store import SqlSummaryStore

# Import models so SQLAlchemy knows about them when creating tables
from app.models.pipeline_summary import PipelineSummary  # noqa: F401

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


# =============================================================================
# LIFESPAN: Startup and Shutdown Logic
# =============================================================================
#
# Everything BEFORE 'yield' runs once on startup, everything AFTER on shutdown.
#
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""

    # === STARTUP ===
    # Create the pipeline_summaries table if it does not exist yet
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    # === SHUTDOWN ===
    # Close all database connections in the pool
    await engine.dispose()


app = FastAPI(
    title="Argumentation Pipeline",
    description="Multi-perspective reasoning: routing, viewpoint analysis, strong-manning and synthesis",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],  # Vite default
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Application root: the pipeline and its collaborators are built once here
app.state.summary_store = SqlSummaryStore(async_session)
app.state.pipeline = build_pipeline(app.state.summary_store)

app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
