"""
CivicTrack HTTP entry point.

Mounts the bills GraphQL schema at /graphql plus a couple of plain
endpoints for load balancers. Run with ``uvicorn api.main:app``.
"""

# pydantic-settings reads os.environ at import time, so .env goes first
from dotenv import load_dotenv
load_dotenv('.env', override=True)

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from strawberry.fastapi import GraphQLRouter
import logging

from civictrack.config import settings
from civictrack.db.session import db, get_db
from api.graphql import schema

logging.basicConfig(
    level=getattr(logging, settings.app.log_level.upper(), logging.INFO),
    format=settings.app.log_format
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"{settings.app.app_name} API starting "
        f"(environment={settings.app.environment.value}, debug={settings.app.debug})"
    )
    await db.initialize()
    yield
    await db.close()
    logger.info(f"{settings.app.app_name} API stopped")


app = FastAPI(
    title=f"{settings.app.app_name} API",
    description="Congressional bills synced from ProPublica, with status and position aggregates",
    version=settings.app.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.app.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


@app.get("/")
async def root():
    return {
        "name": f"{settings.app.app_name} API",
        "version": settings.app.app_version,
        "graphql": "/graphql",
    }


@app.get("/health")
async def health_check(session: AsyncSession = Depends(get_db)):
    """Liveness plus a round trip to the database."""
    await session.execute(text("SELECT 1"))
    return {"status": "healthy", "service": "civictrack-api"}


@app.exception_handler(Exception)
async def unhandled_exception(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    detail = str(exc) if settings.app.debug else "An unexpected error occurred"
    return JSONResponse(status_code=500, content={"error": "Internal server error", "detail": detail})


async def get_context(request: Request, session: AsyncSession = Depends(get_db)):
    """Per-request GraphQL context; resolvers read the session from ``db``."""
    return {"request": request, "db": session}


app.include_router(
    GraphQLRouter(schema, context_getter=get_context, graphiql=settings.app.debug),
    prefix="/graphql",
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=settings.app.api_host,
        port=settings.app.api_port,
        reload=settings.app.debug
    )
