from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

# Must come after load_dotenv so env vars are available
from shopbot.agents.runner import AgentServices               # noqa: E402
from shopbot.api import agent, health                         # noqa: E402
from shopbot.core.config import get_settings                  # noqa: E402
from shopbot.core.db import create_pool                       # noqa: E402
from shopbot.core.logging import configure_logging, get_logger  # noqa: E402

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    pool = create_pool(settings)
    await pool.open()
    app.state.pool = pool
    app.state.services = AgentServices.from_pool(settings, pool)
    log.info("startup", version="0.1.0", environment=settings.environment, model=settings.primary_model)
    try:
        yield
    finally:
        await pool.close()
        log.info("shutdown")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Build the app. Tests pass use_lifespan=False and set app.state themselves."""
    configure_logging()
    app = FastAPI(
        title="Shop Bot",
        description="Furniture store chat agent with hybrid inventory search",
        version="0.1.0",
        lifespan=lifespan if use_lifespan else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(agent.router)
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("shopbot.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
