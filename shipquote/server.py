"""FastAPI server for the shipping quote and label engine."""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from shipquote.api import health, labels, quotes  # noqa: E402
from shipquote.config import is_mock_mode  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup/shutdown."""
    from shipquote.db.migrations import run_migrations

    logger.info("Running database migrations...")
    try:
        run_migrations()
        logger.info("Migrations complete")
    except Exception as e:
        logger.error("Migration failed: %s", e)
        # Continue anyway - tables might already exist

    mode = "MOCK" if is_mock_mode() else "LIVE"
    logger.info("Shipping engine started (%s mode)", mode)

    yield


app = FastAPI(
    title="Shipquote",
    description="Shipping rate quoting and label fulfillment",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(quotes.router)
app.include_router(labels.router)


def main():
    """Run the server."""
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "shipquote.server:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
    )


if __name__ == "__main__":
    main()
