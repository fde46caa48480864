"""Shared dependencies for API endpoints."""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from shipquote.config import EngineConfig, is_mock_mode
from shipquote.db.database import SessionLocal
from shipquote.labels import LabelPurchaseOrchestrator
from shipquote.quoting import QuoteService


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_engine_config() -> EngineConfig:
    """Engine configuration, resolved once per process."""
    return EngineConfig.from_env()


def get_easypost_client(config: EngineConfig = Depends(get_engine_config)):
    """Get EasyPost client (mock or real based on environment)."""
    if is_mock_mode():
        from shipquote.mock import MockEasyPostClient

        return MockEasyPostClient(currency=config.currency)

    from shipquote.easypost_client import EasyPostClient

    return EasyPostClient(currency=config.currency)


def get_quote_service(
    db: Session = Depends(get_db),
    client=Depends(get_easypost_client),
    config: EngineConfig = Depends(get_engine_config),
) -> QuoteService:
    return QuoteService(db, client, config)


def get_label_orchestrator(
    db: Session = Depends(get_db),
    client=Depends(get_easypost_client),
    config: EngineConfig = Depends(get_engine_config),
) -> LabelPurchaseOrchestrator:
    return LabelPurchaseOrchestrator(db, client, config)
