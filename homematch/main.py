"""
HomeMatch Matching Engine

Composition root: logging and error-tracking setup, and construction of
the matching components.  Every component is built once here and handed
its collaborators explicitly.

Usage:
    from homematch.main import build_matching_service, configure_logging

    configure_logging()
    service = build_matching_service()
    results = service.search_similar_properties("lakefront cabin with dock")
"""

import logging
import sys
from typing import Any, Optional

import openai
import structlog

from homematch.config import Settings, settings as default_settings
from homematch.search.embeddings import EmbeddingGenerator
from homematch.search.fallback import FallbackSearchEngine
from homematch.search.indexer import PropertyIndexer
from homematch.search.matcher import RequirementMatcher
from homematch.search.search import SimilaritySearchEngine
from homematch.search.service import PropertyMatchingService


# =============================================================================
# Structlog Configuration
# =============================================================================
def configure_logging() -> None:
    """
    Configure structlog for JSON logging with ISO timestamps.

    All logs are output as JSON with consistent fields:
    - timestamp: ISO 8601 format
    - level: log level (info, warning, error, etc.)
    - event: log message
    - Additional context fields (property_id, etc.)
    """
    # Shared processors for all loggers
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Route stdlib logging through the structlog formatter
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(default_settings.LOG_LEVEL.upper())

    # Reduce noise from third-party libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


# =============================================================================
# Sentry Configuration
# =============================================================================
def configure_sentry() -> None:
    """
    Initialize Sentry error tracking if SENTRY_DSN is configured.
    """
    if default_settings.SENTRY_DSN:
        try:
            import sentry_sdk
            from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

            sentry_sdk.init(
                dsn=default_settings.SENTRY_DSN,
                integrations=[SqlalchemyIntegration()],
                traces_sample_rate=0.1,
                profiles_sample_rate=0.1,
                environment="development" if default_settings.DEBUG else "production",
            )

            logger = structlog.get_logger()
            logger.info(
                "sentry_initialized", dsn_prefix=default_settings.SENTRY_DSN[:20] + "..."
            )
        except Exception as e:
            logger = structlog.get_logger()
            logger.warning("sentry_init_failed", error=str(e))


# =============================================================================
# Component construction
# =============================================================================
def build_openai_client(settings: Optional[Settings] = None) -> openai.OpenAI:
    settings = settings or default_settings
    return openai.OpenAI(
        api_key=settings.OPENAI_API_KEY,
        timeout=settings.EMBEDDING_TIMEOUT_SECONDS,
    )


def build_indexer(session_factory=None, openai_client=None) -> PropertyIndexer:
    """Indexer only, for Celery workers and maintenance scripts."""
    if session_factory is None:
        from homematch.db.session import SessionLocal
        session_factory = SessionLocal
    embedder = EmbeddingGenerator(openai_client or build_openai_client())
    return PropertyIndexer(session_factory, embedder)


def build_matching_service(
    session_factory=None,
    openai_client=None,
    settings: Optional[Settings] = None,
) -> PropertyMatchingService:
    """
    Wire up the matching engine.

    Args:
        session_factory: SQLAlchemy sessionmaker; defaults to the pooled
            SessionLocal from homematch.db.session.
        openai_client: openai.OpenAI instance; built from settings if omitted.
        settings: Used only when an OpenAI client has to be built.
    """
    if session_factory is None:
        from homematch.db.session import SessionLocal
        session_factory = SessionLocal

    embedder = EmbeddingGenerator(openai_client or build_openai_client(settings))
    fallback = FallbackSearchEngine(session_factory)
    search_engine = SimilaritySearchEngine(session_factory, embedder, fallback)
    matcher = RequirementMatcher(search_engine)
    indexer = PropertyIndexer(session_factory, embedder)

    structlog.get_logger(__name__).info("matching_service_built")
    return PropertyMatchingService(search_engine, matcher, indexer)
