"""
Service assembly - builds the purchase flow once at process start.

The hosting application awaits startup() once and shutdown() on exit.
"""

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from iap_credits.config import Settings, settings
from iap_credits.db.session import close_engine, get_session_factory
from iap_credits.observability import get_logger, setup_logging
from iap_credits.services.ledger import TransactionLedger
from iap_credits.services.product_catalog import ProductCatalog
from iap_credits.services.purchase import PurchaseService
from iap_credits.services.purchase_verifier import VerifierRegistry

logger = get_logger(__name__)


def create_purchase_service(
    config: Settings = settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> PurchaseService:
    """
    Wire catalog, verifiers and ledger into a PurchaseService.

    The catalog is loaded here and shared read-only for the life of the process.
    """
    catalog = ProductCatalog.from_settings(config)
    service = PurchaseService(
        catalog=catalog,
        verifiers=VerifierRegistry.from_settings(config, http_client=http_client),
        ledger=TransactionLedger(session_factory or get_session_factory()),
    )

    logger.info(
        "purchase_service_started",
        service=config.service_name,
        version=config.api_version,
        products=sorted(catalog),
        android_package_name=config.android_package_name,
    )
    return service


async def startup(config: Settings = settings) -> PurchaseService:
    """Configure logging and build the service."""
    setup_logging()
    return create_purchase_service(config)


async def shutdown() -> None:
    """Release database connections."""
    logger.info("purchase_service_shutting_down")
    await close_engine()
    logger.info("database_engine_closed")
