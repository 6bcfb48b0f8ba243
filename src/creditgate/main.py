from __future__ import annotations

import asyncio
import logging
import os
import sys
import uvicorn

# Install uvloop for better async performance (Linux/macOS only)
if sys.platform != "win32":
    try:
        import uvloop

        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    except ImportError:
        pass  # uvloop not available, continue with default event loop

from .application.payment_terms import PaymentTermsBuilder
from .domain.shared.errors import ConfigurationError
from .envs.gateway_env import get_settings

logger = logging.getLogger("creditgate")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _setup_prometheus_multiproc_dir() -> None:
    """Prepare the Prometheus multiprocess directory before Uvicorn forks workers.

    This ensures each process writes to a clean directory so metrics can be
    correctly aggregated by the multiprocess collector.
    """
    prom_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if not prom_dir:
        return

    os.makedirs(prom_dir, exist_ok=True)
    for filename in os.listdir(prom_dir):
        file_path = os.path.join(prom_dir, filename)
        if os.path.isfile(file_path):
            os.remove(file_path)


def main() -> None:
    """Main entry point for the credit gateway."""
    _configure_logging(os.environ.get("LOG_LEVEL", "info"))

    try:
        settings = get_settings()
        # Fail before binding the port if the payment terms are unusable.
        PaymentTermsBuilder().build(settings)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    logger.info("Ledger: %s", settings.ledger_base_url)
    logger.info("Facilitator: %s", settings.facilitator_url)
    logger.info("Server is running on %s", settings.public_url)

    _setup_prometheus_multiproc_dir()

    uvicorn.run(
        "creditgate.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
