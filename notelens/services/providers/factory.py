"""
Provider Factory

Builds analysis providers from configuration. Providers are plain objects
passed to the orchestrator's constructor; there is no registry.
"""

from __future__ import annotations

import logging

from notelens.core.config import Settings
from notelens.services.providers.base import AnalysisProvider, UnavailableProvider
from notelens.services.providers.local import LocalProvider
from notelens.services.providers.remote import RemoteProvider
from notelens.services.worker_channel import WorkerChannel

logger = logging.getLogger(__name__)


def create_provider(name: str, config: Settings) -> AnalysisProvider:
    """
    Create a provider by name.

    Args:
        name: "local" or "remote".
        config: Settings supplying timeouts and credentials.

    Raises:
        ValueError: Unknown provider name.
    """
    if name in config.disabled_providers:
        logger.warning("Provider %s is disabled", name)
        return UnavailableProvider(name=name, reason=f"{name} provider is disabled")

    if name == "local":
        return LocalProvider(WorkerChannel(timeout=config.WORKER_TIMEOUT_SECONDS))

    if name == "remote":
        if not config.OPENAI_API_KEY:
            logger.warning("OPENAI_API_KEY not set: remote provider will fail fast")
        return RemoteProvider(
            api_key=config.OPENAI_API_KEY,
            model=config.OPENAI_MODEL,
            base_url=config.OPENAI_BASE_URL,
            timeout=config.OPENAI_TIMEOUT_SECONDS,
        )

    raise ValueError(f"Unknown provider: {name!r}")


def create_provider_pair(config: Settings) -> tuple[AnalysisProvider, AnalysisProvider]:
    """Primary and secondary providers in the configured order."""
    primary_name, secondary_name = config.provider_order
    logger.info("Provider order: %s -> %s", primary_name, secondary_name)
    return create_provider(primary_name, config), create_provider(secondary_name, config)
