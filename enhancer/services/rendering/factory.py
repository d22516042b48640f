"""
Factory for creating render clients based on configuration.
"""
from typing import Optional
import logging

from enhancer.services.rendering.base import RenderClient
from enhancer.services.rendering.providers.creatomate import CreatomateClient
from enhancer.services.rendering.providers.shotstack import ShotstackClient

logger = logging.getLogger(__name__)


class RenderClientFactory:
    """Factory for creating render clients."""

    PROVIDERS: dict[str, type[RenderClient]] = {
        "shotstack": ShotstackClient,
        "creatomate": CreatomateClient,
    }

    @classmethod
    def create(cls, provider_name: str, config: dict) -> RenderClient:
        """
        Create client instance by name.

        Raises:
            ValueError: If provider name is unknown
        """
        client_class = cls.PROVIDERS.get(provider_name.lower())
        if not client_class:
            available = ", ".join(cls.PROVIDERS.keys())
            raise ValueError(
                f"Unknown render provider: {provider_name}. "
                f"Available providers: {available}"
            )

        client = client_class(config)
        if not client.is_available():
            logger.warning("render_provider_not_configured", extra={"renderer": provider_name})
        return client

    @classmethod
    def create_from_settings(cls, settings, provider_override: Optional[str] = None) -> RenderClient:
        """
        Create client from application settings.

        Args:
            settings: Application settings object
            provider_override: If set, use this provider instead of settings.render_provider
                (jobs remember the provider they were admitted with)
        """
        provider_name = (provider_override or "").strip().lower() or settings.render_provider

        if provider_name == "shotstack":
            config = {
                "api_key": settings.shotstack_api_key,
                "api_url": settings.shotstack_api_url,
                "timeout": settings.shotstack_timeout,
            }
        elif provider_name == "creatomate":
            config = {
                "api_key": settings.creatomate_api_key,
                "api_url": settings.creatomate_api_url,
                "timeout": settings.creatomate_timeout,
                "template_id": settings.creatomate_template_id,
                "source_element": settings.creatomate_source_element,
            }
        else:
            raise ValueError(f"Render provider {provider_name} not supported in settings")

        config["download_timeout"] = settings.render_download_timeout
        return cls.create(provider_name, config)

    @classmethod
    def get_available_providers(cls) -> list[str]:
        return list(cls.PROVIDERS.keys())
