"""Credential capability consumed by the batch orchestrator."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CredentialProvider(ABC):
    """Source of the API key, with an out-of-band selection flow."""

    @abstractmethod
    async def has_credential(self) -> bool:
        """Check whether a credential is currently selected."""
        pass

    @abstractmethod
    async def request_credential_selection(self) -> None:
        """Ask for a (new) credential to be selected."""
        pass

    @abstractmethod
    def get_credential(self) -> Optional[str]:
        """Get the currently selected credential, if any."""
        pass


class EnvCredentialProvider(CredentialProvider):
    """Credential read from the environment (or .env file).

    Selecting a credential re-runs the loader, so a key written to the
    environment or .env while the app is running is picked up on the next
    generation.

    Example:
        provider = EnvCredentialProvider(lambda: Settings().gemini_api_key)
    """

    def __init__(self, loader: Callable[[], Optional[str]]):
        """Initialize the provider.

        Args:
            loader: Callable returning the current API key, or None/"" if unset
        """
        self._loader = loader
        self._credential = loader() or None

    async def has_credential(self) -> bool:
        return bool(self._credential)

    async def request_credential_selection(self) -> None:
        logger.warning("Credential selection requested; reloading API key from environment")
        self._credential = await asyncio.to_thread(self._loader) or None
        if self._credential:
            logger.info("API key reloaded")
        else:
            logger.error("No API key available after reload")

    def get_credential(self) -> Optional[str]:
        return self._credential
