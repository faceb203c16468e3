"""Factory for creating backend instances."""

import logging
from typing import Optional, Dict, Type

from imagex.core.base_backend import BaseBackend
from imagex.core.models import ModelTier
from imagex.backends.gemini import GeminiBackend
from imagex.backends.replicate import ReplicateBackend

logger = logging.getLogger(__name__)


class BackendFactory:
    """Factory class for creating backend instances.

    Maps a backend type name (as used in configuration) onto a backend
    class. Both built-in backends talk to a remote service and need an API
    key.
    """

    _backends: Dict[str, Type[BaseBackend]] = {
        "gemini": GeminiBackend,
        "replicate": ReplicateBackend,
    }

    @classmethod
    def create_backend(
        cls,
        backend_type: str,
        api_key: Optional[str] = None,
        models: Optional[Dict[ModelTier, str]] = None,
        timeout: Optional[int] = None
    ) -> BaseBackend:
        """Create a backend instance.

        Args:
            backend_type: The type of backend ("gemini" or "replicate")
            api_key: API key for the remote service
            models: Optional model identifier per tier
            timeout: Optional request timeout in seconds

        Returns:
            An instance of the requested backend

        Raises:
            ValueError: If backend_type is not supported
            ValueError: If the API key is missing
        """
        backend_class = cls._backends.get(backend_type.lower())
        if backend_class is None:
            supported = ", ".join(cls.get_supported_backends())
            raise ValueError(
                f"Unsupported backend type: '{backend_type}'. "
                f"Supported backends: {supported}"
            )

        if not api_key:
            raise ValueError(f"API key is required for {backend_type} backend")

        logger.info(f"Creating {backend_type} backend")

        kwargs = {"api_key": api_key, "models": models}
        if timeout is not None:
            kwargs["timeout"] = timeout
        return backend_class(**kwargs)

    @classmethod
    def get_supported_backends(cls) -> list[str]:
        """Get list of supported backend types.

        Returns:
            List of supported backend type names
        """
        return list(cls._backends)

    @classmethod
    def is_supported(cls, backend_type: str) -> bool:
        """Check if a backend type is supported.

        Args:
            backend_type: The backend type to check

        Returns:
            True if supported, False otherwise
        """
        return backend_type.lower() in cls._backends
