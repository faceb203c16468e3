"""Abstract base class for remote image generation backends."""

from abc import ABC, abstractmethod
from typing import Optional, Dict

from .models import BackendRequest, ModelTier


class BaseBackend(ABC):
    """Abstract interface that all image generation backends must implement.

    A backend turns one BackendRequest into one image. Batching, prompt
    compilation and quality review happen above this layer, so backends can
    be swapped without changing the orchestration logic.

    Attributes:
        api_key: API key for the remote service
        models: Model identifier per tier
    """

    def __init__(self, api_key: Optional[str] = None, models: Optional[Dict[ModelTier, str]] = None):
        """Initialize the backend.

        Args:
            api_key: API key for authentication with the remote service
            models: Optional model identifier per tier (defaults per backend)
        """
        self.api_key = api_key
        self.models = {**self.default_models, **(models or {})}

    @abstractmethod
    async def generate_image(self, request: BackendRequest) -> str:
        """Generate one image.

        Args:
            request: The wire-level request for a single batch member

        Returns:
            The image as a data URI (data:<mime>;base64,<payload>)

        Raises:
            SafetyBlocked: If the service refused the request on safety grounds
            TransientGenerationError: If the service is rate limiting or failing
            AccessDenied: If the credential is missing or rejected
            GenerationError: If the generation fails for any other reason
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the human-readable name of this backend.

        Returns:
            The backend name (e.g., "Gemini", "Replicate")
        """
        pass

    @property
    @abstractmethod
    def default_models(self) -> Dict[ModelTier, str]:
        """Get the model used for each tier when none is configured."""
        pass

    def model_for(self, tier: ModelTier) -> str:
        """Get the model identifier used for a tier."""
        return self.models[tier]

    def set_api_key(self, api_key: str) -> None:
        """Replace the credential used for subsequent calls.

        Args:
            api_key: The newly selected API key
        """
        self.api_key = api_key

    def __repr__(self) -> str:
        """String representation of the backend."""
        return f"{self.__class__.__name__}(name='{self.name}')"
