"""Application configuration management."""

from typing import Optional, Dict
from pydantic_settings import BaseSettings, SettingsConfigDict

from imagex.core.models import ModelTier


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    These settings are automatically loaded from the .env file or environment variables.
    All sensitive data (API keys) should be stored in environment variables, not hardcoded.

    Attributes:
        gemini_api_key: Gemini API key
        replicate_token: Replicate API token (optional second backend)
        default_backend: Which backend to generate with ("gemini" or "replicate")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        timeout: Request timeout in seconds
        stagger_seconds: Delay between the start of consecutive batch calls
        high_quality_image_size: Output size hint for the high-quality tier
        transient_retries: Extra attempts for rate-limit/server failures (0 = none)
        export_dir: Default directory for downloads
        max_history: Maximum number of images kept in session history
        run_integration_tests: Whether to run integration tests
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # API Keys
    gemini_api_key: str = ""
    replicate_token: Optional[str] = None

    # Model Configuration
    gemini_fast_model: str = "gemini-2.5-flash-image"
    gemini_high_quality_model: str = "gemini-3-pro-image-preview"
    replicate_fast_model: str = "black-forest-labs/flux-schnell"
    replicate_high_quality_model: str = "black-forest-labs/flux-1.1-pro"

    # Application Settings
    default_backend: str = "gemini"
    log_level: str = "INFO"
    timeout: int = 120

    # Batch Settings
    stagger_seconds: float = 0.4
    high_quality_image_size: str = "2K"
    transient_retries: int = 0

    # Session / Export Settings
    export_dir: str = "~/Downloads"
    max_history: int = 50

    # Testing
    run_integration_tests: bool = False

    def backend_api_key(self) -> Optional[str]:
        """Get the API key of the configured default backend."""
        if self.default_backend == "replicate":
            return self.replicate_token
        return self.gemini_api_key

    def backend_models(self) -> Dict[ModelTier, str]:
        """Get the model per tier for the configured default backend."""
        if self.default_backend == "replicate":
            return {
                ModelTier.FAST: self.replicate_fast_model,
                ModelTier.HIGH_QUALITY: self.replicate_high_quality_model,
            }
        return {
            ModelTier.FAST: self.gemini_fast_model,
            ModelTier.HIGH_QUALITY: self.gemini_high_quality_model,
        }

    def validate_required_keys(self) -> None:
        """Validate that required API keys are present.

        Raises:
            ValueError: If required API keys are missing
        """
        if self.default_backend not in ("gemini", "replicate"):
            raise ValueError(
                f"Unsupported DEFAULT_BACKEND '{self.default_backend}'. "
                "Use 'gemini' or 'replicate'."
            )

        if not self.gemini_api_key and self.default_backend == "gemini":
            raise ValueError(
                "GEMINI_API_KEY is required when using the Gemini backend. "
                "Please set it in your .env file or environment variables. "
                "Get your key from: https://aistudio.google.com/apikey"
            )

        if not self.replicate_token and self.default_backend == "replicate":
            raise ValueError(
                "REPLICATE_TOKEN is required when using the Replicate backend. "
                "Please set it in your .env file or environment variables. "
                "Get your token from: https://replicate.com/account/api-tokens"
            )


# Global settings instance
settings = Settings()
