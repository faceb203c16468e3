"""Exception types raised across the generation and export pipelines."""

from typing import List, Optional


class InputValidationError(ValueError):
    """User input was rejected before any remote call was made.

    Raised for an empty prompt, a prompt over the word limit, or a
    malformed structured override.
    """


class GenerationError(RuntimeError):
    """A single batch member failed to produce an image."""


class SafetyBlocked(GenerationError):
    """The remote service refused the request on content-safety grounds."""


class TransientGenerationError(GenerationError):
    """A rate limit or server-side failure that may succeed on a later attempt."""


class AccessDenied(ConnectionError):
    """The credential is missing or was rejected by the remote service."""


class BatchExhausted(RuntimeError):
    """Every member of a batch failed.

    Attributes:
        failures: The per-member exceptions, in request order
    """

    def __init__(self, message: str, failures: Optional[List[BaseException]] = None):
        super().__init__(message)
        self.failures = failures or []


class DecodeError(ValueError):
    """Image data could not be decoded."""


class ExportError(RuntimeError):
    """Conversion or saving of an image for download failed."""


_AUTHORIZATION_SIGNATURES = ("403", "permission", "not found")


def is_authorization_failure(error: BaseException) -> bool:
    """Check whether an error means the credential was missing or rejected."""
    if isinstance(error, AccessDenied):
        return True
    message = str(error).lower()
    return any(signature in message for signature in _AUTHORIZATION_SIGNATURES)
