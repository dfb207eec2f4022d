"""
Error taxonomy for the staging pipeline.

Errors are raised inside the pipeline and converted into structured
responses at the inbound boundary (see services/staging_service.py).
"""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Signaled error codes"""

    # Caller input
    MISSING_IMAGE = "MISSING_IMAGE"
    MISSING_STYLE = "MISSING_STYLE"

    # Source / codec
    IMAGE_LOAD_FAILED = "IMAGE_LOAD_FAILED"
    IMAGE_NORMALIZATION_FAILED = "IMAGE_NORMALIZATION_FAILED"

    # Configuration
    MISSING_STABILITY_KEY = "MISSING_STABILITY_KEY"
    MISSING_OPENAI_KEY = "MISSING_OPENAI_KEY"
    MISSING_GEMINI_KEY = "MISSING_GEMINI_KEY"
    MISSING_PROVIDER_KEY = "MISSING_PROVIDER_KEY"

    # Generation
    GENERATION_FAILED = "GENERATION_FAILED"
    OUTPUT_INVALID_FORMAT = "OUTPUT_INVALID_FORMAT"
    OUTPUT_TOO_SMALL = "OUTPUT_TOO_SMALL"
    MODEL_RETURNED_UNCHANGED_IMAGE = "MODEL_RETURNED_UNCHANGED_IMAGE"

    # Persistence
    UPLOAD_IMAGE_FAILED = "UPLOAD_IMAGE_FAILED"

    INTERNAL_ERROR = "INTERNAL_ERROR"


RETRYABLE_CODES = frozenset({ErrorCode.GENERATION_FAILED, ErrorCode.INTERNAL_ERROR})


class StagingError(Exception):
    """Base error carrying a signaled code and the request correlation ID"""

    def __init__(self, code: ErrorCode, message: str, request_id: Optional[str] = None):
        super().__init__(f"{code.value}: {message}")
        self.code = code
        self.message = message
        self.request_id = request_id

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES


class ConfigurationError(StagingError):
    """A provider required by the selected pipeline mode is not configured"""


class ProviderError(StagingError):
    """An external image provider failed, timed out, or answered with an error"""

    def __init__(self, provider: str, message: str, request_id: Optional[str] = None):
        super().__init__(ErrorCode.GENERATION_FAILED, message, request_id)
        self.provider = provider


class OutputValidationError(StagingError):
    """Provider output is unusable (bad signature, too small, or unchanged)"""


class GenerationError(StagingError):
    """Every provider and fallback was exhausted"""


class UploadError(StagingError):
    """Persisting a valid generation failed"""

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(ErrorCode.UPLOAD_IMAGE_FAILED, message, request_id)


class PlanningError(Exception):
    """The planner could not produce a usable staging plan; always compensated"""
