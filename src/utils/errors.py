"""
Error handling.

Custom exception classes for consistent error handling across the pipeline.
"""

from typing import Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        code: Optional[str] = None,
    ):
        """
        Initialize pipeline error.

        Args:
            message: Error message
            job_id: Optional job ID associated with the error
            code: Optional error code for categorization
        """
        self.message = message
        self.job_id = job_id
        self.code = code
        super().__init__(self.message)


class ValidationError(PipelineError):
    """Required job fields are missing or empty."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        super().__init__(message, job_id=job_id, code="validation_error")


class NoCredentialsError(PipelineError):
    """A credential string parsed to an empty list."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(
            f"No valid API keys provided for {label}", code="no_credentials"
        )


class AllCredentialsExhaustedError(PipelineError):
    """Every credential failed with a quota/rate-limit error."""

    def __init__(self, label: str, last_error: Exception):
        self.label = label
        self.last_error = last_error
        super().__init__(
            f"All API keys failed for {label}: {last_error}",
            code="credentials_exhausted",
        )


class TransportError(PipelineError):
    """Non-quota failure from an external service call."""

    def __init__(self, message: str, label: Optional[str] = None):
        self.label = label
        super().__init__(message, code="transport_error")


class PlanEmptyError(PipelineError):
    """Text service returned no content for the scene plan."""

    def __init__(self, message: str = "No plan generated"):
        super().__init__(message, code="plan_empty")


class PlanFormatError(PipelineError):
    """Scene plan reply did not contain a usable JSON object."""

    def __init__(self, message: str = "Invalid plan format"):
        super().__init__(message, code="plan_format")


class NoAudioContentError(PipelineError):
    """Speech service response carried no audio payload."""

    def __init__(self, message: str = "No audio content generated"):
        super().__init__(message, code="no_audio")


class NoFootageFoundError(PipelineError):
    """Footage search returned nothing downloadable."""

    def __init__(self, keywords: str):
        self.keywords = keywords
        super().__init__(f"No video found for '{keywords}'", code="no_footage")


class NoClipsError(PipelineError):
    """Concatenation was requested with an empty clip list."""

    def __init__(self, message: str = "No video files provided"):
        super().__init__(message, code="no_clips")


class EncodeError(PipelineError):
    """The encoder failed; carries its diagnostic output."""

    def __init__(self, message: str, diagnostics: str = ""):
        self.diagnostics = diagnostics
        super().__init__(message, code="encode_error")


class JobNotFoundError(PipelineError):
    """Status was requested for an unknown or expired job."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found", job_id=job_id, code="job_not_found")
