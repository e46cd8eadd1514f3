"""
Analysis errors and their HTTP surface.

Every failure the pipeline can report to a caller is an ``AnalysisError``
carrying a stable machine-readable ``code``, a plain-language
``user_message`` and, for retryable conditions, a ``retry_after`` hint in
seconds. Internal details (status numbers, provider bodies, tracebacks) go
to the log only.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from upsc_digest.core.models import AnalysisResponse

logger = logging.getLogger(__name__)


class AnalysisError(Exception):
    code = "ANALYSIS_ERROR"
    status_code = 500
    default_message = (
        "An unexpected error occurred during analysis. "
        "Please try again or contact support if this persists."
    )

    def __init__(
        self,
        detail: str | None = None,
        *,
        user_message: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        self.detail = detail or self.code
        self.user_message = user_message or self.default_message
        self.retry_after = retry_after
        super().__init__(self.detail)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "detail": self.detail,
            "retry_after": self.retry_after,
        }

    def to_response(self) -> AnalysisResponse:
        return AnalysisResponse(
            success=False,
            error=self.user_message,
            code=self.code,
            retry_after=self.retry_after,
        )


# ---------------------------------------------------------------------
# Input errors (never retried)
# ---------------------------------------------------------------------

class InputError(AnalysisError):
    code = "INVALID_DOCUMENT"
    status_code = 400
    default_message = (
        "Could not analyze this document. Please ensure it is a valid text-based PDF or DOCX file."
    )


class FileTooLargeError(InputError):
    code = "FILE_TOO_LARGE"


class UnsupportedFileTypeError(InputError):
    code = "UNSUPPORTED_FILE_TYPE"
    default_message = "Unsupported file type. Please upload a PDF or DOCX file."


class TooManyPagesError(InputError):
    code = "TOO_MANY_PAGES"


class ExtractionError(InputError):
    code = "UNREADABLE_DOCUMENT"
    default_message = (
        "Could not extract text from this file. It may be corrupted or password-protected. "
        "Please try a different file."
    )


class ScannedDocumentError(ExtractionError):
    code = "IMAGE_BASED_DOCUMENT"
    default_message = (
        "This document appears to be scanned or image-based. "
        "Please upload a text-based PDF, or convert the scan with OCR software first."
    )


class NoContentError(InputError):
    code = "NO_CONTENT"
    default_message = (
        "No readable news content was found in this document. "
        "Pages with very little text are skipped."
    )


# ---------------------------------------------------------------------
# Model service errors
# ---------------------------------------------------------------------

class ModelError(AnalysisError):
    pass


class TransientModelError(ModelError):
    code = "ANALYSIS_UNAVAILABLE"
    status_code = 503
    default_message = (
        "The analysis service did not respond in time. Please try again in a minute."
    )

    def __init__(self, detail: str | None = None, *, status: int | None = None, **kwargs: Any) -> None:
        self.status = status
        super().__init__(detail, **kwargs)


class ModelTimeoutError(TransientModelError):
    code = "ANALYSIS_TIMEOUT"


class RateLimitedError(ModelError):
    code = "SERVICE_BUSY"
    status_code = 429
    default_message = (
        "The analysis service is currently at capacity. "
        "Please wait about a minute and try again. Your file is fine."
    )


class ServiceUnavailableError(ModelError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503
    default_message = (
        "The analysis service is temporarily unavailable. Please try again in a few minutes, "
        "and contact your administrator if this continues."
    )


class ModelRequestError(ModelError):
    code = "INVALID_DOCUMENT"
    status_code = 400
    default_message = (
        "The analysis service could not process this document. "
        "It may be too complex or contain unsupported content."
    )


class ModelOutputError(ModelError):
    code = "ANALYSIS_ERROR"
    default_message = (
        "The analysis result could not be read. Please try again."
    )


# ---------------------------------------------------------------------
# Governor and configuration
# ---------------------------------------------------------------------

class GovernorBusyError(AnalysisError):
    code = "CONCURRENT_REQUEST_BLOCKED"
    status_code = 429


class CooldownActiveError(AnalysisError):
    code = "COOLDOWN_ACTIVE"
    status_code = 429


class ConfigurationError(AnalysisError):
    code = "CONFIGURATION_ERROR"
    default_message = (
        "The analysis service is not configured. Please contact your administrator."
    )


# ---------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------

async def analysis_error_handler(request: Request, exc: AnalysisError) -> JSONResponse:
    logger.warning(
        "Analysis failed on %s %s: %s",
        request.method,
        request.url.path,
        exc.to_dict(),
    )
    headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(exclude_none=True),
        headers=headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Full traceback stays in the log, never in the response.
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content=AnalysisError().to_response().model_dump(exclude_none=True),
    )
