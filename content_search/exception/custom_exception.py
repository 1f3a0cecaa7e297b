import sys
import traceback
from typing import Optional


class ContentSearchException(Exception):
    """
    Base exception for the project.

    Captures where the failure originated (file + line) from either the
    wrapped exception or the exception currently being handled, so a single
    log line is enough to locate the problem.
    """

    def __init__(self, error_message, error_details: Optional[object] = None):
        # Accepts either a plain message or an exception instance
        norm_msg = str(error_message)

        exc_type = exc_value = exc_tb = None

        if error_details is None or error_details is sys:
            exc_type, exc_value, exc_tb = sys.exc_info()
        elif isinstance(error_details, BaseException):
            exc_type = type(error_details)
            exc_value = error_details
            exc_tb = error_details.__traceback__

        # Walk to the last frame: that is where the error was raised
        last_tb = exc_tb
        while last_tb and last_tb.tb_next:
            last_tb = last_tb.tb_next

        self.file_name = last_tb.tb_frame.f_code.co_filename if last_tb else "<unknown>"
        self.lineno = last_tb.tb_lineno if last_tb else -1
        self.error_message = norm_msg

        if exc_type and exc_tb:
            self.traceback_str = "".join(
                traceback.format_exception(exc_type, exc_value, exc_tb)
            )
        else:
            self.traceback_str = ""

        super().__init__(self.error_message)

    def __str__(self):
        return self.error_message

    def describe(self) -> str:
        base = f"Error in [{self.file_name}] at line [{self.lineno}] | Message: {self.error_message}"
        if self.traceback_str:
            return f"{base}\nTraceback:\n{self.traceback_str}"
        return base

    def __repr__(self):
        return f"{type(self).__name__}(file={self.file_name!r}, line={self.lineno}, message={self.error_message!r})"


class ExtractionError(ContentSearchException):
    """Text could not be read from a stored file (recorded, never fatal)."""


class EmbeddingError(ContentSearchException):
    """Embedding stage failure (recorded, never fatal)."""


class SummarizationFailure(ContentSearchException):
    """Summarization provider failure. Always absorbed by the fallback."""


class ProviderError(ContentSearchException):
    """Failure reported by an external capability provider."""

    def __init__(self, error_message, error_details: Optional[object] = None, status_code: Optional[int] = None):
        super().__init__(error_message, error_details)
        self.status_code = status_code


class ProviderTransient(ProviderError):
    """Temporary provider condition (e.g. model still loading); retried with backoff."""


class ProviderPermanent(ProviderError):
    """Endpoint gone / not found / unusable response; triggers endpoint or model fallback."""


class ProviderExhausted(EmbeddingError):
    """Every provider of a fallback chain failed."""


class NotFoundError(ContentSearchException):
    """Requested content item does not exist."""


class ValidationError(ContentSearchException):
    """Caller input rejected (empty query or tag)."""
