from .custom_exception import (
    ContentSearchException,
    EmbeddingError,
    ExtractionError,
    NotFoundError,
    ProviderError,
    ProviderExhausted,
    ProviderPermanent,
    ProviderTransient,
    SummarizationFailure,
    ValidationError,
)

__all__ = [
    "ContentSearchException",
    "EmbeddingError",
    "ExtractionError",
    "NotFoundError",
    "ProviderError",
    "ProviderExhausted",
    "ProviderPermanent",
    "ProviderTransient",
    "SummarizationFailure",
    "ValidationError",
]
