"""Model fetching exports."""

from .fetch_models import CommitSelector, FetchedElements, ModelReference, Page, ProjectSelector
from .model_selection import ModelSelectionError, resolve_model_reference, validate_selectors
from .paginated_fetcher import (
    ELEMENTS_PATH_TEMPLATE,
    FetchError,
    FetchTimeoutError,
    HttpStatusError,
    MalformedPaginationError,
    PaginatedFetcher,
    RetriesExhaustedError,
    TlsValidationError,
)

__all__ = [
    "CommitSelector",
    "FetchedElements",
    "ModelReference",
    "Page",
    "ProjectSelector",
    "ModelSelectionError",
    "resolve_model_reference",
    "validate_selectors",
    "ELEMENTS_PATH_TEMPLATE",
    "FetchError",
    "FetchTimeoutError",
    "HttpStatusError",
    "MalformedPaginationError",
    "PaginatedFetcher",
    "RetriesExhaustedError",
    "TlsValidationError",
]
