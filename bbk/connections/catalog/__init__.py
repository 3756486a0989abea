from .batching import count_batches, iter_batches
from .config import DEFAULT_PAGE_SIZE, ActionVerb, CatalogConfig, SessionMode, SessionState
from .session import (
    ActionResult,
    BatchOutcome,
    CatalogError,
    CatalogSession,
    SessionStateError,
    SyncResult,
)

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "ActionVerb",
    "SessionMode",
    "SessionState",
    "CatalogConfig",
    "CatalogSession",
    "CatalogError",
    "SessionStateError",
    "BatchOutcome",
    "ActionResult",
    "SyncResult",
    "iter_batches",
    "count_batches",
]
