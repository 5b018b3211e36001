"""redmodel: object mapping over Redis with indices, counters and relations."""

__version__ = "0.1.0"

from redmodel.concurrency import ConcurrencyGuard
from redmodel.config import RedmodelConfig
from redmodel.errors import (
    CasViolationError,
    IndexNotFoundError,
    MissingIDError,
    RedmodelError,
    StorageBackendError,
    UnknownModelError,
)
from redmodel.query import List, MultiSet, MutableSet, Set
from redmodel.session import Session
from redmodel.store import Store, open_store
from redmodel.types import (
    Collection,
    Counter,
    Field,
    ListOf,
    Model,
    Reference,
    SetOf,
    computed_index,
)

__all__ = [
    "__version__",
    "Model",
    "Field",
    "Counter",
    "SetOf",
    "ListOf",
    "Reference",
    "Collection",
    "computed_index",
    "Set",
    "MutableSet",
    "MultiSet",
    "List",
    "Session",
    "Store",
    "open_store",
    "ConcurrencyGuard",
    "RedmodelConfig",
    "RedmodelError",
    "MissingIDError",
    "IndexNotFoundError",
    "CasViolationError",
    "StorageBackendError",
    "UnknownModelError",
]
