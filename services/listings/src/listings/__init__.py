# noqa: D401
"""Edit-session core for apartments and projects in the brokerage console."""

from .cascade import CascadeLevel, CascadeWarning, DependentSelectionCascade
from .errors import (
    InvalidMapUrlError,
    ListingsError,
    MediaCacheUnavailable,
    MediaFetchError,
    NodeBusyError,
    SessionStateError,
    StoreRejectedError,
    StoreUnavailableError,
    TaxonomyValidationError,
    ValidationError,
)
from .geo import GeoUrlExtractor, extract_coordinates
from .media import MediaSetReconciler
from .models import (
    BinaryPayload,
    Coordinates,
    EditMode,
    EntityKind,
    EntitySnapshot,
    LocalMedia,
    TaxonomyNode,
)
from .session import EditSession
from .taxonomy import TaxonomyTree

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Components
    "DependentSelectionCascade",
    "EditSession",
    "GeoUrlExtractor",
    "MediaSetReconciler",
    "TaxonomyTree",
    "extract_coordinates",
    # Models
    "BinaryPayload",
    "CascadeLevel",
    "CascadeWarning",
    "Coordinates",
    "EditMode",
    "EntityKind",
    "EntitySnapshot",
    "LocalMedia",
    "TaxonomyNode",
    # Errors
    "InvalidMapUrlError",
    "ListingsError",
    "MediaCacheUnavailable",
    "MediaFetchError",
    "NodeBusyError",
    "SessionStateError",
    "StoreRejectedError",
    "StoreUnavailableError",
    "TaxonomyValidationError",
    "ValidationError",
]
