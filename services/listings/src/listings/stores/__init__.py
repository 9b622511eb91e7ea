"""Collaborator interfaces and their HTTP implementations."""

from .api import ApiClient, ApiEntityStore, ApiTaxonomyStore, HttpMediaByteStore
from .base import EntityStore, GeoHierarchyStore, MediaByteStore, TaxonomyStore
from .provinces import ProvincesGeoStore

__all__ = [
    "ApiClient",
    "ApiEntityStore",
    "ApiTaxonomyStore",
    "EntityStore",
    "GeoHierarchyStore",
    "HttpMediaByteStore",
    "MediaByteStore",
    "ProvincesGeoStore",
    "TaxonomyStore",
]
