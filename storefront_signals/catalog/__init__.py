"""
Catalog Module
"""
from .store import (
    BannerRecord,
    CatalogStore,
    SqlCatalogStore,
    ProductRecord,
    CategoryRecord,
    ProfileRecord,
)

__all__ = [
    "BannerRecord",
    "CatalogStore",
    "SqlCatalogStore",
    "ProductRecord",
    "CategoryRecord",
    "ProfileRecord",
]
