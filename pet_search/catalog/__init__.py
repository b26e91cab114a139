"""Externally-owned pet/group catalog access"""

from .catalog_reader import CatalogReader, InMemoryCatalog, RedisCatalog

__all__ = ["CatalogReader", "InMemoryCatalog", "RedisCatalog"]
