"""
FastAPI dependency injection utilities.

Provides the Type Catalog to API endpoints. The catalog is loaded once
per process from ``VARIABLE_CATALOG_FILE`` (or the built-in attendance
catalog) and shared read-only.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from policy_graph.core.config import settings
from policy_graph.domain.catalog import TypeCatalog, load_catalog


@lru_cache(maxsize=1)
def get_catalog() -> TypeCatalog:
    """
    Type Catalog dependency for FastAPI endpoints.

    Usage:
        @router.get("/variables")
        def list_variables(catalog: CatalogDep):
            return [entry.model_dump() for entry in catalog]
    """
    return load_catalog(settings.variable_catalog_file)


CatalogDep = Annotated[TypeCatalog, Depends(get_catalog)]
