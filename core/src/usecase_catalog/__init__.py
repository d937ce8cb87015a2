from usecase_catalog.config import (
    CatalogConfig,
    CatalogPaths,
    load_catalog_config,
    resolve_catalog_paths,
)

__version__ = "0.1.0"

__all__ = [
    "CatalogConfig",
    "CatalogPaths",
    "__version__",
    "load_catalog_config",
    "resolve_catalog_paths",
]
