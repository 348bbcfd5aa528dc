from .registry import (
    DEFAULT_WORKER,
    ENSEMBLE,
    ProfileCatalog,
    WorkerProfile,
    WorkerRegistry,
    load_profile_catalog,
)

__all__ = [
    "DEFAULT_WORKER",
    "ENSEMBLE",
    "ProfileCatalog",
    "WorkerProfile",
    "WorkerRegistry",
    "load_profile_catalog",
]
