"""
binstore - relational storage engine for the Binner inventory.

``InventoryStorageProvider`` is the entry point; ``binstore.core`` holds the
entity-agnostic persistence engine it is built on.
"""

__version__ = "0.1.0"

from binstore.core import *  # noqa
from binstore.core import __all__ as _core_all
from binstore.models import (
    MountingType,
    OAuthCredential,
    Part,
    PartType,
    Project,
    StoredFile,
    StoredFileKind,
)
from binstore.provider import InventorySnapshot, InventoryStorageProvider, PartSearchResult

__all__ = [
    *_core_all,
    "MountingType",
    "StoredFileKind",
    "OAuthCredential",
    "PartType",
    "Project",
    "Part",
    "StoredFile",
    "InventoryStorageProvider",
    "InventorySnapshot",
    "PartSearchResult",
]
