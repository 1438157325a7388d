"""Storage expert package."""

from .collector import StorageCollector
from .expert import StorageExpert
from .recommendations import STORAGE_PREVENTIVE, STORAGE_TEMPLATES

__all__ = [
    "StorageCollector",
    "StorageExpert",
    "STORAGE_PREVENTIVE",
    "STORAGE_TEMPLATES",
]
