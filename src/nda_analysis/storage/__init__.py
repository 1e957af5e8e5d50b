"""
Storage adapters for the NDA analysis pipeline.
"""

from nda_analysis.storage.category_table import (
    CategoryRow,
    CategorySource,
    get_category_source,
)
from nda_analysis.storage.redis_cache import RedisCache, get_redis_cache
from nda_analysis.storage.reference_store import ReferenceStore, get_reference_store

__all__ = [
    "CategoryRow",
    "CategorySource",
    "get_category_source",
    "RedisCache",
    "get_redis_cache",
    "ReferenceStore",
    "get_reference_store",
]
