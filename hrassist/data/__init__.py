"""
Data Layer - Cached, Coalesced Record Access

Key Components:
- TieredCache: Category-partitioned TTL cache with hit/miss statistics
- RecordStore: Authoritative record source (JSON files or in-memory)
- RequestCoalescer: Merges concurrent get-by-id calls into one fetch
- CachedRecordService: Memoized accessors, derived views and composites

Lookup order:
1. Tiered Cache
2. Request Coalescer (get by id) or cached collection (filters)
3. Record Store
"""

from .cache import TieredCache, CacheStats, CacheEntry
from .record_store import RecordStore, JsonRecordStore, InMemoryRecordStore
from .coalescer import RequestCoalescer
from .record_service import (
    CachedRecordService,
    CacheCategory,
    ManagerDashboard,
    EmployeeProfile,
    JobDetails,
    ServiceMetrics,
    query_key,
)

__all__ = [
    "TieredCache",
    "CacheStats",
    "CacheEntry",
    "RecordStore",
    "JsonRecordStore",
    "InMemoryRecordStore",
    "RequestCoalescer",
    "CachedRecordService",
    "CacheCategory",
    "ManagerDashboard",
    "EmployeeProfile",
    "JobDetails",
    "ServiceMetrics",
    "query_key",
]
