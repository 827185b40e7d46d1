# feedbackledger/store/__init__.py
from .index import IndexManager
from .records import RecordStore
from .query import filter_records, sort_recent, category_counts

__all__ = ["IndexManager", "RecordStore", "filter_records", "sort_recent", "category_counts"]
