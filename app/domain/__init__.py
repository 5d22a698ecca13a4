# app/domain/__init__.py

# 1. The Transaction Entity
from .transaction import (
    FilterOptions,
    PageMeta,
    TransactionCreate,
    TransactionDomain,
    TransactionPage,
    TransactionStats,
    TransactionUpdate,
)

# 2. Query Specification
from .query import QuerySpec, RangeFilter, SortSpec, TransactionFilter


__all__ = [
    "FilterOptions",
    "PageMeta",
    "QuerySpec",
    "RangeFilter",
    "SortSpec",
    "TransactionCreate",
    "TransactionDomain",
    "TransactionFilter",
    "TransactionPage",
    "TransactionStats",
    "TransactionUpdate"
]
