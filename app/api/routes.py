from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session
from starlette.datastructures import QueryParams

# Core: settings and the response cache
from app.core.cache import FILTER_OPTIONS_KEY, STATS_KEY, ResponseCache, query_cache_key
from app.core.config import settings

# Layer 4: Data Access (Session)
from app.data_access.database import get_session

# Layer 3: Domain Entities (Pydantic models)
from app.domain.query import QuerySpec
from app.domain.transaction import (
    FilterOptions,
    TransactionCreate,
    TransactionDomain,
    TransactionPage,
    TransactionStats,
    TransactionUpdate,
)

# Layer 2: Services
from app.services.query_translator import QueryTranslator, QueryValue
from app.services.transaction_service import TransactionService


router = APIRouter(prefix="/api/transactions", tags=["Transactions"])


def get_cache(request: Request) -> ResponseCache:
    """FastAPI dependency returning the cache created at application start-up."""
    return request.app.state.cache


SessionDep = Annotated[Session, Depends(get_session)]
CacheDep = Annotated[ResponseCache, Depends(get_cache)]


def query_params_to_mapping(query_params: QueryParams) -> dict[str, QueryValue]:
    """Collapses a query string into a mapping; repeated keys become lists.

    `tags[]=a&tags[]=b` is read the same as `tags=a&tags=b`.
    """
    params: dict[str, QueryValue] = {}
    for key, value in query_params.multi_items():
        if key.endswith("[]"):
            key = key[:-2]
        existing = params.get(key)
        if existing is None:
            params[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            params[key] = [existing, value]
    return params


# --- READ (cached) ---
@router.get("")
def list_transactions(request: Request, session: SessionDep, cache: CacheDep) -> TransactionPage:
    """Search, filter, sort and paginate transactions.

    Query parameters: search, page, perPage, sortBy, sortOrder, gender, region,
    category, paymentMethod, tags, minPrice, maxPrice, startDate, endDate.
    The five multi-value filters may be repeated.
    """
    params = query_params_to_mapping(request.query_params)
    cache_key = query_cache_key(params)

    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    spec: QuerySpec = QueryTranslator().translate(params)
    result = TransactionService(session).list_transactions(spec)

    cache.set(cache_key, result, settings.LIST_CACHE_TTL)
    return result


@router.get("/options")
def get_filter_options(session: SessionDep, cache: CacheDep) -> FilterOptions:
    """Distinct regions and categories used to populate the filter dropdowns."""
    cached = cache.get(FILTER_OPTIONS_KEY)
    if cached is not None:
        return cached

    result = TransactionService(session).get_filter_options()
    # Dropdown values change rarely
    cache.set(FILTER_OPTIONS_KEY, result, settings.OPTIONS_CACHE_TTL)
    return result


@router.get("/stats")
def get_stats(session: SessionDep, cache: CacheDep) -> TransactionStats:
    """Total units, total amount and total discount across all transactions."""
    cached = cache.get(STATS_KEY)
    if cached is not None:
        return cached

    stats = TransactionService(session).get_stats()
    cache.set(STATS_KEY, stats, settings.STATS_CACHE_TTL)
    return stats


# --- WRITE (flush the cache) ---
@router.post("", status_code=status.HTTP_201_CREATED)
def create_transaction(
    data: TransactionCreate,
    session: SessionDep,
    cache: CacheDep,
) -> TransactionDomain:
    """Creates a transaction. Every cached response is dropped afterwards."""
    created = TransactionService(session).create_transaction(data)
    cache.flush()
    return created


@router.put("/{id}")
def update_transaction(
    id: int,
    data: TransactionUpdate,
    session: SessionDep,
    cache: CacheDep,
) -> TransactionDomain:
    """Partially updates a transaction; only the fields sent are changed."""
    updated = TransactionService(session).update_transaction(id, data)
    cache.flush()
    return updated


@router.delete("/{id}")
def delete_transaction(id: int, session: SessionDep, cache: CacheDep) -> TransactionDomain:
    """Deletes a transaction and returns the removed record."""
    deleted = TransactionService(session).delete_transaction(id)
    cache.flush()
    return deleted
