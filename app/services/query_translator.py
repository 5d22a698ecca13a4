import math
from collections.abc import Mapping
from datetime import UTC, datetime, time
from typing import Union

from fastapi import HTTPException, status
from pydantic.alias_generators import to_camel

from app.domain.query import QuerySpec, RangeFilter, SortSpec, TransactionFilter
from app.domain.transaction import TransactionDomain


QueryValue = Union[str, list[str]]

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100
# OFFSET is a signed 64-bit integer on every supported backend
MAX_OFFSET = 2**63 - 1

# Query parameter -> model column for the "is one of" filters
MULTI_VALUE_FIELDS: dict[str, str] = {
    "gender": "gender",
    "region": "region",
    "category": "category",
    "paymentMethod": "payment_method",
    "tags": "tags",
}

# sortBy value -> model column, for every scalar field in camelCase and snake_case
SORTABLE_FIELDS: dict[str, str] = {
    alias: name
    for name in TransactionDomain.model_fields
    if name != "tags"
    for alias in (name, to_camel(name))
}


def _invalid(param: str, value: object, expected: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Invalid value {value!r} for '{param}': expected {expected}.",
    )


class QueryTranslator:
    """Translates flat list-endpoint query parameters into a `QuerySpec`.

    Absent and empty-string parameters are ignored. Malformed numbers, dates
    and sort fields are rejected with a 400 instead of being coerced.
    """

    def translate(self, params: Mapping[str, QueryValue]) -> QuerySpec:
        """Builds the filter, sort and pagination for one list request.

        Args:
            params (Mapping[str, QueryValue]): Raw query parameters; repeated
                keys arrive as lists.

        Returns:
            QuerySpec: The store-level query.

        Raises:
            HTTPException: 400 status if a parameter cannot be parsed.
        """
        page = self._positive_int(params, "page", DEFAULT_PAGE)
        per_page = min(self._positive_int(params, "perPage", DEFAULT_PER_PAGE), MAX_PER_PAGE)
        if (page - 1) * per_page > MAX_OFFSET:
            raise _invalid("page", page, f"at most {MAX_OFFSET // per_page + 1} for perPage={per_page}")

        return QuerySpec(
            filter=self.build_filter(params),
            sort=self.build_sort(params),
            page=page,
            per_page=per_page,
        )

    def build_filter(self, params: Mapping[str, QueryValue]) -> TransactionFilter:
        spec = TransactionFilter()

        search = self._single(params, "search")
        if search:
            spec.search = search

        for param, column in MULTI_VALUE_FIELDS.items():
            values = self._many(params, param)
            if values:
                spec.one_of[column] = values

        min_price = self._number(params, "minPrice")
        max_price = self._number(params, "maxPrice")
        if min_price is not None or max_price is not None:
            spec.total_amount = RangeFilter(gte=min_price, lte=max_price)

        start = self._timestamp(params, "startDate")
        end = self._timestamp(params, "endDate", end_of_day=True)
        if start is not None or end is not None:
            spec.date = RangeFilter(gte=start, lte=end)

        return spec

    def build_sort(self, params: Mapping[str, QueryValue]) -> SortSpec:
        sort_by = self._single(params, "sortBy") or "date"
        if sort_by not in SORTABLE_FIELDS:
            raise _invalid("sortBy", sort_by, f"one of {sorted(set(SORTABLE_FIELDS))}")
        # Anything other than an explicit "asc" sorts newest/largest first
        sort_order = (self._single(params, "sortOrder") or "desc").lower()
        return SortSpec(field=SORTABLE_FIELDS[sort_by], descending=sort_order != "asc")

    # --- Parameter helpers ---

    @staticmethod
    def _single(params: Mapping[str, QueryValue], key: str) -> str | None:
        value = params.get(key)
        if isinstance(value, list):
            value = value[-1] if value else None
        if value is None:
            return None
        value = value.strip()
        return value or None

    @staticmethod
    def _many(params: Mapping[str, QueryValue], key: str) -> list[str]:
        value = params.get(key)
        if value is None:
            return []
        raw = value if isinstance(value, list) else [value]
        values: list[str] = []
        for item in raw:
            item = item.strip()
            if item and item not in values:
                values.append(item)
        return values

    def _number(self, params: Mapping[str, QueryValue], key: str) -> float | None:
        raw = self._single(params, key)
        if raw is None:
            return None
        try:
            number = float(raw)
        except ValueError:
            raise _invalid(key, raw, "a number")
        if not math.isfinite(number):
            raise _invalid(key, raw, "a finite number")
        return number

    def _positive_int(self, params: Mapping[str, QueryValue], key: str, default: int) -> int:
        raw = self._single(params, key)
        if raw is None:
            return default
        try:
            number = int(raw)
        except ValueError:
            raise _invalid(key, raw, "an integer")
        return max(number, 1)

    def _timestamp(
        self,
        params: Mapping[str, QueryValue],
        key: str,
        end_of_day: bool = False,
    ) -> datetime | None:
        raw = self._single(params, key)
        if raw is None:
            return None
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            raise _invalid(key, raw, "an ISO date (YYYY-MM-DD)")
        parsed = parsed.replace(tzinfo=UTC) if parsed.tzinfo is None else parsed.astimezone(UTC)
        # A bare calendar date as the upper bound covers that whole day
        if end_of_day and len(raw) == 10:
            parsed = datetime.combine(parsed.date(), time.max, tzinfo=UTC)
        return parsed


def total_pages(total: int, per_page: int) -> int:
    return math.ceil(total / per_page) if per_page else 0
