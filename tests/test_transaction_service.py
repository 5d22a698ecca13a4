from collections.abc import Callable
from datetime import UTC, datetime

import pytest
from fastapi import HTTPException
from sqlmodel import Session, select

from app.data_access.models import Transaction, TransactionTag
from app.domain.transaction import TransactionCreate, TransactionUpdate
from app.services.query_translator import QueryTranslator
from app.services.transaction_service import TransactionService
from conftest import build_transaction


AddTransactions = Callable[..., list[Transaction]]


def run_query(session: Session, **params: str | list[str]):
    spec = QueryTranslator().translate(params)
    return TransactionService(session).list_transactions(spec)


# --- 1. Pagination & Sorting ---

def test_pagination_metadata_and_last_page(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(*(build_transaction(i) for i in range(23)))

    first = run_query(session, perPage="10")
    last = run_query(session, perPage="10", page="3")

    assert first.meta.total == 23
    assert first.meta.total_pages == 3
    assert len(first.data) == 10
    assert len(last.data) == 3
    assert last.meta.page == 3
    # Default sort is newest first, so the last page holds the three oldest
    assert [t.customer_id for t in last.data] == ["CUST-0002", "CUST-0001", "CUST-0000"]


def test_default_sort_is_date_descending(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(*(build_transaction(i) for i in range(5)))

    dates = [t.date for t in run_query(session).data]
    assert dates == sorted(dates, reverse=True)


def test_sort_by_amount_ascending(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(
        build_transaction(0, total_amount=300.0),
        build_transaction(1, total_amount=100.0),
        build_transaction(2, total_amount=200.0),
    )

    result = run_query(session, sortBy="totalAmount", sortOrder="asc")
    assert [t.total_amount for t in result.data] == [100.0, 200.0, 300.0]


# --- 2. Filtering ---

def test_multi_value_gender_filter(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(
        build_transaction(0, gender="Male"),
        build_transaction(1, gender="Female"),
        build_transaction(2, gender="Other"),
    )

    assert run_query(session, gender=["Male", "Female"]).meta.total == 2
    assert run_query(session, gender="Female").meta.total == 1
    assert run_query(session).meta.total == 3


def test_min_price_only(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(
        build_transaction(0, total_amount=50.0),
        build_transaction(1, total_amount=100.0),
        build_transaction(2, total_amount=10_000.0),
    )

    result = run_query(session, minPrice="100")
    assert sorted(t.total_amount for t in result.data) == [100.0, 10_000.0]


def test_price_window(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(*(build_transaction(i, total_amount=float(i * 100)) for i in range(6)))

    result = run_query(session, minPrice="100", maxPrice="300")
    assert sorted(t.total_amount for t in result.data) == [100.0, 200.0, 300.0]


def test_date_range_is_inclusive(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(*(build_transaction(i) for i in range(10)))  # 2023-01-01 .. 2023-01-10

    result = run_query(session, startDate="2023-01-03", endDate="2023-01-05")
    assert sorted(t.date.day for t in result.data) == [3, 4, 5]


def test_tags_filter_matches_any_intersection(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(
        build_transaction(0, tags=["audio", "wireless"]),
        build_transaction(1, tags=["kitchen"]),
        build_transaction(2, tags=[]),
    )

    result = run_query(session, tags=["wireless", "kitchen"])
    assert result.meta.total == 2
    assert run_query(session, tags="garden").meta.total == 0


def test_search_matches_name_phone_or_product(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(
        build_transaction(0, customer_name="Neha Sharma"),
        build_transaction(1, phone_number="9000012345"),
        build_transaction(2, product_name="Sharpener"),
        build_transaction(3, customer_name="Arjun Rao"),
    )

    assert run_query(session, search="SHARMA").meta.total == 1
    assert run_query(session, search="00012").meta.total == 1
    assert run_query(session, search="shar").meta.total == 2


def test_search_treats_wildcards_literally(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(build_transaction(0), build_transaction(1))
    assert run_query(session, search="%").meta.total == 0


def test_filters_are_combined_with_and(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(
        build_transaction(0, gender="Female", region="North"),
        build_transaction(1, gender="Female", region="South"),
        build_transaction(2, gender="Male", region="North"),
    )

    result = run_query(session, gender="Female", region="North")
    assert [t.customer_id for t in result.data] == ["CUST-0000"]


# --- 3. Mutations ---

def test_create_assigns_id_timestamps_and_tags(session: Session) -> None:
    created = TransactionService(session).create_transaction(TransactionCreate(
        customerId="C-1", customerName="Neha", phoneNumber="999", productId="P-1",
        productName="Earbuds", quantity=2, date="2023-08-14", tags=[" audio ", "audio", ""],
    ))

    assert created.id is not None
    assert created.created_at is not None
    assert created.currency == "INR"
    assert created.tags == ["audio"]
    assert created.date == datetime(2023, 8, 14, tzinfo=UTC)


def test_update_changes_only_sent_fields(session: Session, add_transactions: AddTransactions) -> None:
    (tx,) = add_transactions(build_transaction(0, tags=["old"]))
    service = TransactionService(session)

    updated = service.update_transaction(tx.id, TransactionUpdate(quantity=5, tags=["new", "shiny"]))

    assert updated.quantity == 5
    assert updated.tags == ["new", "shiny"]
    assert updated.customer_name == "Customer 0"
    remaining = session.exec(select(TransactionTag.tag)).all()
    assert sorted(remaining) == ["new", "shiny"]


def test_update_missing_raises_404(session: Session) -> None:
    with pytest.raises(HTTPException) as exc_info:
        TransactionService(session).update_transaction(999, TransactionUpdate(quantity=1))
    assert exc_info.value.status_code == 404


def test_delete_returns_record_and_repeat_is_404(session: Session, add_transactions: AddTransactions) -> None:
    (tx,) = add_transactions(build_transaction(0, tags=["a"]))
    service = TransactionService(session)

    deleted = service.delete_transaction(tx.id)
    assert deleted.customer_id == "CUST-0000"
    assert session.exec(select(TransactionTag)).all() == []

    with pytest.raises(HTTPException) as exc_info:
        service.delete_transaction(tx.id)
    assert exc_info.value.status_code == 404


# --- 4. Options & Aggregates ---

def test_unique_values_are_sorted_and_skip_blanks(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(
        build_transaction(0, region="West"),
        build_transaction(1, region="East"),
        build_transaction(2, region="West"),
        build_transaction(3, region=None),
    )

    assert TransactionService(session).get_unique_values("region") == ["East", "West"]


def test_unique_values_rejects_unknown_field(session: Session) -> None:
    with pytest.raises(ValueError):
        TransactionService(session).get_unique_values("phone_number")


def test_stats_sum_units_and_amounts(session: Session, add_transactions: AddTransactions) -> None:
    add_transactions(
        build_transaction(0, quantity=2, total_amount=200.0, discount_percent=10),
        build_transaction(1, quantity=3, total_amount=450.5),
    )

    stats = TransactionService(session).get_stats()
    assert stats.total_units == 5
    assert stats.total_amount == pytest.approx(650.5)
    assert stats.total_discount == 0


def test_stats_on_empty_collection(session: Session) -> None:
    stats = TransactionService(session).get_stats()
    assert (stats.total_units, stats.total_amount, stats.total_discount) == (0, 0, 0)
