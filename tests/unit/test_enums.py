"""Tests for global enums and ledger type naming."""

from src.im_common.enums import (
    CancelledBy,
    HistoryRecordType,
    OrderStatus,
    TransactionType,
    status_transaction_type,
)


def test_order_status_values() -> None:
    assert [s.value for s in OrderStatus] == [
        "pending",
        "accepted",
        "in_progress",
        "completed",
        "cancelled",
        "refunded",
    ]


def test_status_is_str_comparable() -> None:
    assert OrderStatus.ACCEPTED == "accepted"


def test_cancelled_by_values() -> None:
    assert {c.value for c in CancelledBy} == {"customer", "installer", "admin"}


def test_status_transaction_type() -> None:
    assert status_transaction_type(OrderStatus.IN_PROGRESS) == "order_in_progress"
    assert status_transaction_type("cancelled") == "order_cancelled"


def test_transaction_types_do_not_collide_with_status_types() -> None:
    status_types = {status_transaction_type(s) for s in OrderStatus}
    assert not status_types & {t.value for t in TransactionType}


def test_history_record_types() -> None:
    assert HistoryRecordType.SERVICE_COMPLETED.value == "service_completed"
    assert HistoryRecordType.ORDER_CANCELLED.value == "order_cancelled"


def test_every_transaction_type_has_a_writer() -> None:
    assert {t.value for t in TransactionType} == {
        "order_created",
        "payment_received",
        "refund_issued",
        "installer_assigned",
    }
