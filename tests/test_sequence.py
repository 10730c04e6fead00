from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import make_user, new_invoice
from invoicely.db.session import SessionLocal
from invoicely.services.invoice_service import delete_invoice
from invoicely.services.sequence import format_sequence_number


def test_format_pads_to_width():
    assert format_sequence_number(1) == "INV-001"
    assert format_sequence_number(42) == "INV-042"
    assert format_sequence_number(7, width=5) == "INV-00007"


def test_format_never_truncates():
    assert format_sequence_number(1000) == "INV-1000"


def test_format_rejects_zero():
    with pytest.raises(ValueError):
        format_sequence_number(0)


def test_numbers_increase_per_user(db, user, other_user):
    first = new_invoice(db, user.id)
    second = new_invoice(db, user.id)
    theirs = new_invoice(db, other_user.id)

    assert first.sequence_number == "INV-001"
    assert second.sequence_number == "INV-002"
    assert theirs.sequence_number == "INV-001"


def test_numbers_not_reused_after_delete(db, user):
    new_invoice(db, user.id)
    last = new_invoice(db, user.id)
    delete_invoice(db, user.id, last.id)

    following = new_invoice(db, user.id)

    assert following.sequence_number == "INV-003"


def test_concurrent_creation_yields_distinct_numbers(db, user):
    user_id = user.id

    def create(_):
        session = SessionLocal()
        try:
            return new_invoice(session, user_id).sequence_number
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=20) as pool:
        numbers = list(pool.map(create, range(100)))

    assert len(set(numbers)) == 100
    assert sorted(numbers) == [format_sequence_number(n) for n in range(1, 101)]


def test_concurrent_creation_across_users(db):
    users = [make_user(db, f"user{i}").id for i in range(4)]

    def create(user_id):
        session = SessionLocal()
        try:
            return user_id, new_invoice(session, user_id).sequence_number
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(create, users * 10))

    for user_id in users:
        numbers = sorted(n for uid, n in results if uid == user_id)
        assert numbers == [format_sequence_number(n) for n in range(1, 11)]
