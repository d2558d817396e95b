"""Tests for LendingEngine."""

from datetime import timedelta

import pytest

from lendingdesk.catalog import ItemCreate
from lendingdesk.directory import HolderCreate, Role
from lendingdesk.results import LendingError


def assert_availability_matches_loans(engine):
    """An item is unavailable iff exactly one account has it out."""
    for item in engine.list_all_items():
        holders = [
            account.holder_id
            for account in engine.ledger.accounts()
            if account.holds(item.id)
        ]
        assert len(holders) <= 1
        assert item.available == (len(holders) == 0)


class TestBorrow:
    """Tests for borrowing."""

    def test_borrow_success(self, library, clock):
        result = library.borrow(111, 50)

        assert result.success
        assert result.value.due_at == clock.now + timedelta(days=15)
        assert not library.get_item(50).available
        assert library.ledger.get(111).holds(50)
        assert_availability_matches_loans(library)

    def test_faculty_term(self, library, clock):
        result = library.borrow(201, 50)
        assert result.value.due_at == clock.now + timedelta(days=30)

    def test_unknown_holder(self, library):
        result = library.borrow(999, 50)
        assert result.error == LendingError.NOT_FOUND

    def test_unknown_item(self, library):
        result = library.borrow(111, 999)
        assert result.error == LendingError.NOT_FOUND

    def test_librarian_cannot_borrow(self, library):
        result = library.borrow(1, 50)
        assert result.error == LendingError.PERMISSION_DENIED
        assert library.get_item(50).available

    def test_item_lent_out(self, library):
        library.borrow(111, 50)
        result = library.borrow(112, 50)
        assert result.error == LendingError.UNAVAILABLE

    def test_borrowing_own_loan_again(self, library):
        library.borrow(111, 50)
        result = library.borrow(111, 50)
        # The item is already out, so availability is checked first
        assert result.error == LendingError.UNAVAILABLE
        assert len(library.ledger.get(111).active_loans) == 1

    def test_capacity(self, library):
        for item_id in (50, 51, 52):
            assert library.borrow(111, item_id).success

        result = library.borrow(111, 53)

        assert result.error == LendingError.CAPACITY_EXCEEDED
        assert library.get_item(53).available
        assert len(library.ledger.get(111).active_loans) == 3

    def test_faculty_capacity(self, library):
        for item_id in (7, 50, 51, 52, 53):
            assert library.borrow(201, item_id).success
        assert library.borrow(201, 54).error == LendingError.CAPACITY_EXCEEDED

    def test_unpaid_fine_blocks(self, library):
        library.ledger.get(111).add_fine(0.5)
        result = library.borrow(111, 50)
        assert result.error == LendingError.UNPAID_FINE
        assert library.get_item(50).available

    def test_capacity_checked_before_fine(self, library):
        for item_id in (50, 51, 52):
            library.borrow(111, item_id)
        library.ledger.get(111).add_fine(10.0)
        assert library.borrow(111, 53).error == LendingError.CAPACITY_EXCEEDED


class TestReturn:
    """Tests for returning."""

    def test_return_on_time(self, library, clock):
        library.borrow(111, 50)
        clock.advance(days=15)

        result = library.return_item(111, 50)

        assert result.success
        assert result.value.fine_added == 0
        assert library.get_item(50).available
        assert not library.get_item(50).is_reserved
        account = library.ledger.get(111)
        assert account.active_loans == []
        assert [l.item_id for l in account.history] == [50]
        assert account.fine_balance == 0.0

    def test_late_return_fine(self, library, clock):
        library.borrow(111, 50)
        clock.advance(days=15, hours=7, minutes=45)

        result = library.return_item(111, 50)

        assert result.value.overdue_hours == 7
        assert result.value.fine_added == 70.0
        assert library.ledger.get(111).fine_balance == 70.0

    def test_faculty_pays_no_fine(self, library, clock):
        library.borrow(201, 50)
        clock.advance(days=60)
        library.return_item(201, 50)
        assert library.ledger.get(201).fine_balance == 0.0

    def test_not_held(self, library):
        library.borrow(111, 50)
        result = library.return_item(112, 50)
        assert result.error == LendingError.NOT_HELD
        assert not library.get_item(50).available

    def test_unknown_item(self, library):
        assert library.return_item(111, 999).error == LendingError.NOT_FOUND

    def test_unknown_holder(self, library):
        assert library.return_item(999, 50).error == LendingError.NOT_FOUND


class TestScenarios:
    """End-to-end lending scenarios."""

    def test_student_fine_cycle(self, library, clock):
        assert library.borrow(111, 50).success
        assert not library.get_item(50).available

        clock.advance(days=20)
        result = library.return_item(111, 50)

        # 5 days late: 5 * 24h * 10.0
        assert result.value.fine_added == 1200.0
        assert library.ledger.get(111).fine_balance == 1200.0
        assert library.borrow(111, 51).error == LendingError.UNPAID_FINE

        paid = library.pay_fine(111, 1200.0)
        assert paid.success
        assert paid.value == 0.0
        assert library.borrow(111, 51).success

    def test_reservation_hand_off(self, library):
        # 111 = A, 112 = B, 113 = C
        assert library.borrow(111, 7).success
        assert library.reserve(112, 7).success

        result = library.return_item(111, 7)

        assert result.value.held_for == 112
        item = library.get_item(7)
        assert item.available
        assert library.borrow(113, 7).error == LendingError.UNAVAILABLE
        assert library.borrow(111, 7).error == LendingError.UNAVAILABLE
        assert library.borrow(112, 7).success
        assert not item.is_reserved
        assert_availability_matches_loans(library)

    def test_queue_moves_on_after_head_borrows(self, library):
        library.borrow(111, 7)
        library.reserve(112, 7)
        library.reserve(113, 7)

        library.return_item(111, 7)
        assert library.borrow(113, 7).error == LendingError.UNAVAILABLE
        assert library.borrow(112, 7).success
        library.return_item(112, 7)

        assert library.get_item(7).reservations.head == 113
        assert library.borrow(111, 7).error == LendingError.UNAVAILABLE
        assert library.borrow(113, 7).success

    def test_head_cancelling_releases_hold(self, library):
        library.borrow(111, 7)
        library.reserve(112, 7)
        library.return_item(111, 7)

        assert library.cancel_reservation(112, 7).success
        assert library.borrow(113, 7).success


class TestReservations:
    """Tests for reserve and cancel."""

    def test_reserve_appends(self, library):
        library.borrow(111, 7)
        assert library.reserve(112, 7).value == 1
        assert library.reserve(113, 7).value == 2
        assert list(library.get_item(7).reservations) == [112, 113]

    def test_duplicate_reservation(self, library):
        library.borrow(111, 7)
        library.reserve(112, 7)
        result = library.reserve(112, 7)
        assert result.error == LendingError.DUPLICATE_RESERVATION
        assert len(library.get_item(7).reservations) == 1

    def test_reserve_available_item_allowed_in_core(self, library):
        result = library.reserve(112, 7)
        assert result.success
        assert library.get_item(7).available

    def test_reserve_unknown_item(self, library):
        assert library.reserve(112, 999).error == LendingError.NOT_FOUND

    def test_reserve_unknown_holder(self, library):
        assert library.reserve(999, 7).error == LendingError.NOT_FOUND

    def test_cancel_then_reserve_restores_single_entry(self, library):
        library.borrow(111, 7)
        library.reserve(112, 7)

        assert library.cancel_reservation(112, 7).success
        assert library.reserve(112, 7).success
        assert list(library.get_item(7).reservations) == [112]

    def test_cancel_preserves_order(self, library):
        library.borrow(111, 7)
        for holder_id in (112, 113, 201):
            library.reserve(holder_id, 7)

        library.cancel_reservation(113, 7)

        assert list(library.get_item(7).reservations) == [112, 201]

    def test_cancel_without_reservation(self, library):
        library.borrow(111, 7)
        library.reserve(112, 7)

        result = library.cancel_reservation(113, 7)

        assert result.error == LendingError.NOT_FOUND
        assert list(library.get_item(7).reservations) == [112]

    def test_cancel_on_empty_queue(self, library):
        assert library.cancel_reservation(112, 7).error == LendingError.NOT_FOUND

    def test_list_holder_reservations(self, library):
        library.borrow(111, 7)
        library.borrow(111, 50)
        library.reserve(112, 50)
        library.reserve(112, 7)
        library.reserve(113, 7)

        assert [i.id for i in library.list_holder_reservations(112)] == [7, 50]
        assert [i.id for i in library.list_holder_reservations(113)] == [7]
        assert library.list_holder_reservations(201) == []


class TestPayFine:
    """Tests for fine payment."""

    def test_partial_payment(self, library):
        library.ledger.get(111).add_fine(100.0)
        result = library.pay_fine(111, 40.0)
        assert result.value == 60.0

    def test_overpayment_floors_at_zero(self, library):
        library.ledger.get(111).add_fine(100.0)
        result = library.pay_fine(111, 250.0)
        assert result.success
        assert library.ledger.get(111).fine_balance == 0.0

    def test_unknown_account(self, library):
        assert library.pay_fine(999, 10.0).error == LendingError.NOT_FOUND

    @pytest.mark.parametrize("amount", [-5.0, float("nan"), float("inf")])
    def test_invalid_amount(self, library, amount):
        library.ledger.get(111).add_fine(100.0)
        result = library.pay_fine(111, amount)
        assert result.error == LendingError.INVALID_INPUT
        assert library.ledger.get(111).fine_balance == 100.0


class TestQueries:
    """Tests for profiles, account summaries and reports."""

    def test_authenticate(self, library):
        result = library.authenticate(111, "s3cret")
        assert result.success
        assert result.value.name == "Asha Rao"
        assert result.value.max_concurrent_loans == 3

    def test_authenticate_rejects(self, library):
        assert library.authenticate(111, "wrong").error == LendingError.PERMISSION_DENIED
        assert library.authenticate(999, "s3cret").error == LendingError.PERMISSION_DENIED

    def test_profile_has_no_credential(self, library):
        profile = library.get_holder_profile(111)
        assert "credential" not in profile.model_dump()

    def test_account_summary(self, library, clock):
        library.borrow(111, 50)
        library.borrow(111, 51)
        library.return_item(111, 51)
        clock.advance(days=16)

        summary = library.get_account_summary(111)

        assert [l.item_id for l in summary.active_loans] == [50]
        assert summary.active_loans[0].is_overdue
        assert summary.active_loans[0].title == "Clean Code"
        assert [l.item_id for l in summary.history] == [51]

    def test_list_all_active_loans(self, library, clock):
        library.borrow(111, 50)
        library.borrow(201, 7)
        clock.advance(days=20)

        views = library.list_all_active_loans()

        by_item = {v.item_id: v for v in views}
        assert set(by_item) == {7, 50}
        assert by_item[50].holder_name == "Asha Rao"
        assert by_item[50].is_overdue
        assert by_item[7].role == Role.FACULTY
        assert not by_item[7].is_overdue

    def test_search_items(self, library):
        assert [i.id for i in library.search_items("code")] == [50, 52]
        assert len(library.list_all_items()) == 6


class TestAdministration:
    """Tests for adding and removing items and holders."""

    def test_add_item_duplicate(self, library):
        result = library.add_item(ItemCreate(id=7, title="Other", author="X"))
        assert result.error == LendingError.DUPLICATE_IDENTITY
        assert library.get_item(7).title == "Dune"

    def test_add_holder_duplicate(self, library):
        result = library.add_holder(HolderCreate(id=111, name="X", credential="y"))
        assert result.error == LendingError.DUPLICATE_IDENTITY

    def test_remove_item(self, library):
        assert library.remove_item(54).success
        assert library.get_item(54) is None
        assert library.remove_item(54).error == LendingError.NOT_FOUND

    def test_remove_lent_item_closes_loan(self, library):
        library.borrow(111, 50)
        library.reserve(112, 50)

        assert library.remove_item(50).success

        account = library.ledger.get(111)
        assert account.active_loans == []
        assert [l.item_id for l in account.history] == [50]
        assert library.list_holder_reservations(112) == []

    def test_remove_holder_with_loans_and_fines(self, library):
        library.borrow(111, 50)
        library.ledger.get(111).add_fine(30.0)
        library.borrow(112, 7)
        library.reserve(111, 7)

        result = library.remove_holder(111)

        assert result.success
        assert library.get_holder(111) is None
        assert library.ledger.get(111) is None
        assert library.get_item(50).available
        assert not library.get_item(7).is_reserved_by(111)
        assert_availability_matches_loans(library)

    def test_remove_unknown_holder(self, library):
        assert library.remove_holder(999).error == LendingError.NOT_FOUND


class TestInvariants:
    """Availability stays consistent over a mixed sequence of operations."""

    def test_mixed_sequence(self, library, clock):
        steps = [
            ("borrow", 111, 7),
            ("borrow", 112, 7),
            ("reserve", 112, 7),
            ("borrow", 201, 50),
            ("return", 111, 7),
            ("borrow", 113, 7),
            ("borrow", 112, 7),
            ("return", 201, 50),
            ("borrow", 111, 50),
            ("return", 112, 7),
        ]
        for op, holder_id, item_id in steps:
            clock.advance(hours=5)
            if op == "borrow":
                library.borrow(holder_id, item_id)
            elif op == "return":
                library.return_item(holder_id, item_id)
            else:
                library.reserve(holder_id, item_id)
            assert_availability_matches_loans(library)

        for account in library.ledger.accounts():
            ids = [l.item_id for l in account.active_loans]
            assert len(ids) == len(set(ids))
