import pytest

from accounts.models import UserStatus
from settlements.models import SettlementStatus


@pytest.fixture
def owed(dispatcher, completed_ride, carlos_id):
    """
    Balance carlos owes after one completed ride.
    """
    return dispatcher.get_user(carlos_id).earnings_since_last_settlement


def test_request_without_balance(dispatcher):
    dispatcher.login("luis", "secret")
    result = dispatcher.request_settlement("receipts/luis.jpg")

    assert result.error == "no_balance"
    assert dispatcher.snapshot.settlements == ()


def test_request_without_evidence(dispatcher, owed):
    result = dispatcher.request_settlement(None)

    assert result.error == "missing_evidence"
    assert dispatcher.snapshot.settlements == ()


@pytest.mark.parametrize("amount", [float("inf"), float("-inf"), float("nan"), "500"])
def test_request_with_unusable_amount(dispatcher, owed, amount):
    result = dispatcher.request_settlement("receipts/carlos.jpg", amount=amount)

    assert result.error == "invalid_input"
    assert dispatcher.snapshot.settlements == ()


def test_request_creates_pending_settlement(dispatcher, owed, carlos_id, clock):
    result = dispatcher.request_settlement("receipts/carlos.jpg")

    assert result.ok
    settlement = dispatcher.get_settlement(result.id)
    assert settlement.status == SettlementStatus.PENDING
    assert settlement.amount == owed
    assert settlement.driver_id == carlos_id
    assert settlement.created_at == clock.now
    assert dispatcher.pending_settlements() == [settlement]
    # Nothing changes for the driver until a manager reviews it
    assert dispatcher.get_user(carlos_id).earnings_since_last_settlement == owed


def test_clients_cannot_request_settlements(dispatcher, owed):
    dispatcher.login("ana", "secret")
    assert dispatcher.request_settlement("x.jpg").error == "unauthorized"


def test_approve_resets_balance_and_clock(dispatcher, owed, carlos_id, clock):
    settlement_id = dispatcher.request_settlement("receipts/carlos.jpg").id
    clock.advance(days=3)

    dispatcher.login("gestor", "gestor")
    assert dispatcher.approve_settlement(settlement_id)

    driver = dispatcher.get_user(carlos_id)
    assert driver.earnings_since_last_settlement == 0.0
    assert driver.last_settlement_at == clock.now

    settlement = dispatcher.get_settlement(settlement_id)
    assert settlement.status == SettlementStatus.APPROVED
    assert settlement.reviewed_at == clock.now
    assert settlement.reviewer_id == "u_gestor"
    assert dispatcher.pending_settlements() == []


def test_drivers_cannot_approve(dispatcher, owed):
    settlement_id = dispatcher.request_settlement("receipts/carlos.jpg").id

    result = dispatcher.approve_settlement(settlement_id)

    assert result.error == "unauthorized"
    assert dispatcher.get_settlement(settlement_id).status == SettlementStatus.PENDING


def test_resolved_settlement_cannot_be_reviewed_again(dispatcher, owed):
    settlement_id = dispatcher.request_settlement("receipts/carlos.jpg").id
    dispatcher.login("admin", "admin")
    assert dispatcher.approve_settlement(settlement_id)

    assert dispatcher.approve_settlement(settlement_id).error == "conflict"
    assert dispatcher.reject_settlement(settlement_id).error == "conflict"


def test_reject_keeps_balance(dispatcher, owed, carlos_id):
    settlement_id = dispatcher.request_settlement("receipts/blurry.jpg").id
    before = dispatcher.get_user(carlos_id)

    dispatcher.login("gestor", "gestor")
    assert dispatcher.reject_settlement(settlement_id, reason="Comprobante ilegible")

    settlement = dispatcher.get_settlement(settlement_id)
    assert settlement.status == SettlementStatus.REJECTED
    assert settlement.rejection_reason == "Comprobante ilegible"
    assert dispatcher.get_user(carlos_id) == before


def test_approval_does_not_reinstate(dispatcher, owed, carlos_id):
    settlement_id = dispatcher.request_settlement("receipts/carlos.jpg").id
    dispatcher.login("gestor", "gestor")
    assert dispatcher.set_user_status(carlos_id, UserStatus.EXPELLED)

    assert dispatcher.approve_settlement(settlement_id)

    driver = dispatcher.get_user(carlos_id)
    assert driver.status == UserStatus.EXPELLED
    assert driver.earnings_since_last_settlement == 0.0


def test_approve_for_deleted_driver(dispatcher, owed, carlos_id):
    settlement_id = dispatcher.request_settlement("receipts/carlos.jpg").id
    dispatcher.login("gestor", "gestor")
    assert dispatcher.delete_user(carlos_id)

    result = dispatcher.approve_settlement(settlement_id)

    assert result.error == "not_found"
    assert dispatcher.get_settlement(settlement_id).status == SettlementStatus.PENDING


def test_unknown_settlement(dispatcher):
    dispatcher.login("gestor", "gestor")
    assert dispatcher.approve_settlement("stl_missing").error == "not_found"


def test_payment_reference(dispatcher, owed, carlos_id):
    reference = dispatcher.payment_reference(carlos_id)

    assert reference == f"PalTaxi|Pal Taxi Agencia|0000 0000 0000 0000|+53 50000000|{owed:.2f}|CUP"
    assert dispatcher.payment_reference("u_admin") is None


def test_settlements_for_driver(dispatcher, owed, carlos_id, luis_id):
    settlement_id = dispatcher.request_settlement("receipts/carlos.jpg").id

    assert [s.id for s in dispatcher.settlements_for_driver(carlos_id)] == [settlement_id]
    assert dispatcher.settlements_for_driver(luis_id) == []
