import json

import pytest

from accounts.models import Role, UserStatus
from dispatch.dispatcher import Dispatcher
from dispatch.errors import InvalidInput
from dispatch.persistence import (
    dump_state,
    load_state,
    load_state_file,
    migrate_state,
    parse_role,
    save_state_file,
)
from dispatch.settings import default_settings
from drivers.models import DriverUser
from rides.models import RideStatus

from conftest import START, VEDADO


def test_migrate_empty_document_seeds_accounts():
    state = migrate_state(None, START)

    assert [u["username"] for u in state["users"]] == ["admin", "gestor"]
    assert state["rides"] == state["complaints"] == state["settlements"] == []
    assert state["settings"]["tariffPerKm"] == 60.0
    assert state["settings"]["payment"]["beneficiaryName"] == "Pal Taxi Agencia"


def test_migrate_fills_missing_payment_fields():
    state = migrate_state({"users": [], "settings": {"tariffPerKm": 75, "payment": {"cardNumber": "1234"}}}, START)

    settings = state["settings"]
    assert settings["tariffPerKm"] == 75
    assert settings["reputationThreshold"] == 50
    assert settings["payment"]["cardNumber"] == "1234"
    assert settings["payment"]["phone"] == "+53 50000000"
    # An existing empty users list is kept as is
    assert state["users"] == []


@pytest.mark.parametrize(
    "raw, role",
    [("gestor", Role.MANAGER), ("chofer", Role.DRIVER), ("cliente", Role.CLIENT), ("admin", Role.ADMIN)],
)
def test_legacy_role_names(raw, role):
    assert parse_role(raw) == role


def test_load_legacy_bare_state():
    document = {
        "users": [
            {"id": "u_admin", "username": "admin", "password": "admin", "role": "admin", "status": "active"},
            {
                "id": "d1", "username": "pedro", "password": "p", "role": "chofer", "status": "active",
                "createdAt": 1700000000000, "reputation": 70, "earningsSinceLastSettlement": 120.5,
                "location": {"lat": 23.1, "lng": -82.3},
            },
        ],
    }

    snapshot = load_state(document, START)

    pedro = snapshot.find_user("d1")
    assert isinstance(pedro, DriverUser)
    assert pedro.reputation == 70
    assert pedro.earnings_since_last_settlement == 120.5
    assert pedro.last_settlement_at == pedro.created_at
    assert pedro.created_at.year == 2023
    assert pedro.vehicle.capacity == 4
    assert snapshot.settings == default_settings()
    assert snapshot.current_user_id is None


@pytest.mark.parametrize(
    "user",
    [
        {"id": "d1", "username": "d", "role": "chofer", "status": "active", "reputation": 150},
        {"id": "d1", "username": "d", "role": "chofer", "status": "active", "earningsSinceLastSettlement": -20},
        {"id": "d1", "username": "d", "role": "chofer", "reputation": "high"},
        {"id": "d1", "role": "cliente"},
        {"id": "d1", "username": "d", "role": "taxista"},
    ],
)
def test_load_rejects_invalid_user(user):
    with pytest.raises(InvalidInput):
        load_state({"users": [user]}, START)


def test_load_rejects_duplicate_usernames():
    users = [
        {"id": "c1", "username": "ana", "role": "client"},
        {"id": "c2", "username": "ana", "role": "client"},
    ]

    with pytest.raises(InvalidInput):
        load_state({"users": users}, START)


def test_load_rejects_accepted_ride_without_driver(dispatcher, book_ride):
    book_ride()
    document = dump_state(dispatcher.snapshot)
    document["state"]["rides"][0]["status"] = "accepted"

    with pytest.raises(InvalidInput):
        load_state(document, START)


def test_load_rejects_out_of_range_settings():
    with pytest.raises(InvalidInput):
        load_state({"users": [], "settings": {"reputationThreshold": 120}}, START)


def test_round_trip_through_document(dispatcher, completed_ride, carlos_id, clock):
    dispatcher.login("ana", "secret")
    assert dispatcher.file_complaint(completed_ride, "Música muy alta")

    document = json.loads(json.dumps(dispatcher.export_state()))
    restored = Dispatcher.from_state(document, clock=clock)

    assert document["version"] == 1
    assert document["state"]["currentUser"]["username"] == "ana"
    assert restored.snapshot == dispatcher.snapshot
    assert restored.get_ride(completed_ride).status == RideStatus.COMPLETED
    assert restored.get_user(carlos_id).reputation == 92


def test_current_user_dropped_when_account_is_gone(dispatcher):
    dispatcher.login("ana", "secret")
    document = dump_state(dispatcher.snapshot)
    document["state"]["users"] = [u for u in document["state"]["users"] if u["username"] != "ana"]

    assert load_state(document, START).current_user_id is None


def test_timestamps_are_epoch_millis(dispatcher, book_ride):
    book_ride()
    ride = dump_state(dispatcher.snapshot)["state"]["rides"][0]

    assert ride["createdAt"] == int(START.timestamp() * 1000)
    assert ride["acceptedAt"] is None
    assert ride["pickupPoint"] == {"lat": VEDADO.lat, "lng": VEDADO.lng}


def test_state_file(tmp_path, dispatcher, clock):
    path = str(tmp_path / "state.json")
    save_state_file(path, dispatcher.snapshot)

    assert load_state_file(path, clock.now) == dispatcher.snapshot
    assert not (tmp_path / "state.json.tmp").exists()


def test_missing_state_file_starts_fresh(tmp_path):
    snapshot = load_state_file(str(tmp_path / "nope.json"), START)

    assert [u.username for u in snapshot.users] == ["admin", "gestor"]
    assert all(u.status == UserStatus.ACTIVE for u in snapshot.users)
