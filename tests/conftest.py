import pytest
from datetime import datetime, timedelta, timezone

from accounts.models import Role
from dispatch.dispatcher import Dispatcher
from routing.geo import GeoPoint

START = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

# Vedado -> José Martí airport, Havana
VEDADO = GeoPoint(23.140, -82.356)
AIRPORT = GeoPoint(23.009, -82.404)


class FrozenClock:
    """
    Injectable clock: returns the same instant until told to move.
    """
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta):
        self.now = self.now + timedelta(**delta)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def dispatcher(clock):
    """
    Seed accounts plus two active drivers (carlos, luis) and one active client (ana).
    Nobody is logged in when the test starts.
    """
    d = Dispatcher(clock=clock)
    assert d.login("gestor", "gestor")
    assert d.create_user(Role.DRIVER, "carlos", "secret", full_name="Carlos Pérez", phone="51234567")
    assert d.create_user(Role.DRIVER, "luis", "secret", full_name="Luis Gómez", phone="52345678")
    assert d.create_user(Role.CLIENT, "ana", "secret", full_name="Ana Díaz", phone="53456789")
    d.logout()
    return d


def _user_id(dispatcher, username):
    return dispatcher.snapshot.find_user_by_username(username).id


@pytest.fixture
def carlos_id(dispatcher):
    return _user_id(dispatcher, "carlos")


@pytest.fixture
def luis_id(dispatcher):
    return _user_id(dispatcher, "luis")


@pytest.fixture
def ana_id(dispatcher):
    return _user_id(dispatcher, "ana")


@pytest.fixture
def go_online(dispatcher):
    """
    Logs a driver in and marks them available at `location`.
    """
    def _go_online(username="carlos", location=VEDADO):
        assert dispatcher.login(username, "secret")
        result = dispatcher.set_driver_availability(True, location)
        assert result.ok, result.message
    return _go_online


@pytest.fixture
def book_ride(dispatcher):
    """
    Logs ana in and requests Vedado -> airport. Returns the ride id.
    """
    def _book_ride(**overrides):
        assert dispatcher.login("ana", "secret")
        params = dict(
            pickup_address="Calle 23 y L, Vedado",
            pickup_point=VEDADO,
            destination_address="Aeropuerto José Martí",
            destination_point=AIRPORT,
        )
        params.update(overrides)
        result = dispatcher.request_ride(**params)
        assert result.ok, result.message
        return result.id
    return _book_ride


@pytest.fixture
def completed_ride(dispatcher, go_online, book_ride):
    """
    A ride carlos accepted and completed. Leaves carlos logged in.
    """
    go_online("carlos")
    ride_id = book_ride()
    dispatcher.login("carlos", "secret")
    assert dispatcher.accept_ride(ride_id)
    assert dispatcher.complete_ride(ride_id)
    return ride_id
