import threading

import pytest

from dispatch.errors import Conflict
from rides.models import DRIVER_BOUND_STATUSES, RideStatus
from routing.geo import GeoPoint

from conftest import AIRPORT, VEDADO


def assert_driver_binding(snapshot):
    # A ride carries a driver exactly when it was accepted
    for ride in snapshot.rides:
        assert (ride.driver_id is not None) == (ride.status in DRIVER_BOUND_STATUSES)


def test_request_ride_prices_once(dispatcher, book_ride, ana_id):
    quote = dispatcher.quote(VEDADO, AIRPORT)
    ride = dispatcher.get_ride(book_ride())

    assert ride.status == RideStatus.PENDING
    assert ride.client_id == ana_id
    assert ride.driver_id is None
    assert ride.price == quote.price
    assert ride.eta_min == quote.eta_min

    # A later tariff change does not reprice the ride
    dispatcher.login("gestor", "gestor")
    assert dispatcher.update_settings(tariff_per_km=200.0)
    assert dispatcher.get_ride(ride.id).price == quote.price


def test_request_ride_requires_client(dispatcher):
    dispatcher.login("carlos", "secret")
    result = dispatcher.request_ride(
        pickup_address="A", pickup_point=VEDADO,
        destination_address="B", destination_point=AIRPORT,
    )
    assert not result.ok
    assert result.error == "unauthorized"
    assert dispatcher.snapshot.rides == ()


def test_request_ride_rejects_non_finite_coordinates(dispatcher):
    dispatcher.login("ana", "secret")
    result = dispatcher.request_ride(
        pickup_address="A", pickup_point=GeoPoint(float("nan"), -82.3),
        destination_address="B", destination_point=AIRPORT,
    )
    assert result.error == "invalid_input"


def test_accept_binds_driver_and_takes_them_off_duty(dispatcher, go_online, book_ride, carlos_id, clock):
    go_online("carlos")
    ride_id = book_ride()

    clock.advance(minutes=2)
    dispatcher.login("carlos", "secret")
    result = dispatcher.accept_ride(ride_id, location=GeoPoint(23.135, -82.36))

    assert result.ok
    ride = dispatcher.get_ride(ride_id)
    assert ride.status == RideStatus.ACCEPTED
    assert ride.driver_id == carlos_id
    assert ride.accepted_at == clock.now

    driver = dispatcher.get_user(carlos_id)
    assert driver.available is False
    assert driver.location == GeoPoint(23.135, -82.36)
    assert_driver_binding(dispatcher.snapshot)


def test_second_accept_loses_and_changes_nothing(dispatcher, go_online, book_ride, carlos_id, luis_id):
    go_online("carlos")
    go_online("luis")
    ride_id = book_ride()

    dispatcher.login("carlos", "secret")
    assert dispatcher.accept_ride(ride_id)
    before = dispatcher.snapshot

    dispatcher.login("luis", "secret")
    result = dispatcher.accept_ride(ride_id)

    assert not result.ok
    assert result.error == "conflict"
    assert dispatcher.get_ride(ride_id).driver_id == carlos_id
    assert dispatcher.get_user(luis_id).available is True
    assert dispatcher.snapshot.rides == before.rides


def test_concurrent_accepts_have_exactly_one_winner(dispatcher, go_online, book_ride, carlos_id, luis_id):
    go_online("carlos")
    go_online("luis")
    ride_id = book_ride()

    barrier = threading.Barrier(2)
    outcomes = {}

    def accept(driver_id):
        barrier.wait()
        try:
            dispatcher.rides.accept(driver_id, ride_id)
            outcomes[driver_id] = "won"
        except Conflict:
            outcomes[driver_id] = "lost"

    threads = [threading.Thread(target=accept, args=(d,)) for d in (carlos_id, luis_id)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes.values()) == ["lost", "won"]
    winner = next(d for d, outcome in outcomes.items() if outcome == "won")
    assert dispatcher.get_ride(ride_id).driver_id == winner


def test_unavailable_driver_cannot_accept(dispatcher, book_ride):
    ride_id = book_ride()
    dispatcher.login("carlos", "secret")

    result = dispatcher.accept_ride(ride_id)

    assert result.error == "conflict"
    assert dispatcher.get_ride(ride_id).status == RideStatus.PENDING


def test_accept_missing_ride_is_not_found(dispatcher, go_online):
    go_online("carlos")
    assert dispatcher.accept_ride("ride_nope").error == "not_found"


def test_preferred_driver_is_the_only_one_who_sees_the_ride(dispatcher, go_online, book_ride, carlos_id, luis_id):
    go_online("carlos")
    go_online("luis")
    ride_id = book_ride(preferred_driver_id=carlos_id)

    assert [r.id for r in dispatcher.visible_pending_rides(carlos_id)] == [ride_id]
    assert dispatcher.visible_pending_rides(luis_id) == []

    dispatcher.login("luis", "secret")
    assert dispatcher.accept_ride(ride_id).error == "unauthorized"

    dispatcher.login("carlos", "secret")
    assert dispatcher.accept_ride(ride_id)


def test_preferred_driver_must_exist(dispatcher):
    dispatcher.login("ana", "secret")
    result = dispatcher.request_ride(
        pickup_address="A", pickup_point=VEDADO,
        destination_address="B", destination_point=AIRPORT,
        preferred_driver_id="drv_ghost",
    )
    assert result.error == "not_found"


def test_reject_pending_ride(dispatcher, book_ride):
    ride_id = book_ride()
    dispatcher.login("luis", "secret")

    assert dispatcher.reject_ride(ride_id)

    ride = dispatcher.get_ride(ride_id)
    assert ride.status == RideStatus.REJECTED
    assert ride.driver_id is None
    # Terminal: nobody can pick it up afterwards
    assert dispatcher.reject_ride(ride_id).error == "conflict"
    assert_driver_binding(dispatcher.snapshot)


def test_complete_credits_net_earning(dispatcher, completed_ride, carlos_id, clock):
    ride = dispatcher.get_ride(completed_ride)
    driver = dispatcher.get_user(carlos_id)

    assert ride.status == RideStatus.COMPLETED
    assert ride.completed_at == clock.now
    expected = ride.price - ride.price * 10 / 100
    assert driver.earnings_since_last_settlement == pytest.approx(expected, abs=0.005)
    # Completing does not put the driver back on duty
    assert driver.available is False
    assert_driver_binding(dispatcher.snapshot)


def test_only_assigned_driver_completes(dispatcher, go_online, book_ride):
    go_online("carlos")
    ride_id = book_ride()
    dispatcher.login("carlos", "secret")
    assert dispatcher.accept_ride(ride_id)

    dispatcher.login("luis", "secret")
    assert dispatcher.complete_ride(ride_id).error == "unauthorized"
    assert dispatcher.get_ride(ride_id).status == RideStatus.ACCEPTED


def test_complete_twice_is_a_conflict(dispatcher, completed_ride, carlos_id):
    balance = dispatcher.get_user(carlos_id).earnings_since_last_settlement

    assert dispatcher.complete_ride(completed_ride).error == "conflict"
    assert dispatcher.get_user(carlos_id).earnings_since_last_settlement == balance


def test_ride_queries(dispatcher, completed_ride, book_ride, ana_id, carlos_id):
    pending_id = book_ride()

    assert {r.id for r in dispatcher.rides_for_client(ana_id)} == {completed_ride, pending_id}
    assert [r.id for r in dispatcher.rides_for_driver(carlos_id)] == [completed_ride]
    assert [r.id for r in dispatcher.active_rides()] == [pending_id]
