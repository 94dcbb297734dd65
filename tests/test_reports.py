import pytest

from dispatch.reports import (
    BALANCE_COLUMNS,
    RIDE_COLUMNS,
    driver_balances_frame,
    driver_earnings_frame,
    platform_summary,
    rides_frame,
)


def test_rides_frame_empty(dispatcher):
    df = rides_frame(dispatcher.snapshot)

    assert df.empty
    assert list(df.columns) == RIDE_COLUMNS


def test_earnings_per_driver(dispatcher, completed_ride, carlos_id):
    price = dispatcher.get_ride(completed_ride).price

    df = driver_earnings_frame(dispatcher.snapshot)

    assert len(df) == 1
    row = df.iloc[0]
    assert row["driver_id"] == carlos_id
    assert row["rides"] == 1
    assert row["gross"] == pytest.approx(price)
    assert row["commission"] == pytest.approx(price * 0.10, abs=0.01)
    assert row["net"] == pytest.approx(
        dispatcher.get_user(carlos_id).earnings_since_last_settlement, abs=0.01
    )


def test_earnings_ignores_unfinished_rides(dispatcher, book_ride):
    book_ride()
    assert driver_earnings_frame(dispatcher.snapshot).empty


def test_balances_most_overdue_first(dispatcher, completed_ride, carlos_id, luis_id, clock):
    clock.advance(days=5)

    df = driver_balances_frame(dispatcher.snapshot, clock.now)

    assert list(df.columns) == BALANCE_COLUMNS
    assert set(df["driver_id"]) == {carlos_id, luis_id}
    # Both last settled at creation; carlos owes money so sorts first on the tie
    assert df.iloc[0]["driver_id"] == carlos_id
    assert df.iloc[0]["days_since_settlement"] == pytest.approx(5.0)


def test_platform_summary(dispatcher, completed_ride, book_ride):
    book_ride()
    dispatcher.login("ana", "secret")
    assert dispatcher.file_complaint(completed_ride, "Sucio")

    summary = platform_summary(dispatcher.snapshot)

    assert summary == {
        "clients": 1,
        "drivers": 2,
        "rides": 2,
        "completed_rides": 1,
        "active_rides": 1,
        "complaints": 1,
        "pending_settlements": 0,
    }
