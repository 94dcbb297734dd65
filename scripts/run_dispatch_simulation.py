import logging
import os
from datetime import datetime, timedelta, timezone

import pandas as pd

from accounts.models import Role
from dispatch.dispatcher import Dispatcher
from dispatch.persistence import save_state_file
from dispatch.reports import driver_balances_frame, driver_earnings_frame, platform_summary
from drivers.models import VehicleInfo
from rides.pricing import format_currency
from routing.geo import GeoPoint
from scripts.generate_mock_data import generate_mock_rides
from scripts.generate_mock_drivers import generate_mock_drivers

logger = logging.getLogger("simulation")


class SimulationClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def set(self, day: int, hour: int, start: datetime):
        self.now = start + timedelta(days=day, hours=hour)


def load_csv(base_dir, filename, generate):
    """
    Reads sampledata/<filename>, generating it first when missing.
    """
    path = os.path.join(base_dir, "sampledata", filename)
    if not os.path.exists(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)
        generate(path)
    return pd.read_csv(path)


def onboard(dispatcher, drivers_df, rides_df):
    """
    The manager creates every driver and client up front, all active.
    """
    dispatcher.login("gestor", "gestor")
    for row in drivers_df.itertuples():
        result = dispatcher.create_user(
            Role.DRIVER, row.username, "secret",
            full_name=row.full_name, phone=str(row.phone),
            vehicle=VehicleInfo(ac=bool(row.ac), capacity=int(row.capacity)),
        )
        if not result:
            logger.warning("Could not onboard %s: %s", row.username, result.message)

    for username in sorted(rides_df["client_username"].unique()):
        dispatcher.create_user(Role.CLIENT, username, "secret", full_name=username.title())
    dispatcher.logout()


def go_online(dispatcher, row):
    dispatcher.login(row.username, "secret")
    dispatcher.set_driver_availability(True, GeoPoint(float(row.lat), float(row.lng)))


def run_simulation(days=15):
    print("=== STARTING PAL TAXI FORTNIGHT SIMULATION ===")
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

    # 1. Load Data
    drivers_df = load_csv(base_dir, "drivers.csv", lambda path: generate_mock_drivers(filename=path))
    rides_df = load_csv(base_dir, "ride_requests.csv", lambda path: generate_mock_rides(output_file=path, days=days))
    print(f"Loaded {len(rides_df)} ride requests and {len(drivers_df)} drivers.\n")

    # 2. Configure System
    start = datetime(2025, 3, 1, 6, 0, tzinfo=timezone.utc)
    clock = SimulationClock(start)
    dispatcher = Dispatcher(clock=clock)
    onboard(dispatcher, drivers_df, rides_df)

    for row in drivers_df.itertuples():
        go_online(dispatcher, row)

    settles_on_time = dict(zip(drivers_df["username"], drivers_df["settles_on_time"]))
    completed = unserved = complaints = 0

    # 3. Play the requests day by day (plus a few days past the period)
    for day in range(days + 3):
        for req in rides_df[rides_df["day"] == day].itertuples():
            clock.set(day, int(req.hour), start)
            pickup = GeoPoint(float(req.pickup_lat), float(req.pickup_lon))

            dispatcher.login(req.client_username, "secret")
            result = dispatcher.request_ride(
                pickup_address=req.pickup_address,
                pickup_point=pickup,
                destination_address=req.destination_address,
                destination_point=GeoPoint(float(req.dest_lat), float(req.dest_lon)),
                has_route_changes=bool(req.has_route_changes),
            )
            if not result:
                continue
            ride_id = result.id

            # Simulation: the closest driver on duty always accepts
            candidates = dispatcher.nearby_drivers(pickup)
            if not candidates:
                unserved += 1
                continue
            driver = dispatcher.get_user(candidates[0].driver_id)

            dispatcher.login(driver.username, "secret")
            if not dispatcher.accept_ride(ride_id):
                unserved += 1
                continue
            dispatcher.complete_ride(ride_id)
            completed += 1

            # Back on duty at the destination
            ride = dispatcher.get_ride(ride_id)
            dispatcher.set_driver_availability(True, ride.destination_point)

            if req.files_complaint:
                dispatcher.login(req.client_username, "secret")
                if dispatcher.file_complaint(ride_id, "Mal servicio"):
                    complaints += 1

        # End of the day: punctual drivers settle on day 12, the manager approves
        clock.set(day, 23, start)
        if day == 12:
            for username, on_time in settles_on_time.items():
                if not on_time:
                    continue
                if dispatcher.login(username, "secret"):
                    dispatcher.request_settlement(f"receipts/{username}-{day}.jpg")
            dispatcher.login("gestor", "gestor")
            for settlement in dispatcher.pending_settlements():
                dispatcher.approve_settlement(settlement.id)

        dispatcher.run_automations()

    # 4. Report
    now = clock()
    balances = driver_balances_frame(dispatcher.snapshot, now)
    earnings = driver_earnings_frame(dispatcher.snapshot)
    summary = platform_summary(dispatcher.snapshot)

    output_path = os.path.join(base_dir, "driver_balances.csv")
    balances.to_csv(output_path, index=False)
    save_state_file(os.path.join(base_dir, "paltaxi_state.json"), dispatcher.snapshot)

    print("\n=== SIMULATION COMPLETE ===")
    print(f"Rides Completed: {completed} / {len(rides_df)} (unserved: {unserved})")
    print(f"Complaints Filed: {complaints}")
    print(f"Drivers Expelled: {(balances['status'] == 'expelled').sum()} / {len(balances)}")
    print(f"Gross Fares: {format_currency(earnings['gross'].sum() if not earnings.empty else 0)}")
    print(f"Agency Commission: {format_currency(earnings['commission'].sum() if not earnings.empty else 0)}")
    print(f"Summary: {summary}")
    print(f"Balances written to '{output_path}'.")

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_simulation()
