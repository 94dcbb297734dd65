import pandas as pd
import numpy as np
import uuid

def generate_mock_rides(num_rides=600, num_clients=60, days=15, output_file="ride_requests_generated.csv"):
    """
    Generates a realistic dataset of ride requests over `days` days.
    Pickups cluster around a fixed set of landmarks so the same areas see repeated
    demand, and a small share of trips end with the client filing a complaint.
    """
    # Center around Havana, Cuba
    CENTER_LAT = 23.1136
    CENTER_LON = -82.3666

    LANDMARKS = [
        ("Hotel Nacional", 23.1430, -82.3811),
        ("Capitolio", 23.1352, -82.3596),
        ("Plaza de la Revolución", 23.1225, -82.3866),
        ("Coppelia, Vedado", 23.1400, -82.3830),
        ("Terminal de Ómnibus", 23.1230, -82.3680),
        ("Aeropuerto José Martí", 23.0089, -82.4043),
        ("Playa Santa María", 23.1700, -82.2050),
        ("Miramar, 5ta Avenida", 23.1210, -82.4260),
    ]

    # 1. Generate clients
    clients = [f"cliente{str(i+1).zfill(3)}" for i in range(num_clients)]

    data = []

    # 2. Generate ride requests
    for ride_index in range(num_rides):
        name, lat, lon = LANDMARKS[np.random.randint(0, len(LANDMARKS))]

        # Pickup within ~1 km of the landmark
        pickup_lat = lat + np.random.uniform(-0.01, 0.01)
        pickup_lon = lon + np.random.uniform(-0.01, 0.01)

        # Destinations anywhere within ~12 km of the city center
        dest_lat = CENTER_LAT + np.random.uniform(-0.11, 0.11)
        dest_lon = CENTER_LON + np.random.uniform(-0.11, 0.11)

        data.append({
            "request_id": f"r_{str(uuid.uuid4())[:8]}",
            "day": np.random.randint(0, days),
            "hour": int(np.random.choice([7, 8, 9, 12, 13, 17, 18, 19, 22])),
            "client_username": np.random.choice(clients),
            "pickup_address": name,
            "pickup_lat": np.round(pickup_lat, 6),
            "pickup_lon": np.round(pickup_lon, 6),
            "destination_address": f"Destino {ride_index+1}",
            "dest_lat": np.round(dest_lat, 6),
            "dest_lon": np.round(dest_lon, 6),
            "has_route_changes": bool(np.random.choice([False, True], p=[0.9, 0.1])),
            "files_complaint": bool(np.random.choice([False, True], p=[0.93, 0.07])),
        })

    # 3. Save to CSV, in the order the requests arrive
    df = pd.DataFrame(data).sort_values(["day", "hour"]).reset_index(drop=True)
    df.to_csv(output_file, index=False)
    print(f"✅ Generated {num_rides} ride requests and saved to '{output_file}'")

    # Print a quick preview of demand density
    print("\nTop 5 Pickup Areas:")
    counts = df['pickup_address'].value_counts().head(5)
    for name, count in counts.items():
        print(f"  {name}: {count} requests")

if __name__ == "__main__":
    generate_mock_rides(num_rides=600, num_clients=60)
