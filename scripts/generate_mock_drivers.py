import csv
import random

def generate_mock_drivers(filename="mock_drivers_havana.csv", count=40):
    # Base coordinate roughly mapping to Vedado, Havana.
    # Ride requests are clustered around 23.14, -82.36
    base_lat = 23.136
    base_lon = -82.359
    
    with open(filename, mode='w', newline='') as file:
        writer = csv.writer(file)
        writer.writerow(["username", "full_name", "phone", "lat", "lng", "ac", "capacity", "settles_on_time"])
        
        for i in range(count):
            username = f"chofer{str(i+1).zfill(3)}"
            
            # Scatter drivers randomly around the city center (roughly +/- 8km)
            lat = base_lat + (random.random() - 0.5) * 0.15
            lon = base_lon + (random.random() - 0.5) * 0.15
            
            # Cuban mobile numbers: 5 followed by 7 digits
            phone = f"5{random.randint(1000000, 9999999)}"
            
            # Most old American cars have no AC; vans seat 7
            ac = random.random() < 0.4
            capacity = random.choice([4, 4, 4, 5, 7])
            
            # 85% of drivers transfer the commission before the deadline
            settles_on_time = random.random() < 0.85
            
            writer.writerow([username, f"Chofer {i+1}", phone, round(lat, 6), round(lon, 6), ac, capacity, settles_on_time])
            
    print(f"Successfully generated {count} mock drivers into '{filename}'.")

if __name__ == "__main__":
    generate_mock_drivers()
