# scripts/setup/seed_demo.py
"""
Seed a demo station network: stations with AC/DC ports, a few slots per port,
and one registered vehicle per demo owner.
Usage: python scripts/setup/seed_demo.py [--stations 3] [--slots-per-port 4]
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import argparse
from app.database import SessionLocal, create_tables
from app.services import slot_service, station_service, vehicle_service
from app.utils.errors import ServiceError

DEMO_PORTS = [
    {"type": "AC", "power_kw": 22, "speed": "slow", "price": 3500},
    {"type": "DC", "power_kw": 60, "speed": "fast", "price": 5500},
    {"type": "Ultra", "power_kw": 150, "speed": "super_fast", "price": 7500},
]

DEMO_VEHICLES = [
    (1, "51A-12345", "VinFast", "VF8"),
    (2, "30B-67890", "Tesla", "Model 3"),
]


def main():
    parser = argparse.ArgumentParser(description="Seed demo charging stations")
    parser.add_argument("--stations", type=int, default=3)
    parser.add_argument("--slots-per-port", type=int, default=4)
    args = parser.parse_args()

    create_tables()
    db = SessionLocal()
    try:
        for n in range(1, args.stations + 1):
            station = station_service.create_station(
                db, name=f"Demo Station {n}",
                longitude=106.70 + n * 0.01, latitude=10.77 + n * 0.01,
                address=f"{n} Demo Street", provider="Demo Grid", ports=DEMO_PORTS,
            )
            for port in station.ports:
                for _ in range(args.slots_per_port):
                    slot_service.add_slot_to_port(db, port.id)
            print(f"✅ {station.name}: {len(station.ports)} ports × {args.slots_per_port} slots")

        for owner_id, plate, make, model in DEMO_VEHICLES:
            try:
                vehicle = vehicle_service.register_vehicle(db, owner_id, plate, make=make, model=model)
                print(f"✅ Vehicle {vehicle.plate_number} (id={vehicle.id}) for owner {owner_id}")
            except ServiceError as e:
                print(f"⚠️  {plate}: {e.message}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
