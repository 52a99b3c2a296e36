"""
Seed script -- populates the database with demo accounts and rides.

Run after migrations:
    python seed.py

Creates:
  - 1 admin, 1 staff agent
  - 4 drivers (one per vehicle type, Sokoto area)
  - 3 passengers with funded wallets
  - 4 sample rides (PENDING ride, PENDING delivery, ACCEPTED, COMPLETED)
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import text

from naijamove.config import settings
from naijamove.domain.entities import Settlement, estimate_weight_kg, load_status_for
from naijamove.domain.enums import (
    VEHICLE_CAPACITY_KG,
    AccountStatus,
    LoadStatus,
    RideStatus,
    RideType,
    UserRole,
    VehicleType,
)
from naijamove.domain.pricing import FareCalculator
from naijamove.infrastructure.database import async_session_factory, engine
from naijamove.infrastructure.models import RideModel, UserModel, utcnow


STAFF = [
    {"name": "Super Admin", "email": "admin@naijamove.ng", "role": UserRole.ADMIN,
     "wallet": "5000000", "ip": "102.134.1.20", "device": 'MacBook Pro 16"'},
    {"name": "Support Agent", "email": "staff@naijamove.ng", "role": UserRole.STAFF,
     "wallet": "0", "ip": "102.134.1.22", "device": "Dell Latitude"},
]

DRIVERS = [
    {"name": "Musa Ibrahim", "email": "musa@naijamove.ng", "phone": "+2348012345678",
     "vehicle": VehicleType.OKADA, "plate": "SOK-882-AB", "wallet": "12500",
     "rating": 4.8, "trips": 1240, "online": True},
    {"name": "Aisha Bello", "email": "aisha@naijamove.ng", "phone": "+2348023456789",
     "vehicle": VehicleType.KEKE, "plate": "SOK-114-KK", "wallet": "8200",
     "rating": 4.6, "trips": 530, "online": True},
    {"name": "Garba Sani", "email": "garba@naijamove.ng", "phone": "+2348034567890",
     "vehicle": VehicleType.MINIBUS, "plate": "SOK-407-MB", "wallet": "30000",
     "rating": 4.7, "trips": 310, "online": False},
    {"name": "Emeka Obi", "email": "emeka@naijamove.ng", "phone": "+2348045678901",
     "vehicle": VehicleType.TRUCK, "plate": "LAG-993-TR", "wallet": "145000",
     "rating": 4.9, "trips": 88, "online": True},
]

PASSENGERS = [
    {"name": "Tola Adebayo", "email": "tola@gmail.com", "phone": "+2348098765432", "wallet": "5000"},
    {"name": "Ngozi Eze", "email": "ngozi@gmail.com", "phone": "+2348087654321", "wallet": "20000"},
    {"name": "Yusuf Danjuma", "email": "yusuf@gmail.com", "phone": "+2348076543210", "wallet": "1500"},
]


async def seed():
    fares = FareCalculator.from_settings(settings)

    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Staff ─────────────────────────────────────────────────────
        for s in STAFF:
            session.add(UserModel(
                name=s["name"], email=s["email"], role=s["role"],
                wallet_balance=Decimal(s["wallet"]), status=AccountStatus.ACTIVE,
                ip=s["ip"], device=s["device"],
            ))
        print(f"  Created {len(STAFF)} staff accounts")

        # ── Drivers ───────────────────────────────────────────────────
        drivers = []
        for d in DRIVERS:
            m = UserModel(
                name=d["name"], email=d["email"], phone=d["phone"],
                role=UserRole.DRIVER, wallet_balance=Decimal(d["wallet"]),
                status=AccountStatus.ACTIVE, vehicle_type=d["vehicle"],
                license_plate=d["plate"], is_online=d["online"],
                rating=d["rating"], total_trips=d["trips"],
                vehicle_capacity_kg=VEHICLE_CAPACITY_KG[d["vehicle"]],
                current_load_kg=0.0, load_status=LoadStatus.EMPTY,
            )
            session.add(m)
            drivers.append(m)
        print(f"  Created {len(drivers)} drivers")

        # ── Passengers ────────────────────────────────────────────────
        passengers = []
        for p in PASSENGERS:
            m = UserModel(
                name=p["name"], email=p["email"], phone=p["phone"],
                role=UserRole.PASSENGER, wallet_balance=Decimal(p["wallet"]),
                status=AccountStatus.ACTIVE,
            )
            session.add(m)
            passengers.append(m)
        await session.flush()
        print(f"  Created {len(passengers)} passengers")

        # ── Rides ─────────────────────────────────────────────────────
        now = utcnow()
        rides_data = [
            {"passenger": passengers[0], "driver": None, "type": RideType.RIDE,
             "vehicle": VehicleType.OKADA, "pickup": "Sokoto Central Market",
             "dropoff": "Usmanu Danfodiyo University", "km": 5.0,
             "status": RideStatus.PENDING, "age_min": 2},
            {"passenger": passengers[1], "driver": None, "type": RideType.LOGISTICS,
             "vehicle": VehicleType.KEKE, "pickup": "Kara Market",
             "dropoff": "Mabera", "km": 3.2, "status": RideStatus.PENDING,
             "age_min": 5, "parcel": ("Box of textiles", "25kg", "+2348011112222")},
            {"passenger": passengers[1], "driver": drivers[3], "type": RideType.LOGISTICS,
             "vehicle": VehicleType.TRUCK, "pickup": "Sokoto Cement Depot",
             "dropoff": "Gwadabawa", "km": 42.0, "status": RideStatus.ACCEPTED,
             "age_min": 20, "parcel": ("Cement bags", "1200kg", "+2348033334444")},
            {"passenger": passengers[0], "driver": drivers[0], "type": RideType.RIDE,
             "vehicle": VehicleType.OKADA, "pickup": "Sultan Bello Mosque",
             "dropoff": "Sokoto Airport", "km": 9.5, "status": RideStatus.COMPLETED,
             "age_min": 180},
        ]

        for r in rides_data:
            description, weight, receiver = r.get("parcel", (None, None, None))
            ride = RideModel(
                passenger_id=r["passenger"].id,
                driver_id=r["driver"].id if r["driver"] else None,
                type=r["type"],
                vehicle_type=r["vehicle"],
                pickup_address=r["pickup"],
                dropoff_address=r["dropoff"],
                distance_km=r["km"],
                price=fares.calculate_fare(r["vehicle"], r["km"]),
                estimated_weight_kg=estimate_weight_kg(r["type"], weight),
                status=r["status"],
                parcel_description=description,
                parcel_weight=weight,
                receiver_phone=receiver,
                created_at=now - timedelta(minutes=r["age_min"]),
            )
            if r["status"] == RideStatus.COMPLETED:
                ride.end_time = now - timedelta(minutes=r["age_min"] - 25)
                share = Settlement.for_price(ride.price, settings.commission_rate)
                print(f"  Completed ride pays driver {share.driver_share} of {share.price}")
            if r["status"] == RideStatus.ACCEPTED:
                driver = r["driver"]
                driver.current_load_kg = ride.estimated_weight_kg
                driver.load_status = load_status_for(
                    driver.current_load_kg, driver.vehicle_capacity_kg
                )
            session.add(ride)
        await session.flush()
        print(f"  Created {len(rides_data)} rides")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
