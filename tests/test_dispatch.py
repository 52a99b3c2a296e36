"""
Dispatch engine tests against a real (SQLite) database.

Covers booking, matching, the lifecycle with wallet settlement, driver
load accounting, withdrawals and dashboard statistics.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from naijamove.domain.enums import (
    AccountStatus,
    LoadStatus,
    RideStatus,
    RideType,
    TransactionStatus,
    TransactionType,
    UserRole,
    VehicleType,
)
from naijamove.domain.errors import (
    AccountBlocked,
    InsufficientFunds,
    InvalidTransition,
    MaintenanceMode,
    NotFound,
    RideAlreadyTaken,
    ValidationError,
)
from naijamove.infrastructure.events import RIDE_CREATED, RIDE_UPDATED
from naijamove.infrastructure.models import ActivityModel, TransactionModel
from naijamove.services.dispatch import DispatchEngine
from tests.conftest import make_admin, make_driver, make_passenger


async def book(engine, passenger, **overrides):
    params = dict(
        type=RideType.RIDE,
        vehicle_type=VehicleType.OKADA,
        pickup_address="Sokoto Central Market",
        dropoff_address="Usmanu Danfodiyo University",
        distance_km=5,
    )
    params.update(overrides)
    return await engine.create_ride(passenger.id, **params)


async def book_parcel(engine, passenger, weight="25kg", **overrides):
    return await book(
        engine,
        passenger,
        type=RideType.LOGISTICS,
        parcel_description="Box of textiles",
        parcel_weight=weight,
        receiver_phone="+2348011112222",
        **overrides,
    )


async def actions(session, user_id):
    result = await session.execute(
        select(ActivityModel.action)
        .where(ActivityModel.user_id == user_id)
        .order_by(ActivityModel.id)
    )
    return list(result.scalars().all())


# ── Booking ───────────────────────────────────────────────────────────


class TestCreateRide:
    @pytest.mark.asyncio
    async def test_books_pending_ride_with_price(self, engine, passenger):
        ride = await book(engine, passenger)

        assert ride.id is not None
        assert ride.status == RideStatus.PENDING
        assert ride.driver_id is None
        assert ride.price == Decimal("450")
        assert ride.estimated_weight_kg == 75.0
        assert ride.parcel_description is None

    @pytest.mark.asyncio
    async def test_booking_is_logged_with_user_ip(self, engine, passenger, db_session):
        await book(engine, passenger)
        entries = await engine.get_user_activity(passenger.id)
        assert entries[0].action == "BOOK_RIDE"
        assert entries[0].details == "Booked OKADA"
        assert entries[0].ip == "102.89.1.10"

    @pytest.mark.asyncio
    async def test_explicit_ip_wins(self, engine, passenger):
        await book(engine, passenger, ip="41.58.0.7")
        entries = await engine.get_user_activity(passenger.id)
        assert entries[0].ip == "41.58.0.7"

    @pytest.mark.asyncio
    async def test_parcel_weight_parsed(self, engine, passenger):
        ride = await book_parcel(engine, passenger, weight="25kg")
        assert ride.type == RideType.LOGISTICS
        assert ride.estimated_weight_kg == 25.0
        assert ride.receiver_phone == "+2348011112222"

    @pytest.mark.asyncio
    async def test_parcel_weight_defaults_to_ten(self, engine, passenger):
        ride = await book_parcel(engine, passenger, weight=None)
        assert ride.estimated_weight_kg == 10.0

    @pytest.mark.asyncio
    async def test_zero_weight_parcel_still_loads_driver(self, engine, passenger, driver):
        ride = await book_parcel(engine, passenger, weight="0kg")
        assert ride.estimated_weight_kg == 10.0

        await engine.accept_ride(ride.id, driver.id)
        assert driver.current_load_kg == 10.0
        assert driver.load_status == LoadStatus.HALF_LOAD

    @pytest.mark.asyncio
    async def test_logistics_requires_receiver(self, engine, passenger):
        with pytest.raises(ValidationError):
            await book(
                engine,
                passenger,
                type=RideType.LOGISTICS,
                parcel_description="Documents",
            )

    @pytest.mark.asyncio
    async def test_blank_address_rejected(self, engine, passenger):
        with pytest.raises(ValidationError):
            await book(engine, passenger, pickup_address="   ")

    @pytest.mark.asyncio
    async def test_negative_distance_rejected(self, engine, passenger):
        with pytest.raises(ValidationError):
            await book(engine, passenger, distance_km=-0.5)

    @pytest.mark.asyncio
    async def test_unknown_passenger(self, engine):
        with pytest.raises(NotFound):
            await engine.create_ride(
                999,
                type=RideType.RIDE,
                vehicle_type=VehicleType.OKADA,
                pickup_address="A",
                dropoff_address="B",
                distance_km=1,
            )

    @pytest.mark.asyncio
    async def test_banned_passenger_cannot_book(self, engine, db_session):
        banned = await make_passenger(db_session, name="Ban Ned", status=AccountStatus.BANNED)
        with pytest.raises(AccountBlocked):
            await book(engine, banned)
        assert await engine.rides.count_by() == 0

    @pytest.mark.asyncio
    async def test_maintenance_mode_pauses_bookings(self, db_session, test_settings, passenger):
        test_settings.maintenance_mode = True
        engine = DispatchEngine(db_session, test_settings)
        with pytest.raises(MaintenanceMode):
            await book(engine, passenger)

    @pytest.mark.asyncio
    async def test_blocked_ip(self, db_session, test_settings, passenger):
        test_settings.blocked_ips = ["10.0.0.66"]
        engine = DispatchEngine(db_session, test_settings)
        with pytest.raises(AccountBlocked):
            await book(engine, passenger, ip="10.0.0.66")

    @pytest.mark.asyncio
    async def test_publishes_event(self, db_session, test_settings, passenger):
        publisher = AsyncMock()
        engine = DispatchEngine(db_session, test_settings, publisher=publisher)
        ride = await book(engine, passenger)

        publisher.publish.assert_awaited_once()
        event, payload = publisher.publish.await_args.args
        assert event == RIDE_CREATED
        assert payload["ride_id"] == ride.id
        assert payload["status"] == "PENDING"


# ── Matching ──────────────────────────────────────────────────────────


class TestAcceptRide:
    @pytest.mark.asyncio
    async def test_accept_assigns_driver_and_load(self, engine, passenger, driver):
        ride = await book(engine, passenger)
        ride = await engine.accept_ride(ride.id, driver.id)

        assert ride.status == RideStatus.ACCEPTED
        assert ride.driver_id == driver.id
        assert driver.current_load_kg == 75.0
        assert driver.load_status == LoadStatus.HALF_LOAD

    @pytest.mark.asyncio
    async def test_second_driver_loses(self, engine, db_session, passenger, driver):
        rival = await make_driver(db_session, name="Aisha Bello", vehicle_type=VehicleType.KEKE)
        ride = await book(engine, passenger)
        ride_id, driver_id = ride.id, driver.id
        await engine.accept_ride(ride_id, driver_id)

        with pytest.raises(RideAlreadyTaken):
            await engine.accept_ride(ride_id, rival.id)

        # a failed command rolls back and expires loaded instances
        ride = await engine.get_ride(ride_id)
        await db_session.refresh(rival)
        assert ride.driver_id == driver_id
        assert rival.current_load_kg == 0.0

    @pytest.mark.asyncio
    async def test_cannot_accept_cancelled(self, engine, passenger, driver):
        ride = await book(engine, passenger)
        await engine.advance_status(ride.id, RideStatus.CANCELLED)
        with pytest.raises(InvalidTransition):
            await engine.accept_ride(ride.id, driver.id)

    @pytest.mark.asyncio
    async def test_offline_driver_cannot_accept(self, engine, db_session, passenger):
        offline = await make_driver(db_session, name="Garba Sani", online=False)
        ride = await book(engine, passenger)
        with pytest.raises(ValidationError):
            await engine.accept_ride(ride.id, offline.id)

    @pytest.mark.asyncio
    async def test_passenger_cannot_accept(self, engine, passenger):
        ride = await book(engine, passenger)
        with pytest.raises(ValidationError):
            await engine.accept_ride(ride.id, passenger.id)

    @pytest.mark.asyncio
    async def test_overload_is_flagged_not_refused(self, engine, passenger, driver):
        ride = await book_parcel(engine, passenger, weight="160kg")
        await engine.accept_ride(ride.id, driver.id)
        assert ride.status == RideStatus.ACCEPTED
        assert driver.current_load_kg == 160.0
        assert driver.load_status == LoadStatus.OVERLOAD

    @pytest.mark.asyncio
    async def test_loads_accumulate(self, engine, passenger, driver):
        first = await book(engine, passenger)
        second = await book_parcel(engine, passenger, weight="10kg")
        await engine.accept_ride(first.id, driver.id)
        await engine.accept_ride(second.id, driver.id)
        assert driver.current_load_kg == 85.0
        assert driver.load_status == LoadStatus.FULL_LOAD

    @pytest.mark.asyncio
    async def test_accept_is_logged(self, engine, db_session, passenger, driver):
        ride = await book(engine, passenger)
        await engine.accept_ride(ride.id, driver.id)
        assert await actions(db_session, driver.id) == ["RIDE_ACCEPT"]


class TestRejectRide:
    @pytest.mark.asyncio
    async def test_rejected_ride_not_offered_again(self, engine, db_session, passenger, driver):
        other = await make_driver(db_session, name="Aisha Bello")
        ride = await book(engine, passenger)

        await engine.reject_ride(ride.id, driver.id)

        assert await engine.list_offerable_rides(driver.id) == []
        assert [r.id for r in await engine.list_offerable_rides(other.id)] == [ride.id]

        await engine.reject_ride(ride.id, other.id)
        assert await engine.list_offerable_rides(driver.id) == []
        assert await engine.list_offerable_rides(other.id) == []
        assert (await engine.get_ride(ride.id)).status == RideStatus.PENDING

    @pytest.mark.asyncio
    async def test_reject_is_idempotent(self, engine, db_session, passenger, driver):
        ride = await book(engine, passenger)
        await engine.reject_ride(ride.id, driver.id)
        await engine.reject_ride(ride.id, driver.id)

        assert await engine.rejected_by(ride.id) == [driver.id]
        assert await actions(db_session, driver.id) == ["RIDE_REJECT"]

    @pytest.mark.asyncio
    async def test_reject_leaves_status(self, engine, passenger, driver):
        ride = await book(engine, passenger)
        ride = await engine.reject_ride(ride.id, driver.id)
        assert ride.status == RideStatus.PENDING

    @pytest.mark.asyncio
    async def test_offerable_in_creation_order(self, engine, passenger, driver):
        first = await book(engine, passenger)
        second = await book(engine, passenger, distance_km=2)
        offered = await engine.list_offerable_rides(driver.id)
        assert [r.id for r in offered] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_manual_assign_overrides_rejection(self, engine, db_session, passenger, driver, admin):
        ride = await book(engine, passenger)
        await engine.reject_ride(ride.id, driver.id)

        ride = await engine.manual_assign_driver(ride.id, driver.id, admin.id)

        assert ride.status == RideStatus.ACCEPTED
        assert ride.driver_id == driver.id
        assert await actions(db_session, admin.id) == ["MANUAL_ASSIGN"]

    @pytest.mark.asyncio
    async def test_manual_assign_needs_online_driver(self, engine, db_session, passenger, admin):
        offline = await make_driver(db_session, name="Garba Sani", online=False)
        ride = await book(engine, passenger)
        with pytest.raises(ValidationError):
            await engine.manual_assign_driver(ride.id, offline.id, admin.id)


# ── Lifecycle & settlement ────────────────────────────────────────────


class TestAdvanceStatus:
    @pytest.mark.asyncio
    async def test_full_lifecycle_settles_wallets(self, engine, passenger, driver):
        ride = await book(engine, passenger)
        await engine.accept_ride(ride.id, driver.id)
        await engine.advance_status(ride.id, RideStatus.IN_PROGRESS, driver.id)
        ride = await engine.advance_status(ride.id, RideStatus.COMPLETED, driver.id)

        assert ride.status == RideStatus.COMPLETED
        assert ride.end_time is not None
        assert passenger.wallet_balance == Decimal("4550")
        assert driver.wallet_balance == Decimal("12860")
        assert driver.total_trips == 1
        assert driver.current_load_kg == 0.0
        assert driver.load_status == LoadStatus.EMPTY

    @pytest.mark.asyncio
    async def test_settlement_conserves_money(self, engine, passenger, driver):
        before = passenger.wallet_balance + driver.wallet_balance
        ride = await book(engine, passenger, distance_km=7.3)
        await engine.accept_ride(ride.id, driver.id)
        await engine.advance_status(ride.id, RideStatus.IN_PROGRESS)
        await engine.advance_status(ride.id, RideStatus.COMPLETED)

        after = passenger.wallet_balance + driver.wallet_balance
        assert ride.price == Decimal("565")
        assert before - after == Decimal("113")  # 20% commission leaves the system

    @pytest.mark.asyncio
    async def test_completion_records_transactions(self, engine, db_session, passenger, driver):
        ride = await book(engine, passenger)
        await engine.accept_ride(ride.id, driver.id)
        await engine.advance_status(ride.id, RideStatus.IN_PROGRESS)
        await engine.advance_status(ride.id, RideStatus.COMPLETED)

        result = await db_session.execute(
            select(TransactionModel).where(TransactionModel.ride_id == ride.id)
        )
        txns = {t.type: t for t in result.scalars().all()}
        assert txns[TransactionType.PAYMENT].user_id == passenger.id
        assert txns[TransactionType.PAYMENT].amount == Decimal("450")
        assert txns[TransactionType.EARNING].user_id == driver.id
        assert txns[TransactionType.EARNING].amount == Decimal("360")
        assert all(t.status == TransactionStatus.SUCCESS for t in txns.values())

    @pytest.mark.asyncio
    async def test_cannot_skip_in_progress(self, engine, passenger, driver):
        ride = await book(engine, passenger)
        ride_id = ride.id
        await engine.accept_ride(ride_id, driver.id)

        with pytest.raises(InvalidTransition):
            await engine.advance_status(ride_id, RideStatus.COMPLETED)

        ride = await engine.get_ride(ride_id)
        await engine.session.refresh(passenger)
        assert ride.status == RideStatus.ACCEPTED
        assert passenger.wallet_balance == Decimal("5000")

    @pytest.mark.asyncio
    async def test_terminal_rides_stay_put(self, engine, passenger):
        ride = await book(engine, passenger)
        await engine.advance_status(ride.id, RideStatus.CANCELLED)
        with pytest.raises(InvalidTransition):
            await engine.advance_status(ride.id, RideStatus.CANCELLED)

    @pytest.mark.asyncio
    async def test_completed_ride_cannot_be_accepted_again(self, engine, passenger, driver):
        ride = await book(engine, passenger)
        ride_id, driver_id = ride.id, driver.id
        await engine.accept_ride(ride_id, driver_id)
        await engine.advance_status(ride_id, RideStatus.IN_PROGRESS)
        await engine.advance_status(ride_id, RideStatus.COMPLETED)

        with pytest.raises(InvalidTransition):
            await engine.advance_status(ride_id, RideStatus.ACCEPTED, driver_id)
        assert (await engine.get_ride(ride_id)).status == RideStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_in_progress_ride_cannot_be_accepted(self, engine, passenger, driver):
        ride = await book(engine, passenger)
        ride_id, driver_id = ride.id, driver.id
        await engine.accept_ride(ride_id, driver_id)
        await engine.advance_status(ride_id, RideStatus.IN_PROGRESS)

        with pytest.raises(InvalidTransition):
            await engine.accept_ride(ride_id, driver_id)

    @pytest.mark.asyncio
    async def test_cancel_releases_load(self, engine, passenger, driver):
        ride = await book(engine, passenger)
        await engine.accept_ride(ride.id, driver.id)
        await engine.advance_status(ride.id, RideStatus.CANCELLED)

        assert driver.current_load_kg == 0.0
        assert driver.load_status == LoadStatus.EMPTY
        assert passenger.wallet_balance == Decimal("5000")

    @pytest.mark.asyncio
    async def test_cancel_one_of_two_keeps_other_load(self, engine, passenger, driver):
        first = await book(engine, passenger)
        second = await book_parcel(engine, passenger, weight="20kg")
        await engine.accept_ride(first.id, driver.id)
        await engine.accept_ride(second.id, driver.id)

        await engine.advance_status(first.id, RideStatus.CANCELLED)

        assert driver.current_load_kg == 20.0
        assert driver.load_status == LoadStatus.HALF_LOAD

    @pytest.mark.asyncio
    async def test_other_driver_cannot_advance(self, engine, db_session, passenger, driver):
        other = await make_driver(db_session, name="Aisha Bello")
        ride = await book(engine, passenger)
        await engine.accept_ride(ride.id, driver.id)
        with pytest.raises(ValidationError):
            await engine.advance_status(ride.id, RideStatus.IN_PROGRESS, other.id)

    @pytest.mark.asyncio
    async def test_accept_through_advance(self, engine, passenger, driver):
        ride = await book(engine, passenger)
        ride = await engine.advance_status(ride.id, RideStatus.ACCEPTED, driver.id)
        assert ride.driver_id == driver.id

    @pytest.mark.asyncio
    async def test_accept_through_advance_needs_driver(self, engine, passenger):
        ride = await book(engine, passenger)
        with pytest.raises(ValidationError):
            await engine.advance_status(ride.id, RideStatus.ACCEPTED)

    @pytest.mark.asyncio
    async def test_update_logged_and_published(self, db_session, test_settings, passenger, driver):
        publisher = AsyncMock()
        engine = DispatchEngine(db_session, test_settings, publisher=publisher)
        ride = await book(engine, passenger)
        await engine.accept_ride(ride.id, driver.id)
        await engine.advance_status(ride.id, RideStatus.IN_PROGRESS, driver.id)

        assert await actions(db_session, driver.id) == ["RIDE_ACCEPT", "RIDE_UPDATE"]
        event, payload = publisher.publish.await_args.args
        assert event == RIDE_UPDATED
        assert payload["status"] == "IN_PROGRESS"


# ── Wallet ────────────────────────────────────────────────────────────


class TestWithdrawals:
    @pytest.mark.asyncio
    async def test_withdrawal_debits_and_stays_pending(self, engine, db_session):
        musa = await make_driver(db_session, wallet="8200")
        txn = await engine.withdraw_funds(musa.id, 5000)

        assert txn.type == TransactionType.WITHDRAWAL
        assert txn.status == TransactionStatus.PENDING
        assert txn.reference.startswith("WD-")
        assert musa.wallet_balance == Decimal("3200")

    @pytest.mark.asyncio
    async def test_overdraw_refused(self, engine, db_session):
        musa = await make_driver(db_session, wallet="8200")
        musa_id = musa.id
        with pytest.raises(InsufficientFunds) as exc:
            await engine.withdraw_funds(musa_id, 9000)

        assert exc.value.context["deficit"] == Decimal("800")
        await db_session.refresh(musa)
        assert musa.wallet_balance == Decimal("8200")
        assert await engine.list_user_transactions(musa_id) == []

    @pytest.mark.asyncio
    async def test_exact_balance_allowed(self, engine, passenger):
        await engine.withdraw_funds(passenger.id, Decimal("5000"))
        assert passenger.wallet_balance == Decimal("0")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -10, "abc"])
    async def test_bad_amounts(self, engine, passenger, amount):
        with pytest.raises(ValidationError):
            await engine.withdraw_funds(passenger.id, amount)

    @pytest.mark.asyncio
    async def test_approve(self, engine, passenger, admin, db_session):
        txn = await engine.withdraw_funds(passenger.id, 1000)
        txn = await engine.approve_transaction(txn.id, admin.id, approved=True)

        assert txn.status == TransactionStatus.SUCCESS
        assert passenger.wallet_balance == Decimal("4000")
        assert await actions(db_session, admin.id) == ["PAYMENT_APPROVE"]

    @pytest.mark.asyncio
    async def test_reject_refunds(self, engine, passenger, admin):
        txn = await engine.withdraw_funds(passenger.id, 1000)
        txn = await engine.approve_transaction(txn.id, admin.id, approved=False)

        assert txn.status == TransactionStatus.FAILED
        assert passenger.wallet_balance == Decimal("5000")

    @pytest.mark.asyncio
    async def test_review_only_once(self, engine, passenger, admin):
        txn = await engine.withdraw_funds(passenger.id, 1000)
        await engine.approve_transaction(txn.id, admin.id, approved=False)
        with pytest.raises(InvalidTransition):
            await engine.approve_transaction(txn.id, admin.id, approved=False)
        await engine.session.refresh(passenger)
        assert passenger.wallet_balance == Decimal("5000")

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, engine, admin):
        with pytest.raises(NotFound):
            await engine.approve_transaction(404, admin.id, approved=True)


# ── Queries ───────────────────────────────────────────────────────────


class TestQueries:
    @pytest.mark.asyncio
    async def test_dashboard_views_by_role(self, engine, db_session, passenger, driver, admin):
        other = await make_passenger(db_session, name="Ngozi Eze")
        mine = await book(engine, passenger)
        theirs = await book(engine, other)
        await engine.reject_ride(theirs.id, driver.id)

        assert [r.id for r in await engine.list_active_rides(UserRole.PASSENGER, passenger.id)] == [mine.id]
        assert [r.id for r in await engine.list_active_rides(UserRole.DRIVER, driver.id)] == [mine.id]
        assert {r.id for r in await engine.list_active_rides(UserRole.ADMIN, admin.id)} == {mine.id, theirs.id}

    @pytest.mark.asyncio
    async def test_driver_sees_assigned_rides(self, engine, passenger, driver):
        ride = await book(engine, passenger)
        await engine.accept_ride(ride.id, driver.id)
        await engine.advance_status(ride.id, RideStatus.IN_PROGRESS)
        rides = await engine.list_active_rides(UserRole.DRIVER, driver.id)
        assert [r.id for r in rides] == [ride.id]

    @pytest.mark.asyncio
    async def test_stats(self, engine, db_session, passenger, driver, admin):
        await make_admin(db_session, name="Support Agent", role=UserRole.STAFF)
        done = await book(engine, passenger)
        await engine.accept_ride(done.id, driver.id)
        await engine.advance_status(done.id, RideStatus.IN_PROGRESS)
        await engine.advance_status(done.id, RideStatus.COMPLETED)
        live = await book(engine, passenger, distance_km=1)
        await engine.accept_ride(live.id, driver.id)
        await engine.advance_status(live.id, RideStatus.IN_PROGRESS)

        stats = await engine.get_dashboard_stats()

        assert stats.total_revenue == Decimal("450")
        assert stats.platform_commission == Decimal("90")
        assert stats.total_users == 4
        assert stats.active_users == 4
        assert stats.total_trips == 2
        assert stats.live_trips == 1
        assert stats.total_drivers == 1
        assert stats.total_staff == 1
        assert stats.total_regions == 5

    @pytest.mark.asyncio
    async def test_quote(self, engine):
        assert engine.quote(VehicleType.OKADA, 5) == {"fare": Decimal("450")}
        quote = engine.quote(VehicleType.TRUCK, 10, weight_kg=5, interstate=True)
        assert quote["fare"] == Decimal("7000")
        assert quote["logistics_fare"] == Decimal("2250")

    @pytest.mark.asyncio
    async def test_online_drivers_excludes_suspended(self, engine, db_session, driver):
        await make_driver(db_session, name="Sus Pended", status=AccountStatus.SUSPENDED)
        await make_driver(db_session, name="Garba Sani", online=False)
        assert [d.id for d in await engine.list_online_drivers()] == [driver.id]


class TestActivityRetention:
    @pytest.mark.asyncio
    async def test_keeps_newest_entries(self, db_session, test_settings, passenger):
        test_settings.activity_retention = 5
        engine = DispatchEngine(db_session, test_settings)
        for i in range(8):
            await engine.activity.record(passenger.id, "PING", f"ping {i}")
        await db_session.commit()

        entries = await engine.get_user_activity(passenger.id)
        assert await engine.activity.repo.count() == 5
        assert [e.details for e in entries] == [f"ping {i}" for i in (7, 6, 5, 4, 3)]
