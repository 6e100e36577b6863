"""
Unit tests for BookingTransaction - Create and reschedule flows.

Session, query helpers and writers are mocked; validators and the
operating-calendar resolver run for real.
"""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from booking.exceptions import (
    AppointmentNotFoundError,
    ClosedError,
    DuplicateAppointmentError,
    LeadTimeError,
    RescheduleNotAllowedError,
    SlotUnavailableError,
    ValidationError,
)
from booking.transactions.booking_transaction import SLOT_TAKEN_MESSAGE, BookingTransaction
from database.models import Appointment, AppointmentStatus, NotificationType

MODULE = "booking.transactions.booking_transaction"


@pytest.fixture
def booking_mocks(mock_db_session, standard_hours):
    """Patch every collaborator of the transaction module."""
    branch = SimpleNamespace(id="branch-1", operating_hours=standard_hours)
    with patch(f"{MODULE}.get_async_session") as mock_get_session, \
         patch(f"{MODULE}.validate_no_duplicate", new_callable=AsyncMock) as mock_duplicate, \
         patch(f"{MODULE}.get_branch", new_callable=AsyncMock, return_value=branch) as mock_branch, \
         patch(f"{MODULE}.fetch_calendar_entries", new_callable=AsyncMock, return_value=[]) as mock_entries, \
         patch(f"{MODULE}.check_stylists_availability", new_callable=AsyncMock) as mock_check, \
         patch(f"{MODULE}.replace_stylist_index", new_callable=AsyncMock) as mock_index, \
         patch(f"{MODULE}.replace_reservations", new_callable=AsyncMock) as mock_reserve, \
         patch(f"{MODULE}.notify_participants", new_callable=AsyncMock) as mock_notify, \
         patch(f"{MODULE}.get_appointment", new_callable=AsyncMock) as mock_get_appointment:
        mock_get_session.return_value.__aenter__.return_value = mock_db_session
        mock_check.side_effect = lambda stylist_ids, *args, **kwargs: {s: True for s in stylist_ids}
        yield SimpleNamespace(
            session=mock_db_session,
            get_session=mock_get_session,
            duplicate=mock_duplicate,
            branch=mock_branch,
            entries=mock_entries,
            check=mock_check,
            index=mock_index,
            reserve=mock_reserve,
            notify=mock_notify,
            get_appointment=mock_get_appointment,
        )


@pytest.fixture
def booking_request(at):
    return {
        "branchId": "branch-1",
        "appointmentDate": at(14),
        "duration": 60,
        "services": [
            {"serviceId": "cut", "stylistId": "S1", "price": 350},
            {"serviceId": "color", "stylistId": "S2"},
        ],
        "clientId": "client-1",
        "clientName": "Maria Santos",
    }


@pytest.fixture
def morning(at):
    """Current instant: 08:00 on the test Monday."""
    return at(8)


def _stored(mocks) -> Appointment:
    return mocks.session.add.call_args[0][0]


def _existing(at, status=AppointmentStatus.CONFIRMED, start=None, **kwargs) -> Appointment:
    return Appointment(
        id=uuid4(),
        branch_id="branch-1",
        client_id="client-1",
        client_name="Maria Santos",
        stylist_id=kwargs.pop("stylist_id", "S1"),
        service_id="cut",
        services=kwargs.pop("services", []),
        appointment_date=start or at(14),
        duration=kwargs.pop("duration", 60),
        status=status,
        history=[{"action": "created", "by": None, "timestamp": at(8).isoformat()}],
        **kwargs,
    )


class TestCreate:
    """Test BookingTransaction.create()."""

    @pytest.mark.asyncio
    async def test_creates_pending_appointment(self, booking_mocks, booking_request, morning, at):
        appointment_id = await BookingTransaction.create(booking_request, created_by="staff-1", now=morning)

        appointment = _stored(booking_mocks)
        assert appointment_id == str(appointment.id)
        assert UUID(appointment_id)
        assert appointment.status == AppointmentStatus.PENDING
        assert appointment.appointment_date == at(14)
        assert appointment.services == [
            {"serviceId": "cut", "stylistId": "S1", "price": 350},
            {"serviceId": "color", "stylistId": "S2"},
        ]
        assert appointment.history[0]["action"] == "created"
        assert appointment.history[0]["by"] == "staff-1"
        booking_mocks.session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_writes_index_and_reservations_for_every_stylist(
        self, booking_mocks, booking_request, morning, at
    ):
        await BookingTransaction.create(booking_request, now=morning)

        appointment = _stored(booking_mocks)
        booking_mocks.index.assert_awaited_once_with(booking_mocks.session, appointment.id, ["S1", "S2"])
        booking_mocks.reserve.assert_awaited_once_with(
            booking_mocks.session, appointment.id, ["S1", "S2"], at(14), at(15)
        )

    @pytest.mark.asyncio
    async def test_notifies_after_commit(self, booking_mocks, booking_request, morning):
        await BookingTransaction.create(booking_request, now=morning)

        booking_mocks.notify.assert_awaited_once()
        notification_type, snapshot = booking_mocks.notify.call_args[0]
        assert notification_type == NotificationType.APPOINTMENT_CREATED
        assert snapshot.stylist_ids() == ["S1", "S2"]

    @pytest.mark.asyncio
    async def test_legacy_single_service_request(self, booking_mocks, morning, at):
        request = {
            "branchId": "branch-1",
            "appointmentDate": at(11),
            "serviceId": "cut",
            "stylistId": "S1",
            "clientId": "client-1",
        }

        await BookingTransaction.create(request, now=morning)

        appointment = _stored(booking_mocks)
        assert appointment.stylist_id == "S1"
        assert appointment.services == []
        assert appointment.duration is None
        booking_mocks.reserve.assert_awaited_once_with(
            booking_mocks.session, appointment.id, ["S1"], at(11), at(12)
        )

    @pytest.mark.asyncio
    async def test_missing_fields_raise_before_opening_session(self, booking_mocks, morning):
        with pytest.raises(ValidationError) as exc_info:
            await BookingTransaction.create({"branchId": "branch-1", "clientId": "client-1"}, now=morning)

        assert exc_info.value.message == "Missing required appointment fields"
        booking_mocks.get_session.assert_not_called()

    @pytest.mark.asyncio
    async def test_registered_client_within_lead_time_is_rejected(self, booking_mocks, booking_request, at):
        with pytest.raises(LeadTimeError) as exc_info:
            await BookingTransaction.create(booking_request, now=at(12, 30))

        assert exc_info.value.minutes_until_start == 90
        booking_mocks.get_session.assert_not_called()
        booking_mocks.session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_guest_bypasses_lead_time(self, booking_mocks, booking_request, at):
        booking_request.update({"clientId": None, "isGuest": True})

        await BookingTransaction.create(booking_request, now=at(13, 30))

        appointment = _stored(booking_mocks)
        assert appointment.is_guest is True
        assert appointment.history[0]["notes"] == "Appointment created for new client"

    @pytest.mark.asyncio
    async def test_busy_stylist_raises_slot_unavailable(self, booking_mocks, booking_request, morning):
        booking_mocks.check.side_effect = None
        booking_mocks.check.return_value = {"S1": True, "S2": False}

        with pytest.raises(SlotUnavailableError) as exc_info:
            await BookingTransaction.create(booking_request, now=morning)

        assert exc_info.value.stylist_id == "S2"
        assert exc_info.value.message == SLOT_TAKEN_MESSAGE
        booking_mocks.session.add.assert_not_called()
        booking_mocks.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_booking_is_rejected(self, booking_mocks, booking_request, morning):
        booking_mocks.duplicate.side_effect = DuplicateAppointmentError("duplicate")

        with pytest.raises(DuplicateAppointmentError):
            await BookingTransaction.create(booking_request, now=morning)

        booking_mocks.session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_holiday_raises_closed_error(self, booking_mocks, booking_request, morning, monday):
        booking_mocks.entries.return_value = [{"date": monday, "type": "holiday", "title": "Founders Day"}]

        with pytest.raises(ClosedError):
            await BookingTransaction.create(booking_request, now=morning)

    @pytest.mark.asyncio
    async def test_outside_operating_hours_is_unavailable(self, booking_mocks, booking_request, morning, at):
        booking_request["appointmentDate"] = at(16, 30)

        with pytest.raises(SlotUnavailableError):
            await BookingTransaction.create(booking_request, now=morning)

        booking_mocks.check.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_branch(self, booking_mocks, booking_request, morning):
        booking_mocks.branch.return_value = None

        with pytest.raises(ValidationError) as exc_info:
            await BookingTransaction.create(booking_request, now=morning)

        assert exc_info.value.message == "Branch not found"

    @pytest.mark.asyncio
    async def test_reservation_collision_rolls_back(self, booking_mocks, booking_request, morning):
        booking_mocks.reserve.side_effect = IntegrityError("INSERT", {}, Exception("excl_stylist_reservation_overlap"))

        with pytest.raises(SlotUnavailableError):
            await BookingTransaction.create(booking_request, now=morning)

        booking_mocks.session.rollback.assert_awaited_once()
        booking_mocks.session.commit.assert_not_awaited()
        booking_mocks.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_model_instance_is_accepted(self, booking_mocks, booking_request, morning):
        from booking.schemas import AppointmentCreate

        appointment_id = await BookingTransaction.create(
            AppointmentCreate.model_validate(booking_request), now=morning
        )

        assert appointment_id == str(_stored(booking_mocks).id)


class TestReschedule:
    """Test BookingTransaction.reschedule()."""

    @pytest.mark.asyncio
    async def test_not_found(self, booking_mocks, morning, at):
        booking_mocks.get_appointment.return_value = None

        with pytest.raises(AppointmentNotFoundError):
            await BookingTransaction.reschedule(str(uuid4()), at(15), now=morning)

    @pytest.mark.parametrize(
        "status",
        [
            AppointmentStatus.IN_SERVICE,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        ],
    )
    @pytest.mark.asyncio
    async def test_finished_or_in_service_cannot_move(self, booking_mocks, morning, at, status):
        booking_mocks.get_appointment.return_value = _existing(at, status=status)

        with pytest.raises(RescheduleNotAllowedError):
            await BookingTransaction.reschedule(str(uuid4()), at(15), now=morning)

        booking_mocks.session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_too_close_to_original_start_is_rejected(self, booking_mocks, at):
        existing = _existing(at, start=at(14))
        booking_mocks.get_appointment.return_value = existing

        with pytest.raises(LeadTimeError):
            await BookingTransaction.reschedule(str(existing.id), at(16), now=at(12, 30))

        assert existing.appointment_date == at(14)
        booking_mocks.index.assert_not_awaited()
        booking_mocks.reserve.assert_not_awaited()
        booking_mocks.session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_past_original_start_can_be_moved(self, booking_mocks, at):
        existing = _existing(at, start=at(9))
        booking_mocks.get_appointment.return_value = existing

        await BookingTransaction.reschedule(str(existing.id), at(15), now=at(10))

        assert existing.appointment_date == at(15)
        booking_mocks.session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_recheck_excludes_the_appointment_itself(self, booking_mocks, morning, at):
        existing = _existing(at, start=at(14))
        booking_mocks.get_appointment.return_value = existing

        await BookingTransaction.reschedule(str(existing.id), at(14, 30), now=morning)

        kwargs = booking_mocks.check.call_args.kwargs
        assert kwargs["exclude_appointment_id"] == str(existing.id)
        booking_mocks.reserve.assert_awaited_once_with(
            booking_mocks.session, existing.id, ["S1"], at(14, 30), at(15, 30)
        )

    @pytest.mark.asyncio
    async def test_history_records_the_move(self, booking_mocks, morning, at):
        existing = _existing(at, start=at(14))
        booking_mocks.get_appointment.return_value = existing

        await BookingTransaction.reschedule(
            str(existing.id), at(15), changed_by="staff-1", reason="Client asked", now=morning
        )

        assert len(existing.history) == 2
        entry = existing.history[-1]
        assert entry["action"] == "rescheduled"
        assert entry["by"] == "staff-1"
        assert entry["oldDate"] == at(14).isoformat()
        assert entry["newDate"] == at(15).isoformat()
        assert entry["reason"] == "Client asked"

    @pytest.mark.asyncio
    async def test_new_services_and_duration_replace_old_ones(self, booking_mocks, morning, at):
        existing = _existing(at, start=at(10), stylist_id=None, services=[{"serviceId": "cut", "stylistId": "S1"}])
        booking_mocks.get_appointment.return_value = existing

        await BookingTransaction.reschedule(
            str(existing.id),
            at(13),
            duration=90,
            services=[{"serviceId": "color", "stylistId": "S3"}],
            now=morning,
        )

        assert existing.duration == 90
        assert existing.services == [{"serviceId": "color", "stylistId": "S3"}]
        booking_mocks.reserve.assert_awaited_once_with(
            booking_mocks.session, existing.id, ["S3"], at(13), at(14, 30)
        )

    @pytest.mark.asyncio
    async def test_negative_duration_is_rejected_before_any_write(self, booking_mocks, morning, at):
        existing = _existing(at, start=at(14))
        booking_mocks.get_appointment.return_value = existing

        with pytest.raises(ValidationError):
            await BookingTransaction.reschedule(str(existing.id), at(15), duration=-30, now=morning)

        assert existing.duration == 60
        assert existing.appointment_date == at(14)
        booking_mocks.get_session.assert_not_called()
        booking_mocks.reserve.assert_not_awaited()
        booking_mocks.session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_duration_is_stored_as_default(self, booking_mocks, morning, at):
        existing = _existing(at, start=at(14), duration=45)
        booking_mocks.get_appointment.return_value = existing

        await BookingTransaction.reschedule(str(existing.id), at(15), duration=0, now=morning)

        assert existing.duration is None
        booking_mocks.reserve.assert_awaited_once_with(
            booking_mocks.session, existing.id, ["S1"], at(15), at(16)
        )

    @pytest.mark.asyncio
    async def test_busy_stylist_at_new_time(self, booking_mocks, morning, at):
        existing = _existing(at, start=at(14))
        booking_mocks.get_appointment.return_value = existing
        booking_mocks.check.side_effect = None
        booking_mocks.check.return_value = {"S1": False}

        with pytest.raises(SlotUnavailableError):
            await BookingTransaction.reschedule(str(existing.id), at(11), now=morning)

        assert existing.appointment_date == at(14)
        booking_mocks.session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notifies_rescheduled_with_new_time(self, booking_mocks, morning, at):
        existing = _existing(at, start=at(14))
        booking_mocks.get_appointment.return_value = existing

        await BookingTransaction.reschedule(str(existing.id), at(15), now=morning)

        notification_type, snapshot = booking_mocks.notify.call_args[0]
        assert notification_type == NotificationType.APPOINTMENT_RESCHEDULED
        assert snapshot.appointment_date == at(15)

    @pytest.mark.asyncio
    async def test_reservation_collision_on_reschedule(self, booking_mocks, morning, at):
        existing = _existing(at, start=at(14))
        booking_mocks.get_appointment.return_value = existing
        booking_mocks.reserve.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(SlotUnavailableError):
            await BookingTransaction.reschedule(str(existing.id), at(15) + timedelta(minutes=30), now=morning)

        booking_mocks.session.rollback.assert_awaited_once()
        booking_mocks.notify.assert_not_awaited()
