"""
Unit tests for notification_service.py - Participant fan-out.

Coverage:
- Recipient extraction from both appointment shapes
- Title/message rendering per role
- Rows added to a caller session vs. a dedicated session
- Failures never propagate
"""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from booking.services.notification_service import (
    STATUS_NOTIFICATIONS,
    TEMPLATES,
    Recipient,
    extract_recipients,
    notify_participants,
    render_notification,
)
from database.models import AppointmentStatus, Notification, NotificationType, RecipientRole

MODULE = "booking.services.notification_service"


@pytest.fixture
def appointment(make_appointment, at):
    return make_appointment(
        appointment_id=str(uuid4()),
        start=at(14, 30),
        stylist_id="S1",
        services=[{"serviceId": "cut", "stylistId": "S1"}, {"serviceId": "color", "stylistId": "S2"}],
        client_id="client-1",
        client_name="Maria Santos",
    )


def _added(session) -> list[Notification]:
    return [call.args[0] for call in session.add.call_args_list]


class TestExtractRecipients:
    """Test who gets notified."""

    def test_client_and_unique_stylists(self, appointment):
        assert extract_recipients(appointment) == [
            Recipient("client-1", RecipientRole.CLIENT),
            Recipient("S1", RecipientRole.STYLIST),
            Recipient("S2", RecipientRole.STYLIST),
        ]

    def test_guest_client_gets_nothing(self, make_appointment):
        guest = make_appointment(stylist_id="S1", client_name="Walk-in")

        assert extract_recipients(guest) == [Recipient("S1", RecipientRole.STYLIST)]


class TestRenderNotification:
    """Test template rendering."""

    def test_client_created_message(self, appointment):
        title, message = render_notification(NotificationType.APPOINTMENT_CREATED, RecipientRole.CLIENT, appointment)

        assert title == "Appointment Booked Successfully"
        assert message == "Your appointment has been scheduled for June 2, 2025 at 02:30 PM"

    def test_stylist_message_names_the_client(self, appointment):
        title, message = render_notification(
            NotificationType.APPOINTMENT_CANCELLED, RecipientRole.STYLIST, appointment
        )

        assert title == "Appointment Cancelled"
        assert message == "Appointment with Maria Santos has been cancelled"

    def test_every_type_has_a_template(self):
        assert set(TEMPLATES) == set(NotificationType)

    def test_every_non_pending_status_is_announced(self):
        assert set(STATUS_NOTIFICATIONS) == set(AppointmentStatus) - {AppointmentStatus.PENDING}


class TestNotifyParticipants:
    """Test notify_participants()."""

    @pytest.mark.asyncio
    async def test_adds_rows_to_caller_session_without_commit(self, mock_db_session, appointment):
        added = await notify_participants(NotificationType.APPOINTMENT_REMINDER, appointment, session=mock_db_session)

        assert added == 3
        rows = _added(mock_db_session)
        assert [row.recipient_id for row in rows] == ["client-1", "S1", "S2"]
        assert all(row.type == NotificationType.APPOINTMENT_REMINDER for row in rows)
        assert str(rows[0].appointment_id) == appointment.id
        mock_db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_opens_and_commits_own_session(self, mock_db_session, appointment):
        with patch(f"{MODULE}.get_async_session") as mock_get_session:
            mock_get_session.return_value.__aenter__.return_value = mock_db_session

            added = await notify_participants(NotificationType.APPOINTMENT_CREATED, appointment)

        assert added == 3
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_one_failing_recipient_does_not_stop_others(self, mock_db_session, appointment):
        real_render = render_notification

        def flaky_render(notification_type, role, snapshot):
            if role == RecipientRole.CLIENT:
                raise KeyError("template")
            return real_render(notification_type, role, snapshot)

        with patch(f"{MODULE}.render_notification", side_effect=flaky_render):
            added = await notify_participants(
                NotificationType.APPOINTMENT_CREATED, appointment, session=mock_db_session
            )

        assert added == 2
        assert [row.recipient_role for row in _added(mock_db_session)] == [RecipientRole.STYLIST] * 2

    @pytest.mark.asyncio
    async def test_storage_failure_is_swallowed(self, mock_db_session, appointment):
        mock_db_session.commit.side_effect = RuntimeError("database down")

        with patch(f"{MODULE}.get_async_session") as mock_get_session:
            mock_get_session.return_value.__aenter__.return_value = mock_db_session

            added = await notify_participants(NotificationType.APPOINTMENT_CREATED, appointment)

        assert added == 0

    @pytest.mark.asyncio
    async def test_no_recipients(self, appointment):
        session = MagicMock()
        guest_without_stylist = appointment.model_copy(update={"client_id": None, "stylist_id": None, "services": []})

        added = await notify_participants(NotificationType.APPOINTMENT_CREATED, guest_without_stylist, session=session)

        assert added == 0
        session.add.assert_not_called()
