"""
Unit tests for booking schemas - Appointment shapes and booking requests.
"""

from booking.schemas import AppointmentCreate, AvailabilityResult, ServiceLine, TimeSlot


class TestServiceLine:
    """Test service line aliases and storage shape."""

    def test_camel_case_document_round_trip(self):
        line = ServiceLine.model_validate({"serviceId": "cut", "stylistId": "S1", "clientType": "X"})

        assert line.service_id == "cut"
        assert line.to_document() == {"serviceId": "cut", "stylistId": "S1", "clientType": "X"}

    def test_unknown_keys_are_preserved(self):
        line = ServiceLine.model_validate({"serviceId": "cut", "addOn": "scalp massage"})

        assert line.to_document()["addOn"] == "scalp massage"


class TestAppointmentSnapshot:
    """Test derived values used by conflict checks."""

    def test_stylists_from_both_shapes_without_duplicates(self, make_appointment):
        appointment = make_appointment(
            stylist_id="S1",
            services=[{"stylistId": "S2"}, {"stylistId": "S1"}, {"serviceId": "wash"}],
        )

        assert appointment.stylist_ids() == ["S1", "S2"]

    def test_end_time_uses_default_duration(self, make_appointment, at):
        assert make_appointment(start=at(10), duration=None).end_time == at(11)
        assert make_appointment(start=at(10), duration=0).end_time == at(11)
        assert make_appointment(start=at(10), duration=45).end_time == at(10, 45)

    def test_legacy_service_line(self, make_appointment):
        appointment = make_appointment(stylist_id="S1", service_id="cut")

        assert [(line.service_id, line.stylist_id) for line in appointment.service_lines()] == [("cut", "S1")]


class TestAppointmentCreate:
    """Test booking request parsing."""

    def test_accepts_camel_case_form_payload(self, at):
        request = AppointmentCreate.model_validate(
            {
                "branchId": "branch-1",
                "appointmentDate": at(10).isoformat(),
                "services": [{"serviceId": "cut", "stylistId": "S1"}],
                "isGuest": True,
                "clientName": "Walk-in Ana",
            }
        )

        assert request.appointment_date == at(10)
        assert request.is_guest is True
        assert request.stylist_ids() == ["S1"]

    def test_accepts_snake_case_fields(self, at):
        request = AppointmentCreate(branch_id="branch-1", appointment_date=at(10), service_id="cut")

        assert [line.service_id for line in request.service_lines()] == ["cut"]
        assert request.effective_duration == 60


class TestAvailabilityResult:
    def test_available_slots_filters(self, at):
        result = AvailabilityResult(
            slots=[TimeSlot(time=at(9), available=False), TimeSlot(time=at(9, 30), available=True)]
        )

        assert [slot.time for slot in result.available_slots] == [at(9, 30)]
        assert result.message is None
