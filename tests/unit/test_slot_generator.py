"""
Unit tests for slot_generator.py - Candidate start times in a working window.
"""

from datetime import time

import pytest

from booking.services.operating_calendar import WorkingWindow
from booking.services.slot_generator import SlotSequence, generate_slots

NINE_TO_FIVE = WorkingWindow(time(9, 0), time(17, 0))


class TestGenerateSlots:
    """Test slot enumeration."""

    def test_nine_to_five_with_one_hour_service(self, monday, at):
        slots = list(generate_slots(NINE_TO_FIVE, monday, 60, 30))

        assert len(slots) == 15
        assert slots[0] == at(9, 0)
        assert slots[-1] == at(16, 0)

    def test_slots_step_by_granularity(self, monday, at):
        slots = list(generate_slots(NINE_TO_FIVE, monday, 60, 30))

        assert slots[:3] == [at(9, 0), at(9, 30), at(10, 0)]

    def test_service_must_fit_before_close(self, monday, at):
        slots = list(generate_slots(NINE_TO_FIVE, monday, 90, 30))

        assert slots[-1] == at(15, 30)

    def test_slots_are_timezone_aware(self, monday, manila_tz):
        slots = list(generate_slots(NINE_TO_FIVE, monday, 60, 30))

        assert all(slot.tzinfo == manila_tz for slot in slots)

    @pytest.mark.parametrize("duration", [0, -15, None])
    def test_non_positive_duration_defaults_to_sixty(self, monday, duration):
        assert list(generate_slots(NINE_TO_FIVE, monday, duration, 30)) == list(
            generate_slots(NINE_TO_FIVE, monday, 60, 30)
        )

    def test_default_granularity_is_thirty_minutes(self, monday):
        assert len(generate_slots(NINE_TO_FIVE, monday, 60)) == 15

    def test_service_longer_than_window_yields_nothing(self, monday):
        short_day = WorkingWindow(time(9, 0), time(10, 0))

        assert list(generate_slots(short_day, monday, 90, 30)) == []

    def test_exact_fit_yields_single_slot(self, monday, at):
        one_hour = WorkingWindow(time(9, 0), time(10, 0))

        assert list(generate_slots(one_hour, monday, 60, 30)) == [at(9, 0)]

    @pytest.mark.parametrize("granularity", [0, -30])
    def test_non_positive_granularity_raises(self, monday, granularity):
        with pytest.raises(ValueError):
            generate_slots(NINE_TO_FIVE, monday, 60, granularity)


class TestSlotSequence:
    """Test laziness and restartability."""

    def test_sequence_can_be_iterated_twice(self, monday):
        sequence = generate_slots(NINE_TO_FIVE, monday, 60, 30)

        assert list(sequence) == list(sequence)

    def test_identical_inputs_produce_identical_sequences(self, monday):
        first = generate_slots(NINE_TO_FIVE, monday, 45, 15)
        second = generate_slots(NINE_TO_FIVE, monday, 45, 15)

        assert first == second
        assert list(first) == list(second)

    def test_sequence_is_lazy(self, monday):
        sequence = generate_slots(NINE_TO_FIVE, monday, 60, 30)
        iterator = iter(sequence)

        first = next(iterator)

        assert isinstance(sequence, SlotSequence)
        assert first == sequence.open_at
