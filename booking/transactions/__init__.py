"""
Transaction handlers for booking writes.

BookingTransaction is the single entry point for creating and rescheduling
appointments. It coordinates validation, the pre-write conflict re-check,
slot reservations and the post-commit notification fan-out.
"""

from booking.transactions.booking_transaction import BookingTransaction

__all__ = ["BookingTransaction"]
