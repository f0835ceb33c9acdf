"""Schema package exports."""

from .bookings import BookingDistanceRow, BookingJobRow, CustomerRow, TranslatorRow

__all__ = ["BookingDistanceRow", "BookingJobRow", "CustomerRow", "TranslatorRow"]
