from . import bookings

__all__ = ["bookings"]
