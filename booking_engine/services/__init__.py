from booking_engine.services.availability_service import AvailabilityCache, AvailabilityService
from booking_engine.services.booking_manager import BookingTransactionManager
from booking_engine.services.locks import ScheduleLockManager

__all__ = [
    "AvailabilityCache",
    "AvailabilityService",
    "BookingTransactionManager",
    "ScheduleLockManager",
]
