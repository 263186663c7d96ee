"""Delivery scheduling: venue hours -> bookable drop-off instants, readiness and manual-selection slots."""
from app.config import settings
from app.services.scheduling.schedule import (
    DeliveryDates,
    TimeSlots,
    VenueSchedule,
    compute_scheduled_dropoff,
    enumerate_delivery_dates,
    enumerate_time_slots,
    format_time_in_timezone,
    is_ready_for_immediate_delivery,
    is_scheduled_more_than_one_hour,
    is_venue_open,
    manual_scheduled_dropoff,
    minutes_until_close,
    parse_iso_instant,
    to_iso_utc,
)


def default_venue_schedule() -> VenueSchedule:
    """Venue hours from settings (VENUE_OPEN_TIME / VENUE_CLOSE_TIME)."""
    return VenueSchedule(open_time=settings.venue_open_time, close_time=settings.venue_close_time)


__all__ = [
    "DeliveryDates",
    "TimeSlots",
    "VenueSchedule",
    "compute_scheduled_dropoff",
    "default_venue_schedule",
    "enumerate_delivery_dates",
    "enumerate_time_slots",
    "format_time_in_timezone",
    "is_ready_for_immediate_delivery",
    "is_scheduled_more_than_one_hour",
    "is_venue_open",
    "manual_scheduled_dropoff",
    "minutes_until_close",
    "parse_iso_instant",
    "to_iso_utc",
]
