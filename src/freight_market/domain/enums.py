"""Domain enumerations for the freight marketplace.

All enums use the (str, Enum) pattern to ensure JSON serialization compatibility.
"""

from enum import Enum


class ShipmentStatus(str, Enum):
    """Lifecycle of a posted load."""

    OPEN = "OPEN"
    BOOKED = "BOOKED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class QuoteStatus(str, Enum):
    """Lifecycle of a transporter's offer."""

    ACTIVE = "ACTIVE"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class BookingStatus(str, Enum):
    """Operational status of an active booking."""

    BOOKED = "BOOKED"
    ENROUTE = "ENROUTE"
    COLLECTED = "COLLECTED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class UserRole(str, Enum):
    """Roles a session can act as."""

    SHIPPER = "shipper"
    TRANSPORTER = "transporter"
    ADMIN = "admin"


class SenderRole(str, Enum):
    """Author of a booking-thread message."""

    SHIPPER = "shipper"
    TRANSPORTER = "transporter"
    ADMIN = "admin"
    SYSTEM = "system"


class EventName(str, Enum):
    """Real-time events pushed to subscribers."""

    SHIPMENT_NEW = "shipment:new"
    QUOTE_NEW = "quote:new"
    BOOKING_NEW = "booking:new"
    BOOKING_UPDATE = "booking:update"
    DM_NEW = "dm:new"


class IdPrefix(str, Enum):
    """Category prefixes used by the identity generator."""

    USER = "user"
    LOAD = "load"
    QUOTE = "quote"
    BOOKING = "booking"
    THREAD = "thread"
    MESSAGE = "msg"
    DM_THREAD = "dm"
    DM_MESSAGE = "dmmsg"
    FLAG = "flag"
    LOG = "log"
