from ticketing.models.slot import Slot
from ticketing.models.booking import Booking
from ticketing.models.payment import Payment
from ticketing.models.ride import Ride, TicketRide
from ticketing.models.ticket import Ticket
from ticketing.models.membership import Membership
from ticketing.models.gate_log import GateCamera, GateLog
from ticketing.models.notification_log import NotificationLog

__all__ = [
    "Slot", "Booking", "Payment", "Ride", "TicketRide", "Ticket",
    "Membership", "GateCamera", "GateLog", "NotificationLog",
]
