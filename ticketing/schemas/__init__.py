from ticketing.schemas.slot import SlotReserveRequest, SlotResponse, SlotListResponse
from ticketing.schemas.booking import BookingCreate, BookingResponse, BookingUpdate
from ticketing.schemas.ticket import TicketCreate, TicketResponse, RideRequest
from ticketing.schemas.gate import GateScanRequest, GateScanResponse, GateLogResponse
from ticketing.schemas.membership import MembershipCreate, MembershipResponse
from ticketing.schemas.notification import NotificationRequest, NotificationResponse

__all__ = [
    "SlotReserveRequest", "SlotResponse", "SlotListResponse",
    "BookingCreate", "BookingResponse", "BookingUpdate",
    "TicketCreate", "TicketResponse", "RideRequest",
    "GateScanRequest", "GateScanResponse", "GateLogResponse",
    "MembershipCreate", "MembershipResponse",
    "NotificationRequest", "NotificationResponse",
]
