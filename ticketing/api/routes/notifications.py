"""
Direct notification endpoint, used by webhooks and back-office tools.
Idempotent when a reference is supplied.
"""

from fastapi import APIRouter, Depends

from ticketing.api.deps import get_dispatcher
from ticketing.schemas.notification import NotificationRequest, NotificationResponse
from ticketing.services.notification_service import NotificationDispatcher, Reference
from ticketing.core.errors import ValidationError
from ticketing.core.phone import normalize_phone

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post("/", response_model=NotificationResponse)
async def send_notification_endpoint(
    request: NotificationRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    try:
        phone = normalize_phone(request.phone)
    except ValueError:
        raise ValidationError("Invalid Bangladesh phone number format", code="INVALID_PHONE")

    reference = None
    if request.reference_id and request.reference_type:
        reference = Reference(request.reference_id, request.reference_type)

    result = await dispatcher.send(phone, request.message, request.channel, reference)
    return result.to_dict()
