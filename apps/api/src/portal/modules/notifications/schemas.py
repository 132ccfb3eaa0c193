"""
Notification Schemas

Pydantic schemas for the notification endpoints. Field names are
camelCase on the wire.
"""

from typing import Literal
from uuid import UUID

from pydantic import Field

from portal.modules.shared.schemas import CamelModel


class DeliveryResultSchema(CamelModel):
    recipient_id: str
    channel: str
    outcome: str
    detail: str | None = None


# ============================================
# Class notification
# ============================================


class ClassNotificationRequest(CamelModel):
    """Request body for POST /notifications/class."""

    type: Literal["new_assignment", "results_published"]
    class_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    details: str = Field("", max_length=5000)
    include_parents: bool = True
    send_email: bool = True
    send_whats_app: bool = Field(False, alias="sendWhatsApp")
    send_sms: bool = False


class ClassNotificationResponse(CamelModel):
    success: bool = True
    emails_sent: int = 0
    sms_sent: int = 0
    whatsapp_sent: int = 0
    in_app_created: int = 0
    message: str | None = None
    results: list[DeliveryResultSchema] = Field(default_factory=list)


# ============================================
# Push / WhatsApp / in-app
# ============================================


class PushNotificationRequest(CamelModel):
    """
    Request body for POST /notifications/push.

    Empty `userIds` and blank title or body are rejected by the service with
    INVALID_NOTIFICATION_REQUEST. Ids that are not UUIDs fail request
    validation.
    """

    user_ids: list[UUID] = Field(default_factory=list)
    title: str = ""
    body: str = ""
    icon: str | None = None
    url: str | None = None
    type: Literal["attendance", "fee", "result", "assignment", "announcement"] = "announcement"
    send_whats_app: bool = Field(True, alias="sendWhatsApp")
    send_push: bool = True


class PushNotificationResponse(CamelModel):
    success: bool = True
    whats_app_sent: int = Field(0, alias="whatsAppSent")
    push_sent: int = 0
    in_app_created: int = 0
    message: str
    results: list[DeliveryResultSchema] = Field(default_factory=list)


# ============================================
# Result notification
# ============================================


class ResultNotificationRequest(CamelModel):
    """Request body for POST /notifications/results."""

    exam_id: str = Field(..., min_length=1)
    class_id: str = Field(..., min_length=1)
    exam_name: str = Field(..., min_length=1, max_length=255)
    subject_name: str = Field(..., min_length=1, max_length=255)


class ResultNotificationResponse(CamelModel):
    success: bool = True
    emails_sent: int = 0
    sms_sent: int = 0
    whatsapp_sent: int = 0
    in_app_notifications: int = 0
    message: str
    results: list[DeliveryResultSchema] = Field(default_factory=list)


# ============================================
# Class reminders
# ============================================


class ClassReminderResponse(CamelModel):
    success: bool = True
    notifications_sent: int
    checked_time: str
    target_time: str
