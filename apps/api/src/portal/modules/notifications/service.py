"""
Notification Service

Resolves the audience of each notification endpoint, renders the
per-channel content and hands both to the dispatcher.

Audiences:
- class notification: students of a class (in-app + chosen channels) and
  their parents (chosen channels only)
- push notification: an explicit list of accounts (in-app + WhatsApp + push)
- result notification: students (email + in-app) and their parents (email,
  WhatsApp if enabled, otherwise SMS if enabled)
"""

import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.config import settings
from portal.core.email import render_class_notification, render_results_published
from portal.core.exceptions import ServiceError
from portal.core.messaging import (
    sms_results_published,
    whatsapp_announcement,
    whatsapp_results_published,
)
from portal.modules.notifications.dispatcher import (
    ChannelSelection,
    DispatchReport,
    NotificationDispatcher,
    NotificationMessage,
    Recipient,
)
from portal.modules.notifications.repository import NotificationRepository, NotificationRow
from portal.modules.notifications.schemas import (
    ClassNotificationRequest,
    ClassNotificationResponse,
    ClassReminderResponse,
    DeliveryResultSchema,
    PushNotificationRequest,
    PushNotificationResponse,
    ResultNotificationRequest,
    ResultNotificationResponse,
)
from portal.modules.school.repository import (
    StudentParentRepository,
    StudentRepository,
    TimetableRepository,
)

logger = logging.getLogger(__name__)

# In-app deep link per notification type
NOTIFICATION_LINKS = {
    "attendance": "/student/attendance",
    "fee": "/student/fees",
    "result": "/student/results",
    "assignment": "/student/assignments",
}

REMINDER_WINDOW = timedelta(minutes=10)


class InvalidNotificationRequestError(ServiceError):
    """The notification request is missing recipients or content."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_NOTIFICATION_REQUEST",
            status_code=400,
        )


def notification_link(notification_type: str, url: str | None = None) -> str:
    """Return the in-app link for a notification; an explicit url wins."""
    return url or NOTIFICATION_LINKS.get(notification_type, "/")


def _result_schemas(report: DispatchReport) -> list[DeliveryResultSchema]:
    return [
        DeliveryResultSchema(
            recipient_id=r.recipient_id,
            channel=r.channel.value,
            outcome=r.outcome.value,
            detail=r.detail,
        )
        for r in report.results
    ]


async def _class_audience(
    db: AsyncSession,
    class_id: str,
    include_parents: bool,
) -> tuple[list[str], list[str]]:
    """Return (student account ids, parent account ids) for a class."""
    students = await StudentRepository.list_by_class(db, class_id)
    student_accounts = [student.account_id for student in students]

    parent_accounts: list[str] = []
    if students and include_parents:
        parent_accounts = await StudentParentRepository.parent_account_ids(
            db, [student.id for student in students]
        )
    return student_accounts, parent_accounts


# ============================================
# Class notification
# ============================================


async def send_class_notification(
    db: AsyncSession,
    request: ClassNotificationRequest,
    dispatcher: NotificationDispatcher,
) -> ClassNotificationResponse:
    """
    Notify a class about a new assignment or published results.

    Args:
        db: Database session
        request: Class, content and channel flags
        dispatcher: Notification dispatcher

    Returns:
        ClassNotificationResponse; an empty class yields emailsSent = 0
    """
    students, parents = await _class_audience(db, request.class_id, request.include_parents)

    if not students:
        logger.info(f"No students found in class {request.class_id}")
        return ClassNotificationResponse(success=True, message="No students to notify")

    channels = ChannelSelection(
        email=request.send_email,
        sms=request.send_sms,
        whatsapp=request.send_whats_app,
    )
    recipients = [Recipient(account_id, channels, in_app=True) for account_id in students]
    recipients += [Recipient(account_id, channels) for account_id in parents]

    subject, html = render_class_notification(request.type, request.title, request.details)
    notification_type = "assignment" if request.type == "new_assignment" else "result"

    message = NotificationMessage(
        title=subject,
        body=request.details or request.title,
        type=notification_type,
        link=notification_link(notification_type),
        email_subject=subject,
        email_html=html,
        whatsapp_text=whatsapp_announcement(subject, request.details),
        sms_text=f"{subject}. Log in to the school portal for details. - {settings.school_name}",
    )

    report = await dispatcher.dispatch(recipients, message)

    return ClassNotificationResponse(
        success=True,
        emails_sent=report.emails_sent,
        sms_sent=report.sms_sent,
        whatsapp_sent=report.whatsapp_sent,
        in_app_created=report.in_app_created,
        message=(
            f"Notified {len(students)} students and {len(parents)} parents: "
            f"{report.emails_sent} emails, {report.in_app_created} in-app"
        ),
        results=_result_schemas(report),
    )


# ============================================
# Push / WhatsApp / in-app
# ============================================


async def send_push_notification(
    request: PushNotificationRequest,
    dispatcher: NotificationDispatcher,
) -> PushNotificationResponse:
    """
    Send a notification to an explicit list of accounts.

    Every account with a profile gets an in-app notification; WhatsApp and
    push follow the request flags and each account's toggles.

    Raises:
        InvalidNotificationRequestError: No recipients, or blank title/body
    """
    if not request.user_ids:
        raise InvalidNotificationRequestError("userIds array is required.")
    if not request.title.strip() or not request.body.strip():
        raise InvalidNotificationRequestError("title and body are required.")

    logger.info(f"Processing '{request.type}' notification for {len(request.user_ids)} users")

    channels = ChannelSelection(whatsapp=request.send_whats_app, push=request.send_push)
    recipients = [Recipient(str(user_id), channels, in_app=True) for user_id in request.user_ids]

    link = notification_link(request.type, request.url)
    message = NotificationMessage(
        title=request.title,
        body=request.body,
        type=request.type,
        link=link,
        whatsapp_text=whatsapp_announcement(request.title, request.body),
        push_payload={
            "title": request.title,
            "body": request.body,
            "icon": request.icon,
            "url": link,
        },
    )

    report = await dispatcher.dispatch(recipients, message)

    return PushNotificationResponse(
        success=True,
        whats_app_sent=report.whatsapp_sent,
        push_sent=report.push_sent,
        in_app_created=report.in_app_created,
        message=(
            f"Sent {report.whatsapp_sent} WhatsApp, {report.push_sent} push, "
            f"and {report.in_app_created} in-app notifications"
        ),
        results=_result_schemas(report),
    )


# ============================================
# Result notification
# ============================================


async def send_result_notification(
    db: AsyncSession,
    request: ResultNotificationRequest,
    dispatcher: NotificationDispatcher,
) -> ResultNotificationResponse:
    """
    Announce published exam results to a class and its parents.

    Students get email and in-app notifications. Parents get email,
    WhatsApp if they enabled it, and SMS if they enabled SMS but not
    WhatsApp.
    """
    logger.info(f"Processing result notification for exam {request.exam_id}, class {request.class_id}")

    students, parents = await _class_audience(db, request.class_id, include_parents=True)

    if not students:
        return ResultNotificationResponse(success=True, message="No students found in class")

    recipients = [
        Recipient(account_id, ChannelSelection(email=True), in_app=True) for account_id in students
    ]
    parent_channels = ChannelSelection(
        email=True,
        whatsapp=True,
        sms=True,
        sms_only_without_whatsapp=True,
    )
    recipients += [Recipient(account_id, parent_channels) for account_id in parents]

    subject, html = render_results_published(request.exam_name, request.subject_name)
    message = NotificationMessage(
        title=f"Results Published: {request.exam_name}",
        body=f"{request.subject_name} exam results are now available. Check your grades!",
        type="result",
        link=NOTIFICATION_LINKS["result"],
        email_subject=subject,
        email_html=html,
        whatsapp_text=whatsapp_results_published(request.exam_name, request.subject_name),
        sms_text=sms_results_published(request.exam_name, request.subject_name),
    )

    report = await dispatcher.dispatch(recipients, message)

    return ResultNotificationResponse(
        success=True,
        emails_sent=report.emails_sent,
        sms_sent=report.sms_sent,
        whatsapp_sent=report.whatsapp_sent,
        in_app_notifications=report.in_app_created,
        message=(
            f"Sent {report.emails_sent} emails, {report.sms_sent} SMS, "
            f"{report.whatsapp_sent} WhatsApp, {report.in_app_created} in-app notifications"
        ),
        results=_result_schemas(report),
    )


# ============================================
# Class reminders
# ============================================


def reminder_window(now: datetime) -> tuple[int, str, str]:
    """
    Compute the reminder window for a moment in school-local time.

    Returns:
        (day_of_week with 0 = Sunday, "HH:MM" start, "HH:MM" end). The end is
        capped at 23:59 so the window never wraps past midnight.
    """
    day_of_week = (now.weekday() + 1) % 7
    target = now + REMINDER_WINDOW
    checked_time = now.strftime("%H:%M")
    target_time = target.strftime("%H:%M") if target.date() == now.date() else "23:59"
    return day_of_week, checked_time, target_time


async def create_class_reminders(
    db: AsyncSession,
    now: datetime | None = None,
) -> ClassReminderResponse:
    """
    Notify teachers whose classes start within the next 10 minutes.

    Args:
        db: Database session
        now: Reference time (defaults to the current time in SCHOOL_TIMEZONE)

    Returns:
        ClassReminderResponse with the number of reminders written
    """
    if now is None:
        now = datetime.now(ZoneInfo(settings.school_timezone))

    day_of_week, checked_time, target_time = reminder_window(now)
    logger.info(f"Checking for classes on day {day_of_week} between {checked_time} and {target_time}")

    upcoming = await TimetableRepository.starting_between(
        db, day_of_week=day_of_week, start=checked_time, end=target_time
    )

    rows = []
    for entry in upcoming:
        if not entry.teacher_account_id:
            continue
        room = f" in Room {entry.room_number}" if entry.room_number else ""
        rows.append(
            NotificationRow(
                account_id=entry.teacher_account_id,
                title="Class Starting Soon",
                message=(
                    f"Your {entry.subject_name or 'Unknown Subject'} class for "
                    f"{entry.class_name or 'Unknown Class'} starts at {entry.start_time}{room}"
                ),
                type="class_reminder",
                link="/teacher/timetable",
            )
        )

    created = await NotificationRepository.bulk_create(db, rows)
    await db.commit()

    logger.info(f"Created {created} class reminders")
    return ClassReminderResponse(
        success=True,
        notifications_sent=created,
        checked_time=checked_time,
        target_time=target_time,
    )
