"""
Notifications Router

API endpoints for staff to fan notifications out to students and parents.

Endpoints:
- POST /notifications/class - Announce an assignment or results to a class
- POST /notifications/push - WhatsApp, push and in-app to listed accounts
- POST /notifications/results - Announce published exam results
- POST /notifications/class-reminders - Remind teachers of upcoming classes

Security:
- All endpoints require a valid bearer token with the admin or teacher role
- Rate limited per caller
- Channel failures are reported per recipient and never fail the request
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.auth import CurrentUser, require_staff
from portal.core.database import get_db
from portal.core.exceptions import ServiceError, to_http_exception
from portal.core.rate_limit import enforce_rate_limit
from portal.modules.notifications import service
from portal.modules.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from portal.modules.notifications.schemas import (
    ClassNotificationRequest,
    ClassNotificationResponse,
    ClassReminderResponse,
    PushNotificationRequest,
    PushNotificationResponse,
    ResultNotificationRequest,
    ResultNotificationResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_CLASS = (20, 60)  # 20 class announcements per minute
RATE_LIMIT_PUSH = (20, 60)  # 20 push batches per minute
RATE_LIMIT_RESULTS = (20, 60)  # 20 result announcements per minute
RATE_LIMIT_REMINDERS = (10, 60)  # 10 manual reminder runs per minute

_STAFF_RESPONSES = {
    401: {"description": "Unauthenticated - invalid or missing token"},
    403: {"description": "Forbidden - not an admin or teacher"},
}


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


@router.post(
    "/class",
    response_model=ClassNotificationResponse,
    summary="Notify Class",
    description="""
Announce a new assignment or published results to every student in a class
and, unless `includeParents` is false, to their parents.

Students also get an in-app notification. An empty class succeeds with
`emailsSent = 0`.

**Access:** Admin or teacher
""",
    responses={**_STAFF_RESPONSES, 500: {"description": "Unexpected error"}},
)
async def notify_class(
    request: ClassNotificationRequest,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_staff),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ClassNotificationResponse:
    """Send a class notification."""
    await enforce_rate_limit(user.id, "notify_class", *RATE_LIMIT_CLASS)

    try:
        return await service.send_class_notification(db, request, dispatcher)
    except Exception as e:
        logger.exception(f"Error sending class notification: {e}")
        raise _internal_error() from e


@router.post(
    "/push",
    response_model=PushNotificationResponse,
    summary="Send Push, WhatsApp and In-App Notification",
    description="""
Send a notification to a list of accounts.

Each account with a profile gets an in-app notification. WhatsApp and push
are sent when requested and enabled in the recipient's preferences.

**Access:** Admin or teacher
""",
    responses={**_STAFF_RESPONSES, 400: {"description": "No recipients or blank content"}},
)
async def notify_users(
    request: PushNotificationRequest,
    user: CurrentUser = Depends(require_staff),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> PushNotificationResponse:
    """Send a push/WhatsApp/in-app notification."""
    await enforce_rate_limit(user.id, "notify_users", *RATE_LIMIT_PUSH)

    try:
        return await service.send_push_notification(request, dispatcher)
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Error sending push notification: {e}")
        raise _internal_error() from e


@router.post(
    "/results",
    response_model=ResultNotificationResponse,
    summary="Announce Exam Results",
    description="""
Announce published exam results to a class.

Students get email and in-app notifications. Parents get email, WhatsApp if
enabled, and SMS if they enabled SMS but not WhatsApp.

**Access:** Admin or teacher
""",
    responses={**_STAFF_RESPONSES, 500: {"description": "Unexpected error"}},
)
async def notify_results(
    request: ResultNotificationRequest,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_staff),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ResultNotificationResponse:
    """Send a result notification."""
    await enforce_rate_limit(user.id, "notify_results", *RATE_LIMIT_RESULTS)

    try:
        return await service.send_result_notification(db, request, dispatcher)
    except Exception as e:
        logger.exception(f"Error sending result notification: {e}")
        raise _internal_error() from e


@router.post(
    "/class-reminders",
    response_model=ClassReminderResponse,
    summary="Send Class Reminders",
    description="""
Write an in-app reminder for every teacher whose class starts within the
next 10 minutes (school timezone). The same job runs every 10 minutes in
the background.

**Access:** Admin or teacher
""",
    responses={**_STAFF_RESPONSES, 500: {"description": "Unexpected error"}},
)
async def class_reminders(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_staff),
) -> ClassReminderResponse:
    """Run the class reminder check now."""
    await enforce_rate_limit(user.id, "class_reminders", *RATE_LIMIT_REMINDERS)
    logger.info(f"{user} triggering class reminders")

    try:
        return await service.create_class_reminders(db)
    except Exception as e:
        logger.exception(f"Error sending class reminders: {e}")
        raise _internal_error() from e
