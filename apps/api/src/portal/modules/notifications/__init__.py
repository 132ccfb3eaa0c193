"""
Notifications Module

Fans notifications out to students, parents and teachers over email, SMS,
WhatsApp, web push and in-app notifications.

API Endpoints:
- POST /notifications/class - Class announcement (assignment or results)
- POST /notifications/push - WhatsApp, push and in-app to listed accounts
- POST /notifications/results - Exam results announcement
- POST /notifications/class-reminders - Upcoming class reminders for teachers

Background Jobs (via APScheduler):
- send_class_reminders: Runs every 10 minutes
"""

from .jobs import register_notification_jobs
from .router import router

__all__ = ["router", "register_notification_jobs"]
