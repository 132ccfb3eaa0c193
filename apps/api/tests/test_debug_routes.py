"""
HTTP tests for the admin-only debug endpoints.
"""

from unittest.mock import AsyncMock

import pytest

from portal.core import scheduler
from portal.modules.notifications.jobs import JOB_ID_CLASS_REMINDERS
from portal.modules.users.models import UserRole

TRIGGER_URL = f"/debug/jobs/{JOB_ID_CLASS_REMINDERS}/trigger"


@pytest.fixture
def reminder_job(monkeypatch):
    job = AsyncMock()
    monkeypatch.setattr(scheduler, "_job_registry", {JOB_ID_CLASS_REMINDERS: job})
    monkeypatch.setattr(scheduler, "_job_triggers", {})
    monkeypatch.setattr(scheduler, "_scheduler", None)
    return job


class TestDebugJobAccess:
    """Job control endpoints require an admin."""

    @pytest.mark.parametrize(
        "method,url",
        [
            ("get", "/debug/jobs"),
            ("post", TRIGGER_URL),
            ("post", f"/debug/jobs/{JOB_ID_CLASS_REMINDERS}/pause"),
            ("post", f"/debug/jobs/{JOB_ID_CLASS_REMINDERS}/resume"),
            ("get", "/debug/db"),
            ("get", "/debug/redis"),
        ],
    )
    def test_missing_credentials_is_401(self, client, reminder_job, method, url):
        response = getattr(client, method)(url)

        assert response.status_code == 401
        reminder_job.assert_not_awaited()

    @pytest.mark.parametrize("role", [UserRole.TEACHER, UserRole.STUDENT, UserRole.PARENT])
    def test_non_admin_cannot_trigger(self, client, login_as, reminder_job, role):
        login_as(role)

        response = client.post(TRIGGER_URL)

        assert response.status_code == 403
        reminder_job.assert_not_awaited()

    def test_admin_can_trigger(self, client, login_as, reminder_job):
        login_as(UserRole.ADMIN)

        response = client.post(TRIGGER_URL)

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        reminder_job.assert_awaited_once()

    def test_admin_lists_jobs(self, client, login_as, reminder_job):
        login_as(UserRole.ADMIN)

        response = client.get("/debug/jobs")

        assert response.json() == {
            "jobs": [{"job_id": JOB_ID_CLASS_REMINDERS, "registered": True}]
        }
