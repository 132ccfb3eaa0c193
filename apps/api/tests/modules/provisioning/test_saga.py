"""
Unit tests for the provisioning saga.
"""

from unittest.mock import AsyncMock

import pytest

from portal.modules.provisioning.saga import ProvisioningSaga


class TestProvisioningSaga:
    """Tests for compensation ordering and failure handling."""

    @pytest.mark.asyncio
    async def test_compensations_run_in_reverse_order(self):
        calls = []
        saga = ProvisioningSaga("test")

        async def undo(step):
            calls.append(step)

        saga.add_compensation("first", lambda: undo("first"))
        saga.add_compensation("second", lambda: undo("second"))

        failed = await saga.compensate()

        assert calls == ["second", "first"]
        assert failed == []

    @pytest.mark.asyncio
    async def test_failing_compensation_does_not_stop_the_others(self):
        first = AsyncMock()
        broken = AsyncMock(side_effect=RuntimeError("provider down"))
        saga = ProvisioningSaga("test")
        saga.add_compensation("first", first)
        saga.add_compensation("broken", broken)

        failed = await saga.compensate()

        assert failed == ["broken"]
        first.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_compensations_are_cleared_after_running(self):
        action = AsyncMock()
        saga = ProvisioningSaga("test")
        saga.add_compensation("create_account", action)
        assert saga.steps == ["create_account"]

        await saga.compensate()
        await saga.compensate()

        assert saga.steps == []
        action.assert_awaited_once()
