"""
Provisioning Saga

Records a compensating action for every side effect that lives outside the
request's database transaction, and runs them in reverse order when a later
step fails.
"""

import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Compensation = Callable[[], Awaitable[object]]


class ProvisioningSaga:
    """
    Ordered list of compensations for one provisioning attempt.

    Usage:
        saga = ProvisioningSaga("create_user")
        account = await auth.create_account(...)
        saga.add_compensation("create_account", lambda: auth.delete_account(account.id))
        try:
            ...
        except Exception:
            await saga.compensate()
            raise
    """

    def __init__(self, name: str):
        self.name = name
        self._steps: list[tuple[str, Compensation]] = []

    def add_compensation(self, step: str, action: Compensation) -> None:
        """Register the action that undoes `step`."""
        self._steps.append((step, action))

    @property
    def steps(self) -> list[str]:
        return [step for step, _ in self._steps]

    async def compensate(self) -> list[str]:
        """
        Run all registered compensations, most recent first.

        A failing compensation is logged and does not stop the others.

        Returns:
            Names of the steps whose compensation failed
        """
        failed: list[str] = []

        for step, action in reversed(self._steps):
            try:
                await action()
                logger.info(f"[{self.name}] Compensated step '{step}'")
            except Exception as e:
                logger.error(f"[{self.name}] Compensation for step '{step}' failed: {e}")
                failed.append(step)

        self._steps.clear()
        return failed
