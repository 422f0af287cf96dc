"""
Helmsman Approval Gate

Owns the action lifecycle:

  pending  -> denied                      (approved=False, nothing runs)
  pending  -> approved -> executed|failed (approved=True)

Green actions are created already approved and can be run with
``run_approved``; they never pass through pending. denied, executed and
failed are terminal.

The same ``resolve`` serves the REST endpoint and the push channel. The
check-then-act sequence is serialized per action id with an asyncio.Lock,
and every transition is a compare-and-set on the stored status, so two
near-simultaneous resolutions execute the action at most once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from helmsman.core.models import (
    Action,
    ActionStatus,
    ExecutionOutcome,
    Tier,
    initial_status,
    utcnow,
)
from helmsman.engine.executor import ActionExecutor
from helmsman.exceptions import (
    ActionNotFoundError,
    HelmsmanError,
    InvalidTransitionError,
)
from helmsman.storage.repository import ActionRepository

logger = logging.getLogger(__name__)

ACTION_RESPONSE = "action:response"


class ApprovalGate:
    """Drives actions from pending to a terminal state."""

    def __init__(self, repository: ActionRepository, executor: ActionExecutor):
        self._repo = repository
        self._executor = executor
        # action id -> (lock, number of callers holding or waiting on it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def _serialized(self, action_id: str) -> AsyncIterator[None]:
        lock, users = self._locks.get(action_id, (asyncio.Lock(), 0))
        self._locks[action_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[action_id]
            if users == 1:
                del self._locks[action_id]
            else:
                self._locks[action_id] = (lock, users - 1)

    def create_action(
        self,
        command: str,
        module: str,
        tier: Tier,
        description: str = "",
        conversation_id: str | None = None,
    ) -> Action:
        """Record an action supplied directly by an API caller."""
        action = Action(
            conversation_id=conversation_id,
            tier=tier,
            description=description or f"Execute {module} command",
            command=command,
            module=module,
            status=initial_status(tier),
        )
        self._repo.insert(action)
        logger.info(
            "Action created",
            extra={"action_id": action.id, "tier": tier.value, "status": action.status.value},
        )
        return action

    async def resolve(self, action_id: str, approved: bool) -> Action:
        """Approve or deny a pending action.

        Raises:
            ActionNotFoundError: no such action.
            InvalidTransitionError: the action is not pending; nothing changed.
        """
        async with self._serialized(action_id):
            action = self._repo.get(action_id)
            if action is None:
                raise ActionNotFoundError(action_id)
            if action.status != ActionStatus.PENDING:
                raise InvalidTransitionError(action_id, action.status.value)

            if not approved:
                if not self._repo.update_status(
                    action_id,
                    ActionStatus.DENIED,
                    resolved_at=utcnow(),
                    expected_status=ActionStatus.PENDING,
                ):
                    raise self._lost_race(action_id)
                logger.info("Action denied", extra={"action_id": action_id, "status": "denied"})
                return self._repo.get(action_id)

            if not self._repo.update_status(
                action_id, ActionStatus.APPROVED, expected_status=ActionStatus.PENDING
            ):
                raise self._lost_race(action_id)

            return await self._execute(action)

    async def run_approved(self, action_id: str) -> Action:
        """Execute an action that was created already approved (green tier)."""
        async with self._serialized(action_id):
            action = self._repo.get(action_id)
            if action is None:
                raise ActionNotFoundError(action_id)
            if action.status != ActionStatus.APPROVED:
                raise InvalidTransitionError(action_id, action.status.value)
            return await self._execute(action)

    async def _execute(self, action: Action) -> Action:
        """Run an approved action and record its terminal state."""
        try:
            outcome = await self._executor.execute_action(action, self._repo)
        except Exception as e:
            logger.exception("Executor raised", extra={"action_id": action.id})
            outcome = ExecutionOutcome(success=False, error=f"{type(e).__name__}: {e}")
        status = ActionStatus.EXECUTED if outcome.success else ActionStatus.FAILED

        self._repo.update_status(
            action.id,
            status,
            result=outcome.output,
            error=outcome.error,
            resolved_at=utcnow(),
            expected_status=ActionStatus.APPROVED,
        )
        logger.info(
            "Action %s",
            status.value,
            extra={"action_id": action.id, "status": status.value, "action_module": action.module},
        )
        return self._repo.get(action.id)

    def _lost_race(self, action_id: str) -> InvalidTransitionError:
        current = self._repo.get(action_id)
        status = current.status.value if current else "missing"
        return InvalidTransitionError(action_id, status)

    async def handle_message(self, message: dict[str, Any]) -> Action | None:
        """Push-channel entry point.

        Only ``action:response`` messages are consumed; anything else is
        ignored. Failures are logged and swallowed so one bad message cannot
        break the socket loop. Returns the resolved action, if any.
        """
        if message.get("type") != ACTION_RESPONSE:
            return None

        payload = message.get("payload")
        if not isinstance(payload, dict):
            logger.warning("Ignoring %s with malformed payload", ACTION_RESPONSE)
            return None

        action_id = payload.get("actionId")
        if not isinstance(action_id, str) or not action_id:
            logger.warning("Ignoring %s without actionId", ACTION_RESPONSE)
            return None

        approved = payload.get("approved")
        if not isinstance(approved, bool):
            logger.warning(
                "Ignoring %s with non-boolean approved", ACTION_RESPONSE, extra={"action_id": action_id}
            )
            return None

        try:
            return await self.resolve(action_id, approved)
        except HelmsmanError as e:
            logger.warning("Push resolution rejected: %s", e, extra={"action_id": action_id})
            return None
