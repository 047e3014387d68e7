"""Optimistic command execution.

Every state change the reconciler performs goes through one path:

    apply_optimistic(cmd) → await_remote(cmd) → commit | compensate

The optimistic step changes the local store immediately so the board
reflects the move before the remote store answers. Commit replaces the
local snapshot with the canonical one returned by the remote store;
compensate restores the deal's last confirmed state, or the optimistic
target of an older command that is still in flight. Neither step
touches the local snapshot while a newer command for the same deal is
in flight, or after a newer command was confirmed (the command is then
reported as SUPERSEDED). Commands for different deals never interact.

Source:
- src/dealflow/reconcile/store.py (DealStore tokens and confirmed states)
"""

import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from src.dealflow.board.models import DealId, DealSnapshot
from src.dealflow.errors import GatewayError, MutationRejectedError
from src.dealflow.reconcile.store import DealStore


logger = logging.getLogger(__name__)


class CommandKind(str, Enum):
    """What a command does to a deal.

    Attributes:
        MOVE: Ordinary move produced by a drop.
        MARK_TERMINAL: Explicit won/lost decision.
        RESET: Explicit reopen of a terminal deal.
    """

    MOVE = "move"
    MARK_TERMINAL = "mark_terminal"
    RESET = "reset"


class CommandStatus(str, Enum):
    """How a command ended.

    Attributes:
        COMMITTED: Remote store accepted; canonical snapshot applied.
        COMPENSATED: Remote store rejected; local state restored.
        SUPERSEDED: A newer command owns the deal; outcome not applied.
    """

    COMMITTED = "committed"
    COMPENSATED = "compensated"
    SUPERSEDED = "superseded"


class TransitionCommand(BaseModel):
    """A state change for one deal.

    Attributes:
        deal_id: The deal to change.
        kind: What kind of change this is.
        from_state: State before the change; the compensation target.
        to_state: Requested state.
        reason: User-supplied reason (mark-terminal only).
        token: Store token stamped when the command was applied.
    """

    deal_id: DealId
    kind: CommandKind = CommandKind.MOVE
    from_state: str
    to_state: str
    reason: Optional[str] = None
    token: int = 0


class CommandOutcome(BaseModel):
    """Result of settling a command against the remote store.

    Attributes:
        command: The command that was settled.
        status: How it ended.
        snapshot: The deal's local snapshot after settling, if it is
            still in the store.
        error: Rejection reason for failed remote calls.
        status_code: HTTP status of a failed remote call, if known.
        duration_seconds: Time spent waiting for the remote store.
    """

    command: TransitionCommand
    status: CommandStatus
    snapshot: Optional[DealSnapshot] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    duration_seconds: float = Field(default=0.0, ge=0)

    @property
    def committed(self) -> bool:
        return self.status == CommandStatus.COMMITTED

    @property
    def rolled_back(self) -> bool:
        return self.status == CommandStatus.COMPENSATED


RemoteCall = Callable[[TransitionCommand], Awaitable[DealSnapshot]]


def as_rejection(deal_id: DealId, error: Exception) -> MutationRejectedError:
    """Normalise any remote failure into a MutationRejectedError."""
    if isinstance(error, MutationRejectedError):
        return error
    if isinstance(error, GatewayError):
        return MutationRejectedError(deal_id, error.message, error.status_code)
    return MutationRejectedError(deal_id, str(error) or type(error).__name__)


class OptimisticExecutor:
    """Runs TransitionCommands against a DealStore and a remote call.

    Attributes:
        store: The local deal store the commands change.
    """

    def __init__(self, store: DealStore):
        self.store = store

    def apply_optimistic(self, command: TransitionCommand) -> TransitionCommand:
        """Apply a command locally and stamp it with a store token.

        Returns:
            The command carrying its token.

        Raises:
            DealNotFoundError: If the deal is not in the store.
        """
        self.store.set_state(command.deal_id, command.to_state)
        token = self.store.issue_token(command.deal_id)
        return command.model_copy(update={"token": token})

    async def await_remote(
        self,
        command: TransitionCommand,
        remote: RemoteCall,
    ) -> DealSnapshot:
        return await remote(command)

    def commit(
        self,
        command: TransitionCommand,
        snapshot: DealSnapshot,
        duration_seconds: float = 0.0,
    ) -> CommandOutcome:
        """Apply the canonical snapshot returned by the remote store."""
        if not self.store.confirm(command.deal_id, command.token, snapshot):
            return self._superseded(command, duration_seconds)

        return CommandOutcome(
            command=command,
            status=CommandStatus.COMMITTED,
            snapshot=snapshot,
            duration_seconds=duration_seconds,
        )

    def compensate(
        self,
        command: TransitionCommand,
        error: Exception,
        duration_seconds: float = 0.0,
    ) -> CommandOutcome:
        """Roll the deal back after a rejection."""
        rejection = as_rejection(command.deal_id, error)

        restored = self.store.revert(command.deal_id, command.token)
        if restored is None:
            outcome = self._superseded(command, duration_seconds)
            return outcome.model_copy(
                update={"error": rejection.reason, "status_code": rejection.status_code}
            )

        logger.warning(
            "Remote store rejected state change, local state restored",
            extra={
                "deal_id": command.deal_id,
                "kind": command.kind.value,
                "from_state": command.from_state,
                "to_state": command.to_state,
                "reason": rejection.reason,
                "restored_state": restored.state,
            },
        )
        return CommandOutcome(
            command=command,
            status=CommandStatus.COMPENSATED,
            snapshot=restored,
            error=rejection.reason,
            status_code=rejection.status_code,
            duration_seconds=duration_seconds,
        )

    async def settle(
        self,
        command: TransitionCommand,
        remote: RemoteCall,
    ) -> CommandOutcome:
        """Await the remote call for an applied command and settle it.

        Cancellation propagates without compensating.
        """
        started = time.monotonic()
        try:
            snapshot = await self.await_remote(command, remote)
        except Exception as e:
            return self.compensate(command, e, time.monotonic() - started)
        return self.commit(command, snapshot, time.monotonic() - started)

    async def run(
        self,
        command: TransitionCommand,
        remote: RemoteCall,
    ) -> CommandOutcome:
        """Apply a command optimistically and settle it."""
        applied = self.apply_optimistic(command)
        return await self.settle(applied, remote)

    def _superseded(
        self,
        command: TransitionCommand,
        duration_seconds: float,
    ) -> CommandOutcome:
        logger.debug(
            "Command outcome superseded by a newer command",
            extra={"deal_id": command.deal_id, "token": command.token},
        )
        return CommandOutcome(
            command=command,
            status=CommandStatus.SUPERSEDED,
            snapshot=self.store.get(command.deal_id),
            duration_seconds=duration_seconds,
        )
