"""Board reconciler.

The Reconciler is the one object a board view talks to. It owns:
- the local DealStore (what the board shows)
- the DragSession (the single gesture in progress)
- the in-flight gateway calls, one asyncio task per accepted command

Drop path:

    drag_end() → validate → denied | noop | optimistic apply
                                            → on_state_change callback
                                            → gateway task → commit | rollback

Denied drops and same-column drops never reach the gateway. Gateway calls
never block the caller: drag_end() returns as soon as the local store
reflects the move, and the returned DropOutcome carries the task that
settles it. Tasks for different deals run concurrently; their results
only ever touch their own deal.

Source:
- src/dealflow/reconcile/commands.py (OptimisticExecutor)
- src/dealflow/stages/validator.py (transition rules)
- src/dealflow/events (observability and user notifications)
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from src.dealflow.board.index import build_index, summarize
from src.dealflow.board.models import BoardIndex, BoardSummary, DealId, DealSnapshot
from src.dealflow.config import BoardSettings, get_settings
from src.dealflow.drag.geometry import Point, Rect
from src.dealflow.drag.models import DragState
from src.dealflow.drag.session import DragSession
from src.dealflow.errors import InvalidTransitionError, ReconcilerClosedError
from src.dealflow.events.emitter import (
    EventEmitter,
    LoggingEventEmitter,
    create_event_emitter,
)
from src.dealflow.events.models import BoardEvent, EventType
from src.dealflow.events.notifications import NotificationCenter
from src.dealflow.reconcile.commands import (
    CommandKind,
    CommandOutcome,
    OptimisticExecutor,
    RemoteCall,
    TransitionCommand,
)
from src.dealflow.reconcile.gateway import MutationGateway
from src.dealflow.reconcile.store import DealStore
from src.dealflow.stages.models import PipelineDefinition, StageProgress
from src.dealflow.stages.validator import (
    allowed_targets,
    can_mark_terminal,
    can_reset,
    check_transition,
    reset_target,
    stage_progress,
)


logger = logging.getLogger(__name__)


StateChangeCallback = Callable[[DealId, str], None]


def _state_name(state: Any) -> str:
    return state.value if isinstance(state, Enum) else str(state)


class DropResult(str, Enum):
    """How a drop was handled.

    Attributes:
        ACCEPTED: Applied locally; a gateway call is in flight.
        NOOP: Dropped on the deal's own column; nothing to do.
        DENIED: Refused by the transition rules; the card snaps back.
        CANCELLED: No drop target, or the deal vanished mid-gesture.
    """

    ACCEPTED = "accepted"
    NOOP = "noop"
    DENIED = "denied"
    CANCELLED = "cancelled"


@dataclass
class DropOutcome:
    """Result of ending a gesture or requesting a move.

    Attributes:
        result: How the drop was handled.
        deal_id: The deal that was dragged, if any.
        from_state: The deal's state when the drop was handled.
        to_state: The requested target state.
        reason: Why the drop was denied or cancelled.
        task: Task settling the gateway call (ACCEPTED only). It resolves
            to the CommandOutcome.
    """

    result: DropResult
    deal_id: Optional[DealId] = None
    from_state: Optional[str] = None
    to_state: Optional[str] = None
    reason: Optional[str] = None
    task: Optional["asyncio.Task[CommandOutcome]"] = None

    @property
    def accepted(self) -> bool:
        return self.result == DropResult.ACCEPTED

    async def settled(self) -> Optional[CommandOutcome]:
        """Wait for the gateway call, if there is one."""
        if self.task is None:
            return None
        return await self.task


class Reconciler:
    """Keeps a board's local state consistent with the remote store.

    Attributes:
        definition: The pipeline definition the board displays.
        gateway: Persists state changes.
        store: Local deal collection.
        session: The board's drag session.
        emitter: Receives board events.
        notifications: Receives user-visible messages.
        on_state_change: Called with (deal_id, new_state) whenever a drop
            is accepted locally.

    Example:
        >>> reconciler = Reconciler(CAMPAIGN_PIPELINE, gateway, deals=deals)
        >>> outcome = await reconciler.drop(12, "confirmed")
        >>> await outcome.settled()
    """

    def __init__(
        self,
        definition: PipelineDefinition,
        gateway: MutationGateway,
        deals: Iterable[DealSnapshot] = (),
        store: Optional[DealStore] = None,
        emitter: Optional[EventEmitter] = None,
        notifications: Optional[NotificationCenter] = None,
        on_state_change: Optional[StateChangeCallback] = None,
        activation_distance: float = 8.0,
    ):
        self.definition = definition
        self.gateway = gateway
        self.store = store if store is not None else DealStore(deals)
        self.session = DragSession(activation_distance)
        self.emitter = emitter if emitter is not None else LoggingEventEmitter()
        self.notifications = (
            notifications if notifications is not None else NotificationCenter()
        )
        self.on_state_change = on_state_change
        self.executor = OptimisticExecutor(self.store)

        self._tasks: Dict["asyncio.Task[CommandOutcome]", DealId] = {}
        self._event_tasks: Set["asyncio.Task[None]"] = set()
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        definition: PipelineDefinition,
        gateway: MutationGateway,
        settings: Optional[BoardSettings] = None,
        **kwargs: Any,
    ) -> "Reconciler":
        """Build a reconciler wired from BoardSettings.

        Keyword arguments override the settings-derived collaborators.
        """
        settings = settings or get_settings()
        kwargs.setdefault("emitter", create_event_emitter(settings.event_sinks))
        kwargs.setdefault(
            "notifications",
            NotificationCenter(limit=settings.notification_limit),
        )
        kwargs.setdefault("activation_distance", settings.drag_activation_distance)
        return cls(definition, gateway, **kwargs)

    # -------------------------------------------------------------------------
    # Data
    # -------------------------------------------------------------------------

    def load_deals(self, deals: Iterable[DealSnapshot]) -> None:
        """Replace the local collection with freshly fetched deals."""
        self.store.load(deals)

    def board(self) -> BoardIndex:
        return build_index(self.store.deals(), self.definition)

    def summary(self) -> BoardSummary:
        return summarize(self.board(), self.definition)

    def progress(self, deal_id: DealId) -> StageProgress:
        """Stage progress of one deal (for progress bars)."""
        return stage_progress(self.definition, self.store.require(deal_id).state)

    # -------------------------------------------------------------------------
    # Drag gesture
    # -------------------------------------------------------------------------

    def drag_start(
        self,
        deal_id: DealId,
        pointer: Optional[Point] = None,
        item_rect: Optional[Rect] = None,
    ) -> DragState:
        """Open a gesture on a deal.

        With a pointer the gesture waits for the activation distance
        (pointer drag); without one it is dragging immediately (keyboard
        pick-up).

        Raises:
            DealNotFoundError: If the deal is not on the board.
            DragInProgressError: If another gesture is open.
        """
        self._ensure_open()
        deal = self.store.require(deal_id)

        if pointer is None:
            state = self.session.start(deal_id, deal.state)
        else:
            state = self.session.press(deal_id, deal.state, pointer, item_rect)

        self._emit_soon(EventType.DRAG_STARTED, deal_id, {"from_state": deal.state})
        return state

    def drag_move(
        self,
        pointer: Point,
        regions: Optional[Dict[str, Rect]] = None,
    ) -> DragState:
        return self.session.move(pointer, regions)

    def drag_over(self, state: Optional[str]) -> DragState:
        return self.session.hover(state)

    def drag_cancel(self) -> DropOutcome:
        active_id = self.session.active_id
        self.session.cancel()
        if active_id is not None:
            self._emit_soon(EventType.DRAG_CANCELLED, active_id, {})
        return DropOutcome(result=DropResult.CANCELLED, deal_id=active_id)

    def current_drag_state(self) -> DragState:
        return self.session.snapshot()

    def drop_targets(self) -> List[str]:
        """States the active gesture may be dropped on (for highlighting)."""
        origin = self.session.snapshot().origin_state
        if origin is None:
            return []
        return allowed_targets(self.definition, origin)

    def drag_end(self) -> DropOutcome:
        """End the gesture and handle the drop.

        Must be called from a running event loop when the drop can be
        accepted, since the gateway call is scheduled as a task.

        Raises:
            NoActiveDragError: If no gesture is open.
        """
        active_id = self.session.active_id
        gesture = self.session.release()

        if gesture.intent is None:
            self._emit_soon(EventType.DRAG_CANCELLED, active_id, {})
            return DropOutcome(result=DropResult.CANCELLED, deal_id=active_id)

        return self._handle_drop(gesture.intent.deal_id, gesture.intent.to_state)

    async def drop(self, deal_id: DealId, to_state: Any) -> DropOutcome:
        """Move a deal without a pointer gesture and wait for the result.

        Runs the same path as a drag drop: validation, optimistic apply,
        callback, gateway call.
        """
        outcome = self._handle_drop(deal_id, to_state)
        if outcome.task is not None:
            await outcome.task
        return outcome

    def _handle_drop(self, deal_id: DealId, to_state: Any) -> DropOutcome:
        self._ensure_open()

        deal = self.store.get(deal_id)
        if deal is None:
            logger.info(
                "Dropped deal is no longer on the board",
                extra={"deal_id": deal_id, "pipeline": self.definition.name},
            )
            return DropOutcome(
                result=DropResult.CANCELLED,
                deal_id=deal_id,
                reason="deal is no longer on the board",
            )

        from_state = deal.state
        check = check_transition(self.definition, from_state, to_state)
        if not check.allowed:
            self._emit_soon(
                EventType.DROP_DENIED,
                deal_id,
                {
                    "from_state": from_state,
                    "to_state": _state_name(to_state),
                    "reason": check.reason,
                },
            )
            return DropOutcome(
                result=DropResult.DENIED,
                deal_id=deal_id,
                from_state=from_state,
                to_state=_state_name(to_state),
                reason=check.reason,
            )

        target = self.definition.coerce(to_state)
        if target == from_state:
            self._emit_soon(
                EventType.DROP_ACCEPTED,
                deal_id,
                {"from_state": from_state, "to_state": target, "noop": True},
            )
            return DropOutcome(
                result=DropResult.NOOP,
                deal_id=deal_id,
                from_state=from_state,
                to_state=target,
            )

        # Fails before touching the store when called outside an event loop
        asyncio.get_running_loop()

        command = self.executor.apply_optimistic(
            TransitionCommand(
                deal_id=deal_id,
                kind=CommandKind.MOVE,
                from_state=from_state,
                to_state=target,
            )
        )
        self._notify_state_change(deal_id, target)
        self._emit_soon(
            EventType.DROP_ACCEPTED,
            deal_id,
            {"from_state": from_state, "to_state": target},
        )

        task = self._schedule(command, self._remote_update)
        return DropOutcome(
            result=DropResult.ACCEPTED,
            deal_id=deal_id,
            from_state=from_state,
            to_state=target,
            task=task,
        )

    # -------------------------------------------------------------------------
    # Explicit actions
    # -------------------------------------------------------------------------

    async def mark_terminal(
        self,
        deal_id: DealId,
        terminal_state: Any,
        reason: Optional[str] = None,
    ) -> CommandOutcome:
        """Record a won/lost decision for a deal.

        Args:
            deal_id: The deal to close.
            terminal_state: One of the pipeline's terminal states.
            reason: Why the deal was closed (sent as the lost reason or
                as notes, depending on the gateway).

        Returns:
            CommandOutcome; a rejected call is rolled back and reported
            through the NotificationCenter, not raised.

        Raises:
            DealNotFoundError: If the deal is not on the board.
            UnknownStateError: If terminal_state is not in the pipeline.
            InvalidTransitionError: If the deal cannot be closed that way.
        """
        self._ensure_open()
        deal = self.store.require(deal_id)
        target = self.definition.coerce(terminal_state)

        if not can_mark_terminal(self.definition, deal.state, target):
            if not self.definition.is_terminal(target):
                message = f"{target} is not a terminal state"
            else:
                message = f"Deal {deal_id} is already closed as {deal.state}; reset it first"
            raise InvalidTransitionError(deal.state, target, message)

        command = self.executor.apply_optimistic(
            TransitionCommand(
                deal_id=deal_id,
                kind=CommandKind.MARK_TERMINAL,
                from_state=deal.state,
                to_state=target,
                reason=reason,
            )
        )
        return await self._schedule(command, self._remote_mark_terminal)

    async def reset(self, deal_id: DealId) -> CommandOutcome:
        """Reopen a terminal deal at the first state of the pipeline.

        Raises:
            DealNotFoundError: If the deal is not on the board.
            InvalidTransitionError: If the deal is not in a terminal state.
        """
        self._ensure_open()
        deal = self.store.require(deal_id)
        target = reset_target(self.definition)

        if not can_reset(self.definition, deal.state):
            raise InvalidTransitionError(
                deal.state,
                target,
                f"Only closed deals can be reset; deal {deal_id} is {deal.state}",
            )

        command = self.executor.apply_optimistic(
            TransitionCommand(
                deal_id=deal_id,
                kind=CommandKind.RESET,
                from_state=deal.state,
                to_state=target,
            )
        )
        return await self._schedule(command, self._remote_reset)

    # -------------------------------------------------------------------------
    # In-flight commands
    # -------------------------------------------------------------------------

    def pending(self, deal_id: Optional[DealId] = None) -> bool:
        """Whether a gateway call is in flight (for one deal, or any)."""
        if deal_id is None:
            return bool(self._tasks)
        return deal_id in self._tasks.values()

    async def wait_idle(self) -> None:
        """Wait until every in-flight command and event has settled."""
        while self._tasks or self._event_tasks:
            await asyncio.gather(*list(self._tasks), *list(self._event_tasks))

    async def aclose(self) -> None:
        """Tear down the board.

        In-flight gateway calls are cancelled and their outcomes
        discarded: no commit, no rollback, no notification.
        """
        if self._closed:
            return
        self._closed = True
        self.session.cancel()

        discarded = len(self._tasks)
        tasks = list(self._tasks) + list(self._event_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.info(
            "Reconciler closed",
            extra={
                "pipeline": self.definition.name,
                "discarded_commands": discarded,
            },
        )
        self._tasks.clear()
        self._event_tasks.clear()
        await self.emitter.close()

    def _schedule(
        self,
        command: TransitionCommand,
        remote: RemoteCall,
    ) -> "asyncio.Task[CommandOutcome]":
        task = asyncio.create_task(self._settle(command, remote))
        self._tasks[task] = command.deal_id
        task.add_done_callback(self._forget_task)
        return task

    def _forget_task(self, task: "asyncio.Task[CommandOutcome]") -> None:
        self._tasks.pop(task, None)

    async def _settle(
        self,
        command: TransitionCommand,
        remote: RemoteCall,
    ) -> CommandOutcome:
        outcome = await self.executor.settle(command, remote)
        details = {
            "from_state": command.from_state,
            "to_state": command.to_state,
            "kind": command.kind.value,
            "duration_seconds": outcome.duration_seconds,
        }

        if outcome.committed:
            await self._emit(EventType.MUTATION_COMMITTED, command.deal_id, details)
            if command.kind == CommandKind.MARK_TERMINAL:
                await self._emit(
                    EventType.TERMINAL_MARKED,
                    command.deal_id,
                    {"terminal_state": command.to_state, "reason": command.reason},
                )
                self.notifications.success(
                    f"Deal marked as {self.definition.label(command.to_state)}",
                    deal_id=command.deal_id,
                )
            elif command.kind == CommandKind.RESET:
                await self._emit(EventType.DEAL_RESET, command.deal_id, details)
                self.notifications.success(
                    f"Deal reopened at {self.definition.label(command.to_state)}",
                    deal_id=command.deal_id,
                )
        elif outcome.rolled_back:
            await self._emit(
                EventType.MUTATION_ROLLED_BACK,
                command.deal_id,
                {**details, "reason": outcome.error, "status_code": outcome.status_code},
            )
            self.notifications.error(
                self._failure_message(command, outcome.error),
                deal_id=command.deal_id,
            )

        return outcome

    def _failure_message(self, command: TransitionCommand, error: Optional[str]) -> str:
        label = self.definition.label(command.to_state)
        if command.kind == CommandKind.MARK_TERMINAL:
            action = f"mark deal as {label}"
        elif command.kind == CommandKind.RESET:
            action = "reopen deal"
        else:
            action = f"move deal to {label}"
        return f"Failed to {action}: {error}" if error else f"Failed to {action}"

    async def _remote_update(self, command: TransitionCommand) -> DealSnapshot:
        return await self.gateway.update_state(command.deal_id, command.to_state)

    async def _remote_mark_terminal(self, command: TransitionCommand) -> DealSnapshot:
        return await self.gateway.mark_terminal(
            command.deal_id,
            command.to_state,
            command.reason,
        )

    async def _remote_reset(self, command: TransitionCommand) -> DealSnapshot:
        return await self.gateway.reset(command.deal_id)

    # -------------------------------------------------------------------------
    # Outputs
    # -------------------------------------------------------------------------

    def _notify_state_change(self, deal_id: DealId, state: str) -> None:
        if self.on_state_change is None:
            return
        try:
            self.on_state_change(deal_id, state)
        except Exception:
            logger.exception(
                "State change callback failed",
                extra={"deal_id": deal_id, "to_state": state},
            )

    async def _emit(
        self,
        event_type: EventType,
        deal_id: DealId,
        details: Dict[str, Any],
    ) -> None:
        try:
            await self.emitter.emit(
                BoardEvent(
                    event_type=event_type,
                    deal_id=deal_id,
                    pipeline=self.definition.name,
                    details=details,
                )
            )
        except Exception as e:
            logger.error(
                "Failed to emit board event: %s",
                str(e),
                extra={"event_type": event_type.value, "deal_id": deal_id},
            )

    def _emit_soon(
        self,
        event_type: EventType,
        deal_id: Optional[DealId],
        details: Dict[str, Any],
    ) -> None:
        """Emit from synchronous gesture handlers without blocking them."""
        if deal_id is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                "No running event loop, board event not emitted",
                extra={"event_type": event_type.value, "deal_id": deal_id},
            )
            return
        task = loop.create_task(self._emit(event_type, deal_id, details))
        self._event_tasks.add(task)
        task.add_done_callback(self._event_tasks.discard)

    def _ensure_open(self) -> None:
        if self._closed:
            raise ReconcilerClosedError(self.definition.name)
