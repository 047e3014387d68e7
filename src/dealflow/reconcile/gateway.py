"""Mutation gateway protocol.

The gateway is the only way the engine talks to the remote store. A
successful call returns the canonical snapshot of the deal; any failure
is raised (MutationRejectedError for a refusal, GatewayError or any
other exception for transport problems) and triggers compensation.
"""

from typing import Optional, Protocol, runtime_checkable

from src.dealflow.board.models import DealId, DealSnapshot


@runtime_checkable
class MutationGateway(Protocol):
    """Protocol for persisting deal state changes.

    Implementations may target a REST API, a database, or an in-memory
    store in tests.
    """

    async def update_state(self, deal_id: DealId, state: str) -> DealSnapshot:
        """Persist an ordinary state change.

        Args:
            deal_id: The deal to change.
            state: The requested state.

        Returns:
            Canonical snapshot of the deal after the change.

        Raises:
            MutationRejectedError: If the remote store refuses the change.
        """
        ...

    async def mark_terminal(
        self,
        deal_id: DealId,
        state: str,
        reason: Optional[str] = None,
    ) -> DealSnapshot:
        """Persist an explicit won/lost decision.

        Args:
            deal_id: The deal to close.
            state: The terminal state to enter.
            reason: Why the deal was closed (e.g. lost reason).

        Returns:
            Canonical snapshot of the deal after the change.
        """
        ...

    async def reset(self, deal_id: DealId) -> DealSnapshot:
        """Reopen a terminal deal at the start of its pipeline.

        Returns:
            Canonical snapshot of the deal after the change.
        """
        ...
