"""Property-based tests for the board reconciler.

Verifies, for arbitrary deals and targets, that drops which change
nothing never reach the mutation gateway, that denied drops never reach
it either, and that a rejected mutation restores the deal's exact
previous state.

Testing Configuration:
- Library: Hypothesis (Python)
- Minimum iterations: 100 per property test

Note: These tests use InMemoryGateway to exercise the MutationGateway
contract. The HTTP gateways are tested separately with httpx.MockTransport.
"""

import asyncio
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from hypothesis import assume, given, settings, strategies as st

from src.dealflow.board import DealId, DealSnapshot
from src.dealflow.errors import MutationRejectedError
from src.dealflow.events import NotificationLevel, NullEventEmitter
from src.dealflow.reconcile import DropResult, Reconciler
from src.dealflow.stages import (
    CAMPAIGN_PIPELINE,
    OPPORTUNITY_PIPELINE,
    PipelineDefinition,
)


def run_async(coro):
    return asyncio.run(coro)


# =============================================================================
# In-Memory Gateway for Testing
# =============================================================================


class InMemoryGateway:
    """In-memory implementation of MutationGateway for testing.

    Records every call and either persists the change or raises
    `fail_with` when it is set.
    """

    def __init__(self, deals: List[DealSnapshot], first_state: str) -> None:
        self.deals: Dict[DealId, DealSnapshot] = {deal.id: deal for deal in deals}
        self.first_state = first_state
        self.calls: List[Tuple] = []
        self.fail_with: Optional[Exception] = None

    async def _persist(self, snapshot: DealSnapshot) -> DealSnapshot:
        if self.fail_with is not None:
            raise self.fail_with
        self.deals[snapshot.id] = snapshot
        return snapshot

    async def update_state(self, deal_id: DealId, state: str) -> DealSnapshot:
        self.calls.append(("update_state", deal_id, state))
        return await self._persist(self.deals[deal_id].with_state(state))

    async def mark_terminal(
        self,
        deal_id: DealId,
        state: str,
        reason: Optional[str] = None,
    ) -> DealSnapshot:
        self.calls.append(("mark_terminal", deal_id, state, reason))
        return await self._persist(
            self.deals[deal_id].model_copy(update={"state": state, "lost_reason": reason})
        )

    async def reset(self, deal_id: DealId) -> DealSnapshot:
        self.calls.append(("reset", deal_id))
        return await self._persist(self.deals[deal_id].with_state(self.first_state))


def _make_reconciler(
    definition: PipelineDefinition,
    deals: List[DealSnapshot],
) -> Tuple[Reconciler, InMemoryGateway]:
    gateway = InMemoryGateway(deals, definition.states[0])
    reconciler = Reconciler(
        definition,
        gateway,
        deals=deals,
        emitter=NullEventEmitter(),
    )
    return reconciler, gateway


# =============================================================================
# Hypothesis Strategies for Generating Test Data
# =============================================================================


@st.composite
def deal_in(draw: st.DrawFn, definition: PipelineDefinition) -> DealSnapshot:
    return DealSnapshot(
        id=draw(st.integers(min_value=1, max_value=100_000)),
        state=draw(st.sampled_from(definition.flow_states)),
        aggregate_value=draw(
            st.one_of(
                st.none(),
                st.decimals(min_value=0, max_value=100_000, places=2),
            )
        ),
    )


@st.composite
def campaign_move(draw: st.DrawFn) -> Tuple[DealSnapshot, str]:
    """Generate a campaign deal and a different target state."""
    deal = draw(deal_in(CAMPAIGN_PIPELINE))
    target = draw(st.sampled_from(CAMPAIGN_PIPELINE.states))
    assume(target != deal.state)
    return deal, target


# =============================================================================
# Property Tests
# =============================================================================


class TestNoopDrops:
    """Dropping a deal on its own column never calls the gateway.

    *For any* deal in any pipeline, a drop onto its current state is a
    NOOP and leaves the store unchanged.
    """

    @given(deal=deal_in(CAMPAIGN_PIPELINE))
    @settings(max_examples=100)
    def test_campaign_same_column(self, deal: DealSnapshot) -> None:
        reconciler, gateway = _make_reconciler(CAMPAIGN_PIPELINE, [deal])

        async def test():
            outcome = await reconciler.drop(deal.id, deal.state)
            await reconciler.wait_idle()
            return outcome

        outcome = run_async(test())

        assert outcome.result == DropResult.NOOP
        assert gateway.calls == []
        assert reconciler.store.require(deal.id) == deal

    @given(deal=deal_in(OPPORTUNITY_PIPELINE))
    @settings(max_examples=100)
    def test_opportunity_same_column(self, deal: DealSnapshot) -> None:
        reconciler, gateway = _make_reconciler(OPPORTUNITY_PIPELINE, [deal])

        outcome = run_async(reconciler.drop(deal.id, deal.state))

        assert outcome.result == DropResult.NOOP
        assert gateway.calls == []


class TestDeniedDrops:
    """Denied drops never reach the gateway.

    *For any* opportunity deal and a target more than one stage ahead,
    the drop is DENIED and the deal stays where it was.
    """

    @given(deal=deal_in(OPPORTUNITY_PIPELINE), data=st.data())
    @settings(max_examples=100)
    def test_skipping_stages_is_denied(
        self,
        deal: DealSnapshot,
        data: st.DataObject,
    ) -> None:
        i = OPPORTUNITY_PIPELINE.index_of(deal.state)
        assume(i + 2 < len(OPPORTUNITY_PIPELINE.states))
        target = data.draw(st.sampled_from(OPPORTUNITY_PIPELINE.states[i + 2:]))
        reconciler, gateway = _make_reconciler(OPPORTUNITY_PIPELINE, [deal])

        outcome = run_async(reconciler.drop(deal.id, target))

        assert outcome.result == DropResult.DENIED
        assert outcome.reason
        assert gateway.calls == []
        assert reconciler.store.require(deal.id).state == deal.state


class TestRollback:
    """A rejected mutation restores the deal's previous state exactly.

    *For any* campaign deal at X and valid target Y, when the gateway
    rejects the move the deal ends at X, the board shows it in column X,
    and the user sees one error notification.
    """

    @given(move=campaign_move())
    @settings(max_examples=100)
    def test_rejection_restores_previous_state(
        self,
        move: Tuple[DealSnapshot, str],
    ) -> None:
        deal, target = move
        reconciler, gateway = _make_reconciler(CAMPAIGN_PIPELINE, [deal])
        gateway.fail_with = MutationRejectedError(deal.id, "rejected")

        async def test():
            outcome = await reconciler.drop(deal.id, target)
            return outcome, await outcome.settled()

        outcome, command_outcome = run_async(test())

        assert outcome.result == DropResult.ACCEPTED
        assert command_outcome.rolled_back
        assert reconciler.store.require(deal.id).state == deal.state
        assert reconciler.board().locate(deal.id) == deal.state
        assert gateway.calls == [("update_state", deal.id, target)]
        notifications = reconciler.notifications.all()
        assert [n.level for n in notifications] == [NotificationLevel.ERROR]

    @given(move=campaign_move())
    @settings(max_examples=100)
    def test_success_moves_value_between_columns(
        self,
        move: Tuple[DealSnapshot, str],
    ) -> None:
        deal, target = move
        reconciler, _ = _make_reconciler(CAMPAIGN_PIPELINE, [deal])
        before = reconciler.board()

        run_async(reconciler.drop(deal.id, target))

        after = reconciler.board()
        assert after.locate(deal.id) == target
        assert after[target].total == before[target].total + deal.value
        assert after[deal.state].total == before[deal.state].total - deal.value
        assert after.total_value == before.total_value
        assert isinstance(after.total_value, Decimal)
