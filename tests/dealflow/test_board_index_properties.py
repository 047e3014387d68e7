"""Property-based tests for the board index.

Verifies that build_index is a stable partition of its input, that
column totals are the sum of deal values, and that summaries split open
and closed value correctly.

Testing Configuration:
- Library: Hypothesis (Python)
- Minimum iterations: 100 per property test
"""

from decimal import Decimal
from typing import List

from hypothesis import given, settings, strategies as st

from src.dealflow.board import DealSnapshot, build_index, summarize
from src.dealflow.stages import CAMPAIGN_PIPELINE, OPPORTUNITY_PIPELINE


# =============================================================================
# Hypothesis Strategies for Generating Test Data
# =============================================================================


money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("1000000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


@st.composite
def campaign_deals(draw: st.DrawFn) -> List[DealSnapshot]:
    """Generate campaign deals with unique ids, some with no value."""
    ids = draw(st.lists(st.integers(min_value=1, max_value=10_000), unique=True, max_size=30))
    return [
        DealSnapshot(
            id=deal_id,
            state=draw(st.sampled_from(CAMPAIGN_PIPELINE.states)),
            aggregate_value=draw(st.one_of(st.none(), money)),
        )
        for deal_id in ids
    ]


# =============================================================================
# Property Tests
# =============================================================================


class TestBoardPartition:
    """Property tests for grouping deals into columns.

    *For any* deal collection, every deal with a known state appears in
    exactly one column (its state's), in input order.
    """

    @given(deals=campaign_deals())
    @settings(max_examples=100)
    def test_every_deal_in_exactly_its_column(self, deals: List[DealSnapshot]) -> None:
        index = build_index(deals, CAMPAIGN_PIPELINE)

        assert index.total_deals == len(deals)
        for deal in deals:
            assert index.locate(deal.id) == deal.state

    @given(deals=campaign_deals())
    @settings(max_examples=100)
    def test_partition_is_stable(self, deals: List[DealSnapshot]) -> None:
        index = build_index(deals, CAMPAIGN_PIPELINE)

        for column in index.iter_columns():
            expected = [deal.id for deal in deals if deal.state == column.state]
            assert column.ids == expected

    @given(deals=campaign_deals())
    @settings(max_examples=100)
    def test_every_state_has_a_column_in_order(self, deals: List[DealSnapshot]) -> None:
        index = build_index(deals, CAMPAIGN_PIPELINE)

        assert index.states() == list(CAMPAIGN_PIPELINE.states)

    def test_unknown_states_are_excluded(self) -> None:
        deals = [
            DealSnapshot(id=1, state="lead"),
            DealSnapshot(id=2, state="archived"),
        ]

        index = build_index(deals, CAMPAIGN_PIPELINE)

        assert index.total_deals == 1
        assert [deal.id for deal in index.excluded] == [2]
        assert index.locate(2) is None


class TestColumnTotals:
    """Property tests for column value totals.

    *For any* deal collection, a column's total is the sum of its deals'
    values, with absent values counted as zero.
    """

    @given(deals=campaign_deals())
    @settings(max_examples=100)
    def test_total_is_sum_of_values(self, deals: List[DealSnapshot]) -> None:
        index = build_index(deals, CAMPAIGN_PIPELINE)

        for column in index.iter_columns():
            expected = sum(
                (deal.aggregate_value or Decimal(0) for deal in deals if deal.state == column.state),
                Decimal(0),
            )
            assert column.total == expected

    def test_three_deals_in_one_state(self) -> None:
        deals = [
            DealSnapshot(id=1, state="negotiation", aggregate_value=100),
            DealSnapshot(id=2, state="negotiation", aggregate_value=250),
            DealSnapshot(id=3, state="negotiation", aggregate_value=0),
        ]

        index = build_index(deals, CAMPAIGN_PIPELINE)

        assert index["negotiation"].total == Decimal(350)
        assert index["negotiation"].count == 3

    def test_empty_columns_total_zero(self) -> None:
        index = build_index([], OPPORTUNITY_PIPELINE)

        assert len(index) == 12
        assert all(column.total == 0 for column in index.iter_columns())

    def test_string_and_blank_values(self) -> None:
        deals = [
            DealSnapshot(id=1, state="lead", aggregate_value="5000.00"),
            DealSnapshot(id=2, state="lead", aggregate_value=""),
            DealSnapshot(id=3, state="lead"),
        ]

        index = build_index(deals, CAMPAIGN_PIPELINE)

        assert index["lead"].total == Decimal("5000.00")

    def test_moving_a_deal_moves_its_value(self) -> None:
        deals = [
            DealSnapshot(id=7, state="lead", aggregate_value=5000),
            DealSnapshot(id=8, state="lead", aggregate_value=1000),
            DealSnapshot(id=9, state="confirmed", aggregate_value=2000),
        ]
        before = build_index(deals, CAMPAIGN_PIPELINE)

        moved = [deals[0].with_state("confirmed"), deals[1], deals[2]]
        after = build_index(moved, CAMPAIGN_PIPELINE)

        assert after["lead"].total == before["lead"].total - 5000
        assert after["confirmed"].total == before["confirmed"].total + 5000
        assert after["confirmed"].ids == [7, 9]


class TestBoardSummary:
    """Unit tests for summarize."""

    @given(deals=campaign_deals())
    @settings(max_examples=100)
    def test_open_plus_closed_is_total(self, deals: List[DealSnapshot]) -> None:
        index = build_index(deals, CAMPAIGN_PIPELINE)
        summary = summarize(index, CAMPAIGN_PIPELINE)

        closed = index["completed"].total + index["lost"].total
        assert summary.open_value + closed == summary.total_value
        assert summary.total_deals == len(deals)

    def test_figures_per_state(self) -> None:
        deals = [
            DealSnapshot(id=1, state="won", aggregate_value=400),
            DealSnapshot(id=2, state="completed", aggregate_value=600),
        ]
        summary = summarize(build_index(deals, OPPORTUNITY_PIPELINE), OPPORTUNITY_PIPELINE)

        assert summary.by_state["won"].count == 1
        assert summary.by_state["won"].value == Decimal(400)
        assert summary.open_value == Decimal(400)
        assert summary.total_value == Decimal(1000)
