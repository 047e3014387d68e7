"""Board index construction.

The index is a pure function of a deal collection and a pipeline
definition. Nothing is cached between calls; callers rebuild the index
whenever the collection or any deal's state changes.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List

from src.dealflow.board.models import (
    BoardColumn,
    BoardIndex,
    BoardSummary,
    DealSnapshot,
    StateFigures,
)
from src.dealflow.stages.models import PipelineDefinition


logger = logging.getLogger(__name__)


def build_index(
    deals: Iterable[DealSnapshot],
    definition: PipelineDefinition,
) -> BoardIndex:
    """Group deals by state for display on a board.

    The grouping is a stable partition: within a column, deals keep the
    relative order they had in `deals`. Every state of the definition
    gets a column, so empty columns still render with a zero total.

    Args:
        deals: The deals to display.
        definition: The pipeline definition supplying the columns.

    Returns:
        BoardIndex with one column per defined state.
    """
    grouped: Dict[str, List[DealSnapshot]] = {state: [] for state in definition.states}
    excluded: List[DealSnapshot] = []

    for deal in deals:
        bucket = grouped.get(deal.state)
        if bucket is None:
            excluded.append(deal)
            continue
        bucket.append(deal)

    if excluded:
        logger.debug(
            "Deals in unknown states excluded from board",
            extra={
                "pipeline": definition.name,
                "excluded_ids": [deal.id for deal in excluded],
            },
        )

    columns = {
        state: BoardColumn(
            state=state,
            label=definition.label(state),
            items=items,
            total=sum((deal.value for deal in items), Decimal(0)),
        )
        for state, items in grouped.items()
    }

    return BoardIndex(pipeline=definition.name, columns=columns, excluded=excluded)


def summarize(index: BoardIndex, definition: PipelineDefinition) -> BoardSummary:
    """Compute headline figures for a board index.

    Args:
        index: An index built from `definition`.
        definition: The pipeline definition, used to tell open deals
            from closed ones.

    Returns:
        BoardSummary of the displayed deals.
    """
    by_state = {
        column.state: StateFigures(count=column.count, value=column.total)
        for column in index.iter_columns()
    }
    open_value = sum(
        (
            column.total
            for column in index.iter_columns()
            if not definition.is_terminal(column.state)
        ),
        Decimal(0),
    )
    return BoardSummary(
        pipeline=index.pipeline,
        total_deals=index.total_deals,
        total_value=index.total_value,
        open_value=open_value,
        by_state=by_state,
    )
