"""Board read models.

- DealSnapshot: Minimal read model of one deal on a board
- BoardColumn: Deals currently in one state, with their value total
- BoardIndex: Ordered mapping of state to column for one pipeline
- BoardSummary: Headline figures for a whole board

Snapshots are immutable; the reconciler replaces a deal's snapshot
instead of editing it in place, which keeps every BoardIndex built from
an earlier collection valid.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


DealId = Union[int, str]


class DealSnapshot(BaseModel):
    """Read model of one deal on a pipeline board.

    Attributes:
        id: Stable identifier, unique within a pipeline.
        state: Current state identifier.
        aggregate_value: Monetary amount used for column totals. Numeric
            strings such as "5000.00" are accepted.
        sort_key: Key for stable ordering inside a column.
        owner_id: Id of the user who owns the deal, if any.
        title: Display title.
        lost_reason: Reason recorded when the deal was marked lost.
    """

    model_config = ConfigDict(frozen=True)

    id: DealId = Field(
        ...,
        description="Stable identifier, unique within a pipeline",
    )

    state: str = Field(
        ...,
        min_length=1,
        description="Current state identifier",
    )

    aggregate_value: Optional[Decimal] = Field(
        default=None,
        description="Amount used for column totals",
    )

    sort_key: int = Field(
        default=0,
        description="Stable intra-column ordering key",
    )

    owner_id: Optional[int] = Field(
        default=None,
        description="Owning user id",
    )

    title: Optional[str] = Field(
        default=None,
        description="Display title",
    )

    lost_reason: Optional[str] = Field(
        default=None,
        description="Reason recorded when the deal was marked lost",
    )

    @field_validator("state", mode="before")
    @classmethod
    def unwrap_state_enum(cls, v: Any) -> Any:
        """Accept Enum members as states."""
        if isinstance(v, Enum):
            return v.value
        return v

    @field_validator("aggregate_value", mode="before")
    @classmethod
    def blank_value_is_absent(cls, v: Any) -> Any:
        """Treat empty strings from the API as an absent value."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def value(self) -> Decimal:
        """Aggregate value with absent amounts counted as zero."""
        return self.aggregate_value if self.aggregate_value is not None else Decimal(0)

    def with_state(self, state: str) -> "DealSnapshot":
        """Return a copy of this snapshot in another state."""
        return self.model_copy(update={"state": state})


class BoardColumn(BaseModel):
    """Deals currently in one state.

    Attributes:
        state: The state identifier of the column.
        label: Display label of the state.
        items: Deals in the column, in input order.
        total: Sum of the deals' aggregate values.
    """

    state: str
    label: str
    items: List[DealSnapshot] = Field(default_factory=list)
    total: Decimal = Decimal(0)

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def ids(self) -> List[DealId]:
        return [deal.id for deal in self.items]


class BoardIndex(BaseModel):
    """Deals of one pipeline grouped by state.

    Columns follow the order of the pipeline definition. Every defined
    state has a column, even when empty. Deals whose state the
    definition does not know are kept in `excluded` and never displayed.

    Example:
        >>> index = build_index(deals, CAMPAIGN_PIPELINE)
        >>> index["lead"].total
        Decimal('5000')
    """

    pipeline: str
    columns: Dict[str, BoardColumn] = Field(default_factory=dict)
    excluded: List[DealSnapshot] = Field(default_factory=list)

    def __getitem__(self, state: Any) -> BoardColumn:
        if isinstance(state, Enum):
            state = state.value
        return self.columns[state]

    def __contains__(self, state: Any) -> bool:
        if isinstance(state, Enum):
            state = state.value
        return state in self.columns

    def __len__(self) -> int:
        return len(self.columns)

    def states(self) -> List[str]:
        return list(self.columns)

    def iter_columns(self) -> Iterator[BoardColumn]:
        return iter(self.columns.values())

    def locate(self, deal_id: DealId) -> Optional[str]:
        """Return the state column holding a deal, or None."""
        for column in self.columns.values():
            if deal_id in column.ids:
                return column.state
        return None

    @property
    def total_value(self) -> Decimal:
        return sum((c.total for c in self.columns.values()), Decimal(0))

    @property
    def total_deals(self) -> int:
        return sum(c.count for c in self.columns.values())


class StateFigures(BaseModel):
    """Count and value of the deals in one state."""

    count: int = 0
    value: Decimal = Decimal(0)


class BoardSummary(BaseModel):
    """Headline figures of a board.

    Attributes:
        pipeline: Name of the pipeline.
        total_deals: Number of displayed deals.
        total_value: Sum of all displayed deal values.
        open_value: Sum of values of deals outside terminal states.
        by_state: Count and value per state, in pipeline order.
    """

    pipeline: str
    total_deals: int = 0
    total_value: Decimal = Decimal(0)
    open_value: Decimal = Decimal(0)
    by_state: Dict[str, StateFigures] = Field(default_factory=dict)
