"""Pipeline definition models.

This module defines the static description of a deal pipeline:
- TransitionPolicy: Enum of the supported movement policies
- PipelineDefinition: Legal states, terminal states and policy for one
  deal category
- StageProgress: Position of a deal inside a gated pipeline

A definition is immutable once built. Its states form a closed set: raw
identifiers coming from the presentation layer or the remote store are
coerced through `PipelineDefinition.coerce`, which rejects anything the
definition does not name.
"""

import re
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.dealflow.errors import UnknownStateError


class TransitionPolicy(str, Enum):
    """Movement policies a pipeline can follow.

    Attributes:
        UNCONSTRAINED: Any state is reachable from any other state.
        GATED_FORWARD: States are totally ordered; a deal may move to any
            earlier state or exactly one state ahead, and terminal states
            lock the deal until it is explicitly reset.
    """

    UNCONSTRAINED = "unconstrained"
    GATED_FORWARD = "gated_forward"


def _state_value(state: Any) -> Any:
    if isinstance(state, Enum):
        return state.value
    return state


def _member_name(state: str) -> str:
    """Upper-cased identifier for a state, never a reserved Enum name."""
    name = re.sub(r"\W", "_", state.upper()).strip("_")
    if not name:
        return "STATE"
    if name[0].isdigit():
        return f"S_{name}"
    return name


@lru_cache(maxsize=None)
def _build_state_enum(name: str, states: Tuple[str, ...]) -> Type[Enum]:
    class_name = "".join(part.capitalize() for part in name.replace("-", "_").split("_"))
    members = []
    used: Set[str] = set()
    for state in states:
        member = _member_name(state)
        candidate, n = member, 2
        while candidate in used:
            candidate = f"{member}_{n}"
            n += 1
        used.add(candidate)
        members.append((candidate, state))
    return Enum(f"{class_name or 'Pipeline'}State", members, type=str)


class PipelineDefinition(BaseModel):
    """Static description of the legal states of one deal category.

    Attributes:
        name: Pipeline identifier (e.g. "campaigns", "opportunities").
        states: Ordered state identifiers. Order drives the gated policy
            and the column order of the board.
        terminal_states: Subset of states that end the deal's lifecycle.
        policy: The transition policy governing movement.
        labels: Optional display label per state.

    Example:
        >>> definition = PipelineDefinition(
        ...     name="demo",
        ...     states=["brief", "qualified", "won", "lost"],
        ...     terminal_states=["won", "lost"],
        ...     policy=TransitionPolicy.GATED_FORWARD,
        ... )
        >>> definition.index_of("qualified")
        1
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        ...,
        min_length=1,
        description="Pipeline identifier",
    )

    states: Tuple[str, ...] = Field(
        ...,
        min_length=1,
        description="Ordered sequence of state identifiers",
    )

    terminal_states: FrozenSet[str] = Field(
        default_factory=frozenset,
        description="States that block ordinary transitions once entered",
    )

    policy: TransitionPolicy = Field(
        ...,
        description="Transition policy governing movement between states",
    )

    labels: Dict[str, str] = Field(
        default_factory=dict,
        description="Display label per state identifier",
    )

    @field_validator("states", "terminal_states", mode="before")
    @classmethod
    def unwrap_enum_members(cls, v: Any) -> Any:
        """Accept Enum members wherever a state identifier is expected."""
        if isinstance(v, (set, frozenset)):
            return frozenset(_state_value(s) for s in v)
        if isinstance(v, (list, tuple)):
            return [_state_value(s) for s in v]
        return v

    @field_validator("labels", mode="before")
    @classmethod
    def unwrap_label_keys(cls, v: Any) -> Any:
        """Accept Enum members as label keys."""
        if isinstance(v, dict):
            return {_state_value(k): label for k, label in v.items()}
        return v

    @model_validator(mode="after")
    def validate_state_sets(self) -> "PipelineDefinition":
        """Enforce the structural invariants of a definition."""
        if any(not state for state in self.states):
            raise ValueError("state identifiers cannot be empty")
        if len(set(self.states)) != len(self.states):
            raise ValueError(f"pipeline {self.name} has duplicate states")
        unknown_terminals = self.terminal_states.difference(self.states)
        if unknown_terminals:
            raise ValueError(
                f"terminal states {sorted(unknown_terminals)} are not part of "
                f"pipeline {self.name}"
            )
        unknown_labels = set(self.labels).difference(self.states)
        if unknown_labels:
            raise ValueError(
                f"labels reference unknown states {sorted(unknown_labels)}"
            )
        return self

    @property
    def is_gated(self) -> bool:
        """Whether the definition follows the gated-forward policy."""
        return self.policy == TransitionPolicy.GATED_FORWARD

    @property
    def flow_states(self) -> List[str]:
        """Ordered non-terminal states."""
        return [s for s in self.states if s not in self.terminal_states]

    def contains(self, state: Any) -> bool:
        return _state_value(state) in self.states

    def index_of(self, state: Any) -> int:
        """Return the position of a state, or -1 if it is unknown."""
        try:
            return self.states.index(_state_value(state))
        except ValueError:
            return -1

    def is_terminal(self, state: Any) -> bool:
        return _state_value(state) in self.terminal_states

    def coerce(self, state: Any) -> str:
        """Convert a raw state value into this definition's identifier.

        Args:
            state: A state identifier string or an Enum member.

        Returns:
            The canonical state identifier.

        Raises:
            UnknownStateError: If the state is not defined by this pipeline.
        """
        value = _state_value(state)
        if value not in self.states:
            raise UnknownStateError(value, self.name)
        return value

    def label(self, state: Any) -> str:
        """Display label for a state, falling back to a title-cased id."""
        value = _state_value(state)
        return self.labels.get(value) or str(value).replace("_", " ").title()

    def state_enum(self) -> Type[Enum]:
        """Closed enumeration of this definition's states.

        The enum is built once per (name, states) pair; members compare
        equal to their string identifiers.
        """
        return _build_state_enum(self.name, self.states)


class StageProgress(BaseModel):
    """Position of a deal within a gated pipeline.

    Attributes:
        state: The deal's current state.
        current_index: Position of the state within the ordered states.
        total_stages: Number of states in the pipeline.
        is_terminal: True iff the state is a terminal state.
        next_state: The single state a deal may advance to, if any.
    """

    state: str
    current_index: int = Field(..., ge=0)
    total_stages: int = Field(..., ge=1)
    is_terminal: bool = False
    next_state: Optional[str] = None
