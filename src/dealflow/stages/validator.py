"""Transition rules for pipeline definitions.

All functions in this module are pure: they consult a PipelineDefinition
and a pair of states and never touch deal data or I/O. The presentation
layer may call them freely, e.g. to disable invalid drop targets.

Rules:
- Unknown source or target states are never valid.
- UNCONSTRAINED: any defined target is valid, including the current
  state (an idempotent no-op).
- GATED_FORWARD: a deal in a terminal state cannot move at all; otherwise
  it may move to any earlier state, stay where it is, or advance exactly
  one state. Terminal states are entered only through the explicit
  mark-terminal action, never through an ordinary move.
- Reset is allowed from any terminal state and targets the first state.
"""

from typing import Any, List, Optional

from pydantic import BaseModel

from src.dealflow.stages.models import PipelineDefinition, StageProgress


class TransitionCheck(BaseModel):
    """Outcome of validating a candidate move.

    Attributes:
        allowed: Whether the move is permitted.
        delta: Index delta (target - current) for gated pipelines, None
            for unconstrained pipelines or unknown states.
        reason: Why the move was denied, None when allowed.
    """

    allowed: bool
    delta: Optional[int] = None
    reason: Optional[str] = None


def check_transition(
    definition: PipelineDefinition,
    from_state: Any,
    to_state: Any,
) -> TransitionCheck:
    """Validate a candidate move and explain the decision.

    Args:
        definition: The pipeline definition governing the deal.
        from_state: The deal's current state.
        to_state: The candidate target state.

    Returns:
        TransitionCheck with the decision, the index delta for gated
        pipelines, and a denial reason when the move is not allowed.

    Example:
        >>> check_transition(OPPORTUNITY_PIPELINE, "qualified", "shortlist").delta
        1
    """
    i = definition.index_of(from_state)
    j = definition.index_of(to_state)

    if i < 0:
        return TransitionCheck(allowed=False, reason="unknown source state")
    if j < 0:
        return TransitionCheck(allowed=False, reason="unknown target state")

    if not definition.is_gated:
        return TransitionCheck(allowed=True)

    delta = j - i
    if definition.is_terminal(from_state):
        return TransitionCheck(
            allowed=False,
            delta=delta,
            reason="deal is in a terminal state; reset it first",
        )
    if definition.is_terminal(to_state):
        return TransitionCheck(
            allowed=False,
            delta=delta,
            reason="terminal states are entered through an explicit action",
        )
    if delta > 1:
        return TransitionCheck(
            allowed=False,
            delta=delta,
            reason="deals can only advance one stage at a time",
        )
    return TransitionCheck(allowed=True, delta=delta)


def can_transition(
    definition: PipelineDefinition,
    from_state: Any,
    to_state: Any,
) -> bool:
    """Check if an ordinary move between two states is allowed.

    Example:
        >>> can_transition(CAMPAIGN_PIPELINE, "lead", "completed")
        True
        >>> can_transition(OPPORTUNITY_PIPELINE, "brief", "shortlist")
        False
    """
    return check_transition(definition, from_state, to_state).allowed


def can_mark_terminal(
    definition: PipelineDefinition,
    from_state: Any,
    terminal_state: Any,
) -> bool:
    """Check if the explicit mark-terminal action is allowed.

    The action bypasses the one-step limit of gated pipelines but still
    requires the deal to be outside a terminal state. Unconstrained
    pipelines have no lock, so any defined source state qualifies.
    """
    if not definition.contains(from_state):
        return False
    if not definition.is_terminal(terminal_state):
        return False
    if definition.is_gated and definition.is_terminal(from_state):
        return False
    return True


def can_reset(definition: PipelineDefinition, state: Any) -> bool:
    """Check if the explicit reset (reopen) action is allowed."""
    return definition.is_terminal(state)


def reset_target(definition: PipelineDefinition) -> str:
    """State a deal returns to when it is reset."""
    return definition.states[0]


def allowed_targets(definition: PipelineDefinition, from_state: Any) -> List[str]:
    """List the states an ordinary move from `from_state` may reach."""
    return [s for s in definition.states if can_transition(definition, from_state, s)]


def stage_progress(definition: PipelineDefinition, state: Any) -> StageProgress:
    """Describe where a deal stands within a pipeline.

    Args:
        definition: The pipeline definition.
        state: The deal's current state.

    Returns:
        StageProgress for the state.

    Raises:
        UnknownStateError: If the state is not defined by the pipeline.
    """
    value = definition.coerce(state)
    index = definition.index_of(value)
    is_terminal = definition.is_terminal(value)

    next_state: Optional[str] = None
    if not is_terminal and index + 1 < len(definition.states):
        candidate = definition.states[index + 1]
        if can_transition(definition, value, candidate):
            next_state = candidate

    return StageProgress(
        state=value,
        current_index=index,
        total_stages=len(definition.states),
        is_terminal=is_terminal,
        next_state=next_state,
    )
