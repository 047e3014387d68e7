"""Exception hierarchy for the deal board engine.

Every exception carries the context it was raised with as attributes so
that callers (and log records) can inspect it without parsing messages.

- DealflowError: Base class for all engine errors
- InvalidTransitionError: A move was denied by the transition rules
- UnknownStateError: A state identifier is not part of a pipeline
- DealNotFoundError: A deal id is not present in the local store
- DragInProgressError: A second drag gesture was started
- NoActiveDragError: A drag operation was issued with no gesture active
- MutationRejectedError: The remote store refused a mutation
- GatewayError: An HTTP gateway request failed
- ReconcilerClosedError: A command reached a torn-down reconciler
"""

from typing import Any, Optional


class DealflowError(Exception):
    """Base class for all deal board engine errors."""


class InvalidTransitionError(DealflowError):
    """Raised when a state transition is not allowed.

    Ordinary drops never raise this error; a denied drop simply snaps
    back. It is raised by the explicit actions (mark terminal, reset),
    which are direct user commands.

    Attributes:
        from_state: The current state of the deal.
        to_state: The attempted target state.
        message: Human-readable error message.
    """

    def __init__(
        self,
        from_state: str,
        to_state: str,
        message: Optional[str] = None,
    ):
        self.from_state = from_state
        self.to_state = to_state
        self.message = message or (
            f"Invalid transition from {from_state} to {to_state}"
        )
        super().__init__(self.message)


class UnknownStateError(DealflowError):
    """Raised when a state identifier is not defined by a pipeline.

    Attributes:
        state: The offending state identifier.
        pipeline: Name of the pipeline definition consulted.
    """

    def __init__(self, state: Any, pipeline: str):
        self.state = state
        self.pipeline = pipeline
        super().__init__(f"Unknown state {state!r} for pipeline {pipeline}")


class DealNotFoundError(DealflowError):
    """Raised when a deal is not present in the local store.

    Attributes:
        deal_id: The deal id that was not found.
    """

    def __init__(self, deal_id: Any):
        self.deal_id = deal_id
        super().__init__(f"Deal not found: {deal_id}")


class DragInProgressError(DealflowError):
    """Raised when a drag gesture starts while another one is active.

    Attributes:
        active_id: The deal currently being dragged.
        requested_id: The deal for which a new gesture was requested.
    """

    def __init__(self, active_id: Any, requested_id: Any):
        self.active_id = active_id
        self.requested_id = requested_id
        super().__init__(
            f"Cannot start dragging deal {requested_id}: "
            f"deal {active_id} is already being dragged"
        )


class NoActiveDragError(DealflowError):
    """Raised when a drag operation is issued without an active gesture."""

    def __init__(self, operation: str = "drag"):
        self.operation = operation
        super().__init__(f"No active drag session for {operation}")


class MutationRejectedError(DealflowError):
    """Raised when the remote store rejects a state mutation.

    Attributes:
        deal_id: The deal whose mutation was rejected.
        reason: Human-readable reason reported by the remote store.
        status_code: HTTP status code when the gateway is HTTP based.
    """

    def __init__(
        self,
        deal_id: Any,
        reason: str,
        status_code: Optional[int] = None,
    ):
        self.deal_id = deal_id
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Mutation rejected for deal {deal_id}: {reason}")


class GatewayError(DealflowError):
    """Raised when an HTTP gateway request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response, if any.
        response_body: Raw response body, if any.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class ReconcilerClosedError(DealflowError):
    """Raised when a closed reconciler receives a command.

    Attributes:
        pipeline: Name of the reconciler's pipeline.
    """

    def __init__(self, pipeline: str):
        self.pipeline = pipeline
        super().__init__(f"Reconciler for pipeline {pipeline} is closed")
