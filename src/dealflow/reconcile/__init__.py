"""Optimistic reconciliation between the local board and the remote store.

Components:
- DealStore: Local deal collection with per-deal command tokens
- OptimisticExecutor: apply, await, then commit or compensate
- MutationGateway: Protocol for persisting state changes
- CampaignGateway / OpportunityGateway: HTTP gateways for the deal API
- Reconciler: Drag and explicit-action entry point for a board
"""

from src.dealflow.reconcile.commands import (
    CommandKind,
    CommandOutcome,
    CommandStatus,
    OptimisticExecutor,
    TransitionCommand,
)
from src.dealflow.reconcile.gateway import MutationGateway
from src.dealflow.reconcile.http_gateway import (
    ApiClient,
    CampaignGateway,
    OpportunityGateway,
)
from src.dealflow.reconcile.reconciler import DropOutcome, DropResult, Reconciler
from src.dealflow.reconcile.store import DealStore

__all__ = [
    # Store and commands
    "CommandKind",
    "CommandOutcome",
    "CommandStatus",
    "DealStore",
    "OptimisticExecutor",
    "TransitionCommand",
    # Gateways
    "ApiClient",
    "CampaignGateway",
    "MutationGateway",
    "OpportunityGateway",
    # Reconciler
    "DropOutcome",
    "DropResult",
    "Reconciler",
]
