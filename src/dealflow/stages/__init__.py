"""Pipeline definitions and transition rules.

Two policies govern how deals move between states:
- unconstrained: any column to any column (campaign board)
- gated-forward: back freely, forward one stage at a time, terminal
  outcomes lock the deal until it is reset (opportunity flow)
"""

from src.dealflow.stages.definitions import (
    CAMPAIGN_PIPELINE,
    OPPORTUNITY_PIPELINE,
    PIPELINES,
    CampaignStatus,
    OpportunityStage,
    get_pipeline,
)
from src.dealflow.stages.models import (
    PipelineDefinition,
    StageProgress,
    TransitionPolicy,
)
from src.dealflow.stages.validator import (
    TransitionCheck,
    allowed_targets,
    can_mark_terminal,
    can_reset,
    can_transition,
    check_transition,
    reset_target,
    stage_progress,
)

__all__ = [
    # Models
    "PipelineDefinition",
    "StageProgress",
    "TransitionPolicy",
    # Built-in definitions
    "CAMPAIGN_PIPELINE",
    "OPPORTUNITY_PIPELINE",
    "PIPELINES",
    "CampaignStatus",
    "OpportunityStage",
    "get_pipeline",
    # Validator
    "TransitionCheck",
    "allowed_targets",
    "can_mark_terminal",
    "can_reset",
    "can_transition",
    "check_transition",
    "reset_target",
    "stage_progress",
]
