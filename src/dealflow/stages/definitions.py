"""Built-in pipeline definitions for the two deal categories.

Campaigns live on an unconstrained board: any campaign can be dragged to
any status column. Opportunities follow a gated-forward sales flow with
two terminal outcomes that are only reachable through the explicit
"mark won/lost" action.
"""

from enum import Enum
from typing import Dict

from src.dealflow.stages.models import PipelineDefinition, TransitionPolicy


class CampaignStatus(str, Enum):
    """Status columns of the campaign board."""

    LEAD = "lead"
    NEGOTIATION = "negotiation"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    LOST = "lost"


class OpportunityStage(str, Enum):
    """Stages of the opportunity sales flow.

    The first ten members form the ordered flow; COMPLETED and CLOSED_LOST
    are terminal outcomes.
    """

    BRIEF = "brief"
    QUALIFIED = "qualified"
    SHORTLIST = "shortlist"
    PROPOSAL_DRAFT = "proposal_draft"
    PROPOSAL_SENT = "proposal_sent"
    NEGOTIATION = "negotiation"
    CONTRACT_PREP = "contract_prep"
    CONTRACT_SENT = "contract_sent"
    WON = "won"
    EXECUTING = "executing"
    COMPLETED = "completed"
    CLOSED_LOST = "closed_lost"


CAMPAIGN_PIPELINE = PipelineDefinition(
    name="campaigns",
    states=list(CampaignStatus),
    terminal_states=[CampaignStatus.COMPLETED, CampaignStatus.LOST],
    policy=TransitionPolicy.UNCONSTRAINED,
    labels={
        CampaignStatus.LEAD: "Lead",
        CampaignStatus.NEGOTIATION: "Negotiation",
        CampaignStatus.CONFIRMED: "Confirmed",
        CampaignStatus.ACTIVE: "Active",
        CampaignStatus.COMPLETED: "Completed",
        CampaignStatus.LOST: "Lost",
    },
)


OPPORTUNITY_PIPELINE = PipelineDefinition(
    name="opportunities",
    states=list(OpportunityStage),
    terminal_states=[OpportunityStage.COMPLETED, OpportunityStage.CLOSED_LOST],
    policy=TransitionPolicy.GATED_FORWARD,
    labels={
        OpportunityStage.BRIEF: "Brief Intake",
        OpportunityStage.QUALIFIED: "Qualified",
        OpportunityStage.SHORTLIST: "Artist Shortlist",
        OpportunityStage.PROPOSAL_DRAFT: "Proposal Draft",
        OpportunityStage.PROPOSAL_SENT: "Proposal Sent",
        OpportunityStage.NEGOTIATION: "Negotiation",
        OpportunityStage.CONTRACT_PREP: "Contract Prep",
        OpportunityStage.CONTRACT_SENT: "Contract Sent",
        OpportunityStage.WON: "Won",
        OpportunityStage.EXECUTING: "Executing",
        OpportunityStage.COMPLETED: "Completed",
        OpportunityStage.CLOSED_LOST: "Lost",
    },
)


PIPELINES: Dict[str, PipelineDefinition] = {
    CAMPAIGN_PIPELINE.name: CAMPAIGN_PIPELINE,
    OPPORTUNITY_PIPELINE.name: OPPORTUNITY_PIPELINE,
}


def get_pipeline(name: str) -> PipelineDefinition:
    """Look up a built-in pipeline definition by name.

    Raises:
        KeyError: If no built-in pipeline has that name.
    """
    return PIPELINES[name]
