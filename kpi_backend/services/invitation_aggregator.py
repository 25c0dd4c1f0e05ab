"""
Peer-invitation score aggregation.

Only invitations already in ``completed`` status should be passed in; the
aggregator itself just looks at the score rows they carry.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from kpi_backend.models.invitation import EvaluationInvitation

SCENARIO_NO_INVITATION = "no_invitation"
SCENARIO_EMPLOYEE_INVITATION = "employee_invitation"


@dataclass(frozen=True)
class InvitationAggregate:
    average: float
    count: int


def invitation_has_completed_score(invitation: EvaluationInvitation) -> bool:
    return any(score.score is not None for score in invitation.scores)


def determine_scenario(
    invitations: Iterable[EvaluationInvitation],
) -> Tuple[str, List[EvaluationInvitation]]:
    """
    Pick the weighting scenario for a whole evaluation.

    An invitation counts only if at least one of its scores is filled in.
    Returns the scenario name and the invitations that qualified.
    """
    relevant = [inv for inv in invitations if invitation_has_completed_score(inv)]
    if not relevant:
        return SCENARIO_NO_INVITATION, []
    return SCENARIO_EMPLOYEE_INVITATION, relevant


def build_invitation_averages(
    invitations: Iterable[EvaluationInvitation],
) -> Dict[int, InvitationAggregate]:
    """Mean of all non-null invited scores per KPI item. Items without any score are absent."""
    sums: Dict[int, float] = {}
    counts: Dict[int, int] = {}

    for invitation in invitations:
        for score in invitation.scores:
            if score.score is None:
                continue
            sums[score.item_id] = sums.get(score.item_id, 0.0) + score.score
            counts[score.item_id] = counts.get(score.item_id, 0) + 1

    return {
        item_id: InvitationAggregate(average=sums[item_id] / count, count=count)
        for item_id, count in counts.items()
        if count > 0
    }
