from types import SimpleNamespace

from kpi_backend.services.invitation_aggregator import (
    SCENARIO_EMPLOYEE_INVITATION,
    SCENARIO_NO_INVITATION,
    build_invitation_averages,
    determine_scenario,
)


def _invitation(*scores):
    return SimpleNamespace(scores=[SimpleNamespace(item_id=item_id, score=score) for item_id, score in scores])


def test_averages_across_invitations():
    invitations = [_invitation((1, 80), (2, 60)), _invitation((1, 90), (2, None))]

    averages = build_invitation_averages(invitations)

    assert averages[1].average == 85
    assert averages[1].count == 2
    assert averages[2].average == 60
    assert averages[2].count == 1


def test_item_without_scores_is_absent():
    averages = build_invitation_averages([_invitation((1, 75), (2, None))])
    assert 2 not in averages


def test_no_invitations_means_no_invitation_scenario():
    scenario, relevant = determine_scenario([])
    assert scenario == SCENARIO_NO_INVITATION
    assert relevant == []


def test_invitation_with_only_null_scores_does_not_count():
    scenario, relevant = determine_scenario([_invitation((1, None), (2, None))])
    assert scenario == SCENARIO_NO_INVITATION
    assert relevant == []


def test_partially_scored_invitation_counts():
    scored = _invitation((1, 70), (2, None))
    empty = _invitation((1, None))

    scenario, relevant = determine_scenario([scored, empty])

    assert scenario == SCENARIO_EMPLOYEE_INVITATION
    assert relevant == [scored]
