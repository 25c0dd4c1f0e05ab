import pytest
from sqlalchemy.exc import OperationalError

from kpi_backend.core.config import settings
from kpi_backend.core.exceptions import PersistenceError
from kpi_backend.models.comment import EvaluationComment
from kpi_backend.models.evaluation import KPIEvaluation, KPIScore
from kpi_backend.models.invitation import EvaluationInvitation, InvitationStatus, InvitedScore
from kpi_backend.services.invitation_aggregator import SCENARIO_EMPLOYEE_INVITATION, SCENARIO_NO_INVITATION
from kpi_backend.services.performance_rule import (
    ScoreComponent,
    apply_performance_rule,
    round_score,
    weighted_average,
)


def test_weighted_average_renormalizes_missing_components():
    components = [
        ScoreComponent(weight=30, value=0.0, present=False),
        ScoreComponent(weight=30, value=70, present=True),
        ScoreComponent(weight=40, value=90, present=True),
    ]
    # 30/70 * 70 + 40/70 * 90
    assert weighted_average(components) == pytest.approx(81.428571, rel=1e-6)


def test_weighted_average_is_scale_invariant():
    a = [ScoreComponent(1, 80, True), ScoreComponent(3, 60, True)]
    b = [ScoreComponent(10, 80, True), ScoreComponent(30, 60, True)]
    assert weighted_average(a) == pytest.approx(weighted_average(b))


def test_weighted_average_without_applicable_weight():
    assert weighted_average([]) is None
    assert weighted_average([ScoreComponent(50, 80, False), ScoreComponent(0, 90, True)]) is None


def test_round_score_half_up():
    assert round_score(2.675) == 2.68
    assert round_score(81.005) == 81.01
    assert round_score(85) == 85.0


def _set_scores(db_session, evaluation_id, self_score, manager_score):
    scores = db_session.query(KPIScore).filter(KPIScore.evaluation_id == evaluation_id).all()
    for score in scores:
        score.self_score = self_score
        score.manager_score = manager_score
    db_session.commit()
    return scores


def _add_completed_invitation(db_session, evaluation_id, inviter, invitee, value):
    invitation = EvaluationInvitation(
        evaluation_id=evaluation_id,
        inviter_id=inviter.id,
        invitee_id=invitee.id,
        status=InvitationStatus.COMPLETED.value,
    )
    scores = db_session.query(KPIScore).filter(KPIScore.evaluation_id == evaluation_id).all()
    invitation.scores = [InvitedScore(item_id=score.item_id, score=value) for score in scores]
    db_session.add(invitation)
    db_session.commit()
    return invitation


def test_rule_without_invitations(db_session, create_evaluation, employee_user, set_rule):
    rule = set_rule(enabled=True, no_invitation_self_weight=50, no_invitation_superior_weight=50)
    evaluation = create_evaluation(employee_user)
    _set_scores(db_session, evaluation["id"], 80, 90)

    result = apply_performance_rule(db_session, evaluation["id"], rule)

    assert result.applied
    assert result.scenario == SCENARIO_NO_INVITATION
    assert result.updated_items == 2
    assert result.total_score == 170.0
    scores = db_session.query(KPIScore).filter(KPIScore.evaluation_id == evaluation["id"]).all()
    assert [score.hr_score for score in scores] == [85.0, 85.0]
    assert db_session.get(KPIEvaluation, evaluation["id"]).total_score == 170.0


def test_rule_with_completed_invitation(
    db_session, create_evaluation, employee_user, hr_user, peer_user, set_rule
):
    rule = set_rule(
        enabled=True,
        employee_self_weight=30,
        employee_invite_weight=30,
        employee_superior_weight=40,
    )
    evaluation = create_evaluation(employee_user)
    _set_scores(db_session, evaluation["id"], 80, 90)
    _add_completed_invitation(db_session, evaluation["id"], hr_user, peer_user, 70)

    result = apply_performance_rule(db_session, evaluation["id"], rule)

    assert result.scenario == SCENARIO_EMPLOYEE_INVITATION
    scores = db_session.query(KPIScore).filter(KPIScore.evaluation_id == evaluation["id"]).all()
    assert [score.hr_score for score in scores] == [81.0, 81.0]
    assert result.total_score == 162.0


def test_rule_ignores_unfinished_invitations(
    db_session, create_evaluation, employee_user, hr_user, peer_user, set_rule
):
    rule = set_rule(enabled=True, no_invitation_self_weight=50, no_invitation_superior_weight=50)
    evaluation = create_evaluation(employee_user)
    _set_scores(db_session, evaluation["id"], 80, 90)
    invitation = _add_completed_invitation(db_session, evaluation["id"], hr_user, peer_user, 10)
    invitation.status = InvitationStatus.ACCEPTED.value
    db_session.commit()

    result = apply_performance_rule(db_session, evaluation["id"], rule)

    assert result.scenario == SCENARIO_NO_INVITATION
    assert result.total_score == 170.0


def test_rule_is_idempotent(db_session, create_evaluation, employee_user, set_rule):
    rule = set_rule(enabled=True, no_invitation_self_weight=50, no_invitation_superior_weight=50)
    evaluation = create_evaluation(employee_user)
    _set_scores(db_session, evaluation["id"], 77, 91)

    first = apply_performance_rule(db_session, evaluation["id"], rule)
    second = apply_performance_rule(db_session, evaluation["id"], rule)

    assert first == second


def test_disabled_rule_is_a_no_op(db_session, create_evaluation, employee_user, set_rule):
    rule = set_rule(enabled=False)
    evaluation = create_evaluation(employee_user)
    _set_scores(db_session, evaluation["id"], 80, 90)

    result = apply_performance_rule(db_session, evaluation["id"], rule)

    assert not result.applied
    scores = db_session.query(KPIScore).filter(KPIScore.evaluation_id == evaluation["id"]).all()
    assert all(score.hr_score is None for score in scores)
    assert apply_performance_rule(db_session, evaluation["id"], None).applied is False


def test_missing_self_score_uses_manager_only(db_session, create_evaluation, employee_user, set_rule):
    rule = set_rule(enabled=True, no_invitation_self_weight=10, no_invitation_superior_weight=90)
    evaluation = create_evaluation(employee_user)
    _set_scores(db_session, evaluation["id"], None, 88)

    result = apply_performance_rule(db_session, evaluation["id"], rule)

    assert result.total_score == 176.0


def test_unscored_items_are_skipped(db_session, create_evaluation, employee_user, set_rule):
    rule = set_rule(enabled=True)
    evaluation = create_evaluation(employee_user)

    result = apply_performance_rule(db_session, evaluation["id"], rule)

    assert result.applied
    assert result.updated_items == 0
    assert result.total_score is None
    assert db_session.get(KPIEvaluation, evaluation["id"]).total_score == 0


def test_existing_hr_comment_is_preserved(db_session, create_evaluation, employee_user, set_rule):
    rule = set_rule(enabled=True)
    evaluation = create_evaluation(employee_user)
    scores = _set_scores(db_session, evaluation["id"], 80, 90)
    scores[0].hr_comment = "Reviewed in calibration"
    db_session.commit()

    apply_performance_rule(db_session, evaluation["id"], rule)

    db_session.refresh(scores[0])
    db_session.refresh(scores[1])
    assert scores[0].hr_comment == "Reviewed in calibration"
    assert scores[1].hr_comment == settings.auto_hr_comment


def test_rule_does_not_write_comments(db_session, create_evaluation, employee_user, set_rule):
    rule = set_rule(enabled=True)
    evaluation = create_evaluation(employee_user)
    _set_scores(db_session, evaluation["id"], 80, 90)

    apply_performance_rule(db_session, evaluation["id"], rule)

    assert db_session.query(EvaluationComment).count() == 0


def test_failed_commit_rolls_back_every_score(db_session, monkeypatch, create_evaluation, employee_user, set_rule):
    rule = set_rule(enabled=True, no_invitation_self_weight=50, no_invitation_superior_weight=50)
    evaluation = create_evaluation(employee_user)
    _set_scores(db_session, evaluation["id"], 80, 90)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    with pytest.raises(PersistenceError):
        apply_performance_rule(db_session, evaluation["id"], rule)
    monkeypatch.undo()

    db_session.expire_all()
    scores = db_session.query(KPIScore).filter(KPIScore.evaluation_id == evaluation["id"]).all()
    assert [score.hr_score for score in scores] == [None, None]
    assert all(score.hr_comment != settings.auto_hr_comment for score in scores)
    assert db_session.get(KPIEvaluation, evaluation["id"]).total_score == 0


def test_failed_read_surfaces_as_persistence_error(
    db_session, monkeypatch, create_evaluation, employee_user, set_rule
):
    rule = set_rule(enabled=True)
    evaluation = create_evaluation(employee_user)
    _set_scores(db_session, evaluation["id"], 80, 90)

    def failing_get(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "get", failing_get)
    with pytest.raises(PersistenceError):
        apply_performance_rule(db_session, evaluation["id"], rule)


def test_locked_total_survives_recomputation(db_session, create_evaluation, employee_user, set_rule):
    rule = set_rule(enabled=True, no_invitation_self_weight=50, no_invitation_superior_weight=50)
    evaluation = create_evaluation(employee_user)
    _set_scores(db_session, evaluation["id"], 80, 90)
    stored = db_session.get(KPIEvaluation, evaluation["id"])
    stored.total_score = 88.5
    stored.total_score_locked = True
    db_session.commit()

    result = apply_performance_rule(db_session, evaluation["id"], rule)

    assert result.total_score == 88.5
    assert result.updated_items == 2
    db_session.expire_all()
    assert db_session.get(KPIEvaluation, evaluation["id"]).total_score == 88.5
    scores = db_session.query(KPIScore).filter(KPIScore.evaluation_id == evaluation["id"]).all()
    assert [score.hr_score for score in scores] == [85.0, 85.0]
