import pytest

from kpi_backend.models.comment import EvaluationComment


INVITE_WEIGHTS = dict(
    no_invitation_self_weight=50,
    no_invitation_superior_weight=50,
    employee_self_weight=30,
    employee_invite_weight=30,
    employee_superior_weight=40,
)


def _error_code(response):
    return response.json()["errors"][0]["code"]


def _evaluation(client, auth, evaluation_id, actor):
    return client.get(f"/api/evaluations/{evaluation_id}", headers=auth(actor)).json()


@pytest.fixture
def manager_reviewed(create_evaluation, employee_user, manager_user, set_rule, submit_self, submit_manager):
    """An evaluation parked at manager_evaluated because the rule was off at that moment."""
    set_rule(enabled=False)
    evaluation = create_evaluation(employee_user)
    submit_self(evaluation, employee_user, [80, 80])
    result = submit_manager(evaluation, manager_user, [90, 90])
    assert result["status"] == "manager_evaluated"
    return evaluation


@pytest.fixture
def self_reviewed(create_evaluation, employee_user, set_rule, submit_self):
    set_rule(enabled=False)
    evaluation = create_evaluation(employee_user)
    submit_self(evaluation, employee_user, [80, 80])
    return evaluation


def test_only_hr_can_invite(auth, client, self_reviewed, manager_user, peer_user):
    response = client.post(
        f"/api/evaluations/{self_reviewed['id']}/invitations",
        json={"invitee_ids": [peer_user.id]},
        headers=auth(manager_user),
    )
    assert response.status_code == 403


def test_invitations_need_a_submitted_self_review(auth, client, create_evaluation, employee_user, peer_user, hr_user):
    evaluation = create_evaluation(employee_user)
    response = client.post(
        f"/api/evaluations/{evaluation['id']}/invitations",
        json={"invitee_ids": [peer_user.id]},
        headers=auth(hr_user),
    )
    assert response.status_code == 400
    assert _error_code(response) == "INVALID_STATE"


def test_employee_cannot_be_invited_to_own_review(auth, client, self_reviewed, employee_user, hr_user):
    response = client.post(
        f"/api/evaluations/{self_reviewed['id']}/invitations",
        json={"invitee_ids": [employee_user.id]},
        headers=auth(hr_user),
    )
    assert response.status_code == 400
    assert _error_code(response) == "VALIDATION_ERROR"


def test_unknown_invitee(auth, client, self_reviewed, hr_user):
    response = client.post(
        f"/api/evaluations/{self_reviewed['id']}/invitations",
        json={"invitee_ids": [9999]},
        headers=auth(hr_user),
    )
    assert response.status_code == 404


def test_duplicate_invitees_are_skipped(invite, self_reviewed, peer_user):
    first = invite(self_reviewed, peer_user)
    second = invite(self_reviewed, peer_user)

    assert len(first) == 1
    assert first[0]["status"] == "pending"
    assert second == []


def test_peer_scores_feed_the_rule(
    auth, client, db_session, set_rule, self_reviewed, manager_user, peer_user, employee_user,
    invite, score_invitation, submit_manager,
):
    set_rule(enabled=True, **INVITE_WEIGHTS)
    invitation = invite(self_reviewed, peer_user)[0]
    score_invitation(invitation["id"], peer_user, [70, 70])

    response = client.post(f"/api/invitations/{invitation['id']}/complete", headers=auth(peer_user))
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    comment = db_session.query(EvaluationComment).filter(
        EvaluationComment.evaluation_id == self_reviewed["id"]
    ).one()
    assert comment.content == "Invitation score (Peter Peer), total 140"
    assert comment.author_id == peer_user.id

    result = submit_manager(self_reviewed, manager_user, [90, 90])
    assert result["status"] == "pending_confirm"
    assert result["total_score"] == 162.0

    scores = client.get(f"/api/evaluations/{self_reviewed['id']}/scores", headers=auth(employee_user)).json()
    assert [score["hr_score"] for score in scores] == [81.0, 81.0]

    comments = client.get(f"/api/evaluations/{self_reviewed['id']}/comments", headers=auth(employee_user)).json()
    assert len(comments) == 1


def test_incomplete_scores_block_completion(auth, client, self_reviewed, peer_user, invite, score_invitation):
    invitation = invite(self_reviewed, peer_user)[0]
    score_invitation(invitation["id"], peer_user, [70])

    response = client.post(f"/api/invitations/{invitation['id']}/complete", headers=auth(peer_user))

    assert response.status_code == 400
    assert _error_code(response) == "INVALID_STATE"


def test_completing_last_invitation_advances_evaluation(
    auth, client, manager_reviewed, peer_user, hr_user, set_rule, invite, score_invitation
):
    invitation = invite(manager_reviewed, peer_user)[0]
    set_rule(enabled=True, **INVITE_WEIGHTS)
    score_invitation(invitation["id"], peer_user, [70, 70])

    client.post(f"/api/invitations/{invitation['id']}/complete", headers=auth(peer_user))

    evaluation = _evaluation(client, auth, manager_reviewed["id"], hr_user)
    assert evaluation["status"] == "pending_confirm"
    assert evaluation["total_score"] == 162.0


def test_declining_last_invitation_advances_evaluation(
    auth, client, manager_reviewed, peer_user, hr_user, set_rule, invite
):
    invitation = invite(manager_reviewed, peer_user)[0]
    set_rule(enabled=True, **INVITE_WEIGHTS)

    response = client.post(f"/api/invitations/{invitation['id']}/decline", headers=auth(peer_user))
    assert response.status_code == 200
    assert response.json()["status"] == "declined"

    evaluation = _evaluation(client, auth, manager_reviewed["id"], hr_user)
    assert evaluation["status"] == "pending_confirm"
    assert evaluation["total_score"] == 170.0


def test_open_invitation_holds_the_review(
    auth, client, manager_reviewed, peer_user, make_employee, hr_user, set_rule, invite, score_invitation
):
    colleague = make_employee(name="Carol Colleague")
    invitations = invite(manager_reviewed, peer_user, colleague)
    set_rule(enabled=True, **INVITE_WEIGHTS)

    score_invitation(invitations[0]["id"], peer_user, [70, 70])
    client.post(f"/api/invitations/{invitations[0]['id']}/complete", headers=auth(peer_user))
    assert _evaluation(client, auth, manager_reviewed["id"], hr_user)["status"] == "manager_evaluated"

    client.post(f"/api/invitations/{invitations[1]['id']}/decline", headers=auth(colleague))
    evaluation = _evaluation(client, auth, manager_reviewed["id"], hr_user)
    assert evaluation["status"] == "pending_confirm"
    assert evaluation["total_score"] == 162.0


def test_cancel_and_reinvite(auth, client, self_reviewed, peer_user, make_employee, hr_user, manager_user, invite):
    colleague = make_employee(name="Carol Colleague")
    invitations = invite(self_reviewed, peer_user, colleague)

    response = client.post(f"/api/invitations/{invitations[0]['id']}/cancel", headers=auth(manager_user))
    assert response.status_code == 403

    response = client.post(f"/api/invitations/{invitations[0]['id']}/cancel", headers=auth(hr_user))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    response = client.post(f"/api/invitations/{invitations[0]['id']}/reinvite", headers=auth(hr_user))
    assert response.status_code == 400

    client.post(f"/api/invitations/{invitations[1]['id']}/decline", headers=auth(colleague))
    response = client.post(f"/api/invitations/{invitations[1]['id']}/reinvite", headers=auth(hr_user))
    assert response.status_code == 200
    assert response.json()["status"] == "pending"


def test_deleting_completed_invitation_recomputes_scores(
    auth, client, manager_reviewed, peer_user, hr_user, set_rule, invite, score_invitation
):
    invitation = invite(manager_reviewed, peer_user)[0]
    set_rule(enabled=True, **INVITE_WEIGHTS)
    score_invitation(invitation["id"], peer_user, [70, 70])
    client.post(f"/api/invitations/{invitation['id']}/complete", headers=auth(peer_user))
    assert _evaluation(client, auth, manager_reviewed["id"], hr_user)["total_score"] == 162.0

    response = client.delete(f"/api/invitations/{invitation['id']}", headers=auth(hr_user))
    assert response.status_code == 200

    evaluation = _evaluation(client, auth, manager_reviewed["id"], hr_user)
    assert evaluation["status"] == "pending_confirm"
    assert evaluation["total_score"] == 170.0
    assert [score["hr_score"] for score in evaluation["scores"]] == [85.0, 85.0]


def test_only_the_invitee_acts_on_an_invitation(auth, client, self_reviewed, peer_user, manager_user, invite):
    invitation = invite(self_reviewed, peer_user)[0]

    response = client.post(f"/api/invitations/{invitation['id']}/accept", headers=auth(manager_user))
    assert response.status_code == 403

    detail = client.get(f"/api/invitations/{invitation['id']}", headers=auth(peer_user)).json()
    response = client.put(
        f"/api/invitations/scores/{detail['scores'][0]['id']}",
        json={"score": 70},
        headers=auth(peer_user),
    )
    # Not accepted yet
    assert response.status_code == 400


def test_invitation_listings(auth, client, self_reviewed, peer_user, hr_user, employee_user, invite):
    invitation = invite(self_reviewed, peer_user)[0]

    received = client.get("/api/invitations/received", headers=auth(peer_user)).json()
    assert [item["id"] for item in received] == [invitation["id"]]

    count = client.get("/api/invitations/pending/count", headers=auth(peer_user)).json()
    assert count["count"] == 1

    sent = client.get("/api/invitations/sent?status=pending", headers=auth(hr_user)).json()
    assert len(sent) == 1

    listed = client.get(f"/api/evaluations/{self_reviewed['id']}/invitations", headers=auth(employee_user)).json()
    assert listed[0]["invitee"]["name"] == "Peter Peer"

    # An invitee may read the evaluation they were asked to score
    response = client.get(f"/api/evaluations/{self_reviewed['id']}", headers=auth(peer_user))
    assert response.status_code == 200


def test_cancelling_last_invitation_advances_evaluation(
    auth, client, manager_reviewed, peer_user, hr_user, set_rule, invite
):
    invitation = invite(manager_reviewed, peer_user)[0]
    set_rule(enabled=True, **INVITE_WEIGHTS)

    response = client.post(f"/api/invitations/{invitation['id']}/cancel", headers=auth(hr_user))
    assert response.status_code == 200

    evaluation = _evaluation(client, auth, manager_reviewed["id"], hr_user)
    assert evaluation["status"] == "pending_confirm"
    assert evaluation["total_score"] == 170.0


def test_deleting_last_open_invitation_advances_evaluation(
    auth, client, manager_reviewed, peer_user, hr_user, set_rule, invite
):
    invitation = invite(manager_reviewed, peer_user)[0]
    set_rule(enabled=True, **INVITE_WEIGHTS)

    response = client.delete(f"/api/invitations/{invitation['id']}", headers=auth(hr_user))
    assert response.status_code == 200

    evaluation = _evaluation(client, auth, manager_reviewed["id"], hr_user)
    assert evaluation["status"] == "pending_confirm"
    assert evaluation["total_score"] == 170.0
    assert [score["hr_score"] for score in evaluation["scores"]] == [85.0, 85.0]


def test_deleting_invitation_keeps_adjusted_total(
    auth, client, manager_reviewed, employee_user, peer_user, hr_user, set_rule, invite, score_invitation
):
    invitation = invite(manager_reviewed, peer_user)[0]
    set_rule(enabled=True, **INVITE_WEIGHTS)
    score_invitation(invitation["id"], peer_user, [70, 70])
    client.post(f"/api/invitations/{invitation['id']}/complete", headers=auth(peer_user))

    url = f"/api/evaluations/{manager_reviewed['id']}/objection"
    client.post(url, json={"reason": "Peer was too harsh"}, headers=auth(employee_user))
    response = client.put(url, json={"total_score": 88.5, "final_comment": "Adjusted"}, headers=auth(hr_user))
    assert response.status_code == 200

    client.delete(f"/api/invitations/{invitation['id']}", headers=auth(hr_user))

    evaluation = _evaluation(client, auth, manager_reviewed["id"], hr_user)
    assert [score["hr_score"] for score in evaluation["scores"]] == [85.0, 85.0]
    assert evaluation["total_score"] == 88.5

    response = client.put(
        f"/api/evaluations/{manager_reviewed['id']}/status",
        json={"status": "completed"},
        headers=auth(employee_user),
    )
    assert response.status_code == 200
    assert response.json()["total_score"] == 88.5
