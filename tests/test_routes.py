"""
Test: the JSON API, authentication included.
"""
import pytest

from workshep import auth
from workshep.config import config
from workshep.app import create_app


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    """Sign and validate every token with a known secret."""
    monkeypatch.setenv("WORKSHEP_JWT_SECRET", "workshep-test-secret-0123456789abcdef")


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(auth, "AUTH_DISABLED", False)
    app = create_app()
    app.config["TESTING"] = True
    return app.test_client()


def headers(userid, role=auth.ROLE_STUDENT):
    return {"Authorization": f"Bearer {auth.create_token(userid, role)}"}


@pytest.fixture
def teacher():
    return headers("t1", auth.ROLE_TEACHER)


@pytest.fixture
def workshop_id(client, teacher):
    """A workshop with two students, a form, and submissions from both."""
    resp = client.post('/api/workshops', json={"name": "Essay"}, headers=teacher)
    wid = resp.get_json()["workshop"]["id"]
    client.post(f'/api/workshops/{wid}/participants', headers=teacher, json={"participants": [
        {"id": "s1", "firstname": "Ann", "lastname": "Adams"},
        {"id": "s2", "firstname": "Bob", "lastname": "Brown"},
    ]})
    client.put(f'/api/workshops/{wid}/form', headers=teacher, json={"dimensions": [
        {"description": "Content", "grade": 10}, {"description": "Style", "grade": 10}]})
    client.post(f'/api/workshops/{wid}/phase', headers=teacher, json={"phase": "submission"})
    for userid in ("s1", "s2"):
        resp = client.post(f'/api/workshops/{wid}/submissions', headers=headers(userid),
                           json={"title": f"Essay by {userid}"})
        assert resp.status_code == 201
    return wid


class TestAuth:
    def test_status_is_public(self, client):
        resp = client.get('/api/status')
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok"}

    def test_token_required(self, client):
        assert client.get('/api/workshops').status_code == 401

    def test_invalid_token(self, client):
        resp = client.get('/api/workshops', headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_token_signed_with_another_secret(self, client, monkeypatch):
        monkeypatch.setenv("WORKSHEP_JWT_SECRET", "some-other-secret-0123456789abcdef")
        forged = headers("t1", auth.ROLE_TEACHER)
        monkeypatch.setenv("WORKSHEP_JWT_SECRET", "workshep-test-secret-0123456789abcdef")
        assert client.get('/api/workshops', headers=forged).status_code == 401

    def test_auth_disabled(self, client, monkeypatch):
        monkeypatch.setattr(auth, "AUTH_DISABLED", True)
        assert client.post('/api/workshops', json={"name": "Local"}).status_code == 201


class TestWorkshops:
    def test_students_can_not_create(self, client):
        resp = client.post('/api/workshops', json={"name": "Essay"}, headers=headers("s1"))
        assert resp.status_code == 403
        assert "error" in resp.get_json()

    def test_create_and_list(self, client, teacher):
        resp = client.post('/api/workshops', json={"name": "Essay"}, headers=teacher)
        assert resp.status_code == 201
        workshop = resp.get_json()["workshop"]
        assert workshop["phasename"] == "setup"
        listed = client.get('/api/workshops', headers=teacher).get_json()["workshops"]
        assert [w["name"] for w in listed] == ["Essay"]

    def test_not_found(self, client, teacher):
        resp = client.get('/api/workshops/99', headers=teacher)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Workshop not found: 99"

    def test_strangers_can_not_view(self, client, workshop_id):
        assert client.get(f'/api/workshops/{workshop_id}', headers=headers("s9")).status_code == 403
        assert client.get(f'/api/workshops/{workshop_id}', headers=headers("s1")).status_code == 200

    def test_invalid_settings(self, client, workshop_id, teacher):
        resp = client.put(f'/api/workshops/{workshop_id}', headers=teacher, json={"strategy": "vibes"})
        assert resp.status_code == 400

    def test_non_numeric_setting(self, client, workshop_id, teacher):
        resp = client.put(f'/api/workshops/{workshop_id}', headers=teacher, json={"numexamples": "abc"})
        assert resp.status_code == 400
        assert "numexamples" in resp.get_json()["error"]

    def test_phase_error(self, client, workshop_id, teacher):
        resp = client.put(f'/api/workshops/{workshop_id}/form', headers=teacher, json={"dimensions": []})
        assert resp.status_code == 200
        client.post(f'/api/workshops/{workshop_id}/phase', headers=teacher, json={"phase": "assessment"})
        resp = client.put(f'/api/workshops/{workshop_id}/form', headers=teacher, json={"dimensions": []})
        assert resp.status_code == 409


class TestPeerAssessmentFlow:
    def test_full_cycle(self, client, workshop_id, teacher):
        base = f'/api/workshops/{workshop_id}'
        for author, reviewer in (("s1", "s2"), ("s2", "s1")):
            resp = client.post(f'{base}/allocations', headers=teacher, json={
                "method": "manual", "settings": {"mode": "new", "authorid": author, "reviewerid": reviewer}})
            assert resp.get_json()["result"]["status"] == "executed"

        client.post(f'{base}/phase', headers=teacher, json={"phase": "assessment"})
        for reviewer, grades in (("s1", {"1": 10, "2": 10}), ("s2", {"1": 5, "2": 5})):
            pending = client.get(f'{base}/assessments/pending', headers=headers(reviewer)).get_json()
            [assessment] = pending["assessments"]
            resp = client.put(f'{base}/assessments/{assessment["id"]}', headers=headers(reviewer),
                              json={"grades": grades})
            assert resp.status_code == 200

        client.post(f'{base}/phase', headers=teacher, json={"phase": "evaluation"})
        summary = client.post(f'{base}/aggregate', headers=teacher, json={}).get_json()
        assert summary["evaluation"] == "best"
        assert summary["submissions_changed"] == 2

        report = client.get(f'{base}/report', headers=teacher).get_json()
        grades = {row["userid"]: row["submissiongrade"] for row in report["grades"]}
        assert grades == {"s1": 40, "s2": 80}

        own = client.get(f'{base}/report', headers=headers("s1")).get_json()
        assert [row["userid"] for row in own["grades"]] == ["s1"]

        client.post(f'{base}/phase', headers=teacher, json={"phase": "closed"})
        gradebook = client.get(f'{base}/gradebook', headers=headers("s2")).get_json()["gradebook"]
        assert gradebook["s2"]["submissiongrade"] == 80

    def test_reviewer_only_assesses_own(self, client, workshop_id, teacher):
        base = f'/api/workshops/{workshop_id}'
        result = client.post(f'{base}/allocations', headers=teacher, json={
            "method": "manual", "settings": {"mode": "new", "authorid": "s1", "reviewerid": "s2"}})
        client.post(f'{base}/phase', headers=teacher, json={"phase": "assessment"})
        aid = client.get(f'{base}/allocations', headers=teacher).get_json()["allocations"][0]["id"]
        assert result.status_code == 200
        resp = client.put(f'{base}/assessments/{aid}', headers=headers("s1"), json={"grades": {"1": 1, "2": 1}})
        assert resp.status_code == 403

    def test_unknown_allocation_method(self, client, workshop_id, teacher):
        resp = client.post(f'/api/workshops/{workshop_id}/allocations', headers=teacher,
                           json={"method": "lottery"})
        assert resp.status_code == 400


class TestConfig:
    def test_teachers_only(self, client, teacher):
        assert client.get('/api/config', headers=headers("s1")).status_code == 403
        assert client.get('/api/config', headers=teacher).get_json()["default_strategy"] == "accumulative"

    def test_new_workshops_use_defaults(self, client, monkeypatch, teacher):
        monkeypatch.setattr(config, "default_grade", config.default_grade)
        resp = client.put('/api/config', headers=teacher, json={"default_grade": 100})
        assert resp.get_json()["default_grade"] == 100
        workshop = client.post('/api/workshops', json={"name": "Essay"}, headers=teacher).get_json()["workshop"]
        assert workshop["grade"] == 100

    def test_unknown_strategy(self, client, teacher):
        resp = client.put('/api/config', headers=teacher, json={"default_strategy": "vibes"})
        assert resp.status_code == 400

    def test_negative_grade_rejected(self, client, teacher):
        resp = client.put('/api/config', headers=teacher, json={"default_grade": -50})
        assert resp.status_code == 400
        assert client.get('/api/config', headers=teacher).get_json()["default_grade"] == 80.0
        workshop = client.post('/api/workshops', json={"name": "Essay"}, headers=teacher).get_json()["workshop"]
        assert workshop["grade"] == 80.0

    def test_paths_are_read_only(self, client, teacher):
        resp = client.put('/api/config', headers=teacher, json={"data_dir": "/elsewhere"})
        assert resp.status_code == 400
        config.update({"data_dir": "/elsewhere", "audit_log_file": "/elsewhere.log"})
        assert config.to_dict()["data_dir"] != "/elsewhere"
        assert config.to_dict()["audit_log_file"] != "/elsewhere.log"


class TestFlaggingRoutes:
    def test_toggle(self, client, workshop_id, teacher):
        resp = client.post(f'/api/workshops/{workshop_id}/flagging', headers=teacher, json={"enabled": True})
        assert resp.get_json() == {"submitterflagging": True}
        resp = client.post(f'/api/workshops/{workshop_id}/flagging', headers=headers("s1"), json={"enabled": False})
        assert resp.status_code == 403
