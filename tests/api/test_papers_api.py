"""
HTTP-level tests: routing, status codes and the error envelope.
"""

import pytest
from conftest import ACTOR, COMPANY, TENANT
from fastapi.testclient import TestClient

from paperdesk import __version__
from paperdesk.main import create_app
from paperdesk.settings import Settings
from paperdesk.wiring import get_paper_service, get_question_repo

BASE = f"/companies/{COMPANY}/papers"


@pytest.fixture
def client(service, questions):
    app = create_app()
    app.dependency_overrides[get_paper_service] = lambda: service
    app.dependency_overrides[get_question_repo] = lambda: questions
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def paper_id(client, make_question):
    for qid in ("q1", "q2"):
        make_question(qid, marks=2, correct_option_index=1)
    body = {
        "tenant_id": TENANT,
        "title": "Chapter 3 Test",
        "template_id": "template-1",
        "sections": [{"name": "Part A", "time_limit": 20}],
    }
    response = client.post(BASE, json=body, headers={"X-Actor-Id": ACTOR})
    assert response.status_code == 201
    return response.json()["paper_id"]


class TestPapersApi:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["version"] == __version__

    def test_create_app_when_settings_given_then_health_reports_them(self):
        # Arrange
        cfg = Settings(env="staging", storage_backend="inmemory", job_backend="rq", observability_enabled=False)

        # Act
        with TestClient(create_app(cfg)) as test_client:
            body = test_client.get("/health").json()

        # Assert
        assert (body["env"], body["storage"], body["jobs"]) == ("staging", "inmemory", "rq")

    def test_create_records_actor_from_header(self, client, paper_id):
        paper = client.get(f"{BASE}/{paper_id}").json()
        assert paper["created_by"] == ACTOR
        assert paper["status"] == "draft"

    def test_add_then_finalize_returns_job_id(self, client, paper_id):
        # Arrange
        added = client.post(f"{BASE}/{paper_id}/sections/0/questions", json={"question_ids": ["q1", "q2"]})
        assert added.status_code == 200
        assert added.json()["total_marks"] == 4

        # Act
        response = client.post(f"{BASE}/{paper_id}/finalize")

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["paper"]["status"] == "finalized"
        assert body["job_id"]

    def test_get_when_missing_then_404_envelope(self, client):
        response = client.get(f"{BASE}/nope")
        assert response.status_code == 404
        assert response.json() == {"detail": "Paper not found", "retryable": False}

    def test_finalize_when_section_empty_then_400(self, client, paper_id):
        response = client.post(f"{BASE}/{paper_id}/finalize")
        assert response.status_code == 400
        assert "Part A" in response.json()["detail"]

    def test_publish_when_draft_then_409_not_retryable(self, client, paper_id):
        response = client.post(f"{BASE}/{paper_id}/publish")
        assert response.status_code == 409
        assert response.json()["retryable"] is False

    def test_update_when_version_stale_then_409_retryable(self, client, paper_id):
        client.post(f"{BASE}/{paper_id}/sections/0/questions", json={"question_ids": ["q1"]})

        response = client.patch(f"{BASE}/{paper_id}", json={"title": "New", "version": 1})

        assert response.status_code == 409
        assert response.json()["retryable"] is True

    def test_add_when_body_empty_then_422(self, client, paper_id):
        response = client.post(f"{BASE}/{paper_id}/sections/0/questions", json={"question_ids": []})
        assert response.status_code == 422

    def test_delete_when_draft_then_204(self, client, paper_id):
        assert client.delete(f"{BASE}/{paper_id}").status_code == 204
        assert client.get(f"{BASE}/{paper_id}").status_code == 404

    def test_list_and_stats(self, client, paper_id):
        listing = client.get(BASE, params={"status": "draft", "search": "chapter"}).json()
        stats = client.get(f"{BASE}/stats").json()

        assert listing["total"] == 1
        assert listing["papers"][0]["paper_id"] == paper_id
        assert stats["by_status"] == {"draft": 1}

    def test_pdf_url_after_artifact_recorded(self, client, paper_id):
        client.post(f"{BASE}/{paper_id}/sections/0/questions", json={"question_ids": ["q1"]})
        client.post(f"{BASE}/{paper_id}/finalize")
        recorded = client.post(f"{BASE}/{paper_id}/pdfs", json={"kind": "answer_key", "storage_key": "ak.pdf"})
        assert recorded.status_code == 200

        response = client.get(f"{BASE}/{paper_id}/pdfs/answer_key/url")

        assert response.status_code == 200
        assert response.json()["expires_in"] == 900


class TestAttemptsApi:
    def test_grade_attempt_returns_graded_answers_and_summary(self, client, make_question):
        # Arrange
        make_question("g1", marks=2, correct_option_index=1)
        make_question("g2", marks=5, qtype="essay")
        body = {
            "paper_id": "p1",
            "student_id": "s1",
            "answers": [
                {"question_id": "g1", "answer": 1, "max_marks": 2},
                {"question_id": "g2", "answer": "My essay", "max_marks": 5},
            ],
        }

        # Act
        response = client.post(f"/companies/{COMPANY}/attempts/grade", json=body)

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert [a["is_correct"] for a in data["attempt"]["answers"]] == [True, None]
        assert data["summary"]["marks_obtained"] == 2
        assert data["summary"]["pending_manual"] == 1

    def test_grade_attempt_when_other_company_route_then_questions_not_visible(self, client, make_question):
        make_question("g1", marks=2, correct_option_index=1)
        body = {"paper_id": "p1", "student_id": "s1", "answers": [{"question_id": "g1", "answer": 1, "max_marks": 2}]}

        response = client.post("/companies/company-2/attempts/grade", json=body)

        assert response.status_code == 200
        assert response.json()["attempt"]["answers"][0]["is_correct"] is None
