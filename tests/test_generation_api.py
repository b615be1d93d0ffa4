"""Generation API — starting work, job polling, classification, progress history."""
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from apps.api.models.generation_job import JobStatus, JobType
from apps.api.repositories import generation_event_repo, generation_job_repo, project_repo
from apps.api.routes import generation as generation_routes
from apps.api.services.generation_service import generation_runner
from generation import CommandClassifier


@pytest.fixture
def project(member_user, make_project):
    return make_project(member_user)


@pytest.fixture
def owner_session(client, login_as, member_user, project):
    login_as(member_user)
    with patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)):
        yield


def _job(project, status=JobStatus.PENDING):
    job = MagicMock()
    job.id = uuid.uuid4()
    job.project_id = project.id
    job.type = JobType.GENERATE_CODE
    job.status = status
    job.result = None
    job.error_message = None
    return job


def test_generate_api_requires_descriptive_prompt(client, login_as, member_user):
    login_as(member_user)
    r = client.post("/api/generate", json={"prompt": "api"})
    assert r.status_code == 422


def test_generate_api_returns_202_with_job(client, login_as, member_user):
    login_as(member_user)
    started = {
        "jobId": str(uuid.uuid4()),
        "projectId": str(uuid.uuid4()),
        "status": "generating",
        "message": "API generation started",
        "estimatedTime": 60,
    }

    with patch.object(generation_runner, "start_api_generation", new=AsyncMock(return_value=started)) as start:
        r = client.post("/api/generate", json={"prompt": "A todo API with users and tags", "framework": "express"})

    assert r.status_code == 202
    assert r.json()["jobId"] == started["jobId"]
    assert start.await_args.kwargs["framework"] == "express"


def test_classify_uses_keyword_rules(client, login_as, member_user):
    login_as(member_user)

    with patch.object(generation_routes, "_classifier", CommandClassifier()):
        r = client.post("/classify", json={"prompt": "Delete the file old-page.tsx"})

    assert r.status_code == 200
    body = r.json()
    assert body["type"] == "DELETE_FILE"
    assert body["shouldCreateNewVersion"] is True
    assert body["entities"] == ["old-page.tsx"]


def test_unknown_job_is_404(client, owner_session):
    with patch.object(generation_job_repo, "get_by_id", new=AsyncMock(return_value=None)):
        r = client.get(f"/jobs/{uuid.uuid4()}")
    assert r.status_code == 404


def test_job_status(client, project, owner_session):
    job = _job(project, JobStatus.COMPLETED)
    job.result = {"versionId": "v1"}

    with patch.object(generation_job_repo, "get_by_id", new=AsyncMock(return_value=job)):
        r = client.get(f"/jobs/{job.id}")

    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "completed"
    assert body["progress"] == 100
    assert body["result"] == {"versionId": "v1"}


def test_job_of_foreign_project_is_forbidden(client, login_as, other_user, project):
    login_as(other_user)
    job = _job(project)

    with patch.object(generation_job_repo, "get_by_id", new=AsyncMock(return_value=job)), \
         patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)):
        r = client.get(f"/jobs/{job.id}")

    assert r.status_code == 403


def test_cancel_completed_job_is_400(client, project, owner_session):
    job = _job(project, JobStatus.COMPLETED)
    with patch.object(generation_job_repo, "get_by_id", new=AsyncMock(return_value=job)):
        r = client.post(f"/jobs/{job.id}/cancel")
    assert r.status_code == 400


def test_clear_generation_events(client, project, owner_session):
    with patch.object(generation_event_repo, "delete_by_project", new=AsyncMock(return_value=12)):
        r = client.delete(f"/projects/{project.id}/generation-events")
    assert r.json() == {"success": True, "deleted": 12}


def test_generation_events_limit_is_bounded(client, project, owner_session):
    r = client.get(f"/projects/{project.id}/generation-events?limit=501")
    assert r.status_code == 422


def test_generate_code_while_a_job_runs_is_409(client, project, owner_session):
    running = _job(project, JobStatus.RUNNING)

    with patch.object(generation_job_repo, "get_active_for_project", new=AsyncMock(return_value=running)), \
         patch.object(generation_runner, "launch", new=AsyncMock()) as launch:
        r = client.post(f"/projects/{project.id}/generate", json={"prompt": "Add a pricing page with three tiers"})

    assert r.status_code == 409
    assert str(running.id) in r.json()["error"]["message"]
    launch.assert_not_awaited()
