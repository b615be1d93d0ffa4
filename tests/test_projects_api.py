"""Projects API — CRUD and the owner/admin access rule."""
import uuid
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from apps.api.models.project import ProjectStatus
from apps.api.repositories import project_repo
from apps.api.services import project_service


def test_projects_require_auth(client: TestClient):
    r = client.get("/projects")
    assert r.status_code in (401, 403)


def test_create_project_is_owned_by_caller(client, login_as, member_user, make_project):
    login_as(member_user)
    created = make_project(member_user, name="todo-app")

    with patch.object(project_repo, "create", new=AsyncMock(return_value=created)) as create:
        r = client.post("/projects", json={"name": "todo-app", "framework": "nextjs"})

    assert r.status_code == 201
    assert r.json()["name"] == "todo-app"
    kwargs = create.await_args.kwargs
    assert kwargs["owner_id"] == member_user.id
    assert kwargs["status"] == ProjectStatus.READY


def test_create_project_validates_name(client, login_as, member_user):
    login_as(member_user)
    r = client.post("/projects", json={"name": ""})
    assert r.status_code == 422


def test_list_projects(client, login_as, member_user, make_project):
    login_as(member_user)
    projects = [make_project(member_user, name="a"), make_project(member_user, name="b")]

    with patch.object(project_repo, "get_by_owner", new=AsyncMock(return_value=projects)) as get_by_owner, \
         patch.object(project_repo, "count_by_owner", new=AsyncMock(return_value=7)):
        r = client.get("/projects?skip=2&limit=2")

    assert r.status_code == 200
    body = r.json()
    assert [p["name"] for p in body["projects"]] == ["a", "b"]
    assert body["total"] == 7
    assert get_by_owner.await_args.kwargs == {"skip": 2, "limit": 2}


def test_get_own_project(client, login_as, member_user, make_project):
    login_as(member_user)
    project = make_project(member_user)

    with patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)):
        r = client.get(f"/projects/{project.id}")

    assert r.status_code == 200
    assert r.json()["id"] == str(project.id)
    assert r.json()["sandbox_status"] == "unknown"


def test_other_users_project_is_forbidden(client, login_as, member_user, other_user, make_project):
    login_as(other_user)
    project = make_project(member_user)

    with patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)):
        r = client.get(f"/projects/{project.id}")

    assert r.status_code == 403


def test_admin_can_read_any_project(client, login_as, member_user, admin_user, make_project):
    login_as(admin_user)
    project = make_project(member_user)

    with patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)):
        r = client.get(f"/projects/{project.id}")

    assert r.status_code == 200


def test_missing_project_is_404_with_error_body(client, login_as, member_user):
    login_as(member_user)
    project_id = uuid.uuid4()

    with patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=None)):
        r = client.get(f"/projects/{project_id}")

    assert r.status_code == 404
    assert r.json()["error"]["details"] == {"resource": "Project", "id": str(project_id)}


def test_update_only_sends_fields_present(client, login_as, member_user, make_project):
    login_as(member_user)
    project = make_project(member_user)
    renamed = make_project(member_user, id=project.id, name="renamed")

    with patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)), \
         patch.object(project_repo, "update", new=AsyncMock(return_value=renamed)) as update:
        r = client.put(f"/projects/{project.id}", json={"name": "renamed"})

    assert r.status_code == 200
    assert r.json()["name"] == "renamed"
    assert update.await_args.kwargs == {"name": "renamed"}


def test_delete_project(client, login_as, member_user, make_project):
    login_as(member_user)
    project = make_project(member_user)

    with patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)), \
         patch.object(project_service, "delete_project", new=AsyncMock()) as delete:
        r = client.delete(f"/projects/{project.id}")

    assert r.status_code == 204
    assert delete.await_args.args[1] is project
