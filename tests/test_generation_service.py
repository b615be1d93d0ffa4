"""Generation runner — job views, cancel/retry rules, launch dedup, job outcome."""
import asyncio
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from apps.api.exceptions import ConflictException, ForgeException
from apps.api.models.generation_job import JobStatus, JobType
from apps.api.models.version import CommandType
from apps.api.repositories import generation_job_repo, project_repo
from apps.api.services.event_service import event_service
from apps.api.services.generation_service import GenerationRunner, command_type_for, job_status
from apps.api.services.sandbox_manager import sandbox_manager
from apps.api.services.streaming_service import streaming_service
from generation import TwoAgentResult


def _job(status: JobStatus, job_type: JobType = JobType.GENERATE_CODE) -> MagicMock:
    job = MagicMock()
    job.id = uuid.uuid4()
    job.project_id = uuid.uuid4()
    job.type = job_type
    job.status = status
    job.payload = {"prompt": "Add a pricing page"}
    job.result = None
    job.error_message = None
    return job


@pytest.fixture
def runner() -> GenerationRunner:
    return GenerationRunner()


def test_job_status_view():
    job = _job(JobStatus.RUNNING)
    view = job_status(job)
    assert view["status"] == "running"
    assert view["progress"] == 50
    assert view["estimatedTimeRemaining"] == 30
    assert view["jobId"] == job.id


@pytest.mark.parametrize(
    "prompt, result, expected",
    [
        ("Delete the file a.tsx", TwoAgentResult(), CommandType.DELETE_FILE),
        ("Make it pop", TwoAgentResult(deleted_files=["a.tsx"]), CommandType.DELETE_FILE),
        ("Make it pop", TwoAgentResult(new_files={"b.tsx": ""}), CommandType.CREATE_FILE),
        ("Make it pop", TwoAgentResult(modified_files={"a.tsx": ""}, new_files={"b.tsx": ""}), CommandType.MODIFY_FILE),
    ],
)
def test_command_type_for(prompt, result, expected):
    assert command_type_for(prompt, result) == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [JobStatus.COMPLETED, JobStatus.CANCELLED])
async def test_finished_jobs_cannot_be_cancelled(runner, status):
    with pytest.raises(ForgeException) as exc:
        await runner.cancel_job(MagicMock(), _job(status))
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_cancel_stops_the_running_task(runner):
    job = _job(JobStatus.RUNNING)
    task = asyncio.create_task(asyncio.sleep(60))
    runner._tasks[str(job.id)] = task

    with patch.object(generation_job_repo, "set_status", new=AsyncMock(return_value=job)) as set_status:
        await runner.cancel_job(MagicMock(), job)

    with pytest.raises(asyncio.CancelledError):
        await task
    assert set_status.await_args.args[2] == JobStatus.CANCELLED
    assert runner.running_jobs() == 0


@pytest.mark.asyncio
async def test_only_failed_or_cancelled_jobs_retry(runner):
    with pytest.raises(ForgeException) as exc:
        await runner.retry_job(MagicMock(), _job(JobStatus.RUNNING))
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_retry_releases_dedup_key_and_relaunches(runner):
    job = _job(JobStatus.FAILED)
    runner.launch = AsyncMock(return_value=True)

    with patch.object(event_service, "release", new=AsyncMock()) as release, \
         patch.object(generation_job_repo, "get_active_for_project", new=AsyncMock(return_value=None)), \
         patch.object(generation_job_repo, "set_status", new=AsyncMock(return_value=job)):
        await runner.retry_job(MagicMock(), job)

    release.assert_awaited_once_with(f"generation-job:{job.id}")
    runner.launch.assert_awaited_once_with(job.id)


@pytest.mark.asyncio
async def test_launch_ignores_duplicates(runner):
    runner.run_job = AsyncMock()
    with patch.object(event_service, "is_duplicate", new=AsyncMock(return_value=True)):
        assert await runner.launch(uuid.uuid4()) is False
    runner.run_job.assert_not_called()
    assert runner.running_jobs() == 0


@pytest.mark.asyncio
async def test_launch_tracks_task_until_done(runner):
    job_id = uuid.uuid4()
    runner.run_job = AsyncMock()

    with patch.object(event_service, "is_duplicate", new=AsyncMock(return_value=False)):
        assert await runner.launch(job_id) is True

    assert runner.running_jobs() == 1
    await runner._tasks[str(job_id)]
    await asyncio.sleep(0)
    runner.run_job.assert_awaited_once_with(job_id)
    assert runner.running_jobs() == 0


@pytest.fixture
def job_db():
    db = MagicMock()
    db.rollback = AsyncMock()

    async def fake_get_db():
        yield db

    with patch("apps.api.services.generation_service.get_db", fake_get_db), \
         patch.object(event_service, "publish_event", new=AsyncMock()):
        yield db


@pytest.mark.asyncio
async def test_run_job_marks_completed_with_result(runner, job_db):
    job = _job(JobStatus.PENDING)
    project = MagicMock(id=job.project_id)
    runner._run_code_generation = AsyncMock(return_value={"versionId": "v1"})

    with patch.object(generation_job_repo, "get_by_id", new=AsyncMock(return_value=job)), \
         patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)), \
         patch.object(generation_job_repo, "set_status", new=AsyncMock(return_value=job)) as set_status:
        await runner.run_job(job.id)

    statuses = [call.args[2] for call in set_status.await_args_list]
    assert statuses == [JobStatus.RUNNING, JobStatus.COMPLETED]
    assert set_status.await_args.kwargs["result"] == {"versionId": "v1"}


@pytest.mark.asyncio
async def test_run_job_failure_is_recorded(runner, job_db):
    job = _job(JobStatus.PENDING, JobType.GENERATE_API)
    project = MagicMock(id=job.project_id)
    runner._run_api_generation = AsyncMock(side_effect=RuntimeError("API generation failed: timeout"))
    runner._fail = AsyncMock()

    with patch.object(generation_job_repo, "get_by_id", new=AsyncMock(return_value=job)), \
         patch.object(project_repo, "get_by_id", new=AsyncMock(return_value=project)), \
         patch.object(generation_job_repo, "set_status", new=AsyncMock(return_value=job)):
        await runner.run_job(job.id)

    runner._fail.assert_awaited_once_with(job_db, job.id, job.project_id, "API generation failed: timeout")


@pytest.mark.asyncio
async def test_cancelled_job_never_starts(runner, job_db):
    job = _job(JobStatus.CANCELLED)
    runner._run_code_generation = AsyncMock()

    with patch.object(generation_job_repo, "get_by_id", new=AsyncMock(return_value=job)):
        await runner.run_job(job.id)

    runner._run_code_generation.assert_not_called()


@pytest.mark.asyncio
async def test_retry_refused_while_another_job_runs(runner):
    job = _job(JobStatus.FAILED)
    runner.launch = AsyncMock()

    with patch.object(generation_job_repo, "get_active_for_project", new=AsyncMock(return_value=_job(JobStatus.RUNNING))), \
         patch.object(generation_job_repo, "set_status", new=AsyncMock()) as set_status:
        with pytest.raises(ConflictException):
            await runner.retry_job(MagicMock(), job)

    set_status.assert_not_awaited()
    runner.launch.assert_not_awaited()


@pytest.mark.asyncio
async def test_cancelling_a_running_task_cleans_up(runner):
    job_id = uuid.uuid4()
    started = asyncio.Event()

    async def slow_run(_):
        started.set()
        await asyncio.sleep(60)

    runner._run = slow_run
    runner._mark_cancelled = AsyncMock()
    task = asyncio.create_task(runner.run_job(job_id))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    runner._mark_cancelled.assert_awaited_once_with(job_id)


@pytest.mark.asyncio
async def test_sync_sandbox_updates_running_container(runner):
    project = MagicMock(id=uuid.uuid4(), sandbox_id="c0ffee")
    changed = {"app/pricing/page.tsx": "export default function Pricing() {}"}

    with patch.object(streaming_service, "emit", new=AsyncMock()), \
         patch.object(sandbox_manager, "write_files", new=AsyncMock(return_value=1)) as write_files, \
         patch.object(sandbox_manager, "exec_command", new=AsyncMock()) as exec_command, \
         patch.object(sandbox_manager, "create_sandbox", new=AsyncMock()) as create_sandbox:
        result = await runner._sync_sandbox(MagicMock(), project, changed, changed, ["app/old/page.tsx"])

    assert result is project
    write_files.assert_awaited_once_with("c0ffee", changed)
    exec_command.assert_awaited_once_with("c0ffee", ["rm", "-f", "app/old/page.tsx"])
    create_sandbox.assert_not_awaited()
