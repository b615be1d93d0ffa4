"""Generation runner: turns a prompt into a version, a preview and a chat reply.

Two kinds of job run here, both as background asyncio tasks:

    generate_api   one-shot API spec + server code for a brand-new project
    generate_code  an iterative two-agent change to an existing project

Either way the runner:
1. Streams progress to the project's SSE connections (and generation_events)
2. Creates a version (generating → complete / failed)
3. Copies the files into the project's sandbox (creating it on first run)
4. Stores the assistant message with a fragment of the generated files
5. Publishes generation.completed so the indexing subscriber embeds the files

Launches are deduplicated through Redis, so a double-clicked button or a
retried request never runs the same job twice.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.database import get_db
from apps.api.exceptions import ConflictException, ForgeException
from apps.api.models.generation_job import GenerationJob, JobStatus, JobType
from apps.api.models.message import MessageRole, MessageType
from apps.api.models.project import Project, ProjectStatus
from apps.api.models.user import User
from apps.api.models.version import CommandType, Version
from apps.api.repositories import (
    fragment_repo,
    generation_job_repo,
    message_repo,
    project_repo,
    version_repo,
)
from apps.api.services import version_service
from apps.api.services.event_service import event_service
from apps.api.services.llm import get_coding_adapter, get_decision_adapter, get_file_index
from apps.api.services.sandbox_manager import sandbox_manager
from apps.api.services.streaming_service import streaming_service
from adapters import UsageTrackingMiddleware
from events.schemas import EventType, GenerationEvent
from events.stream import (
    FileComplete,
    GenerationComplete,
    GenerationError,
    ProjectCreated,
    StepComplete,
    StepStart,
    ValidationComplete,
    ValidationStart,
)
from generation import (
    APIGenerator,
    DecisionAgent,
    SmartContextBuilder,
    TwoAgentOrchestrator,
    TwoAgentResult,
    api_files,
    keyword_classify,
    validate_and_fix,
)

logger = logging.getLogger(__name__)

ESTIMATED_API_SECONDS = 60

# status → (progress %, current step, estimated seconds remaining)
JOB_STATUS_INFO = {
    JobStatus.PENDING: (10, "Queued for processing", 60),
    JobStatus.RUNNING: (50, "Generating API specification", 30),
    JobStatus.COMPLETED: (100, "Generation completed", 0),
    JobStatus.FAILED: (0, "Generation failed", 0),
    JobStatus.CANCELLED: (0, "Generation cancelled", 0),
}

NOT_CANCELLABLE = (JobStatus.COMPLETED, JobStatus.CANCELLED)
RETRYABLE = (JobStatus.FAILED, JobStatus.CANCELLED)


def _dedup_key(job_id) -> str:
    return f"generation-job:{job_id}"


def job_status(job: GenerationJob) -> dict:
    """Progress view of a job for polling clients."""
    progress, step, remaining = JOB_STATUS_INFO[JobStatus(job.status)]
    return {
        "jobId": job.id,
        "projectId": job.project_id,
        "status": JobStatus(job.status).value,
        "progress": progress,
        "currentStep": step,
        "estimatedTimeRemaining": remaining,
        "result": job.result,
        "error": job.error_message,
    }


def command_type_for(prompt: str, result: TwoAgentResult) -> CommandType:
    """Keyword classification first, then infer from what the agent changed."""
    matched = keyword_classify(prompt)
    if matched:
        return matched
    if result.deleted_files and not result.all_files:
        return CommandType.DELETE_FILE
    if result.new_files and not result.modified_files:
        return CommandType.CREATE_FILE
    return CommandType.MODIFY_FILE


class GenerationRunner:
    """Launches generation jobs and tracks the asyncio tasks running them."""

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    # ── Starting work ─────────────────────────────────────

    async def start_api_generation(
        self,
        db: AsyncSession,
        user: User,
        prompt: str,
        framework: str = "fastapi",
        advanced: bool = False,
        template: str | None = None,
    ) -> dict:
        """Create a project for `prompt` and kick off API generation."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        project = await project_repo.create(
            db,
            name=f"API Project {today}",
            description=f"API generated from user prompt: {prompt[:100]}...",
            framework=framework,
            status=ProjectStatus.GENERATING,
            prompt=prompt,
            owner_id=user.id,
        )
        await message_repo.create(
            db, content=prompt, role=MessageRole.USER, type=MessageType.RESULT, project_id=project.id
        )
        job = await generation_job_repo.create(
            db,
            type=JobType.GENERATE_API,
            status=JobStatus.PENDING,
            payload={"prompt": prompt, "framework": framework, "advanced": advanced, "template": template},
            project_id=project.id,
            user_id=user.id,
        )

        await streaming_service.emit(project.id, ProjectCreated(project_id=str(project.id), prompt=prompt))
        await event_service.publish(
            EventType.PROJECT_CREATED.value, {"project_id": str(project.id), "user_id": str(user.id)}
        )
        await self.launch(job.id)

        return {
            "jobId": job.id,
            "projectId": project.id,
            "status": "generating",
            "message": "API generation started",
            "estimatedTime": ESTIMATED_API_SECONDS,
        }

    async def start_code_generation(
        self, db: AsyncSession, user: User, project: Project, prompt: str
    ) -> GenerationJob:
        """Queue an iterative two-agent change on an existing project."""
        await self._ensure_idle(db, project.id)
        await message_repo.create(
            db, content=prompt, role=MessageRole.USER, type=MessageType.RESULT, project_id=project.id
        )
        job = await generation_job_repo.create(
            db,
            type=JobType.GENERATE_CODE,
            status=JobStatus.PENDING,
            payload={"prompt": prompt},
            project_id=project.id,
            user_id=user.id,
        )
        await project_repo.update(db, project, status=ProjectStatus.GENERATING)
        await self.launch(job.id)
        return job

    async def cancel_job(self, db: AsyncSession, job: GenerationJob) -> GenerationJob:
        if job.status in NOT_CANCELLABLE:
            raise ForgeException(f"Cannot cancel a {JobStatus(job.status).value} job", status_code=400)

        task = self._tasks.pop(str(job.id), None)
        if task and not task.done():
            task.cancel()

        job = await generation_job_repo.set_status(db, job, JobStatus.CANCELLED)
        logger.info("Cancelled generation job %s", job.id)
        return job

    async def retry_job(self, db: AsyncSession, job: GenerationJob) -> GenerationJob:
        if job.status not in RETRYABLE:
            raise ForgeException("Only failed or cancelled jobs can be retried", status_code=400)

        await self._ensure_idle(db, job.project_id)
        await event_service.release(_dedup_key(job.id))
        job = await generation_job_repo.set_status(db, job, JobStatus.PENDING)
        await self.launch(job.id)
        logger.info("Retrying generation job %s", job.id)
        return job

    async def _ensure_idle(self, db: AsyncSession, project_id: uuid.UUID) -> None:
        """One job at a time per project: both would write versions and the same sandbox."""
        active = await generation_job_repo.get_active_for_project(db, project_id)
        if active is not None:
            raise ConflictException(
                f"A generation is already running for this project (job {active.id})"
            )

    async def launch(self, job_id: uuid.UUID) -> bool:
        """Start the job in the background. False when it was already launched."""
        if await event_service.is_duplicate(_dedup_key(job_id)):
            logger.warning("Generation job %s already launched, ignoring duplicate", job_id)
            return False

        task = asyncio.create_task(self.run_job(job_id))
        self._tasks[str(job_id)] = task
        task.add_done_callback(lambda _: self._tasks.pop(str(job_id), None))
        return True

    def running_jobs(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Cancel every in-flight job (called on app shutdown)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # ── Running work ──────────────────────────────────────

    async def run_job(self, job_id: uuid.UUID) -> None:
        try:
            await self._run(job_id)
        except asyncio.CancelledError:
            logger.info("Generation job %s cancelled while running", job_id)
            await asyncio.shield(self._mark_cancelled(job_id))
            raise

    async def _run(self, job_id: uuid.UUID) -> None:
        async for db in get_db():
            job = await generation_job_repo.get_by_id(db, job_id)
            if job is None:
                logger.error("Generation job %s not found", job_id)
                return
            if job.status == JobStatus.CANCELLED:
                logger.info("Generation job %s was cancelled before it started", job_id)
                return

            project_id = job.project_id
            project = await project_repo.get_by_id(db, project_id)
            if project is None:
                await self._fail(db, job_id, project_id, "Project no longer exists")
                return
            job = await generation_job_repo.set_status(db, job, JobStatus.RUNNING)
            await event_service.publish_event(
                EventType.GENERATION_STARTED.value,
                GenerationEvent(source="generation_runner", event_type=EventType.GENERATION_STARTED,
                                project_id=str(project.id), job_id=str(job.id)),
            )
            logger.info("Running %s job %s for project %s", job.type, job.id, project.id)

            try:
                if job.type == JobType.GENERATE_API:
                    result = await self._run_api_generation(db, job, project)
                else:
                    result = await self._run_code_generation(db, job, project)
            except Exception as e:
                logger.error("Generation job %s failed: %s", job_id, e, exc_info=True)
                await self._fail(db, job_id, project_id, str(e))
                return

            await generation_job_repo.set_status(db, job, JobStatus.COMPLETED, result=result)
            logger.info("Generation job %s completed", job_id)
            break

    async def _run_api_generation(self, db: AsyncSession, job: GenerationJob, project: Project) -> dict:
        prompt = job.payload["prompt"]
        framework = job.payload.get("framework", "fastapi")

        await streaming_service.emit(
            project.id, StepStart(step="Generating", message="Generating API specification...")
        )
        coder = UsageTrackingMiddleware(get_coding_adapter())
        generated = await APIGenerator(coder).generate_api(prompt, framework)
        await streaming_service.emit(
            project.id, StepComplete(step="Generating", message="API specification generated")
        )

        files = api_files(generated, framework)
        version = await self._finalize(
            db,
            job,
            project,
            files=files,
            changed=files,
            command_type=CommandType.GENERATE_API,
            description=f"Generated {framework} API",
            metadata={"usage": coder.summary()},
        )
        return {
            "versionId": str(version.id),
            "versionNumber": version.version_number,
            "files": sorted(files),
            "openapi_spec": generated.get("openapi_spec", {}),
            "generated_at": generated.get("generated_at"),
            "sandboxUrl": project.sandbox_url,
        }

    async def _run_code_generation(self, db: AsyncSession, job: GenerationJob, project: Project) -> dict:
        prompt = job.payload["prompt"]

        context = await SmartContextBuilder(get_file_index()).build_smart_context(db, project.id, prompt)
        coder = UsageTrackingMiddleware(get_coding_adapter())
        orchestrator = TwoAgentOrchestrator(DecisionAgent(get_decision_adapter()), coder)

        async def on_progress(step: str, message: str) -> None:
            await streaming_service.emit(project.id, StepStart(step=step, message=message))

        result = await orchestrator.execute(
            prompt,
            context,
            project_id=str(project.id),
            is_github_project=bool(project.repo_full_name),
            repo_full_name=project.repo_full_name,
            on_progress=on_progress,
        )

        if result.is_answer:
            await message_repo.create(
                db,
                content=result.answer or result.description,
                role=MessageRole.ASSISTANT,
                type=MessageType.RESULT,
                project_id=project.id,
            )
            await project_repo.update(db, project, status=ProjectStatus.READY)
            await streaming_service.emit(project.id, GenerationComplete(summary="Answered your question", total_files=0))
            return {"answer": result.answer, "intent": result.decision.intent if result.decision else None}

        files = {**context.previous_files, **result.all_files}
        for path in result.deleted_files:
            files.pop(path, None)

        version = await self._finalize(
            db,
            job,
            project,
            files=files,
            changed=result.all_files,
            command_type=command_type_for(prompt, result),
            description=result.description or "Updated project files",
            parent_version_id=context.previous_version.id if context.previous_version else None,
            deleted=result.deleted_files,
            metadata={
                "changes": result.changes,
                "intent": result.decision.intent if result.decision else None,
                "usage": coder.summary(),
            },
        )
        return {
            "versionId": str(version.id),
            "versionNumber": version.version_number,
            "newFiles": sorted(result.new_files),
            "modifiedFiles": sorted(result.modified_files),
            "deletedFiles": result.deleted_files,
            "description": result.description,
            "sandboxUrl": project.sandbox_url,
        }

    async def _finalize(
        self,
        db: AsyncSession,
        job: GenerationJob,
        project: Project,
        files: dict[str, str],
        changed: dict[str, str],
        command_type: CommandType,
        description: str,
        parent_version_id: uuid.UUID | None = None,
        deleted: list[str] | None = None,
        metadata: dict | None = None,
    ) -> Version:
        prompt = job.payload["prompt"]
        version = await version_service.create_version(
            db,
            project_id=project.id,
            name=prompt[:80],
            files=files,
            command_type=command_type,
            prompt=prompt,
            description=description,
            parent_version_id=parent_version_id,
            metadata={"jobId": str(job.id), **(metadata or {})},
        )
        version_id = str(version.id)

        try:
            await streaming_service.emit(
                project.id, ValidationStart(stage="Validating generated code", version_id=version_id)
            )
            warnings = 0
            for path, content in changed.items():
                if path.endswith((".tsx", ".jsx")):
                    check = validate_and_fix(content, path, files)
                    warnings += len(check.errors) + len(check.warnings)
                await streaming_service.emit(
                    project.id, FileComplete(filename=path, content=content, path=path, version_id=version_id)
                )
            await streaming_service.emit(
                project.id,
                ValidationComplete(
                    stage="Validating generated code",
                    summary=f"Validated {len(changed)} files ({warnings} issues)",
                    version_id=version_id,
                ),
            )

            project = await self._sync_sandbox(db, project, files, changed, deleted or [])
            version = await version_service.mark_complete(db, version)
        except Exception as e:
            await version_service.mark_failed(db, version, str(e))
            raise

        message = await message_repo.create(
            db, content=description, role=MessageRole.ASSISTANT, type=MessageType.RESULT, project_id=project.id
        )
        if project.sandbox_url:
            await fragment_repo.create(
                db, sandbox_url=project.sandbox_url, title=version.name, files=changed, message_id=message.id
            )

        await project_repo.update(db, project, status=ProjectStatus.READY)
        await event_service.publish_event(
            EventType.GENERATION_COMPLETED.value,
            GenerationEvent(
                source="generation_runner",
                event_type=EventType.GENERATION_COMPLETED,
                project_id=str(project.id),
                job_id=str(job.id),
                version_id=version_id,
                files=sorted(changed),
            ),
        )
        await streaming_service.emit(
            project.id,
            GenerationComplete(
                summary=f"Generated {len(changed)} files (version {version.version_number})",
                total_files=len(files),
                version_id=version_id,
            ),
        )
        return version

    async def _sync_sandbox(
        self,
        db: AsyncSession,
        project: Project,
        files: dict[str, str],
        changed: dict[str, str],
        deleted: list[str],
    ) -> Project:
        """Push files into the running sandbox, creating one if needed.

        A sandbox failure does not fail the generation: the version is still
        saved and the preview can be restarted later.
        """
        await streaming_service.emit(project.id, StepStart(step="Preview", message="Updating preview sandbox..."))
        try:
            if project.sandbox_id:
                await sandbox_manager.write_files(project.sandbox_id, changed)
                for path in deleted:
                    await sandbox_manager.exec_command(project.sandbox_id, ["rm", "-f", path])
            else:
                project = await sandbox_manager.create_sandbox(db, project, files=files)
        except Exception as e:
            logger.warning("Sandbox update failed for project %s: %s", project.id, e)
            await streaming_service.emit(project.id, GenerationError(message=f"Preview unavailable: {e}", stage="sandbox"))
            return project

        await streaming_service.emit(project.id, StepComplete(step="Preview", message="Preview sandbox ready"))
        return project

    async def _close_open_versions(
        self, db: AsyncSession, project_id: uuid.UUID, job_id: uuid.UUID, reason: str
    ) -> None:
        for version in await version_repo.get_generating_for_job(db, project_id, job_id):
            await version_service.mark_failed(db, version, reason)

    async def _fail(self, db: AsyncSession, job_id: uuid.UUID, project_id: uuid.UUID, error: str) -> None:
        # A rollback expires every loaded object, so work from ids and reload.
        if db.in_transaction():
            await db.rollback()

        job = await generation_job_repo.get_by_id(db, job_id)
        if job is not None:
            await generation_job_repo.set_status(db, job, JobStatus.FAILED, error_message=error)
        await self._close_open_versions(db, project_id, job_id, error)

        project = await project_repo.get_by_id(db, project_id)
        if project is None:
            logger.warning("Project %s vanished while job %s was failing", project_id, job_id)
            return
        await project_repo.update(db, project, status=ProjectStatus.FAILED)
        await message_repo.create(
            db,
            content=f"Generation failed: {error}",
            role=MessageRole.ASSISTANT,
            type=MessageType.ERROR,
            project_id=project_id,
        )
        await streaming_service.emit(project_id, GenerationError(message=error, stage="generation"))
        await event_service.publish_event(
            EventType.GENERATION_FAILED.value,
            GenerationEvent(
                source="generation_runner",
                event_type=EventType.GENERATION_FAILED,
                project_id=str(project_id),
                job_id=str(job_id),
                error=error,
            ),
        )

    async def _mark_cancelled(self, job_id: uuid.UUID) -> None:
        """Leave no job, version or project stuck in a running state after a cancel."""
        async for db in get_db():
            job = await generation_job_repo.get_by_id(db, job_id)
            if job is None:
                return
            if job.status in (JobStatus.PENDING, JobStatus.RUNNING):
                job = await generation_job_repo.set_status(db, job, JobStatus.CANCELLED)

            project_id = job.project_id
            await self._close_open_versions(db, project_id, job_id, "Generation cancelled")

            project = await project_repo.get_by_id(db, project_id)
            if project is not None and project.status == ProjectStatus.GENERATING:
                # A project that never produced a version has nothing to be ready with
                previous = await version_repo.get_latest_complete(db, project_id)
                status = ProjectStatus.READY if previous else ProjectStatus.FAILED
                await project_repo.update(db, project, status=status)

            await streaming_service.emit(project_id, GenerationError(message="Generation cancelled", stage="cancelled"))
            break


# Singleton
generation_runner = GenerationRunner()
