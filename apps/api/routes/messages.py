"""Message and fragment routes.

Messages are the chat history of a project; a fragment is the generated
output (files + preview URL) attached to an assistant message.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.auth import get_current_user
from apps.api.database import get_db
from apps.api.exceptions import ConflictException, NotFoundException
from apps.api.models.message import Fragment, Message, MessageRole, MessageType
from apps.api.models.user import User
from apps.api.repositories import fragment_repo, message_repo
from apps.api.schemas.message import (
    FragmentCreate,
    FragmentResponse,
    FragmentUpdate,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
)
from apps.api.services.project_service import get_user_project

router = APIRouter(tags=["messages"])


def _message_to_response(message: Message, with_fragment: bool = True) -> MessageResponse:
    fragment = message.fragment if with_fragment else None
    return MessageResponse(
        id=message.id,
        created_at=message.created_at,
        updated_at=message.updated_at,
        content=message.content,
        role=message.role,
        type=message.type,
        project_id=message.project_id,
        fragment=FragmentResponse.model_validate(fragment) if fragment else None,
    )


async def _get_user_message(db: AsyncSession, message_id: uuid.UUID, user: User) -> Message:
    message = await message_repo.get_by_id(db, message_id)
    if not message:
        raise NotFoundException("Message", str(message_id))
    await get_user_project(db, message.project_id, user)
    return message


async def _get_user_fragment(db: AsyncSession, fragment_id: uuid.UUID, user: User) -> Fragment:
    fragment = await fragment_repo.get_with_message(db, fragment_id)
    if not fragment:
        raise NotFoundException("Fragment", str(fragment_id))
    await get_user_project(db, fragment.message.project_id, user)
    return fragment


# ── Messages ──────────────────────────────────────────

@router.get("/projects/{project_id}/messages", response_model=MessageListResponse)
async def list_messages(
    project_id: uuid.UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    include_fragment: bool = Query(default=True),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Messages of a project, newest first."""
    await get_user_project(db, project_id, current_user)
    messages = await message_repo.get_by_project(
        db, project_id, skip=skip, limit=limit, include_fragment=include_fragment
    )
    return MessageListResponse(
        messages=[_message_to_response(m, include_fragment) for m in messages],
        total=len(messages),
    )


@router.post("/projects/{project_id}/messages", response_model=MessageResponse, status_code=201)
async def create_message(
    project_id: uuid.UUID,
    body: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_user_project(db, project_id, current_user)
    message = await message_repo.create(
        db,
        content=body.content,
        role=MessageRole(body.role),
        type=MessageType(body.type),
        project_id=project_id,
    )
    return _message_to_response(message, with_fragment=False)


@router.delete("/messages/{message_id}", status_code=204)
async def delete_message(
    message_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await _get_user_message(db, message_id, current_user)
    await message_repo.delete(db, message)


# ── Fragments ─────────────────────────────────────────

@router.get("/messages/{message_id}/fragments", response_model=list[FragmentResponse])
async def list_fragments(
    message_id: uuid.UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_user_message(db, message_id, current_user)
    fragments = await fragment_repo.get_by_message(db, message_id, skip=skip, limit=limit)
    return [FragmentResponse.model_validate(f) for f in fragments]


@router.post("/messages/{message_id}/fragments", response_model=FragmentResponse, status_code=201)
async def create_fragment(
    message_id: uuid.UUID,
    body: FragmentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Attach a fragment to a message. A message holds at most one."""
    await _get_user_message(db, message_id, current_user)
    if await fragment_repo.get_by_message(db, message_id, limit=1):
        raise ConflictException("This message already has a fragment")

    fragment = await fragment_repo.create(
        db, sandbox_url=body.sandbox_url, title=body.title, files=body.files, message_id=message_id
    )
    return FragmentResponse.model_validate(fragment)


@router.get("/fragments/{fragment_id}", response_model=FragmentResponse)
async def get_fragment(
    fragment_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    fragment = await _get_user_fragment(db, fragment_id, current_user)
    return FragmentResponse.model_validate(fragment)


@router.patch("/fragments/{fragment_id}", response_model=FragmentResponse)
async def update_fragment(
    fragment_id: uuid.UUID,
    body: FragmentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    fragment = await _get_user_fragment(db, fragment_id, current_user)
    update_data = body.model_dump(exclude_unset=True)
    if update_data:
        fragment = await fragment_repo.update(db, fragment, **update_data)
    return FragmentResponse.model_validate(fragment)


@router.delete("/fragments/{fragment_id}", status_code=204)
async def delete_fragment(
    fragment_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    fragment = await _get_user_fragment(db, fragment_id, current_user)
    await fragment_repo.delete(db, fragment)
