"""Conversation administration endpoints."""

import math

from fastapi import APIRouter, Query

from switchboard.api.dependencies import RegistryDep, ThreadStoreDep
from switchboard.api.exceptions import (
    ConversationExistsError,
    ConversationNotFoundError,
    UpstreamUnavailableError,
)
from switchboard.api.models import (
    AddTurnRequest,
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationResponse,
    ConversationStatus,
    ConversationStatusResponse,
    ConversationSummary,
    CreateConversationRequest,
    DeleteResponse,
    Pagination,
    StatsResponse,
    TurnCreatedResponse,
    TurnMatchResponse,
    TurnResponse,
    TurnSearchPage,
    TurnSearchResponse,
)
from switchboard.conversation.models import ConversationThread, Turn
from switchboard.conversation.registry import ThreadRegistry
from switchboard.errors import ThreadCreationError, ThreadNotFoundError
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/conversations")


async def _get_or_404(registry: ThreadRegistry, identifier: str) -> ConversationThread:
    thread = await registry.get(identifier)
    if thread is None:
        raise ConversationNotFoundError(f"Conversation {identifier} not found")
    return thread


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    registry: RegistryDep,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    search: str | None = Query(default=None, description="Identifier substring"),
) -> ConversationListResponse:
    threads, total = await registry.list_threads(limit=limit, offset=offset, search=search)
    return ConversationListResponse(
        data=[ConversationSummary.from_thread(t) for t in threads],
        pagination=Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(threads) < total,
        ),
    )


@router.post("", response_model=ConversationResponse, status_code=201)
async def create_conversation(
    body: CreateConversationRequest,
    registry: RegistryDep,
) -> ConversationResponse:
    if await registry.get(body.identifier) is not None:
        raise ConversationExistsError(f"Conversation {body.identifier} already exists")

    try:
        thread = await registry.resolve(body.identifier)
        if body.paused:
            thread = await registry.set_paused(body.identifier, True)
    except ThreadCreationError as e:
        raise UpstreamUnavailableError(e.message) from e

    return ConversationResponse(
        message=f"Conversation {body.identifier} created",
        data=ConversationSummary.from_thread(thread),
    )


@router.get("/stats/metrics", response_model=StatsResponse)
async def conversation_stats(store: ThreadStoreDep) -> StatsResponse:
    return StatsResponse(data=await store.stats())


@router.get("/search/messages", response_model=TurnSearchResponse)
async def search_messages(
    store: ThreadStoreDep,
    q: str = Query(..., min_length=1, description="Text to find in turn content"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=500),
) -> TurnSearchResponse:
    """Search turns of every conversation, newest first."""
    matches, total = await store.search_turns(q, limit=limit, offset=(page - 1) * limit)
    return TurnSearchResponse(
        data=TurnSearchPage(
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
            messages=[TurnMatchResponse.from_match(match) for match in matches],
        )
    )


@router.get("/{identifier}", response_model=ConversationDetailResponse)
async def get_conversation(
    identifier: str,
    registry: RegistryDep,
    store: ThreadStoreDep,
    limit: int | None = Query(default=None, ge=1, description="Max turns returned"),
) -> ConversationDetailResponse:
    thread = await _get_or_404(registry, identifier)
    turns = await store.list_turns(thread.id, limit=limit)
    return ConversationDetailResponse(
        data=ConversationSummary.from_thread(thread),
        turns=[TurnResponse.from_turn(turn) for turn in turns],
    )


@router.get("/{identifier}/status", response_model=ConversationStatusResponse)
async def conversation_status(identifier: str, registry: RegistryDep) -> ConversationStatusResponse:
    thread = await _get_or_404(registry, identifier)
    return ConversationStatusResponse(
        data=ConversationStatus(
            identifier=thread.identifier,
            paused=thread.paused,
            status="paused" if thread.paused else "active",
            updated_at=thread.updated_at,
        )
    )


@router.post("/{identifier}/pause", response_model=ConversationResponse)
async def pause_conversation(identifier: str, registry: RegistryDep) -> ConversationResponse:
    """Stop automated replies; creates the conversation if it is new."""
    try:
        thread = await registry.set_paused(identifier, True)
    except ThreadCreationError as e:
        raise UpstreamUnavailableError(e.message) from e

    logger.info("conversation_paused", identifier=identifier)
    return ConversationResponse(
        message=f"Conversation {identifier} paused",
        data=ConversationSummary.from_thread(thread),
    )


@router.post("/{identifier}/resume", response_model=ConversationResponse)
async def resume_conversation(identifier: str, registry: RegistryDep) -> ConversationResponse:
    try:
        thread = await registry.set_paused(identifier, False)
    except ThreadNotFoundError as e:
        raise ConversationNotFoundError(e.message) from e

    logger.info("conversation_resumed", identifier=identifier)
    return ConversationResponse(
        message=f"Conversation {identifier} resumed",
        data=ConversationSummary.from_thread(thread),
    )


@router.post("/{identifier}/messages", response_model=TurnCreatedResponse, status_code=201)
async def add_message(
    identifier: str,
    body: AddTurnRequest,
    registry: RegistryDep,
    store: ThreadStoreDep,
) -> TurnCreatedResponse:
    """Record a turn by hand, e.g. a reply sent by a human operator."""
    thread = await _get_or_404(registry, identifier)
    turn = Turn(thread_id=thread.id, role=body.role, content=body.content)
    written = await store.append_turn(turn)
    return TurnCreatedResponse(data=TurnResponse.from_turn(turn), duplicate=not written)


@router.delete("/{identifier}", response_model=DeleteResponse)
async def delete_conversation(identifier: str, registry: RegistryDep) -> DeleteResponse:
    """Delete the conversation and all of its turns."""
    if not await registry.delete(identifier):
        raise ConversationNotFoundError(f"Conversation {identifier} not found")
    return DeleteResponse(message=f"Conversation {identifier} deleted")
