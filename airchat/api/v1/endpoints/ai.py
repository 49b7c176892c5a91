"""Generative text helper endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from airchat.api.v1.dependencies import get_current_user, get_db
from airchat.core.context import AppContext, get_app_context
from airchat.models.user import User
from airchat.schemas.ai import (
    CreativeWritingRequest,
    SuggestRepliesRequest,
    SuggestRepliesResponse,
    SummarizeRequest,
    TextResponse,
    TranslateRequest,
)
from airchat.services.message_service import MessageService, check_conversation_access

router = APIRouter()

# Prompt context for suggestions and summaries
CONTEXT_MESSAGES = 20


async def _recent(db: AsyncSession, user: User, conversation_id: str):
    check_conversation_access(user.id, conversation_id)
    return await MessageService(db).recent_messages(conversation_id, CONTEXT_MESSAGES)


@router.post("/suggest-replies", response_model=SuggestRepliesResponse)
async def suggest_replies(
    data: SuggestRepliesRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Suggest short replies to the latest messages of a conversation."""
    messages = await _recent(db, user, data.conversation_id)
    return SuggestRepliesResponse(suggestions=await ctx.ai.suggest_replies(messages, data.count))


@router.post("/creative-writing", response_model=TextResponse)
async def creative_writing(
    data: CreativeWritingRequest,
    user: User = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context),
):
    return TextResponse(text=await ctx.ai.creative_writing(data.topic))


@router.post("/summarize", response_model=TextResponse)
async def summarize(
    data: SummarizeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ctx: AppContext = Depends(get_app_context),
):
    """Summarize the latest messages of a conversation."""
    messages = await _recent(db, user, data.conversation_id)
    return TextResponse(text=await ctx.ai.summarize(messages))


@router.post("/translate", response_model=TextResponse)
async def translate(
    data: TranslateRequest,
    user: User = Depends(get_current_user),
    ctx: AppContext = Depends(get_app_context),
):
    return TextResponse(text=await ctx.ai.translate(data.text, data.target_language))
