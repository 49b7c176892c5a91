"""Generative text helper schemas."""

from pydantic import BaseModel, Field


class SuggestRepliesRequest(BaseModel):
    conversation_id: str
    count: int = Field(3, ge=1, le=5)


class SuggestRepliesResponse(BaseModel):
    suggestions: list[str]


class CreativeWritingRequest(BaseModel):
    topic: str = Field(..., min_length=1, max_length=500)


class SummarizeRequest(BaseModel):
    conversation_id: str


class TranslateRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=4000)
    target_language: str = Field(..., min_length=2, max_length=40)


class TextResponse(BaseModel):
    text: str
