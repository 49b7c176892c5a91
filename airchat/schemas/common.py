"""Shared response pieces."""

from typing import Literal, Optional
from pydantic import BaseModel, Field

Severity = Literal["info", "success", "warning", "error"]


class Notice(BaseModel):
    """Transient toast-style notification for the client."""

    message: str
    severity: Severity = "info"
    code: Optional[str] = None
    duration_ms: Optional[int] = Field(
        None, description="Auto-dismiss after this many milliseconds; None keeps it until closed")


class ActionResponse(BaseModel):
    """Acknowledgement of a mutation the client shows as a toast."""

    notice: Notice
