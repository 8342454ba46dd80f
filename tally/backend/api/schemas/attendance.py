from pydantic import BaseModel, Field, ConfigDict
from uuid import UUID
from datetime import datetime
from typing import Optional

from ...models.db_models import NOTE_MAX_LENGTH


class AttendanceMarkRequest(BaseModel):
    """Request model for marking attendance for one lecture."""
    subject: str = Field(..., min_length=1, description="Subject code, e.g. 'CN'.")
    note: Optional[str] = Field(None, description=f"Optional free text, at most {NOTE_MAX_LENGTH} characters.")


class AttendanceLogResponse(BaseModel):
    """Response model for one attendance event."""
    id: UUID
    subject: str
    date: datetime
    note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
