# tally/backend/models/db_models.py

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from uuid import UUID

NOTE_MAX_LENGTH = 280


class AttendanceLog(BaseModel):
    """
    One attendance event, mapping to the 'attendance' table.
    """
    id: UUID = Field(..., description="Unique identifier generated when the event is recorded")
    student_id: str = Field(..., description="Owning student, immutable")
    subject: str = Field(..., description="Subject code, references subjects_catalog")
    date: datetime
    note: Optional[str] = Field(None, max_length=NOTE_MAX_LENGTH)


class SubjectTotal(BaseModel):
    """
    Cached attendance counter of one student for one subject, mapping to the
    'attendance_totals' table. Unique on (student_id, subject).
    """
    student_id: str
    subject: str
    count: int = Field(0, ge=0, description="Number of attendance rows currently counted")
    total: int = Field(0, ge=0, description="Scheduled lecture count, 0 means uncapped")


class CatalogEntry(BaseModel):
    """Read-only reference row of the 'subjects_catalog' table."""
    code: str
    name: str
    default_total: Optional[int] = None


class Profile(BaseModel):
    """Maps to the 'profiles' table, written when onboarding completes."""
    user_id: str
    name: str
    selected_subjects: List[str] = []
