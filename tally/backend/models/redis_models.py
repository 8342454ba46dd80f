from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

ChangeTable = Literal["attendance", "attendance_totals"]
ChangeKind = Literal["INSERT", "UPDATE", "DELETE"]


class PendingSubject(BaseModel):
    code: str
    total: int = Field(..., ge=0)


class PendingOnboardingRedis(BaseModel):
    """
    Signup data waiting for the student to verify their e-mail address.
    Only the server holds it; the client keeps a signed token carrying pending_id.
    """
    pending_id: UUID = Field(..., description="Opaque identifier embedded in the signed token.")
    name: str
    subjects: List[PendingSubject]
    created_at: datetime


class ChangeEvent(BaseModel):
    """
    Notification published after a committed mutation. Subscribers treat it as a
    signal to re-fetch, the payload itself is informational.
    """
    student_id: str
    table: ChangeTable
    event: ChangeKind
    subject: Optional[str] = None
    occurred_at: datetime
