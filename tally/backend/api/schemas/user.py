# tally/backend/api/schemas/user.py
from pydantic import BaseModel
from typing import Optional

# Claims of the bearer token issued by the identity provider
class TokenData(BaseModel):
    sub: Optional[str] = None
    email: Optional[str] = None
    typ: Optional[str] = None

class StudentIdentity(BaseModel):
    """The authenticated caller every attendance operation is scoped to."""
    student_id: str
    email: Optional[str] = None
