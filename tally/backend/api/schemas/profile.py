from pydantic import BaseModel, ConfigDict
from typing import List


class ProfileResponse(BaseModel):
    """Display name and the subject codes the student tracks."""
    name: str
    selected_subjects: List[str]

    model_config = ConfigDict(from_attributes=True)
