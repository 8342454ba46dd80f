from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr
from typing import Optional, Union


class SubjectAddRequest(BaseModel):
    """Request model for adding a subject to the student's totals."""
    subject: str = Field(..., min_length=1, description="Catalog subject code.")
    total: Optional[Union[StrictInt, StrictFloat, StrictStr]] = Field(
        None, description="Scheduled lecture count, 0 means uncapped. Defaults to the catalog value."
    )


class TotalUpdateRequest(BaseModel):
    """Request model for editing the scheduled lecture count of a subject."""
    total: Union[StrictInt, StrictFloat, StrictStr] = Field(..., description="New non-negative lecture count, fractions are floored.")
