from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr
from typing import List, Optional, Union


class OnboardingSubject(BaseModel):
    code: str = Field(..., min_length=1)
    total: Optional[Union[StrictInt, StrictFloat, StrictStr]] = Field(None, description="Defaults to the catalog value.")


class OnboardingBeginRequest(BaseModel):
    """Signup data submitted before the e-mail address is verified."""
    name: str = Field(..., min_length=1)
    subjects: List[OnboardingSubject] = Field(..., min_length=1)


class OnboardingTokenResponse(BaseModel):
    """Opaque reference the client stores until verification is done."""
    token: str
    expires_in: int = Field(description="Seconds until the pending record is discarded.")


class OnboardingCompleteRequest(BaseModel):
    token: str = Field(..., min_length=1)
