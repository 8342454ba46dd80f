from ..db.db_client import AsyncPostgresClient
from ..models.db_models import Profile
from .errors import NotFound, storage_guard


class ProfileService:
    """Read access to the profile written by onboarding and extended by add_subject."""
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    @storage_guard
    async def get_profile(self, student_id: str) -> Profile:
        profile = await self.db_client.get_profile(student_id)
        if profile is None:
            raise NotFound("No profile yet, finish onboarding first.")
        return profile
