"""
Household Directory

Households are the sharing boundary. The identity provider hands us an
opaque user id; the user's profile says which household they work in.
"""

from typing import Optional

from household_ledger.models.ledger import Household, UserProfile
from household_ledger.services.storage.interface import DocumentStore, NotFoundError

HOUSEHOLDS = "households"
USERS = "users"


class HouseholdDirectory:
    """Households and user profiles, stored at the top level of the store."""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def create_household(self, user_id: str, name: str) -> Household:
        """Create a household and make it the creator's current one."""
        household = Household(name=name.strip() or "My household", created_by=user_id)
        household_id = await self._store.create(HOUSEHOLDS, household.to_document())
        await self.set_household(user_id, household_id)
        return household.model_copy(update={"id": household_id})

    async def list_households(self) -> list[Household]:
        documents = await self._store.query(HOUSEHOLDS, order_by="name")
        return [Household.from_document(doc.id, doc.data) for doc in documents]

    async def get_household(self, household_id: str) -> Optional[Household]:
        document = await self._store.get(HOUSEHOLDS, household_id)
        if document is None:
            return None
        return Household.from_document(document.id, document.data)

    async def get_profile(self, user_id: str) -> UserProfile:
        """The user's profile; an empty one if they never signed in before."""
        document = await self._store.get(USERS, user_id)
        if document is None:
            return UserProfile(id=user_id)
        return UserProfile.from_document(document.id, document.data)

    async def save_profile(
        self,
        user_id: str,
        email: str = "",
        display_name: str = "",
    ) -> UserProfile:
        """Record who the user is, keeping their current household."""
        profile = await self.get_profile(user_id)
        profile = profile.model_copy(
            update={
                "email": email or profile.email,
                "display_name": display_name or profile.display_name,
            }
        )
        await self._store.set(USERS, user_id, profile.to_document(), merge=True)
        return profile

    async def set_household(self, user_id: str, household_id: str) -> UserProfile:
        """Switch the user to an existing household."""
        if await self.get_household(household_id) is None:
            raise NotFoundError(f"Household not found: {household_id}")
        await self._store.set(USERS, user_id, {"householdId": household_id}, merge=True)
        return await self.get_profile(user_id)
