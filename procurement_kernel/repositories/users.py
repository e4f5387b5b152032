"""User lookups used by approval routing and notifications."""

from collections.abc import Iterable, Sequence
from uuid import UUID

from procurement_kernel.domain.capabilities import Role
from procurement_kernel.models.user import UserModel
from procurement_kernel.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserModel]):
    model = UserModel
    entity_name = "User"

    def active_with_roles(self, roles: Iterable[Role]) -> Sequence[UserModel]:
        """Active users holding any of ``roles``, in a stable (email) order."""
        return self.list_where(
            UserModel.role.in_([r.value for r in roles]),
            UserModel.is_active.is_(True),
            order_by=UserModel.email,
        )

    def is_active_user(self, user_id: UUID) -> bool:
        user = self.get(user_id)
        return user is not None and user.is_active

    def for_vendor(self, vendor_id: UUID) -> Sequence[UserModel]:
        """Active portal accounts linked to a vendor."""
        return self.list_where(
            UserModel.vendor_id == vendor_id,
            UserModel.is_active.is_(True),
            order_by=UserModel.email,
        )
