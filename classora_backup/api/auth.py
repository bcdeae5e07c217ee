"""Administrator capability consumed from the platform's auth layer."""

from typing import Iterable


class AdminAuthorizer:
    """Answers whether a user id belongs to an administrator."""

    async def is_admin(self, user_id: str) -> bool:
        raise NotImplementedError


class StaticAdminAuthorizer(AdminAuthorizer):
    """Authorizer backed by a fixed set of administrator ids."""

    def __init__(self, admin_ids: Iterable[str]):
        self.admin_ids = frozenset(admin_ids)

    async def is_admin(self, user_id: str) -> bool:
        return user_id in self.admin_ids
