"""Authorization: who may read and change whose items."""

import logging

from caremind.db.repository import Repository

logger = logging.getLogger(__name__)


class AccessDenied(PermissionError):
    """The caller may not act on the requested profile."""


async def can_access(repo: Repository, caller_id: str, owner_id: str) -> bool:
    """A caller may act on their own items and on those of linked dependents."""
    if caller_id == owner_id:
        return True
    return await repo.has_family_link(caller_id, owner_id)


async def require_access(repo: Repository, caller_id: str, owner_id: str) -> None:
    """Raise AccessDenied unless can_access allows the caller."""
    if not await can_access(repo, caller_id, owner_id):
        logger.warning(f"Access denied: {caller_id} -> {owner_id}")
        raise AccessDenied("You don't have access to this profile")
