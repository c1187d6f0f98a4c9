from __future__ import annotations

import logging
from dataclasses import dataclass

from bookreview.errors import ForbiddenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OwnershipPolicy:
    """Decides whether an identity may mutate a record.

    There are no roles: a record may be changed only by the user recorded as
    its creator. Reading is never restricted by this policy.
    """

    user_id: int

    def owns(self, *, owner_id: int | None) -> bool:
        return owner_id is not None and owner_id == self.user_id

    def ensure(self, *, owner_id: int | None, action: str, resource: str) -> None:
        """Raise ForbiddenError unless the record belongs to ``user_id``."""
        if not self.owns(owner_id=owner_id):
            logger.info(
                "User %s denied %s on %s owned by %s",
                self.user_id,
                action,
                resource,
                owner_id,
            )
            raise ForbiddenError(f"Not authorized to {action} this {resource}")
