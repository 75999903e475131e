"""FastAPI dependency injection for Squadron League.

Services come from the composition root. The caller is built from headers
set by the upstream gateway, which has already verified credentials.
"""

import logging

from fastapi import Header

from ....composition.container import (
    get_event_lifecycle,
    get_fair_racing_ledger,
    get_points_ledger,
    get_repository,
    get_roster_manager,
    get_sanction_registry,
)
from ....core.domain import Caller, Capability
from ....core.domain.exceptions import AuthorizationError

logger = logging.getLogger(__name__)

__all__ = [
    "get_caller",
    "get_event_lifecycle",
    "get_fair_racing_ledger",
    "get_points_ledger",
    "get_repository",
    "get_roster_manager",
    "get_sanction_registry",
]


def get_caller(
    x_user_id: str | None = Header(None),
    x_user_roles: str | None = Header(None),
    x_squadron_id: str | None = Header(None),
) -> Caller:
    """Build the calling user from gateway headers.

    ``X-User-Roles`` is a comma-separated list. Legacy role names are
    accepted; a missing list means a plain pilot.

    Raises:
        AuthorizationError: If no user id was supplied.
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthorizationError("Missing caller identity")
    roles = [role.strip().lower() for role in (x_user_roles or "").split(",") if role.strip()]
    return Caller(
        user_id=x_user_id.strip(),
        capabilities=Capability.from_legacy(roles=roles),
        squadron_id=(x_squadron_id or "").strip() or None,
    )
