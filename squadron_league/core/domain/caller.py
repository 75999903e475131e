"""Caller identity and capabilities.

Credentials are verified upstream; the core only sees who is calling and
which capabilities they hold.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Flag, auto

from .exceptions import AuthorizationError


class Capability(Flag):
    NONE = 0
    PILOT = auto()
    CAPTAIN = auto()
    MODERATOR = auto()
    ORGANIZER = auto()

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "Capability":
        """Build a flag set from role names, ignoring unknown names."""
        result = cls.NONE
        for name in names:
            member = cls.__members__.get(name.strip().upper())
            if member is not None:
                result |= member
        return result

    @classmethod
    def from_legacy(
        cls, role: str | None = None, roles: Iterable[str] | None = None
    ) -> "Capability":
        """Unify the legacy singular ``role`` field and the ``roles`` array.

        Accounts without either field are plain pilots.
        """
        names = list(roles or [])
        if role:
            names.append(role)
        if not names:
            return cls.PILOT
        # Older accounts stored "user" for ordinary pilots
        names = ["pilot" if name == "user" else name for name in names]
        return cls.from_names(names)


@dataclass(frozen=True)
class Caller:
    """The user invoking an operation."""

    user_id: str
    capabilities: Capability = Capability.PILOT
    squadron_id: str | None = None

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability, action: str) -> None:
        if not self.has(capability):
            raise AuthorizationError(
                f"Only {capability.name.lower()}s may {action}",
                context={"user_id": self.user_id},
            )

    def require_member_of(self, squadron_id: str) -> None:
        if self.squadron_id != squadron_id:
            raise AuthorizationError(
                "Caller does not belong to this squadron",
                context={"user_id": self.user_id, "squadron_id": squadron_id},
            )
