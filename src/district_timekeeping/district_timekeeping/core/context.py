from __future__ import annotations

from dataclasses import dataclass

from .enums import Role


@dataclass(frozen=True)
class ActorContext:
    """Who is calling, in which role, for which district.

    Built once by the request layer and passed explicitly into every service call.
    """

    actor_id: int
    role: Role
    district_id: int

    def has_role(self, *roles: Role) -> bool:
        return self.role in roles
