"""Ordered role enumeration.

Roles form a total order ``citizen < council_member < city_admin <
super_admin``. Every capability check goes through ``Role.satisfies``;
nothing else compares role strings.
"""

import enum


class Role(enum.StrEnum):
    """Platform role, persisted as its string value."""

    CITIZEN = "citizen"
    COUNCIL_MEMBER = "council_member"
    CITY_ADMIN = "city_admin"
    SUPER_ADMIN = "super_admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def satisfies(self, floor: "Role") -> bool:
        """Return True if this role is at or above ``floor``."""
        return self.rank >= floor.rank

    @classmethod
    def parse(cls, value: str | None) -> "Role | None":
        """Parse a persisted role string, returning None for unknown values."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


_ROLE_RANK: dict[Role, int] = {
    Role.CITIZEN: 0,
    Role.COUNCIL_MEMBER: 1,
    Role.CITY_ADMIN: 2,
    Role.SUPER_ADMIN: 3,
}

ROLE_VALUES: tuple[str, ...] = tuple(role.value for role in Role)
