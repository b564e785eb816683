from __future__ import annotations

from dataclasses import dataclass

REVIEWER_ROLE = "admin"


@dataclass(frozen=True, slots=True)
class Principal:
    """The caller behind a validated bearer token.

    ``user_id`` is the external learner id every progress row is keyed by;
    roles only matter for reviewing final projects.
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def can_review(self) -> bool:
        return self.has_role(REVIEWER_ROLE)
