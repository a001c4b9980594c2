# accounts/authz.py
"""
Actor resolution for views and websocket consumers.

Provides:
- ActorContext: Immutable identity of whoever performs an action
- resolve_actor: Extract actor context from an authenticated request
- resolve_optional_actor: Same, but anonymous requests yield None

Identity comes from the SimpleJWT-authenticated user; commands and
reports receive the ActorContext instead of reaching into the request.
"""

from dataclasses import dataclass
from typing import Optional

from rest_framework.exceptions import NotAuthenticated, PermissionDenied

from accounts.models import Company, User


@dataclass(frozen=True)
class ActorContext:
    """
    Immutable context for the current actor.

    Attributes:
        user: The authenticated user
        company: The company the user works for (staff only)
    """
    user: User
    company: Optional[Company] = None

    @property
    def role(self) -> str:
        return self.user.role

    @property
    def is_student(self) -> bool:
        return self.user.role == User.Role.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.user.role == User.Role.ADMIN or self.user.is_superuser

    @property
    def is_company_staff(self) -> bool:
        return self.user.role == User.Role.COMPANY and self.company is not None

    def can_manage(self, company: Company) -> bool:
        """Staff of ``company`` and platform admins may see its dashboard and act on its jobs."""
        if self.is_admin:
            return True
        return self.is_company_staff and self.company.pk == company.pk

    def require_company(self) -> Company:
        """Return the actor's company, or raise if the actor is not company staff."""
        if not self.is_company_staff:
            raise PermissionDenied("Company account required.")
        return self.company


def actor_for_user(user) -> ActorContext:
    company = user.company if user.company_id and user.company.is_active else None
    return ActorContext(user=user, company=company)


def resolve_actor(request) -> ActorContext:
    """
    Extract ActorContext from the current request.

    Raises:
        NotAuthenticated: If user is not authenticated
        PermissionDenied: If the account is disabled
    """
    user = getattr(request, "user", None)

    if not user or not user.is_authenticated:
        raise NotAuthenticated("Authentication required.")

    if not user.is_active:
        raise PermissionDenied("This account is disabled.")

    return actor_for_user(user)


def resolve_optional_actor(request) -> Optional[ActorContext]:
    """Like resolve_actor, but anonymous requests yield None (public endpoints)."""
    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        return None
    return resolve_actor(request)
