"""
The authenticated caller, passed explicitly into every service call.
"""

from dataclasses import dataclass

from django.core.exceptions import ValidationError as DjangoValidationError

from .exceptions import NotFoundError


@dataclass(frozen=True)
class Principal:
    id: int
    plan: str
    display: str = ''

    @classmethod
    def from_user(cls, user) -> 'Principal':
        return cls(id=user.pk, plan=user.plan, display=user.actor_name)


def get_owned(queryset, principal: Principal, pk, resource: str, owner_field: str = 'user_id'):
    """
    Fetch one row owned by the principal.

    Missing rows, rows owned by someone else and malformed ids all raise
    NotFoundError so existence never leaks across creators.
    """
    try:
        return queryset.get(pk=pk, **{owner_field: principal.id})
    except (queryset.model.DoesNotExist, DjangoValidationError, ValueError, TypeError):
        raise NotFoundError(resource)
