"""Row policies for the ``products`` table.

Policies are data: each one names the operation it grants, the role it
applies to, and up to two predicates. ``using`` sees the row as currently
stored, ``with_check`` sees the row as it would be written. A predicate left
as ``None`` always passes. Several policies for the same operation are
permissive: any one of them passing grants the operation. An operation with
no policy at all is denied.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from app.errors import AuthenticationFailure, AuthorizationFailure

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]
Predicate = Callable[["Caller", Row], bool]


class Operation(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class Caller:
    user_id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class Policy:
    name: str
    operation: Operation
    role: str = "authenticated"
    using: Optional[Predicate] = None
    with_check: Optional[Predicate] = None

    def permits(self, caller: Caller, existing: Optional[Row], new: Optional[Row]) -> bool:
        if self.using is not None and existing is not None and not self.using(caller, existing):
            return False
        if self.with_check is not None and new is not None and not self.with_check(caller, new):
            return False
        return True


def owned_by_caller(caller: Caller, row: Row) -> bool:
    # NULL never equals anything, so legacy rows fail this for every caller
    owner_id = row.get("owner_id")
    return owner_id is not None and owner_id == caller.user_id


LISTING_POLICIES = (
    Policy(
        name="Authenticated can view products",
        operation=Operation.SELECT,
    ),
    Policy(
        name="Authenticated can create products",
        operation=Operation.INSERT,
        with_check=owned_by_caller,
    ),
    Policy(
        name="Authenticated can update products",
        operation=Operation.UPDATE,
        using=owned_by_caller,
        with_check=owned_by_caller,
    ),
)


def policies_for(operation: Operation, policies=LISTING_POLICIES):
    return [p for p in policies if p.operation == operation]


def authorize(
    operation: Operation,
    caller: Optional[Caller],
    existing: Optional[Row] = None,
    new: Optional[Row] = None,
    policies=LISTING_POLICIES,
) -> Policy:
    """Return the policy granting ``operation`` or raise.

    Unauthenticated callers hold no role and are refused outright.
    """
    if caller is None:
        logger.warning("Refused %s on products: caller is not authenticated", operation.value)
        raise AuthenticationFailure("Authentication required")

    candidates = [p for p in policies_for(operation, policies) if p.role == "authenticated"]
    for policy in candidates:
        if policy.permits(caller, existing, new):
            return policy

    logger.warning(
        "Refused %s on products for user %s (%d candidate policies)",
        operation.value, caller.user_id, len(candidates),
    )
    if not candidates:
        raise AuthorizationFailure(f"{operation.value} is not permitted on products")
    raise AuthorizationFailure("new row violates row-level security policy for table \"products\"")
