"""
Role hierarchy for the salon association

Roles form a directed acyclic graph: an edge A -> B means A may do
everything B may do. The transitive closure is computed once at import
so permission checks are a set lookup.
"""

import enum
from typing import Dict, FrozenSet, Iterable, Mapping, Set, Tuple


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ASSOCIATION_ADMIN = "association_admin"
    DISTRICT_LEADER = "district_leader"
    SALON_OWNER = "salon_owner"
    SALON_EMPLOYEE = "salon_employee"
    CUSTOMER = "customer"


ROLE_EDGES: Tuple[Tuple[UserRole, UserRole], ...] = (
    (UserRole.SUPER_ADMIN, UserRole.ASSOCIATION_ADMIN),
    (UserRole.ASSOCIATION_ADMIN, UserRole.DISTRICT_LEADER),
    (UserRole.DISTRICT_LEADER, UserRole.SALON_OWNER),
    (UserRole.SALON_OWNER, UserRole.SALON_EMPLOYEE),
    (UserRole.SALON_EMPLOYEE, UserRole.CUSTOMER),
)


def transitive_closure(
    roles: Iterable[UserRole],
    edges: Iterable[Tuple[UserRole, UserRole]],
) -> Dict[UserRole, FrozenSet[UserRole]]:
    """
    Map each role to the set of roles it strictly dominates.

    Raises ValueError if the edges contain a cycle.
    """
    children: Dict[UserRole, Set[UserRole]] = {role: set() for role in roles}
    for parent, child in edges:
        children.setdefault(parent, set()).add(child)
        children.setdefault(child, set())

    closure: Dict[UserRole, FrozenSet[UserRole]] = {}
    visiting: Set[UserRole] = set()

    def visit(role: UserRole) -> FrozenSet[UserRole]:
        if role in closure:
            return closure[role]
        if role in visiting:
            raise ValueError(f"Role hierarchy contains a cycle through {role.value}")
        visiting.add(role)
        reachable: Set[UserRole] = set()
        for child in children[role]:
            reachable.add(child)
            reachable.update(visit(child))
        visiting.discard(role)
        closure[role] = frozenset(reachable)
        return closure[role]

    for role in list(children):
        visit(role)
    return closure


ROLE_CLOSURE: Mapping[UserRole, FrozenSet[UserRole]] = transitive_closure(UserRole, ROLE_EDGES)


def role_dominates(role: UserRole, other: UserRole) -> bool:
    """True if `role` is `other` or sits above it in the hierarchy"""
    return role == other or other in ROLE_CLOSURE[role]


def allowed_roles(minimum: UserRole) -> FrozenSet[UserRole]:
    """All roles permitted where `minimum` is required"""
    return frozenset(role for role in UserRole if role_dominates(role, minimum))
