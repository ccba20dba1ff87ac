"""
Tests for the role hierarchy and token handling
"""

import pytest
from datetime import timedelta
from uuid import uuid4

from salon_waitlist.core.exceptions import AuthenticationError, AuthorizationError
from salon_waitlist.core.roles import (
    ROLE_CLOSURE,
    UserRole,
    allowed_roles,
    role_dominates,
    transitive_closure,
)
from salon_waitlist.core.security import (
    actor_from_payload,
    create_access_token,
    decode_token,
    require_role,
)


class TestRoleHierarchy:

    def test_closure_is_transitive(self):
        assert UserRole.CUSTOMER in ROLE_CLOSURE[UserRole.SUPER_ADMIN]
        assert UserRole.SALON_EMPLOYEE in ROLE_CLOSURE[UserRole.DISTRICT_LEADER]
        assert ROLE_CLOSURE[UserRole.CUSTOMER] == frozenset()

    def test_role_dominates_itself(self):
        for role in UserRole:
            assert role_dominates(role, role)

    def test_lower_role_does_not_dominate_higher(self):
        assert not role_dominates(UserRole.SALON_EMPLOYEE, UserRole.SALON_OWNER)
        assert not role_dominates(UserRole.CUSTOMER, UserRole.SALON_EMPLOYEE)

    def test_allowed_roles_for_employee_minimum(self):
        assert allowed_roles(UserRole.SALON_EMPLOYEE) == frozenset({
            UserRole.SUPER_ADMIN,
            UserRole.ASSOCIATION_ADMIN,
            UserRole.DISTRICT_LEADER,
            UserRole.SALON_OWNER,
            UserRole.SALON_EMPLOYEE,
        })

    def test_branching_hierarchy(self):
        edges = [
            (UserRole.SUPER_ADMIN, UserRole.DISTRICT_LEADER),
            (UserRole.SUPER_ADMIN, UserRole.SALON_OWNER),
            (UserRole.SALON_OWNER, UserRole.CUSTOMER),
        ]
        closure = transitive_closure(UserRole, edges)

        assert closure[UserRole.SUPER_ADMIN] == frozenset({
            UserRole.DISTRICT_LEADER, UserRole.SALON_OWNER, UserRole.CUSTOMER
        })
        assert UserRole.CUSTOMER not in closure[UserRole.DISTRICT_LEADER]

    def test_cycle_is_rejected(self):
        edges = [
            (UserRole.SALON_OWNER, UserRole.SALON_EMPLOYEE),
            (UserRole.SALON_EMPLOYEE, UserRole.SALON_OWNER),
        ]
        with pytest.raises(ValueError):
            transitive_closure(UserRole, edges)


class TestTokens:

    def test_round_trip_to_actor(self):
        actor_id, salon_id = uuid4(), uuid4()
        token = create_access_token(
            {"sub": str(actor_id), "role": "salon_owner", "salon_id": str(salon_id)}
        )

        actor = actor_from_payload(decode_token(token))

        assert actor.id == actor_id
        assert actor.role == UserRole.SALON_OWNER
        assert actor.salon_id == salon_id

    def test_expired_token_rejected(self):
        token = create_access_token(
            {"sub": str(uuid4()), "role": "customer"},
            expires_delta=timedelta(minutes=-1),
        )
        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_unknown_role_rejected(self):
        with pytest.raises(AuthenticationError):
            actor_from_payload({"sub": str(uuid4()), "role": "receptionist"})


@pytest.mark.asyncio
class TestRequireRole:

    async def test_higher_role_passes(self):
        checker = require_role(UserRole.SALON_EMPLOYEE)
        actor = actor_from_payload({"sub": str(uuid4()), "role": "district_leader"})

        assert await checker(actor=actor) is actor

    async def test_lower_role_forbidden(self):
        checker = require_role(UserRole.ASSOCIATION_ADMIN)
        actor = actor_from_payload({"sub": str(uuid4()), "role": "salon_owner"})

        with pytest.raises(AuthorizationError) as exc_info:
            await checker(actor=actor)
        assert exc_info.value.status_code == 403
        assert exc_info.value.details["required_role"] == "association_admin"
