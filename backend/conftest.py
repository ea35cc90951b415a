"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``create_user`` factory fixture for creating staff members.
  - ``auth_header`` fixture for authenticated requests (JWT).
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a staff member with sensible defaults.

    Usage::

        def test_something(create_user):
            user = create_user(username="alice")
            # or with intake-desk fields:
            user = create_user(
                username="bob",
                role=RoleCategory.STATE_OWNED_DESK,
                status=StaffStatus.ON_LEAVE,
                real_name="Bob Li",
            )
    """
    from accounts.models import RoleCategory, StaffStatus, User

    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        role: str = RoleCategory.GENERAL_RECEIVER,
        status: str = StaffStatus.ACTIVE,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"testuser{_counter}"
        kwargs.setdefault("email", f"{username}@test.local")

        return User.objects.create_user(
            username=username,
            password=password,
            role=role,
            status=status,
            is_active=is_active,
            **kwargs,
        )

    return _factory


@pytest.fixture()
def auth_header(create_user):
    """
    Returns a helper function that creates a user and returns
    ``(user, {"Authorization": "Bearer <token>"})``.

    Usage::

        def test_protected(auth_header, api_client):
            user, header = auth_header(role=RoleCategory.DEVELOPER)
            api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])
            resp = api_client.post("/api/cases/", {...}, format="json")
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(**user_kwargs):
        user = create_user(**user_kwargs)
        token = AccessToken.for_user(user)
        return user, {"Authorization": f"Bearer {token}"}

    return _make
