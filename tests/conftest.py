"""
Shared fixtures for the SkillSwap tests.

Every test gets a fresh MemoryStore. API tests reach it through
app.dependency_overrides, service tests construct services on it directly.
"""
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")

from fastapi.testclient import TestClient

from skillswap.core.memory import MemoryStore
from skillswap.core.security import create_access_token
from skillswap.core.store import get_store
from skillswap.main import app
from skillswap.services.feedback_service import FeedbackService
from skillswap.services.notification_service import NotificationService
from skillswap.services.swap_service import SwapService
from skillswap.services.user_service import UserService


class FakeClock:
    """Controllable clock for the feedback edit window."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def user_row(
    name: str,
    skills_offered: Optional[List[str]] = None,
    **overrides: Any,
) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    row = {
        "id": str(uuid.uuid4()),
        "email": f"{name.lower()}@example.com",
        "name": name,
        "location": None,
        "bio": None,
        "profile_photo_url": f"https://img.example.com/{name.lower()}.png",
        "skills_offered": skills_offered or [],
        "skills_wanted": [],
        "availability": [],
        "is_public": True,
        "role": "user",
        "banned": False,
        "ban_reason": None,
        "rating": 0.0,
        "total_ratings": 0,
        "created_at": now,
        "updated_at": now,
    }
    row.update(overrides)
    return row


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def users(store):
    return UserService(store)


@pytest.fixture
def notifications(store):
    return NotificationService(store)


@pytest.fixture
def swaps(store, users, notifications):
    return SwapService(store, users, notifications)


@pytest.fixture
def feedback(store, users, notifications, clock):
    return FeedbackService(store, users, notifications, clock=clock)


@pytest.fixture
def make_user(store):
    """Insert a user profile synchronously; usable from sync and async tests."""

    def _make_user(name: str, skills_offered: Optional[List[str]] = None, **overrides: Any) -> Dict[str, Any]:
        row = user_row(name, skills_offered, **overrides)
        store.tables.setdefault("users", []).append(
            {key: value.isoformat() if isinstance(value, datetime) else value for key, value in row.items()}
        )
        return dict(store.tables["users"][-1])

    return _make_user


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    """Build bearer headers for a user (or any dict with an id)."""

    def _auth(user: Dict[str, Any]) -> Dict[str, str]:
        token = create_access_token({"sub": user["id"], "email": user.get("email")})
        return {"Authorization": f"Bearer {token}"}

    return _auth
