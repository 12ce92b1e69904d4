from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from app.exceptions import EmailTaken
from app.repos.store import Store
from app.services import users_service


def test_upsert_creates_user_with_normalized_email(store: Store) -> None:
    user_id = uuid4()
    user, created = asyncio.run(
        users_service.upsert_user(store, user_id=user_id, email=" LOUD@Example.COM ")
    )
    assert created
    assert user.id == user_id
    assert user.email == "loud@example.com"
    assert asyncio.run(store.users.get_by_email("loud@example.com")) == user


def test_upsert_existing_id_is_a_noop(store: Store) -> None:
    user_id = uuid4()
    first, _ = asyncio.run(
        users_service.upsert_user(store, user_id=user_id, email="a@example.com", name="A")
    )
    again, created = asyncio.run(
        users_service.upsert_user(store, user_id=user_id, email="A@example.com", name="B")
    )
    assert not created
    assert again == first


def test_upsert_rejects_email_change(store: Store) -> None:
    user_id = uuid4()
    asyncio.run(users_service.upsert_user(store, user_id=user_id, email="a@example.com"))
    with pytest.raises(EmailTaken):
        asyncio.run(
            users_service.upsert_user(store, user_id=user_id, email="b@example.com")
        )


def test_upsert_rejects_email_held_by_other_id(store: Store) -> None:
    asyncio.run(users_service.upsert_user(store, user_id=uuid4(), email="a@example.com"))
    with pytest.raises(EmailTaken):
        asyncio.run(
            users_service.upsert_user(store, user_id=uuid4(), email="A@example.com")
        )


def test_upsert_rejects_blank_email(store: Store) -> None:
    with pytest.raises(ValueError):
        asyncio.run(users_service.upsert_user(store, user_id=uuid4(), email="   "))
