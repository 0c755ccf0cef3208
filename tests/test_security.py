from datetime import timedelta

from conftest import auth_headers, seed_one

from campus_cms.core.security import can_modify, create_access_token, decode_access_token
from campus_cms.models.database import User


def test_token_round_trip():
    assert decode_access_token(create_access_token(17)) == 17


def test_expired_and_garbage_tokens_decode_to_none():
    assert decode_access_token(create_access_token(17, expires_delta=timedelta(seconds=-5))) is None
    assert decode_access_token("garbage") is None


def test_can_modify():
    admin = User(id=1, role="admin")
    author = User(id=2, role="author")
    assert can_modify(admin, 2)
    assert can_modify(author, 2)
    assert not can_modify(author, 1)
    assert not can_modify(None, 2)


async def test_inactive_user_is_rejected(client, manager):
    disabled = await seed_one(manager, User, username="gone", email="gone@college.edu", is_active=False)

    response = await client.get("/api/contacts/", headers=auth_headers(disabled))

    assert response.status_code == 401
