"""
End-to-end tests for the advisor chat and conversation endpoints
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch
import uuid

import anthropic
import httpx
import pytest
from httpx import AsyncClient
from jose import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.db import Conversation, Message, MessageRole, User
from app.errors import UpstreamError
from app.main import app
from app.services.anthropic_service import SCRIPTED_GREETING_QUESTION, AnthropicService, get_anthropic_service
from app.services import conversation_service
from app.services.auth_service import create_access_token

from tests.factories import bearer, llm_reply


def identity_provider_token(sub: str, email: str = None, audience: str = "authenticated", secret: str = None) -> str:
    claims = {
        "sub": sub,
        "aud": audience,
        "exp": datetime.utcnow() + timedelta(hours=1),
        "role": "authenticated",
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, secret or settings.identity_provider_jwt_secret, algorithm="HS256")


# ============ Auth Tests ============

@pytest.mark.asyncio
async def test_chat_requires_auth(client: AsyncClient, fake_llm):
    response = await client.post("/api/chat", json={"message": "hi"})
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert response.json()["success"] is False
    fake_llm.chat.assert_not_called()


@pytest.mark.asyncio
async def test_garbage_token_is_unauthorized(client: AsyncClient, fake_llm):
    response = await client.post("/api/chat", json={"message": "hi"}, headers=bearer("not-a-jwt"))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_identity_provider_token_creates_account(client: AsyncClient, db_session, seeded_tiers, fake_llm):
    sub = str(uuid.uuid4())
    token = identity_provider_token(sub, "idp-user@example.com")

    response = await client.post("/api/chat", json={"message": "hi"}, headers=bearer(token))
    assert response.status_code == 200

    user = await db_session.get(User, sub)
    assert user.email == "idp-user@example.com"


@pytest.mark.asyncio
async def test_identity_provider_token_wrong_audience(client: AsyncClient, fake_llm):
    token = identity_provider_token(str(uuid.uuid4()), "x@example.com", audience="someone-else")
    response = await client.post("/api/chat", json={"message": "hi"}, headers=bearer(token))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_identity_provider_token_wrong_secret(client: AsyncClient, fake_llm):
    token = identity_provider_token(str(uuid.uuid4()), "x@example.com", secret="not-the-configured-secret")
    response = await client.post("/api/chat", json={"message": "hi"}, headers=bearer(token))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_new_account_without_email_is_unauthorized(client: AsyncClient, fake_llm):
    token = identity_provider_token(str(uuid.uuid4()))
    response = await client.post("/api/chat", json={"message": "hi"}, headers=bearer(token))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_session_exchange(client: AsyncClient, user_id: str):
    token = identity_provider_token(user_id, "swap@example.com")
    response = await client.post("/api/auth/session", headers=bearer(token))
    assert response.status_code == 200
    session_token = response.json()["access_token"]

    profile = await client.get("/api/user/profile", headers=bearer(session_token))
    assert profile.status_code == 200
    assert profile.json()["data"]["id"] == user_id
    assert profile.json()["data"]["email"] == "swap@example.com"


# ============ Chat Tests ============

@pytest.mark.asyncio
async def test_first_turn_records_greeting_before_user(
    client: AsyncClient, db_session, seeded_tiers, fake_llm, auth_headers
):
    response = await client.post("/api/chat", json={"message": "I need Ethereum"}, headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]

    assert data["assistant_message"] == "Great, noted."
    assert data["extracted_answers"] == {
        "blockchains": ["ethereum"],
        "request_volume_per_month": 500000,
        "archive_needs": "none",
        "geo_preference": "US",
        "budget_monthly_cents": 10000,
    }
    assert data["recommendation"]["tier"]["tier_name"] == "starter"
    assert data["recommendation"]["summary"] == "Recommended: Starter - $49/mo"
    assert data["recommendation"]["payment_cta"]["checkout_path"] == "/api/payments/link?tier=starter"

    # Greeting is the first turn the model sees
    turns = fake_llm.chat.call_args.args[0]
    assert turns == [
        {"role": "assistant", "content": SCRIPTED_GREETING_QUESTION},
        {"role": "user", "content": "I need Ethereum"},
    ]

    detail = await client.get(f"/api/conversations/{data['conversation_id']}", headers=auth_headers)
    assert detail.status_code == 200
    conversation = detail.json()["data"]["conversation"]
    messages = detail.json()["data"]["messages"]
    assert conversation["title"] == "New Conversation"
    assert [m["role"] for m in messages] == ["assistant", "user", "assistant"]
    assert messages[0]["content"] == SCRIPTED_GREETING_QUESTION
    assert messages[0]["metadata"] == {"type": "greeting"}
    assert messages[1]["content"] == "I need Ethereum"

    snapshot = messages[2]["metadata"]["pricing_snapshot"]
    assert snapshot["recommendation"]["tier_name"] == "starter"
    assert messages[2]["metadata"]["extracted_answers"]["blockchains"] == ["ethereum"]


@pytest.mark.asyncio
async def test_second_turn_does_not_repeat_greeting(
    client: AsyncClient, db_session, seeded_tiers, fake_llm, auth_headers
):
    first = await client.post("/api/chat", json={"message": "hello"}, headers=auth_headers)
    conversation_id = first.json()["data"]["conversation_id"]

    fake_llm.chat.return_value = llm_reply(
        'Archive it is.<answers>{"archive_needs": "full"}</answers>'
    )
    second = await client.post(
        "/api/chat",
        json={"conversation_id": conversation_id, "message": "I need full archive"},
        headers=auth_headers,
    )
    assert second.status_code == 200
    assert second.json()["data"]["recommendation"]["tier"]["tier_name"] == "enterprise"

    turns = fake_llm.chat.call_args.args[0]
    assert [t["role"] for t in turns] == ["assistant", "user", "assistant", "user"]
    assert turns[0]["content"] == SCRIPTED_GREETING_QUESTION
    assert turns[-1]["content"] == "I need full archive"

    greetings = (await db_session.execute(
        select(Message).where(Message.content == SCRIPTED_GREETING_QUESTION)
    )).scalars().all()
    assert len(greetings) == 1


@pytest.mark.asyncio
async def test_history_is_capped(client: AsyncClient, seeded_tiers, fake_llm, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "max_history_messages", 4)
    first = await client.post("/api/chat", json={"message": "one"}, headers=auth_headers)
    conversation_id = first.json()["data"]["conversation_id"]
    for text in ("two", "three"):
        await client.post(
            "/api/chat", json={"conversation_id": conversation_id, "message": text}, headers=auth_headers
        )

    turns = fake_llm.chat.call_args.args[0]
    # Four most recent stored turns plus the new user message
    assert len(turns) == 5
    assert turns[-1] == {"role": "user", "content": "three"}
    assert SCRIPTED_GREETING_QUESTION not in [t["content"] for t in turns]


@pytest.mark.asyncio
async def test_malformed_llm_output_still_recommends(client: AsyncClient, seeded_tiers, fake_llm, auth_headers):
    fake_llm.chat.return_value = llm_reply("<answers>{broken</answers>")
    response = await client.post("/api/chat", json={"message": "hmm"}, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["assistant_message"]
    assert "<answers>" not in data["assistant_message"]
    assert data["extracted_answers"]["blockchains"] == []
    assert data["recommendation"]["tier"]["tier_name"] == "starter"


@pytest.mark.asyncio
async def test_integer_answers_stay_integers_in_json(client: AsyncClient, seeded_tiers, fake_llm, auth_headers):
    fake_llm.chat.return_value = llm_reply(
        'Ok.<answers>{"request_volume_per_month": 500000, "budget_monthly_cents": 1500.5}</answers>'
    )
    response = await client.post("/api/chat", json={"message": "hi"}, headers=auth_headers)
    assert response.status_code == 200

    # 500000 == 500000.0 in Python, so check the wire text
    compact = response.text.replace(" ", "")
    assert '"request_volume_per_month":500000,' in compact
    assert "500000.0" not in compact
    assert '"budget_monthly_cents":1500.5' in compact


@pytest.mark.asyncio
async def test_huge_integer_volume_still_recommends(client: AsyncClient, seeded_tiers, fake_llm, auth_headers):
    huge = "1" + "0" * 400
    fake_llm.chat.return_value = llm_reply(
        f'Noted.<answers>{{"request_volume_per_month": {huge}}}</answers>'
    )
    response = await client.post("/api/chat", json={"message": "a lot"}, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["extracted_answers"]["request_volume_per_month"] == 10 ** 400
    assert data["recommendation"]["tier"]["tier_name"] == "enterprise"


@pytest.mark.asyncio
async def test_unknown_conversation_is_404(client: AsyncClient, seeded_tiers, fake_llm, auth_headers):
    response = await client.post(
        "/api/chat",
        json={"conversation_id": str(uuid.uuid4()), "message": "hello"},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Conversation not found"}
    fake_llm.chat.assert_not_called()


@pytest.mark.asyncio
async def test_foreign_conversation_is_404(client: AsyncClient, seeded_tiers, fake_llm, auth_headers):
    first = await client.post("/api/chat", json={"message": "mine"}, headers=auth_headers)
    conversation_id = first.json()["data"]["conversation_id"]

    stranger = bearer(create_access_token(str(uuid.uuid4()), "stranger@example.com"))
    response = await client.post(
        "/api/chat", json={"conversation_id": conversation_id, "message": "theirs"}, headers=stranger
    )
    assert response.status_code == 404

    detail = await client.get(f"/api/conversations/{conversation_id}", headers=stranger)
    assert detail.status_code == 404


@pytest.mark.asyncio
async def test_invalid_body_is_400(client: AsyncClient, fake_llm, auth_headers):
    response = await client.post("/api/chat", json={"message": ""}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["success"] is False

    response = await client.post(
        "/api/chat", json={"message": "hi", "conversation_id": "not-a-uuid"}, headers=auth_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_no_tiers_is_500(client: AsyncClient, fake_llm, auth_headers):
    response = await client.post("/api/chat", json={"message": "hi"}, headers=auth_headers)
    assert response.status_code == 500
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_llm_failure_is_500(client: AsyncClient, seeded_tiers, auth_headers):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    service = AnthropicService(api_key="sk-ant-test")
    service.client.messages.create = AsyncMock(
        side_effect=anthropic.APIConnectionError(request=request)
    )
    app.dependency_overrides[get_anthropic_service] = lambda: service
    try:
        response = await client.post("/api/chat", json={"message": "hi"}, headers=auth_headers)
    finally:
        app.dependency_overrides.pop(get_anthropic_service, None)

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Failed to get a reply from the language model"}


# ============ Conversation Tests ============

@pytest.mark.asyncio
async def test_conversation_crud(client: AsyncClient, auth_headers):
    created = await client.post("/api/conversations", json={"title": "Pricing"}, headers=auth_headers)
    assert created.status_code == 201
    conversation = created.json()["data"]
    assert conversation["title"] == "Pricing"
    assert conversation["payment_status"] == "unpaid"

    default = await client.post("/api/conversations", json={}, headers=auth_headers)
    assert default.json()["data"]["title"] == "New Conversation"

    listing = await client.get("/api/conversations", headers=auth_headers)
    assert listing.status_code == 200
    assert listing.json()["pagination"]["total"] == 2

    updated = await client.put(
        f"/api/conversations/{conversation['id']}",
        json={"title": "Renamed", "is_archived": True},
        headers=auth_headers,
    )
    assert updated.json()["data"]["title"] == "Renamed"
    assert updated.json()["data"]["is_archived"] is True

    active = await client.get("/api/conversations", headers=auth_headers)
    assert active.json()["pagination"]["total"] == 1
    archived = await client.get("/api/conversations?archived=true", headers=auth_headers)
    assert [c["id"] for c in archived.json()["data"]] == [conversation["id"]]

    deleted = await client.delete(f"/api/conversations/{conversation['id']}", headers=auth_headers)
    assert deleted.status_code == 200
    gone = await client.get(f"/api/conversations/{conversation['id']}", headers=auth_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_pricing_tiers_are_public(client: AsyncClient, seeded_tiers):
    response = await client.get("/api/pricing/tiers")
    assert response.status_code == 200
    names = [t["tier_name"] for t in response.json()["data"]]
    assert names == ["starter", "growth", "enterprise"]


@pytest.mark.asyncio
async def test_subscription_info(client: AsyncClient, seeded_tiers, auth_headers):
    response = await client.get("/api/user/subscription", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["subscription"] == {"subscription_status": "free", "subscription_tier": None}
    assert len(data["available_tiers"]) == 3


@pytest.mark.asyncio
async def test_update_profile(client: AsyncClient, auth_headers):
    response = await client.put("/api/user/profile", json={"full_name": "Ada"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["full_name"] == "Ada"


# ============ Message Ordering Tests ============

async def make_conversation(db, user_id="writer-1"):
    db.add(User(id=user_id, email=f"{user_id}@example.com"))
    conversation = Conversation(user_id=user_id, model="claude-test")
    db.add(conversation)
    await db.commit()
    return conversation


@pytest.mark.asyncio
async def test_duplicate_seq_is_rejected(db_session):
    conversation = await make_conversation(db_session)
    for content in ("first", "second"):
        db_session.add(Message(
            conversation_id=conversation.id, user_id="writer-1", seq=1, role="user", content=content,
        ))
    with pytest.raises(IntegrityError):
        await db_session.commit()


@pytest.mark.asyncio
async def test_taken_seq_is_retried(db_session):
    conversation = await make_conversation(db_session)
    first = await conversation_service.insert_message(
        db_session, conversation, "writer-1", MessageRole.USER, "first"
    )
    assert first.seq == 1

    # A concurrent writer read the same max(seq) before the first insert landed
    with patch.object(conversation_service, "_next_seq", AsyncMock(side_effect=[1, 2])):
        second = await conversation_service.insert_message(
            db_session, conversation, "writer-1", MessageRole.ASSISTANT, "second"
        )

    assert second.seq == 2
    messages = await conversation_service.list_messages(db_session, conversation.id)
    assert [(m.seq, m.content) for m in messages] == [(1, "first"), (2, "second")]
    assert conversation.model == "claude-test"


@pytest.mark.asyncio
async def test_seq_retries_are_bounded(db_session):
    conversation = await make_conversation(db_session)
    await conversation_service.insert_message(db_session, conversation, "writer-1", MessageRole.USER, "first")

    with patch.object(conversation_service, "_next_seq", AsyncMock(return_value=1)):
        with pytest.raises(UpstreamError):
            await conversation_service.insert_message(
                db_session, conversation, "writer-1", MessageRole.USER, "again"
            )
