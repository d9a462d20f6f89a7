from pymongo.errors import PyMongoError

from agent_portal.services.conversation_store import ConversationStore, derive_title
from conftest import auth_headers, make_conversation, make_user

AGENT_ID = "agent-1"


def _human(text):
    return {"type": "human", "data": {"content": text}}


def _ai(text):
    return {"type": "ai", "data": {"content": text}}


def test_derive_title():
    assert derive_title({"conversationTitle": "Billing"}) == "Billing"
    assert derive_title({"messages": [_ai("hi"), _human("Where is my order?")]}) == "Where is my order?"
    assert derive_title({"messages": [_human("x" * 60)]}) == "x" * 50 + "..."
    assert derive_title({"messages": []}) == "New Chat"


async def test_pages_are_sorted_by_last_update(db):
    store = ConversationStore(db.conversations)
    for minutes in range(12):
        make_conversation(db, "ana@acme.io", AGENT_ID, title=f"chat {minutes}", updated_minutes_ago=minutes)
    make_conversation(db, "bob@acme.io", AGENT_ID, title="someone else")
    make_conversation(db, "ana@acme.io", "agent-2", title="other agent")

    first = await store.list_conversations("ana@acme.io", AGENT_ID)
    assert [c.title for c in first.items] == [f"chat {n}" for n in range(10)]
    assert first.has_more is True

    second = await store.list_conversations("ana@acme.io", AGENT_ID, page=2)
    assert [c.title for c in second.items] == ["chat 10", "chat 11"]
    assert second.has_more is False


async def test_search_is_literal_and_case_insensitive(db):
    store = ConversationStore(db.conversations)
    make_conversation(db, "ana@acme.io", AGENT_ID, title="Invoice (draft) a.b")
    make_conversation(db, "ana@acme.io", AGENT_ID, title="axb notes")

    found = await store.list_conversations("ana@acme.io", AGENT_ID, search_term="(DRAFT")
    assert [c.title for c in found.items] == ["Invoice (draft) a.b"]

    dotted = await store.list_conversations("ana@acme.io", AGENT_ID, search_term="a.b")
    assert [c.title for c in dotted.items] == ["Invoice (draft) a.b"]


async def test_active_conversation_is_prepended_on_first_page(db):
    store = ConversationStore(db.conversations)
    for minutes in range(10):
        make_conversation(db, "ana@acme.io", AGENT_ID, title=f"chat {minutes}", updated_minutes_ago=minutes)
    old = make_conversation(db, "ana@acme.io", AGENT_ID, title="old one", updated_minutes_ago=500)

    page = await store.list_conversations("ana@acme.io", AGENT_ID, active_conversation_id=str(old["_id"]))
    assert page.items[0].id == str(old["_id"])
    assert len(page.items) == 11

    page_two = await store.list_conversations(
        "ana@acme.io", AGENT_ID, page=2, active_conversation_id=str(old["_id"])
    )
    assert [c.title for c in page_two.items] == ["old one"]


async def test_database_failure_yields_empty_page(db):
    db.conversations.error = PyMongoError("connection lost")
    page = await ConversationStore(db.conversations).list_conversations("ana@acme.io", AGENT_ID)
    assert page.items == []
    assert page.has_more is False


async def test_messages_are_mapped_in_order(db):
    conversation = make_conversation(
        db, "ana@acme.io", AGENT_ID, messages=[_human("Hi"), _ai("Hello!")], session_id="s-9"
    )
    cid = str(conversation["_id"])
    history = await ConversationStore(db.conversations).get_messages(cid, "ana@acme.io", AGENT_ID)

    assert history.session_id == "s-9"
    assert [(m.id, m.sender.value, m.content) for m in history.messages] == [
        (f"{cid}-0", "user", "Hi"),
        (f"{cid}-1", "agent", "Hello!"),
    ]

    other = await ConversationStore(db.conversations).get_messages(cid, "bob@acme.io", AGENT_ID)
    assert other.messages == []


def test_list_endpoint_requires_login(client):
    assert client.get("/api/v1/conversations/", params={"agent_id": AGENT_ID}).status_code == 401


def test_list_endpoint_returns_only_own_conversations(client, db):
    user = make_user(db)
    make_conversation(db, user["email"], AGENT_ID, title="mine")
    make_conversation(db, "bob@acme.io", AGENT_ID, title="not mine")

    response = client.get("/api/v1/conversations/", params={"agent_id": AGENT_ID}, headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert [c["title"] for c in body["items"]] == ["mine"]
    assert body["has_more"] is False


def test_get_other_users_conversation_is_404(client, db):
    user = make_user(db)
    foreign = make_conversation(db, "bob@acme.io", AGENT_ID, title="secret")

    response = client.get(f"/api/v1/conversations/{foreign['_id']}", headers=auth_headers(user))
    assert response.status_code == 404


def test_rename_trims_title(client, db):
    user = make_user(db)
    conversation = make_conversation(db, user["email"], AGENT_ID, title="old")

    response = client.patch(
        f"/api/v1/conversations/{conversation['_id']}", json={"title": "  Shipping  "}, headers=auth_headers(user)
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert db.conversations.docs[0]["conversationTitle"] == "Shipping"


def test_rename_rejects_blank_title(client, db):
    user = make_user(db)
    conversation = make_conversation(db, user["email"], AGENT_ID, title="old")

    response = client.patch(
        f"/api/v1/conversations/{conversation['_id']}", json={"title": "   "}, headers=auth_headers(user)
    )

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert db.conversations.docs[0]["conversationTitle"] == "old"


def test_rename_of_foreign_conversation_changes_nothing(client, db):
    user = make_user(db)
    foreign = make_conversation(db, "bob@acme.io", AGENT_ID, title="bob's")

    response = client.patch(
        f"/api/v1/conversations/{foreign['_id']}", json={"title": "hijacked"}, headers=auth_headers(user)
    )

    assert response.status_code == 404
    assert response.json()["error"] == "Conversation not found or user does not have permission"
    assert db.conversations.docs[0]["conversationTitle"] == "bob's"


def test_delete_own_conversation(client, db):
    user = make_user(db)
    conversation = make_conversation(db, user["email"], AGENT_ID, title="bye")

    response = client.delete(f"/api/v1/conversations/{conversation['_id']}", headers=auth_headers(user))

    assert response.status_code == 200
    assert db.conversations.docs == []


def test_delete_foreign_or_invalid_conversation(client, db):
    user = make_user(db)
    foreign = make_conversation(db, "bob@acme.io", AGENT_ID, title="keep")

    assert client.delete(f"/api/v1/conversations/{foreign['_id']}", headers=auth_headers(user)).status_code == 404
    assert client.delete("/api/v1/conversations/not-an-id", headers=auth_headers(user)).status_code == 404
    assert len(db.conversations.docs) == 1


def test_delete_reports_database_errors(client, db):
    user = make_user(db)
    conversation = make_conversation(db, user["email"], AGENT_ID, title="x")
    db.conversations.error = PyMongoError("write failed")

    response = client.delete(f"/api/v1/conversations/{conversation['_id']}", headers=auth_headers(user))

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Database error"}
