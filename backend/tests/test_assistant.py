# Overview: Pytest coverage for the business assistant.

import threading
import time
from datetime import datetime

import httpx
import pytest

from stockpilot.services import assistant_service, products_service, sales_service
from stockpilot.services.assistant_service import GREETING, AssistantError, ChatSession
from stockpilot.services.chat_client import ChatClientError, GeminiChatClient


class TestBusinessContext:

    def test_context_lines(self, db_session, org_a):
        a = products_service.create_product(
            org_id=org_a.id, patch={"name": "Alpha", "price": 100.0, "cost": 40.0, "stock": 10, "min_stock": 2}
        )
        products_service.create_product(
            org_id=org_a.id, patch={"name": "Beta", "price": 5.0, "cost": 1.0, "stock": 1, "min_stock": 5}
        )
        sales_service.checkout(org_id=org_a.id, items=[{"product_id": a["id"], "quantity": 1}])

        text = assistant_service.build_business_context(org_id=org_a.id, now=datetime(2026, 5, 1, 9, 0))
        lines = text.splitlines()

        assert lines[0] == "Date: 2026-05-01"
        assert lines[1] == "Revenue: ₹100.00"
        assert lines[2] == "Expenses: ₹401.00"
        assert lines[3] == "Net Profit: ₹-301.00"
        assert lines[4] == "Total Sales Count: 1"
        assert lines[5] == "Inventory Count: 2 items"
        assert lines[6] == "Low Stock: Beta (1)"
        assert lines[7] == "Top Inventory Value: Alpha, Beta"

    def test_context_without_financials(self, db_session, org_a):
        products_service.create_product(
            org_id=org_a.id, patch={"name": "Alpha", "price": 100.0, "cost": 40.0, "stock": 10}
        )
        text = assistant_service.build_business_context(
            org_id=org_a.id, now=datetime(2026, 5, 1, 9, 0), include_financials=False
        )

        assert text.splitlines() == [
            "Date: 2026-05-01",
            "Total Sales Count: 0",
            "Inventory Count: 1 items",
            "Low Stock: None",
            "Top Inventory Value: Alpha",
        ]

    def test_empty_business(self, db_session, org_a):
        text = assistant_service.build_business_context(org_id=org_a.id)
        assert "Low Stock: None" in text
        assert "Total Sales Count: 0" in text


class TestChatSession:

    def test_seeded_history(self):
        session = ChatSession(profile_id=1, org_id=1, context="Revenue: 1")
        assert session.history[0]["role"] == "user"
        assert "You are Stockpilot AI" in session.history[0]["text"]
        assert "Revenue: 1" in session.history[0]["text"]
        assert session.history[1] == {"role": "model", "text": GREETING}
        assert session.transcript() == [{"role": "model", "text": GREETING}]

    def test_send_forwards_full_history(self, app, chat_client):
        session = ChatSession(profile_id=1, org_id=1, context="ctx")
        reply = session.send("How are sales?", chat_client)

        assert reply == chat_client.reply
        sent = chat_client.calls[0]
        assert len(sent) == 3
        assert sent[-1] == {"role": "user", "text": "How are sales?"}
        assert len(session.history) == 4

    def test_failed_send_keeps_history(self, app, chat_client):
        chat_client.fail_with = "timeout"
        session = ChatSession(profile_id=1, org_id=1, context="ctx")

        with pytest.raises(AssistantError):
            session.send("Hello?", chat_client)
        assert len(session.history) == 2

    def test_concurrent_sends_keep_every_exchange(self):
        class SlowEcho:
            def generate(self, history):
                time.sleep(0.05)
                return "re: " + history[-1]["text"]

        session = ChatSession(profile_id=1, org_id=1, context="ctx")
        client = SlowEcho()
        threads = [
            threading.Thread(target=session.send, args=(text, client))
            for text in ("first", "second")
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        turns = session.history[2:]
        assert len(turns) == 4
        for question, answer in (turns[0:2], turns[2:4]):
            assert question["role"] == "user"
            assert answer == {"role": "model", "text": "re: " + question["text"]}
        assert sorted(t["text"] for t in turns[::2]) == ["first", "second"]

    def test_blank_message(self, chat_client):
        session = ChatSession(profile_id=1, org_id=1, context="ctx")
        with pytest.raises(ValueError):
            session.send("   ", chat_client)


class TestAssistantRoutes:

    def test_session_message_and_reset(self, client, owner_headers, chat_client):
        resp = client.get("/api/assistant/session", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["messages"] == [{"role": "model", "text": GREETING}]

        resp = client.post("/api/assistant/messages", json={"message": "What is low?"}, headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["reply"] == chat_client.reply

        resp = client.get("/api/assistant/session", headers=owner_headers)
        assert len(resp.json["messages"]) == 3

        resp = client.post("/api/assistant/reset", headers=owner_headers)
        assert resp.status_code == 200
        assert len(resp.json["messages"]) == 1

    def test_reset_rebuilds_context(self, client, owner_headers, org_a, chat_client):
        client.get("/api/assistant/session", headers=owner_headers)
        products_service.create_product(org_id=org_a.id, patch={"name": "Fresh item", "stock": 1})

        client.post("/api/assistant/reset", headers=owner_headers)
        client.post("/api/assistant/messages", json={"message": "hi"}, headers=owner_headers)

        assert "Fresh item" in chat_client.calls[-1][0]["text"]

    def test_sessions_are_per_profile(self, client, owner_headers, employee_headers, chat_client):
        client.post("/api/assistant/messages", json={"message": "owner question"}, headers=owner_headers)

        resp = client.get("/api/assistant/session", headers=employee_headers)
        assert len(resp.json["messages"]) == 1

    def test_model_failure_is_502(self, client, owner_headers, chat_client):
        chat_client.fail_with = "upstream down"
        resp = client.post("/api/assistant/messages", json={"message": "hi"}, headers=owner_headers)
        assert resp.status_code == 502

    def test_missing_message_is_400(self, client, owner_headers, chat_client):
        resp = client.post("/api/assistant/messages", json={}, headers=owner_headers)
        assert resp.status_code == 400


class TestGeminiChatClient:

    def _client(self, handler, api_key="test-key"):
        return GeminiChatClient(
            api_key=api_key,
            model="gemini-2.5-flash",
            base_url="https://example.test/v1beta/",
            transport=httpx.MockTransport(handler),
        )

    def test_request_shape_and_reply(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(200, json={
                "candidates": [{"content": {"role": "model", "parts": [{"text": "Hi "}, {"text": "there"}]}}]
            })

        reply = self._client(handler).generate([
            {"role": "user", "text": "seed"},
            {"role": "model", "text": "greeting"},
            {"role": "user", "text": "question"},
        ])

        assert reply == "Hi there"
        assert seen["url"].startswith("https://example.test/v1beta/models/gemini-2.5-flash:generateContent")
        assert "key=test-key" in seen["url"]
        assert b'"role":"model"' in seen["body"].replace(b" ", b"")

    def test_http_error(self):
        client = self._client(lambda request: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(ChatClientError):
            client.generate([{"role": "user", "text": "q"}])

    def test_no_candidates(self):
        client = self._client(lambda request: httpx.Response(200, json={"candidates": []}))
        with pytest.raises(ChatClientError):
            client.generate([{"role": "user", "text": "q"}])

    def test_missing_api_key(self):
        client = self._client(lambda request: httpx.Response(200, json={}), api_key="")
        with pytest.raises(ChatClientError):
            client.generate([{"role": "user", "text": "q"}])
