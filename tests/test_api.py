"""
Tests for the HTTP blueprints
"""
import json

from roleplay_backend.services.errors import UpstreamGenerationError
from roleplay_backend.services.schemas import ConversationStatus

USER = {"X-User-Id": "user-1"}


class TestSessionApi:

    def test_list_scenarios(self, client):
        response = client.get("/api/session/scenarios")

        assert response.status_code == 200
        ids = [s["id"] for s in response.get_json()["scenarios"]]
        assert "boba-craving" in ids

    def test_start_with_header_user(self, client, store):
        response = client.post("/api/session/start", json={"scenarioId": "boba-craving"}, headers=USER)

        assert response.status_code == 201
        conversation = response.get_json()["conversation"]
        assert conversation["status"] == "ACTIVE"
        assert conversation["user_id"] == "user-1"

    def test_start_unknown_scenario(self, client):
        response = client.post("/api/session/start", json={"scenario_id": "nope"})

        assert response.status_code == 404
        assert response.get_json()["status"] == "error"

    def test_start_missing_scenario_id(self, client):
        response = client.post("/api/session/start", json={})
        assert response.status_code == 400

    def test_get_session(self, client, conversation, llm, make_reply):
        llm.chat.return_value = make_reply("你好", translation="Hello")
        client.post("/api/chat", json={"conversation_id": conversation.id, "text": "你好"})

        response = client.get(f"/api/session/{conversation.id}")

        body = response.get_json()
        assert body["conversation"]["id"] == conversation.id
        assert [m["role"] for m in body["messages"]] == ["user", "assistant"]

    def test_get_unknown_session(self, client):
        assert client.get("/api/session/missing").status_code == 404


class TestChatApi:

    def test_batch_turn(self, client, conversation, llm, make_reply):
        llm.chat.return_value = make_reply("你好", translation="Hello")

        response = client.post("/api/chat", json={"conversationId": conversation.id, "content": "你好"})

        assert response.status_code == 200
        body = response.get_json()
        assert body["message"]["content"] == "你好"
        assert body["message"]["pinyin"] == "nǐ hǎo"
        assert body["message"]["translation"] == "Hello"
        assert body["conversation_status"] == "ACTIVE"
        assert body["report"] is None

    def test_batch_turn_with_report(self, client, conversation, llm, make_reply):
        llm.chat.return_value = make_reply("好的！", translation="OK!", status="COMPLETED")

        response = client.post("/api/chat", json={"conversation_id": conversation.id, "text": "少冰"})

        report = response.get_json()["report"]
        assert report["status"] == "COMPLETED"
        assert report["score"] == 85
        assert report["suggestedFlashcards"][0]["pinyin"] == "nǎi chá"

    def test_empty_text_rejected(self, client, conversation, llm):
        response = client.post("/api/chat", json={"conversation_id": conversation.id, "text": ""})

        assert response.status_code == 400
        assert response.get_json()["details"]
        llm.chat.assert_not_called()

    def test_unknown_conversation(self, client):
        response = client.post("/api/chat", json={"conversation_id": "missing", "text": "你好"})
        assert response.status_code == 404

    def test_closed_conversation(self, client, conversation, llm, make_reply):
        llm.chat.return_value = make_reply("再见", status="FAILED")
        client.post("/api/chat", json={"conversation_id": conversation.id, "text": "bye"})

        response = client.post("/api/chat", json={"conversation_id": conversation.id, "text": "等等"})

        assert response.status_code == 409

    def test_upstream_failure_is_502(self, client, conversation, llm):
        llm.chat.side_effect = UpstreamGenerationError("Ollama unreachable: refused")

        response = client.post("/api/chat", json={"conversation_id": conversation.id, "text": "你好"})

        assert response.status_code == 502
        # Internal details stay in the logs
        assert response.get_json()["error"] == "Could not process your message, please retry"

    def test_stream(self, client, conversation, llm, store):
        llm.chat_stream.return_value = iter(["你", "好", '---METADATA---{"translation": "Hello", "status": "ACTIVE"}'])

        response = client.post("/api/chat/stream", json={"conversation_id": conversation.id, "text": "你好"})

        assert response.status_code == 200
        assert response.headers["Content-Type"].startswith("text/plain")
        assert response.get_data(as_text=True) == '你好---METADATA---{"translation": "Hello", "status": "ACTIVE"}'
        assert store.list_messages(conversation.id)[-1].translation == "Hello"

    def test_stream_with_report(self, client, conversation, llm, make_reply):
        llm.chat_stream.return_value = iter([make_reply("好！", status="COMPLETED")])

        response = client.post("/api/chat/stream", json={"conversation_id": conversation.id, "text": "少冰"})

        body = response.get_data(as_text=True)
        head, _, report = body.partition("---REPORT---")
        assert head.startswith("好！---METADATA---")
        assert json.loads(report)["status"] == "COMPLETED"

    def test_stream_upstream_failure_before_first_chunk(self, client, conversation, llm):
        llm.chat_stream.side_effect = UpstreamGenerationError("Ollama returned HTTP 500")

        response = client.post("/api/chat/stream", json={"conversation_id": conversation.id, "text": "你好"})

        assert response.status_code == 502

    def test_stream_closed_conversation(self, client, orchestrator, conversation, llm, make_reply):
        llm.chat.return_value = make_reply("再见", status="FAILED")
        orchestrator.submit_utterance(conversation.id, "bye")

        response = client.post("/api/chat/stream", json={"conversation_id": conversation.id, "text": "你好"})

        assert response.status_code == 409
        llm.chat_stream.assert_not_called()

    def test_hints(self, client, conversation, llm):
        llm.generate_hints.return_value = [{"hanzi": "我要奶茶", "pinyin": "", "meaning": "I want milk tea"}]

        response = client.post("/api/chat/hints", json={"conversation_id": conversation.id})

        hint = response.get_json()["hints"][0]
        assert hint["hanzi"] == "我要奶茶"
        assert hint["pinyin"]

    def test_translate(self, client, llm):
        llm.translate_selection.return_value = {"pinyin": "", "meaning": "milk tea"}

        response = client.post("/api/chat/translate", json={"text": "奶茶"})

        body = response.get_json()
        assert body["pinyin"] == "nǎi chá"
        assert body["meaning"] == "milk tea"

    def test_translate_non_chinese_has_no_pinyin(self, client, llm):
        llm.translate_selection.return_value = {"pinyin": "", "meaning": "OK"}

        response = client.post("/api/chat/translate", json={"text": "OK"})

        assert response.get_json()["pinyin"] == ""


class TestPinyinApi:

    def test_convert(self, client):
        response = client.post("/api/pinyin/convert", json={"text": "ni3 hao3"})

        assert response.get_json() == {"success": True, "text": "ni3 hao3", "converted": "nǐ hǎo"}

    def test_compare_numeric_answer(self, client):
        response = client.post("/api/pinyin/compare", json={"answer": "ni3hao3", "expected": "nǐ hǎo"})

        body = response.get_json()
        assert body["is_correct"] is True
        assert body["answer"] == "nǐhǎo"

    def test_compare_without_conversion(self, client):
        response = client.post("/api/pinyin/compare",
                               json={"answer": "ni3hao3", "expected": "nǐ hǎo", "convert": False})

        body = response.get_json()
        assert body["is_correct"] is False
        assert body["differences"][2]["is_correct"] is False

    def test_convert_missing_text(self, client):
        assert client.post("/api/pinyin/convert", json={}).status_code == 400


class TestFlashcardsApi:

    def test_requires_user(self, client):
        response = client.get("/api/flashcards")

        assert response.status_code == 401

    def test_save_fills_pinyin(self, client):
        response = client.post("/api/flashcards", json={"hanzi": "奶茶", "meaning": "milk tea"}, headers=USER)

        assert response.status_code == 201
        assert response.get_json()["flashcard"]["pinyin"] == "nǎi chá"

        cards = client.get("/api/flashcards", headers=USER).get_json()["flashcards"]
        assert [c["hanzi"] for c in cards] == ["奶茶"]

    def test_batch_save(self, client):
        body = {"flashcards": [{"hanzi": "奶茶", "meaning": "milk tea"}, {"hanzi": "少冰", "meaning": "less ice"}]}

        response = client.post("/api/flashcards/batch", json=body, headers=USER)

        assert response.get_json()["count"] == 2

    def test_delete_other_users_card(self, client):
        card = client.post("/api/flashcards", json={"hanzi": "奶茶"}, headers=USER).get_json()["flashcard"]

        response = client.delete(f"/api/flashcards/{card['id']}", headers={"X-User-Id": "user-2"})

        assert response.status_code == 404

    def test_folders(self, client):
        folder = client.post("/api/flashcards/folders", json={"name": "Drinks"}, headers=USER).get_json()["folder"]
        card = client.post("/api/flashcards", json={"hanzi": "奶茶"}, headers=USER).get_json()["flashcard"]

        moved = client.put(f"/api/flashcards/{card['id']}/folder", json={"folder_id": folder["id"]}, headers=USER)
        assert moved.get_json()["flashcard"]["folder_id"] == folder["id"]

        folders = client.get("/api/flashcards/folders", headers=USER).get_json()["folders"]
        assert folders[0]["flashcard_count"] == 1

        assert client.delete(f"/api/flashcards/folders/{folder['id']}", headers=USER).status_code == 200
        assert client.get("/api/flashcards/folders", headers=USER).get_json()["folders"] == []


class TestDashboardApi:

    def test_stats_after_completed_run(self, client, conversation, llm, make_reply, store):
        llm.chat.return_value = make_reply("好！", status="COMPLETED")
        client.post("/api/chat", json={"conversation_id": conversation.id, "text": "少冰"})
        client.post("/api/flashcards", json={"hanzi": "奶茶"}, headers=USER)

        response = client.get("/api/dashboard", headers=USER)

        stats = response.get_json()["stats"]
        assert stats["completed_today"] == 1
        assert stats["flashcards_today"] == 1
        assert stats["average_score"] == 85
        assert stats["mistake_counts"]["Grammar"] == 1
        assert stats["recent_activity"][0]["scenario_title"] == "Boba Craving"
        assert stats["completed_scenario_ids"] == ["boba-craving"]
        assert store.get_conversation(conversation.id).status == ConversationStatus.COMPLETED

    def test_requires_user(self, client):
        assert client.get("/api/dashboard").status_code == 401
