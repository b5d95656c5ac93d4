from fastapi.testclient import TestClient

from advisor.app import GENERIC_ERROR, create_app
from advisor.gemini_client import GenerationError

from .conftest import SERVICES


def _client(settings, mock_gemini, small_engine):
    return TestClient(create_app(settings=settings, gemini=mock_gemini, engine=small_engine))


class TestChatApi:
    def test_chat_returns_processed_reply(self, settings, mock_gemini, small_engine):
        mock_gemini.generate_reply.return_value = "**Services:** Try bodywork. [ServicesTag: Sleep]"

        with _client(settings, mock_gemini, small_engine) as client:
            response = client.post(
                "/chat",
                json={"messages": [{"role": "user", "content": "I can't sleep"}]},
            )

        assert response.status_code == 200
        reply = response.json()["reply"]
        assert f"[Sleep Services]({SERVICES}Sleep)" in reply
        assert "[ServicesTag" not in reply
        mock_gemini.select_model.assert_called_once()

    def test_generation_failure_returns_generic_error(self, settings, mock_gemini, small_engine):
        mock_gemini.generate_reply.side_effect = GenerationError("no content")

        with _client(settings, mock_gemini, small_engine) as client:
            response = client.post("/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert response.status_code == 500
        assert response.json() == {"error": GENERIC_ERROR}

    def test_unexpected_failure_returns_generic_error(self, settings, mock_gemini, small_engine):
        mock_gemini.generate_reply.side_effect = RuntimeError("secret detail")

        with _client(settings, mock_gemini, small_engine) as client:
            response = client.post("/chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert response.status_code == 500
        assert "secret" not in response.text

    def test_invalid_payload_is_rejected(self, settings, mock_gemini, small_engine):
        with _client(settings, mock_gemini, small_engine) as client:
            response = client.post("/chat", json={"messages": [{"role": "robot", "content": "hi"}]})
        assert response.status_code == 422


class TestStatusRoutes:
    def test_health(self, settings, mock_gemini, small_engine):
        with _client(settings, mock_gemini, small_engine) as client:
            response = client.get("/health")
        assert response.json() == {"status": "ok", "model": "gemini-test", "tags_loaded": 3}

    def test_index(self, settings, mock_gemini, small_engine):
        with _client(settings, mock_gemini, small_engine) as client:
            response = client.get("/")
        assert response.status_code == 200
        assert "Tags loaded: <strong>3</strong>" in response.text
