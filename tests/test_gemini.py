import threading
import time
from types import SimpleNamespace

import pytest
from google.api_core.exceptions import ServiceUnavailable

from utils import gemini
from utils.exceptions import ChatFailure
from utils.gemini import GeminiClient


def _reply(text: str):
    part = SimpleNamespace(text=text)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


class SlowServiceClient:
    def __init__(self, api_key: str, delay: float = 0.5) -> None:
        self.api_key = api_key
        self.delay = delay
        self.requests = []

    def generate_content(self, request=None):
        self.requests.append(request)
        time.sleep(self.delay)
        return _reply(f"answer for {self.api_key}")


@pytest.fixture
def service_clients(monkeypatch) -> dict:
    clients = {}

    def fake_service_client(api_key: str) -> SlowServiceClient:
        return clients.setdefault(api_key, SlowServiceClient(api_key))

    monkeypatch.setattr(gemini, "_service_client", fake_service_client)
    return clients


def test_model_path_is_prefixed() -> None:
    assert GeminiClient("gemini-1.5-flash").model_path == "models/gemini-1.5-flash"
    assert GeminiClient("models/gemini-pro").model_path == "models/gemini-pro"


def test_generate_text_sends_prompt_with_given_key(service_clients) -> None:
    text = GeminiClient().generate_text("explain loops", "key-a")

    assert text == "answer for key-a"
    request = service_clients["key-a"].requests[0]
    assert request.model == "models/gemini-1.5-flash"
    assert request.contents[0].parts[0].text == "explain loops"


def test_calls_with_different_keys_run_concurrently(service_clients) -> None:
    client = GeminiClient()
    results = {}

    def ask(key: str) -> None:
        results[key] = client.generate_text("hi", key)

    threads = [threading.Thread(target=ask, args=(f"key-{n}",)) for n in range(3)]
    started = time.monotonic()
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    elapsed = time.monotonic() - started

    assert elapsed < 1.2
    assert results == {f"key-{n}": f"answer for key-{n}" for n in range(3)}
    assert sorted(service_clients) == ["key-0", "key-1", "key-2"]


def test_api_error_becomes_chat_failure(monkeypatch) -> None:
    class FailingServiceClient:
        def generate_content(self, request=None):
            raise ServiceUnavailable("backend down")

    monkeypatch.setattr(gemini, "_service_client", lambda api_key: FailingServiceClient())
    with pytest.raises(ChatFailure):
        GeminiClient().generate_text("hi", "key")


def test_empty_candidates_give_empty_text(monkeypatch) -> None:
    empty = SimpleNamespace(generate_content=lambda request=None: SimpleNamespace(candidates=[]))
    monkeypatch.setattr(gemini, "_service_client", lambda api_key: empty)
    assert GeminiClient().generate_text("hi", "key") == ""
