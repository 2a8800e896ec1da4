"""Tests for LLMClient provider abstraction."""

import logging
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from hrassist.common.llm_client import LLMClient, LLMResponse


class TestLLMClientInit:
    @pytest.mark.parametrize("provider", ["anthropic", "openai", "google"])
    def test_missing_key_logs_info(self, caplog, provider):
        with caplog.at_level(logging.INFO, logger="hrassist.common.llm_client"):
            client = LLMClient(provider=provider)
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="hrassist.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_from_config_picks_provider_model(self):
        from hrassist.common.config import LLMConfig
        config = LLMConfig(provider="OpenAI", openai_model="gpt-test")
        client = LLMClient.from_config(config)
        assert client.provider == "openai"
        assert client.model == "gpt-test"


class TestLLMClientSend:
    def test_send_raises_when_unavailable(self):
        client = LLMClient(provider="anthropic")
        with pytest.raises(RuntimeError, match="not available"):
            client.send([{"role": "user", "content": "hi"}])

    def test_anthropic_response_is_normalized(self):
        with patch("anthropic.Anthropic") as anthropic_cls:
            client = LLMClient(provider="anthropic", model="claude-test", anthropic_api_key="sk-ant")
        sdk = anthropic_cls.return_value
        sdk.messages.create.return_value = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Jordan works Monday "),
                SimpleNamespace(type="text", text="to Friday."),
            ],
            usage=SimpleNamespace(input_tokens=120, output_tokens=8),
        )

        response = client.send(
            [{"role": "user", "content": "When does Jordan work?"}],
            system="You are the Employee Assistant.",
            max_tokens=256,
            temperature=0.2,
        )

        assert response.content == "Jordan works Monday to Friday."
        assert response.total_tokens == 128
        assert response.usage == {"input_tokens": 120, "output_tokens": 8}
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["system"] == "You are the Employee Assistant."
        assert kwargs["max_tokens"] == 256

    def test_openai_prepends_system_message(self):
        client = LLMClient(provider="openai", model="gpt-test")
        client._client = MagicMock()
        message = SimpleNamespace(content=" Two candidates. ", tool_calls=None)
        client._client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=message)],
            usage=SimpleNamespace(prompt_tokens=50, completion_tokens=3),
        )

        response = client.send([{"role": "user", "content": "How many candidates?"}], system="sys")

        assert response.content == "Two candidates."
        assert response.input_tokens == 50
        chat = client._client.chat.completions.create.call_args.kwargs["messages"]
        assert chat[0] == {"role": "system", "content": "sys"}
        assert chat[1]["role"] == "user"


def test_llm_response_defaults():
    response = LLMResponse(content="ok")
    assert response.total_tokens == 0
    assert response.tool_calls == []


def test_google_builds_model_per_system_prompt():
    client = LLMClient(provider="google", model="gemini-test")
    client._client = MagicMock()
    model = client._client.GenerativeModel.return_value
    model.generate_content.return_value = SimpleNamespace(
        text=" Noted. ",
        usage_metadata=SimpleNamespace(prompt_token_count=30, candidates_token_count=2),
    )

    for turn in range(3):
        response = client.send(
            [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
            system=f"## Relevant Data\nturn {turn}",
        )

    assert response.content == "Noted."
    assert response.output_tokens == 2
    assert client._client.GenerativeModel.call_count == 3
    assert client._client.GenerativeModel.call_args.kwargs == {
        "model_name": "gemini-test", "system_instruction": "## Relevant Data\nturn 2",
    }
    contents = model.generate_content.call_args.args[0]
    assert [c["role"] for c in contents] == ["user", "model"]
    assert not hasattr(client, "_google_models")
