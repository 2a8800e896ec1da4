"""
Provider-agnostic LLM client for the assistant pipeline.

Supports Anthropic, OpenAI, and Google Gemini with a shared chat interface:
``send(messages, ...) -> LLMResponse``. Retries and backoff are left to the
provider SDKs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger("hrassist.common.llm_client")


@dataclass
class LLMResponse:
    """Normalized reply from any provider"""
    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def usage(self) -> Dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


class LLMClient:
    """Unified chat client across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self._client = None

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai  # Store the module, not a model instance
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        """Build a client for the configured provider and its model"""
        models = {
            "anthropic": llm_config.anthropic_model,
            "openai": llm_config.openai_model,
            "google": llm_config.google_model,
        }
        provider = (llm_config.provider or "anthropic").lower()
        return cls(
            provider=provider,
            model=models.get(provider, ""),
            anthropic_api_key=llm_config.anthropic_api_key,
            openai_api_key=llm_config.openai_api_key,
            google_api_key=llm_config.google_api_key,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def send(
        self,
        messages: List[Dict[str, str]],
        *,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        timeout: float = 60.0,
    ) -> LLMResponse:
        """
        Send a chat transcript and return the normalized reply.

        Args:
            messages: ``{"role": "user"|"assistant", "content": str}`` dicts
            system: System prompt
            max_tokens: Output token cap
            temperature: Sampling temperature
            timeout: Request timeout in seconds

        Returns:
            LLMResponse with text, token usage and any tool calls
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "anthropic":
            kwargs = {
                "model": self.model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "messages": messages,
                "timeout": timeout,
            }
            if system:
                kwargs["system"] = system
            response = self._client.messages.create(**kwargs)
            text_parts = []
            tool_calls = []
            for block in response.content:
                if block.type == "text":
                    text_parts.append(block.text)
                elif block.type == "tool_use":
                    tool_calls.append({"id": block.id, "name": block.name, "input": block.input})
            return LLMResponse(
                content="".join(text_parts).strip(),
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                tool_calls=tool_calls,
            )

        if self.provider == "openai":
            chat = []
            if system:
                chat.append({"role": "system", "content": system})
            chat.extend(messages)
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=chat,
                timeout=timeout,
            )
            message = response.choices[0].message
            tool_calls = [
                {"id": call.id, "name": call.function.name, "input": call.function.arguments}
                for call in (message.tool_calls or [])
            ]
            usage = response.usage
            return LLMResponse(
                content=(message.content or "").strip(),
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
                tool_calls=tool_calls,
            )

        if self.provider == "google":
            kwargs = {"model_name": self.model}
            if system:
                kwargs["system_instruction"] = system
            model = self._client.GenerativeModel(**kwargs)
            contents = [
                {"role": "model" if m["role"] == "assistant" else "user", "parts": [m["content"]]}
                for m in messages
            ]
            response = model.generate_content(
                contents,
                generation_config={"max_output_tokens": max_tokens, "temperature": temperature},
                request_options={"timeout": timeout},
            )
            usage = getattr(response, "usage_metadata", None)
            return LLMResponse(
                content=response.text.strip(),
                input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
                output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
            )

        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")
