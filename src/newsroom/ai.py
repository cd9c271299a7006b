"""Summary: AI provider abstraction and implementations.

Importance: Centralizes LLM access for portability and auditability.
Alternatives: Call provider SDKs directly in each service.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
import urllib.request
from abc import ABC, abstractmethod
from dataclasses import dataclass

from newsroom.classifier import RuleBasedTagger
from newsroom.config import AppConfig
from newsroom.errors import UpstreamError

logger = logging.getLogger(__name__)


class AiProvider(ABC):
    """Summary: Abstract interface for AI text generation.

    Importance: Allows switching between local and cloud LLMs without refactors.
    Alternatives: Use a single vendor SDK and accept lock-in risk.
    """

    @abstractmethod
    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        """Summary: Generate a response for a prompt.

        Importance: Standardizes AI outputs for downstream services.
        Alternatives: Return provider-specific response objects directly.
        """


class MockAiProvider(AiProvider):
    """Summary: Deterministic AI provider for local testing.

    Importance: Enables offline workflows and repeatable tests.
    Alternatives: Use a small local LLM for all development tasks.
    """

    def __init__(self, tagger: RuleBasedTagger | None = None) -> None:
        self._tagger = tagger or RuleBasedTagger()

    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        """Summary: Return a canned response shaped for the requested purpose.

        Importance: Exercises both structured and sectioned parse paths offline.
        Alternatives: Use fixture-based responses loaded from files.
        """

        started = time.time()
        if purpose == "tag_analysis":
            response = self._tag_analysis(prompt)
        elif purpose == "daily_summary":
            response = self._daily_summary(prompt)
        else:
            response = f"[mock:{purpose}] {prompt[:240]}"
        latency_ms = int((time.time() - started) * 1000)
        return response, latency_ms

    def _tag_analysis(self, prompt: str) -> str:
        match = re.search(r"^Message: (.*)$", prompt, re.MULTILINE)
        text = match.group(1) if match else prompt
        lowered = text.lower()
        suggestions = [
            {"tag": tag, "category": "keyword", "confidence": 0.8}
            for tag in self._tagger.contextual_tags(text, "")
        ]
        urgency = "medium"
        if "critical" in lowered:
            urgency = "critical"
            suggestions.append({"tag": "critical", "category": "urgency", "confidence": 0.9})
        elif "urgent" in lowered:
            urgency = "high"
            suggestions.append({"tag": "urgent", "category": "urgency", "confidence": 0.9})
        return json.dumps({"suggestions": suggestions, "urgencyLevel": urgency})

    def _daily_summary(self, prompt: str) -> str:
        lines = [line[2:] for line in prompt.splitlines() if line.startswith("- [")]
        topics = self._tagger.contextual_tags(" ".join(lines), "") or ["general discussion"]
        highlights = "\n".join(f"- {line[:120]}" for line in lines[:3])
        return (
            f"SUMMARY: [mock:daily_summary] {len(lines)} messages reviewed.\n\n"
            f"KEY_TOPICS: {', '.join(topics)}\n\n"
            "SENTIMENT: neutral\n\n"
            f"HIGHLIGHTS:\n{highlights}\n"
        )


class OllamaProvider(AiProvider):
    """Summary: AI provider that targets a local Ollama server.

    Importance: Supports privacy-sensitive workflows on local hardware.
    Alternatives: Use llama.cpp directly with a Python binding.
    """

    def __init__(self, base_url: str, model: str) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model

    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        """Summary: Generate text using the Ollama HTTP API.

        Importance: Enables local inference for tagging and summaries.
        Alternatives: Use Ollama's CLI and parse its output.
        """

        payload = json.dumps({"model": self._model, "prompt": prompt, "stream": False})
        request = urllib.request.Request(
            url=f"{self._base_url}/api/generate",
            data=payload.encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        started = time.time()
        try:
            with urllib.request.urlopen(request, timeout=60) as response:
                raw = json.loads(response.read().decode("utf-8"))
        except (OSError, ValueError) as exc:
            # OSError covers URLError and read timeouts.
            raise UpstreamError(f"Ollama request failed: {exc}") from exc
        latency_ms = int((time.time() - started) * 1000)
        text = raw.get("response") if isinstance(raw, dict) else None
        return _as_text(text), latency_ms


class OpenAiProvider(AiProvider):
    """Summary: AI provider using OpenAI's chat completion API.

    Importance: Enables higher-quality tagging and summaries when configured.
    Alternatives: Use other cloud providers or a local model.
    """

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self._model = model

    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        """Summary: Generate text using OpenAI chat completions.

        Importance: Enables cloud-grade reasoning for key workflows.
        Alternatives: Use the responses API or a different provider.
        """

        payload = {
            "model": self._model,
            "messages": [
                {
                    "role": "system",
                    "content": (
                        "You summarize and tag Slack conversations for product operations "
                        f"managers. Task: {purpose}."
                    ),
                },
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.2 if purpose == "tag_analysis" else 0.3,
        }
        request = urllib.request.Request(
            url="https://api.openai.com/v1/chat/completions",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )
        started = time.time()
        try:
            with urllib.request.urlopen(request, timeout=60) as response:
                raw = json.loads(response.read().decode("utf-8"))
        except (OSError, ValueError) as exc:
            raise UpstreamError(f"OpenAI request failed: {exc}") from exc
        latency_ms = int((time.time() - started) * 1000)
        try:
            content = raw["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("OpenAI response missing content") from exc
        return _as_text(content), latency_ms


@dataclass(frozen=True)
class AiProviderFactory:
    """Summary: Factory for selecting AI providers from configuration.

    Importance: Keeps provider selection logic centralized.
    Alternatives: Wire providers manually at the application entrypoint.
    """

    config: AppConfig

    def build(self) -> AiProvider:
        """Summary: Construct the configured AI provider.

        Importance: Ensures consistent provider selection across services.
        Alternatives: Use dependency injection frameworks.
        """

        if self.config.ai_provider == "ollama":
            return OllamaProvider(self.config.ollama_url, self.config.ollama_model)
        if self.config.ai_provider == "openai":
            if not self.config.openai_api_key:
                raise ValueError("OPENAI_API_KEY is required for openai provider")
            return OpenAiProvider(self.config.openai_api_key, self.config.openai_model)
        return MockAiProvider()

    def model_name(self) -> str:
        if self.config.ai_provider == "openai":
            return self.config.openai_model
        if self.config.ai_provider == "ollama":
            return self.config.ollama_model
        return "mock"


async def generate_async(provider: AiProvider, prompt: str, purpose: str) -> tuple[str, int]:
    """Summary: Run a blocking provider call on a worker thread.

    Importance: Lets batches keep several model calls outstanding at once.
    Alternatives: Write async variants of every provider.
    """

    try:
        text, latency_ms = await asyncio.to_thread(provider.generate_text, prompt, purpose)
    except UpstreamError:
        raise
    except (RuntimeError, OSError) as exc:
        raise UpstreamError(f"{purpose} request failed: {exc}") from exc
    text = _as_text(text)
    logger.info(
        "AI %s completed in %sms (~%s tokens).", purpose, latency_ms, estimate_tokens(text)
    )
    return text, latency_ms


def _as_text(value: object) -> str:
    if isinstance(value, str):
        return value
    if value is not None:
        logger.warning("AI provider returned non-text output of type %s", type(value).__name__)
    return ""


def estimate_tokens(text: str) -> int:
    """Summary: Estimate tokens from text length.

    Importance: Provides a rough metric for AI usage auditing.
    Alternatives: Use provider token counters or tiktoken.
    """

    return max(1, len(text) // 4)
