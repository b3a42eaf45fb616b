"""Reasoning client for asking a language model what to do next.

This module provides the ReasoningClient class that:
- Picks an available model once at startup
- Builds a bounded prompt from the current Situation
- Parses the reply as JSON, then by keyword, then falls back to a
  per-phase default action
- Keeps a capped history of recent decisions for prompt context

Two entry points share the same pipeline: `request_decision` raises
ReasoningServiceError on any failure (the arbiter uses it to fall back to
another strategy) and `decide` never raises.

Example:
    >>> client = ReasoningClient(ReasoningConfig(provider="ollama"))
    >>> if client.initialize():
    ...     decision = client.decide(situation)
    ...     print(decision.action, decision.rationale)
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from speedrun_agent.config.secrets import resolve_api_key
from speedrun_agent.core.prompts import ReasoningPrompts
from speedrun_agent.models.actions import LEARNED_ACTIONS, ActionId, parse_action
from speedrun_agent.models.situation import Situation

logger = logging.getLogger(__name__)

# Valid reasoning providers
VALID_PROVIDERS = {"ollama", "openai", "anthropic"}

# Default endpoint of a local Ollama server's OpenAI-compatible API
OLLAMA_BASE_URL = "http://localhost:11434/v1"

# Keyword table (keywords, action, priority) applied when the reply names no
# action directly.
# Order matters: the first matching row wins.
KEYWORD_ACTIONS: tuple[tuple[tuple[str, ...], ActionId, int], ...] = (
    (("wood", "tree"), ActionId.GATHER_WOOD, 8),
    (("craft", "pickaxe"), ActionId.CRAFT_TOOLS, 9),
    (("stone", "mine"), ActionId.MINE_STONE, 7),
    (("explore", "move"), ActionId.EXPLORE, 5),
)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class ReasoningServiceError(Exception):
    """Error raised when the reasoning service is unreachable, times out or replies nonsense."""

    pass


@dataclass
class ReasoningConfig:
    """Configuration for the reasoning client.

    Attributes:
        provider: "ollama", "openai" or "anthropic".
        base_url: Endpoint for OpenAI-compatible providers.
        model: Model name; picked from the service's list if None.
        preferred_models: Substrings tried in order when picking a model.
        timeout_s: Timeout of every service call.
        max_retries: Attempts per generate call.
        retry_delay: Initial delay between attempts (doubles each retry).
        temperature: Sampling temperature.
        top_p: Nucleus sampling mass.
        max_tokens: Maximum tokens in the reply.
        history_size: Number of past decisions kept for context.
        max_prompt_chars: Upper bound on prompt length.
        default_action: Action used when nothing else applies.
        phase_defaults: Per-phase override of default_action.
    """

    provider: str = "ollama"
    base_url: str | None = OLLAMA_BASE_URL
    model: str | None = None
    preferred_models: list[str] = field(default_factory=lambda: ["llama3", "mistral"])
    timeout_s: float = 10.0
    max_retries: int = 1
    retry_delay: float = 0.5
    temperature: float = 0.7
    top_p: float = 0.9
    max_tokens: int = 150
    history_size: int = 20
    max_prompt_chars: int = 4000
    default_action: str = "explore"
    phase_defaults: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ReasoningDecision:
    """An action proposed by the reasoning client.

    Attributes:
        action: Proposed action.
        rationale: Explanation from the model (or why a default was used).
        priority: Priority reported by the model, if any.
        parsed_by: "json", "keyword" or "default".
    """

    action: ActionId
    rationale: str
    priority: int | None = None
    parsed_by: str = "json"

    @property
    def is_default(self) -> bool:
        """Check whether this is the local default rather than a model answer."""
        return self.parsed_by == "default"


class ReasoningClient:
    """Client for a generative reasoning service.

    Attributes:
        model: Selected model name (None until initialized).
        is_available: Whether initialize() found a usable model.
        history: Recent decisions, oldest first.
    """

    def __init__(
        self,
        config: ReasoningConfig | None = None,
        prompts: ReasoningPrompts | None = None,
        api_key: str | None = None,
        actions: tuple[ActionId, ...] = LEARNED_ACTIONS,
    ) -> None:
        """Initialize the reasoning client.

        Args:
            config: Client configuration. Uses defaults if None.
            prompts: Prompt templates. Uses defaults if None.
            api_key: API key for hosted providers. Falls back to environment.
            actions: Actions offered to the model.

        Raises:
            ValueError: If provider is not supported.
        """
        self._config = config or ReasoningConfig()
        self._prompts = prompts or ReasoningPrompts()
        self._actions = actions

        if self._config.provider not in VALID_PROVIDERS:
            raise ValueError(
                f"Invalid provider: {self._config.provider}. "
                f"Must be one of {VALID_PROVIDERS}"
            )

        self._api_key = resolve_api_key(self._config.provider, api_key)
        self._model: str | None = None
        self._available = False
        self._client: Any = None
        self._history: deque[dict[str, Any]] = deque(maxlen=self._config.history_size)

        logger.debug(
            f"ReasoningClient initialized: provider={self._config.provider}, "
            f"base_url={self._config.base_url}"
        )

    @property
    def model(self) -> str | None:
        return self._model

    @property
    def is_available(self) -> bool:
        return self._available

    @property
    def history(self) -> list[dict[str, Any]]:
        return list(self._history)

    def clear_history(self) -> None:
        """Forget recent decisions."""
        self._history.clear()

    def initialize(self) -> bool:
        """Check the service and select a model.

        Makes one model-listing call. A configured model is kept when the
        service lists it; otherwise the first listed model matching a
        preferred name wins, then the first listed model.

        Returns:
            True if a model was selected; False when the service is
            unreachable or lists no models.
        """
        try:
            models = self._list_models()
        except Exception as e:
            logger.warning(f"Reasoning service not available ({self._config.provider}): {e}")
            self._available = False
            return False

        if not models:
            logger.warning("Reasoning service lists no models; reasoning disabled")
            self._available = False
            return False

        self._model = self._select_model(models)
        self._available = True
        logger.info(f"Reasoning client initialized with model: {self._model}")
        return True

    def _select_model(self, models: list[str]) -> str:
        if self._config.model and self._config.model in models:
            return self._config.model
        for preferred in self._config.preferred_models:
            for name in models:
                if preferred in name:
                    return name
        return models[0]

    def _list_models(self) -> list[str]:
        """List model names offered by the service."""
        client = self._get_client()
        return [model.id for model in client.models.list()]

    def _get_client(self) -> Any:
        """Create (once) the SDK client for the configured provider."""
        if self._client is not None:
            return self._client

        config = self._config
        if config.provider == "anthropic":
            try:
                import anthropic
            except ImportError as e:
                raise ReasoningServiceError(
                    "anthropic package not installed. Run: pip install anthropic"
                ) from e
            if not self._api_key:
                raise ReasoningServiceError(
                    "ANTHROPIC_API_KEY not set. Set it in environment or pass to constructor."
                )
            self._client = anthropic.Anthropic(
                api_key=self._api_key, timeout=config.timeout_s, max_retries=0
            )
        else:
            try:
                import openai
            except ImportError as e:
                raise ReasoningServiceError(
                    "openai package not installed. Run: pip install openai"
                ) from e
            if not self._api_key:
                raise ReasoningServiceError(
                    "OPENAI_API_KEY not set. Set it in environment or pass to constructor."
                )
            if config.provider == "ollama":
                base_url = config.base_url or OLLAMA_BASE_URL
            else:
                # Hosted providers ignore the Ollama default endpoint.
                base_url = None if config.base_url == OLLAMA_BASE_URL else config.base_url
            self._client = openai.OpenAI(
                api_key=self._api_key,
                base_url=base_url,
                timeout=config.timeout_s,
                max_retries=0,
            )
        return self._client

    def generate(self, prompt: str) -> str:
        """Send a prompt and return the raw reply, retrying with backoff.

        Raises:
            ReasoningServiceError: If no model is selected or all attempts fail.
        """
        if not self._model:
            raise ReasoningServiceError("Reasoning client not initialized")

        config = self._config
        last_error: Exception | None = None

        for attempt in range(config.max_retries):
            try:
                return self._call_llm(prompt)
            except Exception as e:
                last_error = e
                if attempt < config.max_retries - 1:
                    delay = config.retry_delay * (2**attempt)
                    logger.warning(
                        f"Reasoning call failed (attempt {attempt + 1}), "
                        f"retrying in {delay}s: {e}"
                    )
                    time.sleep(delay)

        raise ReasoningServiceError(
            f"Reasoning call failed after {config.max_retries} attempts: {last_error}"
        )

    def _call_llm(self, prompt: str) -> str:
        if self._config.provider == "anthropic":
            return self._call_anthropic(prompt)
        return self._call_openai(prompt)

    def _call_anthropic(self, prompt: str) -> str:
        client = self._get_client()
        message = client.messages.create(
            model=self._model,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
            system=self._prompts.system_prompt,
            messages=[{"role": "user", "content": prompt}],
        )

        content = message.content[0] if message.content else None
        if content is not None and hasattr(content, "text"):
            return str(content.text)
        return ""

    def _call_openai(self, prompt: str) -> str:
        client = self._get_client()
        response = client.chat.completions.create(
            model=self._model,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
            top_p=self._config.top_p,
            messages=[
                {"role": "system", "content": self._prompts.system_prompt},
                {"role": "user", "content": prompt},
            ],
        )
        return response.choices[0].message.content or ""

    def request_decision(self, situation: Situation) -> ReasoningDecision:
        """Ask the service for an action.

        Args:
            situation: Current snapshot.

        Returns:
            Decision parsed from JSON or by keyword.

        Raises:
            ReasoningServiceError: On transport failure, timeout, or a reply
                that names no recognizable action.
        """
        prompt = self._prompts.build_prompt(
            situation,
            self._actions,
            history=self._history,
            max_chars=self._config.max_prompt_chars,
        )
        response = self.generate(prompt)

        decision = self.parse_response(response)
        if decision is None:
            raise ReasoningServiceError(f"Unrecognized reasoning reply: {response[:120]!r}")

        self._history.append(
            {
                "situation": situation.summary(),
                "action": decision.action.value,
                "rationale": decision.rationale,
                "timestamp": datetime.now().isoformat(),
            }
        )
        logger.debug(f"Reasoning decision ({decision.parsed_by}): {decision.action}")
        return decision

    def decide(self, situation: Situation) -> ReasoningDecision:
        """Ask the service for an action; fall back to the phase default on any failure.

        Args:
            situation: Current snapshot.

        Returns:
            A decision; never raises.
        """
        try:
            return self.request_decision(situation)
        except ReasoningServiceError as e:
            logger.warning(f"Reasoning failed, using local default: {e}")
        except Exception as e:
            logger.exception(f"Unexpected reasoning error, using local default: {e}")
        return self.default_decision(situation)

    def default_decision(self, situation: Situation, reason: str = "Default action") -> ReasoningDecision:
        """Local default for the situation's phase."""
        configured = self._config.phase_defaults.get(situation.phase, self._config.default_action)
        action = parse_action(configured) or parse_action(self._config.default_action)
        return ReasoningDecision(
            action=action or ActionId.EXPLORE,
            rationale=reason,
            parsed_by="default",
        )

    def parse_response(self, response: str) -> ReasoningDecision | None:
        """Parse a raw reply.

        Tries a JSON object first, then exact action names in the text,
        then the keyword table.

        Returns:
            The decision, or None when nothing recognizable was found.
        """
        text = response.strip()

        # Handle markdown code blocks
        if text.startswith("```"):
            text = "\n".join(line for line in text.split("\n") if not line.startswith("```"))

        match = _JSON_OBJECT.search(text)
        if match:
            try:
                data = json.loads(match.group(0))
            except json.JSONDecodeError:
                data = None
            if isinstance(data, dict) and isinstance(data.get("action"), str):
                action = parse_action(data["action"])
                if action is not None:
                    return ReasoningDecision(
                        action=action,
                        rationale=str(data.get("reason", "")),
                        priority=_as_priority(data.get("priority")),
                        parsed_by="json",
                    )

        return self._match_keywords(text)

    def _match_keywords(self, text: str) -> ReasoningDecision | None:
        lowered = text.lower()

        # Exact action names, earliest mention first
        mentions = []
        for action in ActionId:
            found = re.search(rf"\b{re.escape(action.value)}\b", lowered)
            if found:
                mentions.append((found.start(), action))
        if mentions:
            action = min(mentions, key=lambda m: m[0])[1]
            return ReasoningDecision(
                action=action, rationale=f"Mentioned {action.value}", parsed_by="keyword"
            )

        for keywords, action, priority in KEYWORD_ACTIONS:
            if any(keyword in lowered for keyword in keywords):
                return ReasoningDecision(
                    action=action,
                    rationale=f"Inferred from keywords {', '.join(keywords)}",
                    priority=priority,
                    parsed_by="keyword",
                )
        return None


def _as_priority(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
