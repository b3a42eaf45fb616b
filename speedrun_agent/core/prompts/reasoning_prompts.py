"""Reasoning prompt templates for the agent.

This module contains the prompt templates used by the ReasoningClient to
ask a language model for the next speedrun action.

Prompt versions are tracked for debugging and A/B testing.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from speedrun_agent.models.actions import ACTION_DESCRIPTIONS, ActionId
from speedrun_agent.models.situation import Situation

# Prompt version for tracking
PROMPT_VERSION = "1.0.0"

SYSTEM_PROMPT = """You are a Minecraft speedrun AI. Your goal is to beat the game \
(defeat the Ender Dragon) in under 15 minutes.

You pick exactly one high-level action at a time from the list you are given.
Always provide your response in the exact JSON format specified."""

REASONING_PROMPT_TEMPLATE = """## Current Situation

- Phase: {phase}
- Position: {position}
- Health: {health}
- Inventory: {inventory}
- Time elapsed: {elapsed} seconds
- Objectives: {objectives}

## Available Actions
{actions_section}
{history_section}
What should the bot do next? Respond with ONLY a JSON object:
{{
  "action": "action_name",
  "reason": "brief explanation",
  "priority": 1-10
}}"""


@dataclass
class ReasoningPrompts:
    """Manager for reasoning prompt templates.

    Attributes:
        version: Prompt version string.
        system_prompt: System prompt for the LLM.
        template: Situation prompt template.
    """

    version: str = PROMPT_VERSION
    system_prompt: str = SYSTEM_PROMPT
    template: str = REASONING_PROMPT_TEMPLATE

    def build_prompt(
        self,
        situation: Situation,
        actions: Sequence[ActionId],
        history: Iterable[dict[str, Any]] = (),
        max_chars: int = 4000,
    ) -> str:
        """Build a decision prompt no longer than `max_chars`.

        History entries are dropped oldest first until the prompt fits; if it
        still does not fit, the prompt is cut.

        Args:
            situation: Current snapshot.
            actions: Actions the model may choose from.
            history: Recent (situation, decision) records, oldest first.
            max_chars: Upper bound on the prompt length.

        Returns:
            Formatted prompt string.
        """
        summary = situation.summary()
        entries = list(history)

        while True:
            prompt = self.template.format(
                phase=summary["phase"] or "unknown",
                position=summary["position"],
                health=summary["health"],
                inventory=json.dumps(summary["inventory"]),
                elapsed=summary["elapsed_s"],
                objectives=json.dumps(summary["objectives"]),
                actions_section=self._format_actions(actions),
                history_section=self._format_history(entries),
            )
            if len(prompt) <= max_chars or not entries:
                break
            entries = entries[1:]

        return prompt[:max_chars]

    def _format_actions(self, actions: Sequence[ActionId]) -> str:
        lines = []
        for i, action in enumerate(actions, 1):
            description = ACTION_DESCRIPTIONS.get(action)
            lines.append(f"{i}. {action.value} - {description}" if description else f"{i}. {action.value}")
        return "\n".join(lines)

    def _format_history(self, entries: list[dict[str, Any]]) -> str:
        """Format recent decisions for the prompt.

        Returns:
            Formatted section, or an empty line when there is no history.
        """
        if not entries:
            return ""

        lines = ["", "## Recent Decisions"]
        for entry in entries:
            situation = entry.get("situation", {})
            lines.append(
                f"- [{situation.get('phase', '?')} @ {situation.get('elapsed_s', '?')}s] "
                f"{entry.get('action', '?')}: {entry.get('rationale', '')}"
            )
        lines.append("")
        return "\n".join(lines)
