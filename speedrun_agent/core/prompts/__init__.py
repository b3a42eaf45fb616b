"""Prompt templates for the reasoning client.

This package provides versioned, configurable prompt templates for
asking a language model to pick the next action.
"""

from speedrun_agent.core.prompts.reasoning_prompts import (
    PROMPT_VERSION,
    REASONING_PROMPT_TEMPLATE,
    SYSTEM_PROMPT,
    ReasoningPrompts,
)

__all__ = [
    "PROMPT_VERSION",
    "REASONING_PROMPT_TEMPLATE",
    "SYSTEM_PROMPT",
    "ReasoningPrompts",
]
