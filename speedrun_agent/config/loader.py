"""Configuration loader for the speedrun agent.

Loads configuration from YAML files and environment variables.
Environment variables override YAML values using the SPEEDRUN_ prefix.
Nested keys use double underscores: SPEEDRUN_RUN__TIME_BUDGET_S=600
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator


class RunConfig(BaseModel):
    """Decision loop settings."""

    time_budget_s: float = Field(default=900.0, gt=0, description="Wall-clock budget in seconds")
    tick_interval_s: float = Field(default=0.5, ge=0.0, le=60.0, description="Pause between ticks")
    train_every: int = Field(default=1, ge=1, description="Train once every N ticks")
    error_backoff_s: float = Field(default=1.0, ge=0.0, le=60.0)
    checkpoint_every: int = Field(default=200, ge=0, description="Save the model every N ticks (0=off)")
    max_ticks: int | None = Field(default=None, ge=1)


class EncoderSettings(BaseModel):
    """State vector layout and normalization constants."""

    state_size: int = Field(default=24, ge=1, le=1024)
    resource_cap: float = Field(default=64.0, gt=0)
    world_scale_xz: float = Field(default=1000.0, gt=0)
    world_scale_y: float = Field(default=256.0, gt=0)
    max_health: float = Field(default=20.0, gt=0)


class RewardSettings(BaseModel):
    """Reward shaping magnitudes."""

    step_penalty: float = Field(default=0.1, ge=0.0)
    resource_weights: dict[str, float] = Field(
        default_factory=lambda: {
            "wood": 1.0,
            "cobblestone": 0.5,
            "iron": 2.0,
            "obsidian": 3.0,
            "ender_pearls": 4.0,
            "blaze_rods": 5.0,
            "ender_eyes": 6.0,
            "diamonds": 10.0,
        }
    )
    milestone_bonuses: dict[str, float] = Field(
        default_factory=lambda: {
            "has_wooden_tools": 5.0,
            "has_stone_tools": 5.0,
            "has_iron_tools": 10.0,
            "has_diamonds": 20.0,
            "entered_nether": 30.0,
            "found_stronghold": 50.0,
            "entered_end": 100.0,
        }
    )
    terminal_bonus: float = Field(default=1000.0, ge=0.0)
    time_penalty: float = Field(default=0.1, ge=0.0)


class LearnerSettings(BaseModel):
    """Q-learning settings."""

    enabled: bool = Field(default=True)
    model_dir: str = Field(default="models/rl-model")
    hidden_sizes: list[int] = Field(default_factory=lambda: [128, 128, 64])
    learning_rate: float = Field(default=0.001, gt=0.0, le=1.0)
    gamma: float = Field(default=0.95, ge=0.0, le=1.0)
    epsilon_start: float = Field(default=1.0, ge=0.0, le=1.0)
    epsilon_min: float = Field(default=0.01, ge=0.0, le=1.0)
    epsilon_decay: float = Field(default=0.995, gt=0.0, le=1.0)
    buffer_capacity: int = Field(default=10000, ge=1)
    batch_size: int = Field(default=32, ge=1)
    seed: int | None = Field(default=None)

    @model_validator(mode="after")
    def _check_epsilon_bounds(self) -> LearnerSettings:
        if self.epsilon_min > self.epsilon_start:
            raise ValueError("epsilon_min must not exceed epsilon_start")
        if self.batch_size > self.buffer_capacity:
            raise ValueError("batch_size must not exceed buffer_capacity")
        return self


class ReasoningSettings(BaseModel):
    """Reasoning service (LLM) settings."""

    enabled: bool = Field(default=True)
    provider: str = Field(default="ollama", pattern="^(ollama|openai|anthropic)$")
    base_url: str | None = Field(default="http://localhost:11434/v1")
    model: str | None = Field(default=None)
    preferred_models: list[str] = Field(default_factory=lambda: ["llama3", "mistral"])
    timeout_s: float = Field(default=10.0, gt=0.0, le=300.0)
    max_retries: int = Field(default=1, ge=1, le=10)
    retry_delay: float = Field(default=0.5, ge=0.0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: float = Field(default=0.9, gt=0.0, le=1.0)
    max_tokens: int = Field(default=150, ge=1, le=100000)
    history_size: int = Field(default=20, ge=0, le=1000)
    max_prompt_chars: int = Field(default=4000, ge=200)
    default_action: str = Field(default="explore")
    phase_defaults: dict[str, str] = Field(default_factory=dict)


class ArbiterSettings(BaseModel):
    """Per-tick arbitration settings."""

    learned_timeout_s: float = Field(default=1.0, gt=0.0)
    reasoning_timeout_s: float = Field(default=15.0, gt=0.0)


class ActuatorSettings(BaseModel):
    """Skill execution settings."""

    navigation_timeout_s: float = Field(default=30.0, gt=0.0)
    search_radius: float = Field(default=64.0, gt=0.0)
    explore_radius: float = Field(default=20.0, gt=0.0)
    max_strikes: int = Field(default=20, ge=1)


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    format: str = Field(default="readable", pattern="^(readable|json)$")


class Config(BaseModel):
    """Root configuration model."""

    run: RunConfig = Field(default_factory=RunConfig)
    encoder: EncoderSettings = Field(default_factory=EncoderSettings)
    rewards: RewardSettings = Field(default_factory=RewardSettings)
    learner: LearnerSettings = Field(default_factory=LearnerSettings)
    reasoning: ReasoningSettings = Field(default_factory=ReasoningSettings)
    arbiter: ArbiterSettings = Field(default_factory=ArbiterSettings)
    actuator: ActuatorSettings = Field(default_factory=ActuatorSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _get_env_value(key: str) -> str | None:
    """Get environment variable with SPEEDRUN_ prefix."""
    env_key = f"SPEEDRUN_{key.upper()}"
    return os.environ.get(env_key)


def _apply_env_overrides(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Apply environment variable overrides to config data.

    Environment variables use SPEEDRUN_ prefix with double underscores for nesting.
    Example: SPEEDRUN_LEARNER__BATCH_SIZE=64 sets learner.batch_size to 64.
    Only keys present in the data (file values or model defaults) are overridable.
    """
    result = data.copy()

    for key, value in result.items():
        env_key = f"{prefix}__{key}" if prefix else key

        if isinstance(value, dict):
            result[key] = _apply_env_overrides(value, env_key)
        else:
            env_value = _get_env_value(env_key)
            if env_value is not None:
                # Convert to appropriate type based on original value
                if isinstance(value, bool):
                    result[key] = env_value.lower() in ("true", "1", "yes")
                elif isinstance(value, int):
                    result[key] = int(env_value)
                elif isinstance(value, float):
                    result[key] = float(env_value)
                elif isinstance(value, list):
                    result[key] = [item.strip() for item in env_value.split(",") if item.strip()]
                else:
                    result[key] = env_value

    return result


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Deep merge updates into base dict."""
    result = base.copy()

    for key, value in updates.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def default_config_path() -> Path:
    """Path of the bundled default.yaml relative to the project root."""
    project_root = Path(__file__).parent.parent.parent
    return project_root / "configs" / "default.yaml"


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default.yaml.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config values are invalid.
    """
    config_path = default_config_path() if config_path is None else Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    # Overrides apply to every known key, including ones the file leaves out.
    data = _deep_merge(Config().model_dump(), data)
    data = _apply_env_overrides(data)

    return Config.model_validate(data)


def get_default_config() -> Config:
    """Get default configuration without loading from file."""
    return Config()
