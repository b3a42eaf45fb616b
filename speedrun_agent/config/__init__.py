"""Configuration management for the speedrun agent."""

from speedrun_agent.config.loader import Config, get_default_config, load_config
from speedrun_agent.config.secrets import load_environment_secrets, resolve_api_key

__all__ = [
    "Config",
    "get_default_config",
    "load_config",
    "load_environment_secrets",
    "resolve_api_key",
]
