"""Loading of reasoning-service credentials from dotenv files."""

from __future__ import annotations

import os
import stat
from pathlib import Path

from dotenv import load_dotenv

# Environment variable holding the API key for each hosted provider.
PROVIDER_KEY_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

# A local Ollama server ignores the key, but the OpenAI SDK insists on one.
OLLAMA_PLACEHOLDER_KEY = "ollama"


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _find_env_file(env_file: str | Path | None, start_dir: Path) -> Path | None:
    """Resolve the dotenv path: explicit value, SPEEDRUN_ENV_FILE, cwd, project root."""
    explicit = env_file or os.environ.get("SPEEDRUN_ENV_FILE")
    if explicit:
        candidate = Path(explicit).expanduser()
        if not candidate.is_absolute():
            candidate = start_dir / candidate
        return candidate.resolve()

    for directory in (start_dir, _project_root()):
        candidate = (directory / ".env").resolve()
        if candidate.exists():
            return candidate
    return None


def _check_private(env_file: Path) -> None:
    """Refuse dotenv files that other users could read or swap out."""
    if os.name == "nt":
        return

    if env_file.is_symlink():
        raise PermissionError(f"Refusing to load dotenv symlink: {env_file}")

    info = env_file.stat()
    if hasattr(os, "getuid") and info.st_uid != os.getuid():
        raise PermissionError(f"Refusing to load dotenv owned by another user: {env_file}")

    if info.st_mode & (stat.S_IRWXG | stat.S_IRWXO):
        raise PermissionError(
            f"Insecure dotenv permissions for {env_file}. Restrict access with chmod 600."
        )


def load_environment_secrets(
    env_file: str | Path | None = None,
    *,
    override: bool = False,
    strict: bool = True,
    start_dir: Path | None = None,
) -> Path | None:
    """Load API keys from a private dotenv file into the environment.

    Args:
        env_file: Optional dotenv path. If omitted, checks `SPEEDRUN_ENV_FILE`,
            then `.env` in the working directory, then the project root.
        override: Whether dotenv values replace variables that are already set.
        strict: Whether an explicit but missing dotenv path should raise.
        start_dir: Base directory for relative paths (defaults to cwd).

    Returns:
        The loaded dotenv path, or None when no file was found.
    """
    base_dir = (start_dir or Path.cwd()).resolve()
    resolved = _find_env_file(env_file, base_dir)
    if resolved is None:
        return None

    if not resolved.exists():
        if strict:
            raise FileNotFoundError(f"Dotenv file not found: {resolved}")
        return None
    if not resolved.is_file():
        raise ValueError(f"Dotenv path is not a regular file: {resolved}")

    _check_private(resolved)
    load_dotenv(dotenv_path=str(resolved), override=override)
    return resolved


def resolve_api_key(provider: str, explicit: str | None = None) -> str | None:
    """Pick the API key for a reasoning provider.

    Args:
        provider: "ollama", "openai" or "anthropic".
        explicit: Key passed on the command line or in code; wins if set.

    Returns:
        The key, the Ollama placeholder, or None when a hosted provider has
        no key configured.
    """
    if explicit:
        return explicit
    if provider == "ollama":
        return OLLAMA_PLACEHOLDER_KEY
    env_var = PROVIDER_KEY_VARS.get(provider)
    return os.environ.get(env_var) if env_var else None
