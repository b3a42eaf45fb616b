"""Model checkpoint layout: <dir>/policy.pt and <dir>/metadata.json."""

from __future__ import annotations

import json
import logging
import pickle
from datetime import datetime
from pathlib import Path
from typing import Any

import torch

logger = logging.getLogger(__name__)

POLICY_FILE = "policy.pt"
METADATA_FILE = "metadata.json"


class PersistenceError(Exception):
    """Error raised when a checkpoint cannot be written or read."""

    pass


def checkpoint_exists(directory: str | Path) -> bool:
    """Check whether both checkpoint files are present."""
    path = Path(directory)
    return (path / POLICY_FILE).is_file() and (path / METADATA_FILE).is_file()


def save_checkpoint(
    directory: str | Path,
    network_state: dict[str, Any],
    metadata: dict[str, Any],
) -> Path:
    """Write network parameters and metadata.

    Args:
        directory: Target directory (created if missing).
        network_state: The network's state_dict().
        metadata: JSON-serializable run information.

    Returns:
        The checkpoint directory.

    Raises:
        PersistenceError: If either file cannot be written.
    """
    save_dir = Path(directory)
    try:
        save_dir.mkdir(parents=True, exist_ok=True)
        torch.save(network_state, save_dir / POLICY_FILE)
        payload = {**metadata, "saved_at": datetime.now().isoformat()}
        (save_dir / METADATA_FILE).write_text(json.dumps(payload, indent=2), encoding="utf-8")
    except (OSError, RuntimeError, TypeError, ValueError) as e:
        raise PersistenceError(f"Failed to save checkpoint to {save_dir}: {e}") from e

    logger.debug(f"Checkpoint written to {save_dir}")
    return save_dir


def load_checkpoint(directory: str | Path) -> tuple[dict[str, Any], dict[str, Any]]:
    """Read network parameters and metadata.

    Args:
        directory: Checkpoint directory.

    Returns:
        Tuple of (network_state, metadata).

    Raises:
        FileNotFoundError: If either file is missing.
        PersistenceError: If a file exists but cannot be decoded.
    """
    path = Path(directory)
    policy_path = path / POLICY_FILE
    meta_path = path / METADATA_FILE

    if not policy_path.is_file() or not meta_path.is_file():
        raise FileNotFoundError(f"Checkpoint not found in {path} ({POLICY_FILE} / {METADATA_FILE})")

    try:
        metadata = json.loads(meta_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Corrupt checkpoint metadata in {meta_path}: {e}") from e
    if not isinstance(metadata, dict):
        raise PersistenceError(f"Checkpoint metadata in {meta_path} is not an object")

    try:
        network_state = torch.load(policy_path, map_location=torch.device("cpu"), weights_only=True)
    except (OSError, RuntimeError, EOFError, ValueError, pickle.UnpicklingError) as e:
        raise PersistenceError(f"Corrupt checkpoint parameters in {policy_path}: {e}") from e

    return network_state, metadata
