"""Online Q-learning with experience replay.

This module provides the ReinforcementLearner class that:
- Selects actions epsilon-greedily over a fixed action space
- Stores transitions in a bounded replay buffer
- Trains the Q-value model one batch at a time (one-step Bellman backup)
- Saves and restores the model as a directory checkpoint

Training failures never escape: the step is skipped, logged, and both
epsilon and model parameters stay as they were.

Example:
    >>> learner = ReinforcementLearner(LearnerConfig(state_size=24))
    >>> action = learner.select_action(state, [ActionId.GATHER_WOOD, ActionId.EXPLORE])
    >>> learner.remember(Transition(state, 0, reward, next_state, False))
    >>> result = learner.train_step()
    >>> learner.save("models/rl-model")
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from speedrun_agent.learning.checkpoint import (
    PersistenceError,
    checkpoint_exists,
    load_checkpoint,
    save_checkpoint,
)
from speedrun_agent.learning.network import QValueModel, TorchQModel
from speedrun_agent.learning.replay import ReplayBuffer, Transition
from speedrun_agent.models.actions import LEARNED_ACTIONS, ActionId

logger = logging.getLogger(__name__)


@dataclass
class LearnerConfig:
    """Configuration for the reinforcement learner.

    Attributes:
        state_size: Length of encoded states.
        model_dir: Default checkpoint directory.
        hidden_sizes: Hidden layer widths of the Q-network.
        learning_rate: Optimizer learning rate.
        gamma: Discount factor.
        epsilon_start: Initial exploration rate.
        epsilon_min: Exploration floor.
        epsilon_decay: Multiplicative decay per successful training step.
        buffer_capacity: Replay buffer size.
        batch_size: Transitions per training step.
        seed: Seed for exploration, sampling and initialization.
    """

    state_size: int = 24
    model_dir: str = "models/rl-model"
    hidden_sizes: list[int] = field(default_factory=lambda: [128, 128, 64])
    learning_rate: float = 0.001
    gamma: float = 0.95
    epsilon_start: float = 1.0
    epsilon_min: float = 0.01
    epsilon_decay: float = 0.995
    buffer_capacity: int = 10000
    batch_size: int = 32
    seed: int | None = None


@dataclass(frozen=True)
class TrainStepResult:
    """Outcome of one successful training step."""

    loss: float
    epsilon: float
    batch_size: int
    step: int


class ReinforcementLearner:
    """Epsilon-greedy Q-learner with replay.

    Attributes:
        epsilon: Current exploration rate.
        train_steps: Number of successful training steps.
        model_loaded: Whether parameters were restored from a checkpoint.
    """

    def __init__(
        self,
        config: LearnerConfig | None = None,
        actions: Sequence[ActionId] = LEARNED_ACTIONS,
        model: QValueModel | None = None,
        buffer: ReplayBuffer | None = None,
    ) -> None:
        """Initialize the learner.

        Args:
            config: Learner configuration. Uses defaults if None.
            actions: Action space; index order is the model's output order.
            model: Q-value model. Builds a TorchQModel if None.
            buffer: Replay buffer. Builds one of buffer_capacity if None.

        Raises:
            ValueError: If the action space is empty or the model's shape
                does not match the configuration.
        """
        self._config = config or LearnerConfig()
        if not actions:
            raise ValueError("Action space must not be empty")

        self._actions = tuple(actions)
        self._action_index = {action: i for i, action in enumerate(self._actions)}
        self._model = model if model is not None else TorchQModel(
            state_size=self._config.state_size,
            action_count=len(self._actions),
            hidden_sizes=self._config.hidden_sizes,
            learning_rate=self._config.learning_rate,
            seed=self._config.seed,
        )
        if self._model.state_size != self._config.state_size:
            raise ValueError(
                f"Model state size {self._model.state_size} != {self._config.state_size}"
            )
        if self._model.action_count != len(self._actions):
            raise ValueError(
                f"Model action count {self._model.action_count} != {len(self._actions)}"
            )

        if buffer is None:
            buffer = ReplayBuffer(self._config.buffer_capacity, seed=self._config.seed)
        self._buffer = buffer
        self._rng = np.random.default_rng(self._config.seed)
        self._epsilon = self._config.epsilon_start
        self._train_steps = 0
        self._failed_steps = 0
        self._last_loss: float | None = None
        self._model_loaded = False
        # Serializes model access between the loop and a strategy worker thread.
        self._model_lock = threading.Lock()

        logger.debug(
            f"ReinforcementLearner initialized: state_size={self._config.state_size}, "
            f"actions={len(self._actions)}, epsilon={self._epsilon}"
        )

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @property
    def train_steps(self) -> int:
        return self._train_steps

    @property
    def failed_steps(self) -> int:
        return self._failed_steps

    @property
    def last_loss(self) -> float | None:
        return self._last_loss

    @property
    def model_loaded(self) -> bool:
        return self._model_loaded

    @property
    def actions(self) -> tuple[ActionId, ...]:
        return self._actions

    @property
    def buffer(self) -> ReplayBuffer:
        return self._buffer

    @property
    def config(self) -> LearnerConfig:
        return self._config

    def action_index(self, action: ActionId) -> int | None:
        """Index of an action in the model output, or None if not learnable."""
        return self._action_index.get(action)

    def select_action(self, state: np.ndarray, available_actions: Sequence[ActionId]) -> ActionId:
        """Pick an action epsilon-greedily.

        With probability epsilon a uniformly random available action is
        returned. Otherwise the available action with the highest estimate
        wins, ties going to the earliest entry of `available_actions`.
        Actions outside the learner's action space can only be picked at
        random.

        Args:
            state: Encoded state.
            available_actions: Candidate actions, in preference order.

        Returns:
            The chosen action.

        Raises:
            ValueError: If no actions are available.
        """
        if not available_actions:
            raise ValueError("No available actions to select from")

        if self._rng.random() < self._epsilon:
            return available_actions[int(self._rng.integers(len(available_actions)))]

        learnable = [a for a in available_actions if a in self._action_index]
        if not learnable:
            return available_actions[int(self._rng.integers(len(available_actions)))]

        with self._model_lock:
            values = self._model.predict(np.asarray(state, dtype=np.float32)[np.newaxis, :])[0]
        best_action = learnable[0]
        best_value = values[self._action_index[best_action]]
        for action in learnable[1:]:
            value = values[self._action_index[action]]
            if value > best_value:
                best_action, best_value = action, value
        return best_action

    def remember(self, transition: Transition) -> None:
        """Store a transition for later training."""
        self._buffer.append(transition)

    def record(
        self,
        state: np.ndarray,
        action: ActionId,
        reward: float,
        next_state: np.ndarray,
        terminal: bool,
    ) -> bool:
        """Store a transition given an action id.

        Returns:
            False when the action is outside the action space (nothing stored).
        """
        index = self.action_index(action)
        if index is None:
            return False
        self.remember(Transition(state, index, float(reward), next_state, bool(terminal)))
        return True

    def train_step(self) -> TrainStepResult | None:
        """Run one training step on a sampled batch.

        Returns:
            The step result, or None when the buffer holds fewer than
            batch_size transitions or the step failed.
        """
        config = self._config
        batch = self._buffer.sample(config.batch_size)
        if not batch:
            return None

        with self._model_lock:
            snapshot = self._model.state_dict()
            try:
                loss = self._fit_batch(batch)
            except Exception as e:
                self._failed_steps += 1
                logger.warning(f"Training step failed, keeping previous parameters: {e}")
                self._model.load_state_dict(snapshot)
                return None

        self._epsilon = max(config.epsilon_min, self._epsilon * config.epsilon_decay)
        self._train_steps += 1
        self._last_loss = loss

        logger.debug(
            f"Training step {self._train_steps}: loss={loss:.4f}, epsilon={self._epsilon:.4f}"
        )
        return TrainStepResult(
            loss=loss,
            epsilon=self._epsilon,
            batch_size=len(batch),
            step=self._train_steps,
        )

    def _fit_batch(self, batch: list[Transition]) -> float:
        """One Bellman-backup update on a batch; returns the loss."""
        states = np.stack([t.state for t in batch]).astype(np.float32)
        next_states = np.stack([t.next_state for t in batch]).astype(np.float32)
        actions = np.array([t.action for t in batch], dtype=np.int64)
        rewards = np.array([t.reward for t in batch], dtype=np.float32)
        terminals = np.array([t.terminal for t in batch], dtype=bool)

        next_values = self._model.predict(next_states).max(axis=1)
        targets = np.where(terminals, rewards, rewards + self._config.gamma * next_values)
        if not np.all(np.isfinite(targets)):
            raise ValueError("Non-finite training targets")

        return self._model.train_step(states, actions, targets.astype(np.float32))

    def _metadata(self) -> dict[str, object]:
        return {
            "state_size": self._config.state_size,
            "actions": [action.value for action in self._actions],
            "hidden_sizes": list(self._config.hidden_sizes),
            "epsilon": self._epsilon,
            "train_steps": self._train_steps,
            "gamma": self._config.gamma,
        }

    def save(self, location: str | Path | None = None) -> bool:
        """Save the model checkpoint.

        Args:
            location: Checkpoint directory. Uses config.model_dir if None.

        Returns:
            True if written. Failures are logged, not raised.
        """
        directory = Path(location or self._config.model_dir)
        with self._model_lock:
            state = self._model.state_dict()
        try:
            save_checkpoint(directory, state, self._metadata())
        except PersistenceError as e:
            logger.error(f"Could not save model: {e}")
            return False
        logger.info(f"Model saved to {directory} (epsilon={self._epsilon:.4f})")
        return True

    def load(self, location: str | Path | None = None) -> bool:
        """Restore the model checkpoint.

        A missing, corrupt or incompatible checkpoint keeps the current
        parameters.

        Args:
            location: Checkpoint directory. Uses config.model_dir if None.

        Returns:
            True if parameters were restored.
        """
        directory = Path(location or self._config.model_dir)
        if not checkpoint_exists(directory):
            logger.info(f"No saved model in {directory}, starting fresh")
            return False

        try:
            state, metadata = load_checkpoint(directory)
        except (FileNotFoundError, PersistenceError) as e:
            logger.warning(f"Could not load model: {e}")
            return False

        expected_actions = [action.value for action in self._actions]
        if metadata.get("state_size") != self._config.state_size:
            logger.warning(
                f"Saved model state size {metadata.get('state_size')} != "
                f"{self._config.state_size}, starting fresh"
            )
            return False
        if metadata.get("actions") != expected_actions:
            logger.warning("Saved model action space differs, starting fresh")
            return False

        with self._model_lock:
            snapshot = self._model.state_dict()
            try:
                self._model.load_state_dict(state)
            except Exception as e:
                logger.warning(f"Could not restore model parameters: {e}")
                self._model.load_state_dict(snapshot)
                return False

        saved_epsilon = metadata.get("epsilon")
        if isinstance(saved_epsilon, (int, float)):
            self._epsilon = min(
                self._config.epsilon_start, max(self._config.epsilon_min, float(saved_epsilon))
            )
        saved_steps = metadata.get("train_steps")
        if isinstance(saved_steps, int):
            self._train_steps = saved_steps

        self._model_loaded = True
        logger.info(f"Model loaded from {directory} (epsilon={self._epsilon:.4f})")
        return True
