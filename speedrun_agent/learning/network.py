"""Q-value approximators.

The learner only talks to the narrow QValueModel interface; TorchQModel is
the concrete backend (a ReLU MLP trained with Adam on squared error).
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import numpy as np
import torch
from torch import nn


class TrainingError(Exception):
    """Error raised when an optimization step fails or diverges."""

    pass


class QValueModel(ABC):
    """State -> per-action value estimates."""

    @property
    @abstractmethod
    def state_size(self) -> int:
        """Length of an input state."""
        ...

    @property
    @abstractmethod
    def action_count(self) -> int:
        """Number of output values."""
        ...

    @abstractmethod
    def predict(self, states: np.ndarray) -> np.ndarray:
        """Estimate values.

        Args:
            states: Array of shape [batch, state_size].

        Returns:
            Array of shape [batch, action_count].
        """
        ...

    @abstractmethod
    def train_step(self, states: np.ndarray, actions: np.ndarray, targets: np.ndarray) -> float:
        """Run one optimization step on the taken actions' values.

        Args:
            states: Array of shape [batch, state_size].
            actions: Action indices, shape [batch].
            targets: Target values, shape [batch].

        Returns:
            The loss before the update.

        Raises:
            TrainingError: If the step fails or the loss is not finite.
        """
        ...

    @abstractmethod
    def state_dict(self) -> dict[str, Any]:
        """Snapshot of all trainable state."""
        ...

    @abstractmethod
    def load_state_dict(self, state: dict[str, Any]) -> None:
        """Restore a snapshot taken with state_dict()."""
        ...


class QNetwork(nn.Module):
    """Fully connected ReLU network with one linear output per action."""

    def __init__(self, state_size: int, action_count: int, hidden_sizes: Sequence[int]) -> None:
        super().__init__()
        layers: list[nn.Module] = []
        width = state_size
        for hidden in hidden_sizes:
            layers.append(nn.Linear(width, hidden))
            layers.append(nn.ReLU())
            width = hidden
        layers.append(nn.Linear(width, action_count))
        self.layers = nn.Sequential(*layers)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.layers(x)


class TorchQModel(QValueModel):
    """QValueModel backed by a torch QNetwork on CPU."""

    def __init__(
        self,
        state_size: int,
        action_count: int,
        hidden_sizes: Sequence[int] = (128, 128, 64),
        learning_rate: float = 0.001,
        seed: int | None = None,
    ) -> None:
        """Initialize the model.

        Args:
            state_size: Input length.
            action_count: Output length.
            hidden_sizes: Width of each hidden layer.
            learning_rate: Adam learning rate.
            seed: Seed for parameter initialization.
        """
        if seed is not None:
            torch.manual_seed(seed)
        self._state_size = state_size
        self._action_count = action_count
        self._device = torch.device("cpu")
        self.net = QNetwork(state_size, action_count, hidden_sizes).to(self._device)
        self.optimizer = torch.optim.Adam(self.net.parameters(), lr=learning_rate)
        self.loss_fn = nn.MSELoss()

    @property
    def state_size(self) -> int:
        return self._state_size

    @property
    def action_count(self) -> int:
        return self._action_count

    def predict(self, states: np.ndarray) -> np.ndarray:
        batch = torch.as_tensor(np.asarray(states, dtype=np.float32), device=self._device)
        if batch.dim() == 1:
            batch = batch.unsqueeze(0)
        self.net.eval()
        with torch.no_grad():
            values = self.net(batch)
        return values.cpu().numpy()

    def train_step(self, states: np.ndarray, actions: np.ndarray, targets: np.ndarray) -> float:
        states_t = torch.as_tensor(np.asarray(states, dtype=np.float32), device=self._device)
        actions_t = torch.as_tensor(np.asarray(actions, dtype=np.int64), device=self._device)
        targets_t = torch.as_tensor(np.asarray(targets, dtype=np.float32), device=self._device)

        self.net.train()
        values = self.net(states_t).gather(1, actions_t.unsqueeze(1)).squeeze(1)
        loss = self.loss_fn(values, targets_t)
        if not torch.isfinite(loss):
            raise TrainingError(f"Non-finite loss: {loss.item()}")

        self.optimizer.zero_grad()
        loss.backward()
        self.optimizer.step()
        return float(loss.item())

    def state_dict(self) -> dict[str, Any]:
        return {
            "network": {k: v.detach().clone() for k, v in self.net.state_dict().items()},
            "optimizer": copy.deepcopy(self.optimizer.state_dict()),
        }

    def load_state_dict(self, state: dict[str, Any]) -> None:
        self.net.load_state_dict(state["network"])
        if "optimizer" in state:
            self.optimizer.load_state_dict(state["optimizer"])
