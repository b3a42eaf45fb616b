"""Deterministic phase/task planner.

The planner is a pure function of its schedule: it holds no mutable state,
so the same elapsed time and Situation always yield the same phase and task.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from speedrun_agent.models.actions import ActionId
from speedrun_agent.models.situation import Situation
from speedrun_agent.strategy.phases import DEFAULT_SCHEDULE, Phase, Task

logger = logging.getLogger(__name__)


class PhasePlanner:
    """Pick the current phase and the next task from a fixed schedule.

    - current_phase: phase by elapsed time alone
    - next_task: highest-priority task not yet complete
    - resolve_phase_index: phase index that also accounts for finished phases
    """

    def __init__(self, schedule: Sequence[Phase] = DEFAULT_SCHEDULE) -> None:
        """Initialize the planner.

        Args:
            schedule: Phases in ascending threshold order.

        Raises:
            ValueError: If the schedule is empty or thresholds do not increase.
        """
        if not schedule:
            raise ValueError("Schedule must contain at least one phase")
        thresholds = [phase.threshold_s for phase in schedule]
        if any(later <= earlier for earlier, later in zip(thresholds, thresholds[1:])):
            raise ValueError("Phase thresholds must be strictly increasing")

        self._schedule = tuple(schedule)
        # Stable sort keeps declaration order on equal priority.
        self._ordered_tasks = {
            phase.name: tuple(sorted(phase.tasks, key=lambda t: -t.priority))
            for phase in self._schedule
        }

    @property
    def phases(self) -> tuple[Phase, ...]:
        """Get the schedule."""
        return self._schedule

    @property
    def phase_count(self) -> int:
        """Get the number of phases."""
        return len(self._schedule)

    def phase_at(self, index: int) -> Phase:
        """Get a phase by index, clamped to the schedule."""
        return self._schedule[max(0, min(index, len(self._schedule) - 1))]

    def time_index(self, elapsed_s: float) -> int:
        """Index of the first phase whose threshold has not been exceeded."""
        for index, phase in enumerate(self._schedule):
            if elapsed_s <= phase.threshold_s:
                return index
        return len(self._schedule) - 1

    def current_phase(self, elapsed_s: float) -> Phase:
        """Get the phase for an elapsed time.

        Once every threshold is exceeded the last phase is returned.
        """
        return self._schedule[self.time_index(elapsed_s)]

    def next_task(self, phase: Phase, situation: Situation) -> Task | None:
        """Get the highest-priority task of a phase that is not complete.

        Returns:
            The task, or None when every task in the phase is complete.
        """
        for task in self._ordered_tasks.get(phase.name, ()):
            if not task.is_complete(situation):
                return task
        return None

    def is_phase_complete(self, phase: Phase, situation: Situation) -> bool:
        """Check whether every task of a phase is complete."""
        return self.next_task(phase, situation) is None

    def rule_based_action(self, phase: Phase, situation: Situation) -> ActionId:
        """Action of the next task, or the phase default when none remains."""
        task = self.next_task(phase, situation)
        if task is None:
            return phase.default_action
        return task.action

    def resolve_phase_index(self, elapsed_s: float, situation: Situation, floor: int = 0) -> int:
        """Resolve the phase index for a tick.

        Starts at the later of `floor` and the time-based index, then moves
        forward past any phase whose tasks are all complete. The result is
        never below `floor`.

        Args:
            elapsed_s: Seconds since the run started.
            situation: Current snapshot.
            floor: Lowest index allowed (the previously reached phase).

        Returns:
            Phase index in [floor, phase_count - 1].
        """
        last = len(self._schedule) - 1
        index = min(max(floor, self.time_index(elapsed_s)), last)
        start = index
        while index < last and self.is_phase_complete(self._schedule[index], situation):
            index += 1
        if index != start:
            logger.debug(
                f"Skipped completed phases: {self._schedule[start].name} -> "
                f"{self._schedule[index].name}"
            )
        return max(index, min(floor, last))
