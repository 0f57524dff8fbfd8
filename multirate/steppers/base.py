"""Base interfaces for time steppers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple

from multirate.core.boundary_history import BoundaryHistory, Coupling
from multirate.core.history import History
from multirate.core.step_id import StepId
from multirate.core.time import Time, TimeDelta


class TimeStepper(ABC):
    """
    Interface of a multistep time stepper.

    A stepper holds no mutable state: all samples live in the History passed
    to each call, so one instance can serve any number of variables.
    """

    @property
    @abstractmethod
    def order(self) -> int:
        """Order of accuracy of the method."""
        pass

    @property
    @abstractmethod
    def error_estimate_order(self) -> int:
        """Order of the embedded method used for error estimates."""
        pass

    def monotonic(self) -> bool:
        """Whether the stepper only ever evaluates derivatives at increasing times."""
        return True

    @abstractmethod
    def update_u(self, value: Any, history: History, time_step: TimeDelta) -> Any:
        """
        Advance ``value`` over one step.

        Args:
            value: state at the time of the newest history entry
            history: samples of the variable, newest last
            time_step: size (and direction) of the step

        Returns:
            State at the end of the step.
        """
        pass

    @abstractmethod
    def update_u_with_error(
        self, value: Any, history: History, time_step: TimeDelta
    ) -> Tuple[Any, Any]:
        """Like update_u, also returning an estimate of the local error."""
        pass

    @abstractmethod
    def dense_output(self, value: Any, history: History, time: Time) -> Any:
        """State at an intermediate ``time`` of the current step, without side effects."""
        pass

    @abstractmethod
    def can_change_step_size(self, step_id: StepId, history: History) -> bool:
        """Whether the step size may change before the step starting at ``step_id``."""
        pass

    @abstractmethod
    def next_time_id(self, current: StepId, time_step: TimeDelta) -> StepId:
        """Id of the step following ``current``."""
        pass

    def state_dict(self) -> Dict[str, Any]:
        """Everything needed to rebuild the stepper from a checkpoint."""
        return {"order": self.order}


class LtsTimeStepper(TimeStepper):
    """Time stepper that can also couple boundaries stepping at different rates."""

    @abstractmethod
    def add_boundary_delta(
        self,
        value: Any,
        history: BoundaryHistory,
        time_step: TimeDelta,
        coupling: Coupling,
    ) -> Any:
        """
        Add the integrated boundary coupling over one local step.

        Args:
            value: quantity to update
            history: local and remote boundary samples
            time_step: local step size
            coupling: (local data, remote data) -> coupling value

        Returns:
            ``value`` plus the coupling integrated over the step.
        """
        pass

    @abstractmethod
    def boundary_dense_output(
        self,
        value: Any,
        history: BoundaryHistory,
        time: Time,
        coupling: Coupling,
    ) -> Any:
        """Boundary coupling integrated up to an intermediate ``time``."""
        pass

    @abstractmethod
    def clean_boundary_history(self, history: BoundaryHistory) -> None:
        """Drop boundary samples that no future coupling step can use."""
        pass

    @abstractmethod
    def neighbor_data_required(self, next_step_id: StepId, current_step_id: StepId) -> bool:
        """Whether data from ``current_step_id`` is needed to reach ``next_step_id``."""
        pass
