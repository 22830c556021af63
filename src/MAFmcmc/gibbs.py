"""
Generic Gibbs sampling over a model whose state is an immutable value.

A ParameterizedModel pairs a state and the data with an ordered list of
named parameter samplers. Each sampler exposes `sample(state, data)` and
returns a new value for the state attribute of the same name; the model
replaces its state wholesale after every step, so each step conditions on
the values produced earlier in the same sweep.
"""

import logging
from enum import Enum
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class ParameterSampler(Protocol):
    def sample(self, state: Any, data: Any) -> Any: ...


class GibbsStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class ParameterizedModel:
    """
    Current state, data and parameter samplers of a Gibbs-sampled model.

    Parameters
    ----------
    initial_state
        Immutable state exposing `replace(name, value)`.
    data
        Observations passed to every sampler.
    """

    def __init__(self, initial_state, data):
        self.state = initial_state
        self.data = data
        self._samplers: dict[str, ParameterSampler] = {}

    def add_parameter_sampler(
        self, name: str, sampler: ParameterSampler
    ) -> "ParameterizedModel":
        """Register a sampler; sweeps follow registration order."""
        if name in self._samplers:
            raise ValueError(f"Parameter {name!r} already has a sampler")
        self._samplers[name] = sampler
        return self

    @property
    def parameter_names(self) -> tuple:
        return tuple(self._samplers)

    def update(self, name: str):
        """Draw a new value of one parameter and replace the state with it."""
        value = self._samplers[name].sample(self.state, self.data)
        self.state = self.state.replace(name, value)
        return value


class GibbsSampler:
    """
    Runs sequential Gibbs sweeps over a ParameterizedModel.

    Every run starts from the model's current state, so repeated calls to
    `run` continue the same chain. Samples of the most recent run are kept
    per parameter in creation order.
    """

    def __init__(self, model: ParameterizedModel):
        if not model.parameter_names:
            raise ValueError("Model has no parameter samplers")
        self.model = model
        self.status = GibbsStatus.IDLE
        self.num_iterations = 0
        self._samples: dict[str, list] = {name: [] for name in model.parameter_names}

    def run(self, num_iterations: int) -> "GibbsSampler":
        """
        Perform num_iterations sweeps over all parameters.

        Parameters
        ----------
        num_iterations : int
            Number of sweeps.

        Returns
        -------
        GibbsSampler
            Self, for method chaining.
        """
        if num_iterations < 0:
            raise ValueError(f"num_iterations must be >= 0. Got {num_iterations}")

        self.status = GibbsStatus.RUNNING
        self.num_iterations = num_iterations
        self._samples = {name: [] for name in self.model.parameter_names}
        log_every = max(1, num_iterations // 10)

        for iteration in range(num_iterations):
            for name in self.model.parameter_names:
                self._samples[name].append(self.model.update(name))
            if (iteration + 1) % log_every == 0:
                logger.debug("Gibbs sweep %d / %d", iteration + 1, num_iterations)

        self.status = GibbsStatus.COMPLETED
        return self

    def get_samples(self, name: str, num_burn_in: int = 0) -> tuple:
        """
        Samples of one parameter from the last run, skipping burn-in.

        Parameters
        ----------
        name : str
            Parameter name.
        num_burn_in : int
            Number of leading sweeps to discard.

        Returns
        -------
        tuple
            Samples from sweeps num_burn_in .. num_iterations - 1.
        """
        if name not in self._samples:
            raise ValueError(f"Unknown parameter {name!r}")
        if not 0 <= num_burn_in <= self.num_iterations:
            raise ValueError(
                f"num_burn_in must be in [0, {self.num_iterations}]. Got {num_burn_in}"
            )
        return tuple(self._samples[name][num_burn_in:])

    def __repr__(self) -> str:
        return (
            f"GibbsSampler(parameters={list(self.model.parameter_names)}, "
            f"status={self.status.value}, num_iterations={self.num_iterations})"
        )
