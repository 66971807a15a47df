"""Regression problem definition."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from symforge.data.dataset import Dataset, Range, Variable
from symforge.errors import ConfigurationError
from symforge.expression.types import PrimitiveSet


class Problem:
    """A dataset with a target column, input columns, and train/test ranges.

    Args:
        dataset: Source data
        target: Name of the target column
        training_range: Rows used for fitting
        test_range: Rows held out for reporting
        inputs: Input column names (defaults to every column except the target)
        primitive_set: Grammar for tree construction (defaults to arithmetic)
    """

    def __init__(
        self,
        dataset: Dataset,
        target: str,
        training_range: Range,
        test_range: Range | None = None,
        inputs: Sequence[str] | None = None,
        primitive_set: PrimitiveSet | None = None,
    ):
        if target not in dataset.variable_names:
            raise ConfigurationError(f"Target '{target}' not found in dataset")

        for name, rng in (("training", training_range), ("test", test_range)):
            if rng is None:
                continue
            if rng.size == 0:
                raise ConfigurationError(f"The {name} range is empty")
            if rng.end > dataset.rows:
                raise ConfigurationError(
                    f"The {name} range {rng} exceeds the dataset ({dataset.rows} rows)"
                )

        if inputs is None:
            inputs = [name for name in dataset.variable_names if name != target]
        unknown = [name for name in inputs if name not in dataset.variable_names]
        if unknown:
            raise ConfigurationError(f"Unknown input variables: {unknown}")
        if target in inputs:
            raise ConfigurationError("The target cannot also be an input")
        if not inputs:
            raise ConfigurationError("At least one input variable is required")

        self.dataset = dataset
        self.training_range = training_range
        self.test_range = test_range
        self.primitive_set = primitive_set if primitive_set is not None else PrimitiveSet()
        self._target = dataset.get_variable(target)
        self._inputs = [dataset.get_variable(name) for name in inputs]

    @property
    def target_variable(self) -> Variable:
        return self._target

    @property
    def input_variables(self) -> list[Variable]:
        return list(self._inputs)

    def target_values(self, range: Range | None = None) -> np.ndarray:
        return self.dataset.get_values(self._target.hash, range)

    def standardize_data(self, range: Range | None = None) -> None:
        """Standardize every input column using statistics over ``range``."""
        range = self.training_range if range is None else range
        for variable in self._inputs:
            self.dataset.standardize(variable.index, range)

    def __repr__(self) -> str:
        return (
            f"Problem(target={self._target.name}, inputs={len(self._inputs)}, "
            f"train={self.training_range}, test={self.test_range})"
        )
