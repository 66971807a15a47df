"""Column-major numeric dataset with hashed variables.

Trees reference variables by a 64-bit hash of the column name, so a tree
stays meaningful across datasets that share column names regardless of column
order.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Union
import hashlib
import logging
import random

import numpy as np
import pandas as pd

from symforge.errors import ConfigurationError

logger = logging.getLogger(__name__)


def variable_hash(name: str) -> int:
    """Stable 64-bit hash of a variable name."""
    digest = hashlib.blake2b(name.encode(), digest_size=8).digest()
    return int.from_bytes(digest, "little")


@dataclass(frozen=True)
class Variable:
    """A named dataset column.

    Attributes:
        name: Column name
        hash: 64-bit hash of the name, referenced by variable nodes
        index: Column index in the dataset
    """

    name: str
    hash: int
    index: int


@dataclass(frozen=True)
class Range:
    """Half-open row interval ``[start, end)``."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ConfigurationError(f"Invalid range [{self.start}, {self.end})")

    @property
    def size(self) -> int:
        return self.end - self.start

    @property
    def slice(self) -> slice:
        return slice(self.start, self.end)

    @classmethod
    def parse(cls, text: str) -> "Range":
        """Parse ``"start:end"``."""
        try:
            start, end = (int(part) for part in text.split(":"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid range '{text}', expected start:end") from e
        return cls(start, end)

    def __str__(self) -> str:
        return f"[{self.start}, {self.end})"


VariableKey = Union[str, int]


class Dataset:
    """Numeric matrix (rows x columns) with named, hashed columns.

    Args:
        values: 2-D array of shape (rows, cols)
        names: Column names (defaults to X1..Xn)
    """

    def __init__(self, values: np.ndarray, names: Sequence[str] | None = None):
        values = np.asarray(values, dtype=np.float64)
        if values.ndim != 2:
            raise ConfigurationError(f"Dataset values must be 2-D, got shape {values.shape}")
        if names is None:
            names = [f"X{i + 1}" for i in range(values.shape[1])]
        if len(names) != values.shape[1]:
            raise ConfigurationError(
                f"Got {len(names)} names for {values.shape[1]} columns"
            )
        if len(set(names)) != len(names):
            raise ConfigurationError("Column names must be unique")

        self._values = np.asfortranarray(values)
        self._variables = [
            Variable(name=str(name), hash=variable_hash(str(name)), index=i)
            for i, name in enumerate(names)
        ]
        self._by_name = {v.name: v for v in self._variables}
        self._by_hash = {v.hash: v for v in self._variables}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "Dataset":
        """Build from the numeric columns of a DataFrame."""
        numeric = df.select_dtypes(include=[np.number])
        dropped = [c for c in df.columns if c not in numeric.columns]
        if dropped:
            logger.warning(f"Ignoring non-numeric columns: {dropped}")
        return cls(numeric.to_numpy(dtype=np.float64), [str(c) for c in numeric.columns])

    @classmethod
    def from_csv(cls, path: str | Path, **kwargs) -> "Dataset":
        """Load a CSV file with a header row."""
        df = pd.read_csv(path, **kwargs)
        logger.info(f"Loaded {len(df)} rows x {len(df.columns)} columns from {path}")
        return cls.from_frame(df)

    @classmethod
    def from_arrays(cls, names: Sequence[str], columns: Sequence[Sequence[float]]) -> "Dataset":
        """Build from a list of equally long columns."""
        lengths = {len(c) for c in columns}
        if len(lengths) > 1:
            raise ConfigurationError(f"Columns have different lengths: {sorted(lengths)}")
        return cls(np.column_stack([np.asarray(c, dtype=np.float64) for c in columns]), names)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def rows(self) -> int:
        return self._values.shape[0]

    @property
    def cols(self) -> int:
        return self._values.shape[1]

    @property
    def variables(self) -> list[Variable]:
        return list(self._variables)

    @property
    def variable_names(self) -> list[str]:
        return [v.name for v in self._variables]

    def get_variable(self, key: VariableKey) -> Variable:
        """Look up a variable by name or hash."""
        if isinstance(key, str):
            variable = self._by_name.get(key)
        else:
            variable = self._by_hash.get(key)
        if variable is None:
            raise KeyError(f"Unknown variable: {key}")
        return variable

    def get_values(self, key: VariableKey, range: Range | None = None) -> np.ndarray:
        """Column values by name, hash or column index."""
        if isinstance(key, (int, np.integer)) and 0 <= key < self.cols and key not in self._by_hash:
            index = int(key)
        else:
            index = self.get_variable(key).index
        return self._values[self.row_slice(range), index]

    def row_slice(self, range: Range | None = None) -> slice:
        if range is None:
            return slice(0, self.rows)
        if range.end > self.rows:
            raise ConfigurationError(f"Range {range} exceeds dataset rows ({self.rows})")
        return range.slice

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def shuffle(self, rng: random.Random) -> None:
        """Permute the rows in place."""
        order = list(range(self.rows))
        rng.shuffle(order)
        self._values = np.asfortranarray(self._values[order])

    def standardize(self, index: int, range: Range | None = None) -> None:
        """Center and scale column ``index`` using statistics over ``range``."""
        column = self._values[self.row_slice(range), index]
        mean = column.mean()
        std = column.std()
        if std == 0:
            logger.warning(f"Column {self._variables[index].name} has zero variance")
            std = 1.0
        self._values[:, index] = (self._values[:, index] - mean) / std

    def normalize(self, index: int, range: Range | None = None) -> None:
        """Rescale column ``index`` to [0, 1] using bounds over ``range``."""
        column = self._values[self.row_slice(range), index]
        lo, hi = column.min(), column.max()
        span = hi - lo if hi > lo else 1.0
        self._values[:, index] = (self._values[:, index] - lo) / span

    def copy(self) -> "Dataset":
        return Dataset(self._values.copy(), self.variable_names)

    def __repr__(self) -> str:
        return f"Dataset(rows={self.rows}, cols={self.cols})"
