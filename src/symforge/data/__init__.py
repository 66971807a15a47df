"""Datasets, row ranges and regression problems."""

from symforge.data.dataset import Dataset, Range, Variable, variable_hash
from symforge.data.problem import Problem

__all__ = [
    "Dataset",
    "Range",
    "Variable",
    "variable_hash",
    "Problem",
]
