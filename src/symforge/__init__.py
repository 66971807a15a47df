"""
SymForge: Symbolic regression by genetic programming.

Evolves populations of expression trees to fit a numeric target:
- Flattened postorder trees with a vectorized interpreter and reverse-mode
  differentiation of their coefficients
- Dominance degree non-dominated sorting for multi-objective fitness
- A parallel generational loop with pluggable operators
"""

__version__ = "0.1.0"

from symforge.data import Dataset, Problem, Range
from symforge.expression import Interpreter, Node, NodeType, PrimitiveSet, Tree
from symforge.evolution import (
    DominanceDegreeSorter,
    GeneticAlgorithmConfig,
    GeneticProgrammingAlgorithm,
    Individual,
)

__all__ = [
    "__version__",
    "Dataset",
    "Problem",
    "Range",
    "Interpreter",
    "Node",
    "NodeType",
    "PrimitiveSet",
    "Tree",
    "DominanceDegreeSorter",
    "GeneticAlgorithmConfig",
    "GeneticProgrammingAlgorithm",
    "Individual",
]
