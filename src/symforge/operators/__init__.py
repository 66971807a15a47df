"""Genetic operators: creation, variation, evaluation, selection, replacement."""

from symforge.operators.creator import (
    BalancedTreeCreator,
    GrowTreeCreator,
    UniformTreeInitializer,
)
from symforge.operators.crossover import SubtreeCrossover
from symforge.operators.evaluator import (
    ErrorEvaluator,
    Evaluator,
    LengthEvaluator,
    MultiEvaluator,
)
from symforge.operators.generator import (
    BasicOffspringGenerator,
    OffspringSelectionGenerator,
    parse_generator,
)
from symforge.operators.initializer import (
    NormalCoefficientInitializer,
    UniformCoefficientInitializer,
)
from symforge.operators.mutation import (
    ChangeFunctionMutation,
    ChangeVariableMutation,
    InsertSubtreeMutation,
    MultiMutation,
    OnePointMutation,
    RemoveSubtreeMutation,
    ReplaceSubtreeMutation,
)
from symforge.operators.reinserter import (
    KeepBestReinserter,
    NonDominatedReinserter,
    ReplaceWorstReinserter,
    parse_reinserter,
)
from symforge.operators.selection import (
    CrowdedTournamentSelector,
    RandomSelector,
    TournamentSelector,
    parse_selector,
)

__all__ = [
    "BalancedTreeCreator",
    "GrowTreeCreator",
    "UniformTreeInitializer",
    "SubtreeCrossover",
    "ErrorEvaluator",
    "Evaluator",
    "LengthEvaluator",
    "MultiEvaluator",
    "BasicOffspringGenerator",
    "OffspringSelectionGenerator",
    "parse_generator",
    "NormalCoefficientInitializer",
    "UniformCoefficientInitializer",
    "ChangeFunctionMutation",
    "ChangeVariableMutation",
    "InsertSubtreeMutation",
    "MultiMutation",
    "OnePointMutation",
    "RemoveSubtreeMutation",
    "ReplaceSubtreeMutation",
    "KeepBestReinserter",
    "NonDominatedReinserter",
    "ReplaceWorstReinserter",
    "parse_reinserter",
    "CrowdedTournamentSelector",
    "RandomSelector",
    "TournamentSelector",
    "parse_selector",
]
