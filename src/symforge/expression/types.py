"""Primitive kinds and the primitive set (grammar).

Every primitive is a member of the closed ``NodeType`` flag set. The
``PrimitiveSet`` decides which kinds are enabled for random tree construction,
how often each is sampled and which arities it may take.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Flag, auto
import functools
import operator
import random

from symforge.errors import ConfigurationError


class NodeType(Flag):
    """Primitive kinds. Combine members with ``|`` to build a configuration mask."""

    ADD = auto()
    MUL = auto()
    SUB = auto()
    DIV = auto()
    FMIN = auto()
    FMAX = auto()
    AQ = auto()
    POW = auto()
    ABS = auto()
    ACOS = auto()
    ASIN = auto()
    ATAN = auto()
    CBRT = auto()
    CEIL = auto()
    COS = auto()
    COSH = auto()
    EXP = auto()
    FLOOR = auto()
    LOG = auto()
    LOGABS = auto()
    LOG1P = auto()
    SIN = auto()
    SINH = auto()
    SQRT = auto()
    SQRTABS = auto()
    SQUARE = auto()
    TAN = auto()
    TANH = auto()
    CONSTANT = auto()
    VARIABLE = auto()

    @property
    def is_leaf(self) -> bool:
        return self in (NodeType.CONSTANT, NodeType.VARIABLE)

    @property
    def symbol(self) -> str:
        return PRIMITIVES[self].name


# Maximum arity accepted by variable-arity kinds
MAX_ARITY = 8


@dataclass(frozen=True)
class PrimitiveInfo:
    """Static description of a primitive kind.

    Attributes:
        name: Symbol name used for parsing and formatting
        min_arity: Smallest supported arity
        max_arity: Largest supported arity
        arity: Default arity
        commutative: Whether argument order is irrelevant
    """

    name: str
    min_arity: int
    max_arity: int
    arity: int
    commutative: bool = False


def _nary(name: str, commutative: bool = False) -> PrimitiveInfo:
    return PrimitiveInfo(name, 1, MAX_ARITY, 2, commutative)


def _binary(name: str) -> PrimitiveInfo:
    return PrimitiveInfo(name, 2, 2, 2)


def _unary(name: str) -> PrimitiveInfo:
    return PrimitiveInfo(name, 1, 1, 1)


PRIMITIVES: dict[NodeType, PrimitiveInfo] = {
    # Variable arity, folded left to right
    NodeType.ADD: _nary("add", commutative=True),
    NodeType.MUL: _nary("mul", commutative=True),
    NodeType.SUB: _nary("sub"),
    NodeType.DIV: _nary("div"),
    NodeType.FMIN: _nary("fmin", commutative=True),
    NodeType.FMAX: _nary("fmax", commutative=True),

    # Binary
    NodeType.AQ: _binary("aq"),
    NodeType.POW: _binary("pow"),

    # Unary
    NodeType.ABS: _unary("abs"),
    NodeType.ACOS: _unary("acos"),
    NodeType.ASIN: _unary("asin"),
    NodeType.ATAN: _unary("atan"),
    NodeType.CBRT: _unary("cbrt"),
    NodeType.CEIL: _unary("ceil"),
    NodeType.COS: _unary("cos"),
    NodeType.COSH: _unary("cosh"),
    NodeType.EXP: _unary("exp"),
    NodeType.FLOOR: _unary("floor"),
    NodeType.LOG: _unary("log"),
    NodeType.LOGABS: _unary("logabs"),
    NodeType.LOG1P: _unary("log1p"),
    NodeType.SIN: _unary("sin"),
    NodeType.SINH: _unary("sinh"),
    NodeType.SQRT: _unary("sqrt"),
    NodeType.SQRTABS: _unary("sqrtabs"),
    NodeType.SQUARE: _unary("square"),
    NodeType.TAN: _unary("tan"),
    NodeType.TANH: _unary("tanh"),

    # Leaves
    NodeType.CONSTANT: PrimitiveInfo("constant", 0, 0, 0),
    NodeType.VARIABLE: PrimitiveInfo("variable", 0, 0, 0),
}

ARITHMETIC = (
    NodeType.CONSTANT | NodeType.VARIABLE
    | NodeType.ADD | NodeType.SUB | NodeType.MUL | NodeType.DIV
)

FULL = functools.reduce(operator.or_, PRIMITIVES)


@dataclass
class PrimitiveEntry:
    """Mutable per-kind settings inside a primitive set."""

    frequency: float
    min_arity: int
    max_arity: int
    enabled: bool


class PrimitiveSet:
    """Enabled primitive kinds with sampling weights and arity windows.

    Disabling a kind removes it from sampling only. Trees that already contain
    it remain valid and can still be evaluated.
    """

    def __init__(self, config: NodeType = ARITHMETIC):
        self._entries: dict[NodeType, PrimitiveEntry] = {}
        for kind, info in PRIMITIVES.items():
            self._entries[kind] = PrimitiveEntry(
                frequency=1.0,
                min_arity=info.arity,
                max_arity=info.arity,
                enabled=bool(kind & config),
            )

    @property
    def config(self) -> NodeType:
        """Mask of the enabled kinds."""
        mask = NodeType(0)
        for kind, entry in self._entries.items():
            if entry.enabled:
                mask |= kind
        return mask

    def set_config(self, config: NodeType) -> None:
        for kind, entry in self._entries.items():
            entry.enabled = bool(kind & config)

    def enabled_kinds(self) -> list[NodeType]:
        return [kind for kind, entry in self._entries.items() if entry.enabled]

    def is_enabled(self, kind: NodeType) -> bool:
        return self._entries[kind].enabled

    def enable(self, kind: NodeType, frequency: float | None = None) -> None:
        entry = self._entries[kind]
        entry.enabled = True
        if frequency is not None:
            self.set_frequency(kind, frequency)

    def disable(self, kind: NodeType) -> None:
        self._entries[kind].enabled = False

    def frequency(self, kind: NodeType) -> float:
        return self._entries[kind].frequency

    def set_frequency(self, kind: NodeType, frequency: float) -> None:
        if frequency < 0:
            raise ConfigurationError(f"Frequency must be non-negative, got {frequency}")
        self._entries[kind].frequency = frequency

    def arity(self, kind: NodeType) -> tuple[int, int]:
        entry = self._entries[kind]
        return entry.min_arity, entry.max_arity

    def set_arity(self, kind: NodeType, min_arity: int, max_arity: int | None = None) -> None:
        """Restrict the arities sampled for ``kind`` to ``[min_arity, max_arity]``."""
        max_arity = min_arity if max_arity is None else max_arity
        info = PRIMITIVES[kind]
        if not info.min_arity <= min_arity <= max_arity <= info.max_arity:
            raise ConfigurationError(
                f"Arity window [{min_arity}, {max_arity}] not supported by {info.name} "
                f"(supported: [{info.min_arity}, {info.max_arity}])"
            )
        entry = self._entries[kind]
        entry.min_arity = min_arity
        entry.max_arity = max_arity

    def function_arity_limits(self) -> tuple[int, int]:
        """Global (min, max) arity over the enabled function kinds.

        Returns (0, 0) when only leaves are enabled.
        """
        windows = [
            (entry.min_arity, entry.max_arity)
            for kind, entry in self._entries.items()
            if entry.enabled and not kind.is_leaf and entry.frequency > 0
        ]
        if not windows:
            return 0, 0
        return min(w[0] for w in windows), max(w[1] for w in windows)

    def sample_random_symbol(
        self,
        rng: random.Random,
        min_arity: int,
        max_arity: int,
    ) -> "Node":
        """Sample a node proportionally to frequency among enabled kinds.

        Only kinds whose arity window intersects ``[min_arity, max_arity]`` are
        candidates. The returned node's arity is drawn uniformly from the
        intersection.
        """
        from symforge.expression.nodes import Node

        candidates = []
        weights = []
        for kind, entry in self._entries.items():
            if not entry.enabled or entry.frequency <= 0:
                continue
            if entry.max_arity < min_arity or entry.min_arity > max_arity:
                continue
            candidates.append(kind)
            weights.append(entry.frequency)

        if not candidates:
            raise ConfigurationError(
                f"No enabled primitive with arity in [{min_arity}, {max_arity}]"
            )

        kind = rng.choices(candidates, weights=weights)[0]
        if kind == NodeType.CONSTANT:
            return Node.constant(1.0)
        if kind == NodeType.VARIABLE:
            return Node.variable(0)
        entry = self._entries[kind]
        lo = max(min_arity, entry.min_arity)
        hi = min(max_arity, entry.max_arity)
        return Node.function(kind, rng.randint(lo, hi))

    def __repr__(self) -> str:
        names = ", ".join(kind.symbol for kind in self.enabled_kinds())
        return f"PrimitiveSet({names})"


def parse_primitive_set_config(text: str) -> NodeType:
    """Parse a comma-separated list of symbol names into a configuration mask."""
    by_name = {info.name: kind for kind, info in PRIMITIVES.items()}
    mask = NodeType(0)
    for token in text.split(","):
        name = token.strip().lower()
        if not name:
            continue
        if name not in by_name:
            raise ConfigurationError(
                f"Unknown symbol: {name}. Valid: {sorted(by_name)}"
            )
        mask |= by_name[name]
    return mask


def format_primitive_set(pset: PrimitiveSet) -> str:
    """Render a table of all primitives and their settings."""
    lines = [f"{'symbol':<10}{'enabled':<9}{'frequency':<11}{'arity':<7}"]
    for kind, info in PRIMITIVES.items():
        lo, hi = pset.arity(kind)
        arity = str(lo) if lo == hi else f"{lo}-{hi}"
        lines.append(
            f"{info.name:<10}{str(pset.is_enabled(kind)).lower():<9}"
            f"{pset.frequency(kind):<11g}{arity:<7}"
        )
    return "\n".join(lines)
