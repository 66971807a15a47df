"""Local partial derivatives of each primitive.

Each rule receives the cached values of the node's children (in argument
order) and the node's own cached value, and returns one partial per child:
``d out / d args[k]``. Partials may be arrays over rows or plain scalars.
"""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np

from symforge.errors import UnsupportedDerivativeError
from symforge.expression.types import NodeType

Partials = list[np.ndarray | float]
DerivativeRule = Callable[[Sequence[np.ndarray], np.ndarray], Partials]


def _add(args, out):
    return [1.0] * len(args)


def _sub(args, out):
    if len(args) == 1:
        return [-1.0]
    return [1.0] + [-1.0] * (len(args) - 1)


def _mul(args, out):
    if len(args) == 1:
        return [1.0]
    if len(args) == 2:
        return [args[1], args[0]]
    partials = []
    for k in range(len(args)):
        d = np.ones_like(out)
        for j, a in enumerate(args):
            if j != k:
                d = d * a
        partials.append(d)
    return partials


def _div(args, out):
    if len(args) == 1:
        return [-1.0 / np.square(args[0])]
    if len(args) == 2:
        a, b = args
        return [1.0 / b, -a / np.square(b)]
    raise UnsupportedDerivativeError(
        f"Derivative of div with {len(args)} children is not supported"
    )


def _select(pick: Callable[..., np.ndarray]) -> DerivativeRule:
    # Subgradient: 1 for the selected child (first on ties), 0 elsewhere
    def rule(args, out):
        if len(args) == 1:
            return [1.0]
        stacked = np.vstack(args)
        winner = pick(stacked, axis=0)
        return [(winner == k).astype(out.dtype) for k in range(len(args))]
    return rule


def _aq(args, out):
    a, b = args
    s = 1.0 + np.square(b)
    return [1.0 / np.sqrt(s), -a * b / np.power(s, 1.5)]


def _pow(args, out):
    a, b = args
    return [b * np.power(a, b - 1.0), out * np.log(a)]


def _unary(rule: Callable[[np.ndarray, np.ndarray], np.ndarray]) -> DerivativeRule:
    return lambda args, out: [rule(args[0], out)]


DERIVATIVES: dict[NodeType, DerivativeRule] = {
    NodeType.ADD: _add,
    NodeType.SUB: _sub,
    NodeType.MUL: _mul,
    NodeType.DIV: _div,
    NodeType.FMIN: _select(np.argmin),
    NodeType.FMAX: _select(np.argmax),
    NodeType.AQ: _aq,
    NodeType.POW: _pow,
    NodeType.ABS: _unary(lambda x, y: np.sign(x)),
    NodeType.ACOS: _unary(lambda x, y: -1.0 / np.sqrt(1.0 - np.square(x))),
    NodeType.ASIN: _unary(lambda x, y: 1.0 / np.sqrt(1.0 - np.square(x))),
    NodeType.ATAN: _unary(lambda x, y: 1.0 / (1.0 + np.square(x))),
    NodeType.CBRT: _unary(lambda x, y: 1.0 / (3.0 * np.square(y))),
    NodeType.CEIL: _unary(lambda x, y: np.zeros_like(x)),
    NodeType.COS: _unary(lambda x, y: -np.sin(x)),
    NodeType.COSH: _unary(lambda x, y: np.sinh(x)),
    NodeType.EXP: _unary(lambda x, y: y),
    NodeType.FLOOR: _unary(lambda x, y: np.zeros_like(x)),
    NodeType.LOG: _unary(lambda x, y: 1.0 / x),
    NodeType.LOGABS: _unary(lambda x, y: np.sign(x) / np.abs(x)),
    NodeType.LOG1P: _unary(lambda x, y: 1.0 / (1.0 + x)),
    NodeType.SIN: _unary(lambda x, y: np.cos(x)),
    NodeType.SINH: _unary(lambda x, y: np.cosh(x)),
    NodeType.SQRT: _unary(lambda x, y: 1.0 / (2.0 * y)),
    NodeType.SQRTABS: _unary(lambda x, y: np.sign(x) / (2.0 * y)),
    NodeType.SQUARE: _unary(lambda x, y: 2.0 * x),
    NodeType.TAN: _unary(lambda x, y: 1.0 + np.square(y)),
    NodeType.TANH: _unary(lambda x, y: 1.0 - np.square(y)),
}
