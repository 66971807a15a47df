"""Human-readable renderings of postorder trees."""

from __future__ import annotations

from typing import TYPE_CHECKING

from symforge.expression.tree import Tree
from symforge.expression.types import NodeType, PRIMITIVES

if TYPE_CHECKING:
    from symforge.data.dataset import Dataset


_INFIX_OPERATORS = {
    NodeType.ADD: "+",
    NodeType.SUB: "-",
    NodeType.MUL: "*",
    NodeType.DIV: "/",
    NodeType.POW: "^",
}


def _variable_names(dataset: "Dataset | None") -> dict[int, str]:
    if dataset is None:
        return {}
    return {v.hash: v.name for v in dataset.variables}


class InfixFormatter:
    """Format a tree as an infix formula, e.g. ``((1.5 * x1) + sin(x2))``."""

    @staticmethod
    def format(tree: Tree, dataset: "Dataset | None" = None, precision: int = 6) -> str:
        if tree.empty:
            return ""
        names = _variable_names(dataset)
        return InfixFormatter._format(tree, len(tree) - 1, names, precision)

    @staticmethod
    def _format(tree: Tree, i: int, names: dict[int, str], precision: int) -> str:
        node = tree[i]

        if node.is_constant:
            return f"{node.value:.{precision}g}"

        if node.is_variable:
            name = names.get(node.hash_value, f"x{node.hash_value:x}")
            if node.value == 1.0:
                return name
            return f"({node.value:.{precision}g} * {name})"

        args = [
            InfixFormatter._format(tree, j, names, precision)
            for _, j in tree.children(i)
        ]

        if node.type in _INFIX_OPERATORS:
            if len(args) == 1:
                if node.type == NodeType.SUB:
                    return f"(-{args[0]})"
                if node.type == NodeType.DIV:
                    return f"(1 / {args[0]})"
                return args[0]
            symbol = _INFIX_OPERATORS[node.type]
            return "(" + f" {symbol} ".join(args) + ")"

        if node.type == NodeType.SQUARE:
            return f"({args[0]} ^ 2)"

        return f"{node.name}({', '.join(args)})"


class PostfixFormatter:
    """Format a tree as a space-separated postfix token stream."""

    @staticmethod
    def format(tree: Tree, dataset: "Dataset | None" = None, precision: int = 6) -> str:
        names = _variable_names(dataset)
        tokens = []
        for node in tree:
            if node.is_constant:
                tokens.append(f"{node.value:.{precision}g}")
            elif node.is_variable:
                name = names.get(node.hash_value, f"x{node.hash_value:x}")
                if node.value != 1.0:
                    name = f"{node.value:.{precision}g}*{name}"
                tokens.append(name)
            elif node.arity == PRIMITIVES[node.type].arity:
                tokens.append(node.name)
            else:
                tokens.append(f"{node.name}/{node.arity}")
        return " ".join(tokens)
