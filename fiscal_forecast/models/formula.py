"""
Evaluator for custom revenue and expense formulas.

Formulas are arithmetic expressions over named variables, for example
``base * (1 + growth) ** years_elapsed / 12 * months_in_period``. They are
parsed with the standard library ``ast`` module and evaluated by walking the
tree, so only the node types listed here are ever executed: numbers,
variable names, arithmetic operators, parentheses and a few numeric
functions. Anything else (attribute access, calls to other names,
subscripts, comprehensions) is rejected.
"""

import ast
import math
import operator
from typing import Callable, Dict, Mapping

from ..exceptions import FormulaError

_BINARY_OPERATORS: Dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS: Dict[type, Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

def _round(value: float, ndigits: float = 0) -> float:
    return round(value, int(ndigits))


_FUNCTIONS: Dict[str, Callable[..., float]] = {
    "min": min,
    "max": max,
    "abs": abs,
    "round": _round,
    "floor": math.floor,
    "ceil": math.ceil,
    "sqrt": math.sqrt,
}


class Formula:
    """A parsed custom formula that can be evaluated repeatedly."""

    def __init__(self, expression: str) -> None:
        if not expression or not expression.strip():
            raise FormulaError("Formula is empty")
        try:
            tree = ast.parse(expression.strip(), mode="eval")
        except SyntaxError as e:
            raise FormulaError(f"Invalid formula '{expression}': {e.msg}") from e

        self.expression = expression
        self._tree = tree
        self.names = self._check(tree.body)

    def _check(self, node: ast.AST) -> set:
        """Reject unsupported syntax and collect referenced variable names."""
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise FormulaError(f"Unsupported constant {node.value!r} in formula")
            return set()
        if isinstance(node, ast.Name):
            return {node.id}
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
            return self._check(node.left) | self._check(node.right)
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
            return self._check(node.operand)
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id in _FUNCTIONS
            and not node.keywords
        ):
            names = set()
            for arg in node.args:
                names |= self._check(arg)
            return names
        raise FormulaError(
            f"Unsupported expression '{ast.dump(node)}' in formula '{self.expression}'"
        )

    def evaluate(self, variables: Mapping[str, float]) -> float:
        """
        Evaluate the formula.

        Args:
            variables: Values for every name used in the formula

        Returns:
            Result as a float

        Raises:
            FormulaError: If a variable is missing or evaluation fails
        """
        missing = self.names - set(variables)
        if missing:
            raise FormulaError(
                f"Formula '{self.expression}' references undefined variables: "
                f"{', '.join(sorted(missing))}"
            )
        try:
            result = float(self._eval(self._tree.body, variables))
        except (ArithmeticError, ValueError, TypeError) as e:
            raise FormulaError(f"Could not evaluate '{self.expression}': {e}") from e
        if not math.isfinite(result):
            raise FormulaError(f"Formula '{self.expression}' produced a non-finite value")
        return result

    def _eval(self, node: ast.AST, variables: Mapping[str, float]) -> float:
        # Floats throughout, so oversized powers overflow instead of growing big ints
        if isinstance(node, ast.Constant):
            return float(node.value)
        if isinstance(node, ast.Name):
            return float(variables[node.id])
        if isinstance(node, ast.BinOp):
            op = _BINARY_OPERATORS[type(node.op)]
            return op(self._eval(node.left, variables), self._eval(node.right, variables))
        if isinstance(node, ast.UnaryOp):
            return _UNARY_OPERATORS[type(node.op)](self._eval(node.operand, variables))
        # Only whitelisted calls survive _check
        func = _FUNCTIONS[node.func.id]
        return float(func(*(self._eval(arg, variables) for arg in node.args)))


def evaluate_formula(expression: str, variables: Mapping[str, float]) -> float:
    """Parse and evaluate a formula in one step."""
    return Formula(expression).evaluate(variables)
