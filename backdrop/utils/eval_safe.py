"""Safe expression evaluation for YAML factory formulas.

Formulas are Python expressions evaluated by a restricted AST walker. Names
resolve against the record being built (plus ``i``/``index`` for the
creation index); attribute access, imports and arbitrary calls are refused.
A handful of string methods (``lower``, ``replace``...) are allowed so slugs
and emails can be derived from other attributes.
"""

import ast
import operator
from typing import Any, Mapping

from ..errors import BackdropError, FormulaError

# Safe builtins allowed in formula evaluation
SAFE_BUILTINS = {
    "True": True,
    "False": False,
    "None": None,
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "int": int,
    "float": float,
    "str": str,
    "len": len,
    "sum": sum,
    "all": all,
    "any": any,
    "bool": bool,
}

SAFE_STR_METHODS = frozenset(
    {
        "lower",
        "upper",
        "title",
        "capitalize",
        "strip",
        "lstrip",
        "rstrip",
        "replace",
        "split",
        "join",
        "startswith",
        "endswith",
        "zfill",
    }
)

_SAFE_BIN_OPS: dict[type[ast.operator], Any] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_SAFE_UNARY_OPS: dict[type[ast.unaryop], Any] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}
_SAFE_CMP_OPS: dict[type[ast.cmpop], Any] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


def _lookup(name: str, context: Mapping[str, Any]) -> Any:
    if name.startswith("__"):
        raise FormulaError("dunder names are not allowed in expressions")
    # ``in`` first: pending attributes are "in" the context and raise on read
    if name in context:
        return context[name]
    if name in SAFE_BUILTINS:
        return SAFE_BUILTINS[name]
    raise FormulaError(f"Unknown name '{name}' in expression")


def _call(node: ast.Call, context: Mapping[str, Any]) -> Any:
    args = []
    for arg in node.args:
        if isinstance(arg, ast.Starred):
            raise FormulaError("Star-args are not allowed")
        args.append(_eval_ast(arg, context))
    kwargs = {}
    for kw in node.keywords:
        if kw.arg is None:
            raise FormulaError("Keyword splats are not allowed")
        kwargs[kw.arg] = _eval_ast(kw.value, context)

    if isinstance(node.func, ast.Name):
        func_name = node.func.id
        if func_name.startswith("__"):
            raise FormulaError("Dunder functions are not allowed")
        func = SAFE_BUILTINS.get(func_name)
        if not callable(func):
            raise FormulaError(f"Function '{func_name}' is not allowed")
        return func(*args, **kwargs)

    if isinstance(node.func, ast.Attribute):
        method = node.func.attr
        target = _eval_ast(node.func.value, context)
        if not isinstance(target, str) or method not in SAFE_STR_METHODS:
            raise FormulaError(f"Method '{method}' is not allowed")
        return getattr(target, method)(*args, **kwargs)

    raise FormulaError("Only direct function calls are allowed")


def _eval_ast(node: ast.AST, context: Mapping[str, Any]) -> Any:
    if isinstance(node, ast.Expression):
        return _eval_ast(node.body, context)

    if isinstance(node, ast.Constant):
        return node.value

    if isinstance(node, ast.Name):
        return _lookup(node.id, context)

    if isinstance(node, ast.JoinedStr):
        parts = []
        for value in node.values:
            if isinstance(value, ast.FormattedValue):
                if value.format_spec is not None:
                    spec = _eval_ast(value.format_spec, context)
                    parts.append(format(_eval_ast(value.value, context), spec))
                else:
                    parts.append(str(_eval_ast(value.value, context)))
            else:
                parts.append(str(_eval_ast(value, context)))
        return "".join(parts)

    if isinstance(node, ast.List):
        return [_eval_ast(elt, context) for elt in node.elts]

    if isinstance(node, ast.Tuple):
        return tuple(_eval_ast(elt, context) for elt in node.elts)

    if isinstance(node, ast.Dict):
        for key in node.keys:
            if key is None:
                raise FormulaError("Dict unpacking is not allowed")
        return {
            _eval_ast(key, context): _eval_ast(val, context)
            for key, val in zip(node.keys, node.values)
        }

    if isinstance(node, ast.Subscript):
        target = _eval_ast(node.value, context)
        if isinstance(node.slice, ast.Slice):
            bounds = [
                _eval_ast(part, context) if part is not None else None
                for part in (node.slice.lower, node.slice.upper, node.slice.step)
            ]
            return target[slice(*bounds)]
        return target[_eval_ast(node.slice, context)]

    if isinstance(node, ast.UnaryOp):
        op_type = type(node.op)
        if op_type not in _SAFE_UNARY_OPS:
            raise FormulaError(f"Unary operator not allowed: {op_type.__name__}")
        return _SAFE_UNARY_OPS[op_type](_eval_ast(node.operand, context))

    if isinstance(node, ast.BinOp):
        op_type = type(node.op)
        if op_type not in _SAFE_BIN_OPS:
            raise FormulaError(f"Binary operator not allowed: {op_type.__name__}")
        left = _eval_ast(node.left, context)
        right = _eval_ast(node.right, context)
        return _SAFE_BIN_OPS[op_type](left, right)

    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            result: Any = True
            for value in node.values:
                result = _eval_ast(value, context)
                if not result:
                    return result
            return result
        result = False
        for value in node.values:
            result = _eval_ast(value, context)
            if result:
                return result
        return result

    if isinstance(node, ast.Compare):
        left = _eval_ast(node.left, context)
        for op, comparator in zip(node.ops, node.comparators):
            op_type = type(op)
            if op_type not in _SAFE_CMP_OPS:
                raise FormulaError(
                    f"Comparison operator not allowed: {op_type.__name__}"
                )
            right = _eval_ast(comparator, context)
            if not _SAFE_CMP_OPS[op_type](left, right):
                return False
            left = right
        return True

    if isinstance(node, ast.IfExp):
        return (
            _eval_ast(node.body, context)
            if _eval_ast(node.test, context)
            else _eval_ast(node.orelse, context)
        )

    if isinstance(node, ast.Call):
        return _call(node, context)

    raise FormulaError(f"Unsupported expression element: {type(node).__name__}")


def compile_formula(formula: str) -> ast.Expression:
    """Parse ``formula`` once so syntax errors surface at load time.

    Raises:
        FormulaError: If the expression does not parse
    """
    try:
        return ast.parse(formula, mode="eval")
    except SyntaxError as e:
        raise FormulaError(f"Invalid formula '{formula}': {e.msg}") from e


def eval_formula(formula: str | ast.Expression, context: Mapping[str, Any]) -> Any:
    """
    Evaluate a formula against the record being built.

    The context is read through, never copied, so reading an attribute that
    has not been resolved yet raises UnresolvedDependencyError unchanged.

    Args:
        formula: Expression string, or a tree from compile_formula
        context: Mapping of names to values

    Returns:
        Computed value

    Raises:
        FormulaError: If evaluation fails

    Example:
        >>> eval_formula("title.lower().replace(' ', '-')", {"title": "Hello World"})
        'hello-world'
    """
    tree = compile_formula(formula) if isinstance(formula, str) else formula
    try:
        return _eval_ast(tree, context)
    except BackdropError:
        raise
    except Exception as e:
        source = formula if isinstance(formula, str) else ast.unparse(formula)
        raise FormulaError(f"Formula '{source}' failed: {e}") from e
