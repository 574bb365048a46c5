"""Utility modules for Backdrop."""

from .eval_safe import SAFE_BUILTINS, compile_formula, eval_formula
from .inflect import pluralize, singularize

__all__ = [
    "SAFE_BUILTINS",
    "compile_formula",
    "eval_formula",
    "pluralize",
    "singularize",
]
