"""Tests for safe formula evaluation and fake value generators."""

import pytest

from backdrop.errors import FormulaError, UnresolvedDependencyError, ValidationError
from backdrop.factories.composer import compose
from backdrop.factories.definition import factory
from backdrop.factories.fakes import fake, mix_seed
from backdrop.factories.resolver import resolve_attributes
from backdrop.factories.spec import formula
from backdrop.utils.eval_safe import compile_formula, eval_formula


class TestEvalFormula:
    """Tests for the restricted evaluator."""

    def test_simple_arithmetic(self):
        assert eval_formula("1 + 2", {}) == 3
        assert eval_formula("10 * 5", {}) == 50
        assert eval_formula("100 / 4", {}) == 25.0

    def test_with_variables(self):
        assert eval_formula("views * 2", {"views": 21}) == 42

    def test_builtins(self):
        assert eval_formula("max(0, n - 5)", {"n": 3}) == 0
        assert eval_formula("len(tags)", {"tags": ["a", "b"]}) == 2

    def test_string_methods(self):
        result = eval_formula("title.lower().replace(' ', '-')", {"title": "Hello World"})
        assert result == "hello-world"

    def test_f_strings(self):
        assert eval_formula("f'Post {i}'", {"i": 4}) == "Post 4"
        assert eval_formula("f'{n:03d}'", {"n": 7}) == "007"

    def test_subscripts(self):
        assert eval_formula("meta['views']", {"meta": {"views": 3}}) == 3
        assert eval_formula("name[:2]", {"name": "Ada"}) == "Ad"

    def test_conditionals(self):
        assert eval_formula("'even' if i % 2 == 0 else 'odd'", {"i": 3}) == "odd"
        assert eval_formula("a and b", {"a": 1, "b": 2}) == 2
        assert eval_formula("a or b", {"a": 0, "b": 2}) == 2

    def test_unknown_name(self):
        with pytest.raises(FormulaError, match="Unknown name"):
            eval_formula("missing + 1", {})

    def test_attribute_access_blocked(self):
        with pytest.raises(FormulaError):
            eval_formula("().__class__", {})

    def test_unsafe_method_blocked(self):
        with pytest.raises(FormulaError):
            eval_formula("title.format(1)", {"title": "{}"})

    def test_imports_blocked(self):
        with pytest.raises(FormulaError):
            eval_formula("__import__('os')", {})

    def test_runtime_errors_wrapped(self):
        with pytest.raises(FormulaError):
            eval_formula("1 / 0", {})

    def test_syntax_error_at_compile(self):
        with pytest.raises(FormulaError, match="Invalid formula"):
            compile_formula("1 +")

    def test_formula_error_is_validation_error(self):
        assert issubclass(FormulaError, ValidationError)


class TestFormulaAttributes:
    """Formulas used as factory attributes."""

    def test_index_is_available(self):
        composed = compose("post", factory(title=formula("f'Post {i}'")))
        assert resolve_attributes(composed, 2)["title"] == "Post 2"
        assert resolve_attributes(composed, 3)["title"] == "Post 3"

    def test_reads_earlier_attributes(self):
        composed = compose(
            "post",
            factory(title="Hello World", slug=formula("title.lower().replace(' ', '-')")),
        )
        assert resolve_attributes(composed, 0)["slug"] == "hello-world"

    def test_unresolved_dependency_passes_through(self):
        composed = compose(
            "post", factory(slug=formula("title.lower()"), title="Hello")
        )
        with pytest.raises(UnresolvedDependencyError):
            resolve_attributes(composed, 0)

    def test_attribute_named_index_shadows_creation_index(self):
        composed = compose("post", factory(index=100, rank=formula("index + 1")))
        assert resolve_attributes(composed, 0)["rank"] == 101


class TestFakes:
    """Faker-backed attribute functions."""

    def test_mix_seed_is_stable(self):
        assert mix_seed(1, "user", "name", 0) == mix_seed(1, "user", "name", 0)
        assert mix_seed(1, "user", "name", 0) != mix_seed(1, "user", "email", 0)

    def test_same_inputs_same_value(self):
        composed = compose("user", factory(token=fake("uuid4")))
        first = resolve_attributes(composed, 0, seed=3)
        second = resolve_attributes(composed, 0, seed=3)
        assert first == second

    def test_index_changes_value(self):
        composed = compose("user", factory(token=fake("uuid4")))
        assert resolve_attributes(composed, 0)["token"] != resolve_attributes(composed, 1)["token"]

    def test_provider_arguments(self):
        composed = compose("user", factory(age=fake("pyint", min_value=18, max_value=18)))
        assert resolve_attributes(composed, 0)["age"] == 18

    def test_unknown_provider(self):
        with pytest.raises(ValidationError):
            fake("definitely_not_a_provider")

    def test_private_provider(self):
        with pytest.raises(ValidationError):
            fake("_Generator__config")
