"""Error kinds raised by the record store and the factory engine.

Every error is a programmer or configuration mistake surfaced immediately
to the caller. Nothing here is retried or swallowed.
"""

from __future__ import annotations


class BackdropError(Exception):
    """Base class for all Backdrop errors."""

    pass


class NotFoundError(BackdropError):
    """Raised when an operation targets a model or record that does not exist."""

    def __init__(self, message: str, model: str | None = None, record_id: str | None = None):
        self.model = model
        self.record_id = record_id
        super().__init__(message)


class TypeMismatchError(BackdropError):
    """Raised when an association value has the wrong record type."""

    def __init__(
        self,
        message: str,
        association: str | None = None,
        expected: str | None = None,
        actual: str | None = None,
    ):
        self.association = association
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class DanglingReferenceError(BackdropError):
    """Raised when a foreign key would point at a record that does not exist."""

    def __init__(self, message: str, model: str | None = None, record_id: str | None = None):
        self.model = model
        self.record_id = record_id
        super().__init__(message)


class UnresolvedDependencyError(BackdropError):
    """Raised when a dependent attribute reads a sibling not yet resolved."""

    def __init__(self, attribute: str, requested_by: str | None = None):
        self.attribute = attribute
        self.requested_by = requested_by
        where = f" while resolving '{requested_by}'" if requested_by else ""
        super().__init__(
            f"Attribute '{attribute}' was read{where} before it was resolved. "
            "Attributes resolve in declaration order."
        )


class UndeclaredAttributeError(UnresolvedDependencyError, KeyError):
    """Raised when an attribute function reads a key the factory never declares.

    Also a KeyError, so ``ctx.get(name, default)`` keeps working.
    """

    def __init__(self, attribute: str, requested_by: str | None = None, model: str = ""):
        self.attribute = attribute
        self.requested_by = requested_by
        self.model = model
        where = f" while resolving '{requested_by}'" if requested_by else ""
        owner = f" on '{model}'" if model else ""
        BackdropError.__init__(
            self,
            f"Attribute '{attribute}' was read{where} but is not declared{owner} "
            "and was not passed as an override.",
        )

    def __str__(self) -> str:
        return BackdropError.__str__(self)


class UnsupportedAssociationError(BackdropError):
    """Raised when association() targets a polymorphic, plural or undeclared relation."""

    pass


class UnknownTraitError(BackdropError):
    """Raised when a creation request names a trait the factory does not declare."""

    def __init__(self, model: str, trait: str, available: list[str] | None = None):
        self.model = model
        self.trait = trait
        self.available = sorted(available or [])
        hint = f" (available: {', '.join(self.available)})" if self.available else ""
        super().__init__(f"Factory '{model}' has no trait '{trait}'{hint}")


class ValidationError(BackdropError):
    """Raised for strict-schema violations and invalid store input."""

    pass


class FormulaError(ValidationError):
    """Raised when a declarative formula attribute fails to evaluate."""

    pass


class SpecError(ValidationError):
    """Raised when a declarative server file is malformed."""

    pass


class RecursionLimitError(BackdropError):
    """Raised when nested creation exceeds the configured depth."""

    def __init__(self, chain: list[str], limit: int):
        self.chain = list(chain)
        self.limit = limit
        super().__init__(
            f"Creation depth exceeded {limit}: {' -> '.join(self.chain)}. "
            "A post-creation hook probably re-creates its own type."
        )
