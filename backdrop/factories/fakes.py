"""Deterministic Faker-backed attribute functions.

    user = factory(name=fake("name"), email=fake("email"))

Each value is drawn from a Faker instance re-seeded from the store seed,
the model, the attribute name and the creation index, so the same factory
produces the same values on every run regardless of creation order across
models.
"""

from __future__ import annotations

import threading
import zlib
from typing import Any, TYPE_CHECKING

from faker import Faker

from ..errors import ValidationError

if TYPE_CHECKING:
    from .definition import AttributeFunction
    from .resolver import AttributeContext

# Faker instances are not thread-safe; keep one cache per thread.
_local = threading.local()


def get_faker(locale: str) -> Faker:
    """Get or create the calling thread's Faker instance for ``locale``."""
    cache: dict[str, Faker] | None = getattr(_local, "fakers", None)
    if cache is None:
        cache = {}
        _local.fakers = cache
    if locale not in cache:
        cache[locale] = Faker(locale)
    return cache[locale]


def mix_seed(seed: int, model: str, attribute: str, index: int) -> int:
    """Stable per-value seed."""
    salt = zlib.crc32(f"{model}:{attribute}".encode("utf-8"))
    return (seed * 1315423911 + salt * 2654435761 + index) & 0x7FFFFFFF


def fake(provider: str, *args: Any, **kwargs: Any) -> AttributeFunction:
    """Attribute function calling Faker's ``provider`` method.

    Example:
        fake("email"), fake("pyint", min_value=1, max_value=10)

    Raises:
        ValidationError: If Faker has no such provider method
    """
    if provider.startswith("_") or not hasattr(get_faker("en_US"), provider):
        raise ValidationError(f"Faker has no provider '{provider}'")

    def generate(index: int, ctx: AttributeContext) -> Any:
        faker = get_faker(ctx.locale)
        faker.seed_instance(mix_seed(ctx.seed, ctx.model, ctx.current or provider, index))
        return getattr(faker, provider)(*args, **kwargs)

    generate.__name__ = f"fake_{provider}"
    return generate
