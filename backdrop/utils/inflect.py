"""Minimal English inflection for model and association names."""

_IRREGULAR = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
}
_IRREGULAR_SINGULAR = {plural: singular for singular, plural in _IRREGULAR.items()}
_UNCOUNTABLE = {"data", "media", "news", "series", "species", "equipment", "information"}
_VOWELS = "aeiou"


def pluralize(word: str) -> str:
    """Pluralize a snake_case name by inflecting its last segment.

    Examples:
        "post" -> "posts"
        "category" -> "categories"
        "blog_entry" -> "blog_entries"
    """
    head, sep, last = word.rpartition("_")
    return f"{head}{sep}{_pluralize_word(last)}"


def singularize(word: str) -> str:
    """Singularize a snake_case name by inflecting its last segment."""
    head, sep, last = word.rpartition("_")
    return f"{head}{sep}{_singularize_word(last)}"


def _pluralize_word(word: str) -> str:
    lowered = word.lower()
    if lowered in _UNCOUNTABLE:
        return word
    if lowered in _IRREGULAR:
        return _IRREGULAR[lowered]
    if lowered.endswith("y") and len(lowered) > 1 and lowered[-2] not in _VOWELS:
        return word[:-1] + "ies"
    if lowered.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


def _singularize_word(word: str) -> str:
    lowered = word.lower()
    if lowered in _UNCOUNTABLE:
        return word
    if lowered in _IRREGULAR_SINGULAR:
        return _IRREGULAR_SINGULAR[lowered]
    if lowered.endswith("ies") and len(lowered) > 3:
        return word[:-3] + "y"
    if lowered.endswith(("sses", "xes", "zes", "ches", "shes")):
        return word[:-2]
    if lowered.endswith("s") and not lowered.endswith("ss"):
        return word[:-1]
    return word
