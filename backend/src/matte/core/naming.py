"""Name normalization shared by the compiler, storage adapter and API layer."""

import re

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_UPPER_RUN = re.compile(r"([A-Z]+)([A-Z][a-z])")
_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")


def is_identifier(name: str) -> bool:
    """Return True if ``name`` is safe to use as a table or column name."""
    return bool(_IDENTIFIER.match(name))


def to_snake_case(name: str) -> str:
    """Convert a camelCase or PascalCase name to snake_case.

    ``"productName"`` -> ``"product_name"``, ``"HTTPRequest"`` -> ``"http_request"``.
    Names that are already snake_case are returned unchanged.
    """
    result = _UPPER_RUN.sub(r"\1_\2", name)
    result = _LOWER_UPPER.sub(r"\1_\2", result)
    return result.lower()


def to_kebab_case(name: str) -> str:
    """Convert a name to kebab-case for URL path segments."""
    return to_snake_case(name).replace("_", "-")


def to_display_name(name: str) -> str:
    """Convert camelCase or snake_case to Title Case."""
    words = to_snake_case(name).split("_")
    return " ".join(word.capitalize() for word in words if word)
