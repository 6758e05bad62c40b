"""Slug generation for headings and API operations."""

import re

_NON_WORD = re.compile(r"[\W_]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEPARATORS = re.compile(r"[^A-Za-z0-9]+")


def slugify(text: str) -> str:
    """Create an anchor slug from heading text.

    Lowercases, turns every run of non-alphanumeric characters into a single
    hyphen and trims hyphens from both ends.

    Args:
        text: Heading text.

    Returns:
        Slug, or ``"section"`` when nothing alphanumeric remains.
    """
    slug = _NON_WORD.sub("-", text.lower()).strip("-")
    return slug or "section"


def kebab_case(name: str) -> str:
    """Convert an identifier such as ``getUserById`` to ``get-user-by-id``.

    Args:
        name: camelCase, PascalCase, snake_case or free-form identifier.

    Returns:
        Lowercase hyphen-separated slug.
    """
    spaced = _CAMEL_BOUNDARY.sub("-", name)
    return _SEPARATORS.sub("-", spaced).strip("-").lower()


def path_slug(path: str) -> str:
    """Slug for a URL path template, e.g. ``/users/{id}`` -> ``users-id``.

    Args:
        path: Path template.

    Returns:
        Slug of the path segments.
    """
    return kebab_case(path.replace("{", "").replace("}", ""))


class SlugRegistry:
    """Hands out unique slugs within one scope.

    The first use of a base slug returns it unchanged; later duplicates get
    ``-1``, ``-2`` and so on, skipping suffixes that are already taken.
    """

    def __init__(self, first_suffix: int = 1) -> None:
        """Initialise an empty registry.

        Args:
            first_suffix: Number used for the first duplicate.
        """
        self._first_suffix = first_suffix
        self._seen: set[str] = set()

    def claim(self, base: str) -> str:
        """Reserve a unique slug derived from ``base``.

        Args:
            base: Preferred slug.

        Returns:
            ``base`` or the first free suffixed variant.
        """
        slug = base
        counter = self._first_suffix
        while slug in self._seen:
            slug = f"{base}-{counter}"
            counter += 1
        self._seen.add(slug)
        return slug
