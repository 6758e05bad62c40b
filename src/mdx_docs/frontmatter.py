"""Frontmatter extraction for MDX documents."""

import datetime
from dataclasses import dataclass

import yaml  # type: ignore[import-untyped]

from mdx_docs.models import Frontmatter, ParseDiagnostic, freeze_mapping

DELIMITER = "---"

KNOWN_FIELDS = {
    "title": "title",
    "description": "description",
    "sidebarTitle": "sidebar_title",
    "icon": "icon",
}

_SCALARS = (str, int, float, bool)


@dataclass(frozen=True)
class FrontmatterResult:
    """Frontmatter split from a document, with the remaining body."""

    frontmatter: Frontmatter
    body: str
    body_offset: int
    diagnostics: tuple[ParseDiagnostic, ...] = ()


def default_title(path: str) -> str:
    """Fallback title: the final segment of the content path.

    Args:
        path: Content path such as ``guides/setup``.

    Returns:
        Last non-empty path segment.
    """
    segments = [part for part in path.strip().split("/") if part]
    return segments[-1] if segments else path


def extract_frontmatter(text: str, path: str = "") -> FrontmatterResult:
    """Split a document into frontmatter metadata and body text.

    The block is recognised only when the first non-blank line is ``---`` and a
    later line is ``---`` as well. Only scalar values are accepted.

    Args:
        text: Raw document text.
        path: Content path, used for the fallback title.

    Returns:
        FrontmatterResult; ``body_offset`` is the number of source lines
        preceding the body.
    """
    lines = text.lstrip("\ufeff").splitlines()
    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1

    if start >= len(lines) or lines[start].rstrip() != DELIMITER:
        return FrontmatterResult(Frontmatter(title=default_title(path)), text.lstrip("\ufeff"), 0)

    end = next(
        (index for index in range(start + 1, len(lines)) if lines[index].rstrip() == DELIMITER),
        None,
    )
    if end is None:
        diagnostic = ParseDiagnostic(
            code="unterminated-frontmatter",
            message="Frontmatter block has no closing '---' delimiter",
            line=start + 1,
        )
        return FrontmatterResult(
            Frontmatter(title=default_title(path)), text.lstrip("\ufeff"), 0, (diagnostic,)
        )

    block = "\n".join(lines[start + 1 : end])
    body = "\n".join(lines[end + 1 :])
    frontmatter, diagnostics = _parse_block(block, path, first_line=start + 2)
    return FrontmatterResult(frontmatter, body, end + 1, diagnostics)


def _parse_block(block: str, path: str, first_line: int) -> tuple[Frontmatter, tuple[ParseDiagnostic, ...]]:
    """Parse the YAML between the delimiters.

    Args:
        block: YAML text.
        path: Content path for the fallback title.
        first_line: Source line number of the first block line.

    Returns:
        Frontmatter and diagnostics.
    """
    fallback = Frontmatter(title=default_title(path))
    if not block.strip():
        return fallback, ()

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = first_line + mark.line if mark is not None else first_line
        return fallback, (ParseDiagnostic("invalid-frontmatter", f"Invalid frontmatter YAML: {exc}", line),)

    if data is None:
        return fallback, ()
    if not isinstance(data, dict):
        return fallback, (
            ParseDiagnostic("invalid-frontmatter", "Frontmatter must be a key/value mapping", first_line),
        )

    diagnostics: list[ParseDiagnostic] = []
    known: dict[str, str | None] = {}
    extra: dict[str, object] = {}
    for raw_key, raw_value in data.items():
        key = str(raw_key)
        value = _scalar(raw_value)
        if value is _REJECTED:
            diagnostics.append(
                ParseDiagnostic(
                    "non-scalar-frontmatter",
                    f"Frontmatter field '{key}' is not a scalar value and was ignored",
                    first_line,
                )
            )
            continue
        if key in KNOWN_FIELDS:
            known[KNOWN_FIELDS[key]] = None if value is None else str(value)
        else:
            extra[key] = value
            diagnostics.append(
                ParseDiagnostic("unknown-frontmatter-field", f"Unknown frontmatter field '{key}'", first_line)
            )

    title = known.pop("title", None) or fallback.title
    frontmatter = Frontmatter(title=title, extra=freeze_mapping(extra), **known)
    return frontmatter, tuple(diagnostics)


_REJECTED = object()


def _scalar(value: object) -> object:
    if value is None or isinstance(value, _SCALARS):
        return value
    if isinstance(value, datetime.date):
        return value.isoformat()
    return _REJECTED
