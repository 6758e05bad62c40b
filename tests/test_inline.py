"""Tests for inline span parsing."""

from mdx_docs.inline import MAX_INLINE_NESTING, parse_inline
from mdx_docs.models import Emphasis, InlineCode, Link, Text, inline_text


def test_plain_text() -> None:
    """Test that text without markup is a single node."""
    assert parse_inline("Just words.") == (Text("Just words."),)


def test_strong_and_emphasis() -> None:
    """Test strong and regular emphasis."""
    nodes = parse_inline("a **bold** and *soft* word")

    assert nodes == (
        Text("a "),
        Emphasis((Text("bold"),), strong=True),
        Text(" and "),
        Emphasis((Text("soft"),)),
        Text(" word"),
    )


def test_code_span_is_verbatim() -> None:
    """Test that markup inside code spans is not interpreted."""
    nodes = parse_inline("run `pip install *pkg*` now")

    assert nodes == (Text("run "), InlineCode("pip install *pkg*"), Text(" now"))


def test_code_span_with_longer_fence() -> None:
    """Test code spans delimited by double backticks."""
    assert parse_inline("``a ` b``") == (InlineCode("a ` b"),)


def test_link_with_nested_brackets() -> None:
    """Test links whose label contains brackets."""
    nodes = parse_inline("see [the [v2] docs](/docs/v2) here")

    assert nodes[1] == Link(href="/docs/v2", children=(Text("the [v2] docs"),))
    assert inline_text(nodes) == "see the [v2] docs here"


def test_link_label_with_emphasis() -> None:
    """Test inline markup inside a link label."""
    nodes = parse_inline("[**API** guide](https://example.com)")

    assert nodes == (
        Link(href="https://example.com", children=(Emphasis((Text("API"),), strong=True), Text(" guide"))),
    )


def test_unclosed_markers_are_literal() -> None:
    """Test that unclosed markers stay as text."""
    assert parse_inline("2 * 3 and **open") == (Text("2 * 3 and **open"),)
    assert parse_inline("[label](missing") == (Text("[label](missing"),)
    assert parse_inline("a `tick") == (Text("a `tick"),)


def test_underscore_inside_words_is_literal() -> None:
    """Test that underscores inside identifiers do not emphasise."""
    assert parse_inline("snake_case_name") == (Text("snake_case_name"),)
    assert parse_inline("_word_") == (Emphasis((Text("word"),)),)


def test_backslash_escapes() -> None:
    """Test escaped markup characters."""
    assert parse_inline(r"\*not emphasis\*") == (Text("*not emphasis*"),)


def test_nested_link_depth_is_capped() -> None:
    """Test that link labels nested past the limit are kept as text."""
    nodes = parse_inline("[" * 600 + "x" + "](u)" * 600)

    depth = 0
    node = nodes[0]
    while isinstance(node, Link):
        depth += 1
        (node,) = node.children
    assert len(nodes) == 1
    assert depth == MAX_INLINE_NESTING
    assert isinstance(node, Text)
    assert node.text.startswith("[[")
