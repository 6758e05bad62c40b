"""Tests for frontmatter extraction."""

import pytest

from mdx_docs.frontmatter import default_title, extract_frontmatter
from mdx_docs.models import ComponentKind, ComponentTag, Frontmatter, OpaqueComponent
from mdx_docs.openapi_models import Schema


def test_extract_known_fields() -> None:
    """Test extracting title, description, sidebarTitle and icon."""
    text = """---
title: Getting Started
description: Install and configure the toolkit.
sidebarTitle: Start
icon: rocket
---
# Welcome
"""
    result = extract_frontmatter(text, "guides/getting-started")

    assert result.frontmatter.title == "Getting Started"
    assert result.frontmatter.description == "Install and configure the toolkit."
    assert result.frontmatter.sidebar_title == "Start"
    assert result.frontmatter.icon == "rocket"
    assert result.body.strip() == "# Welcome"
    assert result.body_offset == 6
    assert result.diagnostics == ()


def test_title_defaults_to_last_path_segment() -> None:
    """Test that a missing title falls back to the final path segment."""
    result = extract_frontmatter("Some text.", "guides/setup")

    assert result.frontmatter.title == "setup"
    assert result.body == "Some text."


def test_title_default_when_frontmatter_has_no_title() -> None:
    """Test the fallback title when frontmatter omits it."""
    result = extract_frontmatter("---\ndescription: Hello\n---\nBody", "guides/setup")

    assert result.frontmatter.title == "setup"
    assert result.frontmatter.description == "Hello"


def test_default_title() -> None:
    """Test fallback title derivation for different paths."""
    assert default_title("guides/setup") == "setup"
    assert default_title("intro") == "intro"
    assert default_title("guides/setup/") == "setup"


def test_unknown_field_kept_with_diagnostic() -> None:
    """Test that unknown scalar fields are preserved and reported."""
    result = extract_frontmatter("---\ntitle: A\nauthor: Jane\nweight: 3\n---\n", "a")

    assert result.frontmatter.extra == {"author": "Jane", "weight": 3}
    codes = [diagnostic.code for diagnostic in result.diagnostics]
    assert codes == ["unknown-frontmatter-field", "unknown-frontmatter-field"]


def test_non_scalar_value_dropped() -> None:
    """Test that list values are ignored with a diagnostic."""
    result = extract_frontmatter("---\ntitle: A\ntags:\n  - one\n  - two\n---\nBody", "a")

    assert "tags" not in result.frontmatter.extra
    assert [diagnostic.code for diagnostic in result.diagnostics] == ["non-scalar-frontmatter"]
    assert result.body == "Body"


def test_unterminated_frontmatter_keeps_whole_text() -> None:
    """Test that an opening delimiter without a closing one is body text."""
    text = "---\ntitle: Broken\n\nStill the body."
    result = extract_frontmatter(text, "docs/broken")

    assert result.frontmatter.title == "broken"
    assert result.body == text
    assert result.body_offset == 0
    assert [diagnostic.code for diagnostic in result.diagnostics] == ["unterminated-frontmatter"]


def test_invalid_yaml_reports_diagnostic() -> None:
    """Test that invalid YAML is excluded from the body and reported."""
    result = extract_frontmatter("---\ntitle: [unclosed\n---\nBody", "page")

    assert result.frontmatter.title == "page"
    assert result.body == "Body"
    assert [diagnostic.code for diagnostic in result.diagnostics] == ["invalid-frontmatter"]


def test_non_mapping_frontmatter() -> None:
    """Test that a frontmatter block that is not a mapping is rejected."""
    result = extract_frontmatter("---\n- a\n- b\n---\nBody", "page")

    assert result.frontmatter.title == "page"
    assert [diagnostic.code for diagnostic in result.diagnostics] == ["invalid-frontmatter"]


def test_leading_bom_and_blank_lines() -> None:
    """Test that a BOM and leading blank lines do not hide frontmatter."""
    result = extract_frontmatter("\ufeff\n\n---\ntitle: Hello\n---\nBody", "page")

    assert result.frontmatter.title == "Hello"
    assert result.body == "Body"


def test_dates_become_iso_strings() -> None:
    """Test that YAML dates are converted to ISO strings."""
    result = extract_frontmatter("---\ntitle: Notes\nupdated: 2024-05-01\n---\n", "notes")

    assert result.frontmatter.extra["updated"] == "2024-05-01"


def test_numeric_title_is_text() -> None:
    """Test that scalar titles of other types are converted to text."""
    result = extract_frontmatter("---\ntitle: 2024\n---\n", "year")

    assert result.frontmatter.title == "2024"


def test_no_frontmatter_when_delimiter_not_first() -> None:
    """Test that a delimiter later in the document is ordinary content."""
    text = "# Heading\n\n---\ntitle: x\n---\n"
    result = extract_frontmatter(text, "page")

    assert result.frontmatter.title == "page"
    assert result.body == text


def test_default_mappings_are_empty_and_read_only() -> None:
    """Test that omitted mapping fields default to a shared empty read-only mapping."""
    frontmatter = Frontmatter(title="Intro")
    tag = ComponentTag(name="Note", kind=ComponentKind.CALLOUT)
    opaque = OpaqueComponent(name="Widget")

    assert dict(frontmatter.extra) == {}
    assert dict(tag.attributes) == {}
    assert dict(opaque.attributes) == {}
    assert dict(Schema().properties) == {}
    with pytest.raises(TypeError):
        frontmatter.extra["key"] = "value"  # type: ignore[index]
