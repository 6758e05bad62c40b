"""Tests for site configuration."""

import json

import pytest

from mdx_docs.config import DEFAULT_API_GROUP_NAME, DocsConfig, NavConfig, NavGroup, parse_nav_config
from mdx_docs.errors import BuildError

NAV = {
    "tabs": ["Guides", "API"],
    "groups": [
        {"group": "Getting Started", "tab": "Guides", "pages": ["intro", "guides/setup"]},
        {"group": "Advanced", "tab": "Guides", "pages": ["guides/deploy", "intro"]},
        {"group": "API Reference", "tab": "API", "pages": ["api/overview"]},
    ],
}


def test_parse_nav_config_from_mapping() -> None:
    """Test parsing a navigation mapping."""
    nav = parse_nav_config(NAV)

    assert nav.tabs == ("Guides", "API")
    assert nav.groups[0] == NavGroup(group="Getting Started", pages=("intro", "guides/setup"), tab="Guides")
    assert nav.has_tabs


def test_parse_nav_config_from_json() -> None:
    """Test parsing navigation JSON text."""
    nav = parse_nav_config(json.dumps(NAV))

    assert [group.group for group in nav.groups] == ["Getting Started", "Advanced", "API Reference"]


def test_parse_nav_config_passthrough() -> None:
    """Test that an already parsed NavConfig is returned unchanged."""
    nav = NavConfig(groups=(NavGroup(group="Docs", pages=("intro",)),))

    assert parse_nav_config(nav) is nav
    assert not nav.has_tabs


def test_all_pages_deduplicated_in_order() -> None:
    """Test page listing in nav order without repeats."""
    nav = parse_nav_config(NAV)

    assert nav.all_pages() == ("intro", "guides/setup", "guides/deploy", "api/overview")


def test_groups_for_tab() -> None:
    """Test filtering groups by tab."""
    nav = parse_nav_config(NAV)

    assert [group.group for group in nav.groups_for_tab("Guides")] == ["Getting Started", "Advanced"]
    assert nav.groups_for_tab("Missing") == ()


def test_page_paths_are_normalized() -> None:
    """Test that surrounding slashes are removed from page paths."""
    nav = parse_nav_config({"groups": [{"group": "Docs", "pages": ["/intro/"]}]})

    assert nav.all_pages() == ("intro",)


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ("{not json", "not valid JSON"),
        ([], "must be a mapping"),
        ({}, "requires a 'groups' list"),
        ({"groups": "intro"}, "requires a 'groups' list"),
        ({"tabs": "Guides", "groups": []}, "'tabs' must be a list"),
        ({"groups": ["intro"]}, "must be a mapping"),
        ({"groups": [{"pages": ["intro"]}]}, "requires a 'group' name"),
        ({"groups": [{"group": "Docs", "pages": "intro"}]}, "'pages' as strings"),
        ({"groups": [{"group": "Docs", "pages": [1]}]}, "'pages' as strings"),
        ({"groups": [{"group": "Docs", "tab": 3, "pages": []}]}, "non-string 'tab'"),
        ({"tabs": ["Guides"], "groups": [{"group": "Docs", "tab": "API", "pages": []}]}, "unknown tab 'API'"),
    ],
)
def test_malformed_nav_config(raw: object, message: str) -> None:
    """Test that malformed navigation raises BuildError."""
    with pytest.raises(BuildError, match=message):
        parse_nav_config(raw)  # type: ignore[arg-type]


def test_docs_config_defaults() -> None:
    """Test DocsConfig default values."""
    config = DocsConfig(nav=NAV)

    assert config.api_group_name == DEFAULT_API_GROUP_NAME
    assert config.docs_route == "docs"
    assert dict(config.openapi_specs) == {}


def test_with_openapi_returns_copy() -> None:
    """Test that with_openapi leaves the original config untouched."""
    config = DocsConfig(nav=NAV)

    updated = config.with_openapi("/api-reference/", "openapi: 3.0.0")

    assert dict(updated.openapi_specs) == {"api-reference": "openapi: 3.0.0"}
    assert dict(config.openapi_specs) == {}


def test_page_url() -> None:
    """Test public URL generation for content paths."""
    assert DocsConfig(nav=NAV, base_url="https://example.com/").page_url("guides/setup") == (
        "https://example.com/docs/guides/setup"
    )
    assert DocsConfig(nav=NAV).page_url("intro") == "/docs/intro"
