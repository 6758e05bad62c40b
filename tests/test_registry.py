"""Tests for the documentation registry."""

import logging

import pytest

from mdx_docs.config import DocsConfig
from mdx_docs.errors import BuildError
from mdx_docs.models import Heading, Paragraph, SidebarEntry, SidebarGroup, Text
from mdx_docs.openapi_models import HttpMethod, Operation
from mdx_docs.registry import DocsRegistry, RegistryHolder, build

NAV = {
    "tabs": ["Guides", "API"],
    "groups": [
        {"group": "Getting Started", "tab": "Guides", "pages": ["intro", "guides/setup"]},
        {"group": "API Reference", "tab": "API", "pages": ["api-reference/overview", "api-reference/list-users"]},
    ],
}

CONTENT = {
    "intro": "---\ntitle: Intro\ndescription: Start here.\nicon: rocket\n---\n# Intro\n\nWelcome to docs.",
    "guides/setup": (
        "---\nsidebarTitle: Setup guide\n---\n## Install\n\nRun the installer.\n\n<Note>Needs admin rights.</Note>"
    ),
    "api-reference/overview": "---\ntitle: API Overview\n---\nAll endpoints.",
    "api-reference/list-users": "---\ntitle: Colliding page\n---\nShadowed.",
    "unused": "# Not in nav",
}

USERS_SPEC = """
openapi: 3.0.0
info:
  title: Users
  version: "1"
tags:
  - name: Users
paths:
  /users:
    get:
      operationId: list_users
      summary: List users
      tags: [Users]
  /users/{id}:
    get:
      operationId: getUserById
      summary: Get a user
      tags: [Users]
  /ping:
    get:
      summary: Ping
"""

SITE = {"site_title": "Acme Docs", "site_description": "Docs for Acme.", "base_url": "https://docs.acme.dev"}


@pytest.fixture
def registry() -> DocsRegistry:
    """Build a registry over the sample site.

    Returns:
        DocsRegistry instance.
    """
    return build(NAV, CONTENT, {"api-reference": USERS_SPEC}, **SITE)


def test_intro_document_end_to_end(registry: DocsRegistry) -> None:
    """Test the parsed body and search result of a simple page."""
    doc = registry.get_parsed_doc("intro")

    assert doc is not None
    assert doc.body == (Heading(level=1, text="Intro", id="intro"), Paragraph((Text("Welcome to docs."),)))
    results = registry.search_docs("welcome")
    assert len(results) == 1
    assert results[0].path == "intro"


def test_titles(registry: DocsRegistry) -> None:
    """Test page and sidebar titles with their fallbacks."""
    assert registry.get_doc_title("guides/setup") == "setup"
    assert registry.get_sidebar_title("guides/setup") == "Setup guide"
    assert registry.get_sidebar_title("intro") == "Intro"
    assert registry.get_doc_title("api-reference/get-user-by-id") == "Get a user"
    assert registry.get_doc_title("missing") is None
    assert registry.get_sidebar_title("missing") is None


def test_doc_icon(registry: DocsRegistry) -> None:
    """Test frontmatter icons by path."""
    assert registry.get_doc_icon("intro") == "rocket"
    assert registry.get_doc_icon("guides/setup") is None
    assert registry.get_doc_icon("missing") is None


def test_config_and_nav_are_read_only(registry: DocsRegistry) -> None:
    """Test that the built configuration cannot be rebound."""
    assert registry.config.site_title == "Acme Docs"
    assert registry.nav.tabs == ("Guides", "API")

    with pytest.raises(AttributeError):
        registry.config = DocsConfig(nav=NAV)  # type: ignore[misc]
    with pytest.raises(AttributeError):
        registry.nav = registry.nav  # type: ignore[misc]


def test_only_nav_pages_are_parsed(registry: DocsRegistry) -> None:
    """Test that content outside the navigation is not loaded."""
    assert registry.get_parsed_doc("unused") is None
    assert list(registry.documents) == [
        "intro",
        "guides/setup",
        "api-reference/overview",
        "api-reference/list-users",
    ]


def test_api_operation_wins_over_colliding_document(registry: DocsRegistry) -> None:
    """Test that API paths resolve to operations before documents."""
    operation = registry.get_api_operation("api-reference/list-users")

    assert operation is not None
    assert operation.operation_id == "list_users"
    assert isinstance(registry.resolve("api-reference/list-users"), Operation)
    assert registry.get_doc_title("api-reference/list-users") == "List users"
    colliding = registry.get_parsed_doc("api-reference/list-users")
    assert colliding is not None
    assert colliding.title == "Colliding page"


def test_lookups_not_found(registry: DocsRegistry) -> None:
    """Test that lookups return None or empty results instead of raising."""
    assert registry.get_parsed_doc("nope") is None
    assert registry.get_api_operation("api-reference/nope") is None
    assert registry.get_api_spec("nope") is None
    assert registry.resolve("nope") is None
    assert registry.get_api_sidebar_entries("nope") == ()
    assert registry.search_docs("") == ()


def test_api_paths(registry: DocsRegistry) -> None:
    """Test endpoint path listing and the combined path space."""
    assert registry.get_api_endpoint_paths() == (
        "api-reference/list-users",
        "api-reference/get-user-by-id",
        "api-reference/get-ping",
    )
    assert registry.get_all_paths() == (
        "intro",
        "guides/setup",
        "api-reference/overview",
        "api-reference/list-users",
        "api-reference/get-user-by-id",
        "api-reference/get-ping",
    )
    spec = registry.get_api_spec("api-reference")
    assert spec is not None
    assert spec.info.title == "Users"


def test_api_sidebar_entries(registry: DocsRegistry) -> None:
    """Test API sidebar groups by declared tag."""
    groups = registry.get_api_sidebar_entries("api-reference")

    assert [group.tag.name for group in groups] == ["Users", "Other"]
    assert [entry.slug for entry in groups[0].entries] == ["list-users", "get-user-by-id"]
    assert groups[1].entries[0].path == "api-reference/get-ping"


def test_sidebar_merges_api_groups(registry: DocsRegistry) -> None:
    """Test that API tag groups nest under the API group of the navigation."""
    sidebar = registry.sidebar

    assert [group.title for group in sidebar] == ["Getting Started", "API Reference"]
    assert sidebar[0].tab == "Guides"
    assert sidebar[0].entries == (
        SidebarEntry(title="Intro", path="intro"),
        SidebarEntry(title="Setup guide", path="guides/setup"),
    )
    api = sidebar[1]
    assert api.entries[0] == SidebarEntry(title="API Overview", path="api-reference/overview")
    assert api.entries[1] == SidebarEntry(title="List users", path="api-reference/list-users", method=HttpMethod.GET)
    nested = [entry for entry in api.entries if isinstance(entry, SidebarGroup)]
    assert [group.title for group in nested] == ["Users", "Other"]


def test_sidebar_appends_api_group_when_not_in_nav() -> None:
    """Test that API groups get their own sidebar group when the nav has none."""
    registry = build({"groups": [{"group": "Docs", "pages": ["intro"]}]}, {"intro": "Hi"}, {"api": USERS_SPEC})

    assert [group.title for group in registry.sidebar] == ["Docs", "API Reference"]


def test_tab_for_path(registry: DocsRegistry) -> None:
    """Test tab lookup for pages and API operations."""
    assert registry.tab_for_path("intro") == "Guides"
    assert registry.tab_for_path("/guides/setup") == "Guides"
    assert registry.tab_for_path("api-reference/get-user-by-id") == "API"
    assert registry.tab_for_path("unknown") is None


def test_search_covers_documents_only(registry: DocsRegistry) -> None:
    """Test that operations are not part of the search index."""
    assert registry.search_docs("ping") == ()
    assert registry.search_docs("installer")[0].path == "guides/setup"
    assert registry.search_docs("installer")[0].heading == "Install"


def test_missing_nav_path_raises() -> None:
    """Test that navigation referencing absent content fails the build."""
    with pytest.raises(BuildError, match="guides/missing"):
        build({"groups": [{"group": "Docs", "pages": ["intro", "guides/missing"]}]}, {"intro": "Hello"})


def test_nav_operation_path_without_content_raises() -> None:
    """Test that nav pages need content even when they match an operation path."""
    with pytest.raises(BuildError, match="api-reference/list-users"):
        build(
            {"groups": [{"group": "API Reference", "pages": ["api-reference/list-users"]}]},
            {},
            {"api-reference": USERS_SPEC},
        )


def test_default_path_falls_back_to_first_operation() -> None:
    """Test the default path of a site whose navigation lists no pages."""
    registry = build({"groups": [{"group": "API Reference", "pages": []}]}, {}, {"api-reference": USERS_SPEC})

    assert registry.default_path == "api-reference/list-users"
    assert registry.sidebar[0].entries[0] == SidebarGroup(
        title="Users",
        entries=(
            SidebarEntry(title="List users", path="api-reference/list-users", method=HttpMethod.GET),
            SidebarEntry(title="Get a user", path="api-reference/get-user-by-id", method=HttpMethod.GET),
        ),
    )


def test_malformed_nav_raises() -> None:
    """Test that malformed navigation fails the build."""
    with pytest.raises(BuildError):
        build({"groups": [{"pages": ["intro"]}]}, {"intro": "Hello"})


def test_bad_spec_is_isolated(caplog: pytest.LogCaptureFixture) -> None:
    """Test that one broken specification does not stop the build."""
    with caplog.at_level(logging.ERROR):
        registry = build(NAV, CONTENT, {"api-reference": USERS_SPEC, "broken": "not: [valid"})

    assert set(registry.spec_errors) == {"broken"}
    assert registry.get_api_spec("broken") is None
    assert registry.get_api_operation("api-reference/list-users") is not None
    assert "broken" in caplog.text


def test_documents_with_diagnostics_still_load() -> None:
    """Test that malformed markup degrades instead of failing the build."""
    registry = build({"groups": [{"group": "Docs", "pages": ["bad"]}]}, {"bad": "<Note>\nnever closed"})

    doc = registry.get_parsed_doc("bad")
    assert doc is not None
    assert [diagnostic.code for diagnostic in doc.diagnostics] == ["unterminated-tag"]


def test_deeply_nested_markup_does_not_fail_build() -> None:
    """Test that a page with deeply nested inline markup still builds and indexes."""
    registry = build({"groups": [{"group": "Docs", "pages": ["deep"]}]}, {"deep": "[" * 600 + "x" + "](u)" * 600})

    assert registry.search_docs("x")[0].path == "deep"
    assert "](u)" in registry.generate_llms_full_txt()


def test_default_path(registry: DocsRegistry) -> None:
    """Test the default path and its validation."""
    assert registry.default_path == "intro"

    configured = build(NAV, CONTENT, {"api-reference": USERS_SPEC}, default_path="/guides/setup")
    assert configured.default_path == "guides/setup"

    with pytest.raises(BuildError, match="Default path"):
        build(NAV, CONTENT, {"api-reference": USERS_SPEC}, default_path="nowhere")


def test_generate_llms_txt(registry: DocsRegistry) -> None:
    """Test the llms.txt page index."""
    assert registry.generate_llms_txt() == (
        "# Acme Docs\n"
        "\n"
        "> Docs for Acme.\n"
        "\n"
        "- [Intro](https://docs.acme.dev/docs/intro): Start here.\n"
        "- [setup](https://docs.acme.dev/docs/guides/setup)\n"
        "- [API Overview](https://docs.acme.dev/docs/api-reference/overview)\n"
        "- [Colliding page](https://docs.acme.dev/docs/api-reference/list-users)\n"
    )


def test_generate_llms_full_txt(registry: DocsRegistry) -> None:
    """Test the llms-full.txt export with rendered page bodies."""
    text = registry.generate_llms_full_txt()

    assert text.startswith("# Acme Docs\n\n> Docs for Acme.\n\n---\n")
    assert (
        "---\n\n## [Intro](https://docs.acme.dev/docs/intro)\n\nPath: intro\n\n# Intro\n\nWelcome to docs.\n" in text
    )
    assert "> **Note:** Needs admin rights." in text
    assert text.count("\n---\n") == 4


def test_exports_are_deterministic() -> None:
    """Test that identical input produces identical exports."""
    first = build(NAV, CONTENT, {"api-reference": USERS_SPEC}, **SITE)
    second = build(dict(NAV), dict(CONTENT), {"api-reference": USERS_SPEC}, **SITE)

    assert first.generate_llms_txt() == second.generate_llms_txt()
    assert first.generate_llms_full_txt() == second.generate_llms_full_txt()


def test_from_config() -> None:
    """Test building from a DocsConfig."""
    config = DocsConfig(nav=NAV, content=CONTENT).with_openapi("api-reference", USERS_SPEC)

    registry = DocsRegistry.from_config(config)

    assert registry.get_api_operation("api-reference/get-ping") is not None


def test_registry_holder_swaps_on_reload(registry: DocsRegistry) -> None:
    """Test that reload replaces the registry and failures keep the old one."""
    holder = RegistryHolder(registry)
    new_config = DocsConfig(nav={"groups": [{"group": "Docs", "pages": ["intro"]}]}, content={"intro": "# New"})

    reloaded = holder.reload(new_config)

    assert holder.current is reloaded
    assert holder.current is not registry
    assert holder.current.get_doc_title("intro") == "intro"

    broken = DocsConfig(nav={"groups": [{"group": "Docs", "pages": ["gone"]}]})
    with pytest.raises(BuildError):
        holder.reload(broken)
    assert holder.current is reloaded
