"""Documentation site configuration."""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from mdx_docs.errors import BuildError

DEFAULT_API_GROUP_NAME = "API Reference"


@dataclass(frozen=True)
class NavGroup:
    """Group of pages in the sidebar, optionally owned by a tab."""

    group: str
    pages: tuple[str, ...]
    tab: str | None = None


@dataclass(frozen=True)
class NavConfig:
    """Navigation configuration: ordered tabs and page groups."""

    groups: tuple[NavGroup, ...]
    tabs: tuple[str, ...] = ()

    @property
    def has_tabs(self) -> bool:
        """Whether the site shows more than one tab."""
        return len(self.tabs) > 1

    def groups_for_tab(self, tab: str) -> tuple[NavGroup, ...]:
        """Groups belonging to a tab.

        Args:
            tab: Tab name.

        Returns:
            Groups in nav order.
        """
        return tuple(group for group in self.groups if group.tab == tab)

    def all_pages(self) -> tuple[str, ...]:
        """Every page path in nav order, first occurrence only.

        Returns:
            Page paths.
        """
        return tuple(dict.fromkeys(page for group in self.groups for page in group.pages))


def parse_nav_config(raw: "NavConfig | Mapping[str, Any] | str") -> NavConfig:
    """Validate navigation configuration.

    Args:
        raw: NavConfig, mapping, or JSON text such as the contents of ``_nav.json``.

    Returns:
        NavConfig instance.

    Raises:
        BuildError: If the structure is malformed.
    """
    if isinstance(raw, NavConfig):
        return raw
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            msg = f"Navigation config is not valid JSON: {exc}"
            raise BuildError(msg) from exc
    if not isinstance(raw, Mapping):
        msg = "Navigation config must be a mapping"
        raise BuildError(msg)

    tabs = raw.get("tabs", [])
    if not isinstance(tabs, list) or not all(isinstance(tab, str) for tab in tabs):
        msg = "Navigation config 'tabs' must be a list of strings"
        raise BuildError(msg)

    raw_groups = raw.get("groups")
    if not isinstance(raw_groups, list):
        msg = "Navigation config requires a 'groups' list"
        raise BuildError(msg)

    groups = tuple(_parse_group(index, entry, tabs) for index, entry in enumerate(raw_groups))
    return NavConfig(groups=groups, tabs=tuple(tabs))


def _parse_group(index: int, entry: Any, tabs: list[str]) -> NavGroup:
    if not isinstance(entry, Mapping):
        msg = f"Navigation group #{index} must be a mapping"
        raise BuildError(msg)
    name = entry.get("group")
    if not isinstance(name, str) or not name:
        msg = f"Navigation group #{index} requires a 'group' name"
        raise BuildError(msg)
    pages = entry.get("pages", [])
    if not isinstance(pages, list) or not all(isinstance(page, str) for page in pages):
        msg = f"Navigation group '{name}' must list its 'pages' as strings"
        raise BuildError(msg)
    tab = entry.get("tab")
    if tab is not None and not isinstance(tab, str):
        msg = f"Navigation group '{name}' has a non-string 'tab'"
        raise BuildError(msg)
    if tab is not None and tabs and tab not in tabs:
        msg = f"Navigation group '{name}' refers to unknown tab '{tab}'"
        raise BuildError(msg)
    return NavGroup(group=name, pages=tuple(page.strip("/") for page in pages), tab=tab)


@dataclass(slots=True)
class DocsConfig:
    """Inputs for building a documentation registry.

    ``content`` maps content paths (``guides/setup``) to raw MDX text and
    ``openapi_specs`` maps sidebar path prefixes (``api-reference``) to raw
    YAML or JSON specifications, in the order they should appear.
    """

    nav: NavConfig | Mapping[str, Any] | str
    content: Mapping[str, str] = field(default_factory=dict)
    openapi_specs: Mapping[str, str] = field(default_factory=dict)
    default_path: str | None = None
    api_group_name: str = DEFAULT_API_GROUP_NAME
    site_title: str = "Documentation"
    site_description: str = ""
    base_url: str = ""
    docs_route: str = "docs"

    def with_openapi(self, prefix: str, spec_text: str) -> "DocsConfig":
        """Return a copy with one more API specification mounted at ``prefix``.

        Args:
            prefix: Sidebar path prefix, e.g. ``api-reference``.
            spec_text: Raw specification text.

        Returns:
            Updated DocsConfig.
        """
        specs = dict(self.openapi_specs)
        specs[prefix.strip("/")] = spec_text
        return replace(self, openapi_specs=specs)

    def page_url(self, path: str) -> str:
        """Public URL of a content path.

        Args:
            path: Content path.

        Returns:
            URL under ``base_url`` and ``docs_route``.
        """
        route = "/".join(part for part in (self.docs_route.strip("/"), path.strip("/")) if part)
        return f"{self.base_url.rstrip('/')}/{route}"
