"""Registry that reconciles documents and API operations into one path space."""

import logging
import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from mdx_docs.config import DocsConfig, NavConfig, parse_nav_config
from mdx_docs.errors import BuildError, OpenApiParseError
from mdx_docs.models import Document, SearchEntry, SidebarEntry, SidebarGroup
from mdx_docs.openapi import OpenApiNormalizer
from mdx_docs.openapi_models import ApiSidebarGroup, NormalizedSpec, Operation
from mdx_docs.parser import MarkupParser
from mdx_docs.search import SearchIndex, SearchIndexer
from mdx_docs.visitors import render_markdown

logger = logging.getLogger(__name__)


def build(
    nav_config: NavConfig | Mapping[str, Any] | str,
    content_map: Mapping[str, str],
    openapi_specs: Mapping[str, str] | None = None,
    **options: Any,
) -> "DocsRegistry":
    """Build a registry from navigation, page texts and API specifications.

    Args:
        nav_config: Navigation configuration as NavConfig, mapping or JSON text.
        content_map: Content path to raw MDX text.
        openapi_specs: Sidebar path prefix to raw specification text.
        **options: Other DocsConfig fields such as ``site_title``.

    Returns:
        Built DocsRegistry.
    """
    config = DocsConfig(nav=nav_config, content=content_map, openapi_specs=openapi_specs or {}, **options)
    return DocsRegistry.from_config(config)


class DocsRegistry:
    """Immutable bundle of parsed documents, operations, sidebar and search index.

    Built once in a single pass and never mutated afterwards, so one instance
    can be shared by any number of readers. Lookups that find nothing return
    None or an empty tuple.
    """

    def __init__(self, config: DocsConfig) -> None:
        """Build the registry.

        Args:
            config: Site configuration and pre-loaded texts.

        Raises:
            BuildError: If the navigation config is malformed or lists a page
                missing from the content map.
        """
        self._config = config
        self._nav = parse_nav_config(config.nav)
        content = {path.strip("/"): text for path, text in config.content.items()}
        pages = self._nav.all_pages()
        logger.info("Building registry with %d nav pages and %d API specs", len(pages), len(config.openapi_specs))

        self._documents = MappingProxyType(self._parse_documents(pages, content))
        self._specs, self._spec_errors = self._normalize_specs(config.openapi_specs)
        self._operations = MappingProxyType(
            {f"{prefix}/{op.slug}": op for prefix, spec in self._specs.items() for op in spec.operations}
        )

        missing = [page for page in pages if page not in self._documents]
        if missing:
            msg = f"Navigation references paths with no content: {', '.join(missing)}"
            raise BuildError(msg)

        self._sidebar = self._build_sidebar()
        self._search = SearchIndexer().build(self._documents.values())
        self._default_path = self._resolve_default_path()
        logger.info(
            "Registry built: %d documents, %d operations, %d search entries",
            len(self._documents),
            len(self._operations),
            len(self._search),
        )

    @classmethod
    def from_config(cls, config: DocsConfig) -> "DocsRegistry":
        """Build a registry from a DocsConfig.

        Args:
            config: Site configuration.

        Returns:
            Built DocsRegistry.
        """
        return cls(config)

    def _parse_documents(self, pages: tuple[str, ...], content: dict[str, str]) -> dict[str, Document]:
        parser = MarkupParser()
        documents: dict[str, Document] = {}
        for page in pages:
            text = content.get(page)
            if text is None:
                continue
            document = parser.parse_document(page, text)
            if document.diagnostics:
                logger.warning(
                    "Document %s parsed with diagnostics: %s",
                    page,
                    ", ".join(diagnostic.code for diagnostic in document.diagnostics),
                )
            documents[page] = document
        return documents

    def _normalize_specs(
        self, raw_specs: Mapping[str, str]
    ) -> tuple[Mapping[str, NormalizedSpec], Mapping[str, str]]:
        normalizer = OpenApiNormalizer()
        specs: dict[str, NormalizedSpec] = {}
        errors: dict[str, str] = {}
        for raw_prefix, text in raw_specs.items():
            prefix = raw_prefix.strip("/")
            try:
                specs[prefix] = normalizer.parse(text)
            except OpenApiParseError as exc:
                logger.error("Skipping API specification for %s: %s", prefix, exc)
                errors[prefix] = str(exc)
        return MappingProxyType(specs), MappingProxyType(errors)

    def _build_sidebar(self) -> tuple[SidebarGroup, ...]:
        api_groups = tuple(
            _sidebar_group(group) for prefix, spec in self._specs.items() for group in spec.sidebar(prefix)
        )
        groups: list[SidebarGroup] = []
        placed = False
        for nav_group in self._nav.groups:
            entries: list[SidebarEntry | SidebarGroup] = [self._page_entry(page) for page in nav_group.pages]
            if nav_group.group == self._config.api_group_name and not placed:
                entries.extend(api_groups)
                placed = True
            groups.append(SidebarGroup(title=nav_group.group, entries=tuple(entries), tab=nav_group.tab))
        if api_groups and not placed:
            groups.append(SidebarGroup(title=self._config.api_group_name, entries=api_groups))
        return tuple(groups)

    def _page_entry(self, page: str) -> SidebarEntry:
        operation = self.get_api_operation(page)
        if operation is not None:
            return SidebarEntry(title=operation.title, path=page, method=operation.method)
        return SidebarEntry(title=self.get_sidebar_title(page) or page, path=page)

    def _resolve_default_path(self) -> str | None:
        configured = self._config.default_path
        if configured is not None:
            configured = configured.strip("/")
            if self.resolve(configured) is None:
                msg = f"Default path has no content: {configured}"
                raise BuildError(msg)
            return configured
        pages = self._nav.all_pages()
        if pages:
            return pages[0]
        return next(iter(self._operations), None)

    # Lookups

    def _api_prefix_for(self, path: str) -> str | None:
        for prefix in self._specs:
            if path.startswith(f"{prefix}/"):
                return prefix
        return None

    @property
    def config(self) -> DocsConfig:
        """Configuration the registry was built from."""
        return self._config

    @property
    def nav(self) -> NavConfig:
        """Validated navigation config."""
        return self._nav

    @property
    def documents(self) -> Mapping[str, Document]:
        """Parsed documents keyed by content path, in nav order."""
        return self._documents

    @property
    def operations(self) -> Mapping[str, Operation]:
        """API operations keyed by ``<prefix>/<slug>``."""
        return self._operations

    @property
    def spec_errors(self) -> Mapping[str, str]:
        """Error messages of API specifications that failed to load, by prefix."""
        return self._spec_errors

    @property
    def search_index(self) -> SearchIndex:
        """Search index over all documents."""
        return self._search

    @property
    def sidebar(self) -> tuple[SidebarGroup, ...]:
        """Sidebar groups in nav order, API tag groups included."""
        return self._sidebar

    @property
    def default_path(self) -> str | None:
        """Path to show when none is requested."""
        return self._default_path

    def get_parsed_doc(self, path: str) -> Document | None:
        """Get a parsed document by content path.

        Args:
            path: Content path such as ``guides/setup``.

        Returns:
            Document, or None if not found.
        """
        return self._documents.get(path.strip("/"))

    def get_api_operation(self, path: str) -> Operation | None:
        """Get an API operation by its sidebar path.

        Args:
            path: Path such as ``api-reference/list-users``.

        Returns:
            Operation, or None if the path is not an operation.
        """
        return self._operations.get(path.strip("/"))

    def get_api_spec(self, prefix: str) -> NormalizedSpec | None:
        """Get the normalized specification mounted at a prefix.

        Args:
            prefix: Sidebar path prefix.

        Returns:
            NormalizedSpec, or None if no spec loaded there.
        """
        return self._specs.get(prefix.strip("/"))

    def resolve(self, path: str) -> Operation | Document | None:
        """Resolve a path to the content it addresses.

        Under an API prefix operations take precedence over documents.

        Args:
            path: Requested path.

        Returns:
            Operation or Document, or None if nothing lives at the path.
        """
        path = path.strip("/")
        if self._api_prefix_for(path) is not None:
            operation = self._operations.get(path)
            if operation is not None:
                return operation
        return self._documents.get(path)

    def get_sidebar_title(self, path: str) -> str | None:
        """Title shown in the sidebar for a path.

        Args:
            path: Content or operation path.

        Returns:
            ``sidebarTitle``, falling back to the page title, or None.
        """
        target = self.resolve(path)
        if isinstance(target, Operation):
            return target.title
        if target is None:
            return None
        return target.frontmatter.sidebar_title or target.title

    def get_doc_title(self, path: str) -> str | None:
        """Page title for a path.

        Args:
            path: Content or operation path.

        Returns:
            Title, or None if nothing lives at the path.
        """
        target = self.resolve(path)
        return None if target is None else target.title

    def get_doc_icon(self, path: str) -> str | None:
        """Frontmatter icon of a document.

        Args:
            path: Content path.

        Returns:
            Icon name, or None when the page is missing or has no icon.
        """
        document = self.get_parsed_doc(path)
        return None if document is None else document.frontmatter.icon

    def get_all_paths(self) -> tuple[str, ...]:
        """Every addressable path: nav pages first, then API operations.

        Returns:
            Paths without duplicates.
        """
        return tuple(dict.fromkeys((*self._documents, *self._operations)))

    def get_api_endpoint_paths(self) -> tuple[str, ...]:
        """Paths of all API operations.

        Returns:
            Operation paths in specification order.
        """
        return tuple(self._operations)

    def get_api_sidebar_entries(self, prefix: str) -> tuple[ApiSidebarGroup, ...]:
        """API operations under a prefix grouped by tag.

        Args:
            prefix: Sidebar path prefix.

        Returns:
            Tag groups, or an empty tuple when no spec is mounted there.
        """
        spec = self.get_api_spec(prefix)
        return () if spec is None else spec.sidebar(prefix.strip("/"))

    def search_docs(self, query: str, limit: int | None = None) -> tuple[SearchEntry, ...]:
        """Full-text search over documents.

        Args:
            query: Query text.
            limit: Maximum number of results.

        Returns:
            Matching sections, best first.
        """
        return self._search.query(query, limit)

    def tab_for_path(self, path: str) -> str | None:
        """Tab owning a path.

        Args:
            path: Content or operation path.

        Returns:
            Tab name, or None when the path belongs to no tab.
        """
        path = path.strip("/")
        for group in self._nav.groups:
            if path in group.pages:
                return group.tab
        if self._api_prefix_for(path) is not None:
            for group in self._nav.groups:
                if group.group == self._config.api_group_name:
                    return group.tab
        return None

    # Export

    def _export_header(self) -> list[str]:
        return [f"# {self._config.site_title}", "", f"> {self._config.site_description}", ""]

    def generate_llms_txt(self) -> str:
        """Generate an ``llms.txt`` index of all pages in nav order.

        Returns:
            Markdown listing with one line per page.
        """
        lines = self._export_header()
        for path, document in self._documents.items():
            link = f"- [{document.title}]({self._config.page_url(path)})"
            lines.append(f"{link}: {document.description}" if document.description else link)
        return "\n".join(lines) + "\n"

    def generate_llms_full_txt(self) -> str:
        """Generate ``llms-full.txt`` with the rendered body of every page.

        Returns:
            Markdown text with a ``---`` marker and path header before each page.
        """
        lines = self._export_header()
        for path, document in self._documents.items():
            lines.extend(
                [
                    "---",
                    "",
                    f"## [{document.title}]({self._config.page_url(path)})",
                    "",
                    f"Path: {path}",
                    "",
                ]
            )
            body = render_markdown(document.body)
            if body:
                lines.extend([body, ""])
        return "\n".join(lines) + "\n"


def _sidebar_group(group: ApiSidebarGroup) -> SidebarGroup:
    return SidebarGroup(
        title=group.tag.name,
        entries=tuple(SidebarEntry(title=entry.title, path=entry.path, method=entry.method) for entry in group.entries),
    )


class RegistryHolder:
    """Shares the current registry between readers and swaps it on reload.

    Readers take ``current`` without locking; a reload builds a complete new
    registry before replacing the reference.
    """

    def __init__(self, registry: DocsRegistry) -> None:
        """Initialise holder.

        Args:
            registry: Initial registry.
        """
        self._registry = registry
        self._lock = threading.Lock()

    @property
    def current(self) -> DocsRegistry:
        """Registry readers should query."""
        return self._registry

    def reload(self, config: DocsConfig) -> DocsRegistry:
        """Build a new registry and swap it in.

        Args:
            config: New configuration.

        Returns:
            The new registry.

        Raises:
            BuildError: If the build fails; the previous registry stays current.
        """
        with self._lock:
            try:
                registry = DocsRegistry.from_config(config)
            except BuildError:
                logger.exception("Registry reload failed, keeping previous registry")
                raise
            self._registry = registry
        logger.info("Registry reloaded")
        return registry
