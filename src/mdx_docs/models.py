"""Data models for parsed documentation content."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from mdx_docs.openapi_models import HttpMethod

EMPTY_MAPPING: Mapping[str, str] = MappingProxyType({})


def freeze_mapping(values: Mapping[str, object] | None) -> Mapping:
    """Return a read-only copy of a mapping.

    Args:
        values: Mapping to copy, or None.

    Returns:
        Read-only mapping proxy over a private copy.
    """
    if not values:
        return EMPTY_MAPPING
    return MappingProxyType(dict(values))


@dataclass(frozen=True)
class ParseDiagnostic:
    """Non-fatal problem found while parsing a document."""

    code: str
    message: str
    line: int | None = None


@dataclass(frozen=True)
class Frontmatter:
    """Metadata extracted from a document's frontmatter block."""

    title: str
    description: str | None = None
    sidebar_title: str | None = None
    icon: str | None = None
    extra: Mapping[str, object] = field(default_factory=lambda: EMPTY_MAPPING)


# Inline nodes


@dataclass(frozen=True)
class Text:
    """Plain text run."""

    text: str


@dataclass(frozen=True)
class Emphasis:
    """Emphasised span; ``strong`` for ``**bold**`` spans."""

    children: tuple["InlineNode", ...]
    strong: bool = False


@dataclass(frozen=True)
class InlineCode:
    """Inline code span."""

    text: str


@dataclass(frozen=True)
class Link:
    """Hyperlink with inline label."""

    href: str
    children: tuple["InlineNode", ...]


InlineNode = Text | Emphasis | InlineCode | Link


def inline_text(nodes: tuple[InlineNode, ...]) -> str:
    """Flatten inline nodes into plain text.

    Args:
        nodes: Inline nodes.

    Returns:
        Concatenated text without markup.
    """
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, Text | InlineCode):
            parts.append(node.text)
        else:
            parts.append(inline_text(node.children))
    return "".join(parts)


# Block nodes


@dataclass(frozen=True)
class Heading:
    """Section heading with its anchor id."""

    level: int
    text: str
    id: str


@dataclass(frozen=True)
class Paragraph:
    """Paragraph of inline content."""

    children: tuple[InlineNode, ...]

    @property
    def text(self) -> str:
        """Plain text of the paragraph."""
        return inline_text(self.children)


@dataclass(frozen=True)
class CodeBlock:
    """Fenced code block."""

    language: str | None
    text: str
    filename: str | None = None


@dataclass(frozen=True)
class ListItem:
    """Single list item, optionally holding a nested list."""

    children: tuple[InlineNode, ...]
    nested: "ListBlock | None" = None

    @property
    def text(self) -> str:
        """Plain text of the item, excluding nested lists."""
        return inline_text(self.children)


@dataclass(frozen=True)
class ListBlock:
    """Ordered or bulleted list."""

    ordered: bool
    items: tuple[ListItem, ...]
    start: int = 1


class ComponentKind(str, Enum):
    """Recognised component tag kinds."""

    CALLOUT = "callout"
    CARD = "card"
    CARD_GROUP = "card-group"
    COLUMNS = "columns"
    TABS = "tabs"
    TAB = "tab"
    STEPS = "steps"
    STEP = "step"
    ACCORDION_GROUP = "accordion-group"
    ACCORDION = "accordion"
    PARAM_FIELD = "param-field"
    RESPONSE_FIELD = "response-field"
    EXPANDABLE = "expandable"
    CODE_GROUP = "code-group"
    REQUEST_EXAMPLE = "request-example"
    RESPONSE_EXAMPLE = "response-example"
    UPDATE = "update"
    OPENAPI = "openapi"

    @classmethod
    def from_tag(cls, name: str) -> "ComponentKind | None":
        """Look up the kind for a tag name.

        Args:
            name: Tag name as written in the source.

        Returns:
            Matching kind, or None for unrecognised names.
        """
        return COMPONENT_TAGS.get(name)


COMPONENT_TAGS: dict[str, ComponentKind] = {
    "Tip": ComponentKind.CALLOUT,
    "Note": ComponentKind.CALLOUT,
    "Warning": ComponentKind.CALLOUT,
    "Info": ComponentKind.CALLOUT,
    "Check": ComponentKind.CALLOUT,
    "Danger": ComponentKind.CALLOUT,
    "Card": ComponentKind.CARD,
    "CardGroup": ComponentKind.CARD_GROUP,
    "Columns": ComponentKind.COLUMNS,
    "Tabs": ComponentKind.TABS,
    "Tab": ComponentKind.TAB,
    "Steps": ComponentKind.STEPS,
    "Step": ComponentKind.STEP,
    "AccordionGroup": ComponentKind.ACCORDION_GROUP,
    "Accordion": ComponentKind.ACCORDION,
    "ParamField": ComponentKind.PARAM_FIELD,
    "ResponseField": ComponentKind.RESPONSE_FIELD,
    "Expandable": ComponentKind.EXPANDABLE,
    "CodeGroup": ComponentKind.CODE_GROUP,
    "RequestExample": ComponentKind.REQUEST_EXAMPLE,
    "ResponseExample": ComponentKind.RESPONSE_EXAMPLE,
    "Update": ComponentKind.UPDATE,
    "OpenAPI": ComponentKind.OPENAPI,
}


@dataclass(frozen=True)
class ComponentTag:
    """Recognised component with attributes and nested children."""

    name: str
    kind: ComponentKind
    attributes: Mapping[str, str] = field(default_factory=lambda: EMPTY_MAPPING)
    children: tuple["Node", ...] = ()


@dataclass(frozen=True)
class OpaqueComponent:
    """Component with an unrecognised tag name, kept for downstream renderers."""

    name: str
    attributes: Mapping[str, str] = field(default_factory=lambda: EMPTY_MAPPING)
    children: tuple["Node", ...] = ()


BlockNode = Heading | Paragraph | CodeBlock | ListBlock | ComponentTag | OpaqueComponent
Node = BlockNode


@dataclass(frozen=True)
class Document:
    """Represents a parsed documentation page."""

    path: str
    frontmatter: Frontmatter
    body: tuple[Node, ...]
    diagnostics: tuple[ParseDiagnostic, ...] = ()

    @property
    def title(self) -> str:
        """Page title from frontmatter (or the path fallback)."""
        return self.frontmatter.title

    @property
    def description(self) -> str | None:
        """Page description from frontmatter."""
        return self.frontmatter.description


@dataclass(frozen=True)
class SearchEntry:
    """One searchable section of a document."""

    path: str
    title: str
    heading: str
    anchor: str | None
    excerpt: str
    tokens: frozenset[str]
    heading_tokens: frozenset[str] = field(default_factory=frozenset)
    title_tokens: frozenset[str] = field(default_factory=frozenset)
    body_tokens: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class SearchResult:
    """Search entry paired with its relevance score."""

    entry: SearchEntry
    score: float


@dataclass(frozen=True)
class SidebarEntry:
    """Sidebar link to a document or API operation."""

    title: str
    path: str
    method: HttpMethod | None = None


@dataclass(frozen=True)
class SidebarGroup:
    """Titled group of sidebar entries, possibly nested."""

    title: str
    entries: tuple["SidebarEntry | SidebarGroup", ...]
    tab: str | None = None
