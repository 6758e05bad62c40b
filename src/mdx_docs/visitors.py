"""Visitors that walk parsed document trees."""

import re
from collections.abc import Iterable, Iterator, Mapping

from mdx_docs.models import (
    CodeBlock,
    ComponentKind,
    ComponentTag,
    Emphasis,
    Heading,
    InlineCode,
    InlineNode,
    Link,
    ListBlock,
    ListItem,
    Node,
    OpaqueComponent,
    Paragraph,
    Text,
)

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")

# Attributes whose values are visible text in rendered components.
TEXT_ATTRIBUTES = ("title", "label", "description")


class SkipNode(Exception):  # noqa: N818
    """Raised by a visit method to skip the children of the current node."""


def children_of(node: object) -> Iterator[object]:
    """Yield the direct children of any document or inline node.

    Args:
        node: Block, list item or inline node.

    Yields:
        Child nodes in document order.
    """
    if isinstance(node, ListBlock):
        yield from node.items
    elif isinstance(node, ListItem):
        yield from node.children
        if node.nested is not None:
            yield node.nested
    elif isinstance(node, Paragraph | Emphasis | Link | ComponentTag | OpaqueComponent):
        yield from node.children


class NodeVisitor:
    """Generic depth-first visitor.

    For a node of class ``FooBar`` the visitor calls ``visit_foo_bar`` before
    the children and ``depart_foo_bar`` after them, falling back to
    ``default_visit`` and ``default_departure``.
    """

    def walk(self, nodes: Iterable[object]) -> None:
        """Visit each node and its descendants.

        Args:
            nodes: Top-level nodes.
        """
        for node in nodes:
            self.dispatch(node)

    def dispatch(self, node: object) -> None:
        """Visit a single node and its descendants.

        Args:
            node: Node to visit.
        """
        suffix = _CAMEL.sub("_", type(node).__name__).lower()
        visit = getattr(self, f"visit_{suffix}", self.default_visit)
        try:
            visit(node)
        except SkipNode:
            return
        for child in children_of(node):
            self.dispatch(child)
        getattr(self, f"depart_{suffix}", self.default_departure)(node)

    def default_visit(self, node: object) -> None:
        """Default visit handler (no-op).

        Args:
            node: Any node.
        """

    def default_departure(self, node: object) -> None:
        """Default departure handler (no-op).

        Args:
            node: Any node.
        """


class TextContentVisitor(NodeVisitor):
    """Collects searchable text, skipping code blocks."""

    def __init__(self) -> None:
        """Initialise text content visitor."""
        self._text_parts: list[str] = []

    def visit_code_block(self, node: CodeBlock) -> None:
        """Skip code blocks.

        Args:
            node: Code block node.

        Raises:
            SkipNode: Always raised to skip code blocks.
        """
        raise SkipNode

    def visit_heading(self, node: Heading) -> None:
        """Collect heading text.

        Args:
            node: Heading node.
        """
        self._append(node.text)

    def visit_text(self, node: Text) -> None:
        """Collect plain text.

        Args:
            node: Text node.
        """
        self._append(node.text)

    def visit_inline_code(self, node: InlineCode) -> None:
        """Collect inline code; unlike code blocks it reads as prose.

        Args:
            node: Inline code node.
        """
        self._append(node.text)

    def visit_component_tag(self, node: ComponentTag) -> None:
        """Collect visible attribute text such as card titles.

        Args:
            node: Component node.
        """
        self._append_attributes(node.attributes)

    def visit_opaque_component(self, node: OpaqueComponent) -> None:
        """Collect visible attribute text of unrecognised components.

        Args:
            node: Component node.
        """
        self._append_attributes(node.attributes)

    def _append_attributes(self, attributes: Mapping[str, str]) -> None:
        for key in TEXT_ATTRIBUTES:
            value = attributes.get(key)
            if value:
                self._append(value)

    def _append(self, text: str) -> None:
        text = " ".join(text.split())
        if text:
            self._text_parts.append(text)

    def get_text(self) -> str:
        """Get collected text content.

        Returns:
            Concatenated text content.
        """
        return " ".join(self._text_parts)


def plain_text(nodes: Iterable[object]) -> str:
    """Searchable plain text of a node sequence.

    Args:
        nodes: Nodes to flatten.

    Returns:
        Whitespace-normalised text without code blocks.
    """
    visitor = TextContentVisitor()
    visitor.walk(nodes)
    return visitor.get_text()


def render_inline_markdown(nodes: Iterable[InlineNode]) -> str:
    """Render inline nodes back to markdown.

    Args:
        nodes: Inline nodes.

    Returns:
        Markdown text.
    """
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, Text):
            parts.append(node.text)
        elif isinstance(node, InlineCode):
            parts.append(f"`{node.text}`")
        elif isinstance(node, Emphasis):
            marker = "**" if node.strong else "*"
            parts.append(f"{marker}{render_inline_markdown(node.children)}{marker}")
        else:
            parts.append(f"[{render_inline_markdown(node.children)}]({node.href})")
    return "".join(parts)


class MarkdownVisitor(NodeVisitor):
    """Renders a parsed tree back to flat markdown text.

    Components are flattened to plain markdown so the output reads well without
    a component renderer.
    """

    def __init__(self) -> None:
        """Initialise markdown visitor."""
        self.blocks: list[str] = []

    def astext(self) -> str:
        """Rendered markdown.

        Returns:
            Blocks separated by blank lines.
        """
        return "\n\n".join(block for block in self.blocks if block)

    def _render(self, nodes: Iterable[Node]) -> str:
        inner = MarkdownVisitor()
        inner.walk(nodes)
        return inner.astext()

    def visit_heading(self, node: Heading) -> None:
        """Render a heading.

        Args:
            node: Heading node.

        Raises:
            SkipNode: Headings have no child nodes to walk.
        """
        self.blocks.append(f"{'#' * node.level} {node.text}")
        raise SkipNode

    def visit_paragraph(self, node: Paragraph) -> None:
        """Render a paragraph.

        Args:
            node: Paragraph node.

        Raises:
            SkipNode: Inline children are rendered here.
        """
        self.blocks.append(render_inline_markdown(node.children))
        raise SkipNode

    def visit_code_block(self, node: CodeBlock) -> None:
        """Render a fenced code block.

        Args:
            node: Code block node.

        Raises:
            SkipNode: Code blocks have no child nodes.
        """
        info = " ".join(part for part in (node.language, node.filename) if part)
        fence = "````" if "```" in node.text else "```"
        self.blocks.append(f"{fence}{info}\n{node.text}\n{fence}")
        raise SkipNode

    def visit_list_block(self, node: ListBlock) -> None:
        """Render a list, nested lists indented.

        Args:
            node: List node.

        Raises:
            SkipNode: Items are rendered here.
        """
        self.blocks.append("\n".join(_list_lines(node, indent="")))
        raise SkipNode

    def visit_component_tag(self, node: ComponentTag) -> None:
        """Flatten a recognised component.

        Args:
            node: Component node.

        Raises:
            SkipNode: Children are rendered here.
        """
        attrs = node.attributes
        title = attrs.get("title") or attrs.get("label")
        body = self._render(node.children)

        if node.kind is ComponentKind.CALLOUT:
            lines = f"**{node.name}:** {body}".splitlines() or [""]
            self.blocks.append("\n".join(f"> {line}" if line else ">" for line in lines))
        elif node.kind is ComponentKind.STEPS:
            steps = []
            for number, child in enumerate(node.children, start=1):
                if isinstance(child, ComponentTag) and child.kind is ComponentKind.STEP:
                    step_title = child.attributes.get("title", "")
                    steps.append(f"{number}. **{step_title}**\n\n{self._render(child.children)}".rstrip())
                else:
                    steps.append(self._render([child]))
            self.blocks.append("\n\n".join(steps))
        elif node.kind in (ComponentKind.TAB, ComponentKind.ACCORDION, ComponentKind.UPDATE):
            self.blocks.append(f"#### {title or node.name}")
            self.blocks.append(body)
        elif node.kind in (ComponentKind.PARAM_FIELD, ComponentKind.RESPONSE_FIELD):
            self.blocks.append(_field_line(attrs, body))
        else:
            if title:
                self.blocks.append(f"**{title}**")
            self.blocks.append(body)
        raise SkipNode

    def visit_opaque_component(self, node: OpaqueComponent) -> None:
        """Flatten an unrecognised component to its children.

        Args:
            node: Component node.

        Raises:
            SkipNode: Children are rendered here.
        """
        title = node.attributes.get("title")
        if title:
            self.blocks.append(f"**{title}**")
        self.blocks.append(self._render(node.children))
        raise SkipNode


def _list_lines(node: ListBlock, indent: str) -> list[str]:
    lines: list[str] = []
    for number, item in enumerate(node.items, start=node.start):
        marker = f"{number}." if node.ordered else "-"
        text = render_inline_markdown(item.children).replace("\n", f"\n{indent}  ")
        lines.append(f"{indent}{marker} {text}")
        if item.nested is not None:
            lines.extend(_list_lines(item.nested, indent + " " * (len(marker) + 1)))
    return lines


_FIELD_NAME_KEYS = ("name", "path", "query", "header", "body", "cookie")


def _field_line(attrs: Mapping[str, str], body: str) -> str:
    get = attrs.get
    name = next((get(key) for key in _FIELD_NAME_KEYS if get(key)), "")
    field_type = get("type", "")
    required = " *(required)*" if get("required") == "true" else ""
    line = f"**`{name}`** _{field_type}_{required}"
    return f"{line}: {body}" if body else line


def render_markdown(nodes: Iterable[Node]) -> str:
    """Render nodes as flat markdown.

    Args:
        nodes: Block nodes.

    Returns:
        Markdown text.
    """
    visitor = MarkdownVisitor()
    visitor.walk(nodes)
    return visitor.astext()
