"""Parser for MDX documentation pages."""

import logging
import re
from dataclasses import dataclass

from mdx_docs.frontmatter import extract_frontmatter
from mdx_docs.inline import parse_inline
from mdx_docs.models import (
    CodeBlock,
    ComponentKind,
    ComponentTag,
    Document,
    Heading,
    ListBlock,
    ListItem,
    Node,
    OpaqueComponent,
    Paragraph,
    ParseDiagnostic,
    Text,
    freeze_mapping,
    inline_text,
)
from mdx_docs.slugs import SlugRegistry, slugify

logger = logging.getLogger(__name__)

MAX_NESTING = 64
MAX_TAG_LINES = 40

_HEADING = re.compile(r"^(#{1,6})(?:[ \t]+(.*))?$")
_CLOSING_HASHES = re.compile(r"(?:^|[ \t]+)#+$")
_FENCE = re.compile(r"^(`{3,}|~{3,})(.*)$")
_LIST_ITEM = re.compile(r"^([ \t]*)([-*+]|\d{1,9}[.)])[ \t]+(.*)$")
_TAG_OPEN = re.compile(r"^<[A-Z]")
_TAG_CLOSE = re.compile(r"^</([A-Za-z][\w.]*)\s*>")
_ESM = re.compile(
    r"^import\s+(?:['\"]|[\w*{].*\bfrom\s+['\"]|\{[^}]*$)"
    r"|^export\s+(?:const|let|var|function|class|default|\{)"
)
_MULTILINE_IMPORT = re.compile(r"^import\s*\{[^}]*$")
_IMPORT_SOURCE = re.compile(r"\bfrom\s+['\"]")
_TAG_NAME = re.compile(r"[A-Za-z][\w.]*")
_ATTR_NAME = re.compile(r"[A-Za-z_:][\w:.-]*")


@dataclass(frozen=True)
class ParseResult:
    """Nodes parsed from a document body plus any diagnostics."""

    nodes: tuple[Node, ...]
    diagnostics: tuple[ParseDiagnostic, ...] = ()


@dataclass(frozen=True)
class _OpenTag:
    name: str
    attributes: dict[str, str]
    self_closing: bool
    raw: str
    line_offset: int
    rest: str


class _MalformedTagError(Exception):
    """Raised by the tag lexer; always handled inside the parser."""


class MarkupParser:
    """Parses MDX text into a tree of document nodes.

    Parsing never raises: malformed constructs degrade to literal text and a
    ParseDiagnostic is recorded instead.
    """

    def parse(self, text: str, line_offset: int = 0) -> ParseResult:
        """Parse document body text.

        Args:
            text: Body text without frontmatter.
            line_offset: Number of source lines preceding ``text``.

        Returns:
            ParseResult with the block nodes and diagnostics.
        """
        state = _BlockParser(text, line_offset)
        nodes, _ = state.parse_blocks([])
        return ParseResult(tuple(nodes), tuple(state.diagnostics))

    def parse_document(self, path: str, text: str) -> Document:
        """Parse a complete page, frontmatter included.

        Args:
            path: Content path of the page.
            text: Raw page text.

        Returns:
            Document instance.
        """
        extracted = extract_frontmatter(text, path)
        result = self.parse(extracted.body, extracted.body_offset)
        diagnostics = extracted.diagnostics + result.diagnostics
        if diagnostics:
            logger.debug("Parsed %s with %d diagnostics", path, len(diagnostics))
        return Document(
            path=path,
            frontmatter=extracted.frontmatter,
            body=result.nodes,
            diagnostics=diagnostics,
        )


def parse_document(path: str, text: str) -> Document:
    """Parse a page with a default MarkupParser.

    Args:
        path: Content path of the page.
        text: Raw page text.

    Returns:
        Document instance.
    """
    return MarkupParser().parse_document(path, text)


def _indent_width(line: str) -> int:
    expanded = line.expandtabs(4)
    return len(expanded) - len(expanded.lstrip(" "))


class _BlockParser:
    """Line-oriented recursive-descent state for one parse call."""

    def __init__(self, text: str, line_offset: int) -> None:
        self.lines: list[tuple[int, str]] = [
            (line_offset + number, line) for number, line in enumerate(text.splitlines(), start=1)
        ]
        self.pos = 0
        self.diagnostics: list[ParseDiagnostic] = []
        self.slugs = SlugRegistry()

    def _diagnose(self, code: str, message: str, line: int | None) -> None:
        self.diagnostics.append(ParseDiagnostic(code=code, message=message, line=line))

    def _consume_prefix(self, rest: str) -> None:
        """Keep the unconsumed remainder of the current line, or move past it."""
        if rest.strip():
            lineno, _ = self.lines[self.pos]
            self.lines[self.pos] = (lineno, rest)
        else:
            self.pos += 1

    def parse_blocks(self, open_tags: list[str]) -> tuple[list[Node], bool]:
        """Parse blocks until end of input or the closing tag of the innermost open tag.

        Args:
            open_tags: Names of the enclosing component tags, outermost first.

        Returns:
            Parsed nodes and whether the innermost tag was closed.
        """
        nodes: list[Node] = []
        paragraph: list[str] = []
        current = open_tags[-1] if open_tags else None
        closing = re.compile(rf"</{re.escape(current)}\s*>") if current else None

        def flush() -> None:
            if paragraph:
                nodes.append(Paragraph(parse_inline("\n".join(paragraph))))
                paragraph.clear()

        while self.pos < len(self.lines):
            lineno, raw = self.lines[self.pos]
            stripped = raw.strip()

            if not stripped:
                flush()
                self.pos += 1
                continue

            close = _TAG_CLOSE.match(stripped)
            if close:
                name = close.group(1)
                if name == current:
                    flush()
                    self._consume_prefix(stripped[close.end() :])
                    return nodes, True
                if name in open_tags:
                    # Belongs to an ancestor: the innermost tag is unterminated.
                    flush()
                    return nodes, False
                self._diagnose("unmatched-closing-tag", f"Closing tag </{name}> has no matching opening tag", lineno)
                paragraph.append(stripped)
                self.pos += 1
                continue

            fence = _FENCE.match(stripped)
            if fence and not (fence.group(1)[0] == "`" and "`" in fence.group(2)):
                flush()
                nodes.append(self._code_block(fence, _indent_width(raw)))
                continue

            heading = _HEADING.match(stripped)
            if heading:
                flush()
                nodes.append(self._heading(heading))
                self.pos += 1
                continue

            if _TAG_OPEN.match(stripped):
                component = self._component(open_tags)
                if component is not None:
                    flush()
                    nodes.extend(component)
                    continue

            elif _LIST_ITEM.match(raw):
                flush()
                nodes.append(self._list(_indent_width(raw), closing, depth=len(open_tags)))
                continue

            elif not paragraph and self._skip_mdx_statement(stripped, top_level=not open_tags):
                continue

            if closing is not None:
                found = _search_outside_code(closing, raw)
                if found:
                    before = raw[: found.start()].strip()
                    if before:
                        paragraph.append(before)
                    flush()
                    self._consume_prefix(raw[found.end() :])
                    return nodes, True

            paragraph.append(stripped)
            self.pos += 1

        flush()
        return nodes, current is None

    def _skip_mdx_statement(self, stripped: str, top_level: bool) -> bool:
        """Skip ESM import/export lines and JSX comments."""
        if top_level and _ESM.match(stripped):
            self.pos += 1
            if _MULTILINE_IMPORT.match(stripped):
                # Multi-line imports end at the line carrying the module specifier.
                limit = min(len(self.lines), self.pos + MAX_TAG_LINES)
                while self.pos < limit:
                    line = self.lines[self.pos][1]
                    self.pos += 1
                    if _IMPORT_SOURCE.search(line):
                        break
            return True
        if stripped.startswith("{/*"):
            while self.pos < len(self.lines):
                line = self.lines[self.pos][1].rstrip()
                self.pos += 1
                if line.endswith("*/}"):
                    break
            return True
        return False

    def _heading(self, match: re.Match[str]) -> Heading:
        content = _CLOSING_HASHES.sub("", (match.group(2) or "").strip()).strip()
        text = inline_text(parse_inline(content))
        return Heading(level=len(match.group(1)), text=text, id=self.slugs.claim(slugify(text)))

    def _code_block(self, match: re.Match[str], indent: int) -> CodeBlock:
        fence = match.group(1)
        info = match.group(2).strip().split(maxsplit=1)
        language = info[0] if info else None
        filename = info[1].strip() if len(info) > 1 else None
        opening_line = self.lines[self.pos][0]

        body: list[str] = []
        self.pos += 1
        while self.pos < len(self.lines):
            raw = self.lines[self.pos][1]
            candidate = raw.strip()
            if candidate.startswith(fence) and candidate == fence[0] * len(candidate):
                self.pos += 1
                return CodeBlock(language=language, text="\n".join(body), filename=filename)
            body.append(_dedent(raw, indent))
            self.pos += 1

        self._diagnose("unterminated-code-fence", "Code fence is never closed", opening_line)
        return CodeBlock(language=language, text="\n".join(body), filename=filename)

    def _list(self, indent: int, closing: re.Pattern[str] | None, depth: int) -> ListBlock:
        first = _LIST_ITEM.match(self.lines[self.pos][1])
        assert first is not None
        ordered = first.group(2)[0].isdigit()
        start = int(first.group(2)[:-1]) if ordered else 1

        items: list[tuple[list[str], ListBlock | None]] = []
        while self.pos < len(self.lines):
            raw = self.lines[self.pos][1]
            if not raw.strip():
                following = self._next_non_blank()
                if following is not None and self._is_sibling_item(following, indent, ordered):
                    self.pos = following
                    continue
                break

            width = _indent_width(raw)
            item = _LIST_ITEM.match(raw)
            if width < indent:
                break
            if item and width == indent:
                if item.group(2)[0].isdigit() != ordered:
                    break
                items.append(([item.group(3).strip()], None))
            elif item and items and depth < MAX_NESTING:
                lines, nested = items[-1]
                sublist = self._list(width, closing, depth + 1)
                if nested is not None:
                    sublist = ListBlock(ordered=nested.ordered, items=nested.items + sublist.items, start=nested.start)
                items[-1] = (lines, sublist)
                continue
            elif width > indent and items:
                items[-1][0].append(raw.strip())
            else:
                break

            if closing is not None:
                found = _search_outside_code(closing, raw)
                if found:
                    # The enclosing component closes at the end of this item.
                    texts = items[-1][0]
                    cut = _search_outside_code(closing, texts[-1])
                    if cut is not None:
                        texts[-1] = texts[-1][: cut.start()].rstrip()
                    lineno = self.lines[self.pos][0]
                    self.lines[self.pos] = (lineno, raw[found.start() :])
                    break
            self.pos += 1

        return ListBlock(
            ordered=ordered,
            items=tuple(ListItem(parse_inline("\n".join(texts)), nested) for texts, nested in items),
            start=start,
        )

    def _next_non_blank(self) -> int | None:
        for index in range(self.pos, len(self.lines)):
            if self.lines[index][1].strip():
                return index
        return None

    def _is_sibling_item(self, index: int, indent: int, ordered: bool) -> bool:
        raw = self.lines[index][1]
        item = _LIST_ITEM.match(raw)
        return bool(item) and _indent_width(raw) == indent and item.group(2)[0].isdigit() == ordered

    def _component(self, open_tags: list[str]) -> list[Node] | None:
        """Parse a component starting at the current line.

        Returns:
            Nodes to splice into the parent, or None when the tag is malformed
            and the line should be treated as text.
        """
        lineno = self.lines[self.pos][0]
        try:
            tag = self._lex_open_tag()
        except _MalformedTagError as exc:
            self._diagnose("malformed-attributes", f"Malformed component tag: {exc}", lineno)
            return None

        self.pos += tag.line_offset
        self._consume_prefix(tag.rest)

        if len(open_tags) >= MAX_NESTING:
            self._diagnose("nesting-too-deep", f"<{tag.name}> exceeds the maximum nesting depth", lineno)
            return [Paragraph((Text(tag.raw),))]

        if tag.self_closing:
            return [_make_component(tag.name, tag.attributes, ())]

        children, closed = self.parse_blocks([*open_tags, tag.name])
        if closed:
            return [_make_component(tag.name, tag.attributes, tuple(children))]

        self._diagnose("unterminated-tag", f"<{tag.name}> is never closed", lineno)
        return [Paragraph((Text(tag.raw),)), *children]

    def _lex_open_tag(self) -> _OpenTag:
        """Lex an opening tag that may span several lines.

        Raises:
            _MalformedTagError: If the tag or its attribute list is malformed.
        """
        window = [line for _, line in self.lines[self.pos : self.pos + MAX_TAG_LINES]]
        source = "\n".join(window)
        start = source.index("<")
        name_match = _TAG_NAME.match(source, start + 1)
        if name_match is None:
            raise _MalformedTagError("missing tag name")
        name = name_match.group(0)
        index = name_match.end()
        attributes: dict[str, str] = {}

        while True:
            while index < len(source) and source[index].isspace():
                index += 1
            if index >= len(source):
                raise _MalformedTagError(f"<{name}> is not closed with '>'")
            if source.startswith("/>", index):
                self_closing, end = True, index + 2
                break
            if source[index] == ">":
                self_closing, end = False, index + 1
                break

            attr = _ATTR_NAME.match(source, index)
            if attr is None:
                raise _MalformedTagError(f"unexpected {source[index]!r} in <{name}>")
            index = attr.end()
            while index < len(source) and source[index] in " \t":
                index += 1
            if index < len(source) and source[index] == "=":
                index += 1
                while index < len(source) and source[index] in " \t":
                    index += 1
                value, index = _attribute_value(source, index, name)
            else:
                value = "true"
            attributes[attr.group(0)] = value

        line_offset = source.count("\n", 0, end)
        line_start = source.rfind("\n", 0, end) + 1
        rest = window[line_offset][end - line_start :]
        return _OpenTag(name, attributes, self_closing, source[start:end], line_offset, rest)


def _attribute_value(source: str, index: int, tag: str) -> tuple[str, int]:
    """Read a quoted or braced attribute value.

    Returns:
        The value and the index just past it.
    """
    if index >= len(source):
        raise _MalformedTagError(f"missing attribute value in <{tag}>")
    quote = source[index]
    if quote in "\"'":
        close = source.find(quote, index + 1)
        if close == -1:
            raise _MalformedTagError(f"unterminated string in <{tag}>")
        return source[index + 1 : close], close + 1
    if quote == "{":
        depth = 0
        in_string: str | None = None
        for position in range(index, len(source)):
            char = source[position]
            if in_string:
                if char == in_string:
                    in_string = None
            elif char in "\"'`":
                in_string = char
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return _unquote(source[index + 1 : position].strip()), position + 1
        raise _MalformedTagError(f"unbalanced braces in <{tag}>")
    raise _MalformedTagError(f"attribute value must be quoted or braced in <{tag}>")


def _unquote(expression: str) -> str:
    if len(expression) >= 2 and expression[0] == expression[-1] and expression[0] in "\"'`":
        return expression[1:-1]
    return expression


def _code_spans(line: str) -> list[tuple[int, int]]:
    """Offsets of inline code spans on one line, closing backticks included."""
    spans: list[tuple[int, int]] = []
    index = line.find("`")
    while index != -1:
        end = index
        while end < len(line) and line[end] == "`":
            end += 1
        close = line.find(line[index:end], end)
        if close == -1:
            index = line.find("`", end)
            continue
        spans.append((index, close + end - index))
        index = line.find("`", close + end - index)
    return spans


def _search_outside_code(pattern: re.Pattern[str], line: str) -> re.Match[str] | None:
    """Find the first match of ``pattern`` that is not inside a code span."""
    spans = _code_spans(line) if "`" in line else []
    for found in pattern.finditer(line):
        if not any(start <= found.start() < end for start, end in spans):
            return found
    return None


def _dedent(line: str, indent: int) -> str:
    expanded = line.expandtabs(4)
    strip = min(indent, _indent_width(expanded))
    return expanded[strip:]


def _make_component(name: str, attributes: dict[str, str], children: tuple[Node, ...]) -> Node:
    kind = ComponentKind.from_tag(name)
    if kind is None:
        return OpaqueComponent(name=name, attributes=freeze_mapping(attributes), children=children)
    return ComponentTag(name=name, kind=kind, attributes=freeze_mapping(attributes), children=children)
