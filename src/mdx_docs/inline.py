"""Inline span parsing: emphasis, code spans and links."""

from mdx_docs.models import Emphasis, InlineCode, InlineNode, Link, Text

_ESCAPABLE = set("\\`*_[]()#+-.!<>{}|~")

MAX_INLINE_NESTING = 64


def parse_inline(text: str, depth: int = 0) -> tuple[InlineNode, ...]:
    """Parse inline markup within a single block.

    Scanning is left to right with the longest delimiter tried first, so
    ``**`` is considered before ``*``. Unclosed delimiters stay literal text.
    Link labels and emphasis nested deeper than ``MAX_INLINE_NESTING`` keep
    their inner text unparsed.

    Args:
        text: Block text.
        depth: Number of enclosing links or emphasis spans.

    Returns:
        Inline nodes with adjacent text merged.
    """
    return InlineScanner(text, depth).scan()


class InlineScanner:
    """Single-pass scanner over one block's text."""

    def __init__(self, text: str, depth: int = 0) -> None:
        """Initialise scanner.

        Args:
            text: Text to scan.
            depth: Nesting depth of ``text`` inside other spans.
        """
        self.text = text
        self.depth = depth
        self.pos = 0
        self._nodes: list[InlineNode] = []
        self._buffer: list[str] = []

    def scan(self) -> tuple[InlineNode, ...]:
        """Scan the whole text.

        Returns:
            Inline nodes.
        """
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            if char == "\\" and self.pos + 1 < len(text) and text[self.pos + 1] in _ESCAPABLE:
                self._buffer.append(text[self.pos + 1])
                self.pos += 2
            elif char == "`" and self._code_span():
                continue
            elif char == "[" and self._link():
                continue
            elif char in "*_" and self._emphasis(char):
                continue
            else:
                self._buffer.append(char)
                self.pos += 1
        self._flush()
        return tuple(self._nodes)

    def _flush(self) -> None:
        if self._buffer:
            value = "".join(self._buffer)
            self._buffer.clear()
            if self._nodes and isinstance(self._nodes[-1], Text):
                value = self._nodes.pop().text + value
            self._nodes.append(Text(value))

    def _children(self, text: str) -> tuple[InlineNode, ...]:
        if self.depth + 1 >= MAX_INLINE_NESTING:
            return (Text(text),) if text else ()
        return parse_inline(text, self.depth + 1)

    def _emit(self, node: InlineNode) -> None:
        self._flush()
        if isinstance(node, Text) and self._nodes and isinstance(self._nodes[-1], Text):
            node = Text(self._nodes.pop().text + node.text)
        self._nodes.append(node)

    def _code_span(self) -> bool:
        """Match a code span closed by a backtick run of the same length."""
        text = self.text
        start = self.pos
        end = start
        while end < len(text) and text[end] == "`":
            end += 1
        fence = text[start:end]
        search = end
        while True:
            close = text.find(fence, search)
            if close == -1:
                # No matching run: the whole run is literal.
                self._buffer.append(fence)
                self.pos = end
                return True
            after = close + len(fence)
            if after < len(text) and text[after] == "`":
                search = after
                while search < len(text) and text[search] == "`":
                    search += 1
                continue
            content = text[end:close].replace("\n", " ")
            if len(content) > 2 and content.startswith(" ") and content.endswith(" ") and content.strip():
                content = content[1:-1]
            self._emit(InlineCode(content))
            self.pos = after
            return True

    def _link(self) -> bool:
        """Match ``[label](href)`` with balanced brackets in the label."""
        text = self.text
        depth = 0
        index = self.pos
        while index < len(text):
            char = text[index]
            if char == "\\":
                index += 2
                continue
            if char == "[":
                depth += 1
            elif char == "]":
                depth -= 1
                if depth == 0:
                    break
            index += 1
        else:
            return False
        if index + 1 >= len(text) or text[index + 1] != "(":
            return False

        close = self._matching_paren(index + 1)
        if close is None:
            return False
        label = text[self.pos + 1 : index]
        target = text[index + 2 : close].strip()
        href = target.split(maxsplit=1)[0] if target else ""
        if href.startswith("<") and href.endswith(">"):
            href = href[1:-1]
        self._emit(Link(href=href, children=self._children(label)))
        self.pos = close + 1
        return True

    def _matching_paren(self, open_index: int) -> int | None:
        depth = 0
        for index in range(open_index, len(self.text)):
            char = self.text[index]
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    return index
            elif char == "\n":
                return None
        return None

    def _emphasis(self, char: str) -> bool:
        """Match strong (doubled) or regular emphasis delimited by ``char``."""
        text = self.text
        if char == "_" and self.pos > 0 and text[self.pos - 1].isalnum():
            return False
        for width in (2, 1):
            delimiter = char * width
            if not text.startswith(delimiter, self.pos):
                continue
            inner_start = self.pos + width
            if inner_start >= len(text) or text[inner_start].isspace():
                continue
            close = self._closing_delimiter(delimiter, inner_start)
            if close is None:
                continue
            inner = text[inner_start:close]
            self._emit(Emphasis(children=self._children(inner), strong=width == 2))
            self.pos = close + width
            return True
        return False

    def _closing_delimiter(self, delimiter: str, start: int) -> int | None:
        text = self.text
        index = start
        while index < len(text):
            if text[index] == "\\":
                index += 2
                continue
            if text[index] == "`":
                # Code spans take precedence over emphasis delimiters.
                run_end = index
                while run_end < len(text) and text[run_end] == "`":
                    run_end += 1
                close = text.find(text[index:run_end], run_end)
                index = run_end if close == -1 else close + (run_end - index)
                continue
            if text.startswith(delimiter, index) and not text[index - 1].isspace():
                after = index + len(delimiter)
                # A single delimiter must not be half of a doubled one.
                doubled = after < len(text) and text[after] == delimiter[0]
                if len(delimiter) == 1 and doubled:
                    index = after + 1
                    continue
                if delimiter[0] == "_" and after < len(text) and text[after].isalnum():
                    index = after
                    continue
                if index > start:
                    return index
            index += 1
        return None
