"""Lightweight line-oriented markup to HTML or plain text.

The dialect: `#`, `##`, `###` headings, `-`/`*`/`[ ]`/`[x]` bullets,
`1.` numbered items, `>` quotes, fenced ``` code blocks, four spaces of
indentation per list level, and inline `**bold**`, `*italic*`, `~~strike~~`,
`[links](url)` and `` `code` ``.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

PREFIX_TAGS: Tuple[Tuple[str, str], ...] = (
    ("#", "h1"),
    ("##", "h2"),
    ("###", "h3"),
    ("[ ]", "ul"),
    ("[x]", "ul"),
    ("-", "ul"),
    ("*", "ul"),
    (">", "blockquote"),
)

_INDENT = re.compile(r"^(\s*)")
_NUMBERED_ITEM = re.compile(r"^(\d+)\.\s(.+)")

_BOLD = re.compile(r"(\*\*|__)((?:\\[\s\S]|[^\\])+?)\1")
_ITALIC = re.compile(r"(\*|_)((?:\\[\s\S]|[^\\])+?)\1")
_STRIKE = re.compile(r"~~((?:\\[\s\S]|[^\\])+?)~~")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_INLINE_CODE = re.compile(r"`((?:\\[\s\S]|[^\\])+?)`")


@dataclass
class ParsedLine:
    """A source line split into its block tag and inline content."""
    tag: Optional[str]
    text: str
    is_numbered: bool
    indent_level: int


def convert_inline(line: str, remove_markdown: bool = False) -> str:
    """Convert inline emphasis, links and code to HTML, or strip the markers."""
    line = _BOLD.sub(r"\2" if remove_markdown else r"<strong>\2</strong>", line)
    line = _ITALIC.sub(r"\2" if remove_markdown else r"<em>\2</em>", line)
    line = _STRIKE.sub(r"\1" if remove_markdown else r"<del>\1</del>", line)
    line = _LINK.sub(r"\1" if remove_markdown else r'<a href="\2">\1</a>', line)
    line = _INLINE_CODE.sub(r"\1" if remove_markdown else r"<code>\1</code>", line)
    return line


def parse_line(line: str, remove_markdown: bool = False) -> ParsedLine:
    """Split one line into block tag, inline text, numbered flag and list indent level."""
    indent_match = _INDENT.match(line)
    indent_level = len(indent_match.group(1)) // 4 if indent_match else 0
    text = line.strip()

    for prefix, tag in PREFIX_TAGS:
        if text.startswith(prefix + " "):
            return ParsedLine(tag, convert_inline(text[len(prefix) + 1:], remove_markdown), False, indent_level)

    numbered = _NUMBERED_ITEM.match(text)
    if numbered:
        return ParsedLine(None, convert_inline(numbered.group(2), remove_markdown), True, indent_level)

    return ParsedLine(None, convert_inline(text, remove_markdown), False, indent_level)


class ListTracker:
    """Tracks open <ul>/<ol> elements while walking lines top to bottom."""

    def __init__(self, out: List[str]):
        self.out = out
        self.stack: List[Tuple[str, int]] = []  # (list tag, indent level)

    def close_deeper_than(self, level: int) -> None:
        while self.stack and self.stack[-1][1] > level:
            self.out.append(f"</{self.stack.pop()[0]}>")

    def item(self, list_tag: str, level: int, text: str) -> None:
        if self.stack and self.stack[-1][1] == level and self.stack[-1][0] != list_tag:
            # Same level, other list kind: end the old list first
            self.out.append(f"</{self.stack.pop()[0]}>")
        if not self.stack or self.stack[-1][1] < level:
            self.out.append(f"<{list_tag}>")
            self.stack.append((list_tag, level))
        self.out.append(f"<li>{text}</li>")

    def close_all(self) -> None:
        while self.stack:
            self.out.append(f"</{self.stack.pop()[0]}>")


def rich_text_to_html(rich_text: str) -> str:
    """Render the lightweight markup as HTML, one output line per block."""
    lines: List[str] = []
    lists = ListTracker(lines)
    in_code_block = False
    code_lines: List[str] = []

    for line in rich_text.split("\n"):
        if line.strip() == "```":
            if in_code_block:
                lines.append("<pre><code>" + "\n".join(code_lines) + "</code></pre>")
                code_lines = []
            in_code_block = not in_code_block
            continue

        if in_code_block:
            code_lines.append(line)
            continue

        parsed = parse_line(line)
        lists.close_deeper_than(parsed.indent_level)

        if parsed.tag == "ul" or parsed.is_numbered:
            lists.item("ol" if parsed.is_numbered else "ul", parsed.indent_level, parsed.text)
        else:
            lists.close_all()
            if parsed.tag:
                lines.append(f"<{parsed.tag}>{parsed.text}</{parsed.tag}>")
            else:
                lines.append(parsed.text)

    lists.close_all()
    return "\n".join(lines)


def rich_text_to_plain_text(rich_text: str) -> str:
    """Strip block prefixes, inline markers and code fences, keeping code content verbatim."""
    lines: List[str] = []
    in_code_block = False

    for line in rich_text.split("\n"):
        if line.strip() == "```":
            in_code_block = not in_code_block
            continue

        if in_code_block:
            lines.append(line)
        else:
            lines.append(parse_line(line, remove_markdown=True).text)

    return "\n".join(lines)
