"""Markdown to HTML for text columns imported with the "markdown" setting.

Stricter than the lightweight rich-text dialect: blank lines separate
paragraphs, consecutive text lines join with <br>, six heading levels,
dividers, images, fenced code with a language tag, and autolinks.
"""

import re
from typing import List, Optional

from .rich_text import ListTracker, ParsedLine

PREFIX_TAGS = (
    ("#", "h1"),
    ("##", "h2"),
    ("###", "h3"),
    ("####", "h4"),
    ("#####", "h5"),
    ("######", "h6"),
    ("[ ]", "ul"),
    ("[x]", "ul"),
    ("-", "ul"),
    ("*", "ul"),
    (">", "blockquote"),
)

# Languages the destination's code block renderer can highlight, keyed by lower-case tag
CODE_BLOCK_LANGUAGES = {
    name.lower(): name
    for name in (
        "C", "C++", "C#", "CSS", "Go", "Haskell", "HTML", "Java", "JavaScript", "JSX",
        "Julia", "Kotlin", "Less", "Lua", "Markdown", "MATLAB", "Objective-C", "Perl",
        "PHP", "Python", "Ruby", "Rust", "Scala", "SCSS", "Shell", "SQL", "Swift",
        "TypeScript", "TSX", "YAML",
    )
}

_DIVIDER = re.compile(r"^(\*{3,}|-{3,}|_{3,})\s*$")
_FENCE_LANGUAGE = re.compile(r"^```(\w+)")
_IMAGE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_INDENT = re.compile(r"^(\s*)")
_NUMBERED_ITEM = re.compile(r"^(\d+)\.\s(.+)")

_BOLD = re.compile(r"(\*\*|__)((?:\\[\s\S]|[^\\])+?)\1")
_ITALIC = re.compile(r"(\*|_)((?:\\[\s\S]|[^\\])+?)\1")
_STRIKE = re.compile(r"~~((?:\\[\s\S]|[^\\])+?)~~")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_INLINE_CODE = re.compile(r"`((?:\\[\s\S]|[^\\])+?)`")
_AUTOLINK_URL = re.compile(r"<(https?://[^\s>]+)>")
_AUTOLINK_EMAIL = re.compile(r"<([^\s>]+@[^\s>]+)>")


def _inline(line: str) -> str:
    line = _BOLD.sub(r"<strong>\2</strong>", line)
    line = _ITALIC.sub(r"<em>\2</em>", line)
    line = _STRIKE.sub(r"<del>\1</del>", line)
    # Images first: otherwise the link pattern swallows their [alt](src) tail
    line = _IMAGE.sub("", line)
    line = _LINK.sub(r'<a href="\2">\1</a>', line)
    line = _INLINE_CODE.sub(r"<code>\1</code>", line)
    line = _AUTOLINK_URL.sub(r'<a href="\1">\1</a>', line)
    line = _AUTOLINK_EMAIL.sub(r'<a href="mailto:\1">\1</a>', line)
    return line


def _parse_line(line: str) -> ParsedLine:
    indent_match = _INDENT.match(line)
    indent_level = len(indent_match.group(1)) // 4 if indent_match else 0
    text = line.strip()

    for prefix, tag in PREFIX_TAGS:
        if text.startswith(prefix + " "):
            return ParsedLine(tag, _inline(text[len(prefix) + 1:]), False, indent_level)

    numbered = _NUMBERED_ITEM.match(text)
    if numbered:
        return ParsedLine(None, _inline(numbered.group(2)), True, indent_level)

    return ParsedLine(None, _inline(text), False, indent_level)


def code_block_language(fence_line: str) -> Optional[str]:
    """Canonical language name from an opening fence, or None when unknown."""
    match = _FENCE_LANGUAGE.match(fence_line.strip())
    if not match:
        return None
    return CODE_BLOCK_LANGUAGES.get(match.group(1).lower())


def markdown_to_html(markdown: str) -> str:
    """Render Markdown as HTML, one output line per block."""
    lines: List[str] = []
    lists = ListTracker(lines)
    paragraph: List[str] = []
    in_code_block = False
    code_lines: List[str] = []
    code_language: Optional[str] = None

    def flush_paragraph():
        if paragraph:
            lines.append("<p>" + "<br>".join(paragraph) + "</p>")
            paragraph.clear()

    for line in markdown.split("\n"):
        stripped = line.strip()

        if not in_code_block and _DIVIDER.match(stripped):
            flush_paragraph()
            lists.close_all()
            lines.append("<hr>")
            continue

        if stripped.startswith("```"):
            if in_code_block:
                code = "\n".join(code_lines)
                if code_language:
                    lines.append(f'<pre data-language="{code_language}"><code>{code}</code></pre>')
                else:
                    lines.append(f"<pre><code>{code}</code></pre>")
                code_lines = []
                code_language = None
            else:
                flush_paragraph()
                lists.close_all()
                code_language = code_block_language(stripped)
            in_code_block = not in_code_block
            continue

        if in_code_block:
            code_lines.append(line)
            continue

        if not stripped:
            flush_paragraph()
            continue

        image = _IMAGE.search(line)
        if image:
            flush_paragraph()
            lines.append(f'<img src="{image.group(2)}" alt="{image.group(1)}">')
            continue

        parsed = _parse_line(line)
        lists.close_deeper_than(parsed.indent_level)

        if parsed.tag == "ul" or parsed.is_numbered:
            flush_paragraph()
            lists.item("ol" if parsed.is_numbered else "ul", parsed.indent_level, parsed.text)
        elif parsed.tag:
            lists.close_all()
            flush_paragraph()
            lines.append(f"<{parsed.tag}>{parsed.text}</{parsed.tag}>")
        else:
            lists.close_all()
            paragraph.append(parsed.text)

    if in_code_block and code_lines:
        # Unterminated fence: keep the content rather than dropping it
        lines.append("<pre><code>" + "\n".join(code_lines) + "</code></pre>")
    flush_paragraph()
    lists.close_all()
    return "\n".join(lines)
