"""Document-block rich text to HTML.

Input is the JSON the block-based source returns: rich-text segments
(`plain_text`, `annotations`, `href`) and block objects keyed by their
`type`. Block types without a rendering are dropped.
"""

import re
from typing import Any, Dict, List, Optional, Sequence

_YOUTUBE_ID = re.compile(r"(?:youtu\.be/|youtube\.com/(?:watch\?v=|embed/))(?P<video_id>[^?&]+)")

# Source code-block language -> destination highlighter name (None: render without a language)
CODE_LANGUAGE_MAPPING: Dict[str, Optional[str]] = {
    "abap": None,
    "arduino": None,
    "bash": "Shell",
    "basic": None,
    "c": "C",
    "clojure": None,
    "coffeescript": None,
    "c++": "C++",
    "c#": "C#",
    "css": "CSS",
    "dart": None,
    "diff": None,
    "docker": None,
    "elixir": None,
    "elm": None,
    "erlang": None,
    "flow": None,
    "fortran": None,
    "f#": None,
    "gherkin": None,
    "glsl": None,
    "go": "Go",
    "graphql": None,
    "groovy": None,
    "haskell": "Haskell",
    "html": "HTML",
    "java": "Java",
    "javascript": "JavaScript",
    "json": None,
    "julia": "Julia",
    "kotlin": "Kotlin",
    "latex": None,
    "less": "Less",
    "lisp": None,
    "livescript": None,
    "lua": "Lua",
    "makefile": None,
    "markdown": "Markdown",
    "markup": None,
    "matlab": "MATLAB",
    "mermaid": None,
    "nix": None,
    "objective-c": "Objective-C",
    "ocaml": None,
    "pascal": None,
    "perl": "Perl",
    "php": "PHP",
    "plain text": None,
    "powershell": None,
    "prolog": None,
    "protobuf": None,
    "python": "Python",
    "r": None,
    "reason": None,
    "ruby": "Ruby",
    "rust": "Rust",
    "sass": None,
    "scala": "Scala",
    "scheme": None,
    "scss": "SCSS",
    "shell": "Shell",
    "sql": "SQL",
    "swift": "Swift",
    "typescript": "TypeScript",
    "vb.net": None,
    "verilog": None,
    "vhdl": None,
    "visual basic": None,
    "webassembly": None,
    "xml": None,
    "yaml": "YAML",
    "java/c/c++/c#": None,
}

LIST_BLOCK_TYPES = {"bulleted_list_item": "ul", "numbered_list_item": "ol", "to_do": "ul"}


def _segment_to_html(segment: Dict[str, Any]) -> str:
    html = segment.get("plain_text", "")
    annotations = segment.get("annotations") or {}

    if annotations.get("bold"):
        html = f"<strong>{html}</strong>"
    if annotations.get("italic"):
        html = f"<em>{html}</em>"
    if annotations.get("strikethrough"):
        html = f"<s>{html}</s>"
    if annotations.get("underline"):
        html = f"<u>{html}</u>"
    if annotations.get("code"):
        html = f"<code>{html}</code>"

    color = annotations.get("color", "default")
    if color and color != "default":
        # "blue_background" -> "bluebackground"; only the first underscore is dropped
        html = f'<span style="color:{color.replace("_", "", 1)}">{html}</span>'

    href = segment.get("href")
    if href:
        html = f'<a href="{href}" target="_blank" rel="noopener noreferrer">{html}</a>'

    return html


def rich_text_to_html(segments: Optional[Sequence[Dict[str, Any]]]) -> Optional[str]:
    """Annotated HTML for a list of rich-text segments, or None when there are none."""
    if not segments:
        return None
    return "".join(_segment_to_html(segment) for segment in segments)


def rich_text_to_plain_text(segments: Optional[Sequence[Dict[str, Any]]]) -> str:
    return "".join(segment.get("plain_text", "") for segment in segments or ())


def file_url(item: Dict[str, Any]) -> Optional[str]:
    """URL of an "external" or "file" object (images, covers, icons)."""
    kind = item.get("type")
    if kind in ("external", "file"):
        return (item.get(kind) or {}).get("url")
    return None


def _block_to_html(block: Dict[str, Any], previous_type: Optional[str], next_type: Optional[str]) -> str:
    block_type = block.get("type")
    item = block.get(block_type) or {}
    content = rich_text_to_html(item.get("rich_text"))

    if block_type == "paragraph":
        return f"<p>{content}</p>" if content is not None else ""
    if block_type in ("heading_1", "heading_2", "heading_3"):
        tag = "h" + block_type[-1]
        return f"<{tag}>{content}</{tag}>" if content is not None else ""
    if block_type == "divider":
        return "<hr>"
    if block_type == "image":
        url = file_url(item)
        if not url:
            return ""
        caption = item.get("caption") or []
        alt = caption[0].get("plain_text") if caption else None
        return f'<img src="{url}" alt="{alt}" />' if alt else f'<img src="{url}" />'
    if block_type in LIST_BLOCK_TYPES:
        if content is None:
            return ""
        tag = LIST_BLOCK_TYPES[block_type]
        html = f"<{tag}>" if previous_type != block_type else ""
        html += f"<li>{content}</li>"
        if next_type != block_type:
            html += f"</{tag}>"
        return html
    if block_type == "code":
        code = content or ""
        language = CODE_LANGUAGE_MAPPING.get(item.get("language", ""))
        if language:
            return f'<pre data-language="{language}"><code>{code}</code></pre>'
        return f"<pre><code>{code}</code></pre>"
    if block_type == "quote":
        return f"<blockquote>{content}</blockquote>" if content is not None else ""
    if block_type == "callout":
        return f"<aside>{content}</aside>" if content is not None else ""
    if block_type == "toggle":
        return f"<p>{content}</p>" if content is not None else ""
    if block_type == "equation":
        return f"<p>{item.get('expression', '')}</p>"
    if block_type == "video" and item.get("type") == "external":
        match = _YOUTUBE_ID.search((item.get("external") or {}).get("url", ""))
        if match:
            return f'<iframe src="https://www.youtube.com/embed/{match.group("video_id")}"></iframe>'
    return ""


def blocks_to_html(blocks: Optional[Sequence[Dict[str, Any]]]) -> str:
    """Render a page's top-level blocks as one HTML string.

    Consecutive list items of the same block type share one list element.
    Child blocks are not fetched, so nested content is not rendered.
    """
    if not blocks:
        return ""

    parts: List[str] = []
    for index, block in enumerate(blocks):
        previous_type = blocks[index - 1].get("type") if index > 0 else None
        next_type = blocks[index + 1].get("type") if index + 1 < len(blocks) else None
        html = _block_to_html(block, previous_type, next_type)
        if html:
            parts.append(html)
    return "".join(parts)
