"""Tests for the lightweight rich-text markup converter."""

from fieldsync.markup.rich_text import (
    convert_inline,
    parse_line,
    rich_text_to_html,
    rich_text_to_plain_text,
)


def test_heading_list_and_paragraph():
    html = rich_text_to_html("# Title\n- a\n- b\nplain **bold**")
    assert html == "<h1>Title</h1>\n<ul>\n<li>a</li>\n<li>b</li>\n</ul>\nplain <strong>bold</strong>"


def test_nested_list_closes_inner_list_on_dedent():
    html = rich_text_to_html("- a\n    - b\n- c")
    assert html == "<ul>\n<li>a</li>\n<ul>\n<li>b</li>\n</ul>\n<li>c</li>\n</ul>"


def test_numbered_items_become_ordered_list():
    assert rich_text_to_html("1. one\n2. two") == "<ol>\n<li>one</li>\n<li>two</li>\n</ol>"


def test_switching_list_kind_at_same_level_starts_new_list():
    html = rich_text_to_html("- a\n1. one")
    assert html == "<ul>\n<li>a</li>\n</ul>\n<ol>\n<li>one</li>\n</ol>"


def test_code_fence_keeps_content_verbatim():
    assert rich_text_to_html("```\nx = **1**\n```") == "<pre><code>x = **1**</code></pre>"


def test_quote_and_checkbox_items():
    assert rich_text_to_html("> quoted") == "<blockquote>quoted</blockquote>"
    assert rich_text_to_html("[x] done") == "<ul>\n<li>done</li>\n</ul>"


def test_inline_markers():
    assert convert_inline("**b** *i* ~~s~~ `c`") == "<strong>b</strong> <em>i</em> <del>s</del> <code>c</code>"
    assert convert_inline("[site](https://example.com)") == '<a href="https://example.com">site</a>'


def test_inline_markers_removed():
    assert convert_inline("**b** [site](https://example.com)", remove_markdown=True) == "b site"


def test_parse_line_indent_level():
    parsed = parse_line("        - deep")
    assert parsed.tag == "ul"
    assert parsed.indent_level == 2
    assert parsed.text == "deep"


def test_plain_text_strips_markup():
    assert rich_text_to_plain_text("# Title\n- **a**\n[link](http://x)") == "Title\na\nlink"


def test_plain_text_keeps_code_block_content():
    assert rich_text_to_plain_text("```\n**raw**\n```") == "**raw**"
