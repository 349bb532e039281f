"""Text-in/text-out markup converters used by the source adapters."""

from fieldsync.markup.blocks import blocks_to_html
from fieldsync.markup.markdown import markdown_to_html
from fieldsync.markup.rich_text import rich_text_to_html, rich_text_to_plain_text

__all__ = ["blocks_to_html", "markdown_to_html", "rich_text_to_html", "rich_text_to_plain_text"]
