"""Converters package: legacy EditorJS blocks to Payload Lexical rich text."""

from .block_converter import BlockConverter, convert_content, textbox_style
from .inline_html import TextRun, clean_text, parse_inline_html, sanitize_link, strip_html
from .source_blocks import content_blocks, parse_block

__all__ = [
    'BlockConverter',
    'convert_content',
    'textbox_style',
    'TextRun',
    'parse_inline_html',
    'sanitize_link',
    'strip_html',
    'clean_text',
    'parse_block',
    'content_blocks',
]
