"""Constructors for the Payload Lexical rich-text node tree."""

import hashlib
from typing import Any, Dict, Iterable, List, Optional

from converters.inline_html import TextRun, parse_inline_html

HEADING_TAGS = ('h1', 'h2', 'h3')
DEFAULT_HEADING_LEVEL = 2


def text_node(text: str, fmt: int = 0) -> Dict[str, Any]:
    return {
        'type': 'text',
        'version': 1,
        'text': str(text),
        'format': fmt,
        'style': '',
        'mode': 'normal',
        'detail': 0,
    }


def link_node(url: str, children: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        'type': 'link',
        'version': 3,
        'url': url,
        'rel': None,
        'target': None,
        'title': None,
        'direction': None,
        'format': '',
        'indent': 0,
        'children': children,
    }


def runs_to_nodes(runs: Iterable[TextRun]) -> List[Dict[str, Any]]:
    """Turn text runs into inline nodes, wrapping linked runs in a link node."""
    nodes = []
    for run in runs:
        if not run.text:
            continue
        node = text_node(run.text, run.format)
        nodes.append(link_node(run.url, [node]) if run.url else node)
    return nodes


def inline_nodes(html: Any) -> List[Dict[str, Any]]:
    return runs_to_nodes(parse_inline_html(html))


def paragraph_node(html: Any = '') -> Dict[str, Any]:
    return {
        'type': 'paragraph',
        'version': 1,
        'children': inline_nodes(html),
        'direction': None,
        'format': '',
        'indent': 0,
        'textFormat': 0,
    }


def empty_paragraph() -> Dict[str, Any]:
    return paragraph_node('')


def heading_tag(level: Any) -> str:
    """
    Normalize a heading level to ``h1``..``h3``.

    Accepts ``'h1'``-style strings and plain numbers; anything missing or
    unparseable becomes the default ``h2``, numbers are clamped to 1..3.
    """
    if level is None or level == '':
        return f'h{DEFAULT_HEADING_LEVEL}'

    raw = str(level).strip().lower()
    if raw.startswith('h'):
        raw = raw[1:]

    try:
        number = int(raw)
    except ValueError:
        return f'h{DEFAULT_HEADING_LEVEL}'

    return f'h{min(max(number, 1), 3)}'


def heading_node(html: Any, tag: str = 'h2') -> Dict[str, Any]:
    return {
        'type': 'heading',
        'version': 1,
        'tag': tag if tag in HEADING_TAGS else f'h{DEFAULT_HEADING_LEVEL}',
        'children': inline_nodes(html),
        'direction': None,
        'format': '',
        'indent': 0,
    }


def block_node(block_type: str, block_name: str, fields: Dict[str, Any], block_id: str) -> Dict[str, Any]:
    """Payload block embedded in rich text (``fields.blockType`` discriminates)."""
    return {
        'type': 'block',
        'version': 2,
        'fields': {
            'id': block_id,
            'blockName': block_name,
            'blockType': block_type,
            **fields,
        },
    }


def relationship_node(relation_to: str, value: str) -> Dict[str, Any]:
    return {
        'type': 'relationship',
        'version': 2,
        'relationTo': relation_to,
        'value': value,
    }


def rich_text(children: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Wrap nodes in a Lexical editor state. Never returns an empty root."""
    children = list(children or [])
    if not children:
        children.append(empty_paragraph())
    return {
        'root': {
            'type': 'root',
            'version': 1,
            'children': children,
            'direction': None,
            'format': '',
            'indent': 0,
        }
    }


def stable_id(*parts: Any) -> str:
    """Deterministic 24-hex-digit id, so re-running an update writes identical blocks."""
    digest = hashlib.sha1(':'.join(str(part) for part in parts).encode('utf-8')).hexdigest()
    return digest[:24]


__all__ = [
    'text_node',
    'link_node',
    'runs_to_nodes',
    'inline_nodes',
    'paragraph_node',
    'empty_paragraph',
    'heading_tag',
    'heading_node',
    'block_node',
    'relationship_node',
    'rich_text',
    'stable_id',
]
