"""Inline HTML parsing into formatted text runs, plus link sanitization."""

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

logger = logging.getLogger('wemeditate_migrator.converters.inline_html')

FORMAT_BOLD = 1
FORMAT_ITALIC = 2

BOLD_TAGS = ('b', 'strong')
ITALIC_TAGS = ('i', 'em')
LINK_TAG = 'a'
DROPPED_TAGS = ('script', 'style')

# Decoded in this order so a double-escaped '&amp;lt;' only loses one level
LINK_ENTITIES = (
    ('&lt;', '<'),
    ('&gt;', '>'),
    ('&quot;', '"'),
    ('&#039;', "'"),
    ('&amp;', '&'),
)

ALLOWED_SCHEMES = ('http', 'https')

SCHEME_PATTERN = re.compile(r'^([A-Za-z][A-Za-z0-9+.\-]*):')
# Browsers drop these before parsing a URL, so 'java\tscript:' is still a scheme
URL_NOISE_PATTERN = re.compile(r'[\t\n\r]')
NETLOC_PATTERN = re.compile(r'^https?://[^/?#\s]+', re.IGNORECASE)


@dataclass
class TextRun:
    """A span of plain text with a format bitmask and an optional link."""

    text: str
    format: int = 0
    url: Optional[str] = None


def sanitize_link(href: Any) -> Optional[str]:
    """
    Validate a link target.

    Args:
        href: Raw href value (may contain HTML entities)

    Returns:
        The cleaned URL, or None when it must not become a link
    """
    if href is None:
        return None
    if isinstance(href, (list, tuple)):
        href = ' '.join(str(part) for part in href)

    url = str(href)
    for entity, char in LINK_ENTITIES:
        url = url.replace(entity, char)
    return _check_url(url)


def _check_url(url: str) -> Optional[str]:
    """Validate an already-decoded URL."""
    url = URL_NOISE_PATTERN.sub('', url).strip()

    if not url or url == '#':
        return None

    if url.startswith('//'):
        return None

    if url.startswith('/'):
        return url

    scheme_match = SCHEME_PATTERN.match(url)
    if scheme_match:
        if scheme_match.group(1).lower() not in ALLOWED_SCHEMES:
            return None
        if not NETLOC_PATTERN.match(url):
            return None
        return url

    if url[0].isalnum():
        return url

    return None


class _RunCollector:
    """Walks a parsed fragment, flushing a run at every format boundary."""

    def __init__(self):
        self.runs: List[TextRun] = []
        self.buffer: List[str] = []
        self.bold = False
        self.italic = False
        self.url: Optional[str] = None

    @property
    def format(self) -> int:
        return (FORMAT_BOLD if self.bold else 0) + (FORMAT_ITALIC if self.italic else 0)

    def flush(self) -> None:
        text = ''.join(self.buffer)
        self.buffer = []
        if text:
            self.runs.append(TextRun(text=text, format=self.format, url=self.url))

    def walk(self, node: Tag) -> None:
        for child in node.children:
            if isinstance(child, PreformattedString):
                # Comments, CDATA, doctypes
                continue
            if isinstance(child, NavigableString):
                self.buffer.append(str(child))
                continue
            if not isinstance(child, Tag):
                continue

            name = (child.name or '').lower()
            if name in DROPPED_TAGS:
                continue
            if name == 'br':
                self.buffer.append('\n')
                continue
            if name in BOLD_TAGS or name in ITALIC_TAGS or name == LINK_TAG:
                self._formatted(child, name)
            else:
                self.walk(child)

    def _formatted(self, tag: Tag, name: str) -> None:
        saved = (self.bold, self.italic, self.url)
        self.flush()

        if name in BOLD_TAGS:
            self.bold = True
        elif name in ITALIC_TAGS:
            self.italic = True
        else:
            # The parser has already decoded entities in attribute values
            href = tag.get('href')
            url = _check_url(href) if isinstance(href, str) else None
            if url:
                self.url = url

        self.walk(tag)
        self.flush()
        self.bold, self.italic, self.url = saved


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, 'html.parser')


def parse_inline_html(html: Any) -> List[TextRun]:
    """
    Parse an inline HTML fragment into formatted text runs.

    ``<b>``/``<strong>`` set bold, ``<i>``/``<em>`` set italic and ``<a>``
    sets the active link. All other tags are stripped, keeping their text.

    Example:
        >>> [(r.text, r.format) for r in parse_inline_html('<b>Hi <i>you</i></b>')]
        [('Hi ', 1), ('you', 3)]
    """
    if html is None or html == '':
        return []

    collector = _RunCollector()
    collector.walk(_soup(str(html)))
    collector.flush()
    return collector.runs


def strip_html(html: Any) -> str:
    """Return the visible text of a fragment with every tag removed."""
    if html is None or html == '':
        return ''
    return ''.join(run.text for run in parse_inline_html(html))


def clean_text(html: Any) -> str:
    """Tag-free, trimmed text; empty string when nothing visible remains."""
    return strip_html(html).strip()


__all__ = [
    'TextRun',
    'sanitize_link',
    'parse_inline_html',
    'strip_html',
    'clean_text',
    'FORMAT_BOLD',
    'FORMAT_ITALIC',
]
