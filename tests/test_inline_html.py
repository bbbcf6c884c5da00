"""Tests for inline HTML parsing and link sanitization."""

import unittest

from converters.inline_html import (
    FORMAT_BOLD,
    FORMAT_ITALIC,
    clean_text,
    parse_inline_html,
    sanitize_link,
    strip_html,
)


def runs(html):
    return [(run.text, run.format, run.url) for run in parse_inline_html(html)]


class TestParseInlineHtml(unittest.TestCase):
    def test_plain_text_is_one_run(self):
        self.assertEqual(runs('Hello world'), [('Hello world', 0, None)])

    def test_empty_input(self):
        self.assertEqual(parse_inline_html(''), [])
        self.assertEqual(parse_inline_html(None), [])

    def test_nested_formats_combine(self):
        """Italic inside bold carries both bits."""
        self.assertEqual(
            runs('<b>Hi <i>you</i></b>'),
            [('Hi ', FORMAT_BOLD, None), ('you', FORMAT_BOLD | FORMAT_ITALIC, None)]
        )

    def test_format_restored_after_closing_tag(self):
        self.assertEqual(
            runs('a <strong>b</strong> c'),
            [('a ', 0, None), ('b', FORMAT_BOLD, None), (' c', 0, None)]
        )

    def test_em_is_italic(self):
        self.assertEqual(runs('<em>soft</em>'), [('soft', FORMAT_ITALIC, None)])

    def test_link_run(self):
        self.assertEqual(
            runs('Visit <a href="https://wemeditate.com/about">us</a>'),
            [('Visit ', 0, None), ('us', 0, 'https://wemeditate.com/about')]
        )

    def test_bold_link(self):
        self.assertEqual(
            runs('<a href="/path"><b>go</b></a>'),
            [('go', FORMAT_BOLD, '/path')]
        )

    def test_unsafe_link_keeps_text(self):
        self.assertEqual(runs('<a href="javascript:alert(1)">click</a>'), [('click', 0, None)])

    def test_line_break(self):
        self.assertEqual(runs('one<br>two'), [('one\ntwo', 0, None)])

    def test_other_tags_are_stripped(self):
        self.assertEqual(strip_html('<span class="x">kept</span> <u>text</u>'), 'kept text')

    def test_entities_decoded(self):
        self.assertEqual(strip_html('Tom &amp; Jerry'), 'Tom & Jerry')

    def test_comments_dropped(self):
        self.assertEqual(strip_html('a<!-- hidden -->b'), 'ab')

    def test_leading_whitespace_kept(self):
        self.assertEqual(runs('  Hello'), [('  Hello', 0, None)])

    def test_parsed_href_decoded_once(self):
        """The parser decodes attribute entities; the link must not be decoded again."""
        self.assertEqual(
            runs('<a href="/x?a=1&amp;lt;b">q</a>'),
            [('q', 0, '/x?a=1&lt;b')]
        )

    def test_clean_text_trims(self):
        self.assertEqual(clean_text('  <b> hi </b> '), 'hi')
        self.assertEqual(clean_text('<p> </p>'), '')


class TestSanitizeLink(unittest.TestCase):
    def test_empty_and_anchor(self):
        self.assertIsNone(sanitize_link(None))
        self.assertIsNone(sanitize_link(''))
        self.assertIsNone(sanitize_link('#'))

    def test_relative_paths_allowed(self):
        self.assertEqual(sanitize_link('/about'), '/about')
        self.assertEqual(sanitize_link('example.com/page'), 'example.com/page')

    def test_protocol_relative_rejected(self):
        self.assertIsNone(sanitize_link('//evil.example'))

    def test_http_urls_allowed(self):
        self.assertEqual(sanitize_link(' https://example.com/a '), 'https://example.com/a')

    def test_entities_decoded(self):
        self.assertEqual(
            sanitize_link('https://example.com/a?b=1&amp;c=2'),
            'https://example.com/a?b=1&c=2'
        )

    def test_dangerous_schemes_rejected(self):
        self.assertIsNone(sanitize_link('javascript:alert(1)'))
        self.assertIsNone(sanitize_link('JavaScript:alert(1)'))
        self.assertIsNone(sanitize_link('java\tscript:alert(1)'))
        self.assertIsNone(sanitize_link('data:text/html;base64,xyz'))
        self.assertIsNone(sanitize_link('mailto:someone@example.com'))

    def test_scheme_without_host_rejected(self):
        self.assertIsNone(sanitize_link('http:foo'))

    def test_encoded_markup_rejected(self):
        self.assertIsNone(sanitize_link('&lt;script&gt;'))


if __name__ == '__main__':
    unittest.main()
