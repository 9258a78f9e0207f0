#!/usr/bin/env python3
"""
Tests for property_resolver.py - properties parsing and placeholder resolution.
"""

import unittest
import tempfile
from pathlib import Path
from property_resolver import (
    UNRESOLVED,
    PropertyResolver,
    is_unresolved,
    parse_properties,
    placeholder_key,
)


class TestParseProperties(unittest.TestCase):
    """Test Java-style properties parsing."""

    def test_separators(self):
        """Test '=', ':' and whitespace separators."""
        props = parse_properties("a=1\nb:2\nc 3\nd = 4\ne : 5")
        self.assertEqual(props, {'a': '1', 'b': '2', 'c': '3', 'd': '4', 'e': '5'})

    def test_comments_and_blank_lines_ignored(self):
        props = parse_properties("# comment\n! also comment\n\n  key=value\n")
        self.assertEqual(props, {'key': 'value'})

    def test_value_may_contain_separators(self):
        props = parse_properties("url=https://host:8443/path?a=b")
        self.assertEqual(props['url'], 'https://host:8443/path?a=b')

    def test_line_continuation(self):
        props = parse_properties("list=a,\\\n    b,\\\n    c\nnext=1")
        self.assertEqual(props['list'], 'a,b,c')
        self.assertEqual(props['next'], '1')

    def test_escaped_separator_in_key(self):
        props = parse_properties("my\\:key=value")
        self.assertEqual(props, {'my:key': 'value'})

    def test_unicode_escape(self):
        props = parse_properties("greeting=caf\\u00e9")
        self.assertEqual(props['greeting'], 'café')

    def test_key_without_value(self):
        props = parse_properties("empty\nother=")
        self.assertEqual(props, {'empty': '', 'other': ''})

    def test_last_duplicate_wins(self):
        props = parse_properties("a=1\na=2")
        self.assertEqual(props['a'], '2')


class TestPlaceholderKey(unittest.TestCase):
    """Test placeholder syntax detection."""

    def test_dollar_placeholder(self):
        self.assertEqual(placeholder_key("${db.host}"), "db.host")

    def test_function_placeholder_quotes_and_whitespace(self):
        self.assertEqual(placeholder_key("#[p('db.host')]"), "db.host")
        self.assertEqual(placeholder_key('#[ p ( "db.host" ) ]'), "db.host")

    def test_surrounding_whitespace_is_trimmed(self):
        self.assertEqual(placeholder_key("  ${a}  "), "a")

    def test_partial_placeholder_is_not_a_placeholder(self):
        self.assertIsNone(placeholder_key("jdbc:${db.host}"))
        self.assertIsNone(placeholder_key("localhost"))


class TestPropertyResolver(unittest.TestCase):
    """Test loading and resolving project properties."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        resources = self.root / "src" / "main" / "resources"
        (resources / "config").mkdir(parents=True)
        (resources / "app.properties").write_text("mq.cipher=TLS_RSA_WITH_AES_256_CBC_SHA256\nhttp.port=8081\n")
        (resources / "config" / "extra.properties").write_text("db.host=localhost\n")
        (resources / "notes.txt").write_text("ignored=true\n")

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_loads_all_properties_files_recursively(self):
        resolver = PropertyResolver(self.root)
        self.assertEqual(resolver.get("http.port"), "8081")
        self.assertEqual(resolver.get("db.host"), "localhost")
        self.assertNotIn("ignored", resolver)
        self.assertEqual(len(resolver.sources), 2)

    def test_resolves_both_placeholder_forms(self):
        resolver = PropertyResolver(self.root)
        self.assertEqual(resolver.resolve("${db.host}"), "localhost")
        self.assertEqual(resolver.resolve("#[p('mq.cipher')]"), "TLS_RSA_WITH_AES_256_CBC_SHA256")

    def test_unknown_placeholder_is_unresolved_not_literal(self):
        resolver = PropertyResolver(self.root)
        result = resolver.resolve("${missing.key}")
        self.assertIs(result, UNRESOLVED)
        self.assertTrue(is_unresolved(result))
        self.assertNotEqual(result, "${missing.key}")

    def test_non_placeholder_is_returned_unchanged(self):
        resolver = PropertyResolver(self.root)
        self.assertEqual(resolver.resolve("plain"), "plain")
        self.assertEqual(resolver.resolve(resolver.resolve("plain")), "plain")
        self.assertIsNone(resolver.resolve(None))

    def test_missing_resource_directory(self):
        resolver = PropertyResolver(self.root / "nowhere")
        self.assertEqual(len(resolver), 0)
        self.assertIs(resolver.resolve("${a}"), UNRESOLVED)

    def test_custom_resources_dir(self):
        (self.root / "conf").mkdir()
        (self.root / "conf" / "x.properties").write_text("only.here=1\n")
        resolver = PropertyResolver(self.root, resources_dir="conf")
        self.assertEqual(resolver.get("only.here"), "1")
        self.assertIsNone(resolver.get("http.port"))

    def test_preloaded_properties(self):
        resolver = PropertyResolver(self.root, properties={'k': 'v'})
        self.assertEqual(resolver.resolve("${k}"), "v")
        self.assertEqual(resolver.sources, [])

    def test_unresolved_sentinel_is_falsy_singleton(self):
        self.assertFalse(UNRESOLVED)
        self.assertEqual(repr(UNRESOLVED), 'UNRESOLVED')


if __name__ == '__main__':
    unittest.main()
