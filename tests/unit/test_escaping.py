"""
Unit tests for predicate escaping helpers.
"""

import pytest

from codeindex.storage.escaping import escape_sql_like_pattern, escape_sql_string, sql_in_list

pytestmark = pytest.mark.unit


class TestEscapeSqlString:
    """Tests for string literal escaping."""

    @pytest.mark.parametrize("value", ["", "src/app.py", "C:\\code\\main.rs", "50%_done"])
    def test_strings_without_quotes_are_unchanged(self, value):
        assert escape_sql_string(value) == value

    def test_quotes_are_doubled(self):
        assert escape_sql_string("it's") == "it''s"
        assert escape_sql_string("''") == "''''"

    def test_no_lone_quote_survives(self):
        escaped = escape_sql_string("a'b''c'''d")

        assert escaped == "a''b''''c''''''d"
        assert "'" not in escaped.replace("''", "")


class TestEscapeSqlLikePattern:
    """Tests for LIKE prefix escaping."""

    def test_all_special_characters_escaped_independently(self):
        assert escape_sql_like_pattern("path's%file_name") == r"path''s\%file\_name"

    def test_backslash_escaped_before_wildcards(self):
        """A literal backslash must not end up escaping a wildcard."""
        assert escape_sql_like_pattern("a\\%b") == r"a\\\%b"

    def test_plain_prefix_unchanged(self):
        assert escape_sql_like_pattern("src/components/") == "src/components/"


class TestSqlInList:
    def test_renders_quoted_list(self):
        assert sql_in_list(["a", "b"]) == "'a', 'b'"

    def test_each_value_is_escaped(self):
        assert sql_in_list(["test' OR id != '"]) == "'test'' OR id != '''"

    def test_accepts_generators(self):
        assert sql_in_list(value for value in ("x",)) == "'x'"
