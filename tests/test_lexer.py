"""
Tests for the PPP lexer.
"""

import pytest

from lexer import TOKEN_TYPES, Lexer, PPPLexError, PPPError, split_lines


def lex(text, **options):
    return Lexer(text, "<string>", **options).tokenize()


def kinds(text):
    return [(t.type, t.value) for t in lex(text)]


class TestStructure:
    """Single-character structural tokens"""

    def test_markers_carry_fixed_labels(self):
        assert kinds("; { }") == [
            ("SEMI", "EndOfLine"),
            ("LBRACE", "OpenBlock"),
            ("RBRACE", "CloseBlock"),
        ]

    def test_no_whitespace_needed(self):
        assert [t.type for t in lex("write x;repeat 2 times{}")] == [
            "KEYWORD", "IDENT", "SEMI", "KEYWORD", "NUMBER", "KEYWORD", "LBRACE", "RBRACE",
        ]

    def test_types_are_known(self):
        tokens = lex('number x; x := -1; repeat x times { write "s" newline; }')
        assert {t.type for t in tokens} <= set(TOKEN_TYPES)
        assert "UNKNOWN" not in {t.type for t in tokens}

    def test_empty_source(self):
        assert lex("") == []
        assert lex("   \n\t\n") == []


class TestWords:

    def test_keywords(self):
        tokens = lex("number write repeat times newline and")
        assert all(t.type == "KEYWORD" for t in tokens)
        assert [t.value for t in tokens] == ["number", "write", "repeat", "times", "newline", "and"]

    def test_keywords_are_case_sensitive(self):
        assert kinds("Number WRITE") == [("IDENT", "Number"), ("IDENT", "WRITE")]

    def test_identifier_characters(self):
        assert kinds("count_2 x") == [("IDENT", "count_2"), ("IDENT", "x")]

    def test_keyword_prefix_is_identifier(self):
        assert kinds("numbers") == [("IDENT", "numbers")]

    def test_identifier_cannot_start_with_underscore(self):
        with pytest.raises(PPPLexError):
            lex("_x")


class TestNumbers:

    def test_positive(self):
        assert kinds("42") == [("NUMBER", "42")]

    def test_negative_literal(self):
        assert kinds("x := -7;") == [
            ("IDENT", "x"), ("OPERATOR", ":="), ("NUMBER", "-7"), ("SEMI", "EndOfLine"),
        ]

    def test_leading_zeros_kept_verbatim(self):
        assert kinds("007") == [("NUMBER", "007")]

    def test_digits_then_letters_split(self):
        assert kinds("5abc") == [("NUMBER", "5"), ("IDENT", "abc")]

    def test_lone_minus_is_unknown(self):
        with pytest.raises(PPPLexError, match="Unknown character '-'"):
            lex("x - 1")


class TestOperators:

    def test_compound_operators(self):
        assert kinds(":= += -=") == [("OPERATOR", ":="), ("OPERATOR", "+="), ("OPERATOR", "-=")]

    def test_minus_equals_before_negative_number(self):
        assert kinds("x -=5;") == [
            ("IDENT", "x"), ("OPERATOR", "-="), ("NUMBER", "5"), ("SEMI", "EndOfLine"),
        ]

    def test_lone_colon_is_unknown(self):
        with pytest.raises(PPPLexError):
            lex("x : 1;")


class TestStrings:

    def test_verbatim_contents(self):
        assert kinds('"a b ; { \\n"') == [("STRING", "a b ; { \\n")]

    def test_empty_string(self):
        assert kinds('""') == [("STRING", "")]

    def test_unterminated(self):
        with pytest.raises(PPPLexError, match="Unterminated string") as info:
            lex('write "abc;\nwrite "x";')
        assert info.value.line == 1

    def test_string_does_not_span_lines(self):
        with pytest.raises(PPPLexError):
            lex('write "a\nb";')


class TestLines:

    def test_line_and_column(self):
        tokens = lex("number x;\n\n  write x;")
        assert [(t.line, t.column) for t in tokens] == [(1, 1), (1, 8), (1, 9), (3, 3), (3, 9), (3, 10)]

    def test_form_feed_stays_inside_string(self):
        assert kinds('write "a\fb";') == [
            ("KEYWORD", "write"), ("STRING", "a\fb"), ("SEMI", "EndOfLine"),
        ]

    @pytest.mark.parametrize("separator", ["\f", "\v", " ", "\r"])
    def test_only_newline_ends_a_line(self, separator):
        tokens = lex("number a;%s\nwrite zz;" % separator)
        assert [t.line for t in tokens] == [1, 1, 1, 2, 2, 2]

    def test_crlf_line_endings(self):
        tokens = lex('write "x";\r\nwrite "y";\r\n')
        assert [(t.value, t.line) for t in tokens if t.type == "STRING"] == [("x", 1), ("y", 2)]

    def test_split_lines(self):
        assert split_lines("a\fb\nc\r\n\n") == ["a\fb", "c", ""]
        assert split_lines("") == []

    def test_tokenize_line_uses_given_number(self):
        tokens = Lexer("", "<string>").tokenize_line("write 1;", 12)
        assert {t.line for t in tokens} == {12}

    def test_unknown_character_reports_line(self):
        with pytest.raises(PPPLexError) as info:
            lex("number x;\nx := 1 * 2;")
        assert info.value.line == 2
        assert "'*'" in str(info.value)

    def test_errors_share_base_class(self):
        with pytest.raises(PPPError):
            lex("@")


class TestTruncation:

    def test_unbounded_by_default(self):
        word = "a" * 150
        assert lex(word)[0].value == word

    def test_long_lexemes_truncated(self):
        tokens = lex('"%s"' % ("z" * 120), max_token_length=99)
        assert tokens[0].value == "z" * 99

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            Lexer("", "<string>", max_token_length=0)
