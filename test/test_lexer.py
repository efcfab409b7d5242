"""
Tokenizer tests

Test classes:
    TestTokenKinds       — identifiers, strings, comments, templates
    TestRegexDetection   — regex literal vs division
    TestBracketMatching  — bracket pairs over the token stream
"""

from __future__ import annotations

from tenancy.codemod.lexer import TokenKind, match_brackets, significant_tokens, tokenize


def _values(text):
    return [token.value for token in significant_tokens(text)]


# ══════════════════════════════════════════════════════════════════════════════
# 1. TestTokenKinds
# ══════════════════════════════════════════════════════════════════════════════


class TestTokenKinds:
    def test_identifiers_and_punctuation(self):
        assert _values("const orgId = req.tenant?.id;") == ["const", "orgId", "=", "req", ".", "tenant", "?.", "id", ";"]

    def test_multi_char_punct_longest_first(self):
        assert _values("a === b => c") == ["a", "===", "b", "=>", "c"]

    def test_token_spans_point_into_source(self):
        text = "  foo(bar)"
        for token in tokenize(text):
            assert text[token.start : token.end] == token.value

    def test_braces_inside_strings_are_opaque(self):
        tokens = significant_tokens("const s = '{ }'; const t = \"}\";")
        strings = [token for token in tokens if token.kind is TokenKind.STRING]
        assert [token.value for token in strings] == ["'{ }'", '"}"']
        assert not any(token.is_punct("{") or token.is_punct("}") for token in tokens)

    def test_escaped_quote_inside_string(self):
        tokens = significant_tokens(r"x = 'it\'s'; y")
        assert tokens[2].kind is TokenKind.STRING
        assert tokens[2].value == r"'it\'s'"
        assert tokens[-1].value == "y"

    def test_comments_are_kept_by_tokenize_only(self):
        text = "a // { comment\n/* } */ b"
        assert [token.kind for token in tokenize(text)] == [
            TokenKind.IDENT,
            TokenKind.COMMENT,
            TokenKind.COMMENT,
            TokenKind.IDENT,
        ]
        assert _values(text) == ["a", "b"]

    def test_template_with_substitution_is_one_token(self):
        text = "const m = `Hello ${user.name} { ${ {a: '}'}.a } }`; next"
        tokens = significant_tokens(text)
        templates = [token for token in tokens if token.kind is TokenKind.TEMPLATE]
        assert len(templates) == 1
        assert templates[0].value.startswith("`Hello")
        assert templates[0].value.endswith("}`")
        assert tokens[-1].value == "next"

    def test_numbers(self):
        tokens = significant_tokens("x = 3.14 + .5")
        assert [token.kind for token in tokens if token.kind is TokenKind.NUMBER] == [TokenKind.NUMBER] * 2

    def test_non_breaking_space_is_whitespace(self):
        assert _values("a\u00a0b") == ["a", "b"]


# ══════════════════════════════════════════════════════════════════════════════
# 2. TestRegexDetection
# ══════════════════════════════════════════════════════════════════════════════


class TestRegexDetection:
    def test_regex_after_assignment(self):
        tokens = significant_tokens("const re = /ab+c{2}/gi;")
        regex = [token for token in tokens if token.kind is TokenKind.REGEX]
        assert [token.value for token in regex] == ["/ab+c{2}/gi"]

    def test_division_after_identifier(self):
        tokens = significant_tokens("total = a / b / c;")
        assert not any(token.kind is TokenKind.REGEX for token in tokens)
        assert _values("total = a / b / c;").count("/") == 2

    def test_division_after_closing_paren(self):
        tokens = significant_tokens("(a + b) / 2")
        assert not any(token.kind is TokenKind.REGEX for token in tokens)

    def test_regex_after_return_keyword(self):
        tokens = significant_tokens("return /}/.test(x)")
        assert tokens[1].kind is TokenKind.REGEX

    def test_slash_in_character_class(self):
        tokens = significant_tokens("x = /[/]{1}/; y")
        assert tokens[2].value == "/[/]{1}/"
        assert tokens[-1].value == "y"

    def test_unterminated_regex_falls_back_to_punct(self):
        tokens = significant_tokens("x = /\n y")
        assert tokens[2].is_punct("/")


# ══════════════════════════════════════════════════════════════════════════════
# 3. TestBracketMatching
# ══════════════════════════════════════════════════════════════════════════════


class TestBracketMatching:
    def test_pairs_map_both_ways(self):
        tokens = significant_tokens("f(a[0], { b: 1 })")
        pairs = match_brackets(tokens)
        assert pairs[1] == len(tokens) - 1
        assert pairs[len(tokens) - 1] == 1

    def test_nested_pairs(self):
        tokens = significant_tokens("{ ( [ ] ) }")
        pairs = match_brackets(tokens)
        assert pairs == {0: 5, 5: 0, 1: 4, 4: 1, 2: 3, 3: 2}

    def test_stray_closer_is_ignored(self):
        tokens = significant_tokens(") { }")
        pairs = match_brackets(tokens)
        assert 0 not in pairs
        assert pairs[1] == 2

    def test_brackets_in_strings_do_not_count(self):
        tokens = significant_tokens("{ '}' }")
        pairs = match_brackets(tokens)
        assert pairs[0] == 2
