"""
Tokenizer for TypeScript/JavaScript controller sources

Only what the codemod needs is recognised: identifiers, numbers,
punctuation and opaque string, template, regex and comment tokens, each
carrying its character span in the original text. Brackets inside strings,
template literals, regex literals and comments never become punctuation,
so bracket matching over the token stream is reliable.
"""

import enum
from dataclasses import dataclass


class TokenKind(str, enum.Enum):
    IDENT = "ident"
    NUMBER = "number"
    STRING = "string"
    TEMPLATE = "template"
    REGEX = "regex"
    COMMENT = "comment"
    PUNCT = "punct"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    start: int
    end: int

    def is_punct(self, value: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.value == value

    def is_ident(self, value: str | None = None) -> bool:
        if self.kind is not TokenKind.IDENT:
            return False
        return value is None or self.value == value


# Longest first so that "===" wins over "==" and "=".
MULTI_CHAR_PUNCT = (
    "===",
    "!==",
    "...",
    "**=",
    "=>",
    "==",
    "!=",
    "<=",
    ">=",
    "&&",
    "||",
    "??",
    "?.",
    "++",
    "--",
    "+=",
    "-=",
    "*=",
    "/=",
    "**",
)

# A slash after one of these keywords starts a regex literal, not a division.
REGEX_PRECEDING_KEYWORDS = frozenset(
    {
        "return",
        "typeof",
        "instanceof",
        "in",
        "of",
        "new",
        "delete",
        "void",
        "throw",
        "case",
        "do",
        "else",
        "yield",
        "await",
    }
)

OPENING = {"(": ")", "[": "]", "{": "}"}
CLOSING = {")": "(", "]": "[", "}": "{"}

WHITESPACE = " \t\r\n\f\v\ufeff\u00a0"


class Lexer:
    def __init__(self, text: str):
        self.text = text
        self.length = len(text)
        self.tokens: list[Token] = []

    def tokenize(self) -> list[Token]:
        self._lex(0, stop_at_brace=False)
        return self.tokens

    def _emit(self, kind: TokenKind, start: int, end: int) -> None:
        self.tokens.append(Token(kind, self.text[start:end], start, end))

    def _lex(self, pos: int, stop_at_brace: bool) -> int:
        """
        Tokenize from ``pos``.

        With ``stop_at_brace`` the scan ends at the ``}`` closing a template
        substitution and returns the offset just past it.
        """
        text = self.text
        depth = 0
        while pos < self.length:
            ch = text[pos]

            if ch in WHITESPACE:
                pos += 1
                continue

            if text.startswith("//", pos):
                end = text.find("\n", pos)
                end = self.length if end == -1 else end
                self._emit(TokenKind.COMMENT, pos, end)
                pos = end
                continue

            if text.startswith("/*", pos):
                end = text.find("*/", pos + 2)
                end = self.length if end == -1 else end + 2
                self._emit(TokenKind.COMMENT, pos, end)
                pos = end
                continue

            if ch in "'\"":
                end = self._scan_quoted(pos, ch)
                self._emit(TokenKind.STRING, pos, end)
                pos = end
                continue

            if ch == "`":
                end = self._scan_template(pos)
                self._emit(TokenKind.TEMPLATE, pos, end)
                pos = end
                continue

            if ch == "/" and self._regex_allowed():
                end = self._scan_regex(pos)
                if end is not None:
                    self._emit(TokenKind.REGEX, pos, end)
                    pos = end
                    continue

            if ch.isalpha() or ch in "_$":
                end = pos + 1
                while end < self.length and (text[end].isalnum() or text[end] in "_$"):
                    end += 1
                self._emit(TokenKind.IDENT, pos, end)
                pos = end
                continue

            if ch.isdigit() or (ch == "." and pos + 1 < self.length and text[pos + 1].isdigit()):
                end = pos + 1
                while end < self.length and (text[end].isalnum() or text[end] in "._"):
                    end += 1
                self._emit(TokenKind.NUMBER, pos, end)
                pos = end
                continue

            if stop_at_brace:
                if ch == "{":
                    depth += 1
                elif ch == "}":
                    if depth == 0:
                        return pos + 1
                    depth -= 1

            for punct in MULTI_CHAR_PUNCT:
                if text.startswith(punct, pos):
                    self._emit(TokenKind.PUNCT, pos, pos + len(punct))
                    pos += len(punct)
                    break
            else:
                self._emit(TokenKind.PUNCT, pos, pos + 1)
                pos += 1

        return pos

    def _previous_significant(self) -> Token | None:
        for token in reversed(self.tokens):
            if token.kind is not TokenKind.COMMENT:
                return token
        return None

    def _regex_allowed(self) -> bool:
        prev = self._previous_significant()
        if prev is None:
            return True
        if prev.kind is TokenKind.IDENT:
            return prev.value in REGEX_PRECEDING_KEYWORDS
        if prev.kind is TokenKind.PUNCT:
            return prev.value not in (")", "]", "}", "++", "--")
        return False

    def _scan_quoted(self, pos: int, quote: str) -> int:
        i = pos + 1
        while i < self.length:
            ch = self.text[i]
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                return i + 1
            if ch == "\n":
                # unterminated literal ends at the line break
                return i
            i += 1
        return self.length

    def _scan_template(self, pos: int) -> int:
        i = pos + 1
        while i < self.length:
            ch = self.text[i]
            if ch == "\\":
                i += 2
                continue
            if ch == "`":
                return i + 1
            if self.text.startswith("${", i):
                # substitutions are lexed separately and discarded
                i = Lexer(self.text)._lex(i + 2, stop_at_brace=True)
                continue
            i += 1
        return self.length

    def _scan_regex(self, pos: int) -> int | None:
        i = pos + 1
        in_class = False
        while i < self.length:
            ch = self.text[i]
            if ch == "\\":
                i += 2
                continue
            if ch == "\n":
                return None
            if ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                i += 1
                while i < self.length and (self.text[i].isalnum() or self.text[i] == "_"):
                    i += 1
                return i
            i += 1
        return None


def tokenize(text: str) -> list[Token]:
    """Return every token of ``text``, comments included."""
    return Lexer(text).tokenize()


def significant_tokens(text: str) -> list[Token]:
    """Return the tokens of ``text`` without comments."""
    return [token for token in tokenize(text) if token.kind is not TokenKind.COMMENT]


def match_brackets(tokens: list[Token]) -> dict[int, int]:
    """
    Pair bracket tokens by index.

    The result maps each opening index to its closing index and back.
    Unbalanced closers are ignored so that a stray bracket does not derail
    the rest of the file.
    """
    pairs: dict[int, int] = {}
    stack: list[int] = []
    for index, token in enumerate(tokens):
        if token.kind is not TokenKind.PUNCT:
            continue
        if token.value in OPENING:
            stack.append(index)
        elif token.value in CLOSING:
            if stack and tokens[stack[-1]].value == CLOSING[token.value]:
                opener = stack.pop()
                pairs[opener] = index
                pairs[index] = opener
    return pairs
