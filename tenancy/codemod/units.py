"""
Handler detection over the token stream of a controller file.

A handler is a function with at least two parameters (request, response)
declared as one of:

    export const name = async (req, res) => { ... }
    export async function name(req, res) { ... }
    export const name = asyncHandler(async (req, res) => { ... })
    static name = async (req, res) => { ... }          (class property)
    async name(req: Request, res: Response) { ... }    (class method)

Handler bodies are not searched for further handlers.
"""

from dataclasses import dataclass

from tenancy.codemod.lexer import Token, TokenKind, match_brackets, significant_tokens

MEMBER_MODIFIERS = frozenset(
    {"public", "private", "protected", "static", "async", "readonly", "override", "abstract", "declare"}
)

DECLARATION_KEYWORDS = ("const", "let", "var")


@dataclass(frozen=True)
class HandlerUnit:
    name: str
    params: tuple[str, ...]
    start: int
    body_start: int
    body_end: int
    body_open_index: int
    body_close_index: int

    @property
    def request_param(self) -> str:
        return self.params[0]

    @property
    def response_param(self) -> str:
        return self.params[1]

    def text(self, source: str) -> str:
        return source[self.start : self.body_end]


@dataclass(frozen=True)
class _FunctionShape:
    params: tuple[str, ...]
    body_open: int
    body_close: int


class SourceStructure:
    """Significant tokens of one source text plus their bracket pairs."""

    def __init__(self, text: str):
        self.text = text
        self.tokens: list[Token] = significant_tokens(text)
        self.pairs = match_brackets(self.tokens)

    def token_at(self, index: int) -> Token | None:
        if 0 <= index < len(self.tokens):
            return self.tokens[index]
        return None

    def punct_at(self, index: int, value: str) -> bool:
        token = self.token_at(index)
        return token is not None and token.is_punct(value)

    def ident_at(self, index: int, value: str | None = None) -> bool:
        token = self.token_at(index)
        return token is not None and token.is_ident(value)

    # ------------------------------------------------------------------
    # Handler discovery
    # ------------------------------------------------------------------

    def find_handlers(self) -> list[HandlerUnit]:
        handlers: list[HandlerUnit] = []
        scopes: list[str] = []
        boundary = True
        i = 0
        count = len(self.tokens)

        while i < count:
            token = self.tokens[i]
            in_class = bool(scopes) and scopes[-1] == "class"

            if not scopes and token.is_ident("export"):
                unit = self._match_export(i)
                if unit is not None:
                    handlers.append(unit)
                    i = unit.body_close_index + 1
                    boundary = True
                    continue

            if in_class and boundary:
                unit = self._match_member(i)
                if unit is not None:
                    handlers.append(unit)
                    i = unit.body_close_index + 1
                    boundary = True
                    continue

            if token.is_ident("class") and not self.punct_at(i - 1, "."):
                body = self._class_body(i)
                if body is not None:
                    scopes.append("class")
                    i = body + 1
                    boundary = True
                    continue

            if token.is_punct("{"):
                scopes.append("block")
                boundary = True
            elif token.is_punct("}"):
                if scopes:
                    scopes.pop()
                boundary = True
            elif token.is_punct(";"):
                boundary = True
            else:
                boundary = False
            i += 1

        return handlers

    def _class_body(self, index: int) -> int | None:
        j = index + 1
        while j < len(self.tokens):
            token = self.tokens[j]
            if token.is_punct("{"):
                return j
            if token.is_punct(";") or token.is_punct("}") or token.is_punct("("):
                return None
            j += 1
        return None

    def _match_export(self, index: int) -> HandlerUnit | None:
        j = index + 1
        if self.ident_at(j, "default"):
            j += 1

        token = self.token_at(j)
        if token is None:
            return None

        if token.kind is TokenKind.IDENT and token.value in DECLARATION_KEYWORDS:
            if not self.ident_at(j + 1):
                return None
            name = self.tokens[j + 1].value
            k = j + 2
            if self.punct_at(k, ":"):
                k = self._skip_type_annotation(k + 1)
            if not self.punct_at(k, "="):
                return None
            shape = self._function_expression(k + 1)
            return self._unit(name, index, shape)

        if self.ident_at(j, "async"):
            j += 1
        if self.ident_at(j, "function"):
            j += 1
            if self.punct_at(j, "*"):
                j += 1
            if not self.ident_at(j):
                return None
            name = self.tokens[j].value
            shape = self._signature_and_body(j + 1, arrow=False)
            return self._unit(name, index, shape)

        return None

    def _match_member(self, index: int) -> HandlerUnit | None:
        k = index
        while self.punct_at(k, "@"):
            k += 1
            while self.ident_at(k) or self.punct_at(k, "."):
                k += 1
            if self.punct_at(k, "("):
                close = self.pairs.get(k)
                if close is None:
                    return None
                k = close + 1

        while self.ident_at(k) and self.tokens[k].value in MEMBER_MODIFIERS:
            follower = self.token_at(k + 1)
            if follower is None or follower.kind is not TokenKind.IDENT:
                # the modifier keyword is itself the member name
                break
            k += 1

        if not self.ident_at(k):
            return None
        name = self.tokens[k].value
        if name == "constructor":
            return None
        k += 1
        if self.punct_at(k, "?") or self.punct_at(k, "!"):
            k += 1

        if self.punct_at(k, ":"):
            k = self._skip_type_annotation(k + 1)
        if self.punct_at(k, "="):
            shape = self._function_expression(k + 1)
        elif self.punct_at(k, "(") or self.punct_at(k, "<"):
            shape = self._signature_and_body(k, arrow=False)
        else:
            return None
        return self._unit(name, index, shape)

    def _unit(self, name: str, start_index: int, shape: _FunctionShape | None) -> HandlerUnit | None:
        if shape is None or len(shape.params) < 2:
            return None
        if not shape.params[0] or not shape.params[1]:
            return None
        return HandlerUnit(
            name=name,
            params=shape.params,
            start=self.tokens[start_index].start,
            body_start=self.tokens[shape.body_open].start,
            body_end=self.tokens[shape.body_close].end,
            body_open_index=shape.body_open,
            body_close_index=shape.body_close,
        )

    # ------------------------------------------------------------------
    # Function shapes
    # ------------------------------------------------------------------

    def _function_expression(self, k: int) -> _FunctionShape | None:
        """Match a function value starting at token ``k``."""
        if self.ident_at(k, "async"):
            k += 1

        if self.ident_at(k, "function"):
            k += 1
            if self.punct_at(k, "*"):
                k += 1
            if self.ident_at(k):
                k += 1
            return self._signature_and_body(k, arrow=False)

        if self.punct_at(k, "(") or self.punct_at(k, "<"):
            return self._signature_and_body(k, arrow=True)

        if self.ident_at(k) and self.punct_at(k + 1, "=>"):
            # single bare parameter can never make a handler
            return None

        if self.ident_at(k):
            # wrapped handler, e.g. asyncHandler(async (req, res) => {...})
            while self.punct_at(k + 1, ".") and self.ident_at(k + 2):
                k += 2
            if not self.punct_at(k + 1, "("):
                return None
            close = self.pairs.get(k + 1)
            if close is None:
                return None
            shape = self._function_expression(k + 2)
            if shape is not None and shape.body_close < close:
                return shape
        return None

    def _signature_and_body(self, k: int, arrow: bool) -> _FunctionShape | None:
        if self.punct_at(k, "<"):
            k = self._skip_generics(k)
        if not self.punct_at(k, "("):
            return None
        close = self.pairs.get(k)
        if close is None:
            return None
        params = self._param_names(k, close)
        m = close + 1

        if arrow:
            while m < len(self.tokens) and not self.tokens[m].is_punct("=>"):
                token = self.tokens[m]
                if token.kind is TokenKind.PUNCT and token.value in "([{":
                    m = self.pairs.get(m, m)
                elif token.is_punct(";") or token.is_punct("}"):
                    return None
                m += 1
            m += 1
        elif self.punct_at(m, ":"):
            m += 1
            while m < len(self.tokens):
                token = self.tokens[m]
                if token.is_punct("{") and not self._type_continues(m - 1):
                    break
                if token.kind is TokenKind.PUNCT and token.value in "([{":
                    m = self.pairs.get(m, m) + 1
                    continue
                if token.is_punct(";"):
                    return None
                m += 1

        if not self.punct_at(m, "{"):
            return None
        body_close = self.pairs.get(m)
        if body_close is None:
            return None
        return _FunctionShape(params=params, body_open=m, body_close=body_close)

    def _type_continues(self, index: int) -> bool:
        token = self.token_at(index)
        return token is not None and token.kind is TokenKind.PUNCT and token.value in (":", "|", "&", "<", ",", "=>")

    def _skip_generics(self, k: int) -> int:
        depth = 0
        while k < len(self.tokens):
            token = self.tokens[k]
            if token.is_punct("<"):
                depth += 1
            elif token.is_punct(">"):
                depth -= 1
                if depth == 0:
                    return k + 1
            k += 1
        return k

    def _skip_type_annotation(self, k: int) -> int:
        """Advance past a type annotation to the ``=`` (or ``;``) ending it."""
        while k < len(self.tokens):
            token = self.tokens[k]
            if token.is_punct("=") or token.is_punct(";"):
                return k
            if token.kind is TokenKind.PUNCT and token.value in "([{":
                k = self.pairs.get(k, k) + 1
                continue
            k += 1
        return k

    def _param_names(self, open_index: int, close_index: int) -> tuple[str, ...]:
        names: list[str] = []
        segment_start = True
        k = open_index + 1
        while k < close_index:
            token = self.tokens[k]
            if segment_start:
                while self.ident_at(k) and self.tokens[k].value in ("public", "private", "protected", "readonly"):
                    k += 1
                if self.punct_at(k, "..."):
                    k += 1
                if self.ident_at(k):
                    names.append(self.tokens[k].value)
                else:
                    # destructured parameter
                    names.append("")
                segment_start = False
                token = self.tokens[k]
            if token.kind is TokenKind.PUNCT and token.value in "([{":
                k = self.pairs.get(k, k) + 1
                continue
            if token.is_punct(","):
                segment_start = True
            k += 1
        return tuple(names)

    # ------------------------------------------------------------------
    # Queries on a unit
    # ------------------------------------------------------------------

    def find_try_block(self, unit: HandlerUnit) -> int | None:
        """Index of the opening brace of the first ``try`` block in the unit body."""
        for index in range(unit.body_open_index + 1, unit.body_close_index):
            token = self.tokens[index]
            if token.is_ident("try") and self.punct_at(index + 1, "{") and not self.punct_at(index - 1, "."):
                return index + 1
        return None

    def body_token_range(self, unit: HandlerUnit) -> range:
        return range(unit.body_open_index + 1, unit.body_close_index)


def find_handlers(text: str) -> list[HandlerUnit]:
    return SourceStructure(text).find_handlers()
