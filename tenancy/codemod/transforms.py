"""
Controller rewriting: organization guards, tenant-scoped repositories and
tenant filters on query builders.

Every transformation is expressed as a TextEdit against the text that was
read; the edits are rendered once at the end. Already-migrated code is
recognised and left alone, so a second run over the output produces no
edits.
"""

import logging
import re
from dataclasses import dataclass, field

from tenancy.codemod.edits import (
    TextEdit,
    apply_edits,
    detect_indent_unit,
    detect_newline,
    first_on_line,
    indentation_at,
)
from tenancy.codemod.lexer import TokenKind
from tenancy.codemod.units import HandlerUnit, SourceStructure

logger = logging.getLogger(__name__)

ALIAS_PATTERN = re.compile(r"^[A-Za-z_$][\w$]*$")

WHERE_METHODS = ("where", "andWhere")


@dataclass(frozen=True)
class RewriteOptions:
    tenant_variable: str = "orgId"
    tenant_property: str = "organizationId"
    tenant_column: str = "organization_id"
    guard_message: str = "Organization context required"
    guard_status_code: int = 400
    repository_factory: str = "AppDataSource.getRepository"
    wrapper_function: str = "createTenantRepository"
    indent_unit: str = "  "
    typescript: bool = True
    filter_window: int = 200

    @classmethod
    def from_settings(cls, settings) -> "RewriteOptions":
        return cls(
            tenant_variable=settings.tenant_variable,
            tenant_property=settings.tenant_property,
            tenant_column=settings.tenant_column,
            guard_message=settings.guard_message,
            guard_status_code=settings.guard_status_code,
            repository_factory=settings.repository_factory,
            wrapper_function=settings.tenant_repository_function,
            indent_unit=settings.indent_unit,
        )


@dataclass
class RewriteResult:
    text: str
    edits: list[TextEdit] = field(default_factory=list)
    guards_added: int = 0
    repositories_wrapped: int = 0
    query_builders_filtered: int = 0
    import_added: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.edits)


class ControllerRewriter:
    """Compute and apply the tenant-isolation edits for one source text."""

    def __init__(self, text: str, options: RewriteOptions | None = None, import_specifier: str | None = None):
        self.text = text
        self.options = options or RewriteOptions()
        self.import_specifier = import_specifier
        self.structure = SourceStructure(text)
        self.newline = detect_newline(text)
        self.indent_unit = detect_indent_unit(text, self.options.indent_unit)

    def rewrite(self) -> RewriteResult:
        result = RewriteResult(text=self.text)
        guarded: list[tuple[HandlerUnit, range]] = []

        for unit in self.structure.find_handlers():
            if self.has_guard(unit):
                guarded.append((unit, self.existing_guard_scope(unit)))
                continue
            edit = self.guard_edit(unit)
            if edit is None:
                result.warnings.append(f"{unit.name}: no try block, guard not inserted")
                continue
            result.edits.append(edit)
            result.guards_added += 1
            guarded.append((unit, self.try_block_scope(unit)))

        for unit, scope in guarded:
            repository_edits, warnings = self.repository_edits(unit, scope)
            result.edits.extend(repository_edits)
            result.repositories_wrapped += len(repository_edits)
            result.warnings.extend(warnings)

            filter_edits, warnings = self.query_builder_edits(unit, scope)
            result.edits.extend(filter_edits)
            result.query_builders_filtered += len(filter_edits)
            result.warnings.extend(warnings)

        if result.repositories_wrapped:
            edit = self.import_edit()
            if edit is not None:
                result.edits.append(edit)
                result.import_added = True

        result.text = apply_edits(self.text, result.edits)
        return result

    # ------------------------------------------------------------------
    # Guard
    # ------------------------------------------------------------------

    def has_guard(self, unit: HandlerUnit) -> bool:
        unit_text = unit.text(self.text)
        return self.options.guard_message in unit_text or f"const {self.options.tenant_variable} =" in unit_text

    def guard_lines(self, unit: HandlerUnit) -> list[str]:
        opts = self.options
        req = unit.request_param
        var = opts.tenant_variable
        if opts.typescript:
            source = f"({req} as any).tenant?.id || ({req} as any).user?.{opts.tenant_column}"
        else:
            source = f"{req}.tenant?.id || {req}.user?.{opts.tenant_column}"
        message = opts.guard_message.replace("\\", "\\\\").replace("'", "\\'")
        return [
            f"const {var} = {source};",
            "",
            f"if (!{var}) {{",
            f"{self.indent_unit}return {unit.response_param}.status({opts.guard_status_code}).json({{ message: '{message}' }});",
            "}",
        ]

    def guard_edit(self, unit: HandlerUnit) -> TextEdit | None:
        brace_index = self.structure.find_try_block(unit)
        if brace_index is None:
            return None

        text = self.text
        nl = self.newline
        brace = self.structure.tokens[brace_index]
        lines = self.guard_lines(unit)
        try_indent = indentation_at(text, brace.start)

        line_end = text.find("\n", brace.end)
        rest = text[brace.end : line_end if line_end != -1 else len(text)]

        if line_end != -1 and not rest.strip():
            insert_at = line_end + 1
            indent = self._block_indent(insert_at, try_indent)
            block = "".join(f"{indent}{line}{nl}" if line else nl for line in lines)
            return TextEdit(insert_at, insert_at, block)

        # code follows the brace on the same line
        indent = try_indent + self.indent_unit
        lead = len(rest) - len(rest.lstrip())
        block = nl.join(f"{indent}{line}" if line else "" for line in lines)
        return TextEdit(brace.end, brace.end + lead, f"{nl}{block}{nl}{indent}")

    def _block_indent(self, pos: int, try_indent: str) -> str:
        for line in self.text[pos:].splitlines():
            stripped = line.lstrip()
            if not stripped:
                continue
            if stripped.startswith("}"):
                break
            return line[: len(line) - len(stripped)]
        return try_indent + self.indent_unit

    # ------------------------------------------------------------------
    # Guard scope
    # ------------------------------------------------------------------

    def try_block_scope(self, unit: HandlerUnit) -> range:
        """Tokens that will see the guard inserted at the top of the first try block."""
        brace_index = self.structure.find_try_block(unit)
        return range(brace_index + 1, self.structure.pairs[brace_index])

    def existing_guard_scope(self, unit: HandlerUnit) -> range:
        """Tokens after an existing tenant declaration, up to the end of its block."""
        structure = self.structure
        for index in structure.body_token_range(unit):
            if (
                structure.ident_at(index)
                and structure.tokens[index].value in ("const", "let", "var")
                and structure.ident_at(index + 1, self.options.tenant_variable)
                and structure.punct_at(index + 2, "=")
            ):
                return range(index + 3, self._enclosing_block_close(index, unit))
        # guarded by message only: the tenant variable is not known to be declared
        return range(0)

    def _enclosing_block_close(self, index: int, unit: HandlerUnit) -> int:
        structure = self.structure
        for opener in range(index - 1, unit.body_open_index, -1):
            if structure.punct_at(opener, "{") and structure.pairs.get(opener, -1) > index:
                return structure.pairs[opener]
        return unit.body_close_index

    # ------------------------------------------------------------------
    # Repository acquisition
    # ------------------------------------------------------------------

    def repository_edits(self, unit: HandlerUnit, scope: range) -> tuple[list[TextEdit], list[str]]:
        parts = self.options.repository_factory.split(".")
        edits: list[TextEdit] = []
        warnings: list[str] = []
        k = unit.body_open_index + 1
        while k < unit.body_close_index:
            close = self._factory_call_close(k, parts)
            if close is None:
                k += 1
                continue
            if not self._already_wrapped(k):
                if k in scope:
                    edits.append(self._wrap_edit(k, close))
                else:
                    warnings.append(f"{unit.name}: repository acquired outside the organization guard")
            k = close + 1
        return edits, warnings

    def _factory_call_close(self, k: int, parts: list[str]) -> int | None:
        structure = self.structure
        if structure.punct_at(k - 1, ".") or not structure.ident_at(k, parts[0]):
            return None
        j = k
        for part in parts[1:]:
            if not (structure.punct_at(j + 1, ".") and structure.ident_at(j + 2, part)):
                return None
            j += 2
        if not structure.punct_at(j + 1, "("):
            return None
        return structure.pairs.get(j + 1)

    def _already_wrapped(self, k: int) -> bool:
        return self.structure.punct_at(k - 1, "(") and self.structure.ident_at(k - 2, self.options.wrapper_function)

    def _wrap_edit(self, k: int, close: int) -> TextEdit:
        structure = self.structure
        tokens = structure.tokens
        wrapper = self.options.wrapper_function
        var = self.options.tenant_variable
        call_text = self.text[tokens[k].start : tokens[close].end]

        binding = tokens[k - 3] if k >= 3 else None
        if (
            binding is not None
            and binding.kind is TokenKind.IDENT
            and binding.value in ("const", "let", "var")
            and structure.ident_at(k - 2)
            and structure.punct_at(k - 1, "=")
            and structure.punct_at(close + 1, ";")
        ):
            nl = self.newline
            indent = indentation_at(self.text, binding.start)
            inner = indent + self.indent_unit
            name = tokens[k - 2].value
            replacement = f"{binding.value} {name} = {wrapper}({nl}{inner}{call_text},{nl}{inner}{var}{nl}{indent});"
            return TextEdit(binding.start, tokens[close + 1].end, replacement)

        return TextEdit(tokens[k].start, tokens[close].end, f"{wrapper}({call_text}, {var})")

    # ------------------------------------------------------------------
    # Query builders
    # ------------------------------------------------------------------

    def query_builder_edits(self, unit: HandlerUnit, scope: range) -> tuple[list[TextEdit], list[str]]:
        structure = self.structure
        builders = [
            index
            for index in structure.body_token_range(unit)
            if structure.punct_at(index, ".")
            and structure.ident_at(index + 1, "createQueryBuilder")
            and structure.punct_at(index + 2, "(")
        ]

        edits: list[TextEdit] = []
        warnings: list[str] = []
        for position, builder in enumerate(builders):
            alias = self._builder_alias(builder + 2)
            if alias is None:
                continue
            bound = builders[position + 1] if position + 1 < len(builders) else unit.body_close_index
            if builder not in scope:
                warnings.append(f"{unit.name}: query builder '{alias}' is outside the organization guard")
                continue
            where = self._first_where(builder + 3, min(bound, scope.stop))
            if where is None:
                warnings.append(f"{unit.name}: query builder '{alias}' has no where clause")
                continue
            if self._mentions_tenant(where):
                continue
            if structure.punct_at(where + 3, ")"):
                warnings.append(f"{unit.name}: query builder '{alias}' has an empty where clause")
                continue
            edits.append(self._filter_edit(alias, where))
        return edits, warnings

    def _builder_alias(self, open_index: int) -> str | None:
        close = self.structure.pairs.get(open_index)
        if close is None or close == open_index + 1:
            return None
        last = self.structure.tokens[close - 1]
        if last.kind is not TokenKind.STRING:
            return None
        if close - 1 != open_index + 1 and not self.structure.punct_at(close - 2, ","):
            return None
        alias = last.value[1:-1]
        return alias if ALIAS_PATTERN.match(alias) else None

    def _first_where(self, start: int, bound: int) -> int | None:
        structure = self.structure
        for index in range(start, bound):
            if (
                structure.punct_at(index, ".")
                and structure.token_at(index + 1) is not None
                and structure.tokens[index + 1].is_ident()
                and structure.tokens[index + 1].value in WHERE_METHODS
                and structure.punct_at(index + 2, "(")
            ):
                return index
        return None

    def _mentions_tenant(self, where: int) -> bool:
        start = self.structure.tokens[where].start
        window = self.text[start : start + self.options.filter_window]
        return self.options.tenant_property in window or self.options.tenant_column in window

    def _filter_edit(self, alias: str, where: int) -> TextEdit:
        tokens = self.structure.tokens
        dot = tokens[where]
        paren = tokens[where + 2]
        indent = indentation_at(self.text, dot.start)
        if not first_on_line(self.text, dot.start):
            indent += self.indent_unit
        var = self.options.tenant_variable
        replacement = f"'{alias}.{self.options.tenant_property} = :{var}', {{ {var} }}){self.newline}{indent}.andWhere("
        return TextEdit(paren.end, paren.end, replacement)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_statements(self) -> list[tuple[int, int]]:
        """Token index spans of the top-level import statements."""
        structure = self.structure
        tokens = structure.tokens
        spans = []
        depth = 0
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if depth == 0 and token.is_ident("import") and not (structure.punct_at(i + 1, "(") or structure.punct_at(i + 1, ".")):
                j = i + 1
                while j < len(tokens) and tokens[j].kind is not TokenKind.STRING and not tokens[j].is_punct(";"):
                    j += 1
                if j >= len(tokens):
                    break
                end = j
                if tokens[j].kind is TokenKind.STRING:
                    if structure.punct_at(end + 1, ")"):
                        end += 1
                    if structure.punct_at(end + 1, ";"):
                        end += 1
                spans.append((i, end))
                i = end + 1
                continue
            if token.is_punct("{"):
                depth += 1
            elif token.is_punct("}"):
                depth -= 1
            i += 1
        return spans

    def has_wrapper_import(self) -> bool:
        wrapper = self.options.wrapper_function
        tokens = self.structure.tokens
        return any(
            tokens[index].is_ident(wrapper) for start, end in self.import_statements() for index in range(start, end + 1)
        )

    def import_edit(self) -> TextEdit | None:
        if self.import_specifier is None or self.has_wrapper_import():
            return None
        statement = f"import {{ {self.options.wrapper_function} }} from '{self.import_specifier}';"
        spans = self.import_statements()
        if not spans:
            return TextEdit(0, 0, statement + self.newline)
        end = self.structure.tokens[spans[-1][1]].end
        return TextEdit(end, end, self.newline + statement)


def rewrite_source(text: str, options: RewriteOptions | None = None, import_specifier: str | None = None) -> RewriteResult:
    """Rewrite one controller source text and report what changed."""
    return ControllerRewriter(text, options, import_specifier).rewrite()
