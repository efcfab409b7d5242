"""
Controller codemod

Public API:
    rewrite_source      — rewrite one controller source text
    ControllerRewriter  — edit computation for one source text
    RewriteOptions      — names and messages used by the rewrite
    RewriteResult       — rewritten text plus per-file counters
    TextEdit            — span replacement against an immutable snapshot
"""

from .edits import TextEdit, apply_edits, apply_edits_descending
from .transforms import ControllerRewriter, RewriteOptions, RewriteResult, rewrite_source
from .units import HandlerUnit, SourceStructure, find_handlers

__all__ = [
    "ControllerRewriter",
    "HandlerUnit",
    "RewriteOptions",
    "RewriteResult",
    "SourceStructure",
    "TextEdit",
    "apply_edits",
    "apply_edits_descending",
    "find_handlers",
    "rewrite_source",
]
