"""
Rewrite Service — applies the controller codemod to a source tree.

Files are processed one at a time; a failure in one file is recorded and
the run continues with the next. A file is only written when at least one
edit was computed for it, and always through an atomic replace.
"""

import enum
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path

from tenancy.codemod.transforms import RewriteOptions, rewrite_source
from tenancy.config import Settings
from tenancy.config import settings as default_settings
from tenancy.exceptions import SourceRootNotFoundError

logger = logging.getLogger(__name__)

JAVASCRIPT_SUFFIXES = (".js", ".jsx", ".mjs", ".cjs")


class FileStatus(str, enum.Enum):
    updated = "updated"
    skipped = "skipped"
    error = "error"


@dataclass
class FileOutcome:
    path: str
    status: FileStatus
    guards_added: int = 0
    repositories_wrapped: int = 0
    query_builders_filtered: int = 0
    import_added: bool = False
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class RewriteReport:
    root: str
    dry_run: bool = False
    files: list[FileOutcome] = field(default_factory=list)

    def _with_status(self, status: FileStatus) -> list[FileOutcome]:
        return [outcome for outcome in self.files if outcome.status is status]

    @property
    def updated(self) -> list[FileOutcome]:
        return self._with_status(FileStatus.updated)

    @property
    def skipped(self) -> list[FileOutcome]:
        return self._with_status(FileStatus.skipped)

    @property
    def errors(self) -> list[FileOutcome]:
        return self._with_status(FileStatus.error)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict:
        return {
            "root": self.root,
            "dry_run": self.dry_run,
            "summary": {
                "updated": len(self.updated),
                "skipped": len(self.skipped),
                "errors": len(self.errors),
            },
            "files": [outcome.to_dict() for outcome in self.files],
        }


def scan_controllers(root: Path, suffixes: list[str], excluded_markers: list[str]) -> list[Path]:
    """
    List controller files under ``root``, recursively and in a stable order.

    A file qualifies when its name ends with one of ``suffixes`` and contains
    none of ``excluded_markers``.
    """
    if not root.is_dir():
        raise SourceRootNotFoundError(str(root))
    found = []
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        name = path.name
        if not any(name.endswith(suffix) for suffix in suffixes):
            continue
        if any(marker in name for marker in excluded_markers):
            continue
        found.append(path)
    return found


def import_specifier(file_path: Path, source_root: Path, module: str) -> str:
    """Relative module specifier from ``file_path`` to ``source_root/module``."""
    relative = Path(os.path.relpath(source_root / module, file_path.parent)).as_posix()
    if not relative.startswith("."):
        relative = f"./{relative}"
    return relative


def write_atomically(path: Path, text: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def process_controller(
    path: Path,
    options: RewriteOptions,
    source_root: Path,
    module: str,
    root: Path | None = None,
    dry_run: bool = False,
) -> FileOutcome:
    """Rewrite one controller file and describe the outcome."""
    display = str(path.relative_to(root)) if root is not None else str(path)
    try:
        with open(path, encoding="utf-8", newline="") as handle:
            text = handle.read()

        file_options = replace(options, typescript=not path.name.endswith(JAVASCRIPT_SUFFIXES))
        result = rewrite_source(text, file_options, import_specifier(path, source_root, module))

        outcome = FileOutcome(
            path=display,
            status=FileStatus.updated if result.changed else FileStatus.skipped,
            guards_added=result.guards_added,
            repositories_wrapped=result.repositories_wrapped,
            query_builders_filtered=result.query_builders_filtered,
            import_added=result.import_added,
            warnings=result.warnings,
        )
        if result.changed and not dry_run:
            write_atomically(path, result.text)
    except Exception as e:
        logger.error(f"Error processing {display}: {e}", extra={"path": display, "status": "error"})
        return FileOutcome(path=display, status=FileStatus.error, error=f"{type(e).__name__}: {e}")

    for warning in outcome.warnings:
        logger.warning(f"{display}: {warning}", extra={"path": display})
    logger.info(f"{outcome.status.value}: {display}", extra={"path": display, "status": outcome.status.value})
    return outcome


def run_rewrite(
    root: Path | str | None = None,
    *,
    dry_run: bool = False,
    settings: Settings = default_settings,
) -> RewriteReport:
    """
    Rewrite every controller below ``root``.

    Raises:
        SourceRootNotFoundError: if ``root`` is not a directory
    """
    root = Path(root or settings.controllers_root)
    files = scan_controllers(root, settings.controller_suffixes, settings.excluded_controller_markers)
    logger.info(f"Found {len(files)} controller files under {root}")

    options = RewriteOptions.from_settings(settings)
    # the wrapper module lives next to the controllers directory
    source_root = root.resolve().parent
    report = RewriteReport(root=str(root), dry_run=dry_run)
    for path in files:
        report.files.append(
            process_controller(
                path.resolve(),
                options,
                source_root,
                settings.tenant_repository_module,
                root=root.resolve(),
                dry_run=dry_run,
            )
        )

    logger.info(
        f"Rewrite finished: {len(report.updated)} updated, {len(report.skipped)} skipped, {len(report.errors)} errors"
    )
    return report
