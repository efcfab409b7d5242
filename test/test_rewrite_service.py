"""
Rewrite service tests — whole controller trees on disk

Test classes:
    TestScanControllers   — file selection and ordering
    TestImportSpecifier   — relative path to the wrapper module
    TestRunRewrite        — end-to-end passes, dry run, error isolation
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from tenancy.config import Settings
from tenancy.exceptions import SourceRootNotFoundError
from tenancy.services.rewrite_service import (
    FileStatus,
    import_specifier,
    run_rewrite,
    scan_controllers,
)


def _settings(**overrides) -> Settings:
    return Settings(**overrides)


# ══════════════════════════════════════════════════════════════════════════════
# 1. TestScanControllers
# ══════════════════════════════════════════════════════════════════════════════


class TestScanControllers:
    def test_excluded_and_non_controller_files(self, controllers_root):
        settings = _settings()
        files = scan_controllers(controllers_root, settings.controller_suffixes, settings.excluded_controller_markers)
        assert [path.name for path in files] == ["patient.controller.ts"]

    def test_recursive_and_sorted(self, controllers_root):
        nested = controllers_root / "billing"
        nested.mkdir()
        (nested / "invoice.controller.ts").write_text("", encoding="utf-8")
        (controllers_root / "bed.controller.ts").write_text("", encoding="utf-8")
        files = scan_controllers(controllers_root, [".controller.ts"], ["auth.", "user."])
        names = [path.relative_to(controllers_root).as_posix() for path in files]
        assert names == ["bed.controller.ts", "billing/invoice.controller.ts", "patient.controller.ts"]

    def test_missing_root(self, tmp_path):
        with pytest.raises(SourceRootNotFoundError):
            scan_controllers(tmp_path / "nope", [".controller.ts"], [])


# ══════════════════════════════════════════════════════════════════════════════
# 2. TestImportSpecifier
# ══════════════════════════════════════════════════════════════════════════════


class TestImportSpecifier:
    def test_sibling_directory(self, tmp_path):
        src = tmp_path / "src"
        spec = import_specifier(src / "controllers" / "a.controller.ts", src, "repositories/TenantRepository")
        assert spec == "../repositories/TenantRepository"

    def test_nested_controller(self, tmp_path):
        src = tmp_path / "src"
        spec = import_specifier(src / "controllers" / "billing" / "a.controller.ts", src, "repositories/TenantRepository")
        assert spec == "../../repositories/TenantRepository"

    def test_same_directory_gets_dot_prefix(self, tmp_path):
        assert import_specifier(tmp_path / "a.ts", tmp_path, "TenantRepository") == "./TenantRepository"


# ══════════════════════════════════════════════════════════════════════════════
# 3. TestRunRewrite
# ══════════════════════════════════════════════════════════════════════════════


class TestRunRewrite:
    def test_first_pass_updates_controller(self, controllers_root):
        report = run_rewrite(controllers_root, settings=_settings())
        assert [outcome.status for outcome in report.files] == [FileStatus.updated]
        assert report.to_dict()["summary"] == {"updated": 1, "skipped": 0, "errors": 0}

        text = (controllers_root / "patient.controller.ts").read_text(encoding="utf-8")
        assert "const orgId = " in text
        assert "import { createTenantRepository } from '../repositories/TenantRepository';" in text
        assert "createTenantRepository(\n      AppDataSource.getRepository(Patient)," in text

    def test_excluded_files_are_never_touched(self, controllers_root):
        original = (controllers_root / "auth.controller.ts").read_text(encoding="utf-8")
        run_rewrite(controllers_root, settings=_settings())
        assert (controllers_root / "auth.controller.ts").read_text(encoding="utf-8") == original
        assert (controllers_root / "user.controller.ts").read_text(encoding="utf-8") == original

    def test_second_pass_skips_everything(self, controllers_root):
        run_rewrite(controllers_root, settings=_settings())
        after_first = (controllers_root / "patient.controller.ts").read_bytes()

        report = run_rewrite(controllers_root, settings=_settings())
        assert report.to_dict()["summary"] == {"updated": 0, "skipped": 1, "errors": 0}
        assert (controllers_root / "patient.controller.ts").read_bytes() == after_first

    def test_dry_run_does_not_write(self, controllers_root):
        before = (controllers_root / "patient.controller.ts").read_bytes()
        report = run_rewrite(controllers_root, dry_run=True, settings=_settings())
        assert report.dry_run is True
        assert len(report.updated) == 1
        assert (controllers_root / "patient.controller.ts").read_bytes() == before

    def test_crlf_file_keeps_crlf(self, controllers_root):
        path = controllers_root / "patient.controller.ts"
        path.write_bytes(path.read_bytes().replace(b"\n", b"\r\n"))
        run_rewrite(controllers_root, settings=_settings())
        data = path.read_bytes()
        assert b"const orgId" in data
        assert data.count(b"\n") == data.count(b"\r\n")

    def test_javascript_controller_gets_plain_guard(self, controllers_root):
        settings = _settings(controller_suffixes=[".controller.js"])
        source = (controllers_root / "patient.controller.ts").read_text(encoding="utf-8")
        (controllers_root / "ward.controller.js").write_text(source, encoding="utf-8")
        run_rewrite(controllers_root, settings=settings)
        text = (controllers_root / "ward.controller.js").read_text(encoding="utf-8")
        assert "const orgId = req.tenant?.id || req.user?.organization_id;" in text

    def test_failure_in_one_file_does_not_stop_the_run(self, controllers_root):
        (controllers_root / "bed.controller.ts").write_text(
            (controllers_root / "patient.controller.ts").read_text(encoding="utf-8"), encoding="utf-8"
        )

        def _failing_write(path: Path, text: str) -> None:
            if path.name == "bed.controller.ts":
                raise PermissionError("read-only file system")
            path.write_text(text, encoding="utf-8")

        with patch("tenancy.services.rewrite_service.write_atomically", side_effect=_failing_write):
            report = run_rewrite(controllers_root, settings=_settings())

        statuses = {outcome.path: outcome.status for outcome in report.files}
        assert statuses == {"bed.controller.ts": FileStatus.error, "patient.controller.ts": FileStatus.updated}
        assert report.has_errors
        assert report.errors[0].error == "PermissionError: read-only file system"

    def test_undecodable_file_is_recorded(self, controllers_root):
        (controllers_root / "broken.controller.ts").write_bytes(b"\xff\xfe\x00bad")
        report = run_rewrite(controllers_root, settings=_settings())
        broken = [outcome for outcome in report.files if outcome.path == "broken.controller.ts"][0]
        assert broken.status is FileStatus.error
        assert broken.error.startswith("UnicodeDecodeError")

    def test_missing_root_is_fatal(self, tmp_path):
        with pytest.raises(SourceRootNotFoundError):
            run_rewrite(tmp_path / "missing", settings=_settings())

    def test_warnings_are_reported(self, controllers_root):
        (controllers_root / "ward.controller.ts").write_text(
            "export const list = async (req, res) => {\n  res.send();\n};\n", encoding="utf-8"
        )
        report = run_rewrite(controllers_root, settings=_settings())
        ward = [outcome for outcome in report.files if outcome.path == "ward.controller.ts"][0]
        assert ward.status is FileStatus.skipped
        assert ward.warnings == ["list: no try block, guard not inserted"]
