"""
Tests for CSV export.
"""

import asyncio
import os

import pytest

from gmf_bot.errors import ExportError
from gmf_bot.services.export import CsvExporter, build_rows, render_csv, safe_filename_part


class TestBuildRows:
    """Tests for the CSV column layout."""

    def test_items_use_sorted_union_of_keys(self):
        headers, rows = build_rows({"items": [{"b": 1, "a": 2}, {"c": 3}]})
        assert headers == ["a", "b", "c"]
        assert rows == [["2", "1", ""], ["", "", "3"]]

    def test_no_items_gives_field_value(self):
        headers, rows = build_rows({"note": "hello", "tags": ["a", "b"], "empty": None})
        assert headers == ["Field", "Value"]
        assert rows == [["note", "hello"], ["tags", "a; b"]]

    def test_empty_items_list_gives_field_value(self):
        headers, _ = build_rows({"items": [], "summary": {"x": 1}})
        assert headers == ["Field", "Value"]

    def test_nested_values_are_json(self):
        _, rows = build_rows({"items": [{"meta": {"màu": "đỏ"}}]})
        assert rows == [['{"màu": "đỏ"}']]


class TestRenderCsv:
    """Tests for render_csv function."""

    def test_quoting(self):
        """Cells with commas, quotes or newlines are quoted."""
        text = render_csv({"items": [{"name": 'Gạo "ST25", 5kg', "note": "a\nb"}]})
        assert text == 'name,note\n"Gạo ""ST25"", 5kg","a\nb"\n'

    def test_plain(self):
        assert render_csv({"items": [{"a": 1}]}) == "a\n1\n"


class TestCsvExporter:
    """Tests for CsvExporter."""

    def test_export_writes_file_and_urls(self, tmp_path):
        exporter = CsvExporter(tmp_path, "https://bot.test/")
        exported = asyncio.run(exporter.export({"items": [{"a": 1}]}, "g/1", "m:1"))

        assert exported.filename.startswith("export_g_1_m_1_")
        assert exported.filename.endswith(".csv")
        assert exported.path.read_text(encoding="utf-8") == "a\n1\n"
        assert exported.url == f"https://bot.test/exports/{exported.filename}"
        assert exported.view_url == f"https://bot.test/exports/view/{exported.filename}"

    def test_export_without_message_id(self, tmp_path):
        exporter = CsvExporter(tmp_path, "https://bot.test")
        exported = asyncio.run(exporter.export({"a": 1}, "g1"))
        assert exported.filename.startswith("export_g1_2")

    def test_missing_base_url(self, tmp_path):
        exporter = CsvExporter(tmp_path, "")
        with pytest.raises(ExportError):
            asyncio.run(exporter.export({"a": 1}, "g1"))
        assert list(tmp_path.iterdir()) == []

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        exporter = CsvExporter(blocker / "exports", "https://bot.test")
        with pytest.raises(ExportError):
            asyncio.run(exporter.export({"a": 1}, "g1"))

    def test_cleanup_keeps_newest(self, tmp_path):
        exporter = CsvExporter(tmp_path, "https://bot.test", keep_count=2)
        for i in range(4):
            path = tmp_path / f"export_{i}.csv"
            path.write_text("a\n")
            os.utime(path, (1000 + i, 1000 + i))

        assert exporter.cleanup_old_files() == 2
        assert sorted(p.name for p in tmp_path.iterdir()) == ["export_2.csv", "export_3.csv"]

    def test_cleanup_skips_vanished_files(self, tmp_path):
        """A file listed but gone before stat is skipped."""
        exporter = CsvExporter(tmp_path, "https://bot.test", keep_count=1)
        (tmp_path / "gone.csv").symlink_to(tmp_path / "missing-target.csv")
        for i in range(2):
            path = tmp_path / f"export_{i}.csv"
            path.write_text("a\n")
            os.utime(path, (1000 + i, 1000 + i))

        assert exporter.cleanup_old_files() == 1
        assert (tmp_path / "export_1.csv").exists()
        assert not (tmp_path / "export_0.csv").exists()

    def test_cleanup_missing_directory(self, tmp_path):
        assert CsvExporter(tmp_path / "none", "https://bot.test").cleanup_old_files() == 0

    def test_resolve_rejects_traversal(self, tmp_path):
        exports = tmp_path / "exports"
        exports.mkdir()
        (tmp_path / "secret.csv").write_text("x")
        (exports / "ok.csv").write_text("x")
        exporter = CsvExporter(exports, "https://bot.test")

        assert exporter.resolve("ok.csv") == (exports / "ok.csv").resolve()
        assert exporter.resolve("../secret.csv") is None
        assert exporter.resolve("missing.csv") is None


def test_safe_filename_part():
    assert safe_filename_part("a b/c") == "a_b_c"
    assert safe_filename_part("///") == "unknown"
