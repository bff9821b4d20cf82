"""
CSV export of analyzed messages.

Column layout:
- payload with a non-empty "items" list: sorted union of all item keys,
  one row per item
- anything else: two columns, Field / Value, one row per top-level key

Files land in a public directory and are addressed by filename.
"""

import asyncio
import csv
import io
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..errors import ExportError

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


@dataclass
class ExportedFile:
    path: Path
    url: str
    view_url: str

    @property
    def filename(self) -> str:
        return self.path.name


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _field_value(value: Any) -> str:
    if isinstance(value, list):
        if value and isinstance(value[0], dict):
            return json.dumps(value, ensure_ascii=False)
        return "; ".join(_cell(v) for v in value)
    return _cell(value)


def build_rows(parsed_data: Any) -> tuple[list[str], list[list[str]]]:
    """Return (headers, rows) for a structured payload."""
    items = parsed_data.get("items") if isinstance(parsed_data, dict) else None
    if isinstance(parsed_data, list):
        items = parsed_data

    if isinstance(items, list) and items:
        records = [item for item in items if isinstance(item, dict)]
        headers = sorted({key for record in records for key in record})
        rows = [[_cell(record.get(header)) for header in headers] for record in records]
        return headers, rows

    if isinstance(parsed_data, dict):
        rows = [
            [key, _field_value(value)]
            for key, value in parsed_data.items()
            if value is not None
        ]
        return ["Field", "Value"], rows

    return ["Value"], [[_cell(parsed_data)]]


def render_csv(parsed_data: Any) -> str:
    """Render a payload to CSV text. Cells with , " or newlines are quoted."""
    headers, rows = build_rows(parsed_data)
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def safe_filename_part(value: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", str(value)).strip("_") or "unknown"


class CsvExporter:
    """
    Writes exports and builds their public URLs.

    USAGE:
        exporter = CsvExporter(Path("data/exports"), "https://bot.example.com")
        exported = await exporter.export(parsed, group_id="g1", message_id="abc")
        exported.url, exported.view_url
    """

    def __init__(self, exports_dir: Path, base_url: str, keep_count: int = 100):
        self.exports_dir = Path(exports_dir)
        self.base_url = base_url.rstrip("/")
        self.keep_count = keep_count

    def file_url(self, filename: str) -> str:
        return f"{self.base_url}/exports/{filename}"

    def view_url(self, filename: str) -> str:
        return f"{self.base_url}/exports/view/{filename}"

    def resolve(self, filename: str) -> Optional[Path]:
        """Path of an existing export, or None if missing or outside the exports dir."""
        if not filename or filename != Path(filename).name:
            return None
        path = (self.exports_dir / filename).resolve()
        if path.parent != self.exports_dir.resolve() or not path.is_file():
            return None
        return path

    async def export(
        self,
        parsed_data: Any,
        group_id: str,
        message_id: Optional[str] = None,
    ) -> ExportedFile:
        """
        Write parsed_data to a new CSV file.

        Raises:
            ExportError: file could not be written or addressed.
        """
        if not self.base_url:
            raise ExportError("No base URL configured for export links")

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        parts = ["export", safe_filename_part(group_id)]
        if message_id:
            parts.append(safe_filename_part(message_id))
        parts.append(timestamp)
        filename = "_".join(parts) + ".csv"

        try:
            content = render_csv(parsed_data)
            path = self.exports_dir / filename
            await asyncio.to_thread(self._write, path, content)
        except OSError as e:
            raise ExportError(f"Could not write export {filename}: {e}") from e

        logger.info(f"CSV file created: {path}")
        return ExportedFile(path=path, url=self.file_url(filename), view_url=self.view_url(filename))

    def _write(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def cleanup_old_files(self, keep_count: Optional[int] = None) -> int:
        """
        Delete all but the newest keep_count CSV files. Returns number deleted.

        Blocking filesystem work; the bot runs it through asyncio.to_thread.
        Files that vanish while listing are skipped.
        """
        keep = self.keep_count if keep_count is None else keep_count
        if not self.exports_dir.exists():
            return 0

        dated = []
        for path in self.exports_dir.glob("*.csv"):
            try:
                dated.append((path.stat().st_mtime, path))
            except OSError as e:
                logger.debug(f"Skipping export {path.name}: {e}")
        dated.sort(key=lambda entry: entry[0], reverse=True)

        deleted = 0
        for _, old in dated[keep:]:
            try:
                old.unlink()
                deleted += 1
            except OSError as e:
                logger.warning(f"Could not delete export {old.name}: {e}")

        if deleted:
            logger.info(f"Deleted {deleted} old CSV exports")
        return deleted
