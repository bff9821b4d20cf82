"""
Exports API

Serves CSV exports by filename and renders an HTML preview of them.
Only files directly inside the exports directory are reachable.
"""

import csv
import html

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, HTMLResponse

from gmf_bot.api import get_services
from gmf_bot.bot import BotServices

router = APIRouter(prefix="/exports", tags=["exports"])

PREVIEW_TEMPLATE = """<!DOCTYPE html>
<html lang="vi">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
<style>
body {{ font-family: -apple-system, Segoe UI, Roboto, sans-serif; margin: 16px; }}
table {{ border-collapse: collapse; width: 100%; }}
th, td {{ border: 1px solid #ddd; padding: 6px 8px; text-align: left; vertical-align: top; }}
th {{ background: #f3f4f6; }}
tr:nth-child(even) td {{ background: #fafafa; }}
</style>
</head>
<body>
<h3>{title}</h3>
<p><a href="{download_url}">Tải file CSV</a></p>
<table>
<thead><tr>{header}</tr></thead>
<tbody>
{body}
</tbody>
</table>
</body>
</html>
"""


def render_preview(filename: str, rows: list[list[str]], download_url: str) -> str:
    """HTML table for parsed CSV rows; the first row is the header."""
    header_row, data_rows = (rows[0], rows[1:]) if rows else ([], [])
    header = "".join(f"<th>{html.escape(cell)}</th>" for cell in header_row)
    body = "\n".join(
        "<tr>" + "".join(f"<td>{html.escape(cell)}</td>" for cell in row) + "</tr>"
        for row in data_rows
    )
    return PREVIEW_TEMPLATE.format(
        title=html.escape(filename),
        download_url=html.escape(download_url, quote=True),
        header=header,
        body=body,
    )


@router.get("/view/{filename}", response_class=HTMLResponse)
async def view_export(filename: str, services: BotServices = Depends(get_services)):
    """Preview an export as an HTML table."""
    exporter = services.exporter
    path = exporter.resolve(filename)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")

    with path.open(encoding="utf-8", newline="") as f:
        rows = list(csv.reader(f))

    return HTMLResponse(render_preview(path.name, rows, exporter.file_url(path.name)))


@router.get("/{filename}")
async def download_export(filename: str, services: BotServices = Depends(get_services)):
    path = services.exporter.resolve(filename)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(path, media_type="text/csv; charset=utf-8", filename=path.name)
