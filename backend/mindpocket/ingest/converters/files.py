"""Format-aware conversion of uploaded file buffers into Markdown."""
from __future__ import annotations

import csv
import io
import json
import logging
import wave
import zipfile
from pathlib import PurePosixPath
from typing import Callable, Iterable, Sequence

from bs4 import BeautifulSoup

from ..errors import UnsupportedFormatError
from ..types import ConversionResult
from .html import html_to_markdown
from .text import clean_markdown

logger = logging.getLogger(__name__)

FileConverter = Callable[[bytes], "ConversionResult | None"]

MAX_ARCHIVE_MEMBERS = 50


def convert_buffer(data: bytes, file_extension: str) -> ConversionResult | None:
    """Convert ``data`` according to ``file_extension`` (``".pdf"`` etc.)."""

    extension = file_extension.lower()
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    converter = _CONVERTERS.get(extension)
    if converter is None:
        raise UnsupportedFormatError(f"Unsupported file type: {extension or '<none>'}")
    result = converter(data)
    if result is None or result.is_empty:
        return None
    return result


def _convert_pdf(data: bytes) -> ConversionResult | None:
    title: str | None = None
    try:
        import fitz  # type: ignore

        with fitz.open(stream=data, filetype="pdf") as doc:
            title = ((doc.metadata or {}).get("title") or "").strip() or None
            pages = [page.get_text("text") for page in doc]
        text = "\n\n".join(page.strip() for page in pages if page.strip())
        if text:
            return ConversionResult(title=title, markdown=clean_markdown(text))
    except Exception as exc:
        logger.warning("PyMuPDF parsing failed, falling back to pdfminer: %s", exc)

    from pdfminer.high_level import extract_text_to_fp

    output = io.StringIO()
    extract_text_to_fp(io.BytesIO(data), output)
    return ConversionResult(title=title, markdown=clean_markdown(output.getvalue()))


def _convert_docx(data: bytes) -> ConversionResult | None:
    import docx2txt

    text = docx2txt.process(io.BytesIO(data))
    return ConversionResult(title=None, markdown=clean_markdown(text or ""))


def _convert_xlsx(data: bytes) -> ConversionResult | None:
    import openpyxl

    workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    sections: list[str] = []
    try:
        for sheet_name in workbook.sheetnames:
            rows = [
                ["" if value is None else str(value) for value in row]
                for row in workbook[sheet_name].iter_rows(values_only=True)
            ]
            table = _markdown_table(rows)
            if table:
                sections.append(f"## {sheet_name}\n\n{table}")
    finally:
        workbook.close()
    return ConversionResult(title=None, markdown="\n\n".join(sections))


def _convert_csv(data: bytes) -> ConversionResult | None:
    reader = csv.reader(io.StringIO(_decode_text(data), newline=""))
    return ConversionResult(title=None, markdown=_markdown_table(list(reader)))


def _convert_html(data: bytes) -> ConversionResult | None:
    return html_to_markdown(data)


def _convert_xml(data: bytes) -> ConversionResult | None:
    soup = BeautifulSoup(data, "html.parser")
    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else None
    text = soup.get_text(separator="\n")
    return ConversionResult(title=title or None, markdown=clean_markdown(text))


def _convert_text(data: bytes) -> ConversionResult | None:
    text = _decode_text(data)
    return ConversionResult(title=_first_heading(text), markdown=clean_markdown(text))


def _convert_notebook(data: bytes) -> ConversionResult | None:
    notebook = json.loads(_decode_text(data))
    language = (
        notebook.get("metadata", {}).get("kernelspec", {}).get("language")
        or notebook.get("metadata", {}).get("language_info", {}).get("name")
        or "python"
    )
    blocks: list[str] = []
    for cell in notebook.get("cells", []):
        source = cell.get("source", "")
        if isinstance(source, list):
            source = "".join(source)
        source = source.strip()
        if not source:
            continue
        if cell.get("cell_type") == "markdown":
            blocks.append(source)
        elif cell.get("cell_type") == "code":
            blocks.append(f"```{language}\n{source}\n```")
        else:
            blocks.append(source)
    markdown = "\n\n".join(blocks)
    return ConversionResult(title=_first_heading(markdown), markdown=markdown)


def _convert_image(data: bytes) -> ConversionResult | None:
    from PIL import ExifTags, Image

    with Image.open(io.BytesIO(data)) as image:
        lines = [
            "# Image",
            "",
            f"- Format: {image.format}",
            f"- Dimensions: {image.width}x{image.height}",
            f"- Mode: {image.mode}",
        ]
        exif = image.getexif()
        for tag_id, value in exif.items():
            tag = ExifTags.TAGS.get(tag_id)
            if tag in {"DateTime", "Make", "Model", "Software", "Artist", "ImageDescription"}:
                lines.append(f"- {tag}: {value}")
    return ConversionResult(title=None, markdown="\n".join(lines))


def _convert_wav(data: bytes) -> ConversionResult | None:
    with wave.open(io.BytesIO(data)) as audio:
        frames = audio.getnframes()
        rate = audio.getframerate()
        channels = audio.getnchannels()
    duration = frames / float(rate) if rate else 0.0
    markdown = "\n".join(
        [
            "# Audio",
            "",
            f"- Channels: {channels}",
            f"- Sample rate: {rate} Hz",
            f"- Duration: {duration:.1f} s",
        ]
    )
    return ConversionResult(title=None, markdown=markdown)


def _convert_zip(data: bytes) -> ConversionResult | None:
    sections: list[str] = []
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        members = [info for info in archive.infolist() if not info.is_dir()][:MAX_ARCHIVE_MEMBERS]
        for info in members:
            extension = PurePosixPath(info.filename).suffix.lower()
            converter = _CONVERTERS.get(extension)
            if converter is None or converter is _convert_zip:
                logger.debug("Skipping archive member %s", info.filename)
                continue
            try:
                result = converter(archive.read(info))
            except Exception as exc:
                logger.warning("Failed to convert archive member %s: %s", info.filename, exc)
                continue
            if result is not None and not result.is_empty:
                sections.append(f"## {info.filename}\n\n{result.markdown}")
    return ConversionResult(title=None, markdown="\n\n".join(sections))


def _markdown_table(rows: Sequence[Sequence[str]]) -> str:
    rows = [row for row in rows if any(cell.strip() for cell in row)]
    if not rows:
        return ""
    width = max(len(row) for row in rows)

    def _line(cells: Iterable[str]) -> str:
        escaped = [cell.replace("|", "\\|").replace("\n", " ").strip() for cell in cells]
        return "| " + " | ".join(escaped) + " |"

    padded = [list(row) + [""] * (width - len(row)) for row in rows]
    header, body = padded[0], padded[1:]
    lines = [_line(header), "| " + " | ".join(["---"] * width) + " |"]
    lines.extend(_line(row) for row in body)
    return "\n".join(lines)


def _first_heading(markdown: str) -> str | None:
    for line in markdown.splitlines():
        stripped = line.strip()
        if stripped.startswith("# "):
            return stripped[2:].strip() or None
    return None


def _decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1", errors="replace")


_CONVERTERS: dict[str, FileConverter] = {
    ".pdf": _convert_pdf,
    ".docx": _convert_docx,
    ".xlsx": _convert_xlsx,
    ".csv": _convert_csv,
    ".html": _convert_html,
    ".htm": _convert_html,
    ".xml": _convert_xml,
    ".md": _convert_text,
    ".markdown": _convert_text,
    ".txt": _convert_text,
    ".ipynb": _convert_notebook,
    ".jpg": _convert_image,
    ".jpeg": _convert_image,
    ".png": _convert_image,
    ".gif": _convert_image,
    ".webp": _convert_image,
    ".wav": _convert_wav,
    ".zip": _convert_zip,
}
