"""
scribeflow.export.formatter - Transcript documents in TXT, HTML and DOCX.

Each export picks a content type (full transcript, summary or key points)
and a file format. HTML is rendered from a Jinja2 template; DOCX is built
with python-docx.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable

from docx import Document
from docx.shared import Pt, RGBColor
from jinja2 import Environment, FileSystemLoader, select_autoescape

from scribeflow.exceptions import ExportError
from scribeflow.export.content import full_text, generate_key_points, generate_summary
from scribeflow.io import write_text
from scribeflow.models import TranscriptSegment

logger = logging.getLogger(__name__)

EXPORT_TYPES = ("full", "summary", "keypoints")
EXPORT_FORMATS = ("txt", "html", "docx")

# type -> (filename suffix, title suffix, tag)
_TYPE_LABELS = {
    "full": ("full_transcript", "Full Transcript", None),
    "summary": ("summary", "Summary", "SUMMARY"),
    "keypoints": ("key_points", "Key Points", "KEY POINTS"),
}


@dataclass
class ExportResult:
    type: str
    format: str
    filename: str
    success: bool
    error: str | None = None


@dataclass
class ExportDocument:
    title: str
    tag: str | None
    text: str = ""
    points: list[str] | None = None

    @property
    def paragraphs(self) -> list[str]:
        return [p.strip() for p in self.text.split("\n") if p.strip()]


def build_document(segments: list[TranscriptSegment], export_type: str, base_name: str) -> ExportDocument:
    """Select and label the content for one export type.

    Raises:
        ExportError: If export_type is unknown
    """
    if export_type not in _TYPE_LABELS:
        raise ExportError(f"Invalid export type: {export_type} (expected one of {EXPORT_TYPES})")
    _, label, tag = _TYPE_LABELS[export_type]
    title = f"{base_name} - {label}"
    if export_type == "keypoints":
        return ExportDocument(title=title, tag=tag, points=generate_key_points(segments))
    if export_type == "summary":
        return ExportDocument(title=title, tag=tag, text=generate_summary(segments))
    return ExportDocument(title=title, tag=tag, text=full_text(segments))


def export_filename(base_name: str, export_type: str, fmt: str) -> str:
    suffix = _TYPE_LABELS[export_type][0]
    return f"{base_name}_{suffix}.{fmt}"


def render_txt(document: ExportDocument) -> str:
    if document.points is not None:
        return "\n\n".join(f"{i}. {point}" for i, point in enumerate(document.points, start=1))
    return document.text


class HtmlRenderer:
    """Jinja2-based HTML export renderer."""

    def __init__(self, template_dir: Path | None = None):
        if template_dir is None:
            template_dir = Path(__file__).parent / "templates"

        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def render(self, document: ExportDocument, template_name: str = "document.html") -> str:
        template = self.env.get_template(template_name)
        return template.render(
            title=document.title,
            tag=document.tag,
            points=document.points,
            paragraphs=document.paragraphs,
            generated_at=datetime.now().strftime("%Y-%m-%d at %H:%M:%S"),
        )


def write_docx(document: ExportDocument, output_path: Path) -> Path:
    """Build a Word document with a title, tag, body and generation footer."""
    doc = Document()
    doc.add_heading(document.title, level=0)
    if document.tag:
        run = doc.add_paragraph().add_run(document.tag)
        run.bold = True
        run.font.size = Pt(10)
        run.font.color.rgb = RGBColor(0x0E, 0xA5, 0xE9)

    if document.points is not None:
        for point in document.points:
            doc.add_paragraph(point, style="List Bullet")
    else:
        for paragraph in document.paragraphs:
            doc.add_paragraph(paragraph)

    footer = doc.add_paragraph().add_run(
        f"Generated on {datetime.now().strftime('%Y-%m-%d at %H:%M:%S')}"
    )
    footer.italic = True
    footer.font.size = Pt(9)
    footer.font.color.rgb = RGBColor(0x6B, 0x72, 0x80)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    doc.save(str(output_path))
    return output_path


def export_transcript(
    segments: Iterable[TranscriptSegment],
    export_type: str,
    fmt: str,
    base_name: str,
    output_dir: Path,
) -> str:
    """Write one export file and return its file name.

    Raises:
        ExportError: Empty transcript, unknown type or format, or a write failure
    """
    segments = list(segments)
    if not segments:
        raise ExportError("No transcription data available for export.")
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise ExportError(f"Invalid file format: {fmt} (expected one of {EXPORT_FORMATS})")

    document = build_document(segments, export_type, base_name)
    filename = export_filename(base_name, export_type, fmt)
    output_path = Path(output_dir) / filename

    try:
        if fmt == "txt":
            write_text(output_path, render_txt(document))
        elif fmt == "html":
            write_text(output_path, HtmlRenderer().render(document))
        else:
            write_docx(document, output_path)
    except ExportError:
        raise
    except Exception as e:
        raise ExportError(f"Failed to create {fmt.upper()} file: {e}") from e

    logger.info("Exported %s", output_path)
    return filename


def export_all(
    segments: Iterable[TranscriptSegment],
    export_types: Iterable[str],
    fmt: str,
    base_name: str,
    output_dir: Path,
) -> list[ExportResult]:
    """Export several content types; one failure never stops the others."""
    segments = list(segments)
    results = []
    for export_type in export_types:
        try:
            filename = export_transcript(segments, export_type, fmt, base_name, output_dir)
            results.append(ExportResult(export_type, fmt, filename, success=True))
        except ExportError as e:
            logger.warning("Export failed for %s: %s", export_type, e)
            suffix = _TYPE_LABELS.get(export_type, (export_type,))[0]
            results.append(
                ExportResult(export_type, fmt, f"{base_name}_{suffix}.{fmt}", success=False, error=str(e))
            )
    return results
