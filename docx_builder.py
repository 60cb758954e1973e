import logging
import os
import re
import subprocess
import tempfile
from dataclasses import dataclass
from io import BytesIO
from typing import Any, List, Optional, Sequence

from docx import Document
from docx.shared import Inches, Pt, RGBColor
from docx.text.paragraph import Paragraph as DocxParagraph

import config
from models import ContactInfo, OutputBlock, OutputKind

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

HEADING_COLOR = "2563EB"
SUBHEADING_COLOR = "374151"
CONTACT_COLOR = "666666"


@dataclass
class DocxOptions:
    title: str = config.DOCX_TITLE
    creator: str = config.DOCX_CREATOR
    description: str = config.DOCX_DESCRIPTION

    def validate(self) -> None:
        if self.title and len(self.title) > 255:
            raise ValueError("Title is too long (max 255 characters)")
        if self.creator and len(self.creator) > 255:
            raise ValueError("Creator name is too long (max 255 characters)")


# ===================== BASIC DOCX HELPERS =====================

def _sanitize_xml_text(value: Any) -> Any:
    """
    Remove control characters that are invalid in XML/docx.
    """
    if not isinstance(value, str):
        return value

    out_chars = []
    for ch in value:
        code = ord(ch)
        # Allow tab, newline, carriage-return, and anything >= 0x20
        if code < 0x20 and ch not in ("\t", "\n", "\r"):
            continue
        out_chars.append(ch)

    return "".join(out_chars)


def _add_run(
    para: DocxParagraph,
    text: str,
    size: float = 11,
    bold: bool = False,
    color: Optional[str] = None,
    all_caps: bool = False,
):
    run = para.add_run(_sanitize_xml_text(text))
    run.bold = bold
    run.font.size = Pt(size)
    if color:
        run.font.color.rgb = RGBColor.from_string(color)
    if all_caps:
        run.font.all_caps = True
    return run


def _spacing(para: DocxParagraph, before: float = 0, after: float = 0) -> None:
    pf = para.paragraph_format
    pf.space_before = Pt(before)
    pf.space_after = Pt(after)


def _apply_base_style(doc) -> None:
    # Standard 1-inch margins
    for sec in doc.sections:
        sec.top_margin = Inches(1)
        sec.bottom_margin = Inches(1)
        sec.left_margin = Inches(1)
        sec.right_margin = Inches(1)

    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(11)
    style.paragraph_format.space_before = Pt(0)
    style.paragraph_format.space_after = Pt(6)
    style.paragraph_format.line_spacing = 1.15


# ===================== OUTPUT BLOCKS -> DOCX =====================

def _write_block(doc, block: OutputBlock) -> None:
    text = block.text or ""

    if block.kind is OutputKind.TITLE:
        p = doc.add_paragraph()
        _add_run(p, text, size=18, bold=True)
        _spacing(p, after=7.5)

    elif block.kind is OutputKind.HEADING:
        p = doc.add_paragraph(style="Heading 2")
        _add_run(p, text, size=14, bold=True, color=HEADING_COLOR, all_caps=True)
        _spacing(p, before=20, after=10)

    elif block.kind is OutputKind.SUBHEADING:
        p = doc.add_paragraph()
        _add_run(p, text, size=12, bold=True, color=SUBHEADING_COLOR)
        _spacing(p, before=10, after=5)

    elif block.kind is OutputKind.BULLET_ITEM:
        p = doc.add_paragraph()
        _add_run(p, f"• {text}")
        p.paragraph_format.left_indent = Inches(0.25)
        _spacing(p, after=5)

    elif block.kind is OutputKind.SKILLS_GRID:
        # one paragraph per row: "Python • Docker • AWS"
        for row in block.rows:
            p = doc.add_paragraph()
            for idx, skill in enumerate(row):
                sep = " • " if idx < len(row) - 1 else ""
                _add_run(p, skill + sep)
            _spacing(p, after=5)

    elif block.role == "contact":
        p = doc.add_paragraph()
        _add_run(p, text, color=CONTACT_COLOR)
        _spacing(p, after=15)

    else:
        p = doc.add_paragraph()
        _add_run(p, text)
        _spacing(p, after=6)


def build_docx(
    blocks: Sequence[OutputBlock],
    options: Optional[DocxOptions] = None,
) -> bytes:
    """
    Lay out rendered output blocks as a single-column resume DOCX:

      - name large and bold, gray contact line under it
      - blue all-caps section headings (Heading 2 style so Word's outline works)
      - bold subheadings, indented '•' bullet items
      - skills grid as rows of ' • '-separated skills
    """
    options = options or DocxOptions()
    options.validate()

    doc = Document()
    _apply_base_style(doc)

    props = doc.core_properties
    props.title = _sanitize_xml_text(options.title or "")
    props.author = _sanitize_xml_text(options.creator or "")
    props.comments = _sanitize_xml_text(options.description or "")

    for block in blocks:
        _write_block(doc, block)

    out_buf = BytesIO()
    doc.save(out_buf)
    logger.debug("Wrote DOCX with %d output blocks", len(blocks))
    return out_buf.getvalue()


def docx_paragraph_texts(data: bytes) -> List[str]:
    """Non-empty paragraph texts of a DOCX, for previews and checks."""
    doc = Document(BytesIO(data))
    return [p.text.strip() for p in doc.paragraphs if p.text.strip()]


# ===================== FILENAMES =====================

def _to_pascal_case(s: str) -> str:
    parts = re.split(r"[^A-Za-z0-9]+", s)
    return "".join(p.capitalize() for p in parts if p)


def build_filename(contact: Optional[ContactInfo], source_name: Optional[str] = None) -> str:
    """
    'Jane Doe' -> 'JaneDoe_Resume.docx'; without a name fall back to the
    uploaded file's stem ('my cv.pdf' -> 'MyCv.docx'), then 'converted.docx'.
    """
    if contact is not None and contact.name:
        slug = _to_pascal_case(contact.name)
        if slug:
            return f"{slug}_Resume.docx"

    if source_name:
        stem = os.path.splitext(os.path.basename(source_name))[0]
        slug = _to_pascal_case(stem)
        if slug:
            return f"{slug}.docx"

    return "converted.docx"


def rename_docx_to_pdf(filename: str) -> str:
    """
    Turn "Something.docx" into "Something.pdf" while preserving
    the base name if the extension is missing or different.
    """
    if not isinstance(filename, str) or not filename:
        return "output.pdf"

    lower = filename.lower()
    if lower.endswith(".docx"):
        return filename[:-5] + ".pdf"
    if lower.endswith(".doc"):
        return filename[:-4] + ".pdf"
    return filename + ".pdf"


# ===================== PDF PREVIEW =====================

def convert_docx_to_pdf_bytes(docx_bytes: bytes) -> bytes:
    """
    Take DOCX bytes, call LibreOffice (soffice) in headless mode,
    and return the resulting PDF as bytes.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        input_path = os.path.join(tmpdir, "input.docx")
        output_path = os.path.join(tmpdir, "input.pdf")

        with open(input_path, "wb") as f:
            f.write(docx_bytes)

        cmd = [
            config.SOFFICE_BIN,
            "--headless",
            "--convert-to", "pdf",
            "--outdir", tmpdir,
            input_path,
        ]

        try:
            subprocess.run(
                cmd,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise RuntimeError(f"LibreOffice executable not found: {config.SOFFICE_BIN}") from e
        except subprocess.CalledProcessError as e:
            stderr_text = e.stderr.decode(errors="ignore") if e.stderr else ""
            raise RuntimeError(f"LibreOffice conversion failed: {stderr_text}") from e

        if not os.path.exists(output_path):
            raise RuntimeError("LibreOffice did not produce a PDF file.")

        with open(output_path, "rb") as f:
            return f.read()
