import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from config import DEFAULT_OPTIONS, StructureOptions
from models import (
    BlockKind,
    ContactInfo,
    ContentBlock,
    Line,
    OutputBlock,
    OutputKind,
    PositionedFragment,
    SkillSet,
)
from docx_builder import DocxOptions, build_docx, build_filename
from layout_engine import build_blocks, reconstruct_lines
from pdf_reader import read_pdf_pages

logger = logging.getLogger(__name__)


# ===================== TEXT CLEANING =====================

_ENTITY_REPLACEMENTS = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)


def _clean_once(text: str) -> str:
    text = text.replace("[object Object]", "")
    for entity, char in _ENTITY_REPLACEMENTS:
        text = text.replace(entity, char)
    return re.sub(r"\s+", " ", text).strip()


def clean_text(text: Optional[str]) -> str:
    """
    Normalize text before it is written out:
      - drop stray '[object Object]' fragments
      - unescape the common HTML entities
      - collapse whitespace and trim

    Repeated until stable, so clean_text(clean_text(s)) == clean_text(s)
    even for nested input like '&amp;lt;'. Every pass only shrinks the string.
    """
    if not text:
        return ""
    current = text
    while True:
        cleaned = _clean_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned


# ===================== CONTACT INFO =====================

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")

PHONE_PATTERNS = (
    re.compile(r"\b\d{10}\b"),
    re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"),
    re.compile(r"\(\d{3}\)\s*\d{3}[-.]?\d{4}\b"),
    re.compile(r"\+\d{1,3}[-.]?\d{3}[-.]?\d{3}[-.]?\d{4}\b"),
)

LOCATION_RE = re.compile(r"\b[A-Z][a-z]+,\s*[A-Z]{2}\b|\b[A-Z][a-z]+,\s*[A-Z][a-z]+\b")


def to_title_case(text: str) -> str:
    """Upper-case the first character of each word, lower-case the rest."""
    return re.sub(r"\w\S*", lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), text)


def _looks_like_name(content: str) -> bool:
    if "@" in content or re.search(r"\d{3,}", content):
        return False
    words = content.split()
    if not 2 <= len(words) <= 4:
        return False
    if not 5 < len(content) < 60:
        return False
    return content == to_title_case(content)


def _first_phone(text: str) -> Optional[str]:
    for pattern in PHONE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def extract_contact(
    blocks: Sequence[ContentBlock],
    options: StructureOptions = DEFAULT_OPTIONS,
) -> ContactInfo:
    """
    Pull name / email / phone / location out of the block stream.

    The name only comes from the first few Text blocks (top of the resume).
    Every other field is first-match-wins over the whole document.
    """
    contact = ContactInfo()

    for block in blocks[:options.name_search_window]:
        if block.kind is not BlockKind.TEXT:
            continue
        content = block.content.strip()
        if _looks_like_name(content):
            contact.name = content
            break

    for block in blocks:
        content = block.content
        if contact.email is None:
            match = EMAIL_RE.search(content)
            if match:
                contact.email = match.group(0)
        if contact.phone is None:
            contact.phone = _first_phone(content)
        if contact.location is None:
            match = LOCATION_RE.search(content)
            if match:
                contact.location = match.group(0)

    return contact


# ===================== SKILLS =====================

def extract_skills(text: str, vocabulary: Sequence[str]) -> SkillSet:
    """Known skills mentioned in text, in vocabulary order, without duplicates."""
    haystack = clean_text(text).lower()
    matches: List[str] = []
    seen = set()
    for skill in vocabulary:
        key = skill.lower()
        if key and key in haystack and key not in seen:
            seen.add(key)
            matches.append(skill)
    return SkillSet(matches=matches)


def _skills_text_after(blocks: Sequence[ContentBlock], header_idx: int) -> str:
    parts: List[str] = []
    for block in blocks[header_idx + 1:]:
        if block.kind is BlockKind.HEADER:
            break
        if block.kind in (BlockKind.TEXT, BlockKind.BULLET):
            parts.append(block.content)
    return " ".join(parts)


# ===================== RENDERING =====================

def render_blocks(
    blocks: Sequence[ContentBlock],
    options: StructureOptions = DEFAULT_OPTIONS,
    contact: Optional[ContactInfo] = None,
) -> List[OutputBlock]:
    """
    Turn classified blocks into format-agnostic output blocks.

    Layout:
      - title (name) first, followed by one contact paragraph; both only
        when a name was found
      - header -> heading, subsection -> subheading
      - bullet -> bulletItem, text -> paragraph
      - under a skills header the Text/Bullet blocks up to the next header
        are replaced by a single skillsGrid of known skills (dropped when
        none are known)
    """
    if contact is None:
        contact = extract_contact(blocks, options)

    out: List[OutputBlock] = []
    if contact.name:
        out.append(OutputBlock(OutputKind.TITLE, text=clean_text(contact.name)))
        parts = [clean_text(p) for p in contact.parts()]
        if parts:
            out.append(OutputBlock(
                OutputKind.PARAGRAPH,
                text=options.contact_separator.join(parts),
                role="contact",
            ))

    in_skills = False
    trigger = options.skills_trigger.upper()

    for idx, block in enumerate(blocks):
        content = clean_text(block.content)

        if block.kind is BlockKind.HEADER:
            in_skills = False
            out.append(OutputBlock(OutputKind.HEADING, text=content))
            if trigger and trigger in content.upper():
                in_skills = True
                skills = extract_skills(_skills_text_after(blocks, idx), options.skill_vocabulary)
                if skills.matches:
                    out.append(OutputBlock(
                        OutputKind.SKILLS_GRID,
                        items=skills.matches,
                        per_row=options.skills_per_row,
                    ))
                else:
                    logger.debug("No known skills under header %r, section body dropped", content)

        elif block.kind is BlockKind.SUBSECTION:
            out.append(OutputBlock(OutputKind.SUBHEADING, text=content))

        elif in_skills:
            continue

        elif block.kind is BlockKind.BULLET:
            out.append(OutputBlock(OutputKind.BULLET_ITEM, text=content))

        else:
            out.append(OutputBlock(OutputKind.PARAGRAPH, text=content))

    return out


# ===================== PIPELINE =====================

@dataclass
class StructuredDocument:
    pages: List[List[Line]]
    blocks: List[ContentBlock]
    contact: ContactInfo
    output: List[OutputBlock]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def text_length(self) -> int:
        return sum(len(b.content) for b in self.blocks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_count": self.page_count,
            "text_length": self.text_length,
            "blocks": [b.to_dict() for b in self.blocks],
            "contact": self.contact.to_dict(),
            "output": [o.to_dict() for o in self.output],
        }


def structure_fragments(
    pages: Sequence[Sequence[PositionedFragment]],
    options: StructureOptions = DEFAULT_OPTIONS,
) -> StructuredDocument:
    """Run the whole pipeline on per-page fragments already pulled from a PDF."""
    lines = [reconstruct_lines(page, options) for page in pages]
    blocks = build_blocks(lines, options)
    contact = extract_contact(blocks, options)
    output = render_blocks(blocks, options, contact=contact)
    logger.info(
        "Structured %d pages into %d blocks / %d output blocks",
        len(lines), len(blocks), len(output),
    )
    return StructuredDocument(pages=lines, blocks=blocks, contact=contact, output=output)


@dataclass
class ConversionResult:
    docx_bytes: bytes
    filename: str
    document: StructuredDocument

    @property
    def page_count(self) -> int:
        return self.document.page_count

    @property
    def text_length(self) -> int:
        return self.document.text_length


def structure_pdf(
    data: bytes,
    options: StructureOptions = DEFAULT_OPTIONS,
) -> StructuredDocument:
    """PDF bytes -> structured document. Raises PDFExtractionError for unusable uploads."""
    return structure_fragments(read_pdf_pages(data), options)


def convert_pdf(
    data: bytes,
    options: StructureOptions = DEFAULT_OPTIONS,
    docx_options: Optional[DocxOptions] = None,
    source_name: Optional[str] = None,
) -> ConversionResult:
    """PDF bytes -> regenerated resume DOCX plus the structure it was built from."""
    document = structure_pdf(data, options)
    docx_bytes = build_docx(document.output, docx_options)
    filename = build_filename(document.contact, source_name)
    logger.info("Converted %s to %s (%d bytes)", source_name or "upload", filename, len(docx_bytes))
    return ConversionResult(docx_bytes=docx_bytes, filename=filename, document=document)
