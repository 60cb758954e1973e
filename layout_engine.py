import logging
import re
from dataclasses import replace
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from config import DEFAULT_OPTIONS, StructureOptions
from models import BlockKind, ContentBlock, Line, PositionedFragment

logger = logging.getLogger(__name__)

FragmentLike = Union[PositionedFragment, Mapping]


# ===================== LINE RECONSTRUCTION =====================

def _coerce_fragment(item: FragmentLike) -> PositionedFragment:
    if isinstance(item, PositionedFragment):
        return item
    return PositionedFragment.from_mapping(item)


def _close_line(row: List[PositionedFragment], anchor_y: float) -> Line:
    ordered = sorted(row, key=lambda f: f.x)
    first = ordered[0]
    return Line(
        text=" ".join(f.text.strip() for f in ordered),
        x=first.x,
        y=anchor_y,
        font_size=first.font_size,
        fragments=ordered,
    )


def reconstruct_lines(
    fragments: Iterable[FragmentLike],
    options: StructureOptions = DEFAULT_OPTIONS,
) -> List[Line]:
    """
    Group one page's positioned fragments into visual lines.

    - Fragments with blank text are dropped.
    - Top of page first (descending y); a fragment joins the current row
      while |fragment.y - row.y| < same_row_tolerance, where row.y is the
      topmost fragment of the row.
    - Within a row fragments are ordered left-to-right and joined with
      single spaces; x and font size come from the leftmost fragment.
    """
    items = [_coerce_fragment(f) for f in fragments]
    items = [f for f in items if f.text and f.text.strip()]
    if not items:
        return []

    items.sort(key=lambda f: (-f.y, f.x))
    tolerance = options.same_row_tolerance

    lines: List[Line] = []
    row: List[PositionedFragment] = [items[0]]
    anchor_y = items[0].y
    for frag in items[1:]:
        if abs(frag.y - anchor_y) < tolerance:
            row.append(frag)
            continue
        lines.append(_close_line(row, anchor_y))
        row = [frag]
        anchor_y = frag.y
    lines.append(_close_line(row, anchor_y))

    return lines


# ===================== LINE CLASSIFICATION =====================

BULLET_PREFIX_RE = re.compile(r"^(?:[•●○]|- |– |\d+[.)]\s)")

DATE_OR_MONTH_RE = re.compile(
    r"\d{4}\s*-\s*\d{4}|\d{4}\s*-\s*Present|January|February|March|April|May"
    r"|June|July|August|September|October|November|December",
    re.IGNORECASE,
)

# "Austin, TX" or "Berlin, Germany" as the whole line
LOCATION_LINE_RE = re.compile(r"[A-Z][a-z]+,\s*[A-Z]{2}|[A-Z][a-z]+\s*,\s*[A-Z][a-z]+")


def _is_all_caps(text: str) -> bool:
    return text == text.upper()


def has_bullet_marker(text: str) -> bool:
    return bool(BULLET_PREFIX_RE.match(text))


def clean_bullet_text(text: str) -> str:
    """Strip a leading bullet glyph, dash or list number."""
    text = re.sub(r"^[•●○]\s*", "", text)
    text = re.sub(r"^[-–]\s*", "", text)
    text = re.sub(r"^\d+[.)]\s*", "", text)
    return text.strip()


def _bullet_step(line: Line, prev_is_bullet: bool, options: StructureOptions) -> bool:
    """
    Bullet flag for one line given the flag of the line above it.

    An indented line right under a bullet continues that bullet.
    """
    text = line.text.strip()
    if has_bullet_marker(text):
        return True
    return line.x > options.bullet_indent and prev_is_bullet


def _is_header(
    line: Line,
    next_line: Optional[Line],
    next_is_bullet: bool,
    options: StructureOptions,
) -> bool:
    text = line.text.strip()
    upper = text.upper()

    if any(keyword.upper() in upper for keyword in options.section_keywords):
        return True

    if _is_all_caps(text) and len(text) > 3 and line.font_size > options.header_font_size:
        return True

    # short caps line sitting on top of bullets or an indented body
    if len(text) < options.short_header_length and _is_all_caps(text) and next_line is not None:
        if next_is_bullet or next_line.x > options.header_body_indent:
            return True

    return False


def _is_subsection(text: str) -> bool:
    if DATE_OR_MONTH_RE.search(text):
        return True

    # single-token caps word, usually a company or a tag
    if 3 < len(text) < 60 and _is_all_caps(text) and " " not in text:
        return True

    if LOCATION_LINE_RE.fullmatch(text):
        return True

    return False


def _decide(
    line: Line,
    is_bullet: bool,
    next_line: Optional[Line],
    next_is_bullet: bool,
    options: StructureOptions,
) -> BlockKind:
    if _is_header(line, next_line, next_is_bullet, options):
        return BlockKind.HEADER
    if is_bullet:
        return BlockKind.BULLET
    if _is_subsection(line.text.strip()):
        return BlockKind.SUBSECTION
    return BlockKind.TEXT


def classify_lines(
    lines: Sequence[Line],
    options: StructureOptions = DEFAULT_OPTIONS,
) -> List[BlockKind]:
    """
    Classify every line of one page in a single top-to-bottom pass.

    Bullet flags only look backward (one line of state), header look-ahead
    only reads the next line's bullet flag, so nothing recurses.
    """
    flags: List[bool] = []
    prev = False
    for line in lines:
        prev = _bullet_step(line, prev, options)
        flags.append(prev)

    kinds: List[BlockKind] = []
    last = len(lines) - 1
    for idx, line in enumerate(lines):
        next_line = lines[idx + 1] if idx < last else None
        next_flag = flags[idx + 1] if idx < last else False
        kinds.append(_decide(line, flags[idx], next_line, next_flag, options))
    return kinds


def classify_line(
    line: Line,
    line_index: int,
    all_lines: Sequence[Line],
    options: StructureOptions = DEFAULT_OPTIONS,
) -> BlockKind:
    """Classify a single line using only its own page as context."""
    if not 0 <= line_index < len(all_lines):
        line_index, all_lines = 0, [line]

    prev = False
    for earlier in all_lines[:line_index]:
        prev = _bullet_step(earlier, prev, options)
    own = _bullet_step(line, prev, options)

    next_line = all_lines[line_index + 1] if line_index + 1 < len(all_lines) else None
    next_flag = _bullet_step(next_line, own, options) if next_line is not None else False
    return _decide(line, own, next_line, next_flag, options)


# ===================== SECTION STREAM =====================

def _is_header_like(text: str, options: StructureOptions) -> bool:
    return len(text) < options.merge_header_like_length and _is_all_caps(text)


def _should_merge(
    block: ContentBlock,
    previous: Optional[ContentBlock],
    options: StructureOptions,
) -> bool:
    if previous is None or previous.kind is not BlockKind.TEXT:
        return False
    if _is_header_like(block.content, options):
        return False
    if re.search(r"[.!?]$", previous.content):
        return False
    if block.font_size is not None and previous.font_size is not None:
        if abs(block.font_size - previous.font_size) >= options.merge_font_size_tolerance:
            return False
    return True


def merge_blocks(
    blocks: Sequence[ContentBlock],
    options: StructureOptions = DEFAULT_OPTIONS,
) -> List[ContentBlock]:
    """
    Join Text blocks that continue the paragraph right above them.

    Only Text merges into Text; any other kind resets the paragraph.
    The input list and its blocks are left untouched.
    """
    merged: List[ContentBlock] = []
    for block in blocks:
        previous = merged[-1] if merged else None
        if block.kind is BlockKind.TEXT and _should_merge(block, previous, options):
            merged[-1] = replace(previous, content=f"{previous.content} {block.content}")
        else:
            merged.append(replace(block))
    return merged


def build_blocks(
    pages: Sequence[Sequence[Line]],
    options: StructureOptions = DEFAULT_OPTIONS,
) -> List[ContentBlock]:
    """Classify all pages in document order, then run the paragraph merge pass."""
    blocks: List[ContentBlock] = []
    for page_idx, lines in enumerate(pages):
        kinds = classify_lines(lines, options)
        for line, kind in zip(lines, kinds):
            text = line.text.strip()
            if not text:
                continue
            content = clean_bullet_text(text) if kind is BlockKind.BULLET else text
            blocks.append(ContentBlock(
                kind=kind,
                content=content,
                font_size=line.font_size,
                page_number=page_idx + 1,
            ))

    merged = merge_blocks(blocks, options)
    logger.debug("Built %d blocks (%d before merge) from %d pages", len(merged), len(blocks), len(pages))
    return merged
