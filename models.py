from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class BlockKind(str, Enum):
    HEADER = "header"
    SUBSECTION = "subsection"
    BULLET = "bullet"
    TEXT = "text"


class OutputKind(str, Enum):
    TITLE = "title"
    HEADING = "heading"
    SUBHEADING = "subheading"
    PARAGRAPH = "paragraph"
    BULLET_ITEM = "bulletItem"
    SKILLS_GRID = "skillsGrid"


def _as_number(value: Any) -> float:
    """Coerce a possibly missing coordinate/size to float, 0 when unusable."""
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class PositionedFragment:
    """One text run from the PDF text layer (baseline origin, y grows upward)."""
    text: str
    x: float = 0.0
    y: float = 0.0
    font_size: float = 0.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "PositionedFragment":
        text = raw.get("text")
        return cls(
            text=text if isinstance(text, str) else "",
            x=_as_number(raw.get("x")),
            y=_as_number(raw.get("y")),
            font_size=_as_number(raw.get("font_size", raw.get("fontSize"))),
        )


@dataclass
class Line:
    text: str
    x: float
    y: float
    font_size: float
    fragments: List[PositionedFragment] = field(default_factory=list, repr=False)


@dataclass
class ContentBlock:
    kind: BlockKind
    content: str
    # provenance, only used for merging and debug output
    font_size: Optional[float] = None
    page_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "content": self.content,
            "font_size": self.font_size,
            "page_number": self.page_number,
        }


@dataclass
class ContactInfo:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None

    def parts(self) -> List[str]:
        """Non-empty email / phone / location in display order."""
        return [p for p in (self.email, self.phone, self.location) if p]

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


@dataclass
class SkillSet:
    matches: List[str] = field(default_factory=list)


@dataclass
class OutputBlock:
    kind: OutputKind
    text: Optional[str] = None
    items: Optional[List[str]] = None
    per_row: int = 3
    # "contact" marks the synthesized contact line under the title
    role: Optional[str] = None

    @property
    def rows(self) -> List[List[str]]:
        items = self.items or []
        step = max(1, self.per_row)
        return [items[i:i + step] for i in range(0, len(items), step)]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value}
        if self.text is not None:
            out["text"] = self.text
        if self.items is not None:
            out["items"] = list(self.items)
            out["rows"] = self.rows
        if self.role:
            out["role"] = self.role
        return out
