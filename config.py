# config.py
import os
from dataclasses import dataclass, replace
from typing import List, Tuple

from dotenv import load_dotenv

load_dotenv()

# --- Service settings ---
# Override via environment variables (or a .env file):
#   MAX_UPLOAD_MB=15
#   MIN_TEXT_LENGTH=10
#   URL_FETCH_TIMEOUT=20
#   CORS_ALLOW_ORIGINS=http://localhost:3000,http://localhost:5173
#   SOFFICE_BIN=soffice
#   EXTRA_SECTION_KEYWORDS=FORMATION,EXPÉRIENCE
#   EXTRA_SKILLS=Go,Rust
SERVICE_NAME = "resume-pdf-structurer"
SERVICE_VERSION = "0.1.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

MAX_UPLOAD_BYTES = int(float(os.getenv("MAX_UPLOAD_MB", "15")) * 1024 * 1024)
MIN_PDF_BYTES = 100
MIN_TEXT_LENGTH = int(os.getenv("MIN_TEXT_LENGTH", "10"))

URL_FETCH_TIMEOUT = float(os.getenv("URL_FETCH_TIMEOUT", "20"))
SOFFICE_BIN = os.getenv("SOFFICE_BIN", "soffice")

DOCX_TITLE = os.getenv("DOCX_TITLE", "Converted Resume")
DOCX_CREATOR = os.getenv("DOCX_CREATOR", "AI Job Search Agent")
DOCX_DESCRIPTION = os.getenv(
    "DOCX_DESCRIPTION",
    "Resume converted from PDF format with enhanced formatting",
)


def _split_env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [p.strip() for p in raw.split(",") if p.strip()]


CORS_ALLOW_ORIGINS = _split_env_list("CORS_ALLOW_ORIGINS") or ["*"]


# --- Structuring heuristics ---
SECTION_KEYWORDS: Tuple[str, ...] = (
    "PROFESSIONAL SUMMARY", "TECHNICAL SKILLS", "CORE COMPETENCIES",
    "PROFESSIONAL EXPERIENCE", "EDUCATION", "KEY PROJECTS",
    "CERTIFICATIONS", "AWARDS", "RECOGNITION", "CONTACT INFORMATION",
    "PERSONAL DETAILS", "OBJECTIVE", "SUMMARY", "EXPERIENCE",
    "SKILLS", "PROJECTS",
)

SKILL_VOCABULARY: Tuple[str, ...] = (
    "SQL", "Pandas", "OpenCV", "TensorFlow", "React.js", "Flask",
    "YOLOv8", "NumPy", "Statistics and Probability", "AQICN API",
    "OpenWeather API", "Python", "MySQL", "Streamlit", "Scikit-Learn",
    "JavaScript", "TypeScript", "Node.js", "Express", "MongoDB",
    "PostgreSQL", "Docker", "Kubernetes", "AWS", "Azure", "GCP",
    "HTML", "CSS", "Git", "Linux", "Windows", "MacOS",
)


@dataclass(frozen=True)
class StructureOptions:
    """
    Tunables for line grouping, classification and rendering.

    Coordinates are PDF points with y growing upward (top of page = larger y).
    """
    section_keywords: Tuple[str, ...] = SECTION_KEYWORDS
    skill_vocabulary: Tuple[str, ...] = SKILL_VOCABULARY
    skills_trigger: str = "SKILLS"
    same_row_tolerance: float = 5.0
    bullet_indent: float = 50.0
    header_body_indent: float = 100.0
    header_font_size: float = 12.0
    short_header_length: int = 50
    merge_header_like_length: int = 20
    # Text blocks whose sizes differ by this much stay apart;
    # float("inf") turns the size check off
    merge_font_size_tolerance: float = 0.5
    name_search_window: int = 5
    skills_per_row: int = 3
    contact_separator: str = " • "

    def extended(self, keywords=(), skills=()) -> "StructureOptions":
        """Copy with extra vocabulary appended (existing order kept, no dupes)."""
        kw = tuple(self.section_keywords) + tuple(
            k for k in keywords if k not in self.section_keywords
        )
        sk = tuple(self.skill_vocabulary) + tuple(
            s for s in skills if s not in self.skill_vocabulary
        )
        return replace(self, section_keywords=kw, skill_vocabulary=sk)


DEFAULT_OPTIONS = StructureOptions()


def load_structure_options() -> StructureOptions:
    """Defaults plus EXTRA_SECTION_KEYWORDS / EXTRA_SKILLS from the environment."""
    return DEFAULT_OPTIONS.extended(
        keywords=[k.upper() for k in _split_env_list("EXTRA_SECTION_KEYWORDS")],
        skills=_split_env_list("EXTRA_SKILLS"),
    )
