import fitz  # PyMuPDF
import pytest


def make_pdf(lines, encrypt=False):
    """
    Build a one-page PDF in memory.

    lines: (text, x, y_from_top, font_size) tuples, positioned at the baseline.
    """
    doc = fitz.open()
    page = doc.new_page()
    for text, x, y, size in lines:
        page.insert_text((x, y), text, fontsize=size, fontname="helv")
    if encrypt:
        data = doc.tobytes(
            encryption=fitz.PDF_ENCRYPT_AES_256,
            owner_pw="owner",
            user_pw="user",
        )
    else:
        data = doc.tobytes()
    doc.close()
    return data


RESUME_LINES = [
    ("Jane Doe", 50, 60, 20),
    ("jane@doe.dev | (512) 555-0199 | Austin, TX", 50, 85, 10),
    ("PROFESSIONAL EXPERIENCE", 50, 120, 14),
    ("Software Engineer, Jan 2020 - Present", 50, 140, 11),
    ("- Led migration of 12 services to Kubernetes", 50, 160, 10),
    ("TECHNICAL SKILLS", 50, 200, 14),
    ("Python, Docker, AWS, React.js", 50, 220, 10),
]


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def resume_pdf():
    return make_pdf(RESUME_LINES)
