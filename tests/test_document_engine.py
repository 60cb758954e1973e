import pytest

from config import StructureOptions
from document_engine import (
    clean_text,
    extract_contact,
    extract_skills,
    render_blocks,
    structure_fragments,
    to_title_case,
)
from models import BlockKind, ContactInfo, ContentBlock, OutputKind, PositionedFragment

SCENARIO_SKILLS = ["Python", "Docker", "AWS", "React.js"]


def text(content):
    return ContentBlock(BlockKind.TEXT, content)


def header(content):
    return ContentBlock(BlockKind.HEADER, content)


def bullet(content):
    return ContentBlock(BlockKind.BULLET, content)


def sub(content):
    return ContentBlock(BlockKind.SUBSECTION, content)


# ---------- cleaning ----------

def test_clean_text_unescapes_and_collapses():
    raw = "  Tom &amp; Jerry &lt;3 &quot;cheese&quot; [object Object]   it&#39;s \n fine &gt; ok "
    assert clean_text(raw) == "Tom & Jerry <3 \"cheese\" it's fine > ok"


@pytest.mark.parametrize("raw", [
    "",
    "plain",
    "&amp;lt;b&amp;gt;",
    "&amp;amp;amp;",
    "[object [object Object]Object]",
    "  spaced\t\tout \n text ",
    "a [object Object] b",
])
def test_clean_text_is_idempotent(raw):
    once = clean_text(raw)
    assert clean_text(once) == once


def test_clean_text_handles_none():
    assert clean_text(None) == ""


# ---------- contact ----------

def test_contact_from_name_and_contact_line():
    blocks = [text("John Smith"), text("john@x.com | 555-123-4567 | Austin, TX")]
    contact = extract_contact(blocks)
    assert contact == ContactInfo(
        name="John Smith",
        email="john@x.com",
        phone="555-123-4567",
        location="Austin, TX",
    )


def test_name_only_searched_in_first_five_blocks():
    blocks = [header("SUMMARY"), bullet("one"), bullet("two"), bullet("three"), bullet("four"),
              text("Jane Doe")]
    assert extract_contact(blocks).name is None


def test_name_requires_text_block():
    assert extract_contact([header("Jane Doe")]).name is None
    assert extract_contact([sub("Jane Doe")]).name is None


@pytest.mark.parametrize("candidate", [
    "jane doe",                  # not title case
    "Jane",                      # one word
    "Dr Jane Alice Doe Smith",   # five words
    "Jane Doe 12345",            # digits
    "Jane@Doe Dev",              # email-ish
])
def test_name_shape_rules(candidate):
    assert extract_contact([text(candidate)]).name is None


def test_name_picks_first_matching_block():
    blocks = [text("Mary Ann Lee"), text("John Smith")]
    assert extract_contact(blocks).name == "Mary Ann Lee"


def test_phone_patterns_in_fixed_order():
    assert extract_contact([text("call 5125550199 now")]).phone == "5125550199"
    assert extract_contact([text("Call (512) 555-0199")]).phone == "(512) 555-0199"
    # the dashed pattern is tried before the international one
    assert extract_contact([text("+1-512-555-0199")]).phone == "512-555-0199"


def test_fields_are_first_match_and_independent():
    blocks = [
        text("Mobile 512.555.0199"),
        text("first@a.io second@b.io"),
        text("Paris, France then Austin, TX"),
        text("other@c.io 999-999-9999"),
    ]
    contact = extract_contact(blocks)
    assert contact.email == "first@a.io"
    assert contact.phone == "512.555.0199"
    assert contact.location == "Paris, France"
    assert contact.name is None


def test_empty_blocks_give_empty_contact():
    assert extract_contact([]) == ContactInfo()


def test_to_title_case():
    assert to_title_case("jOHN o'neil") == "John O'neil"
    assert to_title_case("McDonald") == "Mcdonald"


# ---------- skills ----------

def test_skills_follow_vocabulary_order():
    assert extract_skills("Python, Docker, AWS, React.js", SCENARIO_SKILLS).matches == SCENARIO_SKILLS
    assert extract_skills("AWS then Python", ["Python", "AWS"]).matches == ["Python", "AWS"]


def test_skills_deduplicate_case_insensitively():
    skills = extract_skills("python PYTHON Python", ["Python", "python", "Go"])
    assert skills.matches == ["Python"]


def test_skills_with_default_vocabulary():
    skills = extract_skills("Python, Docker, AWS, React.js", StructureOptions().skill_vocabulary)
    assert skills.matches == ["React.js", "Python", "Docker", "AWS"]


def test_skills_are_deterministic():
    vocab = StructureOptions().skill_vocabulary
    blob = "Kubernetes, SQL, Git, Linux, Pandas, NumPy"
    assert extract_skills(blob, vocab) == extract_skills(blob, vocab)


# ---------- rendering ----------

def test_skills_header_becomes_grid():
    opts = StructureOptions(skill_vocabulary=tuple(SCENARIO_SKILLS))
    out = render_blocks(
        [header("TECHNICAL SKILLS"), text("Python, Docker, AWS, React.js")],
        opts,
        contact=ContactInfo(),
    )
    assert [b.kind for b in out] == [OutputKind.HEADING, OutputKind.SKILLS_GRID]
    assert out[0].text == "TECHNICAL SKILLS"
    assert out[1].items == SCENARIO_SKILLS
    assert out[1].rows == [["Python", "Docker", "AWS"], ["React.js"]]


def test_skills_mode_ends_at_next_header():
    blocks = [
        header("SKILLS"),
        bullet("Python and SQL"),
        sub("Cloud"),
        text("Docker on AWS"),
        header("EXPERIENCE"),
        bullet("Shipped the billing system"),
        text("Worked with Python daily."),
    ]
    out = render_blocks(blocks, contact=ContactInfo())
    assert [b.kind for b in out] == [
        OutputKind.HEADING,
        OutputKind.SKILLS_GRID,
        OutputKind.SUBHEADING,
        OutputKind.HEADING,
        OutputKind.BULLET_ITEM,
        OutputKind.PARAGRAPH,
    ]
    assert out[1].items == ["SQL", "Python", "Docker", "AWS"]


def test_skills_header_without_known_skills_drops_its_body():
    blocks = [
        header("SOFT SKILLS"),
        text("Mentoring and negotiation"),
        bullet("Public speaking"),
        header("EDUCATION"),
        text("BSc Physics"),
    ]
    out = render_blocks(blocks, contact=ContactInfo())
    assert [(b.kind, b.text) for b in out] == [
        (OutputKind.HEADING, "SOFT SKILLS"),
        (OutputKind.HEADING, "EDUCATION"),
        (OutputKind.PARAGRAPH, "BSc Physics"),
    ]


def test_title_and_contact_line_come_first():
    blocks = [text("John Smith"), text("john@x.com | 555-123-4567 | Austin, TX")]
    out = render_blocks(blocks)
    assert out[0].kind is OutputKind.TITLE
    assert out[0].text == "John Smith"
    assert out[1].kind is OutputKind.PARAGRAPH
    assert out[1].role == "contact"
    assert out[1].text == "john@x.com • 555-123-4567 • Austin, TX"
    assert [b.text for b in out[2:]] == ["John Smith", "john@x.com | 555-123-4567 | Austin, TX"]


def test_contact_line_needs_a_name():
    out = render_blocks([text("reach me at a@b.io")])
    assert [(b.kind, b.text, b.role) for b in out] == [
        (OutputKind.PARAGRAPH, "reach me at a@b.io", None),
    ]


def test_rendered_text_is_cleaned():
    out = render_blocks(
        [sub("R&amp;D   Lab"), bullet("Fixed   &amp; shipped"), text("[object Object]Done.")],
        contact=ContactInfo(),
    )
    assert [(b.kind, b.text) for b in out] == [
        (OutputKind.SUBHEADING, "R&D Lab"),
        (OutputKind.BULLET_ITEM, "Fixed & shipped"),
        (OutputKind.PARAGRAPH, "Done."),
    ]


def test_bullet_content_is_rendered_as_built():
    out = render_blocks([bullet("2. Foo"), bullet("- not a marker anymore")], contact=ContactInfo())
    assert [b.text for b in out] == ["2. Foo", "- not a marker anymore"]


def test_render_empty():
    assert render_blocks([]) == []


def test_output_block_serialization():
    opts = StructureOptions(skill_vocabulary=tuple(SCENARIO_SKILLS), skills_per_row=2)
    out = render_blocks([header("SKILLS"), text("Python, Docker, AWS")], opts, contact=ContactInfo())
    assert out[1].to_dict() == {
        "kind": "skillsGrid",
        "items": ["Python", "Docker", "AWS"],
        "rows": [["Python", "Docker"], ["AWS"]],
    }
    assert out[0].to_dict() == {"kind": "heading", "text": "SKILLS"}


# ---------- fragments -> output ----------

def test_pipeline_on_empty_document():
    doc = structure_fragments([[], []])
    assert doc.blocks == []
    assert doc.output == []
    assert doc.contact == ContactInfo()


def test_pipeline_end_to_end_from_fragments():
    page = [
        PositionedFragment("John Smith", 50, 700, 18),
        PositionedFragment("john@x.com | 555-123-4567 | Austin, TX", 50, 680, 10),
        PositionedFragment("TECHNICAL SKILLS", 50, 640, 14),
        PositionedFragment("Python, Docker, AWS, React.js", 50, 620, 10),
    ]
    opts = StructureOptions(skill_vocabulary=tuple(SCENARIO_SKILLS))
    doc = structure_fragments([page], opts)

    assert [b.kind for b in doc.blocks] == [
        BlockKind.TEXT, BlockKind.TEXT, BlockKind.HEADER, BlockKind.TEXT,
    ]
    assert doc.contact.name == "John Smith"
    assert [b.kind for b in doc.output] == [
        OutputKind.TITLE,
        OutputKind.PARAGRAPH,
        OutputKind.PARAGRAPH,
        OutputKind.PARAGRAPH,
        OutputKind.HEADING,
        OutputKind.SKILLS_GRID,
    ]
    assert doc.output[-1].items == SCENARIO_SKILLS
    assert doc.to_dict()["page_count"] == 1
