"""
Unit tests for the ATS heuristic scorer.
"""
from services.ats_service import (
    SUGGEST_ACTION_VERBS,
    SUGGEST_CONDENSE,
    SUGGEST_CONTACT,
    SUGGEST_MORE_DETAIL,
    SUGGEST_MORE_SKILLS,
    SUGGEST_SKILLS_SECTION,
    analyze,
    score_label,
)


WELL_FORMED = (
    "Jane Doe jane@example.com Employment University Skills Python Docker Kubernetes "
    "Excel Marketing managed developed implemented created designed coordinated improved "
    "increased reduced achieved " + " ".join(["alpha"] * 479)
)


def test_well_formed_resume_scores_75():
    """Five skills, ten keywords and 500 words give 25 + 20 + 30."""
    result = analyze(WELL_FORMED)

    assert result["metadata"]["wordCount"] == 500
    assert result["skillsFound"] == ["Python", "Docker", "Kubernetes", "Marketing", "Excel"]
    assert len(result["keywordsFound"]) == 10
    assert result["score"] == 75
    assert result["formattingScore"] == 100
    assert result["suggestions"] == []


def test_structural_flags():
    """All four structural checks are detected."""
    metadata = analyze(WELL_FORMED)["metadata"]

    assert metadata["hasContactInfo"] is True
    assert metadata["hasWorkExperience"] is True
    assert metadata["hasEducation"] is True
    assert metadata["hasSkillsSection"] is True


def test_empty_text():
    """Empty text has no words and scores 0."""
    result = analyze("")

    assert result["score"] == 0
    assert result["formattingScore"] == 0
    assert result["metadata"]["wordCount"] == 0
    assert result["skillsFound"] == []
    assert result["keywordsFound"] == []
    assert result["suggestions"] == [
        SUGGEST_MORE_SKILLS,
        SUGGEST_ACTION_VERBS,
        SUGGEST_CONTACT,
        SUGGEST_SKILLS_SECTION,
        SUGGEST_MORE_DETAIL,
    ]


def test_short_text_gets_length_baseline():
    """Under 200 words still earns the 15 point length score."""
    result = analyze("Python developer")

    assert result["skillsFound"] == ["Python"]
    assert result["keywordsFound"] == []
    assert result["score"] == 5 + 15


def test_long_text_suggests_condensing():
    """Over 800 words drops to the 15 point length score."""
    result = analyze(" ".join(["word"] * 801))

    assert result["metadata"]["wordCount"] == 801
    assert result["score"] == 15
    assert SUGGEST_CONDENSE in result["suggestions"]
    assert SUGGEST_MORE_DETAIL not in result["suggestions"]


def test_skill_and_keyword_scores_are_capped():
    """Skills cap at 40 and keywords at 30, total at 100."""
    skills = "Python Java React SQL AWS Docker Git Excel Sales Finance"
    keywords = (
        "experience managed developed implemented created designed led coordinated improved "
        "increased reduced achieved delivered collaborated analyzed optimized"
    )
    text = f"{skills} {keywords} " + " ".join(["filler"] * 300)
    result = analyze(text)

    assert len(result["skillsFound"]) >= 8
    assert len(result["keywordsFound"]) >= 15
    assert result["score"] == 100


def test_analyze_is_deterministic():
    """Same input, same output."""
    assert analyze(WELL_FORMED) == analyze(WELL_FORMED)


def test_score_label():
    """Labels follow the score bands."""
    assert score_label(85) == "Excellent"
    assert score_label(60) == "Good"
    assert score_label(40) == "Fair"
    assert score_label(10) == "Needs Improvement"


def test_non_ascii_digits_are_not_a_phone_number():
    """Only ASCII digits count toward a phone number."""
    result = analyze("Résumé ٣٤٥٦٧٨٩")

    assert result["metadata"]["hasContactInfo"] is False
    assert result["formattingScore"] == 0
    assert analyze("Résumé 555 123 4567")["metadata"]["hasContactInfo"] is True


def test_email_needs_ascii_word_characters():
    """Accented letters break the e-mail match the same way the browser regex does."""
    assert analyze("José@Café.es")["metadata"]["hasContactInfo"] is False
    assert analyze("Jose@Cafe.es")["metadata"]["hasContactInfo"] is True


def test_section_headings_fold_case_in_ascii_only():
    """The Kelvin sign does not stand in for a k in "skills"."""
    assert analyze("S\u212aILLS")["metadata"]["hasSkillsSection"] is False
    assert analyze("SKILLS")["metadata"]["hasSkillsSection"] is True
