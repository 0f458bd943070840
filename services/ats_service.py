# FILE: services/ats_service.py
import re


COMMON_SKILLS = [
    # Technical
    "JavaScript", "TypeScript", "Python", "Java", "C++", "React", "Angular", "Vue",
    "Node.js", "HTML", "CSS", "SQL", "MongoDB", "PostgreSQL", "AWS", "Azure",
    "Docker", "Kubernetes", "Git", "CI/CD", "Agile", "Scrum",
    # Business
    "Project Management", "Leadership", "Communication", "Analysis", "Strategy",
    "Marketing", "Sales", "Customer Service", "Operations", "Finance",
    "Excel", "PowerPoint", "Salesforce", "CRM", "ERP",
    # General
    "Problem Solving", "Team Work", "Time Management", "Critical Thinking",
    "Attention to Detail", "Adaptability", "Innovation", "Collaboration",
]

COMMON_KEYWORDS = [
    "experience", "managed", "developed", "implemented", "created", "designed",
    "led", "coordinated", "improved", "increased", "reduced", "achieved",
    "delivered", "collaborated", "analyzed", "optimized", "streamlined",
    "supervised", "trained", "mentored", "presented", "negotiated",
]

CONTACT_PATTERN = re.compile(
    r"(\+?\d{1,4}?[-.\s]?\(?\d{1,3}?\)?[-.\s]?\d{1,4}[-.\s]?\d{1,4}[-.\s]?\d{1,9})|(\w+@\w+\.\w+)",
    re.ASCII,
)
WORK_PATTERN = re.compile(r"experience|employment|work|position|role|job", re.IGNORECASE | re.ASCII)
EDUCATION_PATTERN = re.compile(r"education|degree|university|college|school|certification", re.IGNORECASE | re.ASCII)
SKILLS_SECTION_PATTERN = re.compile(r"skills|competencies|abilities|expertise", re.IGNORECASE | re.ASCII)

SUGGEST_MORE_SKILLS = "Add more relevant technical and soft skills to improve keyword matching"
SUGGEST_ACTION_VERBS = "Include more action verbs and achievement-focused language"
SUGGEST_CONTACT = "Ensure contact information is clearly visible at the top"
SUGGEST_SKILLS_SECTION = "Add a dedicated skills section for better ATS parsing"
SUGGEST_MORE_DETAIL = "Consider adding more detail about your experience and achievements"
SUGGEST_CONDENSE = "Consider condensing content - ATS systems prefer concise resumes"

MIN_WORDS = 200
MAX_WORDS = 800


def analyze(text: str) -> dict:
    """
    Scores resume text with fixed skill/keyword lists and structural checks.

    Returns:
        {
            "score": int (0-100),
            "formattingScore": int (0-100),
            "skillsFound": [str],
            "keywordsFound": [str],
            "suggestions": [str],
            "metadata": {
                "wordCount": int,
                "hasContactInfo": bool,
                "hasWorkExperience": bool,
                "hasEducation": bool,
                "hasSkillsSection": bool,
            }
        }
    """
    text = text or ""
    clean_text = text.lower()
    word_count = len(clean_text.split())

    skills_found = [skill for skill in COMMON_SKILLS if skill.lower() in clean_text]
    keywords_found = [keyword for keyword in COMMON_KEYWORDS if keyword in clean_text]

    has_contact_info = bool(CONTACT_PATTERN.search(text))
    has_work_experience = bool(WORK_PATTERN.search(text))
    has_education = bool(EDUCATION_PATTERN.search(text))
    has_skills_section = bool(SKILLS_SECTION_PATTERN.search(text))

    formatting_score = 25 * sum(
        [has_contact_info, has_work_experience, has_education, has_skills_section]
    )

    skills_score = min(len(skills_found) * 5, 40)
    keyword_score = min(len(keywords_found) * 2, 30)
    length_score = 30 if MIN_WORDS <= word_count <= MAX_WORDS else 15
    # Nothing to score: no length baseline either.
    score = min(skills_score + keyword_score + length_score, 100) if word_count else 0

    suggestions = []
    if len(skills_found) < 5:
        suggestions.append(SUGGEST_MORE_SKILLS)
    if len(keywords_found) < 10:
        suggestions.append(SUGGEST_ACTION_VERBS)
    if not has_contact_info:
        suggestions.append(SUGGEST_CONTACT)
    if not has_skills_section:
        suggestions.append(SUGGEST_SKILLS_SECTION)
    if word_count < MIN_WORDS:
        suggestions.append(SUGGEST_MORE_DETAIL)
    if word_count > MAX_WORDS:
        suggestions.append(SUGGEST_CONDENSE)

    return {
        "score": score,
        "formattingScore": formatting_score,
        "skillsFound": skills_found,
        "keywordsFound": keywords_found,
        "suggestions": suggestions,
        "metadata": {
            "wordCount": word_count,
            "hasContactInfo": has_contact_info,
            "hasWorkExperience": has_work_experience,
            "hasEducation": has_education,
            "hasSkillsSection": has_skills_section,
        },
    }


def score_label(score: int) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Needs Improvement"
