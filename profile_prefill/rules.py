"""Rule table driving section finding and per-field entity extraction.

Each profile field has a ``FieldRule``: the keywords that open its section,
the keywords that close it, the line pattern that yields entries and a cap
on how many entries are kept. Patterns are compiled once at import.
"""

import re
from dataclasses import dataclass
from typing import Optional

# One capitalized token, allowing tech-style punctuation (Node.js, C++, R&D)
_CAP_TOKEN = r"[A-Z][\w&+#.'’]*"
# A run of capitalized tokens on a single line, joined by spaces or tabs
CAP_PHRASE = rf"{_CAP_TOKEN}(?:[ \t]+(?:of[ \t]+|and[ \t]+|&[ \t]+)?{_CAP_TOKEN})*"

_DEGREE = (
    r"(?:Bachelor|Master|Associate|Doctor)(?:['’]s)?(?:[ \t]+of[ \t]+[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*)?"
    r"|B\.?[AS]c?\.?|M\.?[AS]c?\.?|B\.?Tech|M\.?Tech|B\.?E\.?|MBA|Ph\.?D\.?|Doctorate|Diploma|Certificate"
)

# Every heading keyword, used to close whichever section is open
HEADING_KEYWORDS = (
    "education",
    "academic",
    "experience",
    "employment",
    "work history",
    "skills",
    "technical skills",
    "projects",
    "achievements",
    "awards",
    "honors",
    "certifications",
    "certificates",
    "licenses",
    "languages",
    "objective",
    "summary",
    "profile",
    "references",
    "interests",
    "hobbies",
    "publications",
    "volunteer",
)


@dataclass(frozen=True)
class FieldRule:
    field: str
    section_keywords: tuple[str, ...]
    pattern: Optional[re.Pattern[str]] = None
    limit: int = 10

    @property
    def next_section_keywords(self) -> tuple[str, ...]:
        """Heading keywords of every other section (disjoint from this one)."""
        own = set(self.section_keywords)
        return tuple(k for k in HEADING_KEYWORDS if k not in own)


def _keyword_regex(keywords: tuple[str, ...]) -> re.Pattern[str]:
    alternation = "|".join(re.escape(k) for k in sorted(keywords, key=len, reverse=True))
    return re.compile(rf"(?<![\w]){alternation}(?![\w])", re.IGNORECASE)


FIELD_RULES: dict[str, FieldRule] = {
    "education": FieldRule(
        field="education",
        section_keywords=(
            "education", "academic", "university", "college", "degree",
            "bachelor", "master", "phd", "diploma",
        ),
        pattern=re.compile(
            rf"(?<![\w.])(?P<primary>{_DEGREE})(?!\w)(?:[ \t]+degree)?[ \t]*(?:\([^)\n]*\))?[ \t,]*"
            rf"[ \t](?:in|of)[ \t]+(?P<secondary>{CAP_PHRASE})"
        ),
        limit=5,
    ),
    "experience": FieldRule(
        field="experience",
        section_keywords=("experience", "employment", "work history", "career", "professional experience"),
        pattern=re.compile(
            rf"(?P<primary>{CAP_PHRASE})[ \t]+(?:at|@|\||-|–|—)[ \t]+(?P<secondary>{CAP_PHRASE})"
        ),
        limit=10,
    ),
    "skills": FieldRule(
        field="skills",
        section_keywords=("skills", "technical skills", "technologies", "competencies", "tools"),
        limit=20,
    ),
    "certifications": FieldRule(
        field="certifications",
        section_keywords=("certifications", "certification", "certificates", "certified", "licenses", "credentials"),
        pattern=re.compile(
            rf"(?P<primary>{CAP_PHRASE})(?:[ \t]+(?:-|–|—|\||by|from)[ \t]+(?P<secondary>{CAP_PHRASE}))?"
        ),
        limit=10,
    ),
    "languages": FieldRule(
        field="languages",
        section_keywords=("languages", "language", "fluent", "native"),
        limit=10,
    ),
    "projects": FieldRule(
        field="projects",
        section_keywords=("projects", "project", "portfolio"),
        pattern=re.compile(rf"(?P<primary>{CAP_PHRASE})[ \t]*(?::|[ \t]-|–|—)[ \t]*(?P<secondary>[^.\n]+)"),
        limit=10,
    ),
    "achievements": FieldRule(
        field="achievements",
        section_keywords=("achievements", "awards", "honors", "honours", "recognition"),
        pattern=re.compile(rf"(?P<primary>{CAP_PHRASE})[ \t]*(?::|[ \t]-|–|—)[ \t]*(?P<secondary>[^.\n]+)"),
        limit=10,
    ),
    "objective": FieldRule(
        field="objective",
        section_keywords=("objective", "career objective", "goal", "goals"),
        limit=1,
    ),
    "summary": FieldRule(
        field="summary",
        section_keywords=("summary", "profile", "about", "about me"),
        limit=1,
    ),
}

SECTION_KEYWORD_PATTERNS: dict[str, re.Pattern[str]] = {
    name: _keyword_regex(rule.section_keywords) for name, rule in FIELD_RULES.items()
}
NEXT_SECTION_PATTERNS: dict[str, re.Pattern[str]] = {
    name: _keyword_regex(rule.next_section_keywords) for name, rule in FIELD_RULES.items()
}

# Lines at most this long are treated as headings
MAX_HEADING_WORDS = 5

# Words that make up headings; an entry built only from them is a heading, not data
HEADING_VOCABULARY = frozenset(
    word
    for rule in FIELD_RULES.values()
    for keyword in rule.section_keywords + HEADING_KEYWORDS
    for word in keyword.split()
) | {"professional", "key", "and", "&", "other", "relevant", "selected", "personal", "technical", "history"}

# --- Whole-text patterns -------------------------------------------------------

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"(?<![\w])\+?\(?\d[\d \t().-]{8,}\d(?![\w])")
PHONE_DIGITS = (10, 15)
LOCATION_PATTERN = re.compile(r"\b([A-Z][a-z]+(?:[ \t][A-Z][a-z]+)*,[ \t]*[A-Z][A-Za-z]+(?:[ \t][A-Z][a-z]+)*)\b")
# Two or three capitalized tokens opening a line, alone or before a separator
NAME_PATTERN = re.compile(r"^([A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+){1,2})(?=[ \t]*(?:$|[|,•–—-]))")
NAME_STOPWORDS = frozenset({"curriculum", "vitae", "resume", "résumé", "cover", "letter", "dear", "page"})
LINKEDIN_PATTERN = re.compile(r"linkedin\.com/(?:in|pub)/([A-Za-z0-9_-]+)", re.IGNORECASE)
GITHUB_PATTERN = re.compile(r"github\.com/([A-Za-z0-9_-]+)", re.IGNORECASE)
WEBSITE_PATTERN = re.compile(r"https?://(?:www\.)?[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}(?:/[^\s,;)]*)?")

# Lines of the header searched for name and location
HEADER_LINES = 8

# --- Window patterns ------------------------------------------------------------

YEAR_PATTERN = re.compile(r"\b(?:19|20)\d{2}\b")
_MONTH = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"
DURATION_PATTERN = re.compile(
    rf"(?:{_MONTH}[ \t]*)?(?:19|20)\d{{2}}[ \t]*(?:-|–|—|to)[ \t]*(?:(?:{_MONTH}[ \t]*)?(?:19|20)\d{{2}}|present|current|now)",
    re.IGNORECASE,
)
INSTITUTION_PATTERN = re.compile(
    r"(?:[A-Z][\w&.'’-]*[ \t]+)*(?:University|College|Institute|School|Academy|Polytechnic)"
    r"(?:[ \t]+of[ \t]+[A-Z][\w&.'’-]*(?:[ \t]+[A-Z][\w&.'’-]*)*)?"
)
INSTITUTION_WINDOW = 100
YEAR_WINDOW = 50
DURATION_WINDOW = 60
DESCRIPTION_CHARS = 150
NARRATIVE_CHARS = 200

KNOWN_ISSUERS = (
    "Amazon Web Services", "AWS", "Microsoft", "Google", "Cisco", "CompTIA", "Oracle",
    "PMI", "Scrum Alliance", "Scrum.org", "IBM", "Salesforce", "Coursera", "Udemy",
    "edX", "Red Hat", "Linux Foundation", "ISC2", "ISACA", "Meta",
)

# --- Vocabularies ---------------------------------------------------------------

SKILL_VOCABULARY = (
    # Programming languages
    "JavaScript", "TypeScript", "Python", "Java", "C++", "C#", "PHP", "Ruby", "Go", "Rust",
    "Swift", "Kotlin", "Scala", "R", "MATLAB", "SQL", "HTML", "CSS", "Sass", "Bash",
    # Frameworks and libraries
    "React", "Vue", "Angular", "Node.js", "Express", "Django", "Flask", "FastAPI", "Spring",
    "Laravel", "Rails", "ASP.NET", ".NET", "jQuery", "Bootstrap", "Tailwind", "Redux",
    "Next.js", "TensorFlow", "PyTorch", "scikit-learn", "Pandas", "NumPy", "OpenCV",
    # Databases
    "MySQL", "PostgreSQL", "MongoDB", "Redis", "Elasticsearch", "SQLite", "Oracle",
    "DynamoDB", "Cassandra", "Neo4j",
    # Platforms and tools
    "AWS", "Azure", "GCP", "Google Cloud", "Docker", "Kubernetes", "Terraform", "Jenkins",
    "Git", "GitHub", "GitLab", "Linux", "Windows", "Figma", "Photoshop", "Excel", "Tableau",
    "Power BI", "Jira",
)

# Ambiguous with ordinary words, so only matched with their exact casing
CASE_SENSITIVE_SKILLS = frozenset({"Go", "R", "Express", "Spring", "Swift", "Rust", "Excel"})

SKILL_KEYWORDS = (
    "full stack", "frontend", "backend", "web development", "mobile development",
    "software engineering", "machine learning", "deep learning", "data analysis",
    "data science", "natural language processing", "computer vision", "devops", "ci/cd",
    "project management", "agile", "scrum", "testing", "ui/ux", "graphic design",
    "cloud computing", "microservices", "rest api",
)

LANGUAGE_VOCABULARY = (
    "English", "Spanish", "French", "German", "Italian", "Portuguese", "Dutch", "Russian",
    "Chinese", "Mandarin", "Cantonese", "Japanese", "Korean", "Arabic", "Hindi", "Urdu",
    "Bengali", "Punjabi", "Turkish", "Persian", "Swahili", "Polish", "Greek", "Hebrew",
    "Vietnamese", "Thai", "Indonesian", "Malay", "Tamil", "Telugu",
)


def _term_regex(term: str, case_sensitive: bool) -> re.Pattern[str]:
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(rf"(?<![\w+#.]){re.escape(term)}(?![\w+#]|\.\w)", flags)


SKILL_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (term, _term_regex(term, term in CASE_SENSITIVE_SKILLS)) for term in SKILL_VOCABULARY
) + tuple((kw, _term_regex(kw, False)) for kw in SKILL_KEYWORDS)

LANGUAGE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (term, _term_regex(term, False)) for term in LANGUAGE_VOCABULARY
)
