"""Heuristic extraction of a structured profile fragment from normalized text."""

import re
from dataclasses import dataclass
from typing import Iterator, Optional

from profile_prefill import rules
from profile_prefill.logger import get_logger
from profile_prefill.merger import dedupe
from profile_prefill.models import (
    AchievementEntry,
    CertificationEntry,
    ContactInfo,
    EducationEntry,
    ExperienceEntry,
    PersonalInfo,
    ProjectEntry,
    StructuredProfile,
)

logger = get_logger(__name__)

# Document kinds whose free-text objective/summary is worth keeping
NARRATIVE_KINDS = ("cv", "cover-letter")

# Certification levels that belong to the name rather than the issuer
CERT_LEVELS = frozenset({"Associate", "Professional", "Practitioner", "Foundational", "Expert", "Specialty"})
CERT_NOISE_PREFIXES = ("Credential", "Issued", "Expires", "Expiry", "License Number", "ID")

_MARKUP_EDGES = "#*_>`•·-–— \t"


def clean_line(line: str) -> str:
    """Strip markdown markers and bullets from the edges of a line."""
    return line.strip().strip(_MARKUP_EDGES).strip()


def _clean_value(value: Optional[str]) -> str:
    return (value or "").strip().strip(".,;:|-–— \t")


def heading_strength(line: str) -> int:
    """How strongly a line looks like a section heading.

    2: short line made only of heading words ("Work Experience")
    1: short line ending in a colon or written in capitals
    0: anything else
    """
    raw = clean_line(line)
    if not raw:
        return 0
    text = raw.rstrip(":").strip()
    words = text.split()
    if not words or len(words) > rules.MAX_HEADING_WORDS:
        return 0
    if all(w.strip(",&/").lower() in rules.HEADING_VOCABULARY for w in words if w.strip(",&/")):
        return 2
    if raw.endswith(":") or (text.isupper() and any(c.isalpha() for c in text)):
        return 1
    return 0


def is_heading_phrase(phrase: str) -> bool:
    words = [w.lower() for w in re.split(r"[\s,&/]+", phrase) if w]
    return bool(words) and all(w in rules.HEADING_VOCABULARY for w in words)


@dataclass(frozen=True)
class SectionSpan:
    """Lines belonging to one labeled section of a document."""

    field: str
    start_line: int
    end_line: int
    heading: Optional[str]
    body: str


class EntityExtractor:
    """Turns normalized document text into a StructuredProfile fragment."""

    def __init__(self, field_rules: Optional[dict[str, rules.FieldRule]] = None):
        self.rules = field_rules or rules.FIELD_RULES

    def extract(self, text: str, document_type_hint: str = "other") -> StructuredProfile:
        profile = StructuredProfile(
            personal_info=self.extract_personal_info(text),
            education=self.extract_education(text),
            experience=self.extract_experience(text),
            skills=self.extract_skills(text),
            certifications=self.extract_certifications(text),
            languages=self.extract_languages(text),
            projects=self.extract_projects(text),
            achievements=self.extract_achievements(text),
            contact_info=self.extract_contact_info(text),
        )
        if document_type_hint in NARRATIVE_KINDS:
            profile.objective = self.extract_narrative(text, "objective")
            profile.summary = self.extract_narrative(text, "summary")

        logger.debug(
            "Structured data extracted",
            extra_data={
                "document_type": document_type_hint,
                "skills": len(profile.skills),
                "education": len(profile.education),
                "experience": len(profile.experience),
                "certifications": len(profile.certifications),
            },
        )
        return profile

    # --- Section finder -----------------------------------------------------

    def find_section(self, text: str, field: str) -> Optional[SectionSpan]:
        """Locate the span of ``field``'s section, or None if it has none.

        The section opens at the strongest heading carrying one of the
        field's keywords (any line with one, failing that) and closes at the
        next heading carrying a keyword of another section.
        """
        if not text:
            return None
        lines = text.split("\n")
        opener = rules.SECTION_KEYWORD_PATTERNS[field]
        closer = rules.NEXT_SECTION_PATTERNS[field]

        strengths = [heading_strength(line) for line in lines]
        candidates = [i for i, line in enumerate(lines) if opener.search(line)]
        if not candidates:
            return None
        start = max(candidates, key=lambda i: (strengths[i], -i))

        end = len(lines)
        for i in range(start + 1, len(lines)):
            if strengths[i] and closer.search(lines[i]):
                end = i
                break

        heading = lines[start] if strengths[start] else None
        body_lines = lines[start + 1:end] if heading is not None else lines[start:end]
        return SectionSpan(
            field=field,
            start_line=start,
            end_line=end,
            heading=heading,
            body="\n".join(body_lines).strip(),
        )

    def _section_body(self, text: str, field: str) -> Optional[str]:
        span = self.find_section(text, field)
        if span is None or not span.body:
            return None
        return span.body

    # --- Whole-text fields ----------------------------------------------------

    def extract_personal_info(self, text: str) -> PersonalInfo:
        info = PersonalInfo()
        header = [clean_line(line) for line in text.split("\n") if line.strip()][: rules.HEADER_LINES]

        for line in header:
            match = rules.NAME_PATTERN.match(line)
            if not match:
                continue
            candidate = match.group(1)
            words = {w.lower() for w in candidate.split()}
            if words & rules.NAME_STOPWORDS or is_heading_phrase(candidate):
                continue
            info.name = candidate
            break

        email = rules.EMAIL_PATTERN.search(text)
        if email:
            info.email = email.group(0)

        for match in rules.PHONE_PATTERN.finditer(text):
            digits = sum(c.isdigit() for c in match.group(0))
            if rules.PHONE_DIGITS[0] <= digits <= rules.PHONE_DIGITS[1]:
                info.phone = match.group(0).strip()
                break

        skills = {s.lower() for s in rules.SKILL_VOCABULARY}
        for line in header:
            for match in rules.LOCATION_PATTERN.finditer(line):
                parts = [p.strip().lower() for p in match.group(1).split(",")]
                if any(p in skills for p in parts):
                    continue
                info.location = match.group(1)
                break
            if info.location:
                break
        return info

    def extract_contact_info(self, text: str) -> ContactInfo:
        contact = ContactInfo()
        linkedin = rules.LINKEDIN_PATTERN.search(text)
        if linkedin:
            contact.linkedin = f"https://linkedin.com/in/{linkedin.group(1)}"
        github = rules.GITHUB_PATTERN.search(text)
        if github:
            contact.github = f"https://github.com/{github.group(1)}"
        for match in rules.WEBSITE_PATTERN.finditer(text):
            url = match.group(0).rstrip(".")
            if "linkedin.com" in url.lower() or "github.com" in url.lower():
                continue
            contact.website = url
            break
        return contact

    # --- Section-scoped list fields -----------------------------------------

    def _matches(self, body: str, pattern: re.Pattern[str], per_line: bool = False) -> list[re.Match]:
        if not per_line:
            return list(pattern.finditer(body))
        found = []
        offset = 0
        for line in body.split("\n"):
            lead = len(line) - len(line.lstrip(_MARKUP_EDGES))
            match = pattern.search(body, offset + lead, offset + len(line))
            if match:
                found.append(match)
            offset += len(line) + 1
        return found

    @staticmethod
    def _nearby(body: str, matches: list[re.Match], index: int, pattern: re.Pattern[str], window: int) -> Optional[str]:
        """Find ``pattern`` near match ``index`` without crossing into neighbours.

        Searches the rest of the match's own line first, then forward up to
        the next match, then backward down to the previous one.
        """
        match = matches[index]
        lo = matches[index - 1].end() if index > 0 else 0
        hi = matches[index + 1].start() if index + 1 < len(matches) else len(body)

        line_end = body.find("\n", match.end())
        line_end = len(body) if line_end == -1 else line_end
        line_start = body.rfind("\n", 0, match.start()) + 1

        same_line = pattern.search(body, match.end(), min(line_end, hi)) or pattern.search(
            body, max(line_start, lo), match.start()
        )
        if same_line:
            return same_line.group(0).strip()

        forward = pattern.search(body, match.end(), min(hi, match.end() + window))
        if forward:
            return forward.group(0).strip()

        backward = list(pattern.finditer(body, max(lo, match.start() - window), match.start()))
        if backward:
            return backward[-1].group(0).strip()
        return None

    def extract_education(self, text: str) -> list[EducationEntry]:
        rule = self.rules["education"]
        body = self._section_body(text, "education")
        if body is None:
            return []

        matches = self._matches(body, rule.pattern)
        entries = []
        for i, match in enumerate(matches):
            degree = _clean_value(match.group("primary"))
            field = _clean_value(match.group("secondary"))
            institution = self._nearby(body, matches, i, rules.INSTITUTION_PATTERN, rules.INSTITUTION_WINDOW)
            if institution and field.endswith(institution):
                field = _clean_value(field[: -len(institution)])
            if not degree or not field:
                continue
            entries.append(
                EducationEntry(
                    degree=degree,
                    field=field,
                    institution=institution,
                    year=self._nearby(body, matches, i, rules.YEAR_PATTERN, rules.YEAR_WINDOW),
                )
            )
        return dedupe("education", entries, rule.limit)

    def extract_experience(self, text: str) -> list[ExperienceEntry]:
        rule = self.rules["experience"]
        body = self._section_body(text, "experience")
        if body is None:
            return []

        matches = [m for m in self._matches(body, rule.pattern) if not is_heading_phrase(m.group("primary"))]
        entries = []
        for i, match in enumerate(matches):
            title = _clean_value(match.group("primary"))
            company = _clean_value(match.group("secondary"))
            if not title or not company:
                continue
            entries.append(
                ExperienceEntry(
                    title=title,
                    company=company,
                    duration=self._nearby(body, matches, i, rules.DURATION_PATTERN, rules.DURATION_WINDOW),
                    description=self._description(body, matches, i),
                )
            )
        return dedupe("experience", entries, rule.limit)

    @staticmethod
    def _description(body: str, matches: list[re.Match], index: int) -> Optional[str]:
        """Lines following a match, up to the next match, as one short string."""
        match = matches[index]
        line_end = body.find("\n", match.end())
        if line_end == -1:
            return None
        hi = matches[index + 1].start() if index + 1 < len(matches) else len(body)
        if hi <= line_end:
            return None
        # The next match's own line must not leak in
        block = body[line_end + 1:hi]
        if index + 1 < len(matches):
            block = block[: block.rfind("\n")] if "\n" in block else ""
        lines = [clean_line(line) for line in block.split("\n")]
        lines = [line for line in lines if line and not rules.DURATION_PATTERN.fullmatch(line)]
        if not lines:
            return None
        description = " ".join(lines)
        if len(description) > rules.DESCRIPTION_CHARS:
            description = description[: rules.DESCRIPTION_CHARS].rsplit(" ", 1)[0]
        return description

    def extract_certifications(self, text: str) -> list[CertificationEntry]:
        rule = self.rules["certifications"]
        body = self._section_body(text, "certifications")
        if body is None:
            return []

        matches = [
            m
            for m in self._matches(body, rule.pattern, per_line=True)
            if not is_heading_phrase(m.group("primary")) and not m.group("primary").startswith(CERT_NOISE_PREFIXES)
        ]
        entries = []
        for i, match in enumerate(matches):
            name = _clean_value(match.group("primary"))
            issuer = _clean_value(match.group("secondary")) or None
            if issuer in CERT_LEVELS:
                name = f"{name} - {issuer}"
                issuer = None
            if issuer is None:
                issuer = self._known_issuer(body, match)
            if len(name) < 2:
                continue
            entries.append(
                CertificationEntry(
                    name=name,
                    issuer=issuer,
                    year=self._nearby(body, matches, i, rules.YEAR_PATTERN, rules.YEAR_WINDOW),
                )
            )
        return dedupe("certifications", entries, rule.limit)

    @staticmethod
    def _known_issuer(body: str, match: re.Match) -> Optional[str]:
        line_start = body.rfind("\n", 0, match.start()) + 1
        line_end = body.find("\n", match.end())
        line = body[line_start: len(body) if line_end == -1 else line_end]
        for issuer in rules.KNOWN_ISSUERS:
            if re.search(rf"(?<!\w){re.escape(issuer)}(?!\w)", line):
                return issuer
        return None

    def _titled_pairs(self, text: str, field: str) -> Iterator[tuple[str, str]]:
        rule = self.rules[field]
        body = self._section_body(text, field)
        if body is None:
            return
        for match in self._matches(body, rule.pattern, per_line=True):
            primary = _clean_value(match.group("primary"))
            secondary = _clean_value(match.group("secondary"))
            if primary and secondary and not is_heading_phrase(primary):
                yield primary, secondary

    def extract_projects(self, text: str) -> list[ProjectEntry]:
        entries = [ProjectEntry(name=name, description=desc) for name, desc in self._titled_pairs(text, "projects")]
        return dedupe("projects", entries, self.rules["projects"].limit)

    def extract_achievements(self, text: str) -> list[AchievementEntry]:
        entries = [
            AchievementEntry(title=title, description=desc)
            for title, desc in self._titled_pairs(text, "achievements")
        ]
        return dedupe("achievements", entries, self.rules["achievements"].limit)

    # --- Vocabulary fields ------------------------------------------------------

    @staticmethod
    def _vocabulary_hits(body: str, patterns: tuple[tuple[str, re.Pattern[str]], ...]) -> list[str]:
        hits = []
        for term, pattern in patterns:
            match = pattern.search(body)
            if match:
                hits.append((match.start(), term))
        return [term for _, term in sorted(hits)]

    def extract_skills(self, text: str) -> list[str]:
        body = self._section_body(text, "skills")
        if body is None:
            return []
        return dedupe("skills", self._vocabulary_hits(body, rules.SKILL_PATTERNS), self.rules["skills"].limit)

    def extract_languages(self, text: str) -> list[str]:
        body = self._section_body(text, "languages")
        if body is None:
            return []
        return dedupe(
            "languages", self._vocabulary_hits(body, rules.LANGUAGE_PATTERNS), self.rules["languages"].limit
        )

    # --- Narrative fields -------------------------------------------------------

    def extract_narrative(self, text: str, field: str) -> Optional[str]:
        """Objective or summary paragraph, without its label, capped in length."""
        body = self._section_body(text, field)
        if body is None:
            return None
        flat = " ".join(clean_line(line) for line in body.split("\n") if clean_line(line))
        label = rules.SECTION_KEYWORD_PATTERNS[field].match(flat)
        if label:
            flat = flat[label.end():].lstrip(" :-–—")
        flat = flat[: rules.NARRATIVE_CHARS].strip()
        return flat or None
