"""
Structured entity extraction from normalized text.
"""

import pytest

from profile_prefill.entities import EntityExtractor, heading_strength
from profile_prefill.models import (
    AchievementEntry,
    CertificationEntry,
    EducationEntry,
    ExperienceEntry,
    ProjectEntry,
)


@pytest.fixture
def extractor():
    return EntityExtractor()


@pytest.fixture
def resume_profile(extractor, resume_text):
    return extractor.extract(resume_text, "cv")


# ─────────────────────────────────────────────────────────────────────────────
# Full résumé
# ─────────────────────────────────────────────────────────────────────────────

class TestResume:
    def test_personal_info(self, resume_profile):
        info = resume_profile.personal_info
        assert info.name == "Jane Doe"
        assert info.email == "jane.doe@example.com"
        assert info.phone == "+1 (415) 555-0134"
        assert info.location == "San Francisco, California"

    def test_contact_info(self, resume_profile):
        contact = resume_profile.contact_info
        assert contact.linkedin == "https://linkedin.com/in/janedoe"
        assert contact.github == "https://github.com/janedoe"
        assert contact.website == "https://janedoe.dev"

    def test_experience(self, resume_profile):
        assert resume_profile.experience == [
            ExperienceEntry(
                title="Senior Software Engineer",
                company="Acme Corp",
                duration="Jan 2020 - Present",
                description="Led migration of billing services to Kubernetes.",
            ),
            ExperienceEntry(
                title="Software Engineer",
                company="Globex",
                duration="2016 - 2019",
                description="Built REST APIs in Django.",
            ),
        ]

    def test_education(self, resume_profile):
        assert resume_profile.education == [
            EducationEntry(
                degree="Bachelor of Science",
                field="Computer Science",
                institution="Stanford University",
                year="2016",
            )
        ]

    def test_skills_in_order_of_appearance(self, resume_profile):
        assert resume_profile.skills == ["Python", "JavaScript", "Docker", "Kubernetes", "PostgreSQL", "agile"]

    def test_certifications(self, resume_profile):
        assert resume_profile.certifications == [
            CertificationEntry(name="AWS Certified Solutions Architect - Associate", issuer="AWS", year="2021")
        ]

    def test_languages(self, resume_profile):
        assert resume_profile.languages == ["English", "Spanish"]

    def test_projects_and_achievements(self, resume_profile):
        assert resume_profile.projects == [
            ProjectEntry(name="Ledger", description="Open source double-entry bookkeeping library")
        ]
        assert resume_profile.achievements == [
            AchievementEntry(title="Hackathon Winner", description="First place at PyCon sprint")
        ]

    def test_narrative_fields(self, resume_profile):
        assert resume_profile.summary == "Backend engineer with eight years of experience building data platforms."
        assert resume_profile.objective is None


# ─────────────────────────────────────────────────────────────────────────────
# Section finder
# ─────────────────────────────────────────────────────────────────────────────

class TestSectionFinder:
    def test_missing_section(self, extractor):
        assert extractor.find_section("Jane Doe\nNothing else here", "skills") is None

    def test_heading_section_excludes_heading(self, extractor, resume_text):
        span = extractor.find_section(resume_text, "languages")
        assert span.heading == "Languages"
        assert span.body == "English, Spanish"

    def test_inline_label_without_heading(self, extractor):
        text = "Jane Doe\nSkills: Python, Docker, Go\nEducation\nBSc in Physics"
        span = extractor.find_section(text, "skills")
        assert span.heading is None
        assert span.body == "Skills: Python, Docker, Go"
        assert extractor.extract_skills(text) == ["Python", "Docker", "Go"]

    def test_heading_preferred_over_mention(self, extractor):
        text = "I love working with many skills\n\nSKILLS\nRuby, Rails\n\nEducation\nBA in History"
        assert extractor.extract_skills(text) == ["Ruby", "Rails"]

    @pytest.mark.parametrize(
        "line, strength",
        [
            ("Work Experience", 2),
            ("## Technical Skills", 2),
            ("TOOLS & PLATFORMS", 1),
            ("Volunteering:", 1),
            ("Senior Software Engineer at Acme Corp", 0),
            ("", 0),
        ],
    )
    def test_heading_strength(self, line, strength):
        assert heading_strength(line) == strength


# ─────────────────────────────────────────────────────────────────────────────
# Individual fields
# ─────────────────────────────────────────────────────────────────────────────

class TestFields:
    def test_skills_capped(self, extractor):
        terms = [
            "Python", "Java", "Ruby", "Rust", "Swift", "Kotlin", "Scala", "PHP", "React", "Angular", "Django",
            "Flask", "MySQL", "Redis", "Docker", "Kubernetes", "Terraform", "Jenkins", "Linux", "Figma",
            "Tableau", "Jira",
        ]
        text = "Skills\n" + ", ".join(terms)
        assert extractor.extract_skills(text) == terms[:20]

    def test_skills_deduplicated(self, extractor):
        assert extractor.extract_skills("Skills\nPython, python, PYTHON, Docker") == ["Python", "Docker"]

    def test_possessive_degree(self, extractor):
        education = extractor.extract_education("Education\nMaster's degree in Data Science, MIT")
        assert education == [EducationEntry(degree="Master's", field="Data Science")]

    def test_pipe_separated_experience(self, extractor):
        experience = extractor.extract_experience("Experience\nData Analyst | Initech\nMar 2018 - Jun 2019")
        assert experience == [
            ExperienceEntry(title="Data Analyst", company="Initech", duration="Mar 2018 - Jun 2019")
        ]

    def test_heading_lines_not_entries(self, extractor):
        text = "Certifications\nProfessional Certifications\nCertified Scrum Master - Scrum Alliance 2020"
        assert extractor.extract_certifications(text) == [
            CertificationEntry(name="Certified Scrum Master", issuer="Scrum Alliance", year="2020")
        ]

    def test_name_skips_document_titles(self, extractor):
        info = extractor.extract_personal_info("Curriculum Vitae\nJohn Smith\njohn@smith.io")
        assert info.name == "John Smith"

    def test_phone_needs_enough_digits(self, extractor):
        info = extractor.extract_personal_info("Order 123 456\nEmployed 2016 - 2019\nCall +44 20 7946 0958")
        assert info.phone == "+44 20 7946 0958"

    def test_website_excludes_profiles(self, extractor):
        contact = extractor.extract_contact_info(
            "https://www.linkedin.com/in/jdoe https://github.com/jdoe https://portfolio.example.org/work"
        )
        assert contact.linkedin == "https://linkedin.com/in/jdoe"
        assert contact.website == "https://portfolio.example.org/work"

    def test_objective_only_for_narrative_documents(self, extractor):
        text = "Objective\nTo obtain a backend role.\n\nSkills\nPython"
        assert extractor.extract(text, "cv").objective == "To obtain a backend role."
        assert extractor.extract(text, "certificate").objective is None

    def test_empty_text(self, extractor):
        profile = extractor.extract("", "other")
        assert profile.is_empty()
