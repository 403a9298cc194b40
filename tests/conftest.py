"""
Shared fixtures for the pre-fill test suite.

Fixture overview:
  resume_text        : a normalized single-page résumé exercising every section
  resume_bytes       : the same résumé as UTF-8 bytes, for plain-text documents
  profile            : a hand-built StructuredProfile with known contents
  question factories : make_question builds Question objects with defaults
  StubService        : deterministic AnswerGenerationService, no network

Nothing here talks to OpenAI or Tesseract; tests that need OCR patch
pytesseract directly.
"""

import threading

import pytest

from profile_prefill.config import GenerationConfig, PipelineConfig
from profile_prefill.models import (
    CertificationEntry,
    ContactInfo,
    EducationEntry,
    ExperienceEntry,
    PersonalInfo,
    Question,
    StructuredProfile,
)

RESUME_TEXT = """Jane Doe
Senior Software Engineer
San Francisco, California | jane.doe@example.com | +1 (415) 555-0134
linkedin.com/in/janedoe | github.com/janedoe | https://janedoe.dev

Summary
Backend engineer with eight years of experience building data platforms.

Experience
Senior Software Engineer at Acme Corp
Jan 2020 - Present
Led migration of billing services to Kubernetes.
Software Engineer at Globex
2016 - 2019
Built REST APIs in Django.

Education
Bachelor of Science in Computer Science, Stanford University, 2016

Skills
Python, JavaScript, Docker, Kubernetes, PostgreSQL, agile

Certifications
AWS Certified Solutions Architect - Associate (2021)

Languages
English, Spanish

Projects
Ledger: Open source double-entry bookkeeping library

Achievements
Hackathon Winner: First place at PyCon sprint"""


# ─────────────────────────────────────────────────────────────────────────────
# Generation stubs
# ─────────────────────────────────────────────────────────────────────────────

class StubService:
    """Returns a canned reply, raises a canned error, or blocks until released."""

    model = "stub-model"

    def __init__(self, reply="", error=None, block=None):
        self.reply = reply
        self.error = error
        self.block = block
        self.prompts = []
        self.token_usage = {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def stub_service():
    return StubService


@pytest.fixture
def release_event():
    event = threading.Event()
    yield event
    event.set()


# ─────────────────────────────────────────────────────────────────────────────
# Documents and profiles
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def resume_text():
    return RESUME_TEXT


@pytest.fixture
def resume_bytes():
    return RESUME_TEXT.encode("utf-8")


@pytest.fixture
def profile():
    return StructuredProfile(
        personal_info=PersonalInfo(name="Jane Doe", email="jane.doe@example.com"),
        education=[
            EducationEntry(
                degree="Bachelor of Science",
                field="Computer Science",
                institution="Stanford University",
                year="2016",
            )
        ],
        experience=[
            ExperienceEntry(title="Senior Software Engineer", company="Acme Corp", duration="Jan 2020 - Present"),
            ExperienceEntry(title="Software Engineer", company="Globex"),
        ],
        skills=["JavaScript", "Python"],
        certifications=[CertificationEntry(name="AWS Certified Developer", issuer="AWS", year="2021")],
        contact_info=ContactInfo(linkedin="https://linkedin.com/in/janedoe", github="https://github.com/janedoe"),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Questions and configuration
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_question():
    def _make(question_id="q1", text="What are your skills?", type="text", options=None, category="general"):
        return Question(id=question_id, text=text, type=type, options=list(options or []), category=category)

    return _make


@pytest.fixture
def generation_config():
    return GenerationConfig(api_key="", model="stub-model", timeout_seconds=2.0, max_workers=2)


@pytest.fixture
def pipeline_config(generation_config):
    return PipelineConfig(generation=generation_config, max_workers=2)
