"""
Profile merging across documents.
"""

import pytest

from profile_prefill.merger import ProfileMerger, dedup_key, dedupe
from profile_prefill.models import (
    CertificationEntry,
    ContactInfo,
    EducationEntry,
    ExperienceEntry,
    ParsedDocument,
    PersonalInfo,
    StructuredProfile,
)


@pytest.fixture
def merger():
    return ProfileMerger()


def _document(profile, success=True):
    return ParsedDocument(
        document_type="cv",
        success=success,
        file_name="doc.txt",
        mime_type="text/plain",
        structured_data=profile if success else None,
        error=None if success else "boom",
    )


def test_duplicate_experience_across_documents(merger):
    first = StructuredProfile(experience=[ExperienceEntry(title="Software Engineer", company="Acme")])
    second = StructuredProfile(
        experience=[
            ExperienceEntry(title="software engineer", company="ACME", duration="2019 - 2021"),
            ExperienceEntry(title="Software Engineer", company="Globex"),
        ]
    )
    merged = merger.merge([first, second])
    assert merged.experience == [
        ExperienceEntry(title="Software Engineer", company="Acme"),
        ExperienceEntry(title="Software Engineer", company="Globex"),
    ]


def test_singular_fields_first_non_empty_wins(merger):
    first = StructuredProfile(
        personal_info=PersonalInfo(name="Jane Doe"),
        contact_info=ContactInfo(github="https://github.com/janedoe"),
    )
    second = StructuredProfile(
        personal_info=PersonalInfo(name="J. Doe", email="jane@example.com"),
        contact_info=ContactInfo(github="https://github.com/other", linkedin="https://linkedin.com/in/janedoe"),
        summary="Backend engineer.",
    )
    merged = merger.merge([first, second])
    assert merged.personal_info == PersonalInfo(name="Jane Doe", email="jane@example.com")
    assert merged.contact_info.github == "https://github.com/janedoe"
    assert merged.contact_info.linkedin == "https://linkedin.com/in/janedoe"
    assert merged.summary == "Backend engineer."


def test_string_lists_case_insensitive(merger):
    merged = merger.merge(
        [StructuredProfile(skills=["Python", "Docker"]), StructuredProfile(skills=["python", "Go"])]
    )
    assert merged.skills == ["Python", "Docker", "Go"]


def test_education_keyed_on_degree(merger):
    merged = merger.merge(
        [
            StructuredProfile(education=[EducationEntry(degree="Bachelor of Science", field="Physics")]),
            StructuredProfile(
                education=[
                    EducationEntry(degree="bachelor of science", field="Mathematics"),
                    EducationEntry(degree="Master of Science", field="Physics", institution="MIT"),
                ]
            ),
        ]
    )
    assert [(e.degree, e.field) for e in merged.education] == [
        ("Bachelor of Science", "Physics"),
        ("Master of Science", "Physics"),
    ]


def test_list_merge_idempotent(merger, profile):
    once = merger.merge([profile])
    twice = merger.merge([profile, profile])
    assert once == twice
    assert merger.merge([once, once]) == once


def test_failed_documents_skipped(merger):
    parsed = [
        _document(StructuredProfile(skills=["Python"])),
        _document(None, success=False),
        _document(StructuredProfile(certifications=[CertificationEntry(name="CKA")])),
    ]
    merged = merger.merge_documents(parsed)
    assert merged.skills == ["Python"]
    assert merged.certifications == [CertificationEntry(name="CKA")]


def test_merge_of_nothing_is_empty(merger):
    assert merger.merge([]).is_empty()


def test_dedup_helpers():
    assert dedup_key("skills", " Python ") == ("python",)
    assert dedup_key("certifications", CertificationEntry(name="CKA", issuer="CNCF")) == ("cka",)
    assert dedup_key("education", EducationEntry(degree=" BSc ", field="Physics")) == ("bsc",)
    assert dedupe("skills", ["a", "b", "A", "c"], limit=2) == ["a", "b"]
