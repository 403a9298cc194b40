"""
Answer generation: auto-fill mapping, generated suggestions and fallbacks.
"""

import pytest

from profile_prefill.answers import AnswerGenerator, format_evidence
from profile_prefill.classifier import QuestionClassifier
from profile_prefill.config import GenerationConfig
from profile_prefill.exceptions import GenerationError
from profile_prefill.generation import OpenAIAnswerService, build_prompt, parse_generated_answer
from profile_prefill.models import (
    AnswerSource,
    Bucket,
    CertificationEntry,
    EducationEntry,
    QuestionMapping,
    StructuredProfile,
)


def _answer(generator, question, profile):
    mapping = QuestionClassifier().classify_question(profile, question)
    return mapping, generator.generate(question, profile, mapping)


# ─────────────────────────────────────────────────────────────────────────────
# Auto-fill
# ─────────────────────────────────────────────────────────────────────────────

class TestAutoFill:
    def test_skills_multiple_choice(self, make_question, generation_config):
        profile = StructuredProfile(skills=["JavaScript", "Python"])
        question = make_question(
            text="Which programming language do you know best?",
            type="multiple-choice",
            options=["JavaScript", "Python", "Java"],
            category="skills",
        )
        with AnswerGenerator(config=generation_config) as generator:
            mapping, answer = _answer(generator, question, profile)

        assert mapping.bucket == Bucket.AUTO_FILL
        assert answer.value == "JavaScript"
        assert answer.confidence == pytest.approx(2 / 3)
        assert answer.source == AnswerSource.DOCUMENT_PARSING
        assert generator.generation_calls == 0

    def test_option_text_returned_exactly(self, make_question, generation_config):
        profile = StructuredProfile(education=[EducationEntry(degree="Bachelor of Science", field="Physics")])
        question = make_question(
            text="Highest degree?", type="multiple-choice", options=["High School", "Bachelor's", "Master's"]
        )
        with AnswerGenerator(config=generation_config) as generator:
            _, answer = _answer(generator, question, profile)
        assert answer.value == "Bachelor's"

    def test_free_text_formats(self, make_question, profile, generation_config):
        with AnswerGenerator(config=generation_config) as generator:
            _, skills = _answer(generator, make_question(text="List your skills"), profile)
            _, education = _answer(generator, make_question(text="Your education?"), profile)
            _, experience = _answer(generator, make_question(text="Most recent work?"), profile)
            _, certification = _answer(generator, make_question(text="Any certification?"), profile)

        assert skills.value == "JavaScript, Python"
        assert education.value == "Bachelor of Science in Computer Science, Stanford University (2016)"
        assert experience.value == "Senior Software Engineer at Acme Corp (Jan 2020 - Present)"
        assert certification.value == "AWS Certified Developer (AWS)"

    def test_yes_no_with_evidence(self, make_question, profile, generation_config):
        with AnswerGenerator(config=generation_config) as generator:
            _, plain = _answer(generator, make_question(text="Do you hold a certification?", type="yes/no"), profile)
            _, with_options = _answer(
                generator,
                make_question(text="Do you hold a certification?", type="yes/no", options=["No", "Yes"]),
                profile,
            )
        assert plain.value == "Yes"
        assert with_options.value == "Yes"

    def test_link_question_picks_named_profile(self, make_question, profile, generation_config):
        with AnswerGenerator(config=generation_config) as generator:
            _, github = _answer(generator, make_question(text="GitHub URL", type="link"), profile)
            _, anything = _answer(generator, make_question(text="Profile URL", type="link"), profile)
        assert github.value == "https://github.com/janedoe"
        assert anything.value == "https://linkedin.com/in/janedoe"

    def test_format_evidence_empty(self):
        assert format_evidence("skills", []) is None


# ─────────────────────────────────────────────────────────────────────────────
# Generated suggestions and fallbacks
# ─────────────────────────────────────────────────────────────────────────────

class TestSuggestions:
    def test_generated_answer_matched_to_option(self, make_question, stub_service, generation_config):
        service = stub_service(reply='"python"\nBecause it is listed first.')
        question = make_question(
            text="Which programming language?", type="multiple-choice", options=["Java", "Python"]
        )
        with AnswerGenerator(service, generation_config) as generator:
            mapping, answer = _answer(generator, question, StructuredProfile())

        assert mapping.bucket == Bucket.AI_SUGGESTION
        assert answer.value == "Python"
        assert answer.source == AnswerSource.AI_GENERATION
        assert answer.confidence == pytest.approx(0.7)
        assert answer.metadata["model"] == "stub-model"
        assert generator.generation_calls == 1
        assert "Available Options: Java, Python" in service.prompts[0]

    def test_certification_scenario_falls_back(self, make_question, stub_service, generation_config):
        service = stub_service(error=ConnectionError("network down"))
        question = make_question(text="Do you have any certifications?", type="yes/no")
        with AnswerGenerator(service, generation_config) as generator:
            mapping, answer = _answer(generator, question, StructuredProfile())

        assert mapping.bucket == Bucket.AI_SUGGESTION
        assert answer.value == "Not specified"
        assert answer.source == AnswerSource.FALLBACK
        assert answer.confidence == pytest.approx(0.3)
        assert answer.metadata["error"] == "network down"
        assert generator.fallback_count == 1

    def test_failure_uses_first_option(self, make_question, stub_service, generation_config):
        service = stub_service(error=GenerationError("quota exceeded"))
        question = make_question(text="Preferred language?", type="multiple-choice", options=["French", "German"])
        with AnswerGenerator(service, generation_config) as generator:
            _, answer = _answer(generator, question, StructuredProfile())
        assert answer.value == "French"
        assert answer.source == AnswerSource.FALLBACK

    def test_timeout_falls_back(self, make_question, stub_service, release_event):
        service = stub_service(reply="Yes", block=release_event)
        config = GenerationConfig(timeout_seconds=0.05, max_workers=1)
        with AnswerGenerator(service, config) as generator:
            _, answer = _answer(generator, make_question(text="Any career goals?"), StructuredProfile())
        assert answer.source == AnswerSource.FALLBACK
        assert "timed out" in answer.metadata["error"]

    def test_unmatched_option_falls_back(self, make_question, stub_service, generation_config):
        service = stub_service(reply="Klingon")
        question = make_question(text="Preferred language?", type="multiple-choice", options=["French", "German"])
        with AnswerGenerator(service, generation_config) as generator:
            _, answer = _answer(generator, question, StructuredProfile())
        assert answer.value == "French"
        assert answer.source == AnswerSource.FALLBACK

    def test_no_service_falls_back(self, make_question, generation_config):
        with AnswerGenerator(None, generation_config) as generator:
            _, answer = _answer(generator, make_question(text="Why us?"), StructuredProfile())
        assert answer.value == "Not specified"
        assert answer.source == AnswerSource.FALLBACK
        assert generator.generation_calls == 0

    def test_auto_fill_without_value_is_rerouted(self, make_question, stub_service, generation_config):
        question = make_question(text="Do you hold a certification?", type="yes/no", options=["Nope", "Not sure"])
        mapping = QuestionMapping(
            question_id=question.id, bucket=Bucket.AUTO_FILL, topic="certifications", confidence=1.0
        )
        profile = StructuredProfile(certifications=[CertificationEntry(name="CKA")])
        with AnswerGenerator(stub_service(reply="not sure"), generation_config) as generator:
            answer = generator.generate(question, profile, mapping)

        assert answer.value == "Not sure"
        assert answer.source == AnswerSource.AI_GENERATION
        assert answer.metadata["rerouted"] is True

    def test_no_match_has_no_answer(self, make_question, profile, generation_config):
        with AnswerGenerator(config=generation_config) as generator:
            mapping, answer = _answer(generator, make_question(text="Upload your CV", type="upload"), profile)
        assert mapping.bucket == Bucket.NO_MATCH
        assert answer is None

    def test_generate_all_skips_no_match(self, make_question, profile, stub_service, generation_config):
        questions = [
            make_question("a", "List your skills"),
            make_question("b", "Why us?"),
            make_question("c", "Upload your CV", type="upload"),
        ]
        mappings = QuestionClassifier().classify(profile, questions)
        with AnswerGenerator(stub_service(reply="Great culture"), generation_config) as generator:
            answers = generator.generate_all(questions, profile, mappings)
        assert set(answers) == {"a", "b"}
        assert answers["b"].value == "Great culture"


# ─────────────────────────────────────────────────────────────────────────────
# Prompting and parsing
# ─────────────────────────────────────────────────────────────────────────────

class TestPromptAndParsing:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ('"Yes"', "Yes"),
            ("'Five years'\nMore detail", "Five years"),
            ("\n\n  Answer: Remote work  \n", "Remote work"),
            ("   ", None),
        ],
    )
    def test_parse_free_text(self, raw, expected):
        assert parse_generated_answer(raw) == expected

    def test_parse_with_options(self):
        assert parse_generated_answer("javascript", ["Java", "JavaScript"]) == "JavaScript"
        assert parse_generated_answer("Cobol", ["Java", "JavaScript"]) is None

    def test_prompt_contains_profile_summary(self, profile):
        prompt = build_prompt("Why this role?", "general", profile)
        assert 'Question: "Why this role?"' in prompt
        assert "Skills: JavaScript, Python" in prompt
        assert "Experience: Senior Software Engineer at Acme Corp, Software Engineer at Globex" in prompt
        assert "Available Options" not in prompt

    def test_openai_service_without_key(self):
        service = OpenAIAnswerService(GenerationConfig(api_key=""))
        with pytest.raises(GenerationError, match="API key"):
            service.generate("prompt")
