"""External answer-generation collaborator and prompt construction."""

import re
import threading
from typing import Optional, Protocol, Sequence

from openai import OpenAI, OpenAIError

from profile_prefill.classifier import match_option
from profile_prefill.config import GenerationConfig
from profile_prefill.exceptions import GenerationError
from profile_prefill.logger import get_logger
from profile_prefill.models import StructuredProfile

logger = get_logger(__name__)

_ANSWER_LABEL = re.compile(r"^answer\s*:\s*", re.IGNORECASE)

SYSTEM_PROMPT = (
    "You are an expert career counselor and resume analyst. Provide direct, accurate answers "
    "based on the provided document content and question context. For multiple-choice "
    "questions, select the best matching option. For text questions, provide concise, "
    "relevant answers."
)


class AnswerGenerationService(Protocol):
    """Anything that turns a prompt into free text.

    Implementations may raise any exception; callers treat every failure
    as "no answer" and fall back.
    """

    model: str

    def generate(self, prompt: str) -> str:
        ...


class OpenAIAnswerService:
    """Chat-completions backed generation service."""

    def __init__(self, config: Optional[GenerationConfig] = None, client: Optional[OpenAI] = None):
        self.config = config or GenerationConfig.from_env()
        self.model = self.config.model
        self._client = client
        self._lock = threading.Lock()
        self.token_usage = {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self.config.api_key:
                raise GenerationError("OpenAI API key not configured")
            self._client = OpenAI(api_key=self.config.api_key, timeout=self.config.timeout_seconds)
        return self._client

    def generate(self, prompt: str) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
        except OpenAIError as exc:
            raise GenerationError(f"Generation request failed: {exc}") from exc

        if response.usage is not None:
            with self._lock:
                self.token_usage["prompt_tokens"] += response.usage.prompt_tokens or 0
                self.token_usage["completion_tokens"] += response.usage.completion_tokens or 0
                self.token_usage["total_tokens"] += response.usage.total_tokens or 0

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationError("Generation returned no content")
        logger.debug(
            "Generation completed",
            extra_data={
                "model": self.model,
                "total_tokens": response.usage.total_tokens if response.usage is not None else 0,
            },
        )
        return content


def summarize_profile(profile: StructuredProfile) -> str:
    """Compact multi-line description of a profile for prompting."""
    lines = []
    if profile.personal_info.name:
        lines.append(f"Name: {profile.personal_info.name}")
    if profile.education:
        lines.append("Education: " + ", ".join(f"{e.degree} in {e.field}" for e in profile.education))
    if profile.experience:
        lines.append("Experience: " + ", ".join(f"{e.title} at {e.company}" for e in profile.experience))
    if profile.skills:
        lines.append("Skills: " + ", ".join(profile.skills))
    if profile.certifications:
        lines.append("Certifications: " + ", ".join(c.name for c in profile.certifications))
    if profile.languages:
        lines.append("Languages: " + ", ".join(profile.languages))
    if profile.projects:
        lines.append("Projects: " + ", ".join(p.name for p in profile.projects))
    if profile.objective:
        lines.append(f"Objective: {profile.objective}")
    if profile.summary:
        lines.append(f"Summary: {profile.summary}")
    return "\n".join(lines)


def build_prompt(question_text: str, topic: str, profile: StructuredProfile, options: Sequence[str] = ()) -> str:
    prompt = (
        "Based on the following resume/CV content, provide a DIRECT ANSWER for this question:\n\n"
        f'Question: "{question_text}"\n'
        f"Question Type: {topic}\n\n"
        "Document Content Summary:\n"
        f"{summarize_profile(profile) or 'No structured information was extracted.'}\n\n"
    )
    if options:
        prompt += (
            f"Available Options: {', '.join(options)}\n\n"
            "IMPORTANT: You must select ONE option from the list above that best matches the document content.\n"
            "- For yes/no questions: Answer \"Yes\" or \"No\" based on the document content\n"
            "- Use EXACTLY the same text as in the options list\n"
            "- Do not generate new options or variations\n\n"
            "Please respond with ONLY the selected answer, nothing else.\n\n"
            "Answer:"
        )
    else:
        prompt += (
            "Please provide a direct answer based on the document content.\n"
            "- For yes/no questions: Answer \"Yes\" or \"No\"\n"
            "- For text questions: Provide a concise, relevant answer\n"
            "- Keep answers brief and professional\n\n"
            "Answer:"
        )
    return prompt


def parse_generated_answer(raw: str, options: Sequence[str] = ()) -> Optional[str]:
    """First non-empty line of ``raw`` without surrounding quotes.

    With options, the line must match one of them and the option text is
    returned; None means the output is unusable.
    """
    line = next((candidate.strip() for candidate in (raw or "").splitlines() if candidate.strip()), "")
    line = _ANSWER_LABEL.sub("", line).strip("\"'“”‘’`").strip()
    if not line:
        return None
    if options:
        return match_option(line, options)
    return line
