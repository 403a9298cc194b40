"""Collaborator interfaces around the pipeline and simple local implementations."""

import threading
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol, Union

from profile_prefill.logger import get_logger
from profile_prefill.models import Answer, Question, QuestionMapping, StructuredProfile

logger = get_logger(__name__)


class FileStore(Protocol):
    def delete(self, handle: str) -> None:
        ...


class QuestionSource(Protocol):
    def list_active(self) -> list[Question]:
        ...


class ProfileSink(Protocol):
    def record(
        self,
        profile: StructuredProfile,
        mappings: list[QuestionMapping],
        answers: dict[str, Answer],
    ) -> None:
        ...


class LocalFileStore:
    """Deletes uploaded temporary files from the local filesystem.

    Handles outside ``root`` are refused when a root is configured.
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root).resolve() if root is not None else None

    def delete(self, handle: str) -> None:
        path = Path(handle).resolve()
        if self.root is not None and self.root not in path.parents:
            raise ValueError(f"Refusing to delete {path}: outside {self.root}")
        path.unlink(missing_ok=True)
        logger.debug("Temporary file deleted", extra_data={"path": str(path)})


class StaticQuestionSource:
    """Question source over a fixed list; dicts are converted with ``Question.from_dict``."""

    def __init__(self, questions: Iterable[Union[Question, dict[str, Any]]] = ()):
        self._questions = [q if isinstance(q, Question) else Question.from_dict(q) for q in questions]

    def list_active(self) -> list[Question]:
        return list(self._questions)


class InMemoryProfileSink:
    """Keeps every recorded run in a list, mostly for tests and local runs."""

    def __init__(self):
        self.records: list[tuple[StructuredProfile, list[QuestionMapping], dict[str, Answer]]] = []
        self._lock = threading.Lock()

    def record(
        self,
        profile: StructuredProfile,
        mappings: list[QuestionMapping],
        answers: dict[str, Answer],
    ) -> None:
        with self._lock:
            self.records.append((profile, list(mappings), dict(answers)))
