"""Folding per-document profile fragments into one canonical profile."""

from dataclasses import fields
from typing import Any, Iterable, Optional, Sequence

from profile_prefill.logger import get_logger
from profile_prefill.models import (
    LIST_FIELDS,
    ContactInfo,
    ParsedDocument,
    PersonalInfo,
    StructuredProfile,
)

logger = get_logger(__name__)

# Attributes identifying a structured list item, drawn from name, title, degree
# and company; compared case-insensitively
DEDUP_KEYS: dict[str, tuple[str, ...]] = {
    "education": ("degree",),
    "experience": ("title", "company"),
    "certifications": ("name",),
    "projects": ("name",),
    "achievements": ("title",),
}


def dedup_key(field_name: str, item: Any) -> tuple[str, ...]:
    """Case-insensitive identity of a list item within ``field_name``."""
    if isinstance(item, str):
        return (item.strip().lower(),)
    return tuple((getattr(item, attr, None) or "").strip().lower() for attr in DEDUP_KEYS[field_name])


def dedupe(field_name: str, items: Iterable[Any], limit: Optional[int] = None) -> list:
    """Keep the first occurrence of each key, in order, up to ``limit`` items."""
    seen = set()
    kept = []
    for item in items:
        key = dedup_key(field_name, item)
        if key in seen:
            continue
        seen.add(key)
        kept.append(item)
        if limit is not None and len(kept) >= limit:
            break
    return kept


def _first_non_empty(values: Iterable[Optional[str]]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


class ProfileMerger:
    """Merges StructuredProfile fragments in input order.

    Singular values keep the first non-empty occurrence; list fields are
    concatenated with later duplicates dropped. Merging a profile with
    itself leaves its list fields unchanged.
    """

    def merge(self, fragments: Sequence[StructuredProfile]) -> StructuredProfile:
        merged = StructuredProfile(
            personal_info=PersonalInfo(
                **{
                    f.name: _first_non_empty(getattr(p.personal_info, f.name) for p in fragments)
                    for f in fields(PersonalInfo)
                }
            ),
            contact_info=ContactInfo(
                **{
                    f.name: _first_non_empty(getattr(p.contact_info, f.name) for p in fragments)
                    for f in fields(ContactInfo)
                }
            ),
            objective=_first_non_empty(p.objective for p in fragments),
            summary=_first_non_empty(p.summary for p in fragments),
        )

        for name in LIST_FIELDS:
            combined = [item for fragment in fragments for item in getattr(fragment, name)]
            setattr(merged, name, dedupe(name, combined))

        logger.info(
            "Profiles merged",
            extra_data={
                "fragments": len(fragments),
                **{name: len(getattr(merged, name)) for name in LIST_FIELDS},
            },
        )
        return merged

    def merge_documents(self, parsed_documents: Sequence[ParsedDocument]) -> StructuredProfile:
        """Merge the fragments of successfully parsed documents."""
        fragments = [
            doc.structured_data
            for doc in parsed_documents
            if doc.success and doc.structured_data is not None
        ]
        skipped = len(parsed_documents) - len(fragments)
        if skipped:
            logger.debug("Skipping failed documents in merge", extra_data={"skipped": skipped})
        return self.merge(fragments)
