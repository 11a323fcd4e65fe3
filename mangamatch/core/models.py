"""Data model shared by the matcher, the candidate cache, and callers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# Pipeline sentinel for "no usable match", distinct from a genuine 0.0 score
NO_MATCH = -1.0

NOVEL_FORMATS = frozenset({"NOVEL", "LIGHT_NOVEL"})


class MangaTitles(BaseModel):
    """Named title fields of a catalogue record."""

    model_config = {"frozen": True}

    romaji: str | None = None
    english: str | None = None
    native: str | None = None


class TitleRecord(BaseModel):
    """A catalogue candidate scored against a query title.

    Validates the catalogue's JSON shape (``title`` and ``isAdult`` keys,
    unknown keys ignored) so records read back from persisted cache blobs
    are checked before they reach the matcher. ``model_dump(by_alias=True)``
    writes the same shape back.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    id: int | None = None
    titles: MangaTitles = Field(default_factory=MangaTitles, alias="title")
    synonyms: tuple[str, ...] = ()
    format: str | None = None
    chapters: int | None = None
    volumes: int | None = None
    is_adult: bool = Field(default=False, alias="isAdult")

    @field_validator("titles", mode="before")
    @classmethod
    def _null_titles(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("synonyms", mode="before")
    @classmethod
    def _null_synonyms(cls, value: Any) -> Any:
        return () if value is None else value

    @field_validator("is_adult", mode="before")
    @classmethod
    def _null_adult(cls, value: Any) -> Any:
        return False if value is None else value

    @property
    def is_novel(self) -> bool:
        return self.format in NOVEL_FORMATS

    def all_titles(self) -> list[str]:
        """Return english, romaji, native, then synonyms, skipping blanks."""
        titles = [self.titles.english, self.titles.romaji, self.titles.native]
        titles.extend(self.synonyms)
        return [t for t in titles if t]


@dataclass(frozen=True)
class NormalizedTitle:
    """A candidate title in canonical form.

    ``original`` keeps the lightly processed text for heuristics that need
    word boundaries (article-only difference detection).
    """

    text: str
    source: str
    original: str


@dataclass
class MatchResult:
    """Score of a single candidate (0-1 pipeline, 0-100 raw, or -1)."""

    score: float
    manga: TitleRecord | None = None
    reason: str = ""
    stage: str = ""

    @property
    def is_match(self) -> bool:
        return self.score != NO_MATCH and self.score > 0


@dataclass(frozen=True)
class TitleScore:
    """Confidence of a candidate against a query, with the field that won."""

    confidence: int
    is_exact_match: bool
    matched_field: str


@dataclass(frozen=True)
class RankedMatch:
    manga: TitleRecord
    confidence: int

    @property
    def id(self) -> int | None:
        return self.manga.id


@dataclass
class MatchOutcome:
    """Best matches of one query title over a candidate list."""

    query: str
    matches: list[RankedMatch]
    status: Literal["matched", "pending"]
    selected_match: TitleRecord | None
    match_date: str


class CacheEntry(BaseModel):
    """Candidates cached for a key, with a write timestamp in milliseconds.

    Dumps by alias to the persisted manga-cache shape
    ``{"manga": [...], "timestamp": ms}``.
    """

    model_config = {"populate_by_name": True}

    candidates: list[TitleRecord] = Field(alias="manga")
    timestamp: int


@dataclass(frozen=True)
class ClearTitlesResult:
    cleared_count: int
    remaining: int
    not_found: int
