from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def _new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def count_words(text: str) -> int:
    return len(text.split())


class GlossaryCategory(str, Enum):
    CHARACTER = "character"
    PLACE = "place"
    EVENT = "event"
    OBJECT = "object"
    CONCEPT = "concept"
    ORGANIZATION = "organization"
    TECHNIQUE = "technique"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: object) -> "GlossaryCategory":
        raw = str(value or "").strip().lower()
        for member in cls:
            if member.value == raw:
                return member
        return cls.OTHER


@dataclass
class GlossaryEntry:
    original_term: str
    translation: str
    category: GlossaryCategory = GlossaryCategory.OTHER
    context_description: str = ""
    aliases: list[str] = field(default_factory=list)
    is_active: bool = True
    usage_count: int = 0
    last_used_date: datetime | None = None
    created_date: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=_new_id)


@dataclass(frozen=True)
class GlossaryMatch:
    """One occurrence of a glossary entry in a text.

    `start`/`end` are character offsets into the scanned text (end exclusive).
    `matched_alias` is None when the original term (or translation) matched.
    """

    entry: GlossaryEntry
    start: int
    end: int
    matched_alias: str | None = None


@dataclass(frozen=True)
class PromptPreset:
    name: str = "Default"
    prompt: str = ""
    provide_example: bool = False
    example_raw_text: str = ""
    example_translated_text: str = ""


@dataclass(frozen=True)
class TranslationConfig:
    force_line_count_sync: bool = False
    include_previous_context: bool = False
    previous_context_chapter_count: int = 1
    # What to do when decoded output has a different line count: 'off' | 'warn' | 'strict'
    line_count_policy: str = "warn"


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    DEEPSEEK = "deepseek"
    OLLAMA = "ollama"
    OPENROUTER = "openrouter"
    CUSTOM = "custom"
    MOCK = "mock"


@dataclass(frozen=True)
class ProviderConfig:
    provider: Provider = Provider.MOCK
    # Opaque key handed to the credential store; defaults per provider when None.
    api_key_identifier: str | None = None
    base_url: str | None = None
    temperature: float = 0.3
    max_tokens: int = 8192
    timeout_s: float = 120.0
    # OpenRouter attribution headers.
    site_url: str | None = None
    app_name: str | None = None


@dataclass(frozen=True)
class TranslationRequest:
    prompt: str
    model: str
    config: ProviderConfig = ProviderConfig()


@dataclass(frozen=True)
class TranslationResponse:
    text: str
    input_tokens: int | None = None
    output_tokens: int | None = None
    model_used: str = ""
    finish_reason: str | None = None


@dataclass(frozen=True)
class StreamingChunk:
    text: str = ""
    input_tokens: int | None = None
    output_tokens: int | None = None
    finish_reason: str | None = None
    is_final: bool = False


@dataclass
class TranslationVersion:
    version_number: int
    content: str
    llm_model: str = ""
    name: str | None = None
    prompt_used: str | None = None
    tokens_used: int | None = None
    translation_time: float | None = None
    is_current_version: bool = False
    created_date: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=_new_id)


class ChapterStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NEEDS_REVIEW = "needs_review"


@dataclass
class Chapter:
    title: str
    chapter_number: int
    raw_content: str
    translated_content: str = ""
    word_count: int | None = None
    status: ChapterStatus = ChapterStatus.PENDING
    versions: list[TranslationVersion] = field(default_factory=list)
    last_translated_date: datetime | None = None
    created_date: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        if self.word_count is None:
            self.word_count = count_words(self.raw_content)

    @property
    def current_version(self) -> TranslationVersion | None:
        for version in self.versions:
            if version.is_current_version:
                return version
        return None

    def find_version(self, version_id: str) -> TranslationVersion | None:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None

    def next_version_number(self) -> int:
        return max((v.version_number for v in self.versions), default=0) + 1


@dataclass
class TranslationStats:
    total_chapters: int = 0
    completed_chapters: int = 0
    total_words: int = 0
    translated_words: int = 0
    total_tokens_used: int = 0
    estimated_cost: float = 0.0
    average_translation_time: float = 0.0
    # Number of commits folded into average_translation_time.
    timed_translations: int = 0
    last_updated: datetime = field(default_factory=utc_now)


@dataclass
class TranslationProject:
    name: str
    source_language: str
    target_language: str
    chapters: list[Chapter] = field(default_factory=list)
    glossary: list[GlossaryEntry] = field(default_factory=list)
    stats: TranslationStats = field(default_factory=TranslationStats)
    translation_config: TranslationConfig = TranslationConfig()
    last_modified_date: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=_new_id)

    def find_chapter(self, chapter_id: str) -> Chapter | None:
        for chapter in self.chapters:
            if chapter.id == chapter_id:
                return chapter
        return None

    def chapters_in_order(self) -> list[Chapter]:
        return sorted(self.chapters, key=lambda c: c.chapter_number)
