from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from . import line_sync
from .errors import (
    ChapterNotFoundError,
    CurrentVersionDeletionError,
    LineCountMismatchError,
    TranslationCancelledError,
    TranslationError,
    VersionNotFoundError,
)
from .glossary import GlossaryMatcher
from .llm import LLMClient, estimate_tokens
from .models import (
    Chapter,
    ChapterStatus,
    PromptPreset,
    ProviderConfig,
    StreamingChunk,
    TranslationProject,
    TranslationRequest,
    TranslationStats,
    TranslationVersion,
    count_words,
    utc_now,
)
from .pricing import PricingTable
from .prompts import PREVIOUS_CONTEXT_SEPARATOR, build_translation_prompt
from .stats import apply_commit, resync_totals
from .usage import UsageRecord, UsageTotals

logger = logging.getLogger("novtrans.orchestrator")

MANUAL_EDIT_LABEL = "Manual Edit"
MANUAL_SNAPSHOT_LABEL = "Manual Snapshot"


@dataclass(frozen=True)
class CommitResult:
    chapter_id: str
    version: TranslationVersion
    stats: TranslationStats
    matched_entry_ids: tuple[str, ...] = ()
    source_lines: int | None = None
    translated_lines: int | None = None

    @property
    def line_count_mismatch(self) -> bool:
        if self.source_lines is None or self.translated_lines is None:
            return False
        return self.source_lines != self.translated_lines


class TranslationOrchestrator:
    """Drives prompt -> provider -> commit for one chapter at a time.

    The project aggregate is passed to every call and mutated in place by
    the calling thread only. Concurrent commits for the same chapter must be
    prevented by the caller.
    """

    def __init__(
        self,
        matcher: GlossaryMatcher | None = None,
        pricing: PricingTable | None = None,
        usage: UsageTotals | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.matcher = matcher or GlossaryMatcher()
        self.pricing = pricing or PricingTable.empty()
        self.usage = usage
        self._clock = clock

    @staticmethod
    def _require_chapter(project: TranslationProject, chapter_id: str) -> Chapter:
        chapter = project.find_chapter(chapter_id)
        if chapter is None:
            raise ChapterNotFoundError(chapter_id)
        return chapter

    def gather_previous_context(self, project: TranslationProject, chapter: Chapter) -> str | None:
        config = project.translation_config
        if not config.include_previous_context:
            return None
        ordered = project.chapters_in_order()
        index = next((i for i, c in enumerate(ordered) if c.id == chapter.id), None)
        if index is None:
            return None
        count = max(1, int(config.previous_context_chapter_count))
        previous = ordered[max(0, index - count) : index]
        texts = [c.translated_content for c in previous if c.translated_content]
        return PREVIOUS_CONTEXT_SEPARATOR.join(texts) if texts else None

    def build_prompt(self, project: TranslationProject, chapter: Chapter, preset: PromptPreset | None = None) -> str:
        matches = self.matcher.detect_terms(chapter.raw_content, project.glossary)
        return build_translation_prompt(
            chapter.raw_content,
            matches,
            project.source_language,
            project.target_language,
            preset,
            project.translation_config,
            previous_context=self.gather_previous_context(project, chapter),
        )

    def translate_chapter(
        self,
        project: TranslationProject,
        chapter_id: str,
        client: LLMClient,
        model: str,
        *,
        provider_config: ProviderConfig | None = None,
        preset: PromptPreset | None = None,
        stream: bool = True,
        on_chunk: Callable[[StreamingChunk], None] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> CommitResult:
        """Translate one chapter and commit the result as its new current version.

        Provider errors propagate unchanged and leave the project untouched.
        Setting `cancel_event` stops a streamed translation at the next chunk
        boundary and raises `TranslationCancelledError`; partial text is dropped.
        """
        chapter = self._require_chapter(project, chapter_id)
        prompt = self.build_prompt(project, chapter, preset)
        request = TranslationRequest(
            prompt=prompt,
            model=model,
            config=provider_config or ProviderConfig(provider=client.provider),
        )

        previous_status = chapter.status
        chapter.status = ChapterStatus.IN_PROGRESS
        started = self._clock()
        try:
            if stream:
                text, input_tokens, output_tokens = self._run_stream(client, request, on_chunk, cancel_event)
            else:
                response = client.translate(request)
                text, input_tokens, output_tokens = response.text, response.input_tokens, response.output_tokens
            elapsed = self._clock() - started

            source_lines: int | None = None
            translated_lines: int | None = None
            config = project.translation_config
            if config.force_line_count_sync:
                text = line_sync.decode(text)
                if config.line_count_policy != "off":
                    source_lines = line_sync.count_lines(chapter.raw_content)
                    translated_lines = line_sync.count_lines(text)
                    if source_lines != translated_lines:
                        if config.line_count_policy == "strict":
                            raise LineCountMismatchError(source_lines, translated_lines)
                        logger.warning(
                            "Chapter %s: line count mismatch (source=%d, translation=%d)",
                            chapter.title,
                            source_lines,
                            translated_lines,
                        )
        except BaseException:
            chapter.status = previous_status
            raise

        if input_tokens is None:
            input_tokens = estimate_tokens(prompt)
        if output_tokens is None:
            output_tokens = estimate_tokens(text)

        return self.commit_translation(
            project,
            chapter_id,
            text,
            model=model,
            provider=client.provider.value,
            prompt=prompt,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            translation_time=elapsed,
            source_lines=source_lines,
            translated_lines=translated_lines,
        )

    @staticmethod
    def _run_stream(
        client: LLMClient,
        request: TranslationRequest,
        on_chunk: Callable[[StreamingChunk], None] | None,
        cancel_event: threading.Event | None,
    ) -> tuple[str, int | None, int | None]:
        parts: list[str] = []
        input_tokens: int | None = None
        output_tokens: int | None = None
        final_seen = False
        stream = client.stream_translate(request)
        try:
            for chunk in stream:
                if cancel_event is not None and cancel_event.is_set():
                    raise TranslationCancelledError("Translation cancelled by caller")
                parts.append(chunk.text)
                if chunk.is_final:
                    final_seen = True
                    input_tokens = chunk.input_tokens
                    output_tokens = chunk.output_tokens
                if on_chunk is not None:
                    on_chunk(chunk)
        finally:
            # Stop the producer (and its open response) whenever we leave early.
            if not final_seen:
                stream.cancel()
        return "".join(parts), input_tokens, output_tokens

    def commit_translation(
        self,
        project: TranslationProject,
        chapter_id: str,
        text: str,
        *,
        model: str,
        provider: str = "",
        prompt: str | None = None,
        input_tokens: int = 0,
        output_tokens: int = 0,
        translation_time: float = 0.0,
        source_lines: int | None = None,
        translated_lines: int | None = None,
    ) -> CommitResult:
        """Append `text` as the chapter's new current version and update stats and glossary usage.

        Everything is computed before the first mutation, so a failure leaves
        the project unchanged.
        """
        chapter = self._require_chapter(project, chapter_id)
        now = utc_now()
        tokens = max(0, int(input_tokens)) + max(0, int(output_tokens))
        first_translation = chapter.current_version is None
        version = TranslationVersion(
            version_number=chapter.next_version_number(),
            content=text,
            llm_model=model,
            prompt_used=prompt,
            tokens_used=tokens,
            translation_time=float(translation_time),
            is_current_version=True,
            created_date=now,
        )
        cost = self.pricing.cost_or_default(provider, model, input_tokens, output_tokens)
        new_stats = apply_commit(
            project.stats,
            project.chapters,
            chapter,
            tokens=tokens,
            translation_time=translation_time,
            cost=cost,
            first_translation=first_translation,
            now=now,
        )
        matches = self.matcher.detect_terms(chapter.raw_content, project.glossary)

        for existing in chapter.versions:
            existing.is_current_version = False
        chapter.versions.append(version)
        chapter.translated_content = text
        chapter.last_translated_date = now
        chapter.status = ChapterStatus.NEEDS_REVIEW
        project.stats = new_stats
        for match in matches:
            match.entry.usage_count += 1
            match.entry.last_used_date = now
        project.last_modified_date = now

        if self.usage is not None:
            self.usage.add(
                UsageRecord(
                    provider=provider,
                    model=model,
                    phase="translate",
                    input_tokens=int(input_tokens),
                    output_tokens=int(output_tokens),
                    cost=cost,
                    chapter_id=chapter.id,
                    duration_s=float(translation_time),
                )
            )
        logger.info(
            "Committed %s v%d (%d tokens, %.2fs)", chapter.title, version.version_number, tokens, translation_time
        )
        return CommitResult(
            chapter_id=chapter.id,
            version=version,
            stats=new_stats,
            matched_entry_ids=tuple(dict.fromkeys(m.entry.id for m in matches)),
            source_lines=source_lines,
            translated_lines=translated_lines,
        )

    def save_snapshot(self, project: TranslationProject, chapter_id: str, name: str) -> TranslationVersion:
        chapter = self._require_chapter(project, chapter_id)
        if chapter.current_version is None:
            raise TranslationError(f"Chapter {chapter.title!r} has no translation to snapshot")
        version = TranslationVersion(
            version_number=chapter.next_version_number(),
            content=chapter.translated_content,
            llm_model=MANUAL_SNAPSHOT_LABEL,
            name=name.strip() or None,
            is_current_version=False,
        )
        chapter.versions.append(version)
        project.last_modified_date = utc_now()
        return version

    def revert_to_version(self, project: TranslationProject, chapter_id: str, version_id: str) -> TranslationVersion:
        chapter = self._require_chapter(project, chapter_id)
        target = chapter.find_version(version_id)
        if target is None:
            raise VersionNotFoundError(version_id)
        for version in chapter.versions:
            version.is_current_version = version is target
        chapter.translated_content = target.content
        project.last_modified_date = utc_now()
        return target

    def delete_version(self, project: TranslationProject, chapter_id: str, version_id: str) -> None:
        chapter = self._require_chapter(project, chapter_id)
        target = chapter.find_version(version_id)
        if target is None:
            raise VersionNotFoundError(version_id)
        if target.is_current_version:
            raise CurrentVersionDeletionError(version_id)
        chapter.versions.remove(target)
        project.last_modified_date = utc_now()

    def apply_manual_edit(
        self,
        project: TranslationProject,
        chapter_id: str,
        *,
        raw_content: str | None = None,
        translated_content: str | None = None,
    ) -> TranslationVersion | None:
        """Apply hand edits to a chapter.

        An edited translation becomes a new current version labelled "Manual Edit";
        earlier versions keep their content. Stats and glossary usage are not touched
        apart from resyncing word totals after a source edit.
        """
        chapter = self._require_chapter(project, chapter_id)
        version: TranslationVersion | None = None
        if translated_content is not None and translated_content != chapter.translated_content:
            version = TranslationVersion(
                version_number=chapter.next_version_number(),
                content=translated_content,
                llm_model=MANUAL_EDIT_LABEL,
                is_current_version=True,
            )
        if raw_content is not None and raw_content != chapter.raw_content:
            chapter.raw_content = raw_content
            chapter.word_count = count_words(raw_content)
            project.stats = resync_totals(project.stats, project.chapters)
        if version is not None:
            for existing in chapter.versions:
                existing.is_current_version = False
            chapter.versions.append(version)
            chapter.translated_content = version.content
        project.last_modified_date = utc_now()
        return version
