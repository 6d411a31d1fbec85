from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from .models import Chapter, TranslationStats, utc_now


def resync_totals(stats: TranslationStats, chapters: list[Chapter]) -> TranslationStats:
    total_chapters = len(chapters)
    total_words = sum(int(c.word_count or 0) for c in chapters)
    if stats.total_chapters == total_chapters and stats.total_words == total_words:
        return stats
    return replace(stats, total_chapters=total_chapters, total_words=total_words)


def apply_commit(
    stats: TranslationStats,
    chapters: list[Chapter],
    chapter: Chapter,
    *,
    tokens: int,
    translation_time: float,
    cost: float,
    first_translation: bool,
    now: datetime | None = None,
) -> TranslationStats:
    """Return the stats after one committed translation. `stats` is not modified.

    The running average covers every committed translation, so it is the
    arithmetic mean of all commit durations.
    """
    updated = resync_totals(stats, chapters)

    completed = updated.completed_chapters
    translated_words = updated.translated_words
    if first_translation:
        completed += 1
        translated_words += int(chapter.word_count or 0)

    timed = updated.timed_translations + 1
    average = (updated.average_translation_time * updated.timed_translations + float(translation_time)) / timed

    return replace(
        updated,
        completed_chapters=completed,
        translated_words=translated_words,
        total_tokens_used=updated.total_tokens_used + max(0, int(tokens)),
        estimated_cost=updated.estimated_cost + max(0.0, float(cost)),
        average_translation_time=average,
        timed_translations=timed,
        last_updated=now or utc_now(),
    )
