from __future__ import annotations

from pathlib import Path

from tqdm import tqdm

from .config import AppConfig
from .credentials import CredentialStore
from .glossary import load_glossary
from .llm import LLMClient, build_llm_client
from .logging_utils import setup_logging
from .models import Chapter, TranslationProject
from .orchestrator import TranslationOrchestrator
from .pricing import PricingTable, load_pricing_table
from .prompts import load_prompt_preset
from .stats import resync_totals
from .usage import UsageTotals


def output_path_for(input_path: Path, output_dir: Path, target_language: str) -> Path:
    suffix = target_language.strip().lower().replace(" ", "_") or "out"
    return output_dir / f"{input_path.stem}.{suffix}.txt"


def load_project(cfg: AppConfig, input_paths: list[Path]) -> TranslationProject:
    """Build a project with one chapter per input file, numbered in argument order."""
    chapters = [
        Chapter(title=p.stem, chapter_number=i, raw_content=p.read_text(encoding="utf-8"))
        for i, p in enumerate(input_paths, start=1)
    ]
    glossary = load_glossary(cfg.glossary_path) if cfg.glossary_path else []
    project = TranslationProject(
        name=cfg.project_name,
        source_language=cfg.source_language,
        target_language=cfg.target_language,
        chapters=chapters,
        glossary=glossary,
        translation_config=cfg.translation,
    )
    project.stats = resync_totals(project.stats, project.chapters)
    return project


def translate_text_files(
    input_paths: list[Path],
    output_dir: Path,
    cfg: AppConfig,
    *,
    client: LLMClient | None = None,
    credentials: CredentialStore | None = None,
) -> tuple[TranslationProject, UsageTotals]:
    logger = setup_logging(Path(cfg.log_path) if cfg.log_path else None)

    pricing = (
        load_pricing_table(cfg.pricing_path, currency=cfg.pricing_currency)
        if cfg.pricing_path
        else PricingTable.empty(currency=cfg.pricing_currency)
    )
    preset = load_prompt_preset(cfg.preset_path) if cfg.preset_path else None
    provider_config = cfg.llm.provider_config()
    if client is None:
        client = build_llm_client(provider_config, credentials)

    project = load_project(cfg, input_paths)
    usage = UsageTotals(currency=pricing.currency)
    orchestrator = TranslationOrchestrator(pricing=pricing, usage=usage)
    output_dir.mkdir(parents=True, exist_ok=True)

    logger.info(
        "Translating %d chapter(s) %s -> %s with %s/%s",
        len(project.chapters),
        project.source_language,
        project.target_language,
        provider_config.provider.value,
        cfg.llm.model,
    )
    for path, chapter in tqdm(list(zip(input_paths, project.chapters)), desc="Translate", unit="chapter"):
        result = orchestrator.translate_chapter(
            project,
            chapter.id,
            client,
            cfg.llm.model,
            provider_config=provider_config,
            preset=preset,
            stream=cfg.llm.stream,
        )
        if result.line_count_mismatch:
            logger.warning("%s needs review: line count differs from source", chapter.title)
        out_path = output_path_for(path, output_dir, project.target_language)
        out_path.write_text(chapter.translated_content, encoding="utf-8")
        logger.debug("Wrote %s", out_path)

    return project, usage
