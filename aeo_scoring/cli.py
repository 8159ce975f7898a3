"""Score a saved HTML page from the command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from aeo_scoring.categorizer import get_category_display_name
from aeo_scoring.config import get_settings
from aeo_scoring.engine import ScoringEngine
from aeo_scoring.exceptions import AeoScoringError
from aeo_scoring.models import DIMENSIONS, PageCategoryType, ProjectContext, Score
from aeo_scoring.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aeo-score", description="Score an HTML page for answer-engine readiness.")
    parser.add_argument("page", type=Path, help="Path to a saved HTML file")
    parser.add_argument("--url", required=True, help="URL the page was fetched from")
    parser.add_argument("--brand", default="", help="Brand name")
    parser.add_argument("--attribute", action="append", default=[], help="Key brand attribute (repeatable)")
    parser.add_argument("--keyword", action="append", default=[], help="Target keyword (repeatable)")
    parser.add_argument("--last-modified", help="Last-Modified value reported by the crawler")
    parser.add_argument("--no-llm", action="store_true", help="Disable all LLM calls")
    parser.add_argument("--json", action="store_true", help="Print the full score as JSON")
    return parser


def format_summary(score: Score, recommendations: List[str]) -> str:
    try:
        page_type = get_category_display_name(PageCategoryType(score.page_type))
    except ValueError:
        page_type = score.page_type
    lines = [
        f"{score.url}",
        f"  Page type: {page_type} ({score.analysis_level.value})",
        f"  Global score: {score.global_score}/100",
    ]
    if score.skipped_reason:
        lines.append(f"  Skipped: {score.skipped_reason}")
        return "\n".join(lines)

    for dimension in DIMENSIONS:
        category = score.category_scores[dimension]
        if category.applied_rules == 0:
            lines.append(f"  {dimension:<10} n/a")
            continue
        flag = f" [{category.severity}]" if category.severity else ""
        lines.append(
            f"  {dimension:<10} {category.score:>3}  ({category.passed_rules}/{category.applied_rules} rules passed){flag}"
        )
    lines.append(f"  Issues: {score.total_issues} ({score.critical_issues} critical)")
    if recommendations:
        lines.append("  Top recommendations:")
        lines.extend(f"    - {r}" for r in recommendations[:5])
    return "\n".join(lines)


async def _run(args: argparse.Namespace) -> int:
    html = args.page.read_text(encoding="utf-8", errors="replace")
    metadata = {"lastModified": args.last_modified} if args.last_modified else {}
    project = ProjectContext(brand_name=args.brand, key_attributes=args.attribute, keywords=args.keyword)

    async with ScoringEngine(use_llm=not args.no_llm) as engine:
        score = await engine.evaluate_page(args.url, html, metadata, project)
        recommendations = engine.recommendations(score)

    if args.json:
        payload = score.model_dump(mode="json")
        payload["recommendations"] = recommendations
        print(json.dumps(payload, indent=2))
    else:
        print(format_summary(score, recommendations))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json, settings.log_file)
    logger.set_run_id(uuid.uuid4().hex[:12])

    if not args.page.exists():
        logger.error(f"File not found: {args.page}")
        return 2
    try:
        return asyncio.run(_run(args))
    except AeoScoringError as e:
        logger.error(f"Scoring failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
