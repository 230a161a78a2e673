"""Command line interface for recall.

Commands:
    recall classify TEXT    - Classify an utterance
    recall entities TEXT    - Extract entities from an utterance
    recall patterns         - Show the intent pattern table

Use --no-models to skip loading the embedding, NER and zero-shot models.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import NLUConfig
from .core import ModelContext, ModelRegistry
from .core.intent import (
    EntityExtractor,
    IntentConfidence,
    IntentParser,
    IntentPatternMatcher,
    IntentType,
)

console = Console()
logger = logging.getLogger(__name__)

# Display colour per confidence band
LEVEL_COLORS = {"high": "green", "medium": "cyan", "low": "yellow", "none": "red"}


def setup_logging() -> None:
    """Configure rotating file logging under ~/.recall/logs/.

    Uses INFO level by default; set RECALL_DEBUG=1 for DEBUG level.
    """
    log_dir = Path.home() / ".recall" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    # Restrict directory permissions to owner only (700)
    log_dir.chmod(0o700)

    log_level = logging.DEBUG if os.environ.get("RECALL_DEBUG") else logging.INFO

    # Configure rotating file handler (5MB max, keep 3 backups)
    handler = RotatingFileHandler(
        log_dir / "recall.log",
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)


async def _load_context(config: NLUConfig, use_models: bool) -> tuple[ModelContext, ModelRegistry | None]:
    if not use_models:
        return ModelContext.degraded(), None
    registry = ModelRegistry(config)
    with console.status("[dim]Loading models...[/dim]"):
        context = await registry.initialize()
    return context, registry


def classify_text(args: argparse.Namespace) -> int:
    """Classify an utterance and print the result.

    Args:
        args: Parsed arguments (text, context, no_models, json)

    Returns:
        Exit code (0 for success)
    """
    config = NLUConfig.load(Path(args.project_path).resolve())

    async def _run():
        context, registry = await _load_context(config, not args.no_models)
        try:
            return await IntentParser(context, config).classify(args.text, args.context)
        finally:
            if registry is not None:
                await registry.teardown()

    result = asyncio.run(_run())

    if args.json:
        console.print_json(json.dumps(result.to_dict()))
        return 0

    color = LEVEL_COLORS[IntentConfidence.level(result.confidence)]
    console.print(f"[bold {color}]{result.intent.value}[/bold {color}] ({result.confidence:.2f})")
    console.print(f"  Method: {result.method.value}")
    console.print(f"  [dim]{result.reasoning}[/dim]")
    if result.needs_clarification():
        console.print(f"  [yellow]{result.clarification_prompt()}[/yellow]")
    return 0


def show_entities(args: argparse.Namespace) -> int:
    """Extract entities from an utterance and print them as a table.

    Args:
        args: Parsed arguments (text, no_models, json)

    Returns:
        Exit code (0 for success)
    """
    config = NLUConfig.load(Path(args.project_path).resolve())

    async def _run():
        context, registry = await _load_context(config, not args.no_models)
        extractor = EntityExtractor(
            ner=context.ner,
            patterns=config.entity_patterns,
            min_score=config.thresholds.ner_min_score,
            max_input_length=config.max_input_length,
        )
        try:
            return await extractor.extract(args.text)
        finally:
            if registry is not None:
                await registry.teardown()

    entities = asyncio.run(_run())

    if args.json:
        console.print_json(json.dumps([e.to_dict() for e in entities]))
        return 0

    if not entities:
        console.print("[dim]No entities found.[/dim]")
        return 0

    table = Table(title="Entities")
    table.add_column("Type", style="cyan")
    table.add_column("Value")
    table.add_column("Normalized")
    table.add_column("Confidence", justify="right")
    table.add_column("Source", style="dim")

    for entity in entities:
        table.add_row(
            entity.type.value,
            entity.value,
            entity.normalized_value or "",
            f"{entity.confidence:.2f}",
            entity.source.value,
        )

    console.print(table)
    return 0


def show_patterns(args: argparse.Namespace) -> int:
    """Show the intent pattern table.

    Args:
        args: Parsed arguments (intent)

    Returns:
        Exit code (0 for success, 1 for an unknown intent)
    """
    config = NLUConfig.load(Path(args.project_path).resolve())
    matcher = IntentPatternMatcher(config.intent_patterns)

    intents = matcher.intents
    if args.intent:
        try:
            intents = [IntentType(args.intent)]
        except ValueError:
            console.print(f"[red]Unknown intent:[/red] {args.intent}")
            return 1

    table = Table(title="Intent Patterns")
    table.add_column("Intent", style="cyan")
    table.add_column("Pattern")

    for intent in intents:
        for pattern in matcher.patterns_for(intent):
            table.add_row(intent.value, pattern)

    console.print(table)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="recall",
        description="recall: intent classification and entity extraction",
    )
    parser.add_argument(
        "--project",
        "-p",
        dest="project_path",
        default=".",
        help="Path containing .recall/config.yaml (default: current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # =========================================================================
    # classify
    # =========================================================================
    classify_parser = subparsers.add_parser("classify", help="Classify an utterance")
    classify_parser.add_argument("text", help="Utterance to classify")
    classify_parser.add_argument(
        "--context",
        "-c",
        help="Secondary text (e.g. the previous reply) used as extra evidence",
    )
    classify_parser.add_argument(
        "--no-models",
        action="store_true",
        help="Skip model loading (patterns and Naive Bayes only)",
    )
    classify_parser.add_argument("--json", action="store_true", help="Print JSON")
    classify_parser.set_defaults(func=classify_text)

    # =========================================================================
    # entities
    # =========================================================================
    entities_parser = subparsers.add_parser("entities", help="Extract entities")
    entities_parser.add_argument("text", help="Utterance to scan")
    entities_parser.add_argument(
        "--no-models",
        action="store_true",
        help="Skip model loading (regex extraction only)",
    )
    entities_parser.add_argument("--json", action="store_true", help="Print JSON")
    entities_parser.set_defaults(func=show_entities)

    # =========================================================================
    # patterns
    # =========================================================================
    patterns_parser = subparsers.add_parser("patterns", help="Show the intent pattern table")
    patterns_parser.add_argument(
        "--intent",
        "-i",
        help="Only show patterns for this intent (e.g. 'memory_store')",
    )
    patterns_parser.set_defaults(func=show_patterns)

    return parser


def run_cli(args: list[str] | None = None) -> int:
    """Run the CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not hasattr(parsed, "func"):
        parser.print_help()
        return 0

    try:
        return parsed.func(parsed)
    except KeyboardInterrupt:
        console.print("\n[dim]Cancelled.[/dim]")
        return 130
    except Exception as e:
        logger.exception("Command failed")
        console.print(f"[red]Error:[/red] {e}")
        return 1


def main() -> None:
    """Console script entry point."""
    setup_logging()
    raise SystemExit(run_cli())


__all__ = [
    "classify_text",
    "create_parser",
    "main",
    "run_cli",
    "setup_logging",
    "show_entities",
    "show_patterns",
]
