"""
Command-line interface for NDA Analysis.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import click
import structlog
from pydantic import ValidationError

from nda_analysis.config import get_settings
from nda_analysis.errors import AnalysisError, ValidationGateError
from nda_analysis.logging_config import configure_logging
from nda_analysis.models.reference import ReferenceItem
from nda_analysis.models.taxonomy import Perspective

logger = structlog.get_logger(__name__)


def load_document(path: Path) -> dict[str, Any]:
    """
    Load a document mapping from a JSON file.

    The file holds `{document_id, title, raw_text, chunks}`; document_id
    defaults to the file stem and title to the file name.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path} does not contain a JSON object")
    data.setdefault("document_id", Path(path).stem)
    data.setdefault("title", Path(path).name)
    data.setdefault("chunks", [])
    return data


def load_references(path: Path) -> list[ReferenceItem]:
    """Load reference passages from a JSON Lines file, skipping blank lines."""
    references = []
    with Path(path).open(encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise click.BadParameter(f"{path}:{line_number}: {e.msg}")
            if not isinstance(record, dict):
                raise click.BadParameter(f"{path}:{line_number}: expected a JSON object")
            try:
                references.append(ReferenceItem.model_validate({**record, "similarity": 1.0}))
            except ValidationError as e:
                fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
                raise click.BadParameter(f"{path}:{line_number}: invalid reference ({fields})")
    return references


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Render logs as JSON")
@click.pass_context
def cli(ctx: click.Context, debug: bool, json_logs: bool) -> None:
    """NDA Analysis: evidence-grounded NDA review."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    configure_logging(
        level="DEBUG" if debug else None,
        json_output=True if json_logs else None,
    )


# =========================================================================
# Analysis Commands
# =========================================================================


@cli.command()
@click.argument("document_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--perspective",
    type=click.Choice([p.value for p in Perspective]),
    default=Perspective.BALANCED.value,
    help="Party the risk assessment is written for",
)
@click.option("--output", "-o", type=click.Path(), help="Output file for results")
def analyze(document_path: str, perspective: str, output: Optional[str]) -> None:
    """Analyze an NDA document (JSON with pre-chunked text)."""
    from nda_analysis.pipeline.orchestrator import get_analysis_orchestrator

    document = load_document(Path(document_path))

    async def run_analysis():
        orchestrator = get_analysis_orchestrator()
        return await orchestrator.analyze(document, perspective=Perspective(perspective))

    try:
        result = asyncio.run(run_analysis())
    except ValidationGateError as e:
        click.echo(f"Error: {e.user_message}", err=True)
        if e.suggestion:
            click.echo(f"Suggestion: {e.suggestion}", err=True)
        raise SystemExit(1)
    except AnalysisError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"\nDocument: {result.document_id}")
    click.echo(f"Status: {result.status.value}")
    click.echo(f"Clauses: {len(result.classification.clauses)}")
    click.echo(
        f"Overall risk: {result.risk.overall_risk_level.value} "
        f"({result.risk.overall_risk_score}/100)"
    )
    click.echo(f"Gap score: {result.gaps.gap_score}/100")
    click.echo(f"Coverage: {result.gaps.coverage_summary.coverage_percent}%")
    click.echo(f"\n{result.risk.executive_summary}")

    total = result.budget_usage.get("total", {})
    click.echo(
        f"\nTokens: {total.get('total', 0)} "
        f"(est. ${total.get('estimated_cost', 0.0):.4f})"
    )
    if result.duration_seconds:
        click.echo(f"Duration: {result.duration_seconds:.2f}s")

    if output:
        Path(output).write_text(json.dumps(result.to_dict(), indent=2))
        click.echo(f"\nResults written to: {output}")


# =========================================================================
# Reference Commands
# =========================================================================


@cli.command("ingest-references")
@click.argument("references_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--batch-size", default=64, help="Passages embedded per batch")
def ingest_references(references_path: str, batch_size: int) -> None:
    """Embed and store reference passages from a JSON Lines file."""
    from nda_analysis.services.embedding_service import get_embedding_service
    from nda_analysis.storage.reference_store import get_reference_store

    references = load_references(Path(references_path))
    if not references:
        click.echo("No reference passages found.", err=True)
        return

    embeddings = get_embedding_service()
    store = get_reference_store()

    click.echo(f"Ingesting {len(references)} reference passage(s)...")

    stored = 0
    for start in range(0, len(references), batch_size):
        batch = references[start:start + batch_size]
        vectors = embeddings.embed_batch([ref.content for ref in batch])
        stored += store.upsert_references(batch, vectors)
        logger.info("reference_batch_ingested", offset=start, count=len(batch))

    click.echo(f"Stored: {stored}")
    info = store.get_collection_info()
    click.echo(f"Collection: {info['name']} ({info.get('points_count', 'n/a')} points)")


# =========================================================================
# Service Commands
# =========================================================================


@cli.command()
def health() -> None:
    """Check service health."""
    from nda_analysis.services.llm_service import get_llm_service
    from nda_analysis.storage.redis_cache import get_redis_cache
    from nda_analysis.storage.reference_store import get_reference_store

    click.echo("\n=== Service Health Check ===\n")

    # LLM
    llm = get_llm_service()
    click.echo("LLM Services:")
    for provider, status in llm.health_check().items():
        click.echo(f"  {provider}: {'ok' if status else 'unavailable'}")

    # Qdrant
    qdrant_status = get_reference_store().health_check()
    click.echo(f"\nQdrant: {'ok' if qdrant_status else 'unavailable'}")

    # Redis
    redis = get_redis_cache()
    if redis.enabled:
        click.echo(f"Redis: {'ok' if redis.health_check() else 'unavailable'}")
    else:
        click.echo("Redis: disabled")

    settings = get_settings()
    click.echo(f"\nEnvironment: {settings.environment}")
    click.echo(f"Primary LLM: {settings.primary_llm_provider} ({settings.primary_llm_model})")
    click.echo(f"Fallback LLM: {settings.fallback_llm_provider} ({settings.fallback_llm_model})")


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
