"""seedling CLI — session recording, progress views and maintenance."""

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer

from seedling.application.config import AppConfig, resolve_config
from seedling.domain.progress.models import ChunkRecord, GiftType
from seedling.domain.progress.ports import ChunkStoreError

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="seedling: spaced-repetition progress engine for young language learners.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage seedling configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    backend: Annotated[
        str | None, typer.Option(help="Chunk store backend: memory, sqlite, pocketbase.")
    ] = None,
    database_path: Annotated[
        Path | None, typer.Option("--db", help="SQLite database path.")
    ] = None,
    pocketbase_url: Annotated[str | None, typer.Option(help="PocketBase endpoint.")] = None,
    workers: Annotated[int | None, typer.Option(help="Chunks updated concurrently.")] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for seedling."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "backend": backend,
        "database_path": database_path,
        "pocketbase_url": pocketbase_url,
        "workers": workers,
        "verbose": verbose,
    }
    if verbose > 1:
        logging.getLogger("seedling").setLevel(logging.DEBUG)


def _resolve(ctx: typer.Context) -> AppConfig:
    overrides = (ctx.obj or {}).get("overrides", {})
    return resolve_config(overrides)


def _service(ctx: typer.Context):
    from seedling.application.factory import get_progress_service

    return get_progress_service(_resolve(ctx))


def _run(service, awaitable):
    """Run one service call, then release the store's connections."""

    async def main():
        try:
            return await awaitable
        finally:
            await service.close()

    return asyncio.run(main())


def _record_dict(record: ChunkRecord) -> dict:
    d = asdict(record)
    d["status"] = record.status.value
    d["last_reviewed"] = record.last_reviewed.isoformat() if record.last_reviewed else None
    d["next_due"] = record.next_due.isoformat() if record.next_due else None
    return d


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def submit(
    ctx: typer.Context,
    learner: Annotated[str, typer.Argument(help="Learner ID.")],
    chunk_ids: Annotated[list[str], typer.Argument(help="Chunk IDs touched in the session.")],
    stars: Annotated[
        int, typer.Option("--stars", "-s", min=1, max=3, help="Lesson star rating (1-3).")
    ],
    topic: Annotated[
        str | None, typer.Option(help="Topic assigned to chunks seen for the first time.")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """[bold green]Record[/bold green] a completed lesson session."""
    service = _service(ctx)
    result = _run(service, service.submit_session_result(learner, chunk_ids, stars, topic))

    if json_output:
        typer.echo(json.dumps(asdict(result), indent=2))
        return

    typer.echo(f"Updated: {result.updated}  Failed: {result.failed}")
    if result.created:
        typer.echo(f"New chunks: {len(result.created)}")
    if result.graduated:
        typer.secho(f"Graduated: {', '.join(result.graduated)}", fg="green")
    if result.became_fragile:
        typer.secho(f"Became fragile: {', '.join(result.became_fragile)}", fg="yellow")


@app.command()
def health(
    ctx: typer.Context,
    learner: Annotated[str, typer.Argument(help="Learner ID.")],
    topic: Annotated[str, typer.Argument(help="Topic ID.")],
):
    """Show topic health (0-100) from chunk statuses."""
    service = _service(ctx)
    try:
        score = _run(service, service.get_topic_health(learner, topic))
    except ChunkStoreError as e:
        typer.secho(f"Could not read chunks: {e}", fg="red")
        raise typer.Exit(1) from e
    typer.echo(str(score))


@app.command()
def topic(
    ctx: typer.Context,
    learner: Annotated[str, typer.Argument(help="Learner ID.")],
    topic_id: Annotated[str, typer.Argument(help="Topic ID.")],
    currency: Annotated[int, typer.Option(help="Cumulative sun drops earned.")] = 0,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show the display numbers for a topic's tree."""
    service = _service(ctx)
    try:
        snapshot = _run(service, service.describe_topic(learner, topic_id, currency))
    except ChunkStoreError as e:
        typer.secho(f"Could not read chunks: {e}", fg="red")
        raise typer.Exit(1) from e

    if json_output:
        typer.echo(json.dumps(asdict(snapshot), indent=2))
        return

    typer.echo(
        f"Health: {snapshot.health} ({snapshot.health_category})  Chunks: {snapshot.chunk_count}"
    )
    typer.echo(
        f"Stage: {snapshot.growth_stage} {snapshot.growth_label}"
        f"  Next stage in: {snapshot.currency_to_next_stage}"
    )


@app.command()
def due(
    ctx: typer.Context,
    learner: Annotated[str, typer.Argument(help="Learner ID.")],
    limit: Annotated[int, typer.Option(min=1, help="Maximum chunks to list.")] = 10,
    fragile: Annotated[
        bool, typer.Option("--fragile", help="List fragile chunks instead of due ones.")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List chunks due for review (most overdue first)."""
    service = _service(ctx)
    try:
        if fragile:
            records = _run(service, service.get_fragile_chunks(learner, limit))
        else:
            records = _run(service, service.get_due_chunks(learner, limit))
    except ChunkStoreError as e:
        typer.secho(f"Could not read chunks: {e}", fg="red")
        raise typer.Exit(1) from e

    if json_output:
        typer.echo(json.dumps([_record_dict(r) for r in records], indent=2))
        return

    if not records:
        typer.secho("Nothing due.", fg="green")
        return
    for r in records:
        due_at = r.next_due.date().isoformat() if r.next_due else "-"
        typer.echo(f"  {r.chunk_id}  {r.status.value}  due {due_at}  ease {r.ease_factor:.2f}")


@app.command()
def sweep(
    ctx: typer.Context,
    learner: Annotated[str, typer.Argument(help="Learner ID.")],
):
    """Demote overdue acquired chunks to fragile."""
    service = _service(ctx)
    demoted = _run(service, service.run_maintenance_sweep(learner))
    typer.echo(f"Demoted: {demoted}")


@app.command()
def freshness(
    ctx: typer.Context,
    days: Annotated[int, typer.Argument(help="Days since the lesson was completed.")],
    gift: Annotated[
        list[GiftType] | None,
        typer.Option("--gift", "-g", help="Unused gift on the tree. Repeat for each gift."),
    ] = None,
):
    """Show freshness health for a lesson completed DAYS ago."""
    from seedling.application.progress.health import health_category

    service = _service(ctx)
    score = service.get_lesson_freshness(days, gift or [])
    typer.echo(f"{score} ({health_category(score)})")


@app.command()
def growth(
    ctx: typer.Context,
    currency: Annotated[int, typer.Argument(help="Cumulative sun drops earned.")],
):
    """Show the growth stage for a sun drop total."""
    from seedling.application.progress.growth import currency_to_next_stage, growth_stage_label

    service = _service(ctx)
    stage = service.get_growth_stage(currency)
    typer.echo(f"Stage {stage}: {growth_stage_label(stage)}")
    remaining = currency_to_next_stage(currency)
    if remaining:
        typer.echo(f"Next stage in {remaining} sun drops")


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP server."""
    import uvicorn

    uvicorn.run("seedling.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _resolve(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    if d.get("pocketbase_token"):
        d["pocketbase_token"] = "***"
    typer.echo(json.dumps(d, indent=2))
