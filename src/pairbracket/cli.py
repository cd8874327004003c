"""Command-line interface for pairbracket."""

import asyncio
from contextlib import asynccontextmanager

import click

from pairbracket.config_loader import ConfigError, load_and_validate_config
from pairbracket.container import build_engines
from pairbracket.errors import TournamentError
from pairbracket.io_csv import CSVImportError, export_standings_csv, import_pairs_csv, import_players_csv
from pairbracket.logging_setup import configure_logging
from pairbracket.models import MatchupStatus, Phase
from pairbracket.storage import DatabaseManager, SQLBackend
from pairbracket.validation import parse_score_text


@asynccontextmanager
async def open_backend(cfg: dict):
    """SQLite backend plus engines for one command."""
    db = DatabaseManager(cfg["database"])
    await db.create_tables()
    try:
        backend = SQLBackend(db)
        yield backend, build_engines(backend, draw_seed=cfg["draw_seed"])
    finally:
        await db.dispose()


def run(cfg: dict, action):
    """Run ``action(backend, engines)`` on a fresh event loop.

    Engine errors become an ``[ERROR]`` line and a non-zero exit.
    """

    async def main():
        async with open_backend(cfg) as (backend, engines):
            return await action(backend, engines)

    try:
        return asyncio.run(main())
    except TournamentError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()


def parse_ids(text: str) -> set[int]:
    """Parse "1, 5,9" into {1, 5, 9}."""
    try:
        return {int(chunk) for chunk in text.split(",") if chunk.strip()}
    except ValueError as e:
        raise click.BadParameter(f"expected comma-separated ids, got '{text}'") from e


@click.group()
@click.version_option(version="0.1.0")
@click.option("--config", "config_path", required=False, help="Path to config YAML file")
@click.option("--db", required=False, help="SQLite database path (overrides the config)")
@click.pass_context
def cli(ctx, config_path: str, db: str):
    """Pair Bracket - group stage and knockout manager for doubles tournaments."""
    try:
        cfg = load_and_validate_config(config_path)
    except ConfigError as e:
        click.echo(f"[ERROR] Configuration Error: {e}", err=True)
        raise click.Abort()

    if db:
        cfg["database"] = db
    configure_logging(cfg["log_level"], cfg["log_file"])
    ctx.obj = cfg


@cli.command()
@click.option("--csv", "csv_path", required=True, help="Path to pairs CSV file")
@click.option("--stage", type=int, default=1, show_default=True, help="Stage id")
@click.pass_obj
def import_pairs(cfg: dict, csv_path: str, stage: int):
    """Import pairs from CSV file.

    CSV must have columns: player1_id,player1_name,player2_id,player2_name
    (optional: player1_seeded,player2_seeded)

    Example:
        pairbracket import-pairs --csv data/samples/pairs.csv --stage 1
    """
    try:
        click.echo(f"[INFO] Reading CSV file: {csv_path}")
        pairs, seeded = import_pairs_csv(csv_path, stage_id=stage)
    except CSVImportError as e:
        click.echo(f"[ERROR] CSV Import Error: {e}", err=True)
        raise click.Abort()

    if not pairs:
        click.echo("[WARNING] No pairs to import")
        return

    async def action(backend, engines):
        return await backend.pairs.create_many(pairs)

    created = run(cfg, action)
    click.echo(f"[SUCCESS] Imported {len(created)} pairs into stage {stage}")
    if seeded:
        ids = ",".join(str(i) for i in sorted(seeded))
        click.echo(f"[INFO] Seeded players: {ids} (pass --seeded {ids} to build-groups)")


@cli.command()
@click.option("--csv", "csv_path", required=True, help="Path to players CSV file")
@click.option("--stage", type=int, default=1, show_default=True, help="Stage id")
@click.pass_obj
def import_players(cfg: dict, csv_path: str, stage: int):
    """Import individual players and form the pairs of a stage.

    CSV must have columns: player_id,player_name (optional: seeded)

    Seeded players are never paired together while some combination of them
    is still unplayed.

    Example:
        pairbracket import-players --csv data/samples/players.csv --stage 1
    """
    try:
        click.echo(f"[INFO] Reading CSV file: {csv_path}")
        registrations = import_players_csv(csv_path)
    except CSVImportError as e:
        click.echo(f"[ERROR] CSV Import Error: {e}", err=True)
        raise click.Abort()

    async def action(backend, engines):
        return await engines.pair_formation.form_pairs(stage, registrations)

    created = run(cfg, action)
    click.echo(f"[SUCCESS] Formed {len(created)} pairs for stage {stage}")
    for pair in created:
        click.echo(f"  [{pair.id:>3}] {pair.name}")

    seeded = sorted(r.player_id for r in registrations if r.seeded)
    if seeded:
        ids = ",".join(str(i) for i in seeded)
        click.echo(f"[INFO] Seeded players: {ids} (pass --seeded {ids} to build-groups)")


@cli.command()
@click.option("--stage", type=int, default=1, show_default=True, help="Stage id")
@click.pass_obj
def partnerships(cfg: dict, stage: int):
    """Show the partnerships recorded for a stage."""

    async def action(backend, engines):
        return await engines.pair_formation.history(stage)

    history = run(cfg, action)
    if not history:
        click.echo(f"[INFO] No partnerships recorded for stage {stage}")
        return

    for partnership in history:
        marker = " (both seeded)" if partnership.both_seeded else ""
        click.echo(f"  {partnership.player1_name} & {partnership.player2_name}{marker}")


@cli.command()
@click.option("--stage", type=int, default=1, show_default=True, help="Stage id")
@click.option("--seeded", default="", help="Comma-separated ids of seeded players")
@click.pass_obj
def build_groups(cfg: dict, stage: int, seeded: str):
    """Draw the groups of a stage and generate their round-robin matches.

    Example:
        pairbracket build-groups --stage 1 --seeded 1,7
    """
    seeded_ids = parse_ids(seeded)

    async def action(backend, engines):
        pairs = await backend.pairs.list_by_stage(stage)
        if not pairs:
            raise TournamentError(
                f"No pairs found for stage {stage}; run 'pairbracket import-pairs' or 'import-players' first"
            )
        groups = await engines.group_builder.build_groups(stage, pairs, seeded_ids)
        matches = await engines.group_matches.generate_matches(groups)
        return groups, matches

    groups, matches = run(cfg, action)
    click.echo(f"[SUCCESS] Created {len(groups)} groups with {len(matches)} matches")
    click.echo("\n[STATS] Group Summary:")
    for group in groups:
        click.echo(f"  {group.name}: {group.size} pairs")


@cli.command()
@click.option("--stage", type=int, default=1, show_default=True, help="Stage id")
@click.option("--pending", is_flag=True, help="Only matches without a result")
@click.pass_obj
def list_matches(cfg: dict, stage: int, pending: bool):
    """List the group matches of a stage."""

    async def action(backend, engines):
        return await engines.group_matches.list_by_stage(stage)

    matches = run(cfg, action)
    current_group = None
    for match in matches:
        if pending and match.is_finished:
            continue
        if match.group_name != current_group:
            current_group = match.group_name
            click.echo(f"\n{current_group}")
        sets = ", ".join(str(s) for s in match.sets)
        click.echo(f"  [{match.id:>3}] {match.pair1_name} x {match.pair2_name}  {sets}")


@cli.command()
@click.argument("match_id", type=int)
@click.argument("score")
@click.pass_obj
def submit_result(cfg: dict, match_id: int, score: str):
    """Record or edit a group match result.

    Example:
        pairbracket submit-result 4 "6-4, 3-6, 7-5"
    """

    async def action(backend, engines):
        return await engines.group_matches.submit_result(match_id, parse_score_text(score))

    match = run(cfg, action)
    click.echo(f"[SUCCESS] {match}: winner {match.winner_name}")


@cli.command()
@click.option("--stage", type=int, default=1, show_default=True, help="Stage id")
@click.option("--out", required=False, help="Also write the standings to this CSV file")
@click.pass_obj
def standings(cfg: dict, stage: int, out: str):
    """Show the group standings of a stage."""

    async def action(backend, engines):
        groups = await backend.groups.list_by_stage(stage)
        rows = []
        for group in groups:
            pairs = await backend.pairs.list_by_group(group.id)
            pairs.sort(key=lambda p: p.group_rank or len(pairs) + 1)
            rows.append((group, pairs))
        return rows

    rows = run(cfg, action)
    for group, pairs in rows:
        status = "complete" if group.complete else f"{group.finished_matches}/{group.total_matches}"
        click.echo(f"\n{group.name} ({status})")
        for pair in pairs:
            click.echo(
                f"  {pair.group_rank or '-':>2}. {pair.name:<30} {pair.points:>3} pts  "
                f"{pair.wins}W-{pair.losses}L  sets {pair.set_diff:+d}  games {pair.game_diff:+d}"
            )

    if out:
        export_standings_csv([p for _, pairs in rows for p in pairs], out)
        click.echo(f"\n[SAVE] Standings written to {out}")


@cli.command()
@click.option("--stage", type=int, default=1, show_default=True, help="Stage id")
@click.option("--per-group", type=int, default=None, help="Qualifiers per group (default from config)")
@click.pass_obj
def build_bracket(cfg: dict, stage: int, per_group: int):
    """Build the knockout bracket once every group is complete."""
    if per_group is None:
        per_group = cfg["classified_per_group"]

    async def action(backend, engines):
        return await engines.bracket.build_bracket(stage, classified_per_group=per_group)

    matchups = run(cfg, action)
    click.echo(f"[SUCCESS] Created {len(matchups)} matchups")
    for matchup in matchups:
        click.echo(f"  [{matchup.id:>3}] {matchup}")


@cli.command()
@click.option("--stage", type=int, default=1, show_default=True, help="Stage id")
@click.option("--phase", type=click.Choice([p.value for p in Phase]), default=None, help="Only one phase")
@click.pass_obj
def show_bracket(cfg: dict, stage: int, phase: str):
    """Show the knockout matchups of a stage."""

    async def action(backend, engines):
        return await engines.bracket.list_matchups(stage, Phase(phase) if phase else None)

    matchups = run(cfg, action)
    if not matchups:
        click.echo("[INFO] No knockout bracket yet")
        return

    for matchup in matchups:
        marker = "*" if matchup.status == MatchupStatus.FINISHED else " "
        click.echo(f" {marker}[{matchup.id:>3}] {matchup}")


@cli.command()
@click.argument("matchup_id", type=int)
@click.argument("score")
@click.option("--stage", type=int, default=1, show_default=True, help="Stage id")
@click.pass_obj
def submit_knockout(cfg: dict, matchup_id: int, score: str, stage: int):
    """Record or edit a knockout result (a single set).

    Example:
        pairbracket submit-knockout 12 "6-3"
    """

    async def action(backend, engines):
        return await engines.bracket.submit_result(matchup_id, stage, parse_score_text(score))

    matchup = run(cfg, action)
    click.echo(f"[SUCCESS] {matchup}: winner {matchup.winner_name}")


@cli.command()
@click.option("--stage", type=int, default=1, show_default=True, help="Stage id")
@click.confirmation_option(prompt="Remove the whole knockout bracket and its results?")
@click.pass_obj
def cancel_bracket(cfg: dict, stage: int):
    """Cancel the knockout stage, reverting all of its results."""

    async def action(backend, engines):
        return await engines.bracket.cancel_bracket(stage)

    removed = run(cfg, action)
    click.echo(f"[SUCCESS] Removed {removed} matchups")


if __name__ == "__main__":
    cli()
