"""CSV import/export utilities."""

import csv
import logging
from pathlib import Path

from pairbracket.models import Pair, Registration

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"player1_id", "player1_name", "player2_id", "player2_name"}
PLAYER_COLUMNS = {"player_id", "player_name"}
TRUE_VALUES = {"1", "y", "yes", "true", "x"}


class CSVImportError(Exception):
    """Error during CSV import."""

    pass


def _flag(value) -> bool:
    return (value or "").strip().lower() in TRUE_VALUES


def validate_pair_row(row: dict, row_num: int) -> dict:
    """Validate a pair row from CSV.

    Args:
        row: Dictionary with CSV columns
        row_num: Row number for error messages

    Returns:
        Validated dictionary with cleaned data

    Raises:
        CSVImportError: If validation fails
    """
    errors = []
    for field in sorted(REQUIRED_COLUMNS):
        if not (row.get(field) or "").strip():
            errors.append(f"Missing required field '{field}'")

    if errors:
        raise CSVImportError(f"Row {row_num}: {', '.join(errors)}")

    validated = {}
    for field in ("player1_id", "player2_id"):
        try:
            validated[field] = int(row[field])
        except ValueError as e:
            raise CSVImportError(f"Row {row_num}: '{field}' must be a number, got '{row[field]}'") from e

    if validated["player1_id"] == validated["player2_id"]:
        raise CSVImportError(f"Row {row_num}: a pair needs two different players")

    validated["player1_name"] = row["player1_name"].strip()
    validated["player2_name"] = row["player2_name"].strip()
    validated["player1_seeded"] = _flag(row.get("player1_seeded"))
    validated["player2_seeded"] = _flag(row.get("player2_seeded"))
    return validated


def import_pairs_csv(csv_path: str, stage_id: int) -> tuple[list[Pair], set[int]]:
    """Import pairs from CSV file.

    CSV format:
        player1_id,player1_name,player2_id,player2_name,player1_seeded,player2_seeded
        1,Ana,2,Bia,yes,
        3,Carla,4,Duda,,

    The two ``*_seeded`` columns are optional.

    Args:
        csv_path: Path to CSV file
        stage_id: Stage the pairs are registered for

    Returns:
        Tuple of (pairs ready to be saved, ids of seeded players)

    Raises:
        CSVImportError: If file not found or validation fails
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise CSVImportError(f"CSV file not found: {csv_path}")

    pairs = []
    seeded = set()
    seen_players = set()

    with open(csv_file, "r", encoding="utf-8") as f:
        reader = csv.DictReader(f)

        columns = set(reader.fieldnames or [])
        if not REQUIRED_COLUMNS.issubset(columns):
            missing = ", ".join(sorted(REQUIRED_COLUMNS - columns))
            raise CSVImportError(f"CSV missing required columns: {missing}")

        for row_num, row in enumerate(reader, start=2):  # Row 1 is the header
            validated = validate_pair_row(row, row_num)

            for field in ("player1_id", "player2_id"):
                if validated[field] in seen_players:
                    raise CSVImportError(
                        f"Row {row_num}: player {validated[field]} already plays in another pair"
                    )
                seen_players.add(validated[field])

            if validated["player1_seeded"]:
                seeded.add(validated["player1_id"])
            if validated["player2_seeded"]:
                seeded.add(validated["player2_id"])

            pairs.append(
                Pair(
                    stage_id=stage_id,
                    player1_id=validated["player1_id"],
                    player1_name=validated["player1_name"],
                    player2_id=validated["player2_id"],
                    player2_name=validated["player2_name"],
                )
            )

    logger.info("Validated %d pairs from %s (%d seeded players)", len(pairs), csv_path, len(seeded))
    return pairs, seeded


def validate_player_row(row: dict, row_num: int) -> Registration:
    """Validate a player row from CSV.

    Raises:
        CSVImportError: If validation fails
    """
    missing = [field for field in sorted(PLAYER_COLUMNS) if not (row.get(field) or "").strip()]
    if missing:
        raise CSVImportError(f"Row {row_num}: Missing required field(s) {', '.join(missing)}")

    try:
        player_id = int(row["player_id"])
    except ValueError as e:
        raise CSVImportError(f"Row {row_num}: 'player_id' must be a number, got '{row['player_id']}'") from e

    return Registration(player_id=player_id, player_name=row["player_name"].strip(), seeded=_flag(row.get("seeded")))


def import_players_csv(csv_path: str) -> list[Registration]:
    """Import individual player registrations from CSV file.

    CSV format:
        player_id,player_name,seeded
        1,Ana,yes
        2,Bia,

    The ``seeded`` column is optional.

    Args:
        csv_path: Path to CSV file

    Returns:
        Registrations in file order

    Raises:
        CSVImportError: If file not found, validation fails or a player repeats
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise CSVImportError(f"CSV file not found: {csv_path}")

    registrations = []
    seen_players = set()

    with open(csv_file, "r", encoding="utf-8") as f:
        reader = csv.DictReader(f)

        columns = set(reader.fieldnames or [])
        if not PLAYER_COLUMNS.issubset(columns):
            missing = ", ".join(sorted(PLAYER_COLUMNS - columns))
            raise CSVImportError(f"CSV missing required columns: {missing}")

        for row_num, row in enumerate(reader, start=2):
            registration = validate_player_row(row, row_num)
            if registration.player_id in seen_players:
                raise CSVImportError(f"Row {row_num}: player {registration.player_id} is registered twice")
            seen_players.add(registration.player_id)
            registrations.append(registration)

    logger.info(
        "Validated %d players from %s (%d seeded)",
        len(registrations),
        csv_path,
        sum(1 for r in registrations if r.seeded),
    )
    return registrations


def export_standings_csv(pairs: list[Pair], path: str):
    """Export group standings to CSV.

    Args:
        pairs: Pairs with their aggregates, in group then rank order
        path: Output CSV path
    """
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow([
            "Group", "Rank", "Pair_ID", "Pair", "Points", "Played", "Wins", "Losses",
            "Sets_W", "Sets_L", "Games_W", "Games_L", "Game_Diff", "Classified",
        ])

        for pair in pairs:
            writer.writerow([
                pair.group_name or "",
                pair.group_rank or "",
                pair.id,
                pair.name,
                pair.points,
                pair.played,
                pair.wins,
                pair.losses,
                pair.sets_won,
                pair.sets_lost,
                pair.games_won,
                pair.games_lost,
                pair.game_diff,
                "YES" if pair.classified else "NO",
            ])
