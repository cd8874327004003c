"""Tests for the command-line interface."""

import csv
import logging

import pytest
from click.testing import CliRunner

from pairbracket.cli import cli

PAIRS_CSV = (
    "player1_id,player1_name,player2_id,player2_name,player1_seeded,player2_seeded\n"
    "1,Ana,2,Bia,,\n"
    "3,Carla,4,Duda,,\n"
    "5,Eva,6,Fabi,,\n"
    "7,Gi,8,Hel,yes,\n"
    "9,Ivi,10,Ju,,\n"
    "11,Kat,12,Lia,,\n"
)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def invoke(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text(f"log_level: WARNING\nlog_file: {tmp_path / 'logs' / 'cli.log'}\n", encoding="utf-8")
    base = ["--config", str(config), "--db", str(tmp_path / "cli.sqlite")]
    runner = CliRunner()

    def _invoke(*args):
        return runner.invoke(cli, base + list(args))

    return _invoke


@pytest.fixture
def pairs_csv(tmp_path):
    path = tmp_path / "pairs.csv"
    path.write_text(PAIRS_CSV, encoding="utf-8")
    return str(path)


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_full_flow(invoke, pairs_csv, tmp_path):
    result = invoke("import-pairs", "--csv", pairs_csv)
    assert result.exit_code == 0, result.output
    assert "[SUCCESS] Imported 6 pairs into stage 1" in result.output
    assert "--seeded 7" in result.output

    result = invoke("build-groups", "--seeded", "7")
    assert result.exit_code == 0, result.output
    assert "[SUCCESS] Created 2 groups with 6 matches" in result.output
    assert "Group A: 3 pairs" in result.output

    result = invoke("list-matches")
    assert result.exit_code == 0, result.output
    assert "Group A" in result.output
    # Seeded pair (Gi & Hel) heads group A
    assert "Gi & Hel x Ana & Bia" in result.output

    for match_id in range(1, 7):
        result = invoke("submit-result", str(match_id), "6-2, 6-3")
        assert result.exit_code == 0, result.output
    assert "[SUCCESS]" in result.output

    result = invoke("list-matches", "--pending")
    assert result.exit_code == 0
    assert "[" not in result.output

    out = tmp_path / "standings.csv"
    result = invoke("standings", "--out", str(out))
    assert result.exit_code == 0, result.output
    assert "Group A (complete)" in result.output
    assert " 1. Gi & Hel" in result.output
    with open(out, encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 6
    assert rows[0]["Pair"] == "Gi & Hel"

    result = invoke("build-bracket")
    assert result.exit_code == 0, result.output
    assert "[SUCCESS] Created 2 matchups" in result.output
    # 1A = Gi & Hel, 2B = Ivi & Ju
    line = next(line for line in result.output.splitlines() if "SF 1:" in line)
    assert line.endswith("SF 1: Gi & Hel x Ivi & Ju")
    matchup_id = line.split("]")[0].strip(" [")

    result = invoke("submit-knockout", matchup_id, "6-4")
    assert result.exit_code == 0, result.output
    assert "winner Gi & Hel" in result.output

    result = invoke("show-bracket")
    assert result.exit_code == 0
    assert f" *[{matchup_id:>3}] SF 1: Gi & Hel x Ivi & Ju 6-4" in result.output

    result = invoke("cancel-bracket", "--yes")
    assert result.exit_code == 0, result.output
    assert "[SUCCESS] Removed 2 matchups" in result.output

    result = invoke("show-bracket")
    assert "No knockout bracket yet" in result.output


def test_engine_errors_abort(invoke, pairs_csv):
    invoke("import-pairs", "--csv", pairs_csv)
    invoke("build-groups")

    result = invoke("submit-result", "99", "6-4")
    assert result.exit_code == 1
    assert "[ERROR] Match 99 not found" in result.output

    result = invoke("submit-result", "1", "6:4")
    assert result.exit_code == 1
    assert "Cannot parse set" in result.output

    result = invoke("build-bracket")
    assert result.exit_code == 1
    assert "pending matches: Group A, Group B" in result.output


def test_import_players_forms_pairs(invoke, tmp_path):
    path = tmp_path / "players.csv"
    rows = ["player_id,player_name,seeded"] + [f"{n},P{n},{'yes' if n in (1, 2) else ''}" for n in range(1, 13)]
    path.write_text("\n".join(rows) + "\n", encoding="utf-8")

    result = invoke("import-players", "--csv", str(path))
    assert result.exit_code == 0, result.output
    assert "[SUCCESS] Formed 6 pairs for stage 1" in result.output
    assert "--seeded 1,2" in result.output
    pair_lines = [line.split("] ")[1] for line in result.output.splitlines() if line.startswith("  [")]
    assert len(pair_lines) == 6
    assert "P1 & P2" not in pair_lines
    assert "P2 & P1" not in pair_lines

    result = invoke("partnerships")
    assert result.exit_code == 0, result.output
    assert len([line for line in result.output.splitlines() if " & " in line]) == 6
    assert "both seeded" not in result.output

    result = invoke("build-groups", "--seeded", "1,2")
    assert result.exit_code == 0, result.output
    assert "[SUCCESS] Created 2 groups with 6 matches" in result.output

    result = invoke("import-players", "--csv", str(path))
    assert result.exit_code == 1
    assert "Stage 1 already has 6 pairs" in result.output


def test_import_players_odd_count(invoke, tmp_path):
    path = tmp_path / "players.csv"
    path.write_text("player_id,player_name\n1,A\n2,B\n3,C\n4,D\n5,E\n", encoding="utf-8")

    result = invoke("import-players", "--csv", str(path))
    assert result.exit_code == 1
    assert "Odd number of players: 5" in result.output


def test_explicit_zero_per_group_is_rejected(invoke):
    result = invoke("build-bracket", "--per-group", "0")
    assert result.exit_code == 1
    assert "classified_per_group must be at least 1, got 0" in result.output


def test_build_groups_without_pairs(invoke):
    result = invoke("build-groups")
    assert result.exit_code == 1
    assert "No pairs found for stage 1" in result.output


def test_bad_seeded_list(invoke):
    result = invoke("build-groups", "--seeded", "1,x")
    assert result.exit_code == 2
    assert "comma-separated ids" in result.output


def test_csv_errors_abort(invoke, tmp_path):
    result = invoke("import-pairs", "--csv", str(tmp_path / "missing.csv"))
    assert result.exit_code == 1
    assert "[ERROR] CSV Import Error" in result.output


def test_config_errors_abort(tmp_path):
    config = tmp_path / "bad.yaml"
    config.write_text("classified_per_group: 9\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["--config", str(config), "show-bracket"])
    assert result.exit_code == 1
    assert "[ERROR] Configuration Error" in result.output
