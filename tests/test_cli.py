import json

import pytest

from uposatha.cli import build_parser, main


def run(capsys, store_path, *argv):
    main(["--store", str(store_path), *argv])
    return capsys.readouterr().out


def test_log_skip_history_and_stats(tmp_path, capsys):
    store = tmp_path / "store.json"
    run(capsys, store, "log", "--date", "2024-01-10", "--moon-phase", "quarter",
        "--precept", "8_precepts", "--meditation", "30", "--quality", "4")
    run(capsys, store, "log", "--date", "2024-01-25", "--moon-phase", "full")
    run(capsys, store, "skip", "--date", "2024-02-09", "--moon-phase", "new", "--reason", "work")

    history = run(capsys, store, "history").splitlines()
    assert [line.split()[0] for line in history] == ["2024-02-09", "2024-01-25", "2024-01-10"]
    assert "reason=work" in history[0]

    stats = json.loads(run(capsys, store, "stats"))
    assert stats["rate"] == 66.67
    assert stats["longestStreak"] == 2
    assert stats["currentStreak"] == 0


def test_backup_then_restore(tmp_path, capsys):
    store = tmp_path / "store.json"
    backup = tmp_path / "backup.json"
    run(capsys, store, "log", "--date", "2024-01-10", "--moon-phase", "quarter")
    run(capsys, store, "backup", "--outfile", str(backup))
    other = tmp_path / "other.json"
    assert "Restored 1" in run(capsys, other, "restore", str(backup))


def test_delete_unknown_id_exits(tmp_path, capsys):
    with pytest.raises(SystemExit):
        run(capsys, tmp_path / "store.json", "delete", "nope")


def test_bad_date_is_a_usage_error():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["status", "--date", "10/01/2024"])
