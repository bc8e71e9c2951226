"""
Tests for backend migration and the meditrack-migrate script.
"""
import logging
import os

import pytest

from meditrack.migrate import main
from meditrack.repositories import Database, FlatFileRepository, SqlitePatientRepository
from meditrack.services import migrate


def corrupt_flat_file(flat_repo, patients, path):
    """Save, then claim one more patient than the file holds."""
    flat_repo.save(patients)
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    with open(path, "w", encoding="utf-8") as f:
        f.write(str(len(patients) + 1) + text[text.index("\n"):])


def test_flat_to_sqlite(flat_repo, sqlite_repo, sample_patients):
    flat_repo.save(sample_patients)

    summary = migrate(flat_repo, sqlite_repo)

    assert summary.loaded == 2
    assert summary.saved == 2
    assert summary.records == 5
    assert summary.source == "flat"
    assert summary.target == "sqlite"
    assert sqlite_repo.load() == sample_patients


def test_sqlite_to_flat(flat_repo, sqlite_repo, sample_patients):
    sqlite_repo.save(sample_patients)

    summary = migrate(sqlite_repo, flat_repo)

    assert summary.saved == 2
    assert flat_repo.load() == sample_patients


def test_target_is_replaced(flat_repo, sqlite_repo, sample_patients):
    sqlite_repo.save(sample_patients)
    flat_repo.save(sample_patients[1:])

    migrate(flat_repo, sqlite_repo)

    assert [p.name for p in sqlite_repo.load()] == ["Asgar Ali Ansari"]


def test_load_errors_refuse_migration(flat_repo, sqlite_repo, sample_patients, temp_flat_path):
    corrupt_flat_file(flat_repo, sample_patients, temp_flat_path)

    summary = migrate(flat_repo, sqlite_repo)

    assert summary.refused
    assert summary.loaded == 2
    assert summary.saved == 0
    assert len(summary.errors) == 1
    assert sqlite_repo.load() == [], "Refused migration must not touch the target"


def test_force_saves_partial_collection(flat_repo, sqlite_repo, sample_patients, temp_flat_path):
    corrupt_flat_file(flat_repo, sample_patients, temp_flat_path)

    summary = migrate(flat_repo, sqlite_repo, force=True)

    assert not summary.refused
    assert summary.saved == 2
    assert sqlite_repo.load() == sample_patients


def test_dry_run_leaves_target_alone(flat_repo, sqlite_repo, sample_patients):
    flat_repo.save(sample_patients)

    summary = migrate(flat_repo, sqlite_repo, dry_run=True)

    assert summary.dry_run
    assert summary.loaded == 2
    assert summary.saved == 0
    assert sqlite_repo.load() == []


def test_summary_to_dict(flat_repo, sqlite_repo, sample_patients):
    flat_repo.save(sample_patients)
    data = migrate(flat_repo, sqlite_repo).to_dict()

    assert data["saved"] == 2
    assert data["errors"] == []
    assert data["refused"] is False


# =============================================================================
# COMMAND LINE
# =============================================================================

@pytest.fixture(autouse=True)
def restore_logging():
    """main() installs its own root handler; put pytest's back afterwards."""
    root = logging.getLogger()
    app = logging.getLogger("meditrack")
    handlers, root_level, app_level = root.handlers[:], root.level, app.level
    yield
    root.handlers = handlers
    root.setLevel(root_level)
    app.setLevel(app_level)


@pytest.fixture
def paths(tmp_path):
    return str(tmp_path / "data.txt"), str(tmp_path / "meditrack.db")


def test_cli_migrates(paths, sample_patients):
    flat_path, db_path = paths
    FlatFileRepository(file_path=flat_path).save(sample_patients)

    code = main(["--from", "flat", "--to", "sqlite", "--source", flat_path, "--target", db_path])

    assert code == 0
    with SqlitePatientRepository(db=Database(db_path=db_path)) as repo:
        assert repo.load() == sample_patients


def test_cli_dry_run(paths, sample_patients, capsys):
    flat_path, db_path = paths
    FlatFileRepository(file_path=flat_path).save(sample_patients)

    code = main(["--from", "flat", "--to", "sqlite", "--source", flat_path,
                 "--target", db_path, "--dry-run"])

    assert code == 0
    assert "Would migrate 2 patients" in capsys.readouterr().out


def test_cli_backup(paths, sample_patients, tmp_path):
    flat_path, db_path = paths
    FlatFileRepository(file_path=flat_path).save(sample_patients)
    with SqlitePatientRepository(db=Database(db_path=db_path)) as repo:
        repo.save(sample_patients[:1])

    code = main(["--from", "flat", "--to", "sqlite", "--source", flat_path,
                 "--target", db_path, "--backup"])

    assert code == 0
    backups = [p for p in os.listdir(tmp_path) if p.startswith("meditrack.db.backup_")]
    assert len(backups) == 1
    with SqlitePatientRepository(db=Database(db_path=str(tmp_path / backups[0]))) as repo:
        assert [p.name for p in repo.load()] == ["Nazra Mastoor"]


def test_cli_refuses_corrupt_source(paths, sample_patients):
    flat_path, db_path = paths
    corrupt_flat_file(FlatFileRepository(file_path=flat_path), sample_patients, flat_path)

    assert main(["--from", "flat", "--to", "sqlite", "--source", flat_path, "--target", db_path]) == 1
    assert main(["--from", "flat", "--to", "sqlite", "--source", flat_path,
                 "--target", db_path, "--force"]) == 0


def test_cli_missing_source(paths):
    flat_path, db_path = paths
    assert main(["--from", "flat", "--to", "sqlite", "--source", flat_path, "--target", db_path]) == 1


def test_cli_same_file(paths):
    flat_path, _ = paths
    assert main(["--from", "flat", "--to", "flat", "--source", flat_path, "--target", flat_path]) == 2


def test_cli_rejects_unknown_backend():
    with pytest.raises(SystemExit):
        main(["--from", "csv", "--to", "sqlite"])
