"""
Unit tests for configuration, logging, exceptions and repository factories.
"""
import json
import logging
from datetime import datetime

import pytest

from meditrack.core.config import Settings
from meditrack.core.datetime_utils import (
    format_timestamp,
    from_epoch,
    is_valid_reminder_date,
    is_valid_reminder_time,
    reminder_clock,
)
from meditrack.core.dependencies import get_repository
from meditrack.core.exceptions import (
    BackendUnavailableError,
    ConstraintViolationError,
    PersistenceError,
    RecordCountError,
    RecordParseError,
)
from meditrack.core.logging_config import (
    JSONFormatter,
    clear_session_id,
    set_session_id,
    setup_logging,
)
from meditrack.repositories import FlatFileRepository, SqlitePatientRepository


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("MEDITRACK_DATA_DIR", "MEDITRACK_BACKEND", "MEDITRACK_MAX_PATIENTS"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)

        assert settings.meditrack_backend == "sqlite"
        assert settings.meditrack_max_patients == 10000
        assert settings.flat_file_path.endswith("meditrack_data.txt")

    def test_environment_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MEDITRACK_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("MEDITRACK_BACKEND", "flat")
        settings = Settings(_env_file=None)

        assert settings.meditrack_backend == "flat"
        assert settings.database_path == str(tmp_path / "meditrack.db")

    def test_invalid_backend_fails_fast(self, monkeypatch):
        monkeypatch.setenv("MEDITRACK_BACKEND", "csv")
        with pytest.raises(ValueError):
            Settings(_env_file=None)


class TestExceptions:

    def test_parse_error_line_prefix(self):
        error = RecordParseError("Bad separator", line_number=7)
        assert error.detail == "Line 7: Bad separator"
        assert error.to_dict() == {
            "error": "RecordParseError",
            "detail": "Line 7: Bad separator",
            "context": {"line_number": 7},
        }

    def test_count_error(self):
        error = RecordCountError("patient", 10001, 10000)
        assert "10001" in error.detail
        assert error.context["maximum"] == 10000

    def test_persistence_hierarchy(self):
        assert issubclass(BackendUnavailableError, PersistenceError)
        assert issubclass(ConstraintViolationError, PersistenceError)
        assert "save" in BackendUnavailableError(operation="save").detail

    def test_constraint_reason_in_detail(self):
        error = ConstraintViolationError("patient", "Jane Doe", reason="holds a number too large for SQLite")
        assert error.detail == "Field 'patient' holds a number too large for SQLite: 'Jane Doe'"
        assert error.context == {"field": "patient", "value": "Jane Doe"}


class TestLogging:

    def make_record(self, **extra):
        record = logging.LogRecord("meditrack.test", logging.INFO, __file__, 1, "Loaded %d", (3,), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_line(self):
        entry = json.loads(JSONFormatter().format(self.make_record(backend="flat")))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "meditrack.test"
        assert entry["message"] == "Loaded 3"
        assert entry["extra"] == {"backend": "flat"}
        assert entry["timestamp"].endswith("Z")

    def test_session_id_included(self):
        set_session_id("abc123")
        try:
            entry = json.loads(JSONFormatter().format(self.make_record()))
        finally:
            clear_session_id()

        assert entry["session_id"] == "abc123"
        assert "extra" not in entry

    @pytest.mark.parametrize("fmt,expected", [("json", JSONFormatter), ("text", logging.Formatter)])
    def test_setup_installs_one_stderr_handler(self, monkeypatch, fmt, expected):
        monkeypatch.setenv("LOG_FORMAT", fmt)
        monkeypatch.setenv("LOG_LEVEL", "warning")
        root = logging.getLogger()
        package = logging.getLogger("meditrack")
        saved_handlers, saved_level = root.handlers[:], root.level
        saved_package_level = package.level
        try:
            setup_logging()
            handlers = root.handlers[:]
            level = root.level
        finally:
            root.handlers = saved_handlers
            root.setLevel(saved_level)
            package.setLevel(saved_package_level)

        assert len(handlers) == 1
        assert type(handlers[0].formatter) is expected
        assert level == logging.WARNING


class TestReminderClock:

    def test_zero_padded(self):
        assert reminder_clock(datetime(2024, 1, 5, 9, 3)) == ("2024-01-05", "09:03")

    def test_validators(self):
        assert is_valid_reminder_date("2024-02-29")
        assert not is_valid_reminder_date("2023-02-29")
        assert is_valid_reminder_time("23:59")
        assert not is_valid_reminder_time("7:00")

    def test_display_uses_naive_local_time(self):
        moment = from_epoch(1705314600)
        assert moment.tzinfo is None
        assert format_timestamp(1705314600) == moment.strftime("%Y-%m-%d %H:%M")


class TestRepositoryFactory:

    def test_flat(self, tmp_path):
        repo = get_repository("flat", path=str(tmp_path / "data.txt"))
        assert isinstance(repo, FlatFileRepository)
        assert repo.file_path == str(tmp_path / "data.txt")

    def test_sqlite(self, tmp_path):
        with get_repository("sqlite", path=str(tmp_path / "m.db")) as repo:
            assert isinstance(repo, SqlitePatientRepository)
            assert repo.db.db_path == str(tmp_path / "m.db")

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            get_repository("csv")
