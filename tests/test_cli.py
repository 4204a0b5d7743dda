"""Operator CLI against a temporary SQLite file."""

import pytest

from clinic_backend import cli
from clinic_backend.repository import Repository
from clinic_backend.security import verify_password


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'clinic.sqlite'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    return url


@pytest.fixture
def file_repo(db_url):
    repository = Repository.from_url(db_url)
    yield repository
    repository.engine.dispose()


def test_init_creates_and_seeds(db_url, file_repo, capsys):
    assert cli.main(["init"]) == 0

    assert "Database initialised" in capsys.readouterr().out
    assert file_repo.counts()["therapists"] == 3


def test_verify_then_fan_out(db_url, file_repo, capsys):
    from clinic_backend import services

    file_repo.create_all()
    services.create_booking(file_repo, name="Aisha", phone="0501234567", service="General", date="2026-11-02")

    assert cli.main(["verify"]) == 0
    assert "1 bookings without notifications" in capsys.readouterr().out

    assert cli.main(["fan-out"]) == 0
    assert "Scanned 1 bookings without notifications: 1 created, 0 skipped." in capsys.readouterr().out

    assert cli.main(["fan-out"]) == 0
    assert "Scanned 0 bookings without notifications: 0 created, 0 skipped." in capsys.readouterr().out

    assert cli.main(["verify"]) == 0
    assert "Every booking has its notification." in capsys.readouterr().out

    assert cli.main(["list", "notifications", "--status", "pending"]) == 0
    assert "New Booking Request from Aisha" in capsys.readouterr().out


def test_clear_requires_confirmation(db_url, file_repo, capsys):
    cli.main(["seed"])

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["clear"])

    assert excinfo.value.code == 2
    assert file_repo.counts()["users"] == 4

    assert cli.main(["clear", "--yes"]) == 0
    assert set(file_repo.counts().values()) == {0}


def test_create_admin_and_reset_password(db_url, file_repo, capsys):
    assert cli.main(["create-admin", "--name", "Root", "--email", "Root@Clinic.local", "--password", "first"]) == 0
    assert cli.main(["reset-password", "--email", "root@clinic.local", "--password", "second"]) == 0

    user = file_repo.get_user_by_email("root@clinic.local")
    assert verify_password("second", user.password_hash)

    assert cli.main(["create-admin", "--name", "Root", "--email", "root@clinic.local", "--password", "x"]) == 1
    assert "A user with this email already exists" in capsys.readouterr().err


def test_reset_password_unknown_user(db_url, capsys):
    assert cli.main(["reset-password", "--email", "nobody@clinic.local", "--password", "x"]) == 1
    assert "Error: User not found" in capsys.readouterr().err


def test_password_is_prompted_when_omitted(db_url, file_repo, monkeypatch):
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt: "prompted")

    assert cli.main(["create-admin", "--name", "Root", "--email", "root@clinic.local"]) == 0
    assert verify_password("prompted", file_repo.get_user_by_email("root@clinic.local").password_hash)


def test_unreachable_database_is_reported(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path}/missing/dir/clinic.sqlite")
    monkeypatch.setenv("LOG_LEVEL", "CRITICAL")

    assert cli.main(["verify"]) == 1
    assert "Error: A storage error occurred" in capsys.readouterr().err


def test_serve_runs_the_api_with_uvicorn(db_url, monkeypatch):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    assert cli.main(["serve", "--port", "8100"]) == 0

    assert calls == [("clinic_backend.api_main:app", {"host": "127.0.0.1", "port": 8100, "reload": False})]
