import argparse

import pytest

from detran_checklist import cli
from detran_checklist.config import Settings


@pytest.fixture
def parser():
    return cli.build_parser()


def test_build_parser_has_commands(parser: argparse.ArgumentParser):
    # Parse minimal arguments for each command to ensure they are registered.
    assert parser.parse_args(["serve"]).command == "serve"
    assert parser.parse_args(["serve-http"]).command == "serve-http"
    assert parser.parse_args(["seed"]).command == "seed"
    assert parser.parse_args(["status", "--live"]).live is True
    export_args = parser.parse_args(["export-sql", "--from-catalog"])
    assert export_args.command == "export-sql"
    assert export_args.from_catalog is True
    assert export_args.output is None


def test_main_serve_dispatch(monkeypatch):
    called = {}

    def fake_get_settings():
        return "settings"

    async def fake_serve(settings):
        called["settings"] = settings

    monkeypatch.setattr(cli, "get_settings", fake_get_settings)
    monkeypatch.setattr(cli, "serve_stdio", fake_serve)

    exit_code = cli.main(["serve"])
    assert exit_code == 0
    assert called["settings"] == "settings"


def test_main_serve_http_dispatch(monkeypatch):
    called = {}

    def fake_get_settings():
        return "settings"

    async def fake_serve(settings, *, host, port, log_level, json_response):
        called["args"] = {
            "settings": settings,
            "host": host,
            "port": port,
            "log_level": log_level,
            "json_response": json_response,
        }

    monkeypatch.setattr(cli, "get_settings", fake_get_settings)
    monkeypatch.setattr(cli, "serve_http", fake_serve)

    exit_code = cli.main(
        [
            "serve-http",
            "--host",
            "127.0.0.1",
            "--port",
            "9000",
            "--log-level",
            "DEBUG",
            "--json-response",
        ]
    )
    assert exit_code == 0
    assert called["args"] == {
        "settings": "settings",
        "host": "127.0.0.1",
        "port": 9000,
        "log_level": "DEBUG",
        "json_response": True,
    }


def test_main_status_dispatch(monkeypatch):
    called = {}

    def fake_get_settings():
        return "settings"

    async def fake_status(settings, *, live):
        called["args"] = {"settings": settings, "live": live}

    monkeypatch.setattr(cli, "get_settings", fake_get_settings)
    monkeypatch.setattr(cli, "_status_async", fake_status)

    exit_code = cli.main(["status", "--live"])
    assert exit_code == 0
    assert called["args"] == {"settings": "settings", "live": True}


def test_seed_then_status_with_json_backend(monkeypatch, tmp_path, capsys):
    settings = Settings(data_dir=tmp_path, seed_initial_services=False)
    monkeypatch.setattr(cli, "get_settings", lambda: settings)

    assert cli.main(["seed"]) == 0
    assert "Seeded 5 service(s)" in capsys.readouterr().out
    assert (tmp_path / "catalog.json").exists()

    assert cli.main(["status"]) == 0
    out = capsys.readouterr().out
    assert "Services: 5" in out
    assert "Veículo: 2" in out


def test_status_without_catalog(monkeypatch, tmp_path, capsys):
    settings = Settings(data_dir=tmp_path, seed_initial_services=False)
    monkeypatch.setattr(cli, "get_settings", lambda: settings)

    assert cli.main(["status"]) == 0
    assert "No cached catalog data" in capsys.readouterr().out


def test_export_sql_writes_file(monkeypatch, tmp_path):
    settings = Settings(data_dir=tmp_path, table_prefix="test_")
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    output = tmp_path / "seed.sql"

    assert cli.main(["export-sql", "--output", str(output)]) == 0

    sql = output.read_text(encoding="utf-8")
    assert "INSERT INTO test_services" in sql
    assert "'Recurso de Multa'" in sql
