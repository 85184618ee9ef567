from __future__ import annotations

import json
from pathlib import Path

import pytest

from reelsift import cli
from reelsift.config import GIB, OrchestratorConfig, ReelsiftConfig, build_ranking_config
from reelsift.errors import InvalidConfig
from reelsift.search.types import MediaQuery, RawResult

MATRIX = MediaQuery(external_id="tt0133093", kind="movie", title="The Matrix", year=1999)


class _StaticAdapter:
    def __init__(self, source_id: str, results: list[RawResult]) -> None:
        self.source_id = source_id
        self._results = results
        self.closed = False

    async def search(self, query: MediaQuery) -> list[RawResult]:
        return list(self._results)

    async def close(self) -> None:
        self.closed = True


def _capture_console(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    monkeypatch.setattr(cli.console, "print", lambda msg="", *_args, **_kwargs: lines.append(str(msg)))
    return lines


def _args(*argv: str):
    return cli.build_parser().parse_args(["search", *argv])


def test_ui_info_warn_error_emit_prefixed_messages(monkeypatch: pytest.MonkeyPatch) -> None:
    lines = _capture_console(monkeypatch)

    cli._ui_info("hello")
    cli._ui_warn("careful")
    cli._ui_error("boom")

    assert lines == [
        "[cyan][INFO][/cyan] hello",
        "[yellow][WARNING][/yellow] careful",
        "[red][ERROR][/red] boom",
    ]


def test_build_query_infers_series_from_season() -> None:
    query = cli.build_query(_args("The Office", "--season", "2", "--episode", "3", "--year", "2005"))

    assert query.kind == "series"
    assert (query.season, query.episode, query.year) == (2, 3, 2005)


def test_build_query_movie_with_id() -> None:
    query = cli.build_query(_args("The Matrix", "--id", "tt0133093"))

    assert query.kind == "movie"
    assert query.external_id == "tt0133093"


def test_episode_without_season_is_invalid() -> None:
    with pytest.raises(InvalidConfig):
        cli.build_query(_args("The Office", "--episode", "3"))


def test_ranking_resolution_prefers_command_line() -> None:
    config = ReelsiftConfig(ranking=build_ranking_config("minSize"))

    assert cli.resolve_ranking(_args("x"), config).preset == "minSize"
    assert cli.resolve_ranking(_args("x", "--preset", "maxQuality"), config).preset == "maxQuality"
    by_quality = cli.resolve_ranking(_args("x", "--quality", "4k"), config)
    assert (by_quality.preset, by_quality.preferred_resolution) == ("minSize", "4K")


def test_timeout_flag_is_clamped() -> None:
    config = ReelsiftConfig(search=OrchestratorConfig(use_backup_aggregator=False))

    orchestrator = cli.resolve_orchestrator(_args("x", "--timeout", "1"), config)

    assert orchestrator.timeout_seconds == 5.0
    assert orchestrator.use_backup_aggregator is False
    assert cli.resolve_orchestrator(_args("x"), config) is config.search


def test_resolve_config_path_accepts_directory(tmp_path: Path) -> None:
    assert cli.resolve_config_path(str(tmp_path)) == tmp_path / "config.toml"


def test_resolve_config_path_without_file_uses_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    assert cli.resolve_config_path(None) is None


@pytest.mark.parametrize(("size", "expected"), [(0, "?"), (700 * 1024 ** 2, "700 MiB"), (int(1.5 * GIB), "1.5 GiB")])
def test_format_size(size: int, expected: str) -> None:
    assert cli._format_size(size) == expected


def test_invalid_config_exits_with_status_2(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    lines = _capture_console(monkeypatch)
    config_path = tmp_path / "config.toml"
    config_path.write_text("[ranking]\nmin_size_bytes = 10\nmax_size_bytes = 1\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["search", "The Matrix", "--config", str(config_path)])

    assert exc_info.value.code == 2
    assert any("exceeds max_size_bytes" in line for line in lines)


def test_missing_config_file_exits_with_status_2(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _capture_console(monkeypatch)

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["search", "The Matrix", "--config", str(tmp_path / "missing.toml")])

    assert exc_info.value.code == 2


def test_profiles_command_prints_tables(monkeypatch: pytest.MonkeyPatch) -> None:
    printed: list[object] = []
    monkeypatch.setattr(cli.console, "print", lambda msg="", *_args, **_kwargs: printed.append(msg))

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["profiles"])

    assert exc_info.value.code == 0
    assert [table.title for table in printed] == ["Source query profiles", "Ranking presets"]


@pytest.mark.asyncio
async def test_run_search_debug_writes_json_report(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _capture_console(monkeypatch)
    adapter = _StaticAdapter(
        "yts",
        [RawResult("The.Matrix.1999.1080p.BluRay.x264", 2 * GIB, 30, 2, "yts", "aa" * 20)],
    )
    monkeypatch.setattr(cli, "build_adapters", lambda config: ([adapter], None))
    json_path = tmp_path / "reports" / "matrix.json"

    results = await cli.run_search(
        ReelsiftConfig(),
        MATRIX,
        build_ranking_config(),
        OrchestratorConfig(),
        debug=True,
        json_path=json_path,
    )

    assert [result.source_id for result in results] == ["yts"]
    assert adapter.closed
    payload = json.loads(json_path.read_text(encoding="utf-8"))
    assert payload["funnel"]["final"] == 1


@pytest.mark.asyncio
async def test_run_search_without_results_warns(monkeypatch: pytest.MonkeyPatch) -> None:
    lines = _capture_console(monkeypatch)
    monkeypatch.setattr(cli, "build_adapters", lambda config: ([_StaticAdapter("yts", [])], None))

    results = await cli.run_search(ReelsiftConfig(), MATRIX, build_ranking_config(), OrchestratorConfig())

    assert results == []
    assert any("No results for The Matrix (1999)" in line for line in lines)
