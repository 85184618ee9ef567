from __future__ import annotations

import asyncio

import pytest

from reelsift.config import OrchestratorConfig, ReelsiftConfig, SourceConfig
from reelsift.errors import InvalidConfig
from reelsift.sources import build_adapters, close_adapters
from reelsift.sources.stream_addon import StreamAddonAdapter
from reelsift.sources.yts import YtsAdapter


def test_defaults_build_every_primary_and_the_backup() -> None:
    primary, backup = build_adapters(ReelsiftConfig())

    assert [adapter.source_id for adapter in primary] == ["yts"]
    assert isinstance(primary[0], YtsAdapter)
    assert isinstance(backup, StreamAddonAdapter)


def test_disabled_sources_are_skipped() -> None:
    config = ReelsiftConfig(sources={"yts": SourceConfig(enabled=False), "torrentio": SourceConfig(enabled=False)})

    primary, backup = build_adapters(config)

    assert primary == []
    assert backup is None


def test_backup_gate_turns_off_backup() -> None:
    config = ReelsiftConfig(search=OrchestratorConfig(use_backup_aggregator=False))

    _, backup = build_adapters(config)

    assert backup is None


def test_source_settings_reach_the_adapter() -> None:
    config = ReelsiftConfig(sources={"yts": SourceConfig(urls=["https://mirror.example"], timeout=3)})

    primary, _ = build_adapters(config)

    assert primary[0].mirrors == ["https://mirror.example"]
    assert primary[0].client.timeout == 3


def test_unknown_source_names_are_rejected() -> None:
    with pytest.raises(InvalidConfig, match="nyaa"):
        build_adapters(ReelsiftConfig(sources={"nyaa": SourceConfig()}))


def test_unknown_backup_is_rejected() -> None:
    with pytest.raises(InvalidConfig, match="backup"):
        build_adapters(ReelsiftConfig(search=OrchestratorConfig(backup_source="jackett")))


def test_close_adapters_skips_adapters_without_close() -> None:
    closed: list[str] = []

    class _Closable:
        source_id = "a"

        async def close(self) -> None:
            closed.append(self.source_id)

    class _Plain:
        source_id = "b"

    asyncio.run(close_adapters([_Closable(), _Plain(), None]))

    assert closed == ["a"]
