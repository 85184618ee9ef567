"""Source adapters and the registry that builds them from configuration."""

from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence

from reelsift.config import ReelsiftConfig, SourceConfig
from reelsift.errors import InvalidConfig
from reelsift.search.protocols import SourceAdapter
from reelsift.sources.stream_addon import StreamAddonAdapter
from reelsift.sources.yts import YtsAdapter

AdapterFactory = Callable[[str, SourceConfig], SourceAdapter]

ADAPTER_FACTORIES: Dict[str, AdapterFactory] = {
    "yts": YtsAdapter.from_config,
    "torrentio": StreamAddonAdapter.from_config,
}


def build_adapters(config: ReelsiftConfig) -> tuple[list[SourceAdapter], Optional[SourceAdapter]]:
    """
    Build (primary adapters, backup adapter) from configuration.

    Every registered source is enabled unless its ``[sources.<name>]`` table
    says otherwise. The configured backup source is never also a primary.
    """
    unknown = sorted(set(config.sources) - set(ADAPTER_FACTORIES))
    if unknown:
        known = ", ".join(ADAPTER_FACTORIES)
        raise InvalidConfig(f"Unknown source(s) in configuration: {', '.join(unknown)}. Known sources: {known}.")

    backup_id = config.search.backup_source.lower()
    if backup_id not in ADAPTER_FACTORIES:
        raise InvalidConfig(f"Unknown backup source '{config.search.backup_source}'")

    primary: list[SourceAdapter] = []
    for source_id, factory in ADAPTER_FACTORIES.items():
        if source_id == backup_id:
            continue
        source_config = config.sources.get(source_id, SourceConfig())
        if source_config.enabled:
            primary.append(factory(source_id, source_config))

    backup: Optional[SourceAdapter] = None
    backup_config = config.sources.get(backup_id, SourceConfig())
    if config.search.use_backup_aggregator and backup_config.enabled:
        backup = ADAPTER_FACTORIES[backup_id](backup_id, backup_config)
    return primary, backup


async def close_adapters(adapters: Sequence[Optional[SourceAdapter]]) -> None:
    """Close adapters that hold network resources."""
    for adapter in adapters:
        close = getattr(adapter, "close", None)
        if close is not None:
            await close()
