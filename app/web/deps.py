"""路由共享的依赖：配置、书库与测量器。"""

from __future__ import annotations

from functools import lru_cache

from reader.config import ReaderConfig
from reader.layout.measure import Measurer, PillowMeasurer
from reader.store import LibraryStore


@lru_cache
def get_config() -> ReaderConfig:
    return ReaderConfig.from_env()


@lru_cache
def get_store() -> LibraryStore:
    return LibraryStore(get_config().data_dir)


@lru_cache
def get_measurer() -> Measurer:
    return PillowMeasurer(get_config().font_path)
