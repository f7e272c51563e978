# Shared pytest fixtures
from __future__ import annotations

from pathlib import Path

import pytest

from shipflow.config import PipelineConfig, StoreConfig
from shipflow.storage.memory_store import InMemoryTableStore
from tests.fakes import RAW_HEADERS, FakeDelivery


@pytest.fixture()
def config(tmp_path: Path) -> PipelineConfig:
    cfg = PipelineConfig(
        store=StoreConfig(backend='memory'),
        lock_file=str(tmp_path / 'locks' / 'shipflow.lock'),
    )
    cfg.email.recipient = 'labels@example.com'
    return cfg


@pytest.fixture()
def store(config: PipelineConfig) -> InMemoryTableStore:
    s = InMemoryTableStore()
    for name in config.sheets.all_names():
        s.create_table(name)
    return s


@pytest.fixture()
def delivery() -> FakeDelivery:
    return FakeDelivery()


@pytest.fixture()
def raw_headers() -> list[str]:
    return list(RAW_HEADERS)
