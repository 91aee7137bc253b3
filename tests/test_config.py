from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

import incubpy.config as config_module
from incubpy.config import Config, configure, get_config


@pytest.fixture(autouse=True)
def _restore_config() -> Iterator[None]:
    saved = config_module._CONFIG
    yield
    config_module._CONFIG = saved


def test_defaults() -> None:
    config = Config()
    assert config.seed == 2020
    assert config.n_boot == 1000
    assert config.origin_label == "Wuhan"
    assert config.probs[0] == 0.0
    assert config.min_reviews == 2


def test_cache_dir_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INCUBPY_CACHE_DIR", str(tmp_path / "cache"))
    assert Config().cache_dir == tmp_path / "cache"


def test_configure_updates_global() -> None:
    updated = configure(n_boot=50, zero_width="nudge")
    assert get_config() is updated
    assert updated.n_boot == 50
    assert updated.zero_width == "nudge"


def test_configure_rejects_unknown_field() -> None:
    with pytest.raises(TypeError):
        configure(bogus=1)
