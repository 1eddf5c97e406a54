"""配置加载与目录推断单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from pio2nix.core import config as config_mod
from pio2nix.core.config import (
    Config,
    default_cache_dir,
    get_config,
    init_config,
    resolve_core_dir,
    resolve_workspace_dir,
)
from pio2nix.core.dep.registry import DEFAULT_REGISTRY_URL
from pio2nix.core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def _reset_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_mod, "_current", None)


class TestConfigFile:
    def test_defaults(self) -> None:
        cfg = Config()
        assert cfg.registry_url == DEFAULT_REGISTRY_URL
        assert cfg.max_workers == 1

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert Config.from_file(tmp_path / "nope.yml") == Config()

    def test_load(self, tmp_path: Path) -> None:
        path = tmp_path / "pio2nix.yml"
        path.write_text(
            "registry_url: https://mirror.example\n"
            "max_workers: 4\n"
            "timeout: 5\n"
            "custom_key: 1\n",
            encoding="utf-8",
        )
        cfg = Config.from_file(path)
        assert cfg.registry_url == "https://mirror.example"
        assert cfg.max_workers == 4
        assert cfg.timeout == 5
        assert cfg.extra == {"custom_key": 1}

    def test_invalid_workers(self, tmp_path: Path) -> None:
        path = tmp_path / "pio2nix.yml"
        path.write_text("max_workers: 0\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="max_workers"):
            Config.from_file(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "pio2nix.yml"
        path.write_text("key: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            Config.from_file(path)

    def test_to_dict(self) -> None:
        assert Config().to_dict()["timeout"] == 30.0


class TestGlobalConfig:
    def test_get_default(self) -> None:
        assert get_config() == Config()

    def test_init_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "pio2nix.yml"
        path.write_text("max_workers: 3\n", encoding="utf-8")
        init_config(path)
        assert get_config().max_workers == 3


class TestDefaultDirs:
    def test_cache_dir_xdg(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
        assert default_cache_dir() == str(tmp_path / "platformio2nix" / "registry")

    def test_core_dir_explicit_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLATFORMIO_CORE_DIR", "/env/core")
        assert resolve_core_dir("/cli/core") == Path("/cli/core")

    def test_core_dir_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLATFORMIO_CORE_DIR", "/env/core")
        assert resolve_core_dir() == Path("/env/core")

    def test_core_dir_home(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("PLATFORMIO_CORE_DIR", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert resolve_core_dir() == tmp_path / ".platformio"

    def test_workspace_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLATFORMIO_WORKSPACE_DIR", "/env/ws")
        assert resolve_workspace_dir() == Path("/env/ws")

    def test_workspace_walks_up(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("PLATFORMIO_WORKSPACE_DIR", raising=False)
        (tmp_path / ".pio").mkdir()
        nested = tmp_path / "src" / "deep"
        nested.mkdir(parents=True)
        assert resolve_workspace_dir(cwd=nested) == tmp_path / ".pio"

    def test_workspace_not_found(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.delenv("PLATFORMIO_WORKSPACE_DIR", raising=False)
        monkeypatch.setattr(config_mod, "WORKSPACE_DIRNAME", ".pio-test-sentinel")
        assert resolve_workspace_dir(cwd=tmp_path) is None
