"""集中配置管理

注册表地址、缓存目录、超时等默认值只在这里解析一次，
再显式传给网关和拉取器的构造函数；核心模块不读取全局状态。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from pio2nix.core.dep.registry import DEFAULT_REGISTRY_URL
from pio2nix.core.exceptions import ConfigError
from pio2nix.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

CACHE_PREFIX = "platformio2nix"
WORKSPACE_DIRNAME = ".pio"


def default_cache_dir() -> str:
    """$XDG_CACHE_HOME/platformio2nix/registry，未设置时回退到 ~/.cache"""
    base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return str(Path(base) / CACHE_PREFIX / "registry")


@dataclass
class Config:
    """全局配置"""

    registry_url: str = DEFAULT_REGISTRY_URL
    cache_dir: str = field(default_factory=default_cache_dir)

    # 网络
    timeout: float = 30.0

    # 并行解析的线程数，1 表示串行
    max_workers: int = 1

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str | Path) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, OSError, ValueError) as exc:
            raise ConfigError(f"读取配置文件失败: {path} - {exc}") from exc
        if not data:
            return cls()
        known = {f.name for f in fields(cls)} - {"extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as exc:
            raise ConfigError(f"配置文件无效: {path} - {exc}") from exc
        cfg.extra = extra
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise ConfigError(f"max_workers 必须是正整数: {self.max_workers!r}")
        if not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            raise ConfigError(f"timeout 必须大于 0: {self.timeout!r}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str | Path | None = None) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path) if path else Config()
    if path:
        logger.info("配置已加载: %s", path)
    return _current


def resolve_core_dir(explicit: str | Path | None = None) -> Path:
    """core_dir: 显式参数 -> $PLATFORMIO_CORE_DIR -> ~/.platformio"""
    if explicit:
        return Path(explicit)
    env = os.environ.get("PLATFORMIO_CORE_DIR")
    if env:
        return Path(env)
    try:
        return Path.home() / ".platformio"
    except RuntimeError as exc:
        raise ConfigError("无法推断 core_dir，请通过 --core-dir 指定") from exc


def resolve_workspace_dir(
    explicit: str | Path | None = None, cwd: str | Path | None = None,
) -> Path | None:
    """workspace_dir: 显式参数 -> $PLATFORMIO_WORKSPACE_DIR -> 向上查找最近的 .pio 目录"""
    if explicit:
        return Path(explicit)
    env = os.environ.get("PLATFORMIO_WORKSPACE_DIR")
    if env:
        return Path(env)
    start = Path(cwd) if cwd else Path.cwd()
    for directory in (start, *start.parents):
        candidate = directory / WORKSPACE_DIRNAME
        if candidate.is_dir():
            return candidate
    return None
