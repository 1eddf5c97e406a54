"""锁定文件：累积、冲突检测、序列化与格式升级

格式演进按整体结构的封闭变体建模（LockfileV1、LockfileV2），
每次运行只产出当前版本 V2；旧版本只读，统一经 upgrade_lockfile 升级。

V2 结构:
    {
      "version": "V2",
      "dependencies": {
        "<安装路径键>": {
          "name": ..., "version": ..., "manifest": "<清单 JSON 快照>",
          "src": {"external": "universal", "url": ..., "hash": ...}
               | {"external": "platform-specific", "<平台>": {"url": ..., "hash": ...}}
        }
      }
    }
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pio2nix.core.dep.models import (
    SHA256_PREFIX,
    Artifact,
    ArtifactSource,
    Dependency,
    PerPlatform,
    Universal,
)
from pio2nix.core.dep.resolver import install_key
from pio2nix.core.exceptions import LockfileError, SchemaError
from pio2nix.core.manifest import PackageType, parse_manifest
from pio2nix.core.platforms import Platform, all_platforms
from pio2nix.core.validation import validate_python
from pio2nix.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)


# =========================================================================
# 格式变体
# =========================================================================

@dataclass(frozen=True)
class LegacyDependency:
    """V1 依赖记录：以包名为键，按平台逐一列出制品"""

    name: str
    install_path: str
    version: str
    manifest: str
    systems: dict[Platform, Artifact]


@dataclass(frozen=True)
class LockfileV1:
    version: ClassVar[str] = "V1"

    dependencies: dict[str, LegacyDependency]


@dataclass(frozen=True)
class LockfileV2:
    version: ClassVar[str] = "V2"

    dependencies: dict[str, Dependency]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "dependencies": {
                key: self.dependencies[key].to_dict() for key in sorted(self.dependencies)
            },
        }


Lockfile = LockfileV2
AnyLockfile = LockfileV1 | LockfileV2
CURRENT_VERSION = Lockfile.version


# =========================================================================
# 累积存储
# =========================================================================

@dataclass(frozen=True)
class ConflictWarning:
    """同一安装路径下出现了来自不同清单的依赖（非致命，后写入者生效）"""

    install_key: str
    previous: Dependency
    current: Dependency

    @property
    def message(self) -> str:
        return f'Found duplicate dependency "{self.previous}", using "{self.current}"'


class StoreState(Enum):
    ACCUMULATING = "accumulating"
    FINALIZED = "finalized"


class LockfileStore:
    """按安装路径键累积依赖

    insert 在锁内完成比较与替换，多个解析线程可以并发写入。
    finalize 之后只读。
    """

    def __init__(self) -> None:
        self._dependencies: dict[str, Dependency] = {}
        self._lock = threading.Lock()
        self._state = StoreState.ACCUMULATING
        self.conflicts: list[ConflictWarning] = []

    @property
    def state(self) -> StoreState:
        return self._state

    def __len__(self) -> int:
        return len(self._dependencies)

    def __contains__(self, key: str) -> bool:
        return key in self._dependencies

    def get(self, key: str) -> Dependency | None:
        return self._dependencies.get(key)

    def insert(self, key: str, dependency: Dependency) -> ConflictWarning | None:
        """插入依赖；清单快照不同的重复键会记录告警，新记录总是生效"""
        with self._lock:
            if self._state is StoreState.FINALIZED:
                raise LockfileError(f"锁定文件已生成，不能再插入依赖: {key}")

            previous = self._dependencies.get(key)
            self._dependencies[key] = dependency
            if previous is None or previous.manifest == dependency.manifest:
                return None

            conflict = ConflictWarning(install_key=key, previous=previous, current=dependency)
            self.conflicts.append(conflict)
        logger.warning(
            'Found duplicate dependency "%s", using "%s"', previous, dependency,
            extra={"install_key": key},
        )
        return conflict

    def finalize(self) -> Lockfile:
        with self._lock:
            self._state = StoreState.FINALIZED
            return Lockfile(dependencies=dict(sorted(self._dependencies.items())))


# =========================================================================
# 读取与升级
# =========================================================================

class _ArtifactModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str
    hash: str

    @field_validator("hash")
    @classmethod
    def _check_hash(cls, value: str) -> str:
        if not value.startswith(SHA256_PREFIX):
            raise ValueError(f"hash must start with {SHA256_PREFIX!r}")
        return value

    def to_artifact(self) -> Artifact:
        return Artifact(url=self.url, hash=self.hash)


class _UniversalSrc(_ArtifactModel):
    external: Literal["universal"]


class _PlatformSpecificSrc(BaseModel):
    model_config = ConfigDict(extra="forbid")

    external: Literal["platform-specific"]
    aarch64_linux: _ArtifactModel | None = Field(default=None, alias="aarch64-linux")
    aarch64_darwin: _ArtifactModel | None = Field(default=None, alias="aarch64-darwin")
    x86_64_linux: _ArtifactModel | None = Field(default=None, alias="x86_64-linux")
    x86_64_darwin: _ArtifactModel | None = Field(default=None, alias="x86_64-darwin")

    def artifacts(self) -> dict[Platform, Artifact]:
        result = {}
        for platform in all_platforms():
            entry = getattr(self, platform.value.replace("-", "_"))
            if entry is not None:
                result[platform] = entry.to_artifact()
        return result


_Src = Annotated[Union[_UniversalSrc, _PlatformSpecificSrc], Field(discriminator="external")]


class _DependencyV2Model(BaseModel):
    name: str
    version: str
    manifest: str
    src: _Src


class _LockfileV2Model(BaseModel):
    version: Literal["V2"]
    dependencies: dict[str, _DependencyV2Model]


class _DependencyV1Model(BaseModel):
    name: str
    install_path: str
    version: str
    manifest: str
    systems: dict[Platform, _ArtifactModel]


class _LockfileV1Model(BaseModel):
    version: Literal["V1"]
    dependencies: dict[str, _DependencyV1Model]


def _manifest_kind(snapshot: str, path: str, source: str) -> PackageType:
    try:
        return parse_manifest(snapshot, source=source).kind
    except SchemaError as exc:
        inner = f"{path}.{exc.path}" if exc.path else path
        raise SchemaError(exc.reason, path=inner, source=source) from exc


def _parse_v1(payload: dict[str, Any], source: str) -> LockfileV1:
    model = validate_python(_LockfileV1Model, payload, source=source)
    return LockfileV1(dependencies={
        key: LegacyDependency(
            name=dep.name,
            install_path=dep.install_path,
            version=dep.version,
            manifest=dep.manifest,
            systems={p: a.to_artifact() for p, a in dep.systems.items()},
        )
        for key, dep in model.dependencies.items()
    })


def _parse_v2(payload: dict[str, Any], source: str) -> LockfileV2:
    model = validate_python(_LockfileV2Model, payload, source=source)
    dependencies = {}
    for key, dep in model.dependencies.items():
        if isinstance(dep.src, _UniversalSrc):
            src: ArtifactSource = Universal(dep.src.to_artifact())
        else:
            src = PerPlatform(dep.src.artifacts())
        dependencies[key] = Dependency(
            name=dep.name,
            version=dep.version,
            kind=_manifest_kind(dep.manifest, f"dependencies.{key}.manifest", source),
            source=src,
            manifest=dep.manifest,
        )
    return LockfileV2(dependencies=dependencies)


_PARSERS = {
    LockfileV1.version: _parse_v1,
    LockfileV2.version: _parse_v2,
}


def parse_lockfile(raw: str | bytes, source: str = "") -> AnyLockfile:
    """按 version 标签解析任意受支持版本的锁定文件"""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SchemaError(f"invalid JSON: {exc}", source=source) from exc
    if not isinstance(payload, dict):
        raise SchemaError("lockfile must be a JSON object", source=source)

    tag = payload.get("version")
    parser = _PARSERS.get(tag) if isinstance(tag, str) else None
    if parser is None:
        raise LockfileError(
            f"不支持的锁定文件版本: {tag!r}，支持: {', '.join(_PARSERS)}"
        )
    return parser(payload, source)


def _source_from_systems(systems: dict[Platform, Artifact]) -> ArtifactSource:
    # 四个平台齐全且制品相同即为通用制品
    artifacts = set(systems.values())
    if len(systems) == len(all_platforms()) and len(artifacts) == 1:
        return Universal(artifacts.pop())
    return PerPlatform(dict(systems))


def _upgrade_v1(lockfile: LockfileV1, source: str) -> LockfileV2:
    dependencies: dict[str, Dependency] = {}
    for name in sorted(lockfile.dependencies):
        legacy = lockfile.dependencies[name]
        kind = _manifest_kind(legacy.manifest, f"dependencies.{name}.manifest", source)
        dependencies[install_key(kind, legacy.name)] = Dependency(
            name=legacy.name,
            version=legacy.version,
            kind=kind,
            source=_source_from_systems(legacy.systems),
            manifest=legacy.manifest,
        )
    return LockfileV2(dependencies=dependencies)


def upgrade_lockfile(lockfile: AnyLockfile, source: str = "") -> Lockfile:
    """把任意受支持版本升级为当前版本（纯函数），source 仅用于报错定位"""
    if isinstance(lockfile, LockfileV1):
        return _upgrade_v1(lockfile, source)
    return lockfile


def load_lockfile(raw: str | bytes, source: str = "") -> Lockfile:
    return upgrade_lockfile(parse_lockfile(raw, source=source), source=source)


def read_lockfile(path: str | Path) -> Lockfile:
    lock_path = Path(path)
    try:
        raw = lock_path.read_bytes()
    except FileNotFoundError as exc:
        raise LockfileError(f"锁定文件不存在: {lock_path}") from exc
    return load_lockfile(raw, source=str(lock_path))


def serialize_lockfile(lockfile: Lockfile) -> str:
    return json.dumps(lockfile.to_dict(), indent=2, ensure_ascii=False) + "\n"


def write_lockfile(lockfile: Lockfile, path: str | Path) -> Path:
    lock_path = Path(path)
    atomic_write(lock_path, serialize_lockfile(lockfile))
    logger.info("锁定文件已写入: %s", lock_path)
    return lock_path
