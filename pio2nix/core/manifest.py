"""本地包清单（.piopm）扫描与解析

职责:
- 在 core_dir / workspace_dir 下递归查找已安装包的 .piopm 清单
- 将清单解析为类型化的 PackageManifest（注册表包或外部 URI 包）
- 生成清单快照，用于锁定文件中的重复检测
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path, PurePosixPath
from typing import Annotated, Any, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

from pio2nix.core.exceptions import DiscoveryError
from pio2nix.core.validation import validate_json

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = ".piopm"


class PackageType(StrEnum):
    PLATFORM = "platform"
    PACKAGE = "package"
    TOOL = "tool"
    LIBRARY = "library"

    @property
    def registry_kind(self) -> str:
        """注册表 URL 中的类型路径段（package 与 library 共用 library）"""
        if self is PackageType.PLATFORM:
            return "platform"
        if self is PackageType.TOOL:
            return "tool"
        return "library"


class RegistryRef(BaseModel):
    """托管在 PlatformIO 注册表中的包"""

    model_config = ConfigDict(extra="allow", frozen=True)

    owner: str
    name: str


class ExternalRef(BaseModel):
    """通过外部 URI 安装的包（如 GitHub 归档）"""

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str
    uri: str


def _origin_tag(value: Any) -> str | None:
    # owner 为字符串即注册表包；外部包的 owner 为 null 或缺失
    if isinstance(value, dict):
        return "registry-ref" if isinstance(value.get("owner"), str) else "external-ref"
    if isinstance(value, RegistryRef):
        return "registry-ref"
    if isinstance(value, ExternalRef):
        return "external-ref"
    return None


PackageOrigin = Annotated[
    Union[
        Annotated[RegistryRef, Tag("registry-ref")],
        Annotated[ExternalRef, Tag("external-ref")],
    ],
    Discriminator(_origin_tag),
]


class PackageManifest(BaseModel):
    """.piopm 清单内容，未知字段原样保留"""

    model_config = ConfigDict(extra="allow", frozen=True)

    kind: PackageType = Field(alias="type")
    version: str
    spec: PackageOrigin

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def is_external(self) -> bool:
        return isinstance(self.spec, ExternalRef)

    def snapshot(self) -> str:
        """紧凑 JSON 序列化：声明字段在前，其余字段按键名排序"""
        if isinstance(self.spec, RegistryRef):
            spec = _with_extra(self.spec, {"owner": self.spec.owner, "name": self.spec.name})
        else:
            spec = _with_extra(self.spec, {"name": self.spec.name, "uri": self.spec.uri})
        payload = _with_extra(self, {"type": self.kind.value, "version": self.version, "spec": spec})
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _with_extra(model: BaseModel, declared: dict[str, Any]) -> dict[str, Any]:
    extra = model.model_extra or {}
    for key in sorted(extra):
        declared[key] = extra[key]
    return declared


def parse_manifest(raw: str | bytes, source: str = "") -> PackageManifest:
    """解析清单 JSON，结构不符时抛出带字段路径的 SchemaError"""
    return validate_json(PackageManifest, raw, source=source)


@dataclass(frozen=True, slots=True)
class DiscoveredManifest:
    """扫描得到的清单：相对安装路径 + 原始字节"""

    install_path: str
    raw: bytes
    source: Path

    def parse(self) -> PackageManifest:
        return parse_manifest(self.raw, source=str(self.source))


class ManifestScanner:
    """递归扫描目录下的 .piopm 清单

    含 .piopm 的目录视为一个已安装包，不再向下递归；
    其余目录继续向下查找。目录项按名称排序，保证结果稳定。
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def scan(self) -> list[DiscoveredManifest]:
        if not self.root.is_dir():
            logger.info("目录不存在，跳过扫描: %s", self.root)
            return []
        found: list[DiscoveredManifest] = []
        self._walk(self.root, PurePosixPath(), found, frozenset({self.root.resolve()}))
        logger.info("扫描 %s: 发现 %d 个清单", self.root, len(found))
        return found

    def _walk(
        self,
        directory: Path,
        parent: PurePosixPath,
        found: list[DiscoveredManifest],
        ancestors: frozenset[Path],
    ) -> None:
        # ancestors 为当前路径上各目录的真实路径，用于截断符号链接环
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise DiscoveryError(f"读取目录失败: {directory} - {exc}", path=str(directory)) from exc

        for entry in entries:
            if not entry.is_dir():
                continue
            relative = parent / entry.name
            manifest_path = entry / MANIFEST_FILENAME
            if not manifest_path.is_file():
                try:
                    real = entry.resolve()
                except (OSError, RuntimeError) as exc:
                    raise DiscoveryError(f"解析目录失败: {entry} - {exc}", path=str(entry)) from exc
                if real in ancestors:
                    logger.warning("跳过指向上级目录的符号链接: %s -> %s", entry, real)
                    continue
                self._walk(entry, relative, found, ancestors | {real})
                continue
            try:
                raw = manifest_path.read_bytes()
            except OSError as exc:
                raise DiscoveryError(
                    f"读取清单失败: {manifest_path} - {exc}", path=str(manifest_path),
                ) from exc
            logger.debug("发现清单: %s", manifest_path)
            found.append(DiscoveredManifest(
                install_path=str(relative), raw=raw, source=manifest_path,
            ))
