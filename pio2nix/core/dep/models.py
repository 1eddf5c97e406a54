"""依赖数据模型

数据类:
- Artifact: 下载地址 + SRI 格式完整性哈希
- Universal / PerPlatform: 通用制品或按平台区分的制品
- Dependency: 解析完成的依赖记录
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any

from pio2nix.core.exceptions import ValidationError
from pio2nix.core.manifest import PackageType
from pio2nix.core.platforms import Platform, all_platforms

SHA256_PREFIX = "sha256-"
SHA256_SIZE = 32


def sri_sha256(digest: bytes) -> str:
    """32 字节摘要 -> "sha256-<标准 base64>" """
    if len(digest) != SHA256_SIZE:
        raise ValidationError(f"sha256 摘要长度应为 {SHA256_SIZE} 字节，实际 {len(digest)}")
    return SHA256_PREFIX + base64.b64encode(digest).decode("ascii")


def sri_from_hex(hex_digest: str) -> str:
    """注册表返回的十六进制摘要重新编码为 SRI 格式"""
    try:
        digest = bytes.fromhex(hex_digest)
    except ValueError as exc:
        raise ValidationError(f"无效的十六进制摘要: {hex_digest!r}") from exc
    return sri_sha256(digest)


@dataclass(frozen=True, slots=True)
class Artifact:
    url: str
    hash: str

    @classmethod
    def from_digest(cls, url: str, digest: bytes) -> Artifact:
        return cls(url=url, hash=sri_sha256(digest))

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "hash": self.hash}


@dataclass(frozen=True, slots=True)
class Universal:
    """单一制品，适用于所有平台"""

    artifact: Artifact

    def to_dict(self) -> dict[str, Any]:
        return {"external": "universal", **self.artifact.to_dict()}


@dataclass(frozen=True)
class PerPlatform:
    """按平台区分的制品，缺失的平台表示不支持该平台"""

    artifacts: dict[Platform, Artifact] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # 统一为平台目录顺序，保证序列化结果稳定
        ordered = {p: self.artifacts[p] for p in all_platforms() if p in self.artifacts}
        object.__setattr__(self, "artifacts", ordered)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"external": "platform-specific"}
        for platform, artifact in self.artifacts.items():
            payload[platform.value] = artifact.to_dict()
        return payload


ArtifactSource = Universal | PerPlatform


@dataclass(frozen=True)
class Dependency:
    """解析完成的依赖，构造后不可变

    manifest 为原始清单的紧凑 JSON 快照，用于判断同一安装路径下的
    两条记录是否来自同一份清单。
    """

    name: str
    version: str
    kind: PackageType
    source: ArtifactSource
    manifest: str

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "manifest": self.manifest,
            "src": self.source.to_dict(),
        }
