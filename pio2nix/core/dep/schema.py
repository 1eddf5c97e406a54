"""注册表 API 响应模型

对应 GET /v3/packages/{owner}/{kind}/{name} 与 GET /v3/search 的响应体。
上游接口的结构曾经变化过（文件的 system 字段既可能是通配符 "*"，
也可能是 system 标识数组），这里按值的形状解析，两种写法都支持。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainValidator

from pio2nix.core.platforms import (
    Platform,
    SystemTag,
    parse_system_tag,
    to_registry_platform,
)

WILDCARD = "*"
SHA256_SIZE = 32


@dataclass(frozen=True, slots=True)
class SystemFilter:
    """文件适用的平台：通配符或显式 system 列表"""

    wildcard: bool
    systems: tuple[SystemTag, ...] = ()

    @classmethod
    def parse(cls, value: Any) -> SystemFilter:
        if isinstance(value, SystemFilter):
            return value
        if isinstance(value, str):
            if value == WILDCARD:
                return cls(wildcard=True)
            raise ValueError(f'expected "*" or an array of systems, got string {value!r}')
        if isinstance(value, list):
            tags = []
            for index, item in enumerate(value):
                if not isinstance(item, str):
                    raise ValueError(f"system[{index}] must be a string, got {item!r}")
                tags.append(parse_system_tag(item))
            return cls(wildcard=False, systems=tuple(tags))
        raise ValueError(
            f'expected "*" or an array of systems, got {type(value).__name__}'
        )

    def __str__(self) -> str:
        if self.wildcard:
            return WILDCARD
        return ",".join(str(s) for s in self.systems)

    def supports(self, system: SystemTag) -> bool:
        return self.wildcard or system in self.systems

    def supports_platform(self, platform: Platform) -> bool:
        return self.supports(to_registry_platform(platform))


def _decode_sha256(value: Any) -> bytes:
    if isinstance(value, bytes):
        digest = value
    elif isinstance(value, str):
        try:
            digest = bytes.fromhex(value)
        except ValueError as exc:
            raise ValueError(f"sha256 is not valid hex: {value!r}") from exc
    else:
        raise ValueError(f"sha256 must be a hex string, got {type(value).__name__}")
    if len(digest) != SHA256_SIZE:
        raise ValueError(f"sha256 must be {SHA256_SIZE} bytes, got {len(digest)}")
    return digest


PlatformFilter = Annotated[SystemFilter, PlainValidator(SystemFilter.parse)]
Sha256Digest = Annotated[bytes, PlainValidator(_decode_sha256)]


class Checksum(BaseModel):
    model_config = ConfigDict(frozen=True)

    sha256: Sha256Digest


class RegistryFile(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    system: PlatformFilter
    download_url: str
    checksum: Checksum


class RegistryVersion(BaseModel):
    """某个版本及其各平台文件"""

    model_config = ConfigDict(frozen=True)

    name: str
    files: list[RegistryFile]

    def wildcard_file(self) -> RegistryFile | None:
        """第一个适用于所有平台的文件"""
        return next((f for f in self.files if f.system.wildcard), None)

    def file_for(self, platform: Platform) -> RegistryFile | None:
        """第一个支持该平台的文件

        注册表通常对每个平台至多返回一个匹配文件；若有多个，
        按列表顺序取第一个（上游未承诺此顺序）。
        """
        return next((f for f in self.files if f.system.supports_platform(platform)), None)


class RegistrySpec(BaseModel):
    """包详情：当前解析到的版本 + 全部可用版本"""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: str | None = Field(default=None, alias="type")
    version: RegistryVersion
    versions: list[RegistryVersion] = Field(default_factory=list)

    @property
    def version_name(self) -> str:
        return self.version.name

    @property
    def files(self) -> list[RegistryFile]:
        return self.version.files


class SearchOwner(BaseModel):
    username: str


class SearchItem(BaseModel):
    owner: SearchOwner
    name: str
    kind: str = Field(alias="type")
    latest: RegistryVersion = Field(alias="version")


class SearchResults(BaseModel):
    items: list[SearchItem]
