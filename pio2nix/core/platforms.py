"""目标平台目录

四个受支持的目标平台（两种架构 × 两种操作系统）及其与注册表
system 标识之间的映射。纯静态查表，无状态。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Platform(StrEnum):
    """锁定文件中的平台标签（kebab-case）"""

    AARCH64_LINUX = "aarch64-linux"
    AARCH64_DARWIN = "aarch64-darwin"
    X86_64_LINUX = "x86_64-linux"
    X86_64_DARWIN = "x86_64-darwin"


class RegistrySystem(StrEnum):
    """注册表侧已知的 system 标识"""

    DARWIN_X86_64 = "darwin_x86_64"
    DARWIN_ARM64 = "darwin_arm64"
    LINUX_X86_64 = "linux_x86_64"
    LINUX_AARCH64 = "linux_aarch64"
    LINUX_I686 = "linux_i686"


@dataclass(frozen=True, slots=True)
class OtherSystem:
    """注册表返回的未知 system 标识，原样保留"""

    tag: str

    def __str__(self) -> str:
        return self.tag


SystemTag = RegistrySystem | OtherSystem

_ALL_PLATFORMS: tuple[Platform, ...] = (
    Platform.AARCH64_LINUX,
    Platform.AARCH64_DARWIN,
    Platform.X86_64_LINUX,
    Platform.X86_64_DARWIN,
)

_TO_REGISTRY: dict[Platform, RegistrySystem] = {
    Platform.AARCH64_LINUX: RegistrySystem.LINUX_AARCH64,
    Platform.AARCH64_DARWIN: RegistrySystem.DARWIN_ARM64,
    Platform.X86_64_LINUX: RegistrySystem.LINUX_X86_64,
    Platform.X86_64_DARWIN: RegistrySystem.DARWIN_X86_64,
}


def all_platforms() -> tuple[Platform, ...]:
    """按固定顺序返回全部平台"""
    return _ALL_PLATFORMS


def to_registry_platform(platform: Platform) -> RegistrySystem:
    return _TO_REGISTRY[platform]


def parse_system_tag(tag: str) -> SystemTag:
    """解析注册表 system 标识，未知值归入 OtherSystem 而不报错"""
    try:
        return RegistrySystem(tag)
    except ValueError:
        return OtherSystem(tag)
