"""领域协议定义

集中定义各层之间的接口契约（Protocol），上层依赖抽象而非具体实现。
使用 typing.Protocol 而非 ABC，测试替身无需继承即可满足协议。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pio2nix.core.dep.schema import RegistrySpec
    from pio2nix.core.manifest import PackageManifest


class Fetcher(Protocol):
    """HTTP GET 传输层协议

    实现需保证：非 2xx 响应抛出 HttpStatusError，传输失败抛出 NetworkError。
    """

    def get(self, url: str) -> bytes:
        ...


class RegistryGateway(Protocol):
    """注册表网关协议，供编排层注入"""

    def resolve(self, manifest: PackageManifest) -> RegistrySpec:
        """查询注册表包的版本与文件信息"""
        ...

    def fetch_and_hash(self, uri: str) -> bytes:
        """下载外部包并返回 sha256 摘要"""
        ...
