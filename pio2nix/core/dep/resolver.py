"""依赖解析器

职责:
- 由清单 + 注册表响应构造 Dependency（纯函数，不做 I/O）
- 由清单 + 外部包摘要构造 Dependency
- 计算安装路径键（锁定文件的兼容性约定，不可随意变更）

I/O 全部经由传入的网关完成。
"""

from __future__ import annotations

import logging

from pio2nix.core.dep.models import Artifact, Dependency, PerPlatform, Universal
from pio2nix.core.dep.schema import RegistrySpec
from pio2nix.core.exceptions import ValidationError
from pio2nix.core.manifest import ExternalRef, PackageManifest, PackageType
from pio2nix.core.platforms import all_platforms
from pio2nix.core.protocols import RegistryGateway

logger = logging.getLogger(__name__)

_INSTALL_DIRS: dict[PackageType, str] = {
    PackageType.PLATFORM: "platforms",
    PackageType.PACKAGE: "packages",
    PackageType.TOOL: "packages",
    PackageType.LIBRARY: "libdeps",
}


def install_key(kind: PackageType, name: str) -> str:
    """platform -> platforms/<name>，package/tool -> packages/<name>，library -> libdeps/<name>"""
    return f"{_INSTALL_DIRS[kind]}/{name}"


def resolve_registry(manifest: PackageManifest, spec: RegistrySpec) -> Dependency:
    """注册表包：存在通配符文件则为 Universal，否则逐平台取第一个匹配文件"""
    version = spec.version
    wildcard = version.wildcard_file()
    if wildcard is not None:
        source: Universal | PerPlatform = Universal(
            Artifact.from_digest(wildcard.download_url, wildcard.checksum.sha256),
        )
    else:
        artifacts = {}
        for platform in all_platforms():
            file = version.file_for(platform)
            if file is not None:
                artifacts[platform] = Artifact.from_digest(file.download_url, file.checksum.sha256)
        if not artifacts:
            logger.info("%s@%s 不支持任何目标平台", spec.name, version.name)
        source = PerPlatform(artifacts)

    return Dependency(
        name=spec.name,
        version=version.name,
        kind=manifest.kind,
        source=source,
        manifest=manifest.snapshot(),
    )


def resolve_external(manifest: PackageManifest, digest: bytes) -> Dependency:
    """外部包：单一制品，URL 原样取自清单"""
    if not isinstance(manifest.spec, ExternalRef):
        raise ValidationError(f"'{manifest.name}' 不是外部包")
    return Dependency(
        name=manifest.spec.name,
        version=manifest.version,
        kind=manifest.kind,
        source=Universal(Artifact.from_digest(manifest.spec.uri, digest)),
        manifest=manifest.snapshot(),
    )


class DependencyResolver:
    """按清单来源分派到注册表查询或外部下载"""

    def __init__(self, gateway: RegistryGateway) -> None:
        self.gateway = gateway

    def resolve(self, manifest: PackageManifest) -> tuple[str, Dependency]:
        """返回 (安装路径键, 依赖)；任何错误都直接向上抛出"""
        if isinstance(manifest.spec, ExternalRef):
            digest = self.gateway.fetch_and_hash(manifest.spec.uri)
            dependency = resolve_external(manifest, digest)
        else:
            spec = self.gateway.resolve(manifest)
            dependency = resolve_registry(manifest, spec)
        return install_key(dependency.kind, dependency.name), dependency
