"""PlatformIO 注册表客户端

职责:
- 注册表包: GET /v3/packages/{owner}/{kind}/{name}?version=<精确版本>
- 外部包: 下载 URI 并计算 sha256 摘要
- 包搜索: GET /v3/search?query=name:"..."

所有请求都经由注入的 Fetcher（默认带磁盘缓存），本模块不持有全局状态。
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import TypeVar

from pydantic import BaseModel

from pio2nix.core.dep.schema import RegistrySpec, SearchResults
from pio2nix.core.exceptions import ValidationError
from pio2nix.core.manifest import PackageManifest, PackageType, RegistryRef
from pio2nix.core.protocols import Fetcher
from pio2nix.core.validation import validate_json
from pio2nix.utils.net import build_url, validate_url_scheme

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://api.registry.platformio.org"

ModelT = TypeVar("ModelT", bound=BaseModel)


class RegistryClient:
    """注册表网关"""

    def __init__(self, fetcher: Fetcher, registry_url: str = DEFAULT_REGISTRY_URL) -> None:
        validate_url_scheme(registry_url, context="registry_url")
        self.fetcher = fetcher
        self.registry_url = registry_url.rstrip("/")

    def package_url(
        self, owner: str, kind: PackageType, name: str, version: str | None = None,
    ) -> str:
        query = {"version": version} if version else None
        return build_url(
            self.registry_url,
            ["v3", "packages", owner, kind.registry_kind, name],
            query,
        )

    def get_package_spec(
        self, owner: str, kind: PackageType, name: str, version: str | None = None,
    ) -> RegistrySpec:
        url = self.package_url(owner, kind, name, version)
        logger.info("查询注册表: %s/%s@%s", owner, name, version or "latest")
        return self._get_json(RegistrySpec, url)

    def resolve(self, manifest: PackageManifest) -> RegistrySpec:
        """按清单中的精确版本查询注册表"""
        if not isinstance(manifest.spec, RegistryRef):
            raise ValidationError(f"外部包 '{manifest.name}' 不在注册表中，无法查询")
        return self.get_package_spec(
            manifest.spec.owner, manifest.kind, manifest.spec.name, manifest.version,
        )

    def fetch_and_hash(self, uri: str) -> bytes:
        """下载外部包完整内容，返回 32 字节 sha256 摘要"""
        body = self.fetcher.get(uri)
        digest = hashlib.sha256(body).digest()
        logger.info("已计算哈希: %s (%d 字节)", uri, len(body))
        return digest

    def search(self, names: list[str] | tuple[str, ...]) -> SearchResults:
        """按包名搜索，多个名称以空格连接"""
        query = " ".join(f"name:{json.dumps(name)}" for name in names)
        url = build_url(self.registry_url, ["v3", "search"], {"query": query})
        return self._get_json(SearchResults, url)

    def _get_json(self, model: type[ModelT], url: str) -> ModelT:
        body = self.fetcher.get(url)
        return validate_json(model, body, source=url)
