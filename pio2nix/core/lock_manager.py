"""锁定文件生成器

扫描 core_dir（全局工具链与库）和 workspace_dir（项目依赖）下的清单，
逐个解析为依赖并写入 LockfileStore，最终生成锁定文件。

核心逻辑:
  - 各清单相互独立，可并行解析（max_workers > 1）
  - 结果按扫描顺序写入存储，并行时"后写入者生效"的结果依然确定
  - 先 core_dir 后 workspace_dir，同一安装路径以 workspace 为准
  - 任一清单失败默认中止整个运行；keep_going=True 时记录并跳过

用法:
    from pio2nix.core.lock_manager import LockManager

    lm = LockManager.from_config(get_config())
    lockfile = lm.lock([core_dir, workspace_dir])
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable

from pio2nix.core.config import Config
from pio2nix.core.dep.fetcher import HttpFetcher, ResponseCache
from pio2nix.core.dep.models import Dependency
from pio2nix.core.dep.registry import RegistryClient
from pio2nix.core.dep.resolver import DependencyResolver
from pio2nix.core.exceptions import Pio2NixError
from pio2nix.core.lockfile import Lockfile, LockfileStore
from pio2nix.core.manifest import DiscoveredManifest, ManifestScanner

logger = logging.getLogger(__name__)

Resolved = tuple[str, Dependency]


class LockManager:
    """锁定文件生成的统一入口"""

    def __init__(
        self,
        resolver: DependencyResolver,
        *,
        max_workers: int = 1,
        keep_going: bool = False,
    ) -> None:
        self.resolver = resolver
        self.max_workers = max(1, max_workers)
        self.keep_going = keep_going
        self.failures: dict[str, str] = {}
        self.store: LockfileStore | None = None

    @classmethod
    def from_config(cls, config: Config, *, keep_going: bool = False) -> LockManager:
        """按配置组装 拉取器 -> 注册表客户端 -> 解析器"""
        fetcher = HttpFetcher(cache=ResponseCache(config.cache_dir), timeout=config.timeout)
        client = RegistryClient(fetcher, registry_url=config.registry_url)
        return cls(
            DependencyResolver(client),
            max_workers=config.max_workers,
            keep_going=keep_going,
        )

    def discover(self, roots: Iterable[Path | None]) -> list[DiscoveredManifest]:
        manifests: list[DiscoveredManifest] = []
        for root in roots:
            if root is None:
                continue
            manifests.extend(ManifestScanner(root).scan())
        return manifests

    def lock(self, roots: Iterable[Path | None]) -> Lockfile:
        """扫描各目录并生成锁定文件"""
        manifests = self.discover(roots)
        self.failures = {}
        self.store = LockfileStore()

        for resolved in self._resolve_all(manifests):
            if resolved is not None:
                self.store.insert(*resolved)

        if self.failures:
            logger.warning(
                "解析汇总: %d 成功, %d 失败 (%s)",
                len(manifests) - len(self.failures),
                len(self.failures),
                ", ".join(self.failures),
            )
        lockfile = self.store.finalize()
        logger.info("锁定文件包含 %d 个依赖", len(lockfile.dependencies))
        return lockfile

    def resolve_one(self, discovered: DiscoveredManifest) -> Resolved:
        manifest = discovered.parse()
        logger.info("解析: %s (%s)", manifest.name, discovered.install_path)
        return self.resolver.resolve(manifest)

    def _resolve_all(self, manifests: list[DiscoveredManifest]) -> list[Resolved | None]:
        if self.max_workers == 1 or len(manifests) <= 1:
            return [self._resolve_guarded(m) for m in manifests]

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self._resolve_guarded, m) for m in manifests]
            try:
                return [f.result() for f in futures]
            except Exception:
                for f in futures:
                    f.cancel()
                raise

    def _resolve_guarded(self, discovered: DiscoveredManifest) -> Resolved | None:
        try:
            return self.resolve_one(discovered)
        except Pio2NixError as exc:
            if not self.keep_going:
                raise
            logger.error(
                "解析失败，已跳过: %s - %s", discovered.source, exc,
                extra={"source": discovered.source},
            )
            self.failures[str(discovered.source)] = str(exc)
            return None
