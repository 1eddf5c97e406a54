"""依赖解析模块

拆分说明:
- models.py: 依赖与制品数据模型
- schema.py: 注册表响应模型
- fetcher.py: HTTP 拉取与磁盘缓存
- registry.py: 注册表客户端
- resolver.py: 清单 -> 依赖 的纯转换
"""

from pio2nix.core.dep.fetcher import HttpFetcher, ResponseCache
from pio2nix.core.dep.models import Artifact, Dependency, PerPlatform, Universal
from pio2nix.core.dep.registry import RegistryClient
from pio2nix.core.dep.resolver import DependencyResolver, install_key

__all__ = [
    "Artifact",
    "Dependency",
    "DependencyResolver",
    "HttpFetcher",
    "PerPlatform",
    "RegistryClient",
    "ResponseCache",
    "Universal",
    "install_key",
]
