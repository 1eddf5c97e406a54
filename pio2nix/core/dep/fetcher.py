"""HTTP 拉取器（带磁盘响应缓存）

职责:
- GET 请求，非 2xx 状态直接报错（附响应体），不重试
- 以 URL 为键的磁盘缓存：同一 URL 成功拉取一次后，后续请求直接读缓存，
  不再发起网络请求（force-cache）。发布制品不可变，重复运行因此既快又确定
"""

from __future__ import annotations

import hashlib
import http.client
import logging
import urllib.error
import urllib.request
from pathlib import Path

from pio2nix import __version__
from pio2nix.core.exceptions import HttpStatusError, NetworkError
from pio2nix.utils.net import validate_url_scheme
from pio2nix.utils.yaml_io import atomic_write_bytes

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
USER_AGENT = f"pio2nix/{__version__}"


class ResponseCache:
    """URL -> 响应体 的磁盘缓存

    条目写入后不再修改（临时文件 + rename），并发读安全。
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, url: str) -> Path:
        key = hashlib.sha256(url.encode("utf-8")).hexdigest()
        return self.root / key[:2] / key

    def get(self, url: str) -> bytes | None:
        path = self._path(url)
        if not path.is_file():
            return None
        return path.read_bytes()

    def put(self, url: str, body: bytes) -> None:
        atomic_write_bytes(self._path(url), body)

    def __contains__(self, url: str) -> bool:
        return self._path(url).is_file()


class HttpFetcher:
    """基于 urllib 的 GET 拉取器"""

    def __init__(
        self,
        *,
        cache: ResponseCache | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.cache = cache
        self.timeout = timeout

    def get(self, url: str) -> bytes:
        validate_url_scheme(url, context="http get")
        if self.cache is not None:
            cached = self.cache.get(url)
            if cached is not None:
                logger.debug("缓存命中: %s", url)
                return cached

        body = self._download(url)
        if self.cache is not None:
            self.cache.put(url, body)
        return body

    def _download(self, url: str) -> bytes:
        logger.info("下载: %s", url, extra={"url": url})
        try:
            request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
            with urllib.request.urlopen(request, timeout=self.timeout) as resp:  # nosec B310
                status = resp.status
                body: bytes = resp.read()
        except urllib.error.HTTPError as e:
            text = e.read().decode("utf-8", errors="replace")
            raise HttpStatusError(url=url, status=e.code, body=text) from e
        except urllib.error.URLError as e:
            raise NetworkError(str(e.reason), url=url) from e
        except (TimeoutError, OSError) as e:
            raise NetworkError(str(e), url=url) from e
        except (http.client.HTTPException, ValueError) as e:
            # 响应体截断 (IncompleteRead) 或 URL 无法解析 (InvalidURL)
            raise NetworkError(f"{type(e).__name__}: {e}", url=url) from e

        if status >= 400:
            raise HttpStatusError(
                url=url, status=status, body=body.decode("utf-8", errors="replace"),
            )
        return body
