"""网络工具: URL 安全校验与拼接"""

from __future__ import annotations

from urllib.parse import quote, urlencode, urlparse

from pio2nix.core.exceptions import ValidationError

_ALLOWED_SCHEMES = frozenset(("http", "https"))


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )


def build_url(
    base_url: str,
    segments: list[str] | tuple[str, ...],
    query: dict[str, str] | None = None,
) -> str:
    """在 base_url 后追加路径段（逐段百分号编码）和查询参数

    >>> build_url("https://api.example.org", ["v3", "packages", "a b"], {"version": "1.0"})
    'https://api.example.org/v3/packages/a%20b?version=1.0'
    """
    url = base_url.rstrip("/")
    for segment in segments:
        url += "/" + quote(segment, safe="")
    if query:
        url += "?" + urlencode(query)
    return url
