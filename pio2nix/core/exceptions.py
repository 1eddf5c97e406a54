"""统一异常体系

所有业务异常继承 Pio2NixError，替代散落的 ValueError / RuntimeError。
CLI 层据此输出友好提示；单个清单解析失败时由编排层决定中止还是跳过。
"""

from __future__ import annotations


class Pio2NixError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(Pio2NixError):
    """配置文件内容无效或无法推断默认目录"""

    code = "CONFIG_ERROR"


class ValidationError(Pio2NixError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class DiscoveryError(Pio2NixError):
    """扫描本地清单时文件系统读取失败"""

    code = "DISCOVERY_ERROR"

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class SchemaError(Pio2NixError):
    """JSON 结构与预期不符

    path 为出错字段的完整路径（如 ``version.files[0].system``），
    source 为数据来源（URL 或文件路径），便于对照上游接口排查。
    """

    code = "SCHEMA_ERROR"

    def __init__(self, message: str, *, path: str = "", source: str = "") -> None:
        self.path = path
        self.source = source
        self.reason = message
        prefix = f"{source}: " if source else ""
        location = f"{path}: " if path else ""
        super().__init__(f"{prefix}{location}{message}")


class NetworkError(Pio2NixError):
    """网络传输失败（连接、超时等）"""

    code = "NETWORK_ERROR"

    def __init__(self, message: str, *, url: str) -> None:
        super().__init__(f"请求失败: {url} - {message}")
        self.url = url


class HttpStatusError(Pio2NixError):
    """HTTP 非成功状态码，附带响应体用于诊断"""

    code = "HTTP_STATUS_ERROR"

    def __init__(self, *, url: str, status: int, body: str) -> None:
        super().__init__(f"HTTP {status} for {url}: {body}")
        self.url = url
        self.status = status
        self.body = body


class LockfileError(Pio2NixError):
    """锁定文件格式不受支持或存储状态非法"""

    code = "LOCKFILE_ERROR"
