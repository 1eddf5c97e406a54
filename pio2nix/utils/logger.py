"""pio2nix 日志配置

锁定文件写到 stdout，所以日志一律走 stderr。级别与格式由环境变量控制，
CLI 入口只需调用 configure_from_env():

    PIO2NIX_LOG_LEVEL  DEBUG / INFO / WARNING（默认）/ ERROR
    PIO2NIX_LOG_JSON   为 1 时输出单行 JSON，便于 CI 收集
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import IO

ENV_LEVEL = "PIO2NIX_LOG_LEVEL"
ENV_JSON = "PIO2NIX_LOG_JSON"
DEFAULT_LEVEL = "WARNING"

TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"

# 通过 logger.xxx(..., extra={...}) 附加、需要写进 JSON 的上下文字段
CONTEXT_FIELDS = ("url", "install_key", "source")


class JSONFormatter(logging.Formatter):
    """单行 JSON 日志

    除时间、级别、logger 名和消息外，附带 CONTEXT_FIELDS 中出现的字段
    以及异常堆栈（如有）。
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = str(value)
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _parse_level(level: str) -> int:
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.WARNING


def setup_logging(
    level: str = DEFAULT_LEVEL,
    json_output: bool = False,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """替换根日志器的 handler，返回新装上的 handler

    未知级别名回退到 WARNING；stream 默认为调用时的 sys.stderr。
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(_parse_level(level))
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)
    return handler


def configure_from_env(env: Mapping[str, str] | None = None) -> logging.Handler:
    """按 PIO2NIX_LOG_LEVEL / PIO2NIX_LOG_JSON 配置日志"""
    env = os.environ if env is None else env
    return setup_logging(
        level=env.get(ENV_LEVEL) or DEFAULT_LEVEL,
        json_output=env.get(ENV_JSON, "") == "1",
    )
