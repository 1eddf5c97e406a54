"""pydantic 校验封装

把 pydantic.ValidationError 转为带完整字段路径的 SchemaError，
上游接口结构漂移时可以直接定位到出错字段。
"""

from __future__ import annotations

from typing import Any, TypeVar

import pydantic

from pio2nix.core.exceptions import SchemaError

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)

# 带标签的联合字段 -> pydantic 在 loc 中紧跟该字段插入的变体标签
# 标签只出现在字段名之后；出现在其他位置的同名分量是真实的 JSON 键
VARIANT_TAGS: dict[str, frozenset[str]] = {
    "spec": frozenset({"registry-ref", "external-ref"}),
    "src": frozenset({"universal", "platform-specific"}),
}


def format_loc(loc: tuple[int | str, ...]) -> str:
    """('version', 'files', 0, 'system') -> 'version.files[0].system'"""
    path = ""
    previous: int | str | None = None
    for item in loc:
        tag_of_previous = isinstance(previous, str) and item in VARIANT_TAGS.get(previous, ())
        previous = item
        if isinstance(item, int):
            path += f"[{item}]"
        elif tag_of_previous:
            continue
        else:
            path += f".{item}" if path else item
    return path


def to_schema_error(exc: pydantic.ValidationError, source: str) -> SchemaError:
    errors = exc.errors(include_url=False)
    first = errors[0]
    message = first["msg"]
    if len(errors) > 1:
        message += f" (另有 {len(errors) - 1} 处错误)"
    return SchemaError(message, path=format_loc(tuple(first["loc"])), source=source)


def validate_json(model: type[ModelT], raw: str | bytes, *, source: str) -> ModelT:
    """解析 JSON 文本为模型实例，失败时抛出 SchemaError"""
    try:
        return model.model_validate_json(raw)
    except pydantic.ValidationError as exc:
        raise to_schema_error(exc, source) from exc


def validate_python(model: type[ModelT], data: Any, *, source: str) -> ModelT:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise to_schema_error(exc, source) from exc
