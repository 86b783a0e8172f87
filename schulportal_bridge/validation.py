import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

FIELD_TYPES = ("string", "number", "boolean")

_QUERY_BOOLEANS = {"true": True, "1": True, "false": False, "0": False}


@dataclass(frozen=True)
class FieldSpec:
    type: str
    required: bool = False
    min: Optional[int] = None
    max: Optional[int] = None
    size: Optional[int] = None
    pattern: Optional[re.Pattern] = None
    options: Optional[Tuple[Any, ...]] = None

    def __post_init__(self):
        if self.type not in FIELD_TYPES:
            raise ValueError(f"Unsupported field type: {self.type}")

    def describe(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type, "required": self.required}
        for key in ("min", "max", "size"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        if self.pattern is not None:
            out["pattern"] = self.pattern.pattern
        if self.options is not None:
            out["options"] = list(self.options)
        return out


Schema = Mapping[str, FieldSpec]


@dataclass
class ValidationResult:
    """
    invalid: 载荷整体结构不对（不是 JSON 对象）
    violations: 各字段违反约束的总数
    fields: 字段名 -> 违反的约束名列表
    """

    invalid: bool = False
    violations: int = 0
    fields: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.invalid and self.violations == 0

    def add(self, name: str, constraint: str) -> None:
        self.fields.setdefault(name, []).append(constraint)
        self.violations += 1

    def to_dict(self) -> Dict[str, Any]:
        return {"invalid": self.invalid, "violations": self.violations, "fields": self.fields}


def _is_number(value: Any) -> bool:
    # bool 是 int 的子类，这里要排除
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _actual_type(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return "string"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    return None


def _check_bounds(result: ValidationResult, name: str, spec: FieldSpec, measured: float) -> None:
    if spec.min is not None and measured < spec.min:
        result.add(name, "min")
    if spec.max is not None and measured > spec.max:
        result.add(name, "max")
    if spec.size is not None and measured != spec.size:
        result.add(name, "size")


def _check_value(result: ValidationResult, name: str, spec: FieldSpec, value: Any) -> None:
    if _actual_type(value) != spec.type:
        result.add(name, "type")
        return

    if spec.type == "string":
        if value == "":
            result.add(name, "empty")
            return
        _check_bounds(result, name, spec, len(value))
        if spec.pattern is not None and not spec.pattern.search(value):
            result.add(name, "pattern")
        if spec.options is not None and value not in spec.options:
            result.add(name, "options")
    elif spec.type == "number":
        # int 本身就是整数；超大 int 转 float 会溢出
        if isinstance(value, float) and not value.is_integer():
            result.add(name, "integer")
            return
        _check_bounds(result, name, spec, value)
    elif spec.options is not None and value not in spec.options:
        result.add(name, "options")


def validate_body(schema: Schema, body: Any) -> ValidationResult:
    """
    按声明式 schema 校验 JSON body，从不抛异常。
    可选字段缺失时直接跳过，不做默认值填充。
    """
    if not isinstance(body, dict):
        return ValidationResult(invalid=True)

    result = ValidationResult()
    for name, spec in schema.items():
        if not name:
            continue
        value = body.get(name)
        if value is None:
            if spec.required:
                result.add(name, "required")
            continue
        _check_value(result, name, spec, value)
    return result


def _coerce_query_value(spec: FieldSpec, value: str) -> Any:
    if spec.type == "number":
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value
    if spec.type == "boolean":
        return _QUERY_BOOLEANS.get(value.lower(), value)
    return value


def validate_query(schema: Schema, query: Any) -> ValidationResult:
    """query 参数都是字符串，数字 / 布尔字段先转换再校验"""
    if not isinstance(query, Mapping):
        return ValidationResult(invalid=True)

    result = ValidationResult()
    for name, spec in schema.items():
        if not name:
            continue
        value = query.get(name)
        if value is None:
            if spec.required:
                result.add(name, "required")
            continue
        if isinstance(value, str):
            value = _coerce_query_value(spec, value)
        _check_value(result, name, spec, value)
    return result


def describe_schema(schema: Schema) -> Dict[str, Dict[str, Any]]:
    """把 schema 转成可 JSON 序列化的结构（正则转为字符串）"""
    return {name: spec.describe() for name, spec in schema.items()}
