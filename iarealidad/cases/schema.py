"""
Case Payload Validation
案例导入结构校验

导入数据在进入案例库之前先做结构校验, 校验失败只返回错误列表, 不抛异常。
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple
import json

from iarealidad.diagnosis.knowledge import FailurePattern
from iarealidad.cases.models import RepairCase, parse_timestamp


_FAILURE_PATTERN_VALUES = {p.value for p in FailurePattern}

# (键, 期望类型, 描述)
_REQUIRED_CASE_FIELDS = [
    ('id', str, "string"),
    ('caseNumber', int, "integer"),
    ('timestamp', str, "ISO timestamp string"),
    ('boardType', str, "string"),
    ('symptoms', list, "list"),
    ('failurePattern', str, "string"),
    ('diagnosticResult', dict, "object"),
    ('estimatedCost', (int, float), "number"),
    ('estimatedTime', (int, float), "number"),
]

_OPTIONAL_CASE_FIELDS = [
    ('repairSteps', list, "list"),
    ('replacedComponents', list, "list"),
    ('repairSuccess', bool, "boolean"),
    ('actualCost', (int, float), "number"),
    ('actualTime', (int, float), "number"),
    ('tags', list, "list"),
    ('preventiveMeasures', list, "list"),
]

_REQUIRED_PACKAGE_FIELDS = ['version', 'packageId', 'cases', 'metadata']


@dataclass
class ParseResult:
    """解析结果: errors 为空时 value 有效"""
    value: Optional[Any] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @classmethod
    def success(cls, value: Any) -> 'ParseResult':
        return cls(value=value)

    @classmethod
    def failure(cls, errors: List[str]) -> 'ParseResult':
        return cls(errors=list(errors))


def _type_matches(value: Any, expected) -> bool:
    # bool 是 int 的子类, 数值字段不接受布尔值
    if isinstance(value, bool) and expected is not bool:
        return False
    return isinstance(value, expected)


def validate_case_payload(data: Any) -> Tuple[bool, List[str]]:
    """校验单个案例的 JSON 结构"""
    if not isinstance(data, dict):
        return False, [f"case must be an object, got {type(data).__name__}"]

    errors = []
    for key, expected, label in _REQUIRED_CASE_FIELDS:
        if key not in data or data[key] is None:
            errors.append(f"missing required field: {key}")
        elif not _type_matches(data[key], expected):
            errors.append(f"field {key} must be {label}")

    for key, expected, label in _OPTIONAL_CASE_FIELDS:
        if data.get(key) is not None and not _type_matches(data[key], expected):
            errors.append(f"field {key} must be {label}")

    if errors:
        return False, errors

    if data['caseNumber'] < 1:
        errors.append("caseNumber must be >= 1")

    if not data['id']:
        errors.append("id must not be empty")

    if data['failurePattern'] not in _FAILURE_PATTERN_VALUES:
        errors.append(f"unknown failurePattern: {data['failurePattern']}")

    try:
        parse_timestamp(data['timestamp'])
    except ValueError:
        errors.append(f"invalid timestamp: {data['timestamp']}")

    for index, symptom in enumerate(data['symptoms']):
        if not isinstance(symptom, dict):
            errors.append(f"symptoms[{index}] must be an object")
            continue
        for key in ('id', 'type', 'description'):
            if not symptom.get(key):
                errors.append(f"symptoms[{index}] missing {key}")

    return len(errors) == 0, errors


def parse_repair_case(data: Any) -> ParseResult:
    """校验并构造 RepairCase"""
    valid, errors = validate_case_payload(data)
    if not valid:
        return ParseResult.failure(errors)

    try:
        return ParseResult.success(RepairCase.from_dict(data))
    except (KeyError, ValueError, TypeError, AttributeError) as e:
        return ParseResult.failure([f"malformed case structure: {e!r}"])


def parse_case_json(text: str) -> ParseResult:
    """从 JSON 文本解析单个案例"""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        return ParseResult.failure([f"invalid JSON: {e}"])
    return parse_repair_case(data)


def validate_package(data: Any) -> Tuple[bool, List[str]]:
    """校验分享包结构 (version, packageId, cases 数组, metadata)"""
    if not isinstance(data, dict):
        return False, ["package must be an object"]

    errors = []
    for key in _REQUIRED_PACKAGE_FIELDS:
        value = data.get(key)
        # 空数组/空对象合法, 空字符串不合法
        if value is None or value == "":
            errors.append(f"missing required field: {key}")

    if data.get('cases') is not None and not isinstance(data['cases'], list):
        errors.append("field cases must be a list")
    if data.get('metadata') is not None and not isinstance(data['metadata'], dict):
        errors.append("field metadata must be an object")

    return len(errors) == 0, errors
