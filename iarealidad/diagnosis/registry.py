"""
Failure Pattern Registry for iaRealidad
故障模式登记

功能：
- 校验用户/社区提交的故障模式 (JSON)
- 将故障模式转换为 FailureKnowledge 并登记到知识库
- 登记条目的查询、搜索、统计与导出

登记的故障模式覆盖知识库中同一故障模式的条目, 包括只经由
回退路径得到的故障模式 (如 no_power); 移除后恢复内置条目。

故障模式 JSON 结构::

    {
      "name": "...", "version": "1.0", "description": "...",
      "pattern": {"id": "no_power", "displayName": "...", "category": "..."},
      "symptoms": [{"type": "no_voltage", "description": "...", "severity": "high"}],
      "causes": [{"description": "...", "probability": 60, "reasoning": "..."}],
      "diagnosticSteps": ["..."],
      "repairProcedures": [{"description": "...", "tools": ["..."], "steps": ["..."],
                            "estimatedTime": 20, "difficulty": "easy"}],
      "estimatedCost": {"min": 0, "max": 5},
      "successRate": 90,
      "tags": ["..."]
    }
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
import copy
import json
import logging
import threading

from iarealidad.diagnosis.knowledge import (
    Difficulty,
    FailureKnowledge,
    FailurePattern,
    KnowledgeBase,
    ValueRange,
)

logger = logging.getLogger(__name__)


_FAILURE_PATTERN_VALUES = {p.value for p in FailurePattern}
_DIFFICULTY_VALUES = {d.value for d in Difficulty}


# ============================================================================
# 登记条目
# ============================================================================

class RegistrySource(Enum):
    """条目来源"""
    BUILTIN = "builtin"
    USER = "user"
    COMMUNITY = "community"


@dataclass
class RegistryEntry:
    """登记条目 (元数据)"""
    id: str
    name: str
    version: str
    source: RegistrySource
    added_date: datetime
    author: Optional[str] = None
    type: str = "failure_pattern"

    @property
    def verified(self) -> bool:
        return self.source == RegistrySource.BUILTIN

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'type': self.type,
            'name': self.name,
            'version': self.version,
            'source': self.source.value,
            'addedDate': self.added_date.isoformat(),
            'verified': self.verified,
        }
        if self.author is not None:
            data['author'] = self.author
        return data


# ============================================================================
# 校验与转换
# ============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _non_empty_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def validate_failure_pattern_payload(data: Any) -> Tuple[bool, List[str]]:
    """校验故障模式 JSON 结构"""
    if not isinstance(data, dict):
        return False, [f"failure pattern must be an object, got {type(data).__name__}"]

    errors = []
    if not isinstance(data.get('name'), str) or not data['name']:
        errors.append("missing required field: name")

    pattern = data.get('pattern')
    pattern_id = pattern.get('id') if isinstance(pattern, dict) else None
    if not pattern_id:
        errors.append("Pattern ID is required")
    elif pattern_id not in _FAILURE_PATTERN_VALUES:
        errors.append(f"unknown failure pattern: {pattern_id}")

    symptoms = data.get('symptoms')
    if not _non_empty_list(symptoms):
        errors.append("At least one symptom is required")
    else:
        for index, symptom in enumerate(symptoms):
            if not isinstance(symptom, dict) or not isinstance(symptom.get('description'), str):
                errors.append(f"symptoms[{index}] missing description")

    causes = data.get('causes', [])
    if not isinstance(causes, list):
        errors.append("field causes must be a list")
    else:
        for index, cause in enumerate(causes):
            if not isinstance(cause, dict) or not isinstance(cause.get('description'), str):
                errors.append(f"causes[{index}] missing description")

    steps = data.get('diagnosticSteps')
    if not _non_empty_list(steps):
        errors.append("Diagnostic steps are required")
    elif not all(isinstance(step, str) for step in steps):
        errors.append("diagnosticSteps must be strings")

    procedures = data.get('repairProcedures')
    if not _non_empty_list(procedures):
        errors.append("Repair procedures are required")
    else:
        for index, procedure in enumerate(procedures):
            errors.extend(_validate_procedure(index, procedure))

    cost = data.get('estimatedCost')
    if not isinstance(cost, dict) or not _is_number(cost.get('min')) \
            or not _is_number(cost.get('max')):
        errors.append("estimatedCost must have numeric min and max")
    elif cost['min'] > cost['max']:
        errors.append("estimatedCost min must be <= max")

    success_rate = data.get('successRate')
    if success_rate is not None and (not _is_number(success_rate)
                                     or not 0 <= success_rate <= 100):
        errors.append("successRate must be a number in [0, 100]")

    if 'tags' in data and not isinstance(data['tags'], list):
        errors.append("field tags must be a list")

    return len(errors) == 0, errors


def _validate_procedure(index: int, procedure: Any) -> List[str]:
    if not isinstance(procedure, dict):
        return [f"repairProcedures[{index}] must be an object"]

    errors = []
    if not isinstance(procedure.get('description'), str):
        errors.append(f"repairProcedures[{index}] missing description")
    if not isinstance(procedure.get('tools', []), list):
        errors.append(f"repairProcedures[{index}] tools must be a list")
    if not _is_number(procedure.get('estimatedTime')):
        errors.append(f"repairProcedures[{index}] estimatedTime must be number")
    difficulty = procedure.get('difficulty')
    if difficulty is not None and difficulty not in _DIFFICULTY_VALUES:
        errors.append(f"repairProcedures[{index}] unknown difficulty: {difficulty}")
    return errors


def convert_to_failure_knowledge(data: Dict[str, Any]) -> FailureKnowledge:
    """
    故障模式 → FailureKnowledge

    - 时间区间取各维修流程 estimatedTime 的最小/最大值
    - 工具为全部维修流程工具的并集 (保持首次出现顺序)
    - 难度取第一个维修流程的难度, 缺省为 medium

    输入须先通过 validate_failure_pattern_payload()。
    """
    procedures = data['repairProcedures']
    times = [procedure['estimatedTime'] for procedure in procedures]

    tools: List[str] = []
    for procedure in procedures:
        tools.extend(procedure.get('tools', []))

    pattern_id = data['pattern']['id']
    return FailureKnowledge(
        id=f"fk_{pattern_id}",
        failure_pattern=FailurePattern(pattern_id),
        common_symptoms=[s['description'] for s in data['symptoms']],
        typical_causes=[c['description'] for c in data.get('causes', [])],
        diagnostic_steps=list(data['diagnosticSteps']),
        repair_procedures=[p['description'] for p in procedures],
        required_tools=list(dict.fromkeys(tools)),
        estimated_cost=ValueRange(data['estimatedCost']['min'], data['estimatedCost']['max']),
        estimated_time=ValueRange(min(times), max(times)),
        success_rate=data.get('successRate') or 0,
        difficulty=Difficulty(procedures[0].get('difficulty', Difficulty.MEDIUM.value)),
    )


# ============================================================================
# 登记表
# ============================================================================

class FailurePatternRegistry:
    """
    故障模式登记表

    登记的故障模式以 FailureKnowledge 形式写入共享的 KnowledgeBase,
    使用同一知识库的 DiagnosticEngine 立即使用新条目。
    """

    def __init__(self, knowledge_base: Optional[KnowledgeBase] = None):
        self.knowledge = knowledge_base if knowledge_base is not None else KnowledgeBase()
        self._patterns: Dict[str, Dict[str, Any]] = {}
        self._entries: Dict[str, RegistryEntry] = {}
        self._lock = threading.Lock()

    def add_failure_pattern(self,
                            payload: Union[str, Dict[str, Any]],
                            source: RegistrySource = RegistrySource.USER,
                            author: Optional[str] = None) -> Dict[str, Any]:
        """
        登记故障模式

        Args:
            payload: 故障模式 JSON 文本或字典
            source: 条目来源
            author: 提交者

        Returns:
            {success, id?, error?, errors?}; 不抛异常
        """
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                logger.warning(f"Rejected failure pattern: invalid JSON ({e})")
                return {
                    'success': False,
                    'error': "Invalid JSON format for failure pattern",
                    'errors': [f"invalid JSON: {e}"],
                }

        valid, errors = validate_failure_pattern_payload(payload)
        if not valid:
            logger.warning(f"Rejected failure pattern: {'; '.join(errors)}")
            return {'success': False, 'error': '; '.join(errors), 'errors': errors}

        knowledge = convert_to_failure_knowledge(payload)
        pattern_id = knowledge.failure_pattern.value
        entry = RegistryEntry(
            id=pattern_id,
            name=payload['name'],
            version=str(payload.get('version', '1.0')),
            source=RegistrySource(source),
            added_date=datetime.now(),
            author=author,
        )

        with self._lock:
            self.knowledge.register(knowledge)
            self._patterns[pattern_id] = copy.deepcopy(payload)
            self._entries[pattern_id] = entry

        logger.info(f"Failure pattern {pattern_id} registered from {entry.source.value}")
        return {'success': True, 'id': pattern_id}

    def remove_failure_pattern(self, pattern_id: str) -> bool:
        """移除登记的故障模式, 知识库恢复内置条目"""
        with self._lock:
            if pattern_id not in self._entries:
                return False
            del self._entries[pattern_id]
            del self._patterns[pattern_id]
            self.knowledge.unregister(FailurePattern(pattern_id))

        logger.info(f"Failure pattern {pattern_id} removed")
        return True

    def get_failure_pattern(self, pattern_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            payload = self._patterns.get(pattern_id)
            return copy.deepcopy(payload) if payload is not None else None

    def get_all_failure_patterns(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._patterns.values()]

    def get_registry(self) -> List[RegistryEntry]:
        """全部登记条目 (按登记时间)"""
        with self._lock:
            return sorted(self._entries.values(), key=lambda e: e.added_date)

    def search_registry(self, query: str) -> List[RegistryEntry]:
        """按名称、ID、作者搜索 (忽略大小写)"""
        needle = query.lower()
        return [
            entry for entry in self.get_registry()
            if needle in entry.name.lower()
            or needle in entry.id.lower()
            or (entry.author is not None and needle in entry.author.lower())
        ]

    def export_failure_pattern(self, pattern_id: str) -> Optional[str]:
        """导出登记的故障模式 JSON"""
        payload = self.get_failure_pattern(pattern_id)
        if payload is None:
            return None
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def get_registry_stats(self) -> Dict[str, int]:
        entries = self.get_registry()
        return {
            'totalPatterns': len(entries),
            'userContributions': sum(1 for e in entries if e.source == RegistrySource.USER),
            'communityContributions': sum(
                1 for e in entries if e.source == RegistrySource.COMMUNITY),
            'verifiedEntries': sum(1 for e in entries if e.verified),
        }

    def clear_registry(self) -> None:
        """清空登记表"""
        for entry in self.get_registry():
            self.remove_failure_pattern(entry.id)
        logger.info("Failure pattern registry cleared")


def create_failure_pattern_registry(
        knowledge_base: Optional[KnowledgeBase] = None) -> FailurePatternRegistry:
    """创建故障模式登记表"""
    return FailurePatternRegistry(knowledge_base)
