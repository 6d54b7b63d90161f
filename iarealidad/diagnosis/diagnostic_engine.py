"""
Diagnostic Orchestrator for iaRealidad
电子维修诊断引擎

功能：
- 症状校验与规则推理
- 故障模式判定 (规则优先, 症状直接判定兜底)
- 置信度计算
- 可能原因排序与维修建议生成
- 难度/时间/成本估算
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Any, Union
from enum import Enum
import uuid
import logging

from iarealidad.diagnosis.knowledge import (
    Difficulty,
    FailureKnowledge,
    FailurePattern,
    KnowledgeBase,
    Severity,
    Symptom,
    SymptomType,
    parse_timestamp,
)
from iarealidad.diagnosis.inference import InferenceEngine, InferenceRule, PowerRouteAnalysis
from iarealidad.diagnosis.measurements import SensingMeasurement, analyze_measurements
from iarealidad.utils.config import Config

logger = logging.getLogger(__name__)


DEFAULT_DIFFICULTY = Difficulty.MEDIUM
DEFAULT_TIME = 30
DEFAULT_COST = 1.0


class InvalidInputError(ValueError):
    """诊断输入无效 (空症状列表或缺少必需字段)"""


class RepairAction(Enum):
    """维修动作"""
    REPLACE = "replace"
    MEASURE = "measure"
    TEST = "test"
    REFLOW = "reflow"
    CLEAN = "clean"
    REPROGRAM = "reprogram"


# 关键字扫描顺序决定动作类型
ACTION_KEYWORDS = [
    (("replace",), RepairAction.REPLACE),
    (("measure", "check"), RepairAction.MEASURE),
    (("test",), RepairAction.TEST),
    (("reflow",), RepairAction.REFLOW),
    (("clean",), RepairAction.CLEAN),
    (("flash", "program"), RepairAction.REPROGRAM),
]


# ============================================================================
# 诊断结果
# ============================================================================

@dataclass
class ProbableCause:
    """可能原因"""
    id: str
    description: str
    probability: float
    reasoning: str
    test_procedure: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'description': self.description,
            'probability': self.probability,
            'reasoning': self.reasoning,
            'testProcedure': self.test_procedure,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProbableCause':
        return cls(
            id=data['id'],
            description=data['description'],
            probability=data['probability'],
            reasoning=data.get('reasoning', ''),
            test_procedure=data.get('testProcedure', ''),
        )


@dataclass
class RepairRecommendation:
    """维修建议 (priority 越小越优先)"""
    id: str
    priority: int
    action: RepairAction
    description: str
    tools: List[str]
    steps: List[str]
    expected_outcome: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'priority': self.priority,
            'action': self.action.value,
            'description': self.description,
            'tools': list(self.tools),
            'steps': list(self.steps),
            'expectedOutcome': self.expected_outcome,
            'confidence': self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RepairRecommendation':
        return cls(
            id=data['id'],
            priority=data['priority'],
            action=RepairAction(data['action']),
            description=data['description'],
            tools=list(data.get('tools', [])),
            steps=list(data.get('steps', [])),
            expected_outcome=data.get('expectedOutcome', ''),
            confidence=data['confidence'],
        )


@dataclass
class DiagnosticResult:
    """诊断结果"""
    id: str
    symptoms: List[Symptom]
    failure_pattern: FailurePattern
    confidence: float
    probable_causes: List[ProbableCause] = field(default_factory=list)
    affected_components: List[str] = field(default_factory=list)
    recommendations: List[RepairRecommendation] = field(default_factory=list)
    estimated_difficulty: Difficulty = DEFAULT_DIFFICULTY
    estimated_time: float = DEFAULT_TIME
    estimated_cost: float = DEFAULT_COST
    power_route_analysis: Optional[PowerRouteAnalysis] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'timestamp': self.timestamp.isoformat(),
            'symptoms': [s.to_dict() for s in self.symptoms],
            'failurePattern': self.failure_pattern.value,
            'confidence': self.confidence,
            'probableCauses': [c.to_dict() for c in self.probable_causes],
            'affectedComponents': list(self.affected_components),
            'recommendations': [r.to_dict() for r in self.recommendations],
            'estimatedDifficulty': self.estimated_difficulty.value,
            'estimatedTime': self.estimated_time,
            'estimatedCost': self.estimated_cost,
        }
        if self.power_route_analysis is not None:
            data['powerRouteAnalysis'] = self.power_route_analysis.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiagnosticResult':
        power = data.get('powerRouteAnalysis')
        return cls(
            id=data['id'],
            timestamp=parse_timestamp(data['timestamp']),
            symptoms=[Symptom.from_dict(s) for s in data.get('symptoms', [])],
            failure_pattern=FailurePattern(data['failurePattern']),
            confidence=data['confidence'],
            probable_causes=[ProbableCause.from_dict(c) for c in data.get('probableCauses', [])],
            affected_components=list(data.get('affectedComponents', [])),
            recommendations=[
                RepairRecommendation.from_dict(r) for r in data.get('recommendations', [])
            ],
            estimated_difficulty=Difficulty(data.get('estimatedDifficulty', DEFAULT_DIFFICULTY.value)),
            estimated_time=data.get('estimatedTime', DEFAULT_TIME),
            estimated_cost=data.get('estimatedCost', DEFAULT_COST),
            power_route_analysis=PowerRouteAnalysis.from_dict(power) if power else None,
        )


# ============================================================================
# 诊断引擎
# ============================================================================

class DiagnosticEngine:
    """
    诊断引擎

    diagnose() 只依赖输入症状与静态的规则/知识表, 不保存诊断历史。
    """

    def __init__(self,
                 inference_engine: Optional[InferenceEngine] = None,
                 knowledge_base: Optional[KnowledgeBase] = None,
                 config: Optional[Config] = None):
        self.config = config or Config()
        self.inference = inference_engine or InferenceEngine(config=self.config)
        self.knowledge = knowledge_base if knowledge_base is not None else KnowledgeBase()

    def diagnose(self, symptoms: List[Union[Symptom, Dict[str, Any]]]) -> DiagnosticResult:
        """
        执行诊断

        Args:
            symptoms: 症状列表 (Symptom 或等价的字典)

        Returns:
            诊断结果

        Raises:
            InvalidInputError: 症状列表为空或症状缺少 id/type/description
        """
        symptoms = self._validate_symptoms(symptoms)

        # 1. 规则推理
        matched_rules = self.inference.apply_rules(symptoms)

        # 2. 故障模式
        failure_pattern = self._determine_failure_pattern(symptoms, matched_rules)

        # 3. 置信度
        confidence = self._calculate_confidence(symptoms, matched_rules)

        knowledge = self.knowledge.get(failure_pattern)
        if knowledge is None:
            logger.warning(f"No failure knowledge for {failure_pattern.value}, using defaults")

        result = DiagnosticResult(
            id=f"diag_{uuid.uuid4().hex[:12]}",
            symptoms=list(symptoms),
            failure_pattern=failure_pattern,
            confidence=confidence,
            probable_causes=self._identify_probable_causes(failure_pattern, knowledge),
            affected_components=self._affected_components(symptoms),
            recommendations=self._generate_recommendations(failure_pattern, knowledge),
            estimated_difficulty=knowledge.difficulty if knowledge else DEFAULT_DIFFICULTY,
            estimated_time=knowledge.estimated_time.min if knowledge else DEFAULT_TIME,
            estimated_cost=knowledge.estimated_cost.min if knowledge else DEFAULT_COST,
            power_route_analysis=self.inference.analyze_power_route(symptoms),
        )

        logger.info(
            f"Diagnosis {result.id}: {failure_pattern.value} "
            f"(confidence={confidence}, symptoms={len(symptoms)})"
        )
        return result

    def _validate_symptoms(self, symptoms) -> List[Symptom]:
        """校验并规范化输入症状"""
        if not isinstance(symptoms, (list, tuple)) or len(symptoms) == 0:
            raise InvalidInputError("Invalid symptoms: must be a non-empty list")

        validated = []
        for index, symptom in enumerate(symptoms):
            if isinstance(symptom, dict):
                try:
                    symptom = Symptom.from_dict(symptom)
                except (KeyError, ValueError, TypeError) as e:
                    raise InvalidInputError(
                        f"Invalid symptom at index {index}: {e}"
                    ) from e
            if not isinstance(symptom, Symptom) or not symptom.id \
                    or not symptom.type or not symptom.description:
                raise InvalidInputError(
                    f"Invalid symptom at index {index}: missing required fields"
                )
            validated.append(symptom)
        return validated

    def _determine_failure_pattern(self, symptoms: List[Symptom],
                                   matched_rules: List[InferenceRule]) -> FailurePattern:
        """判定故障模式"""
        if matched_rules:
            return matched_rules[0].conclusion.failure_pattern

        # 无规则匹配: 直接检查症状
        critical_count = sum(1 for s in symptoms if s.severity == Severity.CRITICAL)
        types = {s.type for s in symptoms}

        if SymptomType.NO_VOLTAGE in types:
            return FailurePattern.NO_POWER
        if SymptomType.OVERHEATING in types:
            return FailurePattern.COMPONENT_OVERHEATING
        if SymptomType.NO_COMMUNICATION in types and critical_count == 0:
            return FailurePattern.COMMUNICATION_FAILURE
        return FailurePattern.UNKNOWN

    def _calculate_confidence(self, symptoms: List[Symptom],
                              matched_rules: List[InferenceRule]) -> float:
        """计算诊断置信度, 限制在 [0, max_confidence]"""
        cfg = self.config
        confidence = matched_rules[0].conclusion.confidence if matched_rules else cfg.base_confidence

        confidence += min(len(symptoms) * cfg.symptom_confidence_step, cfg.max_symptom_bonus)

        if any(s.severity == Severity.CRITICAL for s in symptoms):
            confidence += cfg.critical_confidence_bonus

        return max(0, min(confidence, cfg.max_confidence))

    def _identify_probable_causes(self, failure_pattern: FailurePattern,
                                  knowledge: Optional[FailureKnowledge]) -> List[ProbableCause]:
        """可能原因 (概率递减)"""
        if knowledge is None:
            return []

        causes = []
        for index, cause in enumerate(knowledge.typical_causes[:self.config.max_probable_causes]):
            steps = knowledge.diagnostic_steps
            causes.append(ProbableCause(
                id=f"cause_{uuid.uuid4().hex[:8]}_{index}",
                description=cause,
                probability=80 - index * 15,
                reasoning=f"Common cause for {failure_pattern.value}",
                test_procedure=steps[index] if index < len(steps) else "Visual inspection",
            ))

        causes.sort(key=lambda c: -c.probability)
        return causes

    def _generate_recommendations(self, failure_pattern: FailurePattern,
                                  knowledge: Optional[FailureKnowledge]) -> List[RepairRecommendation]:
        """根据维修流程生成建议"""
        if knowledge is None:
            return []

        recommendations = []
        procedures = knowledge.repair_procedures[:self.config.max_recommendations]
        for index, procedure in enumerate(procedures):
            recommendations.append(RepairRecommendation(
                id=f"rec_{uuid.uuid4().hex[:8]}_{index}",
                priority=index + 1,
                action=infer_action(procedure),
                description=procedure,
                tools=list(knowledge.required_tools),
                steps=[procedure],
                expected_outcome=f"Resolve {failure_pattern.value}",
                confidence=85 - index * 10,
            ))
        return recommendations

    @staticmethod
    def _affected_components(symptoms: List[Symptom]) -> List[str]:
        """去重的元件ID, 保持首次出现顺序"""
        return list(dict.fromkeys(s.component_id for s in symptoms if s.component_id is not None))

    # ------------------------------------------------------------------------
    # 辅助方法
    # ------------------------------------------------------------------------

    def get_failure_knowledge(self, pattern: FailurePattern) -> Optional[FailureKnowledge]:
        """获取故障知识"""
        return self.knowledge.get(pattern)

    def analyze_measurements_for_symptoms(self,
                                          measurements: List[SensingMeasurement]) -> List[Symptom]:
        """将异常测量转换为症状"""
        return analyze_measurements(measurements)

    def create_symptom(self,
                       symptom_type: SymptomType,
                       description: str,
                       component_id: Optional[str] = None,
                       measured_value: Optional[float] = None,
                       expected_value: Optional[float] = None) -> Symptom:
        """由操作员输入创建症状"""
        return Symptom(
            id=f"symptom_{uuid.uuid4().hex[:12]}",
            type=SymptomType(symptom_type),
            description=description,
            severity=Severity.MEDIUM,
            component_id=component_id,
            measured_value=measured_value,
            expected_value=expected_value,
        )


def infer_action(procedure: str) -> RepairAction:
    """从维修流程文本推断动作"""
    lower = procedure.lower()
    for keywords, action in ACTION_KEYWORDS:
        if any(k in lower for k in keywords):
            return action
    return RepairAction.TEST


def create_diagnostic_engine(config: Optional[Config] = None) -> DiagnosticEngine:
    """创建带内置规则与知识库的诊断引擎"""
    config = config or Config()
    return DiagnosticEngine(
        inference_engine=InferenceEngine(config=config),
        knowledge_base=KnowledgeBase(),
        config=config,
    )
