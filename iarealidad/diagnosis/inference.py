"""
Inference Engine for iaRealidad
基于规则的故障推理引擎

功能：
- 症状模式 → 故障模式的规则匹配 (按优先级排序)
- 电源路径分析 (输入电压 → 稳压器 → 负载)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Tuple
from collections import defaultdict
import logging

from iarealidad.diagnosis.knowledge import FailurePattern, Symptom, SymptomType
from iarealidad.utils.config import Config

logger = logging.getLogger(__name__)


# ============================================================================
# 规则定义
# ============================================================================

@dataclass(frozen=True)
class MeasurementRange:
    """测量区间 (任一侧为 None 表示开区间)"""
    min: Optional[float] = None
    max: Optional[float] = None

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


@dataclass(frozen=True)
class RuleCondition:
    """规则条件"""
    symptom_type: SymptomType
    measurement_range: Optional[MeasurementRange] = None

    def matches(self, symptom: Symptom) -> bool:
        """判断单个症状是否满足条件"""
        if symptom.type != self.symptom_type:
            return False
        if self.measurement_range is not None and _is_number(symptom.measured_value):
            return self.measurement_range.contains(symptom.measured_value)
        return True


@dataclass(frozen=True)
class RuleConclusion:
    """规则结论"""
    failure_pattern: FailurePattern
    confidence: float       # 0-100
    reasoning: str


@dataclass(frozen=True)
class InferenceRule:
    """推理规则 (priority 越小越优先)"""
    id: str
    name: str
    conditions: Tuple[RuleCondition, ...]
    conclusion: RuleConclusion
    priority: int = 1


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def default_inference_rules() -> List[InferenceRule]:
    """内置推理规则"""
    return [
        InferenceRule(
            id="rule_001",
            name="No 3.3V - Regulator Failure",
            conditions=(
                RuleCondition(SymptomType.NO_VOLTAGE, MeasurementRange(max=0.5)),
            ),
            conclusion=RuleConclusion(
                FailurePattern.VOLTAGE_REGULATOR_FAILURE, 85,
                "No 3.3V output typically indicates AMS1117 or similar regulator failure",
            ),
            priority=1,
        ),
        InferenceRule(
            id="rule_002",
            name="Low 3.3V - Degraded Regulator",
            conditions=(
                RuleCondition(SymptomType.LOW_VOLTAGE, MeasurementRange(min=1.0, max=3.0)),
            ),
            conclusion=RuleConclusion(
                FailurePattern.VOLTAGE_REGULATOR_FAILURE, 75,
                "Low 3.3V output suggests degraded or failing voltage regulator",
            ),
            priority=2,
        ),
        InferenceRule(
            id="rule_003",
            name="UART Dead with Power - Firmware Issue",
            conditions=(RuleCondition(SymptomType.NO_COMMUNICATION),),
            conclusion=RuleConclusion(
                FailurePattern.FIRMWARE_CORRUPTION, 70,
                "UART not responding with proper power suggests firmware corruption "
                "or bootloader failure",
            ),
            priority=3,
        ),
        InferenceRule(
            id="rule_004",
            name="Overheating in Idle - Short Circuit",
            conditions=(RuleCondition(SymptomType.OVERHEATING),),
            conclusion=RuleConclusion(
                FailurePattern.SHORT_CIRCUIT, 80,
                "Component heating with no load indicates short circuit or damaged component",
            ),
            priority=1,
        ),
        InferenceRule(
            id="rule_005",
            name="No Boot - Microcontroller or Firmware",
            conditions=(RuleCondition(SymptomType.NO_COMMUNICATION),),
            conclusion=RuleConclusion(
                FailurePattern.MICROCONTROLLER_DEAD, 65,
                "Power present but no boot suggests dead microcontroller or corrupt firmware",
            ),
            priority=4,
        ),
    ]


# ============================================================================
# 电源路径分析
# ============================================================================

class RouteIntegrity:
    """电源路径完整性"""
    GOOD = "good"
    DEGRADED = "degraded"
    BROKEN = "broken"


class FailurePoint:
    """疑似故障点"""
    POWER_INPUT = "power_input"
    VOLTAGE_REGULATOR = "voltage_regulator"


@dataclass
class VoltageReading:
    """电压测点状态"""
    present: bool
    expected: float
    value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'present': self.present, 'expected': self.expected}
        if self.value is not None:
            data['value'] = self.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VoltageReading':
        return cls(present=data['present'], expected=data['expected'], value=data.get('value'))


@dataclass
class RegulatorStatus:
    """稳压器状态"""
    working: bool
    output_voltage: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'working': self.working}
        if self.output_voltage is not None:
            data['outputVoltage'] = self.output_voltage
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RegulatorStatus':
        return cls(working=data['working'], output_voltage=data.get('outputVoltage'))


@dataclass
class PowerRouteAnalysis:
    """电源路径分析结果"""
    input_voltage: VoltageReading
    regulator_status: RegulatorStatus
    microcontroller_power: VoltageReading
    route_integrity: str = RouteIntegrity.BROKEN
    suspected_failure_point: Optional[str] = None
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'inputVoltage': self.input_voltage.to_dict(),
            'regulatorStatus': self.regulator_status.to_dict(),
            'microcontrollerPower': self.microcontroller_power.to_dict(),
            'routeIntegrity': self.route_integrity,
            'recommendations': list(self.recommendations),
        }
        if self.suspected_failure_point is not None:
            data['suspectedFailurePoint'] = self.suspected_failure_point
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PowerRouteAnalysis':
        return cls(
            input_voltage=VoltageReading.from_dict(data['inputVoltage']),
            regulator_status=RegulatorStatus.from_dict(data['regulatorStatus']),
            microcontroller_power=VoltageReading.from_dict(data['microcontrollerPower']),
            route_integrity=data.get('routeIntegrity', RouteIntegrity.BROKEN),
            suspected_failure_point=data.get('suspectedFailurePoint'),
            recommendations=list(data.get('recommendations', [])),
        )


INPUT_KEYWORDS = ("input", "5v")
REGULATOR_KEYWORDS = ("3.3v", "regulator")


# ============================================================================
# 推理引擎
# ============================================================================

class InferenceEngine:
    """规则推理引擎 (规则在构造时加载, 运行期不可变)"""

    def __init__(self, rules: Optional[List[InferenceRule]] = None,
                 config: Optional[Config] = None):
        self._rules: Tuple[InferenceRule, ...] = tuple(
            rules if rules is not None else default_inference_rules()
        )
        self.config = config or Config()

    @property
    def rules(self) -> Tuple[InferenceRule, ...]:
        return self._rules

    def apply_rules(self, symptoms: List[Symptom]) -> List[InferenceRule]:
        """
        对症状应用所有规则

        每个条件至少需要一个匹配症状 (条件之间为 AND 关系)。

        Returns:
            匹配的规则, 按 priority 升序
        """
        if not symptoms:
            return []

        # 按症状类型建立索引
        by_type: Dict[SymptomType, List[Symptom]] = defaultdict(list)
        for symptom in symptoms:
            by_type[symptom.type].append(symptom)

        matched = []
        for rule in self._rules:
            if all(
                any(condition.matches(s) for s in by_type.get(condition.symptom_type, []))
                for condition in rule.conditions
            ):
                matched.append(rule)

        # sorted() 稳定, 同优先级保持规则声明顺序
        matched = sorted(matched, key=lambda r: r.priority)
        if matched:
            logger.debug(f"Matched rules: {[r.id for r in matched]}")
        return matched

    def analyze_power_route(self, symptoms: List[Symptom]) -> Optional[PowerRouteAnalysis]:
        """
        电源路径分析

        仅当存在 no_voltage / low_voltage 症状时执行。
        """
        power_related = any(
            s.type in (SymptomType.NO_VOLTAGE, SymptomType.LOW_VOLTAGE) for s in symptoms
        )
        if not power_related:
            return None

        input_symptom = _find_by_keywords(symptoms, INPUT_KEYWORDS)
        regulator_symptom = _find_by_keywords(symptoms, REGULATOR_KEYWORDS)

        input_value = input_symptom.measured_value if input_symptom else None
        regulator_value = regulator_symptom.measured_value if regulator_symptom else None

        input_present = _above(input_value, self.config.input_voltage_threshold)
        regulator_working = _above(regulator_value, self.config.regulator_voltage_threshold)

        analysis = PowerRouteAnalysis(
            input_voltage=VoltageReading(
                present=input_present,
                expected=self.config.nominal_input_voltage,
                value=input_value,
            ),
            regulator_status=RegulatorStatus(
                working=regulator_working,
                output_voltage=regulator_value,
            ),
            microcontroller_power=VoltageReading(
                present=regulator_working,
                expected=self.config.nominal_rail_voltage,
                value=regulator_value,
            ),
        )

        if not input_present:
            analysis.recommendations.append("Check USB cable and power source")
            analysis.recommendations.append("Test fuse continuity")
            analysis.suspected_failure_point = FailurePoint.POWER_INPUT
            analysis.route_integrity = RouteIntegrity.BROKEN
        elif not regulator_working:
            analysis.recommendations.append("Replace voltage regulator")
            analysis.recommendations.append("Check for shorts on output rail")
            analysis.suspected_failure_point = FailurePoint.VOLTAGE_REGULATOR
            analysis.route_integrity = RouteIntegrity.DEGRADED
        else:
            analysis.route_integrity = RouteIntegrity.GOOD

        return analysis


def _find_by_keywords(symptoms: List[Symptom], keywords: Tuple[str, ...]) -> Optional[Symptom]:
    for symptom in symptoms:
        text = symptom.description.lower()
        if any(k in text for k in keywords):
            return symptom
    return None


def _above(value: Optional[float], threshold: float) -> bool:
    return _is_number(value) and value > threshold
