"""
Tests for Inference Engine.
规则推理引擎测试
"""

import pytest

from iarealidad.diagnosis import (
    FailurePattern,
    FailurePoint,
    InferenceEngine,
    InferenceRule,
    MeasurementRange,
    RouteIntegrity,
    RuleCondition,
    RuleConclusion,
    Severity,
    Symptom,
    SymptomType,
    default_inference_rules,
)
from iarealidad.utils.config import Config


def make_symptom(symptom_type, description="test", value=None, severity=Severity.MEDIUM,
                 symptom_id="s1"):
    return Symptom(
        id=symptom_id,
        type=symptom_type,
        description=description,
        severity=severity,
        measured_value=value,
    )


class TestRuleCondition:
    """规则条件测试类"""

    def test_type_must_match(self):
        """测试类型不一致时不匹配"""
        condition = RuleCondition(SymptomType.NO_VOLTAGE)
        assert condition.matches(make_symptom(SymptomType.NO_VOLTAGE))
        assert not condition.matches(make_symptom(SymptomType.LOW_VOLTAGE))

    def test_range_checked_when_value_numeric(self):
        """测试有测量值时检查区间"""
        condition = RuleCondition(SymptomType.LOW_VOLTAGE, MeasurementRange(min=1.0, max=3.0))

        assert condition.matches(make_symptom(SymptomType.LOW_VOLTAGE, value=2.0))
        assert condition.matches(make_symptom(SymptomType.LOW_VOLTAGE, value=1.0))
        assert condition.matches(make_symptom(SymptomType.LOW_VOLTAGE, value=3.0))
        assert not condition.matches(make_symptom(SymptomType.LOW_VOLTAGE, value=0.5))
        assert not condition.matches(make_symptom(SymptomType.LOW_VOLTAGE, value=3.2))

    def test_range_ignored_without_value(self):
        """测试无测量值时只比较类型"""
        condition = RuleCondition(SymptomType.NO_VOLTAGE, MeasurementRange(max=0.5))
        assert condition.matches(make_symptom(SymptomType.NO_VOLTAGE, value=None))

    def test_open_bounds(self):
        """测试单侧开区间"""
        upper_only = MeasurementRange(max=0.5)
        lower_only = MeasurementRange(min=1.0)

        assert upper_only.contains(-10.0)
        assert not upper_only.contains(0.6)
        assert lower_only.contains(100.0)
        assert not lower_only.contains(0.9)


class TestApplyRules:
    """规则匹配测试类"""

    def setup_method(self):
        """测试前设置"""
        self.engine = InferenceEngine()

    def test_default_rule_set(self):
        """测试内置规则集"""
        ids = [r.id for r in default_inference_rules()]
        assert ids == ["rule_001", "rule_002", "rule_003", "rule_004", "rule_005"]

    def test_empty_symptoms(self):
        """测试空症状列表"""
        assert self.engine.apply_rules([]) == []

    def test_no_voltage_fires_rule_001(self):
        """测试无电压触发稳压器规则"""
        matched = self.engine.apply_rules([make_symptom(SymptomType.NO_VOLTAGE, value=0.1)])

        assert [r.id for r in matched] == ["rule_001"]
        assert matched[0].conclusion.failure_pattern == FailurePattern.VOLTAGE_REGULATOR_FAILURE

    def test_no_voltage_above_range_does_not_fire(self):
        """测试测量值超出区间不触发"""
        matched = self.engine.apply_rules([make_symptom(SymptomType.NO_VOLTAGE, value=1.2)])
        assert matched == []

    def test_sorted_by_priority(self):
        """测试按优先级排序"""
        symptoms = [
            make_symptom(SymptomType.NO_COMMUNICATION, symptom_id="s1"),
            make_symptom(SymptomType.OVERHEATING, symptom_id="s2"),
        ]
        matched = self.engine.apply_rules(symptoms)

        assert [r.id for r in matched] == ["rule_004", "rule_003", "rule_005"]
        priorities = [r.priority for r in matched]
        assert priorities == sorted(priorities)

    def test_stable_order_for_equal_priority(self):
        """测试同优先级保持声明顺序"""
        symptoms = [
            make_symptom(SymptomType.OVERHEATING, symptom_id="s1"),
            make_symptom(SymptomType.NO_VOLTAGE, value=0.0, symptom_id="s2"),
        ]
        matched = self.engine.apply_rules(symptoms)

        assert [r.id for r in matched] == ["rule_001", "rule_004"]

    def test_conditions_are_conjunctive(self):
        """测试多条件规则需要全部满足"""
        rule = InferenceRule(
            id="combo",
            name="Hot and silent",
            conditions=(
                RuleCondition(SymptomType.OVERHEATING),
                RuleCondition(SymptomType.NO_COMMUNICATION),
            ),
            conclusion=RuleConclusion(FailurePattern.MICROCONTROLLER_DEAD, 90, "test"),
        )
        engine = InferenceEngine(rules=[rule])

        assert engine.apply_rules([make_symptom(SymptomType.OVERHEATING)]) == []
        matched = engine.apply_rules([
            make_symptom(SymptomType.OVERHEATING, symptom_id="s1"),
            make_symptom(SymptomType.NO_COMMUNICATION, symptom_id="s2"),
        ])
        assert [r.id for r in matched] == ["combo"]

    def test_rules_are_immutable(self):
        """测试规则集运行期不可变"""
        assert isinstance(self.engine.rules, tuple)


class TestPowerRouteAnalysis:
    """电源路径分析测试类"""

    def setup_method(self):
        """测试前设置"""
        self.engine = InferenceEngine()

    def test_skipped_without_power_symptoms(self):
        """测试无电源类症状时不分析"""
        symptoms = [make_symptom(SymptomType.OVERHEATING)]
        assert self.engine.analyze_power_route(symptoms) is None

    def test_input_present_regulator_dead(self):
        """测试输入正常, 稳压器无输出"""
        symptoms = [
            make_symptom(SymptomType.NO_VOLTAGE, "No 3.3V output", 0.1, Severity.CRITICAL, "s1"),
            make_symptom(SymptomType.LOW_VOLTAGE, "5V input present", 5.1, Severity.LOW, "s2"),
        ]
        analysis = self.engine.analyze_power_route(symptoms)

        assert analysis.input_voltage.present is True
        assert analysis.regulator_status.working is False
        assert analysis.suspected_failure_point == FailurePoint.VOLTAGE_REGULATOR
        assert analysis.route_integrity == RouteIntegrity.DEGRADED
        assert analysis.recommendations == [
            "Replace voltage regulator",
            "Check for shorts on output rail",
        ]

    def test_missing_input(self):
        """测试无输入电压"""
        symptoms = [make_symptom(SymptomType.NO_VOLTAGE, "USB input dead", 0.0)]
        analysis = self.engine.analyze_power_route(symptoms)

        assert analysis.input_voltage.present is False
        assert analysis.suspected_failure_point == FailurePoint.POWER_INPUT
        assert analysis.route_integrity == RouteIntegrity.BROKEN
        assert "Check USB cable and power source" in analysis.recommendations
        assert "Test fuse continuity" in analysis.recommendations

    def test_no_matching_description_counts_as_absent(self):
        """测试描述不含关键字时视为无输入"""
        symptoms = [make_symptom(SymptomType.LOW_VOLTAGE, "Rail sags", 2.0)]
        analysis = self.engine.analyze_power_route(symptoms)

        assert analysis.input_voltage.present is False
        assert analysis.input_voltage.value is None
        assert analysis.route_integrity == RouteIntegrity.BROKEN

    def test_healthy_route(self):
        """测试电源路径正常"""
        symptoms = [
            make_symptom(SymptomType.LOW_VOLTAGE, "5V input OK", 5.0, symptom_id="s1"),
            make_symptom(SymptomType.LOW_VOLTAGE, "3.3V rail measured", 3.25, symptom_id="s2"),
        ]
        analysis = self.engine.analyze_power_route(symptoms)

        assert analysis.route_integrity == RouteIntegrity.GOOD
        assert analysis.suspected_failure_point is None
        assert analysis.recommendations == []
        assert analysis.microcontroller_power.present is True
        assert analysis.microcontroller_power.expected == 3.3

    def test_keyword_match_is_case_insensitive(self):
        """测试关键字不区分大小写"""
        symptoms = [
            make_symptom(SymptomType.NO_VOLTAGE, "INPUT connector", 5.2, symptom_id="s1"),
            make_symptom(SymptomType.NO_VOLTAGE, "Regulator OUT", 0.0, symptom_id="s2"),
        ]
        analysis = self.engine.analyze_power_route(symptoms)

        assert analysis.input_voltage.value == 5.2
        assert analysis.regulator_status.output_voltage == 0.0

    def test_thresholds_from_config(self):
        """测试阈值来自配置"""
        engine = InferenceEngine(config=Config(input_voltage_threshold=5.5))
        symptoms = [make_symptom(SymptomType.LOW_VOLTAGE, "5V input", 5.1)]

        assert engine.analyze_power_route(symptoms).input_voltage.present is False

    def test_to_dict(self):
        """测试序列化"""
        symptoms = [
            make_symptom(SymptomType.NO_VOLTAGE, "No 3.3V output", 0.1, symptom_id="s1"),
            make_symptom(SymptomType.LOW_VOLTAGE, "5V input present", 5.1, symptom_id="s2"),
        ]
        data = self.engine.analyze_power_route(symptoms).to_dict()

        assert data["inputVoltage"] == {"present": True, "expected": 5.0, "value": 5.1}
        assert data["suspectedFailurePoint"] == "voltage_regulator"
        assert data["routeIntegrity"] == "degraded"
