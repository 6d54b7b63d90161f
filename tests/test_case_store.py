"""
Tests for Repair Case Store.
维修案例库测试
"""

import pytest
import json
import threading
from datetime import datetime, timedelta

from iarealidad.cases import (
    CaseQuery,
    CaseStatus,
    CaseStore,
    RepairStep,
    SortField,
    StepType,
    generate_tags,
)
from iarealidad.diagnosis import FailurePattern, Severity, Symptom, SymptomType
from iarealidad.utils.config import Config


def make_symptom(symptom_type=SymptomType.NO_VOLTAGE, symptom_id="symptom_1",
                 severity=Severity.HIGH, description="Test"):
    return Symptom(id=symptom_id, type=symptom_type, description=description, severity=severity)


def make_step(order=1):
    return RepairStep(
        id=f"step_{order}",
        order=order,
        title="Measure 3.3V rail",
        description="Measure regulator output",
        type=StepType.MEASURE,
        component_ids=["U2"],
    )


class TestCaseCreation:
    """案例创建测试类"""

    def test_create_case(self, case_store, make_diagnosis):
        """测试创建案例"""
        symptoms = [make_symptom()]
        diagnosis = make_diagnosis(symptoms, FailurePattern.VOLTAGE_REGULATOR_FAILURE, 2.0, 30)
        repair_case = case_store.create_case("ESP32 DevKit", symptoms, diagnosis, board_id="B-7")

        assert repair_case.case_number == 1
        assert repair_case.id.startswith("case_")
        assert repair_case.id.endswith("_1")
        assert repair_case.board_id == "B-7"
        assert repair_case.failure_pattern == FailurePattern.VOLTAGE_REGULATOR_FAILURE
        assert repair_case.estimated_cost == 2.0
        assert repair_case.estimated_time == 30
        assert repair_case.repair_steps == []
        assert repair_case.repair_success is False
        assert repair_case.status == CaseStatus.DRAFT
        assert case_store.get_case(repair_case.id) is repair_case

    def test_case_numbers_monotonic_with_deletions(self, case_store, make_diagnosis):
        """测试删除后编号不回收"""
        numbers = []
        for i in range(5):
            repair_case = case_store.create_case(f"Board {i}", [], make_diagnosis([]))
            numbers.append(repair_case.case_number)
            if i % 2 == 0:
                assert case_store.delete_case(repair_case.id)

        assert numbers == [1, 2, 3, 4, 5]
        assert case_store.get_total_cases() == 2

    def test_tags(self, case_store, make_diagnosis):
        """测试标签生成"""
        symptoms = [
            make_symptom(SymptomType.NO_VOLTAGE, "s1", Severity.CRITICAL),
            make_symptom(SymptomType.NO_VOLTAGE, "s2"),
            make_symptom(SymptomType.OVERHEATING, "s3"),
        ]
        repair_case = case_store.create_case(
            "ESP32 DevKit", symptoms,
            make_diagnosis(symptoms, FailurePattern.SHORT_CIRCUIT),
        )

        assert repair_case.tags == [
            "esp32 devkit", "short_circuit", "no_voltage", "overheating", "critical",
        ]

    def test_tags_without_critical(self):
        """测试无严重症状时不加 critical"""
        tags = generate_tags("Uno", FailurePattern.NO_POWER, [make_symptom()])
        assert "critical" not in tags

    def test_lookups(self, case_store, make_diagnosis):
        """测试查找"""
        first = case_store.create_case("A", [], make_diagnosis([]))
        second = case_store.create_case("B", [], make_diagnosis([]))

        assert case_store.get_case_by_number(2) is second
        assert case_store.get_case_by_number(99) is None
        assert case_store.get_case("missing") is None
        assert case_store.get_all_cases() == [first, second]


class TestCaseLifecycle:
    """案例维修过程测试类"""

    def test_add_repair_step(self, case_store, make_diagnosis):
        """测试追加维修步骤"""
        repair_case = case_store.create_case("Board", [], make_diagnosis([]))

        assert case_store.add_repair_step(repair_case.id, make_step(1))
        assert case_store.add_repair_step(repair_case.id, make_step(2))
        assert [s.order for s in repair_case.repair_steps] == [1, 2]
        assert repair_case.status == CaseStatus.IN_PROGRESS

    def test_missing_case_returns_false(self, case_store, validation_pair, sample_replacement):
        """测试案例不存在时返回 False"""
        assert case_store.add_repair_step("missing", make_step()) is False
        assert case_store.record_component_replacement("missing", sample_replacement()) is False
        assert case_store.complete_case("missing", *validation_pair()) is False
        assert case_store.add_learning_data("missing", root_cause="x") is False

    def test_replacement_cost_accumulates(self, case_store, make_diagnosis, sample_replacement):
        """测试更换成本累加"""
        repair_case = case_store.create_case("Board", [], make_diagnosis([]))
        assert repair_case.actual_cost is None

        case_store.record_component_replacement(repair_case.id, sample_replacement(0.76, suffix="1"))
        case_store.record_component_replacement(repair_case.id, sample_replacement(0.15, suffix="2"))

        assert repair_case.actual_cost == pytest.approx(0.91, abs=0.01)
        assert len(repair_case.replaced_components) == 2

    def test_concurrent_replacements(self, case_store, make_diagnosis, sample_replacement):
        """测试并发累加成本"""
        repair_case = case_store.create_case("Board", [], make_diagnosis([]))

        def worker(index):
            for j in range(50):
                case_store.record_component_replacement(
                    repair_case.id, sample_replacement(1.0, suffix=f"{index}_{j}"))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert repair_case.actual_cost == 200.0
        assert len(repair_case.replaced_components) == 200

    def test_complete_case(self, case_store, make_diagnosis, validation_pair):
        """测试完成案例"""
        repair_case = case_store.create_case("Board", [], make_diagnosis([]))
        test, result = validation_pair(passed=True)

        assert case_store.complete_case(repair_case.id, test, result, 45, "Replaced regulator")
        assert repair_case.repair_success is True
        assert repair_case.validation_test is test
        assert repair_case.validation_result is result
        assert repair_case.actual_time == 45
        assert repair_case.technician_notes == "Replaced regulator"
        # 未记录维修步骤也允许完成
        assert repair_case.status == CaseStatus.COMPLETED

    def test_complete_case_failed(self, case_store, make_diagnosis, validation_pair):
        """测试验证失败"""
        repair_case = case_store.create_case("Board", [], make_diagnosis([]))
        case_store.complete_case(repair_case.id, *validation_pair(passed=False))

        assert repair_case.repair_success is False
        assert repair_case.actual_time is None

    def test_add_learning_data_merges(self, case_store, make_diagnosis):
        """测试经验数据只合并提供的字段"""
        repair_case = case_store.create_case("Board", [], make_diagnosis([]))

        case_store.add_learning_data(repair_case.id, root_cause="Cheap PSU",
                                     preventive_measures=["Use quality supply"])
        case_store.add_learning_data(repair_case.id, client_source="Workshop",
                                     future_risk_probability=0.2)

        assert repair_case.root_cause == "Cheap PSU"
        assert repair_case.preventive_measures == ["Use quality supply"]
        assert repair_case.client_source == "Workshop"
        assert repair_case.future_risk_probability == 0.2


class TestSearch:
    """检索测试类"""

    @pytest.fixture(autouse=True)
    def populated(self, case_store, make_diagnosis):
        symptoms = [make_symptom(SymptomType.NO_VOLTAGE, "s1", Severity.CRITICAL)]
        self.esp = case_store.create_case(
            "ESP32 DevKit", symptoms,
            make_diagnosis(symptoms, FailurePattern.VOLTAGE_REGULATOR_FAILURE))
        self.uno = case_store.create_case(
            "Arduino Uno", [make_symptom(SymptomType.NOISE)],
            make_diagnosis([], FailurePattern.NO_POWER))
        self.store = case_store

    def test_search_by_board_type(self):
        """测试板卡类型检索 (不区分大小写子串)"""
        assert self.store.search_by_board_type("esp32") == [self.esp]
        assert self.store.search_by_board_type("UNO") == [self.uno]
        assert self.store.search_by_board_type("stm32") == []

    def test_search_by_failure_pattern(self):
        """测试故障模式检索"""
        assert self.store.search_by_failure_pattern(
            FailurePattern.VOLTAGE_REGULATOR_FAILURE) == [self.esp]
        assert self.store.search_by_failure_pattern("no_power") == [self.uno]

    def test_search_by_tag(self):
        """测试标签检索"""
        assert self.store.search_by_tag("critical") == [self.esp]
        assert self.store.search_by_tag("NOISE") == [self.uno]


class TestFindSimilarCases:
    """相似案例测试类"""

    def test_exact_match_above_80(self, case_store, make_diagnosis):
        """测试板卡与症状完全匹配"""
        symptoms = [make_symptom(SymptomType.NO_VOLTAGE)]
        case_store.create_case("ESP32 DevKit", symptoms, make_diagnosis(symptoms))

        matches = case_store.find_similar_cases("ESP32 DevKit", symptoms)

        assert len(matches) == 1
        assert matches[0].similarity > 80
        assert matches[0].matching_symptoms == ["no_voltage: Test"]
        assert matches[0].resolution == "Repair unsuccessful"
        assert matches[0].cost == 0.5
        assert matches[0].time_to_repair == 15

    def test_filtered_and_sorted(self, case_store, make_diagnosis):
        """测试过滤阈值与降序排序"""
        query = [make_symptom(SymptomType.NO_VOLTAGE, "q1"), make_symptom(SymptomType.NOISE, "q2")]

        # 30 + 35 = 65
        case_store.create_case("Uno", [make_symptom(SymptomType.NO_VOLTAGE)], make_diagnosis([]))
        # 30 + 70 = 100
        case_store.create_case("Uno", query, make_diagnosis(query))
        # 0 + 35 = 35
        case_store.create_case("Mega", [make_symptom(SymptomType.NOISE)], make_diagnosis([]))
        # 30 + 0 = 30, 被过滤
        case_store.create_case("Uno", [make_symptom(SymptomType.OVERHEATING)], make_diagnosis([]))
        # 0
        case_store.create_case("Nano", [], make_diagnosis([]))

        matches = case_store.find_similar_cases("Uno", query)

        assert [m.similarity for m in matches] == [100, 65, 35]
        assert all(m.similarity > 30 for m in matches)

    def test_limit(self, case_store, make_diagnosis):
        """测试结果数量限制"""
        symptoms = [make_symptom()]
        for _ in range(8):
            case_store.create_case("Uno", symptoms, make_diagnosis(symptoms))

        assert len(case_store.find_similar_cases("Uno", symptoms)) == 5
        assert len(case_store.find_similar_cases("Uno", symptoms, limit=2)) == 2

    def test_uses_actual_values(self, case_store, make_diagnosis, validation_pair,
                                sample_replacement):
        """测试优先使用实际成本与用时"""
        symptoms = [make_symptom()]
        repair_case = case_store.create_case("Uno", symptoms, make_diagnosis(symptoms))
        case_store.record_component_replacement(repair_case.id, sample_replacement(1.25))
        case_store.complete_case(repair_case.id, *validation_pair(passed=True), actual_time=40)

        match = case_store.find_similar_cases("Uno", symptoms)[0]
        assert match.cost == 1.25
        assert match.time_to_repair == 40
        assert match.repair_success is True
        assert match.resolution == "Replaced regulator"

    def test_threshold_from_config(self, make_diagnosis):
        """测试阈值可配置"""
        store = CaseStore(config=Config(similarity_threshold=90))
        symptoms = [make_symptom()]
        store.create_case("ESP32 DevKit V1", symptoms, make_diagnosis(symptoms))

        assert store.find_similar_cases("ESP32", symptoms) == []


class TestAnalytics:
    """统计分析测试类"""

    def test_success_rate(self, case_store, make_diagnosis, validation_pair):
        """测试成功率 3/4 = 75"""
        pattern = FailurePattern.VOLTAGE_REGULATOR_FAILURE
        for index, passed in enumerate([True, True, True, False]):
            repair_case = case_store.create_case("Board", [], make_diagnosis([], pattern))
            case_store.complete_case(repair_case.id, *validation_pair(passed, str(index)))

        assert case_store.get_success_rate_for_pattern(pattern) == 75
        assert case_store.get_success_rate_for_pattern(FailurePattern.NO_POWER) == 0

    def test_success_rate_rounds_half_up(self, case_store, make_diagnosis, validation_pair):
        """测试成功率四舍五入"""
        pattern = FailurePattern.NO_POWER
        for index, passed in enumerate([True] + [False] * 7):
            repair_case = case_store.create_case("Board", [], make_diagnosis([], pattern))
            case_store.complete_case(repair_case.id, *validation_pair(passed, str(index)))

        # 12.5 → 13
        assert case_store.get_success_rate_for_pattern(pattern) == 13

    def test_average_time_and_cost(self, case_store, make_diagnosis, validation_pair,
                                   sample_replacement):
        """测试平均用时与成本"""
        pattern = FailurePattern.VOLTAGE_REGULATOR_FAILURE
        first = case_store.create_case("Board", [], make_diagnosis([], pattern))
        second = case_store.create_case("Board", [], make_diagnosis([], pattern))
        case_store.create_case("Board", [], make_diagnosis([], pattern))

        case_store.complete_case(first.id, *validation_pair(True, "1"), actual_time=30)
        case_store.complete_case(second.id, *validation_pair(True, "2"), actual_time=45)
        case_store.record_component_replacement(first.id, sample_replacement(1.0, suffix="1"))
        case_store.record_component_replacement(second.id, sample_replacement(0.335, suffix="2"))

        # 37.5 → 38
        assert case_store.get_average_repair_time(pattern) == 38
        assert case_store.get_average_repair_cost(pattern) == pytest.approx(0.67)
        assert case_store.get_average_repair_time(FailurePattern.UNKNOWN) == 0
        assert case_store.get_average_repair_cost(FailurePattern.UNKNOWN) == 0

    def test_most_common_failures(self, case_store, make_diagnosis):
        """测试最常见故障"""
        for pattern in [FailurePattern.NO_POWER] * 3 + [FailurePattern.SHORT_CIRCUIT] * 2 \
                + [FailurePattern.UNKNOWN]:
            case_store.create_case("Board", [], make_diagnosis([], pattern))

        common = case_store.get_most_common_failures(limit=2)
        assert common == [
            {'pattern': FailurePattern.NO_POWER, 'count': 3},
            {'pattern': FailurePattern.SHORT_CIRCUIT, 'count': 2},
        ]

    def test_component_failure_stats(self, case_store, make_diagnosis, sample_replacement):
        """测试元件更换统计"""
        first = case_store.create_case("Board", [], make_diagnosis([]))
        second = case_store.create_case("Board", [], make_diagnosis([]))
        case_store.record_component_replacement(first.id, sample_replacement(suffix="1"))
        case_store.record_component_replacement(
            second.id, sample_replacement(component_type="capacitor", suffix="2"))
        case_store.record_component_replacement(second.id, sample_replacement(suffix="3"))

        assert case_store.get_component_failure_stats() == {"regulator": 2, "capacitor": 1}

    def test_case_statistics(self, case_store, make_diagnosis, validation_pair,
                             sample_replacement):
        """测试整体统计"""
        pattern = FailurePattern.VOLTAGE_REGULATOR_FAILURE
        first = case_store.create_case("ESP32 DevKit", [], make_diagnosis([], pattern, 2.0, 30))
        second = case_store.create_case("Arduino Uno", [], make_diagnosis([], pattern, 2.0, 30))
        case_store.create_case("ESP32 DevKit", [], make_diagnosis([], FailurePattern.NO_POWER))

        case_store.complete_case(first.id, *validation_pair(True, "1"), actual_time=45)
        case_store.record_component_replacement(first.id, sample_replacement(1.5))
        case_store.complete_case(second.id, *validation_pair(False, "2"), actual_time=30)

        stats = case_store.get_case_statistics()

        assert stats.total_cases == 3
        assert stats.successful_repairs == 1
        assert stats.failed_repairs == 1
        assert stats.success_rate == 33
        assert stats.total_cost == 1.5
        assert stats.average_cost == 1.5
        assert stats.total_time == 75
        assert stats.average_time == 37.5
        assert stats.most_common_failure == pattern
        assert stats.most_common_board == "ESP32 DevKit"

    def test_empty_statistics(self, case_store):
        """测试空库统计"""
        stats = case_store.get_case_statistics()

        assert stats.total_cases == 0
        assert stats.success_rate == 0
        assert stats.average_cost == 0
        assert stats.average_time == 0
        assert stats.most_common_failure is None
        assert stats.most_common_board is None
        assert stats.to_dict()["mostCommonFailure"] is None


class TestQueryCases:
    """组合查询测试类"""

    @pytest.fixture(autouse=True)
    def populated(self, case_store, make_diagnosis, validation_pair):
        critical = [make_symptom(SymptomType.NO_VOLTAGE, "s1", Severity.CRITICAL)]
        self.esp = case_store.create_case(
            "ESP32 DevKit", critical,
            make_diagnosis(critical, FailurePattern.VOLTAGE_REGULATOR_FAILURE, 1.0, 30))
        self.uno = case_store.create_case(
            "Arduino Uno", [make_symptom(SymptomType.NO_COMMUNICATION)],
            make_diagnosis([], FailurePattern.FIRMWARE_CORRUPTION, 0.0, 20))
        self.nano = case_store.create_case(
            "Arduino Nano", [make_symptom(SymptomType.OVERHEATING)],
            make_diagnosis([], FailurePattern.SHORT_CIRCUIT, 3.0, 60))
        case_store.complete_case(self.esp.id, *validation_pair(True))

        self.esp.timestamp = datetime(2024, 1, 1)
        self.uno.timestamp = datetime(2024, 2, 1)
        self.nano.timestamp = datetime(2024, 3, 1)
        self.store = case_store

    def test_no_filters(self):
        """测试无条件查询"""
        assert len(self.store.query_cases()) == 3

    def test_board_type(self):
        """测试板卡过滤"""
        assert self.store.query_cases(CaseQuery(board_type="arduino")) == [self.uno, self.nano]

    def test_failure_pattern(self):
        """测试故障模式过滤"""
        results = self.store.query_cases(
            CaseQuery(failure_pattern=FailurePattern.SHORT_CIRCUIT))
        assert results == [self.nano]

    def test_repair_success(self):
        """测试维修结果过滤"""
        assert self.store.query_cases(CaseQuery(repair_success=True)) == [self.esp]
        assert len(self.store.query_cases(CaseQuery(repair_success=False))) == 2

    def test_cost_range(self):
        """测试成本区间"""
        assert self.store.query_cases(CaseQuery(min_cost=0.5, max_cost=1.5)) == [self.esp]

    def test_tags(self):
        """测试标签过滤"""
        assert self.store.query_cases(CaseQuery(tags=["critical"])) == [self.esp]
        assert len(self.store.query_cases(CaseQuery(tags=["overheating", "no_comm"]))) == 2

    def test_date_range(self):
        """测试日期区间"""
        results = self.store.query_cases(CaseQuery(
            date_from=datetime(2024, 1, 15),
            date_to=datetime(2024, 2, 15),
        ))
        assert results == [self.uno]

    def test_sorting(self):
        """测试排序"""
        by_cost = self.store.query_cases(CaseQuery(sort_by=SortField.COST, sort_order="desc"))
        assert by_cost == [self.nano, self.esp, self.uno]

        by_number = self.store.query_cases(CaseQuery(sort_by=SortField.CASE_NUMBER))
        assert [c.case_number for c in by_number] == [1, 2, 3]

        by_date = self.store.query_cases(CaseQuery(sort_by="date", sort_order="desc"))
        assert by_date == [self.nano, self.uno, self.esp]

        by_time = self.store.query_cases(CaseQuery(sort_by=SortField.TIME))
        assert by_time == [self.uno, self.esp, self.nano]

    def test_pagination(self):
        """测试分页"""
        page1 = self.store.query_cases(CaseQuery(sort_by=SortField.CASE_NUMBER, limit=2))
        page2 = self.store.query_cases(CaseQuery(sort_by=SortField.CASE_NUMBER, offset=2, limit=2))

        assert page1 == [self.esp, self.uno]
        assert page2 == [self.nano]

    def test_combined(self):
        """测试组合条件"""
        results = self.store.query_cases(CaseQuery(
            board_type="ESP32",
            repair_success=True,
            sort_by=SortField.DATE,
            sort_order="desc",
        ))
        assert results == [self.esp]


class TestMaintenance:
    """维护操作测试类"""

    def test_delete_case(self, case_store, make_diagnosis):
        """测试删除案例"""
        repair_case = case_store.create_case("Board", [], make_diagnosis([]))

        assert case_store.delete_case(repair_case.id) is True
        assert case_store.delete_case(repair_case.id) is False
        assert case_store.get_case(repair_case.id) is None

    def test_clear_resets_counter(self, case_store, make_diagnosis):
        """测试清空后编号重置"""
        case_store.create_case("Board", [], make_diagnosis([]))
        case_store.create_case("Board", [], make_diagnosis([]))
        case_store.clear_all_cases()

        assert case_store.get_total_cases() == 0
        assert case_store.create_case("Board", [], make_diagnosis([])).case_number == 1
