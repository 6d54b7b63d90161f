"""
Repair Case Store for iaRealidad
维修案例库

功能：
- 案例创建与生命周期记录 (维修步骤、元件更换、验证、经验数据)
- 按板卡/故障模式/标签检索, 组合查询
- 相似历史案例匹配
- 成功率/平均成本/平均用时统计
- JSON 导入导出
"""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
import json
import logging
import threading
import uuid

import numpy as np

from iarealidad.diagnosis.knowledge import FailurePattern, Severity, Symptom
from iarealidad.diagnosis.diagnostic_engine import DiagnosticResult
from iarealidad.cases.models import (
    CaseQuery,
    CaseStatistics,
    ComponentReplacement,
    HistoricalPatternMatch,
    RepairCase,
    RepairStep,
    SortField,
    ValidationResult,
    ValidationTest,
)
from iarealidad.cases.schema import parse_repair_case
from iarealidad.cases.similarity import (
    calculate_similarity,
    find_matching_symptoms,
    round_half_up,
    summarize_resolution,
)
from iarealidad.utils.config import Config

logger = logging.getLogger(__name__)


def generate_tags(board_type: str, failure_pattern: FailurePattern,
                  symptoms: List[Symptom]) -> List[str]:
    """生成案例标签"""
    tags = [board_type.lower(), failure_pattern.value]
    tags.extend(dict.fromkeys(s.type.value for s in symptoms))
    if any(s.severity == Severity.CRITICAL for s in symptoms):
        tags.append("critical")
    return tags


class CaseStore:
    """
    维修案例库

    内存存储, 所有操作同步执行; 案例编号计数器与成本累加由同一把锁保护。
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self._cases: Dict[str, RepairCase] = {}
        self._case_counter = 1
        self._lock = threading.RLock()

    # ========================================================================
    # 案例创建与查找
    # ========================================================================

    def create_case(self, board_type: str, symptoms: List[Symptom],
                    diagnostic_result: DiagnosticResult,
                    board_id: Optional[str] = None) -> RepairCase:
        """创建维修案例"""
        with self._lock:
            case_number = self._case_counter
            self._case_counter += 1

            repair_case = RepairCase(
                id=f"case_{uuid.uuid4().hex[:12]}_{case_number}",
                case_number=case_number,
                board_type=board_type,
                board_id=board_id,
                symptoms=list(symptoms),
                failure_pattern=diagnostic_result.failure_pattern,
                diagnostic_result=diagnostic_result,
                estimated_cost=diagnostic_result.estimated_cost,
                estimated_time=diagnostic_result.estimated_time,
                tags=generate_tags(board_type, diagnostic_result.failure_pattern, symptoms),
            )
            self._cases[repair_case.id] = repair_case

        logger.info(
            f"Created case #{case_number} ({repair_case.id}) for {board_type}: "
            f"{repair_case.failure_pattern.value}"
        )
        return repair_case

    def get_case(self, case_id: str) -> Optional[RepairCase]:
        return self._cases.get(case_id)

    def get_case_by_number(self, case_number: int) -> Optional[RepairCase]:
        with self._lock:
            for repair_case in self._cases.values():
                if repair_case.case_number == case_number:
                    return repair_case
        return None

    def get_all_cases(self) -> List[RepairCase]:
        with self._lock:
            return list(self._cases.values())

    # ========================================================================
    # 维修过程记录
    # ========================================================================

    def add_repair_step(self, case_id: str, step: RepairStep) -> bool:
        """追加维修步骤"""
        with self._lock:
            repair_case = self._cases.get(case_id)
            if repair_case is None:
                return False
            repair_case.repair_steps.append(step)
            return True

    def record_component_replacement(self, case_id: str,
                                     replacement: ComponentReplacement) -> bool:
        """记录元件更换并累加实际成本"""
        with self._lock:
            repair_case = self._cases.get(case_id)
            if repair_case is None:
                return False

            if repair_case.replaced_components is None:
                repair_case.replaced_components = []
            repair_case.replaced_components.append(replacement)
            repair_case.actual_cost = (repair_case.actual_cost or 0) + replacement.cost
            return True

    def complete_case(self, case_id: str,
                      validation_test: ValidationTest,
                      validation_result: ValidationResult,
                      actual_time: Optional[float] = None,
                      technician_notes: Optional[str] = None) -> bool:
        """
        完成案例

        repair_success 取验证结果的 passed; 未执行任何维修步骤也允许完成。
        """
        with self._lock:
            repair_case = self._cases.get(case_id)
            if repair_case is None:
                return False

            repair_case.validation_test = validation_test
            repair_case.validation_result = validation_result
            repair_case.repair_success = validation_result.passed
            if actual_time is not None:
                repair_case.actual_time = actual_time
            if technician_notes is not None:
                repair_case.technician_notes = technician_notes

        logger.info(
            f"Completed case #{repair_case.case_number}: "
            f"{'success' if validation_result.passed else 'failed'}"
        )
        return True

    def add_learning_data(self, case_id: str,
                          root_cause: Optional[str] = None,
                          preventive_measures: Optional[List[str]] = None,
                          client_source: Optional[str] = None,
                          future_risk_probability: Optional[float] = None) -> bool:
        """合并经验数据 (只更新提供的字段)"""
        with self._lock:
            repair_case = self._cases.get(case_id)
            if repair_case is None:
                return False

            if root_cause is not None:
                repair_case.root_cause = root_cause
            if preventive_measures is not None:
                repair_case.preventive_measures = list(preventive_measures)
            if client_source is not None:
                repair_case.client_source = client_source
            if future_risk_probability is not None:
                repair_case.future_risk_probability = future_risk_probability
            return True

    # ========================================================================
    # 检索
    # ========================================================================

    def search_by_board_type(self, board_type: str) -> List[RepairCase]:
        """板卡类型子串匹配 (不区分大小写)"""
        needle = board_type.lower()
        return [c for c in self.get_all_cases() if needle in c.board_type.lower()]

    def search_by_failure_pattern(self, pattern: FailurePattern) -> List[RepairCase]:
        pattern = FailurePattern(pattern)
        return [c for c in self.get_all_cases() if c.failure_pattern == pattern]

    def search_by_tag(self, tag: str) -> List[RepairCase]:
        """标签子串匹配 (不区分大小写)"""
        needle = tag.lower()
        return [
            c for c in self.get_all_cases()
            if any(needle in t.lower() for t in c.tags)
        ]

    def find_similar_cases(self, board_type: str, symptoms: List[Symptom],
                           limit: Optional[int] = None) -> List[HistoricalPatternMatch]:
        """
        查找相似历史案例

        Args:
            board_type: 板卡类型
            symptoms: 当前症状
            limit: 最多返回条数, 默认取配置

        Returns:
            相似度高于阈值的案例, 按相似度降序
        """
        if limit is None:
            limit = self.config.similar_case_limit

        matches = []
        for existing in self.get_all_cases():
            similarity = calculate_similarity(board_type, symptoms, existing)
            if similarity <= self.config.similarity_threshold:
                continue

            matches.append(HistoricalPatternMatch(
                case_id=existing.id,
                case_number=existing.case_number,
                similarity=similarity,
                matching_symptoms=find_matching_symptoms(symptoms, existing.symptoms),
                board_type=existing.board_type,
                repair_success=existing.repair_success,
                resolution=summarize_resolution(existing),
                cost=existing.effective_cost,
                time_to_repair=existing.effective_time,
            ))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        logger.debug(f"Found {len(matches)} similar cases for {board_type}")
        return matches[:limit]

    def query_cases(self, query: Optional[CaseQuery] = None) -> List[RepairCase]:
        """组合查询: 过滤 → 排序 → 分页"""
        query = query or CaseQuery()
        results = self.get_all_cases()

        if query.board_type:
            needle = query.board_type.lower()
            results = [c for c in results if needle in c.board_type.lower()]

        if query.failure_pattern is not None:
            pattern = FailurePattern(query.failure_pattern)
            results = [c for c in results if c.failure_pattern == pattern]

        if query.repair_success is not None:
            results = [c for c in results if c.repair_success == query.repair_success]

        if query.min_cost is not None:
            results = [c for c in results if c.effective_cost >= query.min_cost]
        if query.max_cost is not None:
            results = [c for c in results if c.effective_cost <= query.max_cost]

        if query.tags:
            wanted = [t.lower() for t in query.tags]
            results = [
                c for c in results
                if any(w in t.lower() for w in wanted for t in c.tags)
            ]

        if query.date_from is not None:
            results = [c for c in results if c.timestamp >= query.date_from]
        if query.date_to is not None:
            results = [c for c in results if c.timestamp <= query.date_to]

        if query.sort_by is not None:
            sort_keys = {
                SortField.DATE: lambda c: c.timestamp,
                SortField.CASE_NUMBER: lambda c: c.case_number,
                SortField.COST: lambda c: c.effective_cost,
                SortField.TIME: lambda c: c.effective_time,
            }
            results.sort(key=sort_keys[SortField(query.sort_by)],
                         reverse=query.sort_order == "desc")

        end = query.offset + query.limit if query.limit is not None else None
        return results[query.offset:end]

    # ========================================================================
    # 统计分析
    # ========================================================================

    def get_success_rate_for_pattern(self, pattern: FailurePattern) -> int:
        """故障模式的维修成功率 (百分比取整)"""
        cases = self.search_by_failure_pattern(pattern)
        if not cases:
            return 0
        successes = sum(1 for c in cases if c.repair_success)
        return round_half_up(successes / len(cases) * 100)

    def get_average_repair_time(self, pattern: FailurePattern) -> int:
        """平均实际用时 (分钟, 取整)"""
        times = [c.actual_time for c in self.search_by_failure_pattern(pattern)
                 if c.actual_time is not None]
        if not times:
            return 0
        return round_half_up(float(np.mean(times)))

    def get_average_repair_cost(self, pattern: FailurePattern) -> float:
        """平均实际成本 (保留两位小数)"""
        costs = [c.actual_cost for c in self.search_by_failure_pattern(pattern)
                 if c.actual_cost is not None]
        if not costs:
            return 0.0
        return round_half_up(float(np.mean(costs)) * 100) / 100

    def get_most_common_failures(self, limit: int = 5) -> List[Dict[str, Any]]:
        """故障模式频次, 按次数降序"""
        counts = Counter(c.failure_pattern for c in self.get_all_cases())
        return [
            {'pattern': pattern, 'count': count}
            for pattern, count in counts.most_common(limit)
        ]

    def get_component_failure_stats(self) -> Dict[str, int]:
        """按元件类型统计更换次数"""
        stats: Dict[str, int] = {}
        for repair_case in self.get_all_cases():
            for replacement in repair_case.replaced_components or []:
                stats[replacement.component_type] = stats.get(replacement.component_type, 0) + 1
        return stats

    def get_case_statistics(self) -> CaseStatistics:
        """案例库整体统计"""
        cases = self.get_all_cases()
        if not cases:
            return CaseStatistics()

        successful = sum(1 for c in cases if c.repair_success)
        failed = sum(
            1 for c in cases
            if c.validation_result is not None and not c.repair_success
        )

        costs = np.array([c.actual_cost for c in cases if c.actual_cost is not None], dtype=float)
        times = np.array([c.actual_time for c in cases if c.actual_time is not None], dtype=float)

        failure_counts = Counter(c.failure_pattern for c in cases)
        board_counts = Counter(c.board_type for c in cases)

        return CaseStatistics(
            total_cases=len(cases),
            successful_repairs=successful,
            failed_repairs=failed,
            success_rate=round_half_up(successful / len(cases) * 100),
            total_cost=float(costs.sum()),
            average_cost=float(costs.mean()) if costs.size else 0.0,
            total_time=float(times.sum()),
            average_time=float(times.mean()) if times.size else 0.0,
            most_common_failure=failure_counts.most_common(1)[0][0],
            most_common_board=board_counts.most_common(1)[0][0],
        )

    # ========================================================================
    # 导入导出
    # ========================================================================

    def export_case(self, case_id: str) -> Optional[str]:
        """导出单个案例 JSON"""
        repair_case = self.get_case(case_id)
        if repair_case is None:
            return None
        return json.dumps(repair_case.to_dict(), indent=2, ensure_ascii=False)

    def import_case(self, case_json: Union[str, Dict[str, Any]]) -> Optional[RepairCase]:
        """
        导入单个案例

        校验失败返回 None; 导入编号不小于计数器时推进计数器。
        """
        if isinstance(case_json, str):
            try:
                data = json.loads(case_json)
            except json.JSONDecodeError as e:
                logger.error(f"Failed to import case: invalid JSON ({e})")
                return None
        else:
            data = case_json

        result = parse_repair_case(data)
        if not result.ok:
            logger.error(f"Failed to import case: {'; '.join(result.errors)}")
            return None

        repair_case = result.value
        with self._lock:
            self._cases[repair_case.id] = repair_case
            if repair_case.case_number >= self._case_counter:
                self._case_counter = repair_case.case_number + 1

        logger.info(f"Imported case #{repair_case.case_number} ({repair_case.id})")
        return repair_case

    def export_cases(self, case_ids: List[str]) -> str:
        """导出指定案例 (不存在的 ID 忽略)"""
        cases = [c for c in (self.get_case(i) for i in case_ids) if c is not None]
        return self._export_payload(cases)

    def export_all_cases(self) -> str:
        return self._export_payload(self.get_all_cases())

    def _export_payload(self, cases: List[RepairCase]) -> str:
        payload = {
            'version': self.config.export_format_version,
            'exportDate': datetime.now().isoformat(),
            'totalCases': len(cases),
            'cases': [c.to_dict() for c in cases],
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def import_cases(self, cases_json: str) -> Dict[str, Any]:
        """
        批量导入

        接受导出包 ({cases: [...]}) 或案例数组; 单个案例失败不影响其余案例。

        Returns:
            {'imported': int, 'failed': int, 'cases': List[RepairCase]}
        """
        try:
            data = json.loads(cases_json)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Failed to import cases: invalid JSON ({e})")
            return {'imported': 0, 'failed': 1, 'cases': []}

        if isinstance(data, dict) and isinstance(data.get('cases'), list):
            entries = data['cases']
        elif isinstance(data, list):
            entries = data
        else:
            logger.error("Failed to import cases: expected a case list or export package")
            return {'imported': 0, 'failed': 1, 'cases': []}

        imported = []
        failed = 0
        for entry in entries:
            repair_case = self.import_case(entry)
            if repair_case is None:
                failed += 1
            else:
                imported.append(repair_case)

        logger.info(f"Bulk import finished: {len(imported)} imported, {failed} failed")
        return {'imported': len(imported), 'failed': failed, 'cases': imported}

    # ========================================================================
    # 维护
    # ========================================================================

    def delete_case(self, case_id: str) -> bool:
        """删除案例 (编号不回收)"""
        with self._lock:
            removed = self._cases.pop(case_id, None)
        if removed is not None:
            logger.info(f"Deleted case #{removed.case_number} ({case_id})")
        return removed is not None

    def get_total_cases(self) -> int:
        return len(self._cases)

    def clear_all_cases(self):
        """清空案例库并重置编号"""
        with self._lock:
            self._cases.clear()
            self._case_counter = 1
        logger.info("Case store cleared")


def create_case_store(config: Optional[Config] = None) -> CaseStore:
    """创建案例库"""
    return CaseStore(config=config)
