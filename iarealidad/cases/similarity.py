"""
Case Similarity Scoring
历史案例相似度评分

评分权重 (合计 100):
- 板卡类型完全匹配 30, 包含匹配 15
- 症状类型重叠最多 70 (交叉配对计数, 不去重)
- 总分限制在 [0, 100]
"""

import math
from typing import List

from iarealidad.diagnosis.knowledge import Symptom
from iarealidad.cases.models import RepairCase


BOARD_EXACT_WEIGHT = 30
BOARD_PARTIAL_WEIGHT = 15
SYMPTOM_WEIGHT = 70


def round_half_up(value: float) -> int:
    """四舍五入 (0.5 向上取整)"""
    return int(math.floor(value + 0.5))


def find_matching_symptoms(query: List[Symptom], candidate: List[Symptom]) -> List[str]:
    """同类型症状的所有交叉配对"""
    return [
        f"{s1.type.value}: {s1.description}"
        for s1 in query
        for s2 in candidate
        if s1.type == s2.type
    ]


def calculate_similarity(board_type: str, symptoms: List[Symptom],
                         existing_case: RepairCase) -> int:
    """计算查询与历史案例的相似度 (0-100 取整)"""
    similarity = 0.0

    query_board = board_type.lower()
    case_board = existing_case.board_type.lower()
    if query_board == case_board:
        similarity += BOARD_EXACT_WEIGHT
    elif query_board in case_board:
        similarity += BOARD_PARTIAL_WEIGHT

    denominator = max(len(symptoms), len(existing_case.symptoms))
    if denominator > 0:
        matches = find_matching_symptoms(symptoms, existing_case.symptoms)
        similarity += len(matches) / denominator * SYMPTOM_WEIGHT

    return min(100, max(0, round_half_up(similarity)))


def summarize_resolution(repair_case: RepairCase) -> str:
    """维修结果摘要"""
    if not repair_case.repair_success:
        return "Repair unsuccessful"

    components = repair_case.replaced_components or []
    if not components:
        return "Resolved without component replacement"
    if len(components) == 1:
        return f"Replaced {components[0].component_type}"
    return f"Replaced {len(components)} components"
