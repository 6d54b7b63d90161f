"""
Repair Case Module for iaRealidad
维修案例库模块
"""

from iarealidad.cases.models import (
    StepType,
    CaseStatus,
    RepairStep,
    ComponentReplacement,
    MeasurementPoint,
    ValidationTest,
    MeasurementOutcome,
    ValidationResult,
    RepairCase,
    HistoricalPatternMatch,
    SortField,
    CaseQuery,
    CaseStatistics,
)
from iarealidad.cases.schema import (
    ParseResult,
    validate_case_payload,
    validate_package,
    parse_repair_case,
    parse_case_json,
)
from iarealidad.cases.similarity import (
    calculate_similarity,
    find_matching_symptoms,
    summarize_resolution,
    round_half_up,
)
from iarealidad.cases.case_store import (
    CaseStore,
    generate_tags,
    create_case_store,
)

__all__ = [
    "StepType",
    "CaseStatus",
    "RepairStep",
    "ComponentReplacement",
    "MeasurementPoint",
    "ValidationTest",
    "MeasurementOutcome",
    "ValidationResult",
    "RepairCase",
    "HistoricalPatternMatch",
    "SortField",
    "CaseQuery",
    "CaseStatistics",
    "ParseResult",
    "validate_case_payload",
    "validate_package",
    "parse_repair_case",
    "parse_case_json",
    "calculate_similarity",
    "find_matching_symptoms",
    "summarize_resolution",
    "round_half_up",
    "CaseStore",
    "generate_tags",
    "create_case_store",
]
