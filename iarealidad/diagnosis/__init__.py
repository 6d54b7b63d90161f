"""
Diagnosis Module for iaRealidad
电子维修诊断模块
"""

from iarealidad.diagnosis.knowledge import (
    SymptomType,
    Severity,
    FailurePattern,
    Difficulty,
    Symptom,
    ValueRange,
    FailureKnowledge,
    KnowledgeBase,
    default_failure_knowledge,
)
from iarealidad.diagnosis.inference import (
    MeasurementRange,
    RuleCondition,
    RuleConclusion,
    InferenceRule,
    RouteIntegrity,
    FailurePoint,
    VoltageReading,
    RegulatorStatus,
    PowerRouteAnalysis,
    InferenceEngine,
    default_inference_rules,
)
from iarealidad.diagnosis.measurements import (
    AnomalyType,
    SensingMeasurement,
    infer_severity,
    map_anomaly_to_symptom_type,
    symptom_from_measurement,
    analyze_measurements,
)
from iarealidad.diagnosis.diagnostic_engine import (
    InvalidInputError,
    RepairAction,
    ProbableCause,
    RepairRecommendation,
    DiagnosticResult,
    DiagnosticEngine,
    infer_action,
    parse_timestamp,
    create_diagnostic_engine,
)
from iarealidad.diagnosis.registry import (
    RegistrySource,
    RegistryEntry,
    FailurePatternRegistry,
    validate_failure_pattern_payload,
    convert_to_failure_knowledge,
    create_failure_pattern_registry,
)

__all__ = [
    "SymptomType",
    "Severity",
    "FailurePattern",
    "Difficulty",
    "Symptom",
    "ValueRange",
    "FailureKnowledge",
    "KnowledgeBase",
    "default_failure_knowledge",
    "MeasurementRange",
    "RuleCondition",
    "RuleConclusion",
    "InferenceRule",
    "RouteIntegrity",
    "FailurePoint",
    "VoltageReading",
    "RegulatorStatus",
    "PowerRouteAnalysis",
    "InferenceEngine",
    "default_inference_rules",
    "AnomalyType",
    "SensingMeasurement",
    "infer_severity",
    "map_anomaly_to_symptom_type",
    "symptom_from_measurement",
    "analyze_measurements",
    "InvalidInputError",
    "RepairAction",
    "ProbableCause",
    "RepairRecommendation",
    "DiagnosticResult",
    "DiagnosticEngine",
    "infer_action",
    "parse_timestamp",
    "create_diagnostic_engine",
    "RegistrySource",
    "RegistryEntry",
    "FailurePatternRegistry",
    "validate_failure_pattern_payload",
    "convert_to_failure_knowledge",
    "create_failure_pattern_registry",
]
