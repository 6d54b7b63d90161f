"""
iaRealidad - AR Electronics Repair Assistant
电子维修诊断与案例记忆核心

版本: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "iaRealidad Development Team"

# 诊断
from iarealidad.diagnosis import (
    Symptom,
    SymptomType,
    Severity,
    FailurePattern,
    KnowledgeBase,
    InferenceEngine,
    DiagnosticEngine,
    DiagnosticResult,
    InvalidInputError,
    SensingMeasurement,
    FailurePatternRegistry,
    create_diagnostic_engine,
)

# 案例库
from iarealidad.cases import (
    RepairCase,
    CaseStore,
    CaseQuery,
    HistoricalPatternMatch,
    create_case_store,
)

# 分享
from iarealidad.sharing import CaseShareService, ShareFormat, ShareOptions

# 工具
from iarealidad.utils import Config, load_config, setup_logger

__all__ = [
    "__version__",
    "Symptom",
    "SymptomType",
    "Severity",
    "FailurePattern",
    "KnowledgeBase",
    "InferenceEngine",
    "DiagnosticEngine",
    "DiagnosticResult",
    "InvalidInputError",
    "SensingMeasurement",
    "FailurePatternRegistry",
    "create_diagnostic_engine",
    "RepairCase",
    "CaseStore",
    "CaseQuery",
    "HistoricalPatternMatch",
    "create_case_store",
    "CaseShareService",
    "ShareFormat",
    "ShareOptions",
    "Config",
    "load_config",
    "setup_logger",
]
