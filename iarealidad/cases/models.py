"""
Repair Case Data Model
维修案例数据模型

RepairCase 是案例库的持久单元; JSON 结构使用 camelCase 键,
与导出/分享格式保持一致。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Any
from enum import Enum

from iarealidad.diagnosis.knowledge import FailurePattern, Symptom
from iarealidad.diagnosis.diagnostic_engine import DiagnosticResult, parse_timestamp


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# ============================================================================
# 枚举定义
# ============================================================================

class StepType(Enum):
    """维修步骤类型"""
    INSPECT = "inspect"
    MEASURE = "measure"
    REPLACE = "replace"
    SOLDER = "solder"
    TEST = "test"


class CaseStatus(Enum):
    """案例状态 (由记录数据推导, 不强制流转)"""
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# ============================================================================
# 维修过程
# ============================================================================

@dataclass
class RepairStep:
    """维修步骤"""
    id: str
    order: int
    title: str
    description: str
    type: StepType
    component_ids: List[str] = field(default_factory=list)
    warning: Optional[str] = None
    expected_result: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'order': self.order,
            'title': self.title,
            'description': self.description,
            'componentIds': list(self.component_ids),
            'type': self.type.value,
            'warning': self.warning,
            'expectedResult': self.expected_result,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RepairStep':
        return cls(
            id=data['id'],
            order=data['order'],
            title=data['title'],
            description=data['description'],
            type=StepType(data['type']),
            component_ids=list(data.get('componentIds', [])),
            warning=data.get('warning'),
            expected_result=data.get('expectedResult'),
        )


@dataclass
class ComponentReplacement:
    """元件更换记录"""
    id: str
    component_id: str
    component_type: str
    reason: str
    cost: float
    part_number: Optional[str] = None
    supplier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'componentId': self.component_id,
            'componentType': self.component_type,
            'reason': self.reason,
            'cost': self.cost,
            'partNumber': self.part_number,
            'supplier': self.supplier,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ComponentReplacement':
        return cls(
            id=data['id'],
            component_id=data['componentId'],
            component_type=data['componentType'],
            reason=data.get('reason', ''),
            cost=data['cost'],
            part_number=data.get('partNumber'),
            supplier=data.get('supplier'),
        )


# ============================================================================
# 验证测试
# ============================================================================

@dataclass
class MeasurementPoint:
    """测量点"""
    id: str
    component_id: str
    expected_value: str
    expected_min: float
    expected_max: float
    unit: str
    description: str
    pin_id: Optional[str] = None
    measurement_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'componentId': self.component_id,
            'pinId': self.pin_id,
            'expectedValue': self.expected_value,
            'expectedRange': {'min': self.expected_min, 'max': self.expected_max},
            'unit': self.unit,
            'description': self.description,
            'measurementType': self.measurement_type,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MeasurementPoint':
        expected_range = data.get('expectedRange', {})
        return cls(
            id=data['id'],
            component_id=data['componentId'],
            expected_value=data['expectedValue'],
            expected_min=expected_range['min'],
            expected_max=expected_range['max'],
            unit=data['unit'],
            description=data.get('description', ''),
            pin_id=data.get('pinId'),
            measurement_type=data.get('measurementType'),
        )


@dataclass
class ValidationTest:
    """验证测试定义"""
    id: str
    name: str
    description: str
    pass_criteria: str
    measurement_points: List[MeasurementPoint] = field(default_factory=list)
    failure_actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'measurementPoints': [p.to_dict() for p in self.measurement_points],
            'passCriteria': self.pass_criteria,
            'failureActions': list(self.failure_actions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ValidationTest':
        return cls(
            id=data['id'],
            name=data['name'],
            description=data.get('description', ''),
            pass_criteria=data.get('passCriteria', ''),
            measurement_points=[
                MeasurementPoint.from_dict(p) for p in data.get('measurementPoints', [])
            ],
            failure_actions=list(data.get('failureActions', [])),
        )


@dataclass
class MeasurementOutcome:
    """单个测量点的验证结果"""
    measurement_id: str
    passed: bool
    expected_value: str
    measured_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'measurementId': self.measurement_id,
            'passed': self.passed,
            'measuredValue': self.measured_value,
            'expectedValue': self.expected_value,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MeasurementOutcome':
        return cls(
            measurement_id=data['measurementId'],
            passed=data['passed'],
            expected_value=data.get('expectedValue', ''),
            measured_value=data.get('measuredValue'),
        )


@dataclass
class ValidationResult:
    """验证结果"""
    id: str
    test_id: str
    test_name: str
    passed: bool
    results: List[MeasurementOutcome] = field(default_factory=list)
    notes: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'timestamp': self.timestamp.isoformat(),
            'testId': self.test_id,
            'testName': self.test_name,
            'passed': self.passed,
            'results': [r.to_dict() for r in self.results],
            'notes': self.notes,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ValidationResult':
        return cls(
            id=data['id'],
            timestamp=parse_timestamp(data['timestamp']),
            test_id=data['testId'],
            test_name=data.get('testName', ''),
            passed=data['passed'],
            results=[MeasurementOutcome.from_dict(r) for r in data.get('results', [])],
            notes=data.get('notes'),
        )


# ============================================================================
# 维修案例
# ============================================================================

@dataclass
class RepairCase:
    """维修案例"""
    id: str
    case_number: int
    board_type: str
    symptoms: List[Symptom]
    failure_pattern: FailurePattern
    diagnostic_result: DiagnosticResult
    estimated_cost: float
    estimated_time: float
    timestamp: datetime = field(default_factory=datetime.now)
    board_id: Optional[str] = None
    repair_steps: List[RepairStep] = field(default_factory=list)
    replaced_components: Optional[List[ComponentReplacement]] = None
    validation_test: Optional[ValidationTest] = None
    validation_result: Optional[ValidationResult] = None
    repair_success: bool = False
    actual_cost: Optional[float] = None
    actual_time: Optional[float] = None
    technician_notes: Optional[str] = None
    root_cause: Optional[str] = None
    preventive_measures: Optional[List[str]] = None
    client_source: Optional[str] = None
    future_risk_probability: Optional[float] = None
    tags: List[str] = field(default_factory=list)

    @property
    def status(self) -> CaseStatus:
        """推导的生命周期状态"""
        if self.validation_result is not None:
            return CaseStatus.COMPLETED
        if self.repair_steps or self.replaced_components:
            return CaseStatus.IN_PROGRESS
        return CaseStatus.DRAFT

    @property
    def effective_cost(self) -> float:
        """实际成本, 未记录时取估算成本"""
        return self.actual_cost if self.actual_cost is not None else self.estimated_cost

    @property
    def effective_time(self) -> float:
        """实际用时, 未记录时取估算用时"""
        return self.actual_time if self.actual_time is not None else self.estimated_time

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'id': self.id,
            'caseNumber': self.case_number,
            'timestamp': self.timestamp.isoformat(),
            'boardType': self.board_type,
            'boardId': self.board_id,
            'symptoms': [s.to_dict() for s in self.symptoms],
            'failurePattern': self.failure_pattern.value,
            'diagnosticResult': self.diagnostic_result.to_dict(),
            'repairSteps': [s.to_dict() for s in self.repair_steps],
            'replacedComponents': (
                [r.to_dict() for r in self.replaced_components]
                if self.replaced_components is not None else None
            ),
            'validationTest': self.validation_test.to_dict() if self.validation_test else None,
            'validationResult': (
                self.validation_result.to_dict() if self.validation_result else None
            ),
            'repairSuccess': self.repair_success,
            'estimatedCost': self.estimated_cost,
            'actualCost': self.actual_cost,
            'estimatedTime': self.estimated_time,
            'actualTime': self.actual_time,
            'technicianNotes': self.technician_notes,
            'rootCause': self.root_cause,
            'preventiveMeasures': (
                list(self.preventive_measures) if self.preventive_measures is not None else None
            ),
            'clientSource': self.client_source,
            'futureRiskProbability': self.future_risk_probability,
            'tags': list(self.tags),
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RepairCase':
        replaced = data.get('replacedComponents')
        validation_test = data.get('validationTest')
        validation_result = data.get('validationResult')
        preventive = data.get('preventiveMeasures')
        return cls(
            id=data['id'],
            case_number=data['caseNumber'],
            timestamp=parse_timestamp(data['timestamp']),
            board_type=data['boardType'],
            board_id=data.get('boardId'),
            symptoms=[Symptom.from_dict(s) for s in data['symptoms']],
            failure_pattern=FailurePattern(data['failurePattern']),
            diagnostic_result=DiagnosticResult.from_dict(data['diagnosticResult']),
            repair_steps=[RepairStep.from_dict(s) for s in data.get('repairSteps', [])],
            replaced_components=(
                [ComponentReplacement.from_dict(r) for r in replaced]
                if replaced is not None else None
            ),
            validation_test=ValidationTest.from_dict(validation_test) if validation_test else None,
            validation_result=(
                ValidationResult.from_dict(validation_result) if validation_result else None
            ),
            repair_success=data.get('repairSuccess', False),
            estimated_cost=data['estimatedCost'],
            actual_cost=data.get('actualCost'),
            estimated_time=data['estimatedTime'],
            actual_time=data.get('actualTime'),
            technician_notes=data.get('technicianNotes'),
            root_cause=data.get('rootCause'),
            preventive_measures=list(preventive) if preventive is not None else None,
            client_source=data.get('clientSource'),
            future_risk_probability=data.get('futureRiskProbability'),
            tags=list(data.get('tags', [])),
        )


# ============================================================================
# 检索与统计
# ============================================================================

@dataclass
class HistoricalPatternMatch:
    """相似历史案例 (只读投影)"""
    case_id: str
    case_number: int
    similarity: int                 # 0-100
    matching_symptoms: List[str]
    board_type: str
    repair_success: bool
    resolution: str
    cost: float
    time_to_repair: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'caseId': self.case_id,
            'caseNumber': self.case_number,
            'similarity': self.similarity,
            'matchingSymptoms': list(self.matching_symptoms),
            'boardType': self.board_type,
            'repairSuccess': self.repair_success,
            'resolution': self.resolution,
            'cost': self.cost,
            'timeToRepair': self.time_to_repair,
        }


class SortField(Enum):
    """查询排序字段"""
    DATE = "date"
    CASE_NUMBER = "caseNumber"
    COST = "cost"
    TIME = "time"


@dataclass
class CaseQuery:
    """案例组合查询条件"""
    board_type: Optional[str] = None
    failure_pattern: Optional[FailurePattern] = None
    repair_success: Optional[bool] = None
    min_cost: Optional[float] = None
    max_cost: Optional[float] = None
    tags: Optional[List[str]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sort_by: Optional[SortField] = None
    sort_order: str = "asc"
    offset: int = 0
    limit: Optional[int] = None


@dataclass
class CaseStatistics:
    """案例库统计"""
    total_cases: int = 0
    successful_repairs: int = 0
    failed_repairs: int = 0
    success_rate: float = 0
    total_cost: float = 0.0
    average_cost: float = 0.0
    total_time: float = 0.0
    average_time: float = 0.0
    most_common_failure: Optional[FailurePattern] = None
    most_common_board: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalCases': self.total_cases,
            'successfulRepairs': self.successful_repairs,
            'failedRepairs': self.failed_repairs,
            'successRate': self.success_rate,
            'totalCost': self.total_cost,
            'averageCost': self.average_cost,
            'totalTime': self.total_time,
            'averageTime': self.average_time,
            'mostCommonFailure': (
                self.most_common_failure.value if self.most_common_failure else None
            ),
            'mostCommonBoard': self.most_common_board,
        }
