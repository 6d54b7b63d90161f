"""
Measurement to Symptom Translation
传感测量 → 症状转换

观测层提供带异常标记的测量, 这里将其转换为诊断引擎可用的 Symptom。
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Any, Union
from enum import Enum
import uuid

from iarealidad.diagnosis.knowledge import Severity, Symptom, SymptomType, parse_timestamp


class AnomalyType(Enum):
    """异常类型"""
    OUT_OF_RANGE = "out_of_range"
    NOISE = "noise"
    UNSTABLE = "unstable"
    UNEXPECTED_PATTERN = "unexpected_pattern"


ANOMALY_SYMPTOM_MAP = {
    AnomalyType.OUT_OF_RANGE: SymptomType.LOW_VOLTAGE,
    AnomalyType.NOISE: SymptomType.NOISE,
    AnomalyType.UNSTABLE: SymptomType.INTERMITTENT,
}


@dataclass
class SensingMeasurement:
    """传感测量"""
    id: str
    sensor_id: str
    sensor_type: str
    value: Union[float, int, str, bool]
    timestamp: Optional[datetime] = None
    unit: Optional[str] = None
    component_id: Optional[str] = None
    pin_id: Optional[str] = None
    anomaly_detected: bool = False
    anomaly_type: Optional[AnomalyType] = None
    confidence: Optional[float] = None     # 0-100

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()
        if isinstance(self.anomaly_type, str):
            self.anomaly_type = AnomalyType(self.anomaly_type)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SensingMeasurement':
        timestamp = data.get('timestamp')
        return cls(
            id=data['id'],
            sensor_id=data['sensorId'],
            sensor_type=data['sensorType'],
            value=data['value'],
            timestamp=parse_timestamp(timestamp) if timestamp else None,
            unit=data.get('unit'),
            component_id=data.get('componentId'),
            pin_id=data.get('pinId'),
            anomaly_detected=bool(data.get('anomalyDetected', False)),
            anomaly_type=data.get('anomalyType'),
            confidence=data.get('confidence'),
        )


def map_anomaly_to_symptom_type(anomaly_type: Optional[AnomalyType]) -> SymptomType:
    """异常类型映射为症状类型 (未知异常按无电压处理)"""
    return ANOMALY_SYMPTOM_MAP.get(anomaly_type, SymptomType.NO_VOLTAGE)


def infer_severity(confidence: Optional[float]) -> Severity:
    """根据检测置信度推断严重性"""
    if confidence is None:
        return Severity.LOW
    if confidence > 80:
        return Severity.CRITICAL
    if confidence > 60:
        return Severity.HIGH
    if confidence > 40:
        return Severity.MEDIUM
    return Severity.LOW


def symptom_from_measurement(measurement: SensingMeasurement,
                             symptom_id: Optional[str] = None) -> Symptom:
    """将单个异常测量转换为症状"""
    value = measurement.value
    numeric = isinstance(value, (int, float)) and not isinstance(value, bool)
    anomaly_name = measurement.anomaly_type.value if measurement.anomaly_type else "None"

    return Symptom(
        id=symptom_id or f"symptom_{uuid.uuid4().hex[:12]}",
        type=map_anomaly_to_symptom_type(measurement.anomaly_type),
        description=f"Anomaly detected: {anomaly_name}",
        severity=infer_severity(measurement.confidence),
        component_id=measurement.component_id,
        pin_id=measurement.pin_id,
        measured_value=float(value) if numeric else None,
        unit=measurement.unit,
    )


def analyze_measurements(measurements: List[SensingMeasurement]) -> List[Symptom]:
    """只有带异常标记的测量才会产生症状"""
    return [
        symptom_from_measurement(m, symptom_id=f"symptom_{uuid.uuid4().hex[:8]}_{index}")
        for index, m in enumerate(measurements)
        if m.anomaly_detected
    ]
