"""
Symptom & Failure Knowledge Model for iaRealidad
电子维修诊断知识模型

内容：
- 症状分类 (SymptomType) 与严重性
- 故障模式枚举 (FailurePattern)
- 每种故障模式的知识条目 (原因、诊断步骤、维修流程、成本/时间估算)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Any
from enum import Enum
import logging

logger = logging.getLogger(__name__)


def parse_timestamp(value: str) -> datetime:
    """解析 ISO 时间戳 (兼容末尾 'Z')"""
    if not isinstance(value, str):
        raise ValueError(f"timestamp must be a string, got {type(value).__name__}")
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return datetime.fromisoformat(value)


# ============================================================================
# 枚举定义
# ============================================================================

class SymptomType(Enum):
    """症状类型"""
    NO_VOLTAGE = "no_voltage"               # 无电压
    LOW_VOLTAGE = "low_voltage"             # 电压偏低
    HIGH_VOLTAGE = "high_voltage"           # 电压偏高
    NO_COMMUNICATION = "no_communication"   # 通信无响应
    OVERHEATING = "overheating"             # 过热
    NOISE = "noise"                         # 电气噪声
    INTERMITTENT = "intermittent"           # 间歇性故障
    PHYSICAL_DAMAGE = "physical_damage"     # 物理损伤


class Severity(Enum):
    """严重性"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FailurePattern(Enum):
    """故障模式"""
    NO_POWER = "no_power"
    VOLTAGE_REGULATOR_FAILURE = "voltage_regulator_failure"
    MICROCONTROLLER_DEAD = "microcontroller_dead"
    COMMUNICATION_FAILURE = "communication_failure"
    SHORT_CIRCUIT = "short_circuit"
    OPEN_CIRCUIT = "open_circuit"
    COMPONENT_OVERHEATING = "component_overheating"
    FIRMWARE_CORRUPTION = "firmware_corruption"
    BOOTLOADER_FAILURE = "bootloader_failure"
    POWER_SUPPLY_FAILURE = "power_supply_failure"
    UNKNOWN = "unknown"


class Difficulty(Enum):
    """维修难度"""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


# ============================================================================
# 数据结构
# ============================================================================

@dataclass(frozen=True)
class Symptom:
    """症状 (创建后不可变)"""
    id: str
    type: SymptomType
    description: str
    severity: Severity = Severity.MEDIUM
    component_id: Optional[str] = None
    pin_id: Optional[str] = None
    measured_value: Optional[float] = None
    expected_value: Optional[float] = None
    unit: Optional[str] = None

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'type': self.type.value,
            'description': self.description,
            'severity': self.severity.value,
        }
        optional = {
            'componentId': self.component_id,
            'pinId': self.pin_id,
            'measuredValue': self.measured_value,
            'expectedValue': self.expected_value,
            'unit': self.unit,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Symptom':
        return cls(
            id=data['id'],
            type=SymptomType(data['type']),
            description=data['description'],
            severity=Severity(data.get('severity', Severity.MEDIUM.value)),
            component_id=data.get('componentId'),
            pin_id=data.get('pinId'),
            measured_value=data.get('measuredValue'),
            expected_value=data.get('expectedValue'),
            unit=data.get('unit'),
        )


@dataclass(frozen=True)
class ValueRange:
    """数值区间 (成本/时间估算)"""
    min: float
    max: float


@dataclass
class FailureKnowledge:
    """故障知识条目"""
    id: str
    failure_pattern: FailurePattern
    common_symptoms: List[str]
    typical_causes: List[str]
    diagnostic_steps: List[str]
    repair_procedures: List[str]
    required_tools: List[str]
    estimated_cost: ValueRange          # 美元
    estimated_time: ValueRange          # 分钟
    success_rate: float                 # 百分比
    difficulty: Difficulty
    related_case_ids: List[str] = field(default_factory=list)


# ============================================================================
# 知识库
# ============================================================================

class KnowledgeBase:
    """
    故障知识库 (按故障模式索引)

    构造时的条目为内置条目; register() 登记的条目覆盖同一故障模式,
    unregister() 移除登记条目并恢复内置条目。
    """

    def __init__(self, entries: Optional[List[FailureKnowledge]] = None):
        self._entries: Dict[FailurePattern, FailureKnowledge] = {}
        for entry in (entries if entries is not None else default_failure_knowledge()):
            self._entries[entry.failure_pattern] = entry
        self._builtin = dict(self._entries)

    def get(self, pattern: FailurePattern) -> Optional[FailureKnowledge]:
        """获取故障知识"""
        return self._entries.get(pattern)

    def register(self, knowledge: FailureKnowledge) -> Optional[FailureKnowledge]:
        """登记故障知识, 返回被覆盖的条目"""
        previous = self._entries.get(knowledge.failure_pattern)
        self._entries[knowledge.failure_pattern] = knowledge
        logger.info(f"Registered failure knowledge {knowledge.id} "
                    f"for {knowledge.failure_pattern.value}")
        return previous

    def unregister(self, pattern: FailurePattern) -> bool:
        """移除登记的故障知识; 内置条目本身不能移除"""
        current = self._entries.get(pattern)
        builtin = self._builtin.get(pattern)
        if current is None or current is builtin:
            return False

        if builtin is not None:
            self._entries[pattern] = builtin
        else:
            del self._entries[pattern]
        return True

    def is_builtin(self, pattern: FailurePattern) -> bool:
        current = self._entries.get(pattern)
        return current is not None and current is self._builtin.get(pattern)

    def patterns(self) -> List[FailurePattern]:
        return list(self._entries.keys())

    def __contains__(self, pattern: FailurePattern) -> bool:
        return pattern in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def default_failure_knowledge() -> List[FailureKnowledge]:
    """内置故障知识条目"""
    return [
        FailureKnowledge(
            id="fk_001",
            failure_pattern=FailurePattern.VOLTAGE_REGULATOR_FAILURE,
            common_symptoms=[
                "No 3.3V output",
                "Low 3.3V output (< 3.0V)",
                "Regulator overheating",
                "No microcontroller activity",
            ],
            typical_causes=[
                "Cheap/faulty power supply",
                "Input voltage spike",
                "Shorted output",
                "Component aging",
                "Poor soldering",
            ],
            diagnostic_steps=[
                "Measure input voltage (should be 4.5-6V for AMS1117)",
                "Measure output voltage (should be 3.3V ± 0.1V)",
                "Check regulator temperature",
                "Test with no load",
                "Check for shorts on 3.3V rail",
            ],
            repair_procedures=[
                "Replace voltage regulator (AMS1117-3.3)",
                "Replace input capacitor (typically 10µF)",
                "Replace output capacitor (typically 22µF)",
                "Check for board damage",
                "Test with known good power supply",
            ],
            required_tools=["Soldering iron", "Multimeter", "Hot air station (optional)", "Flux"],
            estimated_cost=ValueRange(0.5, 2.0),
            estimated_time=ValueRange(15, 45),
            success_rate=92,
            difficulty=Difficulty.MEDIUM,
        ),
        FailureKnowledge(
            id="fk_002",
            failure_pattern=FailurePattern.FIRMWARE_CORRUPTION,
            common_symptoms=[
                "No UART response",
                "Boot loop",
                "Partial boot",
                "Random behavior",
            ],
            typical_causes=[
                "Failed firmware upload",
                "Power loss during flashing",
                "Corrupted flash memory",
                "Wrong bootloader",
            ],
            diagnostic_steps=[
                "Verify power supply stability (3.3V)",
                "Check boot mode pins",
                "Monitor UART output during boot",
                "Try entering bootloader mode",
                "Test with external programmer",
            ],
            repair_procedures=[
                "Enter bootloader mode (hold BOOT, press RESET)",
                "Reflash firmware via UART",
                "Try different baud rate",
                "Use external programmer (JTAG/SWD)",
                "If hardware OK, flash known-good firmware",
            ],
            required_tools=["USB-UART adapter", "Computer", "Programming software"],
            estimated_cost=ValueRange(0, 0),
            estimated_time=ValueRange(10, 30),
            success_rate=85,
            difficulty=Difficulty.EASY,
        ),
        FailureKnowledge(
            id="fk_003",
            failure_pattern=FailurePattern.MICROCONTROLLER_DEAD,
            common_symptoms=[
                "No boot",
                "No communication on any interface",
                "Chip is hot or cold",
                "No current draw",
            ],
            typical_causes=[
                "ESD damage",
                "Reverse voltage",
                "Overvoltage",
                "Manufacturing defect",
            ],
            diagnostic_steps=[
                "Verify 3.3V at VDD pins",
                "Check GND continuity",
                "Measure current consumption",
                "Test crystal oscillator (if present)",
                "Try external programmer",
            ],
            repair_procedures=[
                "Verify all power connections",
                "Test with external debugger",
                "If confirmed dead, replace microcontroller",
                "Check for board-level damage",
                "Consider board replacement if BGA package",
            ],
            required_tools=["Multimeter", "Hot air station", "Programmer/Debugger"],
            estimated_cost=ValueRange(2.0, 15.0),
            estimated_time=ValueRange(30, 120),
            success_rate=60,
            difficulty=Difficulty.HARD,
        ),
        FailureKnowledge(
            id="fk_004",
            failure_pattern=FailurePattern.POWER_SUPPLY_FAILURE,
            common_symptoms=[
                "No 5V at input",
                "Voltage drops under load",
                "USB port not working",
                "Fuse blown",
            ],
            typical_causes=[
                "Dead USB cable",
                "Blown fuse",
                "Damaged diode",
                "Bad USB connector",
            ],
            diagnostic_steps=[
                "Test USB cable with other device",
                "Check fuse continuity",
                "Measure voltage at USB connector",
                "Check protection diode",
                "Look for physical damage",
            ],
            repair_procedures=[
                "Replace USB cable",
                "Replace blown fuse",
                "Replace protection diode",
                "Reflow USB connector",
                "Check for shorts before powering",
            ],
            required_tools=["Multimeter", "Soldering iron", "Known-good USB cable"],
            estimated_cost=ValueRange(0, 3.0),
            estimated_time=ValueRange(5, 30),
            success_rate=90,
            difficulty=Difficulty.EASY,
        ),
        FailureKnowledge(
            id="fk_005",
            failure_pattern=FailurePattern.SHORT_CIRCUIT,
            common_symptoms=[
                "Component hot with no load",
                "Supply current limit reached",
                "Voltage rail pulled low",
                "Burnt smell or discoloration",
            ],
            typical_causes=[
                "Failed ceramic capacitor",
                "Solder bridge between pins",
                "Damaged MOSFET or diode",
                "Conductive debris on board",
            ],
            diagnostic_steps=[
                "Measure resistance between rail and GND",
                "Use thermal inspection to locate hot spot",
                "Inspect pins for solder bridges",
                "Lift suspect components one at a time",
            ],
            repair_procedures=[
                "Clean board with isopropyl alcohol",
                "Reflow solder bridges",
                "Replace shorted capacitor",
                "Replace damaged MOSFET",
                "Test rail resistance before powering",
            ],
            required_tools=["Multimeter", "Soldering iron", "Bench power supply", "Magnifier"],
            estimated_cost=ValueRange(0.1, 3.0),
            estimated_time=ValueRange(20, 90),
            success_rate=80,
            difficulty=Difficulty.MEDIUM,
        ),
    ]
