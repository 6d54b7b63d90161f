"""
Configuration utilities for iaRealidad.
"""

from dataclasses import dataclass, field, fields
from typing import Optional, Dict, Any
import json
import os


@dataclass
class Config:
    """诊断与案例库配置"""
    # 电源路径分析阈值 (V)
    input_voltage_threshold: float = 4.0
    nominal_input_voltage: float = 5.0
    regulator_voltage_threshold: float = 3.0
    nominal_rail_voltage: float = 3.3

    # 置信度计算
    base_confidence: float = 50.0
    max_confidence: float = 95.0
    critical_confidence_bonus: float = 10.0
    symptom_confidence_step: float = 5.0
    max_symptom_bonus: float = 20.0

    # 诊断输出
    max_probable_causes: int = 3
    max_recommendations: int = 5

    # 相似案例检索
    similarity_threshold: float = 30.0
    similar_case_limit: int = 5

    # 导出格式
    export_format_version: str = "1.0"

    # 日志
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # 其他配置
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """从字典创建"""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def save(self, filepath: str):
        """保存配置到文件"""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'Config':
        """从文件加载配置"""
        with open(filepath, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)


def load_config(filepath: Optional[str] = None) -> Config:
    """
    加载配置

    Args:
        filepath: 配置文件路径

    Returns:
        配置对象
    """
    if filepath and os.path.exists(filepath):
        return Config.load(filepath)

    default_paths = [
        'config/iarealidad_config.json',
        'iarealidad_config.json',
        os.path.expanduser('~/.iarealidad/config.json')
    ]

    for path in default_paths:
        if os.path.exists(path):
            return Config.load(path)

    return Config()
