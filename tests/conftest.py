"""
Pytest Configuration and Shared Fixtures
pytest配置和共享测试夹具
"""

import pytest
import os
import sys
from datetime import datetime

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture
def config():
    """默认配置"""
    from iarealidad.utils.config import Config

    return Config()


@pytest.fixture
def diagnostic_engine(config):
    """诊断引擎夹具"""
    from iarealidad.diagnosis import create_diagnostic_engine

    return create_diagnostic_engine(config)


@pytest.fixture
def case_store(config):
    """空案例库夹具"""
    from iarealidad.cases import CaseStore

    return CaseStore(config=config)


@pytest.fixture
def regulator_symptoms():
    """示例症状: 3.3V 无输出, 5V 输入正常"""
    from iarealidad.diagnosis import Symptom, SymptomType, Severity

    return [
        Symptom(
            id="symptom_1",
            type=SymptomType.NO_VOLTAGE,
            description="No 3.3V output on regulator",
            severity=Severity.CRITICAL,
            component_id="U2",
            measured_value=0.1,
            expected_value=3.3,
            unit="V",
        ),
        Symptom(
            id="symptom_2",
            type=SymptomType.LOW_VOLTAGE,
            description="5V input present",
            severity=Severity.LOW,
            measured_value=5.1,
            expected_value=5.0,
            unit="V",
        ),
    ]


@pytest.fixture
def regulator_diagnosis(diagnostic_engine, regulator_symptoms):
    """示例诊断结果"""
    return diagnostic_engine.diagnose(regulator_symptoms)


@pytest.fixture
def make_diagnosis():
    """构造指定故障模式的诊断结果"""
    from iarealidad.diagnosis import DiagnosticResult, Difficulty, FailurePattern

    def _make(symptoms, pattern=FailurePattern.NO_POWER, cost=0.5, time=15):
        return DiagnosticResult(
            id=f"diag_{pattern.value}",
            symptoms=list(symptoms),
            failure_pattern=FailurePattern(pattern),
            confidence=75,
            estimated_difficulty=Difficulty.EASY,
            estimated_time=time,
            estimated_cost=cost,
        )

    return _make


@pytest.fixture
def validation_pair():
    """构造验证测试与结果"""
    from iarealidad.cases import ValidationTest, ValidationResult

    def _make(passed=True, suffix="1"):
        test = ValidationTest(
            id=f"test_{suffix}",
            name="Test",
            description="Test",
            pass_criteria="Pass",
        )
        result = ValidationResult(
            id=f"result_{suffix}",
            test_id=test.id,
            test_name=test.name,
            passed=passed,
            timestamp=datetime.now(),
        )
        return test, result

    return _make


@pytest.fixture
def sample_replacement():
    """示例元件更换"""
    from iarealidad.cases import ComponentReplacement

    def _make(cost=0.76, component_type="regulator", suffix="1"):
        return ComponentReplacement(
            id=f"repl_{suffix}",
            component_id=f"comp_{suffix}",
            component_type=component_type,
            reason="Failed",
            cost=cost,
        )

    return _make


@pytest.fixture
def temp_config_dir(tmp_path):
    """临时配置目录"""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return str(config_dir)


# pytest配置
def pytest_configure(config):
    """pytest配置"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


def pytest_collection_modifyitems(config, items):
    """修改测试收集"""
    # 如果没有指定-m参数,跳过慢速测试
    if config.getoption("-m"):
        return

    skip_slow = pytest.mark.skip(reason="use -m slow to run slow tests")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)
