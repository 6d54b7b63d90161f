#!/usr/bin/env python3
"""
iaRealidad - AR Electronics Repair Assistant
电子维修诊断与案例记忆核心

主入口文件
"""

import argparse
from datetime import datetime

from iarealidad import (
    SymptomType,
    Severity,
    Symptom,
    CaseShareService,
    ShareFormat,
    ShareOptions,
    create_case_store,
    create_diagnostic_engine,
)
from iarealidad.cases import ComponentReplacement, ValidationResult, ValidationTest
from iarealidad.utils import configure_logging, load_config


def run_demo(board_type: str = "ESP32 DevKit"):
    """
    运行演示: 诊断 → 建立案例 → 维修记录 → 相似案例检索

    Args:
        board_type: 板卡类型
    """
    config = load_config()
    logger = configure_logging(config)

    engine = create_diagnostic_engine(config)
    store = create_case_store(config)

    symptoms = [
        Symptom(
            id="symptom_1",
            type=SymptomType.NO_VOLTAGE,
            description="No 3.3V on regulator output",
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

    result = engine.diagnose(symptoms)
    logger.info(f"Diagnosis: {result.failure_pattern.value} ({result.confidence}%)")
    if result.power_route_analysis:
        logger.info(f"Power route: {result.power_route_analysis.route_integrity}, "
                    f"suspect={result.power_route_analysis.suspected_failure_point}")

    repair_case = store.create_case(board_type, symptoms, result)
    store.record_component_replacement(repair_case.id, ComponentReplacement(
        id="repl_1",
        component_id="U2",
        component_type="AMS1117-3.3",
        reason="No output voltage",
        cost=0.76,
    ))
    store.complete_case(
        repair_case.id,
        ValidationTest(
            id="test_1",
            name="3.3V rail check",
            description="Measure regulator output",
            pass_criteria="3.2V - 3.4V",
        ),
        ValidationResult(
            id="result_1",
            test_id="test_1",
            test_name="3.3V rail check",
            passed=True,
            timestamp=datetime.now(),
        ),
        actual_time=25,
    )

    for match in store.find_similar_cases(board_type, symptoms):
        logger.info(f"Similar case #{match.case_number}: {match.similarity}% "
                    f"- {match.resolution}")

    share = CaseShareService(store).share_case(
        repair_case.id, ShareOptions(format=ShareFormat.DATAURI, compress=True)
    )
    logger.info(f"Share link: {share.size} chars")

    return repair_case


def main():
    """主函数"""
    parser = argparse.ArgumentParser(
        description="iaRealidad - 电子维修诊断助手"
    )
    subparsers = parser.add_subparsers(dest='command', help='命令')

    demo_parser = subparsers.add_parser('demo', help='运行诊断演示')
    demo_parser.add_argument(
        '--board', '-b', type=str, default='ESP32 DevKit',
        help='板卡类型'
    )

    subparsers.add_parser('info', help='显示系统信息')

    args = parser.parse_args()

    if args.command == 'demo':
        run_demo(args.board)
    elif args.command == 'info':
        print("iaRealidad - AR Electronics Repair Assistant")
        print("电子维修诊断与案例记忆核心")
        print()
        print("版本: 1.0.0")
        print()
        print("模块:")
        print("  - 规则推理引擎 (症状 → 故障模式, 电源路径分析)")
        print("  - 诊断引擎 (置信度、可能原因、维修建议)")
        print("  - 维修案例库 (相似案例、统计分析、导入导出)")
        print("  - 案例离线分享")
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
