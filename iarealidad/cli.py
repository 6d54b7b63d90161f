"""
iaRealidad Command Line Interface (CLI)
电子维修诊断助手命令行工具

提供统一的命令行接口用于:
- 症状诊断
- 故障知识查询
- 案例库管理 (列表/统计/相似案例/导入导出)
- 案例分享
"""

import argparse
import sys
import os
import json
from typing import Optional, Dict, Any, List
from dataclasses import dataclass

from iarealidad.cases import CaseQuery, CaseStore, SortField
from iarealidad.diagnosis import (
    DiagnosticEngine,
    FailurePattern,
    FailurePatternRegistry,
    InvalidInputError,
    Symptom,
    create_diagnostic_engine,
)
from iarealidad.sharing import CaseShareService, ShareFormat, ShareOptions
from iarealidad.utils.config import Config, load_config
from iarealidad.utils.logger import configure_logging


@dataclass
class CLIConfig:
    """CLI配置"""
    verbose: bool = False
    output_format: str = "text"  # text, json
    config_path: Optional[str] = None
    store_path: str = "iarealidad_cases.json"


class OutputFormatter:
    """输出格式化器"""

    def __init__(self, format_type: str = "text"):
        self.format_type = format_type

    @property
    def is_json(self) -> bool:
        return self.format_type == "json"

    def print_header(self, title: str):
        """打印标题"""
        if self.format_type == "text":
            print(f"\n{'='*60}")
            print(f"  {title}")
            print(f"{'='*60}")

    def print_section(self, title: str):
        """打印章节"""
        if self.format_type == "text":
            print(f"\n--- {title} ---")

    def print_item(self, key: str, value: Any, indent: int = 0):
        """打印项目"""
        prefix = "  " * indent
        if self.format_type == "text":
            print(f"{prefix}{key}: {value}")

    def print_table(self, headers: List[str], rows: List[List[Any]]):
        """打印表格"""
        if self.format_type == "text":
            widths = [len(h) for h in headers]
            for row in rows:
                for i, cell in enumerate(row):
                    widths[i] = max(widths[i], len(str(cell)))

            header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
            print(header_line)
            print("-" * len(header_line))

            for row in rows:
                row_line = " | ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row))
                print(row_line)
        else:
            print(json.dumps({"headers": headers, "rows": rows}, indent=2, default=str))

    def print_status(self, status: str, message: str):
        """打印状态"""
        icons = {
            "ok": "✓",
            "error": "✗",
            "warning": "⚠",
            "info": "ℹ"
        }
        icon = icons.get(status, "•")
        if self.format_type == "text":
            print(f"  [{icon}] {message}")

    def print_json(self, data: Any):
        """打印JSON"""
        print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


# ============================================================================
# 案例库文件
# ============================================================================

def load_store(path: str, config: Optional[Config] = None) -> CaseStore:
    """从导出文件加载案例库 (文件不存在时返回空库)"""
    store = CaseStore(config=config)
    if os.path.exists(path):
        with open(path, 'r', encoding='utf-8') as f:
            store.import_cases(f.read())
    return store


def save_store(store: CaseStore, path: str):
    """将案例库写回导出文件"""
    with open(path, 'w', encoding='utf-8') as f:
        f.write(store.export_all_cases())


def load_symptoms(path: str) -> List[Dict[str, Any]]:
    """读取症状文件: 症状数组, 或 {"symptoms": [...]}"""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get('symptoms', [])
    return data


# ============================================================================
# 命令
# ============================================================================

class SystemCommands:
    """系统命令"""

    def __init__(self, formatter: OutputFormatter):
        self.formatter = formatter

    def version(self) -> str:
        """显示版本信息"""
        from iarealidad import __version__

        self.formatter.print_header("iaRealidad Version Information")
        self.formatter.print_item("Version", __version__)
        self.formatter.print_item("Python", sys.version.split()[0])
        self.formatter.print_item("Platform", sys.platform)

        self.formatter.print_section("Dependencies")
        deps = {}
        for dep in ["numpy"]:
            try:
                mod = __import__(dep)
                deps[dep] = getattr(mod, "__version__", "unknown")
                self.formatter.print_status("ok", f"{dep} {deps[dep]}")
            except ImportError:
                deps[dep] = None
                self.formatter.print_status("error", f"{dep} not installed")

        if self.formatter.is_json:
            self.formatter.print_json({
                "version": __version__,
                "python": sys.version.split()[0],
                "dependencies": deps,
            })
        return __version__


class DiagnosisCommands:
    """诊断命令"""

    def __init__(self, formatter: OutputFormatter, engine: DiagnosticEngine):
        self.formatter = formatter
        self.engine = engine

    def knowledge(self, pattern: str) -> Optional[Dict[str, Any]]:
        """显示故障知识"""
        try:
            entry = self.engine.get_failure_knowledge(FailurePattern(pattern))
        except ValueError:
            entry = None

        if entry is None:
            self.formatter.print_status("error", f"No knowledge for pattern: {pattern}")
            if self.formatter.is_json:
                self.formatter.print_json({"error": f"No knowledge for pattern: {pattern}"})
            return None

        info = {
            "id": entry.id,
            "failurePattern": entry.failure_pattern.value,
            "difficulty": entry.difficulty.value,
            "successRate": entry.success_rate,
            "estimatedCost": {"min": entry.estimated_cost.min, "max": entry.estimated_cost.max},
            "estimatedTime": {"min": entry.estimated_time.min, "max": entry.estimated_time.max},
            "typicalCauses": entry.typical_causes,
            "diagnosticSteps": entry.diagnostic_steps,
            "repairProcedures": entry.repair_procedures,
            "requiredTools": entry.required_tools,
        }

        if self.formatter.is_json:
            self.formatter.print_json(info)
            return info

        self.formatter.print_header(f"Failure Knowledge: {pattern}")
        self.formatter.print_item("Difficulty", info["difficulty"])
        self.formatter.print_item("Success rate", f"{entry.success_rate}%")
        self.formatter.print_item(
            "Estimated cost", f"${entry.estimated_cost.min} - ${entry.estimated_cost.max}"
        )
        self.formatter.print_item(
            "Estimated time", f"{entry.estimated_time.min} - {entry.estimated_time.max} min"
        )
        for title, items in (("Typical Causes", entry.typical_causes),
                             ("Diagnostic Steps", entry.diagnostic_steps),
                             ("Repair Procedures", entry.repair_procedures)):
            self.formatter.print_section(title)
            for index, item in enumerate(items, 1):
                self.formatter.print_item(str(index), item, indent=1)
        return info

    def register_patterns(self, paths: List[str]) -> bool:
        """从文件登记故障模式, 覆盖知识库中同一故障模式的条目"""
        registry = FailurePatternRegistry(self.engine.knowledge)
        for path in paths:
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    result = registry.add_failure_pattern(f.read())
            except OSError as e:
                result = {'success': False, 'error': str(e)}

            if not result['success']:
                message = f"Cannot register failure pattern {path}: {result['error']}"
                self.formatter.print_status("error", message)
                if self.formatter.is_json:
                    self.formatter.print_json({"error": message})
                return False
        return True

    def diagnose(self, symptoms_path: str,
                 board_type: Optional[str] = None,
                 store: Optional[CaseStore] = None) -> Optional[Dict[str, Any]]:
        """
        诊断症状文件

        给出 board_type 与案例库时, 同时检索相似案例并把诊断记录为新案例。
        """
        try:
            symptoms = load_symptoms(symptoms_path)
            result = self.engine.diagnose(symptoms)
        except (OSError, json.JSONDecodeError) as e:
            self.formatter.print_status("error", f"Cannot read symptoms: {e}")
            return None
        except InvalidInputError as e:
            self.formatter.print_status("error", str(e))
            return None

        output: Dict[str, Any] = {"diagnosis": result.to_dict()}

        if store is not None and board_type:
            similar = store.find_similar_cases(board_type, result.symptoms)
            repair_case = store.create_case(board_type, result.symptoms, result)
            output["similarCases"] = [m.to_dict() for m in similar]
            output["caseId"] = repair_case.id
            output["caseNumber"] = repair_case.case_number

        if self.formatter.is_json:
            self.formatter.print_json(output)
            return output

        self.formatter.print_header("Diagnosis")
        self.formatter.print_item("Failure pattern", result.failure_pattern.value)
        self.formatter.print_item("Confidence", f"{result.confidence}%")
        self.formatter.print_item("Difficulty", result.estimated_difficulty.value)
        self.formatter.print_item("Estimated time", f"{result.estimated_time} min")
        self.formatter.print_item("Estimated cost", f"${result.estimated_cost}")
        if result.affected_components:
            self.formatter.print_item("Components", ", ".join(result.affected_components))

        if result.probable_causes:
            self.formatter.print_section("Probable Causes")
            self.formatter.print_table(
                ["Probability", "Cause", "Test"],
                [[f"{c.probability}%", c.description, c.test_procedure]
                 for c in result.probable_causes],
            )

        if result.recommendations:
            self.formatter.print_section("Recommendations")
            for rec in result.recommendations:
                self.formatter.print_item(f"{rec.priority}. [{rec.action.value}]", rec.description)

        power = result.power_route_analysis
        if power is not None:
            self.formatter.print_section("Power Route")
            self.formatter.print_item("Integrity", power.route_integrity)
            if power.suspected_failure_point:
                self.formatter.print_item("Suspected failure point", power.suspected_failure_point)
            for recommendation in power.recommendations:
                self.formatter.print_status("warning", recommendation)

        if "caseId" in output:
            self.formatter.print_section("Case")
            self.formatter.print_item("Recorded as", f"#{output['caseNumber']} ({output['caseId']})")
            for match in output["similarCases"]:
                self.formatter.print_status(
                    "info", f"#{match['caseNumber']} {match['boardType']} "
                            f"{match['similarity']}% - {match['resolution']}"
                )
        return output


class CaseCommands:
    """案例库命令"""

    def __init__(self, formatter: OutputFormatter, store: CaseStore):
        self.formatter = formatter
        self.store = store

    def list(self, board_type: Optional[str] = None,
             pattern: Optional[str] = None,
             limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """列出案例"""
        query = CaseQuery(
            board_type=board_type,
            failure_pattern=FailurePattern(pattern) if pattern else None,
            sort_by=SortField.CASE_NUMBER,
            limit=limit,
        )
        cases = self.store.query_cases(query)
        rows = [
            {
                "caseNumber": c.case_number,
                "id": c.id,
                "boardType": c.board_type,
                "failurePattern": c.failure_pattern.value,
                "status": c.status.value,
                "repairSuccess": c.repair_success,
            }
            for c in cases
        ]

        if self.formatter.is_json:
            self.formatter.print_json(rows)
            return rows

        self.formatter.print_header(f"Repair Cases ({len(rows)})")
        self.formatter.print_table(
            ["#", "Board", "Pattern", "Status", "Success"],
            [[r["caseNumber"], r["boardType"], r["failurePattern"], r["status"],
              "yes" if r["repairSuccess"] else "no"] for r in rows],
        )
        return rows

    def stats(self) -> Dict[str, Any]:
        """案例库统计"""
        stats = self.store.get_case_statistics().to_dict()
        stats["componentFailures"] = self.store.get_component_failure_stats()

        if self.formatter.is_json:
            self.formatter.print_json(stats)
            return stats

        self.formatter.print_header("Case Statistics")
        for key in ("totalCases", "successfulRepairs", "failedRepairs", "successRate",
                    "averageCost", "averageTime", "mostCommonFailure", "mostCommonBoard"):
            self.formatter.print_item(key, stats[key])
        if stats["componentFailures"]:
            self.formatter.print_section("Replaced Components")
            for component, count in stats["componentFailures"].items():
                self.formatter.print_item(component, count, indent=1)
        return stats

    def similar(self, board_type: str, symptoms_path: str,
                limit: Optional[int] = None) -> Optional[List[Dict[str, Any]]]:
        """检索相似案例"""
        try:
            symptoms = [Symptom.from_dict(s) for s in load_symptoms(symptoms_path)]
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            self.formatter.print_status("error", f"Cannot read symptoms: {e}")
            return None

        matches = [m.to_dict() for m in self.store.find_similar_cases(board_type, symptoms, limit)]

        if self.formatter.is_json:
            self.formatter.print_json(matches)
            return matches

        self.formatter.print_header(f"Similar Cases for {board_type}")
        self.formatter.print_table(
            ["#", "Board", "Similarity", "Resolution", "Cost", "Time"],
            [[m["caseNumber"], m["boardType"], f"{m['similarity']}%", m["resolution"],
              m["cost"], m["timeToRepair"]] for m in matches],
        )
        return matches

    def export(self, output_path: str, case_ids: Optional[List[str]] = None) -> bool:
        """导出案例"""
        payload = self.store.export_cases(case_ids) if case_ids else self.store.export_all_cases()
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(payload)
        except OSError as e:
            self.formatter.print_status("error", f"Export failed: {e}")
            return False

        total = json.loads(payload)["totalCases"]
        if self.formatter.is_json:
            self.formatter.print_json({"exported": total, "path": output_path})
        self.formatter.print_status("ok", f"Exported {total} cases to {output_path}")
        return True

    def import_(self, input_path: str) -> Optional[Dict[str, Any]]:
        """导入案例"""
        try:
            with open(input_path, 'r', encoding='utf-8') as f:
                result = self.store.import_cases(f.read())
        except OSError as e:
            self.formatter.print_status("error", f"Import failed: {e}")
            return None

        summary = {"imported": result["imported"], "failed": result["failed"]}
        if self.formatter.is_json:
            self.formatter.print_json(summary)
        status = "ok" if result["failed"] == 0 else "warning"
        self.formatter.print_status(
            status, f"Imported {result['imported']} cases ({result['failed']} failed)"
        )
        return summary


class ShareCommands:
    """分享命令"""

    def __init__(self, formatter: OutputFormatter, service: CaseShareService):
        self.formatter = formatter
        self.service = service

    def share(self, case_ids: List[str], share_format: str = "json",
              author: Optional[str] = None, description: Optional[str] = None,
              output_path: Optional[str] = None) -> bool:
        """分享案例"""
        options = ShareOptions(format=ShareFormat(share_format))
        result = self.service.share_cases(case_ids, author, description, options)
        if not result.success:
            self.formatter.print_status("error", result.error)
            if self.formatter.is_json:
                self.formatter.print_json(result.to_dict())
            return False

        if output_path:
            try:
                with open(output_path, 'w', encoding='utf-8') as f:
                    f.write(result.data)
            except OSError as e:
                self.formatter.print_status("error", f"Share failed: {e}")
                return False
            self.formatter.print_status("ok", f"Wrote {result.size} chars to {output_path}")
        elif not self.formatter.is_json:
            print(result.data)

        if self.formatter.is_json:
            self.formatter.print_json(result.to_dict())
        return True

    def preview(self, input_path: str) -> Dict[str, Any]:
        """预览分享包"""
        try:
            with open(input_path, 'r', encoding='utf-8') as f:
                preview = self.service.preview_shared_package(f.read().strip())
        except OSError as e:
            self.formatter.print_status("error", f"Preview failed: {e}")
            preview = {'success': False, 'error': str(e)}
            if self.formatter.is_json:
                self.formatter.print_json(preview)
            return preview

        if self.formatter.is_json:
            self.formatter.print_json(preview)
            return preview

        self.formatter.print_header("Shared Package")
        for key, value in preview.items():
            self.formatter.print_item(key, value)
        return preview


# ============================================================================
# CLI 主类
# ============================================================================

class IaRealidadCLI:
    """iaRealidad命令行接口主类"""

    def __init__(self):
        self.config = CLIConfig()
        self.formatter = OutputFormatter()

    def create_parser(self) -> argparse.ArgumentParser:
        """创建命令行解析器"""
        parser = argparse.ArgumentParser(
            prog="iarealidad",
            description="iaRealidad repair assistant CLI - 电子维修诊断助手命令行工具",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  iarealidad version                            Show version info
  iarealidad knowledge voltage_regulator_failure
  iarealidad diagnose symptoms.json --board "ESP32 DevKit" --save
  iarealidad cases list                         List stored cases
  iarealidad cases stats                        Show case statistics
  iarealidad share case_abc_1 -f datauri        Share a case
  iarealidad -p no_power.json knowledge no_power Use a registered failure pattern
            """
        )

        parser.add_argument(
            "-v", "--verbose",
            action="store_true",
            help="Enable verbose output"
        )
        parser.add_argument(
            "--json",
            action="store_true",
            help="Output in JSON format"
        )
        parser.add_argument(
            "-c", "--config",
            help="Configuration file path"
        )
        parser.add_argument(
            "-s", "--store",
            default=self.config.store_path,
            help="Case store file (JSON export)"
        )
        parser.add_argument(
            "-p", "--patterns",
            action="append",
            default=[],
            help="Failure pattern JSON file to register (repeatable)"
        )

        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        subparsers.add_parser("version", help="Show version information")

        knowledge_parser = subparsers.add_parser("knowledge", help="Show failure knowledge")
        knowledge_parser.add_argument(
            "pattern",
            choices=[p.value for p in FailurePattern],
            help="Failure pattern"
        )

        diagnose_parser = subparsers.add_parser("diagnose", help="Diagnose a symptom file")
        diagnose_parser.add_argument("symptoms", help="Symptom JSON file")
        diagnose_parser.add_argument("-b", "--board", help="Board type")
        diagnose_parser.add_argument(
            "--save",
            action="store_true",
            help="Record the diagnosis as a new case in the store"
        )

        # case commands
        cases_parser = subparsers.add_parser("cases", help="Case store management")
        cases_subparsers = cases_parser.add_subparsers(dest="cases_command")

        list_parser = cases_subparsers.add_parser("list", help="List cases")
        list_parser.add_argument("-b", "--board", help="Filter by board type")
        list_parser.add_argument(
            "-p", "--pattern",
            choices=[p.value for p in FailurePattern],
            help="Filter by failure pattern"
        )
        list_parser.add_argument("-n", "--limit", type=int, help="Maximum number of cases")

        cases_subparsers.add_parser("stats", help="Show case statistics")

        similar_parser = cases_subparsers.add_parser("similar", help="Find similar cases")
        similar_parser.add_argument("board", help="Board type")
        similar_parser.add_argument("symptoms", help="Symptom JSON file")
        similar_parser.add_argument("-n", "--limit", type=int, help="Maximum number of matches")

        export_parser = cases_subparsers.add_parser("export", help="Export cases")
        export_parser.add_argument("output", help="Output file path")
        export_parser.add_argument("ids", nargs="*", help="Case IDs (default: all)")

        import_parser = cases_subparsers.add_parser("import", help="Import cases")
        import_parser.add_argument("input", help="Input file path")

        # share commands
        share_parser = subparsers.add_parser("share", help="Share cases")
        share_parser.add_argument("ids", nargs="+", help="Case IDs")
        share_parser.add_argument(
            "-f", "--format",
            choices=[f.value for f in ShareFormat],
            default="json",
            help="Share format"
        )
        share_parser.add_argument("--author", help="Package author")
        share_parser.add_argument("--description", help="Package description")
        share_parser.add_argument("-o", "--output", help="Output file path")

        preview_parser = subparsers.add_parser("preview", help="Preview a shared package")
        preview_parser.add_argument("input", help="Shared package file")

        return parser

    def run(self, args: Optional[List[str]] = None) -> int:
        """运行CLI"""
        parser = self.create_parser()
        parsed = parser.parse_args(args)

        # 配置
        if parsed.verbose:
            self.config.verbose = True
        if parsed.json:
            self.config.output_format = "json"
            self.formatter = OutputFormatter("json")
        self.config.config_path = parsed.config
        self.config.store_path = parsed.store

        app_config = load_config(self.config.config_path)
        if self.config.verbose:
            configure_logging(app_config, verbose=True)

        if parsed.command is None:
            parser.print_help()
            return 1

        if parsed.command == "version":
            SystemCommands(self.formatter).version()
            return 0

        engine = create_diagnostic_engine(app_config)
        if parsed.patterns and not DiagnosisCommands(self.formatter, engine).register_patterns(
                parsed.patterns):
            return 1

        if parsed.command == "knowledge":
            return 0 if DiagnosisCommands(self.formatter, engine).knowledge(parsed.pattern) else 1

        store = load_store(self.config.store_path, app_config)

        if parsed.command == "diagnose":
            commands = DiagnosisCommands(self.formatter, engine)
            output = commands.diagnose(parsed.symptoms, parsed.board,
                                       store if parsed.save else None)
            if output is None:
                return 1
            if parsed.save and "caseId" in output:
                save_store(store, self.config.store_path)
            return 0

        if parsed.command == "cases":
            commands = CaseCommands(self.formatter, store)
            if parsed.cases_command == "list":
                commands.list(parsed.board, parsed.pattern, parsed.limit)
            elif parsed.cases_command == "stats":
                commands.stats()
            elif parsed.cases_command == "similar":
                if commands.similar(parsed.board, parsed.symptoms, parsed.limit) is None:
                    return 1
            elif parsed.cases_command == "export":
                if not commands.export(parsed.output, parsed.ids):
                    return 1
            elif parsed.cases_command == "import":
                if commands.import_(parsed.input) is None:
                    return 1
                save_store(store, self.config.store_path)
            else:
                parser.print_help()
                return 1
            return 0

        service = CaseShareService(store)
        if parsed.command == "share":
            ok = ShareCommands(self.formatter, service).share(
                parsed.ids, parsed.format, parsed.author, parsed.description, parsed.output
            )
            return 0 if ok else 1
        if parsed.command == "preview":
            preview = ShareCommands(self.formatter, service).preview(parsed.input)
            return 0 if preview.get("success") else 1

        parser.print_help()
        return 1


def main():
    """CLI入口点"""
    cli = IaRealidadCLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
