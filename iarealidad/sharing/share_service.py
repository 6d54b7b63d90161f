"""
Case Sharing Service
维修案例离线分享

功能：
- 将一个或多个案例打包为 CasePackage
- 输出格式: json / datauri (base64) / qr (精简字段)
- 校验并导入分享包, 导入前预览
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import base64
import binascii
import json
import logging
import uuid

import numpy as np

from iarealidad.cases.case_store import CaseStore
from iarealidad.cases.models import RepairCase
from iarealidad.cases.schema import validate_package

logger = logging.getLogger(__name__)


PACKAGE_VERSION = "1.0"
DATA_URI_PREFIX = "data:application/json;base64,"


class ShareFormat(Enum):
    """分享格式"""
    JSON = "json"
    DATAURI = "datauri"
    QR = "qr"


@dataclass
class ShareOptions:
    """分享选项"""
    format: ShareFormat = ShareFormat.JSON
    include_metadata: bool = True
    compress: bool = False


@dataclass
class ShareResult:
    """分享结果"""
    success: bool
    format: str
    data: str = ""
    size: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': self.success,
            'format': self.format,
            'data': self.data,
            'size': self.size,
        }
        if self.error is not None:
            data['error'] = self.error
        return data


@dataclass
class CasePackage:
    """案例分享包"""
    package_id: str
    cases: List[RepairCase]
    version: str = PACKAGE_VERSION
    created_date: datetime = field(default_factory=datetime.now)
    author: Optional[str] = None
    description: Optional[str] = None

    @property
    def metadata(self) -> Dict[str, Any]:
        return {
            'totalCases': len(self.cases),
            'boardTypes': list(dict.fromkeys(c.board_type for c in self.cases)),
            'failurePatterns': list(dict.fromkeys(c.failure_pattern.value for c in self.cases)),
            'tags': list(dict.fromkeys(t for c in self.cases for t in c.tags)),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'version': self.version,
            'packageId': self.package_id,
            'createdDate': self.created_date.isoformat(),
            'cases': [c.to_dict() for c in self.cases],
            'metadata': self.metadata,
        }
        if self.author is not None:
            data['author'] = self.author
        if self.description is not None:
            data['description'] = self.description
        return data


def encode_data_uri(text: str) -> str:
    """JSON 文本 → data URI"""
    return DATA_URI_PREFIX + base64.b64encode(text.encode('utf-8')).decode('ascii')


def decode_shared_data(data: str) -> Any:
    """解析原始 JSON 或 data URI"""
    if data.startswith('data:'):
        _, _, payload = data.partition(',')
        data = base64.b64decode(payload).decode('utf-8')
    return json.loads(data)


class CaseShareService:
    """案例分享服务"""

    def __init__(self, store: CaseStore):
        self.store = store

    # ========================================================================
    # 打包
    # ========================================================================

    def create_case_package(self, case_ids: List[str],
                            author: Optional[str] = None,
                            description: Optional[str] = None) -> Optional[CasePackage]:
        """打包案例, 没有任何案例存在时返回 None"""
        cases = [c for c in (self.store.get_case(i) for i in case_ids) if c is not None]
        if not cases:
            return None

        return CasePackage(
            package_id=f"pkg_{uuid.uuid4().hex[:12]}",
            cases=cases,
            author=author,
            description=description,
        )

    def share_case(self, case_id: str, options: Optional[ShareOptions] = None) -> ShareResult:
        """分享单个案例"""
        options = options or ShareOptions()
        if self.store.get_case(case_id) is None:
            return ShareResult(False, ShareFormat(options.format).value, error="Case not found")

        package = self.create_case_package([case_id])
        return self._package_to_format(package, options)

    def share_cases(self, case_ids: List[str],
                    author: Optional[str] = None,
                    description: Optional[str] = None,
                    options: Optional[ShareOptions] = None) -> ShareResult:
        """分享多个案例"""
        options = options or ShareOptions()
        package = self.create_case_package(case_ids, author, description)
        if package is None:
            return ShareResult(False, ShareFormat(options.format).value,
                               error="No cases found to share")
        return self._package_to_format(package, options)

    # ========================================================================
    # 格式转换
    # ========================================================================

    def _package_to_format(self, package: CasePackage, options: ShareOptions) -> ShareResult:
        share_format = ShareFormat(options.format)
        indent = None if options.compress else 2
        json_data = json.dumps(package.to_dict(), indent=indent, ensure_ascii=False)

        if share_format == ShareFormat.JSON:
            data = json_data
        elif share_format == ShareFormat.DATAURI:
            data = encode_data_uri(json_data)
        else:
            data = json.dumps(self._create_short_package(package), separators=(',', ':'),
                              ensure_ascii=False)

        logger.info(
            f"Shared package {package.package_id} as {share_format.value} "
            f"({len(package.cases)} cases, {len(data)} chars)"
        )
        return ShareResult(True, share_format.value, data=data, size=len(data))

    @staticmethod
    def _create_short_package(package: CasePackage) -> Dict[str, Any]:
        """二维码用精简包 (只保留关键字段)"""
        metadata = package.metadata
        return {
            'v': package.version,
            'id': package.package_id,
            'd': package.created_date.isoformat(),
            'c': [
                {
                    'id': c.id,
                    'n': c.case_number,
                    'b': c.board_type,
                    'f': c.failure_pattern.value,
                    's': c.repair_success,
                    't': c.timestamp.isoformat(),
                }
                for c in package.cases
            ],
            'm': {
                'n': metadata['totalCases'],
                'b': metadata['boardTypes'],
                'f': metadata['failurePatterns'],
            },
        }

    # ========================================================================
    # 导入与预览
    # ========================================================================

    def import_shared_package(self, data: str) -> Dict[str, Any]:
        """
        导入分享包

        Returns:
            {'success', 'imported', 'failed', 'packageId'?, 'error'?}
        """
        try:
            package = decode_shared_data(data)
        except (ValueError, binascii.Error) as e:
            logger.error(f"Failed to decode shared package: {e}")
            return {'success': False, 'imported': 0, 'failed': 0, 'error': str(e)}

        valid, errors = validate_package(package)
        if not valid:
            logger.warning(f"Rejected shared package: {errors}")
            return {'success': False, 'imported': 0, 'failed': 0,
                    'error': 'Invalid package format'}

        result = self.store.import_cases(json.dumps(package['cases']))
        return {
            'success': result['imported'] > 0,
            'imported': result['imported'],
            'failed': result['failed'],
            'packageId': package['packageId'],
        }

    def preview_shared_package(self, data: str) -> Dict[str, Any]:
        """预览分享包 (不导入)"""
        try:
            package = decode_shared_data(data)
        except (ValueError, binascii.Error) as e:
            return {'success': False, 'error': str(e)}

        valid, _ = validate_package(package)
        if not valid:
            return {'success': False, 'error': 'Invalid package format'}

        metadata = package['metadata']
        return {
            'success': True,
            'packageId': package['packageId'],
            'createdDate': package.get('createdDate'),
            'author': package.get('author'),
            'description': package.get('description'),
            'totalCases': metadata.get('totalCases'),
            'boardTypes': metadata.get('boardTypes', []),
            'failurePatterns': metadata.get('failurePatterns', []),
        }

    # ========================================================================
    # 分享链接
    # ========================================================================

    def generate_share_link(self, case_id: str) -> Optional[str]:
        result = self.share_case(case_id, ShareOptions(ShareFormat.DATAURI, compress=True))
        return result.data if result.success else None

    def generate_share_link_multiple(self, case_ids: List[str],
                                     author: Optional[str] = None,
                                     description: Optional[str] = None) -> Optional[str]:
        result = self.share_cases(case_ids, author, description,
                                  ShareOptions(ShareFormat.DATAURI, compress=True))
        return result.data if result.success else None

    @staticmethod
    def get_package_stats(package: CasePackage) -> Dict[str, Any]:
        """分享包统计"""
        cases = package.cases
        costs = np.array([c.actual_cost for c in cases if c.actual_cost is not None], dtype=float)
        times = np.array([c.actual_time for c in cases if c.actual_time is not None], dtype=float)
        successes = sum(1 for c in cases if c.repair_success)

        return {
            'totalCases': len(cases),
            'successRate': successes / len(cases) * 100 if cases else 0,
            'averageCost': float(costs.mean()) if costs.size else 0,
            'averageTime': float(times.mean()) if times.size else 0,
            'uniqueBoards': len({c.board_type for c in cases}),
            'uniquePatterns': len({c.failure_pattern for c in cases}),
        }


def create_share_service(store: CaseStore) -> CaseShareService:
    """创建分享服务"""
    return CaseShareService(store)
