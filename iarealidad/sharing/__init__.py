"""
Case Sharing Module for iaRealidad
案例分享模块
"""

from iarealidad.sharing.share_service import (
    ShareFormat,
    ShareOptions,
    ShareResult,
    CasePackage,
    CaseShareService,
    encode_data_uri,
    decode_shared_data,
    create_share_service,
)

__all__ = [
    "ShareFormat",
    "ShareOptions",
    "ShareResult",
    "CasePackage",
    "CaseShareService",
    "encode_data_uri",
    "decode_shared_data",
    "create_share_service",
]
