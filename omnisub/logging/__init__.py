"""
구조화 로깅 패키지

StructuredLogger와 setup_logging을 외부에서 임포트하기 위한 패키지 초기화입니다.
"""

from omnisub.logging.structured_logger import StructuredLogger, setup_logging

__all__ = ["StructuredLogger", "setup_logging"]
