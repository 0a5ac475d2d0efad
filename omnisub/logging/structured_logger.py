"""
omnisub 로깅 초기화 모듈입니다.

역할:
- root logger에 콘솔 + 순환 파일(log_dir/omnisub.log) 핸들러 연결
- system.log_format에 따라 JSON(python-json-logger) 또는 텍스트 한 줄 형식 선택
- 모든 레코드에 세션 ID를 붙여 한 번의 CLI 실행 단위로 로그를 묶음

사용 예시:
    >>> sid = setup_logging(config)
    >>> StructuredLogger.get("omnisub.timeline").warning("트랙 범위 보정", extra={"track": 4})
"""

from __future__ import annotations

import logging
import uuid
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

from omnisub.config.schema import AppConfig, SystemConfig

LOG_FILENAME = "omnisub.log"
ROTATE_BYTES = 10 * 1024 * 1024
ROTATE_BACKUPS = 5

_active_session = ""


class _JsonFormatter(jsonlogger.JsonFormatter):
    """레코드마다 session_id / level / module 키를 채우는 JSON 포맷터."""

    def __init__(self, session_id: str = "") -> None:
        super().__init__(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            json_ensure_ascii=False,
        )
        self.session_id = session_id

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.update(
            session_id=self.session_id,
            level=record.levelname,
            module=record.name,
        )


class _TextFormatter(logging.Formatter):
    """`시각 [세션앞8자] 레벨 로거: 메시지` 형식의 사람용 포맷터."""

    def __init__(self, session_id: str = "") -> None:
        tag = session_id[:8] or "no-sid"
        super().__init__(
            f"%(asctime)s [{tag}] %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def _formatter_for(log_format: str, session_id: str) -> logging.Formatter:
    if log_format == "json":
        return _JsonFormatter(session_id=session_id)
    return _TextFormatter(session_id=session_id)


def _open_log_file(log_dir: Path) -> Optional[logging.Handler]:
    """로그 디렉토리를 만들고 순환 파일 핸들러를 엽니다. 실패하면 None."""
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            log_dir / LOG_FILENAME,
            maxBytes=ROTATE_BYTES,
            backupCount=ROTATE_BACKUPS,
            encoding="utf-8",
        )
    except OSError as exc:
        logging.getLogger(__name__).warning(f"파일 로그 비활성화 ({log_dir}): {exc}")
        return None


def _detach_all(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def setup_logging(config: AppConfig, session_id: Optional[str] = None) -> str:
    """
    root logger를 설정 내용대로 다시 구성합니다. 여러 번 호출해도 핸들러가 쌓이지 않습니다.

    파라미터:
        config: AppConfig (system 섹션만 사용)
        session_id: 명시 세션 ID. 비어 있으면 system.session_id, 그것도 비면 8자리 랜덤 ID

    반환값:
        str: 이번 실행에 적용된 세션 ID
    """
    global _active_session

    system: SystemConfig = config.system
    _active_session = session_id or system.session_id or uuid.uuid4().hex[:8]
    level = logging.getLevelName(system.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    _detach_all(root)
    root.setLevel(level)

    formatter = _formatter_for(system.log_format, _active_session)
    for handler in (logging.StreamHandler(), _open_log_file(Path(system.log_dir))):
        if handler is None:
            continue
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    logging.getLogger(__name__).debug(
        f"로깅 구성: level={system.log_level} format={system.log_format} "
        f"dir={system.log_dir} session={_active_session}"
    )
    return _active_session


class StructuredLogger:
    """표준 logging.Logger를 그대로 돌려주는 얇은 접근자입니다."""

    @staticmethod
    def get(name: str) -> logging.Logger:
        return logging.getLogger(name)

    @staticmethod
    def get_session_id() -> str:
        """마지막 setup_logging()이 정한 세션 ID (호출 전이면 빈 문자열)."""
        return _active_session
