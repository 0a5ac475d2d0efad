"""
구조화 로깅 모듈 단위 테스트

검증 조건:
- JSON 포맷 로그에 session_id, level, module 필드 포함
- RotatingFileHandler로 omnisub.log 생성 (10MB × 5)
- 세션 ID 우선순위: 인자 → 설정 → 자동 생성
- text 포맷 session_id 접두어
"""

from __future__ import annotations

import json
import logging
import logging.handlers
from io import StringIO

import pytest

from omnisub.config.schema import AppConfig
from omnisub.logging.structured_logger import (
    StructuredLogger,
    _JsonFormatter,
    _TextFormatter,
    setup_logging,
)


# =========================================================================
# 픽스처
# =========================================================================

@pytest.fixture(autouse=True)
def reset_root_logger():
    """각 테스트 후 root logger 핸들러 초기화."""
    yield
    root = logging.getLogger()
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()


def _make_config(tmp_path, log_format: str = "json", session_id: str = "sess-0001") -> AppConfig:
    """테스트용 AppConfig를 생성합니다."""
    return AppConfig(**{
        "system": {
            "log_level": "debug",
            "log_format": log_format,
            "log_dir": str(tmp_path / "logs"),
            "session_id": session_id,
        },
    })


def _emit(formatter: logging.Formatter, name: str, level: int, message: str, **extra) -> str:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    logger = logging.getLogger(name)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        logger.log(level, message, extra=extra or None)
    finally:
        logger.removeHandler(handler)
    return stream.getvalue().strip()


# =========================================================================
# setup_logging 테스트
# =========================================================================

class TestSetupLogging:
    def test_log_level_normalized_and_applied(self, tmp_path):
        setup_logging(_make_config(tmp_path))
        assert logging.getLogger().level == logging.DEBUG

    def test_log_file_created(self, tmp_path):
        setup_logging(_make_config(tmp_path))
        logging.getLogger("omnisub.test").info("기록")
        log_file = tmp_path / "logs" / "omnisub.log"
        assert log_file.exists()
        assert "기록" in log_file.read_text(encoding="utf-8")

    def test_rotating_handler_limits(self, tmp_path):
        setup_logging(_make_config(tmp_path))
        rotating = [
            h for h in logging.getLogger().handlers
            if isinstance(h, logging.handlers.RotatingFileHandler)
        ]
        assert len(rotating) == 1
        assert rotating[0].maxBytes == 10 * 1024 * 1024
        assert rotating[0].backupCount == 5

    def test_repeated_setup_replaces_handlers(self, tmp_path):
        config = _make_config(tmp_path)
        setup_logging(config)
        handler_count = len(logging.getLogger().handlers)
        setup_logging(config)
        assert len(logging.getLogger().handlers) == handler_count

    def test_session_id_argument_wins(self, tmp_path):
        returned = setup_logging(_make_config(tmp_path), session_id="cli-sid")
        assert returned == "cli-sid"
        assert StructuredLogger.get_session_id() == "cli-sid"

    def test_session_id_from_config(self, tmp_path):
        setup_logging(_make_config(tmp_path, session_id="from-config"))
        assert StructuredLogger.get_session_id() == "from-config"

    def test_session_id_generated_when_empty(self, tmp_path):
        sid = setup_logging(_make_config(tmp_path, session_id=""))
        assert len(sid) == 8
        assert StructuredLogger.get_session_id() == sid


# =========================================================================
# 포맷 테스트
# =========================================================================

class TestFormatters:
    def test_json_record_fields(self):
        output = _emit(_JsonFormatter(session_id="abc123"), "omnisub.timeline", logging.WARNING, "clamp")
        data = json.loads(output)
        assert data["session_id"] == "abc123"
        assert data["level"] == "WARNING"
        assert data["module"] == "omnisub.timeline"
        assert data["message"] == "clamp"

    def test_json_keeps_korean_text_readable(self):
        output = _emit(_JsonFormatter(), "omnisub.korean", logging.INFO, "트랙 추가")
        assert "트랙 추가" in output
        assert json.loads(output)["message"] == "트랙 추가"

    def test_json_extra_fields_included(self):
        output = _emit(_JsonFormatter(), "omnisub.extra", logging.INFO, "배치", track=3)
        assert json.loads(output)["track"] == 3

    def test_text_format_includes_session_prefix_and_level(self):
        output = _emit(_TextFormatter(session_id="session-long-id"), "omnisub.text", logging.ERROR, "오류")
        assert "[session-" in output
        assert "ERROR" in output
        assert "오류" in output

    def test_text_format_without_session(self):
        output = _emit(_TextFormatter(), "omnisub.text", logging.INFO, "메시지")
        assert "[no-sid]" in output


class TestStructuredLogger:
    def test_get_returns_named_standard_logger(self):
        logger = StructuredLogger.get("omnisub.subtitle")
        assert isinstance(logger, logging.Logger)
        assert logger is logging.getLogger("omnisub.subtitle")
