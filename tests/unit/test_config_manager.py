"""
ConfigManager 단위 테스트

검증 항목:
- YAML 로드 및 스키마 검증 (잘못된 값 → ConfigValidationError)
- 파일 없음 → ConfigFileNotFoundError, 기본값 로드
- OMNISUB_ 환경변수 오버라이드 (1단계 / 프리셋 2단계)
- dot-notation 조회 (프리셋 dict 포함)
- reload 롤백 및 구독자 통보
- 파일 감시 핸들러의 파일 이름 필터
"""

from __future__ import annotations

from pathlib import Path

import pytest

from omnisub.config.config_manager import (
    ConfigFileNotFoundError,
    ConfigLoadError,
    ConfigManager,
    ConfigValidationError,
)

VALID_YAML = """
system:
  log_level: warning
  log_format: text
styles:
  matched:
    font_size: 72
allocation:
  default_policy: displace_swap
matching:
  endpoint: http://matcher:5000/
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """테스트 환경의 OMNISUB_ 환경변수를 제거합니다."""
    import os

    for key in list(os.environ):
        if key.startswith("OMNISUB_"):
            monkeypatch.delenv(key)


def _write(tmp_path: Path, content: str, name: str = "config.yaml") -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


# =============================================================================
# 로드 테스트
# =============================================================================

def test_load_valid_file(tmp_path):
    config = ConfigManager().load(_write(tmp_path, VALID_YAML))

    assert config.system.log_level == "WARNING"
    assert config.system.log_format == "text"
    assert config.allocation.default_policy == "displace_swap"
    assert config.matching.endpoint == "http://matcher:5000"
    assert config.styles["matched"].font_size == 72
    assert config.styles["matched"].font_family == "Uthmanic Hafs"
    assert config.styles["import"].font_size == 38


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigFileNotFoundError):
        ConfigManager().load(tmp_path / "missing.yaml")


def test_empty_file_uses_defaults(tmp_path):
    config = ConfigManager().load(_write(tmp_path, ""))
    assert config.allocation.default_policy == "anchor_above"
    assert config.canvas.width == 1920


def test_invalid_policy_raises_validation_error(tmp_path):
    path = _write(tmp_path, "allocation:\n  default_policy: stack\n")
    with pytest.raises(ConfigValidationError):
        ConfigManager().load(path)


def test_invalid_yaml_raises_load_error(tmp_path):
    path = _write(tmp_path, "system: [unclosed\n")
    with pytest.raises(ConfigLoadError):
        ConfigManager().load(path)


def test_non_mapping_yaml_raises_load_error(tmp_path):
    with pytest.raises(ConfigLoadError):
        ConfigManager().load(_write(tmp_path, "- a\n- b\n"))


def test_load_defaults():
    manager = ConfigManager()
    config = manager.load_defaults()
    assert manager.config is config
    assert config.matching.endpoint == "http://localhost:5000"


# =============================================================================
# 환경변수 오버라이드 테스트
# =============================================================================

def test_env_overrides_section_field(tmp_path, monkeypatch):
    monkeypatch.setenv("OMNISUB_MATCHING_TIMEOUT_SEC", "12.5")
    monkeypatch.setenv("OMNISUB_ALLOCATION_DEFAULT_POLICY", "none")

    config = ConfigManager().load(_write(tmp_path, VALID_YAML))

    assert config.matching.timeout_sec == 12.5
    assert config.allocation.default_policy == "none"


def test_env_overrides_nested_preset(tmp_path, monkeypatch):
    monkeypatch.setenv("OMNISUB_STYLES_MATCHED_FONT_SIZE", "80")
    monkeypatch.setenv("OMNISUB_STYLES_MATCHED_DROP_SHADOW", "false")

    config = ConfigManager().load(_write(tmp_path, VALID_YAML))

    assert config.styles["matched"].font_size == 80
    assert config.styles["matched"].drop_shadow is False


def test_env_overrides_without_file(monkeypatch):
    monkeypatch.setenv("OMNISUB_CANVAS_MARGIN", "100")
    assert ConfigManager().load_defaults().canvas.margin == 100


def test_env_overrides_keep_text_fields_as_strings(monkeypatch):
    """문자열 필드는 숫자나 yes/no처럼 보여도 변환하지 않습니다."""
    monkeypatch.setenv("OMNISUB_SYSTEM_SESSION_ID", "20261019")
    monkeypatch.setenv("OMNISUB_STYLES_IMPORT_FONT_FAMILY", "no")
    monkeypatch.setenv("OMNISUB_STYLES_IMPORT_WORD_WRAP", "off")

    config = ConfigManager().load_defaults()

    assert config.system.session_id == "20261019"
    assert config.styles["import"].font_family == "no"
    assert config.styles["import"].word_wrap is False


# =============================================================================
# 조회 / 검증 테스트
# =============================================================================

def test_get_dot_notation(tmp_path):
    manager = ConfigManager()
    manager.load(_write(tmp_path, VALID_YAML))

    assert manager.get("matching.endpoint") == "http://matcher:5000"
    assert manager.get("styles.matched.font_size") == 72
    assert manager.get("styles.missing.font_size", "기본") == "기본"
    assert manager.get("canvas.depth") is None


def test_get_before_load_raises():
    with pytest.raises(RuntimeError):
        ConfigManager().get("canvas.width")


def test_validate_schema():
    manager = ConfigManager()
    assert manager.validate_schema({"canvas": {"width": 1280, "height": 720, "margin": 60}})
    assert not manager.validate_schema({"canvas": {"margin": 9999}})


# =============================================================================
# 핫스왑 테스트
# =============================================================================

def test_reload_notifies_subscribers(tmp_path):
    path = _write(tmp_path, VALID_YAML)
    manager = ConfigManager()
    manager.load(path)
    calls = []
    manager.subscribe(lambda old, new: calls.append((old.styles["matched"].font_size, new.styles["matched"].font_size)))

    path.write_text(VALID_YAML.replace("font_size: 72", "font_size: 90"), encoding="utf-8")

    assert manager.reload() is True
    assert calls == [(72, 90)]
    assert manager.get("styles.matched.font_size") == 90


def test_reload_rolls_back_invalid_file(tmp_path):
    path = _write(tmp_path, VALID_YAML)
    manager = ConfigManager()
    original = manager.load(path)
    calls = []
    manager.subscribe(lambda old, new: calls.append(new))

    path.write_text("allocation:\n  default_policy: stack\n", encoding="utf-8")

    assert manager.reload() is False
    assert manager.config is original
    assert calls == []


def test_unsubscribe_stops_notifications(tmp_path):
    path = _write(tmp_path, VALID_YAML)
    manager = ConfigManager()
    manager.load(path)
    calls = []

    def _callback(old, new):
        calls.append(new)

    manager.subscribe(_callback)
    manager.unsubscribe(_callback)
    manager.reload()

    assert calls == []


def test_reload_without_file_is_skipped():
    manager = ConfigManager()
    manager.load_defaults()
    assert manager.reload() is False


def test_reload_handler_filters_by_filename():
    """감시 핸들러는 대상 파일 이름의 수정/교체 이벤트에만 reload를 호출합니다."""
    from unittest.mock import MagicMock

    from watchdog.events import FileModifiedEvent, FileMovedEvent

    from omnisub.config.config_manager import _ReloadOnChange

    manager = MagicMock(spec=ConfigManager)
    handler = _ReloadOnChange(manager, "config.yaml")

    handler.dispatch(FileModifiedEvent("/etc/omnisub/other.yaml"))
    assert manager.reload.call_count == 0

    handler.dispatch(FileModifiedEvent("/etc/omnisub/config.yaml"))
    handler.dispatch(FileMovedEvent("/etc/omnisub/.config.yaml.swp", "/etc/omnisub/config.yaml"))
    assert manager.reload.call_count == 2
