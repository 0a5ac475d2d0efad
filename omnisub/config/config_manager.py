"""
omnisub 설정 관리 모듈입니다.

역할:
- config.yaml을 읽어 AppConfig로 검증 (파일이 없으면 기본값으로 시작 가능)
- OMNISUB_ 환경변수로 임의 깊이의 설정값 덮어쓰기
  (예: OMNISUB_STYLES_MATCHED_FONT_SIZE=72 → styles.matched.font_size)
- "styles.matched.font_size" 같은 점 표기 조회
- watchdog으로 파일 변경을 감지해 다시 읽고, 실패하면 기존 설정 유지
- 설정이 바뀌면 (이전 설정, 새 설정)으로 구독자 호출

사용 예시:
    >>> manager = ConfigManager()
    >>> config = manager.load("config.yaml")
    >>> manager.get("allocation.default_policy")
    'anchor_above'
    >>> manager.subscribe(lambda old, new: subtitle_manager.update_config(new))
    >>> manager.watch()
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import ValidationError
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from omnisub.config.schema import AppConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "OMNISUB_"

# (이전 설정, 새 설정) -> None
ConfigChangeCallback = Callable[[AppConfig, AppConfig], None]

_MISSING = object()


class ConfigLoadError(Exception):
    """설정을 읽거나 해석하지 못했습니다."""


class ConfigValidationError(ConfigLoadError):
    """설정 값이 AppConfig 스키마를 만족하지 않습니다."""


class ConfigFileNotFoundError(ConfigLoadError):
    """지정한 설정 파일이 없습니다."""


class _ReloadOnChange(FileSystemEventHandler):
    """감시 디렉토리에서 설정 파일이 수정/교체되면 reload()를 호출합니다."""

    def __init__(self, manager: "ConfigManager", filename: str) -> None:
        super().__init__()
        self._manager = manager
        self._filename = filename

    def on_modified(self, event: FileSystemEvent) -> None:
        self._maybe_reload(event, event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        self._maybe_reload(event, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # 편집기가 임시 파일을 저장 후 이름을 바꾸는 경우
        self._maybe_reload(event, event.dest_path)

    def _maybe_reload(self, event: FileSystemEvent, path: str) -> None:
        if not event.is_directory and Path(path).name == self._filename:
            self._manager.reload()


class ConfigManager:
    """
    활성 AppConfig 하나를 보관하고 교체하는 매니저입니다.

    교체는 항상 "읽기 → 환경변수 적용 → 검증"을 모두 통과한 경우에만
    일어나므로, 외부에서 보는 설정은 언제나 유효합니다.
    """

    def __init__(self, env_prefix: str = ENV_PREFIX) -> None:
        self._env_prefix = env_prefix
        self._config: Optional[AppConfig] = None
        self._source: Optional[Path] = None
        self._subscribers: list[ConfigChangeCallback] = []
        self._lock = threading.RLock()
        self._observer: Optional[Observer] = None

    @property
    def config(self) -> Optional[AppConfig]:
        with self._lock:
            return self._config

    @property
    def source(self) -> Optional[Path]:
        """마지막으로 읽은 설정 파일 (기본값으로 시작했으면 None)."""
        return self._source

    # =========================================================================
    # 로드
    # =========================================================================

    def load(self, filepath: str | Path) -> AppConfig:
        """
        설정 파일을 읽어 활성 설정으로 만듭니다.

        파라미터:
            filepath: YAML 파일 경로

        반환값:
            AppConfig: 환경변수까지 반영된 검증 완료 설정

        에러:
            ConfigFileNotFoundError: 파일 없음
            ConfigLoadError: YAML 문법 오류, 최상위가 매핑이 아님, 읽기 실패
            ConfigValidationError: 스키마 위반
        """
        path = Path(filepath)
        if not path.is_file():
            raise ConfigFileNotFoundError(f"설정 파일이 없습니다: {path}")

        config = self._build(self._read_yaml(path))
        with self._lock:
            self._config = config
            self._source = path

        logger.info(
            f"설정 로드: {path} "
            f"(presets={sorted(config.styles)}, policy={config.allocation.default_policy}, "
            f"endpoint={config.matching.endpoint})"
        )
        return config

    def load_defaults(self) -> AppConfig:
        """파일 없이 스키마 기본값과 환경변수만으로 설정을 만듭니다."""
        config = self._build({})
        with self._lock:
            self._config = config
            self._source = None
        logger.info("설정 파일 없이 기본값으로 시작")
        return config

    def reload(self) -> bool:
        """
        마지막으로 읽은 파일을 다시 읽습니다.

        새 설정이 유효하지 않으면 기존 설정을 그대로 두고 False를 반환합니다.
        """
        path = self._source
        if path is None:
            logger.warning("다시 읽을 설정 파일이 없습니다")
            return False

        try:
            new_config = self._build(self._read_yaml(path))
        except ConfigLoadError as exc:
            logger.error(f"설정 다시 읽기 실패, 기존 설정 유지: {exc}")
            return False

        with self._lock:
            old_config, self._config = self._config, new_config

        logger.info(f"설정 교체 완료: {path}")
        if old_config is not None:
            self._publish(old_config, new_config)
        return True

    def validate_schema(self, raw_config: dict) -> bool:
        """raw_config가 스키마를 만족하는지만 확인합니다 (활성 설정은 그대로)."""
        try:
            AppConfig(**raw_config)
        except ValidationError as exc:
            logger.warning(f"스키마 불일치 ({exc.error_count()}건)")
            return False
        return True

    # =========================================================================
    # 조회
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """
        점 표기 키로 값을 찾습니다. 모델 속성과 딕셔너리(styles)를 모두 따라갑니다.

        에러:
            RuntimeError: load() / load_defaults() 전에 호출
        """
        node: Any = self.config
        if node is None:
            raise RuntimeError("설정이 로드되지 않았습니다 (load() 또는 load_defaults() 먼저 호출)")

        for part in key.split("."):
            node = _child(node, part)
            if node is _MISSING:
                logger.debug(f"설정 키 없음: '{key}' (at '{part}')")
                return default
        return node

    # =========================================================================
    # 변경 통보 / 파일 감시
    # =========================================================================

    def subscribe(self, callback: ConfigChangeCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: ConfigChangeCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)
        else:
            logger.warning("등록되지 않은 설정 구독자 해제 요청")

    def watch(self, filepath: str | Path | None = None) -> None:
        """
        설정 파일이 있는 디렉토리를 감시하다가 파일이 바뀌면 reload()합니다.

        파라미터:
            filepath: 감시할 파일 (None이면 마지막으로 읽은 파일)
        """
        path = Path(filepath) if filepath else self._source
        if path is None:
            logger.warning("감시할 설정 파일이 없습니다")
            return

        self.stop_watch()
        observer = Observer()
        observer.schedule(_ReloadOnChange(self, path.name), str(path.parent), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info(f"설정 파일 감시 시작: {path}")

    def stop_watch(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        logger.info("설정 파일 감시 종료")

    # =========================================================================
    # 내부 메서드
    # =========================================================================

    def _build(self, raw_config: dict) -> AppConfig:
        for path, value in self._env_overrides(raw_config):
            node = raw_config
            for name in path[:-1]:
                node = node.setdefault(name, {})
            node[path[-1]] = value
            logger.info(f"환경변수 적용: {'.'.join(path)} = {value!r}")

        try:
            return AppConfig(**raw_config)
        except ValidationError as exc:
            for error in exc.errors():
                location = ".".join(str(part) for part in error["loc"])
                logger.error(f"설정 값 오류 [{location}] {error['msg']} (입력: {error.get('input')!r})")
            raise ConfigValidationError(
                f"설정 검증 실패: {exc.error_count()}개 항목"
            ) from exc

    def _env_overrides(self, raw_config: dict) -> list[tuple[list[str], Any]]:
        """
        접두사가 붙은 환경변수를 (설정 경로, 값) 목록으로 변환합니다.

        키 이름의 '_'는 필드 이름에도 쓰이므로, 기존 설정 또는 기본 설정에
        하위 섹션으로 존재하는 가장 긴 이름부터 경로로 인정하고 나머지를
        필드 이름으로 합칩니다. 알 수 없는 섹션은 무시합니다.
        값은 대상 필드가 문자열이 아닐 때만 YAML 규칙으로 변환합니다.
        """
        shape = AppConfig().model_dump()
        overrides = []

        for env_key in sorted(os.environ):
            if not env_key.startswith(self._env_prefix):
                continue
            tokens = env_key[len(self._env_prefix):].lower().split("_")
            if len(tokens) < 2 or tokens[0] not in shape:
                logger.debug(f"환경변수 무시 (섹션 불명): {env_key}")
                continue

            path = [tokens[0]]
            raw_node = raw_config.get(tokens[0])
            shape_node = shape[tokens[0]]
            rest = tokens[1:]

            while len(rest) > 1:
                branch = None
                for size in range(len(rest) - 1, 0, -1):
                    name = "_".join(rest[:size])
                    if _is_branch(raw_node, name) or _is_branch(shape_node, name):
                        branch = name, size
                        break
                if branch is None:
                    break
                name, size = branch
                path.append(name)
                raw_node = raw_node.get(name) if isinstance(raw_node, dict) else None
                shape_node = shape_node.get(name) if isinstance(shape_node, dict) else None
                rest = rest[size:]

            field_name = "_".join(rest)
            path.append(field_name)
            value = os.environ[env_key]
            # 문자열 필드(session_id, font_family 등)는 "no", "20261019"도 그대로 둠
            if not isinstance(_field_default(shape_node, raw_node, field_name), str):
                value = _coerce(value)
            overrides.append((path, value))

        return overrides

    def _read_yaml(self, path: Path) -> dict:
        try:
            with open(path, encoding="utf-8") as config_file:
                data = yaml.safe_load(config_file)
        except yaml.YAMLError as exc:
            raise ConfigLoadError(f"YAML 문법 오류 ({path}): {exc}") from exc
        except OSError as exc:
            raise ConfigLoadError(f"설정 파일을 읽을 수 없습니다 ({path}): {exc}") from exc

        if data is None:
            logger.warning(f"빈 설정 파일, 기본값 사용: {path}")
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(f"설정 최상위는 매핑이어야 합니다 ({path}): {type(data).__name__}")
        return data

    def _publish(self, old_config: AppConfig, new_config: AppConfig) -> None:
        for callback in list(self._subscribers):
            try:
                callback(old_config, new_config)
            except Exception:
                logger.error(f"설정 구독자 실패: {callback!r}", exc_info=True)


def _child(node: Any, name: str) -> Any:
    if isinstance(node, dict):
        return node.get(name, _MISSING)
    return getattr(node, name, _MISSING)


def _is_branch(node: Any, name: str) -> bool:
    return isinstance(node, dict) and isinstance(node.get(name), dict)


def _coerce(value: str) -> Any:
    """환경변수 문자열을 YAML 스칼라 규칙으로 bool/int/float/list로 변환합니다."""
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        return value
    if isinstance(parsed, (bool, int, float, list)):
        return parsed
    return value


def _field_default(shape_node: Any, raw_node: Any, name: str) -> Any:
    """기본 설정 모양에서, 없으면 파일 값에서 필드의 현재 값을 찾습니다."""
    for node in (shape_node, raw_node):
        if isinstance(node, dict) and name in node:
            return node[name]
    return None
