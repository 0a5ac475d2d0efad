"""
omnisub 커맨드라인 진입점

역할:
- JSON 타임라인 프로젝트 파일을 로드하여 자막 작업을 수행하고 다시 저장
- 서브커맨드: add-clip, import-srt, import-matches, match, demo, style, export
- 설정 파일이 없으면 기본값 + 환경변수 오버라이드로 실행

실행 예시:
    SRT 자막 추가:
        python main.py import-srt project.json subtitles.srt

    영상 클립 등록 후 음성 매칭 (클립 트랙 바로 다음 행에 자막 배치):
        python main.py add-clip project.json recitation.mp4 --select
        python main.py match project.json --start-surah 1 --end-surah 1

    자막 트랙 글자 크기 변경:
        python main.py style project.json --font-size 60

    자막 트랙 SRT/VTT 내보내기:
        python main.py export project.json output/subtitles/project.srt
        python main.py export project.json   # export.output_dir에 설정된 포맷별로 저장
"""

from __future__ import annotations

import argparse
import asyncio
import hashlib
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

from omnisub.config.config_manager import ConfigFileNotFoundError, ConfigLoadError, ConfigManager
from omnisub.config.schema import IMPORT_PRESET, AppConfig
from omnisub.logging import setup_logging
from omnisub.matching import MatchProgress, MatchRequest
from omnisub.matching.workflow import MatchWorkflow
from omnisub.subtitle import Span, UpdateStatus
from omnisub.subtitle.srt_parser import parse_srt_file
from omnisub.subtitle.subtitle_exporter import SubtitleExporter
from omnisub.subtitle.subtitle_manager import SubtitleManager
from omnisub.timeline import TimelineItem
from omnisub.timeline.document import TimelineDocument
from omnisub.timeline.track_allocator import allocate, apply_allocation, parse_policy

logger = logging.getLogger(__name__)

# demo 서브커맨드가 추가하는 예시 자막
DEMO_SPANS = (
    Span(text="This is a demo subtitle", start_ms=1000, end_ms=4000),
    Span(text="Multiple lines can be displayed\nwith proper formatting", start_ms=4500, end_ms=7500),
    Span(text="Subtitles can be styled and positioned", start_ms=8000, end_ms=12000),
)


# =============================================================================
# 서브커맨드
# =============================================================================

def _cmd_add_clip(
    args: argparse.Namespace, config: AppConfig, document: TimelineDocument, settings: ConfigManager
) -> int:
    """미디어 파일을 콘텐츠 해시로 등록하고 클립을 새 트랙(또는 지정 트랙)에 추가합니다."""
    media_path = Path(args.media)
    if not media_path.exists():
        logger.error(f"미디어 파일을 찾을 수 없습니다: {media_path}")
        return 1

    file_hash = hashlib.sha256(media_path.read_bytes()).hexdigest()
    document.add_media(file_hash, media_path.resolve())

    if args.track is None:
        track = apply_allocation(document, allocate(1, document.track_count, document.effects))
    else:
        while document.track_count <= args.track:
            document.add_track()
        track = args.track

    clip = TimelineItem(
        id=uuid.uuid4().hex,
        kind=args.kind,
        track=track,
        start_ms=args.start * 1000,
        duration_ms=args.duration * 1000,
        file_hash=file_hash,
        name=media_path.name,
    )
    document.add_effect(clip)
    if args.select:
        document.select(clip.id)

    print(f"클립 추가: id={clip.id}, track={track}, kind={clip.kind}")
    return 0


def _cmd_import_srt(
    args: argparse.Namespace, config: AppConfig, document: TimelineDocument, settings: ConfigManager
) -> int:
    manager = SubtitleManager(config, document)
    spans = parse_srt_file(args.srt)
    result = manager.import_spans(spans, preset_name=IMPORT_PRESET, position=args.position)
    print(result.message)
    return 0 if result.track is not None else 1


def _cmd_import_matches(
    args: argparse.Namespace, config: AppConfig, document: TimelineDocument, settings: ConfigManager
) -> int:
    """{count, matches} 응답 또는 레코드 배열 JSON 파일을 자막으로 추가합니다."""
    payload = json.loads(Path(args.matches).read_text(encoding="utf-8"))
    matches = payload.get("matches", []) if isinstance(payload, dict) else payload

    manager = SubtitleManager(config, document)
    hint = manager.hint_for_selection(args.policy)
    result = manager.import_from_matches(
        matches, hint=hint, position=args.position, text_key=args.text_key
    )
    print(result.message)
    return 0 if result.track is not None else 1


def _cmd_match(
    args: argparse.Namespace, config: AppConfig, document: TimelineDocument, settings: ConfigManager
) -> int:
    if args.clip:
        document.select(args.clip)

    manager = SubtitleManager(config, document)
    workflow = MatchWorkflow(config, document, manager)
    request = MatchRequest(
        start_surah=args.start_surah,
        end_surah=args.end_surah,
        start_ayah=args.start_ayah,
        end_ayah=args.end_ayah,
    )

    def _print_progress(progress: MatchProgress) -> None:
        print(f"[{progress.stage}/{progress.total}] {progress.label}")

    # 추출/전송 중에 설정 파일이 바뀌면 임포트 단계부터 새 프리셋 적용
    settings.subscribe(lambda old, new: manager.update_config(new))
    if settings.source is not None:
        settings.watch()
    try:
        outcome = asyncio.run(
            workflow.run(request, policy=args.policy, position=args.position, on_progress=_print_progress)
        )
    finally:
        settings.stop_watch()
    print(outcome.message)
    return 0 if outcome.ok else 1


def _cmd_demo(
    args: argparse.Namespace, config: AppConfig, document: TimelineDocument, settings: ConfigManager
) -> int:
    manager = SubtitleManager(config, document)
    result = manager.import_spans(DEMO_SPANS, preset_name=IMPORT_PRESET, position=args.position)
    print(result.message)
    return 0


def _cmd_style(
    args: argparse.Namespace, config: AppConfig, document: TimelineDocument, settings: ConfigManager
) -> int:
    """지정 트랙(기본: 가장 높은 텍스트 트랙)의 모든 자막 스타일을 변경합니다."""
    manager = SubtitleManager(config, document)
    track = args.track if args.track is not None else _latest_text_track(document)

    statuses: list[UpdateStatus] = []
    if args.preset:
        statuses.append(manager.apply_preset(args.preset, track=track))
    if args.font_size is not None:
        statuses.append(manager.set_font_size(args.font_size, track=track))
    if args.font_family:
        statuses.append(manager.set_font_family(args.font_family, track=track))
    if args.align:
        statuses.append(manager.set_alignment(args.align, track=track))
    if args.fill:
        statuses.append(manager.set_fill(args.fill, track=track))
    if args.wrap_width is not None:
        statuses.append(manager.set_wrap_width(args.wrap_width, track=track))
    if args.line_height is not None:
        statuses.append(manager.set_line_height(args.line_height, track=track))
    if args.stroke or args.stroke_thickness is not None:
        statuses.append(manager.set_stroke(args.stroke, args.stroke_thickness, track=track))
    if args.shadow is not None:
        statuses.append(manager.set_drop_shadow(enabled=args.shadow, track=track))

    if not statuses:
        print("변경할 스타일 옵션이 없습니다.")
        return 0

    for status in statuses:
        print(status.message)
    return 0


def _cmd_export(
    args: argparse.Namespace, config: AppConfig, document: TimelineDocument, settings: ConfigManager
) -> int:
    track = args.track if args.track is not None else _latest_text_track(document)
    if track is None:
        print("내보낼 자막 트랙이 없습니다.")
        return 1

    effects = document.text_effects_on_track(track)
    exporter = SubtitleExporter()

    if args.output:
        output = Path(args.output)
        targets = [(output, args.format or output.suffix.lstrip(".") or config.export.format[0])]
    else:
        # 출력 경로가 없으면 설정된 포맷마다 output_dir/<프로젝트 이름>.<포맷>
        formats = [args.format] if args.format else config.export.format
        stem = Path(args.project).stem
        targets = [(Path(config.export.output_dir) / f"{stem}.{fmt}", fmt) for fmt in formats]

    for output, fmt in targets:
        count = exporter.export(effects, output, fmt)
        print(f"자막 {count}개 저장: {output}")
    return 0


def _latest_text_track(document: TimelineDocument) -> Optional[int]:
    tracks = [e.track for e in document.effects if e.kind == "text"]
    return max(tracks) if tracks else None


# =============================================================================
# 진입점
# =============================================================================

_COMMANDS = {
    "add-clip": (_cmd_add_clip, True),
    "import-srt": (_cmd_import_srt, True),
    "import-matches": (_cmd_import_matches, True),
    "match": (_cmd_match, True),
    "demo": (_cmd_demo, True),
    "style": (_cmd_style, True),
    "export": (_cmd_export, False),
}


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """커맨드라인 인자를 파싱합니다."""
    parser = argparse.ArgumentParser(
        description="omnisub: 멀티트랙 타임라인 자막 배치 도구"
    )
    parser.add_argument(
        "--config", default="config.yaml", help="설정 파일 경로 (기본: config.yaml)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def _with_project(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("project", help="타임라인 프로젝트 JSON 파일 (없으면 새로 생성)")
        return sub

    def _position_option(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--position", help="자막 위치 (예: bottom-center, top-left)")

    def _policy(value: str) -> str:
        try:
            return parse_policy(value)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from exc

    sub = _with_project("add-clip", "미디어 클립 추가")
    sub.add_argument("media", help="영상/오디오 파일 경로")
    sub.add_argument("--kind", choices=["video", "audio"], default="video")
    sub.add_argument("--track", type=int, help="배치 트랙 (기본: 가장 높은 사용 트랙 + 1)")
    sub.add_argument("--start", type=float, default=0, help="시작 위치 (초)")
    sub.add_argument("--duration", type=float, default=0, help="길이 (초)")
    sub.add_argument("--select", action="store_true", help="추가한 클립을 선택 상태로 저장")

    sub = _with_project("import-srt", "SRT 파일 자막 추가")
    sub.add_argument("srt", help="SRT 파일 경로")
    _position_option(sub)

    sub = _with_project("import-matches", "매칭 결과 JSON 자막 추가")
    sub.add_argument("matches", help="매칭 결과 JSON 파일 ({count, matches} 또는 배열)")
    sub.add_argument("--policy", type=_policy, help="배치 정책 (none | anchor_above | displace_swap)")
    sub.add_argument("--text-key", help="표시할 텍스트 키 (기본: original_text)")
    _position_option(sub)

    sub = _with_project("match", "선택 클립 음성 매칭 후 자막 추가")
    sub.add_argument("--clip", help="매칭할 클립 id (기본: 저장된 선택 클립)")
    sub.add_argument("--start-surah", type=int, required=True)
    sub.add_argument("--end-surah", type=int, required=True)
    sub.add_argument("--start-ayah", type=int)
    sub.add_argument("--end-ayah", type=int)
    sub.add_argument("--policy", type=_policy, help="배치 정책 (none | anchor_above | displace_swap)")
    _position_option(sub)

    sub = _with_project("demo", "예시 자막 추가")
    _position_option(sub)

    sub = _with_project("style", "자막 트랙 스타일 일괄 변경")
    sub.add_argument("--track", type=int, help="대상 트랙 (기본: 가장 높은 자막 트랙)")
    sub.add_argument("--preset", help="다시 적용할 스타일 프리셋 이름")
    sub.add_argument("--font-size", type=int)
    sub.add_argument("--font-family")
    sub.add_argument("--align", choices=["left", "center", "right", "justify"])
    sub.add_argument("--fill", nargs="+", help="채우기 색 (2개 이상이면 그라디언트)")
    sub.add_argument("--wrap-width", type=int)
    sub.add_argument("--line-height", type=float)
    sub.add_argument("--stroke", help="외곽선 색")
    sub.add_argument("--stroke-thickness", type=int)
    sub.add_argument("--shadow", action=argparse.BooleanOptionalAction, default=None)

    sub = _with_project("export", "자막 트랙 SRT/VTT 내보내기")
    sub.add_argument(
        "output", nargs="?", help="출력 파일 경로 (.srt 또는 .vtt, 생략하면 export.output_dir)"
    )
    sub.add_argument("--track", type=int, help="대상 트랙 (기본: 가장 높은 자막 트랙)")
    sub.add_argument("--format", choices=["srt", "vtt"])

    return parser.parse_args(argv)


def _load_config(filepath: str) -> ConfigManager:
    settings = ConfigManager()
    try:
        settings.load(filepath)
    except ConfigFileNotFoundError:
        settings.load_defaults()
    return settings


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        settings = _load_config(args.config)
    except ConfigLoadError as exc:
        print(f"설정 로드 실패: {exc}", file=sys.stderr)
        return 2

    config = settings.config
    session_id = setup_logging(config)
    logger.info(f"omnisub 시작: session_id={session_id}, command={args.command}")

    handler, saves = _COMMANDS[args.command]
    document = TimelineDocument.load(args.project)
    exit_code = handler(args, config, document, settings)

    if saves and exit_code == 0:
        document.save(args.project)

    logger.info(f"omnisub 종료: command={args.command}, exit_code={exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
