"""
음성 매칭 워크플로우 단위 테스트 (ffmpeg / HTTP mock 사용)

검증 항목:
- 선택 클립 없음 / 미디어 없음 → 실패 결과, 이펙트 없음
- 정상 흐름: 진행 단계 1~4 통보, 선택 클립 기준 배치
- 추출/서비스 실패 → 실패 결과, 트랙과 이펙트 변경 없음
- 빈 매칭 결과 → 성공, 이펙트 없음
- ffmpeg 명령 구성 및 종료 코드 처리
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from omnisub.config.schema import AppConfig, MatchingConfig
from omnisub.matching import (
    AudioExtractionError,
    MatchRequest,
    MatchServiceError,
    MediaNotFoundError,
)
from omnisub.matching import audio_extractor
from omnisub.matching import workflow as workflow_module
from omnisub.matching.workflow import MatchWorkflow
from omnisub.subtitle.subtitle_manager import SubtitleManager
from omnisub.timeline import TimelineItem
from omnisub.timeline.document import TimelineDocument

MATCHES = [
    {"start": 0, "end": 2, "original_text": "الحمد لله"},
    {"start": 2, "end": 4, "original_text": "رب العالمين"},
]


# =============================================================================
# 테스트 헬퍼
# =============================================================================

def _make_config(policy: str = "anchor_above") -> AppConfig:
    return AppConfig(**{"allocation": {"default_policy": policy}})


def _make_document(tmp_path: Path, select: bool = True, with_media: bool = True) -> TimelineDocument:
    document = TimelineDocument()
    document.add_track()
    media = tmp_path / "recitation.mp4"
    media.write_bytes(b"\x00\x00")
    if with_media:
        document.add_media("hash-1", media)
    document.add_effect(TimelineItem(id="clip", kind="video", track=0, file_hash="hash-1"))
    if select:
        document.select("clip")
    return document


def _make_workflow(config, document, matches=None, submit_error=None):
    client = MagicMock()
    if submit_error is not None:
        client.submit.side_effect = submit_error
    else:
        client.submit.return_value = MATCHES if matches is None else matches
    manager = SubtitleManager(config, document)
    return MatchWorkflow(config, document, manager, client=client), client


@pytest.fixture
def fake_extract(monkeypatch):
    """ffmpeg 대신 대상 경로를 그대로 반환하는 추출 mock."""

    async def _extract(source, target, config):
        Path(target).write_bytes(b"audio")
        return Path(target)

    mock = AsyncMock(side_effect=_extract)
    monkeypatch.setattr(workflow_module, "extract_audio", mock)
    return mock


# =============================================================================
# 워크플로우 테스트
# =============================================================================

@pytest.mark.asyncio
async def test_successful_run_places_subtitles_above_clip(tmp_path, fake_extract):
    document = _make_document(tmp_path)
    workflow, client = _make_workflow(_make_config(), document)
    stages = []

    outcome = await workflow.run(MatchRequest(1, 1), on_progress=lambda p: stages.append(p.stage))

    assert outcome.ok is True
    assert outcome.match_count == 2
    assert outcome.result.track == 1
    assert [e.text for e in document.text_effects_on_track(1)] == ["الحمد لله", "رب العالمين"]
    assert stages == [1, 2, 3, 4]
    fake_extract.assert_awaited_once()
    source, target, _ = fake_extract.await_args.args
    assert Path(source).name == "recitation.mp4"
    assert Path(target).suffix == ".mp3"
    assert client.submit.call_args.args[1] == MatchRequest(1, 1)


@pytest.mark.asyncio
async def test_explicit_displace_swap_policy(tmp_path, fake_extract):
    document = _make_document(tmp_path)
    workflow, _ = _make_workflow(_make_config(), document)

    outcome = await workflow.run(MatchRequest(1, 1), policy="displace_swap")

    assert outcome.result.track == 0
    assert document.get_effect("clip").track == 1


@pytest.mark.asyncio
async def test_no_selection_fails_without_changes(tmp_path, fake_extract):
    document = _make_document(tmp_path, select=False)
    workflow, client = _make_workflow(_make_config(), document)

    outcome = await workflow.run(MatchRequest(1, 1))

    assert outcome.ok is False
    assert isinstance(outcome.error, MediaNotFoundError)
    fake_extract.assert_not_awaited()
    client.submit.assert_not_called()


@pytest.mark.asyncio
async def test_missing_media_fails(tmp_path, fake_extract):
    document = _make_document(tmp_path, with_media=False)
    workflow, _ = _make_workflow(_make_config(), document)

    outcome = await workflow.run(MatchRequest(1, 1))

    assert outcome.ok is False
    assert isinstance(outcome.error, MediaNotFoundError)


@pytest.mark.asyncio
async def test_service_failure_leaves_timeline_untouched(tmp_path, fake_extract):
    document = _make_document(tmp_path)
    workflow, _ = _make_workflow(_make_config(), document, submit_error=MatchServiceError("down", 503))
    stages = []

    outcome = await workflow.run(MatchRequest(1, 1), on_progress=lambda p: stages.append(p.stage))

    assert outcome.ok is False
    assert outcome.message == "down"
    assert stages == [1, 2]
    assert document.track_count == 1
    assert len(document.effects) == 1


@pytest.mark.asyncio
async def test_extraction_failure_is_reported(tmp_path, monkeypatch):
    monkeypatch.setattr(
        workflow_module, "extract_audio", AsyncMock(side_effect=AudioExtractionError("ffmpeg 실패"))
    )
    document = _make_document(tmp_path)
    workflow, client = _make_workflow(_make_config(), document)

    outcome = await workflow.run(MatchRequest(1, 1))

    assert outcome.ok is False
    assert isinstance(outcome.error, AudioExtractionError)
    client.submit.assert_not_called()


@pytest.mark.asyncio
async def test_invalid_policy_fails_before_extraction(tmp_path, fake_extract):
    document = _make_document(tmp_path)
    workflow, _ = _make_workflow(_make_config(), document)

    outcome = await workflow.run(MatchRequest(1, 1), policy="sideways")

    assert outcome.ok is False
    fake_extract.assert_not_awaited()


@pytest.mark.asyncio
async def test_empty_matches_is_success_without_effects(tmp_path, fake_extract):
    document = _make_document(tmp_path)
    workflow, _ = _make_workflow(_make_config(), document, matches=[])

    outcome = await workflow.run(MatchRequest(1, 1))

    assert outcome.ok is True
    assert outcome.result is None
    assert document.track_count == 1


@pytest.mark.asyncio
async def test_import_error_becomes_failed_outcome(tmp_path, fake_extract, monkeypatch):
    monkeypatch.setattr(
        SubtitleManager, "import_from_matches", MagicMock(side_effect=TypeError("bad record"))
    )
    document = _make_document(tmp_path)
    workflow, _ = _make_workflow(_make_config(), document)

    outcome = await workflow.run(MatchRequest(1, 1))

    assert outcome.ok is False
    assert isinstance(outcome.error, TypeError)
    assert document.track_count == 1


@pytest.mark.asyncio
async def test_malformed_style_in_matches_still_imports(tmp_path, fake_extract):
    document = _make_document(tmp_path)
    matches = [{"start": 0, "end": 2, "original_text": "نص", "style": {"fill": 5}}]
    workflow, _ = _make_workflow(_make_config("displace_swap"), document, matches=matches)

    outcome = await workflow.run(MatchRequest(1, 1))

    assert outcome.ok is True
    assert [e.text for e in document.text_effects_on_track(0)] == ["نص"]
    assert document.get_effect("clip").track == 1


# =============================================================================
# 오디오 추출 테스트
# =============================================================================

def test_build_command_uses_config():
    config = MatchingConfig(ffmpeg_path="/opt/ffmpeg", audio_bitrate="128k", audio_channels=1)
    cmd = audio_extractor.build_command(Path("in.mp4"), Path("out.mp3"), config)

    assert cmd == [
        "/opt/ffmpeg", "-y", "-i", "in.mp4", "-vn",
        "-acodec", "mp3", "-ac", "1", "-ab", "128k", "out.mp3",
    ]


def _fake_process(returncode: int, stderr: bytes = b"") -> MagicMock:
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(None, stderr))
    return process


def test_extract_audio_success(tmp_path, monkeypatch):
    source = tmp_path / "in.mp4"
    source.write_bytes(b"\x00")
    spawn = AsyncMock(return_value=_fake_process(0))
    monkeypatch.setattr(audio_extractor.asyncio, "create_subprocess_exec", spawn)

    result = asyncio.run(audio_extractor.extract_audio(source, tmp_path / "out.mp3", MatchingConfig()))

    assert result == tmp_path / "out.mp3"
    assert spawn.await_args.args[0] == "ffmpeg"


def test_extract_audio_nonzero_exit(tmp_path, monkeypatch):
    source = tmp_path / "in.mp4"
    source.write_bytes(b"\x00")
    monkeypatch.setattr(
        audio_extractor.asyncio,
        "create_subprocess_exec",
        AsyncMock(return_value=_fake_process(1, b"Invalid data found")),
    )

    with pytest.raises(AudioExtractionError, match="Invalid data found"):
        asyncio.run(audio_extractor.extract_audio(source, tmp_path / "out.mp3", MatchingConfig()))


def test_extract_audio_missing_binary(tmp_path, monkeypatch):
    source = tmp_path / "in.mp4"
    source.write_bytes(b"\x00")
    monkeypatch.setattr(
        audio_extractor.asyncio,
        "create_subprocess_exec",
        AsyncMock(side_effect=FileNotFoundError("ffmpeg")),
    )

    with pytest.raises(AudioExtractionError):
        asyncio.run(audio_extractor.extract_audio(source, tmp_path / "out.mp3", MatchingConfig()))


def test_extract_audio_missing_source(tmp_path):
    with pytest.raises(AudioExtractionError):
        asyncio.run(audio_extractor.extract_audio(tmp_path / "none.mp4", tmp_path / "o.mp3", MatchingConfig()))
