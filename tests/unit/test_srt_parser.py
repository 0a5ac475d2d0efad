"""
SRT 파서 단위 테스트

검증 항목:
- 정상 블록 파싱 (여러 줄 본문 포함)
- CRLF, BOM, 마지막 빈 줄 누락 허용
- 타이밍 줄 형식 오류 블록 건너뛰기 (나머지는 계속 파싱)
- 빈 입력 / 완전히 잘못된 입력 → 빈 목록
- 같은 입력 재파싱 시 동일 결과
"""

from __future__ import annotations

from omnisub.subtitle import Span
from omnisub.subtitle.srt_parser import parse_srt, parse_srt_file

SAMPLE_SRT = (
    "1\n"
    "00:00:01,000 --> 00:00:04,000\n"
    "This is a demo subtitle\n"
    "\n"
    "2\n"
    "00:00:04,500 --> 00:00:07,500\n"
    "Multiple lines can be displayed\n"
    "with proper formatting\n"
    "\n"
)


def test_parse_blocks_in_order():
    spans = parse_srt(SAMPLE_SRT)

    assert spans == [
        Span(text="This is a demo subtitle", start_ms=1000, end_ms=4000),
        Span(
            text="Multiple lines can be displayed\nwith proper formatting",
            start_ms=4500,
            end_ms=7500,
        ),
    ]


def test_windows_line_endings_and_bom():
    raw = "\ufeff" + SAMPLE_SRT.replace("\n", "\r\n")
    assert parse_srt(raw) == parse_srt(SAMPLE_SRT)


def test_last_block_without_trailing_blank_line():
    spans = parse_srt("1\n00:00:00,000 --> 00:00:02,000\nA")
    assert [(s.text, s.start_ms, s.end_ms) for s in spans] == [("A", 0, 2000)]


def test_extra_blank_lines_between_blocks():
    raw = "\n\n\n" + SAMPLE_SRT.replace("\n\n", "\n\n\n\n")
    assert len(parse_srt(raw)) == 2


def test_malformed_timing_block_is_skipped():
    """타이밍 줄이 틀린 블록만 버리고 다음 블록은 정상 파싱합니다."""
    raw = (
        "1\n"
        "00:00:01 --> 00:00:02\n"
        "Broken\n"
        "\n"
        "2\n"
        "00:00:03,000 --> 00:00:04,000\n"
        "World\n"
    )
    spans = parse_srt(raw)

    assert [s.text for s in spans] == ["World"]
    assert spans[0].start_ms == 3000


def test_inverted_block_is_returned_for_later_rejection():
    """종료가 시작보다 빠른 블록도 반환하며 합성 단계에서 거부됩니다."""
    spans = parse_srt("1\n00:00:05,000 --> 00:00:02,000\nBackwards\n")
    assert len(spans) == 1
    assert spans[0].duration_ms < 0


def test_empty_and_garbage_input():
    assert parse_srt("") == []
    assert parse_srt("\n\n  \n") == []
    assert parse_srt("hello\nworld\nnot an srt file\n") == []


def test_parse_is_restartable():
    assert parse_srt(SAMPLE_SRT) == parse_srt(SAMPLE_SRT)


def test_parse_srt_file(tmp_path):
    path = tmp_path / "sample.srt"
    path.write_text(SAMPLE_SRT, encoding="utf-8")
    assert len(parse_srt_file(path)) == 2
