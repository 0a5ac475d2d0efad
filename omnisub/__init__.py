"""
omnisub: 멀티트랙 타임라인용 자막 트랙 배치 및 텍스트 이펙트 생성 엔진
"""

__version__ = "0.3.0"
