"""Yuber 배차 코어.

LLM 기반 대화 접수, 공급자 선택, 배차, 결제 시뮬레이션을 제공합니다.
"""

__version__ = "1.0.0"
