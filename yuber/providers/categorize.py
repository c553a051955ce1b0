"""이슈 텍스트 → 서비스 카테고리 분류.

키워드 매칭 기반의 결정적 분류기입니다. 매칭되지 않으면 handyman으로
분류하고 낮은 신뢰도를 부여해 추가 확인이 필요함을 표시합니다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

FALLBACK_CATEGORY = "handyman"
FALLBACK_CONFIDENCE = 0.5

# (키워드, 카테고리, 신뢰도) 순서대로 첫 매칭 적용
KEYWORD_RULES: Tuple[Tuple[Tuple[str, ...], str, float], ...] = (
    (("locked out",), "locksmith", 0.95),
    (("pipe", "water", "leak", "drain"), "plumber", 0.9),
    (("electrical", "outlet", "power"), "electrician", 0.9),
    (("window", "glass"), "glass", 0.85),
)


@dataclass(frozen=True)
class CategoryResult:
    category: str
    confidence: float

    def to_dict(self) -> Dict[str, object]:
        return {"category": self.category, "confidence": self.confidence}


def categorize_issue(issue: str) -> CategoryResult:
    """이슈 설명을 서비스 카테고리로 분류."""
    text = (issue or "").lower()
    for keywords, category, confidence in KEYWORD_RULES:
        if any(keyword in text for keyword in keywords):
            return CategoryResult(category=category, confidence=confidence)
    return CategoryResult(category=FALLBACK_CATEGORY, confidence=FALLBACK_CONFIDENCE)
