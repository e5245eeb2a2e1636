"""Rule table deciding whether a chat message asks for a stock research report."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Pattern, Tuple


class Intent(str, Enum):
    RESEARCH_REPORT = "research_report"
    GENERAL = "general"


@dataclass(frozen=True)
class IntentRules:
    """Versioned policy table; rules are evaluated top to bottom."""

    version: str
    code_pattern: Pattern[str]
    name_keywords: Tuple[str, ...]
    common_names: Tuple[str, ...]
    max_length: int
    question_markers: Tuple[str, ...]
    min_name_length: int
    max_name_length: int


@dataclass(frozen=True)
class IntentDecision:
    intent: Intent
    reason: str

    @property
    def is_report(self) -> bool:
        return self.intent is Intent.RESEARCH_REPORT


DEFAULT_RULES = IntentRules(
    version="2024.1",
    code_pattern=re.compile(r"^\d{6}(\.(SH|SZ|BJ))?$", re.IGNORECASE),
    name_keywords=("股份", "证券", "银行", "保险", "科技", "集团", "医药", "能源", "电子", "汽车", "食品"),
    common_names=("茅台", "腾讯", "阿里", "京东", "比亚迪", "宁德时代", "中国平安", "招商银行", "贵州茅台"),
    max_length=20,
    question_markers=("?", "？", "什么", "如何", "怎么", "是否", "请问"),
    min_name_length=2,
    max_name_length=6,
)


def classify_message(message: str, rules: IntentRules = DEFAULT_RULES) -> IntentDecision:
    """Classify ``message`` as a research-report request or a general chat message."""
    text = (message or "").strip()
    if not text:
        return IntentDecision(Intent.GENERAL, "empty message")

    if rules.code_pattern.match(text):
        return IntentDecision(Intent.RESEARCH_REPORT, "stock code")
    if len(text) <= rules.max_length:
        for keyword in rules.name_keywords:
            if keyword in text and not _is_question(text, rules):
                return IntentDecision(Intent.RESEARCH_REPORT, f"name keyword {keyword}")
    if text in rules.common_names:
        return IntentDecision(Intent.RESEARCH_REPORT, "common stock name")
    if len(text) > rules.max_length:
        return IntentDecision(Intent.GENERAL, "too long for a stock name")
    if _is_question(text, rules):
        return IntentDecision(Intent.GENERAL, "question phrasing")
    if rules.min_name_length <= len(text) <= rules.max_name_length:
        return IntentDecision(Intent.RESEARCH_REPORT, "short name")
    return IntentDecision(Intent.GENERAL, "no rule matched")


def _is_question(text: str, rules: IntentRules) -> bool:
    return any(marker in text for marker in rules.question_markers)
