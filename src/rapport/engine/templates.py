"""Directive text templates.

Separate module because the wording evolves independently of the scoring
logic.  Every directive is plain text prepended to the outbound message list.
"""

from __future__ import annotations

from collections.abc import Sequence

from rapport.models.intimacy import IntimacyTier
from rapport.models.memory import Memory
from rapport.models.memory import MemoryCategory
from rapport.models.profile import ConversationStyle
from rapport.models.profile import FormalityLevel
from rapport.models.profile import LengthPreference
from rapport.models.profile import PatternMetrics
from rapport.models.profile import TopicDepthPreference

DEFAULT_DIRECTIVE = "너는 사용자의 친한 친구야. 자연스럽고 친근하게 대화해줘."

# ---------------------------------------------------------------------------
# Pattern directive
# ---------------------------------------------------------------------------

_PATTERN_HEADER = "너는 사용자의 대화 패턴을 학습한 맞춤형 AI야.\n"
_PATTERN_FOOTER = "\n이 사용자의 대화 패턴에 맞춰서 자연스럽게 대화해줘."

_LENGTH_LINES = {
    LengthPreference.short: "- 답변은 1-2문장으로 간결하게 해줘",
    LengthPreference.medium: "- 적당한 길이(2-3문장)로 답변해줘",
    LengthPreference.long: "- 자세하고 구체적인 3-5문장 답변을 해줘",
}

_QUESTION_LINES = {
    True: "- 대화를 이어가기 위해 적절한 질문을 포함해줘",
    False: "- 서술형 답변 위주로, 질문은 꼭 필요할 때만 해줘",
}

_DEPTH_LINES = {
    TopicDepthPreference.prefers_deep: "- 주제를 깊이 있게 다뤄줘",
    TopicDepthPreference.prefers_shallow: "- 가볍고 부담스럽지 않게 대화해줘",
}

_FORMALITY_LINES = {
    FormalityLevel.formal: "- 정중하고 격식 있는 어투를 사용해줘",
    FormalityLevel.casual: "- 친근하고 편안한 반말톤으로 대화해줘",
    FormalityLevel.mixed: "- 상황에 맞게 적절한 톤을 사용해줘",
}


def render_pattern_directive(metrics: PatternMetrics) -> str:
    """Render the style directive for a pattern profile."""
    lines = [
        _LENGTH_LINES[metrics.length_preference],
        _QUESTION_LINES[
            metrics.conversation_style == ConversationStyle.prefers_questions
        ],
    ]
    depth = _DEPTH_LINES.get(metrics.topic_depth_preference)
    if depth:
        lines.append(depth)
    lines.append(_FORMALITY_LINES[metrics.formality_level])
    return _PATTERN_HEADER + "\n" + "\n".join(lines) + "\n" + _PATTERN_FOOTER


# ---------------------------------------------------------------------------
# Intimate directive
# ---------------------------------------------------------------------------

TIER_FRAMING = {
    IntimacyTier.new: "너는 사용자와 이제 막 알아가는 친구야.",
    IntimacyTier.acquainted: "너는 사용자와 몇 번 대화를 나눠 본 친구야.",
    IntimacyTier.close: "너는 사용자와 꽤 가까워진 친한 친구야.",
    IntimacyTier.intimate: "너는 사용자와 서로 속마음까지 나누는 단짝친구야.",
}

CATEGORY_PHRASES = {
    MemoryCategory.hobby: "{value}을(를) 좋아하고 즐겨 해",
    MemoryCategory.work: "{value} 관련 일을 하고 있어",
    MemoryCategory.relationship: "{value} 얘기를 한 적이 있어",
    MemoryCategory.goal: "이런 계획이 있어: {value}",
    MemoryCategory.preference: "{value} 같은 취향이 있어",
    MemoryCategory.experience: "최근에 이런 일이 있었어: {value}",
}

CATEGORY_TITLES = {
    MemoryCategory.hobby: "취미",
    MemoryCategory.work: "일",
    MemoryCategory.relationship: "인간관계",
    MemoryCategory.goal: "목표",
    MemoryCategory.preference: "취향",
    MemoryCategory.experience: "경험",
}

_STYLE_HINTS = (
    ("remember_details", "- 예전에 나눈 이야기의 세부 내용을 자연스럽게 기억해줘"),
    ("show_concern", "- 사용자의 안부와 기분을 먼저 챙겨줘"),
    ("use_nickname", "- 편하게 이름이나 별명으로 불러줘"),
    ("make_jokes", "- 가벼운 농담도 섞어줘"),
    ("share_personal_thoughts", "- 네 생각과 감정도 솔직하게 나눠줘"),
)

_INTIMATE_FOOTER = "이 기억들을 자연스럽게 대화에 녹여서 친구처럼 대답해줘."


def render_intimate_directive(
    tier: IntimacyTier,
    memories: Sequence[Memory],
    style_flags: dict[str, bool] | None = None,
) -> str:
    """Render the relationship directive listing remembered facts by category."""
    parts = [TIER_FRAMING[tier]]

    grouped: dict[MemoryCategory, list[Memory]] = {}
    for memory in memories:
        grouped.setdefault(memory.category, []).append(memory)

    if grouped:
        lines = ["", "사용자에 대해 기억하고 있는 것:"]
        # Category order follows the enum so output is stable
        for category in MemoryCategory:
            items = grouped.get(category)
            if not items:
                continue
            lines.append(f"[{CATEGORY_TITLES[category]}]")
            for memory in items:
                phrase = CATEGORY_PHRASES[category].format(value=memory.value)
                lines.append(f"- {phrase}")
        parts.append("\n".join(lines))

    if style_flags:
        hints = [text for flag, text in _STYLE_HINTS if style_flags.get(flag)]
        if hints:
            parts.append("\n" + "\n".join(hints))

    parts.append("\n" + _INTIMATE_FOOTER)
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Proactive greeting
# ---------------------------------------------------------------------------

MORNING_GREETING = "좋은 아침이야!"
AFTERNOON_GREETING = "오늘 하루 어때?"
EVENING_GREETING = "오늘 하루 수고했어!"
GENERIC_FOLLOW_UP = "오늘은 뭐 했어?"

FOLLOW_UPS = {
    MemoryCategory.goal: "그런데 {value} 어떻게 되어가고 있어?",
    MemoryCategory.work: "회사 일은 어떻게 되고 있어?",
    MemoryCategory.hobby: "{value} 요즘 어때?",
}
