"""Surface-pattern lexicon driving memory extraction.

The lexicon is built once and handed by reference to the extractor.  It is
read-only: categories map to tuples of entries, and the mapping itself is a
``MappingProxyType``.
"""

from __future__ import annotations

from collections.abc import Iterable
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from rapport.models.memory import clamp_importance
from rapport.models.memory import MemoryCategory


@dataclass(frozen=True)
class LexiconEntry:
    """One surface pattern and the normalized key it maps to."""

    pattern: str
    key: str
    importance: int


class MemoryLexicon:
    """Immutable ``category -> entries`` table.

    Categories listed in *context_categories* capture free-text context: the
    extractor stores the (truncated) utterance as the value instead of the
    matched pattern.
    """

    def __init__(
        self,
        entries: Mapping[MemoryCategory, Iterable[LexiconEntry]],
        *,
        context_categories: Iterable[MemoryCategory] = (),
        context_value_length: int = 100,
    ) -> None:
        frozen: dict[MemoryCategory, tuple[LexiconEntry, ...]] = {}
        for category, items in entries.items():
            frozen[MemoryCategory(category)] = tuple(
                LexiconEntry(
                    pattern=item.pattern,
                    key=item.key,
                    importance=clamp_importance(item.importance),
                )
                for item in items
                if item.pattern
            )
        self._entries = MappingProxyType(frozen)
        self._context_categories = frozenset(
            MemoryCategory(c) for c in context_categories
        )
        self._context_value_length = context_value_length

    @property
    def entries(self) -> Mapping[MemoryCategory, tuple[LexiconEntry, ...]]:
        return self._entries

    @property
    def context_value_length(self) -> int:
        return self._context_value_length

    def is_context_category(self, category: MemoryCategory) -> bool:
        return category in self._context_categories

    def categories(self) -> tuple[MemoryCategory, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return sum(len(items) for items in self._entries.values())


def _group(key: str, importance: int, patterns: Iterable[str]) -> list[LexiconEntry]:
    return [LexiconEntry(pattern=p, key=key, importance=importance) for p in patterns]


# ---------------------------------------------------------------------------
# Default Korean lexicon
# ---------------------------------------------------------------------------

_HOBBIES = (
    ("sports", 3, ("운동", "헬스", "요가", "필라테스", "수영", "농구", "축구",
                   "야구", "테니스", "골프", "등산", "조깅", "런닝")),
    ("music", 3, ("음악", "노래", "기타", "피아노", "드럼", "바이올린",
                  "콘서트", "공연", "밴드")),
    ("reading", 2, ("독서", "책", "소설", "에세이", "자기계발서", "도서관")),
    ("cooking", 2, ("요리", "베이킹", "제빵", "맛집", "레시피", "쿠킹")),
    ("travel", 4, ("여행", "캠핑", "해외여행", "국내여행", "여행계획")),
    ("gaming", 2, ("게임", "게이밍", "PC방", "콘솔", "모바일게임")),
    ("art", 3, ("그림", "그래픽", "디자인", "사진", "촬영", "편집")),
)

_WORK = (
    ("current_work", 3, ("회사", "직장", "사무실", "출근", "퇴근", "야근", "회의",
                         "프로젝트", "업무", "일", "팀장", "동료", "상사", "부서",
                         "개발자", "디자이너", "마케터", "기획자", "영업", "인사",
                         "재무", "학생", "대학교", "학교", "수업", "강의", "시험",
                         "과제", "전공", "학과")),
)

_RELATIONSHIPS = (
    ("family", 4, ("엄마", "아빠", "부모님", "형", "누나", "언니", "동생", "가족",
                   "할머니", "할아버지")),
    ("friends", 3, ("친구", "절친", "동창", "친구들", "룸메이트")),
    ("romantic", 4, ("남친", "여친", "애인", "연인", "남자친구", "여자친구", "썸",
                     "데이트")),
    ("colleagues", 3, ("동료", "선배", "후배", "팀원", "상사", "부하직원")),
)

_GOALS = (
    ("future_plan", 4, ("계획", "목표", "하고 싶", "배우고 싶", "가고 싶", "되고 싶",
                        "준비", "도전", "시작", "해볼", "다짐", "결심")),
)

_PREFERENCES = (
    ("food", 2, ("좋아하는 음식", "싫어하는 음식", "맛있", "맛없", "짜", "싱거",
                 "매워", "달아")),
    ("weather", 2, ("좋아하는 날씨", "싫어하는 날씨", "더워", "추워", "시원",
                    "따뜻")),
    ("time", 2, ("아침형", "저녁형", "새벽", "밤늦게")),
    ("style", 2, ("스타일", "패션", "브랜드", "선호")),
)

_EXPERIENCES = (
    ("recent_experience", 3, ("어제", "오늘", "이번 주", "지난주", "최근에", "처음",
                              "마지막", "기억에 남는", "잊을 수 없는", "충격적",
                              "감동적", "슬펐", "기뻤", "성공했", "실패했", "합격",
                              "불합격", "승진", "퇴사", "입학", "졸업")),
)


def default_lexicon() -> MemoryLexicon:
    """Build the stock Korean lexicon."""
    table = {
        MemoryCategory.hobby: _HOBBIES,
        MemoryCategory.work: _WORK,
        MemoryCategory.relationship: _RELATIONSHIPS,
        MemoryCategory.goal: _GOALS,
        MemoryCategory.preference: _PREFERENCES,
        MemoryCategory.experience: _EXPERIENCES,
    }
    entries: dict[MemoryCategory, list[LexiconEntry]] = {}
    for category, groups in table.items():
        entries[category] = [
            entry
            for key, importance, patterns in groups
            for entry in _group(key, importance, patterns)
        ]
    return MemoryLexicon(
        entries,
        context_categories=(MemoryCategory.goal, MemoryCategory.experience),
    )
