"""
Keyword matching for the conversational search endpoint.

A free-text message is turned into candidate keywords, each stored
resource is scored against them, and the best few are returned. The
weights and thresholds are empirical; they are kept together in
``MatchWeights`` so they can be tuned without touching the algorithm.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .store import CategoryStore

STOP_WORDS = ("的", "了", "和", "与", "请", "我要", "给我", "图片", "照片", "视频", "相关", "看看", "看")

_PUNCTUATION = re.compile(r"[，。！？、,.!\-\s]+")
# Longest first so that "看看" is removed before "看".
_STOP_WORDS = re.compile("|".join(re.escape(w) for w in sorted(STOP_WORDS, key=len, reverse=True)))

VIDEO_EXTENSIONS = (".mp4", ".avi", ".mov", ".wmv", ".flv", ".mkv", ".webm")
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg")


@dataclass(frozen=True)
class MatchWeights:
    title_exact: int = 20
    keyword_exact: int = 15
    field_contains: int = 5
    min_score: int = 10
    confidence_gap: int = 5
    top_n: int = 3


DEFAULT_WEIGHTS = MatchWeights()


def extract_keywords(message: str) -> List[str]:
    """Derive candidate keywords from a free-text message.

    The whole message is always the first candidate. The message is
    then split on punctuation and whitespace, stop-words are cut out
    (Chinese text has no spaces, so they are removed as substrings) and
    single characters are dropped.
    """
    message = (message or "").strip()
    if not message:
        return []
    stripped = _STOP_WORDS.sub(" ", _PUNCTUATION.sub(" ", message))
    words = [w for w in stripped.split() if len(w) > 1]
    return list(dict.fromkeys([message, *words]))


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]


def _score(record: Dict[str, Any], keywords: List[str], weights: MatchWeights) -> Optional[Dict[str, Any]]:
    title = str(record.get("title") or "")
    resource_keywords = _str_list(record.get("keywords"))
    fields = [f for f in [title, str(record.get("description") or "")] if f]
    fields += _str_list(record.get("tags")) + resource_keywords

    score = 0
    best = ""
    exact_title = False
    for keyword in keywords:
        if title and title == keyword:
            score += weights.title_exact
            best = title
            exact_title = True
            break
        if keyword in resource_keywords:
            score += weights.keyword_exact
            best = keyword
        for field in fields:
            if keyword in field or field in keyword:
                score += weights.field_contains
                if not best:
                    best = field

    if score < weights.min_score:
        return None
    return {"matchScore": score, "bestMatch": best, "exactTitleMatch": exact_title}


def find_matches(
    snapshot: Dict[str, List[Dict[str, Any]]],
    keywords: List[str],
    weights: MatchWeights = DEFAULT_WEIGHTS,
) -> List[Dict[str, Any]]:
    """Score every resource in ``snapshot`` and return the best matches.

    Each match is the resource record plus ``category``, ``id``,
    ``matchScore``, ``bestMatch`` and ``exactTitleMatch``. At most
    ``weights.top_n`` are returned, and only the first one when it leads
    the runner-up by more than ``weights.confidence_gap``.
    """
    if not keywords:
        return []
    found: List[Dict[str, Any]] = []
    for category, records in snapshot.items():
        for record in records:
            scored = _score(record, keywords, weights)
            if scored is not None:
                found.append({**record, "category": category, "id": record.get("id"), **scored})

    found.sort(key=lambda m: (-m["matchScore"], not m["exactTitleMatch"]))
    top = found[: weights.top_n]
    if len(top) > 1 and top[0]["matchScore"] - top[1]["matchScore"] > weights.confidence_gap:
        return top[:1]
    return top


def match_resources(
    store: CategoryStore, message: str, weights: MatchWeights = DEFAULT_WEIGHTS
) -> List[Dict[str, Any]]:
    return find_matches(store.snapshot(), extract_keywords(message), weights)


# ---------------------------------------------------------------------------
# Reply text

ASPECTS = (
    ("做法", ("做法", "制作", "工艺")),
    ("历史", ("历史", "起源")),
    ("特点", ("特点", "特色")),
    ("文化", ("文化", "内涵")),
    ("传承", ("传承", "保护")),
    ("价值", ("价值", "意义")),
    ("发展", ("发展", "创新")),
)

# Record fields consulted, in order, for each aspect.
ASPECT_FIELDS = {
    "历史": ("history", "content"),
    "做法": ("technique", "content"),
    "特点": ("features", "content"),
    "文化": ("content", "history"),
    "传承": ("content", "history"),
    "价值": ("content", "history"),
    "发展": ("history", "content"),
    "详细信息": ("content", "history", "technique", "features"),
}


def detect_aspect(message: str) -> str:
    for aspect, triggers in ASPECTS:
        if any(t in message for t in triggers):
            return aspect
    return "详细信息"


def _is_video(media: Dict[str, Any]) -> bool:
    url = str(media.get("url") or "").lower()
    return media.get("type") == "video" or any(ext in url for ext in VIDEO_EXTENSIONS)


def _is_image(media: Dict[str, Any]) -> bool:
    url = str(media.get("url") or "").lower()
    return media.get("type") == "image" or any(ext in url for ext in IMAGE_EXTENSIONS)


def build_reply(message: str, matches: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Compose the chat reply for ``message`` from the ranked ``matches``.

    Returns a dict with ``response`` (text), ``media`` (media refs
    filtered by what the user asked for) and ``resources`` (the matches).
    """
    wants_video = any(w in message for w in ("视频", "影片", "录像", "动态"))
    wants_image = any(w in message for w in ("照片", "图片", "图", "静态"))

    if not matches:
        return {
            "response": "抱歉，资源库中暂时没有找到相关内容，换个关键词试试吧。",
            "media": [],
            "resources": [],
        }

    best = matches[0]
    name = best.get("title") or "这个传统文化项目"
    aspect = detect_aspect(message)
    body = next(
        (best[f] for f in ASPECT_FIELDS[aspect] if best.get(f)),
        "是中华传统文化的重要组成部分。",
    )
    parts = [f"关于「{name}」的{aspect}：", str(body)]
    if best.get("funFact"):
        parts.append(f"💡 有趣小知识：{best['funFact']}")
    keywords = _str_list(best.get("keywords"))
    if keywords:
        parts.append(f"🏷️ 相关标签：{'、'.join(keywords)}")

    media: List[Dict[str, Any]] = []
    if wants_video or wants_image:
        every = [m for match in matches for m in (match.get("media") or []) if isinstance(m, dict)]
        media = [m for m in every if (_is_video(m) if wants_video else _is_image(m))]
        if media:
            kind = "视频" if wants_video else "图片"
            parts.append(f"为您找到 {len(media)} 个相关{kind}。")
        else:
            parts.append("抱歉，当前没有找到相关的媒体文件。")

    return {"response": "\n\n".join(parts), "media": media, "resources": matches}
