"""
Aggregate statistics over a snapshot of the resource library.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

from .query import timestamp_millis

QUALITY_TEXT_FIELDS = (
    ("history", "withHistory"),
    ("technique", "withTechnique"),
    ("features", "withFeatures"),
    ("funFact", "withFunFact"),
)

MEDIA_BUCKETS = {"image": "images", "video": "videos", "audio": "audio", "document": "documents"}


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _non_empty_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def compute_statistics(
    snapshot: Dict[str, List[Dict[str, Any]]], now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Walk ``snapshot`` once and return aggregate counters.

    Quality is the number of present fields among history, technique,
    features, funFact, tags and keywords: four or more is high quality,
    one or less is incomplete.
    """
    now = now or datetime.now(timezone.utc)
    now_ms = now.timestamp() * 1000
    week_ago = now_ms - timedelta(days=7).total_seconds() * 1000
    month_ago = now_ms - timedelta(days=30).total_seconds() * 1000
    year_ago = now_ms - timedelta(days=365).total_seconds() * 1000

    usage = dict.fromkeys(
        ("withMedia", "withoutMedia", "recentlyUpdated", "recentlyCreated", "highQuality", "incomplete"), 0
    )
    quality = dict.fromkeys(
        ("withHistory", "withTechnique", "withFeatures", "withFunFact", "withTags", "withKeywords"), 0
    )
    timeline = dict.fromkeys(("thisWeek", "thisMonth", "thisYear", "older"), 0)
    media_files = dict.fromkeys(("images", "videos", "audio", "documents"), 0)
    popular_tags: Counter = Counter()
    popular_keywords: Counter = Counter()
    file_types: Counter = Counter()
    categories: Dict[str, Dict[str, Any]] = {}
    total_resources = 0
    total_size = 0

    for category, records in snapshot.items():
        cat = {
            "resourceCount": len(records),
            "mediaCount": 0,
            "totalSize": 0,
            "withMedia": 0,
            "withoutMedia": 0,
            "highQuality": 0,
            "incomplete": 0,
            "lastUpdated": None,
        }
        total_resources += len(records)

        for record in records:
            media = [m for m in record.get("media") or [] if isinstance(m, dict)]
            if media:
                usage["withMedia"] += 1
                cat["withMedia"] += 1
            else:
                usage["withoutMedia"] += 1
                cat["withoutMedia"] += 1

            for item in media:
                cat["mediaCount"] += 1
                bucket = MEDIA_BUCKETS.get(item.get("type"))
                if bucket:
                    media_files[bucket] += 1
                size = item.get("size")
                if isinstance(size, (int, float)) and size > 0:
                    cat["totalSize"] += size
                    total_size += size
                ext = PurePosixPath(str(item.get("name") or "")).suffix.lower()
                if ext:
                    file_types[ext] += 1

            updated = record.get("updatedAt")
            if updated:
                updated_ms = timestamp_millis(updated)
                if updated_ms >= week_ago:
                    timeline["thisWeek"] += 1
                    usage["recentlyUpdated"] += 1
                elif updated_ms >= month_ago:
                    timeline["thisMonth"] += 1
                elif updated_ms >= year_ago:
                    timeline["thisYear"] += 1
                else:
                    timeline["older"] += 1
                if cat["lastUpdated"] is None or updated_ms > timestamp_millis(cat["lastUpdated"]):
                    cat["lastUpdated"] = updated
            if record.get("createdAt") and timestamp_millis(record["createdAt"]) >= week_ago:
                usage["recentlyCreated"] += 1

            score = 0
            for field, counter in QUALITY_TEXT_FIELDS:
                if _has_text(record.get(field)):
                    quality[counter] += 1
                    score += 1
            if _non_empty_list(record.get("tags")):
                quality["withTags"] += 1
                score += 1
                popular_tags.update(str(t) for t in record["tags"])
            if _non_empty_list(record.get("keywords")):
                quality["withKeywords"] += 1
                score += 1
                popular_keywords.update(str(k) for k in record["keywords"])

            if score >= 4:
                usage["highQuality"] += 1
                cat["highQuality"] += 1
            elif score <= 1:
                usage["incomplete"] += 1
                cat["incomplete"] += 1

        categories[category] = cat

    return {
        "totalCategories": len(snapshot),
        "totalResources": total_resources,
        "totalMedia": sum(media_files.values()),
        "totalFileSize": total_size,
        "resourceUsage": usage,
        "contentQuality": quality,
        "popularTags": dict(popular_tags.most_common()),
        "popularKeywords": dict(popular_keywords.most_common()),
        "categories": categories,
        "mediaFiles": media_files,
        "fileTypes": dict(file_types),
        "timeDistribution": timeline,
    }
