"""Caption, hashtag and social pack formatting helpers."""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List

from .project import Project, SocialData


def clean_hashtag(tag: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9_]", "", tag)
    cleaned = cleaned.lower()
    cleaned = re.sub(r"^\d+", "", cleaned)
    return cleaned


def normalise_hashtags(tags: Iterable[str], limit: int = 10) -> List[str]:
    """Return unique ``#tag`` strings in their original order."""
    hashtags: List[str] = []
    for tag in tags:
        cleaned = clean_hashtag(tag.strip())
        if not cleaned:
            continue
        hashtag = f"#{cleaned}"
        if hashtag not in hashtags:
            hashtags.append(hashtag)
        if len(hashtags) >= limit:
            break
    return hashtags


def captions_text(social: SocialData) -> str:
    return "\n\n".join(f"{idx + 1}. {caption}" for idx, caption in enumerate(social.captions))


def hashtags_text(social: SocialData) -> str:
    return " ".join(social.hashtags)


def social_pack_document(project: Project, service_name: str) -> Dict[str, Any]:
    """Build the JSON bundle written next to exported media."""
    social = project.social_data or SocialData()
    document = social.to_dict()
    document["service"] = service_name
    document["date"] = project.date
    return document


def format_social_pack_text(project: Project, service_name: str) -> str:
    social = project.social_data or SocialData()
    parts = [
        "DETAILER PRO - SOCIAL MEDIA PACK",
        "=" * 50,
        "",
        f"SERVICE: {service_name}",
        f"DATE: {project.date}",
        "",
        "CAPTIONS:",
        captions_text(social),
        "",
        "HASHTAGS:",
        hashtags_text(social),
    ]

    if social.tiktok_script:
        parts.extend(["", "TIKTOK SCRIPT:", social.tiktok_script])

    parts.extend(["", "POSTING TIMES:", ", ".join(social.posting_times), ""])
    return "\n".join(parts)
