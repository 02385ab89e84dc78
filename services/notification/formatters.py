"""
Message formatting utilities for notifications.
Provides Markdown escaping, chunking, Telegram texts and Discord embeds.
"""

from typing import Any, Dict, List, Optional

from core import constants
from core.utils import format_date
from models.course import Course

# Characters that break Telegram's legacy Markdown parse mode
MARKDOWN_SPECIALS = ("*", "_", "`", "[")


def escape_markdown(text: Optional[str]) -> str:
    if not text:
        return ""
    for char in MARKDOWN_SPECIALS:
        text = text.replace(char, "\\" + char)
    return text


def area_label(area: Optional[str]) -> str:
    return area if area and area.strip() else constants.NO_AREA_TEXT


def truncate_with_ellipsis(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 1)] + "…"


def split_in_chunks(text: str, max_len: int) -> List[str]:
    """
    Split ``text`` into pieces no longer than ``max_len``.

    Each cut lands just after the last newline before the cap when that
    newline is within TELEGRAM_SPLIT_WINDOW chars of it, else at the cap.
    """
    chunks: List[str] = []
    if not text:
        return chunks

    remaining = text
    while len(remaining) > max_len:
        cut = max_len
        newline = remaining.rfind("\n", 0, cut)
        if newline >= 0 and newline > cut - constants.TELEGRAM_SPLIT_WINDOW:
            cut = newline + 1
        chunks.append(remaining[:cut])
        remaining = remaining[cut:]
    if remaining:
        chunks.append(remaining)
    return chunks


def build_summary_link(api_base_url: Optional[str], platform_name: str) -> Optional[str]:
    """Deep link into the query API for one platform, newest first."""
    if not api_base_url or not api_base_url.strip():
        return None
    return f"{api_base_url.strip()}?platform={platform_name}&sort=updated_at,desc"


# =============================================================================
# Telegram
# =============================================================================


def create_telegram_new_courses_message(platform_name: str, courses: List[Course]) -> str:
    lines = [f"🎓 *Novos cursos* — {(platform_name or '').upper()}\n"]
    for course in courses:
        lines.append(
            f"• {escape_markdown(course.title)} — {escape_markdown(area_label(course.area))}\n"
            f"{course.url or ''}\n"
        )
    return "".join(lines)


def create_telegram_summary_message(
    platform_name: str, total_new: int, link: Optional[str] = None
) -> str:
    text = f"📊 {(platform_name or '').upper()}: +{total_new} novos cursos."
    if link and link.strip():
        text += f" {link.strip()}"
    return text


# =============================================================================
# Discord
# =============================================================================


def _field(name: str, value: Optional[str], inline: bool = True) -> Dict[str, Any]:
    return {
        "name": name,
        "value": value if value and value.strip() else constants.DISCORD_EMPTY_FIELD,
        "inline": inline,
    }


def create_discord_embed(platform_name: str, course: Course) -> Dict[str, Any]:
    embed: Dict[str, Any] = {
        "title": truncate_with_ellipsis(course.title or "", constants.DISCORD_TITLE_LIMIT),
    }
    if course.url:
        embed["url"] = course.url

    description = ""
    if course.provider and course.provider.strip():
        description += f"**Fornecedor:** {course.provider}\n"
    if course.area and course.area.strip():
        description += f"**Área:** {course.area}\n"
    embed["description"] = description

    fields = [
        _field("Formato", course.status_text or constants.ONLINE_STATUS_TEXT),
        _field("Gratuito", "Sim"),
    ]
    if course.start_date is not None:
        fields.append(_field("Início", format_date(course.start_date, constants.DATE_FORMAT)))
    if course.end_date is not None:
        fields.append(_field("Fim", format_date(course.end_date, constants.DATE_FORMAT)))
    if course.price_text and course.price_text.strip():
        fields.append(_field("Preço", course.price_text))
    embed["fields"] = fields

    embed["footer"] = {"text": (platform_name or "").upper()}
    return embed


def create_discord_summary_embed(
    platform_name: str, total_new: int, link: Optional[str] = None
) -> Dict[str, Any]:
    description = f"Foram encontrados **{total_new}** novos cursos."
    if link and link.strip():
        description += f"\n{link}"
    return {
        "title": f"Resumo — {(platform_name or '').upper()}",
        "description": description,
    }


def estimate_embed_chars(embed: Dict[str, Any]) -> int:
    """Rough size of an embed against Discord's per-message character budget."""
    total = 0
    for value in embed.values():
        if isinstance(value, str):
            total += len(value)
        elif isinstance(value, list):
            total += sum(len(str(item)) for item in value)
    return total
