"""Render StreamRecords into Stremio stream objects.

Pure transformation logic, no I/O.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from jackettio.domain.entities.stremio import StreamRecord


def format_size(num_bytes: int) -> str:
    """Human-readable size ("1.4 GB"); empty for unknown sizes."""
    if num_bytes <= 0:
        return ""
    size = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


class StreamFormatter:
    """Builds the ``name``/``title``/``url`` triple Stremio displays.

    Args:
        addon_name: Prefix of every stream name.
        language_emojis: Language value -> flag emoji (from config).
    """

    def __init__(self, addon_name: str, language_emojis: Mapping[str, str] | None = None) -> None:
        self._addon_name = addon_name
        self._emojis = dict(language_emojis or {})

    def _name(self, record: StreamRecord) -> str:
        badge = f"[{record.provider}+]" if record.cached else f"[{record.provider} download]"
        return f"{badge} {self._addon_name}\n{record.quality.label}"

    def _title(self, record: StreamRecord) -> str:
        details: list[str] = []
        size = format_size(record.size)
        if size:
            details.append(f"💾 {size}")
        details.append(f"👥 {record.seeders}")
        if record.indexer:
            details.append(f"⚙️ {record.indexer}")
        lines = [record.title, "  ".join(details)]
        flags = " ".join(self._emojis.get(lang, lang) for lang in record.languages)
        if flags:
            lines.append(flags)
        return "\n".join(lines)

    def format(self, record: StreamRecord) -> dict[str, str]:
        return {
            "name": self._name(record),
            "title": self._title(record),
            "url": record.url,
        }

    def format_all(self, records: Sequence[StreamRecord]) -> list[dict[str, str]]:
        return [self.format(r) for r in records]

    def info(self, message: str) -> dict[str, str]:
        """Pseudo-stream carrying a message instead of media."""
        return {"name": self._addon_name, "title": message, "url": "#"}
