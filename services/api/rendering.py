"""HTML fragments reported by ``GET /verify``."""

from __future__ import annotations

from html import escape
from urllib.parse import urlencode

from services.api.verification import VerificationResult

MISSING_HASH_TEXT = "No hash supplied for verification"


def render_verification(result: VerificationResult) -> str:
    record = result.record
    if not result.original or record is None:
        return "<h2>❌ This document is not original or has been modified</h2>"

    parts = [
        "<h2>✅ This document is original</h2>",
        f"<p>File name: {escape(record.display_name)}</p>",
    ]
    if record.retrievable:
        file_link = "/file?" + urlencode({"hash": record.hash})
        parts.append(f'<p><a href="{escape(file_link)}" target="_blank">Open file</a></p>')
    if record.is_remote:
        parts.append(f'<p><a href="{escape(record.locator or "")}" target="_blank">Direct storage link</a></p>')
    return "\n".join(parts)


__all__ = ["MISSING_HASH_TEXT", "render_verification"]
