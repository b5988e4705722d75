"""Render a digest as plain text, HTML or Telegram MarkdownV2."""

from datetime import datetime
from email.utils import format_datetime
from xml.sax.saxutils import escape, quoteattr

from hndigest.models import DigestEntry


_MARKDOWN_V2_SPECIAL = set("_*[]()~`>#+-=|{}.!\\")
_MARKDOWN_V2_LINK_SPECIAL = set(")\\")


def formatted_now() -> str:
    return format_datetime(datetime.now().astimezone())


def _labels_suffix(entry: DigestEntry) -> str:
    if not entry.labels:
        return ""
    return " [" + ", ".join(sorted(entry.labels)) + "]"


def digest_to_text(digest: list[DigestEntry]) -> str:
    """Plain-text body: one bullet per entry, then a generation footer."""
    lines = ["Hi!", ""]
    for entry in digest:
        url = entry.url or "-"
        lines.append(f"* {entry.title} - {url}{_labels_suffix(entry)}")
    lines.append("")
    lines.append(f"Generated: {formatted_now()}")
    return "\n".join(lines)


def digest_to_html(digest: list[DigestEntry], heading: str = "Digest") -> str:
    parts = [
        "<html>",
        f"<head><title>{escape(heading)}</title></head>",
        "<body><p>Hi!</p><div><ul>",
    ]
    for entry in digest:
        title = escape(entry.title)
        labels = escape(_labels_suffix(entry))
        if entry.url:
            parts.append(f"<li><a href={quoteattr(entry.url)}>{title}</a>{labels}</li>")
        else:
            parts.append(f"<li>{title}{labels}</li>")
    parts.append(f"</ul></div><p>Generated: {escape(formatted_now())}</p></body></html>")
    return "".join(parts)


def escape_markdown_v2(text: str) -> str:
    return "".join(f"\\{c}" if c in _MARKDOWN_V2_SPECIAL else c for c in text)


def escape_markdown_v2_url(url: str) -> str:
    # Inside (...) of an inline link only ')' and '\' need escaping
    return "".join(f"\\{c}" if c in _MARKDOWN_V2_LINK_SPECIAL else c for c in url)


def entry_to_markdown_v2(entry: DigestEntry) -> str:
    """One bold Telegram message per entry, linked when the entry has a URL."""
    title = escape_markdown_v2(entry.title or "-")
    if entry.url:
        body = f"*[{title}]({escape_markdown_v2_url(entry.url)})*"
    else:
        body = f"*{title}*"
    if entry.labels:
        body += "\n" + escape_markdown_v2(", ".join(sorted(entry.labels)))
    return body
