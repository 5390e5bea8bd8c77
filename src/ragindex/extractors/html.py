"""
HTML to plain-text conversion for record bodies.
"""

import html
import re

_IMG_ALT_RE = re.compile(r"""<img[^>]+alt=["']([^"']*)["'][^>]*>""", re.IGNORECASE)
_TABLE_RE = re.compile(r"<table[^>]*>.*?</table>", re.IGNORECASE | re.DOTALL)
_ROW_RE = re.compile(r"<tr[^>]*>(.*?)</tr>", re.IGNORECASE | re.DOTALL)
_CELL_RE = re.compile(r"<t[hd][^>]*>(.*?)</t[hd]>", re.IGNORECASE | re.DOTALL)
_BLOCK_END_RE = re.compile(r"</(?:div|p|h[1-6]|li|blockquote)>|<br\s*/?>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


def _image_alt(match: "re.Match") -> str:
    alt = match.group(1).strip()
    return f" [Image: {alt}] " if alt else ""


def _cell_text(cell_html: str) -> str:
    text = html.unescape(_TAG_RE.sub("", cell_html))
    return " ".join(text.split()).replace("|", "\\|")


def table_to_markdown(table_html: str) -> str:
    """Convert one HTML table to a markdown table; the first row is the header."""
    rows = []
    for row_html in _ROW_RE.findall(table_html):
        cells = [_cell_text(c) for c in _CELL_RE.findall(row_html)]
        if cells:
            rows.append(cells)
    if not rows:
        return ""

    width = max(len(r) for r in rows)
    lines = []
    for i, cells in enumerate(rows):
        cells = cells + [""] * (width - len(cells))
        lines.append("| " + " | ".join(cells) + " |")
        if i == 0:
            lines.append("| " + " | ".join(["---"] * width) + " |")
    return "\n".join(lines)


def html_to_text(html_body: str) -> str:
    """
    Convert an HTML body to indexable plain text.

    Image alt text is kept inline, tables become markdown, block-level
    closing tags become paragraph breaks and all other tags are dropped.
    """
    if not html_body:
        return ""
    text = _IMG_ALT_RE.sub(_image_alt, html_body)
    text = _TABLE_RE.sub(lambda m: "\n\n" + table_to_markdown(m.group(0)) + "\n\n", text)
    text = _BLOCK_END_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text)
    # Every line break run becomes a paragraph break
    text = re.sub(r"[ \t]*[\r\n]+[ \t]*", "\n\n", text)
    return text.strip()
