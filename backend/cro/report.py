# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
PDF rendering of an analysis.

The model replies in light Markdown.  Headings (``#`` to ``###``), bullets
(``-`` / ``*``), numbered items and ``**bold**`` are mapped onto reportlab
paragraph styles; everything else becomes body text.
"""

import re
from pathlib import Path
from typing import List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import ListFlowable, ListItem, Paragraph, SimpleDocTemplate, Spacer

from core.logger import logger

_HEADING_RE = re.compile(r"^(#{1,3})\s+(.*)$")
_BULLET_RE = re.compile(r"^\s*[-*•]\s+(.*)$")
_NUMBERED_RE = re.compile(r"^\s*(\d+)[.)]\s+(.*)$")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")

COLORS = {
    "dark_gray": colors.HexColor("#1F2937"),
    "medium_gray": colors.HexColor("#6B7280"),
    "accent": colors.HexColor("#DC3545"),
}


def _styles():
    styles = getSampleStyleSheet()
    styles.add(
        ParagraphStyle(
            name="ReportH1",
            parent=styles["Heading1"],
            fontSize=20,
            textColor=COLORS["dark_gray"],
            spaceAfter=10,
        )
    )
    styles.add(
        ParagraphStyle(
            name="ReportH2",
            parent=styles["Heading2"],
            fontSize=15,
            textColor=COLORS["accent"],
            spaceBefore=10,
            spaceAfter=6,
        )
    )
    styles.add(
        ParagraphStyle(
            name="ReportH3",
            parent=styles["Heading3"],
            fontSize=12,
            textColor=COLORS["dark_gray"],
            spaceBefore=6,
            spaceAfter=4,
        )
    )
    styles.add(
        ParagraphStyle(
            name="ReportBody",
            parent=styles["BodyText"],
            fontSize=10,
            leading=14,
            textColor=COLORS["dark_gray"],
        )
    )
    return styles


def _inline(text: str) -> str:
    """Escape reportlab's mini-markup, then restore **bold** as <b>."""
    return _BOLD_RE.sub(r"<b>\1</b>", escape(text.strip()))


def build_story(text: str) -> List:
    styles = _styles()
    heading_styles = {1: styles["ReportH1"], 2: styles["ReportH2"], 3: styles["ReportH3"]}
    body = styles["ReportBody"]

    story = []
    bullets = []
    numbered = False

    def flush():
        nonlocal bullets
        if bullets:
            story.append(
                ListFlowable(
                    [ListItem(Paragraph(item, body)) for item in bullets],
                    bulletType="1" if numbered else "bullet",
                    leftIndent=14,
                )
            )
            story.append(Spacer(1, 4))
            bullets = []

    for line in text.splitlines():
        if not line.strip():
            flush()
            continue

        heading = _HEADING_RE.match(line)
        if heading:
            flush()
            story.append(Paragraph(_inline(heading.group(2)), heading_styles[len(heading.group(1))]))
            continue

        bullet = _BULLET_RE.match(line)
        item = _NUMBERED_RE.match(line)
        if bullet or item:
            is_numbered = item is not None
            if bullets and is_numbered != numbered:
                flush()
            numbered = is_numbered
            bullets.append(_inline(item.group(2) if item else bullet.group(1)))
            continue

        flush()
        story.append(Paragraph(_inline(line), body))
        story.append(Spacer(1, 4))

    flush()
    if not story:
        story.append(Paragraph("No analysis available.", body))
    return story


def render_pdf(text: str, output_path: str) -> None:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    doc = SimpleDocTemplate(
        str(path),
        pagesize=A4,
        leftMargin=0.8 * inch,
        rightMargin=0.8 * inch,
        topMargin=0.8 * inch,
        bottomMargin=0.8 * inch,
        title="CRO Report",
    )
    doc.build(build_story(text))
    logger.info("PDF saved as %s", path)
