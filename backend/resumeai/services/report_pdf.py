from io import BytesIO
from datetime import datetime, timezone
from typing import List, Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from resumeai.core import AnalysisResult

# Theme colors (slate dark + blue/purple accents, same as the HTML report)
BG = colors.HexColor("#0F172A")
CARD = colors.HexColor("#111827")
TEXT = colors.HexColor("#E7E9EE")
MUTED = colors.Color(231 / 255, 233 / 255, 238 / 255, alpha=0.70)
BLUE = colors.HexColor("#3B82F6")
AMBER = colors.HexColor("#F59E0B")


def _esc(s: str) -> str:
    """Basic safe text for ReportLab Paragraph (avoids broken markup)."""
    if s is None:
        return ""
    s = str(s)
    s = s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    return s


def _bullets(story: list, items: List[str], style: ParagraphStyle, numbered: bool = False) -> None:
    if not items:
        story.append(Paragraph("—", style))
        return
    for i, item in enumerate(items, 1):
        marker = f"{i}." if numbered else "•"
        story.append(Paragraph(f"{marker} {_esc(item)}", style))


def build_pdf(result: AnalysisResult, filename: Optional[str] = None) -> bytes:
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=36,
        rightMargin=36,
        topMargin=36,
        bottomMargin=36,
        title="Resume Analysis Report",
        author="ResumeAI",
    )

    styles = getSampleStyleSheet()
    title = ParagraphStyle(
        "title",
        parent=styles["Title"],
        fontName="Helvetica-Bold",
        fontSize=20,
        textColor=TEXT,
        spaceAfter=10,
    )
    h = ParagraphStyle(
        "h",
        parent=styles["Heading2"],
        fontName="Helvetica-Bold",
        fontSize=12,
        textColor=TEXT,
        spaceBefore=10,
        spaceAfter=6,
    )
    p = ParagraphStyle(
        "p",
        parent=styles["BodyText"],
        fontName="Helvetica",
        fontSize=10,
        textColor=MUTED,
        leading=14,
    )

    story = []

    # Header block
    story.append(Paragraph("Resume Analysis Report", title))
    story.append(Paragraph(f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}", p))
    story.append(Paragraph(f"Filename: {_esc(filename or '—')}", p))
    story.append(Spacer(1, 8))
    story.append(Paragraph(_esc(result.summary), p))
    story.append(Spacer(1, 12))

    # KPI table
    kpi = Table(
        [
            ["Match Score", "ATS Friendly", "Matching Skills", "Missing Skills"],
            [
                f"{result.match_score}/100",
                f"{result.ats_score}/100",
                str(len(result.matching_skills)),
                str(len(result.missing_skills)),
            ],
        ],
        colWidths=[130, 120, 120, 120],
    )
    kpi.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), CARD),
                ("TEXTCOLOR", (0, 0), (-1, 0), TEXT),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, 0), 10),
                ("BACKGROUND", (0, 1), (-1, 1), colors.Color(1, 1, 1, alpha=0.04)),
                ("TEXTCOLOR", (0, 1), (-1, 1), TEXT),
                ("FONTNAME", (0, 1), (-1, 1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 1), (-1, 1), 12),
                ("GRID", (0, 0), (-1, -1), 0.6, colors.Color(1, 1, 1, alpha=0.12)),
                ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 10),
                ("TOPPADDING", (0, 0), (-1, -1), 10),
            ]
        )
    )
    story.append(kpi)
    story.append(Spacer(1, 14))

    # Skills
    story.append(Paragraph("Skills", h))
    matching = ", ".join(result.matching_skills) or "—"
    missing = ", ".join(result.missing_skills) or "No critical skills missing!"
    story.append(Paragraph(f"<font color='{BLUE.hexval()}'><b>Matching</b></font> — {_esc(matching)}", p))
    story.append(Paragraph(f"<font color='{AMBER.hexval()}'><b>Missing</b></font> — {_esc(missing)}", p))
    story.append(Spacer(1, 10))

    story.append(Paragraph("Strong Points", h))
    _bullets(story, result.strengths, p)
    story.append(Spacer(1, 10))

    story.append(Paragraph("Areas for Improvement", h))
    _bullets(story, result.weaknesses, p)
    story.append(Spacer(1, 10))

    story.append(Paragraph("Action Plan", h))
    _bullets(story, result.recommended_actions, p, numbered=True)

    # Dark background every page
    def on_page(canvas, _doc):
        canvas.saveState()
        canvas.setFillColor(BG)
        canvas.rect(0, 0, A4[0], A4[1], fill=1, stroke=0)

        # subtle top glow
        canvas.setFillColor(colors.Color(59 / 255, 130 / 255, 246 / 255, alpha=0.10))
        canvas.rect(0, A4[1] - 70, A4[0], 70, fill=1, stroke=0)

        canvas.restoreState()

    doc.build(story, onFirstPage=on_page, onLaterPages=on_page)
    return buf.getvalue()
