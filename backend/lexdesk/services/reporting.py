import textwrap
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from reportlab.lib.pagesizes import LETTER
from reportlab.pdfgen import canvas
from sqlmodel import Session, select

from lexdesk.core.config import Settings
from lexdesk.core.errors import NotFoundError
from lexdesk.models.case import Case
from lexdesk.models.note import CaseNote
from lexdesk.models.timeline import TimelineEvent


def _ts(dt: datetime | None) -> str:
    if not dt:
        return ""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def build_case_report_markdown(
    session: Session,
    case_id: uuid.UUID,
) -> dict[str, Any]:
    case = session.get(Case, case_id)
    if not case:
        raise NotFoundError("Case", case_id)

    notes = session.exec(
        select(CaseNote).where(CaseNote.case_id == case_id).order_by(CaseNote.created_at)
    ).all()
    timeline = session.exec(
        select(TimelineEvent)
        .where(TimelineEvent.case_id == case_id)
        .order_by(TimelineEvent.event_date, TimelineEvent.id)
    ).all()

    md = []
    md.append(f"# Case Report: {case.case_number}")
    md.append("")
    md.append(f"**{case.title}**")
    md.append("")
    md.append("## Summary")
    md.append("")
    md.append(f"- **Client:** {case.client_name}")
    md.append(f"- **Matter type:** {case.matter_type}")
    md.append(f"- **Practice area:** {case.practice_area}")
    md.append(f"- **Status:** {case.status}")
    md.append(f"- **Priority:** {case.priority}")
    md.append(f"- **Opened:** {_ts(case.opened_date)}")
    md.append(f"- **Due:** {_ts(case.due_date)}")
    if case.closed_date:
        md.append(f"- **Closed:** {_ts(case.closed_date)}")
        md.append(f"- **Outcome:** {case.outcome}")
        md.append(f"- **Resolution:** {case.resolution}")
    if case.tags:
        md.append(f"- **Tags:** {', '.join(case.tags)}")
    md.append("")

    if case.description:
        md.append("## Description")
        md.append("")
        md.append(case.description)
        md.append("")

    md.append("## Assignment")
    md.append("")
    if not case.assigned_to:
        md.append("_Unassigned._")
    else:
        md.append(f"- **Assigned to:** {case.assigned_to}")
        md.append(f"- **Assigned by:** {case.assigned_by or ''}")
        md.append(f"- **Assigned at:** {_ts(case.assigned_at)}")
    md.append("")

    md.append("## Notes")
    md.append("")
    if not notes:
        md.append("_No notes recorded._")
    else:
        for n in notes:
            heading = n.title or n.note_type
            md.append(f"### {heading} ({n.created_by}, {_ts(n.created_at)})")
            md.append("")
            md.append(n.content)
            md.append("")

    md.append("## Timeline")
    md.append("")
    if not timeline:
        md.append("_No timeline events._")
    else:
        for ev in timeline:
            line = f"- `{_ts(ev.event_date)}` **{ev.event_type}** {ev.title}"
            if ev.description:
                line += f": {ev.description}"
            md.append(line)
            if ev.created_by:
                md.append(f"  - by: {ev.created_by}")
    md.append("")

    report_md = "\n".join(md).strip() + "\n"

    return {
        "case": case,
        "markdown": report_md,
        "notes_count": len(notes),
        "timeline_count": len(timeline),
    }


def write_report_files(case_id: uuid.UUID, markdown: str, settings: Settings) -> dict[str, str]:
    report_dir = Path(settings.report_dir)
    report_dir.mkdir(parents=True, exist_ok=True)

    md_path = report_dir / f"case_{case_id}.md"
    md_path.write_text(markdown, encoding="utf-8")

    out = {"markdown_path": str(md_path)}

    if settings.report_generate_pdf:
        pdf_path = report_dir / f"case_{case_id}.pdf"
        _markdown_to_simple_pdf(markdown, pdf_path)
        out["pdf_path"] = str(pdf_path)

    return out


def _markdown_to_simple_pdf(markdown: str, pdf_path: Path) -> None:
    # plain wrapped text; no markdown rendering
    c = canvas.Canvas(str(pdf_path), pagesize=LETTER)
    _, height = LETTER

    left = 54
    top = height - 54
    line_height = 12
    y = top

    lines: list[str] = []
    for raw in markdown.replace("\t", "  ").splitlines():
        lines.extend(textwrap.wrap(raw, width=95) or [""])

    c.setFont("Helvetica", 10)
    for line in lines:
        if y <= 54:
            c.showPage()
            c.setFont("Helvetica", 10)
            y = top
        c.drawString(left, y, line)
        y -= line_height

    c.save()
