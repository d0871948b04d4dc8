"""PDF, XLSX and ZIP renderings of Nachweise."""

from __future__ import annotations

import io
import logging
import re
import textwrap
import zipfile
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from openpyxl import Workbook
from PyPDF2 import PdfMerger
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas

from .approval import STATUS_LABELS
from .models import Nachweis, Status, Weekday

logger = logging.getLogger(__name__)

DAY_LABELS = {
    Weekday.MONDAY: "Montag",
    Weekday.TUESDAY: "Dienstag",
    Weekday.WEDNESDAY: "Mittwoch",
    Weekday.THURSDAY: "Donnerstag",
    Weekday.FRIDAY: "Freitag",
    Weekday.SATURDAY: "Samstag",
    Weekday.SUNDAY: "Sonntag",
}

OVERVIEW_FILENAME = "uebersicht.xlsx"


def _safe_name(value: Optional[str]) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_.-]", "_", value.strip()) if value else ""
    return cleaned or "azubi"


def _format_hours(value: Decimal) -> str:
    return f"{float(value):.1f}"


def _format_date(value) -> str:
    return value.strftime("%d.%m.%Y") if value else "-"


def document_filename(record: Nachweis) -> str:
    owner = record.owner.username if record.owner else str(record.owner_id)
    return f"nachweis_{record.number}_{_safe_name(owner)}.pdf"


def render_record_pdf(record: Nachweis) -> bytes:
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    left = 2 * cm
    y = height - 2.5 * cm

    def ensure_space(needed: float) -> None:
        nonlocal y
        if y - needed < 2 * cm:
            pdf.showPage()
            y = height - 2 * cm
            pdf.setFont("Helvetica", 10)

    title = f"Ausbildungsnachweis Nr. {record.number}"
    pdf.setTitle(title)
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawString(left, y, title)
    y -= 1.2 * cm

    pdf.setFont("Helvetica", 11)
    header = [
        f"Auszubildende/r: {record.owner.name if record.owner else record.owner_id}",
        f"Ausbilder/in: {record.trainer.name if record.trainer else record.trainer_id}",
        f"Zeitraum: {_format_date(record.period_start)} bis {_format_date(record.period_end)}",
        f"Status: {STATUS_LABELS.get(Status(record.status), record.status)}",
    ]
    if record.ausbildungsjahr:
        header.append(f"Ausbildungsjahr: {record.ausbildungsjahr}")
    for line in header:
        pdf.drawString(left, y, line)
        y -= 0.7 * cm
    y -= 0.3 * cm

    for day in Weekday:
        entries = sorted(
            (activity for activity in record.activities if activity.day == day.value),
            key=lambda activity: activity.slot,
        )
        if not entries:
            continue
        ensure_space(1.5 * cm)
        pdf.setFont("Helvetica-Bold", 12)
        pdf.drawString(left, y, DAY_LABELS[day])
        y -= 0.6 * cm
        pdf.setFont("Helvetica", 10)
        for activity in entries:
            lines = textwrap.wrap(f"{activity.section}: {activity.description}", 80) or [""]
            for index, line in enumerate(lines):
                ensure_space(0.5 * cm)
                pdf.drawString(left + 0.4 * cm, y, line)
                if index == 0:
                    pdf.drawRightString(width - 2 * cm, y, f"{_format_hours(activity.hours)} h")
                y -= 0.5 * cm
        day_total = record.total_for_day(day)
        pdf.setFont("Helvetica-Oblique", 10)
        pdf.drawRightString(width - 2 * cm, y, f"Summe: {_format_hours(day_total)} h")
        y -= 0.8 * cm

    ensure_space(3 * cm)
    pdf.setFont("Helvetica-Bold", 12)
    pdf.drawString(left, y, f"Gesamtstunden: {_format_hours(record.grand_total())} h")
    y -= 1 * cm

    pdf.setFont("Helvetica", 10)
    if record.comment:
        pdf.drawString(left, y, "Bemerkung:")
        y -= 0.5 * cm
        for line in textwrap.wrap(record.comment, 90):
            ensure_space(0.5 * cm)
            pdf.drawString(left + 0.4 * cm, y, line)
            y -= 0.5 * cm
        y -= 0.3 * cm

    ensure_space(1.5 * cm)
    azubi_signed = "unterschrieben" if record.signatur_azubi else "offen"
    trainer_signed = "unterschrieben" if record.signatur_ausbilder else "offen"
    pdf.drawString(left, y, f"Auszubildende/r ({_format_date(record.datum_azubi)}): {azubi_signed}")
    y -= 0.6 * cm
    pdf.drawString(left, y, f"Ausbilder/in: {trainer_signed}")

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def build_overview_xlsx(records: Iterable[Nachweis]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Nachweise"
    ws.append(["Nummer", "Von", "Bis", "Azubi", "Status", "Stunden"])
    for record in records:
        ws.append(
            [
                record.number,
                record.period_start.isoformat(),
                record.period_end.isoformat(),
                record.owner.name if record.owner else record.owner_id,
                record.status,
                round(float(record.grand_total()), 2),
            ]
        )
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def build_export_archive(records: List[Nachweis]) -> Tuple[str, bytes]:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for record in records:
            archive.writestr(document_filename(record), render_record_pdf(record))
        archive.writestr(OVERVIEW_FILENAME, build_overview_xlsx(records))
    logger.info("Export mit %s Nachweisen erstellt", len(records))
    return "nachweise_export.zip", buffer.getvalue()


def build_print_bundle(records: List[Nachweis]) -> Tuple[str, bytes]:
    merger = PdfMerger()
    for record in records:
        merger.append(io.BytesIO(render_record_pdf(record)))
    output = io.BytesIO()
    merger.write(output)
    merger.close()
    logger.info("Druckdatei mit %s Nachweisen erstellt", len(records))
    return "nachweise_druck.pdf", output.getvalue()
