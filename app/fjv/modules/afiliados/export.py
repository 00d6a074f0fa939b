from __future__ import annotations

import io
from collections.abc import Iterable

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from app.fjv.modules.personas.models import Persona

COLUMNS = (
    ("ID", 8),
    ("Apellido y Nombre", 32),
    ("DNI", 14),
    ("Fecha Nacimiento", 16),
    ("Club", 28),
    ("Tipo", 16),
    ("Categoría", 16),
    ("Nivel", 10),
    ("Licencia FEVA", 16),
    ("Fecha Licencia", 16),
    ("Vencimiento", 16),
    ("Estado", 12),
)


def _row(p: Persona) -> list:
    return [
        p.id,
        p.nombre_apellido,
        p.dni,
        p.fecha_nacimiento,
        p.club.nombre if p.club else "Sin club",
        p.tipo or "",
        p.categoria or "",
        p.categoria_nivel or "",
        p.licencia_feva or "",
        p.fecha_licencia,
        p.fecha_licencia_baja,
        p.estado_licencia,
    ]


def afiliados_workbook(personas: Iterable[Persona]) -> bytes:
    """Render the filtered afiliados as an .xlsx file."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Afiliados"

    header_fill = PatternFill("solid", fgColor="4472C4")
    header_font = Font(bold=True, color="FFFFFF")
    for i, (title, width) in enumerate(COLUMNS, start=1):
        cell = ws.cell(row=1, column=i, value=title)
        cell.font = header_font
        cell.fill = header_fill
        ws.column_dimensions[get_column_letter(i)].width = width

    for p in personas:
        ws.append(_row(p))
    for row in ws.iter_rows(min_row=2):
        for idx in (3, 9, 10):
            row[idx].number_format = "DD/MM/YYYY"
    ws.freeze_panes = "A2"

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
