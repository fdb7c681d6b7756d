"""
Spreadsheet exports (CSV and Excel) for list views
"""
import csv
import io
from datetime import datetime, date
from typing import List, Any, Iterable
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from liftdesk.utils.formatting import status_label, severity_label

TICKET_COLUMNS = [
    "Ticket Number", "Type", "Title", "Building", "Elevator (MOL)", "Severity",
    "Status", "Technician", "Reported By", "Reporter Phone", "Created At", "Completed At"
]

PART_COLUMNS = [
    "Part Number", "Name", "Category", "Manufacturer", "Location",
    "Quantity", "Unit Price", "Stock Value", "Stock Status"
]


def _cell(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    return "" if value is None else value


def ticket_rows(tickets: Iterable[Any]) -> List[list]:
    rows = []
    for t in tickets:
        rows.append([
            t.ticket_number,
            t.ticket_type,
            t.title,
            t.building_address,
            t.elevator.mol_number if t.elevator else None,
            severity_label(t.severity),
            status_label(t.status),
            t.technician_name,
            t.reported_by,
            t.reporter_phone,
            t.created_at,
            t.completed_at,
        ])
    return rows


def part_rows(parts: Iterable[Any]) -> List[list]:
    rows = []
    for p in parts:
        rows.append([
            p.part_number,
            p.name,
            p.category,
            p.manufacturer,
            p.location,
            p.quantity_in_stock,
            p.unit_price,
            round((p.quantity_in_stock or 0) * (p.unit_price or 0), 2),
            p.stock_status,
        ])
    return rows


def to_csv(columns: List[str], rows: List[list]) -> bytes:
    """CSV with a BOM so spreadsheet apps pick up UTF-8 (Hebrew addresses)"""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(columns)
    for row in rows:
        writer.writerow([_cell(v) for v in row])
    return output.getvalue().encode("utf-8-sig")


def create_styled_workbook(columns: List[str], sheet_name: str = "Data") -> Workbook:
    """Create a styled Excel workbook with headers"""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="1E40AF", end_color="1E40AF", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center")
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    for col_idx, column in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col_idx, value=column)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment
        cell.border = thin_border
        ws.column_dimensions[cell.column_letter].width = max(15, len(column) + 5)

    ws.freeze_panes = "A2"

    return wb


def to_xlsx(columns: List[str], rows: List[list], sheet_name: str = "Data") -> io.BytesIO:
    wb = create_styled_workbook(columns, sheet_name)
    ws = wb.active
    for row_idx, row in enumerate(rows, 2):
        for col_idx, value in enumerate(row, 1):
            ws.cell(row=row_idx, column=col_idx, value=_cell(value))

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output
