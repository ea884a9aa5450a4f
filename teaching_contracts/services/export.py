import logging
from io import BytesIO

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.dataframe import dataframe_to_rows

from ..models.teaching_contract import TeachingContract
from .listing import build_query, rate_lookup_for
from .renderer import compute_totals
from .status import project_status

logger = logging.getLogger(__name__)

COLUMNS = [
    'Contract ID', 'Lecturer', 'Email', 'Academic Year', 'Term', 'Year Level',
    'Courses', 'Total Hours', 'Hourly Rate (USD)', 'Total (USD)', 'Total (KHR)', 'Status',
]


def contract_rows(caller, filters, today, exchange_rate):
    query = build_query(caller, filters, today).order_by(
        TeachingContract.created_at.desc(), TeachingContract.id.desc()
    )
    rate_lookup = rate_lookup_for(caller)
    rows = []
    for contract in query.all():
        rate = rate_lookup(contract.lecturer) if rate_lookup else None
        total_hours, total_usd, total_khr = compute_totals(contract.courses, rate, exchange_rate)
        lecturer = contract.lecturer
        rows.append({
            'Contract ID': contract.id,
            'Lecturer': (lecturer.display_name or lecturer.username) if lecturer else '',
            'Email': lecturer.email if lecturer else '',
            'Academic Year': contract.academic_year,
            'Term': contract.term,
            'Year Level': contract.year_level or '',
            'Courses': ', '.join(item.course_name for item in contract.courses),
            'Total Hours': total_hours,
            'Hourly Rate (USD)': float(rate) if rate is not None else None,
            'Total (USD)': float(total_usd) if rate is not None else None,
            'Total (KHR)': total_khr if rate is not None else None,
            'Status': project_status(contract.status, contract.end_date, today).value,
        })
    return rows


def build_workbook(rows):
    df = pd.DataFrame(rows, columns=COLUMNS)
    df = df.astype(object).where(pd.notnull(df), None)

    wb = Workbook()
    ws = wb.active
    ws.title = "Teaching Contracts"
    for r in dataframe_to_rows(df, index=False, header=True):
        ws.append(r)

    header_font = Font(bold=True)
    alignment = Alignment(horizontal='center', vertical='center')
    border = Border(left=Side(style='thin'), right=Side(style='thin'),
                    top=Side(style='thin'), bottom=Side(style='thin'))
    fill = PatternFill(start_color='DDEBF7', end_color='DDEBF7', fill_type='solid')
    for cell in ws[1]:
        cell.font = header_font
        cell.alignment = alignment
        cell.border = border
        cell.fill = fill

    for col in ws.columns:
        width = max(len(str(cell.value)) if cell.value is not None else 0 for cell in col)
        ws.column_dimensions[col[0].column_letter].width = width + 2

    total_row = ws.max_row + 1
    ws.cell(row=total_row, column=1, value='Total Contracts').font = Font(bold=True)
    ws.cell(row=total_row, column=2, value=len(rows)).font = Font(bold=True)

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    logger.info(f"Exported {len(rows)} teaching contract(s) to Excel")
    return output
