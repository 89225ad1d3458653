"""CSV and XLSX download responses shared by the report and inventory exports"""
import csv
import io
import logging

from django.http import HttpResponse
from django.utils import timezone
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ('csv', 'excel')
XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
HEADER_FILL = PatternFill(start_color='366092', end_color='366092', fill_type='solid')
HEADER_FONT = Font(bold=True, color='FFFFFF')
MAX_COLUMN_WIDTH = 50


def export_filename(prefix, extension):
    timestamp = timezone.localtime().strftime('%Y%m%d_%H%M%S')
    return f"{prefix}_{timestamp}.{extension}"


def _cell_value(value):
    if value is None:
        return ''
    if hasattr(value, 'tzinfo') and value.tzinfo is not None:
        return timezone.localtime(value).replace(tzinfo=None)
    return value


def csv_response(prefix, headers, rows):
    """``text/csv`` attachment, UTF-8 with BOM so spreadsheet apps read accents"""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(['' if value is None else value for value in row])

    response = HttpResponse('\ufeff' + buffer.getvalue(), content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="{export_filename(prefix, "csv")}"'
    return response


def build_workbook(title, headers, rows):
    """Workbook with a styled header row and columns sized to their content"""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = title[:31]

    for col_num, header in enumerate(headers, 1):
        cell = sheet.cell(row=1, column=col_num, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal='center', vertical='center')

    widths = [len(str(header)) for header in headers]
    for row_num, row in enumerate(rows, 2):
        for col_num, value in enumerate(row, 1):
            value = _cell_value(value)
            sheet.cell(row=row_num, column=col_num, value=value)
            widths[col_num - 1] = max(widths[col_num - 1], len(str(value)))

    for col_num, width in enumerate(widths, 1):
        sheet.column_dimensions[get_column_letter(col_num)].width = min(width + 2, MAX_COLUMN_WIDTH)
    return workbook


def excel_response(prefix, title, headers, rows):
    workbook = build_workbook(title, headers, rows)
    output = io.BytesIO()
    workbook.save(output)
    response = HttpResponse(output.getvalue(), content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{export_filename(prefix, "xlsx")}"'
    logger.debug(f"Excel export {prefix} built with {len(rows)} rows")
    return response
