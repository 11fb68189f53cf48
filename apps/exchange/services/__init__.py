"""
Spreadsheet and backup services.
"""
from .excel_service import ExcelService, SHEETS
from .backup_service import BackupService

__all__ = [
    'ExcelService',
    'SHEETS',
    'BackupService',
]
