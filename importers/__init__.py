"""
Bulk property importers.
"""

from .csv_properties import CSVImporter, CSVImportError

__all__ = [
    'CSVImporter',
    'CSVImportError'
]
