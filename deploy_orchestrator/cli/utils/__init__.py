"""CLI utility functions"""

from .output import (
    console,
    print_error,
    format_record,
    format_records_table,
    format_releases_table,
    format_event_outcomes,
    format_approval_outcome,
)

__all__ = [
    'console',
    'print_error',
    'format_record',
    'format_records_table',
    'format_releases_table',
    'format_event_outcomes',
    'format_approval_outcome',
]
