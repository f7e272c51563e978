"""
Exception hierarchy for the shipflow pipeline.

Each collaborator boundary raises its own error type so that the
orchestrator can tell fatal configuration problems apart from
transient I/O failures.
"""


class ShipflowError(Exception):
    """Base exception for all pipeline failures."""


class ConfigurationError(ShipflowError):
    """Raised when a required table, column or setting cannot be resolved."""


class TableNotFoundError(ConfigurationError):
    """Raised when a named table does not exist in the store."""

    def __init__(self, table_name: str):
        super().__init__(f'Table "{table_name}" not found')
        self.table_name = table_name


class ColumnNotFoundError(ConfigurationError):
    """Raised when a required column is missing from a table header."""

    def __init__(self, column_name: str, table_name: str = None):
        location = f' in table "{table_name}"' if table_name else ''
        super().__init__(f'Column "{column_name}" not found{location}')
        self.column_name = column_name
        self.table_name = table_name


class StoreError(ShipflowError):
    """Raised for tabular store read/write failures."""


class SourceError(ShipflowError):
    """Raised for inbound message source failures."""


class DispatchError(ShipflowError):
    """Raised when an export artifact cannot be delivered."""


class ExtractionError(ShipflowError):
    """Raised when document text extraction fails."""


class HeaderMismatchError(ShipflowError):
    """Raised when incoming CSV headers do not match the raw store headers."""


class PipelineLockError(ShipflowError):
    """Raised when another pipeline run holds the advisory run lock."""
