"""I/O for StarRocks-Experts: data sources, logging and result export."""

from .datasource import (
    DataSource,
    QueryHandle,
    SQLAlchemyDataSource,
    SQLAlchemyHandle,
)
from .export import export_json, export_recommendations_csv, export_yaml
from .logging import (
    audit_record,
    get_file_logger,
    log_json,
    log_yaml,
    setup_console_logging,
    write_audit,
)

__all__ = [
    "DataSource",
    "QueryHandle",
    "SQLAlchemyDataSource",
    "SQLAlchemyHandle",
    "export_json",
    "export_recommendations_csv",
    "export_yaml",
    "audit_record",
    "get_file_logger",
    "log_json",
    "log_yaml",
    "setup_console_logging",
    "write_audit",
]
