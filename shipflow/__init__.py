"""
Shipflow Ingestion Pipeline

An incremental ingestion pipeline for CSV attachments arriving by email:
raw rows are appended to a grid store, cleaned, deduplicated and enriched
into a clean store, then exported per sender as CSV attachments.
"""

__version__ = "0.1.0"
