"""
Runtime configuration for the shipflow pipeline.

Settings are read from the environment (optionally seeded from a ``.env``
file) and validated into a ``PipelineConfig`` value that is passed
explicitly to every engine.
"""

import os
import json
import logging
from typing import Dict, List, Optional

import pytz
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from shipflow.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_VENDOR_TIER_MAP = {
    'TIER 1': 'A', 'TIER 2': 'B', 'TIER 3': 'C',
    'TIER 4': 'C', 'TIER 5': 'D', 'TIER 6': 'D',
}


class SheetNames(BaseModel):
    """Names of the grid tables used by the pipeline."""

    raw_data: str = 'Raw Data'
    clean_data: str = 'Clean Data'
    cols_to_send: str = 'Cols to Send'
    mail_log: str = 'Mail Log'
    pdf_data: str = 'PDF Data'

    def all_names(self) -> List[str]:
        return [self.raw_data, self.clean_data, self.cols_to_send, self.mail_log, self.pdf_data]


class SourceConfig(BaseModel):
    """Inbound mailbox search settings."""

    server: Optional[str] = None
    port: int = 993
    username: Optional[str] = None
    password: Optional[str] = None
    use_ssl: bool = True
    inbox: str = 'INBOX'
    processed_label: str = 'CSV_Processed'
    date_range_days: int = 2
    max_messages: int = 10

    @field_validator('date_range_days', 'max_messages')
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError('Value cannot be negative')
        return v

    @field_validator('processed_label')
    @classmethod
    def validate_label(cls, v):
        if not v or not v.strip():
            raise ValueError('Processed label is required')
        if any(ch.isspace() for ch in v.strip()):
            raise ValueError('Processed label cannot contain whitespace')
        return v.strip()


class DataConfig(BaseModel):
    """Cleaning, enrichment and duplicate-check settings."""

    tier_column_name: str = 'Tier'
    vendor_tier_column_name: str = 'Vendor Tier'
    vendor_tier_map: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_VENDOR_TIER_MAP))
    vendor_tier_default: str = 'N/A'
    group_column_name: str = 'Sender'
    header_validation: bool = True
    duplicate_check: bool = True
    duplicate_check_columns: List[str] = Field(default_factory=list)


class EmailConfig(BaseModel):
    """Outbound delivery settings."""

    recipient: str = ''
    sender_name: str = 'Data Export System'
    smtp_server: str = 'smtp.gmail.com'
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True


class PdfConfig(BaseModel):
    """PDF text extraction settings."""

    enabled: bool = True
    ocr_language: str = 'en'
    temp_dir: Optional[str] = None


class StoreConfig(BaseModel):
    """Tabular store backend settings."""

    backend: str = 'sqlite'
    sqlite_path: str = 'data/shipflow.db'
    database_url: Optional[str] = None

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v):
        backend = v.strip().lower()
        if backend not in ('sqlite', 'postgres', 'memory'):
            raise ValueError(f"Unsupported store backend: '{v}'")
        return backend


class PipelineConfig(BaseModel):
    """Complete pipeline configuration."""

    sheets: SheetNames = Field(default_factory=SheetNames)
    source: SourceConfig = Field(default_factory=SourceConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    pdf: PdfConfig = Field(default_factory=PdfConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    timezone: str = 'UTC'
    lock_file: str = 'data/shipflow.lock'
    lock_timeout_seconds: float = 0
    polling_interval_seconds: int = 300

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        try:
            pytz.timezone(v)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: '{v}'")
        return v

    @property
    def tz(self):
        return pytz.timezone(self.timezone)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'y')


def _env_list(name: str) -> List[str]:
    value = os.getenv(name, '')
    return [item.strip() for item in value.split(',') if item.strip()]


def _env_tier_map() -> Dict[str, str]:
    """Read VENDOR_TIER_MAP as JSON, falling back to the built-in map."""
    value = os.getenv('VENDOR_TIER_MAP')
    if not value:
        return dict(DEFAULT_VENDOR_TIER_MAP)

    try:
        mapping = json.loads(value)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"VENDOR_TIER_MAP is not valid JSON: {e}")

    if not isinstance(mapping, dict):
        raise ConfigurationError("VENDOR_TIER_MAP must be a JSON object")

    return {str(k).strip(): str(v) for k, v in mapping.items()}


def load_config(env_file: str = None) -> PipelineConfig:
    """Build a PipelineConfig from environment variables."""
    load_dotenv(env_file)

    try:
        config = PipelineConfig(
            sheets=SheetNames(
                raw_data=os.getenv('SHEET_RAW_DATA', 'Raw Data'),
                clean_data=os.getenv('SHEET_CLEAN_DATA', 'Clean Data'),
                cols_to_send=os.getenv('SHEET_COLS_TO_SEND', 'Cols to Send'),
                mail_log=os.getenv('SHEET_MAIL_LOG', 'Mail Log'),
                pdf_data=os.getenv('SHEET_PDF_DATA', 'PDF Data'),
            ),
            source=SourceConfig(
                server=os.getenv('IMAP_SERVER'),
                port=int(os.getenv('IMAP_PORT', '993')),
                username=os.getenv('IMAP_USERNAME'),
                password=os.getenv('IMAP_PASSWORD'),
                use_ssl=_env_bool('IMAP_USE_SSL', True),
                inbox=os.getenv('IMAP_INBOX', 'INBOX'),
                processed_label=os.getenv('IMAP_PROCESSED_LABEL', 'CSV_Processed'),
                date_range_days=int(os.getenv('IMAP_DATE_RANGE_DAYS', '2')),
                max_messages=int(os.getenv('IMAP_MAX_MESSAGES', '10')),
            ),
            data=DataConfig(
                tier_column_name=os.getenv('TIER_COLUMN_NAME', 'Tier'),
                vendor_tier_map=_env_tier_map(),
                group_column_name=os.getenv('GROUP_COLUMN_NAME', 'Sender'),
                header_validation=_env_bool('HEADER_VALIDATION', True),
                duplicate_check=_env_bool('DUPLICATE_CHECK', True),
                duplicate_check_columns=_env_list('DUPLICATE_CHECK_COLUMNS'),
            ),
            email=EmailConfig(
                recipient=os.getenv('REPORT_RECIPIENT', ''),
                sender_name=os.getenv('REPORT_SENDER_NAME', 'Data Export System'),
                smtp_server=os.getenv('SMTP_SERVER', 'smtp.gmail.com'),
                smtp_port=int(os.getenv('SMTP_PORT', '587')),
                smtp_username=os.getenv('SMTP_USERNAME'),
                smtp_password=os.getenv('SMTP_PASSWORD'),
                smtp_use_tls=_env_bool('SMTP_USE_TLS', True),
            ),
            pdf=PdfConfig(
                enabled=_env_bool('PDF_EXTRACTION_ENABLED', True),
                ocr_language=os.getenv('PDF_OCR_LANGUAGE', 'en'),
                temp_dir=os.getenv('PDF_TEMP_DIR'),
            ),
            store=StoreConfig(
                backend=os.getenv('STORE_BACKEND', 'sqlite'),
                sqlite_path=os.getenv('SQLITE_DB_PATH', 'data/shipflow.db'),
                database_url=os.getenv('DATABASE_URL'),
            ),
            timezone=os.getenv('PIPELINE_TIMEZONE', 'UTC'),
            lock_file=os.getenv('PIPELINE_LOCK_FILE', 'data/shipflow.lock'),
            lock_timeout_seconds=float(os.getenv('PIPELINE_LOCK_TIMEOUT_SECONDS', '0')),
            polling_interval_seconds=int(os.getenv('INGESTION_INTERVAL_SECONDS', '300')),
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")

    logger.info(f"Configuration loaded (store backend: {config.store.backend})")
    return config
