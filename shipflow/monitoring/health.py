"""
Health checks for the store tables and the inbound mailbox.
"""

import logging
from typing import Any, Dict, List, Optional
from datetime import datetime

from shipflow.interfaces import MessageSource, TableStore

logger = logging.getLogger(__name__)


class HealthChecker:
    """Provides health checks for system components."""

    def __init__(self, store: TableStore, table_names: List[str], source: Optional[MessageSource] = None):
        self.store = store
        self.table_names = table_names
        self.source = source

    def check_store_health(self) -> Dict[str, Any]:
        """Check every configured table can be read."""
        start_time = datetime.now()
        tables = {}

        for name in self.table_names:
            try:
                table = self.store.read_table(name)
                tables[name] = {'status': 'healthy', 'rows': len(table.rows)}
            except Exception as e:
                logger.error(f'Table "{name}" health check failed: {e}')
                tables[name] = {'status': 'unhealthy', 'error': str(e)}

        healthy = all(t['status'] == 'healthy' for t in tables.values())
        return {
            'status': 'healthy' if healthy else 'unhealthy',
            'tables': tables,
            'response_time_ms': int((datetime.now() - start_time).total_seconds() * 1000),
            'timestamp': datetime.now().isoformat()
        }

    def check_source_health(self) -> Dict[str, Any]:
        """Check the inbound mailbox is reachable."""
        start_time = datetime.now()

        try:
            with self.source:
                return {
                    'status': 'healthy',
                    'response_time_ms': int((datetime.now() - start_time).total_seconds() * 1000),
                    'timestamp': datetime.now().isoformat()
                }

        except Exception as e:
            logger.error(f"Mailbox health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'response_time_ms': int((datetime.now() - start_time).total_seconds() * 1000),
                'timestamp': datetime.now().isoformat()
            }

    def check_all(self) -> Dict[str, Any]:
        """Run every check and report an overall status."""
        checks = {'store': self.check_store_health()}
        if self.source is not None:
            checks['source'] = self.check_source_health()

        healthy = all(check['status'] == 'healthy' for check in checks.values())
        logger.info(f"Health check - Overall: {'healthy' if healthy else 'unhealthy'}")

        return {
            'status': 'healthy' if healthy else 'unhealthy',
            'checks': checks,
            'timestamp': datetime.now().isoformat()
        }
