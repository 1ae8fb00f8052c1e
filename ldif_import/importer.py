"""
Bulk import of LDIF entries into an LDAP directory.

This module contains the import driver that pulls records from an LDIFReader,
applies each entry through a DirectorySession, and accumulates statistics and
a textual result for the whole run.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ldif_import.config import ImportConfig
from ldif_import.ldap_client import (
    DirectorySession, LDAPConnectionError, LDAPAuthError, Added, Rejected
)
from ldif_import.ldif_reader import (
    LDIFReader, ResourceOpenError, Entry, RecoverableError, FatalError, EndOfStream
)

logger = logging.getLogger(__name__)

RESULT_LABEL = "LDAP Result: "
RESULT_SEPARATOR = " ;; "

STATUS_SUCCESS = 'success'
STATUS_PARTIAL = 'partial'
STATUS_FAILED = 'failed'


@dataclass
class ImportStats:
    """Counters and per-entry details for one import run."""
    
    entries_read: int = 0
    entries_added: int = 0
    errors_encountered: int = 0
    results: List[str] = field(default_factory=list)
    
    def record(self, detail: str):
        self.results.append(detail)
    
    def result_string(self) -> str:
        return RESULT_LABEL + "".join(detail + RESULT_SEPARATOR for detail in self.results)


@dataclass
class ImportReport:
    """Outcome of an import run."""
    
    status: str
    stats: ImportStats
    
    @property
    def result(self) -> str:
        return self.stats.result_string()
    
    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS
    
    def __str__(self) -> str:
        return self.result


class LDIFImporter:
    """
    Import the entries of one LDIF source into one directory server.
    
    Each run opens the source, connects (and binds when credentials are
    configured), then applies entries one at a time. Malformed records and
    rejected entries are counted and the run carries on; only a fatal decode
    error or the end of the source stops it.
    """
    
    def __init__(self, config: ImportConfig,
                 reader_factory: Optional[Callable[[ImportConfig], LDIFReader]] = None,
                 session_factory: Optional[Callable[[ImportConfig], DirectorySession]] = None):
        """
        Initialize importer.
        
        Args:
            config: Settings for the run
            reader_factory: Callable returning an opened reader for the config
            session_factory: Callable returning a disconnected session for the config
        """
        self.config = config
        self.reader_factory = reader_factory or _open_reader
        self.session_factory = session_factory or _new_session
    
    def run(self) -> ImportReport:
        """
        Run the import.
        
        Returns:
            ImportReport with statistics, status and the result string
        """
        stats = ImportStats()
        logger.info(f"Starting LDIF import of {self.config.source_path} into {self.config.endpoint}")
        
        try:
            reader = self.reader_factory(self.config)
        except ResourceOpenError as e:
            logger.error(f"Error reading ldif file: {e}")
            stats.errors_encountered += 1
            stats.record(str(e))
            return self._finish(STATUS_FAILED, stats)
        
        with reader:
            session = self.session_factory(self.config)
            try:
                connected = self._open_session(session, stats)
                self._apply_entries(reader, session, stats)
            finally:
                session.disconnect()
        
        status = STATUS_FAILED if not connected else (STATUS_PARTIAL if stats.errors_encountered else STATUS_SUCCESS)
        return self._finish(status, stats)
    
    def _open_session(self, session: DirectorySession, stats: ImportStats) -> bool:
        """Connect and optionally bind; failures are recorded, not raised."""
        try:
            session.connect(self.config.host, self.config.port)
        except LDAPConnectionError as e:
            logger.error(f"Error occurred while attempting to create connection: {e}")
            stats.errors_encountered += 1
            stats.record(str(e))
            return False
        
        if self.config.has_credentials:
            logger.info(f"Bind DN: {self.config.bind_dn}")
            try:
                session.bind(self.config.bind_dn, self.config.password)
            except LDAPAuthError as e:
                logger.error(f"Error occurred while attempting to bind to the ldap, continuing unauthenticated: {e}")
        return True
    
    def _apply_entries(self, reader: LDIFReader, session: DirectorySession, stats: ImportStats):
        while True:
            outcome = reader.next_record()
            
            if isinstance(outcome, EndOfStream):
                logger.debug("All ldif entries have been read")
                break
            
            if isinstance(outcome, FatalError):
                logger.error(f"No further LDIF processing will be performed: {outcome.message}")
                stats.errors_encountered += 1
                break
            
            if isinstance(outcome, RecoverableError):
                stats.errors_encountered += 1
                continue
            
            if not isinstance(outcome, Entry):
                raise TypeError(f"Unexpected parse outcome: {outcome!r}")
            
            stats.entries_read += 1
            entry = outcome.entry
            logger.debug(f"Read entry {entry}")
            
            applied = session.add_entry(entry)
            if isinstance(applied, Added):
                stats.entries_added += 1
            elif isinstance(applied, Rejected):
                stats.errors_encountered += 1
            stats.record(applied.detail)
    
    def _finish(self, status: str, stats: ImportStats) -> ImportReport:
        logger.info(f"LDIF import {status}: {stats.entries_read} read, {stats.entries_added} added, "
                    f"{stats.errors_encountered} errors")
        return ImportReport(status=status, stats=stats)


def _open_reader(config: ImportConfig) -> LDIFReader:
    return LDIFReader.open(config.source_path, encoding=config.encoding)


def _new_session(config: ImportConfig) -> DirectorySession:
    return DirectorySession(
        use_ssl=config.use_ssl,
        connect_timeout=config.connect_timeout,
        receive_timeout=config.receive_timeout
    )


def run_import(config: ImportConfig) -> ImportReport:
    """
    Convenience function to run one import.
    
    Args:
        config: Settings for the run
    
    Returns:
        ImportReport for the run
    """
    return LDIFImporter(config).run()
