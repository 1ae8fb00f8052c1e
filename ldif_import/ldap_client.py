"""
LDAP session used to apply imported entries to a directory server.

This module provides a thin wrapper over an ldap3 connection: open a socket,
optionally bind, and add entries one at a time, reporting each add as an
outcome rather than an exception.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ldap3 import Server, Connection, NONE, SIMPLE
from ldap3.core.exceptions import LDAPException

from ldif_import.ldif_reader import DirectoryEntry
from ldif_import.logging_setup import security_logger

logger = logging.getLogger(__name__)


class LDAPConnectionError(Exception):
    """Raised when LDAP connection fails."""
    pass


class LDAPAuthError(Exception):
    """Raised when binding to the LDAP server fails."""
    pass


@dataclass(frozen=True)
class Added:
    detail: str


@dataclass(frozen=True)
class Rejected:
    detail: str


ApplyOutcome = Union[Added, Rejected]


def format_result(result: Optional[Dict[str, Any]]) -> str:
    """
    Render an ldap3 result dictionary as a single line.
    
    Args:
        result: ``Connection.result`` of the last operation
    
    Returns:
        String such as ``LDAPResult(resultCode=0 (success), matchedDN='', diagnosticMessage='')``
    """
    result = result or {}
    code = result.get('result', -1)
    description = result.get('description') or 'unknown'
    matched_dn = result.get('dn') or ''
    message = result.get('message') or ''
    return f"LDAPResult(resultCode={code} ({description}), matchedDN='{matched_dn}', diagnosticMessage='{message}')"


class DirectorySession:
    """
    A single connection to a directory server.
    
    The session is created disconnected; ``connect()`` opens the socket and
    ``bind()`` authenticates it. ``add_entry()`` can be called in any state and
    reports a rejection when there is no usable connection.
    """
    
    def __init__(self, use_ssl: bool = False, connect_timeout: int = 10, receive_timeout: int = 10):
        """
        Initialize a disconnected session.
        
        Args:
            use_ssl: Open the connection over LDAPS
            connect_timeout: Seconds to wait for the socket to open
            receive_timeout: Seconds to wait for each server response
        """
        self.use_ssl = use_ssl
        self.connect_timeout = connect_timeout
        self.receive_timeout = receive_timeout
        
        self.server = None
        self.connection = None
        self.endpoint = None
        self._bound = False
    
    @property
    def connected(self) -> bool:
        return self.connection is not None
    
    @property
    def bound(self) -> bool:
        return self._bound
    
    def connect(self, host: str, port: int) -> 'DirectorySession':
        """
        Open a connection to the directory server without authenticating.
        
        Args:
            host: Server host name or address
            port: Server port
        
        Returns:
            This session
        
        Raises:
            LDAPConnectionError: If the server cannot be reached
        """
        self.endpoint = f"{host}:{port}"
        try:
            self.server = Server(
                host,
                port=port,
                use_ssl=self.use_ssl,
                get_info=NONE,
                connect_timeout=self.connect_timeout
            )
            connection = Connection(
                self.server,
                auto_bind=False,
                raise_exceptions=False,
                receive_timeout=self.receive_timeout
            )
            connection.open()
        except LDAPException as e:
            self.server = None
            raise LDAPConnectionError(f"Error occurred while attempting to connect to {self.endpoint}: {e}")
        
        if connection.closed:
            raise LDAPConnectionError(f"Connection to {self.endpoint} was not opened: {format_result(connection.result)}")
        
        self.connection = connection
        logger.info(f"Connected to LDAP server {self.endpoint}")
        return self
    
    def bind(self, dn: str, password: str):
        """
        Authenticate the session with a simple bind.
        
        Args:
            dn: Bind distinguished name
            password: Bind password
        
        Raises:
            LDAPAuthError: If there is no connection or the server refuses the credentials
        """
        if not self.connected:
            raise LDAPAuthError(f"Cannot bind as {dn}: not connected")
        
        self.connection.authentication = SIMPLE
        self.connection.user = dn
        self.connection.password = password
        try:
            success = self.connection.bind()
        except LDAPException as e:
            security_logger.log_authentication_attempt(self.endpoint, dn, False)
            raise LDAPAuthError(f"Error occurred while attempting to bind as {dn}: {e}")
        
        security_logger.log_authentication_attempt(self.endpoint, dn, bool(success))
        if not success:
            raise LDAPAuthError(f"Bind as {dn} failed: {format_result(self.connection.result)}")
        
        self._bound = True
        logger.info(f"Bound to LDAP server {self.endpoint} as {dn}")
    
    def add_entry(self, entry: DirectoryEntry) -> ApplyOutcome:
        """
        Add one entry to the directory.
        
        Args:
            entry: Entry to create
        
        Returns:
            Added with the server result for result code 0, otherwise Rejected
            with the server or transport failure
        """
        if not self.connected:
            return Rejected(f"Cannot add {entry.dn}: not connected to an LDAP server")
        
        try:
            self.connection.add(entry.dn, attributes=entry.attributes)
        except LDAPException as e:
            logger.error(f"An error occurred while attempting to add {entry.dn}: {e}")
            return Rejected(f"{type(e).__name__}: {e}")
        
        result = self.connection.result or {}
        detail = format_result(result)
        if result.get('result') == 0:
            logger.debug(f"Added {entry.dn}: {detail}")
            return Added(detail)
        
        logger.error(f"An error occurred while attempting to add {entry.dn}: {detail}")
        return Rejected(detail)
    
    def disconnect(self):
        """Close LDAP connection."""
        if self.connection is not None:
            try:
                self.connection.unbind()
                logger.debug(f"LDAP connection to {self.endpoint} closed")
            except LDAPException as e:
                logger.warning(f"Error closing LDAP connection: {e}")
            finally:
                self._bound = False
                self.connection = None
    
    def __enter__(self):
        """Context manager entry."""
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()
