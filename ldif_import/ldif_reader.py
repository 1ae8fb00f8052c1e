"""
Streaming LDIF reader that yields one parse outcome per record.

Records are framed here (line unfolding, comments, blank-line separators,
version header, changetype handling) and each framed record is decoded by
``ldif.LDIFParser``. A malformed record is reported without ending the
stream; only source I/O failures and an unsupported LDIF version stop it.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple, Union
from urllib.parse import urlparse

from ldif import LDIFParser

logger = logging.getLogger(__name__)


class ResourceOpenError(Exception):
    """Raised when an import source cannot be opened."""
    pass


class LDIFOpenError(ResourceOpenError):
    """Raised when an LDIF file cannot be opened for reading."""
    pass


@dataclass(frozen=True)
class DirectoryEntry:
    """A directory entry decoded from an LDIF content record."""
    
    dn: str
    attributes: Dict[str, List[Union[str, bytes]]] = field(default_factory=dict)
    
    def attribute_names(self) -> List[str]:
        return list(self.attributes)
    
    def __str__(self) -> str:
        return f"{self.dn} ({', '.join(self.attribute_names())})"


@dataclass(frozen=True)
class Entry:
    entry: DirectoryEntry


@dataclass(frozen=True)
class RecoverableError:
    message: str
    line: int = 0


@dataclass(frozen=True)
class FatalError:
    message: str
    line: int = 0


@dataclass(frozen=True)
class EndOfStream:
    pass


ParseOutcome = Union[Entry, RecoverableError, FatalError, EndOfStream]


class _RecordError(Exception):
    """Malformed record with known boundaries."""
    pass


class LDIFReader:
    """
    Read directory entries from an LDIF stream one record at a time.
    
    The reader owns its source handle and must be closed; it can be used as a
    context manager. ``next_record()`` never raises for malformed input, it
    returns an outcome instead.
    """
    
    SUPPORTED_VERSION = '1'
    URL_SCHEMES = [b'file']
    
    def __init__(self, source: BinaryIO, name: Optional[str] = None, encoding: str = 'utf-8'):
        """
        Initialize reader around an open binary stream.
        
        Args:
            source: Binary file-like object positioned at the start of the LDIF data
            name: Name used in log and error messages
            encoding: Encoding used to decode attribute values
        """
        self.name = name or getattr(source, 'name', '<stream>')
        self.encoding = encoding
        self._source = source
        self._closed = False
        self._finished = False
        self._at_start = True
        
        self.line_number = 0
        self.records_read = 0
        self.errors_seen = 0
    
    @classmethod
    def open(cls, path: str, encoding: str = 'utf-8') -> 'LDIFReader':
        """
        Open an LDIF file for reading.
        
        Args:
            path: Path to the LDIF file
            encoding: Encoding used to decode attribute values
        
        Returns:
            LDIFReader owning the opened file
        
        Raises:
            LDIFOpenError: If the file cannot be opened
        """
        try:
            source = open(path, 'rb')
        except OSError as e:
            raise LDIFOpenError(f"Unable to open LDIF source '{path}': {e}")
        logger.debug(f"Opened LDIF source {path}")
        return cls(source, name=path, encoding=encoding)
    
    @property
    def closed(self) -> bool:
        return self._closed
    
    def close(self):
        """Release the underlying source. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._source.close()
            logger.debug(f"Closed LDIF source {self.name}")
        except OSError as e:
            logger.warning(f"Error closing LDIF source {self.name}: {e}")
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
    
    def __iter__(self) -> Iterator[ParseOutcome]:
        """Yield outcomes up to and including the terminating one."""
        while True:
            outcome = self.next_record()
            yield outcome
            if isinstance(outcome, (EndOfStream, FatalError)):
                return
    
    def next_record(self) -> ParseOutcome:
        """
        Decode the next record from the source.
        
        Returns:
            Entry for a well-formed record, RecoverableError for a malformed
            record that was skipped, FatalError when reading cannot continue,
            EndOfStream after the last record
        """
        if self._closed:
            return FatalError(f"LDIF source {self.name} is closed", self.line_number)
        if self._finished:
            return EndOfStream()
        
        first_block, self._at_start = self._at_start, False
        try:
            start_line, lines = self._read_block()
            if first_block:
                lines = self._consume_version(lines)
                if not lines:
                    start_line, lines = self._read_block()
        except OSError as e:
            self._finished = True
            self.errors_seen += 1
            logger.error(f"An error occurred while reading from {self.name}, "
                         f"no further LDIF processing will be performed: {e}")
            return FatalError(f"Error reading LDIF source {self.name}: {e}", self.line_number)
        except _UnsupportedVersion as e:
            self._finished = True
            self.errors_seen += 1
            logger.error(str(e))
            return FatalError(str(e), self.line_number)
        except _RecordError as e:
            self.errors_seen += 1
            logger.warning(f"Skipping malformed LDIF record in {self.name}: {e}")
            return RecoverableError(str(e), self.line_number)
        
        if not lines:
            self._finished = True
            logger.debug(f"All LDIF entries have been read from {self.name}")
            return EndOfStream()
        
        try:
            entry = self._decode_record(lines)
        except _RecordError as e:
            self.errors_seen += 1
            message = f"Line {start_line}: {e}"
            logger.warning(f"Skipping malformed LDIF record in {self.name}: {message}")
            return RecoverableError(message, start_line)
        
        self.records_read += 1
        return Entry(entry)
    
    def _readline(self) -> Optional[bytes]:
        raw = self._source.readline()
        if not raw:
            return None
        self.line_number += 1
        if raw.endswith(b'\r\n'):
            return raw[:-2]
        if raw.endswith(b'\n'):
            return raw[:-1]
        return raw
    
    def _read_block(self) -> Tuple[int, List[bytes]]:
        """
        Read the unfolded, comment-free lines of the next record.
        
        Returns:
            Tuple of (first line number, logical lines); lines are empty at end of input
        """
        while True:
            logical = []
            is_comment = []
            start_line = 0
            orphan_continuation = False
            
            while True:
                line = self._readline()
                if line is None:
                    break
                if line.startswith(b' ') and (logical or orphan_continuation or line.strip()):
                    if logical:
                        logical[-1] += line[1:]
                    else:
                        orphan_continuation = True
                        start_line = start_line or self.line_number
                    continue
                if not line.strip():
                    if logical or orphan_continuation:
                        break
                    continue
                if not logical:
                    start_line = start_line or self.line_number
                logical.append(line)
                is_comment.append(line.startswith(b'#'))
            
            if orphan_continuation:
                raise _RecordError(f"Line {start_line}: continuation line without a preceding line")
            
            lines = [line for line, comment in zip(logical, is_comment) if not comment]
            # Comment-only block, keep reading
            if logical and not lines:
                continue
            return start_line, lines
    
    def _consume_version(self, lines: List[bytes]) -> List[bytes]:
        if not lines or not lines[0].lower().startswith(b'version:'):
            return lines
        version = lines[0].split(b':', 1)[1].strip().decode('ascii', 'replace')
        if version != self.SUPPORTED_VERSION:
            raise _UnsupportedVersion(f"Unsupported LDIF version {version!r} in {self.name}")
        return lines[1:]
    
    def _decode_record(self, lines: List[bytes]) -> DirectoryEntry:
        content = []
        for line in lines:
            attr_type, sep, value = line.partition(b':')
            if sep and attr_type.strip().lower() == b'changetype':
                changetype = value.strip().decode('ascii', 'replace').lower()
                if changetype != 'add':
                    raise _RecordError(f"Unsupported changetype {changetype!r}, only entry additions can be imported")
                continue
            if sep and value.startswith(b'<'):
                scheme = urlparse(value[1:].strip()).scheme.lower()
                if scheme not in self.URL_SCHEMES:
                    raise _RecordError(f"Cannot load value of {attr_type.decode('ascii', 'replace')} "
                                       f"from URL scheme {scheme.decode('ascii', 'replace')!r}")
            content.append(line)
        
        if not content or not content[0].lower().startswith(b'dn:'):
            raise _RecordError('First line of record does not start with "dn:"')
        
        parser = LDIFParser(
            io.BytesIO(b'\n'.join(content) + b'\n'),
            encoding=self.encoding,
            process_url_schemes=self.URL_SCHEMES
        )
        try:
            records = list(parser.parse())
        except ValueError as e:
            raise _RecordError(str(e))
        except OSError as e:
            raise _RecordError(f"Unable to load URL value: {e}")
        
        if len(records) != 1:
            raise _RecordError(f"Expected one record, decoded {len(records)}")
        
        dn, attributes = records[0]
        if not dn:
            raise _RecordError("Record has an empty dn")
        if not attributes:
            raise _RecordError(f"Entry {dn} has no attributes")
        
        return DirectoryEntry(dn=dn, attributes={name: list(values) for name, values in attributes.items()})


class _UnsupportedVersion(Exception):
    pass
