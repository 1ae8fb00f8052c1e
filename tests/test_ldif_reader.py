#!/usr/bin/env python3
"""
Unit tests for the streaming LDIF reader.
"""

import io
import os
import sys
import tempfile
import unittest

# Add the project directory to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ldif_import.ldif_reader import (
    LDIFReader, LDIFOpenError, ResourceOpenError, DirectoryEntry,
    Entry, RecoverableError, FatalError, EndOfStream
)


ALICE = (
    b"dn: cn=alice,ou=people,dc=example,dc=com\n"
    b"objectClass: inetOrgPerson\n"
    b"cn: alice\n"
    b"sn: Smith\n"
)

BOB = (
    b"dn: cn=bob,ou=people,dc=example,dc=com\n"
    b"objectClass: inetOrgPerson\n"
    b"cn: bob\n"
    b"sn: Jones\n"
)


class CountingStream(io.BytesIO):
    """BytesIO that counts close() calls."""
    
    def __init__(self, data):
        super().__init__(data)
        self.close_calls = 0
    
    def close(self):
        self.close_calls += 1
        super().close()


class FailingStream:
    """Stream whose reads fail after a number of lines."""
    
    def __init__(self, data, fail_after):
        self._lines = io.BytesIO(data).readlines()
        self._fail_after = fail_after
        self._read = 0
        self.name = '<failing>'
    
    def readline(self):
        if self._read >= self._fail_after:
            raise OSError("device not ready")
        self._read += 1
        return self._lines.pop(0) if self._lines else b''
    
    def close(self):
        pass


def reader_for(data):
    return LDIFReader(io.BytesIO(data), name='<test>')


def read_all(reader):
    return list(reader)


class TestLDIFReaderRecords(unittest.TestCase):
    """Test cases for decoding well-formed input."""
    
    def test_single_entry(self):
        """Test a single content record."""
        reader = reader_for(ALICE)
        
        outcome = reader.next_record()
        
        self.assertIsInstance(outcome, Entry)
        self.assertEqual(outcome.entry.dn, 'cn=alice,ou=people,dc=example,dc=com')
        self.assertEqual(outcome.entry.attributes['cn'], ['alice'])
        self.assertEqual(outcome.entry.attribute_names(), ['objectClass', 'cn', 'sn'])
        self.assertIsInstance(reader.next_record(), EndOfStream)
        self.assertEqual(reader.records_read, 1)
    
    def test_multiple_entries_separated_by_blank_lines(self):
        """Test records separated by one or more blank lines."""
        reader = reader_for(ALICE + b"\n\n\n" + BOB + b"\n")
        
        outcomes = read_all(reader)
        
        self.assertEqual([type(o) for o in outcomes], [Entry, Entry, EndOfStream])
        self.assertEqual(outcomes[1].entry.dn, 'cn=bob,ou=people,dc=example,dc=com')
    
    def test_end_of_stream_is_repeatable(self):
        """Test that EndOfStream is returned on every call after the last record."""
        reader = reader_for(ALICE)
        reader.next_record()
        
        self.assertIsInstance(reader.next_record(), EndOfStream)
        self.assertIsInstance(reader.next_record(), EndOfStream)
    
    def test_empty_input(self):
        """Test an empty source."""
        self.assertIsInstance(reader_for(b"").next_record(), EndOfStream)
        self.assertIsInstance(reader_for(b"\n\n# only a comment\n\n").next_record(), EndOfStream)
    
    def test_crlf_line_endings(self):
        """Test DOS line endings."""
        reader = reader_for(ALICE.replace(b"\n", b"\r\n"))
        
        outcome = reader.next_record()
        
        self.assertIsInstance(outcome, Entry)
        self.assertEqual(outcome.entry.attributes['sn'], ['Smith'])
    
    def test_folded_lines_are_joined(self):
        """Test continuation lines."""
        data = (
            b"dn: cn=carol,ou=people,\n"
            b" dc=example,dc=com\n"
            b"objectClass: inetOrgPerson\n"
            b"cn: carol\n"
            b"sn: Bro\n"
            b" wn\n"
        )
        
        outcome = reader_for(data).next_record()
        
        self.assertIsInstance(outcome, Entry)
        self.assertEqual(outcome.entry.dn, 'cn=carol,ou=people,dc=example,dc=com')
        self.assertEqual(outcome.entry.attributes['sn'], ['Brown'])
    
    def test_comments_are_ignored(self):
        """Test comment lines and their continuations."""
        data = (
            b"# people export\n"
            b"#  continued comment\n"
            b"dn: cn=alice,ou=people,dc=example,dc=com\n"
            b"# inline comment\n"
            b"objectClass: inetOrgPerson\n"
            b"cn: alice\n"
            b"sn: Smith\n"
        )
        
        outcome = reader_for(data).next_record()
        
        self.assertIsInstance(outcome, Entry)
        self.assertEqual(outcome.entry.attribute_names(), ['objectClass', 'cn', 'sn'])
    
    def test_multi_valued_attribute_keeps_order(self):
        """Test repeated attribute lines."""
        data = ALICE + b"mail: alice@example.com\nmail: a.smith@example.com\n"
        
        outcome = reader_for(data).next_record()
        
        self.assertEqual(outcome.entry.attributes['mail'], ['alice@example.com', 'a.smith@example.com'])
    
    def test_base64_value(self):
        """Test base64-encoded attribute values."""
        data = ALICE + b"description:: SGVsbG8gV29ybGQ=\n"
        
        outcome = reader_for(data).next_record()
        
        self.assertIsInstance(outcome, Entry)
        self.assertEqual(outcome.entry.attributes['description'], ['Hello World'])
    
    def test_version_header(self):
        """Test a leading version line, on its own or attached to the first record."""
        attached = reader_for(b"version: 1\n" + ALICE)
        separate = reader_for(b"version: 1\n\n" + ALICE)
        
        self.assertIsInstance(attached.next_record(), Entry)
        self.assertIsInstance(separate.next_record(), Entry)
    
    def test_changetype_add_is_accepted(self):
        """Test add change records."""
        data = (
            b"dn: cn=alice,ou=people,dc=example,dc=com\n"
            b"changetype: add\n"
            b"objectClass: inetOrgPerson\n"
            b"cn: alice\n"
            b"sn: Smith\n"
        )
        
        outcome = reader_for(data).next_record()
        
        self.assertIsInstance(outcome, Entry)
        self.assertNotIn('changetype', outcome.entry.attributes)
    
    def test_many_comment_only_blocks(self):
        """Test thousands of comment-only blocks before an entry."""
        reader = reader_for(b"# c\n\n" * 5000 + ALICE)
        
        outcomes = read_all(reader)
        
        self.assertEqual([type(o) for o in outcomes], [Entry, EndOfStream])
        self.assertEqual(outcomes[0].entry.dn, 'cn=alice,ou=people,dc=example,dc=com')
    
    def test_space_only_line_continues_record(self):
        """Test that a line holding only a space is a continuation, not a separator."""
        data = (
            b"dn: cn=alice,ou=people,dc=example,dc=com\n"
            b"cn: alice\n"
            b" \n"
            b"sn: Smith\n"
        )
        
        outcomes = read_all(reader_for(data))
        
        self.assertEqual([type(o) for o in outcomes], [Entry, EndOfStream])
        self.assertEqual(outcomes[0].entry.attributes['cn'], ['alice'])
        self.assertEqual(outcomes[0].entry.attributes['sn'], ['Smith'])
    
    def test_file_url_value_is_loaded(self):
        """Test attr:< file:// values."""
        with tempfile.NamedTemporaryFile(mode='wb', suffix='.txt', delete=False) as f:
            f.write(b"Loaded from file")
        self.addCleanup(os.unlink, f.name)
        data = ALICE + b"description:< file://" + os.path.abspath(f.name).encode('ascii') + b"\n"
        
        outcome = reader_for(data).next_record()
        
        self.assertIsInstance(outcome, Entry)
        self.assertEqual(outcome.entry.attributes['description'], ['Loaded from file'])


class TestLDIFReaderErrors(unittest.TestCase):
    """Test cases for malformed input and source failures."""
    
    def test_record_without_dn_is_recoverable(self):
        """Test a record whose first line is not a dn."""
        reader = reader_for(b"objectClass: top\ncn: nobody\n\n" + ALICE)
        
        outcomes = read_all(reader)
        
        self.assertEqual([type(o) for o in outcomes], [RecoverableError, Entry, EndOfStream])
        self.assertIn('dn:', outcomes[0].message)
        self.assertEqual(outcomes[0].line, 1)
        self.assertEqual(reader.errors_seen, 1)
        self.assertEqual(reader.records_read, 1)
    
    def test_line_without_separator_is_recoverable(self):
        """Test an attribute line with no colon."""
        bad = b"dn: cn=bad,ou=people,dc=example,dc=com\nthis line has no separator\n"
        reader = reader_for(bad + b"\n" + ALICE)
        
        outcomes = read_all(reader)
        
        self.assertEqual([type(o) for o in outcomes], [RecoverableError, Entry, EndOfStream])
    
    def test_duplicate_dn_is_recoverable(self):
        """Test a record with two dn lines."""
        bad = b"dn: cn=one,dc=example,dc=com\ndn: cn=two,dc=example,dc=com\ncn: one\n"
        reader = reader_for(bad + b"\n" + BOB)
        
        outcomes = read_all(reader)
        
        self.assertEqual([type(o) for o in outcomes], [RecoverableError, Entry, EndOfStream])
    
    def test_entry_without_attributes_is_recoverable(self):
        """Test a record that only has a dn."""
        reader = reader_for(b"dn: cn=empty,dc=example,dc=com\n\n" + ALICE)
        
        outcomes = read_all(reader)
        
        self.assertEqual([type(o) for o in outcomes], [RecoverableError, Entry, EndOfStream])
        self.assertIn('no attributes', outcomes[0].message)
    
    def test_unsupported_changetype_is_recoverable(self):
        """Test that only add change records are imported."""
        modify = (
            b"dn: cn=alice,ou=people,dc=example,dc=com\n"
            b"changetype: modify\n"
            b"replace: sn\n"
            b"sn: Smythe\n"
        )
        reader = reader_for(modify + b"\n" + BOB)
        
        outcomes = read_all(reader)
        
        self.assertEqual([type(o) for o in outcomes], [RecoverableError, Entry, EndOfStream])
        self.assertIn('modify', outcomes[0].message)
    
    def test_leading_continuation_line_is_recoverable(self):
        """Test a record that starts with a continuation line."""
        reader = reader_for(b" orphan\ncn: x\n\n" + ALICE)
        
        outcomes = read_all(reader)
        
        self.assertEqual([type(o) for o in outcomes], [RecoverableError, Entry, EndOfStream])
        self.assertIn('continuation', outcomes[0].message)
    
    def test_consecutive_recoverable_errors_do_not_stop_reading(self):
        """Test several malformed records in a row."""
        bad = b"cn: nodn\n\n"
        reader = reader_for(bad * 5 + ALICE)
        
        outcomes = read_all(reader)
        
        self.assertEqual(len([o for o in outcomes if isinstance(o, RecoverableError)]), 5)
        self.assertIsInstance(outcomes[-2], Entry)
        self.assertIsInstance(outcomes[-1], EndOfStream)
    
    def test_unsupported_version_is_fatal(self):
        """Test an LDIF version other than 1."""
        reader = reader_for(b"version: 2\n\n" + ALICE)
        
        self.assertIsInstance(reader.next_record(), FatalError)
        self.assertIsInstance(reader.next_record(), EndOfStream)
    
    def test_read_failure_is_fatal(self):
        """Test an I/O error while reading the source."""
        reader = LDIFReader(FailingStream(ALICE + b"\n" + BOB, fail_after=6))
        
        first = reader.next_record()
        second = reader.next_record()
        
        self.assertIsInstance(first, Entry)
        self.assertIsInstance(second, FatalError)
        self.assertIn('device not ready', second.message)
    
    def test_iteration_stops_after_fatal_error(self):
        """Test that iterating ends with the fatal outcome."""
        reader = LDIFReader(FailingStream(ALICE, fail_after=0))
        
        outcomes = read_all(reader)
        
        self.assertEqual(len(outcomes), 1)
        self.assertIsInstance(outcomes[0], FatalError)
    
    def test_missing_url_file_is_recoverable(self):
        """Test that an unreadable file URL rejects the record instead of adding an empty value."""
        data = ALICE + b"photo:< file:///nonexistent/ldif-import/photo.jpg\n\n" + BOB
        
        outcomes = read_all(reader_for(data))
        
        self.assertEqual([type(o) for o in outcomes], [RecoverableError, Entry, EndOfStream])
        self.assertIn('Unable to load URL value', outcomes[0].message)
    
    def test_unsupported_url_scheme_is_recoverable(self):
        data = ALICE + b"photo:< http://example.com/photo.jpg\n"
        
        outcome = reader_for(data).next_record()
        
        self.assertIsInstance(outcome, RecoverableError)
        self.assertIn("'http'", outcome.message)


class TestLDIFReaderResource(unittest.TestCase):
    """Test cases for opening and releasing the source."""
    
    def test_close_is_idempotent(self):
        """Test closing twice releases the stream once."""
        stream = CountingStream(ALICE)
        reader = LDIFReader(stream)
        
        reader.close()
        reader.close()
        
        self.assertTrue(reader.closed)
        self.assertEqual(stream.close_calls, 1)
    
    def test_read_after_close_is_fatal(self):
        """Test that a closed reader cannot be read."""
        reader = reader_for(ALICE)
        reader.close()
        
        self.assertIsInstance(reader.next_record(), FatalError)
    
    def test_context_manager_closes(self):
        """Test reader as context manager."""
        stream = CountingStream(ALICE)
        
        with LDIFReader(stream) as reader:
            reader.next_record()
        
        self.assertEqual(stream.close_calls, 1)
    
    def test_open_file(self):
        """Test opening an LDIF file from disk."""
        with tempfile.NamedTemporaryFile(suffix='.ldif', delete=False) as f:
            f.write(ALICE)
            path = f.name
        
        try:
            with LDIFReader.open(path) as reader:
                self.assertEqual(reader.name, path)
                self.assertIsInstance(reader.next_record(), Entry)
        finally:
            os.unlink(path)
    
    def test_open_missing_file(self):
        """Test opening a path that does not exist."""
        with self.assertRaises(LDIFOpenError) as ctx:
            LDIFReader.open('/nonexistent/path/people.ldif')
        
        self.assertIsInstance(ctx.exception, ResourceOpenError)
        self.assertIn('/nonexistent/path/people.ldif', str(ctx.exception))


class TestDirectoryEntry(unittest.TestCase):
    """Test cases for DirectoryEntry."""
    
    def test_str_lists_attribute_names(self):
        entry = DirectoryEntry('cn=x,dc=example,dc=com', {'objectClass': ['top'], 'cn': ['x']})
        
        self.assertEqual(str(entry), 'cn=x,dc=example,dc=com (objectClass, cn)')


if __name__ == '__main__':
    unittest.main()
