"""Tests for the streaming flattener."""

import io
import json
import logging

import pytest
from decimal import Decimal
from json_kv.flattener import Flattener, encode_scalar
from json_kv.keypath import KeyPathCodec
from json_kv.storage import MemoryStorageAdapter
from json_kv.types import ErrorType, ProcessingError


def _flatten(document, max_batch_bytes=1024 * 1024, codec=None):
    storage = MemoryStorageAdapter(max_batch_bytes=max_batch_bytes)
    if not isinstance(document, bytes):
        document = json.dumps(document).encode("utf-8")
    result = Flattener(storage, codec).flatten(io.BytesIO(document))
    return storage, result


class TestEncodeScalar:
    """Tests for canonical scalar encoding."""

    def test_literals(self):
        assert encode_scalar(True) == b"true"
        assert encode_scalar(False) == b"false"
        assert encode_scalar(None) == b"null"
        assert encode_scalar(42) == b"42"

    def test_decimal_keeps_source_digits(self):
        assert encode_scalar(Decimal("1.50")) == b"1.50"
        assert encode_scalar(Decimal("1e3")) == b"1E+3"

    def test_string_escaping_without_ascii_escapes(self):
        assert encode_scalar('say "hi"\n') == b'"say \\"hi\\"\\n"'
        assert encode_scalar("é") == '"é"'.encode("utf-8")


class TestFlattener:
    """Tests for Flattener class."""

    def test_one_record_per_leaf(self):
        storage, result = _flatten({"a": {"b": [1, 2]}, "c": "x"})

        assert storage.scan_prefix(b"") == [
            (b"a/b/0", b"1"),
            (b"a/b/1", b"2"),
            (b"c", b'"x"'),
        ]
        assert result.records_written == 3
        assert result.max_depth == 3

    def test_no_container_records(self):
        storage, _ = _flatten({"a": {"b": {"c": 1}}})

        assert storage.get(b"a") is None
        assert storage.get(b"a/b") is None
        assert storage.get(b"a/b/c") == b"1"

    def test_empty_containers_vanish(self):
        storage, result = _flatten({"a": {}, "b": [], "c": [[], {}]})

        assert result.records_written == 0
        assert storage.scan_prefix(b"") == []

    def test_root_scalar_stored_at_empty_key(self):
        storage, result = _flatten(b"42")

        assert storage.get(b"") == b"42"
        assert result.records_written == 1
        assert result.max_depth == 0

    def test_root_array(self):
        storage, _ = _flatten([{"id": 1}, {"id": 2}])

        assert storage.scan_prefix(b"") == [(b"0/id", b"1"), (b"1/id", b"2")]

    def test_numbers_keep_source_text(self):
        storage, _ = _flatten(b'{"price": 1.50, "big": 1e3, "n": -7}')

        assert storage.get(b"price") == b"1.50"
        assert storage.get(b"big") == b"1E+3"
        assert storage.get(b"n") == b"-7"

    def test_scalar_types(self):
        storage, _ = _flatten({"t": True, "f": False, "z": None, "s": "é"})

        assert storage.get(b"t") == b"true"
        assert storage.get(b"f") == b"false"
        assert storage.get(b"z") == b"null"
        assert storage.get(b"s") == '"é"'.encode("utf-8")

    def test_nested_array_indices_restart(self):
        storage, _ = _flatten({"m": [[1, 2], [3]]})

        assert storage.scan_prefix(b"m/") == [(b"m/0/0", b"1"), (b"m/0/1", b"2"), (b"m/1/0", b"3")]

    def test_fixed_width_indices(self):
        storage, _ = _flatten({"a": list(range(11))}, codec=KeyPathCodec(index_width=2))

        keys = [key for key, _ in storage.scan_prefix(b"a/")]
        assert keys[:3] == [b"a/00", b"a/01", b"a/02"]
        assert keys[-1] == b"a/10"

    def test_batch_overflow_commits_and_retries(self, large_json_data):
        storage, result = _flatten(large_json_data, max_batch_bytes=200)

        assert result.batches_committed > 1
        assert result.records_written == 100
        assert len(storage) == 100

    def test_oversize_record_is_fatal(self):
        with pytest.raises(ProcessingError) as exc_info:
            _flatten({"a": "x" * 500}, max_batch_bytes=100)

        assert exc_info.value.error_type == ErrorType.BATCH_OVERFLOW

    def test_malformed_json(self):
        with pytest.raises(ProcessingError) as exc_info:
            _flatten(b'{"users": {"alice": 1}')

        assert exc_info.value.error_type == ErrorType.SYNTAX

    def test_empty_input(self):
        with pytest.raises(ProcessingError) as exc_info:
            _flatten(b"")

        assert exc_info.value.error_type == ErrorType.SYNTAX

    def test_trailing_document_rejected(self):
        with pytest.raises(ProcessingError) as exc_info:
            _flatten(b'{"a": 1} {"b": 2}')

        assert exc_info.value.error_type == ErrorType.SYNTAX

    def test_malformed_input_keeps_committed_batches(self):
        storage = MemoryStorageAdapter(max_batch_bytes=16)
        document = b'{"aaaa": 1, "bbbb": 2, "cccc": 3, "dddd": 4, "eeee": '

        with pytest.raises(ProcessingError):
            Flattener(storage).flatten(io.BytesIO(document))

        # Three 5-byte records fill the first batch; the open one is dropped.
        assert storage.scan_prefix(b"") == [(b"aaaa", b"1"), (b"bbbb", b"2"), (b"cccc", b"3")]

    def test_separator_in_field_name_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            storage, _ = _flatten({"a/b": 1})

        assert "contains the key separator" in caplog.text
        assert storage.get(b"a/b") == b"1"
