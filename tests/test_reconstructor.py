"""Tests for the streaming reconstructor."""

import json

import pytest
from json_kv.io import BufferOutput
from json_kv.keypath import KeyPathCodec
from json_kv.reconstructor import ObjectAssembler, Reconstructor, divergence_index, quote_name
from json_kv.storage import MemoryStorageAdapter
from json_kv.types import QueryKind, WriteStatus


def _storage_with(records):
    storage = MemoryStorageAdapter()
    batch = storage.begin_write_batch()
    for key, value in records:
        assert batch.set(key, value) is WriteStatus.OK
    batch.commit()
    return storage


def _keys_in_order(text):
    return [key for key, _ in json.loads(text, object_pairs_hook=list)]


class _CancelAfter(BufferOutput):
    """Buffer that cancels itself after a number of writes."""

    def __init__(self, writes):
        super().__init__()
        self.remaining = writes

    def write(self, data):
        super().write(data)
        self.remaining -= 1
        if self.remaining <= 0:
            self.cancel()


class TestDivergenceIndex:
    """Tests for divergence_index function."""

    def test_identical_paths(self):
        assert divergence_index(["a", "b"], ["a", "b"]) == 2

    def test_first_difference(self):
        assert divergence_index(["a", "b", "c"], ["a", "x", "c"]) == 1

    def test_open_path_is_prefix(self):
        assert divergence_index(["a"], ["a", "b", "c"]) == 1

    def test_container_path_is_prefix(self):
        assert divergence_index(["a", "b", "c"], ["a"]) == 1

    def test_empty(self):
        assert divergence_index([], ["a"]) == 0
        assert divergence_index(["a"], []) == 0


class TestObjectAssembler:
    """Tests for ObjectAssembler class."""

    def test_single_leaf(self):
        assembler = ObjectAssembler()
        text = assembler.begin() + assembler.add(["x"], b"1") + assembler.finish()

        assert text == b'{"x":1}\n'

    def test_opens_and_closes_levels(self):
        assembler = ObjectAssembler()
        chunks = [
            assembler.begin(),
            assembler.add(["a", "b", "c"], b"1"),
            assembler.add(["a", "d"], b"2"),
            assembler.add(["e"], b"3"),
            assembler.finish(),
        ]

        assert b"".join(chunks) == b'{"a":{"b":{"c":1},"d":2},"e":3}\n'

    def test_stack_depth_tracks_open_containers(self):
        assembler = ObjectAssembler()
        assembler.add(["a", "b", "c"], b"1")
        assert assembler.open_path == ["a", "b"]

        assembler.add(["a", "x"], b"2")
        assert assembler.open_path == ["a"]

        assembler.finish()
        assert assembler.depth == 0

    def test_sibling_containers(self):
        assembler = ObjectAssembler()
        chunks = [
            assembler.begin(),
            assembler.add(["a", "x"], b"1"),
            assembler.add(["b", "y"], b"2"),
            assembler.finish(),
        ]

        assert b"".join(chunks) == b'{"a":{"x":1},"b":{"y":2}}\n'

    def test_quote_name_escapes(self):
        assert quote_name('q"uote\\') == b'"q\\"uote\\\\"'
        assert quote_name("é") == '"é"'.encode("utf-8")


class TestReconstructor:
    """Tests for Reconstructor class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.storage = _storage_with([
            (b"a/b/0", b"1"),
            (b"a/b/1", b"2"),
            (b"a/c", b'"x"'),
            (b"ab", b"true"),
        ])
        self.reconstructor = Reconstructor(self.storage)

    def _query(self, segments):
        output = BufferOutput()
        result = self.reconstructor.query(segments, output)
        return output.getvalue(), result

    def test_nested_object(self):
        text, result = self._query(["a"])

        assert text == b'{"b":{"0":1,"1":2},"c":"x"}\n'
        assert result.kind is QueryKind.OBJECT
        assert result.records_scanned == 3
        assert result.bytes_written == len(text)

    def test_leaf_returns_stored_bytes(self):
        text, result = self._query(["a", "c"])

        assert text == b'"x"\n'
        assert result.kind is QueryKind.LEAF

    def test_missing_path_is_null(self):
        text, result = self._query(["nope"])

        assert text == b"null\n"
        assert result.kind is QueryKind.NOT_FOUND

    def test_prefix_needs_separator_boundary(self):
        text, _ = self._query(["a", "b"])

        assert text == b'{"0":1,"1":2}\n'

    def test_root_query(self):
        text, _ = self._query([])

        assert json.loads(text) == {"a": {"b": {"0": 1, "1": 2}, "c": "x"}, "ab": True}

    def test_query_path_string(self):
        output = BufferOutput()
        self.reconstructor.query_path("/a/b/1/", output)

        assert output.getvalue() == b"2\n"

    def test_lexicographic_index_order(self):
        storage = _storage_with([(KeyPathCodec().encode(["a", i]), str(i).encode()) for i in range(11)])
        output = BufferOutput()
        Reconstructor(storage).query(["a"], output)

        keys = _keys_in_order(output.text())
        assert keys == ["0", "1", "10", "2", "3", "4", "5", "6", "7", "8", "9"]

    def test_fixed_width_index_order(self):
        codec = KeyPathCodec(index_width=2)
        storage = _storage_with([(codec.encode(["a", i]), str(i).encode()) for i in range(11)])
        output = BufferOutput()
        Reconstructor(storage, codec).query_path("a", output)

        keys = _keys_in_order(output.text())
        assert keys == [f"{i:02d}" for i in range(11)]

    def test_field_names_are_json_escaped(self):
        storage = _storage_with([(b'k/q"uote', b"1"), (b"k/line\nbreak", b"2")])
        output = BufferOutput()
        Reconstructor(storage).query(["k"], output)

        assert json.loads(output.text()) == {'q"uote': 1, "line\nbreak": 2}

    def test_empty_field_name(self):
        storage = _storage_with([(b"a/", b"1")])
        output = BufferOutput()
        Reconstructor(storage).query(["a"], output)

        assert output.getvalue() == b'{"":1}\n'

    def test_scalars_emitted_verbatim(self):
        storage = _storage_with([(b"n/x", b"1.50"), (b"n/y", b"1E+3")])
        output = BufferOutput()
        Reconstructor(storage).query(["n"], output)

        assert output.getvalue() == b'{"x":1.50,"y":1E+3}\n'

    def test_cancellation_stops_without_closing(self):
        output = _CancelAfter(writes=1)
        result = self.reconstructor.query(["a"], output)

        assert result.kind is QueryKind.CANCELLED
        assert result.records_scanned == 1
        assert output.getvalue() == b'{"b":{"0":1'

    def test_cancelled_before_first_record(self):
        output = BufferOutput()
        output.cancel()
        result = self.reconstructor.query(["a"], output)

        assert result.kind is QueryKind.CANCELLED
        assert output.getvalue() == b""

    def test_root_scalar_document(self):
        storage = _storage_with([(b"", b'"just a string"')])
        output = BufferOutput()
        result = Reconstructor(storage).query([], output)

        assert output.getvalue() == b'"just a string"\n'
        assert result.kind is QueryKind.LEAF

    @pytest.mark.parametrize("records,expected", [
        ([(b"x/a", b"1")], {"a": 1}),
        ([(b"x/a/b/c/d", b"1"), (b"x/e", b"2")], {"a": {"b": {"c": {"d": 1}}}, "e": 2}),
        ([(b"x/a/b", b"1"), (b"x/a/c/d", b"2"), (b"x/a/c/e", b"3"), (b"x/f/g", b"4")],
         {"a": {"b": 1, "c": {"d": 2, "e": 3}}, "f": {"g": 4}}),
    ])
    def test_nesting_shapes(self, records, expected):
        output = BufferOutput()
        Reconstructor(_storage_with(records)).query(["x"], output)

        assert json.loads(output.text()) == expected
