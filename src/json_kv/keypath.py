"""Key-path codec: JSON tree positions to byte-string keys and back."""

from typing import List, Sequence, Union

from .types import ErrorType, ProcessingError

Segment = Union[str, int]

_ENCODING = "utf-8"
_ERRORS = "surrogatepass"


class KeyPathCodec:
    """
    Encodes a root-to-leaf path as segment texts joined by a separator.

    The root path is empty and encodes to ``b""``. Key K1 is an ancestor of
    K2 exactly when ``K1 + separator`` is a byte prefix of K2, which only
    holds while no field name contains the separator.

    Array indices render as plain decimal unless ``index_width`` is set, in
    which case they are zero-padded so byte order matches numeric order;
    an index with more digits than the width is rejected.
    """

    def __init__(self, separator: str = "/", index_width: int = 0):
        if len(separator) != 1:
            raise ValueError("separator must be a single character")
        self.separator = separator
        self.separator_bytes = separator.encode(_ENCODING)
        self.index_width = index_width

    def segment_text(self, segment: Segment) -> str:
        """Textual form of one segment."""
        if isinstance(segment, bool):
            raise TypeError("bool is not a valid path segment")
        if isinstance(segment, int):
            if segment < 0:
                raise ValueError(f"array index must be non-negative, got {segment}")
            text = str(segment)
            if self.index_width:
                if len(text) > self.index_width:
                    raise ProcessingError(
                        f"Array index {segment} does not fit in {self.index_width} digits",
                        ErrorType.PATH,
                        context={"index": segment, "index_width": self.index_width},
                    )
                return text.zfill(self.index_width)
            return text
        return segment

    def encode(self, segments: Sequence[Segment]) -> bytes:
        text = self.separator.join(self.segment_text(s) for s in segments)
        return text.encode(_ENCODING, _ERRORS)

    def split(self, key: bytes) -> List[str]:
        """Inverse of encode on segment texts."""
        if not key:
            return []
        return key.decode(_ENCODING, _ERRORS).split(self.separator)

    def split_relative(self, remainder: bytes) -> List[str]:
        """Split a key tail left after stripping a child prefix.

        Unlike split, an empty tail is one empty field name, not the root.
        """
        return remainder.decode(_ENCODING, _ERRORS).split(self.separator)

    def child_prefix(self, segments: Sequence[Segment]) -> bytes:
        """Byte prefix shared by every key strictly below the given path."""
        if not segments:
            return b""
        return self.encode(segments) + self.separator_bytes

    def is_ancestor(self, ancestor: bytes, key: bytes) -> bool:
        if not ancestor:
            return bool(key)
        return key.startswith(ancestor + self.separator_bytes)

    def contains_separator(self, name: str) -> bool:
        return self.separator in name

    def parse_path(self, path: str) -> List[Segment]:
        """
        Turn an external query string like ``"a/b/0"`` into segments.

        Leading and trailing separators are ignored; the empty string is the
        root. With fixed-width indices, all-digit segments that fit the width
        become ints so they pick up the same padding the import used.
        """
        path = path.strip(self.separator)
        if not path:
            return []

        segments: List[Segment] = []
        for part in path.split(self.separator):
            if (self.index_width and len(part) <= self.index_width
                    and part.isascii() and part.isdigit()):
                segments.append(int(part))
            else:
                segments.append(part)
        return segments
