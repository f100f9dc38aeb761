"""Exception hierarchy for pgtools.

Everything raised on purpose by the library derives from PgToolsError so the
CLI can turn it into a clean one-line message. Query misses are not errors:
lookups return None (or an empty list) for names that are not indexed.
"""

from __future__ import annotations


class PgToolsError(Exception):
    """Base class for all pgtools errors."""


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class GfaParseError(PgToolsError):
    """A GFA line could not be parsed."""

    def __init__(
        self,
        message: str,
        *,
        line_number: int | None = None,
        byte_offset: int | None = None,
        raw: str | None = None,
    ) -> None:
        self.message = message
        self.line_number = line_number
        self.byte_offset = byte_offset
        self.raw = raw
        super().__init__(str(self))

    def __str__(self) -> str:
        where = []
        if self.line_number is not None:
            where.append(f"line {self.line_number}")
        if self.byte_offset is not None:
            where.append(f"byte {self.byte_offset}")
        prefix = f"GFA parse error at {', '.join(where)}: " if where else "GFA parse error: "
        text = prefix + self.message
        if self.raw is not None:
            raw = self.raw if len(self.raw) <= 80 else self.raw[:77] + "..."
            text += f" [{raw}]"
        return text


class MissingLengthError(GfaParseError):
    """Segment has no sequence ('*') and no LN:i tag."""


class MalformedStepError(GfaParseError):
    """A path or walk step could not be split into name and orientation."""


# ---------------------------------------------------------------------------
# Graph / build
# ---------------------------------------------------------------------------


class DuplicateNameError(PgToolsError):
    def __init__(self, name: str, kind: str = "segment", line_number: int | None = None) -> None:
        self.name = name
        self.kind = kind
        self.line_number = line_number
        msg = f"duplicate {kind} name: {name}"
        if line_number is not None:
            msg += f" (line {line_number})"
        super().__init__(msg)


class UndefinedSegmentError(PgToolsError):
    def __init__(self, segment: str, path: str, line_number: int | None = None) -> None:
        self.segment = segment
        self.path = path
        self.line_number = line_number
        msg = f"path '{path}' references undefined segment: {segment}"
        if line_number is not None:
            msg += f" (line {line_number})"
        super().__init__(msg)


class CompressedInputError(PgToolsError):
    """A compressed GFA file was given where byte offsets are needed."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"{path}: compressed input cannot be indexed; decompress it first")


# ---------------------------------------------------------------------------
# Index files
# ---------------------------------------------------------------------------


class IndexLoadError(PgToolsError):
    """The index file is not a readable pgtools index."""


class BadMagicError(IndexLoadError):
    pass


class UnsupportedVersionError(IndexLoadError):
    def __init__(self, version: int, supported: int) -> None:
        self.version = version
        self.supported = supported
        super().__init__(f"index version {version} not supported (max: {supported})")


class TruncatedIndexError(IndexLoadError):
    pass


class CorruptIndexError(IndexLoadError):
    pass


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class IndexNotBuiltError(PgToolsError):
    """The loaded index does not contain the sub-index a query needs."""

    def __init__(self, index_type: str) -> None:
        self.index_type = index_type
        super().__init__(
            f"{index_type} index not built; rebuild with --type {index_type} or --type full"
        )


class IndexMismatchError(PgToolsError):
    """Bytes at a recorded offset no longer hold the indexed record."""


class PgToolsIOError(PgToolsError):
    """Disk I/O failed (missing file, permissions, ...). Chained from the OSError."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"I/O error on {path}: {reason}")
