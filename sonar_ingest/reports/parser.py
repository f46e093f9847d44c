"""Streaming parser for JUnit-style test reports.

The document is consumed with ``lxml.etree.iterparse``: each ``testcase``
element is turned into a :class:`TestCaseRecord` when it closes and is then
discarded, so memory use does not grow with the report size.

Accepted shape::

    <testsuites>                       (or a single <testsuite> root)
      <testsuite name="...">           (suites may nest)
        <testcase name="t" classname="c" time="0.012">
          <failure message="...">...</failure>   | <error> | <skipped/>
        </testcase>
      </testsuite>
    </testsuites>
"""

import logging
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import BinaryIO, Iterator

from lxml import etree

from sonar_ingest.errors import EmptyReportError, MalformedReportError, ValueDomainError
from sonar_ingest.models import Report, TestCaseRecord, TestStatus

logger = logging.getLogger(__name__)

ROOT_ELEMENTS = ("testsuites", "testsuite")
SKIPPED_STATUSES = ("notrun", "skipped", "disabled")

_CHUNK_SIZE = 64 * 1024
_DECLARATION_RE = re.compile(rb"^<\?xml[^>]*\bencoding\s*=", re.ASCII)
_BOMS = (b"\xef\xbb\xbf", b"\xff\xfe", b"\xfe\xff")


def parse_report(report: Report) -> Iterator[TestCaseRecord]:
    """Yield the test cases of *report*, opening and closing the file itself."""
    try:
        with report.path.open("rb") as fh:
            yield from parse_stream(fh, report.path, encoding=report.encoding)
    except OSError as exc:
        raise MalformedReportError(report.path, f"cannot read report: {exc}") from exc


def parse_stream(
    stream: BinaryIO,
    source: Path | str,
    encoding: str | None = None,
) -> Iterator[TestCaseRecord]:
    """Yield the test cases of a JUnit document read from *stream*.

    *encoding* applies only to documents that declare no encoding and carry
    no byte order mark.

    Raises (on iteration):
        EmptyReportError:     the stream holds nothing but whitespace
        MalformedReportError: bad markup, unexpected root, bad encoding
        ValueDomainError:     an invalid ``time`` attribute
    """
    head = _read_head(stream)
    if not head.strip():
        raise EmptyReportError(source)

    if encoding and not declares_encoding(head):
        override = encoding
    else:
        override = None

    depth = 0
    try:
        events = etree.iterparse(
            _Replay(head, stream),
            events=("start", "end"),
            encoding=override,
            resolve_entities=False,
            no_network=True,
            huge_tree=True,
            remove_comments=True,
        )
        for event, elem in events:
            name = etree.QName(elem).localname if isinstance(elem.tag, str) else ""
            if event == "start":
                if depth == 0 and name not in ROOT_ELEMENTS:
                    raise MalformedReportError(
                        source, f"unexpected root element <{name}>, expected one of {ROOT_ELEMENTS}"
                    )
                depth += 1
                continue

            depth -= 1
            if name == "testcase":
                yield _to_record(elem, source)
                elem.clear(keep_tail=False)
                while elem.getprevious() is not None:
                    del elem.getparent()[0]
    except etree.XMLSyntaxError as exc:
        raise MalformedReportError(source, f"invalid XML: {exc}") from exc
    except LookupError as exc:
        raise MalformedReportError(source, f"unknown encoding: {exc}") from exc


# ---------------------------------------------------------------------------
# Record conversion
# ---------------------------------------------------------------------------

def _to_record(elem: etree._Element, source: Path | str) -> TestCaseRecord:
    children = {
        etree.QName(child).localname: child
        for child in reversed(elem)
        if isinstance(child.tag, str)
    }
    status = TestStatus.PASSED
    detail = None

    if (
        "skipped" in children
        or (elem.get("status") or "").lower() in SKIPPED_STATUSES
        or (elem.get("result") or "").lower() == "skipped"
    ):
        status = TestStatus.SKIPPED
        detail = children.get("skipped")
    elif "error" in children:
        status = TestStatus.ERRORED_OUT
        detail = children["error"]
    elif "failure" in children:
        status = TestStatus.FAILED
        detail = children["failure"]

    return TestCaseRecord(
        name=elem.get("name", ""),
        classname=elem.get("classname"),
        status=status,
        time_ms=parse_time(elem.get("time"), source, elem.get("name", "")),
        message=_message(detail),
    )


def _message(detail: etree._Element | None) -> str | None:
    if detail is None:
        return None
    text = detail.get("message") or (detail.text or "").strip()
    return text or None


def parse_time(value: str | None, source: Path | str, testcase: str = "") -> int:
    """Convert a ``time`` attribute in seconds to whole milliseconds.

    A missing or blank value counts as 0. Thousands separators are tolerated.
    """
    if value is None or not value.strip():
        return 0
    try:
        seconds = Decimal(value.strip().replace(",", ""))
    except InvalidOperation:
        raise ValueDomainError(source, f"testcase '{testcase}': time '{value}' is not a number") from None
    if not seconds.is_finite():
        raise ValueDomainError(source, f"testcase '{testcase}': time '{value}' is not a number")
    if seconds < 0:
        raise ValueDomainError(source, f"testcase '{testcase}': time '{value}' is negative")
    return int(seconds * 1000)


# ---------------------------------------------------------------------------
# Stream helpers
# ---------------------------------------------------------------------------

def _read_head(stream: BinaryIO) -> bytes:
    """Read until the first non-whitespace byte (plus one chunk) or EOF."""
    chunks: list[bytes] = []
    while True:
        chunk = stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)
        if chunk.strip():
            break
    return b"".join(chunks)


def declares_encoding(head: bytes) -> bool:
    """True if the document names its own encoding (declaration or BOM)."""
    if head.startswith(_BOMS):
        return True
    return bool(_DECLARATION_RE.match(head.lstrip()))


class _Replay:
    """File-like object that returns *head* before the rest of *stream*."""

    def __init__(self, head: bytes, stream: BinaryIO) -> None:
        self._head = head
        self._stream = stream

    def read(self, size: int = -1) -> bytes:
        if self._head:
            if size is None or size < 0:
                data, self._head = self._head + self._stream.read(), b""
                return data
            data, self._head = self._head[:size], self._head[size:]
            return data
        return self._stream.read(size)
