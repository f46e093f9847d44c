"""Rewrite vendor test reports into the JUnit schema with XSLT.

The stylesheet reference is resolved in this order:

1. a stylesheet bundled in ``sonar_ingest/xsl`` (looked up by file name),
2. an ``http``/``https`` URL, downloaded once per transformer,
3. a local file path.

The transformed document is written next to the source report with the
``.after_xslt`` suffix. It is written in one step, so a failed transform
never leaves a partial file behind.
"""

import logging
import os
import tempfile
from importlib import resources
from pathlib import Path
from urllib.parse import urlparse

from lxml import etree

from sonar_ingest.client import StylesheetClient, StylesheetClientError
from sonar_ingest.errors import TransformError
from sonar_ingest.models import Report
from sonar_ingest.reports.parser import declares_encoding

logger = logging.getLogger(__name__)

TRANSFORMED_SUFFIX = ".after_xslt"


def bundled_stylesheets() -> list[str]:
    """Return the names of the stylesheets shipped with the package."""
    root = resources.files("sonar_ingest") / "xsl"
    return sorted(entry.name for entry in root.iterdir() if entry.name.endswith(".xsl"))


class FormatTransformer:
    """Apply one configured stylesheet to every report of a run."""

    def __init__(self, stylesheet: str | None = None, client: StylesheetClient | None = None) -> None:
        self.stylesheet = stylesheet or None
        self._client = client
        self._owns_client = False
        self._xslt: etree.XSLT | None = None
        self._load_error: str | None = None

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def transform(self, report: Report) -> Report:
        """Return the report to parse: *report* itself or its transformed copy.

        Raises:
            TransformError: the stylesheet cannot be loaded or applied, or the
                            report is not well-formed XML.
        """
        if self.stylesheet is None or report.size == 0:
            logger.debug("Transformation skipped for '%s': no stylesheet given or empty report", report)
            return report

        try:
            data = report.path.read_bytes()
        except OSError as exc:
            raise TransformError(report.path, f"cannot read report: {exc}") from exc
        if not data.strip():
            logger.debug("Transformation skipped for '%s': blank report", report)
            return report

        logger.debug("Transforming '%s' using stylesheet '%s'", report, self.stylesheet)
        xslt = self._compiled(report)
        encoding = report.encoding if report.encoding and not declares_encoding(data) else None
        parser = etree.XMLParser(
            encoding=encoding, resolve_entities=False, no_network=True, huge_tree=True
        )
        try:
            source = etree.fromstring(data, parser).getroottree()
        except (etree.XMLSyntaxError, LookupError) as exc:
            raise TransformError(report.path, f"cannot read report: {exc}") from exc

        try:
            result = xslt(source)
        except etree.XSLTApplyError as exc:
            raise TransformError(report.path, f"stylesheet failed: {exc}") from exc
        if result.getroot() is None:
            raise TransformError(report.path, "stylesheet produced no document")

        target = report.path.with_name(report.path.name + TRANSFORMED_SUFFIX)
        try:
            _write_atomically(target, bytes(result))
        except OSError as exc:
            raise TransformError(report.path, f"cannot write '{target}': {exc}") from exc
        # The output is serialized by lxml; its declaration or UTF-8 applies.
        return Report.from_path(target)

    def close(self) -> None:
        """Close the stylesheet client if this transformer created it."""
        if self._owns_client and self._client is not None:
            self._client.close()

    def __enter__(self) -> "FormatTransformer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _compiled(self, report: Report) -> etree.XSLT:
        if self._xslt is None and self._load_error is None:
            try:
                document = etree.fromstring(
                    self._read_stylesheet(),
                    etree.XMLParser(resolve_entities=False, no_network=True),
                )
                self._xslt = etree.XSLT(document, access_control=etree.XSLTAccessControl.DENY_WRITE)
            except (StylesheetClientError, OSError) as exc:
                self._load_error = f"cannot load stylesheet '{self.stylesheet}': {exc}"
            except etree.LxmlError as exc:
                self._load_error = f"malformed stylesheet '{self.stylesheet}': {exc}"
        if self._load_error is not None:
            raise TransformError(report.path, self._load_error)
        return self._xslt

    def _read_stylesheet(self) -> bytes:
        ref = self.stylesheet
        if "/" not in ref and "\\" not in ref:
            bundled = resources.files("sonar_ingest") / "xsl" / ref
            if bundled.is_file():
                logger.debug("Using bundled stylesheet '%s'", ref)
                return bundled.read_bytes()

        if urlparse(ref).scheme in ("http", "https"):
            logger.debug("Fetching external stylesheet '%s'", ref)
            if self._client is None:
                self._client = StylesheetClient()
                self._owns_client = True
            return self._client.fetch(ref)

        path = Path(ref)
        if path.is_file():
            return path.read_bytes()
        raise FileNotFoundError(
            f"not a bundled stylesheet ({', '.join(bundled_stylesheets())}), URL or existing file"
        )


def _write_atomically(target: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=target.name, dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
