"""Stream enrichment: turns identifiers in the delegated CLI's stdout into
terminal hyperlinks.

Lines are rewritten in three ordered passes over one catalog snapshot:
containers, then volumes, then images. Each pass works on the output of
the previous one, so a later pass may match text inside a link inserted by
an earlier pass. That overlap is left as is.

Hyperlinks use the OSC 8 convention::

    ESC ] 8 ; ; <uri> BEL <text> ESC ] 8 ; ; BEL

Terminals without OSC 8 support print ``<text>`` and ignore the rest.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from collections.abc import Sequence
from typing import BinaryIO

import anyio

from .catalog import CatalogLoader, EnrichmentCatalog
from .config import REFRESH_COMMANDS, get_config

__all__ = [
    "LineRewriter",
    "StreamEnricher",
    "decorate",
    "deeplink",
    "should_refresh",
    "LINE_LIMIT",
]

logger = logging.getLogger(__name__)

OSC = "\x1b]"
BEL = "\x07"
SEP = ";"

# Longest line handed to the rewriter; longer lines are passed through raw
LINE_LIMIT = 1024 * 1024

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def deeplink(kind: str, target: str, scheme: str) -> str:
    return f"{scheme}://dashboard/{kind}/{target}"


def decorate(kind: str, text: str, target: str, scheme: str | None = None) -> str:
    """Wrap ``text`` in an OSC 8 hyperlink to the dashboard page of ``target``.

    Args:
        kind: Dashboard section ("containers", "volumes", "images")
        text: Visible text
        target: Opaque identifier placed in the link
        scheme: URI scheme (default from config)
    """
    if scheme is None:
        scheme = get_config().deeplink_scheme
    link = deeplink(kind, target, scheme)
    return "".join([OSC, "8", SEP, SEP, link, BEL, text, OSC, "8", SEP, SEP, BEL])


def should_refresh(args: Sequence[str]) -> bool:
    """Whether the catalog must be reloaded before every output line."""
    return bool(args) and args[0] in REFRESH_COMMANDS


class LineRewriter:
    """Rewrites single lines against one catalog snapshot.

    Container matchers are compiled once per snapshot.
    """

    def __init__(self, catalog: EnrichmentCatalog, scheme: str | None = None) -> None:
        self.catalog = catalog
        self.scheme = scheme if scheme is not None else get_config().deeplink_scheme
        self._container_patterns: list[tuple[re.Pattern[str], str]] = []

        for container in catalog.containers:
            if container.short_id:
                pattern = re.compile(
                    r"(?<![0-9A-Za-z])" + re.escape(container.short_id) + r"[a-z0-9]*"
                )
                self._container_patterns.append((pattern, container.id))
            if container.names:
                pattern = re.compile(
                    r"(?<![\w.-])" + re.escape(container.names) + r"(?![\w.-])"
                )
                self._container_patterns.append((pattern, container.id))

    def _link(self, kind: str, target: str):
        def replace(match: re.Match[str]) -> str:
            return decorate(kind, match.group(0), target, self.scheme)
        return replace

    def rewrite(self, line: str) -> str:
        """Return ``line`` with every known identifier decorated."""
        for pattern, container_id in self._container_patterns:
            line = pattern.sub(self._link("containers", container_id), line)

        for volume in self.catalog.volumes:
            if volume.name and volume.name in line:
                line = line.replace(
                    volume.name, decorate("volumes", volume.name, volume.name, self.scheme)
                )

        for image in self.catalog.images:
            if not image.repository or image.repository not in line:
                continue
            if image.tag and image.tag in line:
                target = f"{image.id}-{image.tag}"
            else:
                target = f"{image.id}-latest"
            line = line.replace(
                image.repository, decorate("images", image.repository, target, self.scheme)
            )

        return line


class StreamEnricher:
    """Reads the delegated process's stdout and writes enriched lines.

    The catalog is owned by the enricher: it is replaced, never mutated,
    and only between two lines.

    Example:
        enricher = StreamEnricher(loader, await loader.load(), refresh=False)
        emitted = await enricher.run(process.stdout)
    """

    def __init__(
        self,
        loader: CatalogLoader,
        catalog: EnrichmentCatalog,
        *,
        refresh: bool = False,
        output: BinaryIO | None = None,
        scheme: str | None = None,
    ) -> None:
        self._loader = loader
        self._refresh = refresh
        self._output = output if output is not None else sys.stdout.buffer
        self._scheme = scheme if scheme is not None else get_config().deeplink_scheme
        self._rewriter = LineRewriter(catalog, self._scheme)
        self._output_broken = False
        self.lines = 0

    @property
    def catalog(self) -> EnrichmentCatalog:
        return self._rewriter.catalog

    async def refresh(self) -> None:
        """Replace the catalog with a freshly loaded snapshot."""
        catalog = await self._loader.load()
        self._rewriter = LineRewriter(catalog, self._scheme)

    async def run(self, reader: asyncio.StreamReader) -> int:
        """Enrich until end of stream.

        Args:
            reader: The delegated process's stdout

        Returns:
            Number of lines written
        """
        while True:
            try:
                raw = await reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                # EOF; the last line may lack its newline
                if e.partial:
                    await self._emit_line(e.partial)
                break
            except asyncio.LimitOverrunError as e:
                chunk = await reader.read(e.consumed)
                logger.debug(f"Line exceeds {LINE_LIMIT} bytes, passing {len(chunk)} bytes through")
                await self._write(chunk)
                continue
            await self._emit_line(raw)

        logger.debug(f"Stream drained, {self.lines} line(s) written")
        return self.lines

    async def _emit_line(self, raw: bytes) -> None:
        if raw.endswith(b"\n"):
            raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]

        if self._refresh:
            await self.refresh()

        line = self._rewriter.rewrite(raw.decode(_ENCODING, _ERRORS))
        await self._write((line + "\n").encode(_ENCODING, _ERRORS))
        self.lines += 1

    async def _write(self, data: bytes) -> None:
        if self._output_broken:
            return
        try:
            await anyio.to_thread.run_sync(self._write_sync, data)
        except (OSError, ValueError) as e:
            # Keep draining so the child never blocks on a full pipe
            logger.debug(f"Output closed, discarding further output: {e}")
            self._output_broken = True

    def _write_sync(self, data: bytes) -> None:
        self._output.write(data)
        self._output.flush()
