"""Identifier catalog: containers, images and volumes known to the daemon.

The catalog is filled by listing invocations of the delegated CLI, each
printing one JSON object per line. Loading is best effort:

- a line that does not validate is skipped, its siblings still load
- a listing that fails yields no records of that kind

A catalog is an immutable snapshot; refreshing builds a new one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import CONTENT_HASH_PREFIX, SHORT_ID_LENGTH
from .errors import CatalogLoadError, RecordParseError
from .runtime import ProcessRunner, ProcessSpec

__all__ = [
    "CatalogLoader",
    "ContainerRecord",
    "EnrichmentCatalog",
    "ImageRecord",
    "VolumeRecord",
    "parse_record",
    "parse_records",
    "short_id",
    "CONTAINERS_LISTING",
    "IMAGES_LISTING",
    "VOLUMES_LISTING",
]

logger = logging.getLogger(__name__)

CONTAINERS_LISTING = [
    "ps", "--all", "--no-trunc",
    "--format", '{"ID":"{{ .ID }}", "Names":"{{ .Names }}"}',
]
IMAGES_LISTING = [
    "image", "ls", "--no-trunc",
    "--format", '{"ID":"{{ .ID }}", "Tag":"{{ .Tag }}", "Repository":"{{ .Repository }}"}',
]
VOLUMES_LISTING = [
    "volume", "ls",
    "--format", '{"Name":"{{ .Name }}"}',
]


def short_id(full_id: str, *, strip_prefix: bool = False) -> str:
    """Truncate an identifier to its short form.

    Args:
        full_id: Full identifier
        strip_prefix: Drop a leading "sha256:" first (images)
    """
    if strip_prefix and full_id.startswith(CONTENT_HASH_PREFIX):
        full_id = full_id[len(CONTENT_HASH_PREFIX):]
    return full_id[:SHORT_ID_LENGTH]


class _Record(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )


class ContainerRecord(_Record):
    """A container as printed by ``ps``."""

    id: str = Field(alias="ID")
    names: str = Field(default="", alias="Names")

    @property
    def short_id(self) -> str:
        return short_id(self.id)


class ImageRecord(_Record):
    """An image as printed by ``image ls``."""

    id: str = Field(alias="ID")
    tag: str = Field(default="", alias="Tag")
    repository: str = Field(default="", alias="Repository")

    @property
    def short_id(self) -> str:
        return short_id(self.id, strip_prefix=True)


class VolumeRecord(_Record):
    """A volume as printed by ``volume ls``."""

    name: str = Field(alias="Name")


RecordT = TypeVar("RecordT", bound=_Record)


def parse_record(model: type[RecordT], line: str, kind: str = "") -> RecordT:
    """Parse one listing line.

    Raises:
        RecordParseError: If the line is not a valid record
    """
    try:
        return model.model_validate_json(line)
    except ValidationError as e:
        raise RecordParseError(kind or model.__name__, line) from e


def parse_records(
    model: type[RecordT],
    output: str | bytes,
    kind: str = "",
) -> tuple[RecordT, ...]:
    """Parse every line of a listing, skipping lines that do not validate."""
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")

    records: list[RecordT] = []
    for line in output.strip().splitlines():
        if not line.strip():
            continue
        try:
            records.append(parse_record(model, line, kind))
        except RecordParseError as e:
            logger.debug(f"Skipping line: {e}")
    return tuple(records)


@dataclass(frozen=True)
class EnrichmentCatalog:
    """Snapshot of the identifiers known at one point in time.

    Attributes:
        containers: containers, in listing order
        volumes: volumes, in listing order
        images: images, in listing order
    """

    containers: tuple[ContainerRecord, ...] = ()
    volumes: tuple[VolumeRecord, ...] = ()
    images: tuple[ImageRecord, ...] = ()

    @classmethod
    def empty(cls) -> "EnrichmentCatalog":
        return cls()

    def __len__(self) -> int:
        return len(self.containers) + len(self.volumes) + len(self.images)


class CatalogLoader:
    """Builds catalog snapshots by querying the delegated CLI.

    Every call to a ``load_*`` method spawns one listing process; nothing
    is cached or retried.
    """

    def __init__(self, executable: str, runner: ProcessRunner | None = None) -> None:
        self.executable = executable
        self._runner = runner or ProcessRunner()

    async def _list(self, kind: str, listing: list[str]) -> bytes:
        spec = ProcessSpec(argv=[self.executable, *listing])
        try:
            result = await self._runner.capture(spec)
        except OSError as e:
            raise CatalogLoadError(kind, str(e)) from e
        if not result.ok:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise CatalogLoadError(
                kind, f"exit status {result.returncode}: {stderr}"
            )
        return result.stdout

    async def _load(
        self,
        kind: str,
        listing: list[str],
        model: type[RecordT],
    ) -> tuple[RecordT, ...]:
        try:
            output = await self._list(kind, listing)
        except CatalogLoadError as e:
            logger.debug(f"Catalog degraded: {e}")
            return ()
        return parse_records(model, output, kind)

    async def load_containers(self) -> tuple[ContainerRecord, ...]:
        return await self._load("containers", CONTAINERS_LISTING, ContainerRecord)

    async def load_images(self) -> tuple[ImageRecord, ...]:
        return await self._load("images", IMAGES_LISTING, ImageRecord)

    async def load_volumes(self) -> tuple[VolumeRecord, ...]:
        return await self._load("volumes", VOLUMES_LISTING, VolumeRecord)

    async def load(self) -> EnrichmentCatalog:
        """Query all three kinds concurrently and return a complete snapshot."""
        containers, volumes, images = await asyncio.gather(
            self.load_containers(),
            self.load_volumes(),
            self.load_images(),
        )
        catalog = EnrichmentCatalog(
            containers=containers,
            volumes=volumes,
            images=images,
        )
        logger.debug(
            f"Catalog loaded: containers={len(containers)} "
            f"volumes={len(volumes)} images={len(images)}"
        )
        return catalog
