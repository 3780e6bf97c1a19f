"""Wordfence vulnerability feed decoding and sources."""

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import FeedNormalizationError, SourceError
from .models import SoftwareType

logger = logging.getLogger(__name__)

WORDFENCE_PRODUCTION_FEED_URL = "https://www.wordfence.com/api/intelligence/v2/vulnerabilities/production/"
WORDFENCE_SCANNER_FEED_URL = "https://www.wordfence.com/api/intelligence/v2/vulnerabilities/scanner/"

FEED_URLS = {
    "production": WORDFENCE_PRODUCTION_FEED_URL,
    "scanner": WORDFENCE_SCANNER_FEED_URL,
}


class AffectedVersionRange(BaseModel):
    """A range of vulnerable versions as published by Wordfence."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    from_version: str = "*"
    from_inclusive: bool = False
    to_version: str | None = None
    to_inclusive: bool = False

    @field_validator("from_version", mode="before")
    @classmethod
    def _default_from_version(cls, value: Any) -> Any:
        return "*" if value is None else value

    @field_validator("from_inclusive", "to_inclusive", mode="before")
    @classmethod
    def _default_inclusive(cls, value: Any) -> Any:
        return False if value is None else value


class SoftwareRecord(BaseModel):
    """One affected plugin, theme or core release line."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    type: SoftwareType = SoftwareType.UNSUPPORTED
    name: str = ""
    slug: str = ""
    affected_versions: list[AffectedVersionRange] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, value: Any) -> SoftwareType:
        return SoftwareType.parse(value)

    @field_validator("name", "slug", mode="before")
    @classmethod
    def _default_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("affected_versions", mode="before")
    @classmethod
    def _flatten_affected_versions(cls, value: Any) -> Any:
        # The feed keys ranges by a label such as "* - 1.2.3"
        if value is None:
            return []
        if isinstance(value, dict):
            return list(value.values())
        return value


class FeedEntry(BaseModel):
    """A single vulnerability record."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    id: str | None = None
    title: str | None = None
    software: list[SoftwareRecord] = Field(default_factory=list)
    cvss_score: float | None = None
    references: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_raw(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        data = dict(data)
        if "cvss" in data:
            cvss = data.pop("cvss")
            data.setdefault("cvss_score", cvss.get("score") if isinstance(cvss, dict) else None)
        for key in ("software", "references"):
            if data.get(key) is None:
                data[key] = []
        if data.get("id") == "":
            data["id"] = None
        return data

    @classmethod
    def from_raw(cls, raw: Any) -> "FeedEntry":
        """Decode one raw feed record.

        Raises:
            FeedNormalizationError: If the record does not match the feed schema
        """
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise FeedNormalizationError(f"Malformed feed record: {e}") from e

    @property
    def content_hash(self) -> str:
        """MD5 digest of the JSON-encoded software list."""
        software = [record.model_dump(mode="json") for record in self.software]
        encoded = json.dumps(software, sort_keys=True, separators=(",", ":"))
        return hashlib.md5(encoded.encode("utf-8")).hexdigest()

    @property
    def branch_name(self) -> str:
        return self.id or self.content_hash


def decode_feed(payload: Any) -> list[FeedEntry]:
    """Decode a feed payload into entries, dropping malformed records.

    Args:
        payload: Decoded JSON, either an object keyed by vulnerability id or a list

    Returns:
        Entries in feed order

    Raises:
        SourceError: If the payload is neither an object nor a list
    """
    if isinstance(payload, dict):
        records = list(payload.values())
    elif isinstance(payload, list):
        records = payload
    else:
        raise SourceError(f"Unexpected feed payload type: {type(payload).__name__}")

    entries: list[FeedEntry] = []
    for position, record in enumerate(records):
        try:
            entries.append(FeedEntry.from_raw(record))
        except FeedNormalizationError as e:
            logger.warning("Dropping feed record #%d: %s", position, e)
    return entries


class FeedSource(Protocol):
    """Anything that can produce the list of feed entries for a run."""

    async def fetch_feed(self) -> list[FeedEntry]:
        ...


class WordfenceFeedSource:
    """Fetches a Wordfence Intelligence v2 feed over HTTP."""

    def __init__(
        self,
        feed: str = "production",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the feed source.

        Args:
            feed: Either "production" (full records) or "scanner" (short records)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, mainly for tests
        """
        if feed not in FEED_URLS:
            raise ValueError(f"Unknown feed {feed!r}, expected one of {', '.join(FEED_URLS)}")
        self.feed = feed
        self.url = FEED_URLS[feed]
        self.timeout = timeout
        self._transport = transport

    async def fetch_feed(self) -> list[FeedEntry]:
        payload = await self._fetch_payload()
        entries = decode_feed(payload)
        logger.info("Got %s feed with %d entries", self.feed, len(entries))
        return entries

    async def _fetch_payload(self) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.url)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            raise SourceError(f"Timeout fetching {self.feed} feed") from e
        except httpx.HTTPStatusError as e:
            raise SourceError(f"HTTP error fetching {self.feed} feed: {e}") from e
        except httpx.HTTPError as e:
            raise SourceError(f"Network error fetching {self.feed} feed: {e}") from e
        except ValueError as e:
            raise SourceError(f"{self.feed} feed is not valid JSON: {e}") from e


class FileFeedSource:
    """Reads a previously downloaded feed from disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def fetch_feed(self) -> list[FeedEntry]:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise SourceError(f"Unable to read feed file {self.path}: {e}") from e
        except ValueError as e:
            raise SourceError(f"Feed file {self.path} is not valid JSON: {e}") from e

        entries = decode_feed(payload)
        logger.info("Got feed from %s with %d entries", self.path, len(entries))
        return entries
