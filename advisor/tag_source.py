"""Loader for the store tag vocabulary (allow-list).

The vocabulary is an externally maintained JSON array of strings. Any failure to
read or validate it disables tag features instead of stopping the service.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger("advisor.tags")


@dataclass
class TagSourceMeta:
    """Metadata describing the vocabulary file version for logging."""
    file_name: str
    updated_at: str
    sha256: str
    count: int


class TagSource:
    def __init__(self, path: Optional[Path]) -> None:
        """Purpose: Configure the source with the vocabulary file path.
        Inputs/Outputs: Input is a Path to tags_unique.json (or None); no return value.
        Side Effects / State: Stores the path for later load calls.
        Dependencies: None beyond Path usage.
        Failure Modes: None at init; load() handles read/parse errors.
        If Removed: The registry has no vocabulary to build from.
        Testing Notes: Instantiate with a temp path and call load().
        """
        # Store the vocabulary location for subsequent loads.
        self._path = path

    def load(self) -> Tuple[List[str], Optional[TagSourceMeta]]:
        """Purpose: Read and validate the allow-list from disk.
        Inputs/Outputs: No inputs; returns (tags, meta). Tags is empty on any failure.
        Side Effects / State: Reads the file and logs a warning when it is unusable.
        Dependencies: Uses json, hashlib, and validate_allow_list.
        Failure Modes: Missing file, bad JSON, or a non-list payload all degrade to [].
        If Removed: Tag links and the footer are permanently disabled.
        Testing Notes: Feed valid, missing, malformed, and mixed-type files.
        """
        # Read bytes for hashing, then decode and validate the payload.
        if not self._path:
            logger.warning("tag vocabulary path not configured. Tag links will be disabled.")
            return [], None
        try:
            raw_bytes = self._path.read_bytes()
        except OSError as exc:
            logger.warning("Could not load %s. Tag links will be disabled. error=%s", self._path, exc)
            return [], None

        try:
            data = json.loads(raw_bytes.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Could not parse %s. Tag links will be disabled. error=%s", self._path, exc)
            return [], None

        tags = validate_allow_list(data)
        if not tags and data:
            logger.warning("%s is not a JSON array of strings. Tag links will be disabled.", self._path)

        meta = TagSourceMeta(
            file_name=self._path.name,
            updated_at=datetime.fromtimestamp(self._path.stat().st_mtime).isoformat(),
            sha256=hashlib.sha256(raw_bytes).hexdigest(),
            count=len(tags),
        )
        logger.info(
            "tag vocabulary loaded file=%s count=%d sha256=%s updated_at=%s",
            meta.file_name,
            meta.count,
            meta.sha256[:12],
            meta.updated_at,
        )
        return tags, meta


def validate_allow_list(data: object) -> List[str]:
    """Purpose: Accept only a proper sequence of strings as the allow-list.
    Inputs/Outputs: Input is any decoded JSON value; output is a list of tags or [].
    Side Effects / State: None.
    Dependencies: Used by TagSource.load and TagRegistry.build.
    Failure Modes: Any non-string entry rejects the whole list.
    If Removed: A malformed vocabulary could leak non-tags into emitted links.
    Testing Notes: ["Sleep", 3] -> []; "Sleep" -> []; ["Sleep", " "] -> ["Sleep"].
    """
    # A string is a sequence too, so require an actual list/tuple.
    if not isinstance(data, (list, tuple)):
        return []
    if not all(isinstance(item, str) for item in data):
        return []
    return [item.strip() for item in data if item.strip()]
