# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_judger

from dataclasses import dataclass
from pathlib import Path

import aiofiles  # type: ignore[import-untyped]
from loguru import logger

from coreason_judger.exceptions import CaptureError
from coreason_judger.models import NormalizedResult, RawOutcome

NANOSECONDS_PER_MILLISECOND = 1_000_000
MAX_CAPTURE_BYTES = 1024 * 1024


@dataclass(frozen=True)
class CapturedStreams:
    """Text captured from a finished process."""

    output: str = ""
    error: str = ""


class ResultNormalizer:
    """Converts raw sandbox outcomes into judge-facing results."""

    def __init__(self, max_capture_bytes: int = MAX_CAPTURE_BYTES):
        """Initializes the ResultNormalizer.

        Args:
            max_capture_bytes: Upper bound, in bytes, of each captured stream.
        """
        self.max_capture_bytes = max_capture_bytes

    def truncate(self, data: bytes) -> str:
        """Cut ``data`` to the capture limit and decode it.

        The cut happens at a byte boundary; a multi-byte character split by it
        is dropped rather than raising.
        """
        return data[: self.max_capture_bytes].decode("utf-8", errors="ignore")

    async def capture(self, path: Path | None, strict: bool = False) -> str:
        """Read at most ``max_capture_bytes`` of a host file.

        Args:
            path: The capture file, or None when the phase produces none.
            strict: Raise instead of degrading to an empty string.

        Returns:
            str: The decoded, size-capped contents.

        Raises:
            CaptureError: If ``strict`` and the file cannot be read.
        """
        if path is None:
            return ""

        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read(self.max_capture_bytes)
        except OSError as e:
            if strict:
                raise CaptureError(f"Failed to read captured stream {path.name}: {e}") from e
            logger.warning(f"Failed to read captured stream {path.name}: {e}")
            return ""

        return self.truncate(data)

    def normalize(self, raw: RawOutcome, captured: CapturedStreams) -> NormalizedResult:
        """Produce the judge-facing record; status and exit code pass through untouched."""
        return NormalizedResult(
            status=raw.status,
            exit_code=raw.exit_code,
            time_ms=raw.time_ns / NANOSECONDS_PER_MILLISECOND,
            memory_bytes=raw.memory_bytes,
            output=self.truncate(captured.output.encode("utf-8")),
            error=self.truncate(captured.error.encode("utf-8")),
        )
