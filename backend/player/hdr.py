"""HDR capability caching and level selection."""
from __future__ import annotations

import logging
from typing import Callable, Sequence

from .models import HlsLevel

logger = logging.getLogger(__name__)

HDR_CODEC_MARKERS = ("hev1", "dvh1", "av01")


def is_hdr_level(level: HlsLevel) -> bool:
    codecs = (level.codecs or "").lower()
    return any(marker in codecs for marker in HDR_CODEC_MARKERS)


def select_hdr_level(levels: Sequence[HlsLevel]) -> int | None:
    """Return the index of the best HDR level, or None when there is none.

    Levels are ranked by height, then bitrate; ties go to the later entry.
    """

    candidates = [
        (level.height or 0, level.bitrate or 0, index)
        for index, level in enumerate(levels)
        if is_hdr_level(level)
    ]
    if not candidates:
        return None
    return max(candidates)[2]


class HdrCapability:
    """Run the platform probe at most once and remember the answer."""

    def __init__(self, probe: Callable[[], bool] | None = None) -> None:
        self._probe = probe
        self._supported: bool | None = None

    @property
    def probed(self) -> bool:
        return self._supported is not None

    @property
    def supported(self) -> bool:
        if self._supported is None:
            self._supported = self._run_probe()
        return self._supported

    def _run_probe(self) -> bool:
        if self._probe is None:
            return False
        try:
            return bool(self._probe())
        except Exception:
            logger.debug("HDR probe failed; disabling HDR preference", exc_info=True)
            return False
