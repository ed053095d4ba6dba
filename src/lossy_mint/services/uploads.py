"""Media uploads to IPFS."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from lossy_mint.adapters.pinata_client import PinningClient
from lossy_mint.domain.sessions import OutputType
from lossy_mint.domain.uploads import UploadResult
from lossy_mint.errors import InvalidRequest, PayloadTooLarge
from lossy_mint.services.resilience import call_upstream

DEFAULT_MIME_TYPE = "video/webm"
UPLOAD_KEYVALUES = {"project": "day-after-day", "artist": "lampwrecked"}

logger = logging.getLogger(__name__)


def extension_for(mime_type: str) -> str:
    """Return the file extension implied by a MIME subtype."""
    _, _, subtype = mime_type.partition("/")
    extension = subtype.split(";", 1)[0].strip()
    return extension or "bin"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class UploadService:
    """Pins buyer media and returns its gateway URI."""

    pinning: PinningClient
    max_upload_bytes: int
    timeout: float = 60.0
    clock: Callable[[], int] = _now_ms

    async def upload_media(
        self,
        content: bytes,
        mime_type: str | None = None,
        output_type: str | None = None,
    ) -> UploadResult:
        """Validate and pin one media file."""
        if not content:
            raise InvalidRequest("No file provided")
        if len(content) > self.max_upload_bytes:
            raise PayloadTooLarge(
                f"File exceeds the {self.max_upload_bytes} byte upload limit"
            )
        resolved_type = OutputType.parse(output_type, OutputType.VIDEO)
        resolved_mime = (mime_type or "").strip() or DEFAULT_MIME_TYPE
        filename = f"day-after-day-{self.clock()}.{extension_for(resolved_mime)}"

        pinned = await call_upstream(
            "pinata",
            lambda: self.pinning.pin_file(
                filename,
                content,
                resolved_mime,
                name=filename,
                keyvalues=UPLOAD_KEYVALUES,
            ),
            timeout=self.timeout,
        )
        logger.info(
            "Media pinned",
            extra={"cid": pinned.cid, "bytes": len(content), "mime": resolved_mime},
        )
        return UploadResult(
            file_uri=pinned.uri,
            cid=pinned.cid,
            mime_type=resolved_mime,
            output_type=resolved_type,
        )
