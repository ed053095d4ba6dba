"""Domain models for pinned uploads."""

from dataclasses import dataclass

from lossy_mint.domain.sessions import OutputType


@dataclass(frozen=True)
class PinnedContent:
    """Content address returned by the pinning service."""

    cid: str
    uri: str


@dataclass(frozen=True)
class UploadResult:
    """Media accepted for minting."""

    file_uri: str
    cid: str
    mime_type: str
    output_type: OutputType

    def to_dict(self) -> dict[str, object]:
        return {
            "success": True,
            "fileUri": self.file_uri,
            "cid": self.cid,
            "mimeType": self.mime_type,
            "outputType": self.output_type.value,
        }
