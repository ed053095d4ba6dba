"""Domain models for minting sessions."""

from dataclasses import dataclass, field, replace
from enum import Enum

from lossy_mint.errors import InvalidRequest, InvalidTransition


class SessionStatus(str, Enum):
    """Forward-only session lifecycle."""

    PENDING = "pending"
    PAID = "paid"
    MINTED = "minted"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [SessionStatus.PENDING, SessionStatus.PAID, SessionStatus.MINTED]


class OutputType(str, Enum):
    """Kind of media being minted."""

    PHOTO = "photo"
    VIDEO = "video"

    @classmethod
    def parse(cls, raw: str | None, default: "OutputType") -> "OutputType":
        if raw is None or not raw.strip():
            return default
        try:
            return cls(raw.strip().lower())
        except ValueError as exc:
            raise InvalidRequest(f"Unsupported outputType: {raw}") from exc


@dataclass(frozen=True)
class SessionMetadata:
    """Buyer-provided description of the piece being minted."""

    file_uri: str
    mode: str | None = None
    speed: float | None = None
    answers: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "mode": self.mode,
            "speed": self.speed,
            "fileUri": self.file_uri,
            "answers": dict(self.answers),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "SessionMetadata":
        speed = data.get("speed")
        answers = data.get("answers")
        return cls(
            file_uri=str(data.get("fileUri") or ""),
            mode=str(data["mode"]) if data.get("mode") is not None else None,
            speed=float(speed) if isinstance(speed, int | float | str) else None,
            answers=dict(answers) if isinstance(answers, dict) else {},
        )


@dataclass(frozen=True)
class Session:
    """Represents a persisted minting session."""

    session_id: str
    session_index: int
    payment_address: str
    output_type: OutputType
    metadata: SessionMetadata
    status: SessionStatus
    created_at: int
    expires_at: int
    required_usdc: float
    buyer_wallet: str | None = None
    mint_address: str | None = None
    mint_signature: str | None = None
    sweep_signature: str | None = None

    def advance(self, status: SessionStatus, **changes: object) -> "Session":
        """Return a copy moved forward to ``status`` with extra field changes."""
        if status.rank < self.status.rank:
            raise InvalidTransition(
                f"Session {self.session_id} cannot move from "
                f"{self.status.value} to {status.value}"
            )
        updated = replace(self, status=status, **changes)
        if (updated.mint_address is not None) != (status is SessionStatus.MINTED):
            raise InvalidTransition(
                "mintAddress must be set exactly when the session is minted"
            )
        return updated

    def with_sweep(self, sweep_signature: str | None) -> "Session":
        """Record the sweep signature without changing status."""
        return replace(self, sweep_signature=sweep_signature)

    def to_dict(self) -> dict[str, object]:
        """Serialize to the persisted camelCase layout."""
        return {
            "sessionId": self.session_id,
            "sessionIndex": self.session_index,
            "paymentAddress": self.payment_address,
            "outputType": self.output_type.value,
            "metadata": self.metadata.to_dict(),
            "status": self.status.value,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
            "requiredUsdc": self.required_usdc,
            "buyerWallet": self.buyer_wallet,
            "mintAddress": self.mint_address,
            "mintSignature": self.mint_signature,
            "sweepSignature": self.sweep_signature,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Session":
        """Build a session from its persisted layout."""
        metadata = data.get("metadata")
        return cls(
            session_id=str(data["sessionId"]),
            session_index=int(data["sessionIndex"]),
            payment_address=str(data["paymentAddress"]),
            output_type=OutputType(str(data.get("outputType") or "video")),
            metadata=SessionMetadata.from_dict(
                metadata if isinstance(metadata, dict) else {}
            ),
            status=SessionStatus(str(data["status"])),
            created_at=int(data["createdAt"]),
            expires_at=int(data["expiresAt"]),
            required_usdc=float(data["requiredUsdc"]),
            buyer_wallet=_optional_str(data.get("buyerWallet")),
            mint_address=_optional_str(data.get("mintAddress")),
            mint_signature=_optional_str(data.get("mintSignature")),
            sweep_signature=_optional_str(data.get("sweepSignature")),
        )


def build_session_id(session_index: int, created_at_ms: int) -> str:
    """Session ids have the form ``sess_<index>_<epochMillis>``."""
    return f"sess_{session_index}_{created_at_ms}"


def session_key(session_id: str) -> str:
    return f"session:{session_id}"


def mint_lock_key(session_id: str) -> str:
    return f"lock:mint:{session_id}"


def _optional_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
