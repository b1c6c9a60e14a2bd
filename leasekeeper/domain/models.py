"""Domain models using Pydantic for validation."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import BusMessageKind


class LeaseRecord(BaseModel):
    """The single shared value naming the current owner of a namespace.

    Wire shape is ``{"ownerId": str, "acquiredAt": int}`` where ``acquiredAt``
    is epoch milliseconds of the last claim or heartbeat.
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        strict=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "ownerId": "participant-1760486400000-k3j9x0a1b",
                "acquiredAt": 1760486400000,
            }
        },
    )

    owner_id: str = Field(..., alias="ownerId", min_length=1, description="Owning participant id")
    acquired_at: int = Field(..., alias="acquiredAt", ge=0, description="Epoch ms of last claim")

    @field_validator("owner_id")
    @classmethod
    def validate_owner_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("ownerId cannot be blank")
        return v

    def age_ms(self, now_ms: int) -> int:
        """Milliseconds since the record was last written."""
        return now_ms - self.acquired_at

    def is_expired(self, now_ms: int, timeout_ms: int) -> bool:
        """Strictly older than the timeout; an age equal to it is still live."""
        return self.age_ms(now_ms) > timeout_ms

    def is_owned_by(self, participant_id: object) -> bool:
        return self.owner_id == str(participant_id)

    def to_wire(self) -> dict[str, object]:
        """Dictionary in the persisted camelCase shape."""
        return self.model_dump(by_alias=True)


class BusMessage(BaseModel):
    """Notification exchanged on the broadcast bus."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
    )

    kind: BusMessageKind = Field(..., description="Notification kind")
    sender_id: str = Field(..., min_length=1, description="Publishing participant id")
    namespace: str = Field(..., min_length=1, description="Namespace the message refers to")
    sent_at: int = Field(..., ge=0, description="Epoch ms when published")
