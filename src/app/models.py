"""Request models for the simulation command surface.

Everything a client sends is validated here, before it reaches the
engine: intensities must be numbers in [0, 100], toggles must be real
booleans, and partial updates must carry at least one field.
"""

from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, model_validator

Intensity = Annotated[float, Field(ge=0, le=100, strict=True)]


class IntensityUpdate(BaseModel):
    """Body for the single-vector attack endpoints."""

    intensity: Intensity


class ToggleUpdate(BaseModel):
    """Body for firmware-tamper and the defense toggles."""

    enabled: StrictBool


class _PartialUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @model_validator(mode="after")
    def _require_one_field(self):
        if not self.model_dump(exclude_none=True):
            raise ValueError(f"{type(self).__name__} requires at least one field")
        return self

    def to_partial(self) -> dict[str, Any]:
        """Only the fields the client sent, keyed by engine field name."""
        return self.model_dump(exclude_none=True)


class AttackUpdate(_PartialUpdate):
    """Partial AttackState, camelCase on the wire."""

    syn_flood: Optional[Intensity] = Field(default=None, alias="synFlood")
    dictionary_attack: Optional[Intensity] = Field(default=None, alias="dictionaryAttack")
    mqtt_flood: Optional[Intensity] = Field(default=None, alias="mqttFlood")
    firmware_tamper: Optional[StrictBool] = Field(default=None, alias="firmwareTamper")


class DefenseUpdate(_PartialUpdate):
    """Partial DefenseState, camelCase on the wire."""

    rate_limiting: Optional[StrictBool] = Field(default=None, alias="rateLimiting")
    account_lockout: Optional[StrictBool] = Field(default=None, alias="accountLockout")
    signature_check: Optional[StrictBool] = Field(default=None, alias="signatureCheck")
