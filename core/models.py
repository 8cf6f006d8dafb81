from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


# =========================
# Base Model Config
# =========================
class _ContractBaseModel(BaseModel):
    """
    Contract hardening:
    - forbid extra fields on everything this service emits
    """
    model_config = ConfigDict(extra="forbid")


class _WireModel(BaseModel):
    """Device payloads: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =========================
# Device records
# =========================
class CatalogSong(_WireModel):
    """A pre-recorded intro song stored on the device (frequency form)."""
    name: str = Field(..., description="Song title")
    tone_duration: int = Field(..., ge=0, description="Per-tone duration in ms")
    tones: List[int] = Field(default_factory=list, description="Frequencies in Hz")


class AddonsConfig(_WireModel):
    """
    The add-ons configuration record as the device stores it.

    Types only: bounds and pin conflicts are checked by core.validation so that
    every field reports independently instead of failing the whole record.
    """
    turbo_pin: int = -1
    turbo_pin_led: int = Field(-1, alias="turboPinLED")
    slider_ls_pin: int = Field(-1, alias="sliderLSPin")
    slider_rs_pin: int = Field(-1, alias="sliderRSPin")
    turbo_shot_count: int = 5
    reverse_pin: int = -1
    reverse_pin_led: int = Field(-1, alias="reversePinLED")
    reverse_action_up: int = 1
    reverse_action_down: int = 1
    reverse_action_left: int = 1
    reverse_action_right: int = 1
    i2c_analog1219_sda_pin: int = Field(-1, alias="i2cAnalog1219SDAPin")
    i2c_analog1219_scl_pin: int = Field(-1, alias="i2cAnalog1219SCLPin")
    i2c_analog1219_block: int = Field(0, alias="i2cAnalog1219Block")
    i2c_analog1219_speed: int = Field(400000, alias="i2cAnalog1219Speed")
    i2c_analog1219_address: int = Field(0x40, alias="i2cAnalog1219Address")
    on_board_led_mode: int = 0
    dual_dir_up_pin: int = -1
    dual_dir_down_pin: int = -1
    dual_dir_left_pin: int = -1
    dual_dir_right_pin: int = -1
    dual_dir_dpad_mode: int = 0
    dual_dir_combine_mode: int = 0
    buzzer_enabled: int = 0
    buzzer_pin: int = -1
    buzzer_volume: int = 100
    buzzer_intro_song: int = -1
    buzzer_custom_intro_song_tone_duration: int = 150
    buzzer_custom_intro_song: str = ""

    @field_validator("i2c_analog1219_address", mode="before")
    @classmethod
    def _parse_address(cls, v: Any) -> Any:
        # The page lets users type "0x40"
        if isinstance(v, str):
            text = v.strip()
            return int(text, 16) if text.lower().startswith("0x") else int(text)
        return v

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# field name on the wire -> default
DEFAULT_VALUES: Dict[str, Any] = AddonsConfig().to_wire()


class AddonsOptions(BaseModel):
    """Result of loadConfiguration(): record + device-claimed pins + catalogue."""
    config: AddonsConfig
    used_pins: List[int] = Field(default_factory=list)
    catalog: List[CatalogSong] = Field(default_factory=list)

    @classmethod
    def from_device(cls, payload: Dict[str, Any]) -> "AddonsOptions":
        data = dict(payload)
        used = data.pop("usedPins", []) or []
        songs = data.pop("buzzerSongs", []) or []
        return cls(
            config=AddonsConfig.model_validate(data),
            used_pins=[int(p) for p in used],
            catalog=[CatalogSong.model_validate(s) for s in songs],
        )


# =========================
# Service responses
# =========================
class FieldIssue(_ContractBaseModel):
    kind: str = Field(..., description="range | choice | conflict | vocabulary")
    message: str = Field(..., min_length=1)
    label: Optional[str] = None
    value: Any = None
    tokens: Optional[List[str]] = Field(default=None, description="Offending song tokens (vocabulary only)")


class ValidationReport(_ContractBaseModel):
    ok: bool
    errors: Dict[str, FieldIssue] = Field(default_factory=dict)


class SongOption(_ContractBaseModel):
    index: int
    name: str
    tone_duration: Optional[int] = None


class SessionView(_ContractBaseModel):
    values: Dict[str, Any]
    errors: Dict[str, FieldIssue] = Field(default_factory=dict)
    used_pins: List[int] = Field(default_factory=list)
    songs: List[SongOption] = Field(default_factory=list)
    playing: bool = False


class SongCheck(_ContractBaseModel):
    ok: bool
    tokens: List[str]
    invalid: List[str] = Field(default_factory=list)
    message: Optional[str] = None


class PlaybackStatus(_ContractBaseModel):
    playing: bool
    label: str = Field(..., description="Play | Stop")
    song: Optional[str] = None
    index: int = 0
    length: int = 0


class SaveResponse(_ContractBaseModel):
    ok: bool
    message: str


# =========================
# Service requests
# =========================
class SongCheckRequest(_ContractBaseModel):
    text: str = Field(..., description="Song in textual form")


class PlayRequest(_ContractBaseModel):
    selection: Optional[int] = Field(default=None, description="-1 off, 0 custom, 1.. catalogue; default: current intro field")


class RenderRequest(_ContractBaseModel):
    selection: Optional[int] = None
    text: Optional[str] = Field(default=None, description="Render this text instead of a selection")
    tone_duration: int = Field(default=150, ge=0, le=1000)
