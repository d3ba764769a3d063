"""
ROLLOFF Configuration

Pydantic models for the roof driver configuration, loaded from YAML with
environment variable overrides.

Lookup order when no path is given:
    ./rolloff.yaml
    ~/.rolloff/config.yaml
    /etc/rolloff/config.yaml

Environment variables named ``ROLLOFF_<SECTION>_<KEY>`` override scalar
values after the file is read, e.g. ``ROLLOFF_MOTION_TIMEOUT_SEC=30`` or
``ROLLOFF_GPIO_HOST=roofpi.local``. Top level keys use ``ROLLOFF_<KEY>``.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from rolloff.exceptions import ConfigurationError
from rolloff.types import ActiveLevel, InputFunction, OutputFunction, PulseDuration

from services.gpio.pin_map import (
    MAX_INPUT_SLOTS,
    MAX_OUTPUT_SLOTS,
    MAX_PIN,
    MIN_PIN,
    InputDefinition,
    OutputDefinition,
    PinFunctionMap,
)

ENV_PREFIX = "ROLLOFF_"


# =============================================================================
# GPIO SLOTS
# =============================================================================

class OutputSlotConfig(BaseModel):
    """One relay output slot."""
    function: OutputFunction = OutputFunction.UNUSED
    pin: Optional[int] = Field(default=None, ge=MIN_PIN, le=MAX_PIN)
    active_level: ActiveLevel = ActiveLevel.HIGH
    pulse: PulseDuration = PulseDuration.MS_500

    @model_validator(mode="after")
    def _pin_required(self) -> "OutputSlotConfig":
        if self.function != OutputFunction.UNUSED and self.pin is None:
            raise ValueError(f"Output {self.function.value} needs a GPIO pin")
        return self


class InputSlotConfig(BaseModel):
    """One switch input slot."""
    function: InputFunction = InputFunction.UNUSED
    pin: Optional[int] = Field(default=None, ge=MIN_PIN, le=MAX_PIN)
    active_level: ActiveLevel = ActiveLevel.HIGH

    @model_validator(mode="after")
    def _pin_required(self) -> "InputSlotConfig":
        if self.function != InputFunction.UNUSED and self.pin is None:
            raise ValueError(f"Input {self.function.value} needs a GPIO pin")
        return self


def _default_outputs() -> List[OutputSlotConfig]:
    return [
        OutputSlotConfig(function=OutputFunction.OPEN, pin=5),
        OutputSlotConfig(function=OutputFunction.CLOSE, pin=6),
        OutputSlotConfig(function=OutputFunction.ABORT, pin=13),
        OutputSlotConfig(),
        OutputSlotConfig(),
    ]


def _default_inputs() -> List[InputSlotConfig]:
    return [
        InputSlotConfig(function=InputFunction.OPENED, pin=19),
        InputSlotConfig(function=InputFunction.CLOSED, pin=26),
        InputSlotConfig(),
        InputSlotConfig(),
    ]


class GPIOConfig(BaseModel):
    """GPIO backend and pin function slots."""
    backend: Literal["pigpio", "rpigpio", "simulator"] = "pigpio"
    host: Optional[str] = None  # pigpiod host, None for the local daemon
    port: int = Field(default=8888, ge=1, le=65535)
    outputs: List[OutputSlotConfig] = Field(default_factory=_default_outputs)
    inputs: List[InputSlotConfig] = Field(default_factory=_default_inputs)

    @field_validator("outputs")
    @classmethod
    def _check_outputs(cls, v: List[OutputSlotConfig]) -> List[OutputSlotConfig]:
        if len(v) > MAX_OUTPUT_SLOTS:
            raise ValueError(f"At most {MAX_OUTPUT_SLOTS} output slots are supported")
        _reject_duplicates([s.function for s in v if s.function != OutputFunction.UNUSED], "output")
        return v

    @field_validator("inputs")
    @classmethod
    def _check_inputs(cls, v: List[InputSlotConfig]) -> List[InputSlotConfig]:
        if len(v) > MAX_INPUT_SLOTS:
            raise ValueError(f"At most {MAX_INPUT_SLOTS} input slots are supported")
        _reject_duplicates([s.function for s in v if s.function != InputFunction.UNUSED], "input")
        return v


def _reject_duplicates(functions: list, kind: str) -> None:
    seen = set()
    for function in functions:
        if function in seen:
            raise ValueError(f"{kind} function {function.value} is assigned to more than one slot")
        seen.add(function)


# =============================================================================
# BEHAVIOUR
# =============================================================================

class MotionConfig(BaseModel):
    """Roof motion timing."""
    timeout_sec: int = Field(default=15, ge=1, le=300)
    initial_poll_ms: int = Field(default=500, ge=50, le=10000)
    idle_poll_ms: int = Field(default=1000, ge=50, le=60000)
    active_poll_ms: int = Field(default=500, ge=50, le=10000)
    mount_lock_policy: bool = False


class FaultConfig(BaseModel):
    """I/O fault tolerance."""
    max_consecutive_errors: int = Field(default=10, ge=1, le=1000)


class SimulatorConfig(BaseModel):
    """Roof simulator settings."""
    travel_time_sec: float = Field(default=10.0, gt=0.0, le=600.0)
    start_position: Literal["closed", "open", "partial"] = "closed"


class LoggingConfig(BaseModel):
    """Logging output."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file: Optional[str] = None
    json_format: bool = False
    color: bool = True


class RolloffConfig(BaseModel):
    """Root configuration."""
    gpio: GPIOConfig = Field(default_factory=GPIOConfig)
    motion: MotionConfig = Field(default_factory=MotionConfig)
    faults: FaultConfig = Field(default_factory=FaultConfig)
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    park_file: Optional[str] = "~/.rolloff/park.yaml"

    def to_pin_map(self) -> PinFunctionMap:
        """Build the pin function map from the slot configuration."""
        outputs = [
            OutputDefinition(
                function=slot.function,
                pin=slot.pin,
                active_level=slot.active_level,
                pulse=slot.pulse,
                slot=index + 1,
            )
            for index, slot in enumerate(self.gpio.outputs)
            if slot.function != OutputFunction.UNUSED
        ]
        inputs = [
            InputDefinition(
                function=slot.function,
                pin=slot.pin,
                active_level=slot.active_level,
                slot=index + 1,
            )
            for index, slot in enumerate(self.gpio.inputs)
            if slot.function != InputFunction.UNUSED
        ]
        return PinFunctionMap.build(outputs, inputs)


# =============================================================================
# LOADING
# =============================================================================

def get_config_paths() -> List[Path]:
    """Config file locations, in lookup order."""
    return [
        Path("./rolloff.yaml"),
        Path.home() / ".rolloff" / "config.yaml",
        Path("/etc/rolloff/config.yaml"),
    ]


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    sections = {
        name for name, info in RolloffConfig.model_fields.items()
        if isinstance(info.annotation, type) and issubclass(info.annotation, BaseModel)
    }
    for env_key, raw in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        name = env_key[len(ENV_PREFIX):].lower()
        section, _, key = name.partition("_")
        if section in sections and key:
            target = data.setdefault(section, {})
            if isinstance(target, dict):
                target[key] = _coerce(raw)
        elif name in RolloffConfig.model_fields and name not in sections:
            data[name] = _coerce(raw)
    return data


def load_config(path: Optional[Union[str, Path]] = None) -> RolloffConfig:
    """
    Load configuration from YAML.

    Args:
        path: Explicit config file; when None the default locations are
            searched and defaults are used if none exists

    Returns:
        Validated RolloffConfig

    Raises:
        ConfigurationError: File missing, unparsable or invalid
    """
    data: Dict[str, Any] = {}
    config_file: Optional[Path] = None

    if path is not None:
        config_file = Path(path).expanduser()
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}", config_file=str(config_file))
    else:
        config_file = next((p for p in get_config_paths() if p.exists()), None)

    if config_file is not None:
        try:
            with open(config_file) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}",
                                     config_file=str(config_file)) from e
        if not isinstance(data, dict):
            raise ConfigurationError("Invalid YAML in config file: top level must be a mapping",
                                     config_file=str(config_file))

    data = _apply_env_overrides(data)

    try:
        return RolloffConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Configuration validation failed: {e}",
            config_file=str(config_file) if config_file else None,
        ) from e


def save_config(config: RolloffConfig, path: Union[str, Path]) -> Path:
    """Write configuration to a YAML file."""
    target = Path(path).expanduser()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w") as f:
            yaml.safe_dump(config.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"Could not write config file: {e}", config_file=str(target)) from e
    return target
