"""
ROLLOFF Pin Function Map

Translates abstract roof functions into physical GPIO pins. The map is
built once per connection from the configured slots and handed to the
activation engine; it is never mutated afterwards.

Pins are not checked against the physical wiring. A map missing mandatory
roles is still accepted so the driver stays usable for the functions that
are defined; the gaps are listed by ``problems()``.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from rolloff.exceptions import ConfigurationError
from rolloff.types import (
    ActiveLevel,
    InputFunction,
    MANDATORY_INPUTS,
    MOTION_OUTPUTS,
    OutputFunction,
    PulseDuration,
)

MIN_PIN = 2
MAX_PIN = 27
MAX_OUTPUT_SLOTS = 5
MAX_INPUT_SLOTS = 4


@dataclass(frozen=True)
class OutputDefinition:
    """A relay output: function, BCM pin, polarity and pulse length."""
    function: OutputFunction
    pin: int
    active_level: ActiveLevel = ActiveLevel.HIGH
    pulse: PulseDuration = PulseDuration.MS_500
    slot: int = 0

    @property
    def active_high(self) -> bool:
        return self.active_level == ActiveLevel.HIGH

    @property
    def timed(self) -> bool:
        """True when the output is released automatically after a pulse."""
        return self.pulse != PulseDuration.NO_LIMIT


@dataclass(frozen=True)
class InputDefinition:
    """A switch input: function, BCM pin and polarity."""
    function: InputFunction
    pin: int
    active_level: ActiveLevel = ActiveLevel.HIGH
    slot: int = 0

    @property
    def active_high(self) -> bool:
        return self.active_level == ActiveLevel.HIGH


def _check_pin(pin: int, name: str) -> None:
    if not MIN_PIN <= pin <= MAX_PIN:
        raise ConfigurationError(
            f"GPIO pin {pin} for {name} is outside {MIN_PIN}-{MAX_PIN}",
            config_key=name,
        )


@dataclass(frozen=True)
class PinFunctionMap:
    """Validated function-to-pin table.

    Use ``PinFunctionMap.build()`` to construct from slot lists; it drops
    UNUSED slots and rejects duplicate functions and out-of-range pins.
    """
    outputs: Dict[OutputFunction, OutputDefinition] = field(default_factory=dict)
    inputs: Dict[InputFunction, InputDefinition] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        outputs: Iterable[OutputDefinition] = (),
        inputs: Iterable[InputDefinition] = (),
    ) -> "PinFunctionMap":
        out_table: Dict[OutputFunction, OutputDefinition] = {}
        in_table: Dict[InputFunction, InputDefinition] = {}

        out_list = list(outputs)
        in_list = list(inputs)
        if len(out_list) > MAX_OUTPUT_SLOTS:
            raise ConfigurationError(f"At most {MAX_OUTPUT_SLOTS} output definitions are supported")
        if len(in_list) > MAX_INPUT_SLOTS:
            raise ConfigurationError(f"At most {MAX_INPUT_SLOTS} input definitions are supported")

        for definition in out_list:
            if definition.function == OutputFunction.UNUSED:
                continue
            _check_pin(definition.pin, definition.function.value)
            if definition.function in out_table:
                raise ConfigurationError(
                    f"Output function {definition.function.value} is defined more than once",
                    config_key=definition.function.value,
                )
            out_table[definition.function] = definition

        for definition in in_list:
            if definition.function == InputFunction.UNUSED:
                continue
            _check_pin(definition.pin, definition.function.value)
            if definition.function in in_table:
                raise ConfigurationError(
                    f"Input function {definition.function.value} is defined more than once",
                    config_key=definition.function.value,
                )
            in_table[definition.function] = definition

        return cls(outputs=out_table, inputs=in_table)

    def output(self, function: OutputFunction) -> Optional[OutputDefinition]:
        return self.outputs.get(function)

    def input(self, function: InputFunction) -> Optional[InputDefinition]:
        return self.inputs.get(function)

    def problems(self) -> List[str]:
        """List the definitions that will make roof operations fail."""
        issues = []
        for function in (OutputFunction.OPEN, OutputFunction.CLOSE):
            if function not in self.outputs:
                issues.append(f"No GPIO definition for the {function.value.upper()} relay")
        for function in (InputFunction.OPENED, InputFunction.CLOSED):
            if function not in self.inputs:
                issues.append(f"No GPIO definition for the {function.value.upper()} switch")
        for function in sorted(MOTION_OUTPUTS, key=lambda f: f.value):
            definition = self.outputs.get(function)
            if definition is not None and not definition.timed:
                issues.append(
                    f"{function.value.upper()} needs an active limit; "
                    "No Limit is only available for LOCK and AUXSET"
                )
        return issues

    def has_required_roles(self) -> bool:
        return (
            OutputFunction.OPEN in self.outputs
            and OutputFunction.CLOSE in self.outputs
            and MANDATORY_INPUTS.issubset(self.inputs)
        )
