"""Numeric parameter descriptors and range validation."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from talkbridge.errors import ConfigurationError
from talkbridge.result import Result


class ParameterDescriptor(BaseModel):
    """Display name, precision and bounds of one named parameter."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    precision: int = Field(default=0, ge=0)
    default_value: Decimal = Decimal(0)
    min_value: Decimal = Decimal(0)
    max_value: Decimal = Decimal("Infinity")

    @model_validator(mode="after")
    def _check_bounds(self) -> ParameterDescriptor:
        if self.min_value > self.max_value:
            raise ValueError("min_value must not exceed max_value")
        if not self.min_value <= self.default_value <= self.max_value:
            raise ValueError("default_value must lie within [min_value, max_value]")
        return self

    def format(self, value: Decimal) -> str:
        return f"{value:.{self.precision}f}"

    def check(self, value: Decimal) -> Result[bool]:
        """Validate ``value`` against the bounds, naming the violated bound."""
        if value < self.min_value:
            return Result.fail(
                f"{self.display_name} cannot be set to {self.format(value)}, "
                f"which is below the minimum {self.format(self.min_value)}.",
                False,
            )
        if value > self.max_value:
            return Result.fail(
                f"{self.display_name} cannot be set to {self.format(value)}, "
                f"which is above the maximum {self.format(self.max_value)}.",
                False,
            )
        return Result.ok(True)


class ParameterCatalog:
    """Immutable id to descriptor lookup, in declaration order."""

    def __init__(self, descriptors: Iterable[ParameterDescriptor] = ()) -> None:
        self._by_id: dict[str, ParameterDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.id in self._by_id:
                raise ConfigurationError(f"Duplicate parameter id: {descriptor.id}")
            self._by_id[descriptor.id] = descriptor

    def __contains__(self, parameter_id: object) -> bool:
        return parameter_id in self._by_id

    def __iter__(self):
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, parameter_id: str) -> ParameterDescriptor | None:
        return self._by_id.get(parameter_id)

    def ids(self) -> list[str]:
        return list(self._by_id)


def to_decimal_map(values: Mapping[str, Decimal | float | int | str]) -> dict[str, Decimal]:
    return {key: value if isinstance(value, Decimal) else Decimal(str(value)) for key, value in values.items()}
