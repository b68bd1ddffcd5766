"""Units -- unit-of-measure registry and exact group-scoped conversion."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from inventory_kernel.domain.quantities import round_qty, to_decimal
from inventory_kernel.exceptions import UnitIncompatibleError, UnknownUnitError


class UnitGroup(str, Enum):
    """Physical dimension of a unit.  Conversion never crosses groups."""

    MASS = "mass"
    VOLUME = "volume"
    COUNT = "count"


def _normalize(unit: str) -> str:
    return unit.strip().lower()


@dataclass(frozen=True)
class UnitDefinition:
    """
    One unit of measure.

    ``to_base`` is the number of group base units in one of this unit
    (g for mass, mL for volume, ea for count).
    """

    code: str
    group: UnitGroup
    to_base: Decimal
    name: str = ""
    aliases: tuple[str, ...] = ()
    active: bool = True

    def __post_init__(self) -> None:
        if not self.code or not self.code.strip():
            raise ValueError("Unit code must be non-empty")
        if self.to_base <= 0:
            raise ValueError(f"Unit {self.code}: to_base must be positive, got {self.to_base}")

    @property
    def keys(self) -> frozenset[str]:
        """Normalized code and aliases under which this unit resolves."""
        return frozenset(_normalize(k) for k in (self.code, *self.aliases) if k.strip())


DEFAULT_UNITS: tuple[UnitDefinition, ...] = (
    UnitDefinition(
        "mg", UnitGroup.MASS, Decimal("0.001"), "Milligram",
        ("milligram", "milligrams"),
    ),
    UnitDefinition(
        "g", UnitGroup.MASS, Decimal("1"), "Gram",
        ("gram", "grams"),
    ),
    UnitDefinition(
        "kg", UnitGroup.MASS, Decimal("1000"), "Kilogram",
        ("kilogram", "kilograms"),
    ),
    UnitDefinition(
        "mL", UnitGroup.VOLUME, Decimal("1"), "Millilitre",
        ("milliliter", "millilitre", "milliliters", "millilitres", "cc"),
    ),
    UnitDefinition(
        "L", UnitGroup.VOLUME, Decimal("1000"), "Litre",
        ("liter", "litre", "liters", "litres"),
    ),
    UnitDefinition(
        "ea", UnitGroup.COUNT, Decimal("1"), "Each",
        ("each", "unit", "units", "pc", "pcs"),
    ),
)


@dataclass(frozen=True)
class UnitTable:
    """
    Immutable lookup of unit definitions.

    Contract:
        Built once at startup (defaults plus organization overrides) and
        injected into every service that converts quantities.  Lookups are
        case-insensitive over codes and aliases; inactive units do not
        resolve.

    Guarantees:
        - ``convert`` only succeeds inside one UnitGroup.
        - Results are exact Decimal arithmetic quantized to the stored
          quantity precision.
    """

    definitions: tuple[UnitDefinition, ...] = DEFAULT_UNITS
    _index: dict[str, UnitDefinition] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, UnitDefinition] = {}
        for definition in self.definitions:
            if not definition.active:
                continue
            for key in definition.keys:
                existing = index.get(key)
                if existing is not None and existing is not definition:
                    raise ValueError(
                        f"Unit key {key!r} is claimed by both {existing.code} and {definition.code}"
                    )
                index[key] = definition
        object.__setattr__(self, "_index", index)

    @classmethod
    def with_overrides(
        cls,
        overrides: Iterable[UnitDefinition],
        base: Iterable[UnitDefinition] = DEFAULT_UNITS,
    ) -> "UnitTable":
        """
        Build a table where each override replaces every base unit it
        shares a code or alias with (case-insensitive).
        """
        merged = list(base)
        for override in overrides:
            merged = [d for d in merged if not (d.keys & override.keys)]
            merged.append(override)
        return cls(tuple(merged))

    def resolve(self, unit: str) -> UnitDefinition:
        """
        Look up a unit by code or alias.

        Raises:
            UnknownUnitError: If nothing active matches.
        """
        if unit is None:
            raise UnknownUnitError(str(unit))
        definition = self._index.get(_normalize(unit))
        if definition is None:
            raise UnknownUnitError(unit)
        return definition

    def is_known(self, unit: str) -> bool:
        return unit is not None and _normalize(unit) in self._index

    def convert(self, value: Decimal | int | str, from_unit: str, to_unit: str) -> Decimal:
        """
        Convert ``value`` from one unit to another within the same group.

        Raises:
            UnknownUnitError: Either unit is not in the table.
            UnitIncompatibleError: Units belong to different groups.
        """
        source = self.resolve(from_unit)
        target = self.resolve(to_unit)
        if source.group != target.group:
            raise UnitIncompatibleError(
                from_unit=from_unit,
                to_unit=to_unit,
                from_group=source.group.value,
                to_group=target.group.value,
            )
        amount = to_decimal(value)
        if source is target:
            return round_qty(amount)
        return round_qty(amount * source.to_base / target.to_base)

    def is_compatible(self, unit_a: str, unit_b: str) -> bool:
        """True when both units resolve and share a group."""
        if not (self.is_known(unit_a) and self.is_known(unit_b)):
            return False
        return self.resolve(unit_a).group == self.resolve(unit_b).group

    def compatible_units(self, unit: str) -> list[UnitDefinition]:
        """All active units sharing ``unit``'s group, smallest first."""
        group = self.resolve(unit).group
        seen: dict[str, UnitDefinition] = {}
        for definition in self._index.values():
            if definition.group == group:
                seen[definition.code] = definition
        return sorted(seen.values(), key=lambda d: (d.to_base, d.code))

    def units_in_group(self, group: UnitGroup) -> list[UnitDefinition]:
        return sorted(
            {d.code: d for d in self._index.values() if d.group == group}.values(),
            key=lambda d: (d.to_base, d.code),
        )
