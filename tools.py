import math
from typing import Iterable, Optional

from errors import ValidationError


class NumberParser:
    """Coerce loosely typed input into optional numbers."""

    @staticmethod
    def parse(
        value: object,
        *,
        integer: bool = False,
        strict: bool = False,
        minimum: float | None = None,
        field: str = "value",
    ) -> Optional[float]:
        """Return ``value`` as a number or ``None``.

        ``None`` and blank strings map to ``None``. Strings are stripped and
        parsed as decimals; integer fields truncate toward zero. Values that
        cannot be parsed (or fall below ``minimum``) become ``None`` unless
        ``strict`` is set, in which case :class:`ValidationError` is raised.
        """
        if value is None:
            return None
        if isinstance(value, bool):
            number = None
        elif isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            try:
                number = float(text)
            except ValueError:
                number = None
        else:
            number = None
        if number is None or math.isnan(number) or math.isinf(number):
            if strict:
                raise ValidationError(f"{field} must be a number")
            return None
        if minimum is not None and number < minimum:
            if strict:
                raise ValidationError(f"{field} must be at least {minimum:g}")
            return None
        if integer:
            return int(number)
        return number

    @classmethod
    def parse_int(
        cls,
        value: object,
        *,
        strict: bool = False,
        minimum: int | None = None,
        field: str = "value",
    ) -> Optional[int]:
        return cls.parse(
            value, integer=True, strict=strict, minimum=minimum, field=field
        )

    @classmethod
    def parse_float(
        cls,
        value: object,
        *,
        strict: bool = False,
        minimum: float | None = None,
        field: str = "value",
    ) -> Optional[float]:
        return cls.parse(value, strict=strict, minimum=minimum, field=field)


class MathTools:
    """Provides the volume arithmetic shared by repositories and services."""

    @staticmethod
    def volume(sets: Iterable[tuple[Optional[float], Optional[float]]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += (reps or 0) * (weight or 0)
        return vol

    @staticmethod
    def legacy_volume(
        sets: Optional[float], reps: Optional[float], weight: Optional[float]
    ) -> float:
        """Volume from the scalar ``sets``/``reps``/``weight`` columns."""
        return float((sets or 0) * (reps or 0) * (weight or 0))

    @classmethod
    def exercise_volume(
        cls,
        set_volume: Optional[float],
        sets: Optional[float],
        reps: Optional[float],
        weight: Optional[float],
    ) -> float:
        """Volume of one exercise.

        ``set_volume`` is the summed volume of its set rows, or ``None`` when
        it has none; only then do the legacy scalar columns count.
        """
        if set_volume is not None:
            return float(set_volume)
        return cls.legacy_volume(sets, reps, weight)

    @staticmethod
    def round_volume(value: float) -> float:
        return round(value, 2)
