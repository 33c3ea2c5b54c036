#!/usr/bin/env python3

"""
Scale Division Engine
Computes "nice" axis tick layouts (major, medium and minor ticks) for linear,
logarithmic and calendar-time scales, and the transform placing scale values
on a paint interval.

Table of Contents
   1. Setup
   2. Fundamental Functions
   3. Intervals, Divisions & Transforms
   4. Linear Scale Engine
   5. Logarithmic Scale Engine
   6. Calendar
   7. Time Scale Engine
   8. Axes
   9. Commands
"""

# ----------------------1. Setup----------------------------

import calendar
import logging
import math
import os
import re
import sys
from dataclasses import dataclass, replace
from datetime import MAXYEAR, MINYEAR, date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum, Flag, IntEnum
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import toml

LOGGER_NAME = 'ScaleEngine'
log = logging.getLogger(LOGGER_NAME)

DBL_MAX = sys.float_info.max
EPS = 1.0e-6  # relative tolerance against step sizes
FUZZY_NULL = 1.0e-12
LOG_MIN = 1.0e-150
LOG_MAX = 1.0e150
MAX_TICKS = 10000


class Attribute(Flag):
    """Options changing how an engine lays out its interval."""
    NONE = 0
    INCLUDE_REFERENCE = 1
    """Widen the interval to include the reference value."""
    SYMMETRIC = 2
    """Mirror the interval around the reference value."""
    FLOATING = 4
    """Keep the bounds as given instead of aligning them to the step size."""
    INVERTED = 8
    """Reverse the tick order and transform direction."""


class TickType(Enum):
    MINOR, MEDIUM, MAJOR = range(3)


class EngineType(Enum):
    LINEAR, LOG, TIME = 'linear', 'log', 'time'


class CalendarUnit(IntEnum):
    MILLISECOND = 0
    SECOND = 1
    MINUTE = 2
    HOUR = 3
    DAY = 4
    WEEK = 5
    MONTH = 6
    YEAR = 7


# ----------------------2. Fundamental Functions----------------------------


def log_base(base: float, value: float) -> float:
    return math.log10(value) if base == 10 else math.log(value) / math.log(base)


def divide_eps(interval_size: float, num_steps: float) -> float:
    """Step size of num_steps equal steps, shrunk slightly so exact quotients stay exact."""
    if num_steps == 0 or interval_size == 0:
        return 0.0
    return (interval_size - (EPS * interval_size)) / num_steps


def divide_interval(interval_size: float, num_steps: int, base: int = 10) -> float:
    """The "nice number" step size dividing interval_size into at most num_steps steps.

    Steps are of the form base^p times a member of the halving sequence of base:
    1, 2, 5 (and 10) for base 10. The sign of interval_size is kept.
    Returns 0 when there is nothing to divide.
    """
    if num_steps <= 0 or math.isnan(interval_size):
        return 0.0
    if math.isinf(interval_size):
        # wider than the float range: divide half of it
        return 2 * divide_interval(math.copysign(DBL_MAX, interval_size), num_steps, base)
    v = divide_eps(interval_size, num_steps)
    if v == 0.0:
        return 0.0
    lx = log_base(base, abs(v))
    p = math.floor(lx)
    fraction = math.pow(base, lx - p)
    n = base
    while n > 1 and fraction <= n // 2:
        n //= 2
    step_size = n * math.pow(base, p)
    return -step_size if v < 0 else step_size


def ceil_eps(value: float, interval_size: float) -> float:
    eps = EPS * interval_size
    return math.ceil((value - eps) / interval_size) * interval_size


def floor_eps(value: float, interval_size: float) -> float:
    eps = EPS * interval_size
    return math.floor((value + eps) / interval_size) * interval_size


def fuzzy_compare(value1: float, value2: float, interval_size: float) -> int:
    """Three-way comparison treating values closer than 1e-6 of interval_size as equal."""
    eps = abs(EPS * interval_size)
    if value2 - value1 > eps:
        return -1
    if value1 - value2 > eps:
        return 1
    return 0


def fuzzy_equal(a: float, b: float) -> bool:
    return abs(a - b) * 1e12 <= min(abs(a), abs(b))


def even_step_size(interval_size: int, max_steps: int, base: int) -> int:
    """Integer step size splitting interval_size evenly into 2..max_steps steps, or 0.

    For even bases, 2 * base^p is also accepted once the halving sequence reaches 3.
    """
    if max_steps <= 2:
        return 0
    for num_steps in range(max_steps, 1, -1):
        step_size = interval_size / num_steps
        p = math.floor(math.log(step_size) / math.log(base))
        fraction = math.pow(base, p)
        n = base
        while n >= 1:
            if fuzzy_equal(step_size, n * fraction):
                return round(step_size)
            if n == 3 and base % 2 == 0 and fuzzy_equal(step_size, 2 * fraction):
                return round(step_size)
            n //= 2
    return 0


def step_count(interval_size: int, max_steps: int, limits) -> int:
    """First count of 2..max_steps steps whose size from limits splits interval_size exactly."""
    for limit in limits:
        num_steps = interval_size // limit
        if 1 < num_steps <= max_steps and num_steps * limit == interval_size:
            return num_steps
    return 0


def divide_by_limits(interval_size: float, num_steps: int, limits) -> int:
    v = math.ceil(interval_size / num_steps)
    for limit in limits[:-1]:
        if v <= limit:
            return limit
    return limits[-1]


# ----------------------3. Intervals, Divisions & Transforms----------------------------


@dataclass(frozen=True)
class Interval:
    """A pair of scale bounds. min_value may exceed max_value for an inverted axis."""
    min_value: float
    max_value: float

    def __iter__(self):
        return iter((self.min_value, self.max_value))

    def is_valid(self) -> bool:
        return self.min_value <= self.max_value

    @property
    def width(self) -> float:
        return self.max_value - self.min_value if self.is_valid() else 0.0

    def normalized(self):
        return self.inverted() if self.min_value > self.max_value else self

    def inverted(self):
        return Interval(self.max_value, self.min_value)

    def contains(self, value: float) -> bool:
        return self.is_valid() and self.min_value <= value <= self.max_value

    def extend(self, value: float):
        """Widen to include value."""
        if not self.is_valid():
            return self
        return Interval(min(value, self.min_value), max(value, self.max_value))

    def symmetrize(self, value: float):
        """Center on value, keeping the larger of the two half-widths."""
        if not self.is_valid():
            return self
        delta = max(abs(value - self.max_value), abs(value - self.min_value))
        return Interval(value - delta, value + delta)

    def limited(self, lower_bound: float, upper_bound: float):
        if not self.is_valid() or lower_bound > upper_bound:
            return self
        return Interval(min(max(self.min_value, lower_bound), upper_bound),
                        min(max(self.max_value, lower_bound), upper_bound))


def fuzzy_contains(interval: Interval, value: float) -> bool:
    if not interval.is_valid():
        return False
    return (fuzzy_compare(value, interval.min_value, interval.width) >= 0
            and fuzzy_compare(value, interval.max_value, interval.width) <= 0)


def strip_ticks(ticks, interval: Interval) -> list[float]:
    return [v for v in ticks if math.isfinite(v) and fuzzy_contains(interval, v)]


@dataclass(frozen=True)
class ScaleDivision:
    """A bounding interval with its major, medium and minor tick positions.

    Tick sequences are ordered like the interval: descending when it is inverted.
    """
    interval: Interval
    major_ticks: tuple[float, ...] = ()
    medium_ticks: tuple[float, ...] = ()
    minor_ticks: tuple[float, ...] = ()

    def ticks(self, tick_type: TickType) -> tuple[float, ...]:
        if tick_type == TickType.MAJOR:
            return self.major_ticks
        if tick_type == TickType.MEDIUM:
            return self.medium_ticks
        return self.minor_ticks

    @property
    def lower_bound(self):
        return self.interval.min_value

    @property
    def upper_bound(self):
        return self.interval.max_value

    def is_increasing(self):
        return self.lower_bound <= self.upper_bound

    def is_empty(self):
        return self.lower_bound == self.upper_bound

    def contains(self, value: float):
        return min(self.lower_bound, self.upper_bound) <= value <= max(self.lower_bound, self.upper_bound)

    def inverted(self):
        return ScaleDivision(self.interval.inverted(),
                             self.major_ticks[::-1], self.medium_ticks[::-1], self.minor_ticks[::-1])

    def bounded(self, lower_bound: float, upper_bound: float):
        """Keep only the ticks between the given bounds, which become the new interval."""
        lo, hi = min(lower_bound, upper_bound), max(lower_bound, upper_bound)

        def within(ticks):
            return tuple(v for v in ticks if lo <= v <= hi)

        return ScaleDivision(Interval(lower_bound, upper_bound),
                             within(self.major_ticks), within(self.medium_ticks), within(self.minor_ticks))


@dataclass(frozen=True)
class TransformFN:
    """An invertible function with the domain it is defined on.

    Calling it outside of [min_x, max_x] is a domain fault; use bounded() to clamp first.
    """
    fn: Callable[[float], float]
    inverse: Callable[[float], float]
    min_x: float = -math.inf
    max_x: float = math.inf

    def __call__(self, x: float):
        if not self.min_x <= x <= self.max_x:
            raise ValueError(f'{x} is outside of the transform domain [{self.min_x}, {self.max_x}]')
        return self.fn(x)

    def bounded(self, x: float):
        return max(min(x, self.max_x), self.min_x)


def identity(x): return x


class TransformFNs:
    Null = TransformFN(identity, identity)
    Log = TransformFN(math.log, math.exp, min_x=LOG_MIN, max_x=LOG_MAX)


@dataclass(frozen=True)
class Transform:
    """Maps scale values in [s1, s2] onto paint positions in [p1, p2] through fn."""
    fn: TransformFN = TransformFNs.Null
    s1: float = 0.0
    s2: float = 1.0
    p1: float = 0.0
    p2: float = 1.0

    @property
    def ts1(self):
        return self.fn(self.fn.bounded(self.s1))

    @property
    def ts2(self):
        return self.fn(self.fn.bounded(self.s2))

    @property
    def cnv(self):
        ts1, ts2 = self.ts1, self.ts2
        return (self.p2 - self.p1) / (ts2 - ts1) if ts1 != ts2 else 1.0

    def is_inverting(self):
        return (self.p1 < self.p2) != (self.s1 < self.s2)

    def transform(self, value: float) -> float:
        return self.p1 + (self.fn(self.fn.bounded(value)) - self.ts1) * self.cnv

    def inv_transform(self, position: float) -> float:
        cnv = self.cnv
        if cnv == 0.0:
            return self.fn.inverse(self.ts1)
        return self.fn.inverse(self.ts1 + (position - self.p1) / cnv)


# ----------------------4. Linear Scale Engine----------------------------


def step_count_of(interval: Interval, step_size: float) -> float:
    """interval.width / step_size, finite even when the width overflows."""
    return interval.max_value / step_size - interval.min_value / step_size


def align_linear(interval: Interval, step_size: float) -> Interval:
    """Floor the minimum and ceil the maximum to multiples of step_size.

    Bounds which only differ from their aligned value by rounding noise are kept as is.
    """
    x1, x2 = interval.min_value, interval.max_value
    if -DBL_MAX + step_size <= x1:
        x = floor_eps(x1, step_size)
        if abs(x) <= FUZZY_NULL or not fuzzy_equal(x1, x):
            x1 = x
    if DBL_MAX - step_size >= x2:
        x = ceil_eps(x2, step_size)
        if abs(x) <= FUZZY_NULL or not fuzzy_equal(x2, x):
            x2 = x
    return Interval(x1, x2)


def align_within(interval: Interval, step_size: float, max_steps: int, base: int = 10):
    """Align interval to step_size, widening the step while that leaves more than max_steps steps."""
    aligned = align_linear(interval, step_size)
    # alignment can add a step at either end
    while step_count_of(aligned, step_size) > max_steps + 0.5:
        wider = divide_interval(aligned.width, max_steps, base)
        if wider <= step_size:
            break
        step_size = wider
        aligned = align_linear(interval, step_size)
    return aligned, step_size


def minor_step_size(step_size: float, max_steps: int, base: int) -> float:
    min_step = divide_interval(step_size, max_steps, base)
    if min_step != 0.0:
        num_ticks = math.ceil(abs(step_size / min_step)) - 1
        # the minor steps have to fit into the major step
        if fuzzy_compare((num_ticks + 1) * abs(min_step), abs(step_size), step_size) > 0:
            return 0.5 * step_size
    return min_step


@dataclass(frozen=True)
class ScaleEngine:
    """Common settings of the engines: attributes, reference value, margins and base."""
    attributes: Attribute = Attribute.NONE
    reference: float = 0.0
    lower_margin: float = 0.0
    upper_margin: float = 0.0
    base: int = 10

    def test_attribute(self, attribute: Attribute) -> bool:
        return attribute in self.attributes

    def transform_fn(self) -> TransformFN:
        return TransformFNs.Null

    def build_interval(self, value: float) -> Interval:
        """A small interval around value, spanning 1% of its magnitude."""
        delta = 0.5 if value == 0.0 else abs(0.005 * value)
        if DBL_MAX - delta < value:
            return Interval(DBL_MAX - delta, DBL_MAX)
        if -DBL_MAX + delta > value:
            return Interval(-DBL_MAX, -DBL_MAX + delta)
        return Interval(value - delta, value + delta)

    def _prepared_interval(self, x1: float, x2: float) -> Interval:
        interval = Interval(x1, x2).normalized()
        interval = Interval(interval.min_value - self.lower_margin, interval.max_value + self.upper_margin)
        if self.test_attribute(Attribute.SYMMETRIC):
            interval = interval.symmetrize(self.reference)
        if self.test_attribute(Attribute.INCLUDE_REFERENCE):
            interval = interval.extend(self.reference)
        if interval.width == 0.0:
            interval = self.build_interval(interval.min_value)
        return interval

    def linear_engine(self):
        return LinearScaleEngine(attributes=self.attributes, reference=self.reference,
                                 lower_margin=self.lower_margin, upper_margin=self.upper_margin)

    def auto_scale(self, max_steps: int, x1: float, x2: float) -> tuple[float, float, float]:
        raise NotImplementedError

    def divide_scale(self, x1: float, x2: float, max_major: int, max_minor: int,
                     step_size: float = 0.0) -> ScaleDivision:
        raise NotImplementedError

    def compute_scale(self, interval: Interval, max_major: int, max_minor: int = 0,
                      step_size: float = 0.0) -> ScaleDivision:
        """Adjust interval to the attributes, then divide it into ticks.

        A nonzero step_size skips the automatic bounds adjustment.
        """
        x1, x2 = interval
        if step_size == 0.0:
            x1, x2, step_size = self.auto_scale(max_major, x1, x2)
        else:
            x1, x2 = min(x1, x2), max(x1, x2)
            if self.test_attribute(Attribute.INVERTED):
                x1, x2 = x2, x1
        return self.divide_scale(x1, x2, max_major, max_minor, step_size)

    def transform_for(self, scale_div: ScaleDivision, p1: float = 0.0, p2: float = 1.0) -> Transform:
        return Transform(self.transform_fn(), scale_div.lower_bound, scale_div.upper_bound, p1, p2)


@dataclass(frozen=True)
class LinearScaleEngine(ScaleEngine):

    def align(self, interval: Interval, step_size: float) -> Interval:
        return align_linear(interval, step_size)

    def auto_scale(self, max_steps: int, x1: float, x2: float):
        interval = self._prepared_interval(x1, x2)
        max_steps = max(max_steps, 1)
        step_size = divide_interval(interval.width, max_steps, self.base)
        if step_size != 0.0 and not self.test_attribute(Attribute.FLOATING):
            interval, step_size = align_within(interval, step_size, max_steps, self.base)
        x1, x2 = interval
        if self.test_attribute(Attribute.INVERTED):
            x1, x2 = x2, x1
            step_size = -step_size
        return x1, x2, step_size

    def divide_scale(self, x1: float, x2: float, max_major: int, max_minor: int, step_size: float = 0.0):
        interval = Interval(x1, x2).normalized()
        if interval.width <= 0.0:
            interval = self.build_interval(interval.min_value)
        step_size = abs(step_size)
        if step_size == 0.0:
            step_size = divide_interval(interval.width, max(max_major, 1), self.base)
        if step_size == 0.0:
            scale_div = ScaleDivision(interval)
        else:
            scale_div = ScaleDivision(interval, *self._build_ticks(interval, step_size, max_minor))
        return scale_div.inverted() if x1 > x2 else scale_div

    def _build_ticks(self, interval: Interval, step_size: float, max_minor: int):
        major = self._major_ticks(self.align(interval, step_size), step_size)
        medium, minor = self._minor_ticks(major, max_minor, step_size) if max_minor > 0 else ([], [])
        result = []
        for ticks in (major, medium, minor):
            ticks = strip_ticks(ticks, interval)
            result.append(tuple(0.0 if fuzzy_compare(v, 0.0, step_size) == 0 else v for v in ticks))
        return result

    @staticmethod
    def _major_ticks(interval: Interval, step_size: float) -> list[float]:
        num_ticks = min(math.floor(step_count_of(interval, step_size) + EPS) + 1, MAX_TICKS)
        ticks = [interval.min_value + i * step_size for i in range(num_ticks)]
        if fuzzy_compare(ticks[-1], interval.max_value, step_size) == 0:
            ticks[-1] = interval.max_value
        return ticks

    def _minor_ticks(self, major_ticks: list[float], max_minor: int, step_size: float):
        min_step = minor_step_size(step_size, max_minor, self.base)
        if min_step == 0.0:
            return [], []
        num_ticks = math.ceil(abs(step_size / min_step)) - 1
        # an odd count of ticks has a middle one
        medium_index = num_ticks // 2 if num_ticks % 2 else -1
        medium, minor = [], []
        for major in major_ticks:
            for k in range(num_ticks):
                value = major + (k + 1) * min_step
                if fuzzy_compare(value, 0.0, step_size) == 0:
                    value = 0.0
                (medium if k == medium_index else minor).append(value)
        return medium, minor


# ----------------------5. Logarithmic Scale Engine----------------------------


@dataclass(frozen=True)
class LogScaleEngine(ScaleEngine):
    """Divides on log(value): major ticks at powers of base.

    Margins are given in powers of base. Step sizes passed between auto_scale and
    divide_scale are in powers of base too; for intervals narrower than one power of
    base they are the log of the linear step, negative for steps below 1.
    """

    def transform_fn(self):
        return TransformFNs.Log

    def _log_interval(self, interval: Interval) -> Interval:
        return Interval(log_base(self.base, interval.min_value), log_base(self.base, interval.max_value))

    @staticmethod
    def _clamped(interval: Interval) -> Interval:
        result = interval.limited(LOG_MIN, LOG_MAX)
        if result != interval:
            log.warning('Log scale interval [%g, %g] clamped to [%g, %g]',
                        interval.min_value, interval.max_value, result.min_value, result.max_value)
        return result

    def align(self, interval: Interval, step_size: float) -> Interval:
        lmin, lmax = self._log_interval(interval)
        x1 = floor_eps(lmin, step_size)
        x2 = ceil_eps(lmax, step_size)
        lower = interval.min_value if fuzzy_compare(lmin, x1, step_size) == 0 else math.pow(self.base, x1)
        upper = interval.max_value if fuzzy_compare(lmax, x2, step_size) == 0 else math.pow(self.base, x2)
        return Interval(lower, upper)

    def auto_scale(self, max_steps: int, x1: float, x2: float):
        if x1 > x2:
            x1, x2 = x2, x1
        interval = self._clamped(Interval(x1 / math.pow(self.base, self.lower_margin),
                                          x2 * math.pow(self.base, self.upper_margin)))

        if interval.max_value / interval.min_value < self.base:
            # less than one step wide: try a linear scale
            lx1, lx2, step_size = self.linear_engine().auto_scale(
                max_steps, max(x1, LOG_MIN), max(x2, LOG_MIN))
            aligned = Interval(lx1, lx2).normalized().limited(LOG_MIN, LOG_MAX)
            if aligned.max_value / aligned.min_value < self.base:
                return lx1, lx2, log_base(self.base, abs(step_size)) if step_size else 0.0

        log_ref = 1.0
        if self.reference > LOG_MIN / 2:
            log_ref = min(self.reference, LOG_MAX / 2)

        if self.test_attribute(Attribute.SYMMETRIC):
            delta = max(interval.max_value / log_ref, log_ref / interval.min_value)
            interval = Interval(log_ref / delta, log_ref * delta)

        if self.test_attribute(Attribute.INCLUDE_REFERENCE):
            interval = interval.extend(log_ref)

        interval = interval.limited(LOG_MIN, LOG_MAX)
        if interval.width == 0.0:
            interval = self.build_interval(interval.min_value).limited(LOG_MIN, LOG_MAX)

        step_size = divide_interval(self._log_interval(interval).width, max(max_steps, 1), self.base)
        step_size = max(step_size, 1.0)

        if not self.test_attribute(Attribute.FLOATING):
            interval = self.align(interval, step_size)

        x1, x2 = interval
        if self.test_attribute(Attribute.INVERTED):
            x1, x2 = x2, x1
            step_size = -step_size
        return x1, x2, step_size

    def divide_scale(self, x1: float, x2: float, max_major: int, max_minor: int, step_size: float = 0.0):
        interval = self._clamped(Interval(x1, x2).normalized())
        if interval.width <= 0.0:
            interval = self.build_interval(interval.min_value).limited(LOG_MIN, LOG_MAX)

        if interval.max_value / interval.min_value < self.base:
            # less than one step wide: build a linear scale
            if step_size != 0.0:
                # steps below 1 arrive as negative logs
                step_size = math.pow(self.base, step_size)
            lo, hi = interval
            if x1 > x2:
                lo, hi = hi, lo
            return self.linear_engine().divide_scale(lo, hi, max_major, max_minor, step_size)

        step_size = abs(step_size)
        if step_size == 0.0:
            step_size = divide_interval(self._log_interval(interval).width, max(max_major, 1), self.base)
            step_size = max(step_size, 1.0)

        scale_div = ScaleDivision(interval, *self._build_ticks(interval, step_size, max_minor))
        return scale_div.inverted() if x1 > x2 else scale_div

    def _build_ticks(self, interval: Interval, step_size: float, max_minor: int):
        major = self._major_ticks(self.align(interval, step_size), step_size)
        medium, minor = self._minor_ticks(major, max_minor, step_size) if max_minor > 0 else ([], [])
        return [tuple(strip_ticks(ticks, interval)) for ticks in (major, medium, minor)]

    def _major_ticks(self, interval: Interval, step_size: float) -> list[float]:
        lmin, lmax = self._log_interval(interval)
        num_ticks = min(max(round((lmax - lmin) / step_size) + 1, 2), MAX_TICKS)
        lstep = (lmax - lmin) / (num_ticks - 1)
        inner = [math.pow(self.base, lmin + i * lstep) for i in range(1, num_ticks - 1)]
        return [interval.min_value] + inner + [interval.max_value]

    def _minor_ticks(self, major_ticks: list[float], max_minor: int, step_size: float):
        base = self.base
        medium, minor = [], []

        if step_size < 1.1:
            # one power of base per major step: ticks at multiples of the major value
            min_step = divide_interval(step_size, max_minor + 1, base)
            if min_step == 0.0:
                return medium, minor
            num_steps = round(step_size / min_step)
            medium_index = num_steps // 2 if num_steps > 2 and num_steps % 2 == 0 else -1
            s = base / num_steps
            for v in major_ticks[:-1]:
                if s >= 1.0:
                    if not fuzzy_equal(s, 1.0):
                        minor.append(v * s)
                    minor.extend(v * j * s for j in range(2, num_steps))
                else:
                    for j in range(1, num_steps):
                        tick = v + j * v * (base - 1) / num_steps
                        (medium if j == medium_index else minor).append(tick)
            return medium, minor

        min_step = divide_interval(step_size, max_minor, base)
        if min_step == 0.0:
            return medium, minor
        min_step = max(min_step, 1.0)
        num_ticks = round(step_size / min_step) - 1
        if fuzzy_compare((num_ticks + 1) * min_step, step_size, step_size) > 0:
            num_ticks = 0
        if num_ticks < 1:
            return medium, minor
        medium_index = num_ticks // 2 if num_ticks > 2 and num_ticks % 2 else -1
        min_factor = max(math.pow(base, min_step), base)
        for tick in major_ticks:
            for j in range(num_ticks):
                tick *= min_factor
                (medium if j == medium_index else minor).append(tick)
        return medium, minor


# ----------------------6. Calendar----------------------------


UTC = timezone.utc
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Calendar arithmetic stays one day inside of what datetime can hold, so any tz offset still fits.
FIRST_DATE = date(MINYEAR, 1, 2)
LAST_DATE = date(MAXYEAR, 12, 30)

# Supported date range, in UTC: values are clamped to it, so their local dates are always in
# [FIRST_DATE, LAST_DATE].
MIN_DATE = FIRST_DATE + timedelta(days=1)
MAX_DATE = LAST_DATE - timedelta(days=1)

FIRST_DAY_OF_WEEK = calendar.MONDAY

SECONDS_OF = {
    CalendarUnit.SECOND: 1,
    CalendarUnit.MINUTE: 60,
    CalendarUnit.HOUR: 60 * 60,
    CalendarUnit.DAY: 24 * 60 * 60,
    CalendarUnit.WEEK: 7 * 24 * 60 * 60,
}

MSECS_OF = {
    CalendarUnit.MILLISECOND: 1.0,
    CalendarUnit.SECOND: 1000.0,
    CalendarUnit.MINUTE: 60.0 * 1000.0,
    CalendarUnit.HOUR: 3600.0 * 1000.0,
    CalendarUnit.DAY: 24.0 * 3600.0 * 1000.0,
    CalendarUnit.WEEK: 7.0 * 24.0 * 3600.0 * 1000.0,
    CalendarUnit.MONTH: 30.0 * 24.0 * 3600.0 * 1000.0,
    CalendarUnit.YEAR: 365.25 * 24.0 * 3600.0 * 1000.0,
}


def to_double(dt: datetime) -> float:
    """Milliseconds since 1970-01-01T00:00:00 UTC. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    delta = dt - EPOCH
    return float((delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000)


MIN_TIME_VALUE = to_double(datetime.combine(MIN_DATE, time(), UTC))
MAX_TIME_VALUE = to_double(datetime.combine(MAX_DATE, time(), UTC))


def to_datetime(value: float, tz: tzinfo = UTC) -> datetime:
    """The datetime in tz at value milliseconds since the epoch, clamped to the supported range."""
    value = min(max(value, MIN_TIME_VALUE), MAX_TIME_VALUE)
    return (EPOCH + timedelta(milliseconds=value)).astimezone(tz)


def _checked(dt: datetime) -> datetime:
    if not FIRST_DATE <= dt.date() <= LAST_DATE:
        raise OverflowError(f'{dt.isoformat()} is outside of the supported date range')
    return dt


def add_msecs(dt: datetime, msecs: float) -> datetime:
    """Fixed-duration addition, independent of wall-clock changes."""
    return _checked((dt.astimezone(UTC) + timedelta(milliseconds=msecs)).astimezone(dt.tzinfo))


def add_seconds(dt: datetime, seconds: float) -> datetime:
    return add_msecs(dt, seconds * 1000)


def add_days(dt: datetime, days: int) -> datetime:
    """Calendar addition keeping the wall-clock time."""
    return _checked(datetime.combine(dt.date() + timedelta(days=days), dt.timetz()))


def add_months(dt: datetime, months: int) -> datetime:
    """Calendar addition; the day is clamped to the length of the resulting month."""
    year, month = divmod(dt.year * 12 + dt.month - 1 + months, 12)
    if not MINYEAR <= year <= MAXYEAR:
        raise OverflowError(f'Year {year} is outside of the supported date range')
    day = min(dt.day, calendar.monthrange(year, month + 1)[1])
    return _checked(dt.replace(year=year, month=month + 1, day=day))


def add_years(dt: datetime, years: int) -> datetime:
    return add_months(dt, 12 * years)


def add_units(dt: datetime, count: int, unit: CalendarUnit) -> datetime:
    if unit == CalendarUnit.MILLISECOND:
        return add_msecs(dt, count)
    if unit <= CalendarUnit.HOUR:
        return add_seconds(dt, count * SECONDS_OF[unit])
    if unit == CalendarUnit.DAY:
        return add_days(dt, count)
    if unit == CalendarUnit.WEEK:
        return add_days(dt, 7 * count)
    if unit == CalendarUnit.MONTH:
        return add_months(dt, count)
    return add_years(dt, count)


def floor_datetime(dt: datetime, unit: CalendarUnit) -> datetime:
    """Start of the unit containing dt, on the wall clock of dt."""
    if dt.date() <= FIRST_DATE:
        return dt
    if unit == CalendarUnit.MILLISECOND:
        return dt.replace(microsecond=dt.microsecond // 1000 * 1000)
    if unit == CalendarUnit.SECOND:
        return dt.replace(microsecond=0)
    if unit == CalendarUnit.MINUTE:
        return dt.replace(second=0, microsecond=0)
    if unit == CalendarUnit.HOUR:
        return dt.replace(minute=0, second=0, microsecond=0)
    day = dt.replace(hour=0, minute=0, second=0, microsecond=0, fold=0)
    if unit == CalendarUnit.DAY:
        return day
    if unit == CalendarUnit.WEEK:
        ordinal = day.toordinal() - (day.weekday() - FIRST_DAY_OF_WEEK) % 7
        floored = datetime.combine(date.fromordinal(max(ordinal, 1)), day.timetz())
    elif unit == CalendarUnit.MONTH:
        floored = day.replace(day=1)
    else:
        floored = day.replace(month=1, day=1)
    return floored if floored.date() >= FIRST_DATE else dt


def ceil_datetime(dt: datetime, unit: CalendarUnit) -> datetime:
    """Start of the next unit, unless dt is at a unit start already."""
    if dt.date() >= LAST_DATE:
        return dt
    floored = floor_datetime(dt, unit)
    if floored == dt:
        return dt
    try:
        return add_units(floored, 1, unit)
    except OverflowError:
        log.debug('Cannot ceil %s to %s', dt.isoformat(), unit.name)
        return dt


def _align_value(value: float, step_size: float, up: bool) -> float:
    d = value / step_size
    return (math.ceil(d) if up else math.floor(d)) * step_size


def align_datetime(dt: datetime, step_size: float, unit: CalendarUnit, up: bool) -> datetime:
    """Align dt to a multiple of step_size units counted from the start of the enclosing unit.

    Days count from the start of the year, weeks from the Monday of ISO week 1,
    months from January and years from year 0. Raises OverflowError at the edge
    of the supported range.
    """
    midnight = time()
    if unit == CalendarUnit.MILLISECOND:
        return to_datetime(_align_value(to_double(dt), step_size, up), dt.tzinfo)
    if unit == CalendarUnit.SECOND:
        second = dt.second + (1 if up and dt.microsecond else 0)
        return add_seconds(floor_datetime(dt, CalendarUnit.MINUTE), _align_value(second, step_size, up))
    if unit == CalendarUnit.MINUTE:
        minute = dt.minute + (1 if up and (dt.second or dt.microsecond) else 0)
        return add_seconds(floor_datetime(dt, CalendarUnit.HOUR), _align_value(minute, step_size, up) * 60)
    if unit == CalendarUnit.HOUR:
        hour = dt.hour + (1 if up and (dt.minute or dt.second or dt.microsecond) else 0)
        return add_seconds(floor_datetime(dt, CalendarUnit.DAY), _align_value(hour, step_size, up) * 3600)
    if unit == CalendarUnit.DAY:
        day = dt.timetuple().tm_yday + (1 if up and dt.time() > midnight else 0)
        days = int(_align_value(day, step_size, up))
        return add_days(floor_datetime(dt, CalendarUnit.YEAR), days - 1)
    if unit == CalendarUnit.WEEK:
        week0 = date.fromisocalendar(dt.year, 1, 1)
        days = (dt.date() - week0).days
        weeks = days // 7 + (1 if up and (dt.time() > midnight or days % 7) else 0)
        start = floor_datetime(dt, CalendarUnit.DAY).replace(year=week0.year, month=week0.month, day=week0.day)
        return add_days(start, int(_align_value(weeks, step_size, up)) * 7)
    if unit == CalendarUnit.MONTH:
        month = dt.month + (1 if up and (dt.day > 1 or dt.time() > midnight) else 0)
        months = int(_align_value(month - 1, step_size, up))
        return add_months(floor_datetime(dt, CalendarUnit.YEAR), months)
    year = dt.year + (1 if up and (dt.timetuple().tm_yday > 1 or dt.time() > midnight) else 0)
    year = int(_align_value(year, step_size, up))
    if year > MAXYEAR:
        raise OverflowError(f'Year {year} is outside of the supported date range')
    # there is no year 0
    year = max(year, MINYEAR)
    return _checked(floor_datetime(dt, CalendarUnit.DAY).replace(year=year, month=1, day=1))


def _wall(dt: datetime) -> datetime:
    return dt.replace(tzinfo=None)


@dataclass(frozen=True)
class CalendarInterval:
    """A time interval between two timezone-aware datetimes."""
    min_date: datetime
    max_date: datetime

    @classmethod
    def from_values(cls, min_value: float, max_value: float, tz: tzinfo = UTC):
        return cls(to_datetime(min_value, tz), to_datetime(max_value, tz))

    @classmethod
    def from_interval(cls, interval: Interval, tz: tzinfo = UTC):
        return cls.from_values(interval.min_value, interval.max_value, tz)

    @property
    def min_value(self) -> float:
        return to_double(self.min_date)

    @property
    def max_value(self) -> float:
        return to_double(self.max_date)

    def to_interval(self) -> Interval:
        return Interval(self.min_value, self.max_value)

    def rounded(self, unit: CalendarUnit):
        return CalendarInterval(floor_datetime(self.min_date, unit), ceil_datetime(self.max_date, unit))

    def adjusted(self, step_size: float, unit: CalendarUnit):
        """Rounded to unit, then widened to multiples of step_size units."""
        interval = self.rounded(unit)
        return CalendarInterval(self._aligned(interval.min_date, step_size, unit, False),
                                self._aligned(interval.max_date, step_size, unit, True))

    @staticmethod
    def _aligned(dt: datetime, step_size: float, unit: CalendarUnit, up: bool):
        try:
            return align_datetime(dt, step_size, unit, up)
        except OverflowError:
            log.debug('Cannot align %s to %s %s', dt.isoformat(), step_size, unit.name)
            return dt

    def width(self, unit: CalendarUnit) -> float:
        """Length in units; months and years are counted on the calendar, days on the wall clock."""
        d1, d2 = self.min_date, self.max_date
        if unit == CalendarUnit.YEAR:
            years = d2.year - d1.year
            if (d2.month, d2.day, d2.time()) < (d1.month, d1.day, d1.time()):
                years -= 1
            return float(years)
        if unit == CalendarUnit.MONTH:
            months = (d2.year - d1.year) * 12 + d2.month - d1.month
            if (d2.day, d2.time()) < (d1.day, d1.time()):
                months -= 1
            return float(months)
        if unit in (CalendarUnit.DAY, CalendarUnit.WEEK):
            days = (_wall(d2) - _wall(d1)) / timedelta(days=1)
            return days / 7 if unit == CalendarUnit.WEEK else days
        return (self.max_value - self.min_value) / MSECS_OF[unit]

    def rounded_width(self, unit: CalendarUnit) -> int:
        """Whole units spanned, after rounding the interval to unit."""
        return math.ceil(self.rounded(unit).width(unit))


_OFFSET_RE = re.compile(r'^([+-])(\d{2}):?(\d{2})$')


def resolve_tz(name: Optional[str]) -> tzinfo:
    """Resolve a time zone name into a tzinfo.

    Supported forms:
      - None/"" / "local" / "system": the machine's local time zone
      - "UTC" / "Z" / "GMT"
      - Fixed offsets: "+02:00", "+0200", "-05:00"
      - IANA names, e.g. "Europe/Berlin"

    Raises ValueError for invalid names.
    """
    tz_name = str(name).strip() if name is not None else ''
    low = tz_name.lower()
    if low in {'', 'local', 'system'}:
        return datetime.now().astimezone().tzinfo or UTC
    if low in {'utc', 'z', 'gmt'}:
        return UTC

    if match := _OFFSET_RE.match(tz_name):
        sign_s, hh_s, mm_s = match.groups()
        hh, mm = int(hh_s), int(mm_s)
        if hh > 23 or mm > 59:
            raise ValueError(f'Invalid time zone offset: {tz_name!r}')
        sign = 1 if sign_s == '+' else -1
        return timezone(timedelta(minutes=sign * (hh * 60 + mm)))

    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as ex:
        raise ValueError(f'Invalid time zone identifier: {tz_name!r}') from ex


# ----------------------7. Time Scale Engine----------------------------


class StepLimits:
    """Allowed step sizes per calendar unit."""
    Seconds = (1, 2, 5, 10, 15, 20, 30, 60)
    Hours = (1, 2, 3, 4, 6, 12, 24)
    Weeks = (1, 2, 4, 8, 12, 26, 52)
    Months = (1, 2, 3, 4, 6, 12)
    MinorHours = (1, 2, 3, 4, 6, 12, 24, 48, 72)
    MinorDays = (1, 2, 3, 7, 14, 28)


def divide_within_unit(interval_size: float, num_steps: int, unit: CalendarUnit):
    """Major step size, in units, for interval_size units divided into at most num_steps steps."""
    if unit != CalendarUnit.DAY and num_steps < interval_size <= 2 * num_steps:
        return 2
    if unit in (CalendarUnit.SECOND, CalendarUnit.MINUTE):
        return divide_by_limits(interval_size, num_steps, StepLimits.Seconds)
    if unit == CalendarUnit.HOUR:
        return divide_by_limits(interval_size, num_steps, StepLimits.Hours)
    if unit == CalendarUnit.DAY:
        v = interval_size / num_steps
        return max(math.ceil(v), 1) if v <= 5.0 else math.ceil(v / 7) * 7
    if unit == CalendarUnit.WEEK:
        return divide_by_limits(interval_size, num_steps, StepLimits.Weeks)
    if unit == CalendarUnit.MONTH:
        return divide_by_limits(interval_size, num_steps, StepLimits.Months)
    if unit == CalendarUnit.YEAR:
        return max(int(divide_interval(interval_size, num_steps, 10)), 1)
    return divide_interval(interval_size, num_steps, 10)


def divide_major_step(step_size: int, max_minor: int, unit: CalendarUnit) -> float:
    """Minor step size, in units, subdividing a major step of step_size units."""
    min_step = 0.0
    num_steps = 0

    if unit == CalendarUnit.SECOND:
        min_step = even_step_size(step_size, max_minor, 10)
    elif unit == CalendarUnit.MINUTE:
        if step_size > max_minor:
            num_steps = step_count(step_size, max_minor, StepLimits.Seconds)
        else:
            num_steps = step_count(step_size * 60, max_minor, StepLimits.Seconds)
    elif unit == CalendarUnit.HOUR:
        if step_size > max_minor:
            num_steps = step_count(step_size, max_minor, StepLimits.MinorHours)
        else:
            num_steps = step_count(step_size * 60, max_minor, StepLimits.Seconds)
    elif unit == CalendarUnit.DAY:
        if step_size > max_minor:
            num_steps = step_count(step_size, max_minor, StepLimits.MinorDays)
        else:
            num_steps = step_count(step_size * 24, max_minor, StepLimits.MinorHours)
    elif unit == CalendarUnit.WEEK:
        if max_minor >= step_size * 7:
            min_step = 1.0 / 7.0  # one tick per day
        elif step_size <= max_minor:
            min_step = 1.0
        else:
            min_step = divide_interval(step_size, max_minor, 10)
    elif unit == CalendarUnit.MONTH:
        # no fractions of months
        num_steps = step_count(step_size, min(max_minor, step_size), StepLimits.Months)
    elif unit == CalendarUnit.YEAR:
        if step_size >= max_minor:
            min_step = divide_interval(step_size, max_minor, 10)
        else:
            num_steps = step_count(12 * step_size, max_minor, StepLimits.Months)

    if num_steps > 0:
        min_step = step_size / num_steps
    if unit != CalendarUnit.MONTH and min_step == 0.0:
        min_step = 0.5 * step_size
    return min_step


def is_medium_step(i: int, num_steps: int) -> bool:
    return num_steps % 2 == 0 and i != 1 and i == num_steps // 2


@dataclass(frozen=True)
class TimeScaleEngine(ScaleEngine):
    """Divides a timeline of milliseconds since the epoch into calendar units.

    tz is the time zone whose wall clock the ticks are aligned to. max_weeks is the
    width in weeks above which wide intervals switch to month ticks.
    """
    tz: tzinfo = UTC
    max_weeks: int = 4

    def _clamped(self, interval: Interval) -> Interval:
        result = interval.limited(MIN_TIME_VALUE, MAX_TIME_VALUE)
        if result != interval:
            log.warning('Time interval [%g, %g] clamped to the supported date range [%s, %s]',
                        interval.min_value, interval.max_value, MIN_DATE, MAX_DATE)
        if result.width == 0.0:
            result = self.build_interval(result.min_value).limited(MIN_TIME_VALUE, MAX_TIME_VALUE)
        return result

    def interval_type(self, min_value: float, max_value: float, max_steps: int) -> CalendarUnit:
        """The coarsest unit keeping the interval within max_steps steps."""
        if max_value - min_value > max_steps * MSECS_OF[CalendarUnit.YEAR]:
            return CalendarUnit.YEAR

        interval = CalendarInterval.from_values(min_value, max_value, self.tz)
        if interval.rounded_width(CalendarUnit.MONTH) > max_steps * 6:
            return CalendarUnit.YEAR

        days = interval.rounded_width(CalendarUnit.DAY)
        weeks = interval.rounded_width(CalendarUnit.WEEK)
        if weeks > max(self.max_weeks, 0) and days > 4 * max_steps * 7:
            return CalendarUnit.MONTH
        if days > max_steps * 7:
            return CalendarUnit.WEEK

        if interval.rounded_width(CalendarUnit.HOUR) > max_steps * 24:
            return CalendarUnit.DAY

        seconds = interval.rounded_width(CalendarUnit.SECOND)
        if seconds >= max_steps * 3600:
            return CalendarUnit.HOUR
        if seconds >= max_steps * 60:
            return CalendarUnit.MINUTE
        if seconds >= max_steps:
            return CalendarUnit.SECOND
        return CalendarUnit.MILLISECOND

    def auto_scale(self, max_steps: int, x1: float, x2: float):
        interval = self._clamped(self._prepared_interval(x1, x2))
        max_steps = max(max_steps, 1)
        unit = self.interval_type(interval.min_value, interval.max_value, max_steps)

        if unit == CalendarUnit.MILLISECOND:
            step_size = divide_interval(interval.width, max_steps, 10)
            if step_size != 0.0 and not self.test_attribute(Attribute.FLOATING):
                interval, step_size = align_within(interval, step_size, max_steps)
        else:
            calendar_interval = CalendarInterval.from_interval(interval, self.tz)
            units = divide_within_unit(calendar_interval.rounded(unit).width(unit), max_steps, unit)
            if not self.test_attribute(Attribute.FLOATING):
                adjusted = calendar_interval.adjusted(units, unit)
                # alignment can add a step at either end
                while round(adjusted.width(unit) / units) > max_steps:
                    wider = divide_within_unit(adjusted.width(unit), max_steps, unit)
                    if wider <= units:
                        break
                    units = wider
                    adjusted = calendar_interval.adjusted(units, unit)
                interval = adjusted.to_interval()
            step_size = units * MSECS_OF[unit]

        x1, x2 = interval
        if self.test_attribute(Attribute.INVERTED):
            x1, x2 = x2, x1
            step_size = -step_size
        return x1, x2, step_size

    def divide_scale(self, x1: float, x2: float, max_major: int, max_minor: int, step_size: float = 0.0):
        """Divide [x1, x2] into calendar ticks.

        Calendar steps are not equidistant, so a nonzero step_size is only a hint
        which may lower the number of major steps below max_major.
        """
        max_major = max(max_major, 1)
        step_size = abs(step_size)
        interval = self._clamped(Interval(x1, x2).normalized())
        lo, hi = interval
        if step_size > 0.0:
            max_major = min(max_major, max(math.ceil((hi - lo) / step_size), 1))

        unit = self.interval_type(lo, hi, max_major)
        log.debug('Dividing [%s, %s] into %d %s steps', lo, hi, max_major, unit.name)
        if unit == CalendarUnit.MILLISECOND:
            scale_div = self.linear_engine().divide_scale(lo, hi, max_major, max_minor, step_size)
        else:
            scale_div = self.divide_to(lo, hi, max_major, max_minor, unit)
        return scale_div.inverted() if x1 > x2 else scale_div

    def divide_to(self, min_value: float, max_value: float, max_major: int, max_minor: int,
                  unit: CalendarUnit) -> ScaleDivision:
        interval = CalendarInterval.from_values(min_value, max_value, self.tz).rounded(unit)
        step_size = divide_within_unit(interval.width(unit), max_major, unit)
        interval = interval.adjusted(step_size, unit)

        if unit == CalendarUnit.MONTH:
            ticks = self._month_ticks(interval, step_size, max_minor)
        elif unit == CalendarUnit.YEAR:
            ticks = self._year_ticks(interval, step_size, max_minor)
        else:
            min_step = divide_major_step(step_size, max_minor, unit) if max_minor > 1 else 0.0
            if unit == CalendarUnit.WEEK:
                ticks = self._week_ticks(interval, step_size, min_step)
            else:
                ticks = self._fixed_ticks(interval, step_size, min_step, unit)

        major, medium, minor = ticks
        scale_div = ScaleDivision(interval.to_interval(), tuple(major), tuple(medium), tuple(minor))
        # the rounded interval is wider than requested
        return scale_div.bounded(min_value, max_value)

    def _fixed_ticks(self, interval: CalendarInterval, step_size: int, min_step: float, unit: CalendarUnit):
        """Ticks every step_size units of fixed duration.

        Ticks of days and multiple hours are shifted by the change of the UTC offset
        since the interval start, to stay on the same wall-clock time across a DST switch.
        """
        unit_ms = SECONDS_OF[unit] * 1000
        step_ms = step_size * unit_ms
        min_step_ms = min_step * unit_ms
        daylight_saving = unit > CalendarUnit.HOUR or (unit == CalendarUnit.HOUR and step_size > 1)
        num_steps = math.floor(step_size / min_step) if min_step > 0.0 else 0

        start = interval.min_date
        start_offset = start.utcoffset()

        def tick_value(dt: datetime) -> float:
            value = to_double(dt)
            if daylight_saving:
                value += (start_offset - dt.utcoffset()) / timedelta(milliseconds=1)
            return value

        major, medium, minor = [], [], []
        try:
            for k in range(MAX_TICKS):
                dt = add_msecs(start, k * step_ms)
                value = tick_value(dt)
                if value > interval.max_value:
                    break
                if not major or major[-1] != value:
                    major.append(value)
                for i in range(1, num_steps):
                    minor_value = tick_value(add_msecs(dt, round(i * min_step_ms)))
                    ticks = medium if is_medium_step(i, num_steps) else minor
                    if not ticks or ticks[-1] != minor_value:
                        ticks.append(minor_value)
        except OverflowError:
            log.debug('Tick generation stopped at the end of the supported date range')
        return major, medium, minor

    @staticmethod
    def _week_ticks(interval: CalendarInterval, step_size: int, min_step: float):
        num_steps = math.floor(step_size / min_step) if min_step > 0.0 else 0
        major, medium, minor = [], [], []
        try:
            for k in range(MAX_TICKS):
                dt = add_days(interval.min_date, k * step_size * 7)
                value = to_double(dt)
                if value > interval.max_value:
                    break
                major.append(value)
                for i in range(1, num_steps):
                    minor_value = to_double(add_days(dt, round(i * min_step * 7)))
                    (medium if is_medium_step(i, num_steps) else minor).append(minor_value)
        except OverflowError:
            log.debug('Tick generation stopped at the end of the supported date range')
        return major, medium, minor

    @staticmethod
    def _month_ticks(interval: CalendarInterval, step_size: int, max_minor: int):
        min_step_days = 0
        min_step = 0.0
        if max_minor > 1:
            if step_size == 1:
                if max_minor >= 30:
                    min_step_days = 1
                elif max_minor >= 6:
                    min_step_days = 5
                elif max_minor >= 3:
                    min_step_days = 10
                else:
                    min_step_days = 15
            else:
                min_step = divide_major_step(step_size, max_minor, CalendarUnit.MONTH)
        num_steps = round(step_size / min_step) if min_step > 0.0 else 0

        major, medium, minor = [], [], []
        try:
            for k in range(MAX_TICKS):
                dt = add_months(interval.min_date, k * step_size)
                value = to_double(dt)
                if value > interval.max_value:
                    break
                major.append(value)
                if min_step_days > 0:
                    days_in_month = calendar.monthrange(dt.year, dt.month)[1]
                    for days in range(min_step_days, days_in_month, min_step_days):
                        tick = to_double(add_days(dt, days))
                        if days == 15 and min_step_days != 15:
                            medium.append(tick)
                        else:
                            minor.append(tick)
                for i in range(1, num_steps):
                    tick = to_double(add_months(dt, round(i * min_step)))
                    if num_steps % 2 == 0 and i == num_steps // 2:
                        medium.append(tick)
                    else:
                        minor.append(tick)
        except OverflowError:
            log.debug('Tick generation stopped at the end of the supported date range')
        return major, medium, minor

    @staticmethod
    def _year_ticks(interval: CalendarInterval, step_size: int, max_minor: int):
        min_step = divide_major_step(step_size, max_minor, CalendarUnit.YEAR) if max_minor > 1 else 0.0
        num_steps = math.floor(step_size / min_step) if min_step > 0.0 else 0

        major, medium, minor = [], [], []
        try:
            for k in range(MAX_TICKS):
                dt = add_years(interval.min_date, k * step_size)
                value = to_double(dt)
                if value > interval.max_value:
                    break
                major.append(value)
                for i in range(1, num_steps):
                    tick = to_double(add_months(dt, round(i * min_step * 12)))
                    if num_steps > 2 and num_steps % 2 == 0 and i == num_steps // 2:
                        medium.append(tick)
                    else:
                        minor.append(tick)
        except OverflowError:
            log.debug('Tick generation stopped at the end of the supported date range')
        return major, medium, minor


ENGINES = {
    EngineType.LINEAR: LinearScaleEngine,
    EngineType.LOG: LogScaleEngine,
    EngineType.TIME: TimeScaleEngine,
}


def engine_for(engine_type: EngineType, **options) -> ScaleEngine:
    return ENGINES[EngineType(engine_type)](**options)


def compute_scale(interval, max_major: int, max_minor: int = 0, step_size: float = 0.0,
                  attributes: Attribute = Attribute.NONE, engine: ScaleEngine = None) -> ScaleDivision:
    """The tick layout for interval, with at most max_major major steps.

    interval may be an Interval or a (min, max) pair. The engine defaults to a linear one;
    attributes are added to those of the engine.
    """
    if not isinstance(interval, Interval):
        interval = Interval(*interval)
    engine = engine or LinearScaleEngine()
    if attributes:
        engine = replace(engine, attributes=engine.attributes | attributes)
    return engine.compute_scale(interval, max_major, max_minor, step_size)


def transform_for(scale_div: ScaleDivision, engine: ScaleEngine = None,
                  paint_interval=(0.0, 1.0)) -> Transform:
    """The transform from the values of scale_div onto paint_interval."""
    engine = engine or LinearScaleEngine()
    p1, p2 = paint_interval
    return engine.transform_for(scale_div, p1, p2)


# --------------------------8. Axes----------------------------


def attributes_from_names(names) -> Attribute:
    result = Attribute.NONE
    for name in names or ():
        key = str(name).strip().upper().replace('-', '_')
        if key not in Attribute.__members__:
            raise ValueError(f'Unknown scale attribute: {name}')
        result |= Attribute[key]
    return result


@dataclass(frozen=True)
class AxisConfig:
    """The per-axis settings a caller keeps: engine choice, tick budgets and attributes."""
    name: str = None
    engine_type: EngineType = EngineType.LINEAR
    max_major: int = 8
    max_minor: int = 5
    step_size: float = 0.0
    attributes: Attribute = Attribute.NONE
    reference: float = 0.0
    lower_margin: float = 0.0
    upper_margin: float = 0.0
    base: int = 10
    time_zone: str = 'UTC'
    max_weeks: int = 4
    interval: Optional[Interval] = None

    @classmethod
    def from_dict(cls, axis_def: dict):
        engine_name = axis_def.get('engine', EngineType.LINEAR.value)
        engine_type = next((e for e in EngineType if e.value == engine_name), None)
        if engine_type is None:
            raise ValueError(f'Unknown scale engine: {engine_name}')
        time_zone = axis_def.get('time_zone', 'UTC')
        tz = resolve_tz(time_zone)
        interval = None
        if 'interval' in axis_def:
            lower, upper = axis_def['interval']
            interval = Interval(parse_axis_value(lower, tz), parse_axis_value(upper, tz))
        return cls(name=axis_def.get('name'), engine_type=engine_type,
                   max_major=int(axis_def.get('max_major', cls.max_major)),
                   max_minor=int(axis_def.get('max_minor', cls.max_minor)),
                   step_size=float(axis_def.get('step_size', cls.step_size)),
                   attributes=attributes_from_names(axis_def.get('attributes')),
                   reference=float(axis_def.get('reference', cls.reference)),
                   lower_margin=float(axis_def.get('lower_margin', cls.lower_margin)),
                   upper_margin=float(axis_def.get('upper_margin', cls.upper_margin)),
                   base=int(axis_def.get('base', cls.base)),
                   time_zone=time_zone,
                   max_weeks=int(axis_def.get('max_weeks', cls.max_weeks)),
                   interval=interval)

    @classmethod
    def from_toml_file(cls, toml_filename: str):
        return cls.from_dict(toml.load(toml_filename))

    example_dir_path = os.path.join(os.path.dirname(os.path.realpath(__file__)), 'examples')

    @classmethod
    def from_example(cls, example_name: str):
        return cls.from_toml_file(os.path.join(cls.example_dir_path, f'Axis-{example_name}.toml'))

    @classmethod
    def load(cls, axis_name: str):
        return cls.from_toml_file(axis_name) if os.path.exists(axis_name) else cls.from_example(axis_name)

    @classmethod
    def example_names(cls):
        for fn in os.listdir(cls.example_dir_path):
            if match := re.match(r'Axis-(.*)\.toml$', fn):
                yield match.group(1)

    @property
    def tz(self) -> tzinfo:
        return resolve_tz(self.time_zone)

    def engine(self) -> ScaleEngine:
        options = dict(attributes=self.attributes, reference=self.reference,
                       lower_margin=self.lower_margin, upper_margin=self.upper_margin, base=self.base)
        if self.engine_type == EngineType.TIME:
            options.update(tz=self.tz, max_weeks=self.max_weeks)
        return engine_for(self.engine_type, **options)

    def compute_scale(self, interval: Interval = None) -> ScaleDivision:
        if interval is None:
            interval = self.interval
        if interval is None:
            raise ValueError(f'No interval given for axis: {self.name}')
        return compute_scale(interval, self.max_major, self.max_minor, self.step_size, engine=self.engine())

    def transform_for(self, scale_div: ScaleDivision, paint_interval=(0.0, 1.0)) -> Transform:
        return transform_for(scale_div, self.engine(), paint_interval)

    def parse_value(self, value) -> float:
        return parse_axis_value(value, self.tz)

    def format_value(self, value: float) -> str:
        if self.engine_type == EngineType.TIME:
            return to_datetime(value, self.tz).isoformat(timespec='milliseconds')
        return f'{value:g}'

    def describe(self, scale_div: ScaleDivision) -> str:
        """A printable listing of the ticks of scale_div."""
        lines = [f'{self.name or "Axis"} ({self.engine_type.value}):'
                 f' {self.format_value(scale_div.lower_bound)} .. {self.format_value(scale_div.upper_bound)}']
        for tick_type in reversed(TickType):
            ticks = scale_div.ticks(tick_type)
            lines.append(f' {tick_type.name.lower()} ({len(ticks)}): '
                         + ', '.join(self.format_value(v) for v in ticks))
        return '\n'.join(lines)


def parse_axis_value(value, tz: tzinfo = UTC) -> float:
    """A scale value from a number, a datetime or an ISO-8601 string; naive times are in tz."""
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            value = datetime.fromisoformat(value)
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time())
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=tz)
        return to_double(value)
    raise ValueError(f'Not a scale value: {value!r}')


# ----------------------9. Commands------------------------------------------


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Configures the engine logger.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to save logs to a file.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # avoid duplicate output when called again
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug('Logging initialized.')


def main():
    """CLI processor for printing the tick layout of an axis."""
    import argparse
    args_parser = argparse.ArgumentParser(description='Compute the scale division of an axis')
    args_parser.add_argument('--axis',
                             default='Percent',
                             help='Example axis name or path to an axis TOML file')
    args_parser.add_argument('--min',
                             help='Lower bound (number or ISO-8601 timestamp)')
    args_parser.add_argument('--max',
                             help='Upper bound (number or ISO-8601 timestamp)')
    args_parser.add_argument('--major',
                             type=int,
                             help='Maximum number of major steps')
    args_parser.add_argument('--minor',
                             type=int,
                             help='Maximum number of minor steps per major step')
    args_parser.add_argument('--log-file',
                             help='Also write the log to this file')
    args_parser.add_argument('--debug',
                             action='store_true',
                             help='Log the engine decisions')
    cli_args = args_parser.parse_args()
    setup_logging(logging.DEBUG if cli_args.debug else logging.INFO, cli_args.log_file)

    axis = AxisConfig.load(cli_args.axis)
    if cli_args.major is not None:
        axis = replace(axis, max_major=cli_args.major)
    if cli_args.minor is not None:
        axis = replace(axis, max_minor=cli_args.minor)

    interval = axis.interval
    if cli_args.min is not None or cli_args.max is not None:
        if interval is None and (cli_args.min is None or cli_args.max is None):
            args_parser.error(f'Axis {cli_args.axis} has no interval; give both --min and --max')
        lower = axis.parse_value(cli_args.min) if cli_args.min is not None else interval.min_value
        upper = axis.parse_value(cli_args.max) if cli_args.max is not None else interval.max_value
        interval = Interval(lower, upper)

    print(axis.describe(axis.compute_scale(interval)))


if __name__ == '__main__':
    main()
