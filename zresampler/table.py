"""Shared windowed-sinc coefficient tables used by the resamplers."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field

import numpy

MAJOR_VERSION = 1
MINOR_VERSION = 8

_lock = threading.Lock()
_tables: list["ResamplerTable"] = []


def major_version():
    """Return the major version of the resampling library."""
    return MAJOR_VERSION


def minor_version():
    """Return the minor version of the resampling library."""
    return MINOR_VERSION


def sinc(x):
    """Normalised sinc function, sin(pi x) / (pi x)."""
    x = abs(x)
    if x < 1e-6:
        return 1.0
    x *= math.pi
    return math.sin(x) / x


def window(x):
    """Window used to taper the sinc, zero outside (-1, 1)."""
    x = abs(x)
    if x >= 1.0:
        return 0.0
    x *= math.pi
    return 0.384 + 0.500 * math.cos(x) + 0.116 * math.cos(2 * x)


def _sinc_array(x):
    x = numpy.abs(x)
    small = x < 1e-6
    px = numpy.where(small, 1.0, x * math.pi)
    return numpy.where(small, 1.0, numpy.sin(px) / px)


def _window_array(x):
    x = numpy.abs(x)
    px = x * math.pi
    w = 0.384 + 0.500 * numpy.cos(px) + 0.116 * numpy.cos(2 * px)
    return numpy.where(x >= 1.0, 0.0, w)


@dataclass(eq=False)
class ResamplerTable:
    """Polyphase filter coefficients: np + 1 rows of hl taps each."""

    fr: float
    hl: int
    np: int
    refc: int = 0
    ctab: numpy.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        if self.hl < 1 or self.np < 1:
            raise ValueError("table needs at least one tap and one phase")
        steps = numpy.ones((self.np + 1, self.hl), dtype=numpy.float64)
        steps[:, 0] = numpy.arange(self.np + 1, dtype=numpy.float64) / self.np
        t = numpy.cumsum(steps, axis=1)
        values = self.fr * _sinc_array(t * self.fr) * _window_array(t / self.hl)
        ctab = values[:, ::-1].astype(numpy.float32)
        ctab.flags.writeable = False
        self.ctab = ctab

    def _matches(self, fr, hl, np):
        return (
            self.fr * 0.999 <= fr <= self.fr * 1.001
            and hl == self.hl
            and np == self.np
        )


def acquire_table(fr, hl, np):
    """Return a shared table for these parameters, creating it if needed."""
    with _lock:
        for table in _tables:
            if table._matches(fr, hl, np):
                table.refc += 1
                return table
        table = ResamplerTable(fr, hl, np)
        table.refc = 1
        _tables.insert(0, table)
        return table


def release_table(table):
    """Drop one reference to a table; it is forgotten when none remain."""
    if table is None:
        return
    with _lock:
        table.refc -= 1
        if table.refc == 0:
            for i, entry in enumerate(_tables):
                if entry is table:
                    del _tables[i]
                    break


def table_list():
    """Return the tables currently shared, most recently created first."""
    with _lock:
        return list(_tables)


def print_list():
    """Print the shared tables with their reference counts."""
    print("Resampler table\n----")
    for table in table_list():
        print(
            f"refc = {table.refc:3d}   fr = {table.fr:10.6f}  "
            f"hl = {table.hl:4d}  np = {table.np:4d}"
        )
    print("----\n")