"""Fixed-ratio polyphase resampler for rational sample-rate conversion."""

from __future__ import annotations

import math
import numbers
import operator
from dataclasses import dataclass

import numpy

from .table import acquire_table, release_table


@dataclass(frozen=True)
class ProcessResult:
    """Frames produced by one call to process, and what is left over.

    ``inp_count`` is the number of input frames not consumed and
    ``out_count`` the number of requested output frames not produced.
    """

    output: numpy.ndarray
    inp_count: int
    out_count: int


def _as_frames(inp, nchan):
    """Normalise input to (frames or None for silence, frame count)."""
    if inp is None:
        return None, 0
    if isinstance(inp, numbers.Integral) and not isinstance(inp, bool):
        count = int(inp)
        if count < 0:
            raise ValueError("number of zero frames must not be negative")
        return None, count
    frames = numpy.asarray(inp, dtype=numpy.float32)
    if frames.ndim == 1:
        if frames.size % nchan:
            raise ValueError("interleaved input length is not a multiple of nchan")
        frames = frames.reshape(-1, nchan)
    elif frames.ndim != 2 or frames.shape[1] != nchan:
        raise ValueError(f"input must have shape (frames, {nchan})")
    return frames, frames.shape[0]


def _out_count(out_count):
    count = operator.index(out_count)
    if count < 0:
        raise ValueError("out_count must not be negative")
    return count


def gcd(a, b):
    """Greatest common divisor, with gcd(0, b) == b and gcd(a, 0) == a."""
    return math.gcd(a, b)


class Resampler:
    """Resample between two integer rates whose reduced ratio is small."""

    def __init__(self):
        self._table = None
        self._coeffs = None
        self._buff = None
        self._nchan = 0
        self._inmax = 0
        self._pstep = 0
        self._reset_state()

    def __del__(self):
        table = getattr(self, "_table", None)
        if table is not None:
            release_table(table)
            self._table = None

    def _reset_state(self):
        self._index = 0
        self._nzero = 0
        self._phase = 0
        self._nread = 2 * self._table.hl if self._table is not None else 0

    def setup(self, fs_inp, fs_out, nchan, hlen, frel=None):
        """Configure for fs_inp -> fs_out with nchan channels.

        Raises ValueError when the parameters cannot be handled.
        """
        if frel is None:
            if hlen < 8 or hlen > 96:
                raise ValueError("hlen must be between 8 and 96")
            frel = 1.0 - 2.6 / hlen
        if fs_inp <= 0 or fs_out <= 0 or nchan <= 0 or hlen < 1:
            self.clear()
            raise ValueError("sample rates, channel count and hlen must be positive")
        r = fs_out / fs_inp
        n = gcd(fs_out, fs_inp)
        np_ = fs_out // n
        dp = fs_inp // n
        if 64 * r < 1.0 or np_ > 1000:
            self.clear()
            raise ValueError(f"sample rate ratio {fs_out}/{fs_inp} is not supported")
        hl = hlen
        mi = 32
        if r < 1.0:
            frel *= r
            hl = int(math.ceil(hl / r))
            mi = int(math.ceil(mi / r))
        table = acquire_table(frel, hl, np_)
        self.clear()
        self._table = table
        ctab = table.ctab
        self._coeffs = numpy.concatenate((ctab, ctab[::-1, ::-1]), axis=1)
        self._buff = numpy.zeros((nchan, 2 * hl + mi), dtype=numpy.float32)
        self._nchan = nchan
        self._inmax = mi
        self._pstep = dp
        self._reset_state()

    def clear(self):
        """Drop the configuration and release the shared table."""
        release_table(self._table)
        self._table = None
        self._coeffs = None
        self._buff = None
        self._nchan = 0
        self._inmax = 0
        self._pstep = 0
        self._reset_state()

    def reset(self):
        """Return to the state just after setup."""
        if self._table is None:
            raise RuntimeError("resampler is not configured")
        self._reset_state()

    def nchan(self):
        """Number of channels, 0 when not configured."""
        return self._nchan

    def inpsize(self):
        """Length of the filter in input frames."""
        if self._table is None:
            return 0
        return 2 * self._table.hl

    def inpdist(self):
        """Distance in input frames from the next output to the next input."""
        if self._table is None:
            return 0.0
        return (self._table.hl + 1 - self._nread) - self._phase / self._table.np

    def process(self, inp, out_count, *, discard=False):
        """Consume input and produce at most out_count frames.

        ``inp`` is an array of frames (shape (n, nchan), or interleaved 1-D),
        an int giving a number of zero frames, or None for no input.
        With ``discard`` the output frames are counted but not computed.
        """
        table = self._table
        if table is None:
            raise RuntimeError("resampler is not configured")
        nchan = self._nchan
        frames, inp_count = _as_frames(inp, nchan)
        out_count = _out_count(out_count)

        hl2 = 2 * table.hl
        np_ = table.np
        dp = self._pstep
        inmax = self._inmax
        buff = self._buff
        coeffs = self._coeffs
        index, nread, nzero, phase = self._index, self._nread, self._nzero, self._phase

        out = numpy.zeros((0 if discard else out_count, nchan), dtype=numpy.float32)
        pos = 0
        produced = 0
        while produced < out_count:
            if nread and pos < inp_count:
                k = min(nread, inp_count - pos)
                start = index + hl2 - nread
                if frames is None:
                    buff[:, start:start + k] = 0.0
                    nzero = min(nzero + k, hl2)
                else:
                    buff[:, start:start + k] = frames[pos:pos + k].T
                    nzero = 0
                pos += k
                nread -= k
            if nread:
                break
            if not discard and nzero < hl2:
                out[produced] = buff[:, index:index + hl2] @ coeffs[phase]
            produced += 1
            phase += dp
            if phase >= np_:
                nread = phase // np_
                phase -= nread * np_
                index += nread
                if index >= inmax:
                    keep = hl2 - nread
                    buff[:, :keep] = buff[:, index:index + keep].copy()
                    index = 0

        self._index, self._nread, self._nzero, self._phase = index, nread, nzero, phase
        return ProcessResult(
            output=out[:produced],
            inp_count=inp_count - pos,
            out_count=out_count - produced,
        )