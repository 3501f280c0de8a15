"""Cubic-interpolation resampler for arbitrary, adjustable ratios."""

from __future__ import annotations

import math

import numpy

from .resampler import ProcessResult, _as_frames, _out_count

_MIN_RATIO = 0.25


def _check_ratio(ratio):
    if not ratio >= _MIN_RATIO:
        raise ValueError(f"ratio must be at least {_MIN_RATIO}")


class CResampler:
    """Four-point cubic interpolating resampler."""

    def __init__(self):
        self._nchan = 0
        self._inmax = 0
        self._pstep = 0.0
        self._buff = None
        self.reset()

    def setup(self, ratio, nchan):
        """Configure for the output/input ratio and number of channels."""
        if nchan <= 0:
            raise ValueError("nchan must be positive")
        _check_ratio(ratio)
        self.clear()
        self._inmax = 50
        self._buff = numpy.zeros((3 + self._inmax, nchan), dtype=numpy.float32)
        self._nchan = nchan
        self._pstep = 1.0 / ratio
        self.reset()

    def clear(self):
        """Drop the configuration."""
        self._buff = None
        self._nchan = 0
        self._inmax = 0
        self._pstep = 0.0
        self.reset()

    def reset(self):
        """Return to the state just after setup."""
        self._index = 0
        self._phase = 0.0
        self._nread = 4
        self._nzero = 0

    def nchan(self):
        """Number of channels, 0 when not configured."""
        return self._nchan

    def inpsize(self):
        """Length of the interpolator in input frames."""
        return 4

    def inpdist(self):
        """Distance in input frames from the next output to the next input."""
        return (3 - self._nread) - self._phase

    def set_ratio(self, r):
        """Change the output/input ratio."""
        _check_ratio(r)
        self._pstep = 1.0 / r

    def set_phase(self, p):
        """Set the fractional phase of the next output."""
        self._phase = p - math.floor(p)

    def process(self, inp, out_count, *, discard=False):
        """Consume input and produce at most out_count frames.

        ``inp`` is an array of frames, an int giving a number of zero
        frames, or None. With ``discard`` outputs are counted only.
        """
        buff = self._buff
        if buff is None:
            raise RuntimeError("resampler is not configured")
        nchan = self._nchan
        frames, inp_count = _as_frames(inp, nchan)
        out_count = _out_count(out_count)

        inmax = self._inmax
        pstep = self._pstep
        index, nread, nzero, phase = self._index, self._nread, self._nzero, self._phase

        out = numpy.zeros((0 if discard else out_count, nchan), dtype=numpy.float32)
        pos = 0
        produced = 0
        while produced < out_count:
            if nread:
                if pos >= inp_count:
                    break
                k = min(nread, inp_count - pos)
                start = index + 4 - nread
                if frames is None:
                    buff[start:start + k] = 0.0
                    nzero = min(nzero + k, 4)
                else:
                    buff[start:start + k] = frames[pos:pos + k]
                    nzero = 0
                pos += k
                nread -= k
                continue
            if not discard and nzero < 4:
                a = phase
                b = 1.0 - a
                d = a * b / 2
                weights = numpy.array(
                    (-d * b, b + (3 * b - 1) * d, a + (3 * a - 1) * d, -d * a),
                    dtype=numpy.float32,
                )
                out[produced] = weights @ buff[index:index + 4]
            produced += 1
            phase += pstep
            if phase >= 1.0:
                nread = int(math.floor(phase))
                phase -= nread
                index += nread
                if index >= inmax:
                    keep = 4 - nread
                    buff[:keep] = buff[index:index + keep].copy()
                    index = 0

        self._index, self._nread, self._nzero, self._phase = index, nread, nzero, phase
        return ProcessResult(
            output=out[:produced],
            inp_count=inp_count - pos,
            out_count=out_count - produced,
        )