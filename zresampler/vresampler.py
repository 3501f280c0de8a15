"""Variable-ratio polyphase resampler with smoothly adjustable ratio."""

from __future__ import annotations

import math

import numpy

from .resampler import ProcessResult, _as_frames, _out_count
from .table import acquire_table, release_table


class VResampler:
    """Resample by an arbitrary ratio that can be fine-tuned while running.

    The filter phase is interpolated linearly between the rows of a
    table with a fixed number of phases.
    """

    NPHASE = 120

    def __init__(self):
        self._table = None
        self._coeffs = None
        self._buff = None
        self._nchan = 0
        self._inmax = 0
        self._ratio = 0.0
        self._pstep = 0.0
        self._qstep = 0.0
        self._wstep = 1.0
        self._reset_state()

    def __del__(self):
        table = getattr(self, "_table", None)
        if table is not None:
            release_table(table)
            self._table = None

    def _reset_state(self):
        self._index = 0
        self._nzero = 0
        self._phase = 0.0
        self._nread = 2 * self._table.hl if self._table is not None else 0

    def setup(self, ratio, nchan, hlen, frel=None):
        """Configure for an output/input ratio with nchan channels.

        Raises ValueError when the parameters cannot be handled.
        """
        if frel is None:
            if hlen < 8 or hlen > 96 or 16 * ratio < 1 or ratio > 256:
                raise ValueError("hlen or ratio out of range")
            frel = 1.0 - 2.6 / hlen
        if nchan <= 0 or hlen < 1 or 64 * ratio < 1.0 or ratio > 64:
            self.clear()
            raise ValueError(f"ratio {ratio} or channel count {nchan} not supported")
        dp = self.NPHASE / ratio
        hl = hlen
        mi = 32
        if ratio < 1.0:
            frel *= ratio
            hl = int(math.ceil(hl / ratio))
            mi = int(math.ceil(mi / ratio))
        table = acquire_table(frel, hl, self.NPHASE)
        self.clear()
        self._table = table
        ctab = table.ctab
        self._coeffs = numpy.concatenate((ctab, ctab[::-1, ::-1]), axis=1)
        self._buff = numpy.zeros((nchan, 2 * hl + mi), dtype=numpy.float32)
        self._nchan = nchan
        self._ratio = ratio
        self._inmax = mi
        self._pstep = dp
        self._qstep = dp
        self._wstep = 1.0
        self._reset_state()

    def clear(self):
        """Drop the configuration and release the shared table."""
        release_table(self._table)
        self._table = None
        self._coeffs = None
        self._buff = None
        self._nchan = 0
        self._inmax = 0
        self._pstep = 0.0
        self._qstep = 0.0
        self._wstep = 1.0
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

    def set_phase(self, p):
        """Set the fractional phase of the next output."""
        if self._table is None:
            return
        self._phase = (p - math.floor(p)) * self._table.np

    def set_rrfilt(self, t):
        """Set the time constant, in output frames, of ratio changes."""
        if self._table is None:
            return
        self._wstep = 1.0 if t < 1 else 1.0 - math.exp(-1.0 / t)

    def set_rratio(self, r):
        """Set a relative correction to the ratio, limited to 0.95 .. 16."""
        if self._table is None:
            return
        r = min(max(r, 0.95), 16.0)
        self._qstep = self._table.np / (self._ratio * r)

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
        inmax = self._inmax
        buff = self._buff
        coeffs = self._coeffs
        qstep = self._qstep
        wstep = self._wstep
        dp = self._pstep
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
                n = int(phase)
                b = numpy.float32(phase - n)
                a = numpy.float32(1.0) - b
                coef = a * coeffs[n] + b * coeffs[n + 1]
                out[produced] = buff[:, index:index + hl2] @ coef
            produced += 1

            dd = qstep - dp
            if abs(dd) < 1e-20:
                dp = qstep
            else:
                dp += wstep * dd
            phase += dp
            if phase >= np_:
                nread = int(math.floor(phase / np_))
                phase -= nread * np_
                index += nread
                if index >= inmax:
                    keep = hl2 - nread
                    buff[:, :keep] = buff[:, index:index + keep].copy()
                    index = 0

        self._index, self._nread, self._nzero, self._phase = index, nread, nzero, phase
        self._pstep = dp
        return ProcessResult(
            output=out[:produced],
            inp_count=inp_count - pos,
            out_count=out_count - produced,
        )