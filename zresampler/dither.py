"""Dithering of float samples to 16-bit integers."""

from __future__ import annotations

import numpy

_SCALE = numpy.float32(32768.0)
_LIMIT = 32767
_SIZE = 64
_DIV = numpy.float32(2.0**32)


def _to_int16(values):
    """Round to nearest even, wrap as a 16-bit conversion does, then limit."""
    k = numpy.rint(values).astype(numpy.int64)
    k = (k + 32768) % 65536 - 32768
    return numpy.clip(k, -_LIMIT, _LIMIT).astype(numpy.int16)


def _wrap16(k):
    return (k + 32768) % 65536 - 32768


class Dither:
    """Rectangular, triangular and noise-shaped (Lipschitz) dither.

    Each instance keeps its own random generator and error history, so
    one instance is used per channel.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        """Restore the initial generator seed and clear the error history."""
        self._err = [0.0] * (_SIZE + 4)
        self._ind = _SIZE - 1
        self._ran = 1234567

    def _genrand(self):
        self._ran = (self._ran * 1103515245 + 12345) & 0xFFFFFFFF
        return numpy.float32(self._ran) / _DIV

    def _genrand_block(self, n):
        return numpy.array([self._genrand() for _ in range(n)], dtype=numpy.float32)

    def proc_rectangular(self, samples):
        """Dither with rectangular noise of one LSB peak to peak."""
        src = numpy.asarray(samples, dtype=numpy.float32).ravel()
        r = self._genrand_block(src.size) - numpy.float32(0.5)
        return _to_int16(src * _SCALE + r)

    def proc_triangular(self, samples):
        """Dither with high-passed triangular noise."""
        src = numpy.asarray(samples, dtype=numpy.float32).ravel()
        r0 = self._genrand_block(src.size)
        if src.size == 0:
            return numpy.zeros(0, dtype=numpy.int16)
        r1 = numpy.empty_like(r0)
        r1[0] = self._err[0]
        r1[1:] = r0[:-1]
        self._err[0] = float(r0[-1])
        return _to_int16(src * _SCALE + r0 - r1)

    def proc_lipschitz(self, samples):
        """Dither with noise shaped by a fifth-order error feedback filter."""
        src = numpy.asarray(samples, dtype=numpy.float32).ravel()
        dest = numpy.empty(src.size, dtype=numpy.int16)
        err = self._err
        i = self._ind
        for n, s in enumerate(src.tolist()):
            p0, p1, p2, p3, p4 = err[i:i + 5]
            u = (
                s * 32768.0
                - 2.033 * p0
                + 2.165 * p1
                - 1.959 * p2
                + 1.590 * p3
                - 0.615 * p4
            )
            v = u + float(self._genrand()) - float(self._genrand())
            k = _wrap16(int(numpy.rint(v)))
            e = k - u
            dest[n] = min(max(k, -_LIMIT), _LIMIT)
            i -= 1
            if i < 0:
                err[_SIZE:_SIZE + 4] = err[0:4]
                i += _SIZE
            err[i] = e
        self._ind = i
        return dest