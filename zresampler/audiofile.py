"""Reading and writing of uncompressed WAV, AIFF and CAF audio files.

Samples are exchanged as float32 frames of shape (frames, channels),
with integer formats normalised to the range [-1, 1).
"""

from __future__ import annotations

import enum
import math
import os
import struct
import uuid
from dataclasses import dataclass

import numpy

from .dither import Dither


class AudioFileError(Exception):
    """Raised when an audio file operation fails.

    ``kind`` is one of "mode", "type", "form", "open", "seek", "data",
    "read" or "write".
    """

    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind


class Mode(enum.IntEnum):
    NONE = 0
    READ = 1
    WRITE = 2


class FileType(enum.IntEnum):
    OTHER = 0
    CAF = 1
    WAV = 2
    AMB = 3
    AIFF = 4
    FLAC = 5


class SampleFormat(enum.IntEnum):
    OTHER = 0
    BIT16 = 1
    BIT24 = 2
    BIT32 = 3
    FLOAT = 4


class DitherType(enum.IntEnum):
    NONE = 0
    RECT = 1
    TRIA = 2
    LIPS = 3


_TYPE_NAMES = ("other", "caf", "wav", "amb", "aiff", "flac")
_FORM_NAMES = ("other", "16bit", "24bit", "32bit", "float")
_DITH_NAMES = ("none", "rect", "tri", "lips")

_DITHER_PROCS = {
    DitherType.RECT: Dither.proc_rectangular,
    DitherType.TRIA: Dither.proc_triangular,
    DitherType.LIPS: Dither.proc_lipschitz,
}


def enc_type(s):
    """Return the FileType named by s ("caf", "wav", "amb", "aiff", "flac")."""
    if s in _TYPE_NAMES[1:]:
        return FileType(_TYPE_NAMES.index(s))
    raise ValueError(f"unknown file type {s!r}")


def enc_form(s):
    """Return the SampleFormat named by s ("16bit", "24bit", "32bit", "float")."""
    if s in _FORM_NAMES[1:]:
        return SampleFormat(_FORM_NAMES.index(s))
    raise ValueError(f"unknown sample format {s!r}")


def enc_dith(s):
    """Return the DitherType named by s ("none", "rect", "tri", "lips")."""
    if s in _DITH_NAMES:
        return DitherType(_DITH_NAMES.index(s))
    raise ValueError(f"unknown dither type {s!r}")


@dataclass(frozen=True)
class _Layout:
    bits: int
    is_float: bool
    big_endian: bool
    unsigned8: bool = False

    def block(self, chan):
        return chan * self.bits // 8


@dataclass(frozen=True)
class _Info:
    type: FileType
    layout: _Layout
    rate: int
    chan: int
    offset: int
    nbytes: int


def _form_of(layout):
    if layout.is_float:
        return SampleFormat.FLOAT if layout.bits == 32 else SampleFormat.OTHER
    return {
        16: SampleFormat.BIT16,
        24: SampleFormat.BIT24,
        32: SampleFormat.BIT32,
    }.get(layout.bits, SampleFormat.OTHER)


def _layout_for_form(form, big_endian):
    if form == SampleFormat.FLOAT:
        return _Layout(32, True, big_endian)
    bits = {SampleFormat.BIT16: 16, SampleFormat.BIT24: 24, SampleFormat.BIT32: 32}[form]
    return _Layout(bits, False, big_endian)


def _check_layout(layout, chan):
    if chan < 1:
        raise ValueError("no channels")
    if layout.is_float:
        if layout.bits not in (32, 64):
            raise ValueError("unsupported float size")
    elif layout.bits not in (8, 16, 24, 32):
        raise ValueError("unsupported sample size")


def _subformat_guid(tag, ambisonic):
    tail = "0721-11d3-8644-c8c1ca000000" if ambisonic else "0000-0010-8000-00aa00389b71"
    return uuid.UUID(f"{tag:08x}-{tail}").bytes_le


def _ext80(value):
    if value <= 0:
        return bytes(10)
    mant, exp = math.frexp(float(value))
    return struct.pack(">HQ", 16383 + exp - 1, int(mant * (1 << 64)))


def _from_ext80(data):
    se, mant = struct.unpack(">HQ", data)
    value = math.ldexp(mant, (se & 0x7FFF) - 16383 - 63)
    return -value if se & 0x8000 else value


def _chunk(tag, body, big_endian):
    size = struct.pack(">I" if big_endian else "<I", len(body))
    pad = b"\0" if len(body) & 1 else b""
    return tag + size + body + pad


def _pstring(text):
    data = bytes([len(text)]) + text
    return data + (b"\0" if len(data) & 1 else b"")


def _wav_header(layout, rate, chan, nframes, ambisonic):
    block = layout.block(chan)
    tag = 3 if layout.is_float else 1
    extensible = chan > 2
    fmt = struct.pack(
        "<HHIIHH", 0xFFFE if extensible else tag, chan, rate, rate * block, block, layout.bits
    )
    if extensible:
        fmt += struct.pack("<HHI", 22, layout.bits, 0) + _subformat_guid(tag, ambisonic)
    elif layout.is_float:
        fmt += struct.pack("<H", 0)
    chunks = _chunk(b"fmt ", fmt, False)
    if layout.is_float or extensible:
        chunks += _chunk(b"fact", struct.pack("<I", nframes), False)
    nbytes = nframes * block
    riff_size = 4 + len(chunks) + 8 + nbytes + (nbytes & 1)
    return (
        b"RIFF" + struct.pack("<I", riff_size) + b"WAVE"
        + chunks + b"data" + struct.pack("<I", nbytes)
    )


def _aiff_header(layout, rate, chan, nframes):
    comm = struct.pack(">hIh", chan, nframes, layout.bits) + _ext80(rate)
    if layout.is_float:
        comm += b"fl32" + _pstring(b"32-bit floating point")
        kind = b"AIFC"
        head = _chunk(b"FVER", struct.pack(">I", 0xA2805140), True) + _chunk(b"COMM", comm, True)
    else:
        kind = b"AIFF"
        head = _chunk(b"COMM", comm, True)
    nbytes = nframes * layout.block(chan)
    ssnd = b"SSND" + struct.pack(">III", 8 + nbytes, 0, 0)
    size = 4 + len(head) + len(ssnd) + nbytes + (nbytes & 1)
    return b"FORM" + struct.pack(">I", size) + kind + head + ssnd


def _caf_header(layout, rate, chan, nframes):
    block = layout.block(chan)
    flags = 1 if layout.is_float else 0
    desc = struct.pack(">d4sIIIII", float(rate), b"lpcm", flags, block, 1, chan, layout.bits)
    return (
        b"caff" + struct.pack(">HH", 1, 0)
        + b"desc" + struct.pack(">q", len(desc)) + desc
        + b"data" + struct.pack(">qI", 4 + nframes * block, 0)
    )


def _iter_chunks(f, start, end, big_endian):
    fmt = ">4sI" if big_endian else "<4sI"
    pos = start
    while pos + 8 <= end:
        f.seek(pos)
        head = f.read(8)
        if len(head) < 8:
            return
        tag, size = struct.unpack(fmt, head)
        yield tag, pos + 8, size
        pos += 8 + size + (size & 1)


def _parse_wav(f, end):
    fmt = None
    data = None
    for tag, pos, size in _iter_chunks(f, 12, end, False):
        if tag == b"fmt ":
            f.seek(pos)
            fmt = f.read(size)
        elif tag == b"data":
            data = (pos, min(size, end - pos))
    if fmt is None or data is None:
        raise ValueError("missing fmt or data chunk")
    tag, chan, rate, _, _, bits = struct.unpack_from("<HHIIHH", fmt)
    ftype = FileType.WAV
    if tag == 0xFFFE:
        guid = fmt[24:40]
        tag = struct.unpack_from("<H", guid)[0]
        if guid[4:] == _subformat_guid(tag, True)[4:]:
            ftype = FileType.AMB
    if tag not in (1, 3):
        raise ValueError("unsupported WAV encoding")
    layout = _Layout((bits + 7) // 8 * 8, tag == 3, False, unsigned8=bits <= 8)
    return _Info(ftype, layout, rate, chan, data[0], data[1])


_AIFC_CODES = {
    b"NONE": (False, True),
    b"twos": (False, True),
    b"sowt": (False, False),
    b"fl32": (True, True),
    b"FL32": (True, True),
    b"fl64": (True, True),
    b"FL64": (True, True),
}


def _parse_aiff(f, end, aifc):
    comm = None
    data = None
    for tag, pos, size in _iter_chunks(f, 12, end, True):
        if tag == b"COMM":
            f.seek(pos)
            comm = f.read(size)
        elif tag == b"SSND":
            f.seek(pos)
            offset = struct.unpack(">I", f.read(4))[0]
            start = pos + 8 + offset
            data = (start, min(size - 8 - offset, end - start))
    if comm is None or data is None:
        raise ValueError("missing COMM or SSND chunk")
    chan, nframes, bits = struct.unpack_from(">hIh", comm)
    rate = int(round(_from_ext80(comm[8:18])))
    is_float, big = False, True
    if aifc:
        code = comm[18:22]
        if code not in _AIFC_CODES:
            raise ValueError("unsupported AIFC compression")
        is_float, big = _AIFC_CODES[code]
        if is_float:
            bits = 64 if code.lower() == b"fl64" else 32
    layout = _Layout((bits + 7) // 8 * 8, is_float, big)
    _check_layout(layout, chan)
    nbytes = min(data[1], nframes * layout.block(chan))
    return _Info(FileType.AIFF, layout, rate, chan, data[0], nbytes)


def _parse_caf(f, end):
    desc = None
    data = None
    pos = 8
    while pos + 12 <= end:
        f.seek(pos)
        tag, size = struct.unpack(">4sq", f.read(12))
        body = pos + 12
        if tag == b"desc":
            desc = struct.unpack(">d4sIIIII", f.read(32))
        elif tag == b"data":
            nbytes = end - body if size < 0 else min(size, end - body)
            data = (body + 4, nbytes - 4)
            if size < 0:
                break
        pos = body + size
    if desc is None or data is None:
        raise ValueError("missing desc or data chunk")
    rate, fid, flags, _, _, chan, bits = desc
    if fid != b"lpcm":
        raise ValueError("unsupported CAF encoding")
    layout = _Layout(bits, bool(flags & 1), not flags & 2)
    return _Info(FileType.CAF, layout, int(round(rate)), chan, data[0], data[1])


def _decode(raw, layout, chan):
    bits = layout.bits
    order = ">" if layout.big_endian else "<"
    if layout.is_float:
        values = numpy.frombuffer(raw, dtype=f"{order}f{bits // 8}").astype(numpy.float32)
        return values.reshape(-1, chan)
    if bits == 8:
        ints = numpy.frombuffer(raw, dtype=numpy.uint8).astype(numpy.int32)
        ints = ints - 128 if layout.unsigned8 else numpy.where(ints >= 128, ints - 256, ints)
    elif bits == 24:
        b = numpy.frombuffer(raw, dtype=numpy.uint8).reshape(-1, 3).astype(numpy.int32)
        if layout.big_endian:
            b = b[:, ::-1]
        ints = b[:, 0] | (b[:, 1] << 8) | (b[:, 2] << 16)
        ints = numpy.where(ints >= 1 << 23, ints - (1 << 24), ints)
    else:
        ints = numpy.frombuffer(raw, dtype=f"{order}i{bits // 8}")
    values = ints.astype(numpy.float64) / float(1 << (bits - 1))
    return values.astype(numpy.float32).reshape(-1, chan)


def _encode_ints(ints, bits, big_endian):
    if bits == 24:
        v = ints.astype(numpy.int64) & 0xFFFFFF
        b = numpy.stack((v & 0xFF, (v >> 8) & 0xFF, (v >> 16) & 0xFF), axis=-1)
        b = b.astype(numpy.uint8)
        if big_endian:
            b = b[..., ::-1]
        return numpy.ascontiguousarray(b).tobytes()
    order = ">" if big_endian else "<"
    return ints.astype(f"{order}i{bits // 8}").tobytes()


def _encode(frames, layout):
    if layout.is_float:
        order = ">" if layout.big_endian else "<"
        return frames.astype(f"{order}f4").tobytes()
    scale = float((1 << (layout.bits - 1)) - 1)
    ints = numpy.rint(frames.astype(numpy.float64) * scale).astype(numpy.int64)
    return _encode_ints(ints, layout.bits, layout.big_endian)


class AudioFile:
    """An audio file opened either for reading or for writing."""

    def __init__(self):
        self._file = None
        self._clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _clear(self):
        self._mode = Mode.NONE
        self._type = FileType.OTHER
        self._form = SampleFormat.OTHER
        self._rate = 0
        self._chan = 0
        self._size = 0
        self._dith_type = DitherType.NONE
        self._dither = []
        self._layout = None
        self._offset = 0
        self._pos = 0
        self._ambisonic = False

    @property
    def mode(self):
        return self._mode

    @property
    def type(self):
        return self._type

    @property
    def form(self):
        return self._form

    @property
    def rate(self):
        return self._rate

    @property
    def chan(self):
        return self._chan

    @property
    def size(self):
        """Number of frames in the file."""
        return self._size

    def typestr(self):
        return _TYPE_NAMES[self._type]

    def formstr(self):
        return _FORM_NAMES[self._form]

    def dithstr(self):
        return _DITH_NAMES[self._dith_type]

    def open_read(self, name):
        """Open an existing file for reading."""
        if self._mode != Mode.NONE:
            raise AudioFileError("mode", "file is already open")
        try:
            f = open(name, "rb")
        except OSError as exc:
            raise AudioFileError("open", f"cannot open {name!r}") from exc
        try:
            magic = f.read(12)
            f.seek(0, os.SEEK_END)
            end = f.tell()
            if magic[:4] == b"RIFF" and magic[8:12] == b"WAVE":
                info = _parse_wav(f, end)
            elif magic[:4] == b"FORM" and magic[8:12] in (b"AIFF", b"AIFC"):
                info = _parse_aiff(f, end, magic[8:12] == b"AIFC")
            elif magic[:4] == b"caff":
                info = _parse_caf(f, end)
            else:
                raise ValueError("unrecognised file format")
            _check_layout(info.layout, info.chan)
        except (ValueError, struct.error, OSError) as exc:
            f.close()
            raise AudioFileError("open", f"cannot read {name!r}: {exc}") from exc
        self._file = f
        self._mode = Mode.READ
        self._type = info.type
        self._layout = info.layout
        self._form = _form_of(info.layout)
        self._rate = info.rate
        self._chan = info.chan
        self._offset = info.offset
        self._size = max(info.nbytes, 0) // info.layout.block(info.chan)
        self._pos = 0

    def open_write(self, name, type, form, rate, chan):
        """Create a file for writing with the given type, format, rate and channels."""
        if self._mode != Mode.NONE:
            raise AudioFileError("mode", "file is already open")
        if rate < 1 or chan < 1:
            raise AudioFileError("open", "rate and channel count must be positive")
        try:
            ftype = FileType(type)
        except ValueError:
            ftype = FileType.OTHER
        if ftype == FileType.OTHER:
            raise AudioFileError("type", "unsupported file type")
        if ftype == FileType.FLAC:
            raise AudioFileError("type", "FLAC output is not supported")
        try:
            sform = SampleFormat(form)
        except ValueError:
            sform = SampleFormat.OTHER
        if sform == SampleFormat.OTHER:
            raise AudioFileError("form", "unsupported sample format")
        layout = _layout_for_form(sform, ftype in (FileType.AIFF, FileType.CAF))
        try:
            f = open(name, "w+b")
        except OSError as exc:
            raise AudioFileError("open", f"cannot create {name!r}") from exc
        self._file = f
        self._mode = Mode.WRITE
        self._type = ftype
        self._form = sform
        self._layout = layout
        self._rate = int(rate)
        self._chan = int(chan)
        self._ambisonic = ftype == FileType.AMB and chan > 2
        self._size = 0
        self._pos = 0
        try:
            header = self._header()
            f.write(header)
        except OSError as exc:
            self.close()
            raise AudioFileError("open", f"cannot write {name!r}") from exc
        self._offset = len(header)

    def _header(self):
        layout, rate, chan, n = self._layout, self._rate, self._chan, self._size
        if self._type in (FileType.WAV, FileType.AMB):
            return _wav_header(layout, rate, chan, n, self._ambisonic)
        if self._type == FileType.AIFF:
            return _aiff_header(layout, rate, chan, n)
        return _caf_header(layout, rate, chan, n)

    def _finish(self):
        f = self._file
        nbytes = self._size * self._layout.block(self._chan)
        end = self._offset + nbytes
        if nbytes & 1 and self._type != FileType.CAF:
            f.seek(end)
            f.write(b"\0")
            end += 1
        f.truncate(end)
        f.seek(0)
        f.write(self._header())

    def close(self):
        """Complete and close the file; closing an unopened file does nothing."""
        f = self._file
        try:
            if f is not None and self._mode == Mode.WRITE:
                self._finish()
        except OSError as exc:
            raise AudioFileError("write", "cannot complete file") from exc
        finally:
            if f is not None:
                f.close()
            self._file = None
            self._clear()

    def set_dither(self, type):
        """Select dithering for 16-bit output."""
        if self._mode != Mode.WRITE:
            raise AudioFileError("mode", "file is not open for writing")
        if self._form != SampleFormat.BIT16:
            raise AudioFileError("form", "dithering needs 16-bit output")
        dtype = DitherType(type)
        if dtype == DitherType.NONE:
            self._dither = []
        elif self._dith_type == DitherType.NONE:
            self._dither = [Dither() for _ in range(self._chan)]
        self._dith_type = dtype

    def seek(self, posit, whence=os.SEEK_SET):
        """Move to a frame position; return the new position."""
        if self._file is None:
            raise AudioFileError("mode", "file is not open")
        bases = {os.SEEK_SET: 0, os.SEEK_CUR: self._pos, os.SEEK_END: self._size}
        if whence not in bases:
            raise AudioFileError("seek", "invalid seek mode")
        target = bases[whence] + int(posit)
        if not 0 <= target <= self._size:
            raise AudioFileError("seek", f"position {target} is out of range")
        self._pos = target
        return target

    def read(self, frames):
        """Read up to frames frames; return a float32 array (n, chan)."""
        if self._mode != Mode.READ:
            raise AudioFileError("mode", "file is not open for reading")
        block = self._layout.block(self._chan)
        n = max(0, min(int(frames), self._size - self._pos))
        try:
            self._file.seek(self._offset + self._pos * block)
            raw = self._file.read(n * block)
        except OSError as exc:
            raise AudioFileError("read", "cannot read audio data") from exc
        got = len(raw) // block
        self._pos += got
        return _decode(raw[:got * block], self._layout, self._chan)

    def write(self, data):
        """Write frames (shape (n, chan) or interleaved); return frames written.

        Integer formats are clipped to [-1, 1], float output is not.
        """
        if self._mode != Mode.WRITE:
            raise AudioFileError("mode", "file is not open for writing")
        frames = numpy.asarray(data, dtype=numpy.float32)
        chan = self._chan
        if frames.ndim == 1:
            if frames.size % chan:
                raise AudioFileError("data", "data length is not a multiple of chan")
            frames = frames.reshape(-1, chan)
        elif frames.ndim != 2 or frames.shape[1] != chan:
            raise AudioFileError("data", f"data must have shape (frames, {chan})")
        n = frames.shape[0]
        if self._dith_type == DitherType.NONE:
            if self._form != SampleFormat.FLOAT:
                frames = numpy.clip(frames, -1.0, 1.0)
            raw = _encode(frames, self._layout)
        else:
            proc = _DITHER_PROCS[self._dith_type]
            ints = numpy.empty((n, chan), dtype=numpy.int16)
            for c, dither in enumerate(self._dither):
                ints[:, c] = proc(dither, frames[:, c])
            raw = _encode_ints(ints, 16, self._layout.big_endian)
        try:
            self._file.seek(self._offset + self._pos * self._layout.block(chan))
            self._file.write(raw)
        except OSError as exc:
            raise AudioFileError("write", "cannot write audio data") from exc
        self._pos += n
        self._size = max(self._size, self._pos)
        return n