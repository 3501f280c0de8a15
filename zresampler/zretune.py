"""Command that changes the pitch of an audio file by resampling."""

from __future__ import annotations

import sys
from dataclasses import dataclass

from .audiofile import AudioFile, DitherType, FileType, SampleFormat
from .vresampler import VResampler
from .zresample import (
    FILTSIZE,
    _copy,
    _open_input,
    _open_output,
    _padding,
    _parse_options,
    _scan_float,
    _stream,
)


@dataclass
class RetuneOptions:
    """Settings for one pitch change, given in cents."""

    input: str
    output: str
    type: FileType = FileType.WAV
    form: SampleFormat = SampleFormat.BIT24
    cent: float = 0.0
    dither: DitherType = DitherType.NONE
    pad: bool = False


def parse_args(argv=None):
    """Parse the command line into RetuneOptions.

    Raises ValueError for bad values or argument counts; prints the help
    text and raises SystemExit(1) for --help or an unknown option.
    """
    settings, inp, out = _parse_options(
        argv,
        {"cent": ("cent", _scan_float)},
        "zretune",
        ["  Resampling ratio:      --cent <pitch change>"],
    )
    return RetuneOptions(input=inp, output=out, **settings)


def retune_file(options):
    """Shift the pitch of the input file; return frames written.

    Raises ValueError with a message when the change cannot be done.
    """
    with AudioFile() as ainp:
        _open_input(ainp, options.input)
        cent = options.cent
        if not -1200 <= cent <= 1200:
            raise ValueError(f"Pitch change {cent:3.1f} is out of range.")
        chan = ainp.chan
        resampler = VResampler()
        resampler.setup(2.0 ** (-cent / 1200.0), chan, FILTSIZE)
        with AudioFile() as aout:
            _open_output(aout, options, ainp.rate, chan)
            if cent != 0.0:
                z1, z2 = _padding(resampler.inpsize(), options.pad)
                _stream(resampler, ainp, aout, z1, z2, 1.0)
            else:
                _copy(ainp, aout, 1.0)
            return aout.size


def main(argv=None):
    """Run the command; return the exit status."""
    try:
        retune_file(parse_args(argv))
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())