"""Command that converts an audio file to another sample rate."""

from __future__ import annotations

import contextlib
import getopt
import re
import sys
from dataclasses import dataclass

import numpy

from .audiofile import AudioFile, AudioFileError, DitherType, FileType, SampleFormat
from .resampler import Resampler
from .table import major_version, minor_version

BUFFSIZE = 0x4000
FILTSIZE = 96

_FLAGS = (
    "help", "caf", "wav", "amb", "aiff", "flac",
    "16bit", "24bit", "float", "rec", "tri", "lips", "pad",
)
_TYPES = {
    "caf": FileType.CAF,
    "wav": FileType.WAV,
    "amb": FileType.AMB,
    "aiff": FileType.AIFF,
    "flac": FileType.FLAC,
}
_FORMS = {
    "16bit": SampleFormat.BIT16,
    "24bit": SampleFormat.BIT24,
    "float": SampleFormat.FLOAT,
}
_DITHERS = {
    "rec": DitherType.RECT,
    "tri": DitherType.TRIA,
    "lips": DitherType.LIPS,
}

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass
class ResampleOptions:
    """Settings for one sample-rate conversion; rate 0 keeps the input rate."""

    input: str
    output: str
    type: FileType = FileType.WAV
    form: SampleFormat = SampleFormat.BIT24
    rate: int = 0
    gain: float = 0.0
    dither: DitherType = DitherType.NONE
    pad: bool = False


def _scan_int(text):
    match = _INT_PREFIX.match(text)
    if match is None:
        raise ValueError(text)
    return int(match.group(1))


def _scan_float(text):
    match = _FLOAT_PREFIX.match(text)
    if match is None:
        raise ValueError(text)
    return float(match.group(1))


def _version():
    return f"{major_version()}.{minor_version()}.0"


def _print_help(name, option_lines):
    lines = [
        "",
        f"{name} {_version()}",
        f"Usage: {name} <options> <input file> <output file>.",
        "Options:",
        "  Display this text:     --help",
        "  Output file type:      --caf, --wav, --amb, --aiff, --flac",
        *option_lines,
        "  Output sample format:  --16bit, --24bit, --float",
        "  Dither type (16 bit):  --rec, --tri, --lips",
        "  Add zero padding :     --pad",
        "The default output file format is wav, 24-bit, no dithering.",
        "Integer output formats are clipped, float output is not.",
        "",
    ]
    print("\n".join(lines), file=sys.stderr)


def _parse_options(argv, valued, name, help_lines):
    """Parse the options shared by the conversion commands.

    ``valued`` maps an option taking a value to (setting name, converter).
    Returns the settings found and the two file names.
    """
    if argv is None:
        argv = sys.argv[1:]
    longopts = list(_FLAGS) + [f"{opt}=" for opt in valued]
    try:
        opts, args = getopt.gnu_getopt(list(argv), "", longopts)
    except getopt.GetoptError:
        _print_help(name, help_lines)
        raise SystemExit(1) from None
    settings = {}
    for opt, value in opts:
        key = opt[2:]
        if key == "help":
            _print_help(name, help_lines)
            raise SystemExit(1)
        if key in _TYPES:
            settings["type"] = _TYPES[key]
        elif key in _FORMS:
            settings["form"] = _FORMS[key]
        elif key in _DITHERS:
            settings["dither"] = _DITHERS[key]
        elif key == "pad":
            settings["pad"] = True
        else:
            field_name, convert = valued[key]
            try:
                settings[field_name] = convert(value)
            except ValueError:
                raise ValueError(f"Illegal value for --{key} option: '{value}'.") from None
    if len(args) < 2:
        raise ValueError("Missing arguments, try --help.")
    if len(args) > 2:
        raise ValueError("Too many arguments, try --help.")
    return settings, args[0], args[1]


def _padding(inpsize, pad):
    """Zero frames to insert before and after the input."""
    if pad:
        return inpsize - 1, inpsize - 1
    return inpsize // 2 - 1, inpsize // 2


def _apply_gain(frames, gain):
    if abs(gain - 1.0) > 1e-3:
        return frames * numpy.float32(gain)
    return frames


def _flush(aout, pending):
    if pending:
        aout.write(numpy.concatenate(pending))
        pending.clear()


def _stream(resampler, ainp, aout, z1, z2, gain):
    """Feed the whole input through the resampler into the output file."""
    pending = []
    space = BUFFSIZE
    inp = z1
    done = False
    while True:
        result = resampler.process(inp, space)
        if len(result.output):
            pending.append(result.output)
        space = result.out_count
        if result.inp_count == 0:
            if done:
                _flush(aout, pending)
                break
            frames = ainp.read(BUFFSIZE)
            if len(frames):
                inp = _apply_gain(frames, gain)
            else:
                inp = z2
                done = True
        elif isinstance(inp, int):
            inp = result.inp_count
        else:
            inp = inp[len(inp) - result.inp_count:]
        if space == 0:
            _flush(aout, pending)
            space = BUFFSIZE


def _copy(ainp, aout, gain):
    while True:
        frames = ainp.read(BUFFSIZE)
        if not len(frames):
            break
        aout.write(_apply_gain(frames, gain))


def _open_output(aout, options, rate, chan):
    try:
        aout.open_write(options.output, options.type, options.form, rate, chan)
    except AudioFileError as exc:
        raise ValueError(f"Can't open output file '{options.output}'.") from exc
    if options.dither != DitherType.NONE:
        with contextlib.suppress(AudioFileError):
            aout.set_dither(options.dither)


def _open_input(ainp, name):
    try:
        ainp.open_read(name)
    except AudioFileError as exc:
        raise ValueError(f"Can't open input file '{name}'.") from exc


def parse_args(argv=None):
    """Parse the command line into ResampleOptions.

    Raises ValueError for bad values or argument counts; prints the help
    text and raises SystemExit(1) for --help or an unknown option.
    """
    settings, inp, out = _parse_options(
        argv,
        {"rate": ("rate", _scan_int), "gain": ("gain", _scan_float)},
        "zresample",
        [
            "  Output sample rate:    --rate <sample rate>",
            "  Additional gain (dB):  --gain [0.0]",
        ],
    )
    return ResampleOptions(input=inp, output=out, **settings)


def resample_file(options):
    """Convert the input file as the options say; return frames written.

    Raises ValueError with a message when the conversion cannot be done.
    """
    with AudioFile() as ainp:
        _open_input(ainp, options.input)
        chan = ainp.chan
        rinp = ainp.rate
        rout = options.rate or rinp
        resampler = None
        if rout != rinp:
            if not 8000 <= rinp <= 192000:
                raise ValueError(f"Input sample {rinp} rate is out of range.")
            if not 8000 <= rout <= 192000:
                raise ValueError(f"Output sample rate {rout} is out of range.")
            resampler = Resampler()
            try:
                resampler.setup(rinp, rout, chan, FILTSIZE)
            except ValueError as exc:
                raise ValueError(
                    f"Sample rate ratio {rout}/{rinp} is not supported."
                ) from exc
        with AudioFile() as aout:
            _open_output(aout, options, rout, chan)
            gain = float(numpy.float32(10.0 ** (0.05 * options.gain)))
            if resampler is not None:
                z1, z2 = _padding(resampler.inpsize(), options.pad)
                _stream(resampler, ainp, aout, z1, z2, gain)
            else:
                _copy(ainp, aout, gain)
            return aout.size


def main(argv=None):
    """Run the command; return the exit status."""
    try:
        resample_file(parse_args(argv))
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())