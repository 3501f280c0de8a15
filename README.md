# zresampler

Sample rate conversion for multichannel audio, built on numpy.

## What is in the package

| Module | Contents |
| --- | --- |
| `zresampler.resampler` | `Resampler`, a polyphase windowed-sinc resampler between two integer rates; `ProcessResult`; `gcd` |
| `zresampler.vresampler` | `VResampler`, a windowed-sinc resampler with an arbitrary ratio that can be adjusted while running |
| `zresampler.cresampler` | `CResampler`, a four-point cubic interpolator with an arbitrary ratio |
| `zresampler.table` | shared filter tables: `ResamplerTable`, `acquire_table`, `release_table`, `table_list`, `print_list`, `sinc`, `window`, `major_version`, `minor_version` |
| `zresampler.dither` | `Dither`, float to 16-bit conversion with rectangular, triangular or noise-shaped ("Lipschitz") dither |
| `zresampler.audiofile` | `AudioFile` for reading and writing WAV, AIFF/AIFC and CAF files; `AudioFileError`, `Mode`, `FileType`, `SampleFormat`, `DitherType`, `enc_type`, `enc_form`, `enc_dith` |
| `zresampler.zresample` | the `zresample` command |
| `zresampler.zretune` | the `zretune` command |

## Installation

```
pip install zresampler
```

## Using a resampler

Every resampler is configured with `setup` and then driven with
`process(inp, out_count, *, discard=False)`. `inp` is one of:

- an array of frames, shape `(frames, nchan)` or interleaved 1-D,
- an `int`, meaning that many zero frames,
- `None`, meaning no input.

`process` consumes input until it has produced `out_count` frames or the
input runs out, and returns a `ProcessResult` with `output` (a float32 array
of shape `(produced, nchan)`), `inp_count` (input frames not consumed) and
`out_count` (requested frames not produced). With `discard=True` output
frames are counted but not computed, and `output` is empty.

```python
import numpy as np
from zresampler.resampler import Resampler

r = Resampler()
r.setup(44100, 48000, 2, 32)          # hlen between 8 and 96

# Prefill with inpsize() // 2 - 1 zero frames for zero delay.
r.process(r.inpsize() // 2 - 1, 1000)

signal = np.zeros((4410, 2), dtype=np.float32)
result = r.process(signal, 4800)
print(result.output.shape, result.inp_count, result.out_count)
```

`Resampler.setup(fs_inp, fs_out, nchan, hlen, frel=None)` accepts ratios
whose reduced numerator is at most 1000 and for which `64 * fs_out / fs_inp`
is at least 1. When `frel` is omitted it defaults to `1 - 2.6 / hlen` and
`hlen` must lie between 8 and 96. Bad parameters raise `ValueError`;
processing before `setup` raises `RuntimeError`.

Other members: `nchan()`, `inpsize()` (filter length in input frames),
`inpdist()` (distance from the next output to the next input, in input
frames), `reset()` and `clear()`.

### Variable ratio

```python
from zresampler.vresampler import VResampler

v = VResampler()
v.setup(480 / 441, 2, 32)
v.set_rratio(1.001)   # relative correction, limited to 0.95 .. 16
v.set_rrfilt(100)     # apply ratio changes with a time constant of 100 output frames
v.set_phase(0.5)
```

`VResampler.setup(ratio, nchan, hlen, frel=None)` needs `1/16 <= ratio <= 64`
and `8 <= hlen <= 96` when `frel` is omitted.

### Cubic interpolation

```python
from zresampler.cresampler import CResampler

c = CResampler()
c.setup(1.5, 1)       # ratio at least 0.25
c.set_ratio(1.25)
```

`CResampler.inpsize()` is always 4.

### Shared tables

Resamplers with (nearly) the same filter parameters share one coefficient
table. `table_list()` returns the tables in use, most recent first, and
`print_list()` prints them with their reference counts.

## Dithering

```python
from zresampler.dither import Dither

d = Dither()                               # one instance per channel
ints = d.proc_triangular([0.1, -0.2, 0.3]) # numpy int16 array, limited to ±32767
```

`proc_rectangular`, `proc_triangular` and `proc_lipschitz` take a sequence of
float samples and return int16 values; `reset()` restores the generator seed
and clears the error history.

## Audio files

```python
from zresampler.audiofile import AudioFile, FileType, SampleFormat, DitherType

with AudioFile() as f:
    f.open_write("out.wav", FileType.WAV, SampleFormat.BIT16, 48000, 2)
    f.set_dither(DitherType.TRIA)
    f.write(frames)               # shape (n, 2) or interleaved

with AudioFile() as f:
    f.open_read("out.wav")
    print(f.rate, f.chan, f.size, f.typestr(), f.formstr())
    data = f.read(1024)           # float32, shape (n, chan)
```

Reading handles WAV (PCM and float, including WAVE_FORMAT_EXTENSIBLE and
B-format ambisonic), AIFF, AIFC (uncompressed and float) and CAF with linear
PCM. Writing produces WAV/AMB, AIFF (AIFC for float) and CAF in 16, 24 or
32-bit integer or 32-bit float. Integer output is clipped to [-1, 1]; float
output is not. Dithering is only available for 16-bit output. Failures raise
`AudioFileError`, whose `kind` is one of `"mode"`, `"type"`, `"form"`,
`"open"`, `"seek"`, `"data"`, `"read"` or `"write"`.

## Command-line tools

Change the sample rate of a file:

```
zresample --rate 48000 input.wav output.wav
```

Change pitch (and duration) by a number of cents, between -1200 and 1200:

```
zretune --cent -50 input.wav output.wav
```

Both tools accept:

| Option | Meaning |
| --- | --- |
| `--caf`, `--wav`, `--amb`, `--aiff`, `--flac` | output file type (default wav) |
| `--16bit`, `--24bit`, `--float` | output sample format (default 24 bit) |
| `--rec`, `--tri`, `--lips` | dither type, for 16-bit output only |
| `--pad` | add full-length zero padding at start and end |
| `--help` | show usage and exit with status 1 |

`zresample` also takes `--gain <dB>` to apply extra gain. When the rate
changes, input and output rates must lie between 8000 and 192000 Hz. Errors
are printed to standard error and the command exits with status 1.

The same work can be done from Python with `zresample.parse_args` and
`zresample.resample_file`, or `zretune.parse_args` and
`zretune.retune_file`; each returns the number of frames written.

## What the package does not do

- FLAC files can be neither read nor written. `--flac` is accepted by the
  commands, but opening the output file then fails.
- Compressed formats other than plain PCM and float (for example A-law,
  µ-law or compressed CAF/AIFC) are not read.
- There is no real-time audio I/O; the resamplers work on arrays you supply.

## Running the tests

```
pip install zresampler[test]
pytest
```