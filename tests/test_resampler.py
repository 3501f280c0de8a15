import numpy
import pytest

from zresampler.resampler import Resampler, gcd
from zresampler.table import table_list

NCHAN = 7
CHAN = 3
HLEN = 48
LINP = 300
LOUT = 1380


def _upsample_pulses():
    inp = numpy.zeros((LINP, NCHAN), dtype=numpy.float32)
    inp[0, CHAN] = 1
    inp[100, CHAN] = 1
    inp[201, CHAN] = 1
    r = Resampler()
    r.setup(10, 46, NCHAN, HLEN)
    first = r.process(r.inpsize() // 2 - 1, LOUT)
    second = r.process(inp, first.out_count)
    third = r.process(r.inpsize() // 2, second.out_count)
    out = numpy.concatenate((first.output, second.output, third.output))
    return first, second, third, out


def test_upsampling_counters_end_at_zero():
    first, second, third, out = _upsample_pulses()
    assert first.inp_count == 0
    assert first.out_count == LOUT
    assert second.inp_count == 0
    assert third.inp_count == 0
    assert third.out_count == 0
    assert out.shape == (LOUT, NCHAN)


def test_upsampling_pulse_positions():
    _, _, _, out = _upsample_pulses()
    sig = out[:, CHAN]
    assert int(numpy.argmax(sig[:200])) == 0
    assert 400 + int(numpy.argmax(sig[400:520])) == 460
    assert 880 + int(numpy.argmax(sig[880:980])) == 925
    frel = 1 - 2.6 / HLEN
    assert sig[0] == pytest.approx(frel, rel=1e-5)
    assert sig[460] == pytest.approx(frel, rel=1e-5)


def test_upsampling_other_channels_silent():
    _, _, _, out = _upsample_pulses()
    others = numpy.delete(out, CHAN, axis=1)
    assert others.shape == (LOUT, NCHAN - 1)
    assert float(numpy.abs(others).max()) == 0.0
    assert float(numpy.abs(out[:, CHAN]).max()) > 0.5


@pytest.mark.parametrize("a,b,expected", [(0, 5, 5), (7, 0, 7), (48000, 44100, 300), (10, 46, 2), (13, 17, 1)])
def test_gcd(a, b, expected):
    assert gcd(a, b) == expected


def test_setup_reports_sizes():
    r = Resampler()
    assert r.inpsize() == 0
    assert r.inpdist() == 0.0
    r.setup(10, 46, 2, HLEN)
    assert r.nchan() == 2
    assert r.inpsize() == 2 * HLEN
    assert r.inpdist() == 1 - HLEN


def test_downsampling_widens_filter():
    r = Resampler()
    r.setup(48000, 24000, 1, 32)
    assert r.inpsize() == 128


@pytest.mark.parametrize("hlen", [7, 97])
def test_setup_rejects_hlen(hlen):
    r = Resampler()
    with pytest.raises(ValueError):
        r.setup(44100, 48000, 1, hlen)


@pytest.mark.parametrize(
    "fs_inp,fs_out,nchan",
    [(0, 48000, 1), (44100, 0, 1), (44100, 48000, 0), (65, 1, 1), (1, 1001, 1)],
)
def test_setup_rejects_rates(fs_inp, fs_out, nchan):
    r = Resampler()
    r.setup(44100, 48000, 1, 32)
    with pytest.raises(ValueError):
        r.setup(fs_inp, fs_out, nchan, 32)
    assert r.inpsize() == 0
    assert r.nchan() == 0


def test_process_without_setup():
    r = Resampler()
    with pytest.raises(RuntimeError):
        r.process(10, 10)
    with pytest.raises(RuntimeError):
        r.reset()


def test_process_rejects_wrong_shape():
    r = Resampler()
    r.setup(44100, 48000, 2, 32)
    with pytest.raises(ValueError):
        r.process(numpy.zeros((10, 3)), 10)
    with pytest.raises(ValueError):
        r.process(numpy.zeros(7), 10)
    with pytest.raises(ValueError):
        r.process(-1, 10)


@pytest.mark.parametrize("fs_inp,fs_out", [(44100, 48000), (48000, 44100)])
def test_dc_gain_is_unity(fs_inp, fs_out):
    r = Resampler()
    r.setup(fs_inp, fs_out, 1, 32)
    res = r.process(numpy.ones((2000, 1)), 4000)
    assert res.inp_count == 0
    assert res.output.shape[0] > 1000
    numpy.testing.assert_allclose(res.output[:, 0], 1.0, atol=1e-2)


def test_chunked_processing_matches_single_call():
    rng = numpy.random.default_rng(1)
    x = rng.uniform(-1, 1, size=(500, 2)).astype(numpy.float32)
    whole = Resampler()
    whole.setup(44100, 48000, 2, 32)
    single = whole.process(x, 1000)
    assert single.inp_count == 0

    parts = Resampler()
    parts.setup(44100, 48000, 2, 32)
    outputs = []
    for start in range(0, 500, 37):
        res = parts.process(x[start:start + 37], 1000)
        assert res.inp_count == 0
        outputs.append(res.output)
    numpy.testing.assert_allclose(numpy.concatenate(outputs), single.output, rtol=1e-6, atol=1e-7)


def test_interleaved_input_equals_framed_input():
    x = numpy.linspace(-1, 1, 400, dtype=numpy.float32).reshape(200, 2)
    a = Resampler()
    a.setup(32000, 48000, 2, 16)
    b = Resampler()
    b.setup(32000, 48000, 2, 16)
    ra = a.process(x, 500)
    rb = b.process(x.ravel(), 500)
    numpy.testing.assert_array_equal(ra.output, rb.output)


def test_discard_keeps_counters():
    x = numpy.ones((300, 1), dtype=numpy.float32)
    a = Resampler()
    a.setup(44100, 48000, 1, 32)
    b = Resampler()
    b.setup(44100, 48000, 1, 32)
    ra = a.process(x, 200)
    rb = b.process(x, 200, discard=True)
    assert rb.output.shape == (0, 1)
    assert (ra.inp_count, ra.out_count) == (rb.inp_count, rb.out_count)
    assert a.inpdist() == b.inpdist()


def test_reset_repeats_output():
    x = numpy.sin(numpy.arange(300, dtype=numpy.float32) / 5).reshape(-1, 1)
    r = Resampler()
    r.setup(44100, 48000, 1, 32)
    first = r.process(x, 400).output
    r.reset()
    second = r.process(x, 400).output
    numpy.testing.assert_array_equal(first, second)


def test_long_silence_gives_zero_output():
    r = Resampler()
    r.setup(44100, 48000, 1, 16)
    r.process(numpy.ones((100, 1)), 1000)
    res = r.process(500, 1000)
    assert numpy.all(res.output[-50:] == 0.0)


def test_tables_are_shared_between_resamplers():
    r1 = Resampler()
    r2 = Resampler()
    r1.setup(44100, 48000, 1, 23, 0.9)
    r2.setup(44100, 48000, 2, 23, 0.9)
    shared = [t for t in table_list() if t.hl == 23 and t.np == 160]
    assert len(shared) == 1
    assert shared[0].refc == 2
    r1.clear()
    assert shared[0].refc == 1
    r2.clear()
    assert not any(t is shared[0] for t in table_list())