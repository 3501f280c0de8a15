import numpy
import pytest

from zresampler.dither import Dither

METHODS = ["proc_rectangular", "proc_triangular", "proc_lipschitz"]


def _ramp(n=500):
    return numpy.sin(numpy.linspace(0, 20, n)).astype(numpy.float32) * 0.3


@pytest.mark.parametrize("method", METHODS)
def test_deterministic_between_instances(method):
    a = getattr(Dither(), method)(_ramp())
    b = getattr(Dither(), method)(_ramp())
    assert numpy.array_equal(a, b)


@pytest.mark.parametrize("method", METHODS)
def test_reset_restores_sequence(method):
    d = Dither()
    first = getattr(d, method)(_ramp())
    getattr(d, method)(_ramp())
    d.reset()
    again = getattr(d, method)(_ramp())
    assert numpy.array_equal(first, again)


@pytest.mark.parametrize("method", METHODS)
def test_chunked_equals_whole(method):
    data = _ramp(600)
    whole = getattr(Dither(), method)(data)
    d = Dither()
    parts = [getattr(d, method)(chunk) for chunk in (data[:137], data[137:400], data[400:])]
    assert numpy.array_equal(whole, numpy.concatenate(parts))


@pytest.mark.parametrize("method", METHODS)
def test_output_length_and_type(method):
    out = getattr(Dither(), method)(_ramp(123))
    assert out.shape == (123,)
    assert out.dtype == numpy.int16


def test_rectangular_zero_input_stays_zero():
    out = Dither().proc_rectangular(numpy.zeros(1000))
    assert not out.any()


def test_triangular_zero_input_within_one_lsb():
    out = Dither().proc_triangular(numpy.zeros(1000))
    assert set(numpy.unique(out).tolist()) <= {-1, 0, 1}


@pytest.mark.parametrize("method", ["proc_rectangular", "proc_triangular"])
def test_negative_full_scale_is_limited(method):
    out = getattr(Dither(), method)(numpy.full(200, -1.0))
    assert out.shape == (200,)
    assert int(out.min()) == -32767
    assert int(out.max()) == -32767


@pytest.mark.parametrize("method", METHODS)
def test_mean_tracks_input(method):
    out = getattr(Dither(), method)(numpy.full(4096, 0.25))
    assert abs(out.astype(numpy.float64).mean() - 8192) < 0.5


def test_rectangular_close_to_scaled_input():
    data = _ramp()
    out = Dither().proc_rectangular(data)
    assert numpy.max(numpy.abs(out - data * 32768.0)) <= 1.0


def test_lipschitz_output_is_bounded():
    out = Dither().proc_lipschitz(_ramp(2000))
    assert numpy.max(numpy.abs(out.astype(numpy.int64))) <= 32767
    assert numpy.max(numpy.abs(out - _ramp(2000) * 32768.0)) < 64


def test_empty_input():
    d = Dither()
    assert d.proc_triangular([]).size == 0
    assert d.proc_lipschitz([]).size == 0