import numpy
import pytest

from zresampler.cresampler import CResampler


def _ramp(n, nchan=1):
    return numpy.arange(n * nchan, dtype=numpy.float32).reshape(n, nchan)


def test_sizes_and_distance():
    c = CResampler()
    assert c.inpsize() == 4
    assert c.nchan() == 0
    c.setup(1.0, 3)
    assert c.nchan() == 3
    assert c.inpdist() == pytest.approx(-1.0)
    c.set_phase(2.25)
    assert c.inpdist() == pytest.approx(-1.25)


def test_unit_ratio_with_prefill_is_identity():
    x = numpy.random.default_rng(3).uniform(-1, 1, size=(200, 2)).astype(numpy.float32)
    c = CResampler()
    c.setup(1.0, 2)
    pre = c.process(c.inpsize() // 2 - 1, 500)
    assert pre.inp_count == 0
    assert pre.output.shape == (0, 2)
    res = c.process(x, pre.out_count)
    assert res.inp_count == 0
    numpy.testing.assert_allclose(res.output, x[: res.output.shape[0]], rtol=1e-6)
    assert res.output.shape[0] == x.shape[0] - 2


def test_upsampling_by_two_keeps_input_samples():
    x = numpy.random.default_rng(5).uniform(-1, 1, size=(100, 1)).astype(numpy.float32)
    c = CResampler()
    c.setup(2.0, 1)
    res = c.process(x, 1000)
    even = res.output[::2, 0]
    numpy.testing.assert_allclose(even, x[1:1 + even.size, 0], rtol=1e-6)


def test_linear_signal_is_reproduced():
    x = _ramp(40)
    c = CResampler()
    c.setup(2.0, 1)
    res = c.process(x, 1000)
    assert res.inp_count == 0
    n = res.output.shape[0]
    assert n > 60
    expected = 1.0 + 0.5 * numpy.arange(n)
    numpy.testing.assert_allclose(res.output[:, 0], expected, rtol=1e-5, atol=1e-5)


def test_downsampling_linear_signal():
    x = _ramp(300)
    c = CResampler()
    c.setup(0.5, 1)
    res = c.process(x, 1000)
    n = res.output.shape[0]
    expected = 1.0 + 2.0 * numpy.arange(n)
    numpy.testing.assert_allclose(res.output[:, 0], expected, rtol=1e-5, atol=1e-4)


def test_chunked_processing_matches_single_call():
    x = numpy.random.default_rng(7).uniform(-1, 1, size=(400, 2)).astype(numpy.float32)
    whole = CResampler()
    whole.setup(1.37, 2)
    single = whole.process(x, 2000)
    parts = CResampler()
    parts.setup(1.37, 2)
    outputs = [parts.process(x[i:i + 29], 2000).output for i in range(0, 400, 29)]
    numpy.testing.assert_allclose(numpy.concatenate(outputs), single.output, rtol=1e-6)


def test_output_count_limit_leaves_input():
    c = CResampler()
    c.setup(1.0, 1)
    res = c.process(_ramp(100), 10)
    assert res.out_count == 0
    assert res.output.shape == (10, 1)
    assert res.inp_count > 0


def test_silence_after_four_zero_frames():
    c = CResampler()
    c.setup(1.5, 1)
    c.process(numpy.ones((50, 1)), 1000)
    res = c.process(100, 1000)
    assert numpy.all(res.output[-20:] == 0.0)


def test_discard_keeps_counters():
    x = _ramp(80, 2)
    a = CResampler()
    a.setup(1.2, 2)
    b = CResampler()
    b.setup(1.2, 2)
    ra = a.process(x, 50)
    rb = b.process(x, 50, discard=True)
    assert rb.output.shape == (0, 2)
    assert (ra.inp_count, ra.out_count) == (rb.inp_count, rb.out_count)
    assert a.inpdist() == b.inpdist()


def test_reset_repeats_output():
    x = numpy.cos(numpy.arange(120, dtype=numpy.float32) / 3).reshape(-1, 1)
    c = CResampler()
    c.setup(1.7, 1)
    first = c.process(x, 500).output
    c.reset()
    second = c.process(x, 500).output
    numpy.testing.assert_array_equal(first, second)


def test_set_ratio_changes_output_rate():
    x = _ramp(100)
    slow = CResampler()
    slow.setup(1.0, 1)
    fast = CResampler()
    fast.setup(1.0, 1)
    fast.set_ratio(3.0)
    n_slow = slow.process(x, 10000).output.shape[0]
    n_fast = fast.process(x, 10000).output.shape[0]
    assert n_fast > 2 * n_slow


def test_errors():
    c = CResampler()
    with pytest.raises(RuntimeError):
        c.process(4, 4)
    with pytest.raises(ValueError):
        c.setup(1.0, 0)
    with pytest.raises(ValueError):
        c.setup(0.1, 1)
    c.setup(1.0, 1)
    with pytest.raises(ValueError):
        c.set_ratio(0.0)
    with pytest.raises(ValueError):
        c.process(numpy.zeros((4, 2)), 4)
    c.clear()
    assert c.nchan() == 0
    with pytest.raises(RuntimeError):
        c.process(4, 4)