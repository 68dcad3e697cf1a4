import unittest

from . import perf


class FakeClock:

    def __init__(self, step_ns):
        self.t = 0
        self.step_ns = step_ns

    def __call__(self):
        self.t += self.step_ns
        return self.t


class TestPerf(unittest.TestCase):

    def test_fmt_ns(self):
        self.assertEqual(perf.fmt_ns(500), '500n')
        self.assertEqual(perf.fmt_ns(20_000), '20µ')
        self.assertEqual(perf.fmt_ns(20_000_000), '20m')
        self.assertEqual(perf.fmt_ns(20_000_000_000), '20s')

    def test_measurement(self):
        m = perf.Measurement([100, 200, 300])
        self.assertEqual(m.as_dict(),
                         dict(n=3, mean_ns=200, std_ns=81, max_ns=300))

    def test_timer_keeps_last_measurements(self):
        timer = perf.Timer(period_s=1000, keep=2, clock=FakeClock(50))
        self.assertIsNone(timer.measurement())
        f = timer.measure(lambda x: x * 2)
        self.assertEqual(f(3), 6)
        self.assertEqual(timer.times_ns, [50])
        for batch in ([10], [20, 40], [30]):
            timer.times_ns.extend(batch)
            timer.flush()
        self.assertEqual(timer.measurement().max_ns, 30)
        self.assertEqual(timer.measurement(1).mean_ns, 30)
        self.assertIsNone(timer.measurement(2))
        self.assertIn('Timer(3', str(timer))

    def test_measure_registers_timer(self):
        @perf.measure('perf_test')
        def work():
            return 'done'

        self.assertEqual(work(), 'done')
        self.assertIn('perf_test', perf.timers)
        perf.timers['perf_test'].flush()
        self.assertEqual(perf.summary()['perf_test']['n'], 1)
        self.assertIn('perf_test', perf.stats())
