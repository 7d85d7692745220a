import unittest

from greenwire.rate_limiter import RateLimiter


class _FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class RateLimiterTests(unittest.TestCase):
    def test_first_call_never_waits(self):
        clock = _FakeClock()
        limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
        self.assertEqual(limiter.wait(), 0.0)
        self.assertEqual(clock.sleeps, [])

    def test_back_to_back_calls_are_spaced(self):
        clock = _FakeClock()
        limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
        limiter.wait()
        clock.now += 0.25
        self.assertAlmostEqual(limiter.wait(), 0.75)
        self.assertEqual(len(clock.sleeps), 1)

    def test_no_wait_once_interval_has_passed(self):
        clock = _FakeClock()
        limiter = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
        limiter.wait()
        clock.now += 2.0
        self.assertEqual(limiter.wait(), 0.0)

    def test_zero_interval_disables_pacing(self):
        clock = _FakeClock()
        limiter = RateLimiter(0, clock=clock, sleep=clock.sleep)
        limiter.wait()
        limiter.wait()
        self.assertEqual(clock.sleeps, [])


if __name__ == "__main__":
    unittest.main()
