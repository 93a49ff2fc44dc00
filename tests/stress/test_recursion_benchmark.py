import time
import unittest

import lox_lang
from tests.canon_runner import _execute_fixture


class StressTests(unittest.TestCase):
    def test_recursive_fibonacci_performance(self) -> None:
        start_time = time.time()
        result = _execute_fixture("stress/fib_recursive.lox")
        duration = time.time() - start_time

        self.assertTrue(result.result.ok)
        self.assertEqual(result.stdout, "2584\ntrue\n")
        self.assertLess(duration, 20.0, "fib(18) should not take this long to evaluate.")

    def test_recursion_below_the_depth_limit(self) -> None:
        result = _execute_fixture("stress/deep_recursion.lox")
        self.assertIsInstance(result.result, lox_lang.Success)
        self.assertEqual(result.stdout, "landed\n")

    def test_default_depth_limit_allows_deep_recursion(self) -> None:
        result = _execute_fixture("stress/beyond_old_limit.lox")
        self.assertIsInstance(result.result, lox_lang.Success)
        self.assertEqual(result.stdout, "landed\n")

    def test_lowered_depth_limit_overflows(self) -> None:
        result = _execute_fixture("stress/deep_recursion.lox", env={"LOX_MAX_CALL_DEPTH": "100"})
        self.assertIsInstance(result.result, lox_lang.RuntimeFailure)
        self.assertEqual(result.result.error.message, "Stack overflow.")
        self.assertEqual(result.stdout, "")


if __name__ == "__main__":  # pragma: no cover
    unittest.main(verbosity=2)
