import os, sys, pdb, threading, logging
import unittest as test
from unittest.mock import Mock

from mdcat.catalog.dispatch import SideEffectDispatcher

class TestSideEffectDispatcher(test.TestCase):

    def setUp(self):
        self.log = Mock(spec=logging.Logger)
        self.calls = []

    def record(self, who, fail=False):
        self.calls.append((who, threading.current_thread().name))
        if fail:
            raise RuntimeError("side effect blew up")

    def test_synchronous(self):
        disp = SideEffectDispatcher({ "asynchronous": False }, self.log)
        self.assertFalse(disp.asynchronous)
        disp.dispatch("recording", self.record, "a")
        self.assertEqual(self.calls, [("a", threading.current_thread().name)])

        disp.dispatch("failing", self.record, "b", fail=True)
        self.assertEqual(len(self.calls), 2)
        self.log.error.assert_called_once()
        self.assertIn("failing", self.log.error.call_args[0][1])

        self.assertIsNone(disp._pool)
        disp.wait()
        disp.shutdown()

    def test_asynchronous(self):
        disp = SideEffectDispatcher({ "max_workers": 2 }, self.log)
        self.assertTrue(disp.asynchronous)
        try:
            disp.dispatch("recording", self.record, "a")
            disp.dispatch("failing", self.record, "b", fail=True)
            disp.wait(5)
            self.assertEqual(sorted(c[0] for c in self.calls), ["a", "b"])
            for who, thread in self.calls:
                self.assertTrue(thread.startswith("mdcat-side"))
            self.log.error.assert_called_once()
        finally:
            disp.shutdown()
        self.assertIsNone(disp._pool)

    def test_default_logger(self):
        disp = SideEffectDispatcher()
        self.assertEqual(disp.log.name, "MDCAT.sideeffects")
        self.assertTrue(disp.asynchronous)
        disp.shutdown()


if __name__ == '__main__':
    test.main()
