import os, sys, pdb, json, threading, tempfile
import unittest as test

import mdcat.utils.io as utils

tmpdir = tempfile.TemporaryDirectory(prefix="_test_io.")

def tearDownModule():
    tmpdir.cleanup()

class TestJsonIO(test.TestCase):

    def setUp(self):
        self.dir = tempfile.mkdtemp(dir=tmpdir.name)
        self.jfile = os.path.join(self.dir, "i1.json")

    def test_write_read(self):
        data = { "id": "i1", "groups": [ "g1", "g2" ], "data": { "title": "Gurn" } }
        utils.write_json(data, self.jfile)
        self.assertTrue(os.path.isfile(self.jfile))
        self.assertEqual(utils.read_json(self.jfile), data)

        # a shorter record fully replaces a longer one
        utils.write_json({ "id": "i1" }, self.jfile)
        self.assertEqual(utils.read_json(self.jfile), { "id": "i1" })
        self.assertEqual(os.listdir(self.dir), ["i1.json"])

    def test_read_bad_json(self):
        with open(self.jfile, 'w') as fd:
            fd.write("{ goob")
        with self.assertRaises(ValueError):
            utils.read_json(self.jfile)
        with self.assertRaises(OSError):
            utils.read_json(os.path.join(self.dir, "i2.json"))

    def test_failed_write_keeps_record(self):
        utils.write_json({ "id": "i1", "status": "DRAFT" }, self.jfile)

        with self.assertRaises(TypeError):
            utils.write_json({ "id": "i1", "groups": set(["g1"]) }, self.jfile)
        self.assertEqual(utils.read_json(self.jfile), { "id": "i1", "status": "DRAFT" })
        self.assertEqual(os.listdir(self.dir), ["i1.json"])

        with self.assertRaises(OSError):
            utils.write_json({"a": 1}, os.path.join(self.dir, "not", "there.json"))

    def test_readers_see_whole_records(self):
        small = { "id": "i1", "status": "DRAFT" }
        big = { "id": "i1", "status": "SUBMITTED", "data": { "title": "Gurn "*2000 } }
        utils.write_json(small, self.jfile)

        def rewrite():
            for i in range(100):
                utils.write_json((i % 2 and small) or big, self.jfile)
        writer = threading.Thread(target=rewrite)
        writer.start()
        try:
            while writer.is_alive():
                self.assertIn(utils.read_json(self.jfile), [small, big])
        finally:
            writer.join()

        self.assertEqual(utils.read_json(self.jfile), small)
        self.assertEqual(os.listdir(self.dir), ["i1.json"])


if __name__ == '__main__':
    test.main()
