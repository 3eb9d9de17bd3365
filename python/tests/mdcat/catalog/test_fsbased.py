import os, sys, pdb, json, tempfile
from pathlib import Path
import unittest as test

from mdcat.catalog import fsbased, base, status, kinds
from mdcat.base.config import ConfigurationException

tmpdir = tempfile.TemporaryDirectory(prefix="_test_fsbased.")

def tearDownModule():
    tmpdir.cleanup()

def version(instid, metaid="m1", st=status.DRAFT, groups=["g1"]):
    return base.MetadataEntity({ "kind": kinds.DATAPRODUCT, "metaId": metaid, "instanceId": instid,
                                 "status": st, "groups": groups, "uid": "u-"+metaid })

class TestFSBasedCatalogClientFactory(test.TestCase):

    def setUp(self):
        self.outdir = Path(tmpdir.name) / "fact"
        self.outdir.mkdir()
        self.cfg = { "goob": "gurn" }
        self.fact = fsbased.FSBasedCatalogClientFactory(self.cfg, str(self.outdir))

    def tearDown(self):
        for root, dirs, files in os.walk(self.outdir, topdown=False):
            for f in files:
                os.remove(os.path.join(root, f))
            for d in dirs:
                os.rmdir(os.path.join(root, d))
        os.rmdir(self.outdir)

    def test_ctor(self):
        self.assertEqual(self.fact.cfg, self.cfg)
        self.assertEqual(self.fact._dbroot, str(self.outdir))

        fact = fsbased.FSBasedCatalogClientFactory({ "db_root_dir": str(self.outdir) })
        self.assertEqual(fact._dbroot, str(self.outdir))

        with self.assertRaises(ConfigurationException):
            fsbased.FSBasedCatalogClientFactory({})
        with self.assertRaises(base.DBIOException):
            fsbased.FSBasedCatalogClientFactory({}, str(self.outdir / "goob"))

    def test_create_client(self):
        cli = self.fact.create_client(kinds.DATAPRODUCT, { "public_group": "EVERYONE" })
        self.assertEqual(cli._cfg, { "goob": "gurn", "public_group": "EVERYONE" })
        self.assertEqual(cli.native, self.outdir)
        self.assertEqual(cli.kind, kinds.DATAPRODUCT)

class TestFSBasedCatalogClient(test.TestCase):

    def setUp(self):
        self.outdir = Path(tmpdir.name) / "cli"
        self.outdir.mkdir()
        self.fact = fsbased.FSBasedCatalogClientFactory({}, str(self.outdir))
        self.cli = self.fact.create_client(kinds.DATAPRODUCT)

    def tearDown(self):
        for root, dirs, files in os.walk(self.outdir, topdown=False):
            for f in files:
                os.remove(os.path.join(root, f))
            for d in dirs:
                os.rmdir(os.path.join(root, d))
        os.rmdir(self.outdir)

    def test_upsert_retrieve(self):
        self.assertIsNone(self.cli.retrieve("i1"))
        self.assertEqual(self.cli.upsert(version("i1")), "i1")
        recfile = self.outdir / "dataproduct" / "i1.json"
        self.assertTrue(recfile.is_file())
        with open(recfile) as fd:
            rec = json.load(fd)
        self.assertEqual(rec['id'], "i1")
        self.assertEqual(rec['status'], status.DRAFT)

        self.assertEqual(self.cli.retrieve("i1"), version("i1"))
        self.assertTrue(self.cli._upsert("dataproduct", dict(rec, id="i2")))
        self.assertFalse(self.cli._upsert("dataproduct", dict(rec, id="i2")))

        with self.assertRaises(base.DBIOException):
            self.cli._upsert("dataproduct", { "metaId": "m1" })

    def test_corrupted_record(self):
        self.cli.upsert(version("i1"))
        with open(self.outdir / "dataproduct" / "bad.json", 'w') as fd:
            fd.write("{ goob")

        with self.assertRaises(base.DBIOException):
            self.cli.retrieve("bad")
        self.assertEqual([e.instance_id for e in self.cli.retrieve_all()], ["i1"])

    def test_selections(self):
        self.assertEqual(self.cli.retrieve_all(), [])
        self.cli.upsert(version("i1", st=status.ARCHIVED))
        self.cli.upsert(version("i2", st=status.PUBLISHED))
        self.cli.upsert(version("i3"))
        self.cli.upsert(version("j1", "m2", status.PUBLISHED))

        self.assertEqual(sorted(e.instance_id for e in self.cli.retrieve_all()), ["i1", "i2", "i3", "j1"])
        self.assertEqual(sorted(e.instance_id for e in self.cli.retrieve_all_with_status(status.PUBLISHED)),
                         ["i2", "j1"])
        self.assertEqual([e.instance_id for e in self.cli.select_versions("m1", status.PUBLISHED)], ["i2"])
        self.assertEqual(self.fact.create_client(kinds.DISTRIBUTION).retrieve_all(), [])

    def test_delete(self):
        self.cli.upsert(version("i1"))
        self.assertTrue(self.cli.delete("i1"))
        self.assertFalse((self.outdir / "dataproduct" / "i1.json").exists())
        self.assertFalse(self.cli.delete("i1"))

    def test_illegal_record_ids(self):
        self.cli.groups.create_group("Staff", gid="g1")
        self.cli.groups.add_membership("mallory", "g1", "EDITOR")

        forged = base.MetadataEntity({ "kind": kinds.DATAPRODUCT, "metaId": "m1", "groups": ["g1"],
                                       "instanceId": "../memberships/g1:mallory" })
        with self.assertRaises(base.DBIOException):
            self.cli.upsert(forged)
        with self.assertRaises(base.DBIOException):
            self.cli._upsert("dataproduct", { "id": "../memberships/g1:mallory", "role": "ADMIN" })
        for id in ("../groups/g1", "sub/i1", "i1\0", "/tmp/i1"):
            with self.assertRaises(base.DBIOException):
                self.cli.retrieve(id)
        with self.assertRaises(base.DBIOException):
            self.cli._delete_from("dataproduct", "../memberships/g1:mallory")

        self.assertFalse((self.outdir / "dataproduct").exists())
        self.assertTrue((self.outdir / base.MEMBERSHIPS_COLL / "g1:mallory.json").is_file())
        self.assertEqual(self.cli.groups.list_accepted_memberships("mallory"), [("g1", "EDITOR")])

    def test_groups(self):
        grp = self.cli.groups.create_group("ALL", gid="pub")
        self.assertTrue((self.outdir / base.GROUPS_COLL / "pub.json").is_file())
        self.assertEqual(self.fact.create_client(kinds.PERSON).groups.public_group().id, "pub")

        self.cli.groups.add_membership("gurn", "pub", "VIEWER")
        self.assertEqual(self.cli.groups.list_accepted_memberships("gurn"), [("pub", "VIEWER")])
        self.cli.groups.add_entity_to_group("m1", "pub")
        self.assertEqual(self.cli.groups.select_entities_in_group("pub"), ["m1"])


if __name__ == '__main__':
    test.main()
