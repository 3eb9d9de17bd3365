import os, sys, pdb
import unittest as test
from unittest.mock import Mock

from mdcat.catalog import inmem, base, status, kinds

def version(instid, metaid="m1", st=status.DRAFT, groups=["g1"]):
    return base.MetadataEntity({ "kind": kinds.DATAPRODUCT, "metaId": metaid, "instanceId": instid,
                                 "status": st, "groups": groups, "uid": "u-"+metaid })

class TestInMemoryCatalogClientFactory(test.TestCase):

    def setUp(self):
        self.cfg = { "goob": "gurn" }
        self.fact = inmem.InMemoryCatalogClientFactory(self.cfg,
                                                       { "dataproduct": { "i0": { "id": "i0", "metaId": "m0",
                                                                                  "kind": "DATAPRODUCT" }}})

    def test_ctor(self):
        self.assertEqual(self.fact.cfg, self.cfg)
        self.assertIn(base.GROUPS_COLL, self.fact._db)
        self.assertIn(base.MEMBERSHIPS_COLL, self.fact._db)
        self.assertIn(base.GROUP_ENTITIES_COLL, self.fact._db)
        self.assertIn("dataproduct", self.fact._db)
        self.assertIsNone(self.fact.notifier)

    def test_create_client(self):
        cli = self.fact.create_client("dataproduct", { "public_group": "EVERYONE" })
        self.assertEqual(cli.kind, kinds.DATAPRODUCT)
        self.assertEqual(cli.collection, "dataproduct")
        self.assertEqual(cli._cfg, { "goob": "gurn", "public_group": "EVERYONE" })
        self.assertIs(cli.native, self.fact._db)
        self.assertEqual(cli.retrieve("i0").meta_id, "m0")

        # clients share the database
        cli2 = self.fact.create_client(kinds.DISTRIBUTION)
        cli2.groups.create_group("EVERYONE")
        self.assertIsNotNone(cli.groups.public_group())

        with self.assertRaises(ValueError):
            self.fact.create_client("goob")

class TestInMemoryCatalogClient(test.TestCase):

    def setUp(self):
        self.notifier = Mock()
        self.fact = inmem.InMemoryCatalogClientFactory({}, notifier=self.notifier)
        self.cli = self.fact.create_client(kinds.DATAPRODUCT)

    def test_upsert_retrieve(self):
        self.assertIsNone(self.cli.retrieve("i1"))
        self.assertEqual(self.cli.upsert(version("i1")), "i1")
        ent = self.cli.retrieve("i1")
        self.assertEqual(ent, version("i1"))
        self.notifier.notify.assert_called_once_with("entity-create,DATAPRODUCT,m1,g1")

        ent.status = status.SUBMITTED
        self.cli.upsert(ent)
        self.assertEqual(self.cli.retrieve("i1").status, status.SUBMITTED)
        self.assertEqual(self.notifier.notify.call_args[0][0], "entity-update,DATAPRODUCT,m1,g1")

        # retrieved versions are copies
        ent.status = status.DISCARDED
        self.assertEqual(self.cli.retrieve("i1").status, status.SUBMITTED)

    def test_upsert_errors(self):
        with self.assertRaises(base.DBIOException):
            self.cli.upsert(base.MetadataEntity({ "kind": "dataproduct", "metaId": "m1" }))
        with self.assertRaises(base.DBIOException):
            self.cli.upsert(base.MetadataEntity({ "kind": "distribution", "metaId": "m1",
                                                  "instanceId": "i1" }))
        with self.assertRaises(base.DBIOException):
            self.cli._upsert("dataproduct", { "metaId": "m1" })

    def test_selections(self):
        self.cli.upsert(version("i1", st=status.ARCHIVED))
        self.cli.upsert(version("i2", st=status.PUBLISHED))
        self.cli.upsert(version("i3"))
        self.cli.upsert(version("j1", "m2", status.PUBLISHED))

        self.assertEqual(sorted(e.instance_id for e in self.cli.retrieve_all()), ["i1", "i2", "i3", "j1"])
        self.assertEqual(sorted(e.instance_id for e in self.cli.retrieve_all_with_status(status.PUBLISHED)),
                         ["i2", "j1"])
        self.assertEqual(sorted(e.instance_id for e in self.cli.select_versions("m1")), ["i1", "i2", "i3"])
        self.assertEqual([e.instance_id for e in self.cli.select_versions("m1", status.PUBLISHED)], ["i2"])
        self.assertEqual(self.cli.select_versions("m3"), [])

        # other kinds are kept apart
        self.assertEqual(self.fact.create_client(kinds.DISTRIBUTION).retrieve_all(), [])

    def test_delete(self):
        self.cli.upsert(version("i1"))
        self.notifier.reset_mock()
        self.assertTrue(self.cli.delete("i1"))
        self.assertIsNone(self.cli.retrieve("i1"))
        self.notifier.notify.assert_called_once_with("entity-delete,DATAPRODUCT,m1,g1")
        self.assertFalse(self.cli.delete("i1"))
        self.assertEqual(self.notifier.notify.call_count, 1)


if __name__ == '__main__':
    test.main()
