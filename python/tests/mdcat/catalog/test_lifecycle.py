import os, sys, pdb
import unittest as test

from mdcat.catalog import lifecycle, status, roles
from mdcat.catalog.base import MetadataEntity, User, InvalidTransition

D, S, P, A, X = status.DRAFT, status.SUBMITTED, status.PUBLISHED, status.ARCHIVED, status.DISCARDED

def stored(st, instid="i1", editor="owner", changed=None):
    return MetadataEntity({ "kind": "dataproduct", "metaId": "m1", "instanceId": instid,
                            "instanceChangedId": changed, "uid": "u1", "status": st,
                            "groups": ["g1"], "editorId": editor, "provenance": "import",
                            "data": { "title": "Original" } })

def request(st, instid="i1", content=True, groups=None):
    out = MetadataEntity({ "kind": "dataproduct", "instanceId": instid, "status": st })
    if content:
        out.uid = "u1"
        out.data = { "title": "Revised" }
    if groups:
        out.groups = groups
    return out

class TestWritePlan(test.TestCase):

    def test_ctor(self):
        ent = stored(D)
        plan = lifecycle.WritePlan(lifecycle.IN_PLACE, ent)
        self.assertIs(plan.entity, ent)
        self.assertIsNone(plan.ancestor)
        self.assertFalse(plan.archive_others)
        self.assertFalse(plan.request_review)
        self.assertFalse(plan.is_fork)
        self.assertTrue(lifecycle.WritePlan(lifecycle.FORK, ent, ent).is_fork)
        self.assertIn("in-place", str(plan))

class TestLifecycleTransitionEngine(test.TestCase):

    def setUp(self):
        self.engine = lifecycle.LifecycleTransitionEngine(lambda: "pub")
        self.owner = User("owner")
        self.other = User("other")
        self.admin = User("root", is_admin=True)

    def test_mint_id(self):
        id1 = self.engine.mint_id()
        self.assertTrue(id1)
        self.assertNotEqual(id1, self.engine.mint_id())

    def test_default_groups(self):
        self.assertEqual(self.engine.default_groups({ "g1": roles.EDITOR, "g2": roles.VIEWER }), ["g1"])
        self.assertEqual(self.engine.default_groups({ "g2": roles.VIEWER }), ["pub"])
        self.assertEqual(self.engine.default_groups({}), ["pub"])

        engine = lifecycle.LifecycleTransitionEngine(lambda: None)
        self.assertEqual(engine.default_groups({}), [])
        self.assertEqual(lifecycle.LifecycleTransitionEngine().default_groups({}), [])

    def test_plan_create(self):
        req = MetadataEntity({ "kind": "dataproduct", "uid": "u1", "data": { "title": "New" } })
        plan = self.engine.plan_create(req, self.owner, { "g1": roles.EDITOR })
        self.assertEqual(plan.action, lifecycle.CREATE)
        self.assertIsNone(plan.ancestor)
        self.assertFalse(plan.archive_others)
        self.assertFalse(plan.request_review)

        ent = plan.entity
        self.assertIsNot(ent, req)
        self.assertTrue(ent.meta_id)
        self.assertTrue(ent.instance_id)
        self.assertNotEqual(ent.meta_id, ent.instance_id)
        self.assertIsNone(ent.instance_changed_id)
        self.assertEqual(ent.status, D)
        self.assertEqual(ent.groups, ["g1"])
        self.assertEqual(ent.editor_id, "owner")
        self.assertEqual(ent.provenance, lifecycle.DEF_PROVENANCE)
        self.assertEqual(ent.title, "New")
        self.assertIsNone(req.meta_id)

    def test_plan_create_given_ids(self):
        req = MetadataEntity({ "kind": "dataproduct", "metaId": "m9", "instanceId": "i9",
                               "groups": ["g5"], "status": S, "editorId": "someoneelse" })
        plan = self.engine.plan_create(req, self.owner, { "g1": roles.EDITOR })
        self.assertEqual(plan.entity.meta_id, "m9")
        self.assertEqual(plan.entity.instance_id, "i9")
        self.assertEqual(plan.entity.groups, ["g5"])
        self.assertEqual(plan.entity.editor_id, "owner")
        self.assertTrue(plan.request_review)

        req.status = P
        plan = self.engine.plan_create(req, self.owner, {})
        self.assertTrue(plan.archive_others)
        self.assertFalse(plan.request_review)

        req.status = A
        with self.assertRaises(InvalidTransition):
            self.engine.plan_create(req, self.owner, {})

    def test_plan_derive(self):
        anc = stored(P)
        plan = self.engine.plan_derive(anc, request(D), self.other)
        self.assertTrue(plan.is_fork)
        self.assertIs(plan.ancestor, anc)
        ent = plan.entity
        self.assertNotEqual(ent.instance_id, "i1")
        self.assertEqual(ent.meta_id, "m1")
        self.assertEqual(ent.instance_changed_id, "i1")
        self.assertEqual(ent.status, D)
        self.assertEqual(ent.groups, ["g1"])
        self.assertEqual(ent.editor_id, "other")
        self.assertEqual(ent.title, "Revised")

        plan = self.engine.plan_derive(anc, request(S, groups=["g2"]), self.other)
        self.assertEqual(plan.entity.groups, ["g2"])
        self.assertTrue(plan.request_review)

        with self.assertRaises(InvalidTransition):
            self.engine.plan_derive(stored(A), request(D), self.other)
        with self.assertRaises(InvalidTransition):
            self.engine.plan_derive(anc, request(A), self.other)

    def test_draft_to_draft_by_owner(self):
        cur = stored(D, changed="i0")
        for user in (self.owner, self.admin):
            plan = self.engine.plan_update(cur, request(D), user)
            self.assertEqual(plan.action, lifecycle.IN_PLACE)
            ent = plan.entity
            self.assertEqual(ent.instance_id, "i1")
            self.assertEqual(ent.meta_id, "m1")
            self.assertEqual(ent.instance_changed_id, "i0")
            self.assertEqual(ent.editor_id, "owner")
            self.assertEqual(ent.groups, ["g1"])
            self.assertEqual(ent.title, "Revised")
            self.assertEqual(ent.provenance, lifecycle.DEF_PROVENANCE)
        self.assertEqual(cur.title, "Original")

    def test_draft_to_draft_by_other(self):
        # chains to the draft's own ancestor
        cur = stored(D, changed="i0")
        plan = self.engine.plan_update(cur, request(D), self.other)
        self.assertTrue(plan.is_fork)
        ent = plan.entity
        self.assertNotIn(ent.instance_id, ("i0", "i1"))
        self.assertEqual(ent.meta_id, "m1")
        self.assertEqual(ent.instance_changed_id, "i0")
        self.assertEqual(ent.status, D)
        self.assertEqual(ent.groups, ["g1"])
        self.assertEqual(ent.editor_id, "other")
        self.assertEqual(cur.editor_id, "owner")

        # or to the draft itself
        plan = self.engine.plan_update(stored(D), request(D), self.other)
        self.assertEqual(plan.entity.instance_changed_id, "i1")

    def test_discard(self):
        for st in (D, S, P):
            plan = self.engine.plan_update(stored(st), request(X, content=False), self.other)
            self.assertEqual(plan.action, lifecycle.IN_PLACE, st)
            self.assertEqual(plan.entity.instance_id, "i1")
            self.assertEqual(plan.entity.status, X)
            self.assertEqual(plan.entity.title, "Original")
            self.assertEqual(plan.entity.editor_id, "owner")

    def test_edit_published(self):
        for st in (D, S, P):
            plan = self.engine.plan_update(stored(P), request(st), self.other)
            self.assertTrue(plan.is_fork, st)
            ent = plan.entity
            self.assertNotEqual(ent.instance_id, "i1")
            self.assertEqual(ent.status, D)
            self.assertEqual(ent.instance_changed_id, "i1")
            self.assertEqual(ent.meta_id, "m1")
            self.assertEqual(ent.groups, ["g1"])
            self.assertFalse(plan.archive_others)

    def test_submit(self):
        plan = self.engine.plan_update(stored(D), request(S, content=False), self.owner)
        self.assertEqual(plan.action, lifecycle.IN_PLACE)
        self.assertEqual(plan.entity.status, S)
        self.assertEqual(plan.entity.instance_id, "i1")
        self.assertTrue(plan.request_review)
        self.assertFalse(plan.archive_others)

    def test_publish(self):
        plan = self.engine.plan_update(stored(S), request(P, content=False), self.other)
        self.assertEqual(plan.action, lifecycle.IN_PLACE)
        self.assertEqual(plan.entity.status, P)
        self.assertEqual(plan.entity.instance_id, "i1")
        self.assertEqual(plan.entity.editor_id, "owner")
        self.assertTrue(plan.archive_others)
        self.assertFalse(plan.request_review)

    def test_archived_is_terminal(self):
        for st in status.STATES:
            with self.assertRaises(InvalidTransition):
                self.engine.plan_update(stored(A), request(st), self.admin)

    def test_no_direct_archive(self):
        for st in (D, S, P, X):
            with self.assertRaises(InvalidTransition) as cm:
                self.engine.plan_update(stored(st), request(A), self.admin)
            self.assertEqual(cm.exception.current, st)
            self.assertEqual(cm.exception.requested, A)

    def test_uncovered_transitions(self):
        for cur, tgt in [(D, P), (S, D), (S, S), (X, D), (X, S), (X, P), (X, X)]:
            with self.assertRaises(InvalidTransition, msg="%s -> %s" % (cur, tgt)):
                self.engine.plan_update(stored(cur), request(tgt), self.admin)

    def test_plan_supersede(self):
        pub = stored(P)
        out = self.engine.plan_supersede(pub)
        self.assertEqual(out.status, A)
        self.assertEqual(out.instance_id, "i1")
        self.assertEqual(out.title, "Original")
        self.assertEqual(pub.status, P)

        with self.assertRaises(InvalidTransition):
            self.engine.plan_supersede(stored(D))

    def test_check_deletable(self):
        for st in (D, S, X):
            self.engine.check_deletable(stored(st))
        for st in (P, A):
            with self.assertRaises(InvalidTransition):
                self.engine.check_deletable(stored(st))

    def test_provenance(self):
        engine = lifecycle.LifecycleTransitionEngine(provenance="harvester")
        plan = engine.plan_update(stored(D), request(D), self.owner)
        self.assertEqual(plan.entity.provenance, "harvester")


if __name__ == '__main__':
    test.main()
