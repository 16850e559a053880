import dataclasses
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.test import SimpleTestCase, TestCase

from spin.entities import AwardMarker, Participant
from spin.errors import ConfigurationError, StaleCounterError, UpstreamUnavailable
from spin.models import ParticipantRecord, PrizeRecord
from spin.participants import (
    DatabaseParticipantStore,
    ShopifyParticipantStore,
    normalize_identity,
    prize_from_tags,
)
from spin.repositories import DatabasePrizeCatalogRepository, ShopifyPrizeCatalogRepository

from .helpers import FIXED_NOW, make_engine


class DatabaseCatalogTests(TestCase):
    def setUp(self):
        self.repo = DatabasePrizeCatalogRepository()
        self.desk_mat = PrizeRecord.objects.create(
            prize_id="desk_mat",
            label="Desk Mat",
            probability=Decimal("20"),
            max_count=2,
            remaining_count=2,
            position=1,
        )
        self.luck = PrizeRecord.objects.create(
            prize_id="better_luck",
            label="Better Luck Next Time",
            probability=Decimal("80"),
            max_count=None,
            position=2,
        )

    def test_load_all_returns_validated_snapshot_in_position_order(self):
        snapshot = self.repo.load_all()
        self.assertEqual([p.id for p in snapshot], ["desk_mat", "better_luck"])
        mat = snapshot.get("desk_mat")
        self.assertAlmostEqual(mat.weight, 0.2)
        self.assertEqual(mat.remaining, 2)
        self.assertEqual(mat.handle, self.desk_mat.pk)
        self.assertEqual(mat.version, 0)
        self.assertIsNone(snapshot.get("better_luck").remaining)

    def test_empty_table_is_configuration_error(self):
        PrizeRecord.objects.all().delete()
        with self.assertRaises(ConfigurationError):
            self.repo.load_all()

    def test_write_counters_bumps_version(self):
        mat = self.repo.load_all().get("desk_mat")
        self.repo.write_counters(mat, 1, 1, FIXED_NOW)

        self.desk_mat.refresh_from_db()
        self.assertEqual(self.desk_mat.remaining_count, 1)
        self.assertEqual(self.desk_mat.total_distributed, 1)
        self.assertEqual(self.desk_mat.last_updated, FIXED_NOW)
        self.assertEqual(self.desk_mat.version, 1)
        self.assertTrue(self.desk_mat.is_available)

    def test_write_with_stale_version_is_rejected(self):
        mat = self.repo.load_all().get("desk_mat")
        self.repo.write_counters(mat, 1, 1, FIXED_NOW)

        with self.assertRaises(StaleCounterError):
            self.repo.write_counters(mat, 1, 1, FIXED_NOW)

        self.desk_mat.refresh_from_db()
        self.assertEqual(self.desk_mat.total_distributed, 1)

    def test_depleting_write_marks_prize_unavailable(self):
        mat = dataclasses.replace(self.repo.load_all().get("desk_mat"), remaining=1)
        self.repo.write_counters(mat, 0, 5, FIXED_NOW)
        self.desk_mat.refresh_from_db()
        self.assertFalse(self.desk_mat.is_available)

    def test_reset_all_restores_caps_without_touching_totals(self):
        PrizeRecord.objects.filter(pk=self.desk_mat.pk).update(
            remaining_count=0, total_distributed=2, is_available=False
        )
        PrizeRecord.objects.filter(pk=self.luck.pk).update(total_distributed=9)

        self.repo.reset_all()
        self.repo.reset_all()

        self.desk_mat.refresh_from_db()
        self.luck.refresh_from_db()
        self.assertEqual(self.desk_mat.remaining_count, 2)
        self.assertEqual(self.desk_mat.total_distributed, 2)
        self.assertTrue(self.desk_mat.is_available)
        self.assertIsNone(self.luck.remaining_count)
        self.assertEqual(self.luck.total_distributed, 9)

    def test_repeated_reset_reports_identical_stats(self):
        engine = make_engine(self.repo)
        with mock.patch("spin.repositories.timezone.now", return_value=FIXED_NOW):
            engine.reset_inventory("s3cret")
        once = engine.get_stats("s3cret")
        with mock.patch(
            "spin.repositories.timezone.now", return_value=FIXED_NOW + timedelta(seconds=5)
        ):
            engine.reset_inventory("s3cret")
        twice = engine.get_stats("s3cret")

        self.assertEqual(once, twice)
        self.desk_mat.refresh_from_db()
        self.assertEqual(self.desk_mat.last_updated, FIXED_NOW + timedelta(seconds=5))


class DatabaseParticipantStoreTests(TestCase):
    def setUp(self):
        self.store = DatabaseParticipantStore()
        self.marker = AwardMarker(
            prize_id="desk_mat", label="Desk Mat", awarded_on=date(2026, 10, 18), number=4
        )

    def test_lookup_unknown_returns_none(self):
        self.assertIsNone(self.store.lookup("5550100"))

    def test_create_is_create_if_absent(self):
        first = self.store.create("5550100")
        second = self.store.create("5550100")
        self.assertEqual(first.handle, second.handle)
        self.assertEqual(ParticipantRecord.objects.count(), 1)
        self.assertFalse(first.has_played)

    def test_record_award_is_applied_once(self):
        participant = self.store.create("5550100")
        self.store.record_award(participant, self.marker)

        other = dataclasses.replace(self.marker, label="Sticker", number=9)
        with self.assertLogs("spin.participants", level="WARNING"):
            self.store.record_award(participant, other)

        stored = self.store.lookup("5550100")
        self.assertTrue(stored.has_played)
        self.assertEqual(stored.awarded_prize.label, "Desk Mat")
        self.assertEqual(stored.awarded_prize.number, 4)
        self.assertEqual(stored.awarded_prize.date, "2026-10-18")


def _metaobject(node_id, **fields):
    return {
        "id": node_id,
        "handle": node_id.rsplit("/", 1)[-1],
        "fields": [{"key": key, "value": value} for key, value in fields.items()],
    }


class ShopifyCatalogTests(SimpleTestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.repo = ShopifyPrizeCatalogRepository(self.client, metaobject_type="wheel_prize")
        self.nodes = [
            _metaobject(
                "gid://shopify/Metaobject/1",
                prize_id="kivo",
                prize_label="Kivo Easy Lite",
                probability="0.1",
                max_count="1",
                remaining_count="1",
                total_distributed="0",
                last_updated="2026-10-01T00:00:00+00:00",
            ),
            _metaobject(
                "gid://shopify/Metaobject/2",
                prize_id="better_luck",
                prize_label="Better Luck",
                probability="99.9",
                max_count="-1",
                remaining_count="-1",
                total_distributed="41",
            ),
        ]

    def _listing(self):
        return {"metaobjects": {"edges": [{"node": node} for node in self.nodes]}}

    def test_load_all_parses_metaobjects(self):
        self.client.graphql.return_value = self._listing()

        snapshot = self.repo.load_all()

        kivo, luck = snapshot.prizes
        self.assertEqual(kivo.handle, "gid://shopify/Metaobject/1")
        self.assertEqual(kivo.version, "2026-10-01T00:00:00+00:00")
        self.assertEqual(kivo.remaining, 1)
        self.assertIsNone(luck.cap)
        self.assertEqual(luck.total_distributed, 41)
        _, variables = self.client.graphql.call_args[0]
        self.assertEqual(variables, {"type": "wheel_prize", "first": 50})

    def test_missing_metaobjects_is_configuration_error(self):
        self.client.graphql.return_value = {"metaobjects": None}
        with self.assertRaises(ConfigurationError):
            self.repo.load_all()

    def test_write_counters_checks_version_then_updates(self):
        self.client.graphql.return_value = self._listing()
        kivo = self.repo.load_all().get("kivo")
        self.client.graphql.side_effect = [
            {"metaobject": self.nodes[0]},
            {"metaobjectUpdate": {"metaobject": {"id": kivo.handle}, "userErrors": []}},
        ]

        self.repo.write_counters(kivo, 0, 1, FIXED_NOW)

        _, variables = self.client.graphql.call_args[0]
        self.assertEqual(variables["id"], kivo.handle)
        self.assertEqual(
            variables["metaobject"]["fields"],
            [
                {"key": "remaining_count", "value": "0"},
                {"key": "is_available", "value": "false"},
                {"key": "total_distributed", "value": "1"},
                {"key": "last_updated", "value": FIXED_NOW.isoformat()},
            ],
        )

    def test_write_counters_rejects_changed_record(self):
        self.client.graphql.return_value = self._listing()
        kivo = self.repo.load_all().get("kivo")
        moved = _metaobject(kivo.handle, last_updated="2026-10-18T09:00:00+00:00")
        self.client.graphql.side_effect = [{"metaobject": moved}]

        with self.assertRaises(StaleCounterError):
            self.repo.write_counters(kivo, 0, 1, FIXED_NOW)
        self.assertEqual(self.client.graphql.call_count, 2)

    def test_unbounded_prize_write_skips_remaining(self):
        self.client.graphql.return_value = self._listing()
        luck = self.repo.load_all().get("better_luck")
        self.client.graphql.side_effect = [
            {"metaobject": self.nodes[1]},
            {"metaobjectUpdate": {"userErrors": []}},
        ]

        self.repo.write_counters(luck, None, 42, FIXED_NOW)

        _, variables = self.client.graphql.call_args[0]
        keys = [field["key"] for field in variables["metaobject"]["fields"]]
        self.assertEqual(keys, ["is_available", "total_distributed", "last_updated"])

    def test_user_errors_raise_upstream_unavailable(self):
        self.client.graphql.return_value = self._listing()
        luck = self.repo.load_all().get("better_luck")
        self.client.graphql.side_effect = [
            {"metaobject": self.nodes[1]},
            {"metaobjectUpdate": {"userErrors": [{"field": ["fields"], "message": "bad value"}]}},
        ]
        with self.assertLogs("spin.repositories", level="ERROR"):
            with self.assertRaisesMessage(UpstreamUnavailable, "bad value"):
                self.repo.write_counters(luck, None, 42, FIXED_NOW)

    def test_reset_all_writes_cap_or_sentinel(self):
        self.client.graphql.side_effect = [
            self._listing(),
            {"metaobjectUpdate": {"userErrors": []}},
            {"metaobjectUpdate": {"userErrors": []}},
        ]

        self.repo.reset_all()

        updates = [c[0][1]["metaobject"]["fields"] for c in self.client.graphql.call_args_list[1:]]
        self.assertEqual(updates[0][0], {"key": "remaining_count", "value": "1"})
        self.assertEqual(updates[1][0], {"key": "remaining_count", "value": "-1"})
        self.assertEqual(updates[1][1], {"key": "is_available", "value": "true"})
        self.assertFalse(any(field["key"] == "total_distributed" for batch in updates for field in batch))


class ShopifyParticipantStoreTests(SimpleTestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.store = ShopifyParticipantStore(self.client)

    def test_lookup_reads_marker_from_tags(self):
        self.client.rest.return_value = {
            "customers": [
                {
                    "id": 42,
                    "tags": "vip, Spin Prize: Kivo Easy Lite, Spin Date: 2026-10-17, Spin Number: 3",
                }
            ]
        }

        participant = self.store.lookup("+15550100")

        self.client.rest.assert_called_once_with(
            "get", "/customers/search.json", params={"query": "phone:+15550100"}
        )
        self.assertTrue(participant.has_played)
        self.assertEqual(participant.handle, 42)
        self.assertEqual(participant.awarded_prize.label, "Kivo Easy Lite")
        self.assertEqual(participant.awarded_prize.date, "2026-10-17")
        self.assertEqual(participant.awarded_prize.number, 3)

    def test_lookup_without_customers(self):
        self.client.rest.return_value = {"customers": []}
        self.assertIsNone(self.store.lookup("+15550100"))

    def test_create_posts_customer(self):
        self.client.rest.return_value = {"customer": {"id": 7, "tags": ""}}
        participant = self.store.create("+15550100")
        self.assertEqual(participant.handle, 7)
        self.assertFalse(participant.has_played)
        _, path = self.client.rest.call_args[0]
        self.assertEqual(path, "/customers.json")

    def test_record_award_merges_tags(self):
        participant = Participant(identity="+15550100", handle=7, tags=("vip", "Spin Date: 2026-10-18"))
        marker = AwardMarker(prize_id="mug", label="Mug", awarded_on=date(2026, 10, 18), number=5)

        self.store.record_award(participant, marker)

        method, path = self.client.rest.call_args[0]
        body = self.client.rest.call_args[1]["data"]["customer"]
        self.assertEqual((method, path), ("put", "/customers/7.json"))
        self.assertEqual(body["tags"], "vip, Spin Date: 2026-10-18, Spin Prize: Mug, Spin Number: 5")
        self.assertIn("Wheel Spin Prize: Mug", body["note"])


class IdentityAndTagTests(SimpleTestCase):
    def test_normalize_identity(self):
        self.assertEqual(normalize_identity(" +1 (555) 010.0000 "), "+15550100000")
        self.assertEqual(normalize_identity("555-0100"), "5550100")

    def test_prize_from_tags_without_marker(self):
        self.assertIsNone(prize_from_tags(["vip", "newsletter"]))

    def test_prize_from_tags_tolerates_bad_number(self):
        prize = prize_from_tags(["Spin Prize: Mug", "Spin Number: x"])
        self.assertEqual(prize.label, "Mug")
        self.assertIsNone(prize.number)
        self.assertIsNone(prize.date)
