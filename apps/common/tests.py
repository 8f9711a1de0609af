import logging
from unittest import mock

from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.test import SimpleTestCase, TestCase

from apps.common.cache import build_cache_key, get_or_fetch
from apps.common.identifiers import DONOR_PREFIX, format_identifier
from apps.common.log_filters import SensitiveDataFilter, mask_sensitive_text
from apps.common.models import SequenceCounter, next_identifier
from apps.donors.models import Donor


class IdentifierFormatTests(SimpleTestCase):
    def test_zero_pads_to_five_digits(self):
        self.assertEqual(format_identifier("HKS-D", 1), "HKS-D-00001")
        self.assertEqual(format_identifier("HKS-T", 42), "HKS-T-00042")

    def test_grows_past_five_digits(self):
        self.assertEqual(format_identifier("HKS-I", 123456), "HKS-I-123456")

    def test_rejects_non_positive_sequence(self):
        with self.assertRaises(ValueError):
            format_identifier("HKS-D", 0)


class SequenceCounterTests(TestCase):
    def test_identifiers_are_distinct_and_increasing(self):
        codes = [next_identifier(DONOR_PREFIX) for _ in range(25)]
        self.assertEqual(len(set(codes)), 25)
        self.assertEqual(codes[0], "HKS-D-00001")
        self.assertEqual(codes[-1], "HKS-D-00025")
        self.assertEqual(codes, sorted(codes))

    def test_prefixes_have_independent_counters(self):
        self.assertEqual(next_identifier("HKS-D"), "HKS-D-00001")
        self.assertEqual(next_identifier("HKS-T"), "HKS-T-00001")
        self.assertEqual(next_identifier("HKS-D"), "HKS-D-00002")
        self.assertEqual(SequenceCounter.objects.get(key="HKS-D").value, 2)

    def test_failed_insert_releases_the_code(self):
        Donor.objects.create(full_name="Aisha Khan", phone="9990000001")
        clash = Donor(full_name="Bilal Ahmed", phone="999-000-0001")
        with self.assertRaises(IntegrityError), transaction.atomic():
            clash.save()
        self.assertEqual(clash.code, "")

        clash.phone = "9990000002"
        clash.save()
        self.assertEqual(clash.code, "HKS-D-00002")
        self.assertEqual(SequenceCounter.objects.get(key=DONOR_PREFIX).value, 2)


class CacheTests(SimpleTestCase):
    def setUp(self):
        cache.clear()

    def test_cache_key_is_order_independent(self):
        first = build_cache_key("weather", lat="1.0000", lon="2.0000")
        second = build_cache_key("weather", lon="2.0000", lat="1.0000")
        self.assertEqual(first, second)
        self.assertEqual(first, "weather:lat=1.0000:lon=2.0000")

    def test_miss_fetches_then_hit_serves_cached_value(self):
        fetch = mock.Mock(return_value={"times": {"Fajr": "05:01"}})
        self.assertEqual(get_or_fetch("prayer:test", 60, fetch), {"times": {"Fajr": "05:01"}})
        self.assertEqual(get_or_fetch("prayer:test", 60, fetch), {"times": {"Fajr": "05:01"}})
        fetch.assert_called_once()

    def test_broken_backend_falls_through_to_fetch(self):
        fetch = mock.Mock(return_value={"ok": True})
        with mock.patch("apps.common.cache.cache") as broken:
            broken.get.side_effect = ConnectionError("redis down")
            with self.assertLogs("apps.common.cache", level="WARNING"):
                self.assertEqual(get_or_fetch("prayer:down", 60, fetch), {"ok": True})
        fetch.assert_called_once()

    def test_write_failure_still_returns_value(self):
        with mock.patch("apps.common.cache.cache") as broken:
            broken.get.return_value = None
            broken.set.side_effect = ConnectionError("redis down")
            with self.assertLogs("apps.common.cache", level="WARNING"):
                self.assertEqual(get_or_fetch("prayer:write", 60, lambda: [1, 2]), [1, 2])

    def test_fetch_errors_propagate(self):
        def fail():
            raise RuntimeError("upstream")

        with self.assertRaises(RuntimeError):
            get_or_fetch("prayer:fail", 60, fail)


class SensitiveDataFilterTests(SimpleTestCase):
    def test_masks_phone_email_and_pan(self):
        masked = mask_sensitive_text("donor +919876543210 ali@example.com ABCDE1234F")
        self.assertNotIn("9876543210", masked)
        self.assertIn("*******210", masked)
        self.assertIn("a***@example.com", masked)
        self.assertNotIn("ABCDE1234F", masked)

    def test_leaves_dates_and_codes_alone(self):
        text = "Donation HKS-T-00012 due 2026-01-15"
        self.assertEqual(mask_sensitive_text(text), text)

    def test_filter_rewrites_record(self):
        record = logging.LogRecord("apps", logging.INFO, __file__, 1, "Created donor %s", ("9876543210",), None)
        self.assertTrue(SensitiveDataFilter().filter(record))
        self.assertEqual(record.getMessage(), "Created donor *******210")
