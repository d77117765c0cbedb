"""
Click recording tests: tokens, duplicate suppression, availability checks
and visitor classification.
"""

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from apps.affiliates.click_service import (
    ClickService,
    detect_browser,
    detect_device_type,
    detect_os,
    visitor_fingerprint,
)
from apps.affiliates.ledger_service import LedgerService
from apps.affiliates.models import Creator, ReferralClick, ReferralLink
from apps.affiliates.types import LINK_UNAVAILABLE, VALIDATION_ERROR
from tests.factories import create_click, create_commission, create_creator, create_link

CHROME_DESKTOP = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/126.0 Safari/537.36'
SAFARI_IPHONE = 'Mozilla/5.0 (iPhone; CPU iPhone OS 17_5 like Mac OS X) Version/17.5 Mobile/15E148 Safari/604.1'
ANDROID_TABLET = 'Mozilla/5.0 (Linux; Android 14; SM-X710) AppleWebKit/537.36 Chrome/126.0 Safari/537.36'


class ClickRecordingTests(TestCase):
    """ClickService.record_click"""

    def setUp(self):
        self.creator = create_creator()
        self.link = create_link(self.creator, link_code='ClickCode123', custom_alias='gear-list')

    def _click(self, code='ClickCode123', ip='203.0.113.7', ua=CHROME_DESKTOP, **kwargs):
        return ClickService.record_click(code, ip_address=ip, user_agent=ua, **kwargs)

    def test_first_click_creates_row_and_token(self):
        result = self._click(referrer='https://video.example.com/watch?v=1')

        self.assertTrue(result.is_ok())
        click_result = result.unwrap()
        self.assertTrue(click_result.is_unique)
        self.assertEqual(click_result.target_url, self.link.original_url)
        self.assertEqual(click_result.link_id, str(self.link.pk))
        self.assertGreaterEqual(len(click_result.session_id), 32)

        click = ReferralClick.objects.get(session_id=click_result.session_id)
        self.assertEqual(click.creator_id, self.creator.pk)
        self.assertEqual(click.fingerprint, visitor_fingerprint('203.0.113.7', CHROME_DESKTOP))
        self.assertEqual(click.referrer, 'https://video.example.com/watch?v=1')
        self.assertFalse(click.converted)

        self.link.refresh_from_db()
        self.assertEqual(self.link.click_count, 1)
        self.assertEqual(self.link.unique_click_count, 1)
        self.assertIsNotNone(self.link.last_clicked_at)

    def test_token_expiry_is_click_time_plus_window(self):
        click_result = self._click().unwrap()
        click = ReferralClick.objects.get(session_id=click_result.session_id)

        self.assertEqual(click_result.expires_at, click.clicked_at + timedelta(days=30))

    def test_repeat_click_within_window_reuses_token(self):
        """Same visitor twice: one row, click_count 2, unique 1"""
        first = self._click().unwrap()
        second = self._click().unwrap()

        self.assertFalse(second.is_unique)
        self.assertEqual(second.session_id, first.session_id)
        self.assertEqual(ReferralClick.objects.filter(link=self.link).count(), 1)
        self.link.refresh_from_db()
        self.assertEqual(self.link.click_count, 2)
        self.assertEqual(self.link.unique_click_count, 1)

    def test_repeat_click_after_duplicate_window_is_unique(self):
        create_click(self.link, clicked_at=timezone.now() - timedelta(minutes=61), ip_address='203.0.113.7',
                     user_agent=CHROME_DESKTOP)

        result = self._click().unwrap()

        self.assertTrue(result.is_unique)
        self.assertEqual(ReferralClick.objects.filter(link=self.link).count(), 2)

    def test_converted_click_is_never_reused(self):
        earlier = create_click(self.link, ip_address='203.0.113.7', user_agent=CHROME_DESKTOP)
        create_commission(earlier, status='pending')

        result = self._click().unwrap()

        self.assertTrue(result.is_unique)
        self.assertNotEqual(result.session_id, earlier.session_id)

    def test_different_visitor_is_unique(self):
        self._click()
        other_ip = self._click(ip='198.51.100.20').unwrap()
        other_ua = self._click(ua=SAFARI_IPHONE).unwrap()

        self.assertTrue(other_ip.is_unique)
        self.assertTrue(other_ua.is_unique)
        self.link.refresh_from_db()
        self.assertEqual(self.link.unique_click_count, 3)

    def test_alias_resolves_case_insensitively(self):
        result = self._click(code='GEAR-LIST')

        self.assertTrue(result.is_ok())
        self.assertEqual(result.unwrap().link_id, str(self.link.pk))

    def test_utm_parameters_are_captured_and_truncated(self):
        result = self._click(utm={'utm_source': 'youtube', 'utm_campaign': 'c' * 150, 'ignored': 'x'})

        click = ReferralClick.objects.get(session_id=result.unwrap().session_id)
        self.assertEqual(click.utm_source, 'youtube')
        self.assertEqual(len(click.utm_campaign), 100)
        self.assertEqual(click.utm_medium, '')

    def test_visitor_classification_is_stored(self):
        result = self._click(ua=SAFARI_IPHONE)

        click = ReferralClick.objects.get(session_id=result.unwrap().session_id)
        self.assertEqual(click.device_type, 'mobile')
        self.assertEqual(click.browser, 'Safari')
        self.assertEqual(click.os, 'iOS')

    def test_unknown_code(self):
        self.assertEqual(self._click(code='missing').unwrap_err().code, LINK_UNAVAILABLE)

    def test_inactive_link(self):
        ReferralLink.objects.filter(pk=self.link.pk).update(is_active=False)

        self.assertEqual(self._click().unwrap_err().code, LINK_UNAVAILABLE)
        self.assertFalse(ReferralClick.objects.exists())

    def test_expired_link(self):
        ReferralLink.objects.filter(pk=self.link.pk).update(expires_at=timezone.now() - timedelta(hours=1))

        self.assertEqual(self._click().unwrap_err().code, LINK_UNAVAILABLE)

    def test_suspended_creator(self):
        Creator.objects.filter(pk=self.creator.pk).update(status='suspended')

        self.assertEqual(self._click().unwrap_err().code, LINK_UNAVAILABLE)

    def test_invalid_ip_address(self):
        error = self._click(ip='999.1.1.1').unwrap_err()

        self.assertEqual(error.code, VALIDATION_ERROR)
        self.assertEqual(error.field, 'ip_address')

    def test_ipv6_is_accepted(self):
        self.assertTrue(self._click(ip='2001:db8::1').is_ok())

    def test_click_leaves_creator_metrics_to_the_ledger(self):
        with self.captureOnCommitCallbacks() as callbacks:
            self._click()

        self.assertEqual(callbacks, [])
        self.creator.refresh_from_db()
        self.assertEqual(self.creator.total_clicks, 0)
        self.assertIsNone(self.creator.metrics_updated_at)

    def test_next_rebuild_counts_recorded_clicks(self):
        self._click(ip='203.0.113.7')
        self._click(ip='203.0.113.8')
        self._click(ip='203.0.113.8')

        LedgerService.record_metrics(self.creator.pk)

        self.creator.refresh_from_db()
        self.assertEqual(self.creator.total_clicks, 2)


class VisitorClassificationTests(TestCase):
    def test_device_types(self):
        self.assertEqual(detect_device_type(CHROME_DESKTOP), 'desktop')
        self.assertEqual(detect_device_type(SAFARI_IPHONE), 'mobile')
        self.assertEqual(detect_device_type(ANDROID_TABLET), 'tablet')
        self.assertEqual(detect_device_type(''), 'desktop')

    def test_browsers(self):
        self.assertEqual(detect_browser(CHROME_DESKTOP), 'Chrome')
        self.assertEqual(detect_browser(SAFARI_IPHONE), 'Safari')
        self.assertEqual(detect_browser('Mozilla/5.0 (Windows NT 10.0) Chrome/126.0 Edg/126.0'), 'Edge')
        self.assertEqual(detect_browser('Mozilla/5.0 (X11; Linux x86_64; rv:127.0) Firefox/127.0'), 'Firefox')
        self.assertEqual(detect_browser('curl/8.0'), 'Unknown')

    def test_operating_systems(self):
        self.assertEqual(detect_os(CHROME_DESKTOP), 'Windows')
        self.assertEqual(detect_os(SAFARI_IPHONE), 'iOS')
        self.assertEqual(detect_os(ANDROID_TABLET), 'Android')
        self.assertEqual(detect_os('Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5)'), 'macOS')

    def test_fingerprint_depends_on_ip_and_agent(self):
        base = visitor_fingerprint('203.0.113.7', CHROME_DESKTOP)

        self.assertEqual(len(base), 64)
        self.assertEqual(base, visitor_fingerprint('203.0.113.7', CHROME_DESKTOP))
        self.assertNotEqual(base, visitor_fingerprint('203.0.113.8', CHROME_DESKTOP))
        self.assertNotEqual(base, visitor_fingerprint('203.0.113.7', SAFARI_IPHONE))
