"""
Short link redirect tests: click capture, the attribution cookie and the
fallback for unavailable links.
"""

from datetime import timedelta

from django.test import TestCase, override_settings
from django.utils import timezone

from apps.affiliates.models import ReferralClick, ReferralLink
from tests.factories import create_creator, create_link


class ReferralRedirectTests(TestCase):
    def setUp(self):
        self.creator = create_creator()
        self.link = create_link(
            self.creator,
            link_code='RedirCode123',
            custom_alias='desk-setup',
            original_url='https://shop.example.com/desk',
        )

    def test_redirects_and_sets_attribution_cookie(self):
        response = self.client.get(
            '/r/RedirCode123/?utm_source=newsletter&utm_medium=email',
            HTTP_USER_AGENT='Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5) Safari/605.1.15',
            HTTP_REFERER='https://mail.example.com/',
        )

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], 'https://shop.example.com/desk')

        cookie = response.cookies['aff_session']
        self.assertEqual(cookie['max-age'], 30 * 24 * 60 * 60)
        self.assertTrue(cookie['httponly'])
        self.assertEqual(cookie['samesite'], 'Lax')

        click = ReferralClick.objects.get(session_id=cookie.value)
        self.assertEqual(click.link_id, self.link.pk)
        self.assertEqual(click.ip_address, '127.0.0.1')
        self.assertEqual(click.utm_source, 'newsletter')
        self.assertEqual(click.utm_medium, 'email')
        self.assertEqual(click.referrer, 'https://mail.example.com/')
        self.assertEqual(click.os, 'macOS')

    def test_alias_redirect(self):
        response = self.client.get('/r/Desk-Setup/')

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], 'https://shop.example.com/desk')

    def test_repeat_visit_reuses_token(self):
        first = self.client.get('/r/RedirCode123/')
        second = self.client.get('/r/RedirCode123/')

        self.assertEqual(first.cookies['aff_session'].value, second.cookies['aff_session'].value)
        self.link.refresh_from_db()
        self.assertEqual(self.link.click_count, 2)
        self.assertEqual(self.link.unique_click_count, 1)

    def test_unknown_code_falls_back(self):
        response = self.client.get('/r/does-not-exist/')

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], 'https://shop.test/')
        self.assertNotIn('aff_session', response.cookies)

    def test_expired_link_falls_back(self):
        ReferralLink.objects.filter(pk=self.link.pk).update(expires_at=timezone.now() - timedelta(days=1))

        response = self.client.get('/r/RedirCode123/')

        self.assertEqual(response['Location'], 'https://shop.test/')
        self.assertFalse(ReferralClick.objects.exists())

    def test_post_is_not_allowed(self):
        self.assertEqual(self.client.post('/r/RedirCode123/').status_code, 405)

    def test_response_is_never_cached(self):
        response = self.client.get('/r/RedirCode123/')

        self.assertIn('no-cache', response['Cache-Control'])

    def test_request_id_header_is_echoed(self):
        response = self.client.get('/r/RedirCode123/', HTTP_X_REQUEST_ID='edge-req-1')

        self.assertEqual(response['X-Request-ID'], 'edge-req-1')

    @override_settings(IPWARE_TRUSTED_PROXY_LIST=['10.0.0.0/8'])
    def test_forwarded_ip_from_trusted_proxy(self):
        self.client.get(
            '/r/RedirCode123/',
            REMOTE_ADDR='10.1.2.3',
            HTTP_X_FORWARDED_FOR='93.184.216.34, 10.1.2.3',
        )

        self.assertEqual(ReferralClick.objects.get().ip_address, '93.184.216.34')

    def test_forwarded_ip_from_untrusted_peer_is_ignored(self):
        self.client.get('/r/RedirCode123/', HTTP_X_FORWARDED_FOR='198.51.100.77')

        self.assertEqual(ReferralClick.objects.get().ip_address, '127.0.0.1')
