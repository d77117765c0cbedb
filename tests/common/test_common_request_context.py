"""
Tests for request correlation and client IP detection.
"""

import logging

from django.test import RequestFactory, SimpleTestCase, override_settings

from apps.common.logging import (
    RequestIDFilter,
    clear_request_context,
    get_request_context,
    set_request_context,
)
from apps.common.request_ip import get_safe_client_ip


class RequestIDFilterTests(SimpleTestCase):
    def tearDown(self):
        clear_request_context()

    def _record(self, **extra):
        record = logging.LogRecord('apps.affiliates', logging.INFO, __file__, 1, 'msg', None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_filter_injects_current_context(self):
        set_request_context(request_id='req-42', ip_address='203.0.113.5')
        record = self._record()

        self.assertTrue(RequestIDFilter().filter(record))
        self.assertEqual(record.request_id, 'req-42')
        self.assertEqual(record.ip_address, '203.0.113.5')
        self.assertIsNone(record.user_id)

    def test_filter_defaults_outside_a_request(self):
        record = self._record()

        RequestIDFilter().filter(record)

        self.assertEqual(record.request_id, '-')

    def test_explicit_record_attributes_win(self):
        set_request_context(request_id='req-42')
        record = self._record(request_id='task-7')

        RequestIDFilter().filter(record)

        self.assertEqual(record.request_id, 'task-7')

    def test_clear_request_context(self):
        set_request_context(request_id='req-1', user_id=5)

        clear_request_context()

        self.assertEqual(get_request_context(), {'request_id': '-', 'user_id': None, 'ip_address': None})


class SafeClientIPTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_untrusted_peer_uses_remote_addr(self):
        request = self.factory.get('/', REMOTE_ADDR='198.51.100.9', HTTP_X_FORWARDED_FOR='93.184.216.34')

        self.assertEqual(get_safe_client_ip(request), '198.51.100.9')

    @override_settings(IPWARE_TRUSTED_PROXY_LIST=['10.0.0.0/8'])
    def test_trusted_cidr_honours_forwarded_header(self):
        request = self.factory.get('/', REMOTE_ADDR='10.20.30.40', HTTP_X_FORWARDED_FOR='93.184.216.34')

        self.assertEqual(get_safe_client_ip(request), '93.184.216.34')

    @override_settings(IPWARE_TRUSTED_PROXY_LIST=['10.1.1.1'])
    def test_single_trusted_proxy_ip(self):
        request = self.factory.get('/', REMOTE_ADDR='10.1.1.2', HTTP_X_FORWARDED_FOR='93.184.216.34')

        self.assertEqual(get_safe_client_ip(request), '10.1.1.2')

    @override_settings(IPWARE_TRUSTED_PROXY_LIST=['not-an-ip', '10.0.0.0/8'])
    def test_malformed_proxy_entries_are_skipped(self):
        request = self.factory.get('/', REMOTE_ADDR='10.0.0.1', HTTP_X_FORWARDED_FOR='93.184.216.34')

        self.assertEqual(get_safe_client_ip(request), '93.184.216.34')

    def test_missing_remote_addr_falls_back_to_loopback(self):
        request = self.factory.get('/')
        request.META.pop('REMOTE_ADDR', None)

        self.assertEqual(get_safe_client_ip(request), '127.0.0.1')
