"""
Secure client IP detection for the affiliate platform

Click duplicate suppression keys on the visitor IP, so spoofed forwarding
headers must never be honoured unless the direct peer is a trusted proxy.

- Uses django-ipware for proxy header parsing
- Respects IPWARE_TRUSTED_PROXY_LIST (single IPs or CIDR ranges)
- Falls back to REMOTE_ADDR

Usage:
    from apps.common.request_ip import get_safe_client_ip

    def my_view(request):
        client_ip = get_safe_client_ip(request)
"""

import ipaddress

from django.conf import settings
from django.http import HttpRequest
from ipware import get_client_ip

DEFAULT_CLIENT_IP = "127.0.0.1"


def _is_trusted_proxy(ip: str, trusted_proxies: list[str]) -> bool:
    """Check if an IP address is in the trusted proxy list (supports CIDR)."""
    if not trusted_proxies:
        return False

    try:
        ip_addr = ipaddress.ip_address(ip)
    except ValueError:
        return False

    for proxy in trusted_proxies:
        try:
            if "/" in proxy:
                if ip_addr in ipaddress.ip_network(proxy, strict=False):
                    return True
            elif ip_addr == ipaddress.ip_address(proxy):
                return True
        except ValueError:
            continue
    return False


def get_safe_client_ip(request: HttpRequest) -> str:
    """
    Get the real client IP address, respecting proxy trust configuration.

    Configuration is done via IPWARE_TRUSTED_PROXY_LIST in Django settings:
    - Dev/Test: [] (never trust proxy headers, use REMOTE_ADDR only)
    - Prod: ['10.0.0.0/8'] (only trust your LB/proxy CIDRs)

    Returns:
        str: The client IP address. Falls back to '127.0.0.1' if detection fails.
    """
    trusted_proxies = getattr(settings, "IPWARE_TRUSTED_PROXY_LIST", [])
    remote_addr = request.META.get("REMOTE_ADDR") or DEFAULT_CLIENT_IP

    # Not behind a trusted proxy: forwarding headers are attacker controlled
    if not _is_trusted_proxy(remote_addr, trusted_proxies):
        return remote_addr

    client_ip, _is_routable = get_client_ip(request)
    return client_ip or remote_addr
