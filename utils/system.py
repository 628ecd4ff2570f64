# N8S v2.1
import logging
import os

import requests

from config import PUBLIC_IP_URL, PUBLIC_IP_FALLBACK, PUBLIC_IP_TIMEOUT

logger = logging.getLogger(__name__)


def is_root():
    '''Check if running as root (Linux/Mac)'''
    return hasattr(os, 'geteuid') and os.geteuid() == 0


def detect_public_ip(url=PUBLIC_IP_URL, timeout=PUBLIC_IP_TIMEOUT):
    '''Ask an external "what is my IP" service for this host's address.

    Only used for printing URLs, so any failure falls back to a literal host.
    '''
    try:
        response = requests.get(url, timeout=timeout, headers={'User-Agent': 'curl/8'})
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Public IP lookup via %s failed: %s", url, e)
        return PUBLIC_IP_FALLBACK

    address = response.text.strip()
    if not address or len(address) > 253 or any(c.isspace() for c in address):
        logger.warning("Public IP lookup returned unusable answer %r", address[:60])
        return PUBLIC_IP_FALLBACK
    return address
