"""
HTTP session with connection pooling, automatic retry, and CA bundle lookup.

Sessions are created by the composition root and handed to ApiGateway.
There is no module-level shared session.
"""

import os

import certifi
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


def _retry_strategy():
    return Retry(
        total=3,
        backoff_factor=1,                       # Wait 1s, 2s, 4s between retries
        status_forcelist=[502, 503, 504],
        allowed_methods=["GET", "POST"],
        raise_on_status=False,                  # Hand back the last response so its status code survives
    )


def _get_ca_bundle():
    """Get the CA bundle path.

    Priority: REQUESTS_CA_BUNDLE / SSL_CERT_FILE → certifi.
    """
    env_ca = os.environ.get("REQUESTS_CA_BUNDLE") or os.environ.get("SSL_CERT_FILE")
    if env_ca and os.path.isfile(env_ca):
        return env_ca
    return certifi.where()


def create_session():
    """Create a new requests.Session with connection pooling, retry, and SSL."""
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=1,
        pool_maxsize=3,
        max_retries=_retry_strategy(),
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.verify = _get_ca_bundle()
    return session

