"""
HTTP client construction for the Upload API.

A fresh requests.Session is built for every call. The optional proxy is applied
to it and transport-level retries are disabled: retrying belongs to the
SendBuildAction retry driver only.
"""

import logging
import warnings
from contextlib import contextmanager
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import InsecureRequestWarning
from urllib3.util.retry import Retry

from .models import ProxyConfiguration

logger = logging.getLogger(__name__)

NO_RETRY = Retry(total=0, connect=0, read=0, redirect=0, status=0, raise_on_status=False)


def apply_proxy(session: requests.Session, proxy: ProxyConfiguration) -> requests.Session:
    """Route both schemes through the proxy, optionally without TLS verification"""
    session.proxies.update({
        "http": proxy.proxy_url,
        "https": proxy.proxy_url,
    })
    # Environment proxies would otherwise be merged over the explicit ones
    session.trust_env = False

    if proxy.unsecure_connection:
        logger.warning(
            f"Certificate verification disabled for proxy {proxy.hostname}:{proxy.port}"
        )
        session.verify = False
    return session


def create_http_session(proxy: Optional[ProxyConfiguration] = None) -> requests.Session:
    """Build a session for one Upload API call"""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=NO_RETRY)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    if proxy is not None:
        apply_proxy(session, proxy)
    return session


@contextmanager
def silence_insecure_warnings(proxy: Optional[ProxyConfiguration]):
    """Hide urllib3's per-request warning once it has been logged for an unsecure proxy"""
    with warnings.catch_warnings():
        if proxy is not None and proxy.unsecure_connection:
            warnings.simplefilter("ignore", InsecureRequestWarning)
        yield
