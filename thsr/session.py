"""
HTTP session shared by the three booking stages.

Cookies (including JSESSIONID) live in the session jar and carry the
reservation state from one stage to the next.
"""

from typing import Optional
import logging

import requests
from bs4 import BeautifulSoup

from .parser import parse_error
from .thsr_common import (
    FORM_CONTENT_TYPE,
    HEADERS,
    RESPONSES_DIR,
    BookingError,
    resolve_config,
    save_response,
)

logger = logging.getLogger(__name__)


class ThsrSession(requests.Session):
    """requests.Session with browser headers and a per-request timeout"""

    def __init__(
        self,
        timeout: float = 60,
        max_redirects: int = 20,
        save_responses: bool = False,
        responses_dir: str = RESPONSES_DIR,
    ):
        super().__init__()
        self.headers.update(HEADERS)
        self.max_redirects = max_redirects
        self.timeout = timeout
        self.save_responses = save_responses
        self.responses_dir = responses_dir

    def request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


def create_session(config: Optional[dict] = None) -> ThsrSession:
    cfg = resolve_config(config)
    logger.debug(f"[SESSION] Creating session: {cfg}")
    return ThsrSession(
        timeout=cfg["timeout"],
        max_redirects=cfg["max_redirects"],
        save_responses=cfg["save_responses"],
        responses_dir=cfg["responses_dir"],
    )


def _dump(session, response, filename_suffix: str):
    if getattr(session, "save_responses", False):
        save_response(
            response.text,
            response.status_code,
            filename_suffix,
            getattr(session, "responses_dir", RESPONSES_DIR),
        )


def fetch_page(session: requests.Session, url: str, filename_suffix: str = "booking.html") -> BeautifulSoup:
    """GET a page and parse it"""
    response = session.get(url)
    response.raise_for_status()
    _dump(session, response, filename_suffix)
    return BeautifulSoup(response.text, "html.parser")


def fetch_bytes(session: requests.Session, url: str) -> bytes:
    response = session.get(url)
    response.raise_for_status()
    return response.content


def submit_form(
    session: requests.Session, url: str, body: str, filename_suffix: str = "submit.html"
) -> BeautifulSoup:
    """
    POST an URL-encoded form body and check the answer for error banners.

    Raises:
        BookingError: the server rendered one or more error banners
        requests.RequestException: transport failure
    """
    logger.debug(f"[SESSION] POST {url} ({len(body)} bytes)")
    response = session.post(url, data=body.encode("utf-8"), headers=FORM_CONTENT_TYPE)
    response.raise_for_status()
    _dump(session, response, filename_suffix)

    page = BeautifulSoup(response.text, "html.parser")
    err_msg = parse_error(page)
    if err_msg is not None:
        raise BookingError(err_msg)
    return page
