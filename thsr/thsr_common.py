"""
Common constants, models and helpers for the THSR booking flows.

This module contains shared functionality used by the three booking
stages (search, train selection and ticket confirmation).
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel
from datetime import datetime
from urllib.parse import urlencode
import logging
import json
import os

logger = logging.getLogger(__name__)

BASE_URL = "https://irs.thsrc.com.tw"
BOOKING_PAGE_URL = "https://irs.thsrc.com.tw/IMINT/?locale=tw"
SUBMIT_FORM_URL = "https://irs.thsrc.com.tw/IMINT/;jsessionid={}?wicket:interface=:0:BookingS1Form::IFormSubmitListener"
CONFIRM_TRAIN_URL = "https://irs.thsrc.com.tw/IMINT/?wicket:interface=:1:BookingS2Form::IFormSubmitListener"
CONFIRM_TICKET_URL = "https://irs.thsrc.com.tw/IMINT/?wicket:interface=:2:BookingS3Form::IFormSubmitListener"

RESPONSES_DIR = "responses"  # relative to the working directory
STATIONS_PATH = os.path.join(os.path.dirname(__file__), "resources", "stations.json")

# The server rejects requests that do not look like a browser
HEADERS = {
    "Host": "irs.thsrc.com.tw",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:137.0) Gecko/20100101 Firefox/137.0",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "zh-TW,zh;q=0.8,en-US;q=0.5,en;q=0.3",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Referer": "https://irs.thsrc.com.tw/IMINT/",
    "Sec-Fetch-Site": "same-origin",
    "Sec-Fetch-Mode": "no-cors",
}

FORM_CONTENT_TYPE = {"Content-Type": "application/x-www-form-urlencoded"}

TIME_TABLE = [
    "1201A", "1230A", "600A", "630A", "700A", "730A", "800A", "830A", "900A",
    "930A", "1000A", "1030A", "1100A", "1130A", "1200N", "1230P", "100P",
    "130P", "200P", "230P", "300P", "330P", "400P", "430P", "500P", "530P",
    "600P", "630P", "700P", "730P", "800P", "830P", "900P", "930P", "1000P",
    "1030P", "1100P", "1130P",
]

DEFAULT_TIME_INDEX = 10  # 1-based, "930A"
MAX_TICKET_NUM = 10


class ThsrError(Exception):
    """Base error for the booking pipeline"""


class ScrapeError(ThsrError):
    """A required element or attribute is missing from a page"""


class ResultExtractionError(ScrapeError):
    """The booking went through but the confirmation page could not be read"""


class BookingError(ThsrError):
    """The server rejected a submitted form (error banner present)"""


class TicketType(Enum):
    """Passenger types with their form letter and ticket panel row"""

    ADULT = ("F", 0)
    CHILD = ("H", 1)
    DISABLED = ("W", 2)
    ELDER = ("E", 3)
    COLLEGE = ("P", 4)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def row(self) -> int:
        return self.value[1]

    def amount(self, count: int) -> str:
        """Encode a ticket count the way the ticket panel expects, e.g. "1F" """
        return f"{count}{self.code}"


class Train(BaseModel):
    """Train offered on the selection page"""

    id: int  # querycode, e.g. 803
    depart: str  # e.g. "06:30"
    arrive: str  # e.g. "08:15"
    travel_time: str  # e.g. "1:45"
    discount_info: str = ""  # e.g. "(早鳥65折, 大學生75折)"
    form_value: str  # opaque radio value, echoed back unmodified


class BookingOptions(BaseModel):
    """Values supplied up front; anything left as None is asked interactively"""

    personal_id: Optional[str] = None
    date: Optional[str] = None  # YYYY/MM/DD
    time: Optional[int] = None  # 1-based index into TIME_TABLE
    from_station: Optional[int] = None  # 1-based station id
    to_station: Optional[int] = None
    adult_cnt: Optional[int] = None
    student_cnt: Optional[int] = None
    seat_prefer: Optional[int] = None  # 0: any, 1: window, 2: aisle
    class_type: Optional[int] = None  # 0: standard, 1: business
    use_membership: Optional[bool] = None
    train: Optional[int] = None  # 1-based index on the train selection page


class BookingResult(BaseModel):
    """Itinerary summary scraped from the final confirmation page"""

    pnr_code: str
    price: str
    payment_deadline: str
    date: str
    depart_time: str
    arrive_time: str
    from_station: str
    to_station: str
    seat_class: str
    passenger_count: str
    seats: List[str] = []


def encode_form(payload) -> str:
    """
    URL-encode a form payload.

    Args:
        payload: pydantic model (encoded by field alias, None fields omitted),
            mapping or list of (name, value) pairs
    """
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(by_alias=True, exclude_none=True)
    if isinstance(payload, dict):
        payload = list(payload.items())
    return urlencode(payload)


def join_form_fragments(*fragments: Optional[str]) -> str:
    """Join encoded form fragments with "&", skipping absent or empty ones"""
    return "&".join(fragment for fragment in fragments if fragment)


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


def get_default_client_config() -> dict:
    """
    Return the default configuration used by the booking pipeline when no
    explicit configuration is provided by the caller.

    Returns:
        dict: { timeout, max_redirects, captcha_path, save_responses, responses_dir }
    """
    return {
        "timeout": float(os.environ.get("THSR_TIMEOUT", "60")),
        "max_redirects": int(os.environ.get("THSR_MAX_REDIRECTS", "20")),
        "captcha_path": os.environ.get("THSR_CAPTCHA_PATH", "tmp_code.jpg"),
        "save_responses": _env_flag("THSR_SAVE_RESPONSES"),
        "responses_dir": os.environ.get("THSR_RESPONSES_DIR", RESPONSES_DIR),
    }


def resolve_config(config: Optional[dict] = None) -> dict:
    """Merge a partial caller config over the defaults"""
    cfg = get_default_client_config()
    if config:
        cfg.update({k: v for k, v in config.items() if v is not None})
    return cfg


def save_response(
    content: str,
    status_code: int = 200,
    filename_suffix: str = "page.html",
    responses_dir: str = RESPONSES_DIR,
) -> Optional[str]:
    """
    Dump a fetched page as <responses_dir>/[YYMMDD_HHMMSS]_[status]_[suffix].

    A failed write is logged and never interrupts the booking.

    Returns:
        Path of the dump, or None when it could not be written
    """
    filename = f"{datetime.now().strftime('%y%m%d_%H%M%S')}_{status_code}_{filename_suffix}"
    filepath = os.path.join(responses_dir, filename)

    try:
        os.makedirs(responses_dir, exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        logger.error(f"[SESSION] Could not dump {filename_suffix} to {responses_dir}: {e}")
        return None

    logger.info(f"[SESSION] Dumped {filename_suffix} ({status_code}) to {filepath}")
    return filepath


def load_stations() -> List[str]:
    """Load station list from JSON, ordered by station id"""
    with open(STATIONS_PATH, "r", encoding="utf-8") as f:
        stations = json.load(f)
    return [station["name"] for station in sorted(stations, key=lambda s: s["id"])]


def format_time_token(token: str) -> str:
    """
    Convert a time table token to 24-hour "HH:MM".

    "1201A" -> "00:01", "1230P" -> "12:30", "100P" -> "13:00", "1200N" -> "12:00"
    """
    value = int(token[:-1])
    if token.endswith("A") and value // 100 == 12:
        value %= 1200
    elif value != 1230 and token.endswith("P"):
        value += 1200
    formatted = f"{value:04d}"
    return f"{formatted[:-2]}:{formatted[-2:]}"


def station_table() -> str:
    """Render the station list as "<id>: <name>" lines"""
    return "\n".join(f"{i}: {name}" for i, name in enumerate(load_stations(), start=1))


def time_table() -> str:
    """Render the time table as "<idx>. HH:MM" lines"""
    return "\n".join(
        f"{i}. {format_time_token(token)}" for i, token in enumerate(TIME_TABLE, start=1)
    )
