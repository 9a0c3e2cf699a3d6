"""
First page: search criteria.

Fetches the booking page, scrapes the session-bound values (JSESSIONID,
security code image, booking method, trip type and bookable date window),
resolves the user's choices and submits the search form.
"""

from typing import Optional, Tuple
import logging

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from .parser import require_attr
from .prompt import CaptchaSolver, Prompter, resolve
from .session import fetch_bytes, fetch_page, submit_form
from .thsr_common import (
    BASE_URL,
    BOOKING_PAGE_URL,
    DEFAULT_TIME_INDEX,
    MAX_TICKET_NUM,
    SUBMIT_FORM_URL,
    TIME_TABLE,
    BookingOptions,
    ScrapeError,
    TicketType,
    encode_form,
    load_stations,
    time_table,
)

logger = logging.getLogger(__name__)

DEFAULT_START_STATION = 2  # Taipei
DEFAULT_DEST_STATION = 12  # Zuouing


class BookingPayload(BaseModel):
    """Search form of BookingS1Form"""

    start_station: int = Field(DEFAULT_START_STATION, serialization_alias="selectStartStation")
    dest_station: int = Field(DEFAULT_DEST_STATION, serialization_alias="selectDestinationStation")
    search_by: str = Field("1", serialization_alias="bookingMethod")
    types_of_trip: int = Field(0, serialization_alias="tripCon:typesoftrip")  # 0: one way, 1: round trip
    outbound_date: str = Field(..., serialization_alias="toTimeInputField")
    outbound_time: str = Field(TIME_TABLE[DEFAULT_TIME_INDEX - 1], serialization_alias="toTimeTable")
    security_code: str = Field("", serialization_alias="homeCaptcha:securityCode")
    seat_prefer: int = Field(0, serialization_alias="seatCon:seatRadioGroup")  # 0: any, 1: window, 2: aisle
    form_mark: str = Field("", serialization_alias="BookingS1Form:hf:0")
    class_type: int = Field(0, serialization_alias="trainCon:trainRadioGroup")  # 0: standard, 1: business
    inbound_date: Optional[str] = Field(None, serialization_alias="backTimeInputField")
    inbound_time: Optional[str] = Field(None, serialization_alias="backTimeTable")
    to_train_id: Optional[int] = Field(None, serialization_alias="toTrainIDInputField")
    back_train_id: Optional[int] = Field(None, serialization_alias="backTrainIDInputField")
    adult_ticket_num: str = Field(TicketType.ADULT.amount(1), serialization_alias="ticketPanel:rows:0:ticketAmount")
    child_ticket_num: str = Field(TicketType.CHILD.amount(0), serialization_alias="ticketPanel:rows:1:ticketAmount")
    disabled_ticket_num: str = Field(TicketType.DISABLED.amount(0), serialization_alias="ticketPanel:rows:2:ticketAmount")
    elder_ticket_num: str = Field(TicketType.ELDER.amount(0), serialization_alias="ticketPanel:rows:3:ticketAmount")
    college_ticket_num: str = Field(TicketType.COLLEGE.amount(0), serialization_alias="ticketPanel:rows:4:ticketAmount")


TICKET_FIELDS = {
    TicketType.ADULT: "adult_ticket_num",
    TicketType.CHILD: "child_ticket_num",
    TicketType.DISABLED: "disabled_ticket_num",
    TicketType.ELDER: "elder_ticket_num",
    TicketType.COLLEGE: "college_ticket_num",
}


# Page scraping

def parse_jsessionid(session) -> str:
    jid = session.cookies.get("JSESSIONID")
    if not jid:
        raise ScrapeError("JSESSIONID cookie not set by the booking page")
    return jid


def parse_security_code_img_url(page: BeautifulSoup) -> str:
    img_url = require_attr(page, "#BookingS1Form_homeCaptcha_passCode", "src")
    return f"{BASE_URL}{img_url}"


def parse_search_by(page: BeautifulSoup) -> str:
    """Value of the checked booking method radio"""
    return require_attr(page, "input[name='bookingMethod'][checked]", "value")


def parse_types_of_trip_value(page: BeautifulSoup) -> int:
    value = require_attr(page, "#BookingS1Form_tripCon_typesoftrip [selected]", "value")
    try:
        return int(value)
    except ValueError:
        raise ScrapeError(f"Invalid trip type value: {value!r}")


def parse_avail_start_end_date(page: BeautifulSoup) -> Tuple[str, str]:
    start_date = require_attr(page, "#toTimeInputField", "date")
    end_date = require_attr(page, "#toTimeInputField", "limit")
    return start_date, end_date


# Field resolution

def normalize_date(value: str) -> Optional[str]:
    """
    Zero-pad a "YYYY/M/D" date to "YYYY/MM/DD".

    Returns None when the value is not three numeric parts or the month/day
    are out of range.
    """
    parts = value.strip().split("/")
    if len(parts) != 3:
        return None
    try:
        year, month, day = (int(part) for part in parts)
    except ValueError:
        return None

    if year >= 1000 and 1 <= month <= 12 and 1 <= day <= 31:
        return f"{year:04d}/{month:02d}/{day:02d}"
    return None


def select_station(override: Optional[int], prompter: Prompter, label: str, default: int) -> int:
    stations = load_stations()
    if override is None:
        for i, station in enumerate(stations, start=1):
            print(f"{i}: {station}")

    value = resolve(
        override, f"Please select {label} station (default: {default}):", default, prompter, int
    )
    if 1 <= value <= len(stations):
        return value

    logger.warning(f"[BOOKING] Invalid {label} station {value}, defaulting to {stations[default - 1]} ({default})")
    return default


def select_date(start_date: str, end_date: str, override: Optional[str], prompter: Prompter) -> str:
    """
    Resolve the outbound date. The latest bookable date is the default and
    also replaces malformed or out-of-window input.
    """
    value = resolve(
        override,
        f"Please select a date between {start_date} and {end_date} (default to latest: {end_date}):",
        end_date,
        prompter,
    )

    date = normalize_date(value)
    if date is None:
        logger.warning(f"[BOOKING] Invalid date format '{value}', defaulting to latest date: {end_date}")
        return end_date

    if start_date <= date <= end_date:
        return date

    logger.warning(f"[BOOKING] Date {date} outside booking range, defaulting to latest date: {end_date}")
    return end_date


def select_time(override: Optional[int], prompter: Prompter) -> str:
    if override is None:
        print(time_table())

    index = resolve(
        override, f"Select departure time (default: {DEFAULT_TIME_INDEX}):", DEFAULT_TIME_INDEX, prompter, int
    )
    if 1 <= index <= len(TIME_TABLE):
        return TIME_TABLE[index - 1]

    logger.warning(f"[BOOKING] Invalid time option {index}, defaulting to {DEFAULT_TIME_INDEX}")
    return TIME_TABLE[DEFAULT_TIME_INDEX - 1]


def select_ticket_num(ticket_type: TicketType, override: Optional[int], prompter: Prompter) -> str:
    label = ticket_type.name.lower()
    count = resolve(
        override,
        f"Please select the number (0~{MAX_TICKET_NUM}) of tickets for {label} (default: 1)",
        1,
        prompter,
        int,
    )
    if not 0 <= count <= MAX_TICKET_NUM:
        logger.warning(f"[BOOKING] Invalid {label} ticket number {count}, defaulting to 1")
        count = 1
    return ticket_type.amount(count)


def select_ticket_nums(options: BookingOptions, prompter: Prompter) -> dict:
    """
    Ticket panel amounts keyed by payload field.

    Without any count an adult count is asked for; only the adult and
    college rows are ever changed from their defaults.
    """
    amounts = {}
    if options.adult_cnt is None and options.student_cnt is None:
        amounts[TICKET_FIELDS[TicketType.ADULT]] = select_ticket_num(TicketType.ADULT, None, prompter)
    if options.adult_cnt is not None:
        amounts[TICKET_FIELDS[TicketType.ADULT]] = select_ticket_num(TicketType.ADULT, options.adult_cnt, prompter)
    if options.student_cnt is not None:
        amounts[TICKET_FIELDS[TicketType.COLLEGE]] = select_ticket_num(
            TicketType.COLLEGE, options.student_cnt, prompter
        )
    return amounts


def select_seat_prefer(override: Optional[int], prompter: Prompter) -> int:
    value = resolve(
        override, "Please select seat preference (0: any, 1: window, 2: aisle) (default: 0):", 0, prompter, int
    )
    if value in (0, 1, 2):
        return value
    logger.warning(f"[BOOKING] Invalid seat preference {value}, defaulting to any")
    return 0


def select_class_type(override: Optional[int], prompter: Prompter) -> int:
    value = resolve(
        override, "Please select class type (0: standard, 1: business) (default: 0):", 0, prompter, int
    )
    if value in (0, 1):
        return value
    logger.warning(f"[BOOKING] Invalid class type {value}, defaulting to standard")
    return 0


def build_payload(
    page: BeautifulSoup,
    options: BookingOptions,
    prompter: Prompter,
    captcha_solver: CaptchaSolver,
    captcha_image: bytes,
) -> BookingPayload:
    """Combine the scraped form state with the user's choices"""
    start_date, end_date = parse_avail_start_end_date(page)
    logger.info(f"[BOOKING] Bookable dates: {start_date} ~ {end_date}")

    fields = dict(
        search_by=parse_search_by(page),
        types_of_trip=parse_types_of_trip_value(page),
        start_station=select_station(options.from_station, prompter, "start", DEFAULT_START_STATION),
        dest_station=select_station(options.to_station, prompter, "destination", DEFAULT_DEST_STATION),
        outbound_date=select_date(start_date, end_date, options.date, prompter),
        outbound_time=select_time(options.time, prompter),
    )
    fields.update(select_ticket_nums(options, prompter))
    fields["seat_prefer"] = select_seat_prefer(options.seat_prefer, prompter)
    fields["class_type"] = select_class_type(options.class_type, prompter)
    fields["security_code"] = captcha_solver.solve(captcha_image)

    return BookingPayload(**fields)


def run_flow(
    session,
    options: BookingOptions,
    prompter: Prompter,
    captcha_solver: CaptchaSolver,
) -> BeautifulSoup:
    """
    Submit the search form.

    Returns:
        Parsed train selection page

    Raises:
        ScrapeError: the booking page lacks a required element
        BookingError: the server rejected the search
    """
    logger.info("[BOOKING] Requesting booking page...")
    page = fetch_page(session, BOOKING_PAGE_URL, "booking_page.html")
    jid = parse_jsessionid(session)
    logger.debug(f"[BOOKING] JSESSIONID: {jid}")

    captcha_image = fetch_bytes(session, parse_security_code_img_url(page))
    payload = build_payload(page, options, prompter, captcha_solver, captcha_image)
    logger.info(
        f"[BOOKING] {payload.start_station} -> {payload.dest_station} "
        f"on {payload.outbound_date} {payload.outbound_time}"
    )

    return submit_form(session, SUBMIT_FORM_URL.format(jid), encode_form(payload), "booking_submit.html")
