"""
Parser helpers to extract information from THSR booking pages.
"""

from typing import List, Optional, Union
from bs4 import BeautifulSoup, Tag
import logging

from .thsr_common import BookingResult, ResultExtractionError, ScrapeError, Train

logger = logging.getLogger(__name__)

Page = Union[str, bytes, BeautifulSoup, Tag]

ERROR_BANNER_SELECTOR = ".feedbackPanelERROR"


def to_soup(page: Page) -> Union[BeautifulSoup, Tag]:
    """Accept raw HTML or an already parsed document"""
    if isinstance(page, (BeautifulSoup, Tag)):
        return page
    return BeautifulSoup(page, "html.parser")


def select_first(page: Page, selector: str) -> Optional[Tag]:
    return to_soup(page).select_one(selector)


def select_first_text(page: Page, selector: str) -> Optional[str]:
    tag = select_first(page, selector)
    if tag is None:
        return None
    return tag.get_text(strip=True)


def select_first_attr(page: Page, selector: str, attr: str) -> Optional[str]:
    tag = select_first(page, selector)
    if tag is None:
        return None
    return tag.get(attr)


def select_all_text(page: Page, selector: str) -> List[str]:
    return [tag.get_text(strip=True) for tag in to_soup(page).select(selector)]


def require_text(page: Page, selector: str) -> str:
    text = select_first_text(page, selector)
    if text is None:
        raise ScrapeError(f"Element not found: {selector}")
    return text


def require_attr(page: Page, selector: str, attr: str) -> str:
    tag = select_first(page, selector)
    if tag is None:
        raise ScrapeError(f"Element not found: {selector}")
    value = tag.get(attr)
    if value is None:
        raise ScrapeError(f"Attribute '{attr}' not found on {selector}")
    return value


def parse_error(page: Page) -> Optional[str]:
    """
    Collect the server-rendered error banners of a page.

    Returns:
        None when the page has no banner, otherwise the banner texts joined by newline.
    """
    # Wicket nests a classed span inside a classed li; only the innermost banner counts
    banners = [
        tag for tag in to_soup(page).select(ERROR_BANNER_SELECTOR)
        if tag.select_one(ERROR_BANNER_SELECTOR) is None
    ]
    errors = [text for text in (tag.get_text(strip=True) for tag in banners) if text]
    if not errors:
        return None
    logger.debug(f"[PARSER] Found {len(errors)} error banners")
    return "\n".join(errors)


def parse_alert_body(page: Page) -> List[str]:
    """Notices listed above the train list"""
    return select_all_text(page, "ul.alert-body > li")


def parse_discount(item: Tag) -> str:
    """
    Build the discount annotation of a train row.

    Early-bird and student discounts are looked up independently, e.g.
    "(早鳥65折, 大學生75折)", "(大學生88折)" or "" when neither is offered.
    """
    discounts = []
    for selector in ("p.early-bird span", "p.student span"):
        text = select_first_text(item, selector)
        if text:
            discounts.append(text)
    return f"({', '.join(discounts)})" if discounts else ""


def parse_train_list_html(html_content: Page) -> List[Train]:
    """
    Parse the train selection page.

    Args:
        html_content: HTML content returned by the search submission.

    Returns:
        List of Train objects in page order.
    """
    soup = to_soup(html_content)
    rows = soup.select("label.result-item")
    logger.info(f"[PARSER] Found {len(rows)} train rows")

    trains: List[Train] = []
    for row in rows:
        radio = row.select_one("input")
        if radio is None:
            raise ScrapeError("Train row without radio input")

        code = radio.get("querycode")
        try:
            train_id = int(code)
        except (TypeError, ValueError):
            raise ScrapeError(f"Invalid train code: {code!r}")

        trains.append(
            Train(
                id=train_id,
                depart=_radio_attr(radio, "querydeparture"),
                arrive=_radio_attr(radio, "queryarrival"),
                travel_time=_radio_attr(radio, "queryestimatedtime"),
                discount_info=parse_discount(row),
                form_value=_radio_attr(radio, "value"),
            )
        )

    return trains


def _radio_attr(radio: Tag, attr: str) -> str:
    value = radio.get(attr)
    if value is None:
        raise ScrapeError(f"Attribute '{attr}' not found on train radio")
    return value


def parse_booking_result(html_content: Page) -> BookingResult:
    """
    Scrape the final confirmation page into a BookingResult.

    Raises:
        ResultExtractionError: a required element is missing. The booking
            itself already went through at this point.
    """
    soup = to_soup(html_content)

    def text(selector: str) -> str:
        value = select_first_text(soup, selector)
        if value is None:
            raise ResultExtractionError(f"Element not found on confirmation page: {selector}")
        return value

    return BookingResult(
        pnr_code=text("p.pnr-code span"),
        price=text("#setTrainTotalPriceValue"),
        payment_deadline=text("span.status-unpaid span:nth-child(3)"),
        date=text("span.date span"),
        depart_time=text("#setTrainDeparture0"),
        arrive_time=text("#setTrainArrival0"),
        from_station=text("p.departure-stn span"),
        to_station=text("p.arrival-stn span"),
        seat_class=text("p.info-data span"),
        passenger_count=text("div.uk-accordion-content span"),
        seats=select_all_text(soup, "div.seat-label span"),
    )


def format_booking_result(result: BookingResult) -> str:
    """Human readable itinerary report"""
    lines = [
        "",
        "Please use the following PNR code for payment and picking up the ticket:",
        f"PNR Code: {result.pnr_code}",
        f"Price: {result.price}. Please pay before {result.payment_deadline}",
        "-------(Ticket Information)-------",
        f"{'Date: ':>7}{result.date}",
        f"{'Time: ':>7}{result.depart_time}~{result.arrive_time}",
        f"{'From: ':>7}{result.from_station}",
        f"{'To: ':>7}{result.to_station}",
        f"Class: {result.seat_class}{result.passenger_count}",
        f"Seats: {', '.join(result.seats)}",
    ]
    return "\n".join(lines)
