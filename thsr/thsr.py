"""
End-to-end booking: search, train selection and ticket confirmation on one
session, followed by reading the reservation summary.
"""

from typing import Optional
from datetime import datetime
import logging

from . import booking_flow, confirm_ticket_flow, confirm_train_flow
from .parser import parse_booking_result
from .prompt import CaptchaSolver, ConsoleCaptchaSolver, ConsolePrompter, Prompter
from .session import create_session
from .thsr_common import BookingOptions, BookingResult, ResultExtractionError, resolve_config

logger = logging.getLogger(__name__)


def run_booking(
    options: BookingOptions,
    prompter: Optional[Prompter] = None,
    captcha_solver: Optional[CaptchaSolver] = None,
    config: Optional[dict] = None,
    session=None,
) -> BookingResult:
    """
    Run the three booking stages in order, stopping at the first error.

    Args:
        options: Values supplied up front; missing ones are asked through the prompter
        prompter: Source of interactive answers (console by default)
        captcha_solver: Reads the security code image (console by default)
        config: Client config dict: {
            'timeout': float,
            'max_redirects': int,
            'captcha_path': str,
            'save_responses': bool,
            'responses_dir': str
        }
        session: Existing HTTP session to reuse

    Returns:
        The booked itinerary

    Raises:
        BookingError: a stage was rejected by the server
        ScrapeError: a page lacks a required element
        requests.RequestException: transport failure
    """
    cfg = resolve_config(config)
    prompter = prompter or ConsolePrompter()
    captcha_solver = captcha_solver or ConsoleCaptchaSolver(prompter, cfg["captcha_path"])
    session = session or create_session(cfg)

    start_time = datetime.now()

    # First page
    page = booking_flow.run_flow(session, options, prompter, captcha_solver)

    # Second page
    page = confirm_train_flow.run_flow(page, session, prompter, options.train)

    # Final page
    page = confirm_ticket_flow.run_flow(page, session, options, prompter)

    elapsed = (datetime.now() - start_time).total_seconds()
    logger.info(f"[SUCCESS] Booking submitted in {elapsed:.2f}s")

    try:
        return parse_booking_result(page)
    except ResultExtractionError as e:
        logger.error(f"[RESULT] Booking went through but the result page could not be read: {e}")
        raise
