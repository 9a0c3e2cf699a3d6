"""
Second page: train selection.
"""

from typing import List, Optional
import logging

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from .parser import parse_alert_body, parse_train_list_html
from .prompt import Prompter, resolve
from .session import submit_form
from .thsr_common import CONFIRM_TRAIN_URL, BookingError, Train, encode_form

logger = logging.getLogger(__name__)


class ConfirmTrainPayload(BaseModel):
    selected_train: str = Field("", serialization_alias="TrainQueryDataViewPanel:TrainGroup")
    form_mark: str = Field("", serialization_alias="BookingS2Form:hf:0")


def format_train(idx: int, train: Train) -> str:
    return (
        f"{idx:>2}. {train.id:>4} {train.depart:>3}~{train.arrive} "
        f"{train.travel_time:>3} {train.discount_info}"
    )


def select_available_train(trains: List[Train], override: Optional[int], prompter: Prompter) -> Train:
    """Pick a train by 1-based index; out-of-range picks fall back to the first train"""
    if override is None:
        for idx, train in enumerate(trains, start=1):
            print(format_train(idx, train))

    selection = resolve(override, "Select a train (default: 1):", 1, prompter, int)
    if not 1 <= selection <= len(trains):
        logger.warning(f"[TRAIN] Invalid selection {selection}, defaulting to 1")
        selection = 1
    return trains[selection - 1]


def run_flow(
    page: BeautifulSoup, session, prompter: Prompter, train: Optional[int] = None
) -> BeautifulSoup:
    """
    Submit the train selection.

    Returns:
        Parsed passenger/confirmation page
    """
    alerts = parse_alert_body(page)
    if alerts:
        print("\n".join(alerts))

    trains = parse_train_list_html(page)
    if not trains:
        raise BookingError("No available trains for the selected criteria")

    selected = select_available_train(trains, train, prompter)
    logger.info(f"[TRAIN] Selected train {selected.id} {selected.depart}~{selected.arrive}")

    # The radio value is an opaque server token; send it back untouched
    payload = ConfirmTrainPayload(selected_train=selected.form_value)
    return submit_form(session, CONFIRM_TRAIN_URL, encode_form(payload), "confirm_train.html")
