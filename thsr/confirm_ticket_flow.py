"""
Final page: passenger information and ticket confirmation.

Besides the fixed confirmation form this page may carry two optional
sections, each encoded separately and appended to the body:

- early bird passengers: one row of identity fields per discounted seat
- membership: membership number and checkbox when the user books as member
"""

from typing import Dict, List, Optional, Tuple
import logging

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from .parser import require_attr, to_soup
from .prompt import Prompter, ask_non_empty, parse_yes_no, resolve
from .session import submit_form
from .thsr_common import (
    CONFIRM_TICKET_URL,
    BookingOptions,
    encode_form,
    join_form_fragments,
)

logger = logging.getLogger(__name__)

MEMBER_RADIO_GROUP = "TicketMemberSystemInputPanel:TakerMemberSystemDataView:memberSystemRadioGroup"
MEMBER_RADIO_SELECTOR = "#memberSystemRadio1"
NON_MEMBER_RADIO_SELECTOR = "#memberSystemRadio3"

EARLY_BIRD_SELECTOR = ".superEarlyBird"
PASSENGER_FIELD = "TicketPassengerInfoInputPanel:passengerDataView:{row}:passengerDataView2:{name}"
PASSENGER_TYPE_SELECTOR = (
    "input[name='TicketPassengerInfoInputPanel:passengerDataView:0:passengerDataView2:passengerDataTypeName']"
)


class ConfirmTicketPayload(BaseModel):
    personal_id: str = Field("", serialization_alias="dummyId")
    phone_num: str = Field("", serialization_alias="dummyPhone")
    member_radio: str = Field(..., serialization_alias=MEMBER_RADIO_GROUP)
    form_mark: str = Field("", serialization_alias="BookingS3FormSP:hf:0")
    id_input_radio: int = Field(0, serialization_alias="idInputRadio")  # 0: national id, 1: passport
    diff_over: int = Field(1, serialization_alias="diffOver")
    email: str = Field("", serialization_alias="email")
    agree: str = Field("on", serialization_alias="agree")
    go_back_m: str = Field("", serialization_alias="isGoBackM")
    back_home: str = Field("", serialization_alias="backHome")
    tgo_error: int = Field(1, serialization_alias="TgoError")


class PassengerRow(BaseModel):
    """Identity fields of one early bird seat"""

    type_name: str
    id_number: str
    last_name: str = ""
    first_name: str = ""
    input_choice: int = 0  # 0: national id, 1: passport

    def form_fields(self, row: int) -> List[Tuple[str, str]]:
        values = [
            ("passengerDataLastName", self.last_name),
            ("passengerDataFirstName", self.first_name),
            ("passengerDataTypeName", self.type_name),
            ("passengerDataIdNumber", self.id_number),
            ("passengerDataInputChoice", str(self.input_choice)),
        ]
        return [(PASSENGER_FIELD.format(row=row, name=name), value) for name, value in values]


def input_personal_id(override: Optional[str], prompter: Prompter) -> str:
    return resolve(override, "Input personal ID:", "", prompter).strip()


# Membership

def process_membership(
    page: BeautifulSoup, membership_id: str, use_membership: Optional[bool], prompter: Prompter
) -> Tuple[str, Optional[str]]:
    """
    Returns:
        (membership radio value, encoded membership fields or None)
    """
    use_membership = resolve(
        use_membership, "Use membership (y/n, default: n):", False, prompter, parse_yes_no
    )

    selector = MEMBER_RADIO_SELECTOR if use_membership else NON_MEMBER_RADIO_SELECTOR
    radio_value = require_attr(page, selector, "value")

    if not use_membership:
        return radio_value, None

    logger.info("[TICKET] Booking with membership")
    addendum = encode_form([
        (f"{MEMBER_RADIO_GROUP}:memberShipNumber", membership_id),
        (f"{MEMBER_RADIO_GROUP}:memberSystemShipCheckBox", "on"),
    ])
    return radio_value, addendum


# Early bird passengers

def count_early_bird_passengers(page: BeautifulSoup) -> int:
    """Number of seats booked with an early bird discount"""
    return len(to_soup(page).select(EARLY_BIRD_SELECTOR))


def parse_early_bird_type(page: BeautifulSoup) -> str:
    return require_attr(page, PASSENGER_TYPE_SELECTOR, "value")


def collect_passenger_ids(count: int, personal_id: str, prompter: Prompter) -> List[str]:
    """
    Ask one id per early bird seat. The first seat defaults to the personal
    id; every other seat needs an explicit, non-empty id.
    """
    if count <= 0:
        return []

    first = resolve(None, f"Passenger's ID number (default: {personal_id}):", personal_id, prompter)
    if not first:
        first = ask_non_empty("Input passenger's ID number for passenger 1:", prompter)

    ids = [first]
    for i in range(1, count):
        ids.append(
            ask_non_empty(
                f"Input passenger's ID number for passenger {i + 1}\n"
                "(ID change is not allowed after input!):",
                prompter,
            )
        )
    return ids


def build_passenger_rows(ids: List[str], type_name: str) -> Dict[int, PassengerRow]:
    return {row: PassengerRow(type_name=type_name, id_number=id_number) for row, id_number in enumerate(ids)}


def encode_passenger_rows(rows: Dict[int, PassengerRow]) -> str:
    fields = []
    for row in sorted(rows):
        fields.extend(rows[row].form_fields(row))
    return encode_form(fields)


def process_early_bird(page: BeautifulSoup, personal_id: str, prompter: Prompter) -> Optional[str]:
    """Encoded early bird passenger rows, or None when no seat is discounted"""
    count = count_early_bird_passengers(page)
    if count == 0:
        return None

    logger.info(f"[TICKET] {count} early bird passengers need an ID")
    type_name = parse_early_bird_type(page)
    rows = build_passenger_rows(collect_passenger_ids(count, personal_id, prompter), type_name)
    return encode_passenger_rows(rows)


def build_body(page: BeautifulSoup, options: BookingOptions, prompter: Prompter) -> str:
    personal_id = input_personal_id(options.personal_id, prompter)
    radio_value, membership = process_membership(page, personal_id, options.use_membership, prompter)
    payload = ConfirmTicketPayload(personal_id=personal_id, member_radio=radio_value)

    return join_form_fragments(
        encode_form(payload),
        process_early_bird(page, personal_id, prompter),
        membership,
    )


def run_flow(page: BeautifulSoup, session, options: BookingOptions, prompter: Prompter) -> BeautifulSoup:
    """
    Submit the passenger form.

    Returns:
        Parsed booking result page
    """
    body = build_body(page, options, prompter)
    logger.info("[TICKET] Booking...")
    return submit_form(session, CONFIRM_TICKET_URL, body, "confirm_ticket.html")
