"""
Tests for the search page (first booking stage)

Run: pytest tests/test_booking_flow.py -v
"""

from urllib.parse import parse_qs, parse_qsl

import pytest
from bs4 import BeautifulSoup

from thsr import booking_flow
from thsr.booking_flow import (
    BookingPayload,
    normalize_date,
    parse_avail_start_end_date,
    parse_jsessionid,
    parse_search_by,
    parse_security_code_img_url,
    parse_types_of_trip_value,
    select_class_type,
    select_date,
    select_seat_prefer,
    select_station,
    select_ticket_num,
    select_ticket_nums,
    select_time,
)
from thsr.thsr_common import (
    BASE_URL,
    SUBMIT_FORM_URL,
    BookingError,
    BookingOptions,
    ScrapeError,
    TicketType,
    encode_form,
)

from conftest import ScriptedPrompter, load_fixture, make_response

START_DATE = "2024/06/01"
END_DATE = "2024/06/10"


@pytest.fixture
def booking_page():
    return BeautifulSoup(load_fixture("booking_page.html"), "html.parser")


@pytest.fixture
def full_options():
    return BookingOptions(
        date="2024/06/05",
        time=7,
        from_station=1,
        to_station=11,
        adult_cnt=2,
        student_cnt=1,
        seat_prefer=1,
        class_type=1,
    )


# Page scraping

def test_parse_booking_page_constraints(booking_page):
    assert parse_search_by(booking_page) == "radio31"
    assert parse_types_of_trip_value(booking_page) == 0
    assert parse_avail_start_end_date(booking_page) == (START_DATE, END_DATE)


def test_parse_security_code_img_url(booking_page):
    url = parse_security_code_img_url(booking_page)

    assert url == (
        f"{BASE_URL}/IMINT/?wicket:interface=:0:BookingS1Form:homeCaptcha:passCode"
        "::IResourceListener&wicket:antiCache=1717171717"
    )


def test_parse_booking_page_missing_date_window():
    with pytest.raises(ScrapeError, match="toTimeInputField"):
        parse_avail_start_end_date(BeautifulSoup("<form></form>", "html.parser"))


def test_parse_jsessionid_missing(mock_session):
    mock_session.cookies.get.return_value = None

    with pytest.raises(ScrapeError, match="JSESSIONID"):
        parse_jsessionid(mock_session)


# Date

@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024/06/05", "2024/06/05"),
        ("2024/6/5", "2024/06/05"),
        (" 2024/12/31 ", "2024/12/31"),
        ("2024-06-05", None),
        ("2024/06", None),
        ("2024/06/05/01", None),
        ("2024/ab/05", None),
        ("2024/13/40", None),
        ("2024/00/10", None),
        ("2024/06/32", None),
        ("24/06/05", None),
    ],
)
def test_normalize_date(value, expected):
    assert normalize_date(value) == expected


def test_select_date_defaults_to_end_date():
    prompter = ScriptedPrompter([""])

    assert select_date(START_DATE, END_DATE, None, prompter) == END_DATE
    assert END_DATE in prompter.prompts[0]


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024/06/05", "2024/06/05"),
        ("2024/6/1", "2024/06/01"),
        ("2024/06/10", END_DATE),
        ("2024/13/40", END_DATE),
        ("tomorrow", END_DATE),
        ("2024/05/31", END_DATE),
        ("2024/06/11", END_DATE),
    ],
)
def test_select_date_override(value, expected):
    assert select_date(START_DATE, END_DATE, value, ScriptedPrompter()) == expected


def test_select_date_interactive_invalid_input():
    assert select_date(START_DATE, END_DATE, None, ScriptedPrompter(["2024/13/40"])) == END_DATE


def test_select_date_warns_on_fallback(caplog):
    select_date(START_DATE, END_DATE, "2024/07/01", ScriptedPrompter())

    assert "outside booking range" in caplog.text


# Time

@pytest.mark.parametrize("index", [0, -1, 39, 100])
def test_select_time_out_of_range_defaults_to_tenth_entry(index):
    assert select_time(index, ScriptedPrompter()) == "930A"


@pytest.mark.parametrize("index,token", [(1, "1201A"), (10, "930A"), (15, "1200N"), (38, "1130P")])
def test_select_time_override(index, token):
    assert select_time(index, ScriptedPrompter()) == token


def test_select_time_interactive_prints_table(capsys):
    assert select_time(None, ScriptedPrompter([""])) == "930A"

    out = capsys.readouterr().out
    assert "1. 00:01" in out
    assert "17. 13:00" in out


# Stations

def test_select_station_interactive_default(capsys):
    prompter = ScriptedPrompter([""])

    assert select_station(None, prompter, "start", 2) == 2
    assert "12: Zuouing" in capsys.readouterr().out


@pytest.mark.parametrize("value", [0, 13])
def test_select_station_out_of_range(value):
    assert select_station(value, ScriptedPrompter(), "destination", 12) == 12


# Ticket numbers

@pytest.mark.parametrize(
    "ticket_type,count,expected",
    [
        (TicketType.ADULT, 0, "0F"),
        (TicketType.ADULT, 10, "10F"),
        (TicketType.ADULT, 11, "1F"),
        (TicketType.COLLEGE, 3, "3P"),
        (TicketType.COLLEGE, 99, "1P"),
        (TicketType.ELDER, -2, "1E"),
    ],
)
def test_select_ticket_num(ticket_type, count, expected):
    assert select_ticket_num(ticket_type, count, ScriptedPrompter()) == expected


def test_select_ticket_num_unparsable_answer():
    assert select_ticket_num(TicketType.ADULT, None, ScriptedPrompter(["many"])) == "1F"


def test_select_ticket_nums_without_counts_asks_adults():
    prompter = ScriptedPrompter(["3"])

    assert select_ticket_nums(BookingOptions(), prompter) == {"adult_ticket_num": "3F"}
    assert len(prompter.prompts) == 1


def test_select_ticket_nums_student_only():
    amounts = select_ticket_nums(BookingOptions(student_cnt=2), ScriptedPrompter())

    assert amounts == {"college_ticket_num": "2P"}


# Seat / class

@pytest.mark.parametrize("value,expected", [(0, 0), (1, 1), (2, 2), (3, 0), (-1, 0)])
def test_select_seat_prefer(value, expected):
    assert select_seat_prefer(value, ScriptedPrompter()) == expected


@pytest.mark.parametrize("value,expected", [(0, 0), (1, 1), (2, 0), (7, 0)])
def test_select_class_type(value, expected):
    assert select_class_type(value, ScriptedPrompter()) == expected


# Payload

def test_default_payload_encoding():
    payload = BookingPayload(outbound_date=END_DATE)

    fields = dict(parse_qsl(encode_form(payload), keep_blank_values=True))

    assert fields == {
        "selectStartStation": "2",
        "selectDestinationStation": "12",
        "bookingMethod": "1",
        "tripCon:typesoftrip": "0",
        "toTimeInputField": END_DATE,
        "toTimeTable": "930A",
        "homeCaptcha:securityCode": "",
        "seatCon:seatRadioGroup": "0",
        "BookingS1Form:hf:0": "",
        "trainCon:trainRadioGroup": "0",
        "ticketPanel:rows:0:ticketAmount": "1F",
        "ticketPanel:rows:1:ticketAmount": "0H",
        "ticketPanel:rows:2:ticketAmount": "0W",
        "ticketPanel:rows:3:ticketAmount": "0E",
        "ticketPanel:rows:4:ticketAmount": "0P",
    }


def test_build_payload_all_defaults(booking_page, captcha_solver):
    # start, destination, date, time, adult count, seat, class
    prompter = ScriptedPrompter([""] * 7)

    payload = booking_flow.build_payload(booking_page, BookingOptions(), prompter, captcha_solver, b"img")

    assert payload.start_station == 2
    assert payload.dest_station == 12
    assert payload.outbound_date == END_DATE
    assert payload.outbound_time == "930A"
    assert payload.adult_ticket_num == "1F"
    assert payload.college_ticket_num == "0P"
    assert payload.search_by == "radio31"
    assert payload.security_code == "AB12"
    assert captcha_solver.images == [b"img"]
    assert prompter.answers == []


# Flow

def test_run_flow_submits_search(mock_session, captcha_solver, full_options):
    mock_session.post.return_value = make_response(text=load_fixture("train_list.html"))

    page = booking_flow.run_flow(mock_session, full_options, ScriptedPrompter(), captcha_solver)

    assert page.select("label.result-item")
    assert captcha_solver.images == [b"\xff\xd8captcha"]

    call = mock_session.post.call_args
    assert call.args[0] == SUBMIT_FORM_URL.format("ABC123")
    assert call.kwargs["headers"] == {"Content-Type": "application/x-www-form-urlencoded"}

    fields = parse_qs(call.kwargs["data"].decode("utf-8"), keep_blank_values=True)
    assert fields["selectStartStation"] == ["1"]
    assert fields["selectDestinationStation"] == ["11"]
    assert fields["toTimeInputField"] == ["2024/06/05"]
    assert fields["toTimeTable"] == ["800A"]
    assert fields["ticketPanel:rows:0:ticketAmount"] == ["2F"]
    assert fields["ticketPanel:rows:4:ticketAmount"] == ["1P"]
    assert fields["seatCon:seatRadioGroup"] == ["1"]
    assert fields["trainCon:trainRadioGroup"] == ["1"]
    assert fields["homeCaptcha:securityCode"] == ["AB12"]
    assert fields["bookingMethod"] == ["radio31"]


def test_run_flow_raises_on_error_banner(mock_session, captcha_solver, full_options):
    mock_session.post.return_value = make_response(text=load_fixture("error_page.html"))

    with pytest.raises(BookingError, match="檢測碼輸入錯誤"):
        booking_flow.run_flow(mock_session, full_options, ScriptedPrompter(), captcha_solver)


def test_run_flow_without_session_cookie(mock_session, captcha_solver, full_options):
    mock_session.cookies.get.return_value = None

    with pytest.raises(ScrapeError):
        booking_flow.run_flow(mock_session, full_options, ScriptedPrompter(), captcha_solver)

    mock_session.post.assert_not_called()
