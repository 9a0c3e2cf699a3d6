"""
Command line entry point.

Running without flags guides you through the whole booking process.
"""

from typing import List, Optional
import argparse
import logging
import sys

import requests

from .parser import format_booking_result
from .thsr import run_booking
from .thsr_common import (
    BookingOptions,
    ResultExtractionError,
    ThsrError,
    station_table,
    time_table,
)

logger = logging.getLogger(__name__)


def str_to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "t", "yes", "y", "1"):
        return True
    if lowered in ("false", "f", "no", "n", "0"):
        return False
    raise argparse.ArgumentTypeError(f"Expected true or false, got '{value}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thsr",
        description="A CLI tool for booking Taiwan High Speed Rail tickets. "
        "Run the program without flags will guide you through the booking process.",
    )
    parser.add_argument("--personal-id", "-i", metavar="ID", help="Personal ID")
    parser.add_argument("--date", "-d", metavar="DATE", help="Departure date (YYYY/MM/DD)")
    parser.add_argument(
        "--time", "-T", metavar="TIME_ID", type=int,
        help="Time ID of the departure time. To see available times, use --list-time-table",
    )
    parser.add_argument(
        "--from", "-f", dest="from_station", metavar="STATION_ID", type=int,
        help="Departure station ID. To see available stations, use --list-station",
    )
    parser.add_argument(
        "--to", "-t", dest="to_station", metavar="STATION_ID", type=int,
        help="Arrival station ID. To see available stations, use --list-station",
    )
    parser.add_argument("--adult-cnt", "-a", metavar="NUMBER", type=int, help="Number of adults")
    parser.add_argument("--student-cnt", "-s", metavar="NUMBER", type=int, help="Number of students")
    parser.add_argument(
        "--seat-prefer", "-p", type=int, choices=[0, 1, 2],
        help="Seat preference. 0: None, 1: Window, 2: Aisle",
    )
    parser.add_argument(
        "--class-type", "-c", type=int, choices=[0, 1], help="Class type. 0: Standard, 1: Business"
    )
    parser.add_argument(
        "--use-membership", "-m", metavar="TO_USE_MEMBERSHIP", type=str_to_bool,
        help="Whether to use personal ID as membership (true/false)",
    )
    parser.add_argument("--train", "-n", metavar="NUMBER", type=int, help="Train number in the result list")
    parser.add_argument("--list-station", action="store_true", help="List available stations")
    parser.add_argument("--list-time-table", action="store_true", help="List available times")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.list_time_table:
        print(time_table())
        return 0

    if args.list_station:
        print(station_table())
        return 0

    options = BookingOptions(
        personal_id=args.personal_id,
        date=args.date,
        time=args.time,
        from_station=args.from_station,
        to_station=args.to_station,
        adult_cnt=args.adult_cnt,
        student_cnt=args.student_cnt,
        seat_prefer=args.seat_prefer,
        class_type=args.class_type,
        use_membership=args.use_membership,
        train=args.train,
    )

    try:
        result = run_booking(options)
    except ResultExtractionError as e:
        print(f"Booking completed, but the result page could not be read: {e}")
        return 1
    except ThsrError as e:
        print(f"Error: {e}")
        return 1
    except requests.RequestException as e:
        logger.error(f"[ERROR] Request failed: {e}")
        print(f"Error: {e}")
        return 1

    print(format_booking_result(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
