"""Command line interface for managing and querying the reservation store."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import date, datetime
from typing import Iterable, List, Sequence

from tabulate import tabulate

from . import dataset, reports, services
from .database import DEFAULT_DATABASE_URL, init_db, session_scope
from .errors import ReservationError
from .models import Airline, Airport, FlightKey


def _render_table(rows: Sequence[Sequence[object]], headers: List[str]) -> str:
    return tabulate(rows, headers=headers, tablefmt="github")


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got '{value}'") from exc


def _iso_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an ISO timestamp, got '{value}'") from exc


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Airline ticket reservation service.")
    parser.add_argument(
        "--database-url",
        default=DEFAULT_DATABASE_URL,
        help="SQLAlchemy database URL (default: $AIRBOOK_DATABASE_URL or ./airbook.db).",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("AIRBOOK_LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the database tables.")

    seed = commands.add_parser("seed", help="Populate the database with sample data.")
    seed.add_argument("--flights", type=int, default=25)
    seed.add_argument("--customers", type=int, default=50)
    seed.add_argument("--tickets", type=int, default=150)

    airline = commands.add_parser("add-airline", help="Register an airline.")
    airline.add_argument("name")

    airport = commands.add_parser("add-airport", help="Register an airport.")
    airport.add_argument("code")
    airport.add_argument("city")
    airport.add_argument("country")

    search = commands.add_parser("search", help="Search upcoming flights.")
    search.add_argument("--from", dest="origin", help="Departure airport code or city.")
    search.add_argument("--to", dest="destination", help="Arrival airport code or city.")
    search.add_argument("--date", type=_iso_date, help="Departure date (YYYY-MM-DD).")
    search.add_argument("--page", type=int, default=1)
    search.add_argument("--page-size", type=int, default=20)

    seats = commands.add_parser("availability", help="Show the seats left on a flight.")
    seats.add_argument("airline")
    seats.add_argument("flight_number")
    seats.add_argument("departure", type=_iso_datetime)

    sales = commands.add_parser("sales", help="Monthly sales report for a staff member's airline.")
    sales.add_argument("username")
    sales.add_argument("--from", dest="date_from", type=_iso_date)
    sales.add_argument("--to", dest="date_to", type=_iso_date)

    serve = commands.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser.parse_args(list(argv))


def _search(session_factory, args: argparse.Namespace) -> str:
    with session_scope(session_factory) as session:
        result = services.search_flights(
            session,
            origin=args.origin,
            destination=args.destination,
            departure_date=args.date,
            page=args.page,
            page_size=args.page_size,
        )
    rows = [
        [
            listing.key.airline,
            listing.key.flight_number,
            f"{listing.departure_airport}->{listing.arrival_airport}",
            listing.key.departure.isoformat(sep=" "),
            listing.status,
            f"{listing.base_price:,.2f}",
            listing.seats_available,
        ]
        for listing in result.flights
    ]
    table = _render_table(
        rows, ["Airline", "Flight", "Route", "Departure", "Status", "Price", "Seats left"]
    )
    return f"{table}\n{len(rows)} of {result.total} flights (page {result.page})"


def _sales(session_factory, args: argparse.Namespace) -> str:
    with session_scope(session_factory) as session:
        report = reports.sales_report(
            session, args.username, date_from=args.date_from, date_to=args.date_to
        )
    frame = reports.sales_dataframe(report)
    return f"Sales for {report.airline}\n" + _render_table(frame.values.tolist(), list(frame.columns))


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        session_factory = init_db(args.database_url)
        if args.command == "init-db":
            print(f"Database ready at {args.database_url}")
        elif args.command == "seed":
            summary = dataset.generate_sample_data(
                session_factory,
                flights=args.flights,
                customers=args.customers,
                tickets=args.tickets,
            )
            print(_render_table([list(summary.values())], [k.title() for k in summary]))
        elif args.command == "add-airline":
            with session_scope(session_factory) as session:
                session.add(Airline(name=args.name.strip()))
            print(f"Added airline {args.name.strip()}")
        elif args.command == "add-airport":
            with session_scope(session_factory) as session:
                session.add(
                    Airport(code=args.code.strip().upper(), city=args.city, country=args.country)
                )
            print(f"Added airport {args.code.strip().upper()}")
        elif args.command == "search":
            print(_search(session_factory, args))
        elif args.command == "availability":
            key = FlightKey(args.airline, args.flight_number, args.departure)
            with session_scope(session_factory) as session:
                seats = services.seats_available(session, key)
            print(f"{key.airline} {key.flight_number} at {key.departure.isoformat(sep=' ')}: {seats} seats left")
        elif args.command == "sales":
            print(_sales(session_factory, args))
        elif args.command == "serve":  # pragma: no cover - blocks until interrupted
            import uvicorn

            from .web import create_app

            uvicorn.run(create_app(session_factory), host=args.host, port=args.port)
    except ReservationError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    except Exception as exc:  # pragma: no cover - CLI entry point
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
