"""Monthly ticket sales for an airline."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Flight, Ticket
from .services import day_bounds
from .staff import get_staff


@dataclass
class MonthlySales:
    month: str
    tickets_sold: int
    revenue: float

    def as_dict(self) -> dict:
        return {"month": self.month, "ticketsSold": self.tickets_sold, "revenue": self.revenue}


@dataclass
class SalesReport:
    airline: str
    monthly: List[MonthlySales] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(month.tickets_sold for month in self.monthly)

    @property
    def revenue(self) -> float:
        return round(sum(month.revenue for month in self.monthly), 2)

    def as_dict(self) -> dict:
        return {
            "airline": self.airline,
            "monthly": [month.as_dict() for month in self.monthly],
            "total": self.total,
            "revenue": self.revenue,
        }


def _ticket_frame(session: Session, airline: str, date_from: Optional[date], date_to: Optional[date]) -> pd.DataFrame:
    stmt = (
        select(Ticket.purchased_at, Flight.base_price)
        .join(Ticket.flight)
        .where(Flight.airline_name == airline)
    )
    lower, upper = day_bounds(date_from, date_to)
    if lower:
        stmt = stmt.where(Ticket.purchased_at >= lower)
    if upper:
        stmt = stmt.where(Ticket.purchased_at < upper)
    rows = session.execute(stmt).all()
    return pd.DataFrame(
        [(purchased_at, float(price)) for purchased_at, price in rows],
        columns=["purchased_at", "price"],
    )


def sales_report(
    session: Session,
    username: str,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> SalesReport:
    """Tickets sold and revenue per purchase month for the staff member's airline."""

    staff = get_staff(session, username)
    frame = _ticket_frame(session, staff.airline_name, date_from, date_to)
    report = SalesReport(airline=staff.airline_name)
    if frame.empty:
        return report

    frame["month"] = pd.to_datetime(frame["purchased_at"]).dt.strftime("%Y-%m")
    grouped = frame.groupby("month", sort=True)["price"].agg(["count", "sum"])
    for month, row in grouped.iterrows():
        report.monthly.append(
            MonthlySales(month=str(month), tickets_sold=int(row["count"]), revenue=round(float(row["sum"]), 2))
        )
    return report


def sales_dataframe(report: SalesReport) -> pd.DataFrame:
    """Tabular form of ``report`` used for CSV/Excel export, with a totals row."""

    data = [
        {"Month": month.month, "Tickets Sold": month.tickets_sold, "Revenue": month.revenue}
        for month in report.monthly
    ]
    data.append({"Month": "Total", "Tickets Sold": report.total, "Revenue": report.revenue})
    return pd.DataFrame(data, columns=["Month", "Tickets Sold", "Revenue"])


__all__ = ["MonthlySales", "SalesReport", "sales_dataframe", "sales_report"]
