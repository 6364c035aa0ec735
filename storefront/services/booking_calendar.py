"""
Booking Calendar

Date-range selection reconciled against existing bookings.

Two-click selection: the first click sets the start date and waits for the
end; the second sets the end date, swapping the two when the end lands
before the start. Past days and booked days cannot be clicked. The chosen
range is saved per user and re-checked in full before the flow moves on to
confirmation.
"""

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from ..config import settings
from ..schemas.booking import (
    DATE_FORMAT,
    BookingDateRange,
    CalendarMonth,
    DayState,
    ScheduleSelection,
    SelectionMode,
)
from ..utils.logging_config import get_logger
from ..utils.security import CurrentUser
from .data_service_client import DataServiceClient
from .local_state import (
    BOOKING_FORM_KEY,
    SCHEDULE_KEY,
    SELECTED_ITEMS_KEY,
    SELECTED_PACKAGE_KEY,
    LocalStateStore,
)
from .outcomes import ActionResult

logger = logging.getLogger(__name__)
structured_logger = get_logger(__name__)

NOTHING_SELECTED = "No items or package selected. Please go back and make a selection."


def store_today() -> date:
    """Current day in the store's time zone"""
    return datetime.now(ZoneInfo(settings.store_timezone)).date()


def parse_day(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value.strip()[:10], DATE_FORMAT).date()
    except (AttributeError, ValueError):
        return None


def format_day(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def expand_range(start: date, end: date) -> List[str]:
    """Every day from start to end inclusive, as YYYY-MM-DD"""
    days = []
    current = start
    while current <= end:
        days.append(format_day(current))
        current += timedelta(days=1)
    return days


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Move a (year, month) pair by delta months, rolling the year over"""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


class BookingCalendar:
    def __init__(
        self,
        user: Optional[CurrentUser],
        store: LocalStateStore,
        client: Optional[DataServiceClient] = None,
        today: Optional[date] = None,
    ):
        self.user = user
        self.store = store
        self.client = client
        self._today = today
        self.booked_dates: Set[str] = set()
        self.start_date: Optional[date] = None
        self.end_date: Optional[date] = None
        self.selection_mode = SelectionMode.START
        self._rehydrate()

    @property
    def today(self) -> date:
        return self._today or store_today()

    # ==================
    # Bookings
    # ==================

    async def load_bookings(self) -> Set[str]:
        """
        Expand every existing booking into the set of booked days.
        A failed read leaves the set empty; documents without a usable
        range are skipped.
        """
        if self.client is None:
            return self.booked_dates

        booked: Set[str] = set()
        try:
            result = await self.client.get_bookings()
        except Exception as e:
            logger.error(f"Error loading bookings: {e}")
            self.booked_dates = booked
            return booked

        if not result.success:
            logger.error(f"Error loading bookings: {result.error}")
            self.booked_dates = booked
            return booked

        skipped = 0
        for doc in result.items:
            if not isinstance(doc, dict) or not doc.get("startDate") or not doc.get("endDate"):
                skipped += 1
                continue
            try:
                booking = BookingDateRange(start_date=doc["startDate"], end_date=doc["endDate"])
            except ValidationError:
                skipped += 1
                continue
            span = (booking.end_date - booking.start_date).days + 1
            if span > settings.max_booking_span_days:
                logger.warning(
                    f"Skipping booking {doc.get('id', '?')} spanning {span} days "
                    f"(limit {settings.max_booking_span_days})"
                )
                skipped += 1
                continue
            booked.update(expand_range(booking.start_date, booking.end_date))

        if skipped:
            logger.warning(f"Skipped {skipped} booking document(s) without a usable range")
        self.booked_dates = booked
        logger.info(f"Loaded {len(result.items)} bookings covering {len(booked)} day(s)")
        return booked

    def is_booked(self, day: str) -> bool:
        return day in self.booked_dates

    # ==================
    # Selection state
    # ==================

    def _rehydrate(self):
        if self.user is None:
            return
        saved = self.store.get_json(self.user.uid, SCHEDULE_KEY)
        if not isinstance(saved, dict):
            return
        self.start_date = parse_day(saved.get("startDate") or "")
        self.end_date = parse_day(saved.get("endDate") or "")
        if self.start_date and not self.end_date:
            self.selection_mode = SelectionMode.END
        else:
            self.selection_mode = SelectionMode.START

    def _save(self):
        if self.user is None or not (self.start_date or self.end_date):
            return
        self.store.set_json(self.user.uid, SCHEDULE_KEY, {
            "startDate": format_day(self.start_date) if self.start_date else "",
            "endDate": format_day(self.end_date) if self.end_date else "",
            "lastUpdated": datetime.utcnow().isoformat(),
        })

    @property
    def selection(self) -> ScheduleSelection:
        return ScheduleSelection(
            start_date=self.start_date,
            end_date=self.end_date,
            selection_mode=self.selection_mode,
        )

    def handle_date_click(self, date_str: str) -> ActionResult:
        if self.user is None:
            return ActionResult.login_required("Please log in to select rental dates.")

        clicked = parse_day(date_str)
        if clicked is None:
            return ActionResult.rejected(f"{date_str} is not a valid date.")

        key = format_day(clicked)
        if clicked < self.today:
            return ActionResult.rejected("Past dates cannot be selected.", data=self.selection)
        if self.is_booked(key):
            return ActionResult.rejected(f"{key} is already booked.", data=self.selection)

        if self.selection_mode == SelectionMode.START or self.start_date is None:
            self.start_date = clicked
            self.end_date = None
            self.selection_mode = SelectionMode.END
        else:
            if clicked < self.start_date:
                self.start_date, self.end_date = clicked, self.start_date
            else:
                self.end_date = clicked
            self.selection_mode = SelectionMode.START

        self._save()
        return ActionResult.ok(f"{key} is available.", data=self.selection)

    def reset_selection(self) -> ActionResult:
        self.start_date = None
        self.end_date = None
        self.selection_mode = SelectionMode.START
        if self.user is not None:
            self.store.remove(self.user.uid, SCHEDULE_KEY)
        return ActionResult.ok("Selection cleared. Click on calendar to select dates.", data=self.selection)

    def clear_saved_schedule(self) -> ActionResult:
        result = self.reset_selection()
        if self.user is not None:
            result.message = "Your saved schedule has been cleared."
        return result

    # ==================
    # Rendering
    # ==================

    def day_state(self, date_str: str) -> DayState:
        day = parse_day(date_str)
        if day is None:
            return DayState(date=date_str)
        key = format_day(day)
        in_range = bool(
            self.start_date and self.end_date and self.start_date <= day <= self.end_date
        )
        return DayState(
            date=key,
            past=day < self.today,
            booked=self.is_booked(key),
            in_range=in_range,
            boundary=day in (self.start_date, self.end_date),
            today=day == self.today,
        )

    def month_grid(self, year: Optional[int] = None, month: Optional[int] = None) -> CalendarMonth:
        """Sunday-first month view: blank cells before day 1, then a state per day"""
        year = year or self.today.year
        month = month or self.today.month
        first_weekday, days_in_month = calendar.monthrange(year, month)
        # monthrange counts from Monday
        leading_blanks = (first_weekday + 1) % 7
        days = [
            self.day_state(format_day(date(year, month, day)))
            for day in range(1, days_in_month + 1)
        ]
        return CalendarMonth(
            year=year,
            month=month,
            leading_blanks=leading_blanks,
            days=days,
            selection=self.selection,
        )

    # ==================
    # Hand-off
    # ==================

    def _has_selection(self) -> bool:
        items = self.store.get_json(self.user.uid, SELECTED_ITEMS_KEY, default=[]) or []
        pkg = self.store.get_json(self.user.uid, SELECTED_PACKAGE_KEY)
        return bool(items) or bool(pkg)

    def selection_status(self) -> ActionResult:
        if self.user is None or not self._has_selection():
            return ActionResult.rejected(NOTHING_SELECTED)
        return ActionResult.ok()

    def first_booked_in_range(self, start: date, end: date) -> Optional[str]:
        """Earliest booked day inside start..end. Walks the booked set, not the range."""
        low, high = format_day(start), format_day(end)
        # YYYY-MM-DD keys sort chronologically
        return min((day for day in self.booked_dates if low <= day <= high), default=None)

    def handle_next(self) -> ActionResult:
        """Re-check the whole range and hand it to the confirmation step"""
        if self.user is None:
            return ActionResult.login_required("You must log in before making a booking.")

        if not self._has_selection():
            return ActionResult.rejected("Please select items or a package before scheduling.")

        if not self.start_date or not self.end_date:
            return ActionResult.rejected("Please select both start and end dates.")

        if self.start_date < self.today:
            return ActionResult.rejected("Start date cannot be in the past.")

        if self.start_date > self.end_date:
            return ActionResult.rejected("Start date must be before end date.")

        conflict = self.first_booked_in_range(self.start_date, self.end_date)
        if conflict:
            return ActionResult.rejected(f"{conflict} is already booked.")

        form: Dict[str, str] = {
            "startDate": format_day(self.start_date),
            "endDate": format_day(self.end_date),
        }
        self.store.set_json(self.user.uid, BOOKING_FORM_KEY, form)
        structured_logger.booking_range_confirmed(self.user.uid, form["startDate"], form["endDate"])
        return ActionResult.ok(redirect=settings.confirmation_path, data=form)
