from fastapi import APIRouter, Depends, Query
from typing import Optional

from ..schemas.booking import CalendarMonth, DateClickRequest, ScheduleSelection
from ..schemas.common import ActionResponse
from ..services.booking_calendar import BookingCalendar, shift_month
from ..utils.dependencies import get_booking_calendar, to_response

router = APIRouter(prefix="/api/schedule", tags=["Schedule"])


@router.get("", response_model=ScheduleSelection)
async def get_selection(booking_calendar: BookingCalendar = Depends(get_booking_calendar)):
    return booking_calendar.selection


@router.get("/calendar")
async def get_calendar(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    booking_calendar: BookingCalendar = Depends(get_booking_calendar),
):
    """Month view plus the months either side for navigation"""
    grid: CalendarMonth = booking_calendar.month_grid(year, month)
    prev_year, prev_month = shift_month(grid.year, grid.month, -1)
    next_year, next_month = shift_month(grid.year, grid.month, 1)
    status = booking_calendar.selection_status()
    return {
        "calendar": grid,
        "previous": {"year": prev_year, "month": prev_month},
        "next": {"year": next_year, "month": next_month},
        "notice": None if status.success else status.message,
    }


@router.post("/click", response_model=ActionResponse)
async def click_date(
    data: DateClickRequest,
    booking_calendar: BookingCalendar = Depends(get_booking_calendar),
):
    return to_response(booking_calendar.handle_date_click(data.date))


@router.post("/next", response_model=ActionResponse)
async def confirm_range(booking_calendar: BookingCalendar = Depends(get_booking_calendar)):
    return to_response(booking_calendar.handle_next())


@router.post("/reset", response_model=ActionResponse)
async def reset_selection(booking_calendar: BookingCalendar = Depends(get_booking_calendar)):
    return to_response(booking_calendar.reset_selection())


@router.delete("/saved", response_model=ActionResponse)
async def clear_saved_schedule(booking_calendar: BookingCalendar = Depends(get_booking_calendar)):
    return to_response(booking_calendar.clear_saved_schedule())
