from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import date
from enum import Enum


DATE_FORMAT = "%Y-%m-%d"


class SelectionMode(str, Enum):
    START = "start"    # awaiting-start
    END = "end"        # awaiting-end


class BookingDateRange(BaseModel):
    """Existing booking as stored by the data service (inclusive range)"""
    start_date: date
    end_date: date

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def parse_day(cls, v):
        if isinstance(v, str):
            # Documents sometimes carry a full timestamp; only the day matters
            return v.strip()[:10]
        return v


class ScheduleSelection(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    selection_mode: SelectionMode = SelectionMode.START


class DayState(BaseModel):
    date: str
    past: bool = False
    booked: bool = False
    in_range: bool = False
    boundary: bool = False
    today: bool = False


class CalendarMonth(BaseModel):
    year: int
    month: int = Field(..., ge=1, le=12)
    leading_blanks: int = Field(..., ge=0, le=6)
    days: List[DayState]
    selection: ScheduleSelection


class DateClickRequest(BaseModel):
    date: str = Field(..., min_length=8, max_length=10, description="YYYY-MM-DD")


class BookingFormData(BaseModel):
    startDate: str
    endDate: str
