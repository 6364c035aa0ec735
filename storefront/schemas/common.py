from pydantic import BaseModel
from typing import Any, Optional


class ActionResponse(BaseModel):
    success: bool
    message: str = ""
    redirect: Optional[str] = None
    requires_verification: bool = False
    data: Optional[Any] = None
