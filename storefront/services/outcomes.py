"""
Action outcomes shared by the storefront services.

Rule violations never raise: every user action returns an ActionResult
carrying the user-visible message, and state is left untouched on failure.
"""

from dataclasses import dataclass
from typing import Any, Optional

from ..config import settings


@dataclass
class ActionResult:
    """Outcome of one storefront action"""
    success: bool
    message: str = ""
    redirect: Optional[str] = None
    requires_verification: bool = False
    unauthenticated: bool = False
    data: Optional[Any] = None

    @classmethod
    def ok(cls, message: str = "", redirect: Optional[str] = None, data: Any = None) -> "ActionResult":
        return cls(success=True, message=message, redirect=redirect, data=data)

    @classmethod
    def rejected(cls, message: str, data: Any = None) -> "ActionResult":
        return cls(success=False, message=message, data=data)

    @classmethod
    def login_required(cls, message: str) -> "ActionResult":
        return cls(
            success=False,
            message=message,
            redirect=settings.login_path,
            unauthenticated=True
        )

    @classmethod
    def verification_required(cls) -> "ActionResult":
        return cls(
            success=False,
            message="Please verify your identity before booking.",
            requires_verification=True
        )
