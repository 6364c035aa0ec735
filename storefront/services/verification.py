"""
Verification Gate

Identity verification is handled by the auth service; the storefront only
reads the resulting flag. Closed gate = show the verification prompt, which
either sends the user to their dashboard to verify or lets them defer.
"""

from typing import Optional

from ..config import settings
from ..utils.security import CurrentUser
from .outcomes import ActionResult


class VerificationGate:
    def __init__(self, user: Optional[CurrentUser]):
        self.user = user

    @property
    def is_open(self) -> bool:
        return bool(self.user and self.user.is_verified)

    def require(self) -> ActionResult:
        if self.is_open:
            return ActionResult.ok()
        return ActionResult.verification_required()

    def start_verification(self) -> ActionResult:
        return ActionResult.ok(
            "Complete identity verification from your dashboard.",
            redirect=settings.dashboard_path
        )

    def defer(self) -> ActionResult:
        return ActionResult.ok("You can verify your identity later from your dashboard.")
