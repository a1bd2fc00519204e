"""
auth/mailer.py -- Delivery of verification codes and reset links.

LogMailer is the default transport: it builds the same links a real email
would carry and writes a delivery record to the log. The link and OTP are
only included in debug mode, so plaintext secrets never reach production
logs. Swap in a real transport by assigning any object with the same two
methods to app.state.mailer.

Link layout (front-end routes):
  {frontend_base_url}/verify/{user_id}/{token}
  {frontend_base_url}/reset-password/{user_id}/{token}
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from auth.models import User

logger = logging.getLogger("authgate.mail")


def verification_link(base_url: str, user_id: int, token: str) -> str:
    return f"{base_url.rstrip('/')}/verify/{user_id}/{quote(token)}"


def reset_link(base_url: str, user_id: int, token: str) -> str:
    return f"{base_url.rstrip('/')}/reset-password/{user_id}/{quote(token)}"


class LogMailer:
    def __init__(self, frontend_base_url: str, debug: bool = False) -> None:
        self.frontend_base_url = frontend_base_url
        self.debug = debug

    def send_account_verification(self, user: User, otp: str, token: str) -> None:
        link = verification_link(self.frontend_base_url, user.id, token)
        if self.debug:
            logger.info("Verification for %s: link=%s otp=%s", user.email, link, otp)
        else:
            logger.info("Verification mail queued for user_id=%s", user.id)

    def send_password_reset(self, user: User, token: str) -> None:
        link = reset_link(self.frontend_base_url, user.id, token)
        if self.debug:
            logger.info("Password reset for %s: link=%s", user.email, link)
        else:
            logger.info("Password reset mail queued for user_id=%s", user.id)
