"""ZeptoMail implementation of EmailProvider.

Renders Jinja2 templates from ``templates/emails`` and posts them to the
ZeptoMail transactional API through the shared async HttpClient.
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_url: str = "http://localhost:8000",
        app_name: str = "credential-service",
        reset_url_path: str = "/reset-password",
        otp_ttl_minutes: int = 10,
        reset_ttl_minutes: int = 60,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_url = app_url.rstrip("/")
        self._app_name = app_name
        self._reset_url_path = reset_url_path
        self._otp_ttl_minutes = otp_ttl_minutes
        self._reset_ttl_minutes = reset_ttl_minutes
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def reset_link(self, reset_token: str) -> str:
        return f"{self._app_url}{self._reset_url_path}?token={reset_token}"

    async def _send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": to_email,
                        "name": to_name or to_email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
        }
        if text_body:
            payload["textbody"] = text_body

        auth = self._settings.zepto_api_token
        if not auth.startswith("Zoho-enczapikey "):
            auth = f"Zoho-enczapikey {auth}"

        headers = {"Authorization": auth, "Content-Type": "application/json"}

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code in (200, 201, 202):
            log.info("email_sent_success", to_email=to_email, subject=subject)
            return True
        log.error(
            "email_sent_failed",
            to_email=to_email,
            subject=subject,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False

    def _greeting(self, user_name: Optional[str]) -> str:
        return f"Hello{f' {user_name}' if user_name else ''},"

    async def send_verification_email(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool:
        subject = f"Verify your email - {self._app_name}"
        html_body = self._jinja.get_template("verification.html").render(
            otp_code=otp_code,
            user_name=user_name,
            app_name=self._app_name,
            ttl_minutes=self._otp_ttl_minutes,
        )
        text_body = (
            f"{self._greeting(user_name)}\n\n"
            f"Your verification code is: {otp_code}\n\n"
            f"This code expires in {self._otp_ttl_minutes} minutes. "
            f"If you did not request it, you can ignore this email."
        )
        return await self._send(email, user_name, subject, html_body, text_body)

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], reset_token: str
    ) -> bool:
        subject = f"Reset your password - {self._app_name}"
        link = self.reset_link(reset_token)
        html_body = self._jinja.get_template("password_reset.html").render(
            reset_link=link,
            user_name=user_name,
            app_name=self._app_name,
            ttl_minutes=self._reset_ttl_minutes,
        )
        text_body = (
            f"{self._greeting(user_name)}\n\n"
            f"Reset your password using this link:\n{link}\n\n"
            f"The link expires in {self._reset_ttl_minutes} minutes and works once."
        )
        return await self._send(email, user_name, subject, html_body, text_body)

    async def send_password_reset_confirmation_email(
        self, email: str, user_name: Optional[str]
    ) -> bool:
        subject = f"Your password was changed - {self._app_name}"
        html_body = self._jinja.get_template("password_reset_confirmation.html").render(
            user_name=user_name, app_name=self._app_name
        )
        text_body = (
            f"{self._greeting(user_name)}\n\n"
            f"The password for your {self._app_name} account was just changed and "
            f"all other sessions were signed out.\n\n"
            f"If this wasn't you, reset your password immediately."
        )
        return await self._send(email, user_name, subject, html_body, text_body)
