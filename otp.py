"""
2Factor.in SMS OTP client.

Sending wants the phone in full international form (+919999999999);
verification wants the same digits without the plus (919999999999).
"""

import logging
import re
import secrets
from typing import Any, Dict, Optional

import requests

import config
from errors import ConfigurationError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "OTP Template"
OTP_PATTERN = re.compile(r"^\d{4,6}$")


def generate_otp() -> str:
    """Four digit code, 1000-9999."""
    return str(1000 + secrets.randbelow(9000))


class TwoFactorClient:
    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None, session=None):
        self.api_key = api_key if api_key is not None else config.TWO_FACTOR_API_KEY
        self.base_url = (base_url or config.TWO_FACTOR_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.TWO_FACTOR_TIMEOUT
        self.session = session or requests.Session()

    def send_otp(self, phone_number: str, template_name: Optional[str] = None) -> Dict[str, Any]:
        if not phone_number:
            raise ValidationError("Phone number is required")
        if not phone_number.startswith("+"):
            raise ValidationError("Phone number must be in international format (e.g., +919999999999)")
        api_key = self._api_key()

        url = f"{self.base_url}/{api_key}/SMS/{phone_number}/{generate_otp()}/{template_name or DEFAULT_TEMPLATE}"
        data = self._call(url, "Failed to send OTP")
        logger.info("OTP sent to %s", _mask(phone_number))
        return {"session_id": data.get("Details")}

    def verify_otp(self, phone_number: str, otp: str) -> Dict[str, Any]:
        if not phone_number:
            raise ValidationError("Phone number is required")
        if not otp:
            raise ValidationError("OTP is required")
        if not OTP_PATTERN.match(otp):
            raise ValidationError("OTP must be 4-6 digits")
        api_key = self._api_key()

        digits = phone_number[1:] if phone_number.startswith("+") else phone_number
        url = f"{self.base_url}/{api_key}/SMS/VERIFY3/{digits}/{otp}"
        data = self._call(url, "Invalid OTP", failure_status=401)
        return {"success": True, "details": data.get("Details")}

    def _api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("2Factor API key is not configured")
        return self.api_key

    def _call(self, url: str, fallback_message: str, failure_status: Optional[int] = None) -> Dict[str, Any]:
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"{fallback_message}: {e}")
        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok or data.get("Status") != "Success":
            logger.warning("2Factor call failed (%s): %s", response.status_code, data.get("Details"))
            status = response.status_code if 400 <= response.status_code < 500 else failure_status
            raise UpstreamError(data.get("Details") or fallback_message, status_code=status)
        return data


def _mask(phone_number: str) -> str:
    return phone_number[:3] + "*" * max(len(phone_number) - 5, 0) + phone_number[-2:]
