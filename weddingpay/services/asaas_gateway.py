# -*- coding: utf-8 -*-
"""
Asaas payment gateway adapter.

Creates PIX and credit card charges and reads payment status over the Asaas
REST API. Charge creation is never retried automatically: a timed out POST
may still have created the charge on the gateway side.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import requests

from weddingpay.errors import GatewayConfigurationError, PaymentGatewayError
from weddingpay.services.audit import mask_card_number
from weddingpay.services.structured_logging import get_logger

logger = get_logger('weddingpay.gateway')

CONFIRMED_STATUSES = frozenset({"CONFIRMED", "RECEIVED"})


def _digits(value: Optional[str]) -> str:
    return "".join(ch for ch in (value or "") if ch.isdigit())


def _amount(value) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


@dataclass
class PixCharge:
    gateway_payment_id: str
    status: str
    qr_payload: Optional[str] = None
    qr_image: Optional[str] = None

    confirmed = False


@dataclass
class CardCharge:
    gateway_payment_id: str
    status: str
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def confirmed(self) -> bool:
        return (self.status or "").upper() in CONFIRMED_STATUSES

    @property
    def authorization_code(self) -> Optional[str]:
        return self.raw.get("authorizationCode") or self.raw.get("nossoNumero")


class AsaasGateway:
    """Thin client for the Asaas ``/payments`` resource."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 15,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "AsaasGateway":
        return cls(
            base_url=config.get("ASAAS_API_URL", ""),
            api_key=config.get("ASAAS_API_KEY", ""),
            timeout=float(config.get("ASAAS_TIMEOUT_SECONDS", 15)),
        )

    # -- public operations ---------------------------------------------------

    def create_pix_charge(self, order, customer) -> PixCharge:
        body = self._charge_body(order, customer, "PIX")
        created = self._request("POST", "/payments", json=body)
        payment_id = created.get("id")
        if not payment_id:
            raise PaymentGatewayError("Gateway response is missing the payment id", payload=created)

        qr = self._request("GET", f"/payments/{payment_id}/pixQrCode")
        logger.info("PIX charge created", order_id=order.id, gateway_payment_id=payment_id)
        return PixCharge(
            gateway_payment_id=payment_id,
            status=created.get("status", "PENDING"),
            qr_payload=qr.get("payload"),
            qr_image=qr.get("encodedImage"),
        )

    def create_card_charge(self, order, customer, card, remote_ip: Optional[str]) -> CardCharge:
        body = self._charge_body(order, customer, "CREDIT_CARD")
        body["creditCard"] = {
            "holderName": card.holder_name,
            "number": card.number.replace(" ", ""),
            "expiryMonth": card.expiry_month,
            "expiryYear": card.expiry_year,
            "ccv": card.ccv,
        }
        body["creditCardHolderInfo"] = {
            "name": customer.name,
            "email": customer.email,
            "cpfCnpj": customer.cpf,
            "phone": customer.phone,
            "postalCode": _digits(card.postal_code),
            "addressNumber": card.address_number,
        }
        body["remoteIp"] = remote_ip

        count = card.installment_count or 1
        if count > 1:
            body["installmentCount"] = count
            body["installmentValue"] = round(_amount(order.total_price) / count, 2)

        created = self._request("POST", "/payments", json=body)
        payment_id = created.get("id")
        if not payment_id:
            raise PaymentGatewayError("Gateway response is missing the payment id", payload=created)

        charge = CardCharge(gateway_payment_id=payment_id, status=created.get("status", ""), raw=created)
        logger.info(
            "Card charge created",
            order_id=order.id,
            gateway_payment_id=payment_id,
            status=charge.status,
            card=mask_card_number(card.number),
            installments=count,
        )
        return charge

    def get_payment_status(self, gateway_payment_id: str) -> str:
        data = self._request("GET", f"/payments/{gateway_payment_id}")
        return data.get("status", "")

    # -- internals -----------------------------------------------------------

    def _charge_body(self, order, customer, billing_type: str) -> Dict[str, Any]:
        return {
            "customer": {
                "name": customer.name,
                "email": customer.email,
                "cpfCnpj": customer.cpf,
                "phone": customer.phone,
            },
            "billingType": billing_type,
            "value": _amount(order.total_price),
            "description": f"Order {order.id}",
            "externalReference": order.id,
            "dueDate": (date.today() + timedelta(days=1)).isoformat(),
        }

    def _ensure_configured(self):
        if not self.base_url or not self.api_key:
            raise GatewayConfigurationError("Payment gateway credentials are not configured")

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self._ensure_configured()
        url = f"{self.base_url}{path}"
        headers = {
            "access_token": self.api_key,
            "Content-Type": "application/json",
        }
        try:
            resp = self.session.request(method, url, headers=headers, json=json, timeout=self.timeout)
        except requests.Timeout as e:
            logger.error("Gateway request timed out", method=method, path=path)
            raise PaymentGatewayError("Payment gateway timed out", timeout=True) from e
        except requests.RequestException as e:
            logger.error("Gateway request failed", method=method, path=path, error=str(e))
            raise PaymentGatewayError("Payment gateway is unreachable") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = {"raw": resp.text}

        if not 200 <= resp.status_code < 300:
            message = _error_message(payload) or f"Gateway returned HTTP {resp.status_code}"
            logger.warning("Gateway rejected request", method=method, path=path,
                           http_status=resp.status_code, gateway_message=message)
            raise PaymentGatewayError(message, payload=payload, http_status=resp.status_code)

        return payload if isinstance(payload, dict) else {"data": payload}


def _error_message(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return errors[0].get("description")
    return None
