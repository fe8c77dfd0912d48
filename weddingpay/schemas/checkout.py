# -*- coding: utf-8 -*-
"""
Checkout request schemas.

Field names accept both the snake_case used by the API and the camelCase
sent by the checkout page (``productIds``, ``paymentMethod``, ``whatsapp``).
"""
import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class PaymentMethod(str, Enum):
    PIX = "PIX"
    CREDIT_CARD = "CREDIT_CARD"


class CreditCardData(BaseModel):
    """Card and holder data forwarded to the gateway; never persisted."""
    model_config = ConfigDict(populate_by_name=True)

    holder_name: str = Field(..., min_length=1, alias="holderName")
    number: str = Field(..., min_length=12)
    expiry_month: str = Field(..., alias="expiryMonth")
    expiry_year: str = Field(..., alias="expiryYear")
    ccv: str = Field(..., min_length=3, max_length=4)
    installment_count: int = Field(1, ge=1, le=12, alias="installmentCount")
    postal_code: Optional[str] = Field(None, alias="postalCode")
    address_number: Optional[str] = Field(None, alias="addressNumber")

    @field_validator('number')
    @classmethod
    def validate_number(cls, v):
        digits = v.replace(" ", "")
        if not re.match(r'^\d{12,19}$', digits):
            raise ValueError('Card number must have 12 to 19 digits')
        return digits

    @field_validator('expiry_month', 'expiry_year', mode='before')
    @classmethod
    def coerce_expiry(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator('expiry_month')
    @classmethod
    def validate_month(cls, v):
        if not v.isdigit() or not 1 <= int(v) <= 12:
            raise ValueError('Expiry month must be between 01 and 12')
        return v.zfill(2)


class CheckoutRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    cpf: str = Field(..., min_length=11, max_length=14)
    phone: Optional[str] = Field(None, validation_alias=AliasChoices('phone', 'whatsapp'))
    product_ids: List[str] = Field(..., min_length=1, validation_alias=AliasChoices('product_ids', 'productIds'))
    payment_method: PaymentMethod = Field(..., validation_alias=AliasChoices('payment_method', 'paymentMethod'))
    coupon_code: Optional[str] = Field(None, validation_alias=AliasChoices('coupon_code', 'couponCode'))
    credit_card: Optional[CreditCardData] = Field(
        None, validation_alias=AliasChoices('credit_card', 'creditCard', 'creditCardData'))
    tracking: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices('tracking', 'tracking_metadata', 'metaTrackingData'))

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = v.strip().lower()
        if not re.match(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', v):
            raise ValueError('Invalid email format')
        return v

    @field_validator('payment_method', mode='before')
    @classmethod
    def normalize_method(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator('product_ids')
    @classmethod
    def validate_product_ids(cls, v):
        if any(not isinstance(pid, str) or not pid.strip() for pid in v):
            raise ValueError('Product ids must be non-empty strings')
        return [pid.strip() for pid in v]

    @model_validator(mode='after')
    def require_card_for_card_payments(self):
        if self.payment_method is PaymentMethod.CREDIT_CARD and self.credit_card is None:
            raise ValueError('Credit card data is required for CREDIT_CARD payments')
        return self


class InstallmentsRequest(BaseModel):
    total_price: float = Field(..., validation_alias=AliasChoices('total_price', 'totalPrice'))
