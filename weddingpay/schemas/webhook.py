# -*- coding: utf-8 -*-
"""Asaas webhook envelope. Unknown fields are kept, the gateway adds new ones freely."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WebhookPayment(BaseModel):
    model_config = ConfigDict(extra='allow', populate_by_name=True)

    id: Optional[str] = None
    external_reference: Optional[str] = Field(None, alias="externalReference")
    status: Optional[str] = None
    value: Optional[float] = None


class WebhookEnvelope(BaseModel):
    model_config = ConfigDict(extra='allow')

    event: str = Field(..., min_length=1)
    payment: Optional[WebhookPayment] = None

    @property
    def normalized_event(self) -> str:
        return self.event.strip().upper()
