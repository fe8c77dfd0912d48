# -*- coding: utf-8 -*-
"""
Per-app service registry.

``create_app`` stores the collaborators the routes need in
``app.extensions`` so tests can swap any of them (a fake gateway, an
in-memory audit trail) without patching modules.
"""
from flask import current_app

from weddingpay.services.asaas_gateway import AsaasGateway
from weddingpay.services.audit import AuditTrail
from weddingpay.services.identity_provider import IdentityProvider
from weddingpay.services.metrics import MetricsService
from weddingpay.services.notifications import NotificationDispatcher
from weddingpay.services.retry import RetryPolicy

GATEWAY = 'weddingpay.gateway'
IDENTITY_PROVIDER = 'weddingpay.identity_provider'
AUDIT = 'weddingpay.audit'
NOTIFIER = 'weddingpay.notifier'
RETRY_POLICY = 'weddingpay.retry_policy'


def get_gateway() -> AsaasGateway:
    return current_app.extensions[GATEWAY]


def get_identity_provider() -> IdentityProvider:
    return current_app.extensions[IDENTITY_PROVIDER]


def get_audit() -> AuditTrail:
    return current_app.extensions[AUDIT]


def get_notifier() -> NotificationDispatcher:
    return current_app.extensions[NOTIFIER]


def get_retry_policy() -> RetryPolicy:
    return current_app.extensions[RETRY_POLICY]


def get_metrics() -> MetricsService:
    return current_app.extensions['metrics']
