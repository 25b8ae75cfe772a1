"""Sentry wiring for the API process.

Everything here is a no-op until ``SENTRY_DSN`` is set.  The helpers used
from request handling (tags, breadcrumbs, anomaly reports) log at debug
level and return if the SDK itself fails.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from draftwise.core.config import settings

logger = logging.getLogger(__name__)

# Request headers that must never leave the process
_SCRUBBED_HEADERS = frozenset({"authorization", "cookie", "set-cookie", "x-api-key", "stripe-signature"})

_initialised = False


def _enabled() -> bool:
	return bool(settings.SENTRY_DSN)


def _tag_value(value: Any) -> str:
	return "" if value is None else str(value)[:128]


def scrub_event(event: Dict[str, Any], hint: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
	"""``before_send`` hook: strip credentials and request bodies."""
	request = event.get("request")
	if isinstance(request, dict):
		headers = request.get("headers")
		if isinstance(headers, dict):
			request["headers"] = {k: v for k, v in headers.items() if k.lower() not in _SCRUBBED_HEADERS}
		# Webhook and editor payloads may carry customer data
		request.pop("data", None)
	return event


def init_sentry(service: str) -> bool:
	"""Initialise Sentry once per process; returns whether it is active."""
	global _initialised
	if not _enabled():
		return False
	if _initialised:
		return True
	sentry_sdk.init(
		dsn=settings.SENTRY_DSN,
		environment=settings.ENVIRONMENT,
		release=settings.SENTRY_RELEASE,
		traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
		integrations=[FastApiIntegration(), SqlalchemyIntegration()],
		before_send=scrub_event,
	)
	sentry_sdk.set_tag("service", service)
	_initialised = True
	return True


def sentry_set_tags(tags: Mapping[str, Any]) -> None:
	if not _enabled():
		return
	try:
		for key, value in tags.items():
			sentry_sdk.set_tag(str(key), _tag_value(value))
	except Exception as exc:  # pragma: no cover
		logger.debug("sentry tag failed: %s", exc)


def sentry_breadcrumb(category: str, message: str, level: str = "info", data: Optional[Dict[str, Any]] = None) -> None:
	if not _enabled():
		return
	try:
		sentry_sdk.add_breadcrumb(category=category, message=message, level=level, data=data or {})
	except Exception as exc:  # pragma: no cover
		logger.debug("sentry breadcrumb failed: %s", exc)


def report_anomaly(message: str, tags: Optional[Mapping[str, Any]] = None) -> None:
	"""Surface a soft anomaly to operators as a warning-level Sentry message."""
	if not _enabled():
		return
	try:
		with sentry_sdk.new_scope() as scope:
			for key, value in (tags or {}).items():
				scope.set_tag(str(key), _tag_value(value))
			sentry_sdk.capture_message(message, level="warning")
	except Exception as exc:  # pragma: no cover
		logger.debug("sentry anomaly report failed: %s", exc)


def capture_exception(exc: BaseException) -> None:
	if not _enabled():
		return
	try:
		sentry_sdk.capture_exception(exc)
	except Exception:  # pragma: no cover
		logger.debug("sentry capture failed", exc_info=True)


__all__ = ["init_sentry", "scrub_event", "sentry_set_tags", "sentry_breadcrumb", "report_anomaly", "capture_exception"]
