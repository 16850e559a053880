from __future__ import annotations

import json
import logging
from functools import wraps
from typing import Any, Dict

from django.core.exceptions import ImproperlyConfigured
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .backends import get_engine
from .errors import (
    ConfigurationError,
    ParticipantBusyError,
    Unauthorized,
    UpstreamUnavailable,
    ValidationError,
)
from .services import SpinEngine

logger = logging.getLogger(__name__)


def _json_error(message: str, status: int = 400, **extra: Any) -> JsonResponse:
    payload: Dict[str, Any] = {"success": False, "error": message}
    payload.update(extra)
    return JsonResponse(payload, status=status)


def _parse_body(request) -> Dict[str, Any]:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _engine_guard(func):
    @wraps(func)
    def _wrapped(request, *args, **kwargs):
        try:
            engine = get_engine()
            return func(request, engine, *args, **kwargs)
        except ValidationError as exc:
            return _json_error(str(exc), status=400)
        except Unauthorized:
            return _json_error("Unauthorized", status=403)
        except ParticipantBusyError as exc:
            return _json_error(str(exc), status=503)
        except (ConfigurationError, ImproperlyConfigured) as exc:
            logger.error("%s failed: configuration error: %s", func.__name__, exc)
            return _json_error("server error", status=500, details=str(exc))
        except UpstreamUnavailable as exc:
            logger.error("%s failed: upstream unavailable: %s", func.__name__, exc)
            return _json_error("server error", status=500)

    return _wrapped


@csrf_exempt
@require_http_methods(["POST"])
@_engine_guard
def spin(request, engine: SpinEngine) -> JsonResponse:
    payload = _parse_body(request)
    outcome = engine.spin(payload.get("phone"))
    return JsonResponse(
        {"success": True, **outcome.to_payload()},
        json_dumps_params={"ensure_ascii": False},
    )


@csrf_exempt
@require_http_methods(["POST"])
@_engine_guard
def reset_prizes(request, engine: SpinEngine) -> JsonResponse:
    payload = _parse_body(request)
    return JsonResponse(engine.reset_inventory(payload.get("adminKey")))


@require_http_methods(["GET"])
@_engine_guard
def prize_stats(request, engine: SpinEngine) -> JsonResponse:
    stats = engine.get_stats(request.GET.get("adminKey"))
    return JsonResponse(
        {"success": True, "stats": stats},
        json_dumps_params={"ensure_ascii": False},
    )


@require_http_methods(["GET"])
@_engine_guard
def customer_status(request, engine: SpinEngine, phone: str) -> JsonResponse:
    return JsonResponse(
        {"success": True, **engine.get_participant(phone)},
        json_dumps_params={"ensure_ascii": False},
    )


@require_http_methods(["GET"])
@_engine_guard
def available_prizes(request, engine: SpinEngine) -> JsonResponse:
    return JsonResponse(
        {"success": True, **engine.list_available_prizes()},
        json_dumps_params={"ensure_ascii": False},
    )


@require_http_methods(["GET"])
def health(request) -> JsonResponse:
    return JsonResponse({"status": "ok", "timestamp": timezone.now().isoformat()})
