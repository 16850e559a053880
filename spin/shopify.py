"""Thin client for the Shopify Admin REST and GraphQL APIs."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from django.conf import settings
from requests import RequestException

from .errors import ConfigurationError, UpstreamUnavailable

logger = logging.getLogger(__name__)


class ShopifyClient:
    """Blocking request/response access to one shop.

    Every failure (transport error, non-2xx status, GraphQL ``errors``) is
    logged with the operation and target and raised as
    :class:`UpstreamUnavailable`. Nothing is retried here.
    """

    def __init__(
        self,
        shop: str,
        token: str,
        *,
        api_version: str = "2024-10",
        timeout: int = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not (shop and token):
            raise ConfigurationError("Shopify connection is not configured.")
        self.api_base = f"https://{shop}/admin/api/{api_version}"
        self.graphql_endpoint = f"{self.api_base}/graphql.json"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "X-Shopify-Access-Token": token,
                "Content-Type": "application/json",
            }
        )

    @classmethod
    def from_settings(cls, session: Optional[requests.Session] = None) -> "ShopifyClient":
        return cls(
            getattr(settings, "SHOPIFY_STORE", ""),
            getattr(settings, "SHOPIFY_ADMIN_TOKEN", ""),
            api_version=getattr(settings, "SHOPIFY_API_VERSION", "2024-10"),
            timeout=getattr(settings, "SHOPIFY_TIMEOUT", 15),
            session=session,
        )

    def rest(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.api_base}{path}"
        try:
            response = self.session.request(
                method.upper(),
                url,
                params=params,
                json=data,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except RequestException as exc:
            status = getattr(getattr(exc, "response", None), "status_code", None)
            logger.error(
                "Shopify API error: method=%s path=%s status=%s error=%s",
                method.upper(),
                path,
                status,
                exc,
            )
            raise UpstreamUnavailable(f"Shopify {method.upper()} {path} failed ({exc})") from exc
        except ValueError as exc:
            logger.exception("Failed to decode Shopify response for %s %s", method.upper(), path)
            raise UpstreamUnavailable(f"Invalid response from Shopify ({exc})") from exc

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self.session.post(
                self.graphql_endpoint,
                json={"query": query, "variables": variables or {}},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except RequestException as exc:
            status = getattr(getattr(exc, "response", None), "status_code", None)
            logger.error("Shopify GraphQL request error: status=%s error=%s", status, exc)
            raise UpstreamUnavailable(f"Shopify GraphQL request failed ({exc})") from exc
        except ValueError as exc:
            logger.exception("Failed to decode Shopify GraphQL response")
            raise UpstreamUnavailable(f"Invalid response from Shopify ({exc})") from exc

        errors = payload.get("errors")
        if errors:
            logger.error("Shopify GraphQL errors: %s", errors)
            first = errors[0].get("message") if isinstance(errors[0], dict) else errors[0]
            raise UpstreamUnavailable(f"GraphQL Error: {first}")
        return payload.get("data") or {}


__all__ = ["ShopifyClient"]
