"""
Client HTTP de l'API inventaire (JSON).

On consomme uniquement les routes dont la réconciliation a besoin. Aucune
relance automatique : une erreur réseau / serveur remonte en UpstreamError,
l'appelant décide (message utilisateur, 502, ...).
"""
from __future__ import annotations

import logging
import os
from typing import Any

import requests

from clinic_stock.app.schemas.stock import LocationStockEntry
from clinic_stock.app.schemas.units import ProductUnitRead

logger = logging.getLogger(__name__)

INVENTORY_API_URL = os.getenv("INVENTORY_API_URL", "http://127.0.0.1:3000/api")
INVENTORY_API_TIMEOUT = float(os.getenv("INVENTORY_API_TIMEOUT", "10"))
INVENTORY_API_TOKEN = os.getenv("INVENTORY_API_TOKEN")


class UpstreamError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# ---------- Normalisation des payloads ----------
def extract_id(value: Any) -> str:
    """Référence amont -> id ("abc" ou {"_id": "abc", ...})."""
    if value is None:
        return ""
    if isinstance(value, dict):
        return str(value.get("_id") or value.get("id") or "")
    return str(value)


def unwrap(payload: Any) -> Any:
    """Certaines routes répondent {data: ...}, d'autres directement."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def unit_from_payload(data: dict, product_id: str | None = None) -> ProductUnitRead:
    uom = data.get("unitOfMeasureId") if isinstance(data.get("unitOfMeasureId"), dict) else {}
    conversion = data.get("conversionToBase")
    return ProductUnitRead(
        id=extract_id(data.get("_id") or data.get("id")),
        product_id=extract_id(data.get("productId")) or product_id,
        name=data.get("name") or uom.get("name") or "Unit",
        abbreviation=data.get("abbreviation") or uom.get("symbol"),
        # pas de repli 1:1 ici : un facteur absent sera refusé à la résolution
        conversion_to_base=float(conversion) if conversion is not None else 0.0,
        is_default=bool(data.get("isDefault", False)),
    )


def location_stock_from_payload(data: dict) -> LocationStockEntry:
    return LocationStockEntry(
        batch_id=extract_id(data.get("batchId")),
        location_id=extract_id(data.get("locationId")),
        quantity=float(data.get("quantity") or 0),
        location_stock_id=extract_id(data.get("locationStockId")) or None,
        product_id=extract_id(data.get("productId")) or None,
        product_name=data.get("productName"),
        batch_number=data.get("batchNumber"),
        location_name=data.get("locationName"),
    )


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {resp.status_code}"


# ---------- Client ----------
class InventoryApiClient:
    def __init__(
        self,
        base_url: str = INVENTORY_API_URL,
        *,
        session: requests.Session | None = None,
        timeout: float = INVENTORY_API_TIMEOUT,
        token: str | None = INVENTORY_API_TOKEN,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.token = token

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, *, json: dict | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method,
                url,
                json=json,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.exception("Inventory API %s %s unreachable", method, path)
            raise UpstreamError(f"Inventory API unreachable: {exc}") from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.warning("Inventory API %s %s -> %s: %s", method, path, resp.status_code, message)
            raise UpstreamError(message, status_code=resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(f"Invalid JSON from inventory API ({path})", status_code=resp.status_code) from exc

    # ----- unités -----
    def list_product_units(self, product_id: str) -> list[ProductUnitRead]:
        payload = unwrap(self._request("GET", f"/inventory/productunit/pro/{product_id}")) or []
        return [unit_from_payload(u, product_id) for u in payload]

    def get_product_unit(self, unit_id: str) -> ProductUnitRead | None:
        try:
            payload = unwrap(self._request("GET", f"/inventory/productunit/get/{unit_id}"))
        except UpstreamError as exc:
            if exc.status_code == 404:
                return None
            raise
        return unit_from_payload(payload) if payload else None

    # ----- stock -----
    def list_location_stock(self) -> list[LocationStockEntry]:
        payload = unwrap(self._request("GET", "/inventory/stock/locaation")) or []
        return [location_stock_from_payload(e) for e in payload]

    def get_batch_available(self, batch_id: str) -> float:
        """Stock disponible d'un lot (unités de base); 404 = 0."""
        try:
            payload = unwrap(self._request("GET", f"/inventory/stock/{batch_id}"))
        except UpstreamError as exc:
            if exc.status_code == 404:
                return 0.0
            raise
        if not payload:
            return 0.0
        return max(float(payload.get("availableQuantity") or 0), 0.0)

    # ----- demandes -----
    def get_request(self, request_id: str) -> dict:
        return unwrap(self._request("GET", f"/inventory/request/{request_id}"))

    def approve_request(self, request_id: str, payload: dict) -> Any:
        return self._request("PATCH", f"/inventory/request/approve/{request_id}", json=payload)

    # ----- retraits location -> location -----
    def get_withdrawal(self, withdrawal_id: str) -> dict:
        return unwrap(self._request("GET", f"/inventory/loctolocstockwithdrawal/{withdrawal_id}"))

    def update_withdrawal(self, withdrawal_id: str, payload: dict) -> Any:
        return self._request("PATCH", f"/inventory/loctolocstockwithdrawal/{withdrawal_id}", json=payload)
