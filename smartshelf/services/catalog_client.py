from __future__ import annotations

import json
import re
from dataclasses import dataclass
from urllib.error import HTTPError, URLError
from urllib.parse import parse_qs, urlencode, urlparse
from urllib.request import Request, urlopen

from smartshelf.config import settings
from smartshelf.errors import UpstreamError, ValidationError

NEXT_LINK_RE = re.compile(r'<([^>]+)>\s*;\s*rel="?next"?')


def next_page_info(link_header: str | None) -> str | None:
    if not link_header:
        return None
    match = NEXT_LINK_RE.search(link_header)
    if not match:
        return None
    values = parse_qs(urlparse(match.group(1)).query).get('page_info')
    return values[0] if values else None


@dataclass
class ShopifyClient:
    store_url: str
    access_token: str
    api_version: str
    timeout_seconds: int

    @property
    def base_url(self) -> str:
        return f"{self.store_url.rstrip('/')}/admin/api/{self.api_version}"

    def _request(self, method: str, path: str, *, params: dict | None = None, payload: dict | None = None) -> tuple[dict, str | None]:
        url = f'{self.base_url}{path}'
        if params:
            url = f'{url}?{urlencode({k: v for k, v in params.items() if v is not None})}'
        headers = {
            'X-Shopify-Access-Token': self.access_token,
            'Accept': 'application/json',
        }
        data = None
        if payload is not None:
            data = json.dumps(payload).encode('utf-8')
            headers['Content-Type'] = 'application/json'

        req = Request(url=url, data=data, headers=headers, method=method)
        try:
            with urlopen(req, timeout=self.timeout_seconds) as response:
                raw = response.read().decode('utf-8')
                link = response.headers.get('Link')
        except HTTPError as exc:
            body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            raise UpstreamError(f'Catalog API error {exc.code} on {path}', upstream_status=exc.code, body=body) from exc
        except URLError as exc:
            raise UpstreamError(f'Catalog API network error on {path}: {exc.reason}') from exc

        try:
            parsed = json.loads(raw) if raw else {}
        except json.JSONDecodeError as exc:
            raise UpstreamError(f'Catalog API returned invalid JSON on {path}', body=raw[:2000]) from exc
        if isinstance(parsed, dict) and parsed.get('errors'):
            raise UpstreamError(f'Catalog API returned errors on {path}', body=json.dumps(parsed['errors']))
        return parsed, link

    def list_products_page(self, *, limit: int, page_info: str | None = None) -> tuple[list[dict], str | None]:
        # A cursor request may only carry limit alongside page_info.
        params: dict = {'limit': limit}
        if page_info:
            params['page_info'] = page_info
        data, link = self._request('GET', '/products.json', params=params)
        return data.get('products', []), next_page_info(link)

    def list_products(self, *, page_size: int, max_pages: int) -> list[dict]:
        products: list[dict] = []
        page_info: str | None = None
        for _ in range(max_pages):
            page, page_info = self.list_products_page(limit=page_size, page_info=page_info)
            products.extend(page)
            if not page_info:
                break
        return products

    def get_variant(self, variant_id: str) -> dict:
        data, _ = self._request('GET', f'/variants/{variant_id}.json')
        variant = data.get('variant')
        if not variant:
            raise UpstreamError(f'Catalog variant {variant_id} not found')
        return variant

    def list_locations(self) -> list[dict]:
        data, _ = self._request('GET', '/locations.json')
        return data.get('locations', [])

    def set_inventory_level(self, *, inventory_item_id: str, location_id: str, available: int) -> dict:
        data, _ = self._request(
            'POST',
            '/inventory_levels/set.json',
            payload={
                'location_id': location_id,
                'inventory_item_id': inventory_item_id,
                'available': available,
            },
        )
        return data.get('inventory_level', {})


def build_catalog_client() -> ShopifyClient:
    if not settings.shopify_store_url or not settings.shopify_access_token:
        raise ValidationError('Shopify credentials not configured')
    return ShopifyClient(
        store_url=settings.shopify_store_url,
        access_token=settings.shopify_access_token,
        api_version=settings.shopify_api_version,
        timeout_seconds=settings.shopify_timeout_seconds,
    )
