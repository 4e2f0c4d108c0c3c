"""
Supabase persistence layer — uses httpx to call the PostgREST REST API directly.

Read-only from this service's point of view: the boat registry, the current
live locations, and the boat_logs history for a time range. Failures raise
FetchError so callers can keep whatever they already show.
"""

from datetime import datetime

import httpx

from config import (
    SUPABASE_URL, SUPABASE_KEY, BOATS_TABLE, LIVE_LOCATIONS_TABLE, BOAT_LOGS_TABLE,
    FETCH_PAGE_SIZE, HTTP_TIMEOUT_SECONDS,
)
from playback.errors import FetchError


def _headers() -> dict:
    return {
        "apikey": SUPABASE_KEY,
        "Authorization": f"Bearer {SUPABASE_KEY}",
        "Content-Type": "application/json",
    }


async def _select(
    table: str,
    params: list[tuple[str, str]] | None = None,
    *,
    base_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[dict]:
    """GET from PostgREST, paging until a short page comes back."""
    base = (base_url or SUPABASE_URL).rstrip("/")
    if not base:
        raise FetchError("Supabase not configured — set SUPABASE_URL + SUPABASE_KEY")
    url = f"{base}/rest/v1/{table}"
    rows: list[dict] = []
    offset = 0
    try:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS, transport=transport) as client:
            while True:
                page_params = list(params or []) + [("limit", str(FETCH_PAGE_SIZE)), ("offset", str(offset))]
                resp = await client.get(url, headers=_headers(), params=page_params)
                if resp.status_code != 200:
                    raise FetchError(f"{table} select error {resp.status_code}: {resp.text[:200]}")
                page = resp.json()
                if not isinstance(page, list):
                    raise FetchError(f"{table} select returned {type(page).__name__}, expected a list")
                rows.extend(page)
                if len(page) < FETCH_PAGE_SIZE:
                    break
                offset += FETCH_PAGE_SIZE
    except httpx.HTTPError as e:
        raise FetchError(f"{table} request failed: {e}") from e
    except ValueError as e:
        # body wasn't JSON
        raise FetchError(f"{table} returned malformed JSON: {e}") from e
    return rows


# ── Registry / live ───────────────────────────────────────────────────────────

async def fetch_boats(**kw) -> list[dict]:
    return await _select(BOATS_TABLE, [("select", "id,name,registration_number")], **kw)


async def fetch_live_locations(**kw) -> list[dict]:
    return await _select(LIVE_LOCATIONS_TABLE, [("select", "*")], **kw)


# ── History ───────────────────────────────────────────────────────────────────

async def fetch_boat_logs(start: datetime, end: datetime, **kw) -> list[dict]:
    """All boat_logs rows with start <= recorded_at <= end, across every boat."""
    params = [
        ("select", "boat_id,lat,lon,heading,speed,battery_level,recorded_at"),
        ("recorded_at", f"gte.{start.isoformat()}"),
        ("recorded_at", f"lte.{end.isoformat()}"),
        ("order", "recorded_at.asc"),
    ]
    rows = await _select(BOAT_LOGS_TABLE, params, **kw)
    print(f"[DB] {len(rows)} log row(s) for {start.isoformat()} → {end.isoformat()}")
    return rows
