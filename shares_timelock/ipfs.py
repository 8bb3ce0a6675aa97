"""Fetching participation proof bundles from IPFS gateways."""

import os
from collections.abc import Iterable

from shares_timelock.cache import cache_key, get_cached, set_cached
from shares_timelock.constants import DEFAULT_IPFS_GATEWAYS


def configured_gateways() -> tuple[str, ...]:
    """Gateways from IPFS_GATEWAYS (comma separated) or the defaults."""
    raw = os.getenv("IPFS_GATEWAYS", "")
    gateways = tuple(g.strip() for g in raw.split(",") if g.strip())
    return gateways or DEFAULT_IPFS_GATEWAYS


def build_gateway_url(gateway: str, cid: str) -> str:
    """Build IPFS gateway URL from base gateway and CID."""
    gw = gateway.rstrip("/")
    # Accept https://ipfs.io/ipfs/, https://ipfs.io/ipfs and https://ipfs.io
    if gw.endswith("/ipfs") or "/ipfs/" in gw:
        return f"{gw}/{cid}"
    return f"{gw}/ipfs/{cid}"


def fetch_ipfs_json(cid: str, gateways: Iterable[str], *, timeout_s: int, use_cache: bool = True) -> dict:
    """Fetch a JSON document by CID, trying each gateway in turn."""
    key = cache_key("ipfs-json", cid)
    if use_cache:
        cached = get_cached(key)
        if isinstance(cached, dict):
            return cached

    try:
        import requests
    except ImportError as ex:  # pragma: no cover
        raise RuntimeError("Missing dependency. Run: pip install requests") from ex

    last_err: Exception | None = None
    for gw in gateways:
        url = build_gateway_url(gw, cid)
        try:
            resp = requests.get(url, timeout=timeout_s)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as ex:
            last_err = ex
            continue
        if not isinstance(data, dict):
            last_err = ValueError(f"{url}: expected a JSON object")
            continue
        if use_cache:
            set_cached(key, data)
        return data
    raise RuntimeError(f"Failed to fetch CID {cid} from all configured gateways") from last_err
