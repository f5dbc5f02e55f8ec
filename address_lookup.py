"""Postal code -> address lookup (zipcloud API)."""

import logging
import unicodedata

import requests

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_URL = "https://zipcloud.ibsnet.co.jp/api/search"
DEFAULT_TIMEOUT = 5


class AddressLookupError(Exception):
    pass


def normalize_postal_code(code) -> str:
    """Fold full-width digits and drop hyphens: 150-0002 -> 1500002."""
    if not isinstance(code, str):
        raise AddressLookupError("postal code must be a string")
    code = unicodedata.normalize("NFKC", code)
    code = code.replace("-", "").replace("ー", "").strip()
    if len(code) != 7 or not code.isdigit():
        raise AddressLookupError(f"invalid postal code: {code!r}")
    return code


def lookup_address(postal_code, url=DEFAULT_LOOKUP_URL, timeout=DEFAULT_TIMEOUT) -> str:
    """
    Return prefecture + city + town for a postal code, as one string.

    Raises AddressLookupError when the code is malformed, the request fails
    or nothing is found. The caller shows one generic notice for all cases.
    """
    code = normalize_postal_code(postal_code)
    try:
        resp = requests.get(url, params={"zipcode": code}, timeout=timeout)
    except requests.RequestException as e:
        logger.warning("Address lookup for %s failed: %s", code, e)
        raise AddressLookupError("lookup request failed") from e

    if resp.status_code != 200:
        logger.warning("Address lookup for %s returned HTTP %s", code, resp.status_code)
        raise AddressLookupError(f"HTTP {resp.status_code}")

    try:
        data = resp.json()
    except ValueError as e:
        raise AddressLookupError("invalid response") from e
    if not isinstance(data, dict):
        logger.warning("Address lookup for %s returned %s", code, type(data).__name__)
        raise AddressLookupError("invalid response")

    if data.get("status") != 200:
        logger.warning("Address lookup for %s: %s", code, data.get("message"))
        raise AddressLookupError(data.get("message") or "lookup error")

    results = data.get("results") or []
    if not results:
        raise AddressLookupError("not found")

    first = results[0]
    return "".join(first.get(k) or "" for k in ("address1", "address2", "address3"))
