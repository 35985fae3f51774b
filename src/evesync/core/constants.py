"""
evesync Constants

Shared constants for the remote API, freshness defaults and trade hubs.
"""

# =============================================================================
# Remote API Configuration
# =============================================================================

DEFAULT_API_BASE_URL = "https://api.eveonline.com/"
DEFAULT_LOGIN_URL = "https://login.eveonline.com/"

# Market endpoints live on a separate host; order books are filtered by a type href
DEFAULT_MARKET_BASE_URL = "https://crest-tq.eveonline.com/"
DEFAULT_TYPE_HREF_BASE_URL = "https://public-crest.eveonline.com/"

DEFAULT_MAX_AGE_SECONDS = 30 * 60
DEFAULT_TIMEOUT_MS = 7000

# Wallet endpoints return at most this many rows per call
WALLET_ROW_COUNT = 1000

# HTTP status codes the remote API uses for throttling (420 is the error-limit code)
RATE_LIMIT_STATUS_CODES = {420, 429}
AUTH_STATUS_CODES = {401, 403}

# =============================================================================
# Key Info Character Fields
#
# Only these attributes of a key's character listing are trusted when
# reconciling a key's characters.
# =============================================================================

KEY_CHARACTER_FIELDS = (
    "characterID",
    "characterName",
    "corporationID",
    "corporationName",
    "allianceID",
    "allianceName",
    "factionID",
    "factionName",
)

# =============================================================================
# Trade Hub Configuration
#
# Major trade hubs keyed by region ID.
# =============================================================================

TRADE_HUBS: dict[int, dict] = {
    region_id: {
        "solar_system_name": name,
        "solar_system_id": system_id,
        "region_id": region_id,
        "station_id": station_id,
    }
    for name, system_id, region_id, station_id in (
        ("Jita", 30000142, 10000002, 60003760),
        ("Rens", 30002510, 10000030, 60004588),
        ("Hek", 30002053, 10000042, 60005686),
        ("Amarr", 30002187, 10000043, 60008494),
        ("Dodixie", 30002659, 10000032, 60011866),
    )
}
