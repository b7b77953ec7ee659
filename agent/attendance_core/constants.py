"""
Constants: version, scheduling intervals, network timeouts, storage keys.
"""

AGENT_VERSION = "1.0.0"

# ─── Scheduling ──────────────────────────────────────────────────
SUBMIT_INTERVAL_SEC = 60        # Periodic submission tick
SUBMISSION_TIMEOUT_SEC = 30     # Latch older than this is considered wedged
CONNECTIVITY_CHECK_SEC = 15     # How often the connectivity monitor probes

# ─── Network ─────────────────────────────────────────────────────
API_TIMEOUT = 10                # Seconds, per request (connect + read)
PROBE_TIMEOUT = 4               # Socket connect timeout for the online check

# ─── Domain ──────────────────────────────────────────────────────
DEFAULT_CATEGORY = "Main"       # Always present, cannot be renamed or deleted
UNMATCHED_MARKER = "UNMATCHED"  # Server name value that downgrades an entry

# ─── Store keys ──────────────────────────────────────────────────
KEY_SETTINGS = "app_settings"
KEY_AUTH_TOKEN = "auth_token"
KEY_SCANNED_TAGS = "scanned_tags"
