"""Constants and defaults.

Collection names act as the schema of a tenant partition; keep them here so
adapters and services agree on them.
"""

COLLECTION_MEMBERS = "members"
COLLECTION_ATTENDANCE = "attendance"
COLLECTION_BACENTAS = "bacentas"
COLLECTION_NEW_BELIEVERS = "new_believers"
COLLECTION_CONFIRMATIONS = "sunday_confirmations"
COLLECTION_GUESTS = "guests"
COLLECTION_EXCLUSIONS = "ministry_exclusions"
COLLECTION_OVERRIDES = "ministry_member_overrides"

MINISTRY_FIELD = "ministry"
ORIGIN_TENANT_FIELD = "origin_tenant_id"

OVERRIDABLE_FIELDS = ("frozen", "role", "ministry_position")

DEFAULT_ATTENDANCE_DEBOUNCE_SECONDS = 0.1
DEFAULT_OPTIMISTIC_WINDOW_SECONDS = 5.0
DEFAULT_POLL_INTERVAL_SECONDS = 2.0
