"""Constants and default values."""

# Default timezone for profiles that never set one
DEFAULT_TIMEZONE = "America/Sao_Paulo"

# Minutes after a scheduled time before an item counts as missed
DEFAULT_LATE_TOLERANCE_MINUTES = 15

# Medications at or below this stock are flagged in reports
DEFAULT_LOW_STOCK_THRESHOLD = 5

# Default report window
REPORT_DAYS = 7

# Limits
MAX_TITLE_LENGTH = 200
MAX_ELDERLY_PER_FAMILIAR = 20
MAX_LISTED_APPOINTMENTS = 10

# Family link codes
LINK_CODE_LENGTH = 6
LINK_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
