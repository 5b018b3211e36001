"""Process exit codes for the redmodel CLI."""

SUCCESS = 0
GENERAL_ERROR = 1
USAGE_ERROR = 2
STORE_ERROR = 3
INDEX_MISMATCH = 4
