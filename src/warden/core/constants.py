"""Application-wide constants.

This module defines constants used throughout the application
to avoid magic numbers and ensure consistency.
"""

# String field lengths
MAX_CAPABILITY_NAME_LENGTH = 255
MAX_COMPONENT_LENGTH = 100
MAX_CAPTYPE_LENGTH = 10
MAX_PERMISSION_LENGTH = 10
MAX_ROLE_NAME_LENGTH = 255
MAX_ROLE_SHORTNAME_LENGTH = 100
MAX_USERNAME_LENGTH = 100
MAX_AUDIT_ACTION_LENGTH = 100
MAX_IPV6_LENGTH = 45

# Capability names are "<component>:<action>"
CAPABILITY_SEPARATOR = ":"

# Roles
ADMIN_ROLE_SHORTNAME = "admin"
ADMIN_ROLE_NAME = "Administrator"
ADMIN_ROLE_DESCRIPTION = "System super user with all permissions"
DEFAULT_ROLE_SORTORDER = 100
DEFAULT_ADMIN_USERNAME = "admin"

# Module declaration files
MODULE_ACCESS_FILENAME = "access.yaml"

# Audit listing
DEFAULT_AUDIT_PAGE_SIZE = 50
MAX_AUDIT_PAGE_SIZE = 500

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
