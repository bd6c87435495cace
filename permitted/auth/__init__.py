from permitted.auth.dependencies import (
    get_current_user,
    get_permitted,
    require_module_access,
    require_permission,
    require_role,
    require_role_or_permission,
)
from permitted.auth.token import create_access_token, decode_token, extract_claims

__all__ = [
    "get_current_user",
    "get_permitted",
    "require_permission",
    "require_role",
    "require_role_or_permission",
    "require_module_access",
    "create_access_token",
    "decode_token",
    "extract_claims",
]
