"""
Bearer token scheme shared across the app. Anonymous requests are allowed;
the token only identifies the acting user for the audit trail.
"""
from fastapi.security import HTTPBearer

bearer_scheme = HTTPBearer(auto_error=False)
