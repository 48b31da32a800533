"""
Identity resolution.

Authentication happens upstream: a gateway or the identity provider's proxy
verifies the session and forwards the user as ``X-User-*`` headers. This module
only reads them.
"""

import logging
from typing import Mapping, Optional

from fastapi import Request

from .error_handling import UnauthorizedError
from .models import Identity

logger = logging.getLogger(__name__)


USER_ID_HEADER = "x-user-id"
EMAIL_HEADER = "x-user-email"
FIRST_NAME_HEADER = "x-user-first-name"
LAST_NAME_HEADER = "x-user-last-name"
IMAGE_HEADER = "x-user-image"


class HeaderIdentityProvider:
    """Builds an Identity from forwarded identity-provider headers."""

    def resolve(self, headers: Mapping[str, str]) -> Optional[Identity]:
        user_id = (headers.get(USER_ID_HEADER) or "").strip()
        if not user_id:
            return None
        return Identity(
            user_id=user_id,
            email=(headers.get(EMAIL_HEADER) or "").strip(),
            first_name=headers.get(FIRST_NAME_HEADER) or None,
            last_name=headers.get(LAST_NAME_HEADER) or None,
            profile_image=headers.get(IMAGE_HEADER) or None,
        )

    def check(self) -> bool:
        """Header resolution has no remote dependency, so it is always available."""
        return True


async def optional_identity(request: Request) -> Optional[Identity]:
    """FastAPI dependency: the caller's identity, or None if anonymous."""
    provider: HeaderIdentityProvider = request.app.state.services.identity
    return provider.resolve(request.headers)


async def require_identity(request: Request) -> Identity:
    """FastAPI dependency for identity-scoped endpoints."""
    identity = await optional_identity(request)
    if identity is None:
        logger.debug(f"Rejected anonymous request to {request.url.path}")
        raise UnauthorizedError()
    return identity
