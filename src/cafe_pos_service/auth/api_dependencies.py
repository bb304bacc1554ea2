"""FastAPI dependencies for caller identity.

Provides dependency functions that turn the X-API-Key header into a user id.
"""

from typing import Annotated

from fastapi import Header, Request

from cafe_pos_service.auth.api_key_validator import APIKeyIdentityProvider


def get_current_user_id(
    request: Request,
    x_api_key: Annotated[str | None, Header()] = None,
) -> str:
    """FastAPI dependency resolving the caller's user id from the X-API-Key header.

    The identity provider is read from app.state, where create_app stores it.

    Returns:
        str: The authenticated user id

    Raises:
        UnauthenticatedError: If the API key is missing or invalid (mapped to 401)
    """
    identity_provider: APIKeyIdentityProvider = request.app.state.identity_provider
    return identity_provider.resolve_user_id(x_api_key)
