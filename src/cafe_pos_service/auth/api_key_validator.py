"""API key based identity provider.

Each configured API key belongs to exactly one POS user. Resolving a key gives
the caller's user id, which scopes the draft cart and every cart mutation.
"""

from cafe_pos_service.errors import UnauthenticatedError


def parse_api_keys(raw: str) -> dict[str, str]:
    """Parse a comma-separated list of `key:user_id` pairs.

    Entries without a user id are ignored.

    Args:
        raw: Configuration string, e.g. "key-a:user_1,key-b:user_2"

    Returns:
        Mapping of API key to user id
    """
    api_keys: dict[str, str] = {}
    for entry in raw.split(","):
        key, _, user_id = entry.strip().partition(":")
        if key.strip() and user_id.strip():
            api_keys[key.strip()] = user_id.strip()
    return api_keys


class APIKeyIdentityProvider:
    """Resolves the calling user from an API key."""

    def __init__(self, api_keys: dict[str, str]) -> None:
        """Initialize with a mapping of API key to user id.

        Args:
            api_keys: Mapping of valid API keys to the users they identify

        Raises:
            ValueError: If api_keys is empty
        """
        if not api_keys:
            raise ValueError("At least one API key must be provided")

        self.api_keys = dict(api_keys)

    def resolve_user_id(self, api_key: str | None) -> str:
        """Resolve the user id behind an API key.

        Args:
            api_key: Key presented by the caller

        Returns:
            str: The caller's user id

        Raises:
            UnauthenticatedError: If the key is missing or unknown
        """
        if not api_key:
            raise UnauthenticatedError("Missing API key")

        user_id = self.api_keys.get(api_key)
        if user_id is None:
            raise UnauthenticatedError("Invalid API key")

        return user_id
