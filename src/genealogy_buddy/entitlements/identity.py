"""Request identities: signed-in users and anonymous visitors."""

import re
import secrets
from dataclasses import dataclass
from uuid import UUID

ANON_PREFIX = "anon_"
_ANON_KEY_RE = re.compile(r"^anon_[0-9a-f]{32}$")


@dataclass(frozen=True)
class Identity:
    """Who a request is metered against.

    ``identity_id`` is the user id for signed-in users and an ``anon_<hex>``
    key for anonymous visitors.
    """

    identity_id: str
    user_id: UUID | None = None
    is_admin: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @classmethod
    def for_user(cls, user_id: UUID, *, is_admin: bool = False) -> "Identity":
        return cls(identity_id=str(user_id), user_id=user_id, is_admin=is_admin)

    @classmethod
    def anonymous(cls, anon_key: str) -> "Identity":
        if not is_valid_anon_key(anon_key):
            raise ValueError("Invalid anonymous identity key")
        return cls(identity_id=anon_key)


def new_anon_key() -> str:
    """Generate an unguessable anonymous identity key."""
    return f"{ANON_PREFIX}{secrets.token_hex(16)}"


def is_valid_anon_key(value: str | None) -> bool:
    return bool(value) and _ANON_KEY_RE.match(value) is not None
