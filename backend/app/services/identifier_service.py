# Overview: Service-layer operations for identifier; generates proposal ids.

"""
Proposal Identifier Service

WHY: The proposal id is both the primary key and the client's bearer
capability (whoever holds /p/<id> can view, sign and pay). It must be short
enough for a link, and unguessable.

RULES:
- 9 random bytes from the OS CSPRNG, base64url encoded -> exactly 12 chars
- No sequence, timestamp or counter component
- If the OS randomness source is unavailable, secrets raises and so do we.
  There is NO fallback to the random module.
"""

import re
import secrets


ID_BYTES = 9
ID_LENGTH = 12  # base64url of 9 bytes, no padding

_ID_RE = re.compile(r"^[A-Za-z0-9_-]{%d}$" % ID_LENGTH)


def generate_proposal_id() -> str:
    """
    Generate a new proposal id.

    WHY secrets.token_urlsafe: Cryptographically secure PRNG, URL-safe alphabet.
    DO NOT use random.random() or uuid-prefix slicing for capabilities!
    """
    token = secrets.token_urlsafe(ID_BYTES)
    if len(token) != ID_LENGTH:
        raise RuntimeError(f"Unexpected proposal id length {len(token)}")
    return token


def is_well_formed(proposal_id: str | None) -> bool:
    """True when proposal_id could have been produced by generate_proposal_id."""
    return isinstance(proposal_id, str) and bool(_ID_RE.match(proposal_id))
