"""Anonymous identity cookie: one opaque random token per client."""
from fastapi import Request, Response
import re
import secrets

COOKIE_NAME = "anon_id"
COOKIE_MAX_AGE = 365 * 24 * 60 * 60  # one year, in seconds
TOKEN_BYTES = 16

# Also accepts the hyphenated UUIDs issued by earlier clients.
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


def new_anon_id() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def is_well_formed(token) -> bool:
    return isinstance(token, str) and bool(_TOKEN_PATTERN.match(token))


def resolve_anon_id(request: Request, response: Response) -> str:
    """
    FastAPI dependency returning the caller's anonymous identity.

    Issues a fresh token and sets the cookie only when the request carries no
    usable one. The identity is also stored on ``request.state.anon_id`` so
    error responses can carry a newly issued cookie too.
    """
    anon_id = request.cookies.get(COOKIE_NAME)
    issued = not is_well_formed(anon_id)
    if issued:
        anon_id = new_anon_id()
    request.state.anon_id = anon_id
    request.state.anon_id_issued = issued
    if issued:
        attach_issued_cookie(request, response)
    return anon_id


def attach_issued_cookie(request: Request, response: Response) -> None:
    """Set the identity cookie on ``response`` if this request was issued a new one."""
    if not getattr(request.state, "anon_id_issued", False):
        return
    settings = getattr(request.app.state, "settings", None)
    response.set_cookie(
        COOKIE_NAME,
        request.state.anon_id,
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=bool(settings and settings.cookie_secure),
    )
