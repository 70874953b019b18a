import re
import logging

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Form, Request
from fastapi.responses import JSONResponse

from app.auth_utils import clear_session_cookie, get_current_user, public_user, set_session_cookie
from app.security import (
    allow_request,
    allow_request_with_remaining,
    attach_csrf_cookie,
    issue_csrf_token,
    validate_csrf,
)
from core.database import (
    USER_TYPES,
    create_session,
    create_user,
    delete_session,
    get_user_by_email,
    verify_password,
)

router = APIRouter()
log = logging.getLogger("auth")


def _client_ip(request: Request) -> str:
    return request.client.host if request and request.client else "unknown"


def _is_valid_email(email: str) -> bool:
    email = (email or "").strip()
    if not email:
        return False
    # Reject punycode/IDNA domains for now
    try:
        domain = email.split("@", 1)[1].lower()
    except IndexError:
        return False
    if domain.startswith("xn--") or ".xn--" in domain:
        return False
    if not re.fullmatch(r"[^@\s]+@[^@\s]+\.[^@\s]+", email):
        return False
    try:
        # Skip MX/deliverability checks; only validate syntax
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


# 8-25 chars, at least one letter and one number, no whitespace
def _is_valid_password(pw: str) -> bool:
    if not pw or len(pw) > 25 or len(pw) < 8:
        return False
    if re.search(r"\s", pw):
        return False
    return bool(re.search(r"[A-Za-z]", pw) and re.search(r"\d", pw))


@router.get("/csrf")
def csrf(request: Request):
    token = issue_csrf_token(request.cookies.get("csrf_token"))
    resp = JSONResponse({"csrfToken": token})
    attach_csrf_cookie(resp, token)
    return resp


@router.post("/register")
def register(
    request: Request,
    email: str = Form(..., max_length=50),
    password: str = Form(..., max_length=25),
    user_type: str = Form("job_seeker"),
    display_name: str = Form("", max_length=80),
    csrf_token: str = Form(""),
):
    if not allow_request(f"register:{_client_ip(request)}", limit=5, window_seconds=300):
        return JSONResponse({"error": "rate_limited", "message": "Too many sign-ups. Please try again later."}, status_code=429)

    if not validate_csrf(request, csrf_token):
        return JSONResponse({"error": "csrf", "message": "Invalid or missing CSRF token."}, status_code=403)

    if not _is_valid_email(email):
        return JSONResponse({"error": "invalid_email", "message": "Please enter a valid email address."}, status_code=400)
    if not _is_valid_password(password):
        return JSONResponse(
            {"error": "invalid_password", "message": "Password must be 8-25 characters with a letter and a number."},
            status_code=400,
        )
    if user_type not in USER_TYPES:
        return JSONResponse({"error": "invalid_user_type", "message": "Unknown account type."}, status_code=400)

    if get_user_by_email(email):
        return JSONResponse({"error": "email_taken", "message": "An account already exists for that email."}, status_code=409)

    user_id = create_user(email, password, user_type=user_type, display_name=display_name)
    token = create_session(user_id)
    log.info("User registered", extra={"user_id": user_id, "user_type": user_type})

    resp = JSONResponse(
        {"id": user_id, "email": email.strip().lower(), "userType": user_type, "displayName": display_name or None},
        status_code=201,
    )
    set_session_cookie(resp, token)
    return resp


@router.post("/login")
def login(
    request: Request,
    email: str = Form(..., max_length=50),
    password: str = Form(..., max_length=25),
    csrf_token: str = Form(""),
):
    allowed, remaining = allow_request_with_remaining(f"login:{_client_ip(request)}", limit=10, window_seconds=300)
    if not allowed:
        return JSONResponse({"error": "rate_limited", "message": "Too many login attempts. Please try again later."}, status_code=429)

    if not validate_csrf(request, csrf_token):
        return JSONResponse({"error": "csrf", "message": "Invalid or missing CSRF token."}, status_code=403)

    user = get_user_by_email(email)
    if not user or not verify_password(password, user["password_hash"]):
        return JSONResponse(
            {"error": "invalid_credentials", "message": "Incorrect email or password.", "attemptsLeft": remaining},
            status_code=401,
        )

    if not user.get("active", 1):
        return JSONResponse({"error": "inactive", "message": "This account has been deactivated."}, status_code=403)

    token = create_session(user["id"])
    resp = JSONResponse(public_user(user))
    set_session_cookie(resp, token)
    return resp


@router.post("/logout")
def logout(request: Request):
    user, token = get_current_user(request)
    if token:
        delete_session(token)
    resp = JSONResponse({"ok": True, "wasLoggedIn": bool(user)})
    clear_session_cookie(resp)
    return resp


@router.get("/me")
def me(request: Request):
    user, _ = get_current_user(request)
    if not user:
        return JSONResponse({"error": "not_authenticated", "message": "Login required."}, status_code=401)
    return public_user(user)
