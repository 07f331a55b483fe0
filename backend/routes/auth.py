import logging
import re

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from starlette.status import HTTP_302_FOUND

from dependencies import auth_context, get_settings
from errors import DuplicateEmail
from models.auth import AuthContext
from models.user import User
from passwords import hash_password, verify_password
from store import Repositories, get_repositories, new_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


# ---------- Response schemas ----------

class LoginPage(BaseModel):
    page: str = "login"
    is_logged_in: bool = False
    errors: list[str] = []
    old_input: dict[str, str] = {}


class SignupPage(BaseModel):
    page: str = "signup"
    is_logged_in: bool = False
    errors: list[str] = []
    old_input: dict[str, str] = {}


def validate_signup(
    first_name: str,
    email: str,
    password: str,
    confirm_password: str,
    user_type: str,
) -> list[str]:
    errors = []
    if not first_name.strip():
        errors.append("First name is required")
    if not EMAIL_RE.match(email):
        errors.append("Please enter a valid email")
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    elif not (re.search(r"[A-Za-z]", password) and re.search(r"\d", password)):
        errors.append("Password must contain a letter and a number")
    if password != confirm_password:
        errors.append("Passwords do not match")
    if user_type not in ("guest", "host"):
        errors.append("User type must be guest or host")
    return errors


# ---------- Endpoints ----------

@router.get("/login", response_model=LoginPage)
async def get_login(auth: AuthContext = Depends(auth_context)):
    return LoginPage(is_logged_in=auth.is_logged_in)


@router.post("/login")
async def post_login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    repos: Repositories = Depends(get_repositories),
):
    """
    Checks credentials and marks the session as logged in.
    Bad credentials re-render the login page with a 401.
    """
    email = email.strip().lower()
    user = await repos.users.find_by_email(email)
    if user is None or not verify_password(user.password_hash, password):
        logger.info("Failed login for %s", email)
        page = LoginPage(errors=["Invalid email or password"], old_input={"email": email})
        return JSONResponse(page.model_dump(), status_code=401)

    request.session["isLoggedIn"] = True
    request.session["userId"] = user.id
    return RedirectResponse("/", status_code=HTTP_302_FOUND)


@router.get("/signup", response_model=SignupPage)
async def get_signup(auth: AuthContext = Depends(auth_context)):
    return SignupPage(is_logged_in=auth.is_logged_in)


@router.post("/signup")
async def post_signup(
    first_name: str = Form(...),
    last_name: str = Form(""),
    email: str = Form(...),
    password: str = Form(...),
    confirm_password: str = Form(...),
    user_type: str = Form("guest"),
    repos: Repositories = Depends(get_repositories),
):
    email = email.strip().lower()
    old_input = {
        "first_name": first_name,
        "last_name": last_name,
        "email": email,
        "user_type": user_type,
    }

    errors = validate_signup(first_name, email, password, confirm_password, user_type)
    if errors:
        page = SignupPage(errors=errors, old_input=old_input)
        return JSONResponse(page.model_dump(), status_code=400)

    try:
        await create_user(repos, first_name, last_name, email, password, user_type)
    except DuplicateEmail:
        page = SignupPage(errors=["Email is already registered"], old_input=old_input)
        return JSONResponse(page.model_dump(), status_code=409)

    return RedirectResponse("/login", status_code=HTTP_302_FOUND)


@router.post("/logout")
async def post_logout(request: Request, settings=Depends(get_settings)):
    request.session.clear()
    return RedirectResponse(settings.login_path, status_code=HTTP_302_FOUND)


async def create_user(
    repos: Repositories,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    user_type: str = "guest",
) -> User:
    if await repos.users.find_by_email(email) is not None:
        raise DuplicateEmail(email)

    user = User(
        id=new_id(),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        email=email.strip().lower(),
        password_hash=hash_password(password),
        user_type=user_type,
    )
    await repos.users.add(user)
    logger.info("Registered %s user %s", user.user_type, user.id)
    return user
