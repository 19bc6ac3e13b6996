import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from psychprep.auth.gate import get_store, record_login, verify_account
from psychprep.auth.utils import hash_password, now_ist
from psychprep.db import ContentStore
from psychprep.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=1)


@router.post("/login")
def login(payload: LoginRequest, store: ContentStore = Depends(get_store)):
    user = verify_account(store, payload.email.strip(), payload.password)
    user = record_login(store, user)
    logger.info(f"User {user.id} logged in")
    return {"success": True, "user": user.sanitized()}


@router.post("/register", status_code=201)
def register(payload: RegisterRequest, store: ContentStore = Depends(get_store)):
    username = payload.username.strip()
    email = payload.email.strip()
    if "@" not in email:
        raise ValidationError("Invalid data", errors={"email": "Not a valid email address"})

    user = store.create_user(
        username=username,
        email=email,
        password=hash_password(payload.password),
        last_login=now_ist(),
    )
    logger.info(f"Registered user {user.id} ({username})")
    return {
        "success": True,
        "message": "Registered successfully, Please login",
        "user": user.sanitized(),
    }
