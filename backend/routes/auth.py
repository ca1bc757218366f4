# backend/routes/auth.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from sqlalchemy import func

from config import settings
from database import get_db
from models import users as models
from schemas import user as schemas
from schemas.common import Envelope, ok
from utils.audit import write_log
from utils.errors import Conflict, Unauthorized
from utils.hashing import get_password_hash, verify_password
from utils.tokenJWT import create_access_token, get_current_user

router = APIRouter(prefix="/auth", tags=["Auth"])


def _auth_payload(user: models.User) -> dict:
    return {
        "access_token": create_access_token(user),
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": schemas.UserResponse.model_validate(user),
    }


# Register a new customer account
@router.post("/register", response_model=Envelope[schemas.AuthResponse], status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, request: Request, db: Session = Depends(get_db)):
    normalized_email = user.email.strip().lower()

    db_user = db.query(models.User).filter(func.lower(models.User.email) == normalized_email).first()
    if db_user:
        write_log(db, user_id=None, action="REGISTER", resource="auth", status="FAIL",
                  request=request, meta={"email": normalized_email, "reason": "Email exists"})
        raise Conflict("Email already registered")

    fields = user.model_dump(exclude={"email", "password"})
    new_user = models.User(
        email=normalized_email,
        password_hash=get_password_hash(user.password),
        role=models.ROLE_CUSTOMER,
        **fields,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    write_log(db, user_id=new_user.id, action="REGISTER", resource="auth", entity_id=new_user.id,
              request=request, meta={"email": new_user.email})

    return ok("Registration successful", _auth_payload(new_user))


# Authenticate user and issue JWT token
@router.post("/login", response_model=Envelope[schemas.AuthResponse])
def login(payload: schemas.UserLogin, request: Request, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    db_user = db.query(models.User).filter(func.lower(models.User.email) == email).first()

    if not db_user or not verify_password(payload.password, db_user.password_hash):
        write_log(db, user_id=(db_user.id if db_user else None), action="LOGIN", resource="auth",
                  status="FAIL", request=request, meta={"email": email})
        raise Unauthorized("Invalid email or password")

    write_log(db, user_id=db_user.id, action="LOGIN", resource="auth", request=request,
              meta={"email": db_user.email})

    return ok("Login successful", _auth_payload(db_user))


# Current authenticated user
@router.get("/me", response_model=Envelope[schemas.UserResponse])
def me(current_user: models.User = Depends(get_current_user)):
    return ok("User retrieved successfully", schemas.UserResponse.model_validate(current_user))


# Update name, contact and default shipping details; optionally change password
@router.put("/profile", response_model=Envelope[schemas.UserResponse])
def update_profile(
    payload: schemas.ProfileUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    for key, value in payload.model_dump(exclude={"password"}).items():
        setattr(current_user, key, value)
    if payload.password:
        current_user.password_hash = get_password_hash(payload.password)
    db.commit()
    db.refresh(current_user)

    write_log(db, user_id=current_user.id, action="PROFILE_UPDATE", resource="auth",
              entity_id=current_user.id, request=request,
              meta={"password_changed": bool(payload.password)})

    return ok("Profile updated successfully", schemas.UserResponse.model_validate(current_user))
