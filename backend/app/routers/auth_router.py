from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import select
import logging

from app.auth.auth_handler import hash_password, verify_password, create_access_token, get_current_caller
from app.auth.policies import Caller
from app.models.auth import Account, Credentials, Token
from app.db import get_session
from app.models.user_db import User as DBUser
from app.errors import AuthenticationFailure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/signup", response_model=Account, status_code=201)
def signup(credentials: Credentials):
    email = credentials.email.lower()
    with get_session() as session:
        existing = session.exec(select(DBUser).where(DBUser.email == email)).first()
        if existing:
            raise HTTPException(status_code=400, detail="User already registered")

        db_user = DBUser(email=email, hashed_password=hash_password(credentials.password))
        session.add(db_user)
        session.commit()
        session.refresh(db_user)
        logger.info("Registered account %s", db_user.id)
        return Account(id=db_user.id, email=db_user.email)


@router.post("/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends()):
    email = form_data.username.strip().lower()

    with get_session() as session:
        db_user = session.exec(select(DBUser).where(DBUser.email == email)).first()
        if not db_user or not verify_password(form_data.password, db_user.hashed_password):
            raise AuthenticationFailure("Invalid login credentials")
        user_id = db_user.id

    access_token = create_access_token({"sub": user_id, "email": email})
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=Account)
def get_current_user_info(caller: Caller = Depends(get_current_caller)):
    with get_session() as session:
        user = session.get(DBUser, caller.user_id)
        if not user:
            raise AuthenticationFailure("User not found")
        return Account(id=user.id, email=user.email)
