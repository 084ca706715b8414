from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from app.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from app.auth.policies import Caller
from app.errors import AuthenticationFailure

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error is off so a missing token reaches the row policies as an anonymous caller
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def verify_password(plain, hashed):
    return pwd_context.verify(plain, hashed)


def hash_password(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token):
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])


def caller_from_token(token: str) -> Caller:
    try:
        payload = decode_token(token)
    except JWTError:
        raise AuthenticationFailure("Invalid token")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationFailure("Invalid token")
    return Caller(user_id=user_id, email=payload.get("email"))


def get_optional_caller(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[Caller]:
    if token is None:
        return None
    return caller_from_token(token)


def get_current_caller(caller: Optional[Caller] = Depends(get_optional_caller)) -> Caller:
    if caller is None:
        raise AuthenticationFailure("Not authenticated")
    return caller
