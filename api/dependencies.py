"""API Dependencies - Authentication"""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from domain.auth import User, UserInDB
from domain.enums import UserRole
from infrastructure.security import decode_access_token, get_password_hash
from api.schemas import TokenData
from application.services import CustomerService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# Demo accounts, one per role. Passwords are hashed on first access.
_fake_users_db = {
    "admin": {
        "username": "admin",
        "full_name": "Admin User",
        "email": "admin@example.com",
        "plain_password": "admin123",
        "role": UserRole.ADMIN,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174000"
    },
    "frontdesk": {
        "username": "frontdesk",
        "full_name": "Front Desk",
        "email": "frontdesk@example.com",
        "plain_password": "frontdesk123",
        "role": UserRole.STAFF,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174001"
    },
    "guest": {
        "username": "guest",
        "full_name": "Guest User",
        "email": "guest@example.com",
        "plain_password": "guest123",
        "role": UserRole.GUEST,
        "disabled": False,
        "user_id": "123e4567-e89b-12d3-a456-426614174002"
    }
}

fake_users_db = _fake_users_db

_password_hash_cache = {}


def _get_hashed_password(username: str) -> str:
    """Lazily hash passwords on first access"""
    if username not in _password_hash_cache:
        user = _fake_users_db.get(username)
        if user and "plain_password" in user:
            _password_hash_cache[username] = get_password_hash(user["plain_password"])
    return _password_hash_cache.get(username, "")


def get_user(db, username: str):
    if username in db:
        user_dict = db[username].copy()
        if "plain_password" in user_dict:
            user_dict["hashed_password"] = _get_hashed_password(username)
            del user_dict["plain_password"]
        return UserInDB(**user_dict)
    return None


async def get_current_user(token: str = Depends(oauth2_scheme)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username)
    except JWTError:
        raise credentials_exception

    user = get_user(_fake_users_db, username=token_data.username)
    if user is None:
        raise credentials_exception
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)):
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


async def get_current_staff_user(current_user: User = Depends(get_current_active_user)):
    """Front desk operations: confirm, check-in, check-out, inventory, payments"""
    if current_user.role not in (UserRole.ADMIN, UserRole.STAFF):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff access required")
    return current_user


async def ensure_customer_access(customer_id, current_user: User, customer_service: CustomerService) -> None:
    """Guests may only act for the customer record carrying their own e-mail"""
    if current_user.role != UserRole.GUEST:
        return
    customer = await customer_service.get_customer(customer_id)
    if not current_user.email or customer.email.lower() != current_user.email.lower():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to access this customer's records")
