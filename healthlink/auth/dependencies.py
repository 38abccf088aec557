import jwt

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from healthlink.auth import jwt_handler
from healthlink.database import get_db
from healthlink.models.user import Role, User

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    try:
        claims = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    user = db.query(User).filter(User.id == claims.user_id).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    # a token issued before a role change must be reissued
    if user.role != claims.role.value:
        raise HTTPException(status_code=401, detail="Token role does not match user")
    return user


def require_role(*roles: Role):
    allowed = {role.value for role in roles}

    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="You do not have access to this resource.")
        return user

    return dependency
