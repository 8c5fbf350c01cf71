from enum import Enum
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from app.core.config import settings
from app.core.logger import logger


class Role(str, Enum):
    SUPER_ADMIN = 'super_admin'
    MANAGER = 'manager'
    COMPANY_ADMIN = 'company_admin'
    GUARDIAN = 'guardian'
    EMPLOYEE = 'employee'


class Capability(str, Enum):
    CREATE_INVITATION = 'create_invitation'
    CANCEL_INVITATION = 'cancel_invitation'
    VALIDATE_ACCESS = 'validate_access'
    VIEW_ACCESS_LOGS = 'view_access_logs'


ROLE_CAPABILITIES = {
    Role.SUPER_ADMIN: {Capability.VIEW_ACCESS_LOGS},
    Role.MANAGER: {Capability.VIEW_ACCESS_LOGS},
    Role.COMPANY_ADMIN: {
        Capability.CREATE_INVITATION,
        Capability.CANCEL_INVITATION,
        Capability.VIEW_ACCESS_LOGS,
    },
    Role.GUARDIAN: {Capability.VALIDATE_ACCESS, Capability.VIEW_ACCESS_LOGS},
    Role.EMPLOYEE: {Capability.CREATE_INVITATION, Capability.CANCEL_INVITATION},
}


class TokenData(BaseModel):
    actor_id: str
    role: Role
    site_id: Optional[int] = None
    employee_id: Optional[int] = None

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES.get(self.role, set())


# Constants
ALGORITHM = 'HS256'

# System actor used by background processes (expiry sweep)
SYSTEM_TOKEN = TokenData(actor_id='system', role=Role.SUPER_ADMIN)

# Tokens are issued by the identity provider, this service only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl='auth/token')


async def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenData:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail='Could not validate credentials',
        headers={'WWW-Authenticate': 'Bearer'},
    )

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.error('Token has expired')
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Token has expired',
            headers={'WWW-Authenticate': 'Bearer'},
        )
    except JWTError as e:
        logger.error('Error decoding token: %s', str(e))
        raise credentials_exception

    actor_id = payload.get('sub')
    role = payload.get('role')
    if actor_id is None or role not in {r.value for r in Role}:
        logger.error('Invalid token payload: %s', payload)
        raise credentials_exception

    return TokenData(
        actor_id=actor_id,
        role=role,
        site_id=payload.get('site_id'),
        employee_id=payload.get('employee_id'),
    )


def require_capability(capability: Capability):
    """Dependency factory rejecting actors whose role lacks ``capability``."""

    async def _check(current_user: TokenData = Depends(get_current_user)) -> TokenData:
        if not current_user.can(capability):
            logger.error(
                'Actor %s (%s) lacks capability %s',
                current_user.actor_id,
                current_user.role.value,
                capability.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f'Missing capability: {capability.value}',
            )
        return current_user

    return _check


def require_site(current_user: TokenData) -> int:
    if current_user.site_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Actor is not assigned to a site',
        )
    return current_user.site_id
