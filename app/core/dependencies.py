"""
Dependency injection for FastAPI.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from app.core.security import decode_token
from app.domain.schemas.profiles import PermissionProfile
from app.infrastructure.membership import MembershipClient
from app.infrastructure.store import KeyValueStore, get_store
from app.services.applications import ApplicationService
from app.services.assignments import AssignmentWorkflow
from app.services.auth.authorization.profiles import ProfileResolver, get_profile_resolver
from app.services.departments import DepartmentService
from app.services.forms import FormService
from app.services.sessions import SessionService
from app.services.user import UserService

bearer_scheme = HTTPBearer(auto_error=False)


class Principal(BaseModel):
    """The authenticated caller."""
    user_id: str
    profile: PermissionProfile


def get_store_dependency() -> KeyValueStore:
    return get_store()


@lru_cache
def get_membership_client() -> MembershipClient:
    return MembershipClient()


def get_resolver() -> ProfileResolver:
    return get_profile_resolver()


def get_user_service(
    store: KeyValueStore = Depends(get_store_dependency),
    resolver: ProfileResolver = Depends(get_resolver),
) -> UserService:
    return UserService(store, resolver)


async def get_current_principal(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    resolver: ProfileResolver = Depends(get_resolver),
    users: UserService = Depends(get_user_service),
) -> Principal:
    """
    Authenticate the caller by service API key or bearer token.

    Args:
        x_api_key: Service credential
        credentials: Bearer JWT whose subject is the user ID
        resolver: Profile resolver
        users: User service

    Returns:
        Authenticated principal

    Raises:
        HTTPException: If no valid credential is presented
    """
    if x_api_key:
        credential = resolver.resolve_credential(x_api_key)
        if credential is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid API key",
            )
        return Principal(user_id=credential.uid, profile=resolver.resolve(credential))

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Decode token
    payload = decode_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Check token type
    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    profile = await users.get_profile(user_id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Principal(user_id=user_id, profile=profile)


def get_application_service(
    store: KeyValueStore = Depends(get_store_dependency),
) -> ApplicationService:
    return ApplicationService(store)


def get_department_service(
    store: KeyValueStore = Depends(get_store_dependency),
    membership_client: MembershipClient = Depends(get_membership_client),
    users: UserService = Depends(get_user_service),
) -> DepartmentService:
    return DepartmentService(store, membership_client, users)


def get_form_service(
    store: KeyValueStore = Depends(get_store_dependency),
    users: UserService = Depends(get_user_service),
) -> FormService:
    return FormService(store, users)


def get_session_service(
    store: KeyValueStore = Depends(get_store_dependency),
    users: UserService = Depends(get_user_service),
) -> SessionService:
    return SessionService(store, users)


def get_assignment_workflow(
    store: KeyValueStore = Depends(get_store_dependency),
    users: UserService = Depends(get_user_service),
) -> AssignmentWorkflow:
    return AssignmentWorkflow(store, users)
