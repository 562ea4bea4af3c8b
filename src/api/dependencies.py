"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from datetime import timedelta

from fastapi import Depends, HTTPException, Request, status

from src.config.settings import Settings, get_settings
from src.domain.exceptions import Unauthenticated
from src.domain.lifecycle import AccountLifecycleService
from src.domain.messages import MessageComposer
from src.domain.models import Account, ClientInfo
from src.domain.ports import AccountRepository, EmailDispatcher, SessionStore
from src.domain.sessions import SessionManager


def get_account_repository(request: Request) -> AccountRepository:
    """
    Get account repository from app state.

    The repository is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.account_repository


def get_session_store(request: Request) -> SessionStore:
    """Get session store from app state."""
    return request.app.state.session_store


def get_email_dispatcher(request: Request) -> EmailDispatcher:
    """Get background email dispatcher from app state."""
    return request.app.state.email_dispatcher


def build_lifecycle_service(
    settings: Settings,
    repository: AccountRepository,
    session_store: SessionStore,
    dispatcher: EmailDispatcher,
) -> AccountLifecycleService:
    """Wire the lifecycle service from settings and adapters."""
    composer = MessageComposer(
        app_name=settings.app_name,
        app_url=settings.app_url,
        verification_ttl_hours=settings.verification_token_ttl_hours,
        reset_ttl_hours=settings.reset_token_ttl_hours,
    )
    sessions = SessionManager(
        store=session_store, ttl=timedelta(hours=settings.session_ttl_hours)
    )
    return AccountLifecycleService(
        repository=repository,
        sessions=sessions,
        dispatcher=dispatcher,
        composer=composer,
        bcrypt_cost=settings.bcrypt_cost,
        verification_ttl_hours=settings.verification_token_ttl_hours,
        reset_ttl_hours=settings.reset_token_ttl_hours,
        notification_interval=timedelta(minutes=settings.login_notification_interval_minutes),
    )


def get_lifecycle_service(request: Request) -> AccountLifecycleService:
    """
    Create lifecycle service with injected dependencies.

    Wires together the repository, session store and email dispatcher.
    """
    return build_lifecycle_service(
        get_settings(),
        get_account_repository(request),
        get_session_store(request),
        get_email_dispatcher(request),
    )


def get_session_token(request: Request) -> str | None:
    """Read the session handle from its cookie."""
    return request.cookies.get(get_settings().session_cookie_name)


def get_client_info(request: Request) -> ClientInfo:
    """
    Extract login metadata from the request.

    Prefers the first X-Forwarded-For hop when running behind a proxy.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip() or None
    else:
        ip_address = request.client.host if request.client else None
    return ClientInfo(ip_address=ip_address, user_agent=request.headers.get("user-agent"))


def get_current_account(
    session: str | None = Depends(get_session_token),
    service: AccountLifecycleService = Depends(get_lifecycle_service),
) -> Account:
    """
    Guard for protected routes.

    Returns 401 unless the session belongs to a verified account.
    """
    try:
        return service.authorize(session)
    except Unauthenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        ) from None
