"""Dependency injection factories for FastAPI.

Every factory shares the request's session through ``get_repositories`` so a
request is one unit of work.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lifecycle_api.config import get_settings
from lifecycle_api.database import get_db
from lifecycle_api.repositories import Repositories
from lifecycle_api.services.account_service import AccountService
from lifecycle_api.services.connector_service import ConnectorResolver
from lifecycle_api.services.notification_service import NotificationService
from lifecycle_api.services.offboarding_service import OffboardingService


def build_connector_resolver(repos: Repositories) -> ConnectorResolver:
    """Wire a ConnectorResolver onto a set of repositories."""
    settings = get_settings()
    return ConnectorResolver(
        repos.connections,
        notifier=NotificationService(settings.organization_name),
        settings=settings,
    )


def build_account_service(repos: Repositories) -> AccountService:
    """Wire an AccountService (and its resolver) onto a set of repositories."""
    return AccountService(repos, build_connector_resolver(repos), get_settings())


def get_repositories(db: AsyncSession = Depends(get_db)) -> Repositories:
    """Get repositories bound to the request session."""
    return Repositories.from_session(db)


def get_connector_resolver(repos: Repositories = Depends(get_repositories)) -> ConnectorResolver:
    """Get ConnectorResolver instance."""
    return build_connector_resolver(repos)


def get_account_service(
    repos: Repositories = Depends(get_repositories),
    resolver: ConnectorResolver = Depends(get_connector_resolver),
) -> AccountService:
    """Get AccountService instance."""
    return AccountService(repos, resolver, get_settings())


def get_offboarding_service(
    repos: Repositories = Depends(get_repositories),
    accounts: AccountService = Depends(get_account_service),
) -> OffboardingService:
    """Get OffboardingService instance."""
    return OffboardingService(repos, accounts)
