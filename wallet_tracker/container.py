"""
Service container for dependency injection.

Builds the repositories and services once per run and hands them out by type.
"""

import logging
from typing import TypeVar, cast

from wallet_tracker.config import AppConfig
from wallet_tracker.db import Database
from wallet_tracker.repositories.asset_repository import AssetRepository
from wallet_tracker.repositories.price_repository import PriceRepository
from wallet_tracker.repositories.target_repository import (
    EntryTargetRepository,
    ProfitTargetRepository,
)
from wallet_tracker.repositories.transaction_repository import TransactionRepository
from wallet_tracker.repositories.wallet_repository import WalletRepository
from wallet_tracker.services.ledger_service import LedgerService
from wallet_tracker.services.portfolio_service import PortfolioService
from wallet_tracker.services.price_service import PriceService
from wallet_tracker.services.report_service import ReportService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ServiceContainer:
    """
    Container for application services and repositories.

    Repositories share the one Database connection and the configured page
    size and page-loop cap.
    """

    def __init__(self, config: AppConfig, db: Database):
        """
        Initialise the service container.

        Args:
            config: Application configuration
            db: Database connection
        """
        self.config = config
        self.db = db
        self._repositories: dict[type, object] = {}
        self._services: dict[type, object] = {}

        self._init_repositories()
        self._init_services()

    def _init_repositories(self) -> None:
        """Initialise all repositories."""
        paging: dict[str, int] = {
            "page_size": self.config.page_size,
            "max_page_iterations": self.config.max_page_iterations,
        }
        self._repositories[AssetRepository] = AssetRepository(self.db, **paging)
        self._repositories[EntryTargetRepository] = EntryTargetRepository(self.db, **paging)
        self._repositories[ProfitTargetRepository] = ProfitTargetRepository(self.db, **paging)
        self._repositories[WalletRepository] = WalletRepository(self.db, **paging)
        self._repositories[TransactionRepository] = TransactionRepository(self.db, **paging)
        self._repositories[PriceRepository] = PriceRepository(self.db)

    def _init_services(self) -> None:
        """Initialise all services."""
        ledger_service: LedgerService = LedgerService(
            self.db,
            self.get_repository(AssetRepository),
            self.get_repository(EntryTargetRepository),
            self.get_repository(ProfitTargetRepository),
            self.get_repository(WalletRepository),
            self.get_repository(TransactionRepository),
        )
        self._services[LedgerService] = ledger_service
        self._services[PortfolioService] = PortfolioService(ledger_service)

        price_repo: PriceRepository = self.get_repository(PriceRepository)
        price_service: PriceService = PriceService(
            price_repo, self.config.yf_max_retries, self.config.yf_history_days
        )
        self._services[PriceService] = price_service
        self._services[ReportService] = ReportService(
            ledger_service, price_repo, price_service, self.config.yf_history_days
        )

    def get_repository(self, repo_type: type[T]) -> T:
        """
        Get a repository instance by type.

        Raises:
            KeyError: If repository type is not registered
        """
        if repo_type not in self._repositories:
            raise KeyError(f"Repository {repo_type.__name__} not registered")

        return cast(T, self._repositories[repo_type])

    def get_service(self, service_type: type[T]) -> T:
        """
        Get a service instance by type.

        Raises:
            KeyError: If service type is not registered
        """
        if service_type not in self._services:
            raise KeyError(f"Service {service_type.__name__} not registered")

        return cast(T, self._services[service_type])
