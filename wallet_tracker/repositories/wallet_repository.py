import logging

from wallet_tracker.models import Wallet
from wallet_tracker.repositories.base_repository import BaseRepository

logger: logging.Logger = logging.getLogger(__name__)


class WalletRepository(BaseRepository[Wallet]):
    table = "wallets"
    model = Wallet
    entity_name = "Wallet"

    def get_for_asset(self, asset_id: str, include_archived: bool = True) -> list[Wallet]:
        filters: dict[str, object] = {"asset_id": asset_id}
        if not include_archived:
            filters["archived"] = 0
        return self.list_all(filters)

    def replace_all(self, wallets: list[Wallet]) -> None:
        """
        Rewrite a set of wallets in one batch.

        Rows are deleted before any is re-inserted so wallets that swapped buy
        prices (a split re-keys several at once) never trip the
        (asset, profit target, buy price) unique constraint halfway through.
        """
        if not wallets:
            return
        with self.db.batch():
            for wallet in wallets:
                self.delete(wallet.id)
            for wallet in wallets:
                _ = self.insert(wallet)
        logger.debug(f"Rewrote {len(wallets)} wallets")
