import logging
from sqlite3 import Row

from wallet_tracker.models import Asset
from wallet_tracker.repositories.base_repository import BaseRepository

logger: logging.Logger = logging.getLogger(__name__)


class AssetRepository(BaseRepository[Asset]):
    table = "assets"
    model = Asset
    entity_name = "Asset"

    def get_by_symbol(self, symbol: str) -> Asset | None:
        row: Row | None = self.db.query_one(
            "SELECT * FROM assets WHERE UPPER(symbol) = :symbol",
            {"symbol": symbol.strip().upper()},
        )
        if not row:
            return None
        return self._from_row(row)
