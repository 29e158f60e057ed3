from wallet_tracker.models import EntryTarget, ProfitTarget
from wallet_tracker.repositories.base_repository import BaseRepository


class EntryTargetRepository(BaseRepository[EntryTarget]):
    table = "entry_targets"
    model = EntryTarget
    entity_name = "Entry target"

    def get_for_asset(self, asset_id: str) -> list[EntryTarget]:
        return sorted(self.list_all({"asset_id": asset_id}), key=lambda t: t.sort_order)


class ProfitTargetRepository(BaseRepository[ProfitTarget]):
    table = "profit_targets"
    model = ProfitTarget
    entity_name = "Profit target"

    def get_for_asset(self, asset_id: str) -> list[ProfitTarget]:
        return sorted(self.list_all({"asset_id": asset_id}), key=lambda t: t.sort_order)
