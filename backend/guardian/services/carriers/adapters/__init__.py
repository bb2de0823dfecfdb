from guardian.services.carriers.adapters.mock import MockCarrierAdapter
from guardian.services.carriers.adapters.state_farm import StateFarmAdapter

__all__ = ["MockCarrierAdapter", "StateFarmAdapter"]
