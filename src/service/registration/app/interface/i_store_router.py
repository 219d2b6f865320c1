from abc import ABC, abstractmethod
from typing import Any, Mapping

from src.service.registration.app.interface.operation_name import OperationName


class IStoreRouter(ABC):
    @abstractmethod
    async def route(
        self, operation: OperationName, variables: Mapping[str, Any] | None = None
    ) -> Any:
        """Run a logical operation on whichever store is currently serving it"""
        pass
