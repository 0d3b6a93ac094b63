from abc import ABC, abstractmethod


class KV(ABC):
    @abstractmethod
    def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set(self, key: str, value: str, expires_at: float | None = None):
        pass

    @abstractmethod
    def delete(self, key: str):
        pass

    @abstractmethod
    def pop(self, key: str) -> str | None:
        """Removes the key and returns its last value in one atomic step."""
        pass

    @abstractmethod
    def purge_expired(self, now: float | None = None) -> int:
        """Deletes rows whose expiry has passed, returning how many went."""
        pass
