from typing import Dict, List, Optional


class ConnectionMap:
    """Transient connection ids mapped onto persistent player ids.

    A player may hold several live connections (two tabs, a reconnect that
    races the old socket's disconnect); the player counts as connected while
    any of them remains.
    """

    def __init__(self):
        self._by_connection: Dict[str, str] = {}

    def connect(self, connection_id: str, persistent_id: str) -> None:
        self._by_connection[connection_id] = persistent_id

    def disconnect(self, connection_id: str) -> Optional[str]:
        return self._by_connection.pop(connection_id, None)

    def player_for(self, connection_id: str) -> Optional[str]:
        return self._by_connection.get(connection_id)

    def connections_for(self, persistent_id: str) -> List[str]:
        return [cid for cid, pid in self._by_connection.items() if pid == persistent_id]

    def is_connected(self, persistent_id: str) -> bool:
        return persistent_id in self._by_connection.values()

    def connected_players(self) -> List[str]:
        seen: Dict[str, None] = {}
        for pid in self._by_connection.values():
            seen.setdefault(pid, None)
        return list(seen)

    def __len__(self) -> int:
        return len(self._by_connection)
