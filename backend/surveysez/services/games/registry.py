import threading
from typing import Any, Dict, List, Optional

from flask import current_app

from .persistence import SqlStorage, Storage
from .records import Category
from .room import Room, custom_storage_key

EXTENSION_KEY = 'surveysez.rooms'

_create_lock = threading.Lock()


def room_channel(room_id: str) -> str:
    return f"room:{room_id}"


class RoomRegistry:
    """Every live Room of one app, plus the shared category data.

    Each room gets its own re-entrant lock; socket handlers and background
    tasks hold it across "mutate + broadcast" so that actions for a room are
    applied one at a time and every broadcast matches the state it follows.
    """

    def __init__(self, storage: Storage, logger=None):
        self.storage = storage
        self.logger = logger
        self.categories_data: Dict[str, Any] = {'universal': [], 'custom': {}}
        self.categories_dirty = False
        self.rooms: Dict[str, Room] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.dirty_users: set = set()
        self.loaded = False
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def _log(self, level: str, message: str) -> None:
        if self.logger:
            getattr(self.logger, level)(message)

    def load(self) -> None:
        """Read categories and restore saved rooms from storage."""
        self.categories_data = self.storage.get_categories()
        self.categories_data.setdefault('universal', [])
        self.categories_data.setdefault('custom', {})
        for room_id, data in self.storage.get_all_rooms().items():
            try:
                self.rooms[room_id] = Room.from_snapshot(data, self.categories_data)
            except (KeyError, TypeError, ValueError) as exc:
                self._log('warning', f"[restore-skip] room={room_id} error={exc}")
                continue
        self.loaded = True
        self._log('info', f"[registry-load] rooms={len(self.rooms)} "
                          f"universal={len(self.categories_data['universal'])}")

    def lock_for(self, room_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = self._locks[room_id] = threading.RLock()
            return lock

    def get(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def get_or_create(self, room_id: str) -> Room:
        with self._guard:
            room = self.rooms.get(room_id)
            if room is None:
                room = self.rooms[room_id] = Room(room_id, self.categories_data)
                self._log('info', f"[room-create] room={room_id}")
            return room

    def all_rooms(self) -> List[Room]:
        with self._guard:
            return list(self.rooms.values())

    def add_custom_category(self, room: Room, category: Category, user_id: str) -> bool:
        if not room.add_custom_category(category, user_id):
            return False
        key = custom_storage_key(room.room_id, user_id)
        self.categories_data['custom'].setdefault(key, []).append(category.to_dict())
        self.categories_dirty = True
        return True

    def remember_user(self, user_id: str, room_id: str, name: str, team: str) -> None:
        profile = self.users.setdefault(user_id, {'user_id': user_id, 'rooms': {}})
        profile['rooms'][room_id] = {'name': name, 'team': team}
        self.dirty_users.add(user_id)

    def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        if user_id in self.users:
            return self.users[user_id]
        profile = self.storage.get_user(user_id)
        if profile:
            profile.pop('last_activity', None)
            self.users[user_id] = profile
        return profile

    def save_all(self) -> None:
        """Write every room, pending user profiles and (if changed) categories."""
        for room in self.all_rooms():
            with self.lock_for(room.room_id):
                snapshot = room.to_snapshot()
            self.storage.save_room(room.room_id, snapshot)
        for user_id in list(self.dirty_users):
            self.storage.save_user(user_id, self.users[user_id])
            self.dirty_users.discard(user_id)
        if self.categories_dirty:
            self.storage.save_categories(self.categories_data)
            self.categories_dirty = False


def get_registry(app=None) -> RoomRegistry:
    """Return the app's registry, loading it from storage on first use."""
    app = app or current_app._get_current_object()
    registry = app.extensions.get(EXTENSION_KEY)
    if registry is not None and registry.loaded:
        return registry
    with _create_lock:
        registry = app.extensions.get(EXTENSION_KEY)
        if registry is None:
            registry = RoomRegistry(SqlStorage(), logger=app.logger)
            app.extensions[EXTENSION_KEY] = registry
        if not registry.loaded:
            registry.load()
    return registry
