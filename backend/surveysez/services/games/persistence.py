"""Storage backends for categories, rooms and user profiles.

The game core never talks to storage directly: rooms hand out plain-data
snapshots and the registry/scheduler decide when to write them.
"""

import json
import time
from typing import Any, Dict, Optional

from surveysez import db
from surveysez.models import CategoryRecord, RoomRecord, UserRecord


class Storage:
    """Contract for any storage backend."""

    def get_categories(self) -> Dict[str, Any]:
        raise NotImplementedError('get_categories must be implemented')

    def save_categories(self, categories: Dict[str, Any]) -> None:
        raise NotImplementedError('save_categories must be implemented')

    def get_room(self, room_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError('get_room must be implemented')

    def save_room(self, room_id: str, room_data: Dict[str, Any]) -> None:
        raise NotImplementedError('save_room must be implemented')

    def get_all_rooms(self) -> Dict[str, Dict[str, Any]]:
        raise NotImplementedError('get_all_rooms must be implemented')

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError('get_user must be implemented')

    def save_user(self, user_id: str, user_data: Dict[str, Any]) -> None:
        raise NotImplementedError('save_user must be implemented')


class SqlStorage(Storage):
    """Flask-SQLAlchemy backed storage; must be used inside an app context."""

    def get_categories(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'universal': [], 'custom': {}}
        records = CategoryRecord.query.order_by(CategoryRecord.position, CategoryRecord.id).all()
        for record in records:
            if record.owner_key:
                data['custom'].setdefault(record.owner_key, []).append(record.to_dict())
            else:
                data['universal'].append(record.to_dict())
        return data

    def save_categories(self, categories: Dict[str, Any]) -> None:
        rows = [(None, c) for c in categories.get('universal') or []]
        for owner_key, cats in (categories.get('custom') or {}).items():
            rows.extend((owner_key, c) for c in cats)
        try:
            for position, (owner_key, cat) in enumerate(rows):
                created_by = cat.get('created_by')
                db.session.merge(CategoryRecord(
                    id=cat['id'],
                    name=cat['name'],
                    entries=json.dumps(list(cat.get('entries') or [])),
                    owner_key=owner_key,
                    created_by=json.dumps(created_by) if created_by else None,
                    position=position,
                ))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def get_room(self, room_id: str) -> Optional[Dict[str, Any]]:
        record = db.session.get(RoomRecord, room_id)
        return record.to_dict() if record else None

    def save_room(self, room_id: str, room_data: Dict[str, Any]) -> None:
        try:
            db.session.merge(RoomRecord(room_id=room_id, data=json.dumps(room_data), last_activity=time.time()))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def get_all_rooms(self) -> Dict[str, Dict[str, Any]]:
        return {r.room_id: r.to_dict() for r in RoomRecord.query.all()}

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        record = db.session.get(UserRecord, user_id)
        return record.to_dict() if record else None

    def save_user(self, user_id: str, user_data: Dict[str, Any]) -> None:
        try:
            db.session.merge(UserRecord(user_id=user_id, data=json.dumps(user_data), last_activity=time.time()))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
