from surveysez import db
import json
import time


class CategoryRecord(db.Model):
    __tablename__ = 'category'
    id = db.Column(db.String(160), primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    entries = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list of strings
    # NULL for the shared pool, "<room_id>-<user_id>" for a player's custom pool
    owner_key = db.Column(db.String(160), nullable=True, index=True)
    created_by = db.Column(db.Text, nullable=True)  # JSON-encoded {user_id, name}
    position = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        data = {
            'id': self.id,
            'name': self.name,
            'entries': json.loads(self.entries) if self.entries else [],
        }
        if self.created_by:
            data['created_by'] = json.loads(self.created_by)
        return data


class RoomRecord(db.Model):
    __tablename__ = 'room'
    room_id = db.Column(db.String(64), primary_key=True)
    data = db.Column(db.Text, nullable=False)  # JSON-encoded Room.to_snapshot()
    last_activity = db.Column(db.Float, nullable=False, default=time.time)

    def to_dict(self):
        payload = json.loads(self.data) if self.data else {}
        payload['last_activity'] = self.last_activity
        return payload


class UserRecord(db.Model):
    __tablename__ = 'user_profile'
    user_id = db.Column(db.String(64), primary_key=True)
    data = db.Column(db.Text, nullable=False)  # JSON-encoded per-room profile data
    last_activity = db.Column(db.Float, nullable=False, default=time.time)

    def to_dict(self):
        payload = json.loads(self.data) if self.data else {}
        payload['last_activity'] = self.last_activity
        return payload
