# lunaexecutor/models.py
from datetime import datetime, timezone
from flask_login import UserMixin
from . import db


def utcnow():
    return datetime.now(timezone.utc)


def isoformat(value):
    """Serialize a datetime as ISO-8601; naive values coming back from SQLite are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(150), unique=True, nullable=False)
    email = db.Column(db.String(150), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    verification_token = db.Column(db.String(64), unique=True, nullable=True)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    member_since = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_login = db.Column(db.DateTime(timezone=True), nullable=True)
    total_tasks = db.Column(db.Integer, nullable=False, default=0)
    success_rate = db.Column(db.Integer, nullable=False, default=0)

    stats = db.relationship('UserStat', backref='user', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'isVerified': self.is_verified,
            'isAdmin': self.is_admin,
            'memberSince': isoformat(self.member_since),
            'lastLogin': isoformat(self.last_login),
            'totalTasks': self.total_tasks,
            'successRate': self.success_rate,
        }

    def __repr__(self):
        return f'<User {self.username}>'


class ChatMessage(db.Model):
    __tablename__ = 'chat_messages'
    # ids are never handed out twice, even after the newest row is gone
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    content = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'content': self.content,
            'timestamp': isoformat(self.timestamp),
            'isAdmin': self.is_admin,
        }


class UserStat(db.Model):
    __tablename__ = 'user_stats'
    __table_args__ = (db.UniqueConstraint('user_id', 'date', name='uq_user_stats_user_date'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    executions = db.Column(db.Integer, nullable=False, default=0)
    successes = db.Column(db.Integer, nullable=False, default=0)
    failures = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'date': self.date.isoformat(),
            'executions': self.executions,
            'successes': self.successes,
            'failures': self.failures,
        }


class Product(db.Model):
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    price = db.Column(db.Numeric(10, 2, asdecimal=True), nullable=False)
    image_url = db.Column(db.String(500))
    version = db.Column(db.String(50))
    download_url = db.Column(db.String(500))
    badge = db.Column(db.String(100))
    badge_variant = db.Column(db.String(100))
    button_text = db.Column(db.String(100))
    button_variant = db.Column(db.String(100))
    features = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': str(self.price),
            'imageUrl': self.image_url,
            'version': self.version,
            'downloadUrl': self.download_url,
            'badge': self.badge,
            'badgeVariant': self.badge_variant,
            'buttonText': self.button_text,
            'buttonVariant': self.button_variant,
            'features': list(self.features or []),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }
