"""
Session model - server-side record behind every issued bearer token.
"""
from datetime import datetime
from ..extensions import db


class Session(db.Model):
    """
    One row per login. The token's jti is the primary key, so deleting the
    row revokes the token before it expires.
    """
    __tablename__ = 'sessions'

    id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.Integer, nullable=False)
    role = db.Column(db.String(20), nullable=False)  # 'business', 'customer', 'admin'

    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.Index('ix_sessions_user_role', 'user_id', 'role'),
    )

    def __repr__(self):
        return f'<Session {self.role}:{self.user_id}>'

    def is_expired(self, now: datetime = None) -> bool:
        return self.expires_at <= (now or datetime.utcnow())

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'role': self.role,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
