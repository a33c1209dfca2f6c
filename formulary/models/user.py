import secrets

from flask_login import UserMixin

from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    username = db.Column(db.String(64), nullable=True)
    api_token = db.Column(db.String(128), unique=True, nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now)

    formulas = db.relationship('Formula', backref='owner', lazy='dynamic')

    def issue_api_token(self) -> str:
        self.api_token = secrets.token_urlsafe(32)
        return self.api_token

    def __repr__(self):
        return f'<User {self.email}>'
