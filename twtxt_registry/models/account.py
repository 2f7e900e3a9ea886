"""
Model: Account
One registered twtxt feed. The URL is unique, the nickname is not.
"""

from twtxt_registry.db import db
from twtxt_registry.utils import format_timestamp


class Account(db.Model):
    __tablename__ = "accounts"

    id = db.Column(db.Integer, primary_key=True)
    url = db.Column(db.String, unique=True, nullable=False)
    nick = db.Column(db.String, nullable=False)
    passcode_hash = db.Column(db.String(255), nullable=False)
    dt_added = db.Column(db.BigInteger, nullable=False, index=True)  # ns since epoch, UTC
    last_sync = db.Column(db.BigInteger, nullable=False, default=0)  # ns since epoch, 0 = never

    entries = db.relationship("Entry", back_populates="account", passive_deletes=True)

    # ids must never be reused after a delete
    __table_args__ = {"sqlite_autoincrement": True}

    # Plaintext passcode, only set on freshly registered accounts and never persisted
    passcode = None

    def to_dict(self):
        return {
            "id": str(self.id),
            "url": self.url,
            "nickname": self.nick,
            "datetime_added": format_timestamp(self.dt_added, nanos=True),
            "last_sync": format_timestamp(self.last_sync or 0, nanos=True),
        }

    def __repr__(self):
        return f"<Account {self.id} {self.nick} {self.url}>"
