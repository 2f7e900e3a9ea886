"""
Model: Entry
One timestamped status line from an account's feed.
Unique over (account, timestamp, body); re-inserting a known entry is a no-op.
"""
import enum

from twtxt_registry.db import db
from twtxt_registry.indexer import extract_mentions, extract_tags
from twtxt_registry.utils import format_timestamp


class Visibility(enum.IntEnum):
    VISIBLE = 0
    HIDDEN = 1


class Entry(db.Model):
    __tablename__ = "entries"

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    dt = db.Column(db.BigInteger, nullable=False)  # the entry's own timestamp, ns since epoch
    body = db.Column(db.Text, nullable=False)
    contains_mentions = db.Column(db.Boolean, nullable=False, default=False)
    contains_tags = db.Column(db.Boolean, nullable=False, default=False)
    tag_tokens = db.Column(db.Text, nullable=False, default="")  # "#a #b", mirrored into the search index
    hidden = db.Column(db.Integer, nullable=False, default=int(Visibility.VISIBLE))

    account = db.relationship("Account", back_populates="entries")

    __table_args__ = (
        db.UniqueConstraint("account_id", "dt", "body", name="uq_entries_account_dt_body"),
        db.Index("ix_entries_hidden_dt", "hidden", "dt"),
        db.Index("ix_entries_account_dt", "account_id", "dt"),
        {"sqlite_autoincrement": True},
    )

    @property
    def visibility(self):
        return Visibility(self.hidden)

    @property
    def nickname(self):
        return self.account.nick if self.account else None

    @property
    def url(self):
        return self.account.url if self.account else None

    @property
    def mentions(self):
        return extract_mentions(self.body)

    @property
    def tags(self):
        return extract_tags(self.body)

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": str(self.account_id),
            "nickname": self.nickname,
            "url": self.url,
            "datetime": format_timestamp(self.dt, nanos=True),
            "body": self.body,
            "mentions": [mention.to_dict() for mention in self.mentions],
            "tags": self.tags,
            "hidden": int(self.hidden),
        }

    def __repr__(self):
        return f"<Entry {self.id} account={self.account_id} dt={self.dt}>"
