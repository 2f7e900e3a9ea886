"""
Entry Indexer - derives mention and tag metadata from an entry body.

The same two patterns are used when an entry is written (to set the
``contains_mentions`` / ``contains_tags`` flags) and when it is read back
(to build the mention and tag lists handed to callers).
"""
import re
from dataclasses import dataclass
from typing import List

# @<nickname url>
MENTION_PATTERN = re.compile(r"@<(\w+)\s(\S+)>")

# #tag
TAG_PATTERN = re.compile(r"#(\w+)")


@dataclass(frozen=True)
class Mention:
    nickname: str
    url: str

    def to_dict(self):
        return {"nickname": self.nickname, "url": self.url}


@dataclass(frozen=True)
class IndexFlags:
    contains_mentions: bool
    contains_tags: bool


def extract_mentions(body: str) -> List[Mention]:
    if not body:
        return []
    return [Mention(nickname=nick, url=url) for nick, url in MENTION_PATTERN.findall(body)]


def extract_tags(body: str) -> List[str]:
    if not body:
        return []
    return TAG_PATTERN.findall(body)


def index_body(body: str) -> IndexFlags:
    return IndexFlags(
        contains_mentions=bool(extract_mentions(body)),
        contains_tags=bool(extract_tags(body)),
    )


def tag_tokens(body: str) -> str:
    """Tags as the space separated ``#tag`` tokens stored in the search index"""
    return " ".join("#" + tag for tag in extract_tags(body))
