"""
Rendering of accounts and entries for the two API formats.

Plain output is one tab-delimited record per LF-terminated line. JSON
output is a list of dicts with mentions and tags re-derived from the body.
"""
from twtxt_registry.utils import format_timestamp


def accounts_plain(accounts):
    """``NICK\\tURL\\tADDED\\tLAST_SYNC`` per account"""
    return "".join(
        f"{account.nick}\t{account.url}\t{format_timestamp(account.dt_added)}\t"
        f"{format_timestamp(account.last_sync or 0)}\n"
        for account in accounts
    )


def entries_plain(entries):
    """``NICK\\tURL\\tTIMESTAMP\\tBODY`` per entry"""
    return "".join(
        f"{entry.nickname}\t{entry.url}\t{format_timestamp(entry.dt)}\t{entry.body}\n" for entry in entries
    )


def accounts_json(accounts):
    return [account.to_dict() for account in accounts]


def entries_json(entries):
    return [entry.to_dict() for entry in entries]


def registration_json(registration):
    data = registration.account.to_dict()
    data["passcode"] = registration.passcode
    data["entries_added"] = registration.entries_added
    if registration.fetch_error is not None:
        data["fetch_error"] = registration.fetch_error.message
    return data
