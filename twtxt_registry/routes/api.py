"""
API Routes - /api/<plain|json>/... endpoints for accounts and entries
"""
import logging

import requests
from flask import Blueprint, abort, current_app, g, request

from twtxt_registry import formatters
from twtxt_registry.api_responses import (
    ErrorCode,
    error_response,
    handle_api_errors,
    paginated_response,
    plain_response,
    success_response,
)
from twtxt_registry.constants import API_FORMATS, FORMAT_PLAIN
from twtxt_registry.exceptions import AuthenticationError, FetchError, InvalidInput
from twtxt_registry.middleware.auth import admin_required, is_admin_request, request_credential
from twtxt_registry.models import Visibility
from twtxt_registry.utils import Deadline, is_valid_url

logger = logging.getLogger("main")

api_bp = Blueprint("api", __name__, url_prefix="/api/<api_format>")


@api_bp.url_value_preprocessor
def pull_api_format(endpoint, values):
    api_format = (values or {}).pop("api_format", None)
    if api_format not in API_FORMATS:
        abort(404)
    g.api_format = api_format


def is_plain():
    return g.api_format == FORMAT_PLAIN


def registry():
    return current_app.registry


def request_deadline():
    return Deadline(current_app.config.get("REQUEST_TIMEOUT"))


def request_data():
    """Form fields for plain requests, the JSON body for JSON requests"""
    if is_plain():
        return request.form
    data = request.get_json(silent=True)
    if data is None:
        data = request.form
    return data


def int_arg(name):
    value = request.args.get(name, "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise InvalidInput(f"Invalid {name.replace('_', ' ')} specified: {value}")


def page_args():
    window = registry().window(int_arg("page"), int_arg("per_page"))
    return window.page, window.per_page


def visibility_arg():
    """``hidden=1`` lists hidden entries, which only the admin may see"""
    if request.args.get("hidden", "").strip() in ("1", "true", "yes"):
        if not is_admin_request():
            raise AuthenticationError()
        return Visibility.HIDDEN
    return Visibility.VISIBLE


def render_accounts(accounts, page, per_page):
    if is_plain():
        return plain_response(formatters.accounts_plain(accounts))
    return paginated_response(formatters.accounts_json(accounts), page, per_page)


def render_entries(entries, page, per_page):
    if is_plain():
        return plain_response(formatters.entries_plain(entries))
    return paginated_response(formatters.entries_json(entries), page, per_page)


@api_bp.route("/users", methods=["POST"])
@handle_api_errors
def add_user():
    data = request_data()
    nickname = (data.get("nickname") or "").strip()
    url = (data.get("url") or "").strip()
    if not nickname:
        raise InvalidInput("Please provide a nickname")
    if not url:
        raise InvalidInput("Please provide a twtxt.txt URL")

    registration = registry().register_account(url, nickname, deadline=request_deadline())

    if registration.fetch_error is not None:
        interval = current_app.config.get("FETCH_INTERVAL")
        message = (
            f"You have been added, but we were unable to fetch your twtxt file at {url}. "
            f"Another attempt will be made at the next sync (every {interval} seconds)"
        )
        if is_plain():
            return plain_response(f"{message}\nYour passcode is: {registration.passcode}\n", 500)
        return error_response(
            ErrorCode.FETCH_ERROR,
            message=message,
            status_code=500,
            data=formatters.registration_json(registration),
        )

    if is_plain():
        return plain_response(f"You have been added! Your generated passcode is: {registration.passcode}\n")
    return success_response(
        formatters.registration_json(registration),
        message="You have been added and your passcode has been generated.",
    )


@api_bp.route("/users", methods=["GET"])
@handle_api_errors
def get_users():
    page, per_page = page_args()
    accounts = registry().get_or_search_accounts(
        page, per_page, term=request.args.get("q"), deadline=request_deadline()
    )
    return render_accounts(accounts, page, per_page)


def delete_urls():
    if is_plain():
        return [url for url in request.form.getlist("url") if url.strip()]
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        data = data.get("urls") or ([data["url"]] if data.get("url") else [])
    if not isinstance(data, list):
        raise InvalidInput("Invalid request body")
    return [item.get("url", "") if isinstance(item, dict) else str(item) for item in data]


@api_bp.route("/users", methods=["DELETE"])
@handle_api_errors
def delete_users():
    credential = request_credential()
    if not credential:
        raise AuthenticationError()

    urls = [url.strip() for url in delete_urls() if url and url.strip()]
    if not urls:
        raise InvalidInput("No user(s) to delete")

    deadline = request_deadline()
    if is_admin_request():
        removed = registry().delete_accounts(urls, deadline=deadline)
        message = f"Deleted {len(urls)} users"
    else:
        if len(urls) > 1:
            raise AuthenticationError("Non-admin users may only delete themselves")
        account = registry().authenticate_owner(urls[0], credential, deadline=deadline)
        removed = registry().delete_account(account.id, deadline=deadline)
        message = f"Deleted user {urls[0]}"

    if is_plain():
        return plain_response(f"{message}\nDeleted {removed} tweets\n")
    return success_response(message=message, tweets_deleted=removed)


@api_bp.route("/users/bulk", methods=["POST"])
@handle_api_errors
@admin_required
def bulk_add_users():
    """Import an account list, either uploaded as ``list`` or fetched from ``source``"""
    data = request_data()
    source = (data.get("source") or "").strip()
    account_list = data.get("list")

    if not account_list:
        if not is_valid_url(source):
            raise InvalidInput(f"couldn't parse {source} as URL")
        try:
            response = registry().fetcher.session.get(source, timeout=registry().fetcher.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Couldn't fetch list of new users from {source}: {e}")
            raise FetchError(f"couldn't fetch list of new users from {source}", url=source) from e
        account_list = response.text

    # imports fetch every new feed, so they run without the per-request deadline
    registrations = registry().bulk_register(account_list)
    accounts = [registration.account for registration in registrations]

    if is_plain():
        return plain_response(formatters.accounts_plain(accounts))
    return success_response([formatters.registration_json(r) for r in registrations])


@api_bp.route("/tweets", methods=["GET"])
@handle_api_errors
def get_tweets():
    page, per_page = page_args()
    entries = registry().get_or_search_entries(
        page, per_page, term=request.args.get("q"), visibility=visibility_arg(), deadline=request_deadline()
    )
    return render_entries(entries, page, per_page)


@api_bp.route("/tags", methods=["GET"])
@handle_api_errors
def get_tags():
    page, per_page = page_args()
    entries = registry().tags(
        page, per_page, tag=request.args.get("tag"), visibility=visibility_arg(), deadline=request_deadline()
    )
    return render_entries(entries, page, per_page)


@api_bp.route("/mentions", methods=["GET"])
@handle_api_errors
def get_mentions():
    page, per_page = page_args()
    entries = registry().mentions(
        page, per_page, url=request.args.get("url"), visibility=visibility_arg(), deadline=request_deadline()
    )
    return render_entries(entries, page, per_page)


@api_bp.route("/tweets/visibility", methods=["POST"])
@handle_api_errors
@admin_required
def set_tweet_visibility():
    data = request_data()
    hidden = str(data.get("hidden", "1")).strip().lower() in ("1", "true", "yes")
    visibility = Visibility.HIDDEN if hidden else Visibility.VISIBLE

    updated = registry().set_entry_visibility(
        data.get("url"), data.get("timestamp"), visibility, deadline=request_deadline()
    )
    message = f"Updated {updated} tweets"
    if is_plain():
        return plain_response(f"{message}\n")
    return success_response(message=message, tweets_updated=updated)
