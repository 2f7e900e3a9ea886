"""
Web Routes - instance information
"""
from flask import Blueprint, current_app, jsonify, request

from twtxt_registry.api_responses import plain_response
from twtxt_registry.constants import BUILD_VERSION
from twtxt_registry.settings import load_settings

web_bp = Blueprint("web", __name__)


def instance_info():
    instance = current_app.config.get("INSTANCE") or load_settings()["instance"]
    registry = current_app.registry
    return {
        "name": instance.get("site_name"),
        "url": instance.get("site_url"),
        "description": instance.get("site_description"),
        "owner": {"name": instance.get("owner_name"), "email": instance.get("owner_email")},
        "version": BUILD_VERSION,
        "users": registry.account_count,
        "tweets": registry.entry_count,
    }


@web_bp.route("/")
def index():
    """Instance name, owner, version and the cached totals"""
    info = instance_info()
    if request.accept_mimetypes.best == "application/json":
        return jsonify(info)

    lines = [
        f"{info['name']} - {info['description']}",
        f"{info['url']}",
        "",
        f"Run by {info['owner']['name']} <{info['owner']['email']}>",
        f"twtxt-registry {info['version']}",
        f"{info['users']} users, {info['tweets']} tweets",
        "",
        "API: /api/plain/... and /api/json/... (users, tweets, tags, mentions)",
    ]
    return plain_response("\n".join(lines) + "\n")
