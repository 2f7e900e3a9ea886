import os

from twtxt_registry import __version__

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.dirname(PACKAGE_DIR)
CONFIG_DIR = os.environ.get("REGISTRY_CONFIG_DIR", os.path.join(ROOT_DIR, "config"))
CONFIG_FILE = os.environ.get("REGISTRY_CONFIG", os.path.join(CONFIG_DIR, "settings.yaml"))

BUILD_VERSION = __version__

MIME_PLAIN = "text/plain; charset=utf-8"
MIME_JSON = "application/json; charset=utf-8"

FORMAT_PLAIN = "plain"
FORMAT_JSON = "json"
API_FORMATS = (FORMAT_PLAIN, FORMAT_JSON)

# Hard floors applied to whatever the settings file says
PER_PAGE_MIN_FLOOR = 10
PER_PAGE_MAX_FLOOR = 20

DEFAULT_FETCH_TIMEOUT = 5
PASSCODE_BYTES = 10
PASSCODE_HASH_METHOD = "pbkdf2:sha256"

DEFAULT_SETTINGS = {
    "server": {
        "admin_password": "",
        "bind_ip": "127.0.0.1",
        "port": 9001,
        "database_path": "registry.db",
        "fetch_interval": 3600,
        "fetch_timeout": DEFAULT_FETCH_TIMEOUT,
        "request_timeout": 10,
        "entries_per_page_min": 20,
        "entries_per_page_max": 1000,
        "http_requests_per_minute": 60,
        "http_requests_burst_max": 20,
        "debug_mode": False,
    },
    "instance": {
        "site_name": "twtxt registry",
        "site_url": "https://registry.example.org",
        "site_description": "A twtxt registry",
        "owner_name": "",
        "owner_email": "",
    },
}
