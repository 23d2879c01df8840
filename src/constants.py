"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    QUERY_ERROR = 3
    CONFIG_ERROR = 4


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_REGISTRY_NAME = "General"
    DEFAULT_REGISTRY_URL = "https://github.com/JuliaRegistries/General.git"
    DEFAULT_ISSUE_REPO = "JuliaRegistries/General"
    PRIMARY_BRANCH = "master"

    VERSIONS_FILE = "Versions.toml"
    REGISTRY_FILE = "Registry.toml"
    MIRROR_VALIDITY_FILE = "config"
    REGISTRIES_DIR = "registries"
    TARBALL_SUFFIX = ".tar.gz"

    ENV_CONFIG = "PKGWHEN_CONFIG"
    ENV_CACHE_DIR = "PKGWHEN_CACHE_DIR"
    ENV_LOG_LEVEL = "PKGWHEN_LOG_LEVEL"
    ENV_DEPOT_PATH = "JULIA_DEPOT_PATH"
    ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
    DEFAULT_DEPOT_DIR = ".julia"
    CONFIG_DIR_NAME = "pkgwhen"
    CONFIG_FILE_NAME = "config.yml"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

    GITHUB_API_BASE = "https://api.github.com"
    GH_COMMAND = "gh"
    GH_TIMEOUT_SEC = 30
    AUTOMERGE_LABEL = "automerge"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_CACHE_TTL_SEC = 300

    DEFAULT_MAX_WORKERS = 4
    DISPLAY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
