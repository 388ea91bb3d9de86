#!/usr/bin/env python3
"""xctools - command-line companion for Apple platform build pipelines.

This module generates an acknowledgements file for an Xcode project:

1. Locates the most recent DerivedData folder for the app
2. Reads the resolved Swift packages and their license files
3. Collects contributors from the git history, merging name variants
4. Writes everything as a JSON report (contributor emails are never written)

Usage (CLI):
    # Write acknowledgements.json into the Resources folder
    xctools acknowledgements --app-name MyApp --output MyApp/Resources

    # Use a custom DerivedData location
    xctools acknowledgements -a MyApp -o Credits.json --derived-data ~/DD

Usage (API):
    from xctools import acknowledgements

    message = acknowledgements("MyApp", "MyApp/Resources")
"""

import argparse
import datetime
import json
import logging
import os
import subprocess
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

# ----------------------------------------------------------------------------
# Constants

__version__ = "0.1.0"

# Type aliases
Pathlike = Path | str

# Takes a command as a list of arguments and returns its stdout.
# Raises CommandError when the command cannot be run or fails.
CommandRunner = Callable[[list[str]], str]

# Default DerivedData location, relative to the user's home directory
DEFAULT_DERIVED_DATA = Path("Library") / "Developer" / "Xcode" / "DerivedData"

# Xcode preference holding a custom DerivedData location
XCODE_DEFAULTS_DOMAIN = "com.apple.dt.Xcode"
XCODE_DERIVED_DATA_KEY = "IDECustomDerivedDataLocation"

# Environment variable names
ENV_DERIVED_DATA = "XCTOOLS_DERIVED_DATA"

# Layout of a DerivedData folder
SOURCE_PACKAGES_DIR = "SourcePackages"
CHECKOUTS_DIR = "checkouts"
WORKSPACE_STATE_FILE = "workspace-state.json"

# Name used when the output path is a directory
DEFAULT_OUTPUT_FILENAME = "acknowledgements.json"

# One line per commit: "<author name> <<author email>>"
GIT_LOG_COMMAND = ["git", "--no-pager", "log", "--pretty=format:%an <%ae>"]

# Known author aliases mapped to a canonical full name
DEFAULT_NAME_ALIASES: dict[str, str] = {
    "kamaal111": "Kamaal Farah",
    "Kamaal": "Kamaal Farah",
}

CONFIG_SECTION = "acknowledgements"

logger = logging.getLogger("xctools")

# ----------------------------------------------------------------------------
# Optional dotenv support


def _load_dotenv() -> None:
    """Attempt to load .env file if python-dotenv is available."""
    try:
        from dotenv import load_dotenv

        load_dotenv()
    except ImportError:
        pass


_load_dotenv()

# ----------------------------------------------------------------------------
# Error handling


class XCToolsError(Exception):
    """Base exception class for xctools errors."""


class CommandError(XCToolsError):
    """Exception raised when an external command fails."""

    def __init__(
        self, command: str, returncode: int, output: str | None = None
    ):
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command '{command}' failed with return code {returncode}"
        )


class ConfigurationError(XCToolsError):
    """Exception raised when configuration is invalid or unavailable."""


class NotFoundError(XCToolsError):
    """Exception raised when a required file or directory is missing."""


class ArtifactsNotFoundError(NotFoundError):
    """No DerivedData folder exists for the app."""


class ManifestReadError(NotFoundError):
    """workspace-state.json is missing or unreadable."""


class CheckoutsNotFoundError(NotFoundError):
    """The package checkouts directory is missing."""


class ParseError(XCToolsError):
    """Exception raised when an input file cannot be decoded."""


class ManifestParseError(ParseError):
    """workspace-state.json is not valid JSON or has the wrong shape."""


class FileError(XCToolsError):
    """Exception raised when a file operation fails."""


class DirReadError(FileError):
    """Reading the package checkouts failed."""


class WriteError(FileError):
    """The acknowledgements file could not be written."""


class SerializationError(XCToolsError):
    """Exception raised when the report cannot be encoded as JSON."""


# ----------------------------------------------------------------------------
# Configuration file support


def load_config(config_path: Path | None = None) -> dict[str, object]:
    """Load configuration from a TOML file.

    Searches for configuration in the following order:
    1. Explicit config_path if provided
    2. .xctools.toml in current directory
    3. xctools.toml in current directory

    Args:
        config_path: Optional explicit path to config file

    Returns:
        Configuration dictionary (empty if no config found)

    Raises:
        ConfigurationError: If config_path does not exist, or a config
            file cannot be read or parsed

    Example .xctools.toml:
        [acknowledgements]
        derived_data = "~/Library/Developer/Xcode/CustomDerivedData"
        output = "MyApp/Resources"

        [acknowledgements.aliases]
        jdoe = "John Doe"
    """
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    if config_path is not None:
        if not config_path.is_file():
            raise ConfigurationError(f"Config file not found: {config_path}")
        paths_to_try = [config_path]
    else:
        cwd = Path.cwd()
        paths_to_try = [
            cwd / ".xctools.toml",
            cwd / "xctools.toml",
        ]

    for path in paths_to_try:
        if not path.is_file():
            continue
        try:
            with open(path, "rb") as f:
                data: dict[str, object] = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load config file {path}: {e}"
            ) from e
        logger.debug("loaded config: %s", path)
        return data

    return {}


def get_config_value(
    config: dict[str, object],
    section: str,
    key: str,
    default: str | None = None,
) -> str | None:
    """Get a value from config with section.key lookup.

    Args:
        config: Configuration dictionary
        section: Section name (e.g., "acknowledgements")
        key: Key name within section
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    section_config = config.get(section, {})
    if not isinstance(section_config, dict):
        return default
    value = section_config.get(key, default)
    if value is None or isinstance(value, str):
        return value
    return default


def get_config_table(
    config: dict[str, object], section: str, key: str
) -> dict[str, str]:
    """Get a string-to-string table nested in a config section.

    Raises:
        ConfigurationError: If the table holds non-string values
    """
    section_config = config.get(section, {})
    if not isinstance(section_config, dict):
        return {}
    table = section_config.get(key, {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"[{section}.{key}] must be a table")
    for name, value in table.items():
        if not isinstance(value, str):
            raise ConfigurationError(
                f"[{section}.{key}] value for '{name}' must be a string"
            )
    return dict(table)


# Global config (loaded lazily)
_config: dict[str, object] | None = None


def get_config() -> dict[str, object]:
    """Get the global configuration, loading it if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


# ----------------------------------------------------------------------------
# Logging configuration


class CustomFormatter(logging.Formatter):
    """Logging formatter with elapsed time and colored level names."""

    class color:
        """Text colors for terminal output."""

        white = "\x1b[97;20m"
        grey = "\x1b[38;20m"
        green = "\x1b[32;20m"
        yellow = "\x1b[33;20m"
        red = "\x1b[31;20m"
        bold_red = "\x1b[31;1m"
        reset = "\x1b[0m"

    PLAIN_FORMAT = (
        "%(delta)s - %(levelname)s - %(name)s.%(funcName)s - %(message)s"
    )

    LEVEL_COLORS = {
        logging.DEBUG: color.grey,
        logging.INFO: color.green,
        logging.WARNING: color.yellow,
        logging.ERROR: color.red,
        logging.CRITICAL: color.bold_red,
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def _colored_format(self, levelno: int) -> str:
        c = self.color
        level_color = self.LEVEL_COLORS.get(levelno, c.grey)
        return (
            f"{c.white}%(delta)s{c.reset} - "
            f"{level_color}%(levelname)s{c.reset} - "
            f"{c.white}%(name)s.%(funcName)s{c.reset} - "
            f"{c.grey}%(message)s{c.reset}"
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with color if enabled."""
        if self.use_color:
            log_fmt = self._colored_format(record.levelno)
        else:
            log_fmt = self.PLAIN_FORMAT
        elapsed = datetime.datetime.fromtimestamp(
            record.relativeCreated / 1000, datetime.timezone.utc
        )
        record.delta = elapsed.strftime("%H:%M:%S")
        return logging.Formatter(log_fmt).format(record)


def setup_logging(debug: bool = False, use_color: bool = True) -> None:
    """Configure logging for the application.

    Log records go to stderr so stdout only carries command results.

    Args:
        debug: Whether to enable debug logging
        use_color: Whether to use colored output
    """
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(CustomFormatter(use_color))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        handlers=[stream_handler],
        force=True,
    )


# ----------------------------------------------------------------------------
# Command execution utilities


def run_command(
    command: list[str],
    log: logging.Logger | None = None,
) -> str:
    """Run a command and return its output.

    All external tools (git, defaults) go through this function so that
    callers can substitute a fake runner in tests. Uses shell=False.

    Args:
        command: The command as a list of arguments
        log: Optional logger for debug output (defaults to module logger)

    Returns:
        The command stdout output

    Raises:
        CommandError: If the command is missing or exits non-zero
    """
    log = log or logger
    cmd_str = " ".join(command)
    log.debug("%s", cmd_str)
    try:
        result = subprocess.run(
            command,
            shell=False,
            check=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            capture_output=True,
        )
        return result.stdout
    except subprocess.CalledProcessError as e:
        raise CommandError(cmd_str, e.returncode, e.stderr or e.output) from e
    except OSError as e:
        raise CommandError(cmd_str, -1, str(e)) from e


# ----------------------------------------------------------------------------
# Data model


@dataclass(frozen=True)
class PackageReference:
    """A resolved Swift package as listed in workspace-state.json."""

    name: str
    location: str


@dataclass(frozen=True)
class PackageAcknowledgement:
    """A third-party package entry of the report."""

    name: str
    license: str | None
    author: str
    url: str

    def to_dict(self) -> dict[str, str | None]:
        return {
            "name": self.name,
            "license": self.license,
            "author": self.author,
            "url": self.url,
        }


@dataclass(frozen=True)
class Contributor:
    """A person who committed to the project.

    The email is only kept while reconciling name variants and is never
    serialized.
    """

    name: str
    email: str | None = None
    contributions: int = 1

    @property
    def name_parts(self) -> list[str]:
        return self.name.split()

    @property
    def first_name(self) -> str | None:
        parts = self.name_parts
        return parts[0] if parts else None

    @property
    def has_only_a_single_name(self) -> bool:
        return len(self.name_parts) == 1

    def without_email(self) -> "Contributor":
        return replace(self, email=None)

    def to_dict(self) -> dict[str, str | int]:
        return {"name": self.name, "contributions": self.contributions}


@dataclass(frozen=True)
class Acknowledgements:
    """The report: third-party packages and project contributors."""

    packages: list[PackageAcknowledgement]
    contributors: list[Contributor]

    def to_dict(self) -> dict[str, list[dict]]:
        return {
            "packages": [p.to_dict() for p in self.packages],
            "contributors": [c.to_dict() for c in self.contributors],
        }


# ----------------------------------------------------------------------------
# DerivedData discovery


def _non_empty_path(value: Pathlike | None) -> Path | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return Path(text).expanduser()


def get_user_configured_derived_data_base(
    runner: CommandRunner = run_command,
) -> Path | None:
    """Read the custom DerivedData location from Xcode's preferences.

    Returns:
        The configured location, or None when Xcode uses its default
        (the preference is unset, empty, or `defaults` is unavailable)
    """
    try:
        stdout = runner(
            ["defaults", "read", XCODE_DEFAULTS_DOMAIN, XCODE_DERIVED_DATA_KEY]
        )
    except CommandError as e:
        logger.debug("no custom DerivedData location: %s", e)
        return None
    return _non_empty_path(stdout)


def get_default_derived_data_base() -> Path:
    """Return ~/Library/Developer/Xcode/DerivedData.

    Raises:
        ConfigurationError: If the home directory cannot be resolved
    """
    try:
        home = Path.home()
    except RuntimeError as e:
        raise ConfigurationError("Failed to load home directory") from e
    # expanduser leaves "~" untouched when no home can be found
    if not home.is_absolute():
        raise ConfigurationError("Failed to load home directory")
    return home / DEFAULT_DERIVED_DATA


def get_derived_data_base(
    derived_data: Pathlike | None = None,
    config: dict[str, object] | None = None,
    runner: CommandRunner = run_command,
) -> Path:
    """Resolve the directory that holds DerivedData folders.

    Lookup order: explicit argument, XCTOOLS_DERIVED_DATA, the
    [acknowledgements] derived_data config key, Xcode's preference, and
    finally the default location under the home directory. Empty values
    count as unset.
    """
    overrides = (
        derived_data,
        os.getenv(ENV_DERIVED_DATA),
        get_config_value(config or {}, CONFIG_SECTION, "derived_data"),
    )
    for value in overrides:
        path = _non_empty_path(value)
        if path is not None:
            return path

    configured = get_user_configured_derived_data_base(runner)
    if configured is not None:
        return configured

    return get_default_derived_data_base()


def _modified_time(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def find_derived_data_for_app(
    app_name: str,
    derived_data: Pathlike | None = None,
    config: dict[str, object] | None = None,
    runner: CommandRunner = run_command,
) -> Path:
    """Find the most recently modified DerivedData folder of an app.

    Xcode names these folders "<app_name>-<hash>". Candidates are scanned
    in path order; the first one with the latest modification time wins.

    Raises:
        ArtifactsNotFoundError: If no matching folder exists
        ConfigurationError: If no base directory can be resolved
    """
    base = get_derived_data_base(derived_data, config, runner)
    prefix = f"{app_name}-"
    logger.debug("searching %s for %s*", base, prefix)

    try:
        children = sorted(base.iterdir())
    except OSError as e:
        logger.debug("cannot list %s: %s", base, e)
        children = []

    candidates = [
        path
        for path in children
        if path.name.startswith(prefix) and path.is_dir()
    ]
    if not candidates:
        raise ArtifactsNotFoundError(
            f"Could not find any DerivedData for project '{app_name}' "
            f"in {base}, make sure to build at least once"
        )

    latest = max(candidates, key=_modified_time)
    logger.info("using DerivedData: %s", latest)
    return latest


# ----------------------------------------------------------------------------
# Swift package metadata


def parse_package_references(
    workspace_state: object,
) -> list[PackageReference]:
    """Extract the package references from decoded workspace-state.json.

    Raises:
        ManifestParseError: If the document does not have the
            object.dependencies[].packageRef.{name,location} shape
    """
    if not isinstance(workspace_state, dict):
        raise ManifestParseError(
            f"Failed to parse {WORKSPACE_STATE_FILE}; expected a JSON object"
        )
    state_object = workspace_state.get("object")
    dependencies = (
        state_object.get("dependencies")
        if isinstance(state_object, dict)
        else None
    )
    if not isinstance(dependencies, list):
        raise ManifestParseError(
            f"Failed to parse {WORKSPACE_STATE_FILE}; "
            "missing 'object.dependencies' list"
        )

    references = []
    for index, dependency in enumerate(dependencies):
        ref = (
            dependency.get("packageRef")
            if isinstance(dependency, dict)
            else None
        )
        if not (
            isinstance(ref, dict)
            and isinstance(ref.get("name"), str)
            and isinstance(ref.get("location"), str)
        ):
            raise ManifestParseError(
                f"Failed to parse {WORKSPACE_STATE_FILE}; dependency "
                f"{index} has no packageRef with a name and location"
            )
        references.append(PackageReference(ref["name"], ref["location"]))
    return references


def get_packages_urls(workspace_state_path: Path) -> dict[str, str]:
    """Map each resolved package name to its location, sorted by name.

    When a name appears more than once the last entry wins.

    Raises:
        ManifestReadError: If the file is missing or unreadable
        ManifestParseError: If the file cannot be decoded
    """
    try:
        content = workspace_state_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestReadError(
            f"Failed to read {WORKSPACE_STATE_FILE}; error='{e}'"
        ) from e
    try:
        workspace_state = json.loads(content)
    except json.JSONDecodeError as e:
        raise ManifestParseError(
            f"Failed to parse {WORKSPACE_STATE_FILE}; error='{e}'"
        ) from e

    packages: dict[str, str] = {}
    for reference in parse_package_references(workspace_state):
        packages[reference.name] = reference.location
    return dict(sorted(packages.items()))


def find_license_file(package_dir: Path) -> Path | None:
    """Return the first file in package_dir whose name contains "license".

    The match is case-insensitive and follows directory scan order.
    """
    for path in package_dir.iterdir():
        if "license" in path.name.lower() and path.is_file():
            return path
    return None


def get_packages_licenses(checkouts_dir: Path) -> dict[str, str]:
    """Read license texts from the package checkouts.

    Each subdirectory of checkouts_dir is one package, named like the
    package itself. Packages without a license file are left out.

    Raises:
        CheckoutsNotFoundError: If checkouts_dir is not a directory
        DirReadError: If a directory or license file cannot be read
    """
    if not checkouts_dir.is_dir():
        raise CheckoutsNotFoundError(
            "Failed to read packages directory contents; "
            f"directory does not exist: {checkouts_dir}"
        )

    licenses: dict[str, str] = {}
    try:
        package_dirs = [p for p in checkouts_dir.iterdir() if p.is_dir()]
        for package_dir in package_dirs:
            license_path = find_license_file(package_dir)
            if license_path is None:
                logger.debug("no license file in %s", package_dir)
                continue
            # bytes keep CRLF line endings intact
            licenses[package_dir.name] = license_path.read_bytes().decode(
                "utf-8"
            )
    except (OSError, UnicodeDecodeError) as e:
        raise DirReadError(
            f"Failed to read packages directory contents; error='{e}'"
        ) from e
    return licenses


def package_author_from_url(url: str) -> str:
    """Derive the package author from its location.

    https://github.com/<author>/<repo> gives <author>. Locations with a
    single segment give that segment, or "unknown" when it is empty.
    """
    parts = url.split("/")
    if len(parts) >= 2:
        return parts[-2]
    return parts[0] or "unknown"


def make_packages_acknowledgements(
    packages_urls: dict[str, str],
    packages_licenses: dict[str, str],
) -> list[PackageAcknowledgement]:
    return [
        PackageAcknowledgement(
            name=name,
            license=packages_licenses.get(name),
            author=package_author_from_url(url),
            url=url,
        )
        for name, url in sorted(packages_urls.items())
    ]


def get_packages_acknowledgements(
    artifacts_dir: Path,
) -> list[PackageAcknowledgement]:
    """Build package acknowledgements from a DerivedData folder."""
    packages_dir = artifacts_dir / SOURCE_PACKAGES_DIR
    licenses = get_packages_licenses(packages_dir / CHECKOUTS_DIR)
    urls = get_packages_urls(packages_dir / WORKSPACE_STATE_FILE)
    packages = make_packages_acknowledgements(urls, licenses)
    logger.info(
        "found %d packages (%d with a license)", len(packages), len(licenses)
    )
    return packages


# ----------------------------------------------------------------------------
# Contributors from git history


def extract_name_out_of_contributors_line(line: str) -> str | None:
    """Return the trimmed text before the first "<", if any."""
    end = line.find("<")
    if end == -1:
        return None
    name = line[:end].strip()
    return name or None


def extract_email_out_of_contributors_line(line: str) -> str | None:
    """Return the text between the first "<" and the first ">"."""
    start = line.find("<")
    end = line.find(">")
    if start == -1 or end == -1 or end <= start:
        return None
    return line[start + 1 : end]


def patch_contributor_name(
    name: str, aliases: dict[str, str] | None = None
) -> str:
    """Map a known alias to its canonical name; other names pass through."""
    if aliases is None:
        aliases = DEFAULT_NAME_ALIASES
    return aliases.get(name, name)


def resolve_name_aliases(config: dict[str, object] | None) -> dict[str, str]:
    """Default aliases updated with [acknowledgements.aliases]."""
    aliases = dict(DEFAULT_NAME_ALIASES)
    aliases.update(get_config_table(config or {}, CONFIG_SECTION, "aliases"))
    return aliases


def parse_contributor_lines(
    lines: Iterable[str], aliases: dict[str, str] | None = None
) -> dict[str, list[str]]:
    """Group the author names found in git log lines by email.

    Lines without a usable name or email are skipped.
    """
    names_by_email: dict[str, list[str]] = {}
    for line in lines:
        email = extract_email_out_of_contributors_line(line)
        name = extract_name_out_of_contributors_line(line)
        if email is None or name is None:
            continue
        names_by_email.setdefault(email, []).append(
            patch_contributor_name(name, aliases)
        )
    return names_by_email


def get_contributor_log(
    repo: Pathlike | None = None, runner: CommandRunner = run_command
) -> list[str]:
    """Return one "name <email>" line per commit.

    Returns an empty list when git is unavailable or repo is not a
    repository.
    """
    command = list(GIT_LOG_COMMAND)
    if repo is not None:
        command[1:1] = ["-C", str(repo)]
    try:
        output = runner(command)
    except CommandError as e:
        logger.warning("no git history available, skipping contributors")
        logger.debug("%s", e)
        return []
    return output.splitlines()


# ----------------------------------------------------------------------------
# Contributor reconciliation


class MergeDecision(Enum):
    """How a contributor relates to an already merged one."""

    SKIP = "skip"
    MERGE = "merge"
    DISTINCT = "distinct"


def aggregate_contributors(
    names_by_email: dict[str, list[str]],
) -> list[Contributor]:
    """Collapse each email into one contributor.

    The longest name variant is kept (first seen on ties) and every
    observation counts as one contribution.
    """
    contributors = []
    for email, names in names_by_email.items():
        if not names:
            continue
        longest_name = max(names, key=len)
        contributors.append(Contributor(longest_name, email, len(names)))
    return contributors


def merge_decision(
    candidate: Contributor, existing: Contributor
) -> MergeDecision:
    """Decide whether candidate is the same person as existing.

    Matching requires equal first names, plus either identical full names
    or exactly one single-token name with differing token counts. So
    "John" matches "John Doe", but "John Doe" never matches "John Smith".
    """
    first_name = candidate.first_name
    if not first_name:
        return MergeDecision.SKIP
    if first_name != existing.first_name:
        return MergeDecision.DISTINCT
    if candidate.name == existing.name:
        return MergeDecision.MERGE

    one_has_a_single_name = (
        candidate.has_only_a_single_name or existing.has_only_a_single_name
    ) and len(candidate.name_parts) != len(existing.name_parts)
    if one_has_a_single_name:
        return MergeDecision.MERGE
    return MergeDecision.DISTINCT


def merge_contributor_pair(
    candidate: Contributor, existing: Contributor
) -> Contributor:
    """Combine two records of one person, keeping the candidate's email."""
    if len(candidate.name) >= len(existing.name):
        name = candidate.name
    else:
        name = existing.name
    return Contributor(
        name=name,
        email=candidate.email,
        contributions=candidate.contributions + existing.contributions,
    )


def merge_contributors_with_similar_names(
    contributors: list[Contributor],
) -> list[Contributor]:
    """Fold contributors into a list where each person appears once.

    Input is sorted by name first so the outcome does not depend on the
    order emails were grouped in. A contributor whose first name is taken
    by someone it does not match is kept as a separate entry.
    """
    merged: list[Contributor] = []
    ordered = sorted(contributors, key=lambda c: (c.name, c.email or ""))
    for candidate in ordered:
        if not candidate.first_name:
            logger.debug("skipping nameless contributor <%s>", candidate.email)
            continue

        for index, existing in enumerate(merged):
            if merge_decision(candidate, existing) is MergeDecision.MERGE:
                logger.debug(
                    "merging '%s' into '%s'", candidate.name, existing.name
                )
                merged[index] = merge_contributor_pair(candidate, existing)
                break
        else:
            if any(c.first_name == candidate.first_name for c in merged):
                logger.debug(
                    "keeping '%s' as a separate contributor", candidate.name
                )
            merged.append(candidate)
    return merged


def reconcile_contributors(
    names_by_email: dict[str, list[str]],
) -> list[Contributor]:
    """Aggregate, merge and sort contributors, dropping their emails."""
    aggregated = aggregate_contributors(names_by_email)
    merged = merge_contributors_with_similar_names(aggregated)
    merged.sort(key=lambda c: c.name.lower())
    return [c.without_email() for c in merged]


def get_contributors_list(
    repo: Pathlike | None = None,
    aliases: dict[str, str] | None = None,
    runner: CommandRunner = run_command,
) -> list[Contributor]:
    """Collect the project's contributors from git history."""
    lines = get_contributor_log(repo, runner)
    names_by_email = parse_contributor_lines(lines, aliases)
    contributors = reconcile_contributors(names_by_email)
    logger.info(
        "found %d contributors in %d commits", len(contributors), len(lines)
    )
    return contributors


# ----------------------------------------------------------------------------
# Report output


def make_final_output_path(output: Pathlike) -> Path:
    """Append acknowledgements.json when output is an existing directory."""
    output_path = Path(output)
    if output_path.is_dir():
        return output_path / DEFAULT_OUTPUT_FILENAME
    return output_path


def write_acknowledgements(
    report: Acknowledgements, output_path: Path
) -> None:
    """Write the report as pretty-printed UTF-8 JSON.

    Raises:
        SerializationError: If the report cannot be encoded
        WriteError: If output_path cannot be written
    """
    try:
        content = json.dumps(report.to_dict(), indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f"Failed to serialize acknowledgements to JSON: {e}"
        ) from e
    try:
        output_path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise WriteError(
            f"Failed to write acknowledgements to file: {output_path}; "
            f"error='{e}'"
        ) from e


def acknowledgements(
    app_name: str,
    output: Pathlike,
    derived_data: Pathlike | None = None,
    repo: Pathlike | None = None,
    config: dict[str, object] | None = None,
    aliases: dict[str, str] | None = None,
    runner: CommandRunner = run_command,
) -> str:
    """Generate the acknowledgements file for an Xcode app.

    Packages come from the app's latest DerivedData folder and
    contributors from the git history of repo (default: current
    directory). Nothing is written unless package metadata was read.

    Args:
        app_name: Xcode app/project name used to find DerivedData
        output: File path, or existing directory to write
            acknowledgements.json into
        derived_data: Optional DerivedData base directory override
        repo: Optional git repository to read contributors from
        config: Configuration dictionary (see load_config)
        aliases: Author alias table; defaults to DEFAULT_NAME_ALIASES
            updated with [acknowledgements.aliases]
        runner: Command runner used for git and defaults

    Returns:
        A confirmation message naming the written file

    Raises:
        XCToolsError: If package metadata cannot be read or the report
            cannot be written
    """
    if aliases is None:
        aliases = resolve_name_aliases(config)

    artifacts_dir = find_derived_data_for_app(
        app_name, derived_data, config, runner
    )
    packages = get_packages_acknowledgements(artifacts_dir)
    contributors = get_contributors_list(repo, aliases, runner)

    final_output_path = make_final_output_path(output)
    write_acknowledgements(
        Acknowledgements(packages, contributors), final_output_path
    )
    return f"Acknowledgements written to: {final_output_path}"


# ----------------------------------------------------------------------------
# Command-line interface


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    """Add common options to a parser."""
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="config file (default: ./.xctools.toml or ./xctools.toml)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="enable verbose/debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="disable colored output",
    )


def _cmd_acknowledgements(args: argparse.Namespace) -> None:
    """Handle 'acknowledgements' subcommand."""
    setup_logging(args.verbose, not args.no_color)

    if args.config:
        config = load_config(Path(args.config))
    else:
        config = get_config()

    output = args.output
    if output is None:
        output = get_config_value(config, CONFIG_SECTION, "output")
    if not output:
        raise ConfigurationError(
            "No output path given; pass --output or set "
            f"[{CONFIG_SECTION}] output in the config file"
        )

    message = acknowledgements(
        app_name=args.app_name,
        output=output,
        derived_data=args.derived_data,
        repo=args.repo,
        config=config,
    )
    print(message)


def main(argv: list[str] | None = None) -> None:
    """Command line interface for xctools."""
    try:
        parser = argparse.ArgumentParser(
            prog="xctools",
            description="Companion tools for Xcode build pipelines.",
            epilog=(
                "Examples:\n"
                "  xctools acknowledgements -a MyApp -o MyApp/Resources\n"
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {__version__}",
        )

        subparsers = parser.add_subparsers(
            title="commands",
            dest="command",
            required=True,
        )

        # --- acknowledgements subcommand ---
        ack_parser = subparsers.add_parser(
            "acknowledgements",
            help="generate acknowledgements file",
            description=(
                "Generate a JSON acknowledgements file listing the Swift "
                "packages of an app and the contributors of its git "
                "repository."
            ),
            epilog=(
                "Examples:\n"
                "  xctools acknowledgements -a MyApp -o MyApp/Resources\n"
                "  xctools acknowledgements -a MyApp -o Credits.json\n"
                "  xctools acknowledgements -a MyApp -o . --derived-data DD\n"
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        ack_parser.add_argument(
            "-a",
            "--app-name",
            required=True,
            metavar="NAME",
            help="app name used to locate its DerivedData folder",
        )
        ack_parser.add_argument(
            "-o",
            "--output",
            metavar="PATH",
            help=(
                "output file, or directory to write "
                f"{DEFAULT_OUTPUT_FILENAME} into"
            ),
        )
        ack_parser.add_argument(
            "--derived-data",
            metavar="DIR",
            help=(
                "DerivedData base directory "
                f"(or set {ENV_DERIVED_DATA} env var)"
            ),
        )
        ack_parser.add_argument(
            "--repo",
            metavar="DIR",
            help="git repository to read contributors from (default: cwd)",
        )
        _add_common_options(ack_parser)
        ack_parser.set_defaults(func=_cmd_acknowledgements)

        args = parser.parse_args(argv)
        args.func(args)

    except XCToolsError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        print(f"Error: unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
