#!/usr/bin/env -S uv run --script
# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "requests>=2.32.0",
#     "tabulate>=0.9.0",
#     "pyyaml>=6.0.1",
# ]
# ///
"""Jaz accounting CLI.

Multi-org API key profiles, concurrent auto-pagination and fuzzy entity
resolution for the Jaz REST API (https://api.getjaz.com).

Usage examples:
    ./scripts/jaz_cli.py auth add jk-xxxxxxxx
    ./scripts/jaz_cli.py --org acme-pte-ltd invoices list --all
    ./scripts/jaz_cli.py --format json accounts resolve "sales revnue"
    ./scripts/jaz_cli.py bank-accounts resolve business
"""

from __future__ import annotations

import argparse
import json
import os
import re
import shlex
import signal
import sys
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import requests
from tabulate import tabulate

# Prevent BrokenPipeError when piping output
signal.signal(signal.SIGPIPE, signal.SIG_DFL)

API_BASE_URL = "https://api.getjaz.com"
API_KEY_PREFIX = "jk-"
CONFIG_DIR_NAME = "jaz-clio"
CREDENTIALS_FILENAME = "credentials.json"
SCHEMA_VERSION = 2

ENV_API_KEY = "JAZ_API_KEY"
ENV_ORG = "JAZ_ORG"
ENV_CREDENTIALS_FILE = "JAZ_CREDENTIALS_FILE"
ENV_BASE_URL = "JAZ_BASE_URL"

# The API rejects offsets above this value (inclusive ceiling).
MAX_OFFSET = 65_536
DEFAULT_PAGE_SIZE = 200
MAX_PAGE_SIZE = 1000
DEFAULT_CONCURRENCY = 5
DEFAULT_LIST_LIMIT = 100
RETRY_STATUS_CODES = (429, 503)

SOURCE_FLAG_KEY = "flag-key"
SOURCE_ENV_KEY = "env-key"
SOURCE_FLAG_ORG = "flag-org"
SOURCE_ENV_ORG = "env-org"
SOURCE_ACTIVE_FILE = "active-file"

AUTH_SOURCE_DESCRIPTIONS = {
    SOURCE_FLAG_KEY: "via --api-key flag",
    SOURCE_ENV_KEY: f"via {ENV_API_KEY} env",
    SOURCE_FLAG_ORG: "pinned via --org flag",
    SOURCE_ENV_ORG: f"pinned via {ENV_ORG} env",
    SOURCE_ACTIVE_FILE: "from shared config (not pinned)",
}

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


# Errors


class CliError(Exception):
    """Base class for failures reported to the user with an exit code."""

    exit_code = 2


class UsageError(CliError):
    exit_code = 1


class AuthError(CliError):
    exit_code = 3


class StoreIOError(CliError):
    exit_code = 2


class ResolutionError(CliError):
    """An entity reference matched zero or several candidates.

    ``kind`` is ``ambiguous``, ``suggestions`` or ``not_found``; ``candidates``
    holds the display names the caller can offer back to the user.
    """

    exit_code = 1

    def __init__(self, message: str, *, kind: str, candidates: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.candidates = list(candidates or [])


class ApiError(CliError):
    def __init__(self, message: str, status: int, body: Any, endpoint: str) -> None:
        super().__init__(message)
        self.status = status
        self.body = body
        self.endpoint = endpoint


@dataclass
class AppConfig:
    base_url: str = API_BASE_URL
    debug: bool = False
    request_timeout: float = 30.0
    max_retries: int = 3


# Credential store


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass
class Profile:
    api_key: str
    display_name: str
    org_id: str = ""
    currency: str = ""
    country: str = ""
    added_at: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Profile":
        return cls(
            api_key=str(payload.get("apiKey", "")),
            display_name=str(payload.get("displayName", "")),
            org_id=str(payload.get("orgId", "")),
            currency=str(payload.get("currency", "")),
            country=str(payload.get("country", "")),
            added_at=str(payload.get("addedAt", "")),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "apiKey": self.api_key,
            "displayName": self.display_name,
            "orgId": self.org_id,
            "currency": self.currency,
            "country": self.country,
            "addedAt": self.added_at,
        }


@dataclass
class CredentialsFile:
    active_label: str = ""
    profiles: Dict[str, Profile] = field(default_factory=dict)
    schema_version: int = SCHEMA_VERSION

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CredentialsFile":
        """Build from parsed JSON; raises ValueError when the shape is wrong."""
        raw_profiles = payload.get("profiles") or {}
        if not isinstance(raw_profiles, Mapping):
            raise ValueError("profiles must be an object")
        version = payload.get("schemaVersion", SCHEMA_VERSION)
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValueError(f"unsupported schemaVersion: {version!r}")
        profiles = {
            str(label): Profile.from_dict(entry) for label, entry in raw_profiles.items() if isinstance(entry, Mapping)
        }
        active = str(payload.get("activeLabel") or "")
        if active not in profiles:
            active = ""
        return cls(
            active_label=active,
            profiles=profiles,
            schema_version=version,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "activeLabel": self.active_label,
            "profiles": {label: profile.to_dict() for label, profile in self.profiles.items()},
        }


def upgrade_legacy_credentials(raw: Mapping[str, Any]) -> Optional[CredentialsFile]:
    """Convert a legacy ``{apiKey, createdAt}`` file into the profile format."""
    api_key = raw.get("apiKey")
    if not api_key:
        return None
    profile = Profile(
        api_key=str(api_key),
        display_name="Unknown (migrated)",
        added_at=str(raw.get("createdAt") or utc_now_iso()),
    )
    return CredentialsFile(active_label="default", profiles={"default": profile})


def get_config_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if env is None else env
    if sys.platform.startswith("win"):
        return Path(env.get("APPDATA", str(Path.home()))) / CONFIG_DIR_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / CONFIG_DIR_NAME
    xdg = env.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / CONFIG_DIR_NAME
    return Path.home() / ".config" / CONFIG_DIR_NAME


def default_credentials_path(env: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if env is None else env
    override = env.get(ENV_CREDENTIALS_FILE)
    if override:
        return Path(override).expanduser()
    return get_config_dir(env) / CREDENTIALS_FILENAME


class CredentialStore:
    """Multi-org API key profiles persisted as one JSON file.

    Every mutation rewrites the whole file through a temp file, fsync and
    rename, so readers only ever see a complete old or new version.
    """

    def __init__(self, path: Path):
        self.path = path

    @classmethod
    def default(cls) -> "CredentialStore":
        return cls(default_credentials_path())

    def read(self) -> Optional[CredentialsFile]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        if not isinstance(raw, dict):
            return None
        if "schemaVersion" in raw:
            try:
                return CredentialsFile.from_dict(raw)
            except ValueError:
                return None
        upgraded = upgrade_legacy_credentials(raw)
        if upgraded is not None:
            self.persist_upgrade(upgraded)
        return upgraded

    def persist_upgrade(self, creds: CredentialsFile) -> bool:
        # Read-only filesystems are fine: the upgraded value still serves this process.
        try:
            self.write(creds)
        except StoreIOError:
            return False
        return True

    def write(self, creds: CredentialsFile) -> None:
        payload = json.dumps(creds.to_dict(), indent=2) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # One temp file per writer; concurrent writers must not share it
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name + ".", suffix=".tmp")
        except OSError as exc:
            raise StoreIOError(f"Could not write credentials to {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreIOError(f"Could not write credentials to {self.path}: {exc}") from exc
        finally:
            if os.path.exists(tmp):
                os.unlink(tmp)

    def clear(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StoreIOError(f"Could not remove {self.path}: {exc}") from exc
        return True

    def get_profile(self, label: str) -> Optional[Profile]:
        creds = self.read()
        return creds.profiles.get(label) if creds else None

    def set_profile(self, label: str, profile: Profile) -> None:
        creds = self.read() or CredentialsFile()
        creds.profiles[label] = profile
        if not creds.active_label or len(creds.profiles) == 1:
            creds.active_label = label
        self.write(creds)

    def remove_profile(self, label: str) -> bool:
        creds = self.read()
        if not creds or label not in creds.profiles:
            return False
        del creds.profiles[label]
        if creds.active_label == label:
            creds.active_label = ""
        self.write(creds)
        return True

    def list_profiles(self) -> Dict[str, Profile]:
        creds = self.read()
        return dict(creds.profiles) if creds else {}

    def get_active_label(self) -> Optional[str]:
        creds = self.read()
        return (creds.active_label or None) if creds else None

    def set_active_label(self, label: str) -> None:
        creds = self.read()
        if not creds:
            raise AuthError("No credentials file found. Run `jaz auth add <key>` first.")
        if label not in creds.profiles:
            raise profile_not_found(label, creds)
        creds.active_label = label
        self.write(creds)

    def find_label_by_api_key(self, api_key: str) -> Optional[str]:
        creds = self.read()
        if not creds:
            return None
        for label, profile in creds.profiles.items():
            if profile.api_key == api_key:
                return label
        return None


def profile_not_found(label: str, creds: Optional[CredentialsFile]) -> AuthError:
    available = list(creds.profiles) if creds else []
    if available:
        hint = f" Available: {', '.join(available)}"
    else:
        hint = " No orgs registered. Run `jaz auth add <key>` first."
    return AuthError(f"Org '{label}' not found.{hint}")


# Auth resolution


@dataclass(frozen=True)
class ResolvedAuth:
    api_key: str
    source: str
    label: Optional[str] = None
    profile: Optional[Profile] = None

    @property
    def pinned(self) -> bool:
        return self.source != SOURCE_ACTIVE_FILE


def check_auth_flags(api_key: Optional[str], org: Optional[str]) -> None:
    if api_key and org:
        raise UsageError("Cannot use both --api-key and --org. Use one or the other.")


def _resolve_from_profile(creds: Optional[CredentialsFile], label: str, source: str) -> ResolvedAuth:
    profile = creds.profiles.get(label) if creds else None
    if profile is None:
        raise profile_not_found(label, creds)
    return ResolvedAuth(api_key=profile.api_key, source=source, label=label, profile=profile)


def resolve_auth(
    explicit_key: Optional[str] = None,
    *,
    org: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    store: Optional[CredentialStore] = None,
) -> Optional[ResolvedAuth]:
    """Pick the credential for one command invocation.

    Priority, first match wins:
      1. explicit key (--api-key)
      2. JAZ_API_KEY
      3. org label (--org)
      4. JAZ_ORG
      5. active profile in the credentials file
    Returns None when nothing is configured.
    """
    env = os.environ if env is None else env
    if explicit_key:
        return ResolvedAuth(api_key=explicit_key, source=SOURCE_FLAG_KEY)
    env_key = env.get(ENV_API_KEY)
    if env_key:
        return ResolvedAuth(api_key=env_key, source=SOURCE_ENV_KEY)

    store = store if store is not None else CredentialStore.default()
    creds = store.read()
    if org:
        return _resolve_from_profile(creds, org, SOURCE_FLAG_ORG)
    env_org = env.get(ENV_ORG)
    if env_org:
        return _resolve_from_profile(creds, env_org, SOURCE_ENV_ORG)
    if creds and creds.active_label:
        return _resolve_from_profile(creds, creds.active_label, SOURCE_ACTIVE_FILE)
    return None


def require_auth(
    explicit_key: Optional[str] = None,
    *,
    org: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    store: Optional[CredentialStore] = None,
) -> ResolvedAuth:
    resolved = resolve_auth(explicit_key, org=org, env=env, store=store)
    if resolved is None:
        raise AuthError(
            f"No API key configured. Run `jaz auth add <key>`, set {ENV_API_KEY}, or pass --api-key."
        )
    return resolved


def org_banner(resolved: ResolvedAuth, store: CredentialStore) -> Optional[Tuple[str, bool]]:
    """Return ``(text, is_warning)`` describing the org a command will hit."""
    if not resolved.label or resolved.profile is None:
        return None
    profile = resolved.profile
    summary = f"{resolved.label} · {profile.display_name} ({profile.currency})"
    if not resolved.pinned and len(store.list_profiles()) > 1:
        text = (
            f"  ! {summary} - not pinned to this terminal\n"
            f"    Pin: export {ENV_ORG}={resolved.label}  or  --org {resolved.label}"
        )
        return text, True
    return f"  > {summary}", False


# HTTP client


@dataclass
class Page:
    items: List[Any]
    total_elements: int

    @classmethod
    def from_response(cls, payload: Any) -> "Page":
        # Some endpoints return a bare array instead of {data, totalElements}
        if isinstance(payload, list):
            return cls(items=payload, total_elements=len(payload))
        payload = payload or {}
        items = list(payload.get("data") or [])
        total = payload.get("totalElements")
        if isinstance(total, bool) or not isinstance(total, int):
            total = len(items)
        return cls(items=items, total_elements=total)


def format_error_body(body: Any) -> str:
    if isinstance(body, str):
        return body
    if isinstance(body, dict):
        if isinstance(body.get("message"), str):
            return body["message"]
        error = body.get("error")
        if isinstance(error, str):
            return error
        if isinstance(error, dict):
            errors = error.get("errors")
            if isinstance(errors, list) and errors:
                return "; ".join(str(e) for e in errors)
            if isinstance(error.get("error_type"), str):
                return error["error_type"]
        return json.dumps(body)
    return str(body)


def _retry_delay(attempt: int, retry_after: Optional[str]) -> float:
    if retry_after:
        try:
            return max(float(retry_after), 0.0)
        except ValueError:
            pass
    return float(min(2**attempt, 8))


class JazClient:
    """Thin wrapper over ``requests`` bound to one API key."""

    def __init__(self, config: AppConfig, api_key: str):
        self.config = config
        self.api_key = api_key

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        url = self.config.base_url.rstrip("/") + "/" + path.lstrip("/")
        headers = {"x-jk-api-key": self.api_key, "Accept": "application/json"}
        if json_body is not None:
            headers["Content-Type"] = "application/json"

        attempt = 0
        while True:
            if self.config.debug:
                print(
                    f"HTTP {method} {url} params={params} json_body_present={json_body is not None} "
                    f"timeout={self.config.request_timeout} attempt={attempt}",
                    file=sys.stderr,
                )
            try:
                resp = requests.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers=headers,
                    timeout=self.config.request_timeout,
                )
            except requests.RequestException as exc:
                if attempt < self.config.max_retries:
                    delay = _retry_delay(attempt, None)
                    print(f"Request error ({exc}). Retrying after {delay:g}s...", file=sys.stderr)
                    time.sleep(delay)
                    attempt += 1
                    continue
                raise ApiError(f"{method} {path} failed: {exc}", 0, None, path) from exc

            if resp.status_code in RETRY_STATUS_CODES and attempt < self.config.max_retries:
                delay = _retry_delay(attempt, resp.headers.get("Retry-After"))
                print(f"Status {resp.status_code}. Retrying after {delay:g}s...", file=sys.stderr)
                time.sleep(delay)
                attempt += 1
                continue

            if resp.status_code >= 400:
                try:
                    body: Any = resp.json()
                except ValueError:
                    body = resp.text
                raise ApiError(
                    f"{method} {path} -> {resp.status_code}: {format_error_body(body)}",
                    resp.status_code,
                    body,
                    path,
                )
            if resp.status_code == 204 or not resp.content:
                return None
            return resp.json()

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Optional[Any] = None) -> Any:
        return self.request("POST", path, json_body=body)

    def put(self, path: str, body: Optional[Any] = None) -> Any:
        return self.request("PUT", path, json_body=body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def list_page(self, path: str, *, offset: int = 0, limit: int = DEFAULT_LIST_LIMIT) -> Page:
        return Page.from_response(self.get(path, params={"limit": limit, "offset": offset}))

    def search_page(
        self,
        path: str,
        *,
        filter: Optional[Dict[str, Any]] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        sort: Optional[Dict[str, Any]] = None,
    ) -> Page:
        body: Dict[str, Any] = {}
        if filter:
            body["filter"] = filter
        if limit is not None:
            body["limit"] = limit
        if offset is not None:
            body["offset"] = offset
        # The search API requires a sort whenever an offset is sent
        if sort:
            body["sort"] = sort
        elif offset is not None:
            body["sort"] = {"sortBy": ["createdAt"], "order": "DESC"}
        return Page.from_response(self.post(path, body))


def get_organization(client: JazClient) -> Dict[str, Any]:
    payload = client.get("/api/v1/organization") or {}
    data = payload.get("data", payload)
    if isinstance(data, list):
        data = data[0] if data else {}
    return data


def list_bank_accounts(client: JazClient) -> Page:
    return Page.from_response(client.get("/api/v1/bank-accounts"))


# Pagination


PageFetcher = Callable[[int, int], Page]
ProgressCallback = Callable[[int, int], None]


@dataclass
class FetchAllResult:
    items: List[Any]
    total_elements: int
    truncated: bool
    request_count: int


def plan_offsets(total: int, page_size: int, max_offset: int = MAX_OFFSET) -> List[int]:
    """Offsets after the first page, bounded by the total and the offset ceiling."""
    return list(range(page_size, min(total, max_offset + 1), page_size))


def fetch_all_pages(
    fetcher: PageFetcher,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: Optional[ProgressCallback] = None,
    max_offset: int = MAX_OFFSET,
) -> FetchAllResult:
    """Fetch every page of an offset-paginated endpoint.

    The first page is fetched alone to learn ``totalElements``. Remaining
    offsets are fetched in batches of ``concurrency`` parallel requests and
    appended in ascending offset order. Any failed request fails the whole
    fetch.
    """
    page_size = min(max(int(page_size), 1), MAX_PAGE_SIZE)
    concurrency = max(int(concurrency), 1)

    first = fetcher(0, page_size)
    total = first.total_elements
    items: List[Any] = list(first.items)
    request_count = 1

    if total <= page_size:
        if on_progress:
            on_progress(len(items), total)
        total = max(total, len(items))
        return FetchAllResult(items=items, total_elements=total, truncated=False, request_count=request_count)

    offsets = plan_offsets(total, page_size, max_offset)
    next_offset = (offsets[-1] if offsets else 0) + page_size
    capped = next_offset < total
    if on_progress:
        on_progress(len(items), total)

    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="jaz-page") as executor:
        for start in range(0, len(offsets), concurrency):
            batch = offsets[start : start + concurrency]
            # map() yields in submission order, not completion order
            pages = list(executor.map(lambda offset: fetcher(offset, page_size), batch))
            request_count += len(pages)
            for page in pages:
                items.extend(page.items)
            if on_progress:
                on_progress(len(items), total)

    truncated = capped and len(items) < total
    # Rows added server-side mid-fetch are kept; the total grows to match
    total = max(total, len(items))
    return FetchAllResult(items=items, total_elements=total, truncated=truncated, request_count=request_count)


def paginated_fetch(
    args: argparse.Namespace,
    fetcher: PageFetcher,
    label: str,
    *,
    default_limit: int = DEFAULT_LIST_LIMIT,
) -> Tuple[List[Any], int]:
    fetch_all = getattr(args, "all", False)
    offset = getattr(args, "offset", None)
    limit = getattr(args, "limit", None)
    if fetch_all and offset is not None:
        raise UsageError("--all and --offset cannot be used together")

    if not fetch_all:
        page = fetcher(offset or 0, limit or default_limit)
        return page.items, page.total_elements

    show_progress = getattr(args, "format", "plain") == "plain" and sys.stderr.isatty()

    def progress(fetched: int, total: int) -> None:
        sys.stderr.write(f"\r{label}... {fetched:,}/{total:,}")
        sys.stderr.flush()

    result = fetch_all_pages(
        fetcher,
        page_size=limit or DEFAULT_PAGE_SIZE,
        on_progress=progress if show_progress else None,
    )
    if show_progress:
        sys.stderr.write("\r\x1b[K")
    if result.truncated:
        print(
            f"Warning: dataset has {result.total_elements:,} items but only {len(result.items):,} "
            f"could be fetched (offset cap: {MAX_OFFSET:,})",
            file=sys.stderr,
        )
    return result.items, result.total_elements


# Fuzzy matching


def levenshtein(a: str, b: str) -> int:
    if len(a) > len(b):
        a, b = b, a
    if not a:
        return len(b)
    prev = list(range(len(a) + 1))
    for j, cb in enumerate(b, start=1):
        curr = [j] + [0] * len(a)
        for i, ca in enumerate(a, start=1):
            cost = 0 if ca == cb else 1
            curr[i] = min(prev[i] + 1, curr[i - 1] + 1, prev[i - 1] + cost)
        prev = curr
    return prev[len(a)]


def levenshtein_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def trigrams(s: str) -> Set[str]:
    padded = f" {s} "
    return {padded[i : i + 3] for i in range(len(padded) - 2)}


def trigram_similarity(a: str, b: str) -> float:
    ta = trigrams(a)
    tb = trigrams(b)
    union = ta | tb
    if not union:
        return 1.0
    return len(ta & tb) / len(union)


def fuzzy_score(a: str, b: str, *, levenshtein_weight: float = 0.4) -> float:
    al = a.lower().strip()
    bl = b.lower().strip()
    if al == bl:
        return 1.0
    lev = levenshtein_similarity(al, bl)
    tri = trigram_similarity(al, bl)
    return levenshtein_weight * lev + (1 - levenshtein_weight) * tri


@dataclass
class FuzzyMatch:
    item: Any
    score: float


def _rank(scored: Iterable[FuzzyMatch], threshold: float, limit: int) -> List[FuzzyMatch]:
    kept = [m for m in scored if m.score >= threshold]
    kept.sort(key=lambda m: m.score, reverse=True)
    return kept[:limit]


def fuzzy_match(
    query: str,
    candidates: Iterable[Any],
    get_text: Callable[[Any], str],
    *,
    threshold: float = 0.3,
    limit: int = 5,
) -> List[FuzzyMatch]:
    return _rank((FuzzyMatch(item, fuzzy_score(query, get_text(item))) for item in candidates), threshold, limit)


# Entity resolution


BANK_ACCOUNT_TYPES = ("Bank Accounts", "Cash")


def is_uuid(value: str) -> bool:
    return bool(UUID_RE.match(value))


def short_id(resource_id: str) -> str:
    return resource_id[:8] + "-..." if len(resource_id) > 12 else resource_id


@dataclass
class ResolvedEntity:
    resource_id: str
    display_name: str


def require_query(query: str, what: str) -> str:
    """Return the lower-cased, trimmed query or reject a blank one."""
    q = query.lower().strip()
    if not q:
        raise UsageError(f"Empty {what} name. Pass a name, code or resourceId.")
    return q


def resolve_account(
    query: str,
    accounts: List[Dict[str, Any]],
    *,
    threshold: float = 0.4,
    limit: int = 5,
) -> List[FuzzyMatch]:
    """Exact code, then exact name, then fuzzy match on the account name."""
    q = require_query(query, "account")
    for account in accounts:
        code = (account.get("code") or "").lower()
        if code and code == q:
            return [FuzzyMatch(account, 1.0)]
    for account in accounts:
        name = (account.get("name") or "").lower()
        if name and name == q:
            return [FuzzyMatch(account, 1.0)]
    return fuzzy_match(query, accounts, lambda a: a.get("name") or "", threshold=threshold, limit=limit)


def resolve_best_account(query: str, accounts: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    matches = resolve_account(query, accounts, threshold=0.6, limit=1)
    return matches[0].item if matches else None


def filter_line_item_accounts(accounts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        a
        for a in accounts
        if a.get("status") == "ACTIVE" and not a.get("controlFlag") and a.get("accountType") not in BANK_ACCOUNT_TYPES
    ]


def filter_payment_accounts(accounts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [a for a in accounts if a.get("status") == "ACTIVE" and a.get("accountType") in BANK_ACCOUNT_TYPES]


def _contact_names(contact: Dict[str, Any]) -> List[str]:
    return [n for n in (contact.get("billingName"), contact.get("name")) if n]


def contact_label(contact: Dict[str, Any]) -> str:
    return contact.get("billingName") or contact.get("name") or "Unknown"


def resolve_contact(
    query: str,
    contacts: List[Dict[str, Any]],
    *,
    threshold: float = 0.4,
    limit: int = 5,
) -> List[FuzzyMatch]:
    """Score each contact by its closest name (billing or display)."""
    scored = (
        FuzzyMatch(contact, max((fuzzy_score(query, n) for n in _contact_names(contact)), default=0.0))
        for contact in contacts
    )
    return _rank(scored, threshold, limit)


def resolve_best_contact(query: str, contacts: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    matches = resolve_contact(query, contacts, threshold=0.7, limit=1)
    return matches[0].item if matches else None


def _bullets(names: Iterable[str]) -> str:
    return "\n".join(f"  {name}" for name in names)


def match_bank_account(query: str, accounts: List[Dict[str, Any]]) -> ResolvedEntity:
    q = require_query(query, "bank account")

    for account in accounts:
        name = (account.get("name") or "").lower()
        if name and name == q:
            return ResolvedEntity(account["resourceId"], account["name"])

    substring = [a for a in accounts if q in (a.get("name") or "").lower()]
    if len(substring) == 1:
        return ResolvedEntity(substring[0]["resourceId"], substring[0]["name"])

    matches = fuzzy_match(query, accounts, lambda a: a.get("name") or "", threshold=0.4, limit=5)
    if len(matches) == 1 and matches[0].score >= 0.5:
        return ResolvedEntity(matches[0].item["resourceId"], matches[0].item["name"])

    if len(substring) > 1:
        names = [a["name"] for a in substring]
        raise ResolutionError(
            f'Multiple bank accounts match "{query}":\n{_bullets(names)}\n\nBe more specific, or use the full name.',
            kind="ambiguous",
            candidates=names,
        )
    if matches:
        options = [f"{m.item['name']} (score: {m.score * 100:.0f}%)" for m in matches]
        raise ResolutionError(
            f'No exact match for "{query}". Did you mean:\n{_bullets(options)}',
            kind="suggestions",
            candidates=[m.item["name"] for m in matches],
        )
    names = [a.get("name") or "" for a in accounts]
    raise ResolutionError(
        f'No bank account matching "{query}".\n\nAvailable accounts:\n{_bullets(names)}',
        kind="not_found",
        candidates=names,
    )


def resolve_bank_account(client: JazClient, query: str) -> ResolvedEntity:
    if is_uuid(query):
        return ResolvedEntity(query, query)
    require_query(query, "bank account")
    accounts = list_bank_accounts(client).items
    if not accounts:
        raise ResolutionError("No bank accounts found. Create one in Jaz first.", kind="not_found")
    return match_bank_account(query, accounts)


def _feedback(kind: str, label: str, resource_id: str, silent: bool) -> None:
    if not silent:
        print(f"  {kind}: {label} ({short_id(resource_id)})", file=sys.stderr)


def _available_suffix(names: List[str], limit: int = 10) -> str:
    listing = _bullets(names[:limit])
    if len(names) > limit:
        listing += f"\n  ... and {len(names) - limit} more"
    return listing


def resolve_contact_flag(client: JazClient, query: str, *, silent: bool = False) -> ResolvedEntity:
    if is_uuid(query):
        return ResolvedEntity(query, query)
    require_query(query, "contact")
    query = query.strip()

    candidates = client.search_page(
        "/api/v1/contacts/search", filter={"billingName": {"contains": query}}, limit=50
    ).items
    if not candidates:
        # Capped scan keeps large orgs from paying for a full listing
        candidates = client.list_page("/api/v1/contacts", offset=0, limit=500).items
    if not candidates:
        raise ResolutionError("No contacts found. Create one in Jaz first.", kind="not_found")

    q = query.lower()
    for contact in candidates:
        if q in ((contact.get("billingName") or "").lower(), (contact.get("name") or "").lower()):
            _feedback("Contact", contact_label(contact), contact["resourceId"], silent)
            return ResolvedEntity(contact["resourceId"], contact_label(contact))

    matches = resolve_contact(query, candidates, threshold=0.5, limit=5)
    if len(matches) == 1 and matches[0].score >= 0.7:
        contact = matches[0].item
        _feedback("Contact", contact_label(contact), contact["resourceId"], silent)
        return ResolvedEntity(contact["resourceId"], contact_label(contact))

    names = [contact_label(m.item) for m in matches]
    options = [f"{contact_label(m.item)} ({m.score * 100:.0f}%)" for m in matches]
    if len(matches) > 1:
        raise ResolutionError(
            f'Multiple contacts match "{query}":\n{_bullets(options)}\n\n'
            "Be more specific, or use the full billingName.",
            kind="ambiguous",
            candidates=names,
        )
    if matches:
        raise ResolutionError(
            f'No strong match for "{query}". Did you mean:\n{_bullets(options)}',
            kind="suggestions",
            candidates=names,
        )
    names = [contact_label(c) for c in candidates]
    raise ResolutionError(
        f'No contact matching "{query}".\n\nAvailable contacts:\n{_available_suffix(names)}',
        kind="not_found",
        candidates=names,
    )


def account_label(account: Dict[str, Any]) -> str:
    name = account.get("name") or ""
    return f"{name} ({account['code']})" if account.get("code") else name


def resolve_account_flag(
    client: JazClient,
    query: str,
    *,
    account_filter: str = "any",
    silent: bool = False,
) -> ResolvedEntity:
    if is_uuid(query):
        return ResolvedEntity(query, query)
    require_query(query, "account")
    query = query.strip()

    accounts = fetch_all_pages(
        lambda offset, limit: client.list_page("/api/v1/chart-of-accounts", offset=offset, limit=limit)
    ).items
    if account_filter == "bank":
        accounts = filter_payment_accounts(accounts)
    elif account_filter == "line-item":
        accounts = filter_line_item_accounts(accounts)
    if not accounts:
        qualifier = "" if account_filter == "any" else f" ({account_filter})"
        raise ResolutionError(f"No{qualifier} accounts found. Create one in Jaz first.", kind="not_found")

    matches = resolve_account(query, accounts, threshold=0.5, limit=5)
    if matches and matches[0].score >= 0.7:
        account = matches[0].item
        _feedback("Account", account_label(account), account["resourceId"], silent)
        return ResolvedEntity(account["resourceId"], account.get("name") or "")

    if matches:
        options = [f"{account_label(m.item)} ({m.score * 100:.0f}%)" for m in matches]
        raise ResolutionError(
            f'No strong match for "{query}". Closest:\n{_bullets(options)}\n\n'
            "Use the exact name, account code, or resourceId.",
            kind="suggestions",
            candidates=[m.item.get("name") or "" for m in matches],
        )
    names = [account_label(a) for a in accounts]
    raise ResolutionError(
        f'No account matching "{query}".\n\nAvailable accounts:\n{_available_suffix(names)}',
        kind="not_found",
        candidates=[a.get("name") or "" for a in accounts],
    )


def resolve_bank_account_flag(client: JazClient, query: str, *, silent: bool = False) -> ResolvedEntity:
    if is_uuid(query):
        return ResolvedEntity(query, query)
    result = resolve_bank_account(client, query)
    _feedback("Bank account", result.display_name, result.resource_id, silent)
    return result


# Output


def _project_fields(rows: List[Dict[str, Any]], fields: List[str]) -> List[Dict[str, Any]]:
    return [{k: row.get(k, "") for k in fields} for row in rows]


def format_output(rows: List[Dict[str, Any]], fields: List[str], output_format: str) -> str:
    projected = _project_fields(rows, fields)

    if output_format == "csv":
        import csv
        from io import StringIO

        buf = StringIO()
        writer = csv.DictWriter(buf, fieldnames=fields)
        writer.writeheader()
        writer.writerows(projected)
        return buf.getvalue()

    if output_format == "json":
        return json.dumps(projected, indent=2)

    if output_format == "yaml":
        import yaml

        return yaml.safe_dump(projected, sort_keys=False)

    # plain table (default)
    table = [[row.get(f, "") for f in fields] for row in projected]
    return tabulate(table, headers=fields, tablefmt="github")


def slugify(name: str) -> str:
    """``"Acme Pte Ltd"`` -> ``"acme-pte-ltd"``."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "org"


# Handlers for subcommands


def open_client(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> JazClient:
    check_auth_flags(args.api_key, args.org)
    auth = require_auth(args.api_key, org=args.org, store=store)
    if args.format == "plain":
        banner = org_banner(auth, store)
        if banner:
            print(banner[0], file=sys.stderr)
    return JazClient(config, auth.api_key)


def _print_listing(args: argparse.Namespace, rows: List[Dict[str, Any]], total: int, fields: List[str]) -> None:
    if args.format == "plain":
        print(f"{len(rows)} of {total}", file=sys.stderr)
    print(format_output(rows, fields, args.format))


def _print_entity(args: argparse.Namespace, entity: ResolvedEntity) -> None:
    row = {"resourceId": entity.resource_id, "name": entity.display_name}
    print(format_output([row], ["resourceId", "name"], args.format))


def handle_auth_add(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    key = args.key.strip()
    if not key.startswith(API_KEY_PREFIX):
        raise UsageError(f'API key must start with "{API_KEY_PREFIX}"')

    existing_label = store.find_label_by_api_key(key)
    if existing_label and (not args.label or args.label == existing_label):
        if args.format == "json":
            print(json.dumps({"error": "duplicate", "existingLabel": existing_label}))
        else:
            print(f"This key is already registered as '{existing_label}'.", file=sys.stderr)
        return

    try:
        org = get_organization(JazClient(config, key))
    except ApiError as exc:
        raise AuthError(f"API key is invalid or the API is unreachable ({exc}).") from exc

    label = args.label or slugify(org.get("name", ""))
    if existing_label and existing_label != label:
        print(f"Note: This key is also registered as '{existing_label}'.", file=sys.stderr)

    existing = store.get_profile(label)
    if existing and existing.api_key != key:
        raise UsageError(
            f"Label '{label}' is already used by {existing.display_name}. Use --as <label> to choose a different label."
        )

    profile = Profile(
        api_key=key,
        display_name=org.get("name", ""),
        org_id=org.get("resourceId", ""),
        currency=org.get("currency", ""),
        country=org.get("countryCode") or "",
        added_at=utc_now_iso(),
    )
    store.set_profile(label, profile)

    if args.format == "json":
        print(
            json.dumps(
                {
                    "registered": True,
                    "label": label,
                    "displayName": profile.display_name,
                    "currency": profile.currency,
                    "country": profile.country,
                }
            )
        )
        return
    print(f"Registered: {label} ({profile.display_name}, {profile.currency}, {profile.country})")
    if store.get_active_label() == label:
        print(f"  Active org set to {label}")


def handle_auth_switch(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    store.set_active_label(args.label)
    if args.export:
        print(f"export {ENV_ORG}={shlex.quote(args.label)}")
        return
    profile = store.get_profile(args.label)
    if args.format == "json":
        print(json.dumps({"switched": True, "label": args.label, "displayName": profile.display_name}))
        return
    print(f"Switched to: {args.label} ({profile.display_name}, {profile.currency})")
    if len(store.list_profiles()) > 1:
        print(f'  Tip: pin to this terminal with eval "$(jaz auth switch {args.label} --export)"')


def handle_auth_list(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    profiles = store.list_profiles()
    if not profiles:
        print("No orgs registered. Run `jaz auth add <key>` to get started.", file=sys.stderr)
        return
    active = store.get_active_label()
    rows = [
        {
            "active": "*" if label == active else "",
            "label": label,
            "displayName": profile.display_name,
            "currency": profile.currency,
            "country": profile.country,
            "orgId": profile.org_id,
        }
        for label, profile in profiles.items()
    ]
    print(format_output(rows, ["active", "label", "displayName", "currency", "country", "orgId"], args.format))
    pinned = os.environ.get(ENV_ORG)
    if pinned:
        print(f"This terminal is pinned to: {pinned} (via {ENV_ORG})", file=sys.stderr)


def handle_auth_remove(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    if not store.remove_profile(args.label):
        raise profile_not_found(args.label, store.read())
    if args.format == "json":
        print(json.dumps({"removed": True, "label": args.label}))
        return
    print(f"Removed: {args.label}")
    if not store.get_active_label():
        print("No active org. Run `jaz auth switch <label>` to set one.", file=sys.stderr)


def handle_auth_whoami(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    check_auth_flags(args.api_key, args.org)
    auth = require_auth(args.api_key, org=args.org, store=store)
    org = get_organization(JazClient(config, auth.api_key))
    row = {
        "label": auth.label or "",
        "source": AUTH_SOURCE_DESCRIPTIONS.get(auth.source, auth.source),
        "name": org.get("name", ""),
        "currency": org.get("currency", ""),
        "countryCode": org.get("countryCode", ""),
        "status": org.get("status", ""),
    }
    print(format_output([row], list(row), args.format))


def handle_auth_clear(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    removed = store.clear()
    if args.format == "json":
        print(json.dumps({"removed": removed}))
    elif removed:
        print("All credentials removed.")
    else:
        print("No credentials file found.")


def handle_org_info(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    org = get_organization(client)
    fields = ["resourceId", "name", "currency", "countryCode", "status", "lockDate", "fiscalYearEnd"]
    print(format_output([org], fields, args.format))


ACCOUNT_FIELDS = ["resourceId", "code", "name", "accountType", "status", "currencyCode"]
CONTACT_FIELDS = ["resourceId", "billingName", "name", "customer", "supplier", "status"]
BANK_ACCOUNT_FIELDS = ["resourceId", "name", "currencyCode", "status"]
INVOICE_FIELDS = ["resourceId", "reference", "status", "valueDate", "dueDate", "totalAmount"]
BILL_FIELDS = ["resourceId", "reference", "status", "valueDate", "dueDate", "totalAmount"]


def handle_accounts_list(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    rows, total = paginated_fetch(
        args,
        lambda offset, limit: client.list_page("/api/v1/chart-of-accounts", offset=offset, limit=limit),
        "Fetching accounts",
    )
    _print_listing(args, rows, total, ACCOUNT_FIELDS)


def handle_accounts_search(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    search_filter = {"name": {"contains": args.query}}
    rows, total = paginated_fetch(
        args,
        lambda offset, limit: client.search_page(
            "/api/v1/chart-of-accounts/search", filter=search_filter, offset=offset, limit=limit
        ),
        "Searching accounts",
        default_limit=20,
    )
    _print_listing(args, rows, total, ACCOUNT_FIELDS)


def handle_accounts_resolve(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    entity = resolve_account_flag(client, args.query, account_filter=args.filter, silent=args.format != "plain")
    _print_entity(args, entity)


def handle_contacts_list(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    rows, total = paginated_fetch(
        args,
        lambda offset, limit: client.list_page("/api/v1/contacts", offset=offset, limit=limit),
        "Fetching contacts",
    )
    _print_listing(args, rows, total, CONTACT_FIELDS)


def handle_contacts_search(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    search_filter: Dict[str, Any] = {"status": {"eq": "ACTIVE"}, "name": {"contains": args.query}}
    if args.customer:
        search_filter["customer"] = {"eq": True}
    if args.supplier:
        search_filter["supplier"] = {"eq": True}
    sort = {"sortBy": [args.sort], "order": args.order}
    rows, total = paginated_fetch(
        args,
        lambda offset, limit: client.search_page(
            "/api/v1/contacts/search", filter=search_filter, offset=offset, limit=limit, sort=sort
        ),
        "Searching contacts",
        default_limit=20,
    )
    _print_listing(args, rows, total, CONTACT_FIELDS)


def handle_contacts_resolve(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    entity = resolve_contact_flag(client, args.query, silent=args.format != "plain")
    _print_entity(args, entity)


def handle_bank_accounts_list(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    page = list_bank_accounts(client)
    _print_listing(args, page.items, page.total_elements, BANK_ACCOUNT_FIELDS)


def handle_bank_accounts_resolve(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    entity = resolve_bank_account_flag(client, args.query, silent=args.format != "plain")
    _print_entity(args, entity)


def handle_invoices_list(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    rows, total = paginated_fetch(
        args,
        lambda offset, limit: client.list_page("/api/v1/invoices", offset=offset, limit=limit),
        "Fetching invoices",
    )
    _print_listing(args, rows, total, INVOICE_FIELDS)


def handle_bills_list(args: argparse.Namespace, config: AppConfig, store: CredentialStore) -> None:
    client = open_client(args, config, store)
    rows, total = paginated_fetch(
        args,
        lambda offset, limit: client.list_page("/api/v1/bills", offset=offset, limit=limit),
        "Fetching bills",
    )
    _print_listing(args, rows, total, BILL_FIELDS)


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return value


def _non_negative_int(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise argparse.ArgumentTypeError("must be a non-negative integer")
    return value


def _add_pagination_args(parser: argparse.ArgumentParser, default_limit: int = DEFAULT_LIST_LIMIT) -> None:
    parser.add_argument("--limit", type=_positive_int, help=f"Max results (default {default_limit})")
    parser.add_argument("--offset", type=_non_negative_int, help="Offset for pagination")
    parser.add_argument("--all", action="store_true", help="Fetch all pages")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Jaz accounting CLI")
    parser.add_argument("--api-key", help=f"API key (overrides stored profiles and {ENV_API_KEY})")
    parser.add_argument("--org", help=f"Org profile label for this invocation (overrides {ENV_ORG})")
    parser.add_argument(
        "--base-url",
        default=os.environ.get(ENV_BASE_URL, API_BASE_URL),
        help="Override API base URL",
    )
    parser.add_argument(
        "--format",
        default="plain",
        choices=["plain", "csv", "json", "yaml"],
        help="Output format",
    )
    parser.add_argument("--debug", action="store_true", help="Print verbose debug output for HTTP calls")
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="HTTP connect/read timeout in seconds (default: 30)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Auth
    auth = subparsers.add_parser("auth", help="Manage org connections and API keys")
    auth_sub = auth.add_subparsers(dest="action", required=True)

    auth_add = auth_sub.add_parser("add", help="Validate an API key and register the org")
    auth_add.add_argument("key", help="API key (jk-...)")
    auth_add.add_argument("--as", dest="label", help="Custom label (default: slugified org name)")
    auth_add.set_defaults(func=handle_auth_add)

    auth_switch = auth_sub.add_parser("switch", help="Switch the active org")
    auth_switch.add_argument("label", help="Profile label")
    auth_switch.add_argument("--export", action="store_true", help="Print a shell export statement for eval")
    auth_switch.set_defaults(func=handle_auth_switch)

    auth_list = auth_sub.add_parser("list", help="List registered orgs")
    auth_list.set_defaults(func=handle_auth_list)

    auth_remove = auth_sub.add_parser("remove", help="Remove a registered org")
    auth_remove.add_argument("label", help="Profile label")
    auth_remove.set_defaults(func=handle_auth_remove)

    auth_whoami = auth_sub.add_parser("whoami", help="Show which org commands will hit")
    auth_whoami.set_defaults(func=handle_auth_whoami)

    auth_clear = auth_sub.add_parser("clear", help="Remove ALL stored credentials")
    auth_clear.set_defaults(func=handle_auth_clear)

    # Organization
    org = subparsers.add_parser("org", help="Organization details")
    org_sub = org.add_subparsers(dest="action", required=True)

    org_info = org_sub.add_parser("info", help="Show organization details")
    org_info.set_defaults(func=handle_org_info)

    # Chart of accounts
    accounts = subparsers.add_parser("accounts", help="Chart of accounts")
    accounts_sub = accounts.add_subparsers(dest="action", required=True)

    accounts_list = accounts_sub.add_parser("list", help="List accounts")
    _add_pagination_args(accounts_list)
    accounts_list.set_defaults(func=handle_accounts_list)

    accounts_search = accounts_sub.add_parser("search", help="Search accounts by name")
    accounts_search.add_argument("query", help="Text contained in the account name")
    _add_pagination_args(accounts_search, default_limit=20)
    accounts_search.set_defaults(func=handle_accounts_search)

    accounts_resolve = accounts_sub.add_parser("resolve", help="Resolve an account by code, name or approximate name")
    accounts_resolve.add_argument("query", help="Account code, name, approximate name or resourceId")
    accounts_resolve.add_argument(
        "--filter",
        default="any",
        choices=["any", "bank", "line-item"],
        help="Restrict to payment (bank/cash) or line-item accounts",
    )
    accounts_resolve.set_defaults(func=handle_accounts_resolve)

    # Contacts
    contacts = subparsers.add_parser("contacts", help="Customers and suppliers")
    contacts_sub = contacts.add_subparsers(dest="action", required=True)

    contacts_list = contacts_sub.add_parser("list", help="List contacts")
    _add_pagination_args(contacts_list)
    contacts_list.set_defaults(func=handle_contacts_list)

    contacts_search = contacts_sub.add_parser("search", help="Search active contacts by name")
    contacts_search.add_argument("query", help="Text contained in the contact name")
    contacts_search.add_argument("--customer", action="store_true", help="Customers only")
    contacts_search.add_argument("--supplier", action="store_true", help="Suppliers only")
    contacts_search.add_argument("--sort", default="name", help="Sort field (default: name)")
    contacts_search.add_argument("--order", default="ASC", choices=["ASC", "DESC"], help="Sort order")
    _add_pagination_args(contacts_search, default_limit=20)
    contacts_search.set_defaults(func=handle_contacts_search)

    contacts_resolve = contacts_sub.add_parser("resolve", help="Resolve a contact by approximate name")
    contacts_resolve.add_argument("query", help="Contact name, approximate name or resourceId")
    contacts_resolve.set_defaults(func=handle_contacts_resolve)

    # Bank accounts
    bank = subparsers.add_parser("bank-accounts", help="Bank accounts")
    bank_sub = bank.add_subparsers(dest="action", required=True)

    bank_list = bank_sub.add_parser("list", help="List bank accounts")
    bank_list.set_defaults(func=handle_bank_accounts_list)

    bank_resolve = bank_sub.add_parser("resolve", help="Resolve a bank account by approximate name")
    bank_resolve.add_argument("query", help="Bank account name, approximate name or resourceId")
    bank_resolve.set_defaults(func=handle_bank_accounts_resolve)

    # Invoices
    invoices = subparsers.add_parser("invoices", help="Sales invoices")
    invoices_sub = invoices.add_subparsers(dest="action", required=True)

    invoices_list = invoices_sub.add_parser("list", help="List invoices")
    _add_pagination_args(invoices_list)
    invoices_list.set_defaults(func=handle_invoices_list)

    # Bills
    bills = subparsers.add_parser("bills", help="Purchase bills")
    bills_sub = bills.add_subparsers(dest="action", required=True)

    bills_list = bills_sub.add_parser("list", help="List bills")
    _add_pagination_args(bills_list)
    bills_list.set_defaults(func=handle_bills_list)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    config = AppConfig(base_url=args.base_url, debug=args.debug, request_timeout=args.timeout)
    store = CredentialStore.default()
    try:
        args.func(args, config, store)
    except CliError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(exc.exit_code) from exc


if __name__ == "__main__":
    main()
