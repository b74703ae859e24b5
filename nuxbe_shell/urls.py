"""
Server URL normalization and app-link parsing.
"""

from dataclasses import dataclass
from ipaddress import ip_address, ip_network
from urllib.parse import parse_qs, urlencode, urlsplit

# Hosts that may keep plain http (development servers on the device or LAN)
LOOPBACK_HOSTS = {'localhost', '127.0.0.1', '::1'}
PRIVATE_NETWORK = ip_network('192.168.0.0/16')

LOGIN_PATH = '/login-mobile'


def _allows_plain_http(host: str) -> bool:
    if host in LOOPBACK_HOSTS:
        return True
    try:
        return ip_address(host) in PRIVATE_NETWORK
    except ValueError:
        return False


def normalize_url(raw: str) -> str:
    """
    Normalize a user-supplied server address.

    'demo.nuxbe.com/' -> 'https://demo.nuxbe.com'
    'http://demo.nuxbe.com' -> 'https://demo.nuxbe.com'
    'http://192.168.1.20:8000' stays on http.

    Raises ValueError if the result is not an absolute http(s) URL.
    Normalizing an already normalized URL returns it unchanged.
    """
    url = (raw or '').strip()
    if not url:
        raise ValueError("Empty server URL")

    lowered = url.lower()
    if not lowered.startswith('http://') and not lowered.startswith('https://'):
        if '://' in url:
            raise ValueError(f"Unsupported scheme in {url!r}")
        url = 'https://' + url

    parts = urlsplit(url)
    try:
        host = (parts.hostname or '').lower()
        port = parts.port
    except ValueError as e:
        raise ValueError(f"Invalid server URL {raw!r}: {e}")

    if not host or ' ' in host:
        raise ValueError(f"Invalid server URL {raw!r}: missing host")

    scheme = parts.scheme.lower()
    if scheme == 'http' and not _allows_plain_http(host):
        scheme = 'https'

    netloc = f"[{host}]" if ':' in host else host
    if port is not None:
        netloc = f"{netloc}:{port}"

    path = parts.path.rstrip('/')
    return f"{scheme}://{netloc}{path}"


def is_valid_url(raw: str) -> bool:
    try:
        normalize_url(raw)
    except ValueError:
        return False
    return True


def origin_of(url: str) -> str:
    """Return scheme://host[:port] for a URL, dropping default ports."""
    parts = urlsplit(url)
    host = parts.hostname or ''
    origin = f"{parts.scheme}://{host}"
    default_port = 443 if parts.scheme == 'https' else 80
    if parts.port is not None and parts.port != default_port:
        origin += f":{parts.port}"
    return origin


def build_login_url(server_url: str, params: list[tuple[str, str]]) -> str:
    """Build {server}/login-mobile with params in the given order."""
    target = f"{server_url}{LOGIN_PATH}"
    query = urlencode(params)
    if query:
        target = f"{target}?{query}"
    return target


def normalize_path(path: str) -> str:
    path = path.strip()
    if not path.startswith('/'):
        path = '/' + path
    return path


@dataclass(frozen=True)
class AppLink:
    """An external link opened while the app is running."""
    server: str | None = None
    path: str | None = None
    change_server: bool = False

    @property
    def is_navigable(self) -> bool:
        return bool(self.server and self.path)


def parse_app_link(url: str, scheme: str = 'nuxbe') -> AppLink:
    """
    Parse a custom-scheme or universal link.

        nuxbe://open?server=https://demo.nuxbe.com&path=/orders/42
        nuxbe://change-server

    Returns an AppLink; server and path are None when missing. Raises
    ValueError if the link can't be parsed at all.
    """
    parts = urlsplit(url.strip())
    if not parts.scheme:
        raise ValueError(f"Not a link: {url!r}")

    marker = f"{parts.netloc}{parts.path}".strip('/')
    if marker == 'change-server' or marker.endswith('/change-server'):
        return AppLink(change_server=True)

    if parts.scheme.lower() not in (scheme, 'https', 'http'):
        raise ValueError(f"Unsupported link scheme {parts.scheme!r}")

    query = parse_qs(parts.query)
    server = (query.get('server') or [None])[0]
    path = (query.get('path') or [None])[0]
    return AppLink(server=server or None, path=path or None)
