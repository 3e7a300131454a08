from urllib.parse import unquote, urlsplit

from forward_proxy.proxy.errors import InputError

DEFAULT_SCHEME_PREFIX = "https://www."


def strip_mount_prefix(path: str, prefix: str) -> str:
    """Return the sub-path after the mount prefix, minus one leading slash."""
    if prefix and prefix != "/" and path.startswith(prefix):
        path = path[len(prefix):]
    if path.startswith("/"):
        path = path[1:]
    return path


def _decode_host(target_url: str) -> str:
    # Only the host is percent-decoded; path escapes such as %2F stay as sent.
    try:
        netloc = urlsplit(target_url).netloc
    except ValueError:
        return target_url
    if "%" not in netloc:
        return target_url
    return target_url.replace(netloc, unquote(netloc), 1)


def resolve_target_url(sub_path: str, query: str = "") -> str:
    """
    Derive the absolute target URL from a sub-path.

    A sub-path that already starts with ``http`` (``http://`` or ``https://``)
    is used verbatim; anything else is treated as a bare host and gets
    ``https://www.`` in front of it. The sub-path is expected in its raw,
    percent-encoded form; only the host part is decoded. The inbound query
    string, if any, is carried over unchanged.

    Raises:
        InputError: if the sub-path is empty
    """
    if not sub_path:
        raise InputError("missing target URL")

    if sub_path.startswith("http"):
        target_url = sub_path
    else:
        target_url = f"{DEFAULT_SCHEME_PREFIX}{sub_path}"

    target_url = _decode_host(target_url)
    if query:
        target_url = f"{target_url}?{query}"
    return target_url
