"""Connection URI codec.

Parses MongoDB connection strings into a `UriDescriptor` and renders
descriptors back into canonical URIs. Parsing is purely textual (no SRV or
DNS lookups); the driver validates the URI again when it connects.

`format_driver_uri` produces the comma-joined form where every host gets its
own single-host URI, e.g. ``mongodb://h1:1/db,mongodb://h2:2/db``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import parse_qsl, quote, unquote, urlencode

from pymongo.errors import InvalidURI

DEFAULT_SCHEME = "mongodb"


@dataclass(frozen=True)
class HostPort:
    host: str
    port: int | None = None

    def render(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is None:
            return host
        return f"{host}:{self.port}"


@dataclass
class UriDescriptor:
    hosts: list[HostPort]
    scheme: str = DEFAULT_SCHEME
    username: str | None = None
    password: str | None = None
    database: str | None = None
    options: dict[str, str] = field(default_factory=dict)


def _parse_host(raw: str, uri: str) -> HostPort:
    if raw.startswith("["):
        host, bracket, rest = raw[1:].partition("]")
        if not bracket or (rest and not rest.startswith(":")):
            raise InvalidURI(f"invalid IPv6 host in connection uri: {uri!r}")
        port = rest[1:]
    else:
        host, _, port = raw.partition(":")
    if not host:
        raise InvalidURI(f"empty host in connection uri: {uri!r}")
    if not port:
        return HostPort(unquote(host))
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise InvalidURI(f"invalid port {port!r} in connection uri: {uri!r}")
    return HostPort(unquote(host), int(port))


def parse_uri(uri: str) -> UriDescriptor:
    if not isinstance(uri, str):
        raise InvalidURI(f"connection uri must be a string, got {type(uri).__name__}")
    scheme, sep, rest = uri.partition("://")
    if not sep or not scheme:
        raise InvalidURI(f"connection uri must begin with a scheme: {uri!r}")

    netloc, slash, path = rest.partition("/")
    query = ""
    if slash:
        path, _, query = path.partition("?")
    else:
        netloc, _, query = netloc.partition("?")

    username = password = None
    userinfo, at, hostlist = netloc.rpartition("@")
    if at:
        user, colon, secret = userinfo.partition(":")
        username = unquote(user)
        password = unquote(secret) if colon else None

    hosts = [_parse_host(raw, uri) for raw in hostlist.split(",") if raw]
    if not hosts:
        raise InvalidURI(f"connection uri must name at least one host: {uri!r}")

    return UriDescriptor(
        scheme=scheme,
        username=username,
        password=password,
        hosts=hosts,
        database=unquote(path) or None,
        options=dict(parse_qsl(query, keep_blank_values=True)),
    )


def format_uri(descriptor: UriDescriptor) -> str:
    """Render a descriptor as ``scheme://[user[:pass]@]host[:port][,...][/database][?options]``."""
    uri = f"{descriptor.scheme or DEFAULT_SCHEME}://"
    if descriptor.username:
        uri += quote(descriptor.username, safe="")
        if descriptor.password:
            uri += ":" + quote(descriptor.password, safe="")
        uri += "@"
    uri += ",".join(host.render() for host in descriptor.hosts)
    if descriptor.database or descriptor.options:
        uri += "/"
    if descriptor.database:
        uri += quote(descriptor.database, safe="")
    if descriptor.options:
        uri += "?" + urlencode(descriptor.options)
    return uri


def format_driver_uri(uri: str | UriDescriptor) -> str:
    """One single-host URI per host, joined with commas."""
    descriptor = parse_uri(uri) if isinstance(uri, str) else uri
    return ",".join(
        format_uri(
            UriDescriptor(
                scheme=descriptor.scheme,
                username=descriptor.username,
                password=descriptor.password,
                hosts=[host],
                database=descriptor.database,
                options=descriptor.options,
            )
        )
        for host in descriptor.hosts
    )
