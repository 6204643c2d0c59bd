"""
Cluster host lists per traffic class.

A cluster is reached through several hostnames. Read traffic starts with
the load-balanced DSN host, write traffic with the primary indexing host;
both then fall back to the same numbered hosts. Fallbacks are shuffled once
per ClusterHosts instance so that many clients spread their retries across
the cluster while each client keeps a stable order.
"""

import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Optional, Union

import structlog

from search_client.exceptions import ConfigurationError
from search_client.models.enums import CallType


logger = structlog.get_logger(__name__)

FALLBACK_HOST_COUNT = 3

READ_VERBS = frozenset({"GET", "HEAD", "OPTIONS"})
WRITE_VERBS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def call_type_for_method(method: str) -> CallType:
    """
    Map an HTTP verb to its traffic class.

    Operations that read through POST (multi-queries, user id search) must
    pass an explicit call type to the dispatcher instead.

    Raises:
        ValueError: For verbs outside the supported set
    """
    verb = method.upper()
    if verb in READ_VERBS:
        return CallType.READ
    if verb in WRITE_VERBS:
        return CallType.WRITE
    raise ValueError(f"Unsupported HTTP method: {method}")


@dataclass(frozen=True)
class Host:
    """
    One backend endpoint.

    Attributes:
        address: Host authority, e.g. "myapp-dsn.algolia.net" or "localhost:8080"
        scheme: URL scheme
        accept: Traffic classes this host serves
        is_up: Assumed-healthy flag; down hosts are tried last
    """

    address: str
    scheme: str = "https"
    accept: frozenset[CallType] = frozenset({CallType.READ, CallType.WRITE})
    is_up: bool = True

    @classmethod
    def parse(cls, value: str, accept: Optional[frozenset[CallType]] = None) -> "Host":
        """Build a Host from "host", "host:port" or "scheme://host[:port]"."""
        scheme = "https"
        address = value.strip().rstrip("/")
        if "://" in address:
            scheme, address = address.split("://", 1)
        if not address:
            raise ConfigurationError(f"Invalid host: {value!r}")
        if accept is None:
            return cls(address=address, scheme=scheme)
        return cls(address=address, scheme=scheme, accept=accept)

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.address}"

    def accepts(self, call_type: CallType) -> bool:
        return call_type in self.accept


HostLike = Union[str, Host]


def _unique(hosts: Iterable[Host]) -> list[Host]:
    seen: set[str] = set()
    unique_hosts = []
    for host in hosts:
        if host.address not in seen:
            seen.add(host.address)
            unique_hosts.append(host)
    return unique_hosts


class ClusterHosts:
    """
    Ordered host sequences for read and write traffic.

    Immutable after construction and safe to share between concurrent
    dispatch calls.

    Attributes:
        read_hosts: Hosts for read traffic, in retry priority order
        write_hosts: Hosts for write traffic, in retry priority order
    """

    def __init__(self, read_hosts: Sequence[Host], write_hosts: Sequence[Host]):
        read = _unique(host for host in read_hosts if host.accepts(CallType.READ))
        write = _unique(host for host in write_hosts if host.accepts(CallType.WRITE))
        if not read or not write:
            raise ConfigurationError(
                "Cluster needs at least one host per traffic class",
                details={"read_hosts": len(read), "write_hosts": len(write)},
            )
        self._hosts: dict[CallType, tuple[Host, ...]] = {
            CallType.READ: tuple(read),
            CallType.WRITE: tuple(write),
        }

    @classmethod
    def from_app_id(cls, app_id: Optional[str], seed: Optional[int] = None) -> "ClusterHosts":
        """
        Derive the conventional cluster hosts from an application id.

        Args:
            app_id: Application identifier
            seed: Seed for the fallback shuffle (None: random per instance)

        Raises:
            ConfigurationError: If app_id is empty
        """
        if not app_id:
            raise ConfigurationError("An application id or an explicit host list is required")

        fallbacks = [
            Host(address=f"{app_id}-{number}.algolianet.com")
            for number in range(1, FALLBACK_HOST_COUNT + 1)
        ]
        random.Random(seed).shuffle(fallbacks)

        read_primary = Host(address=f"{app_id}-dsn.algolia.net", accept=frozenset({CallType.READ}))
        write_primary = Host(address=f"{app_id}.algolia.net", accept=frozenset({CallType.WRITE}))

        logger.debug(
            "Derived cluster hosts from app id",
            app_id=app_id,
            fallback_order=[host.address for host in fallbacks],
        )
        return cls([read_primary, *fallbacks], [write_primary, *fallbacks])

    @classmethod
    def from_hosts(cls, hosts: Union[HostLike, Sequence[HostLike]]) -> "ClusterHosts":
        """
        Use an explicit host list, in the given order, for both traffic classes.

        Raises:
            ConfigurationError: If the list is empty
        """
        if isinstance(hosts, (str, Host)):
            hosts = [hosts]
        parsed = [host if isinstance(host, Host) else Host.parse(host) for host in hosts]
        if not parsed:
            raise ConfigurationError("Explicit host list is empty")
        return cls(parsed, parsed)

    @classmethod
    def create(
        cls,
        app_id: Optional[str] = None,
        hosts: Union[HostLike, Sequence[HostLike], None] = None,
        seed: Optional[int] = None,
    ) -> "ClusterHosts":
        """Explicit hosts when given, otherwise derive from the app id."""
        if hosts:
            return cls.from_hosts(hosts)
        return cls.from_app_id(app_id, seed=seed)

    def hosts_for(self, call_type: CallType) -> tuple[Host, ...]:
        """
        Ordered attempt sequence for a traffic class.

        Healthy hosts keep their priority order; hosts flagged down are
        moved to the end rather than dropped.
        """
        hosts = self._hosts[call_type]
        up = [host for host in hosts if host.is_up]
        if len(up) == len(hosts):
            return hosts
        return tuple(up + [host for host in hosts if not host.is_up])

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"read={[host.address for host in self._hosts[CallType.READ]]}, "
            f"write={[host.address for host in self._hosts[CallType.WRITE]]})"
        )
