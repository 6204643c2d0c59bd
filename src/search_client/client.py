"""
Search client façade.

Maps each API operation to a (method, path, body, options) request and
forwards it to the RequestDispatcher on the right traffic class. Read
operations use dispatcher.read() even when they POST (multi-queries, user
id search); mutations use dispatcher.write().

Usage:
    async with SearchClient.create("APP_ID", "API_KEY") as client:
        indexes = await client.list_indexes()
        key = await client.add_api_key({"acl": ["search"]})
        await client.wait_for_key_added(key["key"])
"""

from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union

import httpx
import structlog

from search_client.config import Settings
from search_client.exceptions import NotFoundError
from search_client.helpers import api_path, ensure_object_id, redact_secret
from search_client.index import SearchIndex
from search_client.logging_config import configure_logging
from search_client.models.request_options import RequestOptions
from search_client.secured_key import generate_secured_api_key
from search_client.transport.dispatcher import OptionsLike, RequestDispatcher
from search_client.transport.hosts import ClusterHosts, HostLike
from search_client.transport.requester import HttpRequester, HttpxRequester
from search_client.waiting import TaskPoller


logger = structlog.get_logger(__name__)

USER_ID_HEADER = "X-Algolia-User-ID"


class SearchClient:
    """
    Application-level operations: indexes, API keys, cluster user mapping,
    logs and task tracking.
    """

    def __init__(self, dispatcher: RequestDispatcher, poller: TaskPoller):
        self._dispatcher = dispatcher
        self._poller = poller

    @classmethod
    def create(
        cls,
        app_id: Optional[str],
        api_key: str,
        hosts: Union[str, Sequence[str], None] = None,
    ) -> "SearchClient":
        """
        Build a client from credentials.

        Args:
            app_id: Application id (hosts are derived from it unless given)
            api_key: API key sent with every request
            hosts: Explicit host or hosts, used in order for all traffic

        Raises:
            ConfigurationError: Neither app_id nor hosts given
        """
        if isinstance(hosts, str):
            hosts = [hosts]
        settings = Settings(APP_ID=app_id, API_KEY=api_key, HOSTS=list(hosts or []))
        return cls.create_with_config(settings)

    @classmethod
    def create_with_config(
        cls, settings: Settings, requester: Optional[HttpRequester] = None
    ) -> "SearchClient":
        """
        Build a client from settings.

        Args:
            settings: Client settings
            requester: HTTP requester (default: pooled httpx requester)

        Raises:
            ConfigurationError: Neither APP_ID nor HOSTS configured
        """
        if settings.CONFIGURE_LOGGING:
            configure_logging(settings)
        cluster_hosts = ClusterHosts.create(
            settings.APP_ID, settings.HOSTS, seed=settings.HOST_SHUFFLE_SEED
        )
        if requester is None:
            requester = HttpxRequester(
                connection_limits=httpx.Limits(
                    max_keepalive_connections=settings.MAX_KEEPALIVE_CONNECTIONS,
                    max_connections=settings.MAX_CONNECTIONS,
                    keepalive_expiry=30.0,
                )
            )
        dispatcher = RequestDispatcher(requester, cluster_hosts, settings)
        logger.info(
            "Search client created",
            requester=type(requester).__name__,
            explicit_hosts=bool(settings.HOSTS),
            wait_max_retries=settings.WAIT_TASK_MAX_RETRIES,
        )
        return cls(dispatcher, TaskPoller.from_settings(settings))

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    def init_index(self, index_name: str) -> SearchIndex:
        return SearchIndex(index_name, self._dispatcher, self._poller)

    def set_extra_header(self, name: str, value: str) -> "SearchClient":
        self._dispatcher.set_extra_header(name, value)
        return self

    # === Multi-index operations ===

    async def multiple_queries(
        self, queries: Sequence[Mapping[str, Any]], request_options: OptionsLike = None
    ) -> Any:
        options = RequestOptions.create(request_options).add_body_parameter(
            "requests", list(queries)
        )
        return await self._dispatcher.read("POST", "/1/indexes/*/queries", options)

    async def multiple_batch_objects(
        self, operations: Sequence[Mapping[str, Any]], request_options: OptionsLike = None
    ) -> Any:
        ensure_object_id(operations)
        options = RequestOptions.create(request_options).add_body_parameter(
            "requests", list(operations)
        )
        return await self._dispatcher.write("POST", "/1/indexes/*/batch", None, options)

    async def multiple_get_objects(
        self, requests: Sequence[Mapping[str, Any]], request_options: OptionsLike = None
    ) -> Any:
        """
        Fetch objects from several indexes in one call.

        Sent as read traffic (DSN host first) although it is a POST; earlier
        clients routed it to the write hosts.
        """
        options = RequestOptions.create(request_options).add_body_parameter(
            "requests", list(requests)
        )
        return await self._dispatcher.read("POST", "/1/indexes/*/objects", options)

    # === Index management ===

    async def list_indexes(self, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.read("GET", "/1/indexes", request_options)

    async def move_index(
        self, src_index_name: str, dest_index_name: str, request_options: OptionsLike = None
    ) -> Any:
        return await self._dispatcher.write(
            "POST",
            api_path("/1/indexes/%s/operation", src_index_name),
            {"operation": "move", "destination": dest_index_name},
            request_options,
        )

    async def copy_index(
        self, src_index_name: str, dest_index_name: str, request_options: OptionsLike = None
    ) -> Any:
        return await self._dispatcher.write(
            "POST",
            api_path("/1/indexes/%s/operation", src_index_name),
            {"operation": "copy", "destination": dest_index_name},
            request_options,
        )

    async def clear_index(self, index_name: str, request_options: OptionsLike = None) -> Any:
        return await self.init_index(index_name).clear_objects(request_options)

    async def delete_index(self, index_name: str, request_options: OptionsLike = None) -> Any:
        return await self.init_index(index_name).delete(request_options)

    # === API keys ===

    async def list_api_keys(self, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.read("GET", "/1/keys", request_options)

    async def get_api_key(self, key: str, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.read("GET", api_path("/1/keys/%s", key), request_options)

    async def add_api_key(
        self, key_params: Mapping[str, Any], request_options: OptionsLike = None
    ) -> Any:
        return await self._dispatcher.write("POST", "/1/keys", key_params, request_options)

    async def update_api_key(
        self, key: str, key_params: Mapping[str, Any], request_options: OptionsLike = None
    ) -> Any:
        return await self._dispatcher.write(
            "PUT", api_path("/1/keys/%s", key), key_params, request_options
        )

    async def delete_api_key(self, key: str, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.write(
            "DELETE", api_path("/1/keys/%s", key), {}, request_options
        )

    @staticmethod
    def generate_secured_api_key(parent_api_key: str, restrictions: Mapping[str, Any]) -> str:
        return generate_secured_api_key(parent_api_key, restrictions)

    async def wait_for_key_added(
        self,
        key: str,
        request_options: OptionsLike = None,
        max_retries: Optional[int] = None,
        base_interval: Optional[float] = None,
    ) -> None:
        """
        Wait until a freshly created key is visible.

        A 404 means the key has not propagated yet; any other error ends
        the wait.

        Raises:
            TaskTooLongError: The key is still missing after the poll budget
        """
        async def key_exists() -> bool:
            try:
                await self.get_api_key(key, request_options)
            except NotFoundError:
                return False
            return True

        await self._poller.wait_until_done(
            key_exists,
            f"The key {redact_secret(key)}",
            max_retries=max_retries,
            base_interval=base_interval,
        )

    # === Multi-cluster user mapping ===

    async def search_user_ids(self, query: str, request_options: OptionsLike = None) -> Any:
        options = RequestOptions.create(request_options).add_body_parameter("query", query)
        return await self._dispatcher.read("POST", "/1/clusters/mapping/search", options)

    async def list_clusters(self, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.read("GET", "/1/clusters", request_options)

    async def list_user_ids(self, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.read(
            "GET",
            "/1/clusters/mapping",
            request_options,
            default_query={"page": 0, "hitsPerPage": 20},
        )

    async def get_user_id(self, user_id: str, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.read(
            "GET", api_path("/1/clusters/mapping/%s", user_id), request_options
        )

    async def get_top_user_id(self, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.read("GET", "/1/clusters/mapping/top", request_options)

    async def assign_user_id(
        self, user_id: str, cluster_name: str, request_options: OptionsLike = None
    ) -> Any:
        options = RequestOptions.create(request_options).add_header(USER_ID_HEADER, user_id)
        return await self._dispatcher.write(
            "POST", "/1/clusters/mapping", {"cluster": cluster_name}, options
        )

    async def remove_user_id(self, user_id: str, request_options: OptionsLike = None) -> Any:
        options = RequestOptions.create(request_options).add_header(USER_ID_HEADER, user_id)
        return await self._dispatcher.write("DELETE", "/1/clusters/mapping", {}, options)

    # === Logs & tasks ===

    async def get_logs(self, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.read(
            "GET",
            "/1/logs",
            request_options,
            default_query={"offset": 0, "length": 10, "type": "all"},
        )

    async def get_task(
        self, index_name: str, task_id: int, request_options: OptionsLike = None
    ) -> Any:
        return await self.init_index(index_name).get_task(task_id, request_options)

    async def wait_task(
        self,
        index_name: str,
        task_id: int,
        request_options: OptionsLike = None,
        max_retries: Optional[int] = None,
        base_interval: Optional[float] = None,
    ) -> None:
        await self.init_index(index_name).wait_task(
            task_id, request_options, max_retries=max_retries, base_interval=base_interval
        )

    async def custom(
        self,
        method: str,
        path: str,
        request_options: OptionsLike = None,
        hosts: Union[HostLike, Sequence[HostLike], None] = None,
    ) -> Any:
        """Send an arbitrary request; the traffic class follows the verb."""
        return await self._dispatcher.send(method, path, request_options, hosts)

    async def close(self):
        await self._dispatcher.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
