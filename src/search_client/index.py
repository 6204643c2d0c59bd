"""
Single-index operations.
"""

from typing import Any, Optional

from search_client.helpers import api_path
from search_client.models.request_options import RequestOptions
from search_client.transport.dispatcher import OptionsLike, RequestDispatcher
from search_client.waiting import TaskPoller


class SearchIndex:
    """Operations scoped to one index, obtained from SearchClient.init_index()."""

    def __init__(self, index_name: str, dispatcher: RequestDispatcher, poller: TaskPoller):
        self.index_name = index_name
        self._dispatcher = dispatcher
        self._poller = poller

    async def search(self, query: str, request_options: OptionsLike = None) -> Any:
        options = RequestOptions.create(request_options).add_body_parameter("query", query)
        return await self._dispatcher.read(
            "POST", api_path("/1/indexes/%s/query", self.index_name), options
        )

    async def get_settings(self, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.read(
            "GET",
            api_path("/1/indexes/%s/settings", self.index_name),
            request_options,
            default_query={"getVersion": 2},
        )

    async def clear_objects(self, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.write(
            "POST", api_path("/1/indexes/%s/clear", self.index_name), {}, request_options
        )

    async def delete(self, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.write(
            "DELETE", api_path("/1/indexes/%s", self.index_name), {}, request_options
        )

    async def get_task(self, task_id: int, request_options: OptionsLike = None) -> Any:
        return await self._dispatcher.read(
            "GET", api_path("/1/indexes/%s/task/%s", self.index_name, task_id), request_options
        )

    async def wait_task(
        self,
        task_id: int,
        request_options: OptionsLike = None,
        max_retries: Optional[int] = None,
        base_interval: Optional[float] = None,
    ) -> None:
        """
        Wait until the task is published.

        Raises:
            TaskTooLongError: The task is still not published after the poll budget
        """
        async def is_published() -> bool:
            task = await self.get_task(task_id, request_options)
            return task.get("status") == "published"

        await self._poller.wait_until_done(
            is_published,
            f"Task {task_id} on index {self.index_name}",
            max_retries=max_retries,
            base_interval=base_interval,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(index_name={self.index_name!r})"
