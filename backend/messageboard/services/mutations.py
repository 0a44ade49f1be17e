"""Log of message changes not yet paged out to a client.

Between two pagination passes the server remembers which messages were
posted, updated or deleted. When a client starts a pass and the log is not
empty, it is served these changes ("Cache" pagination) instead of the whole
table.
"""
from collections import deque
from enum import Enum
from typing import Deque, Dict, List, Optional, Tuple, Union

from messageboard.schemas.message import (
    ClientPutUpdate,
    CompleteMessage,
    MutationResults,
    PaginationMetadata,
    PaginationType,
    PutDeleteUpdate,
    ServerPutUpdate,
)

class Kind(str, Enum):
    post = "post"
    put = "put"
    delete = "delete"

class MutationManager:
    def __init__(self, page_size: int):
        self.page_size = page_size
        self.updates_post: Dict[str, CompleteMessage] = {}
        self.updates_put: Dict[str, ServerPutUpdate] = {}
        self.updates_delete: List[str] = []
        # entries handed to pagination passes, each carrying its own payload
        self.updates_all: Deque[Tuple[Kind, str, Optional[Union[CompleteMessage, ServerPutUpdate]]]] = deque()

    def is_empty_for_pagination(self) -> bool:
        return not (self.updates_post or self.updates_put or self.updates_delete)

    def is_pagination_empty(self) -> bool:
        return not self.updates_all

    def add_post(self, message: CompleteMessage):
        self.updates_post[message.uuid] = message

    def add_put(self, uuid: str, put: ServerPutUpdate):
        # a pending post absorbs the update
        if uuid in self.updates_post:
            self.updates_post[uuid].apply(put)
            return
        if uuid in self.updates_put:
            self.updates_put[uuid].merge(put)
            return
        self.updates_put[uuid] = put

    def add_delete(self, uuid: str):
        self.updates_put.pop(uuid, None)
        if self.updates_post.pop(uuid, None) is None:
            self.updates_delete.append(uuid)

    def get_pagination_meta(self) -> PaginationMetadata:
        """Queue the pending changes behind whatever an earlier pass left undrained."""
        for uuid in sorted(self.updates_post):
            self.updates_all.append((Kind.post, uuid, self.updates_post[uuid]))

        puts_deletes = [(Kind.put, uuid, put) for uuid, put in self.updates_put.items()]
        puts_deletes.extend((Kind.delete, uuid, None) for uuid in self.updates_delete)
        puts_deletes.sort(key=lambda entry: entry[1])
        self.updates_all.extend(puts_deletes)

        self.updates_post = {}
        self.updates_put = {}
        self.updates_delete = []

        return PaginationMetadata.build(len(self.updates_all), self.page_size, PaginationType.cache)

    def get(self) -> MutationResults:
        result = MutationResults()
        for _ in range(self.page_size):
            if not self.updates_all:
                result.done = True
                break
            kind, uuid, payload = self.updates_all.popleft()
            if kind is Kind.post:
                result.posts.append(payload)
            elif kind is Kind.put:
                put = ClientPutUpdate.from_server(payload)
                result.puts_deletes.append(PutDeleteUpdate(uuid=uuid, put=put))
            else:
                result.puts_deletes.append(PutDeleteUpdate(uuid=uuid, delete=True))
        return result

    def clear(self):
        self.updates_post.clear()
        self.updates_put.clear()
        self.updates_delete.clear()
        self.updates_all.clear()
