import asyncio

from fastapi import Request

from messageboard.schemas.message import PaginationType
from messageboard.services.image_store import ImageStore
from messageboard.services.message_store import MessageStore
from messageboard.services.mutations import MutationManager

class AppState:
    def __init__(self, store: MessageStore, images: ImageStore, page_size: int):
        self.store = store
        self.images = images
        self.mutations = MutationManager(page_size)
        self.page_size = page_size
        # cursor of the pagination pass a client started with GET /api/messages
        self.pagination_triggered = False
        self.pagination_kind = PaginationType.fresh
        self.db_offset = 0
        self.lock = asyncio.Lock()

def get_state(request: Request) -> AppState:
    return request.app.state.board
