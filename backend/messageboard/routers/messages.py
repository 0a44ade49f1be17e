import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from messageboard.core.errors import ConstraintViolation, NotFound
from messageboard.core.state import AppState, get_state
from messageboard.schemas.message import (
    CompleteMessage,
    MessageCreate,
    MessageRecord,
    MessageUpdate,
    PaginationMetadata,
    PaginationType,
    ServerPutUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/messages",
    tags=["messages"],
    responses={404: {"description": "Not found"}},
)

@router.get("", response_model=PaginationMetadata)
async def get_pagination_meta(state: AppState = Depends(get_state)):
    """Start a pagination pass and report how many pages it has."""
    async with state.lock:
        state.pagination_triggered = True
        # an earlier pass may have left cache entries undrained
        if not (state.mutations.is_empty_for_pagination() and state.mutations.is_pagination_empty()):
            state.pagination_kind = PaginationType.cache
            return state.mutations.get_pagination_meta()
        state.pagination_kind = PaginationType.fresh
        state.db_offset = 0
        count = await state.store.count()
    return PaginationMetadata.build(count, state.page_size, PaginationType.fresh)

@router.get("/get-page")
async def get_page(state: AppState = Depends(get_state)):
    async with state.lock:
        if not state.pagination_triggered:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Pagination not triggered yet.",
            )

        if state.pagination_kind is PaginationType.cache:
            result = state.mutations.get()
            state.pagination_triggered = not result.done
            return result

        records = await state.store.page(state.db_offset, state.page_size)
        if len(records) == state.page_size:
            state.db_offset += state.page_size
        else:
            state.db_offset = 0
            state.pagination_triggered = False

    images = state.images.get_many([r.uuid if r.has_image else None for r in records])
    return [CompleteMessage.from_record(r, image) for r, image in zip(records, images)]

@router.get("/{uuid}", response_model=CompleteMessage)
async def get_message(uuid: str, state: AppState = Depends(get_state)):
    try:
        record = await state.store.get(uuid)
    except NotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    image = state.images.get(record.uuid) if record.has_image else None
    return CompleteMessage.from_record(record, image)

@router.post("", status_code=status.HTTP_201_CREATED, response_model=MessageRecord)
async def create_message(payload: MessageCreate, state: AppState = Depends(get_state)):
    if payload.image_update and payload.base64_image is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="base64Image is required when imageUpdate is set.",
        )

    record = payload.to_record()
    async with state.lock:
        try:
            await state.store.insert(record)
        except ConstraintViolation as exc:
            logger.info("Rejected message %s: %s", record.uuid, exc)
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

        image = None
        if payload.image_update:
            try:
                state.images.save(record.uuid, payload.base64_image)
            except OSError:
                logger.exception("Failed to save image for message %s", record.uuid)
                await state.store.delete(record.uuid)
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Failed to save image.",
                )
            image = payload.base64_image

        state.mutations.add_post(CompleteMessage.from_record(record, image))
    return record

@router.put("/{uuid}", status_code=status.HTTP_204_NO_CONTENT)
async def update_message(uuid: str, payload: MessageUpdate, state: AppState = Depends(get_state)):
    fields = payload.column_updates()
    if payload.image_update:
        fields["has_image"] = payload.base64_image is not None
    if not fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields were provided to update.",
        )

    async with state.lock:
        try:
            # the image is written before has_image is committed
            await state.store.get(uuid)
            if payload.image_update and payload.base64_image is not None:
                try:
                    state.images.save(uuid, payload.base64_image)
                except OSError:
                    logger.exception("Failed to save image for message %s", uuid)
                    raise HTTPException(
                        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                        detail="Failed to save image.",
                    )
            record = await state.store.update(uuid, fields)
        except NotFound:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
        except ConstraintViolation as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

        if payload.image_update and payload.base64_image is None:
            state.images.remove(uuid)

        state.mutations.add_put(uuid, ServerPutUpdate(
            author=record.author,
            message=record.message,
            likes=record.likes,
            image_updated=bool(payload.image_update),
            image=payload.base64_image if payload.image_update else None,
        ))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.delete("/{uuid}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(uuid: str, state: AppState = Depends(get_state)):
    async with state.lock:
        try:
            await state.store.delete(uuid)
        except NotFound:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
        state.images.remove(uuid)
        state.mutations.add_delete(uuid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.patch("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_messages(state: AppState = Depends(get_state)):
    """Remove every message, image and pending mutation."""
    async with state.lock:
        removed = await state.store.clear()
        if removed == 0:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No messages to clear")
        state.images.clear()
        state.mutations.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
