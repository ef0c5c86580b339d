"""
Produce, consume and poll endpoints.

Handlers validate in a fixed order, delegate one call to the LogStore and
shape its result:

- produce: 201 with the assigned offset in ``x-offset``, or 413 when the
  entry exceeds the store's size limit
- consume: 200 with the entry, or 400 ``offset_not_found``
- poll: 200 with the entry, or 204 when the window elapses with nothing new

Store failures become 500 ``store_error`` responses carrying the store's message.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from topicgateway.gateway.dependencies import get_settings, get_store
from topicgateway.gateway.errors import APIError, bad_request, summarize_validation_errors
from topicgateway.gateway.params import require_offset, require_poll_duration, require_topic
from topicgateway.gateway.polling import ClientDisconnected, wait_unless_disconnected
from topicgateway.gateway.schemas import TopicEntry, decode_base64
from topicgateway.store.base import Entry, EntryTooLargeError, LogStore, StoreError
from topicgateway.utils.logging import get_logger

logger = get_logger(__name__)

OFFSET_HEADER = "x-offset"

router = APIRouter()


def _store_error(action: str, exc: StoreError) -> APIError:
    return APIError(status_code=500, code="store_error", message=f"failed to {action}: {exc}")


def _entry_response(entry: Entry) -> JSONResponse:
    headers = {OFFSET_HEADER: str(entry.offset)} if entry.offset is not None else None
    return JSONResponse(
        status_code=200,
        content=TopicEntry.from_entry(entry).model_dump(mode="json"),
        headers=headers,
    )


@router.post("/produce", status_code=201)
async def produce(request: Request, store: LogStore = Depends(get_store)) -> Response:
    topic = require_topic(request)

    body = await request.body()
    try:
        payload = TopicEntry.model_validate_json(body)
    except ValidationError as e:
        raise bad_request(
            "invalid_argument",
            "invalid request body",
            details={"errors": summarize_validation_errors(e)},
        ) from e

    try:
        key = decode_base64(payload.key)
    except ValueError as e:
        raise bad_request("invalid_base64", f"error when base64 decoding key: {e}") from e
    try:
        value = decode_base64(payload.value)
    except ValueError as e:
        raise bad_request("invalid_base64", f"error when base64 decoding value: {e}") from e

    try:
        offset = await store.append(topic, Entry(key=key, value=value, timestamp=payload.timestamp))
    except EntryTooLargeError as e:
        raise APIError(status_code=413, code="entry_too_large", message=f"failed to save entry: {e}") from e
    except StoreError as e:
        raise _store_error("save entry", e) from e

    logger.debug("Produced entry", topic=topic, offset=offset)
    return Response(status_code=201, headers={OFFSET_HEADER: str(offset)})


@router.get("/consume")
async def consume(request: Request, store: LogStore = Depends(get_store)) -> Response:
    topic = require_topic(request)
    offset = require_offset(request)

    try:
        entry = await store.read_at(topic, offset)
    except StoreError as e:
        raise _store_error("read entry", e) from e

    if entry is None:
        raise bad_request("offset_not_found", f"'offset' {offset} not found in topic {topic}")

    return _entry_response(entry)


@router.get("/poll")
async def poll(
    request: Request,
    store: LogStore = Depends(get_store),
    settings=Depends(get_settings),
) -> Response:
    topic = require_topic(request)
    offset = require_offset(request)
    poll_duration_s = require_poll_duration(request, settings.max_poll_duration_s)

    try:
        entry = await wait_unless_disconnected(
            request,
            store.wait_for_next(topic, offset, poll_duration_s),
            settings.disconnect_check_interval_s,
        )
    except StoreError as e:
        raise _store_error("poll for entry", e) from e
    except ClientDisconnected:
        logger.info("Client disconnected during poll", topic=topic, offset=offset)
        return Response(status_code=204)

    if entry is None:
        return Response(status_code=204)

    return _entry_response(entry)


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}
