"""Wire representation of entries: base64 key and value, RFC 3339 timestamp."""

from __future__ import annotations

import base64
import binascii

from pydantic import AwareDatetime, BaseModel, ConfigDict

from topicgateway.store.base import Entry


class TopicEntry(BaseModel):
    """An entry as it travels over HTTP."""

    model_config = ConfigDict(extra="ignore")

    key: str
    value: str
    timestamp: AwareDatetime

    @classmethod
    def from_entry(cls, entry: Entry) -> "TopicEntry":
        return cls(
            key=base64.b64encode(entry.key).decode("ascii"),
            value=base64.b64encode(entry.value).decode("ascii"),
            timestamp=entry.timestamp,
        )


def decode_base64(text: str) -> bytes:
    """
    Decode standard, padded base64.

    Raises:
        ValueError: If the text has characters outside the alphabet or bad padding
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(str(e)) from e
