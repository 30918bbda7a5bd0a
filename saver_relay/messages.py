"""
Wire messages exchanged over the relay (one JSON object per frame).

  register           peer -> relay        {client}
  registered         relay -> peer        {client, message}
  content-update     extension -> controller   {url, platform, title}
  save-request       controller -> extension   {tag, url}
  save-confirmation  extension -> controller   {tag, success, error}

Only `type` is checked; every other field travels untouched.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, PrivateAttr

REGISTER = "register"
REGISTERED = "registered"
CONTENT_UPDATE = "content-update"
SAVE_REQUEST = "save-request"
SAVE_CONFIRMATION = "save-confirmation"

# close code the relay uses when a newer connection takes over a role
CLOSE_REPLACED = 4000

# names used by the first extension release
LEGACY_TYPES = {
    "current_content": CONTENT_UPDATE,
    "save_to_tag": SAVE_REQUEST,
    "save_confirmation": SAVE_CONFIRMATION,
}


class Message(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    type: str

    _frame: Optional[str] = PrivateAttr(default=None)

    @classmethod
    def from_frame(cls, frame: Union[str, bytes]) -> "Message":
        """Parse one inbound frame. Raises pydantic.ValidationError on bad JSON or a missing type."""
        message = cls.model_validate_json(frame)
        if isinstance(frame, bytes):
            frame = frame.decode("utf-8")
        message._frame = frame
        return message

    @property
    def kind(self) -> str:
        return LEGACY_TYPES.get(self.type, self.type)

    @property
    def frame(self) -> str:
        """The exact text this message arrived as, so forwarding is verbatim."""
        if self._frame is None:
            return self.model_dump_json()
        return self._frame

    def get(self, field: str, default=None):
        return (self.model_extra or {}).get(field, default)


class Registered(BaseModel):
    type: str = REGISTERED
    client: str
    message: str = "Successfully registered"
