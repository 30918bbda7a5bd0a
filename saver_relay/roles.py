from enum import Enum


class InvalidRoleError(ValueError):
    """Raised when a peer asks to register under a role the relay does not know."""

    def __init__(self, value):
        super().__init__(f"Unknown client type: {value!r}")
        self.value = value


class Role(str, Enum):
    EXTENSION = "extension"
    CONTROLLER = "controller"

    def __str__(self):
        return self.value

    @classmethod
    def parse(cls, value) -> "Role":
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            value = _ALIASES.get(value, value)
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidRoleError(value)


# the first controller was an iPad page and still registers as "ipad"
_ALIASES = {"ipad": Role.CONTROLLER.value}
