from os import getenv

VERSION: str = "0.1.0"

USER_AGENT: str = f"minifetch/{VERSION}"

# Size of each read from the channel when waiting for the response
READ_BUFFER: int = int(getenv("MINIFETCH_READ_BUFFER", 64_000))

# One of debug, info, checkpoint, warning, error
LOG_LEVEL: str = getenv("MINIFETCH_LOG_LEVEL", "warning").lower()

DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

# EOF
