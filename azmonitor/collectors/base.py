from ..core.logging import get_logger


class BaseCollector:
    def __init__(self, provider: str):
        self.provider = provider
        self.logger = get_logger(f"collectors.{provider}")

    def _handle_error(self, operation: str, error: Exception):
        self.logger.error(
            f"[{self.provider}] {operation} failed: {error}",
            extra={"error_type": type(error).__name__},
        )
