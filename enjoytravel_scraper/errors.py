# enjoytravel_scraper/errors.py
import json
from typing import Any, List


class ScraperError(RuntimeError):
    pass


class ConfigurationError(ScraperError):
    pass


class TransportError(ScraperError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"BrowserQL request failed: {status_code} - {body[:300]}")


class ExecutionError(ScraperError):
    def __init__(self, errors: List[Any]):
        self.errors = errors
        super().__init__(f"BrowserQL errors: {json.dumps(errors, default=str)[:500]}")


class ParseError(ScraperError):
    def __init__(self, message: str, text: str = ""):
        self.text = text
        super().__init__(message)


class SearchValidationError(ScraperError):
    pass
