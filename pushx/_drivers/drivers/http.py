"""HTTP driver: sends the payload as the body of a single request.

Configuration (flag / environment variable under the run prefix):
    --http-method                  HTTP_REQUEST_METHOD (default: POST)
    --http-url                     HTTP_REQUEST_URL (required)
    --http-content-type            HTTP_REQUEST_CONTENT_TYPE
    --http-headers                 HTTP_REQUEST_HEADERS, "Name:value,Name:value"
    --http-successful-status-codes HTTP_REQUEST_SUCCESSFUL_STATUS_CODES, "200,201"
    --http-enable-tls and friends  HTTP_ENABLE_TLS, HTTP_TLS_*

Without an explicit list of successful status codes any 2xx response is
accepted.
"""

from typing import Any, BinaryIO, Dict, Optional

import requests

from pushx.exceptions import DeliveryError
from pushx.http_client import DEFAULT_TIMEOUT, get_default_headers
from pushx.logging_config import logger
from pushx.tls import requests_tls_kwargs

from ..protocol import BaseDriver, Setting, parse_int_list, parse_pairs, tls_settings


class HTTPDriver(BaseDriver):
    name = "http"
    description = "Send the payload in an HTTP request"

    SETTINGS = (
        Setting("method", "http-method", "HTTP_REQUEST_METHOD", "HTTP method", default="POST"),
        Setting("url", "http-url", "HTTP_REQUEST_URL", "HTTP url"),
        Setting("content_type", "http-content-type", "HTTP_REQUEST_CONTENT_TYPE", "HTTP content type"),
        Setting(
            "headers",
            "http-headers",
            "HTTP_REQUEST_HEADERS",
            "HTTP headers, comma separated Name:value pairs",
            parser=parse_pairs(":"),
        ),
        Setting(
            "successful_status_codes",
            "http-successful-status-codes",
            "HTTP_REQUEST_SUCCESSFUL_STATUS_CODES",
            "HTTP status codes treated as success, comma separated",
            parser=parse_int_list,
        ),
        *tls_settings("http", "HTTP", "HTTP"),
    )

    def __init__(self) -> None:
        super().__init__()
        self._session: Optional[requests.Session] = None
        self._tls_kwargs: Dict[str, Any] = {}

    def init(self) -> None:
        super().init()
        self.require("url")
        self.method = (self.method or "POST").upper()
        self._tls_kwargs = requests_tls_kwargs(self.tls_options())
        self._session = requests.Session()
        logger.debug(f"[http] {self.method} {self.url}")

    def _is_success(self, status_code: int) -> bool:
        if self.successful_status_codes:
            return status_code in self.successful_status_codes
        return 200 <= status_code < 300

    def push(self, stream: BinaryIO) -> None:
        if self._session is None:
            raise DeliveryError("http: driver not initialized")

        headers = get_default_headers(content_type=self.content_type or None)
        headers.update(self.headers or {})

        try:
            response = self._session.request(
                self.method,
                self.url,
                data=stream,
                headers=headers,
                timeout=DEFAULT_TIMEOUT,
                **self._tls_kwargs,
            )
        except requests.exceptions.ConnectionError as e:
            raise DeliveryError(f"http: failed to connect to {self.url}: {e}")
        except requests.exceptions.Timeout:
            raise DeliveryError(f"http: request to {self.url} timed out")
        except requests.exceptions.RequestException as e:
            raise DeliveryError(f"http: request failed: {e}")

        if not self._is_success(response.status_code):
            err_msg = f"http: unexpected status code [{response.status_code}]"
            response_text = response.text[:500]
            if response_text:
                err_msg += f" - {response_text}"
            raise DeliveryError(err_msg)

        logger.info(f"HTTP {self.method} {self.url} returned {response.status_code}")

    def cleanup(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
