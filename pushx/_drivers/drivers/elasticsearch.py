"""Elasticsearch driver: indexes the payload as one document.

With a document id the request is ``PUT /<index>/_doc/<id>``, otherwise
``POST /<index>/_doc`` and Elasticsearch assigns the id. The id may contain
``{{selector}}`` tokens resolved against the payload.
"""

from typing import Any, BinaryIO, Dict, Optional
from urllib.parse import quote

import requests

from pushx.exceptions import DeliveryError
from pushx.http_client import DEFAULT_TIMEOUT, get_default_headers
from pushx.logging_config import logger
from pushx.template import render
from pushx.tls import requests_tls_kwargs

from ..protocol import BaseDriver, Setting, tls_settings


class ElasticsearchDriver(BaseDriver):
    name = "elasticsearch"
    description = "Index the payload as an Elasticsearch document"

    SETTINGS = (
        Setting("address", "elasticsearch-address", "ELASTICSEARCH_ADDRESS", "Elasticsearch address"),
        Setting("username", "elasticsearch-username", "ELASTICSEARCH_USERNAME", "Elasticsearch username"),
        Setting(
            "password", "elasticsearch-password", "ELASTICSEARCH_PASSWORD", "Elasticsearch password", secret=True
        ),
        Setting("index", "elasticsearch-index", "ELASTICSEARCH_INDEX", "Elasticsearch index"),
        Setting(
            "doc_id",
            "elasticsearch-doc-id",
            "ELASTICSEARCH_DOC_ID",
            "Document id; may contain {{selector}} tokens",
        ),
        *tls_settings("elasticsearch", "ELASTICSEARCH", "Elasticsearch"),
    )

    def __init__(self) -> None:
        super().__init__()
        self._session: Optional[requests.Session] = None
        self._tls_kwargs: Dict[str, Any] = {}

    def init(self) -> None:
        super().init()
        self.require("address", "index")
        self.address = self.address.rstrip("/")
        self._tls_kwargs = requests_tls_kwargs(self.tls_options())
        self._session = requests.Session()
        self._session.headers.update(get_default_headers(content_type="application/json"))
        if self.username:
            self._session.auth = (self.username, self.password or "")

    def push(self, stream: BinaryIO) -> None:
        if self._session is None:
            raise DeliveryError("elasticsearch: driver not initialized")

        payload = stream.read()
        doc_id = render(payload, self.doc_id) if self.doc_id else ""
        if doc_id:
            method = "PUT"
            url = f"{self.address}/{quote(self.index, safe='')}/_doc/{quote(doc_id, safe='')}"
        else:
            method = "POST"
            url = f"{self.address}/{quote(self.index, safe='')}/_doc"

        try:
            response = self._session.request(method, url, data=payload, timeout=DEFAULT_TIMEOUT, **self._tls_kwargs)
        except requests.exceptions.RequestException as e:
            raise DeliveryError(f"elasticsearch: request failed: {e}")

        if response.status_code not in (200, 201):
            err_msg = f"elasticsearch: failed to index document. [{response.status_code}]"
            response_text = response.text[:500]
            if response_text:
                err_msg += f" - {response_text}"
            raise DeliveryError(err_msg)

        try:
            result_id = response.json().get("_id")
        except ValueError:
            result_id = None
        logger.info(f"Indexed document {result_id or doc_id} into {self.index}")

    def cleanup(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
