"""
Payload CMS REST API client for the WeMeditate migrator.

This module provides a client wrapper for the Payload REST API, handling
authentication, transport-level retries, localized reads and writes, query
string encoding of ``where`` clauses, and multipart file uploads.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from exceptions import DestinationStoreError

logger = logging.getLogger('wemeditate_migrator.importers.payload_client')


@dataclass
class UploadFile:
    """Raw bytes for an upload-enabled collection."""

    data: bytes
    name: str
    mimetype: str

    @property
    def size(self) -> int:
        return len(self.data)


def flatten_where(where: Any, prefix: str = 'where') -> List[Tuple[str, str]]:
    """
    Flatten a nested where clause into query-string pairs.

    Example:
        >>> flatten_where({'filename': {'contains': 'abc'}})
        [('where[filename][contains]', 'abc')]

    Args:
        where: Nested dict/list where clause
        prefix: Key prefix for the current nesting level

    Returns:
        List of (key, value) pairs
    """
    pairs: List[Tuple[str, str]] = []
    if isinstance(where, dict):
        for key, value in where.items():
            pairs.extend(flatten_where(value, f"{prefix}[{key}]"))
    elif isinstance(where, (list, tuple)):
        for index, value in enumerate(where):
            pairs.extend(flatten_where(value, f"{prefix}[{index}]"))
    elif isinstance(where, bool):
        pairs.append((prefix, 'true' if where else 'false'))
    elif where is None:
        pairs.append((prefix, 'null'))
    else:
        pairs.append((prefix, str(where)))
    return pairs


class PayloadClient:
    """Payload CMS REST API client with retry logic."""

    DEFAULT_TIMEOUT = 60
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_RETRY_BACKOFF = 0.5

    def __init__(
        self,
        base_url: str,
        api_key: str,
        auth_collection: str = 'users',
        verify_ssl: bool = True,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_factor: float = DEFAULT_RETRY_BACKOFF,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize Payload client.

        Args:
            base_url: Payload server base URL (without ``/api``)
            api_key: API key of the migration user
            auth_collection: Slug of the auth-enabled collection owning the key
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            max_retries: Transport-level retries for 429/5xx on idempotent
                methods; POST and PATCH are never re-sent
            retry_backoff_factor: Backoff factor for transport retries
            session: Optional pre-built session (used by tests)
        """
        self.base_url = base_url.rstrip('/')
        self.verify_ssl = verify_ssl
        self.timeout = timeout

        if session is None:
            session = requests.Session()
            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=retry_backoff_factor,
                status_forcelist=[429, 500, 502, 503, 504],
                raise_on_status=False
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount('http://', adapter)
            session.mount('https://', adapter)

        self.session = session
        self.session.headers.update({
            'Authorization': f'{auth_collection} API-Key {api_key}',
            'Accept': 'application/json'
        })

        logger.debug(f"Initialized Payload client for {self.base_url}")

    def _make_request(
        self,
        method: str,
        path: str,
        params: Optional[List[Tuple[str, str]]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False
    ) -> Optional[Dict[str, Any]]:
        """
        Make HTTP request and decode the JSON response.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            path: Path below ``/api``
            params: Query parameters as ordered pairs
            json_body: JSON payload
            data: Form fields for multipart uploads
            files: Files for multipart uploads
            allow_not_found: Return None instead of raising on 404

        Returns:
            JSON response as dictionary

        Raises:
            DestinationStoreError: For transport failures and non-2xx responses
        """
        url = f"{self.base_url}/api{path}"
        logger.debug(f"{method} {url} {params or ''}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_body,
                data=data,
                files=files,
                verify=self.verify_ssl,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise DestinationStoreError(f"Request failed: {method} {url} - {e}") from e

        logger.debug(f"Response status: {response.status_code}")

        if allow_not_found and response.status_code == 404:
            return None

        if response.status_code >= 400:
            body = response.text or ''
            raise DestinationStoreError(
                f"{method} {url} failed: {body[:500]}",
                status_code=response.status_code,
                body=body
            )

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    @staticmethod
    def _params(locale: Optional[str] = None, **extra: Any) -> List[Tuple[str, str]]:
        params = [('depth', '0')]
        if locale:
            params.append(('locale', locale))
        for key, value in extra.items():
            params.append((key, str(value)))
        return params

    @staticmethod
    def _unwrap(response: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if response and isinstance(response.get('doc'), dict):
            return response['doc']
        return response or {}

    def _write(
        self,
        method: str,
        path: str,
        data: Dict[str, Any],
        file: Optional[UploadFile],
        locale: Optional[str]
    ) -> Dict[str, Any]:
        params = self._params(locale)
        if file is None:
            response = self._make_request(method, path, params=params, json_body=data)
        else:
            files = {'file': (file.name, file.data, file.mimetype)}
            form = {'_payload': json.dumps(data)}
            response = self._make_request(method, path, params=params, data=form, files=files)
        return self._unwrap(response)

    def create(
        self,
        collection: str,
        data: Dict[str, Any],
        file: Optional[UploadFile] = None,
        locale: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a document and return it (always carrying ``id``)."""
        return self._write('POST', f'/{collection}', data, file, locale)

    def update(
        self,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        file: Optional[UploadFile] = None,
        locale: Optional[str] = None
    ) -> Dict[str, Any]:
        """Update a document in place."""
        return self._write('PATCH', f'/{collection}/{doc_id}', data, file, locale)

    def find(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        limit: int = 10,
        page: int = 1,
        locale: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Query a collection.

        Returns:
            Dict with at least ``docs`` and ``totalDocs``
        """
        params = self._params(locale, limit=limit, page=page)
        if where:
            params.extend(flatten_where(where))
        response = self._make_request('GET', f'/{collection}', params=params) or {}
        response.setdefault('docs', [])
        response.setdefault('totalDocs', len(response['docs']))
        return response

    def find_all(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        locale: Optional[str] = None,
        page_size: int = 100
    ) -> Iterator[Dict[str, Any]]:
        """Iterate over every matching document, page by page."""
        page = 1
        while True:
            result = self.find(collection, where=where, limit=page_size, page=page, locale=locale)
            for doc in result['docs']:
                yield doc
            if not result.get('hasNextPage'):
                break
            page += 1

    def find_by_id(self, collection: str, doc_id: str, locale: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Get a document by id, or None if it does not exist."""
        return self._make_request(
            'GET', f'/{collection}/{doc_id}', params=self._params(locale), allow_not_found=True
        )

    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document by id."""
        self._make_request('DELETE', f'/{collection}/{doc_id}')

    def check_connection(self, collection: str = 'media') -> None:
        """
        Verify the API is reachable and the key is accepted.

        Raises:
            DestinationStoreError: If the request fails
        """
        self.find(collection, limit=1)
        logger.info(f"Payload API reachable at {self.base_url}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'PayloadClient':
        """
        Create client from configuration dictionary.

        Args:
            config: Configuration dict with 'payload' section

        Returns:
            Configured PayloadClient instance
        """
        payload_config = config.get('payload', {})

        return cls(
            base_url=payload_config.get('base_url'),
            api_key=payload_config.get('api_key'),
            auth_collection=payload_config.get('auth_collection', 'users'),
            verify_ssl=payload_config.get('verify_ssl', True),
            timeout=payload_config.get('timeout', cls.DEFAULT_TIMEOUT),
            max_retries=payload_config.get('max_retries', cls.DEFAULT_MAX_RETRIES),
            retry_backoff_factor=payload_config.get('retry_backoff_factor', cls.DEFAULT_RETRY_BACKOFF)
        )


__all__ = ['PayloadClient', 'UploadFile', 'flatten_where']
