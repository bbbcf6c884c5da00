"""In-memory stand-ins for the Payload API, the legacy database and HTTP."""

import copy
import io
import json
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from PIL import Image

from exceptions import DestinationStoreError


def image_bytes(color=(200, 30, 30), size=(8, 6), fmt='PNG', mode='RGB') -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, fmt)
    return buffer.getvalue()


def sample_config(cache_dir, **migration) -> Dict[str, Any]:
    config = {
        'payload': {
            'base_url': 'http://cms.test',
            'api_key': 'secret',
            'timeout': 5,
        },
        'source': {
            'database_uri': 'postgresql://localhost/wemeditate',
        },
        'migration': {
            'cache_dir': str(cache_dir),
            'import_tag': 'import-test',
            'locales': ['en', 'es'],
            'storage_base_url': 'https://assets.test/uploads/',
            'image_quality': 80,
            'find_limit': 50,
            'progress_bars': False,
            'report_path': None,
        },
        'logging': {'level': None, 'file': None},
    }
    config['migration'].update(migration)
    return config


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, content: Optional[bytes] = None):
        self.status_code = status_code
        if content is None:
            content = json.dumps(payload).encode('utf-8') if payload is not None else b''
        self.content = content
        self.text = content.decode('utf-8', errors='replace')

    def json(self):
        return json.loads(self.content)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Records requests; answers ``request`` from a queue and ``get`` from a URL map."""

    def __init__(self, responses: Optional[List[Any]] = None, content_by_url: Optional[Dict[str, bytes]] = None):
        self.headers: Dict[str, str] = {}
        self.responses = list(responses or [])
        self.content_by_url = dict(content_by_url or {})
        self.calls: List[Dict[str, Any]] = []

    def request(self, method, url, **kwargs):
        self.calls.append({'method': method, 'url': url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, timeout=None):
        self.calls.append({'method': 'GET', 'url': url, 'timeout': timeout})
        if url not in self.content_by_url:
            return FakeResponse(404)
        return FakeResponse(200, content=self.content_by_url[url])


def _matches(doc: Dict[str, Any], where: Optional[Dict[str, Any]]) -> bool:
    for field, condition in (where or {}).items():
        value = doc.get(field)
        for operator, expected in condition.items():
            if operator == 'equals' and value != expected:
                return False
            if operator == 'contains' and str(expected) not in str(value or ''):
                return False
            if operator == 'in':
                values = value if isinstance(value, list) else [value]
                if not any(v in expected for v in values):
                    return False
    return True


class FakePayloadClient:
    """Payload client backed by dictionaries.

    Writes without a locale or in ``default_locale`` land on the document;
    every localized write is also kept in ``localized``.
    """

    def __init__(self, default_locale: str = 'en'):
        self.default_locale = default_locale
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self.localized: Dict[tuple, Dict[str, Any]] = defaultdict(dict)
        self.calls: List[tuple] = []
        self.failures: Dict[tuple, Exception] = {}
        self.connection_checks = 0
        self._counter = 0

    def seed(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        self.collections[collection][str(doc['id'])] = dict(doc)
        return doc

    def docs(self, collection: str) -> List[Dict[str, Any]]:
        return list(self.collections[collection].values())

    def _check_failure(self, method: str, collection: str) -> None:
        error = self.failures.get((method, collection))
        if error is not None:
            raise error

    def _write_localized(self, collection, doc_id, data, locale):
        if locale:
            self.localized[(collection, doc_id, locale)].update(copy.deepcopy(data))
        if locale in (None, self.default_locale):
            self.collections[collection][doc_id].update(copy.deepcopy(data))

    def create(self, collection, data, file=None, locale=None):
        self.calls.append(('create', collection, locale))
        self._check_failure('create', collection)
        self._counter += 1
        doc_id = f"id-{self._counter}"
        self.collections[collection][doc_id] = {'id': doc_id}
        self._write_localized(collection, doc_id, data, locale)
        if file is not None:
            filename = file.name
            taken = {doc.get('filename') for doc in self.docs(collection)}
            if filename in taken:
                path = Path(filename)
                filename = f"{path.stem}-{self._counter}{path.suffix}"
            self.collections[collection][doc_id]['filename'] = filename
            self.collections[collection][doc_id]['filesize'] = file.size
        return copy.deepcopy(self.collections[collection][doc_id])

    def update(self, collection, doc_id, data, file=None, locale=None):
        self.calls.append(('update', collection, locale))
        self._check_failure('update', collection)
        if doc_id not in self.collections[collection]:
            raise DestinationStoreError(f"{collection}/{doc_id} not found", status_code=404)
        self._write_localized(collection, doc_id, data, locale)
        return copy.deepcopy(self.collections[collection][doc_id])

    def find(self, collection, where=None, limit=10, page=1, locale=None):
        self.calls.append(('find', collection, locale))
        self._check_failure('find', collection)
        docs = [copy.deepcopy(doc) for doc in self.docs(collection) if _matches(doc, where)]
        return {'docs': docs[:limit], 'totalDocs': len(docs), 'hasNextPage': False}

    def find_all(self, collection, where=None, locale=None, page_size=100):
        for doc in self.find(collection, where=where, limit=10 ** 6, locale=locale)['docs']:
            yield doc

    def find_by_id(self, collection, doc_id, locale=None):
        doc = self.collections[collection].get(str(doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    def delete(self, collection, doc_id):
        self.calls.append(('delete', collection, None))
        if self.collections[collection].pop(str(doc_id), None) is None:
            raise DestinationStoreError(f"{collection}/{doc_id} not found", status_code=404)

    def check_connection(self, collection='media'):
        self.connection_checks += 1


class FakeLegacySource:
    """Legacy database rows held in memory."""

    def __init__(
        self,
        authors=None,
        author_images=None,
        categories=None,
        pages=None,
        promo_pages=None,
        contents=None,
        meditation_titles=None
    ):
        self.authors = list(authors or [])
        self.author_images = list(author_images or [])
        self.categories = list(categories or [])
        self.pages = dict(pages or {})
        self.promo_pages = list(promo_pages or [])
        self.contents = dict(contents or {})
        self.meditation_titles = dict(meditation_titles or {})
        self.events: List[str] = []

    def provision(self):
        self.events.append('provision')

    def cleanup(self):
        self.events.append('cleanup')

    def ping(self):
        self.events.append('ping')

    def fetch_authors(self):
        return list(self.authors)

    def fetch_author_images(self):
        return list(self.author_images)

    def fetch_categories(self):
        return list(self.categories)

    def fetch_pages(self, kind):
        return list(self.pages.get(kind, []))

    def fetch_promo_pages(self):
        return list(self.promo_pages)

    def fetch_page_contents(self, kind):
        return list(self.contents.get(kind, []))

    def fetch_meditation_titles(self):
        return dict(self.meditation_titles)
