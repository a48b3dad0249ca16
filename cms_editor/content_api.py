"""
Remote content API clients.

Every operation is asynchronous and may fail; none of them retries. Two
backends share one interface:

- ``HttpContentAPI`` talks to the CMS REST API with httpx. Responses use the
  ``{success, data, message, errors}`` envelope.
- ``InMemoryContentAPI`` keeps content in process memory. It backs the
  dashboard when no server is configured and stands in for the server in tests.
"""

import logging
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

import httpx
import yaml

from .exceptions import NotFoundError, RemoteValidationError, TransportError
from .id_source import IdentifierSource, get_default_source

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ContentAPI(Protocol):
    """Operations the editing model needs from the content server."""

    async def fetch(self, doc_type: str) -> Dict[str, Any]:
        ...

    async def update(self, doc_type: str, document: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def list(self, doc_type: str) -> List[Dict[str, Any]]:
        ...

    async def create(self, doc_type: str, document: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def update_item(self, doc_type: str, item_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def delete(self, doc_type: str, item_id: str) -> None:
        ...

    async def update_status(self, doc_type: str, item_id: str, status: str) -> Dict[str, Any]:
        ...


def resource_slug(doc_type: str) -> str:
    """URL segment for a document type (``land_wanted`` -> ``land-wanted``)."""
    return doc_type.replace('_', '-')


def first_error_messages(errors: Any) -> Dict[str, str]:
    """Reduce a ``{field: [messages]}`` mapping to one message per field."""
    if not isinstance(errors, dict):
        return {}
    result = {}
    for field_path, messages in errors.items():
        if isinstance(messages, list):
            if messages:
                result[str(field_path)] = str(messages[0])
        elif messages:
            result[str(field_path)] = str(messages)
    return result


class HttpContentAPI:
    """
    Content API client over HTTP.

    Pages live at ``/content/{page}``; collections at ``/{collection}`` and
    ``/{collection}/{id}``, with lead status changes at
    ``/{collection}/{id}/status``.
    """

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT,
                 client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._client = client

    async def _request(self, method: str, path: str, doc_type: str, item_id: Optional[str] = None,
                       json_body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"

        close_client = False
        client = self._client
        if client is None:
            client = httpx.AsyncClient(timeout=self.timeout)
            close_client = True

        try:
            logger.debug(f"{method} {url}")
            response = await client.request(method, url, json=json_body)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TransportError(
                f"Could not reach the content server: {e}",
                context={'method': method, 'url': url}
            ) from e
        finally:
            if close_client:
                await client.aclose()

        return self._unwrap(response, method, url, doc_type, item_id)

    @staticmethod
    def _unwrap(response: httpx.Response, method: str, url: str, doc_type: str,
                item_id: Optional[str]) -> Any:
        payload: Any = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = None
        envelope = payload if isinstance(payload, dict) else {}

        if response.status_code == 404:
            raise NotFoundError(doc_type, item_id)

        if response.status_code == 422:
            message = envelope.get('message') or 'The server rejected the content'
            raise RemoteValidationError(message, first_error_messages(envelope.get('errors')))

        if not response.is_success:
            logger.error(f"{method} {url} returned HTTP {response.status_code}")
            message = envelope.get('message') or f"Content server returned HTTP {response.status_code}"
            raise TransportError(message, status_code=response.status_code,
                                 context={'method': method, 'url': url})

        if envelope.get('success') is False:
            raise TransportError(envelope.get('message') or 'Content server reported a failure',
                                 status_code=response.status_code,
                                 context={'method': method, 'url': url})

        return envelope.get('data') if 'data' in envelope else payload

    async def fetch(self, doc_type: str) -> Dict[str, Any]:
        return await self._request('GET', f"/content/{resource_slug(doc_type)}", doc_type)

    async def update(self, doc_type: str, document: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request('PUT', f"/content/{resource_slug(doc_type)}", doc_type, json_body=document)

    async def list(self, doc_type: str) -> List[Dict[str, Any]]:
        data = await self._request('GET', f"/{resource_slug(doc_type)}", doc_type)
        return data or []

    async def create(self, doc_type: str, document: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request('POST', f"/{resource_slug(doc_type)}", doc_type, json_body=document)

    async def update_item(self, doc_type: str, item_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request('PUT', f"/{resource_slug(doc_type)}/{item_id}", doc_type, item_id,
                                   json_body=document)

    async def delete(self, doc_type: str, item_id: str) -> None:
        await self._request('DELETE', f"/{resource_slug(doc_type)}/{item_id}", doc_type, item_id)

    async def update_status(self, doc_type: str, item_id: str, status: str) -> Dict[str, Any]:
        return await self._request('PATCH', f"/{resource_slug(doc_type)}/{item_id}/status", doc_type, item_id,
                                   json_body={'status': status})


class InMemoryContentAPI:
    """
    Content API backed by process memory.

    Writes stamp ``updatedAt`` (and ``id``/``createdAt`` on create) the way
    the real server does, so the editor sees server-assigned fields.
    ``requests`` records every call as ``(operation, doc_type)``.
    """

    def __init__(self, pages: Optional[Dict[str, Dict[str, Any]]] = None,
                 collections: Optional[Dict[str, List[Dict[str, Any]]]] = None,
                 id_source: Optional[IdentifierSource] = None):
        self._pages: Dict[str, Dict[str, Any]] = deepcopy(pages) if pages else {}
        self._collections: Dict[str, List[Dict[str, Any]]] = deepcopy(collections) if collections else {}
        self.id_source = id_source or get_default_source()
        self.requests: List[tuple] = []

    @classmethod
    def from_seed(cls, seed_path: Union[str, Path],
                  id_source: Optional[IdentifierSource] = None) -> 'InMemoryContentAPI':
        """Build a backend from the same seed file the content cache uses."""
        seed_path = Path(seed_path)
        seed: Dict[str, Any] = {}
        if seed_path.exists():
            try:
                with open(seed_path, 'r', encoding='utf-8') as f:
                    seed = yaml.safe_load(f) or {}
            except (yaml.YAMLError, IOError, OSError) as e:
                logger.error(f"Failed to read seed file {seed_path}: {e}")
        else:
            logger.warning(f"Seed file not found: {seed_path}")

        if not isinstance(seed, dict):
            seed = {}
        return cls(pages=seed.get('pages'), collections=seed.get('collections'), id_source=id_source)

    def _log(self, operation: str, doc_type: str) -> None:
        self.requests.append((operation, doc_type))
        logger.debug(f"In-memory API {operation} {doc_type}")

    def calls(self, operation: str) -> int:
        """How many times an operation was requested."""
        return sum(1 for name, _ in self.requests if name == operation)

    def _find(self, doc_type: str, item_id: str) -> int:
        for position, item in enumerate(self._collections.get(doc_type, [])):
            if item.get('id') == item_id:
                return position
        raise NotFoundError(doc_type, item_id)

    async def fetch(self, doc_type: str) -> Dict[str, Any]:
        self._log('fetch', doc_type)
        if doc_type not in self._pages:
            raise NotFoundError(doc_type)
        return deepcopy(self._pages[doc_type])

    async def update(self, doc_type: str, document: Dict[str, Any]) -> Dict[str, Any]:
        self._log('update', doc_type)
        now = self.id_source.now_iso()
        stored = deepcopy(document)
        existing = self._pages.get(doc_type, {})
        stored['id'] = existing.get('id') or stored.get('id') or doc_type
        stored['createdAt'] = existing.get('createdAt') or stored.get('createdAt') or now
        stored['updatedAt'] = now
        self._pages[doc_type] = stored
        return deepcopy(stored)

    async def list(self, doc_type: str) -> List[Dict[str, Any]]:
        self._log('list', doc_type)
        return deepcopy(self._collections.get(doc_type, []))

    async def create(self, doc_type: str, document: Dict[str, Any]) -> Dict[str, Any]:
        self._log('create', doc_type)
        now = self.id_source.now_iso()
        stored = deepcopy(document)
        stored['id'] = self.id_source.new_id(resource_slug(doc_type))
        stored['createdAt'] = now
        stored['updatedAt'] = now
        self._collections.setdefault(doc_type, []).insert(0, stored)
        return deepcopy(stored)

    async def update_item(self, doc_type: str, item_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
        self._log('update_item', doc_type)
        position = self._find(doc_type, item_id)
        existing = self._collections[doc_type][position]
        stored = deepcopy(document)
        stored['id'] = item_id
        stored['createdAt'] = existing.get('createdAt') or self.id_source.now_iso()
        stored['updatedAt'] = self.id_source.now_iso()
        self._collections[doc_type][position] = stored
        return deepcopy(stored)

    async def delete(self, doc_type: str, item_id: str) -> None:
        self._log('delete', doc_type)
        position = self._find(doc_type, item_id)
        del self._collections[doc_type][position]

    async def update_status(self, doc_type: str, item_id: str, status: str) -> Dict[str, Any]:
        self._log('update_status', doc_type)
        position = self._find(doc_type, item_id)
        item = self._collections[doc_type][position]
        item['status'] = status
        item['updatedAt'] = self.id_source.now_iso()
        return deepcopy(item)
