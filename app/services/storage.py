"""
Object storage for uploaded and generated media.

Objects live under a local root directory; presigned URLs carry an HMAC
signature and an expiry so they can be handed to clients.
"""
import hashlib
import hmac
import time
import uuid
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote, urlencode


class ObjectNotFoundError(Exception):
    pass


class LocalObjectStorage:
    """Key/value object storage on the local filesystem."""

    def __init__(self, root: Path, secret: str, base_url: str = '/media', clock: Callable[[], float] = time.time):
        self.root = Path(root)
        self._secret = secret.encode()
        self._base_url = base_url.rstrip('/')
        self._clock = clock

    def put_object(self, data: bytes, prefix: str, extension: str) -> str:
        """Store bytes under a fresh key and return the key."""
        key = f'{prefix.strip("/")}/{uuid.uuid4()}.{extension.lstrip(".")}'
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return key

    def open(self, key: str) -> Path:
        """Filesystem path of an existing object."""
        path = self._path_for(key)
        if not path.is_file():
            raise ObjectNotFoundError(key)
        return path

    def presign(self, key: str, ttl: int = 3600) -> str:
        """Time-limited URL for downloading an object."""
        expires = int(self._clock()) + ttl
        query = urlencode({'expires': expires, 'signature': self._sign(key, expires)})
        return f'{self._base_url}/{quote(key)}?{query}'

    def verify(self, key: str, expires: int, signature: Optional[str]) -> bool:
        """Check a presigned URL's signature and expiry."""
        if not signature or expires < self._clock():
            return False
        return hmac.compare_digest(self._sign(key, expires), signature)

    def _sign(self, key: str, expires: int) -> str:
        message = f'{key}:{expires}'.encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ObjectNotFoundError(key)
        return path
