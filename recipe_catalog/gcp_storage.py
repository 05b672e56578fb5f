from __future__ import annotations

import os
from typing import Optional

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore

from .errors import PersistenceError
from .storage import KeyValueStore

VALUE_FIELD = "value"

_STORAGE_ERRORS = (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError)


class FirestoreKeyValueStore(KeyValueStore):
    """Key-value store backed by one Firestore document per key.

    Each document keeps the stored text in its ``value`` field, so both
    recipe repositories can persist their collections in a hosted project
    instead of on local disk.
    """

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        collection_name: str = "recipe_catalog",
        client: Optional[firestore.Client] = None,
    ) -> None:
        self._project = project
        self._collection_name = collection_name

        self._firestore_client = client if client is not None else firestore.Client(project=project)
        self._collection = self._firestore_client.collection(collection_name)

    @classmethod
    def from_env(cls) -> "FirestoreKeyValueStore":
        """Build a store from environment variables."""

        project = os.environ.get("GCP_PROJECT")
        collection_name = os.environ.get("RECIPES_COLLECTION", "recipe_catalog")
        return cls(project=project, collection_name=collection_name)

    def get_item(self, key: str) -> Optional[str]:
        try:
            snapshot = self._collection.document(key).get()
        except _STORAGE_ERRORS as exc:
            raise PersistenceError(f"Could not read '{key}' from Firestore: {exc}") from exc

        if not snapshot.exists:
            return None

        data = snapshot.to_dict() or {}
        value = data.get(VALUE_FIELD)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        doc = {
            VALUE_FIELD: value,
            "updated_at": firestore.SERVER_TIMESTAMP,
        }
        try:
            self._collection.document(key).set(doc)
        except _STORAGE_ERRORS as exc:
            raise PersistenceError(f"Could not write '{key}' to Firestore: {exc}") from exc

    def remove_item(self, key: str) -> None:
        try:
            self._collection.document(key).delete()
        except gcloud_exceptions.NotFound:
            # Already gone.
            pass
        except _STORAGE_ERRORS as exc:
            raise PersistenceError(f"Could not remove '{key}' from Firestore: {exc}") from exc


__all__ = ["FirestoreKeyValueStore"]
