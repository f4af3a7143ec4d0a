"""Persistence gateways for loading and saving annotations."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from PyQt6.QtCore import QByteArray, QObject, QUrl, pyqtSignal
from PyQt6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest

from .models import Annotation, utc_now

logger = logging.getLogger(__name__)

DEFAULT_LOAD_PATH = "/files/{target_id}"
DEFAULT_SAVE_PATH = "/files/{target_id}/annotations"


def _decode_json(body: bytes | str) -> Any:
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    return json.loads(body)


def parse_annotation_records(records: Any) -> List[Annotation]:
    """
    Build annotations from a list of wire records.

    Malformed records are skipped with a warning.
    """
    if not isinstance(records, list):
        logger.warning(f"Expected a list of annotations, got {type(records).__name__}")
        return []

    annotations = []
    for index, record in enumerate(records):
        try:
            annotations.append(Annotation.from_dict(record))
        except ValueError as e:
            logger.warning(f"Skipping malformed annotation #{index}: {e}")
    return annotations


def parse_annotations_response(body: bytes | str) -> List[Annotation]:
    """
    Parse the body of a file lookup into annotations.

    Accepts {"annotations": [...]} or {"file": {"annotations": [...]}}.
    Anything unreadable yields an empty list so editing is never blocked.
    """
    try:
        data = _decode_json(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Could not decode annotations response: {e}")
        return []

    if not isinstance(data, dict):
        logger.warning("Annotations response is not an object")
        return []

    container = data.get("file") if isinstance(data.get("file"), dict) else data
    records = container.get("annotations")
    if records is None:
        logger.warning("Annotations response has no 'annotations' field")
        return []
    return parse_annotation_records(records)


def parse_saved_annotation(body: bytes | str) -> Annotation:
    """
    Parse the body of a save response.

    Accepts {"annotation": {...}} or the bare record.

    Raises:
        ValueError: If the body is not a valid annotation record
    """
    try:
        data = _decode_json(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid JSON in save response: {e}") from e

    if isinstance(data, dict) and isinstance(data.get("annotation"), dict):
        data = data["annotation"]
    return Annotation.from_dict(data)


def error_message_from_body(body: bytes | str) -> Optional[str]:
    """Extract the service's {"error": ...} message, if any."""
    try:
        data = _decode_json(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return None


class PersistenceGateway(QObject):
    """
    Interface to the annotation storage service.

    Results are delivered through signals, never return values, so callers
    keep editing while requests are in flight. There is no delete operation.
    """

    annotations_loaded = pyqtSignal(str, list)  # target_id, List[Annotation]
    annotation_saved = pyqtSignal(str, object)  # local_id, canonical Annotation
    save_failed = pyqtSignal(str, str)  # local_id, message

    def load_annotations(self, target_id: str) -> None:
        """Request the annotations stored for a target image."""
        raise NotImplementedError

    def save_annotation(self, target_id: str, annotation: Annotation) -> None:
        """Submit a newly finalized annotation."""
        raise NotImplementedError


class InMemoryPersistenceGateway(PersistenceGateway):
    """
    Gateway that keeps records in process memory.

    Used when no server is configured. Signals are emitted before the
    request methods return.
    """

    def __init__(self, author: str = "local", parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.author = author
        self.fail_next_save = False
        self._records: Dict[str, List[Dict[str, Any]]] = {}

    def records(self, target_id: str) -> List[Dict[str, Any]]:
        """Stored wire records for a target."""
        return [dict(r) for r in self._records.get(target_id, [])]

    def seed(self, target_id: str, annotations: List[Annotation]) -> None:
        """Store annotations directly, as if saved earlier."""
        self._records[target_id] = [a.to_dict(include_server_fields=True) for a in annotations]

    def load_annotations(self, target_id: str) -> None:
        annotations = parse_annotation_records(self._records.get(target_id, []))
        logger.info(f"Loaded {len(annotations)} annotation(s) for {target_id}")
        self.annotations_loaded.emit(target_id, annotations)

    def save_annotation(self, target_id: str, annotation: Annotation) -> None:
        if self.fail_next_save:
            self.fail_next_save = False
            logger.error(f"Simulated save failure for {annotation.local_id}")
            self.save_failed.emit(annotation.local_id, "Error saving annotation")
            return

        record = annotation.to_dict()
        record["_id"] = uuid.uuid4().hex[:24]
        record["author"] = self.author
        record["createdAt"] = utc_now().isoformat()
        self._records.setdefault(target_id, []).append(record)

        saved = Annotation.from_dict(record, local_id=annotation.local_id)
        logger.info(f"Saved {saved.kind.value} annotation {saved.id} for {target_id}")
        self.annotation_saved.emit(annotation.local_id, saved)


class HttpPersistenceGateway(PersistenceGateway):
    """
    Gateway talking to the review server over HTTP.

    GET {base}{load_path} loads, POST {base}{save_path} saves. Both paths
    are templates with a {target_id} placeholder.
    Requests run on the Qt event loop; replies may arrive in any order.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout_ms: int = 10000,
        load_path: str = DEFAULT_LOAD_PATH,
        save_path: str = DEFAULT_SAVE_PATH,
        parent: Optional[QObject] = None
    ) -> None:
        """
        Initialize the gateway.

        Args:
            base_url: Service root, e.g. "https://review.example.com/api"
            token: Bearer token sent with every request, if non-empty
            timeout_ms: Transfer timeout per request
            load_path: Lookup path template, e.g. "/upload/file/{target_id}"
            save_path: Save path template, e.g. "/upload/file/{target_id}/annotations"
        """
        super().__init__(parent)
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_ms = timeout_ms
        self.load_path = load_path
        self.save_path = save_path
        self._manager = QNetworkAccessManager(self)

    def build_request(self, path: str) -> QNetworkRequest:
        """Create a JSON request for a service path."""
        request = QNetworkRequest(QUrl(f"{self.base_url}{path}"))
        request.setHeader(QNetworkRequest.KnownHeaders.ContentTypeHeader, "application/json")
        if self.token:
            request.setRawHeader(b"Authorization", f"Bearer {self.token}".encode("utf-8"))
        request.setTransferTimeout(self.timeout_ms)
        return request

    def load_annotations(self, target_id: str) -> None:
        request = self.build_request(self.load_path.format(target_id=target_id))
        logger.info(f"Loading annotations from {request.url().toString()}")
        reply = self._manager.get(request)
        reply.finished.connect(lambda: self._on_load_finished(target_id, reply))

    def save_annotation(self, target_id: str, annotation: Annotation) -> None:
        request = self.build_request(self.save_path.format(target_id=target_id))
        body = QByteArray(json.dumps(annotation.to_dict()).encode("utf-8"))
        logger.debug(f"Saving {annotation.kind.value} annotation {annotation.local_id}")
        reply = self._manager.post(request, body)
        local_id = annotation.local_id
        reply.finished.connect(lambda: self._on_save_finished(local_id, reply))

    def _on_load_finished(self, target_id: str, reply: QNetworkReply) -> None:
        body = bytes(reply.readAll())
        if reply.error() != QNetworkReply.NetworkError.NoError:
            message = error_message_from_body(body) or reply.errorString()
            logger.warning(f"Loading annotations for {target_id} failed: {message}")
            annotations: List[Annotation] = []
        else:
            annotations = parse_annotations_response(body)
            logger.info(f"Loaded {len(annotations)} annotation(s) for {target_id}")
        reply.deleteLater()
        self.annotations_loaded.emit(target_id, annotations)

    def _on_save_finished(self, local_id: str, reply: QNetworkReply) -> None:
        body = bytes(reply.readAll())
        if reply.error() != QNetworkReply.NetworkError.NoError:
            message = error_message_from_body(body) or reply.errorString()
            logger.error(f"Saving annotation {local_id} failed: {message}")
            reply.deleteLater()
            self.save_failed.emit(local_id, message)
            return

        reply.deleteLater()
        try:
            saved = parse_saved_annotation(body)
        except ValueError as e:
            logger.error(f"Unreadable save response for {local_id}: {e}")
            self.save_failed.emit(local_id, str(e))
            return

        saved.local_id = local_id
        logger.info(f"Saved annotation {saved.id}")
        self.annotation_saved.emit(local_id, saved)
