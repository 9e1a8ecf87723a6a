"""Image services.

Images are generated on demand for one story artifact: a lifeline, a
pivotal moment, or the historical context itself. Generation is two agent
runs: image_prompt_generation writes a scene description, then
image_generation renders the latest description.

Inline image data (data: URLs) is decoded into
<media_dir>/<session_id>/<image_id>.<ext> and cleared from the session so
the document stays small.
"""

import base64
import binascii
import logging
import mimetypes
from pathlib import Path
from typing import Any

from lifepath.errors import ArtifactNotFoundError, MissingInputError, ParseError
from lifepath.sessions.store import check_session_id
from lifepath.workflow.retry import run_with_retry

logger = logging.getLogger(__name__)

# Artifact kinds an image can illustrate, and the session field holding them
SOURCE_COLLECTIONS = {
    "lifeline": "lifelines",
    "pivotal_moment": "pivotal_moments",
    "context": "historical_context",
}


def decode_data_url(url: str) -> tuple[bytes, str]:
    """Split a base64 data: URL into (bytes, mime type)."""
    header, _, payload = url.partition(",")
    if not header.startswith("data:") or ";base64" not in header:
        raise ParseError("Not a base64 data URL", raw_text=url[:100])
    mime_type = header[len("data:"):].split(";", 1)[0] or "image/png"
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except binascii.Error as e:
        raise ParseError(f"Invalid base64 image data: {e}", raw_text=url[:100]) from e


class ImageServices:
    """Image prompt + image generation for session artifacts."""

    PROMPT_AGENT = "image_prompt_generation"
    IMAGE_AGENT = "image_generation"

    def __init__(self, registry, executor, store, media_dir: Path, retry_attempts: int = 1):
        self.registry = registry
        self.executor = executor
        self.store = store
        self.media_dir = Path(media_dir)
        self.retry_attempts = retry_attempts

    def _check_source(self, session_id: str, source_type: str, source_id: str) -> None:
        """Raise before any generation if the artifact to illustrate is unknown."""
        field = SOURCE_COLLECTIONS.get(source_type)
        if field is None:
            raise ValueError(
                f"Unknown image source type '{source_type}'. "
                f"Expected one of: {', '.join(SOURCE_COLLECTIONS)}"
            )
        document = self.store.read(session_id)
        value = document.get(field)
        if source_type == "context":
            if not value:
                raise ArtifactNotFoundError("Historical context", source_id)
            return
        if not any(isinstance(i, dict) and i.get("id") == source_id for i in value or []):
            raise ArtifactNotFoundError(source_type.replace("_", " ").capitalize(), source_id)

    def _tag_latest(
        self, document: dict[str, Any], field: str, item_id: str,
        source_type: str, source_id: str,
    ) -> dict[str, Any]:
        for item in document.get(field) or []:
            if item.get("id") == item_id:
                item["source_type"] = source_type
                item["source_id"] = source_id
                return item
        raise ArtifactNotFoundError(field, item_id)

    def generate_image_prompt(
        self, session_id: str, source_type: str, source_id: str, **kwargs: Any
    ) -> dict[str, Any]:
        self._check_source(session_id, source_type, source_id)
        agent = self.registry.get_agent_config(self.PROMPT_AGENT)
        extra = {"source_type": source_type, "source_id": source_id}
        prompt = run_with_retry(
            self.executor, agent, session_id, self.retry_attempts,
            extra_variables=extra, **kwargs,
        )

        document = self.store.read(session_id)
        tagged = self._tag_latest(document, "image_prompts", prompt["id"], source_type, source_id)
        self.store.write(session_id, document)
        logger.info(f"[{session_id}] Image prompt {tagged['id']} for {source_type} {source_id}")
        return tagged

    def generate_image(
        self, session_id: str, source_type: str, source_id: str, **kwargs: Any
    ) -> dict[str, Any]:
        """Render the latest image prompt and store the image file."""
        self._check_source(session_id, source_type, source_id)
        if not self.store.read(session_id).get("image_prompts"):
            raise MissingInputError("image_prompts")
        agent = self.registry.get_agent_config(self.IMAGE_AGENT)
        image = run_with_retry(self.executor, agent, session_id, self.retry_attempts, **kwargs)

        document = self.store.read(session_id)
        tagged = self._tag_latest(document, "images", image["id"], source_type, source_id)
        if tagged.get("url", "").startswith("data:"):
            file_path = self.save_image(session_id, tagged["id"], tagged["url"])
            tagged["file_path"] = str(file_path)
            tagged["url"] = ""
        self.store.write(session_id, document)
        logger.info(f"[{session_id}] Image {tagged['id']} for {source_type} {source_id}")
        return tagged

    def generate_scene_image(
        self, session_id: str, source_type: str, source_id: str, **kwargs: Any
    ) -> dict[str, Any]:
        """Prompt then image for one artifact."""
        prompt = self.generate_image_prompt(session_id, source_type, source_id, **kwargs)
        image = self.generate_image(session_id, source_type, source_id, **kwargs)
        return {"prompt": prompt, "image": image}

    def image_path(self, session_id: str, image_id: str, mime_type: str = "image/png") -> Path:
        extension = mimetypes.guess_extension(mime_type) or ".png"
        return self.media_dir / check_session_id(session_id) / f"{image_id}{extension}"

    def save_image(self, session_id: str, image_id: str, data_url: str) -> Path:
        data, mime_type = decode_data_url(data_url)
        file_path = self.image_path(session_id, image_id, mime_type)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)
        logger.info(f"Image saved to: {file_path} ({len(data):,} bytes)")
        return file_path
