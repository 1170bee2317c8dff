"""Person-name tagging with a Hugging Face token-classification model.

Used as the first step of business card name detection. The model is
loaded on first use; if it cannot be loaded or run, tagging returns no
tokens and the text heuristics take over.
"""

import re
import threading
from typing import Any

import torch
from transformers import pipeline

from src.utils.logger import get_logger

logger = get_logger(__name__)

_TOKEN_PATTERN = re.compile(r"\S+")
_TOKEN_PUNCTUATION = ",;:!?()[]\"'"


class TransformersNameTagger:
    """Named-entity tagger that flags tokens belonging to person names.

    Args:
        model_name: Hugging Face model identifier of an NER model with a
            ``PER`` entity label.
        min_score: Lowest entity score accepted as a person name.
        device: Torch device index; GPU 0 when available, else CPU.
    """

    def __init__(
        self,
        model_name: str = "dslim/bert-base-NER",
        min_score: float = 0.8,
        device: int | None = None,
    ) -> None:
        self.model_name = model_name
        self.min_score = min_score
        self.device = device if device is not None else (
            0 if torch.cuda.is_available() else -1
        )
        self._ner: Any = None
        self._load_lock = threading.Lock()

    def _get_pipeline(self) -> Any:
        """Load the NER pipeline on first use, once across threads."""
        with self._load_lock:
            if self._ner is None:
                logger.info("Loading name tagger model: %s", self.model_name)
                self._ner = pipeline(
                    "token-classification",
                    model=self.model_name,
                    aggregation_strategy="simple",
                    device=self.device,
                )
        return self._ner

    def tag_personal_names(self, text: str) -> list[tuple[str, bool]]:
        """Tag each whitespace-separated token of the text.

        Args:
            text: Text to tag.

        Returns:
            ``(token, is_personal_name)`` pairs in text order, or an empty
            list when the model is unavailable.
        """
        if not text.strip():
            return []

        try:
            entities = self._get_pipeline()(text)
        except Exception as exc:
            logger.warning("Name tagging failed, falling back to heuristics: %s", exc)
            return []

        spans = [
            (int(entity["start"]), int(entity["end"]))
            for entity in entities
            if entity.get("entity_group") == "PER"
            and float(entity.get("score", 0.0)) >= self.min_score
        ]

        tagged: list[tuple[str, bool]] = []
        for match in _TOKEN_PATTERN.finditer(text):
            token = match.group(0).strip(_TOKEN_PUNCTUATION)
            if not token:
                continue
            is_name = any(
                match.start() < end and match.end() > start for start, end in spans
            )
            tagged.append((token, is_name))
        return tagged
