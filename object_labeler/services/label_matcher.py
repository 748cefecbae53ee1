"""Match a fresh detection fingerprint against stored custom labels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np

from object_labeler.services.feature_codec import FeatureDecodeError, decode_features
from object_labeler.services.feature_extractor import cosine_similarity
from object_labeler.storage.label_store import LabelRecord

logger = logging.getLogger(__name__)

CategoryLookup = Callable[[str], Iterable[LabelRecord]]
SimilarityFn = Callable[[Sequence[float], Sequence[float]], float]


@dataclass
class MatchResult:
    """The stored record that best matches a detection."""

    record: LabelRecord
    similarity: float


class LabelMatcher:
    """Picks the first, highest scoring stored label above the threshold."""

    def __init__(
        self,
        lookup_by_category: CategoryLookup,
        similarity_threshold: float = 0.85,
        similarity_fn: SimilarityFn = cosine_similarity,
    ) -> None:
        self._lookup_by_category = lookup_by_category
        self._similarity_threshold = similarity_threshold
        self._similarity_fn = similarity_fn

    def match(self, category: str, features: np.ndarray) -> Optional[MatchResult]:
        """Fetch the candidates for ``category`` and return the best match."""
        candidates: List[LabelRecord] = list(self._lookup_by_category(category))
        return self.find_best_match(category, features, candidates)

    def find_best_match(
        self,
        category: str,
        features: np.ndarray,
        candidates: Iterable[LabelRecord],
    ) -> Optional[MatchResult]:
        """Return the best candidate scoring strictly above the threshold.

        A candidate only replaces the current best when its score beats both
        the running best and the threshold, so equal scores keep the earlier
        candidate and a score exactly at the threshold never matches.
        Candidates whose stored features fail to decode are skipped.
        """
        best: Optional[MatchResult] = None
        best_similarity = self._similarity_threshold

        for record in candidates:
            if record.category != category:
                continue
            try:
                stored = decode_features(record.feature_vector)
            except FeatureDecodeError as exc:
                logger.warning("Skipping label %s (%r): %s", record.id, record.custom_name, exc)
                continue
            if len(stored) != len(features):
                logger.debug(
                    "Label %s has %d features, detection has %d; not comparable",
                    record.id,
                    len(stored),
                    len(features),
                )
                continue

            similarity = self._similarity_fn(features, stored)
            if similarity > best_similarity:
                best_similarity = similarity
                best = MatchResult(record=record, similarity=similarity)

        return best
