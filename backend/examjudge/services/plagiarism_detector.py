"""Plagiarism detection over a cohort of submissions.

Every unordered pair of submissions is compared with normalized Levenshtein
similarity. That is N*(N-1)/2 comparisons, each O(L^2) in code length: fine
for exam cohorts (tens to low hundreds of submissions), not for
course-archive scale corpora. Large cohorts are spread over a process pool,
partitioned by row index; each comparison is a pure function so workers share
nothing and results fan in through their futures.
"""

from __future__ import annotations

import logging
import multiprocessing
import os
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from prometheus_client import Counter

from examjudge.config import settings
from examjudge.services.similarity import normalize, similarity

logger = logging.getLogger(__name__)

COMPARISON_COUNT = Counter(
    "examjudge_plagiarism_comparisons_total",
    "Pairwise code comparisons performed by plagiarism detection",
)

PairScore = Tuple[int, int, float]


@dataclass(frozen=True)
class CodeSample:
    """Minimal view of a submission needed for comparison."""

    id: Any
    user_id: Any
    code: str
    user_name: Optional[str] = None

    @classmethod
    def from_submission(cls, submission: Any) -> "CodeSample":
        return cls(
            id=submission.id,
            user_id=submission.user_id,
            code=submission.code or "",
            user_name=getattr(submission, "user_name", None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name or self.user_id,
            "code": self.code,
        }


@dataclass
class SimilarityPair:
    submission1: CodeSample
    submission2: CodeSample
    similarity: float
    threshold: float
    flagged: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission1": self.submission1.to_dict(),
            "submission2": self.submission2.to_dict(),
            "similarity": self.similarity,
            "threshold": self.threshold,
            "is_flagged": self.flagged,
        }


@dataclass
class PlagiarismStats:
    total_submissions: int = 0
    total_comparisons: int = 0
    suspicious_pairs: int = 0
    flagged_percentage: float = 0.0
    average_similarity: float = 0.0
    highest_similarity: float = 0.0
    threshold: float = 0.0
    pairs: List[SimilarityPair] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_submissions": self.total_submissions,
            "total_comparisons": self.total_comparisons,
            "suspicious_pairs": self.suspicious_pairs,
            "flagged_percentage": self.flagged_percentage,
            "average_similarity": self.average_similarity,
            "highest_similarity": self.highest_similarity,
            "threshold": self.threshold,
            "pairs": [p.to_dict() for p in self.pairs],
        }


def _row_similarities(normalized: Sequence[str], rows: Sequence[int]) -> List[PairScore]:
    """Similarity of each row i against every j > i. Runs in worker processes."""
    scores: List[PairScore] = []
    for i in rows:
        left = normalized[i]
        for j in range(i + 1, len(normalized)):
            scores.append((i, j, similarity(left, normalized[j])))
    return scores


class PlagiarismDetector:
    """Pairwise similarity scan with threshold flagging"""

    def __init__(
        self,
        max_workers: Optional[int] = None,
        parallel_min_submissions: Optional[int] = None,
    ):
        configured = max_workers if max_workers is not None else settings.PLAGIARISM_MAX_WORKERS
        self.max_workers = configured or os.cpu_count() or 1
        self.parallel_min_submissions = (
            parallel_min_submissions
            if parallel_min_submissions is not None
            else settings.PLAGIARISM_PARALLEL_MIN_SUBMISSIONS
        )

    def _score_all_pairs(self, samples: Sequence[CodeSample]) -> List[PairScore]:
        n = len(samples)
        if n < 2:
            return []

        normalized = [normalize(s.code) for s in samples]
        if n < self.parallel_min_submissions or self.max_workers <= 1:
            scores = _row_similarities(normalized, range(n - 1))
        else:
            # Interleave rows so early (long) rows are spread across workers.
            chunk_count = min(n - 1, self.max_workers * 4)
            partitions = [list(range(k, n - 1, chunk_count)) for k in range(chunk_count)]
            scores = []
            # Workers start from a fresh interpreter, never a fork of the server.
            with ProcessPoolExecutor(
                max_workers=self.max_workers,
                mp_context=multiprocessing.get_context("spawn"),
            ) as pool:
                futures = [pool.submit(_row_similarities, normalized, rows) for rows in partitions]
                for future in futures:
                    scores.extend(future.result())
            scores.sort(key=lambda s: (s[0], s[1]))

        COMPARISON_COUNT.inc(len(scores))
        return scores

    @staticmethod
    def _flag(
        samples: Sequence[CodeSample], scores: Sequence[PairScore], threshold: float
    ) -> List[SimilarityPair]:
        pairs = [
            SimilarityPair(
                submission1=samples[i],
                submission2=samples[j],
                similarity=score,
                threshold=threshold,
                flagged=True,
            )
            for i, j, score in scores
            if score >= threshold
        ]
        # Stable sort keeps pair order for equal similarities.
        pairs.sort(key=lambda p: p.similarity, reverse=True)
        return pairs

    def detect(self, submissions: Sequence[Any], threshold: Optional[float] = None) -> List[SimilarityPair]:
        """
        Pairs at or above the threshold, most similar first

        Args:
            submissions: CodeSample instances or objects with id/user_id/code
            threshold: Minimum similarity percentage (defaults to settings)
        """
        if threshold is None:
            threshold = settings.PLAGIARISM_DEFAULT_THRESHOLD
        samples = [self._as_sample(s) for s in submissions]
        return self._flag(samples, self._score_all_pairs(samples), threshold)

    def stats(self, submissions: Sequence[Any], threshold: Optional[float] = None) -> PlagiarismStats:
        """
        Cohort statistics; average and highest similarity cover all pairs

        Fewer than two submissions yields zero statistics.
        """
        if threshold is None:
            threshold = settings.PLAGIARISM_DEFAULT_THRESHOLD
        samples = [self._as_sample(s) for s in submissions]
        n = len(samples)
        total_comparisons = n * (n - 1) // 2
        if total_comparisons == 0:
            return PlagiarismStats(total_submissions=n, threshold=threshold)

        scores = self._score_all_pairs(samples)
        pairs = self._flag(samples, scores, threshold)
        similarities = [score for _, _, score in scores]

        logger.info(
            f"Plagiarism scan: {n} submissions, {total_comparisons} comparisons, "
            f"{len(pairs)} flagged at threshold {threshold}"
        )
        return PlagiarismStats(
            total_submissions=n,
            total_comparisons=total_comparisons,
            suspicious_pairs=len(pairs),
            flagged_percentage=round(len(pairs) / total_comparisons * 100, 2),
            average_similarity=round(sum(similarities) / total_comparisons, 2),
            highest_similarity=max(similarities),
            threshold=threshold,
            pairs=pairs,
        )

    @staticmethod
    def _as_sample(submission: Any) -> CodeSample:
        if isinstance(submission, CodeSample):
            return submission
        if isinstance(submission, dict):
            return CodeSample(
                id=submission.get("id"),
                user_id=submission.get("user_id"),
                code=submission.get("code") or "",
                user_name=submission.get("user_name"),
            )
        return CodeSample.from_submission(submission)


# Singleton instance
plagiarism_detector = PlagiarismDetector()
