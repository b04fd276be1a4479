"""
Relevance and Ranking Metrics

Computes confusion-matrix metrics (accuracy, precision, recall, F1), average
rank error, and Spearman rank correlation from per-lead evaluation results.
All functions are pure.
"""

from dataclasses import dataclass

from lead_rank_core.domain.entities import EvaluationResult


@dataclass(frozen=True)
class RelevanceMetrics:
    """Aggregated metrics of one evaluation pass (percentages except correlation)"""
    true_positives: int
    true_negatives: int
    false_positives: int
    false_negatives: int
    relevance_accuracy: float
    relevance_precision: float
    relevance_recall: float
    relevance_f1: float
    avg_rank_error: float
    rank_correlation: float

    @property
    def total(self) -> int:
        return self.true_positives + self.true_negatives + self.false_positives + self.false_negatives


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0 when the denominator is 0"""
    if denominator == 0:
        return 0.0
    return numerator / denominator


def f1_score(precision: float, recall: float) -> float:
    """
    Harmonic mean of precision and recall

    Args:
        precision: Precision as a fraction (0.0 to 1.0)
        recall: Recall as a fraction (0.0 to 1.0)

    Returns:
        F1 as a fraction, 0 when both inputs are 0
    """
    return safe_ratio(2 * precision * recall, precision + recall)


def spearman_correlation(expected_ranks: list[int], predicted_ranks: list[int]) -> float:
    """
    Spearman rank correlation via the rank-difference formula

        rho = 1 - 6 * sum(d^2) / (n * (n^2 - 1))

    The inputs are assumed to already be ranks (not raw scores); ties are not
    corrected for.

    Args:
        expected_ranks: Ground-truth ranks
        predicted_ranks: Predicted ranks, paired by position

    Returns:
        Correlation in [-1, 1] for n >= 2 distinct ranks, 0 when fewer than 2 pairs

    Raises:
        ValueError: If the lists differ in length
    """
    if len(expected_ranks) != len(predicted_ranks):
        raise ValueError(
            f"Rank lists must have equal length ({len(expected_ranks)} != {len(predicted_ranks)})"
        )

    n = len(expected_ranks)
    if n < 2:
        return 0.0

    sum_d2 = sum((x - y) ** 2 for x, y in zip(expected_ranks, predicted_ranks))
    return 1 - (6 * sum_d2) / (n * (n * n - 1))


def compute_relevance_metrics(results: list[EvaluationResult]) -> RelevanceMetrics:
    """
    Compute relevance and ranking metrics from ranked evaluation results

    A lead is expected-relevant when it has an expected rank. Rank errors and
    rank pairs are collected only from true positives that have a rank error.

    Args:
        results: Evaluation results after company rank assignment

    Returns:
        RelevanceMetrics
    """
    tp = tn = fp = fn = 0
    rank_errors: list[float] = []
    expected_ranks: list[int] = []
    predicted_ranks: list[int] = []

    for result in results:
        expected_relevant = result.expected_rank is not None

        if expected_relevant and result.predicted_relevant:
            tp += 1
            if result.rank_error is not None:
                rank_errors.append(result.rank_error)
                expected_ranks.append(result.expected_rank)
                predicted_ranks.append(result.predicted_rank)
        elif not expected_relevant and not result.predicted_relevant:
            tn += 1
        elif not expected_relevant and result.predicted_relevant:
            fp += 1
        else:
            fn += 1

    precision = safe_ratio(tp, tp + fp)
    recall = safe_ratio(tp, tp + fn)

    return RelevanceMetrics(
        true_positives=tp,
        true_negatives=tn,
        false_positives=fp,
        false_negatives=fn,
        relevance_accuracy=safe_ratio(tp + tn, len(results)) * 100,
        relevance_precision=precision * 100,
        relevance_recall=recall * 100,
        relevance_f1=f1_score(precision, recall) * 100,
        avg_rank_error=safe_ratio(sum(rank_errors), len(rank_errors)),
        rank_correlation=spearman_correlation(expected_ranks, predicted_ranks),
    )
