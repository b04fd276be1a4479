"""
lead-rank-core Result Viewer

Minimal Streamlit dashboard for viewing runner output.
Displays F1 per optimization iteration, A/B test comparisons and per-lead
evaluation results.

Usage:
    pip install -e ".[viewer]"
    streamlit run src/lead_rank_core/viewer.py
    streamlit run src/lead_rank_core/viewer.py -- --results-dir results

Requires the package to be installed (e.g. via ``pip install -e .``).
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from lead_rank_core.domain.constants import DEFAULT_TARGET_SCORE

# -- Colors --
PROMPT_COLORS = ["#1a73e8", "#e8710a"]
BEST_COLOR = "#34a853"
REJECTED_COLOR = "#9aa0a6"

# (kind, summary file prefix, results file prefix)
RUN_KINDS = [
    ("optimize", "optimization_", "optimization_results_"),
    ("ab-test", "ab_summary_", "ab_results_"),
    ("evaluate", "summary_", "results_"),
]

METRIC_LABELS = {
    "relevance_accuracy": "Accuracy",
    "relevance_precision": "Precision",
    "relevance_recall": "Recall",
    "relevance_f1": "F1",
}


def _find_runs(results_dir: Path) -> list[dict]:
    """Find summary JSON files and their per-lead results CSV in results_dir."""
    runs = []
    for kind, summary_prefix, results_prefix in RUN_KINDS:
        for summary_path in results_dir.glob(f"{summary_prefix}*.json"):
            run_id = summary_path.stem[len(summary_prefix):]
            results_path = results_dir / f"{results_prefix}{run_id}.csv"
            runs.append({
                "kind": kind,
                "run_id": run_id,
                "summary_path": summary_path,
                "results_path": results_path if results_path.exists() else None,
            })
    return sorted(runs, key=lambda r: r["run_id"], reverse=True)


def _load_run(run: dict) -> tuple[dict, pd.DataFrame | None]:
    """Load the summary JSON and the results DataFrame of a run."""
    with open(run["summary_path"], "r", encoding="utf-8") as f:
        summary = json.load(f)
    results_df = pd.read_csv(run["results_path"]) if run["results_path"] else None
    return summary, results_df


def _render_metric_cards(metrics: dict) -> None:
    cols = st.columns(6)
    for col, (key, label) in zip(cols, METRIC_LABELS.items()):
        col.metric(label, f"{metrics[key]:.1f}%")
    cols[4].metric("Avg rank error", f"{metrics['avg_rank_error']:.2f}")
    cols[5].metric("Rank corr.", f"{metrics['rank_correlation']:.3f}")


def _render_optimization(summary: dict) -> None:
    """Render F1 per iteration and the iteration log."""
    st.header("Optimization")

    cols = st.columns(4)
    cols[0].metric("Best F1", f"{summary['best_score']:.1f}%", f"{summary['improvement']:+.1f}%")
    cols[1].metric("Iterations", summary["total_iterations"])
    cols[2].metric("Stop reason", summary["stop_reason"])
    cols[3].metric("Cost", f"${summary['total_cost'] + summary['optimizer_cost']:.4f}")

    iterations = summary["iterations"]
    scores = [it["score"] for it in iterations]
    running_best = [max(scores[:i + 1]) for i in range(len(scores))]
    colors = [
        BEST_COLOR if i == 0 or score > running_best[i - 1] else REJECTED_COLOR
        for i, score in enumerate(scores)
    ]

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=[it["iteration"] for it in iterations],
        y=scores,
        mode="markers",
        name="Candidate F1",
        marker=dict(color=colors, size=10),
    ))
    fig.add_trace(go.Scatter(
        x=[it["iteration"] for it in iterations],
        y=running_best,
        mode="lines",
        name="Best F1",
        line=dict(color=BEST_COLOR, width=2),
    ))
    fig.add_hline(
        y=DEFAULT_TARGET_SCORE,
        line_dash="dash",
        line_color="#5f6368",
        line_width=1,
        annotation_text=f"{DEFAULT_TARGET_SCORE:.0f}% default target",
        annotation_position="top left",
        annotation_font=dict(size=11, color="#5f6368"),
    )
    fig.update_layout(
        title="F1 per Iteration",
        xaxis_title="Iteration",
        yaxis_title="F1 (%)",
        yaxis_range=[0, 105],
        xaxis_dtick=1,
        template="plotly_white",
        height=420,
    )
    st.plotly_chart(fig, use_container_width=True)

    st.subheader("Best Prompt")
    _render_metric_cards(summary["best_metrics"])
    st.code(summary["best_prompt"], language="markdown")

    st.subheader("Iterations")
    for it in iterations:
        with st.expander(f"Iteration {it['iteration']}: F1 {it['score']:.1f}% (${it['cost']:.4f})"):
            if it["analysis"]:
                st.markdown(f"**Analysis**: {it['analysis']}")
            for improvement in it["improvements"]:
                st.markdown(f"- {improvement}")
            st.code(it["prompt"], language="markdown")


def _render_ab_test(summary: dict) -> None:
    """Render a side-by-side metric comparison of two prompts."""
    st.header("A/B Test")

    fig = go.Figure()
    for color, key in zip(PROMPT_COLORS, ("prompt_a", "prompt_b")):
        metrics = summary[key]
        fig.add_trace(go.Bar(
            x=list(METRIC_LABELS.values()),
            y=[metrics[k] for k in METRIC_LABELS],
            name=metrics["prompt_name"],
            marker_color=color,
        ))
    fig.update_layout(
        barmode="group",
        yaxis_title="%",
        yaxis_range=[0, 105],
        template="plotly_white",
        height=400,
    )
    st.plotly_chart(fig, use_container_width=True)
    st.markdown(summary["summary"])


def _render_results_table(results_df: pd.DataFrame) -> None:
    """Render per-lead results, optionally filtered to misclassified leads."""
    st.header("Lead Results")

    filtered = results_df
    if "prompt_id" in filtered.columns and filtered["prompt_id"].nunique() > 1:
        prompt_id = st.selectbox("Prompt", sorted(filtered["prompt_id"].unique()))
        filtered = filtered[filtered["prompt_id"] == prompt_id]
    if st.checkbox("Only misclassified leads"):
        filtered = filtered[~filtered["is_correct_relevance"].astype(bool)]

    display_cols = [
        "company", "name", "expected_rank", "predicted_rank", "predicted_score",
        "predicted_relevant", "rank_error", "buyer_type", "reasoning", "cost",
    ]
    existing = [c for c in display_cols if c in filtered.columns]
    st.dataframe(
        filtered[existing].sort_values(["company", "predicted_rank"], na_position="last"),
        use_container_width=True,
        hide_index=True,
    )


def main() -> None:
    # Parse --results-dir from Streamlit args (after --)
    parser = argparse.ArgumentParser()
    parser.add_argument("--results-dir", default="results")
    args, _ = parser.parse_known_args()

    results_dir = Path(args.results_dir)

    st.set_page_config(page_title="lead-rank-core", layout="wide")
    st.title("lead-rank-core Results")

    hint = "Run an evaluation first:\n```\npython -m lead_rank_core.runner evaluate --eval-set data/eval_leads.csv\n```"
    if not results_dir.exists():
        st.error(f"Results directory not found: `{results_dir}`")
        st.info(hint)
        return

    runs = _find_runs(results_dir)
    if not runs:
        st.warning(f"No result files found in `{results_dir}/`")
        st.info(hint)
        return

    labels = [f"{r['run_id']} ({r['kind']})" for r in runs]
    selected = st.sidebar.selectbox("Run", labels, index=0)
    run = runs[labels.index(selected)]
    summary, results_df = _load_run(run)

    st.sidebar.markdown("---")
    st.sidebar.markdown(f"**Type**: {run['kind']}")
    if results_df is not None:
        st.sidebar.markdown(f"**Result rows**: {len(results_df)}")

    if run["kind"] == "optimize":
        _render_optimization(summary)
        if results_df is not None and "iteration" in results_df.columns:
            iteration = st.selectbox("Iteration", sorted(results_df["iteration"].unique()))
            results_df = results_df[results_df["iteration"] == iteration]
    elif run["kind"] == "ab-test":
        _render_ab_test(summary)
    else:
        st.header(summary["prompt_name"])
        _render_metric_cards(summary)

    if results_df is not None:
        _render_results_table(results_df)


if __name__ == "__main__":
    main()
