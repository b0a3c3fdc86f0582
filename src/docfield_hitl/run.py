from __future__ import annotations

import argparse
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any

from .config import load_settings
from .documents import supported_extensions
from .evaluate import EvalRow, evaluate_one, summarize_eval
from .pipeline import ExtractionOrchestrator, flatten_fields
from .utils import read_jsonl, write_jsonl

logger = logging.getLogger(__name__)


def _collect_inputs(paths: list[str]) -> list[Path]:
    exts = {f".{e}" for e in supported_extensions()}
    out: list[Path] = []
    for p in map(Path, paths):
        if p.is_dir():
            out.extend(sorted(f for f in p.rglob("*") if f.is_file() and f.suffix.lower() in exts))
        else:
            out.append(p)
    return out


def _load_labels(path: str | None) -> dict[str, dict[str, Any]]:
    # one row per document: {"filename": "a.txt", "labels": {"email": "...", ...}}
    if not path:
        return {}
    return {str(r["filename"]): dict(r.get("labels") or {}) for r in read_jsonl(path)}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Extract structured fields from text documents.")
    ap.add_argument("paths", nargs="+", help="Files or directories (.txt, .eml)")
    ap.add_argument("--fields", nargs="+", default=None, help="Restrict extraction to these fields")
    ap.add_argument("--threshold", type=float, default=None, help="Confidence threshold for the fallback")
    ap.add_argument("--no-llm", action="store_true", help="Rules only")
    ap.add_argument("--labels", default=None, help="JSONL with ground truth per filename")
    ap.add_argument("--output", default=None, help="Predictions JSONL (default: OUTPUT_PATH)")
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    if args.no_llm:
        settings = replace(settings, use_llm=False)
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    orchestrator = ExtractionOrchestrator.from_settings(settings)
    files = _collect_inputs(args.paths)
    labels = _load_labels(args.labels)

    batch = orchestrator.process_batch(
        files,
        fallback_enabled=settings.use_llm,
        confidence_threshold=args.threshold,
        fields=args.fields,
    )

    outputs: list[dict[str, Any]] = []
    eval_rows_all: list[dict[str, Any]] = []
    scored: list[EvalRow] = []
    for path, res in zip(files, batch["results"]):
        outputs.append({"path": str(path), **res})
        if not res.get("success"):
            continue

        gt = labels.get(path.name)
        if gt:
            flat = flatten_fields(res["extracted_fields"])
            for r in evaluate_one(flat, gt):
                scored.append(r)
                eval_rows_all.append({
                    "filename": path.name,
                    "field": r.field,
                    "ok": r.ok,
                    "score": r.score,
                    "review": any(rec["field"] == r.field for rec in res["summary"]["recommended_review"]),
                })

    output_path = args.output or settings.output_path
    write_jsonl(output_path, outputs)
    logger.info("Wrote %d prediction(s) to %s (%d failed)", len(outputs), output_path, batch["failed"])

    if eval_rows_all:
        eval_path = os.path.join(os.path.dirname(output_path) or ".", "eval_rows.jsonl")
        write_jsonl(eval_path, eval_rows_all)
        stats = summarize_eval(scored)
        flagged = sum(1 for r in eval_rows_all if r["review"])
        print(f"[EVAL] rows={stats['rows']} ok={stats['ok']} acc={stats['accuracy']:.3f} "
              f"flagged_for_review={flagged}")

    return 0 if batch["failed"] == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
