from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Mapping
from uuid import uuid4

from .config import Settings
from .costs import CostLedger
from .documents import ProcessedDocument, load_document
from .errors import CostLimitExceeded, ExtractionError
from .extractors import Candidate, FieldResult, PatternRule, kind_for
from .hitl import summarize
from .llm import FallbackBackend, create_backend
from .rules import RulesEngine, dedupe_candidates
from .utils import clamp01, utc_now_iso

logger = logging.getLogger(__name__)

METHOD_RULES = "rules"
METHOD_FALLBACK = "rules+fallback"


@dataclass
class ExtractionResult:
    session_id: str
    document_type: str
    filename: str | None
    extracted_fields: dict[str, FieldResult]
    metadata: dict[str, Any]
    summary: dict[str, Any] = field(default_factory=dict)
    requested_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "document_type": self.document_type,
            "filename": self.filename,
            "extracted_fields": {f: [c.to_dict() for c in cands] for f, cands in self.extracted_fields.items()},
            "metadata": dict(self.metadata),
            "summary": dict(self.summary),
        }


def identify_gaps(results: Mapping[str, FieldResult], requested: Iterable[str], threshold: float) -> list[str]:
    """Requested fields with no candidate, or whose best candidate is below threshold."""
    gaps: list[str] = []
    for f in requested:
        cands = results.get(f)
        if not cands or cands[0].confidence < threshold:
            gaps.append(f)
    return gaps


def merge_results(
    rules_results: Mapping[str, FieldResult],
    fallback_results: Mapping[str, list[Candidate]],
    gaps: list[str],
    cap: int = 3,
    discard_non_gap: bool = True,
) -> dict[str, FieldResult]:
    """
    Union rules and fallback candidates for every gap field, keep the top `cap`.

    Non-gap fields are returned untouched; fallback candidates for them are
    dropped unless discard_non_gap is False, in which case they are added
    without truncating the rules candidates.
    """
    merged = {f: list(cands) for f, cands in rules_results.items()}

    for f in gaps:
        combined = merged.get(f, []) + list(fallback_results.get(f, []))
        if combined:
            merged[f] = dedupe_candidates(combined)[:cap]

    if not discard_non_gap:
        for f, extra in fallback_results.items():
            if f in gaps or not extra:
                continue
            merged[f] = dedupe_candidates(merged.get(f, []) + list(extra))

    return merged


def post_process(extracted: Mapping[str, FieldResult]) -> dict[str, FieldResult]:
    processed: dict[str, FieldResult] = {}
    for f, cands in extracted.items():
        if not cands:
            continue
        kind = kind_for(f)
        normalized = [
            replace(c, confidence=clamp01(c.confidence), value=kind.post_processor(c.value) if c.value else c.value)
            for c in cands
        ]
        # normalization can collapse two spellings of one value
        processed[f] = dedupe_candidates(normalized)
    return processed


def flatten_fields(extracted: Mapping[str, Any]) -> dict[str, str]:
    """Best value per field, for consumers that take one value per field."""
    flat: dict[str, str] = {}
    for f, cands in extracted.items():
        if not cands:
            continue
        best = cands[0]
        flat[f] = best.value if isinstance(best, Candidate) else best["value"]
    return flat


class ExtractionOrchestrator:
    """
    Rules first, then a cost-gated fallback for the gaps, then merge and post-process.

    The ledger is the only state shared between invocations; everything
    else in an ExtractionResult is recomputed per call.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        rules_engine: RulesEngine | None = None,
        backend: FallbackBackend | None = None,
        ledger: CostLedger | None = None,
    ):
        self.settings = settings or Settings()
        self.rules_engine = rules_engine or RulesEngine(top_k=self.settings.rules_top_k)
        if ledger is None:
            ledger = backend.ledger if backend is not None else CostLedger()
        self.ledger = ledger
        self.backend = backend
        if backend is not None:
            backend.ledger = ledger

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExtractionOrchestrator":
        ledger = CostLedger()
        backend = create_backend(settings, ledger) if settings.use_llm else None
        return cls(settings=settings, backend=backend, ledger=ledger)

    def add_custom_rule(self, field_name: str, rule: PatternRule) -> None:
        self.rules_engine.add_custom_rule(field_name, rule)

    def _requested_fields(self, fields: Iterable[str] | None) -> list[str]:
        if fields is None:
            return self.rules_engine.field_names
        wanted = list(fields)
        if not wanted:
            raise ExtractionError("Field subset must not be empty")
        return self.rules_engine.check_fields(wanted)

    def extract(
        self,
        document: ProcessedDocument | str,
        session_id: str = "default",
        fallback_enabled: bool = True,
        confidence_threshold: float | None = None,
        fields: Iterable[str] | None = None,
    ) -> ExtractionResult:
        if isinstance(document, ProcessedDocument):
            text, doc_type, filename = document.text, document.type, document.filename
        else:
            text, doc_type, filename = document, "text", None

        if not isinstance(text, str):
            raise ExtractionError(f"Document text must be a string, got {type(text).__name__}")
        if not text.strip():
            raise ExtractionError("Document contains no text")

        threshold = self.settings.confidence_threshold if confidence_threshold is None else confidence_threshold
        if not 0.0 <= threshold <= 1.0:
            raise ExtractionError(f"confidence_threshold must be within [0, 1], got {threshold}")

        requested = self._requested_fields(fields)
        logger.info("Starting field extraction for session: %s", session_id)

        # Phase 1: rules
        rules_results = self.rules_engine.extract_fields(text, requested)
        metadata: dict[str, Any] = {
            "extraction_method": METHOD_RULES,
            "rules_stats": self.rules_engine.get_stats(rules_results),
            "started_at": utc_now_iso(),
            "fallback_used": False,
            "fallback_error": None,
            "requested_fields": list(requested),
        }

        # Phase 2: gaps
        gaps = identify_gaps(rules_results, requested, threshold)

        # Phase 3: gated fallback
        extracted: dict[str, FieldResult] = dict(rules_results)
        if fallback_enabled and gaps and self.backend is not None:
            logger.info("%d field(s) need fallback: %s", len(gaps), ", ".join(gaps))
            extracted = self._run_fallback(text, rules_results, gaps, session_id, metadata)
        else:
            logger.info(
                "Rules extraction completed. Fallback %s.",
                "not needed" if not gaps else ("disabled" if not fallback_enabled else "not configured"),
            )

        # Phase 4: post-process + summary
        final = post_process(extracted)
        metadata["final_fields_count"] = len(final)
        metadata["completed_at"] = utc_now_iso()

        result = ExtractionResult(
            session_id=session_id,
            document_type=doc_type,
            filename=filename,
            extracted_fields=final,
            metadata=metadata,
            requested_fields=list(requested),
        )
        result.summary = summarize(final, requested, metadata["extraction_method"], metadata["fallback_used"])
        logger.info("Field extraction completed for session: %s. Total fields: %d", session_id, len(final))
        return result

    def _run_fallback(
        self,
        text: str,
        rules_results: dict[str, FieldResult],
        gaps: list[str],
        session_id: str,
        metadata: dict[str, Any],
    ) -> dict[str, FieldResult]:
        s = self.settings
        try:
            check = self.ledger.can_make_request(session_id, s.max_cost_per_request, s.max_daily_cost)
            if not check.allowed:
                raise CostLimitExceeded(f"Cost limit exceeded: {check.reason}")

            fallback_results = self.backend.extract_fields(text, gaps, session_id)
        except CostLimitExceeded as e:
            logger.warning("Fallback skipped for session %s: %s", session_id, e)
            metadata["fallback_error"] = str(e)
            return dict(rules_results)
        except Exception as e:
            logger.warning("LLM fallback failed: %s. Continuing with rules-only results.", e)
            metadata["fallback_error"] = str(e)
            return dict(rules_results)

        metadata["extraction_method"] = METHOD_FALLBACK
        metadata["fallback_used"] = True
        metadata["fallback_fields"] = list(gaps)
        metadata["fallback_fields_count"] = len(fallback_results)
        logger.info("LLM fallback completed. Extracted %d additional field(s)", len(fallback_results))
        return merge_results(rules_results, fallback_results, gaps, cap=s.merge_cap, discard_non_gap=s.discard_non_gap)

    def process_document(
        self,
        document: ProcessedDocument | str | Path,
        session_id: str | None = None,
        **options: Any,
    ) -> dict[str, Any]:
        """
        Load (when given a path) and extract, never raising.

        Returns {"success": True, ...result} or {"success": False, "error": ...};
        a failed run returns nothing partial.
        """
        session_id = session_id or str(uuid4())
        try:
            doc = document if isinstance(document, ProcessedDocument) else load_document(document)
            result = self.extract(doc, session_id=session_id, **options)
        except Exception as e:
            logger.error("Document processing failed for session %s: %s", session_id, e)
            return {"success": False, "session_id": session_id, "error": str(e), "timestamp": utc_now_iso()}

        return {
            "success": True,
            **result.to_dict(),
            "processing": {"filename": result.filename, "processed_at": utc_now_iso()},
        }

    def process_batch(
        self,
        documents: list[ProcessedDocument | str | Path],
        concurrency: int | None = None,
        **options: Any,
    ) -> dict[str, Any]:
        concurrency = max(1, concurrency or self.settings.batch_concurrency)
        logger.info("Starting batch processing: %d file(s), concurrency: %d", len(documents), concurrency)

        results: list[dict[str, Any]] = []
        n_batches = (len(documents) + concurrency - 1) // concurrency
        with ThreadPoolExecutor(max_workers=concurrency) as pool:
            for i in range(0, len(documents), concurrency):
                window = documents[i:i + concurrency]
                futures = [pool.submit(self.process_document, doc, **options) for doc in window]
                for doc, fut in zip(window, futures):
                    try:
                        results.append(fut.result())
                    except Exception as e:
                        results.append({"success": False, "document": str(doc), "error": str(e)})
                logger.info("Completed batch %d/%d", i // concurrency + 1, n_batches)

        ok = sum(1 for r in results if r.get("success"))
        logger.info("Batch processing completed: %d successful, %d failed", ok, len(results) - ok)
        return {
            "success": True,
            "total": len(results),
            "successful": ok,
            "failed": len(results) - ok,
            "results": results,
            "timestamp": utc_now_iso(),
        }

    def health_check(self) -> dict[str, Any]:
        rules_health = {"status": "healthy", **self.rules_engine.rule_counts()}
        if self.backend is None:
            fallback_health: dict[str, Any] = {"status": "disabled"}
        else:
            fallback_health = self.backend.health_check()
        ok = fallback_health.get("status") in ("healthy", "disabled")
        return {"rules": rules_health, "fallback": fallback_health, "overall": "healthy" if ok else "degraded"}

    def get_cost_info(self, session_id: str) -> dict[str, Any]:
        return {
            "session": self.ledger.session_stats(session_id),
            "daily": self.ledger.daily_stats(),
            "timestamp": utc_now_iso(),
        }
